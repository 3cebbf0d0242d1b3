import concurrent.futures
from collections.abc import Callable
from collections.abc import Sequence
from typing import Any

from fulling.utils.logger import setup_logger

logger = setup_logger()


def run_functions_tuples_in_parallel(
    functions_with_args: Sequence[tuple[Callable[..., Any], tuple]],
    allow_failures: bool = False,
    max_workers: int | None = None,
) -> list[Any]:
    """
    Executes multiple functions in parallel and returns a list of the results for each function.
    All functions are submitted up front and every one of them runs to completion,
    even when another one fails.

    Args:
        functions_with_args: List of tuples each containing the function callable and a tuple of arguments.
        allow_failures: if set to True, then the function result will just be None
        max_workers: Max number of worker threads. Defaults to one thread per function.

    Returns:
        list: A list of results from each function, in the same order as the input functions.

    Raises:
        Exception: the first failure (in submission order) when allow_failures is False,
            raised only after all functions have finished.
    """
    if not functions_with_args:
        return []

    workers = (
        min(max_workers, len(functions_with_args))
        if max_workers
        else len(functions_with_args)
    )

    results: list[Any] = [None] * len(functions_with_args)
    errors: list[tuple[int, BaseException]] = []

    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
        future_to_index = {
            executor.submit(func, *args): i
            for i, (func, args) in enumerate(functions_with_args)
        }

        for future in concurrent.futures.as_completed(future_to_index):
            index = future_to_index[future]
            try:
                results[index] = future.result()
            except Exception as e:
                func_name = getattr(functions_with_args[index][0], "__name__", "func")
                logger.exception(f"Function at index {index} ({func_name}) failed")
                errors.append((index, e))

    if errors and not allow_failures:
        _, first_error = min(errors, key=lambda item: item[0])
        raise first_error

    return results
