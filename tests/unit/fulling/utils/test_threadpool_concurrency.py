import threading
import time

import pytest

from fulling.utils.threadpool_concurrency import run_functions_tuples_in_parallel


def _double(value: int) -> int:
    return value * 2


def _fail(message: str) -> None:
    raise ValueError(message)


def test_results_keep_submission_order() -> None:
    def _slow_double(value: int) -> int:
        time.sleep(0.05 if value == 1 else 0)
        return value * 2

    results = run_functions_tuples_in_parallel(
        [(_slow_double, (1,)), (_double, (2,)), (_double, (3,))]
    )

    assert results == [2, 4, 6]


def test_empty_input() -> None:
    assert run_functions_tuples_in_parallel([]) == []


def test_all_functions_run_before_failure_is_raised() -> None:
    """A failing function must not cancel the others."""
    finished = threading.Event()

    def _slow() -> str:
        time.sleep(0.1)
        finished.set()
        return "done"

    with pytest.raises(ValueError, match="boom"):
        run_functions_tuples_in_parallel([(_fail, ("boom",)), (_slow, ())])

    assert finished.is_set()


def test_first_failure_in_submission_order_wins() -> None:
    def _fail_late(message: str) -> None:
        time.sleep(0.05)
        raise ValueError(message)

    with pytest.raises(ValueError, match="first"):
        run_functions_tuples_in_parallel(
            [(_fail_late, ("first",)), (_fail, ("second",))]
        )


def test_allow_failures_returns_none_for_failed_calls() -> None:
    results = run_functions_tuples_in_parallel(
        [(_double, (1,)), (_fail, ("boom",))], allow_failures=True
    )

    assert results == [2, None]


def test_runs_concurrently() -> None:
    barrier = threading.Barrier(3, timeout=5)

    def _meet() -> bool:
        barrier.wait()
        return True

    assert run_functions_tuples_in_parallel([(_meet, ())] * 3) == [True] * 3
