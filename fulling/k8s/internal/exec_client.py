"""Run a one-shot command in a sandbox container via kubectl exec.

Unlike the streaming variant, every call opens its own WebSocket, waits for
the command to finish and returns the collected output. The command's exit
status arrives on the error channel as a Kubernetes Status object:

    {"status": "Success"}
    {"status": "Failure", "reason": "NonZeroExitCode",
     "details": {"causes": [{"reason": "ExitCode", "message": "2"}]}}

No timeout is applied here; a command that never exits keeps the call open.
"""

import json
from dataclasses import dataclass

from kubernetes import client  # type: ignore
from kubernetes.client.rest import ApiException  # type: ignore
from kubernetes.stream import stream as k8s_stream  # type: ignore
from kubernetes.stream.ws_client import ERROR_CHANNEL  # type: ignore
from websocket import WebSocketException  # type: ignore

from fulling.k8s.errors import PodExecError
from fulling.utils.logger import setup_logger

# Seconds to wait for new frames per read iteration
_READ_POLL_INTERVAL = 1


@dataclass
class ExecOutput:
    stdout: str
    stderr: str
    succeeded: bool
    # None when the command succeeded or the status carried no exit code
    exit_code: int | None = None
    error_message: str | None = None


def _parse_exec_status(raw_status: str | None) -> tuple[bool, int | None, str | None]:
    """Returns (succeeded, exit_code, message) from the error channel payload."""
    if not raw_status or not raw_status.strip():
        # The channel closed without reporting a status
        return False, None, "Exec finished without a status"

    try:
        status = json.loads(raw_status)
    except json.JSONDecodeError:
        return False, None, raw_status.strip()

    if not isinstance(status, dict):
        return False, None, raw_status.strip()

    if status.get("status") == "Success":
        return True, None, None

    exit_code: int | None = None
    causes = (status.get("details") or {}).get("causes") or []
    for cause in causes:
        if cause.get("reason") == "ExitCode":
            try:
                exit_code = int(cause.get("message"))
            except (TypeError, ValueError):
                exit_code = None
            break

    return False, exit_code, status.get("message")


class PodExecClient:
    """Runs commands in one container of one pod."""

    def __init__(
        self,
        core_api: client.CoreV1Api,
        pod_name: str,
        namespace: str,
        container: str,
    ) -> None:
        self._core_api = core_api
        self._pod_name = pod_name
        self._namespace = namespace
        self._container = container
        self._logger = setup_logger(
            __name__, extra={"sandbox": container, "namespace": namespace}
        )

    def run(self, command: list[str]) -> ExecOutput:
        """Execute `command` and block until it exits.

        A command that runs and exits non-zero is NOT an error here; it is
        reported through ExecOutput.succeeded/exit_code.

        Raises:
            PodExecError: If the exec channel cannot be opened (pod missing,
                container not running) or breaks before the command finishes
        """
        try:
            ws_client = k8s_stream(
                self._core_api.connect_get_namespaced_pod_exec,
                name=self._pod_name,
                namespace=self._namespace,
                container=self._container,
                command=command,
                stdin=False,
                stdout=True,
                stderr=True,
                tty=False,
                _preload_content=False,
            )
        except ApiException as e:
            raise PodExecError(
                f"Failed to exec in pod {self._namespace}/{self._pod_name}: {e.reason}",
                status=e.status,
            ) from e
        except (WebSocketException, OSError) as e:
            raise PodExecError(
                f"Failed to exec in pod {self._namespace}/{self._pod_name}: {e}"
            ) from e

        stdout_data = ""
        stderr_data = ""
        try:
            while ws_client.is_open():
                ws_client.update(timeout=_READ_POLL_INTERVAL)
                if ws_client.peek_stdout():
                    stdout_data += ws_client.read_stdout()
                if ws_client.peek_stderr():
                    stderr_data += ws_client.read_stderr()

            # Frames that arrived together with the close
            stdout_data += ws_client.read_stdout() or ""
            stderr_data += ws_client.read_stderr() or ""
            raw_status = ws_client.read_channel(ERROR_CHANNEL)
        except (ApiException, WebSocketException, OSError) as e:
            raise PodExecError(
                f"Exec stream to pod {self._namespace}/{self._pod_name} failed: {e}"
            ) from e
        finally:
            ws_client.close()

        succeeded, exit_code, error_message = _parse_exec_status(raw_status)
        if not succeeded:
            self._logger.debug(
                f"Command failed (exit_code={exit_code}): {error_message}"
            )

        return ExecOutput(
            stdout=stdout_data,
            stderr=stderr_data,
            succeeded=succeeded,
            exit_code=exit_code,
            error_message=error_message,
        )
