"""Shared fixtures and fakes for sandbox orchestration tests."""

import json
from unittest.mock import MagicMock

import pytest
from kubernetes import client  # type: ignore
from kubernetes.client.rest import ApiException  # type: ignore
from kubernetes.stream.ws_client import ERROR_CHANNEL  # type: ignore

from fulling.k8s.sandbox_manager import SandboxManager

SANDBOX_NAME = "acme-x1"
NAMESPACE = "ns1"
INGRESS_DOMAIN = "usw.example.io"

SUCCESS_STATUS = json.dumps({"status": "Success", "metadata": {}})


def make_exit_status(exit_code: int, message: str = "") -> str:
    """Error channel payload of a command that exited non-zero."""
    return json.dumps(
        {
            "metadata": {},
            "status": "Failure",
            "message": message
            or f"command terminated with non-zero exit code: {exit_code}",
            "reason": "NonZeroExitCode",
            "details": {"causes": [{"reason": "ExitCode", "message": str(exit_code)}]},
        }
    )


def make_api_exception(status: int, reason: str = "") -> ApiException:
    return ApiException(status=status, reason=reason or f"HTTP {status}")


def make_stateful_set(
    name: str = SANDBOX_NAME,
    replicas: int = 1,
    observed_replicas: int | None = None,
    ready_replicas: int | None = None,
    current_replicas: int | None = None,
    updated_replicas: int | None = None,
    env: list[client.V1EnvVar] | None = None,
    container_name: str | None = None,
) -> client.V1StatefulSet:
    """A StatefulSet as returned by the API. Status counters default to `replicas`."""

    def _counter(value: int | None) -> int:
        return replicas if value is None else value

    return client.V1StatefulSet(
        metadata=client.V1ObjectMeta(name=name, namespace=NAMESPACE),
        spec=client.V1StatefulSetSpec(
            replicas=replicas,
            service_name=f"{name}-service",
            selector=client.V1LabelSelector(match_labels={"app": name}),
            template=client.V1PodTemplateSpec(
                spec=client.V1PodSpec(
                    containers=[
                        client.V1Container(
                            name=container_name or name,
                            image="runtime:latest",
                            env=env,
                        ),
                        client.V1Container(name="filebrowser", image="filebrowser"),
                    ]
                )
            ),
        ),
        status=client.V1StatefulSetStatus(
            replicas=_counter(observed_replicas),
            ready_replicas=_counter(ready_replicas),
            current_replicas=_counter(current_replicas),
            updated_replicas=_counter(updated_replicas),
            current_revision=f"{name}-rev1",
            update_revision=f"{name}-rev1",
        ),
    )


class FakeWSClient:
    """Stand-in for kubernetes.stream.ws_client.WSClient.

    Delivers all output on the first update() and then reports closed.
    """

    def __init__(
        self,
        stdout: str = "",
        stderr: str = "",
        status: str | None = SUCCESS_STATUS,
        update_error: Exception | None = None,
    ) -> None:
        self._pending_stdout = stdout
        self._pending_stderr = stderr
        self._status = status
        self._update_error = update_error
        self._stdout = ""
        self._stderr = ""
        self._open = True
        self.closed = False

    def is_open(self) -> bool:
        return self._open

    def update(self, timeout: float = 0) -> None:
        if self._update_error is not None:
            raise self._update_error
        self._stdout += self._pending_stdout
        self._stderr += self._pending_stderr
        self._pending_stdout = ""
        self._pending_stderr = ""
        self._open = False

    def peek_stdout(self, timeout: float = 0) -> bool:
        return bool(self._stdout)

    def read_stdout(self, timeout: float | None = None) -> str:
        data, self._stdout = self._stdout, ""
        return data

    def peek_stderr(self, timeout: float = 0) -> bool:
        return bool(self._stderr)

    def read_stderr(self, timeout: float | None = None) -> str:
        data, self._stderr = self._stderr, ""
        return data

    def read_channel(self, channel: int, timeout: float = 0) -> str:
        if channel == ERROR_CHANNEL:
            return self._status or ""
        return ""

    def close(self, **kwargs: object) -> None:
        self.closed = True
        self._open = False


class FakeExecStream:
    """Replaces k8s_stream; hands out queued FakeWSClients and records calls."""

    def __init__(self) -> None:
        self.clients: list[FakeWSClient] = []
        self.calls: list[dict] = []
        self.open_error: Exception | None = None

    def respond(self, ws_client: FakeWSClient) -> FakeWSClient:
        self.clients.append(ws_client)
        return ws_client

    def __call__(self, api_method: object, **kwargs: object) -> FakeWSClient:
        self.calls.append(kwargs)
        if self.open_error is not None:
            raise self.open_error
        return self.clients.pop(0)

    @property
    def last_script(self) -> str:
        return self.calls[-1]["command"][-1]


@pytest.fixture
def exec_stream(monkeypatch: pytest.MonkeyPatch) -> FakeExecStream:
    fake = FakeExecStream()
    monkeypatch.setattr("fulling.k8s.internal.exec_client.k8s_stream", fake)
    return fake


@pytest.fixture
def apps_api() -> MagicMock:
    return MagicMock()


@pytest.fixture
def core_api() -> MagicMock:
    return MagicMock()


@pytest.fixture
def networking_api() -> MagicMock:
    return MagicMock()


@pytest.fixture
def sandbox_manager(
    apps_api: MagicMock, core_api: MagicMock, networking_api: MagicMock
) -> SandboxManager:
    manager = SandboxManager(api_client=MagicMock())
    manager._apps_api = apps_api
    manager._core_api = core_api
    manager._networking_api = networking_api
    return manager
