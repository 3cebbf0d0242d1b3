"""Tests for the sandbox HTTP endpoints."""

from collections.abc import Generator
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from fulling.k8s.enums import SandboxStatus
from fulling.k8s.errors import ExecOutputParseError
from fulling.k8s.errors import PodExecError
from fulling.k8s.errors import TerminalSessionError
from fulling.k8s.errors import TerminalSessionNotFoundError
from fulling.k8s.kubernetes_service import get_kubernetes_service
from fulling.k8s.models import CurrentDirectoryInfo
from fulling.k8s.models import ExecResult
from fulling.k8s.models import KillProcessResult
from fulling.k8s.models import StatefulSetStatusDetail
from fulling.main import get_application


@pytest.fixture
def k8s_service() -> MagicMock:
    return MagicMock()


@pytest.fixture
def test_client(k8s_service: MagicMock) -> Generator[TestClient, None, None]:
    app = get_application()
    app.dependency_overrides[get_kubernetes_service] = lambda: k8s_service
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


def test_status(test_client: TestClient, k8s_service: MagicMock) -> None:
    k8s_service.get_sandbox_detailed_status.return_value = (
        StatefulSetStatusDetail.zeroed(SandboxStatus.TERMINATED)
    )

    response = test_client.get("/sandbox/acme-x1/status", params={"namespace": "ns1"})

    assert response.status_code == 200
    assert response.json()["status"] == "TERMINATED"
    k8s_service.get_sandbox_detailed_status.assert_called_once_with(
        "acme-x1", namespace="ns1"
    )


class TestAppStatus:
    def test_running(self, test_client: TestClient, k8s_service: MagicMock) -> None:
        k8s_service.is_port_listening.return_value = True

        response = test_client.get("/sandbox/acme-x1/app-status")

        assert response.status_code == 200
        assert response.json() == {"running": True}
        k8s_service.is_port_listening.assert_called_once_with(
            "acme-x1", 3000, namespace=None
        )

    def test_stop_app(self, test_client: TestClient, k8s_service: MagicMock) -> None:
        k8s_service.kill_process_on_port.return_value = KillProcessResult(success=True)

        response = test_client.delete("/sandbox/acme-x1/app-status")

        assert response.status_code == 200
        assert response.json() == {"success": True, "error": None}

    def test_stop_app_failure_is_reported_in_body(
        self, test_client: TestClient, k8s_service: MagicMock
    ) -> None:
        """Should answer 200 with success false so callers read the body."""
        k8s_service.kill_process_on_port.return_value = KillProcessResult(
            success=False, error="Failed to kill process"
        )

        response = test_client.delete("/sandbox/acme-x1/app-status")

        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["error"] == "Failed to kill process"


class TestExec:
    def test_launches_command(
        self, test_client: TestClient, k8s_service: MagicMock
    ) -> None:
        k8s_service.exec_command_in_background.return_value = ExecResult(
            success=True, pid=4242
        )

        response = test_client.post(
            "/sandbox/acme-x1/exec",
            json={"command": "pnpm dev", "workdir": "/home/fulling/next"},
        )

        assert response.status_code == 200
        assert response.json()["pid"] == 4242
        k8s_service.exec_command_in_background.assert_called_once_with(
            "acme-x1", "pnpm dev", workdir="/home/fulling/next", namespace=None
        )

    def test_workdir_defaults_to_home(
        self, test_client: TestClient, k8s_service: MagicMock
    ) -> None:
        k8s_service.exec_command_in_background.return_value = ExecResult(
            success=True, pid=1
        )

        test_client.post("/sandbox/acme-x1/exec", json={"command": "ls"})

        assert (
            k8s_service.exec_command_in_background.call_args.kwargs["workdir"]
            == "/home/fulling"
        )

    def test_empty_command_is_rejected(
        self, test_client: TestClient, k8s_service: MagicMock
    ) -> None:
        response = test_client.post("/sandbox/acme-x1/exec", json={"command": "  "})

        assert response.status_code == 400
        k8s_service.exec_command_in_background.assert_not_called()

    def test_launch_failure(
        self, test_client: TestClient, k8s_service: MagicMock
    ) -> None:
        k8s_service.exec_command_in_background.return_value = ExecResult(
            success=False, error="Failed to parse PID from output: 'x'"
        )

        response = test_client.post("/sandbox/acme-x1/exec", json={"command": "ls"})

        assert response.status_code == 500
        assert response.json()["success"] is False


class TestCurrentDirectory:
    def test_returns_directory(
        self, test_client: TestClient, k8s_service: MagicMock
    ) -> None:
        k8s_service.get_sandbox_current_directory.return_value = (
            CurrentDirectoryInfo(
                cwd="/home/fulling/next", home_dir="/home/fulling", is_in_home=True
            )
        )

        response = test_client.get(
            "/sandbox/acme-x1/cwd", params={"session_id": "session-1"}
        )

        assert response.status_code == 200
        assert response.json() == {
            "cwd": "/home/fulling/next",
            "homeDir": "/home/fulling",
            "isInHome": True,
        }

    @pytest.mark.parametrize(
        "error,expected_status",
        [
            (TerminalSessionNotFoundError("Session file not found"), 404),
            (TerminalSessionError("Process 12 no longer exists"), 409),
            (PodExecError("pod gone", status=404), 502),
            (ExecOutputParseError("garbage"), 502),
        ],
    )
    def test_error_mapping(
        self,
        test_client: TestClient,
        k8s_service: MagicMock,
        error: Exception,
        expected_status: int,
    ) -> None:
        k8s_service.get_sandbox_current_directory.side_effect = error

        response = test_client.get(
            "/sandbox/acme-x1/cwd", params={"session_id": "session-1"}
        )

        assert response.status_code == expected_status

    def test_session_id_is_required(self, test_client: TestClient) -> None:
        response = test_client.get("/sandbox/acme-x1/cwd")

        assert response.status_code == 422
