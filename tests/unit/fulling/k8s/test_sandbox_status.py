"""Tests for deriving sandbox status from StatefulSet counters."""

from unittest.mock import MagicMock

import pytest

from fulling.k8s.enums import SandboxStatus
from fulling.k8s.sandbox_manager import derive_sandbox_status
from fulling.k8s.sandbox_manager import SandboxManager
from tests.unit.fulling.k8s.conftest import make_api_exception
from tests.unit.fulling.k8s.conftest import make_stateful_set
from tests.unit.fulling.k8s.conftest import NAMESPACE
from tests.unit.fulling.k8s.conftest import SANDBOX_NAME


@pytest.mark.parametrize(
    "counters,expected_status,expected_ready",
    [
        ((1, 1, 1, 1, 1), SandboxStatus.RUNNING, True),
        ((2, 2, 2, 2, 2), SandboxStatus.RUNNING, True),
        # Updated count lags during a rollout
        ((2, 2, 2, 2, 1), SandboxStatus.STARTING, False),
        ((1, 1, 0, 1, 1), SandboxStatus.STARTING, False),
        ((1, 0, 0, 0, 0), SandboxStatus.STARTING, False),
        ((0, 3, 0, 3, 0), SandboxStatus.STOPPING, False),
        ((0, 0, 0, 0, 0), SandboxStatus.STOPPED, False),
    ],
)
def test_derive_sandbox_status(
    counters: tuple[int, int, int, int, int],
    expected_status: SandboxStatus,
    expected_ready: bool,
) -> None:
    replicas, observed, ready, current, updated = counters

    status, is_ready = derive_sandbox_status(
        replicas=replicas,
        observed_replicas=observed,
        ready_replicas=ready,
        current_replicas=current,
        updated_replicas=updated,
    )

    assert status == expected_status
    assert is_ready is expected_ready


def test_running_sandbox_detail(
    sandbox_manager: SandboxManager, apps_api: MagicMock
) -> None:
    apps_api.read_namespaced_stateful_set.return_value = make_stateful_set(replicas=1)

    detail = sandbox_manager.get_stateful_set_status(SANDBOX_NAME, NAMESPACE)

    assert detail.status == SandboxStatus.RUNNING
    assert detail.is_ready
    assert detail.replicas == 1
    assert detail.ready_replicas == 1
    assert detail.current_revision == "acme-x1-rev1"


def test_rollout_in_progress_is_starting(
    sandbox_manager: SandboxManager, apps_api: MagicMock
) -> None:
    apps_api.read_namespaced_stateful_set.return_value = make_stateful_set(
        replicas=2, updated_replicas=1
    )

    detail = sandbox_manager.get_stateful_set_status(SANDBOX_NAME, NAMESPACE)

    assert detail.status == SandboxStatus.STARTING
    assert not detail.is_ready
    assert detail.updated_replicas == 1


def test_missing_counters_read_as_zero(
    sandbox_manager: SandboxManager, apps_api: MagicMock
) -> None:
    """A freshly scaled-down StatefulSet omits its zero counters."""
    stateful_set = make_stateful_set(replicas=0)
    stateful_set.status.ready_replicas = None
    stateful_set.status.current_replicas = None
    stateful_set.status.updated_replicas = None
    apps_api.read_namespaced_stateful_set.return_value = stateful_set

    detail = sandbox_manager.get_stateful_set_status(SANDBOX_NAME, NAMESPACE)

    assert detail.status == SandboxStatus.STOPPED
    assert detail.current_replicas == 0


def test_missing_sandbox_is_terminated(
    sandbox_manager: SandboxManager, apps_api: MagicMock
) -> None:
    apps_api.read_namespaced_stateful_set.side_effect = make_api_exception(404)

    detail = sandbox_manager.get_stateful_set_status(SANDBOX_NAME, NAMESPACE)

    assert detail.status == SandboxStatus.TERMINATED
    assert not detail.is_ready
    assert (
        detail.replicas,
        detail.observed_replicas,
        detail.ready_replicas,
        detail.current_replicas,
        detail.updated_replicas,
    ) == (0, 0, 0, 0, 0)


def test_query_failure_is_error_not_exception(
    sandbox_manager: SandboxManager, apps_api: MagicMock
) -> None:
    apps_api.read_namespaced_stateful_set.side_effect = make_api_exception(500)

    detail = sandbox_manager.get_stateful_set_status(SANDBOX_NAME, NAMESPACE)

    assert detail.status == SandboxStatus.ERROR
    assert detail.replicas == 0
    assert detail.ready_replicas == 0


def test_transport_failure_is_error(
    sandbox_manager: SandboxManager, apps_api: MagicMock
) -> None:
    apps_api.read_namespaced_stateful_set.side_effect = ConnectionError("refused")

    assert (
        sandbox_manager.get_sandbox_status(SANDBOX_NAME, NAMESPACE)
        == SandboxStatus.ERROR
    )


def test_get_sandbox_status_returns_status_only(
    sandbox_manager: SandboxManager, apps_api: MagicMock
) -> None:
    apps_api.read_namespaced_stateful_set.return_value = make_stateful_set(
        replicas=0, current_replicas=1
    )

    assert (
        sandbox_manager.get_sandbox_status(SANDBOX_NAME, NAMESPACE)
        == SandboxStatus.STOPPING
    )
