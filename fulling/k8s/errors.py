"""Error classification for Kubernetes API and exec failures.

Call sites branch on K8sErrorKind instead of probing status codes on
exceptions of unknown shape.
"""

from dataclasses import dataclass
from enum import Enum

from kubernetes.client.rest import ApiException  # type: ignore


class K8sErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    OTHER = "other"


@dataclass(frozen=True)
class K8sErrorClassification:
    kind: K8sErrorKind
    # HTTP status when the error came from the API server, None for transport errors
    status: int | None = None


def classify_k8s_error(error: BaseException) -> K8sErrorClassification:
    if isinstance(error, ApiException):
        if error.status == 404:
            return K8sErrorClassification(K8sErrorKind.NOT_FOUND, 404)
        if error.status == 409:
            return K8sErrorClassification(K8sErrorKind.CONFLICT, 409)
        return K8sErrorClassification(K8sErrorKind.OTHER, error.status)

    if isinstance(error, PodExecError):
        if error.status == 404:
            return K8sErrorClassification(K8sErrorKind.NOT_FOUND, 404)
        return K8sErrorClassification(K8sErrorKind.OTHER, error.status)

    return K8sErrorClassification(K8sErrorKind.OTHER)


def is_not_found(error: BaseException) -> bool:
    return classify_k8s_error(error).kind == K8sErrorKind.NOT_FOUND


def is_conflict(error: BaseException) -> bool:
    return classify_k8s_error(error).kind == K8sErrorKind.CONFLICT


class PodExecError(RuntimeError):
    """The exec channel into a pod could not be opened or broke mid-stream."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class ExecOutputParseError(ValueError):
    """A remote script produced output that violates its contract."""


class TerminalSessionError(RuntimeError):
    """A terminal session exists but its shell cannot be inspected."""


class TerminalSessionNotFoundError(TerminalSessionError):
    """No session marker file exists for the requested terminal session."""
