"""Pydantic models for sandbox orchestration results."""

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from fulling.k8s.enums import DatabaseStatus
from fulling.k8s.enums import SandboxStatus


class SandboxInfo(BaseModel):
    """Creation-time description of a sandbox.

    Computed once by create_sandbox() from the naming scheme. URLs are not
    re-derived later, so they go stale if the ingress domain or the terminal
    access token changes.
    """

    model_config = ConfigDict(frozen=True)

    stateful_set_name: str
    service_name: str
    public_url: str
    ttyd_url: str
    file_browser_url: str


class StatefulSetStatusDetail(BaseModel):
    """Observed state of a sandbox StatefulSet plus the derived status."""

    status: SandboxStatus
    # spec.replicas
    replicas: int
    # status.replicas
    observed_replicas: int = 0
    ready_replicas: int
    current_replicas: int
    updated_replicas: int
    current_revision: str | None = None
    update_revision: str | None = None
    is_ready: bool

    @classmethod
    def zeroed(cls, status: SandboxStatus) -> "StatefulSetStatusDetail":
        return cls(
            status=status,
            replicas=0,
            observed_replicas=0,
            ready_replicas=0,
            current_replicas=0,
            updated_replicas=0,
            is_ready=False,
        )


class ExecResult(BaseModel):
    """Result of launching a background command in a sandbox."""

    success: bool
    pid: int | None = None
    error: str | None = None


class KillProcessResult(BaseModel):
    success: bool
    error: str | None = None


class CurrentDirectoryInfo(BaseModel):
    """Working directory of a terminal session's shell.

    Serialized with the camelCase keys the web client expects.
    """

    model_config = ConfigDict(populate_by_name=True)

    cwd: str
    home_dir: str = Field(alias="homeDir")
    is_in_home: bool = Field(alias="isInHome")


class ClusterStatusDetail(BaseModel):
    status: DatabaseStatus
    replicas: int = 0
    ready_replicas: int = 0


class DatabaseInfo(BaseModel):
    host: str
    port: int
    database: str
    username: str
    password: str
    connection_string: str
