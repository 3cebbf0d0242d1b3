from enum import Enum


class SandboxStatus(str, Enum):
    """Lifecycle state of a sandbox, derived from its StatefulSet on every query.

    - STARTING: spec.replicas > 0, pods not ready yet
    - RUNNING: spec.replicas > 0, every replica counter matches the declared count
    - STOPPING: spec.replicas = 0, pods still terminating
    - STOPPED: spec.replicas = 0, no pods left
    - TERMINATED: StatefulSet does not exist
    - ERROR: the cluster could not be queried

    CREATING is tracked by the caller's persistence layer, never returned here.
    """

    STARTING = "STARTING"
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"
    STOPPED = "STOPPED"
    TERMINATED = "TERMINATED"
    ERROR = "ERROR"


class DatabaseStatus(str, Enum):
    CREATING = "CREATING"
    STARTING = "STARTING"
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"
    STOPPED = "STOPPED"
    TERMINATED = "TERMINATED"
    ERROR = "ERROR"
