"""Interface of the managed PostgreSQL cluster manager.

The facade forwards database operations to an implementation of this
interface. Cluster provisioning itself (the custom resources, credentials
secret and so on) lives outside this package; KubernetesService only needs
the contract below.

Implementations follow the same conventions as SandboxManager:
- Operations are idempotent. Stopping a stopped cluster or deleting a
  missing one is a no-op.
- get_cluster_status never raises; missing clusters report TERMINATED.
"""

from abc import ABC
from abc import abstractmethod

from fulling.k8s.models import ClusterStatusDetail
from fulling.k8s.models import DatabaseInfo


class DatabaseManager(ABC):
    @abstractmethod
    def create_postgresql_database(
        self, project_name: str, namespace: str, database_name: str
    ) -> None:
        """Create a PostgreSQL cluster named `database_name`."""
        raise NotImplementedError

    @abstractmethod
    def stop_cluster(self, cluster_name: str, namespace: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def start_cluster(self, cluster_name: str, namespace: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_cluster_status(
        self, cluster_name: str, namespace: str
    ) -> ClusterStatusDetail:
        raise NotImplementedError

    @abstractmethod
    def delete_cluster(self, cluster_name: str, namespace: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_database_credentials(
        self, cluster_name: str, namespace: str
    ) -> DatabaseInfo | None:
        """Connection info for the cluster.

        Returns None while the credentials secret exists but is not populated
        yet, which is a normal transient state during cluster initialization.
        """
        raise NotImplementedError
