"""Single entry point for sandbox and database operations.

KubernetesService resolves the namespace (caller's, else the kubeconfig
default) and the ingress domain, then delegates:
- SandboxManager: StatefulSet based sandbox environments
- DatabaseManager: managed PostgreSQL clusters, when one is configured

The ingress domain is resolved on every create call, never cached.
"""

from functools import lru_cache

from fulling.configs.sandbox_configs import SANDBOX_HOME_DIR
from fulling.k8s.database_manager import DatabaseManager
from fulling.k8s.enums import SandboxStatus
from fulling.k8s.kube_config import KubeConfigContext
from fulling.k8s.models import ClusterStatusDetail
from fulling.k8s.models import CurrentDirectoryInfo
from fulling.k8s.models import DatabaseInfo
from fulling.k8s.models import ExecResult
from fulling.k8s.models import KillProcessResult
from fulling.k8s.models import SandboxInfo
from fulling.k8s.models import StatefulSetStatusDetail
from fulling.k8s.sandbox_manager import SandboxManager
from fulling.utils.logger import setup_logger

logger = setup_logger()


class KubernetesService:
    def __init__(
        self,
        kube_config: KubeConfigContext,
        sandbox_manager: SandboxManager | None = None,
        database_manager: DatabaseManager | None = None,
    ) -> None:
        self._kube_config = kube_config
        self._sandbox_manager = sandbox_manager or SandboxManager(
            kube_config.api_client
        )
        self._database_manager = database_manager
        self._default_namespace = kube_config.namespace

    @classmethod
    def from_kubeconfig(
        cls,
        kubeconfig: str,
        database_manager: DatabaseManager | None = None,
    ) -> "KubernetesService":
        return cls(
            KubeConfigContext.from_string(kubeconfig),
            database_manager=database_manager,
        )

    def get_default_namespace(self) -> str:
        return self._default_namespace

    def get_ingress_domain(self) -> str:
        return self._kube_config.get_ingress_domain()

    def _resolve_namespace(self, namespace: str | None) -> str:
        return namespace or self._default_namespace

    def _require_database_manager(self) -> DatabaseManager:
        if self._database_manager is None:
            raise RuntimeError("No database manager configured")
        return self._database_manager

    # ==================== Database ====================

    def create_postgresql_database(
        self, project_name: str, database_name: str, namespace: str | None = None
    ) -> None:
        self._require_database_manager().create_postgresql_database(
            project_name, self._resolve_namespace(namespace), database_name
        )

    def stop_database_cluster(
        self, cluster_name: str, namespace: str | None = None
    ) -> None:
        self._require_database_manager().stop_cluster(
            cluster_name, self._resolve_namespace(namespace)
        )

    def start_database_cluster(
        self, cluster_name: str, namespace: str | None = None
    ) -> None:
        self._require_database_manager().start_cluster(
            cluster_name, self._resolve_namespace(namespace)
        )

    def get_database_cluster_status(
        self, cluster_name: str, namespace: str | None = None
    ) -> ClusterStatusDetail:
        return self._require_database_manager().get_cluster_status(
            cluster_name, self._resolve_namespace(namespace)
        )

    def delete_database_cluster(
        self, cluster_name: str, namespace: str | None = None
    ) -> None:
        self._require_database_manager().delete_cluster(
            cluster_name, self._resolve_namespace(namespace)
        )

    def get_database_credentials(
        self, cluster_name: str, namespace: str | None = None
    ) -> DatabaseInfo | None:
        """None while the cluster is still initializing its credentials."""
        return self._require_database_manager().get_database_credentials(
            cluster_name, self._resolve_namespace(namespace)
        )

    # ==================== Sandbox ====================

    def create_sandbox(
        self,
        project_name: str,
        sandbox_name: str,
        namespace: str | None = None,
        env_vars: dict[str, str] | None = None,
    ) -> SandboxInfo:
        return self._sandbox_manager.create_sandbox(
            project_name=project_name,
            namespace=self._resolve_namespace(namespace),
            ingress_domain=self.get_ingress_domain(),
            sandbox_name=sandbox_name,
            env_vars=env_vars or {},
        )

    def delete_sandbox(self, sandbox_name: str, namespace: str | None = None) -> None:
        self._sandbox_manager.delete_sandbox(
            sandbox_name, self._resolve_namespace(namespace)
        )

    def stop_sandbox(self, sandbox_name: str, namespace: str | None = None) -> None:
        self._sandbox_manager.stop_sandbox(
            sandbox_name, self._resolve_namespace(namespace)
        )

    def start_sandbox(self, sandbox_name: str, namespace: str | None = None) -> None:
        self._sandbox_manager.start_sandbox(
            sandbox_name, self._resolve_namespace(namespace)
        )

    def get_sandbox_status(
        self, sandbox_name: str, namespace: str | None = None
    ) -> SandboxStatus:
        return self._sandbox_manager.get_sandbox_status(
            sandbox_name, self._resolve_namespace(namespace)
        )

    def get_sandbox_detailed_status(
        self, sandbox_name: str, namespace: str | None = None
    ) -> StatefulSetStatusDetail:
        return self._sandbox_manager.get_stateful_set_status(
            sandbox_name, self._resolve_namespace(namespace)
        )

    def update_sandbox_env_vars(
        self,
        sandbox_name: str,
        env_vars: dict[str, str],
        namespace: str | None = None,
    ) -> bool:
        return self._sandbox_manager.update_stateful_set_env_vars(
            self._resolve_namespace(namespace), sandbox_name, env_vars
        )

    def exec_command_in_background(
        self,
        sandbox_name: str,
        command: str,
        workdir: str = SANDBOX_HOME_DIR,
        namespace: str | None = None,
    ) -> ExecResult:
        return self._sandbox_manager.exec_command_in_background(
            self._resolve_namespace(namespace), sandbox_name, command, workdir
        )

    def is_port_listening(
        self, sandbox_name: str, port: int, namespace: str | None = None
    ) -> bool:
        return self._sandbox_manager.is_port_listening(
            self._resolve_namespace(namespace), sandbox_name, port
        )

    def kill_process_on_port(
        self, sandbox_name: str, port: int, namespace: str | None = None
    ) -> KillProcessResult:
        return self._sandbox_manager.kill_process_on_port(
            self._resolve_namespace(namespace), sandbox_name, port
        )

    def get_sandbox_current_directory(
        self, sandbox_name: str, session_id: str, namespace: str | None = None
    ) -> CurrentDirectoryInfo:
        return self._sandbox_manager.get_sandbox_current_directory(
            self._resolve_namespace(namespace), sandbox_name, session_id
        )


@lru_cache(maxsize=1)
def get_kubernetes_service() -> KubernetesService:
    """Process-wide service built from the ambient cluster configuration."""
    service = KubernetesService(KubeConfigContext.from_environment())
    logger.info(
        f"KubernetesService initialized: namespace={service.get_default_namespace()}"
    )
    return service
