"""Kubernetes sandbox orchestration.

Usage:
    from fulling.k8s import get_kubernetes_service

    k8s_service = get_kubernetes_service()
    sandbox_info = k8s_service.create_sandbox("My Project", "acme-x1")
    k8s_service.stop_sandbox("acme-x1")

Module structure:
    - kubernetes_service.py: KubernetesService facade and get_kubernetes_service()
    - sandbox_manager.py: SandboxManager lifecycle, status and exec operations
    - database_manager.py: DatabaseManager interface for PostgreSQL clusters
    - resources.py: desired-state builders for StatefulSet, Service, Ingress
    - naming.py: resource names derived from the sandbox name
    - scripts.py: shell run inside sandbox containers
    - internal/: exec transport
"""

from fulling.k8s.database_manager import DatabaseManager
from fulling.k8s.enums import SandboxStatus
from fulling.k8s.kube_config import KubeConfigContext
from fulling.k8s.kubernetes_service import get_kubernetes_service
from fulling.k8s.kubernetes_service import KubernetesService
from fulling.k8s.models import CurrentDirectoryInfo
from fulling.k8s.models import ExecResult
from fulling.k8s.models import KillProcessResult
from fulling.k8s.models import SandboxInfo
from fulling.k8s.models import StatefulSetStatusDetail
from fulling.k8s.sandbox_manager import derive_sandbox_status
from fulling.k8s.sandbox_manager import SandboxManager

__all__ = [
    # Factory
    "get_kubernetes_service",
    # Services
    "KubernetesService",
    "SandboxManager",
    "DatabaseManager",
    "KubeConfigContext",
    "derive_sandbox_status",
    # Models
    "SandboxStatus",
    "SandboxInfo",
    "StatefulSetStatusDetail",
    "ExecResult",
    "KillProcessResult",
    "CurrentDirectoryInfo",
]
