"""Cluster credentials plus the namespace and ingress domain derived from them."""

from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

import yaml
from kubernetes import client  # type: ignore
from kubernetes import config  # type: ignore

from fulling.configs.app_configs import IN_CLUSTER_NAMESPACE_PATH
from fulling.configs.app_configs import KUBECONFIG_PATH
from fulling.configs.app_configs import SANDBOX_INGRESS_DOMAIN
from fulling.configs.app_configs import SANDBOX_NAMESPACE
from fulling.utils.logger import setup_logger

logger = setup_logger()


def _find_named(entries: list[dict[str, Any]] | None, name: str | None) -> dict:
    for entry in entries or []:
        if entry.get("name") == name:
            return entry
    return {}


def _current_context_details(
    config_dict: dict[str, Any],
) -> tuple[str | None, str | None]:
    """Namespace and API server URL of the kubeconfig's current context."""
    context_entry = _find_named(
        config_dict.get("contexts"), config_dict.get("current-context")
    )
    context = context_entry.get("context") or {}

    cluster_entry = _find_named(config_dict.get("clusters"), context.get("cluster"))
    cluster = cluster_entry.get("cluster") or {}

    return context.get("namespace"), cluster.get("server")


def _read_in_cluster_namespace() -> str | None:
    try:
        with open(IN_CLUSTER_NAMESPACE_PATH) as f:
            return f.read().strip() or None
    except OSError:
        return None


@dataclass
class KubeConfigContext:
    api_client: client.ApiClient
    namespace: str
    # API server URL; its host name doubles as the public ingress domain
    server: str | None = None

    @classmethod
    def from_string(cls, kubeconfig: str) -> "KubeConfigContext":
        """Build from kubeconfig YAML, e.g. a per-user kubeconfig from the database."""
        config_dict = yaml.safe_load(kubeconfig)
        if not isinstance(config_dict, dict):
            raise ValueError("Invalid kubeconfig: expected a YAML mapping")

        api_client = config.new_client_from_config_dict(config_dict)
        namespace, server = _current_context_details(config_dict)
        return cls(
            api_client=api_client,
            namespace=namespace or SANDBOX_NAMESPACE,
            server=server,
        )

    @classmethod
    def from_environment(cls) -> "KubeConfigContext":
        """In-cluster service account first, then the kubeconfig file."""
        configuration = client.Configuration()
        try:
            config.load_incluster_config(client_configuration=configuration)
            logger.info("Loaded in-cluster Kubernetes configuration")
            return cls(
                api_client=client.ApiClient(configuration),
                namespace=_read_in_cluster_namespace() or SANDBOX_NAMESPACE,
                server=configuration.host,
            )
        except config.ConfigException:
            pass

        try:
            with open(KUBECONFIG_PATH) as f:
                kubeconfig = f.read()
        except OSError as e:
            raise RuntimeError(
                f"Failed to load Kubernetes configuration from {KUBECONFIG_PATH}: {e}"
            ) from e

        context = cls.from_string(kubeconfig)
        logger.info(f"Loaded kubeconfig from {KUBECONFIG_PATH}")
        return context

    def get_ingress_domain(self) -> str:
        # In-cluster the server is the internal service address, so the
        # override is required there
        if SANDBOX_INGRESS_DOMAIN:
            return SANDBOX_INGRESS_DOMAIN

        hostname = urlparse(self.server).hostname if self.server else None
        if not hostname:
            raise ValueError(
                "Cannot determine ingress domain: set SANDBOX_INGRESS_DOMAIN or "
                "use a kubeconfig whose current cluster has a server URL"
            )
        return hostname
