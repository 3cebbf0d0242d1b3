"""Deterministic resource names for a sandbox.

Every resource that belongs to a sandbox is derived from the sandbox name
alone. Lookups are always exact-name fetches; nothing is listed or matched
by prefix.
"""

import base64
import re

from fulling.configs.sandbox_configs import HOME_VOLUME_NAME
from fulling.configs.sandbox_configs import TTYD_AUTH_USERNAME

# Kubernetes label values are limited to 63 characters
_MAX_LABEL_VALUE_LENGTH = 63
_INVALID_LABEL_CHARS = re.compile(r"[^a-z0-9-]+")


def get_service_name(sandbox_name: str) -> str:
    return f"{sandbox_name}-service"


def get_app_ingress_name(sandbox_name: str) -> str:
    return f"{sandbox_name}-app-ingress"


def get_ttyd_ingress_name(sandbox_name: str) -> str:
    return f"{sandbox_name}-ttyd-ingress"


def get_filebrowser_ingress_name(sandbox_name: str) -> str:
    return f"{sandbox_name}-filebrowser-ingress"


def get_ingress_names(sandbox_name: str) -> list[str]:
    return [
        get_app_ingress_name(sandbox_name),
        get_ttyd_ingress_name(sandbox_name),
        get_filebrowser_ingress_name(sandbox_name),
    ]


def get_pod_name(sandbox_name: str) -> str:
    """The StatefulSet has a single replica slot, ordinal 0."""
    return f"{sandbox_name}-0"


def get_pvc_name(sandbox_name: str) -> str:
    """StatefulSet claims are named {volumeClaimTemplate}-{statefulset}-{ordinal}."""
    return f"{HOME_VOLUME_NAME}-{sandbox_name}-0"


def get_app_host(sandbox_name: str, ingress_domain: str) -> str:
    return f"{sandbox_name}-app.{ingress_domain}"


def get_ttyd_host(sandbox_name: str, ingress_domain: str) -> str:
    return f"{sandbox_name}-ttyd.{ingress_domain}"


def get_filebrowser_host(sandbox_name: str, ingress_domain: str) -> str:
    return f"{sandbox_name}-filebrowser.{ingress_domain}"


def build_ttyd_url(
    sandbox_name: str, ingress_domain: str, access_token: str | None
) -> str:
    """Terminal URL, with basic-auth credentials embedded when a token is given.

    ttyd accepts ?authorization=base64(username:password), which lets the
    browser authenticate without a credentials prompt.
    """
    url = f"https://{get_ttyd_host(sandbox_name, ingress_domain)}"
    if not access_token:
        return url

    credentials = f"{TTYD_AUTH_USERNAME}:{access_token}".encode("utf-8")
    authorization = base64.b64encode(credentials).decode("ascii")
    return f"{url}?authorization={authorization}"


def to_k8s_project_name(project_name: str) -> str:
    """Normalize a project name into a valid label value.

    Lowercases, replaces runs of invalid characters with '-', trims leading and
    trailing dashes and truncates to the label length limit.
    """
    normalized = _INVALID_LABEL_CHARS.sub("-", project_name.lower())
    normalized = normalized[:_MAX_LABEL_VALUE_LENGTH].strip("-")
    return normalized or "project"
