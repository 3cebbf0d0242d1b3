import os

# ============================================================================
# Sandbox runtime configuration
# ============================================================================

# Image for the init container and the primary sandbox container.
# Must ship /etc/skel/.bashrc and the project template at SANDBOX_TEMPLATE_PATH
SANDBOX_RUNTIME_IMAGE = os.environ.get(
    "SANDBOX_RUNTIME_IMAGE", "fullstackagent/fullstack-web-runtime:latest"
)

# Image for the file browser sidecar
SANDBOX_FILEBROWSER_IMAGE = os.environ.get(
    "SANDBOX_FILEBROWSER_IMAGE", "filebrowser/filebrowser:v2-s6"
)

# Home directory of the sandbox user, backed by the persistent volume claim
SANDBOX_HOME_DIR = "/home/fulling"

# Project template baked into the runtime image, copied into
# {SANDBOX_HOME_DIR}/next on first start only
SANDBOX_TEMPLATE_PATH = "/opt/next-template"
SANDBOX_PROJECT_DIR = f"{SANDBOX_HOME_DIR}/next"

# UID/GID of the sandbox user inside the runtime image
SANDBOX_USER_ID = 1001

# ============================================================================
# Ports
# ============================================================================

APP_PORT = 3000
TTYD_PORT = 7681
FILEBROWSER_PORT = 8080

# ============================================================================
# Storage and compute table
# ============================================================================

# Name of the volume claim template; claims are named {template}-{sandbox}-{ordinal}
HOME_VOLUME_NAME = "vn-homevn-fulling"
HOME_VOLUME_ACCESS_MODE = "ReadWriteOnce"
SANDBOX_STORAGE_SIZE = os.environ.get("SANDBOX_STORAGE_SIZE", "10Gi")

SANDBOX_RESOURCES: dict[str, dict[str, str]] = {
    "requests": {
        "cpu": os.environ.get("SANDBOX_CPU_REQUEST", "100m"),
        "memory": os.environ.get("SANDBOX_MEMORY_REQUEST", "256Mi"),
    },
    "limits": {
        "cpu": os.environ.get("SANDBOX_CPU_LIMIT", "2000m"),
        "memory": os.environ.get("SANDBOX_MEMORY_LIMIT", "4096Mi"),
    },
}

# Copying the project template needs headroom (200-300MB resident)
INIT_CONTAINER_RESOURCES: dict[str, dict[str, str]] = {
    "requests": {"cpu": "200m", "memory": "512Mi"},
    "limits": {"cpu": "2000m", "memory": "4096Mi"},
}

FILEBROWSER_RESOURCES: dict[str, dict[str, str]] = {
    "requests": {"cpu": "50m", "memory": "64Mi"},
    "limits": {"cpu": "500m", "memory": "256Mi"},
}

# ============================================================================
# Ingress
# ============================================================================

SANDBOX_INGRESS_CLASS = os.environ.get("SANDBOX_INGRESS_CLASS", "nginx")
SANDBOX_INGRESS_TLS_SECRET = os.environ.get(
    "SANDBOX_INGRESS_TLS_SECRET", "wildcard-cert"
)

# ============================================================================
# Credentials passed through the sandbox environment
# ============================================================================

# When present in the create-time env, embedded into the terminal URL as
# ?authorization=base64(user:token)
TTYD_ACCESS_TOKEN_ENV = "TTYD_ACCESS_TOKEN"
TTYD_AUTH_USERNAME = "user"

FILE_BROWSER_USERNAME_ENV = "FILE_BROWSER_USERNAME"
FILE_BROWSER_PASSWORD_ENV = "FILE_BROWSER_PASSWORD"
DEFAULT_FILE_BROWSER_CREDENTIAL = "admin"

PROJECT_NAME_ENV = "PROJECT_NAME"

# ============================================================================
# In-container conventions used by the exec bridge
# ============================================================================

# Background command output goes to {EXEC_LOG_DIR}/{unix_ms}.log
EXEC_LOG_DIR = "/tmp/exec-logs"

# Written by the terminal session itself; holds the shell PID
TERMINAL_SESSION_FILE_PREFIX = "/tmp/.terminal-session-"

# ============================================================================
# Labels
# ============================================================================

PROJECT_LABEL = "project.fullstackagent.io/name"
DEPLOY_MANAGER_LABEL = "cloud.sealos.io/app-deploy-manager"
DEPLOY_MANAGER_DOMAIN_LABEL = "cloud.sealos.io/app-deploy-manager-domain"
