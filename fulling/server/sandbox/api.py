"""API endpoints for inspecting and driving a running sandbox.

Authentication and sandbox ownership checks happen upstream; these routes
take the sandbox name as given.
"""

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import Response

from fulling.configs.sandbox_configs import APP_PORT
from fulling.configs.sandbox_configs import SANDBOX_HOME_DIR
from fulling.k8s.errors import ExecOutputParseError
from fulling.k8s.errors import PodExecError
from fulling.k8s.errors import TerminalSessionError
from fulling.k8s.errors import TerminalSessionNotFoundError
from fulling.k8s.kubernetes_service import get_kubernetes_service
from fulling.k8s.kubernetes_service import KubernetesService
from fulling.k8s.models import CurrentDirectoryInfo
from fulling.k8s.models import ExecResult
from fulling.k8s.models import KillProcessResult
from fulling.k8s.models import StatefulSetStatusDetail
from fulling.server.sandbox.models import AppStatusResponse
from fulling.server.sandbox.models import ExecRequest
from fulling.utils.logger import setup_logger

logger = setup_logger()

router = APIRouter(prefix="/sandbox")


@router.get("/{sandbox_name}/status", response_model=StatefulSetStatusDetail)
def get_sandbox_status(
    sandbox_name: str,
    namespace: str | None = None,
    k8s_service: KubernetesService = Depends(get_kubernetes_service),
) -> StatefulSetStatusDetail:
    return k8s_service.get_sandbox_detailed_status(sandbox_name, namespace=namespace)


@router.get("/{sandbox_name}/app-status", response_model=AppStatusResponse)
def get_app_status(
    sandbox_name: str,
    namespace: str | None = None,
    k8s_service: KubernetesService = Depends(get_kubernetes_service),
) -> AppStatusResponse:
    """Whether the app port is listening. Probe failures read as not running."""
    running = k8s_service.is_port_listening(sandbox_name, APP_PORT, namespace=namespace)
    return AppStatusResponse(running=running)


@router.delete("/{sandbox_name}/app-status", response_model=KillProcessResult)
def stop_app(
    sandbox_name: str,
    namespace: str | None = None,
    k8s_service: KubernetesService = Depends(get_kubernetes_service),
) -> KillProcessResult:
    """A failed kill is reported in the body, never as an HTTP error."""
    logger.info(f"Stopping app in sandbox {sandbox_name}")
    result = k8s_service.kill_process_on_port(
        sandbox_name, APP_PORT, namespace=namespace
    )

    if result.success:
        logger.info(f"App stopped in sandbox {sandbox_name}")
    else:
        logger.warning(f"Failed to stop app in sandbox {sandbox_name}: {result.error}")

    return result


@router.post("/{sandbox_name}/exec", response_model=ExecResult)
def exec_command(
    sandbox_name: str,
    request: ExecRequest,
    response: Response,
    namespace: str | None = None,
    k8s_service: KubernetesService = Depends(get_kubernetes_service),
) -> ExecResult:
    """Launch a command with nohup and return its PID immediately."""
    if not request.command.strip():
        raise HTTPException(status_code=400, detail="command is required")

    logger.info(
        f"Executing background command in sandbox {sandbox_name}: {request.command!r}"
    )
    result = k8s_service.exec_command_in_background(
        sandbox_name,
        request.command,
        workdir=request.workdir or SANDBOX_HOME_DIR,
        namespace=namespace,
    )

    if result.success:
        logger.info(f"Command started in sandbox {sandbox_name} (PID: {result.pid})")
    else:
        logger.warning(
            f"Command execution failed in sandbox {sandbox_name}: {result.error}"
        )
        response.status_code = 500

    return result


@router.get("/{sandbox_name}/cwd", response_model=CurrentDirectoryInfo)
def get_current_directory(
    sandbox_name: str,
    session_id: str,
    namespace: str | None = None,
    k8s_service: KubernetesService = Depends(get_kubernetes_service),
) -> CurrentDirectoryInfo:
    """Current directory of a terminal session's shell."""
    try:
        return k8s_service.get_sandbox_current_directory(
            sandbox_name, session_id, namespace=namespace
        )
    except TerminalSessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except TerminalSessionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except (PodExecError, ExecOutputParseError) as e:
        logger.error(f"Failed to get current directory in {sandbox_name}: {e}")
        raise HTTPException(
            status_code=502, detail=f"Failed to get current directory: {e}"
        )
