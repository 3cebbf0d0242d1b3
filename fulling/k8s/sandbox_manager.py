"""Lifecycle of sandbox environments on Kubernetes.

A sandbox is one StatefulSet plus its Service, three Ingresses and the home
volume claim, all named from the sandbox name (see naming.py). Every public
method is a synchronous round trip against the live cluster; nothing is
cached or persisted here.

Idempotency contract:
- create: read-then-create per resource, and 409 on create counts as success
- delete: 404 counts as success, volume claim failures are swallowed
- stop/start: no-op when the StatefulSet is absent or already scaled
- env update: no write when nothing differs

stop/start/env update are read-then-write without resourceVersion checks, so
concurrent calls on the same sandbox are last-write-wins. Callers that need
ordering must serialize per sandbox.
"""

import copy
import time
from collections.abc import Callable
from functools import partial
from typing import Any

from kubernetes import client  # type: ignore

from fulling.configs.sandbox_configs import PROJECT_NAME_ENV
from fulling.configs.sandbox_configs import SANDBOX_HOME_DIR
from fulling.configs.sandbox_configs import TTYD_ACCESS_TOKEN_ENV
from fulling.k8s.enums import SandboxStatus
from fulling.k8s.errors import classify_k8s_error
from fulling.k8s.errors import ExecOutputParseError
from fulling.k8s.errors import is_conflict
from fulling.k8s.errors import is_not_found
from fulling.k8s.errors import PodExecError
from fulling.k8s.errors import TerminalSessionError
from fulling.k8s.errors import TerminalSessionNotFoundError
from fulling.k8s.internal.exec_client import PodExecClient
from fulling.k8s.models import CurrentDirectoryInfo
from fulling.k8s.models import ExecResult
from fulling.k8s.models import KillProcessResult
from fulling.k8s.models import SandboxInfo
from fulling.k8s.models import StatefulSetStatusDetail
from fulling.k8s.naming import build_ttyd_url
from fulling.k8s.naming import get_app_host
from fulling.k8s.naming import get_filebrowser_host
from fulling.k8s.naming import get_ingress_names
from fulling.k8s.naming import get_pod_name
from fulling.k8s.naming import get_pvc_name
from fulling.k8s.naming import get_service_name
from fulling.k8s.naming import to_k8s_project_name
from fulling.k8s.resources import build_sandbox_ingresses
from fulling.k8s.resources import build_service
from fulling.k8s.resources import build_stateful_set
from fulling.k8s.scripts import KILLED_MARKER_PREFIX
from fulling.k8s.scripts import NO_PROCESS_MARKER
from fulling.k8s.scripts import parse_current_directory
from fulling.k8s.scripts import parse_pid
from fulling.k8s.scripts import PORT_LISTENING_MARKER
from fulling.k8s.scripts import SandboxShellCommands
from fulling.k8s.scripts import SESSION_FILE_MISSING_EXIT_CODE
from fulling.utils.logger import setup_logger
from fulling.utils.threadpool_concurrency import run_functions_tuples_in_parallel

logger = setup_logger()


def derive_sandbox_status(
    replicas: int,
    observed_replicas: int,
    ready_replicas: int,
    current_replicas: int,
    updated_replicas: int,
) -> tuple[SandboxStatus, bool]:
    """Classify StatefulSet counters into a sandbox status.

    Returns (status, is_ready). A running sandbox requires every observed
    counter to equal the declared replicas; a lagging updated count during a
    rollout keeps it in STARTING.
    """
    if replicas == 0:
        if current_replicas > 0:
            return SandboxStatus.STOPPING, False
        return SandboxStatus.STOPPED, False

    is_ready = (
        observed_replicas == replicas
        and ready_replicas == replicas
        and current_replicas == replicas
        and updated_replicas == replicas
    )
    if is_ready:
        return SandboxStatus.RUNNING, True
    return SandboxStatus.STARTING, False


def _merge_env(
    current_env: list[client.V1EnvVar], env_vars: dict[str, str]
) -> list[client.V1EnvVar]:
    """Overwrite or append requested keys, keep everything else in place.

    Entries sourced through valueFrom are kept untouched unless the request
    names them, in which case the literal value replaces the reference.
    """
    merged: list[client.V1EnvVar] = []
    seen: set[str] = set()
    for env_var in current_env:
        if env_var.name in env_vars:
            merged.append(
                client.V1EnvVar(name=env_var.name, value=env_vars[env_var.name])
            )
        else:
            merged.append(env_var)
        seen.add(env_var.name)

    for key, value in env_vars.items():
        if key not in seen:
            merged.append(client.V1EnvVar(name=key, value=value))

    return merged


class SandboxManager:
    """Creates, scales, updates, inspects and deletes sandboxes.

    Holds API clients only. All remote shell comes from `commands` so the
    script transport can be replaced without touching this class.
    """

    def __init__(
        self,
        api_client: client.ApiClient | None = None,
        commands: SandboxShellCommands | None = None,
    ) -> None:
        self._core_api = client.CoreV1Api(api_client)
        self._apps_api = client.AppsV1Api(api_client)
        self._networking_api = client.NetworkingV1Api(api_client)
        self._commands = commands or SandboxShellCommands()

    def _exec_client(self, namespace: str, sandbox_name: str) -> PodExecClient:
        # The primary container is named after the sandbox
        return PodExecClient(
            core_api=self._core_api,
            pod_name=get_pod_name(sandbox_name),
            namespace=namespace,
            container=sandbox_name,
        )

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    def _create_if_absent(
        self,
        kind: str,
        name: str,
        read: Callable[[], Any],
        create: Callable[[], Any],
    ) -> None:
        try:
            read()
            logger.info(f"{kind} {name} already exists, skipping creation")
            return
        except Exception as e:
            if not is_not_found(e):
                logger.error(f"Failed to check {kind} {name}: {e}")
                raise

        try:
            create()
            logger.info(f"Created {kind} {name}")
        except Exception as e:
            # Another caller created it between our read and create
            if is_conflict(e):
                logger.info(f"{kind} {name} was created concurrently, skipping")
                return
            logger.error(f"Failed to create {kind} {name}: {e}")
            raise

    def create_sandbox(
        self,
        project_name: str,
        namespace: str,
        ingress_domain: str,
        sandbox_name: str,
        env_vars: dict[str, str] | None = None,
    ) -> SandboxInfo:
        """Create all resources of a sandbox, skipping any that already exist.

        Safe to call repeatedly and concurrently for the same sandbox. The
        returned URLs are computed from the naming scheme and are not stored.
        """
        k8s_project_name = to_k8s_project_name(project_name)
        service_name = get_service_name(sandbox_name)
        container_env = {**(env_vars or {}), PROJECT_NAME_ENV: project_name}

        logger.info(
            f"Creating sandbox {sandbox_name} in namespace {namespace} "
            f"for project {project_name}"
        )

        stateful_set = build_stateful_set(
            sandbox_name=sandbox_name,
            k8s_project_name=k8s_project_name,
            namespace=namespace,
            container_env=container_env,
        )
        self._create_if_absent(
            "StatefulSet",
            sandbox_name,
            lambda: self._apps_api.read_namespaced_stateful_set(
                name=sandbox_name, namespace=namespace
            ),
            lambda: self._apps_api.create_namespaced_stateful_set(
                namespace=namespace, body=stateful_set
            ),
        )

        service = build_service(
            sandbox_name=sandbox_name,
            k8s_project_name=k8s_project_name,
            namespace=namespace,
        )
        self._create_if_absent(
            "Service",
            service_name,
            lambda: self._core_api.read_namespaced_service(
                name=service_name, namespace=namespace
            ),
            lambda: self._core_api.create_namespaced_service(
                namespace=namespace, body=service
            ),
        )

        ingresses = build_sandbox_ingresses(
            sandbox_name=sandbox_name,
            k8s_project_name=k8s_project_name,
            namespace=namespace,
            service_name=service_name,
            ingress_domain=ingress_domain,
        )
        run_functions_tuples_in_parallel(
            [
                (self._create_ingress_if_absent, (ingress, namespace))
                for ingress in ingresses
            ]
        )

        sandbox_info = SandboxInfo(
            stateful_set_name=sandbox_name,
            service_name=service_name,
            public_url=f"https://{get_app_host(sandbox_name, ingress_domain)}",
            ttyd_url=build_ttyd_url(
                sandbox_name, ingress_domain, container_env.get(TTYD_ACCESS_TOKEN_ENV)
            ),
            file_browser_url=(
                f"https://{get_filebrowser_host(sandbox_name, ingress_domain)}"
            ),
        )
        logger.info(f"Sandbox {sandbox_name} created: {sandbox_info.public_url}")
        return sandbox_info

    def _create_ingress_if_absent(
        self, ingress: client.V1Ingress, namespace: str
    ) -> None:
        name = ingress.metadata.name
        self._create_if_absent(
            "Ingress",
            name,
            lambda: self._networking_api.read_namespaced_ingress(
                name=name, namespace=namespace
            ),
            lambda: self._networking_api.create_namespaced_ingress(
                namespace=namespace, body=ingress
            ),
        )

    # -------------------------------------------------------------------------
    # Delete
    # -------------------------------------------------------------------------

    def _delete_ignoring_not_found(
        self, kind: str, name: str, delete: Callable[[], Any]
    ) -> None:
        try:
            delete()
            logger.info(f"Deleted {kind} {name}")
        except Exception as e:
            if is_not_found(e):
                logger.warning(f"{kind} {name} not found, already deleted")
                return
            logger.error(f"Failed to delete {kind} {name}: {e}")
            raise

    def _delete_volume_claim(self, sandbox_name: str, namespace: str) -> None:
        """Best effort. The retention policy may already have removed the claim."""
        pvc_name = get_pvc_name(sandbox_name)
        try:
            self._core_api.delete_namespaced_persistent_volume_claim(
                name=pvc_name, namespace=namespace
            )
            logger.info(f"Deleted PersistentVolumeClaim {pvc_name}")
        except Exception as e:
            if is_not_found(e):
                logger.info(f"PersistentVolumeClaim {pvc_name} already removed")
                return
            logger.warning(
                f"Failed to delete PersistentVolumeClaim {pvc_name}, ignoring: {e}"
            )

    def delete_sandbox(self, sandbox_name: str, namespace: str) -> None:
        """Delete every resource of a sandbox concurrently.

        All deletions run to completion; afterwards the first non-404 failure
        (volume claim excluded) is raised.
        """
        logger.info(f"Deleting sandbox {sandbox_name} in namespace {namespace}")

        service_name = get_service_name(sandbox_name)
        deletions: list[tuple[Callable[..., Any], tuple]] = [
            (
                self._delete_ignoring_not_found,
                (
                    "StatefulSet",
                    sandbox_name,
                    partial(
                        self._apps_api.delete_namespaced_stateful_set,
                        name=sandbox_name,
                        namespace=namespace,
                    ),
                ),
            ),
            (
                self._delete_ignoring_not_found,
                (
                    "Service",
                    service_name,
                    partial(
                        self._core_api.delete_namespaced_service,
                        name=service_name,
                        namespace=namespace,
                    ),
                ),
            ),
        ]
        for ingress_name in get_ingress_names(sandbox_name):
            deletions.append(
                (
                    self._delete_ignoring_not_found,
                    (
                        "Ingress",
                        ingress_name,
                        partial(
                            self._networking_api.delete_namespaced_ingress,
                            name=ingress_name,
                            namespace=namespace,
                        ),
                    ),
                )
            )
        deletions.append((self._delete_volume_claim, (sandbox_name, namespace)))

        run_functions_tuples_in_parallel(deletions)
        logger.info(f"Sandbox {sandbox_name} deleted")

    # -------------------------------------------------------------------------
    # Scale
    # -------------------------------------------------------------------------

    def _scale_stateful_set(
        self, sandbox_name: str, namespace: str, replicas: int
    ) -> None:
        action = "stop" if replicas == 0 else "start"
        try:
            stateful_set = self._apps_api.read_namespaced_stateful_set(
                name=sandbox_name, namespace=namespace
            )
        except Exception as e:
            if is_not_found(e):
                logger.warning(
                    f"StatefulSet {sandbox_name} not found in {namespace}, "
                    f"nothing to {action}"
                )
                return
            logger.error(f"Failed to read StatefulSet {sandbox_name}: {e}")
            raise

        current_replicas = stateful_set.spec.replicas or 0
        if replicas == 0 and current_replicas == 0:
            logger.info(f"Sandbox {sandbox_name} is already stopped")
            return
        if replicas > 0 and current_replicas >= 1:
            logger.info(f"Sandbox {sandbox_name} is already running")
            return

        try:
            # A list body is sent as a JSON patch
            self._apps_api.patch_namespaced_stateful_set(
                name=sandbox_name,
                namespace=namespace,
                body=[{"op": "replace", "path": "/spec/replicas", "value": replicas}],
            )
        except Exception as e:
            logger.error(f"Failed to {action} sandbox {sandbox_name}: {e}")
            raise

        logger.info(f"Scaled sandbox {sandbox_name} to {replicas} replicas")

    def stop_sandbox(self, sandbox_name: str, namespace: str) -> None:
        self._scale_stateful_set(sandbox_name, namespace, 0)

    def start_sandbox(self, sandbox_name: str, namespace: str) -> None:
        self._scale_stateful_set(sandbox_name, namespace, 1)

    # -------------------------------------------------------------------------
    # Env update
    # -------------------------------------------------------------------------

    def update_stateful_set_env_vars(
        self, namespace: str, sandbox_name: str, env_vars: dict[str, str]
    ) -> bool:
        """Merge `env_vars` into the primary container's environment.

        Keys not in `env_vars` are kept. The whole StatefulSet is replaced,
        which rolls the pod.

        Returns:
            False when the StatefulSet or its primary container does not
            exist, True when the env is up to date (written or not)
        """
        try:
            stateful_set = self._apps_api.read_namespaced_stateful_set(
                name=sandbox_name, namespace=namespace
            )
        except Exception as e:
            if is_not_found(e):
                logger.warning(
                    f"StatefulSet {sandbox_name} not found, env vars not applied"
                )
                return False
            logger.error(f"Failed to read StatefulSet {sandbox_name}: {e}")
            raise

        updated = copy.deepcopy(stateful_set)
        containers = updated.spec.template.spec.containers or []
        container = next((c for c in containers if c.name == sandbox_name), None)
        if container is None:
            logger.warning(
                f"Container {sandbox_name} not found in StatefulSet {sandbox_name}"
            )
            return False

        current_env = container.env or []
        current_values = {
            env_var.name: env_var.value
            for env_var in current_env
            if env_var.value_from is None
        }
        changed_keys = [
            key
            for key, value in env_vars.items()
            if key not in current_values or current_values[key] != value
        ]
        if not changed_keys:
            logger.info(f"Env vars of sandbox {sandbox_name} unchanged, skipping")
            return True

        container.env = _merge_env(current_env, env_vars)

        try:
            self._apps_api.replace_namespaced_stateful_set(
                name=sandbox_name, namespace=namespace, body=updated
            )
        except Exception as e:
            logger.error(f"Failed to update env vars of sandbox {sandbox_name}: {e}")
            raise

        logger.info(
            f"Updated env vars of sandbox {sandbox_name}: {', '.join(changed_keys)}"
        )
        return True

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    def get_stateful_set_status(
        self, sandbox_name: str, namespace: str
    ) -> StatefulSetStatusDetail:
        """Never raises. Missing StatefulSet is TERMINATED, any other failure ERROR."""
        try:
            stateful_set = self._apps_api.read_namespaced_stateful_set(
                name=sandbox_name, namespace=namespace
            )
        except Exception as e:
            if is_not_found(e):
                return StatefulSetStatusDetail.zeroed(SandboxStatus.TERMINATED)
            logger.error(
                f"Failed to get status of sandbox {sandbox_name} "
                f"({classify_k8s_error(e).status}): {e}"
            )
            return StatefulSetStatusDetail.zeroed(SandboxStatus.ERROR)

        if stateful_set is None:
            return StatefulSetStatusDetail.zeroed(SandboxStatus.TERMINATED)

        spec_replicas = stateful_set.spec.replicas or 0
        status = stateful_set.status
        observed_replicas = (status.replicas if status else None) or 0
        ready_replicas = (status.ready_replicas if status else None) or 0
        current_replicas = (status.current_replicas if status else None) or 0
        updated_replicas = (status.updated_replicas if status else None) or 0

        sandbox_status, is_ready = derive_sandbox_status(
            replicas=spec_replicas,
            observed_replicas=observed_replicas,
            ready_replicas=ready_replicas,
            current_replicas=current_replicas,
            updated_replicas=updated_replicas,
        )

        return StatefulSetStatusDetail(
            status=sandbox_status,
            replicas=spec_replicas,
            observed_replicas=observed_replicas,
            ready_replicas=ready_replicas,
            current_replicas=current_replicas,
            updated_replicas=updated_replicas,
            current_revision=status.current_revision if status else None,
            update_revision=status.update_revision if status else None,
            is_ready=is_ready,
        )

    def get_sandbox_status(self, sandbox_name: str, namespace: str) -> SandboxStatus:
        return self.get_stateful_set_status(sandbox_name, namespace).status

    # -------------------------------------------------------------------------
    # Exec
    # -------------------------------------------------------------------------

    def exec_command_in_background(
        self,
        namespace: str,
        sandbox_name: str,
        command: str,
        workdir: str = SANDBOX_HOME_DIR,
    ) -> ExecResult:
        """Start `command` detached in the sandbox and return its PID.

        Output goes to a timestamped file under the exec log directory. Never
        raises; every failure is reported through ExecResult.error.
        """
        timestamp_ms = int(time.time() * 1000)
        argv = self._commands.background_launch(command, workdir, timestamp_ms)

        try:
            output = self._exec_client(namespace, sandbox_name).run(argv)
        except PodExecError as e:
            logger.error(f"Failed to execute command in sandbox {sandbox_name}: {e}")
            return ExecResult(success=False, error=str(e))

        if not output.succeeded:
            error = f"Command failed: {output.error_message or output.stderr.strip()}"
            logger.error(
                f"Failed to execute command in sandbox {sandbox_name}: {error}"
            )
            return ExecResult(success=False, error=error)

        try:
            pid = parse_pid(output.stdout)
        except ExecOutputParseError as e:
            logger.warning(f"Background command in sandbox {sandbox_name}: {e}")
            return ExecResult(success=False, error=str(e))

        logger.info(f"Background command started in sandbox {sandbox_name}: PID {pid}")
        return ExecResult(success=True, pid=pid)

    def is_port_listening(self, namespace: str, sandbox_name: str, port: int) -> bool:
        """Fails closed: any error reads as not listening."""
        try:
            output = self._exec_client(namespace, sandbox_name).run(
                self._commands.port_probe(port)
            )
        except PodExecError as e:
            logger.warning(f"Port probe in sandbox {sandbox_name} failed: {e}")
            return False

        logger.debug(f"Port {port} probe output in {sandbox_name}: {output.stdout!r}")
        return output.succeeded and output.stdout.strip() == PORT_LISTENING_MARKER

    def kill_process_on_port(
        self, namespace: str, sandbox_name: str, port: int
    ) -> KillProcessResult:
        """SIGTERM the process listening on `port`. No listener counts as success."""
        try:
            output = self._exec_client(namespace, sandbox_name).run(
                self._commands.kill_port(port)
            )
        except PodExecError as e:
            logger.error(
                f"Failed to kill process on port {port} in {sandbox_name}: {e}"
            )
            return KillProcessResult(success=False, error=str(e))

        result = output.stdout.strip()
        logger.debug(f"Kill on port {port} in {sandbox_name}: {result!r}")

        if output.succeeded and result == NO_PROCESS_MARKER:
            logger.info(f"No process listening on port {port} in {sandbox_name}")
            return KillProcessResult(success=True)
        if output.succeeded and result.startswith(KILLED_MARKER_PREFIX):
            logger.info(f"Killed process on port {port} in {sandbox_name}: {result}")
            return KillProcessResult(success=True)

        logger.warning(f"Failed to kill process on port {port} in {sandbox_name}")
        return KillProcessResult(success=False, error="Failed to kill process")

    def get_sandbox_current_directory(
        self, namespace: str, sandbox_name: str, session_id: str
    ) -> CurrentDirectoryInfo:
        """Working directory of the shell behind a terminal session.

        Raises:
            TerminalSessionNotFoundError: No marker file for the session
            TerminalSessionError: Marker exists but the shell cannot be inspected
            ExecOutputParseError: The lookup printed something other than the
                expected fields
            PodExecError: The exec channel failed
        """
        output = self._exec_client(namespace, sandbox_name).run(
            self._commands.current_directory(session_id)
        )

        if not output.succeeded:
            message = output.stderr.strip() or output.error_message or "unknown error"
            if output.exit_code == SESSION_FILE_MISSING_EXIT_CODE:
                raise TerminalSessionNotFoundError(message)
            raise TerminalSessionError(message)

        return parse_current_directory(output.stdout)
