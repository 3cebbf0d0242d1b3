"""Desired-state definitions for the Kubernetes objects that make up a sandbox.

Pure functions, no API calls. A sandbox is:
- StatefulSet {sandbox_name}: one replica slot, an init container preparing
  the home volume, the primary runtime container and a file browser sidecar
- Service {sandbox_name}-service: ClusterIP exposing app, terminal and
  file browser ports
- Three Ingresses, one per externally reachable capability
- One volume claim template for the home directory
"""

from kubernetes import client  # type: ignore

from fulling.configs.sandbox_configs import APP_PORT
from fulling.configs.sandbox_configs import DEFAULT_FILE_BROWSER_CREDENTIAL
from fulling.configs.sandbox_configs import DEPLOY_MANAGER_DOMAIN_LABEL
from fulling.configs.sandbox_configs import DEPLOY_MANAGER_LABEL
from fulling.configs.sandbox_configs import FILE_BROWSER_PASSWORD_ENV
from fulling.configs.sandbox_configs import FILE_BROWSER_USERNAME_ENV
from fulling.configs.sandbox_configs import FILEBROWSER_PORT
from fulling.configs.sandbox_configs import FILEBROWSER_RESOURCES
from fulling.configs.sandbox_configs import HOME_VOLUME_ACCESS_MODE
from fulling.configs.sandbox_configs import HOME_VOLUME_NAME
from fulling.configs.sandbox_configs import INIT_CONTAINER_RESOURCES
from fulling.configs.sandbox_configs import PROJECT_LABEL
from fulling.configs.sandbox_configs import SANDBOX_FILEBROWSER_IMAGE
from fulling.configs.sandbox_configs import SANDBOX_HOME_DIR
from fulling.configs.sandbox_configs import SANDBOX_INGRESS_CLASS
from fulling.configs.sandbox_configs import SANDBOX_INGRESS_TLS_SECRET
from fulling.configs.sandbox_configs import SANDBOX_RESOURCES
from fulling.configs.sandbox_configs import SANDBOX_RUNTIME_IMAGE
from fulling.configs.sandbox_configs import SANDBOX_STORAGE_SIZE
from fulling.configs.sandbox_configs import SANDBOX_USER_ID
from fulling.configs.sandbox_configs import TTYD_PORT
from fulling.k8s.naming import get_app_host
from fulling.k8s.naming import get_app_ingress_name
from fulling.k8s.naming import get_filebrowser_host
from fulling.k8s.naming import get_filebrowser_ingress_name
from fulling.k8s.naming import get_service_name
from fulling.k8s.naming import get_ttyd_host
from fulling.k8s.naming import get_ttyd_ingress_name
from fulling.k8s.scripts import build_filebrowser_startup_script
from fulling.k8s.scripts import build_init_container_script

FILEBROWSER_CONTAINER_NAME = "filebrowser"
INIT_CONTAINER_NAME = "init-home-directory"
FILEBROWSER_DATABASE_VOLUME = "filebrowser-database"
FILEBROWSER_CONFIG_VOLUME = "filebrowser-config"

_BASE_INGRESS_ANNOTATIONS = {
    "nginx.ingress.kubernetes.io/proxy-body-size": "32m",
    "nginx.ingress.kubernetes.io/ssl-redirect": "false",
    "nginx.ingress.kubernetes.io/backend-protocol": "HTTP",
    "nginx.ingress.kubernetes.io/client-body-buffer-size": "64k",
    "nginx.ingress.kubernetes.io/proxy-buffer-size": "64k",
    "nginx.ingress.kubernetes.io/proxy-send-timeout": "300",
    "nginx.ingress.kubernetes.io/proxy-read-timeout": "300",
    "nginx.ingress.kubernetes.io/server-snippet": (
        "client_header_buffer_size 64k;\nlarge_client_header_buffers 4 128k;"
    ),
}

# The file browser uploads through the tus resumable-upload protocol from the
# browser, which needs its Upload-* and Tus-* headers allowed and exposed
_FILEBROWSER_CORS_ANNOTATIONS = {
    "nginx.ingress.kubernetes.io/enable-cors": "true",
    "nginx.ingress.kubernetes.io/cors-allow-origin": "*",
    "nginx.ingress.kubernetes.io/cors-allow-methods": (
        "GET, POST, PUT, DELETE, PATCH, HEAD, OPTIONS"
    ),
    "nginx.ingress.kubernetes.io/cors-allow-headers": (
        "DNT,Keep-Alive,User-Agent,X-Requested-With,If-Modified-Since,"
        "Cache-Control,Content-Type,Range,Authorization,X-Auth,Upload-Length,"
        "Upload-Offset,Tus-Resumable,Upload-Metadata,Upload-Defer-Length,"
        "Upload-Concat"
    ),
    "nginx.ingress.kubernetes.io/cors-expose-headers": (
        "Upload-Offset,Location,Upload-Length,Tus-Version,Tus-Resumable,"
        "Tus-Max-Size,Tus-Extension,Upload-Metadata"
    ),
    "nginx.ingress.kubernetes.io/cors-allow-credentials": "true",
    "nginx.ingress.kubernetes.io/cors-max-age": "1728000",
}


def _env_list(env: dict[str, str]) -> list[client.V1EnvVar]:
    return [client.V1EnvVar(name=key, value=str(value)) for key, value in env.items()]


def build_home_volume_claim_template(
    storage_size: str = SANDBOX_STORAGE_SIZE,
) -> client.V1PersistentVolumeClaim:
    return client.V1PersistentVolumeClaim(
        metadata=client.V1ObjectMeta(
            name=HOME_VOLUME_NAME,
            annotations={
                "path": SANDBOX_HOME_DIR,
                "value": storage_size.replace("Gi", ""),
            },
        ),
        spec=client.V1PersistentVolumeClaimSpec(
            access_modes=[HOME_VOLUME_ACCESS_MODE],
            resources=client.V1VolumeResourceRequirements(
                requests={"storage": storage_size},
            ),
        ),
    )


def build_stateful_set(
    sandbox_name: str,
    k8s_project_name: str,
    namespace: str,
    container_env: dict[str, str],
) -> client.V1StatefulSet:
    """Build the sandbox StatefulSet.

    The primary container is named after the sandbox; env updates and the exec
    bridge locate it by that exact name.

    Claims are deleted together with the StatefulSet but retained on scale
    down, so stop/start cycles keep user data and teardown leaves no orphans.
    """
    home_mount = client.V1VolumeMount(
        name=HOME_VOLUME_NAME, mount_path=SANDBOX_HOME_DIR
    )

    init_container = client.V1Container(
        name=INIT_CONTAINER_NAME,
        image=SANDBOX_RUNTIME_IMAGE,
        command=["sh", "-c"],
        args=[build_init_container_script()],
        volume_mounts=[home_mount],
        # Root so it can chown files on a freshly provisioned volume
        security_context=client.V1SecurityContext(
            run_as_user=0,
            run_as_non_root=False,
        ),
        resources=client.V1ResourceRequirements(**INIT_CONTAINER_RESOURCES),
    )

    sandbox_container = client.V1Container(
        name=sandbox_name,
        image=SANDBOX_RUNTIME_IMAGE,
        image_pull_policy="Always",
        env=_env_list(container_env),
        ports=[
            client.V1ContainerPort(container_port=APP_PORT, name=f"port-{APP_PORT}"),
            client.V1ContainerPort(
                container_port=TTYD_PORT, name=f"port-{TTYD_PORT}"
            ),
        ],
        resources=client.V1ResourceRequirements(**SANDBOX_RESOURCES),
        volume_mounts=[home_mount],
    )

    filebrowser_container = client.V1Container(
        name=FILEBROWSER_CONTAINER_NAME,
        image=SANDBOX_FILEBROWSER_IMAGE,
        command=["/bin/sh", "-c"],
        args=[build_filebrowser_startup_script(FILEBROWSER_PORT)],
        env=_env_list(
            {
                FILE_BROWSER_USERNAME_ENV: container_env.get(
                    FILE_BROWSER_USERNAME_ENV, DEFAULT_FILE_BROWSER_CREDENTIAL
                ),
                FILE_BROWSER_PASSWORD_ENV: container_env.get(
                    FILE_BROWSER_PASSWORD_ENV, DEFAULT_FILE_BROWSER_CREDENTIAL
                ),
            }
        ),
        ports=[
            client.V1ContainerPort(
                container_port=FILEBROWSER_PORT, name=f"port-{FILEBROWSER_PORT}"
            )
        ],
        resources=client.V1ResourceRequirements(**FILEBROWSER_RESOURCES),
        volume_mounts=[
            client.V1VolumeMount(name=HOME_VOLUME_NAME, mount_path="/srv"),
            client.V1VolumeMount(
                name=FILEBROWSER_DATABASE_VOLUME, mount_path="/database"
            ),
            client.V1VolumeMount(name=FILEBROWSER_CONFIG_VOLUME, mount_path="/config"),
        ],
    )

    pod_spec = client.V1PodSpec(
        init_containers=[init_container],
        containers=[sandbox_container, filebrowser_container],
        volumes=[
            client.V1Volume(
                name=FILEBROWSER_DATABASE_VOLUME,
                empty_dir=client.V1EmptyDirVolumeSource(),
            ),
            client.V1Volume(
                name=FILEBROWSER_CONFIG_VOLUME,
                empty_dir=client.V1EmptyDirVolumeSource(),
            ),
        ],
        automount_service_account_token=False,
        termination_grace_period_seconds=10,
        security_context=client.V1PodSecurityContext(
            fs_group=SANDBOX_USER_ID,
            run_as_user=SANDBOX_USER_ID,
            run_as_non_root=True,
        ),
    )

    return client.V1StatefulSet(
        api_version="apps/v1",
        kind="StatefulSet",
        metadata=client.V1ObjectMeta(
            name=sandbox_name,
            namespace=namespace,
            annotations={
                "originImageName": SANDBOX_RUNTIME_IMAGE,
                "deploy.cloud.sealos.io/minReplicas": "1",
                "deploy.cloud.sealos.io/maxReplicas": "1",
                "deploy.cloud.sealos.io/resize": SANDBOX_STORAGE_SIZE,
            },
            labels={
                DEPLOY_MANAGER_LABEL: sandbox_name,
                "app": sandbox_name,
                PROJECT_LABEL: k8s_project_name,
            },
        ),
        spec=client.V1StatefulSetSpec(
            replicas=1,
            revision_history_limit=1,
            service_name=get_service_name(sandbox_name),
            selector=client.V1LabelSelector(match_labels={"app": sandbox_name}),
            update_strategy=client.V1StatefulSetUpdateStrategy(
                type="RollingUpdate",
                rolling_update=client.V1RollingUpdateStatefulSetStrategy(
                    max_unavailable="50%"
                ),
            ),
            min_ready_seconds=10,
            persistent_volume_claim_retention_policy=(
                client.V1StatefulSetPersistentVolumeClaimRetentionPolicy(
                    when_deleted="Delete",
                    when_scaled="Retain",
                )
            ),
            template=client.V1PodTemplateSpec(
                metadata=client.V1ObjectMeta(
                    labels={"app": sandbox_name, PROJECT_LABEL: k8s_project_name}
                ),
                spec=pod_spec,
            ),
            volume_claim_templates=[build_home_volume_claim_template()],
        ),
    )


def build_service(
    sandbox_name: str,
    k8s_project_name: str,
    namespace: str,
) -> client.V1Service:
    return client.V1Service(
        api_version="v1",
        kind="Service",
        metadata=client.V1ObjectMeta(
            name=get_service_name(sandbox_name),
            namespace=namespace,
            labels={
                DEPLOY_MANAGER_LABEL: sandbox_name,
                PROJECT_LABEL: k8s_project_name,
            },
        ),
        spec=client.V1ServiceSpec(
            selector={"app": sandbox_name},
            ports=[
                client.V1ServicePort(
                    name=f"port-{port}", port=port, target_port=port, protocol="TCP"
                )
                for port in (APP_PORT, TTYD_PORT, FILEBROWSER_PORT)
            ],
        ),
    )


def _build_ingress(
    sandbox_name: str,
    k8s_project_name: str,
    namespace: str,
    service_name: str,
    ingress_name: str,
    host: str,
    port: int,
    extra_annotations: dict[str, str] | None = None,
) -> client.V1Ingress:
    # Deploy-manager domain label is the host's first DNS label, e.g. {sandbox}-app
    domain_prefix = host.split(".", 1)[0]

    annotations = {"kubernetes.io/ingress.class": SANDBOX_INGRESS_CLASS}
    annotations.update(_BASE_INGRESS_ANNOTATIONS)
    if extra_annotations:
        annotations.update(extra_annotations)

    return client.V1Ingress(
        api_version="networking.k8s.io/v1",
        kind="Ingress",
        metadata=client.V1ObjectMeta(
            name=ingress_name,
            namespace=namespace,
            labels={
                DEPLOY_MANAGER_LABEL: sandbox_name,
                DEPLOY_MANAGER_DOMAIN_LABEL: domain_prefix,
                PROJECT_LABEL: k8s_project_name,
            },
            annotations=annotations,
        ),
        spec=client.V1IngressSpec(
            rules=[
                client.V1IngressRule(
                    host=host,
                    http=client.V1HTTPIngressRuleValue(
                        paths=[
                            client.V1HTTPIngressPath(
                                path="/",
                                path_type="Prefix",
                                backend=client.V1IngressBackend(
                                    service=client.V1IngressServiceBackend(
                                        name=service_name,
                                        port=client.V1ServiceBackendPort(number=port),
                                    )
                                ),
                            )
                        ]
                    ),
                )
            ],
            tls=[
                client.V1IngressTLS(
                    hosts=[host], secret_name=SANDBOX_INGRESS_TLS_SECRET
                )
            ],
        ),
    )


def build_app_ingress(
    sandbox_name: str,
    k8s_project_name: str,
    namespace: str,
    service_name: str,
    ingress_domain: str,
) -> client.V1Ingress:
    return _build_ingress(
        sandbox_name=sandbox_name,
        k8s_project_name=k8s_project_name,
        namespace=namespace,
        service_name=service_name,
        ingress_name=get_app_ingress_name(sandbox_name),
        host=get_app_host(sandbox_name, ingress_domain),
        port=APP_PORT,
    )


def build_ttyd_ingress(
    sandbox_name: str,
    k8s_project_name: str,
    namespace: str,
    service_name: str,
    ingress_domain: str,
) -> client.V1Ingress:
    return _build_ingress(
        sandbox_name=sandbox_name,
        k8s_project_name=k8s_project_name,
        namespace=namespace,
        service_name=service_name,
        ingress_name=get_ttyd_ingress_name(sandbox_name),
        host=get_ttyd_host(sandbox_name, ingress_domain),
        port=TTYD_PORT,
    )


def build_filebrowser_ingress(
    sandbox_name: str,
    k8s_project_name: str,
    namespace: str,
    service_name: str,
    ingress_domain: str,
) -> client.V1Ingress:
    return _build_ingress(
        sandbox_name=sandbox_name,
        k8s_project_name=k8s_project_name,
        namespace=namespace,
        service_name=service_name,
        ingress_name=get_filebrowser_ingress_name(sandbox_name),
        host=get_filebrowser_host(sandbox_name, ingress_domain),
        port=FILEBROWSER_PORT,
        extra_annotations=_FILEBROWSER_CORS_ANNOTATIONS,
    )


def build_sandbox_ingresses(
    sandbox_name: str,
    k8s_project_name: str,
    namespace: str,
    service_name: str,
    ingress_domain: str,
) -> list[client.V1Ingress]:
    """App, terminal and file browser ingresses, in that order."""
    return [
        builder(
            sandbox_name=sandbox_name,
            k8s_project_name=k8s_project_name,
            namespace=namespace,
            service_name=service_name,
            ingress_domain=ingress_domain,
        )
        for builder in (
            build_app_ingress,
            build_ttyd_ingress,
            build_filebrowser_ingress,
        )
    ]
