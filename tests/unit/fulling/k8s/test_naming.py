import base64

from fulling.k8s.naming import build_ttyd_url
from fulling.k8s.naming import get_app_host
from fulling.k8s.naming import get_filebrowser_host
from fulling.k8s.naming import get_ingress_names
from fulling.k8s.naming import get_pod_name
from fulling.k8s.naming import get_pvc_name
from fulling.k8s.naming import get_service_name
from fulling.k8s.naming import get_ttyd_host
from fulling.k8s.naming import to_k8s_project_name


def test_resource_names_derive_from_sandbox_name() -> None:
    """Every resource name is a fixed suffix of the sandbox name."""
    assert get_service_name("acme-x1") == "acme-x1-service"
    assert get_ingress_names("acme-x1") == [
        "acme-x1-app-ingress",
        "acme-x1-ttyd-ingress",
        "acme-x1-filebrowser-ingress",
    ]
    assert get_pod_name("acme-x1") == "acme-x1-0"
    assert get_pvc_name("acme-x1") == "vn-homevn-fulling-acme-x1-0"


def test_hosts_use_ingress_domain() -> None:
    assert get_app_host("acme-x1", "usw.example.io") == "acme-x1-app.usw.example.io"
    assert get_ttyd_host("acme-x1", "usw.example.io") == "acme-x1-ttyd.usw.example.io"
    assert (
        get_filebrowser_host("acme-x1", "usw.example.io")
        == "acme-x1-filebrowser.usw.example.io"
    )


def test_ttyd_url_without_token_has_no_query() -> None:
    assert (
        build_ttyd_url("acme-x1", "usw.example.io", None)
        == "https://acme-x1-ttyd.usw.example.io"
    )
    assert (
        build_ttyd_url("acme-x1", "usw.example.io", "")
        == "https://acme-x1-ttyd.usw.example.io"
    )


def test_ttyd_url_embeds_basic_auth_credentials() -> None:
    url = build_ttyd_url("acme-x1", "usw.example.io", "s3cret")

    base, _, query = url.partition("?")
    assert base == "https://acme-x1-ttyd.usw.example.io"
    assert query.startswith("authorization=")
    encoded = query.removeprefix("authorization=")
    assert base64.b64decode(encoded).decode() == "user:s3cret"


def test_project_name_normalization() -> None:
    assert to_k8s_project_name("My Project") == "my-project"
    assert to_k8s_project_name("--Hello__World!!--") == "hello-world"
    assert to_k8s_project_name("!!!") == "project"

    long_name = to_k8s_project_name("a" * 100)
    assert len(long_name) == 63


def test_project_name_truncation_does_not_leave_trailing_dash() -> None:
    name = to_k8s_project_name("a" * 62 + " b")
    assert len(name) <= 63
    assert not name.endswith("-")
