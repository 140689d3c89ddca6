from __future__ import annotations

from pathlib import Path

import pytest

from lbsync.schemas.cluster import ClusterInformation, PortSpec, ServiceInformation
from lbsync.services.server_names import ServerNameTemplates

EXAMPLES_DIR = Path(__file__).resolve().parents[1] / "examples"


def make_service(
    name: str = "web",
    namespace: str = "default",
    *,
    port: int = 80,
    mode: str = "http",
    external: tuple[str, ...] = (),
    node_port: int = 30080,
) -> ServiceInformation:
    return ServiceInformation(
        name=name,
        namespace=namespace,
        port=PortSpec(ip="0.0.0.0", port=port, protocol="tcp", mode=mode),
        node_port=node_port,
        external=external,
    )


@pytest.fixture
def snapshot() -> ClusterInformation:
    web = make_service(external=("www.example.com",))
    db = make_service("db", "storage", port=5432, mode="tcp", node_port=30432)
    return ClusterInformation(
        services=(web, db),
        ports=(web.port, db.port),
        nodes=("node-1.example.com", "10.0.0.7"),
        domain="cluster.local",
    )


@pytest.fixture
def name_templates() -> ServerNameTemplates:
    return ServerNameTemplates.default()


@pytest.fixture
def write_template(tmp_path: Path):
    def _write(body: str, name: str = "lb.conf.j2") -> Path:
        path = tmp_path / name
        path.write_text(body, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def snapshot_file(tmp_path: Path) -> Path:
    path = tmp_path / "cluster.yaml"
    path.write_text((EXAMPLES_DIR / "cluster.yaml").read_text(encoding="utf-8"), encoding="utf-8")
    return path
