from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, IPvAnyAddress
from pydantic.alias_generators import to_pascal

from lbsync.services.labels import port_label, service_label

# Snapshot documents may use the watcher's CamelCase keys (NodePort, External)
# or plain snake_case.
_SNAPSHOT_CONFIG = ConfigDict(
    frozen=True,
    alias_generator=to_pascal,
    populate_by_name=True,
    extra="ignore",
)


class PortSpec(BaseModel):
    model_config = _SNAPSHOT_CONFIG

    ip: IPvAnyAddress = Field(alias="IP")
    port: int
    mode: str = ""
    protocol: str = "tcp"

    @property
    def label(self) -> str:
        return port_label(self)

    def __str__(self) -> str:
        return self.label


class ServiceEndpoint(BaseModel):
    model_config = _SNAPSHOT_CONFIG

    name: str = ""
    ip: str = Field(alias="IP")
    port: int


class ServiceInformation(BaseModel):
    model_config = _SNAPSHOT_CONFIG

    name: str
    namespace: str
    port: PortSpec
    endpoints: tuple[ServiceEndpoint, ...] = ()
    node_port: int = 0
    external: tuple[str, ...] = ()
    timeout: int = 0

    @property
    def label(self) -> str:
        return service_label(self)

    def __str__(self) -> str:
        return self.label


class ClusterInformation(BaseModel):
    model_config = _SNAPSHOT_CONFIG

    services: tuple[ServiceInformation, ...] = ()
    ports: tuple[PortSpec, ...] = ()
    nodes: tuple[str, ...] = ()
    domain: str = ""
