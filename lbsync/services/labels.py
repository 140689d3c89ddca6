"""Config-section labels derived from endpoint and service data.

Labels must be identical for identical input across restarts so rendered
configurations can be diffed, hence plain hex and decimal formatting only.
"""

from __future__ import annotations

from ipaddress import IPv4Address, IPv6Address
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from lbsync.schemas.cluster import PortSpec, ServiceInformation


def encode_ip(ip: Union[IPv4Address, IPv6Address]) -> str:
    """Hex-encode an address, using 4 bytes whenever it has an IPv4 form."""
    if isinstance(ip, IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return ip.packed.hex()


def port_label(spec: "PortSpec") -> str:
    return f"{encode_ip(spec.ip)}_{spec.port}_{spec.protocol}_{spec.mode}"


def service_label(service: "ServiceInformation") -> str:
    port = service.port
    return f"{service.name}_{service.namespace}_{port.port}_{port.protocol}_{port.mode}"
