from __future__ import annotations

from functools import partial
from typing import Any, Callable, Dict, Iterator

from lbsync.services.server_names import ServerNameTemplates, generate_server_names

_NODE_ESCAPES = str.maketrans({".": "_", ":": "_"})


def escape_node(value: str) -> str:
    """Turn a hostname or address into an identifier-safe token."""
    return str(value).translate(_NODE_ESCAPES)


def int_range(count: int, initial: int, step: int) -> Iterator[int]:
    for i in range(count):
        yield initial + i * step


def add(*values: int) -> int:
    return sum(values)


def to_lower(value: str) -> str:
    return str(value).lower()


def to_upper(value: str) -> str:
    return str(value).upper()


def build_template_funcs(templates: ServerNameTemplates) -> Dict[str, Callable[..., Any]]:
    return {
        "EscapeNode": escape_node,
        "IntRange": int_range,
        "ServerNames": partial(generate_server_names, templates=templates),
        "ToLower": to_lower,
        "ToUpper": to_upper,
        "Add": add,
    }
