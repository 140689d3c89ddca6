"""Renders a cluster snapshot into the load-balancer config file.

The template is a Jinja2 file; it sees the snapshot as ``cluster`` and its
fields as ``services``, ``ports``, ``nodes`` and ``domain``, plus the helpers
from :mod:`lbsync.services.template_funcs`. Undefined attributes are errors.

With ``atomic=True`` the output is rendered in memory and moved into place with
``os.replace``, so a failed render never touches the previous artifact. With
``atomic=False`` the target is truncated before rendering starts and a failure
can leave a partial file behind.
"""

from __future__ import annotations

import hashlib
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    Template,
    TemplateNotFound,
    TemplateSyntaxError,
)

from lbsync.errors import OutputWriteError, RenderError, TemplateParseError, TemplateRenderError
from lbsync.logger import get_logger
from lbsync.schemas.cluster import ClusterInformation
from lbsync.services.server_names import ServerNameTemplates
from lbsync.services.template_funcs import build_template_funcs

_logger = get_logger("services.renderer")


@dataclass(frozen=True)
class RenderResult:
    path: str
    sha256: str
    size_bytes: int
    changed: bool


def _resolve(raw: str) -> Path:
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = (Path.cwd() / path).resolve()
    return path


class ConfigTemplate:
    def __init__(
        self,
        source: str,
        path: str,
        *,
        server_name_templates: ServerNameTemplates,
        atomic: bool = True,
    ) -> None:
        self.source = _resolve(source)
        self.path = _resolve(path)
        self.atomic = atomic
        self._last_sha256 = ""

        funcs = build_template_funcs(server_name_templates)
        self._env = Environment(
            loader=FileSystemLoader(str(self.source.parent)),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
            auto_reload=True,
        )
        self._env.globals.update(funcs)
        self._env.filters.update(funcs)

    @property
    def last_sha256(self) -> str:
        return self._last_sha256

    def invalidate(self) -> None:
        """Report the next render as changed even if its content is identical."""
        self._last_sha256 = ""

    def _load(self) -> Template:
        try:
            return self._env.get_template(self.source.name)
        except TemplateNotFound as exc:
            raise TemplateParseError(f"Template not found: {self.source}") from exc
        except TemplateSyntaxError as exc:
            raise TemplateParseError(
                f"Template syntax error in {self.source} line {exc.lineno}: {exc.message}"
            ) from exc

    @staticmethod
    def _context(snapshot: ClusterInformation) -> Dict[str, Any]:
        return {
            "cluster": snapshot,
            "services": snapshot.services,
            "ports": snapshot.ports,
            "nodes": snapshot.nodes,
            "domain": snapshot.domain,
        }

    def render(self, snapshot: ClusterInformation) -> str:
        template = self._load()
        try:
            return template.render(self._context(snapshot))
        except RenderError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise TemplateRenderError(
                f"Rendering {self.source.name} failed: {type(exc).__name__}: {exc}"
            ) from exc

    def execute(self, snapshot: ClusterInformation) -> RenderResult:
        with _logger.operation(
            "render.execute",
            "Rendering load-balancer config",
            template=str(self.source),
            target=str(self.path),
            atomic=self.atomic,
        ) as op:
            if self.atomic:
                data = self._write_atomic(snapshot)
            else:
                data = self._write_in_place(snapshot)

            digest = hashlib.sha256(data).hexdigest()
            changed = digest != self._last_sha256
            self._last_sha256 = digest
            op.step(
                "render.written",
                "Wrote rendered config",
                services=len(snapshot.services),
                bytes=len(data),
                changed=changed,
            )
            return RenderResult(
                path=str(self.path),
                sha256=digest,
                size_bytes=len(data),
                changed=changed,
            )

    def _write_atomic(self, snapshot: ClusterInformation) -> bytes:
        data = self.render(snapshot).encode("utf-8")
        # Replace the file a symlinked target points at, never the link itself.
        target = Path(os.path.realpath(self.path))
        tmp_path = target.with_name(f"{target.name}.tmp")
        try:
            tmp_path.write_bytes(data)
            if target.exists():
                shutil.copymode(target, tmp_path)
            os.replace(tmp_path, target)
        except OSError as exc:
            if tmp_path.exists():
                tmp_path.unlink()
            raise OutputWriteError(f"Cannot write {self.path}: {exc}") from exc
        return data

    def _write_in_place(self, snapshot: ClusterInformation) -> bytes:
        template = self._load()
        try:
            handle = open(self.path, "w", encoding="utf-8")
        except OSError as exc:
            raise OutputWriteError(f"Cannot open {self.path} for writing: {exc}") from exc

        chunks: list[str] = []
        with handle:
            try:
                for chunk in template.generate(self._context(snapshot)):
                    handle.write(chunk)
                    chunks.append(chunk)
            except OSError as exc:
                raise OutputWriteError(f"Cannot write {self.path}: {exc}") from exc
            except RenderError:
                raise
            except Exception as exc:  # noqa: BLE001
                raise TemplateRenderError(
                    f"Rendering {self.source.name} failed: {type(exc).__name__}: {exc}"
                ) from exc
        return "".join(chunks).encode("utf-8")
