from __future__ import annotations

import threading
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Optional

from lbsync.config import Settings
from lbsync.errors import ConfigurationError
from lbsync.logger import get_logger
from lbsync.metrics import record_notify, record_render
from lbsync.schemas.cluster import ClusterInformation
from lbsync.services.notifier import Notifier, parse_notifier
from lbsync.services.renderer import ConfigTemplate, RenderResult
from lbsync.services.server_names import ServerNameTemplates
from lbsync.services.snapshots import FileSnapshotSource
from lbsync.updater import AntiBurstUpdater

_logger = get_logger("runtime")


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class RenderStatus:
    status: str = "unknown"
    last_attempt_at: str = ""
    last_success_at: str = ""
    last_error: str = ""
    sha256: str = ""
    renders: int = 0
    render_failures: int = 0
    notifications: int = 0


def _require(value: str, name: str) -> str:
    if not value.strip():
        raise ConfigurationError(f"{name} must be set")
    return value


class RuntimeController:
    """Keeps the load-balancer config in sync with the snapshot source."""

    def __init__(
        self,
        settings: Settings,
        *,
        source: Optional[FileSnapshotSource] = None,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self._settings = settings
        self.templates = ServerNameTemplates.parse(settings.server_name_templates)
        self.renderer = ConfigTemplate(
            _require(settings.template_path, "TEMPLATE_PATH"),
            _require(settings.config_path, "CONFIG_PATH"),
            server_name_templates=self.templates,
            atomic=settings.render_atomic_write,
        )
        self.notifier = notifier if notifier is not None else parse_notifier(settings.notify)
        self.source = source or FileSnapshotSource(
            _require(settings.snapshot_path, "SNAPSHOT_PATH"),
            poll_interval_seconds=settings.snapshot_poll_interval_seconds,
        )
        self.updater = AntiBurstUpdater(
            self.apply,
            quiescence_seconds=settings.update_quiescence_seconds,
        )
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []
        self._status_lock = threading.Lock()
        self._status = RenderStatus()

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def status(self) -> RenderStatus:
        with self._status_lock:
            return self._status

    def _update_status(self, **changes: object) -> None:
        with self._status_lock:
            self._status = replace(self._status, **changes)

    def snapshot(self) -> ClusterInformation:
        snapshot = self.source.current()
        if self._settings.domain:
            snapshot = snapshot.model_copy(update={"domain": self._settings.domain})
        return snapshot

    def apply(self) -> Optional[RenderResult]:
        """Render the latest snapshot and trigger a reload when the output changed."""
        started = time.perf_counter()
        self._update_status(last_attempt_at=_utcnow_iso())
        try:
            result = self.renderer.execute(self.snapshot())
        except Exception as exc:
            record_render(ok=False, duration_seconds=time.perf_counter() - started)
            with self._status_lock:
                self._status = replace(
                    self._status,
                    status="error",
                    last_error=f"{type(exc).__name__}: {exc}",
                    render_failures=self._status.render_failures + 1,
                )
            raise
        record_render(ok=True, duration_seconds=time.perf_counter() - started)
        with self._status_lock:
            self._status = replace(
                self._status,
                status="ok",
                last_success_at=_utcnow_iso(),
                last_error="",
                sha256=result.sha256,
                renders=self._status.renders + 1,
            )

        if not result.changed:
            _logger.debug("runtime.unchanged", "Rendered config unchanged, skipping reload")
            return result

        try:
            self.notifier.notify()
        except Exception as exc:
            record_notify(ok=False)
            self.renderer.invalidate()
            self._update_status(status="error", last_error=f"{type(exc).__name__}: {exc}")
            raise
        record_notify(ok=True)
        with self._status_lock:
            self._status = replace(self._status, notifications=self._status.notifications + 1)
        return result

    def _spawn(self, name: str, target, *args: object) -> None:
        thread = threading.Thread(target=target, args=args, name=name, daemon=True)
        thread.start()
        self._threads.append(thread)

    def start(self) -> None:
        _logger.info(
            "runtime.start",
            "Starting config sync",
            template=str(self.renderer.source),
            target=str(self.renderer.path),
            snapshot=self.source.path,
            notifier=self.notifier.describe(),
        )
        self._spawn("updater", self.updater.run)
        self._spawn("snapshot-watch", self.source.watch, self.updater.signal, self._stop)
        # First render happens after one quiet window even if nothing changes.
        self._spawn("initial-signal", self.updater.signal)

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._stop.wait(timeout)

    def stop(self) -> None:
        self._stop.set()
        self.updater.stop()
        for thread in self._threads:
            thread.join(timeout=self._settings.update_quiescence_seconds * 2)
        self._threads.clear()
        _logger.info("runtime.stop", "Stopped config sync", renders=self.status.renders)
