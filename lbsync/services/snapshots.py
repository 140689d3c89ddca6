from __future__ import annotations

import hashlib
import threading
from pathlib import Path
from typing import Callable, Optional

import yaml
from pydantic import ValidationError

from lbsync.errors import SnapshotError
from lbsync.logger import get_logger
from lbsync.metrics import record_snapshot_load
from lbsync.schemas.cluster import ClusterInformation

_logger = get_logger("services.snapshots")


def parse_snapshot(raw: str, *, source: str = "<string>") -> ClusterInformation:
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise SnapshotError(f"Cannot parse snapshot {source}: {exc}") from exc
    if parsed is None:
        parsed = {}
    if not isinstance(parsed, dict):
        raise SnapshotError(f"Snapshot {source} must be a mapping, got {type(parsed).__name__}")
    try:
        return ClusterInformation.model_validate(parsed)
    except ValidationError as exc:
        raise SnapshotError(
            f"Invalid snapshot {source}: {exc.error_count()} validation error(s): {exc}"
        ) from exc


def load_snapshot(path: str) -> ClusterInformation:
    snapshot_path = Path(path).expanduser()
    try:
        raw = snapshot_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SnapshotError(f"Cannot read snapshot {snapshot_path}: {exc}") from exc
    return parse_snapshot(raw, source=str(snapshot_path))


class FileSnapshotSource:
    """Serves the latest cluster snapshot read from a YAML or JSON file.

    ``poll_once`` re-reads the file and reports whether its content changed;
    ``watch`` runs that in a loop and calls ``on_change`` after each change.
    A file that fails to load is logged and the previous snapshot is kept.
    """

    def __init__(self, path: str, *, poll_interval_seconds: float = 2.0) -> None:
        self.path = str(Path(path).expanduser())
        self.poll_interval_seconds = poll_interval_seconds
        self._lock = threading.Lock()
        self._poll_lock = threading.Lock()
        self._snapshot: Optional[ClusterInformation] = None
        self._digest = ""
        self._rejected_digest = ""

    @property
    def digest(self) -> str:
        return self._digest

    def current(self) -> ClusterInformation:
        with self._lock:
            snapshot = self._snapshot
        if snapshot is None:
            self.poll_once()
            with self._lock:
                snapshot = self._snapshot
        if snapshot is None:
            raise SnapshotError(f"No valid snapshot loaded from {self.path}")
        return snapshot

    def poll_once(self) -> bool:
        # One poll at a time: each file change is reported exactly once.
        with self._poll_lock:
            return self._poll()

    def _poll(self) -> bool:
        try:
            data = Path(self.path).read_bytes()
        except OSError as exc:
            record_snapshot_load(ok=False)
            _logger.warning(
                "snapshot.read_error",
                "Cannot read snapshot file",
                path=self.path,
                error=str(exc),
            )
            return False

        digest = hashlib.sha256(data).hexdigest()
        if digest in (self._digest, self._rejected_digest):
            return False

        try:
            snapshot = parse_snapshot(data.decode("utf-8"), source=self.path)
        except (SnapshotError, UnicodeDecodeError) as exc:
            self._rejected_digest = digest
            record_snapshot_load(ok=False)
            _logger.warning(
                "snapshot.invalid",
                "Ignoring invalid snapshot, keeping previous one",
                path=self.path,
                error=str(exc),
            )
            return False

        with self._lock:
            self._snapshot = snapshot
            self._digest = digest
        record_snapshot_load(ok=True)
        _logger.info(
            "snapshot.loaded",
            "Loaded cluster snapshot",
            path=self.path,
            services=len(snapshot.services),
            nodes=len(snapshot.nodes),
            sha256=digest[:12],
        )
        return True

    def watch(self, on_change: Callable[[], None], stop: threading.Event) -> None:
        _logger.info(
            "snapshot.watch",
            "Watching snapshot file for changes",
            path=self.path,
            interval_seconds=self.poll_interval_seconds,
        )
        while not stop.is_set():
            if self.poll_once():
                on_change()
            stop.wait(self.poll_interval_seconds)
