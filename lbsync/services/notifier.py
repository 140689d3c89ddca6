from __future__ import annotations

import os
import signal
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence

from lbsync.errors import ConfigurationError, NotifyError
from lbsync.logger import get_logger

_logger = get_logger("services.notifier")

DEFAULT_RELOAD_SIGNAL = signal.SIGHUP


class Notifier(Protocol):
    def notify(self) -> None: ...

    def describe(self) -> str: ...


def _run_command(cmd: Sequence[str], timeout_seconds: int = 30) -> tuple[int, str, str]:
    try:
        process = subprocess.run(
            list(cmd),
            capture_output=True,
            text=True,
            timeout=timeout_seconds,
            check=False,
        )
    except FileNotFoundError as exc:
        return 127, "", str(exc)
    except subprocess.TimeoutExpired:
        return 124, "", f"timed out after {timeout_seconds}s"
    return process.returncode, process.stdout.strip(), process.stderr.strip()


@dataclass(frozen=True)
class NullNotifier:
    def notify(self) -> None:
        _logger.debug("notify.skip", "No reload notifier configured")

    def describe(self) -> str:
        return "none"


@dataclass(frozen=True)
class PidfileNotifier:
    pidfile: str
    signum: signal.Signals = DEFAULT_RELOAD_SIGNAL

    def _read_pid(self) -> int:
        try:
            raw = Path(self.pidfile).read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise NotifyError(f"Cannot read pidfile {self.pidfile}: {exc}") from exc
        try:
            pid = int(raw)
        except ValueError as exc:
            raise NotifyError(f"Pidfile {self.pidfile} does not contain a pid: {raw!r}") from exc
        if pid <= 0:
            raise NotifyError(f"Pidfile {self.pidfile} contains an invalid pid: {pid}")
        return pid

    def notify(self) -> None:
        pid = self._read_pid()
        try:
            os.kill(pid, self.signum)
        except OSError as exc:
            raise NotifyError(f"Cannot send {self.signum.name} to pid {pid}: {exc}") from exc
        _logger.info(
            "notify.signal",
            "Signalled load balancer to reload",
            pid=pid,
            signal=self.signum.name,
        )

    def describe(self) -> str:
        return f"pidfile:{self.pidfile}:{self.signum.name}"


@dataclass(frozen=True)
class CommandNotifier:
    command: str

    def notify(self) -> None:
        code, out, err = _run_command(("sh", "-c", self.command))
        if code != 0:
            raise NotifyError(f"Reload command exited with {code}: {err or out}")
        _logger.info("notify.command", "Ran reload command", command=self.command)

    def describe(self) -> str:
        return f"command:{self.command}"


def _parse_signal(raw: str) -> signal.Signals:
    name = raw.strip().upper()
    if not name.startswith("SIG"):
        name = f"SIG{name}"
    try:
        return signal.Signals[name]
    except KeyError as exc:
        raise ConfigurationError(f"Unknown signal {raw!r}") from exc


def parse_notifier(spec: str) -> Notifier:
    """Build a notifier from ``pidfile:<path>[:<SIGNAL>]``, ``command:<cmd>`` or ``none``."""
    value = spec.strip()
    if not value or value.lower() == "none":
        return NullNotifier()

    kind, _, rest = value.partition(":")
    kind = kind.strip().lower()
    if kind == "pidfile":
        path, _, signal_name = rest.partition(":")
        if not path.strip():
            raise ConfigurationError("pidfile notifier requires a path")
        signum = _parse_signal(signal_name) if signal_name.strip() else DEFAULT_RELOAD_SIGNAL
        return PidfileNotifier(pidfile=path.strip(), signum=signum)
    if kind == "command":
        if not rest.strip():
            raise ConfigurationError("command notifier requires a command")
        return CommandNotifier(command=rest.strip())
    raise ConfigurationError(
        f"Unsupported notifier {spec!r}; expected pidfile:<path>[:<signal>] or command:<cmd>"
    )
