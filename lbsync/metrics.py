from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

_UPDATER_SIGNALS = Counter(
    "lbsync_updater_signals_total",
    "Change notifications received by the update coordinator",
)
_UPDATER_FIRES = Counter(
    "lbsync_updater_fires_total",
    "Update function invocations",
    labelnames=("result",),
)
_RENDERS = Counter(
    "lbsync_renders_total",
    "Config renders",
    labelnames=("result",),
)
_RENDER_LATENCY = Histogram(
    "lbsync_render_duration_seconds",
    "Config render duration seconds",
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)
_NOTIFY = Counter(
    "lbsync_notify_total",
    "Load-balancer reload notifications",
    labelnames=("result",),
)
_SNAPSHOT_LOADS = Counter(
    "lbsync_snapshot_loads_total",
    "Cluster snapshot loads",
    labelnames=("result",),
)


def _result(ok: bool) -> str:
    return "ok" if ok else "error"


def record_signal() -> None:
    _UPDATER_SIGNALS.inc()


def record_fire(*, ok: bool) -> None:
    _UPDATER_FIRES.labels(result=_result(ok)).inc()


def record_render(*, ok: bool, duration_seconds: float) -> None:
    _RENDERS.labels(result=_result(ok)).inc()
    _RENDER_LATENCY.observe(duration_seconds)


def record_notify(*, ok: bool) -> None:
    _NOTIFY.labels(result=_result(ok)).inc()


def record_snapshot_load(*, ok: bool) -> None:
    _SNAPSHOT_LOADS.labels(result=_result(ok)).inc()


def render_metrics() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
