from __future__ import annotations

from pydantic import BaseModel


class RenderStatusOut(BaseModel):
    template_path: str
    config_path: str
    snapshot_path: str
    notifier: str
    atomic_write: bool
    updater_state: str
    status: str
    last_attempt_at: str
    last_success_at: str
    last_error: str
    sha256: str
    renders: int
    render_failures: int
    notifications: int
