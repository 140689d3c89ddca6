from __future__ import annotations

from pathlib import Path
from typing import Dict

from fastapi import APIRouter, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse

from lbsync.logger import get_logger
from lbsync.runtime import RuntimeController
from lbsync.schemas.status import RenderStatusOut

router = APIRouter(tags=["render"])
_logger = get_logger("api.render")


def _controller(request: Request) -> RuntimeController:
    return request.app.state.controller


@router.get("/status", response_model=RenderStatusOut)
async def render_status(request: Request) -> RenderStatusOut:
    controller = _controller(request)
    status = controller.status
    return RenderStatusOut(
        template_path=str(controller.renderer.source),
        config_path=str(controller.renderer.path),
        snapshot_path=controller.source.path,
        notifier=controller.notifier.describe(),
        atomic_write=controller.renderer.atomic,
        updater_state=controller.updater.state.value,
        status=status.status,
        last_attempt_at=status.last_attempt_at,
        last_success_at=status.last_success_at,
        last_error=status.last_error,
        sha256=status.sha256,
        renders=status.renders,
        render_failures=status.render_failures,
        notifications=status.notifications,
    )


@router.get("/config", response_class=PlainTextResponse)
async def rendered_config(request: Request) -> PlainTextResponse:
    path = Path(_controller(request).renderer.path)
    if not path.is_file():
        raise HTTPException(status_code=404, detail="Config has not been rendered yet.")
    return PlainTextResponse(path.read_text(encoding="utf-8"), media_type="text/plain; charset=utf-8")


@router.post("/sync")
async def trigger_sync(request: Request) -> Dict[str, str]:
    controller = _controller(request)
    # signal() waits for the coordinator's timer loop, keep it off the event loop.
    await run_in_threadpool(controller.updater.signal)
    _logger.info("sync.trigger", "Manual sync requested")
    return {"status": "triggered"}
