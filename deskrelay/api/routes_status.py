from __future__ import annotations

from fastapi import APIRouter, Request

from deskrelay.core.config import settings

router = APIRouter(tags=["status"])


@router.get("/health")
def health():
    return {
        "ok": True,
        "app": settings.app_name,
        "env": settings.app_env,
    }


@router.get("/status")
async def status(request: Request):
    state = request.app.state
    return {
        "apps": len(state.apps),
        "runningApps": [a.name for a in state.apps.list_all() if a.running],
        "clients": len(state.clients),
        "uiSockets": len(state.ws_manager),
        "playbackApp": state.poller.current_app,
        "pendingInputs": state.router.inputs.pending(),
    }
