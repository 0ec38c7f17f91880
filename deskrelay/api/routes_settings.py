# deskrelay/api/routes_settings.py
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import ValidationError

from deskrelay.api.deps import get_poller, get_settings_store
from deskrelay.services.playback_poller import PlaybackPoller
from deskrelay.state.settings_store import SettingsStore

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("")
async def get_settings(store: SettingsStore = Depends(get_settings_store)):
    settings = await store.get_settings()
    return settings.model_dump()


@router.put("")
async def save_settings(
    changes: Dict[str, Any] = Body(...),
    store: SettingsStore = Depends(get_settings_store),
):
    # merge com o atual; listeners (poller, clients) são avisados no save
    try:
        settings = await store.save_settings(changes)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return settings.model_dump()


@router.get("/playback")
async def playback_status(poller: PlaybackPoller = Depends(get_poller)):
    return {
        "currentApp": poller.current_app,
        "intervalMs": poller.interval_ms,
        "running": poller.running,
    }
