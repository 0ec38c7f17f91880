# deskrelay/api/routes_mappings.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from deskrelay.api.deps import get_clients, get_keymap
from deskrelay.core.errors import Malformed, NotFound
from deskrelay.services.keymap import KeyMapRegistry
from deskrelay.ws.clients import ClientBroadcaster

router = APIRouter(prefix="/mappings", tags=["mappings"])


class ProfileRequest(BaseModel):
    name: str
    base: Optional[str] = None


class MappingRequest(BaseModel):
    key: str
    mode: str
    action: str


@router.get("")
async def get_mappings(keymap: KeyMapRegistry = Depends(get_keymap)):
    return keymap.get_mapping()


@router.post("/profiles")
async def add_profile(
    body: ProfileRequest,
    keymap: KeyMapRegistry = Depends(get_keymap),
    clients: ClientBroadcaster = Depends(get_clients),
):
    try:
        keymap.add_profile(body.name, body.base)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    await keymap.save()
    await clients.send_mappings()
    return keymap.get_mapping()


@router.delete("/profiles/{name}")
async def delete_profile(
    name: str,
    keymap: KeyMapRegistry = Depends(get_keymap),
    clients: ClientBroadcaster = Depends(get_clients),
):
    try:
        keymap.delete_profile(name)
    except Malformed as e:
        raise HTTPException(status_code=400, detail=str(e))
    await keymap.save()
    await clients.send_mappings()
    return keymap.get_mapping()


@router.put("/profiles/{profile}")
async def set_mapping(
    profile: str,
    body: MappingRequest,
    keymap: KeyMapRegistry = Depends(get_keymap),
    clients: ClientBroadcaster = Depends(get_clients),
):
    try:
        keymap.set_mapping(profile, body.key, body.mode, body.action)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    await keymap.save()
    await clients.send_mappings()
    return keymap.get_mapping()
