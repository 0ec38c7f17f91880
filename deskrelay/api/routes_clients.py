# deskrelay/api/routes_clients.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from deskrelay.api.deps import get_clients
from deskrelay.ws.clients import ClientBroadcaster

router = APIRouter(prefix="/clients", tags=["clients"])


@router.get("")
async def list_clients(clients: ClientBroadcaster = Depends(get_clients)):
    return {"clients": clients.list_clients()}


@router.delete("/{connection_id}")
async def disconnect_client(connection_id: str, clients: ClientBroadcaster = Depends(get_clients)):
    if not await clients.disconnect(connection_id):
        raise HTTPException(status_code=404, detail=f"Client {connection_id} not found")
    return {"ok": True}


# =====================================================
# PUSH (client_id opcional: sem ele vai para todos)
# =====================================================

@router.post("/push/config")
async def push_config(client_id: Optional[str] = None, clients: ClientBroadcaster = Depends(get_clients)):
    await clients.send_config_data(client_id)
    return {"ok": True}


@router.post("/push/settings")
async def push_settings(client_id: Optional[str] = None, clients: ClientBroadcaster = Depends(get_clients)):
    await clients.send_settings_data(client_id)
    return {"ok": True}


@router.post("/push/mappings")
async def push_mappings(client_id: Optional[str] = None, clients: ClientBroadcaster = Depends(get_clients)):
    await clients.send_mappings(client_id)
    return {"ok": True}
