# deskrelay/api/routes_apps.py
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException

from deskrelay.api.deps import get_apps, get_data_store, get_keymap, get_router
from deskrelay.core.errors import AppNotFound, RelayError
from deskrelay.models.apps import AppManifest, AppOrderRequest, AppRegisterRequest
from deskrelay.models.envelope import AppEnvelope
from deskrelay.services.apps.registry import App, AppRegistry
from deskrelay.services.apps.router import MessageRouter
from deskrelay.services.keymap import KeyMapRegistry
from deskrelay.state.data_store import AppDataStore

router = APIRouter(prefix="/apps", tags=["apps"])


def _not_found(e: AppNotFound) -> HTTPException:
    return HTTPException(status_code=404, detail=str(e))


@router.get("")
async def list_apps(apps: AppRegistry = Depends(get_apps)):
    return {"apps": apps.get_all_base()}


@router.post("")
async def register_app(body: AppRegisterRequest, apps: AppRegistry = Depends(get_apps)):
    manifest = body.manifest or AppManifest(id=body.name, label=body.name)
    previous = apps.get(body.name)

    app = App(name=body.name, manifest=manifest, enabled=body.enabled)
    if previous is not None:
        # hot reload: mantém o canal já conectado
        app.handle = previous.handle
        app.running = previous.running
    apps.register(app)
    return app.base()


@router.post("/order")
async def order_apps(body: AppOrderRequest, apps: AppRegistry = Depends(get_apps)):
    apps.order(body.order)
    return {"apps": apps.get_all_base()}


# =====================================================
# LIFECYCLE
# =====================================================

@router.post("/{name}/run")
async def run_app(name: str, apps: AppRegistry = Depends(get_apps)):
    try:
        app = await apps.start(name)
    except AppNotFound as e:
        raise _not_found(e)
    except RelayError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return app.base()


@router.post("/{name}/stop")
async def stop_app(name: str, apps: AppRegistry = Depends(get_apps)):
    try:
        app = await apps.stop(name)
    except AppNotFound as e:
        raise _not_found(e)
    return app.base()


@router.post("/{name}/enable")
async def enable_app(name: str, apps: AppRegistry = Depends(get_apps)):
    try:
        apps.set_enabled(name, True)
    except AppNotFound as e:
        raise _not_found(e)
    return apps.require(name).base()


@router.post("/{name}/disable")
async def disable_app(name: str, apps: AppRegistry = Depends(get_apps)):
    try:
        apps.set_enabled(name, False)
        app = await apps.stop(name)
    except AppNotFound as e:
        raise _not_found(e)
    return app.base()


@router.delete("/{name}")
async def purge_app(
    name: str,
    apps: AppRegistry = Depends(get_apps),
    relay: MessageRouter = Depends(get_router),
    keymap: KeyMapRegistry = Depends(get_keymap),
    data_store: AppDataStore = Depends(get_data_store),
):
    try:
        await apps.purge(name)
    except AppNotFound as e:
        raise _not_found(e)

    relay.inputs.cancel(name)
    keymap.remove_source(name)
    await keymap.save()
    await data_store.delete_data(name)
    return {"ok": True}


# =====================================================
# DATA
# =====================================================

@router.get("/{name}/data")
async def get_app_data(name: str, data_store: AppDataStore = Depends(get_data_store)):
    return {"app": name, "data": await data_store.get_data(name)}


@router.put("/{name}/data")
async def set_app_data(
    name: str,
    data: Any = Body(...),
    data_store: AppDataStore = Depends(get_data_store),
):
    await data_store.set_data(name, data)
    return {"ok": True}


@router.post("/{name}/send")
async def send_to_app(
    name: str,
    envelope: AppEnvelope,
    relay: MessageRouter = Depends(get_router),
):
    if not await relay.send_to_app(name, envelope):
        raise HTTPException(status_code=404, detail=f"App {name} not found or not running")
    return {"ok": True}


@router.post("/{name}/input")
async def respond_user_input(
    name: str,
    data: Any = Body(...),
    relay: MessageRouter = Depends(get_router),
):
    if not relay.resolve_user_input(name, data):
        raise HTTPException(status_code=404, detail=f"No pending input request for {name}")
    return {"ok": True}
