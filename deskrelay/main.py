from __future__ import annotations

import functools
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.asyncio import Redis

from deskrelay.core.config import settings
from deskrelay.core.logging import UiLogHandler, setup_logging

from deskrelay.state.redis_keys import EVENTS_CHANNEL
from deskrelay.state.redis_state import RedisState
from deskrelay.state.data_store import AppDataStore, ConfigStore
from deskrelay.state.settings_store import SettingsStore

from deskrelay.services.apps.registry import AppRegistry
from deskrelay.services.apps.router import MessageRouter
from deskrelay.services.client_inbound import ClientInbound
from deskrelay.services.keymap import KeyMapRegistry
from deskrelay.services.playback_poller import PlaybackPoller
from deskrelay.services.ui_gateway import UiGateway

from deskrelay.ws.clients import ClientBroadcaster
from deskrelay.ws.manager import WebSocketManager
from deskrelay.ws.broadcaster import RedisToWebSocketBroadcaster

from deskrelay.api.routes_ws import router as ws_router
from deskrelay.api.routes_ws_client import router as ws_client_router
from deskrelay.api.routes_ws_app import router as ws_app_router
from deskrelay.api.routes_apps import router as apps_router
from deskrelay.api.routes_clients import router as clients_router
from deskrelay.api.routes_settings import router as settings_router
from deskrelay.api.routes_mappings import router as mappings_router
from deskrelay.api.routes_status import router as status_router

log = logging.getLogger("deskrelay")


@asynccontextmanager
async def lifespan(app: FastAPI):
    redis = Redis.from_url(settings.redis_url, decode_responses=False)
    state = RedisState(redis)

    setup_logging(
        settings.log_level,
        ui_handler=UiLogHandler(functools.partial(state.publish_event, EVENTS_CHANNEL)),
    )
    log.info("relay_starting")

    await redis.ping()
    log.info("redis_connected")

    app.state.redis = redis
    app.state.state = state

    # STORES
    app.state.data_store = AppDataStore(state)
    app.state.config_store = ConfigStore(state)
    app.state.settings_store = SettingsStore(state, defaults=settings)

    # REGISTRIES
    app.state.apps = AppRegistry()
    app.state.keymap = KeyMapRegistry(state)
    await app.state.keymap.load()

    # CLIENTS
    app.state.clients = ClientBroadcaster(
        app.state.apps,
        app.state.keymap,
        app.state.data_store,
        send_timeout_s=settings.client_send_timeout_s,
    )
    unsubscribe_clients = app.state.settings_store.subscribe(app.state.clients.on_settings_changed)

    # ROUTER
    app.state.router = MessageRouter(
        apps=app.state.apps,
        keymap=app.state.keymap,
        clients=app.state.clients,
        data_store=app.state.data_store,
        config=app.state.config_store,
        ui=UiGateway(state),
        input_timeout_s=settings.input_timeout_s,
    )

    # POLLER (uma instância por processo)
    app.state.poller = PlaybackPoller(app.state.router, app.state.apps, app.state.settings_store)
    await app.state.poller.start()
    log.info("poller_initialized")

    app.state.inbound = ClientInbound(
        app.state.router,
        app.state.clients,
        app.state.poller,
        app.state.data_store,
    )

    # UI
    app.state.ws_manager = WebSocketManager()
    app.state.broadcaster = RedisToWebSocketBroadcaster(redis, app.state.ws_manager)
    await app.state.broadcaster.start()
    log.info("ui_broadcaster_started")

    try:
        yield
    finally:
        unsubscribe_clients()

        try:
            await app.state.poller.stop()
        except Exception:
            log.exception("error_stopping_poller")

        try:
            await app.state.router.close()
        except Exception:
            log.exception("error_closing_router")

        try:
            await app.state.broadcaster.stop()
        except Exception:
            log.exception("error_stopping_broadcaster")

        try:
            await redis.aclose()
        except Exception:
            log.exception("error_closing_redis")


app = FastAPI(
    title=settings.app_name,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ws_router)
app.include_router(ws_client_router)
app.include_router(ws_app_router)
app.include_router(apps_router)
app.include_router(clients_router)
app.include_router(settings_router)
app.include_router(mappings_router)
app.include_router(status_router)
