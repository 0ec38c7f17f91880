from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends
import logging

from deskrelay.api.deps import get_ws_manager_ws

log = logging.getLogger("ws.ui")

router = APIRouter(tags=["ws-ui"])


@router.websocket("/ws/ui")
async def ui_websocket(
    websocket: WebSocket,
    ws_manager = Depends(get_ws_manager_ws),
):
    await ws_manager.connect(websocket)

    try:
        # a UI só escuta; o loop serve para detectar o disconnect
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await ws_manager.disconnect(websocket)
