"""
Route WebSocket: diffusion des événements `prune_event`.
"""
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    Endpoint WebSocket pour les événements de pruning.

    Envoie:
    - Un message `init` avec l'état du gateway
    - Un `prune_event` par pruning validé (analyse idle ou action explicite)

    Reçoit:
    - `{"type": "ping"}` -> `{"type": "pong"}`
    """
    service = websocket.app.state.service
    manager = service.manager
    await manager.connect(websocket)

    try:
        await websocket.send_json({"type": "init", **service.health()})

        # Garde la connexion ouverte
        while True:
            data = await websocket.receive_json()
            if isinstance(data, dict) and data.get("type") == "ping":
                await websocket.send_json({"type": "pong"})
            else:
                logger.debug(f"Message WebSocket ignoré: {data!r}")
    except WebSocketDisconnect:
        manager.disconnect(websocket)
    except ValueError as e:
        logger.warning(f"Message WebSocket invalide: {e}")
        manager.disconnect(websocket)
