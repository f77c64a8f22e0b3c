"""
Gestionnaire de connexions WebSocket (diffusion des événements de pruning).
"""
import logging
from datetime import datetime
from typing import Set, Dict, Any, List, TYPE_CHECKING

if TYPE_CHECKING:
    from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Gère les connexions WebSocket actives."""

    def __init__(self):
        self.active_connections: Set["WebSocket"] = set()

    async def connect(self, websocket: "WebSocket"):
        """Accepte une nouvelle connexion WebSocket."""
        await websocket.accept()
        self.active_connections.add(websocket)

    def disconnect(self, websocket: "WebSocket"):
        self.active_connections.discard(websocket)

    async def broadcast(self, message: Dict[str, Any]) -> int:
        """
        Diffuse un message à toutes les connexions actives.

        Args:
            message: Message à diffuser (sera converti en JSON)

        Returns:
            Nombre de connexions ayant reçu le message
        """
        disconnected = set()
        delivered = 0

        for connection in list(self.active_connections):
            try:
                await connection.send_json(message)
                delivered += 1
            except Exception as e:
                logger.debug(f"Connexion WebSocket fermée pendant la diffusion: {e}")
                disconnected.add(connection)

        # Nettoie les connexions déconnectées
        for conn in disconnected:
            self.active_connections.discard(conn)
        return delivered

    async def broadcast_prune_event(
        self,
        session_id: str,
        call_ids: List[str],
        tokens_saved: int,
        source: str,
    ) -> int:
        """Diffuse un `prune_event` (analyse idle ou action explicite)."""
        return await self.broadcast({
            "type": "prune_event",
            "session_id": session_id,
            "source": source,
            "call_ids": list(call_ids),
            "count": len(call_ids),
            "tokens_saved": tokens_saved,
            "timestamp": datetime.now().isoformat(),
        })

    def get_connection_count(self) -> int:
        return len(self.active_connections)
