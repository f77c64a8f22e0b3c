"""
Accès à l'hôte des conversations: historique et liens parent.

Deux implémentations:
- `SessionRegistry`: registre en mémoire alimenté par le gateway (défaut);
- `HttpHostClient`: hôte externe interrogé en HTTP.

Toute erreur de requête hôte lève `HostQueryError`; `is_child_session` la
convertit en "pas un enfant" (fail-open).
"""
import copy
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

import httpx

from ..core.exceptions import HostQueryError
from ..features.session_state import SessionStateStore

logger = logging.getLogger(__name__)


class HostClient(Protocol):
    async def get_parent_id(self, session_id: str) -> Optional[str]: ...

    async def get_conversation(self, session_id: str) -> Optional[Dict[str, Any]]: ...

    async def list_sessions(self) -> List[str]: ...

    async def close(self): ...


@dataclass
class HostSession:
    """Dernier état connu d'une conversation côté hôte."""
    session_id: str
    parent_id: Optional[str] = None
    body: Optional[Dict[str, Any]] = None


class SessionRegistry:
    """Registre en mémoire des conversations vues par le gateway."""

    def __init__(self):
        self._sessions: Dict[str, HostSession] = {}
        self._lock = threading.Lock()

    def observe(self, session_id: str, body: Optional[Dict[str, Any]] = None, parent_id: Optional[str] = None):
        """Enregistre le dernier body sortant (copie non expurgée) et le parent."""
        snapshot = copy.deepcopy(body) if body is not None else None
        with self._lock:
            session = self._sessions.setdefault(session_id, HostSession(session_id))
            if snapshot is not None:
                session.body = snapshot
            if parent_id:
                session.parent_id = parent_id

    def forget(self, session_id: str):
        with self._lock:
            self._sessions.pop(session_id, None)

    async def get_parent_id(self, session_id: str) -> Optional[str]:
        with self._lock:
            session = self._sessions.get(session_id)
            return session.parent_id if session else None

    async def get_conversation(self, session_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            session = self._sessions.get(session_id)
            return copy.deepcopy(session.body) if session and session.body is not None else None

    async def list_sessions(self) -> List[str]:
        with self._lock:
            return list(self._sessions)

    async def close(self):
        pass


class HttpHostClient:
    """
    Client de l'API HTTP de l'hôte.

    Endpoints:
        GET /session                       -> [{"id": ...}, ...]
        GET /session/{id}                  -> {"id", "parentID"?}
        GET /session/{id}/conversation     -> body au format fournisseur
    """

    def __init__(self, base_url: str, timeout_s: float = 5.0, client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout_s)

    async def _get_json(self, path: str, session_id: Optional[str] = None) -> Any:
        try:
            response = await self._client.get(path)
        except httpx.HTTPError as e:
            raise HostQueryError(f"Hôte injoignable ({path}): {e}", session_id) from e
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise HostQueryError(f"Hôte en erreur HTTP {response.status_code} ({path})", session_id)
        try:
            return response.json()
        except ValueError as e:
            raise HostQueryError(f"Réponse hôte non JSON ({path})", session_id) from e

    async def get_parent_id(self, session_id: str) -> Optional[str]:
        data = await self._get_json(f"/session/{session_id}", session_id)
        if not isinstance(data, dict):
            return None
        parent = data.get("parentID", data.get("parent_id"))
        return parent if isinstance(parent, str) and parent else None

    async def get_conversation(self, session_id: str) -> Optional[Dict[str, Any]]:
        data = await self._get_json(f"/session/{session_id}/conversation", session_id)
        return data if isinstance(data, dict) else None

    async def list_sessions(self) -> List[str]:
        data = await self._get_json("/session")
        if not isinstance(data, list):
            return []
        return [item["id"] for item in data if isinstance(item, dict) and isinstance(item.get("id"), str)]

    async def close(self):
        if self._owns_client:
            await self._client.aclose()


async def is_child_session(host: HostClient, store: SessionStateStore, session_id: str) -> bool:
    """
    Détermine si une conversation est déléguée (enfant).

    Le lien parent connu du store fait foi; sinon l'hôte est interrogé. Une
    erreur d'interrogation est journalisée et traitée comme "pas un enfant".
    """
    if store.is_child(session_id):
        return True
    try:
        parent_id = await host.get_parent_id(session_id)
    except HostQueryError as e:
        logger.warning(f"Lien parent indisponible pour {session_id}, session traitée comme racine: {e}")
        return False
    if parent_id:
        store.set_parent(session_id, parent_id)
        return True
    return False
