"""
Cache des métadonnées d'outils (nom + paramètres) par call id.

Alimenté par chaque requête sortante avant toute décision de pruning. Les
call ids étant uniques entre conversations, le cache est global au processus.
"""
import logging
import threading
from typing import Any, Dict, List, Optional

from ..core.models import ToolCallRecord, normalize_call_id
from .formats.base import FormatDescriptor

logger = logging.getLogger(__name__)


class ToolMetadataCache:
    """Cache thread-safe `call id normalisé -> ToolCallRecord`."""

    def __init__(self):
        self._records: Dict[str, ToolCallRecord] = {}
        self._lock = threading.Lock()

    def record(self, record: ToolCallRecord) -> bool:
        """Enregistre un appel inconnu. Retourne False si déjà présent."""
        key = normalize_call_id(record.call_id)
        with self._lock:
            if key in self._records:
                return False
            self._records[key] = record
        return True

    def update_from_messages(self, descriptor: FormatDescriptor, messages: List[Any]) -> int:
        """
        Parcourt les invocations d'outils d'un historique et enregistre les nouvelles.

        Args:
            descriptor: Descripteur du format du body
            messages: Tableau de messages/items

        Returns:
            Nombre d'appels nouvellement enregistrés
        """
        added = 0
        for record in descriptor.list_tool_calls(messages):
            if self.record(record):
                added += 1
        if added:
            logger.debug(f"{added} appel(s) d'outil mis en cache ({descriptor.name})")
        return added

    def get(self, call_id: str) -> Optional[ToolCallRecord]:
        with self._lock:
            return self._records.get(normalize_call_id(call_id))

    def snapshot(self) -> Dict[str, ToolCallRecord]:
        with self._lock:
            return dict(self._records)

    def __contains__(self, call_id: object) -> bool:
        if not isinstance(call_id, str):
            return False
        with self._lock:
            return normalize_call_id(call_id) in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
