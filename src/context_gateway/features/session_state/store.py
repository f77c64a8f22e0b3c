"""
Store des états de session (ids élagués, alias numériques, compteurs).

Propriétés:
- création à la première utilisation, session inconnue = état vide;
- alias numériques monotones et jamais réattribués;
- chaque mutation marque la session "dirty" et planifie un flush asynchrone
  (jamais bloquant pour l'appelant);
- l'état en mémoire fait foi: un flush échoué est retenté au flush suivant.
"""
import asyncio
import copy
import logging
import threading
from typing import Dict, Iterable, List, Optional, Set

from ...core.constants import NUMERIC_ID_BASE
from ...core.exceptions import PersistenceError
from ...core.models import SessionState, normalize_call_id
from .storage import JsonSessionStorage

logger = logging.getLogger(__name__)


class SessionStateStore:
    """Store en mémoire des `SessionState`, avec persistance optionnelle."""

    def __init__(
        self,
        storage: Optional[JsonSessionStorage] = None,
        numeric_id_base: int = NUMERIC_ID_BASE,
    ):
        self.storage = storage
        self.numeric_id_base = numeric_id_base
        self._states: Dict[str, SessionState] = {}
        self._lock = threading.RLock()
        self._dirty: Set[str] = set()
        self._flush_locks: Dict[str, asyncio.Lock] = {}
        self._flush_tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Lecture
    # ------------------------------------------------------------------

    def _get_or_create(self, session_id: str) -> SessionState:
        state = self._states.get(session_id)
        if state is None:
            state = SessionState(session_id=session_id, next_numeric_id=self.numeric_id_base)
            self._states[session_id] = state
        return state

    def get_state(self, session_id: str) -> SessionState:
        """Copie de l'état courant (créé vide si inconnu)."""
        with self._lock:
            return copy.deepcopy(self._get_or_create(session_id))

    def has_session(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._states

    def session_ids(self) -> List[str]:
        with self._lock:
            return list(self._states)

    def get_pruned_ids(self, session_id: str) -> frozenset:
        with self._lock:
            state = self._states.get(session_id)
            return frozenset(state.pruned_call_ids) if state else frozenset()

    def is_child(self, session_id: str) -> bool:
        with self._lock:
            state = self._states.get(session_id)
            return bool(state and state.is_child)

    def get_parent_id(self, session_id: str) -> Optional[str]:
        with self._lock:
            state = self._states.get(session_id)
            return state.parent_id if state else None

    def union_pruned_ids(self) -> Set[str]:
        """Union des ids élagués de toutes les sessions non enfants (snapshot)."""
        with self._lock:
            union: Set[str] = set()
            for state in self._states.values():
                if not state.is_child:
                    union |= state.pruned_call_ids
            return union

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_pruned_ids(self, session_id: str, call_ids: Iterable[str]) -> List[str]:
        """
        Ajoute des call ids à l'ensemble élagué d'une session.

        Returns:
            Les ids normalisés réellement ajoutés (dans l'ordre reçu)
        """
        added: List[str] = []
        with self._lock:
            state = self._get_or_create(session_id)
            for call_id in call_ids:
                if not isinstance(call_id, str) or not call_id.strip():
                    continue
                normalized = normalize_call_id(call_id)
                if normalized not in state.pruned_call_ids:
                    state.pruned_call_ids.add(normalized)
                    added.append(normalized)
            if added:
                state.touch()
        if added:
            self._mark_dirty(session_id)
        return added

    def get_or_assign_numeric_id(self, session_id: str, call_id: str) -> int:
        normalized = normalize_call_id(call_id)
        with self._lock:
            state = self._get_or_create(session_id)
            existing = state.numeric_ids.get(normalized)
            if existing is not None:
                return existing
            numeric_id = state.next_numeric_id
            state.numeric_ids[normalized] = numeric_id
            state.call_ids_by_numeric[numeric_id] = normalized
            state.next_numeric_id = numeric_id + 1
            state.touch()
        self._mark_dirty(session_id)
        return numeric_id

    def resolve_numeric_ids(self, session_id: str, numeric_ids: Iterable[int]) -> List[str]:
        """Résout des alias numériques en call ids; les alias inconnus sont ignorés."""
        resolved: List[str] = []
        with self._lock:
            state = self._states.get(session_id)
            if state is None:
                return []
            for numeric_id in numeric_ids:
                call_id = state.call_ids_by_numeric.get(numeric_id)
                if call_id is not None and call_id not in resolved:
                    resolved.append(call_id)
        return resolved

    def record_tokens_saved(self, session_id: str, tokens: int) -> int:
        """Ajoute `tokens` aux compteurs; retourne le total cumulé."""
        if tokens <= 0:
            with self._lock:
                return self._get_or_create(session_id).total_tokens_saved
        with self._lock:
            state = self._get_or_create(session_id)
            state.tokens_saved_counter += tokens
            state.total_tokens_saved += tokens
            state.touch()
            total = state.total_tokens_saved
        self._mark_dirty(session_id)
        return total

    def consume_tokens_counter(self, session_id: str) -> int:
        """Retourne puis remet à zéro les tokens économisés depuis le dernier rapport."""
        with self._lock:
            state = self._get_or_create(session_id)
            value = state.tokens_saved_counter
            if not value:
                return 0
            state.tokens_saved_counter = 0
        self._mark_dirty(session_id)
        return value

    def increment_nudge_counter(self, session_id: str) -> int:
        with self._lock:
            state = self._get_or_create(session_id)
            state.nudge_counter += 1
            value = state.nudge_counter
        self._mark_dirty(session_id)
        return value

    def reset_nudge_counter(self, session_id: str):
        with self._lock:
            state = self._get_or_create(session_id)
            if not state.nudge_counter:
                return
            state.nudge_counter = 0
        self._mark_dirty(session_id)

    def set_parent(self, session_id: str, parent_id: Optional[str]):
        """Enregistre le lien parent (session enfant exclue de tout pruning)."""
        if not parent_id:
            return
        with self._lock:
            state = self._get_or_create(session_id)
            if state.parent_id == parent_id:
                return
            state.parent_id = parent_id
            state.touch()
        self._mark_dirty(session_id)

    # ------------------------------------------------------------------
    # Persistance
    # ------------------------------------------------------------------

    async def load(self, session_id: str) -> SessionState:
        """Charge l'état persisté s'il n'est pas déjà en mémoire."""
        with self._lock:
            if session_id in self._states:
                return copy.deepcopy(self._states[session_id])

        data = None
        if self.storage is not None:
            try:
                data = await self.storage.load(session_id)
            except PersistenceError as e:
                logger.warning(f"État de session illisible, état vide utilisé: {e}")

        with self._lock:
            # Une mutation concurrente a pu créer l'état entre-temps
            if session_id not in self._states:
                if data is not None:
                    state = SessionState.from_dict(data, self.numeric_id_base)
                    state.session_id = session_id
                    self._states[session_id] = state
                else:
                    self._get_or_create(session_id)
            return copy.deepcopy(self._states[session_id])

    async def load_all(self) -> int:
        """Charge tous les états persistés absents de la mémoire."""
        if self.storage is None:
            return 0
        try:
            raw_states = await self.storage.load_all()
        except PersistenceError as e:
            logger.warning(f"Chargement des sessions impossible: {e}")
            return 0

        loaded = 0
        with self._lock:
            for data in raw_states:
                state = SessionState.from_dict(data, self.numeric_id_base)
                if state.session_id and state.session_id not in self._states:
                    self._states[state.session_id] = state
                    loaded += 1
        if loaded:
            logger.info(f"{loaded} état(s) de session rechargé(s)")
        return loaded

    def _mark_dirty(self, session_id: str):
        if self.storage is None:
            return
        with self._lock:
            self._dirty.add(session_id)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Hors boucle: le flush aura lieu au prochain flush/flush_all
            return
        task = loop.create_task(self.flush(session_id))
        self._flush_tasks.add(task)
        task.add_done_callback(self._flush_tasks.discard)

    async def flush(self, session_id: str) -> bool:
        """
        Écrit l'état d'une session si elle est dirty.

        Returns:
            True si l'écriture a eu lieu
        """
        if self.storage is None:
            return False

        lock = self._flush_locks.setdefault(session_id, asyncio.Lock())
        async with lock:
            with self._lock:
                if session_id not in self._dirty or session_id not in self._states:
                    return False
                self._dirty.discard(session_id)
                data = self._states[session_id].to_dict()
            try:
                await self.storage.save(session_id, data)
            except PersistenceError as e:
                logger.warning(f"Flush de l'état échoué, nouvel essai au prochain flush: {e}")
                with self._lock:
                    self._dirty.add(session_id)
                return False
        return True

    async def flush_all(self) -> int:
        """Écrit toutes les sessions dirty (arrêt du service)."""
        if self._flush_tasks:
            await asyncio.gather(*list(self._flush_tasks), return_exceptions=True)
        with self._lock:
            pending = list(self._dirty)
        written = 0
        for session_id in pending:
            if await self.flush(session_id):
                written += 1
        return written
