"""
Façade qui assemble les composants du gateway pour l'application FastAPI.

Une instance par application, stockée dans `app.state.service`.
"""
import logging
from typing import Any, Dict, Optional, Sequence

import httpx

from ..config.settings import Settings
from ..core.exceptions import HostQueryError
from ..features.analysis import AnalysisOutcome, AnalysisScheduler, analyze_session
from ..features.prunable_list import PrunableList, build_prunable_tools_list
from ..features.prune_action import PruneOutcome, execute_prune_action
from ..features.session_state import JsonSessionStorage, SessionStateStore
from ..features.strategies import StrategyEngine
from ..proxy.client import ProxyClient
from ..proxy.formats import detect_format
from ..proxy.gateway import ContextGateway
from ..proxy.tool_cache import ToolMetadataCache
from .host import HostClient, HttpHostClient, SessionRegistry, is_child_session
from .websocket_manager import ConnectionManager

logger = logging.getLogger(__name__)


class PruningService:
    """Cache, store, stratégies, gateway, analyse et client amont."""

    def __init__(
        self,
        settings: Settings,
        host: Optional[HostClient] = None,
        manager: Optional[ConnectionManager] = None,
        upstream_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self.cache = ToolMetadataCache()
        storage = JsonSessionStorage(settings.storage.resolved_directory) if settings.storage.enabled else None
        self.store = SessionStateStore(storage, settings.numeric_id_base)
        self.registry = SessionRegistry()
        if host is not None:
            self.host = host
        elif settings.host.base_url:
            self.host = HttpHostClient(settings.host.base_url, settings.host.timeout_s)
        else:
            self.host = self.registry
        self.engine = StrategyEngine(settings)
        self.manager = manager or ConnectionManager()
        self.gateway = ContextGateway(settings, self.cache, self.store, self.registry, self.host)
        self.scheduler = AnalysisScheduler(self._run_analysis, settings.analysis_timeout_s)
        self.client = ProxyClient(self.gateway, settings.upstream, upstream_transport)

    async def start(self):
        """Recharge les états persistés."""
        await self.store.load_all()

    async def shutdown(self):
        """Attend les analyses, écrit les états dirty, ferme les clients."""
        await self.scheduler.drain()
        written = await self.store.flush_all()
        if written:
            logger.info(f"{written} état(s) de session écrit(s) à l'arrêt")
        await self.client.aclose()
        await self.host.close()

    # ------------------------------------------------------------------
    # Analyse idle
    # ------------------------------------------------------------------

    async def on_idle(self, session_id: str) -> bool:
        """
        Signal d'inactivité d'une conversation.

        Returns:
            True si une analyse a été planifiée
        """
        if not self.settings.enabled:
            return False
        if await is_child_session(self.host, self.store, session_id):
            logger.debug(f"Signal idle ignoré pour la session enfant {session_id}")
            return False
        return self.scheduler.spawn(session_id)

    async def _run_analysis(self, session_id: str) -> AnalysisOutcome:
        outcome = await analyze_session(
            session_id,
            store=self.store,
            cache=self.cache,
            host=self.host,
            engine=self.engine,
            chars_per_token=self.settings.chars_per_token,
        )
        if outcome.pruned:
            await self.manager.broadcast_prune_event(session_id, outcome.pruned, outcome.tokens_saved, "idle")
        return outcome

    # ------------------------------------------------------------------
    # Action explicite
    # ------------------------------------------------------------------

    async def prune(self, session_id: str, ids: Optional[Sequence[Any]], reason: Optional[str] = None) -> PruneOutcome:
        """Action de pruning explicite (lève PruneActionError si l'entrée est invalide)."""
        outcome = await execute_prune_action(
            session_id,
            ids,
            store=self.store,
            cache=self.cache,
            host=self.host,
            settings=self.settings,
            reason=reason,
        )
        if outcome.pruned:
            await self.manager.broadcast_prune_event(session_id, outcome.pruned, outcome.tokens_saved, "prune_tool")
        return outcome

    # ------------------------------------------------------------------
    # Consultation
    # ------------------------------------------------------------------

    async def prunable_list(self, session_id: str) -> PrunableList:
        """Liste <prunable-tools> de la dernière requête connue de la session."""
        try:
            body = await self.host.get_conversation(session_id)
        except HostQueryError as e:
            logger.warning(f"Historique indisponible pour {session_id}: {e}")
            return PrunableList()

        descriptor = detect_format(body) if body is not None else None
        messages = descriptor.locate_messages(body) if descriptor else None
        if messages is None:
            return PrunableList()

        self.cache.update_from_messages(descriptor, messages)
        pruned = self.store.union_pruned_ids()
        candidates = []
        for ref in descriptor.list_tool_results(messages):
            if ref.call_id not in pruned and ref.call_id not in candidates:
                candidates.append(ref.call_id)
        return build_prunable_tools_list(
            self.store, session_id, candidates, self.cache, self.settings.protected_tools
        )

    def session_summary(self, session_id: str) -> Dict[str, Any]:
        summary = self.store.get_state(session_id).summary()
        summary["analysis_running"] = self.scheduler.is_running(session_id)
        return summary

    def health(self) -> Dict[str, Any]:
        return {
            "status": "ok",
            "enabled": self.settings.enabled,
            "sessions": len(self.store.session_ids()),
            "cached_tool_calls": len(self.cache),
            "analyses_in_flight": self.scheduler.in_flight,
            "websocket_clients": self.manager.get_connection_count(),
            "upstream": self.settings.upstream.base_url,
        }
