"""
Interception Gateway: point de passage unique des requêtes sortantes.

Pour chaque body:
1. détection du format (non reconnu => transmis tel quel);
2. mise à jour du cache des métadonnées d'outils;
3. union des ids élagués de toutes les sessions non enfants;
4. écrasement des tool results correspondants par le marqueur;
5. injection optionnelle de la liste <prunable-tools>;
6. re-sérialisation uniquement si le body a changé.

Sur le chemin réseau (`intercept_request`), une session sans en-tête parent
est d'abord confrontée à l'hôte: une session déléguée n'est jamais réécrite.

`intercept` ne lève jamais: toute erreur renvoie le body d'origine.
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Set

import httpx

from ..config.settings import Settings
from ..features.prunable_list import build_end_injection, build_prunable_tools_list
from ..features.session_state import SessionStateStore
from ..core.exceptions import HostQueryError
from ..services.host import HostClient, SessionRegistry
from .formats import FormatDescriptor, detect_format
from .tool_cache import ToolMetadataCache

logger = logging.getLogger(__name__)


@dataclass
class InterceptionResult:
    """Body à transmettre et ce qui lui a été fait."""
    body: bytes
    modified: bool = False
    format_name: Optional[str] = None
    replaced_count: int = 0
    injected: bool = False


class ContextGateway:
    """Réécrit les requêtes sortantes selon l'état de pruning."""

    def __init__(
        self,
        settings: Settings,
        cache: ToolMetadataCache,
        store: SessionStateStore,
        registry: Optional[SessionRegistry] = None,
        host: Optional[HostClient] = None,
    ):
        self.settings = settings
        self.cache = cache
        self.store = store
        self.registry = registry
        self.host = host
        # Sessions dont l'hôte a confirmé l'absence de parent
        self._root_sessions: Set[str] = set()

    def intercept(
        self,
        raw: bytes,
        session_id: Optional[str] = None,
        parent_id: Optional[str] = None,
    ) -> InterceptionResult:
        """
        Traite un body sortant brut.

        Args:
            raw: Body JSON encodé
            session_id: Conversation d'origine (optionnelle)
            parent_id: Conversation parente si la requête vient d'un sous-agent

        Returns:
            InterceptionResult (body d'origine si rien n'a changé ou en cas d'erreur)
        """
        try:
            return self._intercept(raw, session_id, parent_id)
        except Exception as e:
            logger.warning(f"Interception échouée, requête transmise sans modification: {e}", exc_info=True)
            return InterceptionResult(body=raw)

    async def intercept_request(
        self,
        raw: bytes,
        session_id: Optional[str] = None,
        parent_id: Optional[str] = None,
    ) -> InterceptionResult:
        """
        Variante asynchrone d'`intercept` pour le chemin réseau.

        Sans en-tête parent, l'hôte est interrogé pour savoir si la session
        est déléguée avant toute réécriture.
        """
        if session_id and not parent_id:
            try:
                await self.resolve_parent(session_id)
            except Exception as e:
                logger.warning(f"Résolution du parent échouée pour {session_id}: {e}", exc_info=True)
        return self.intercept(raw, session_id, parent_id)

    async def resolve_parent(self, session_id: str) -> Optional[str]:
        """Lien parent d'une session: store d'abord, puis hôte (résultat racine mémorisé)."""
        state_parent = self.store.get_parent_id(session_id)
        if state_parent or self.host is None or session_id in self._root_sessions:
            return state_parent
        try:
            parent_id = await self.host.get_parent_id(session_id)
        except HostQueryError as e:
            logger.warning(f"Lien parent indisponible pour {session_id}, session traitée comme racine: {e}")
            return None
        if parent_id:
            self.store.set_parent(session_id, parent_id)
            logger.debug(f"Session {session_id} rattachée à {parent_id} (hôte)")
        else:
            self._root_sessions.add(session_id)
        return parent_id

    def _intercept(self, raw: bytes, session_id: Optional[str], parent_id: Optional[str]) -> InterceptionResult:
        if not self.settings.enabled or not raw:
            return InterceptionResult(body=raw)

        try:
            body = json.loads(raw)
        except (ValueError, UnicodeDecodeError):
            logger.debug("Body non JSON, transmis tel quel")
            return InterceptionResult(body=raw)

        descriptor = detect_format(body)
        if descriptor is None:
            return InterceptionResult(body=raw)
        messages = descriptor.locate_messages(body)
        if messages is None:
            return InterceptionResult(body=raw, format_name=descriptor.name)

        self.cache.update_from_messages(descriptor, messages)

        if session_id:
            if parent_id:
                self.store.set_parent(session_id, parent_id)
            if self.registry is not None:
                self.registry.observe(session_id, body, parent_id)
            # Une conversation déléguée n'est jamais réécrite
            if self.store.is_child(session_id):
                return InterceptionResult(body=raw, format_name=descriptor.name)

        pruned = self.store.union_pruned_ids()
        replaced = self._redact(descriptor, messages, pruned)

        injected = False
        if session_id and self.settings.prune_tool.enabled:
            injected = self._inject_prunable_list(descriptor, body, messages, session_id, pruned)

        if not replaced and not injected:
            return InterceptionResult(body=raw, format_name=descriptor.name)

        if replaced:
            logger.info(f"✂️ {replaced} tool result(s) expurgé(s) ({descriptor.name})")
        return InterceptionResult(
            body=json.dumps(body, ensure_ascii=False).encode("utf-8"),
            modified=True,
            format_name=descriptor.name,
            replaced_count=replaced,
            injected=injected,
        )

    def _redact(self, descriptor: FormatDescriptor, messages: List[Any], pruned: Set[str]) -> int:
        if not pruned:
            return 0
        replaced = 0
        for call_id in _unique_result_ids(descriptor, messages):
            if call_id in pruned and descriptor.overwrite_tool_result(
                messages, call_id, self.settings.redaction_marker
            ):
                replaced += 1
        return replaced

    def _inject_prunable_list(
        self,
        descriptor: FormatDescriptor,
        body: dict,
        messages: List[Any],
        session_id: str,
        pruned: Set[str],
    ) -> bool:
        candidates = [call_id for call_id in _unique_result_ids(descriptor, messages) if call_id not in pruned]
        prunable = build_prunable_tools_list(
            self.store, session_id, candidates, self.cache, self.settings.protected_tools
        )
        if not prunable:
            return False

        prune_tool = self.settings.prune_tool
        counter = self.store.increment_nudge_counter(session_id)
        include_nudge = prune_tool.nudge_enabled and counter % prune_tool.nudge_frequency == 0
        text = build_end_injection(prunable.text, include_nudge)
        return descriptor.inject_system_note(body, text)


def _unique_result_ids(descriptor: FormatDescriptor, messages: List[Any]) -> List[str]:
    ordered: List[str] = []
    seen: Set[str] = set()
    for ref in descriptor.list_tool_results(messages):
        if ref.call_id not in seen:
            seen.add(ref.call_id)
            ordered.append(ref.call_id)
    return ordered


class GatewayTransport(httpx.AsyncBaseTransport):
    """
    Transport httpx qui fait passer chaque requête sortante par le gateway.

    Tout client construit avec ce transport partage le même point d'interception.
    """

    def __init__(self, gateway: ContextGateway, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.gateway = gateway
        self._transport = transport or httpx.AsyncHTTPTransport()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            request = await self._rewrite(request)
        return await self._transport.handle_async_request(request)

    async def _rewrite(self, request: httpx.Request) -> httpx.Request:
        settings = self.gateway.settings
        raw = await request.aread()
        session_header = settings.session_header.lower()
        parent_header = settings.parent_header.lower()
        result = await self.gateway.intercept_request(
            raw,
            session_id=request.headers.get(session_header) or None,
            parent_id=request.headers.get(parent_header) or None,
        )
        internal = {session_header, parent_header}
        has_internal = any(name in request.headers for name in internal)
        if not result.modified and not has_internal:
            return request

        # En-têtes internes jamais transmis au provider; Content-Length recalculé par httpx
        skipped = {name.encode("latin-1") for name in internal} | {b"content-length"}
        headers = [(k, v) for k, v in request.headers.raw if k.lower() not in skipped]
        return httpx.Request(
            request.method,
            request.url,
            headers=headers,
            content=result.body,
            extensions=request.extensions,
        )

    async def aclose(self):
        await self._transport.aclose()
