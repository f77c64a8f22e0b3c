"""
Action de pruning explicite.

Entrée: `ids` = liste de chaînes dont le premier élément peut porter la raison
('completion', 'noise', 'consolidation'), suivie des alias numériques issus de
la dernière liste <prunable-tools>. Une entrée invalide lève
`PruneActionError` sans toucher à l'état.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ..config.settings import Settings
from ..core.exceptions import HostQueryError, PruneActionError
from ..core.models import PruneDirective, PruneReason
from ..core.tokens import estimate_tokens, format_token_count
from ..proxy.tool_cache import ToolMetadataCache
from ..services.host import is_child_session
from .prunable_list import extract_parameter_key
from .session_state import SessionStateStore
from .strategies import history_from_body

logger = logging.getLogger(__name__)

NO_IDS_MESSAGE = "No IDs provided. Check the <prunable-tools> list for available IDs to prune."
INVALID_REASON_MESSAGE = (
    "No valid pruning reason found. Use 'completion', 'noise', or 'consolidation' as the first element."
)
NO_NUMERIC_IDS_MESSAGE = (
    "No numeric IDs provided. Format: [reason, id1, id2, ...] where reason is "
    "'completion', 'noise', or 'consolidation'."
)
NOTHING_TO_PRUNE_MESSAGE = "No prunable tool outputs match the given IDs."
CHILD_SESSION_MESSAGE = "Pruning is not available in subagent sessions; the parent session manages the context."


def _parse_reason(value: object) -> Optional[PruneReason]:
    if not isinstance(value, str):
        return None
    try:
        return PruneReason(value.strip().lower())
    except ValueError:
        return None


def _parse_numeric_ids(values: Sequence[object]) -> List[int]:
    numeric_ids: List[int] = []
    for value in values:
        if isinstance(value, bool):
            continue
        if isinstance(value, int):
            numeric_ids.append(value)
            continue
        if isinstance(value, str):
            try:
                numeric_ids.append(int(value.strip()))
            except ValueError:
                continue
    return numeric_ids


def parse_prune_directive(ids: Optional[Sequence[object]], reason: Optional[str] = None) -> PruneDirective:
    """
    Valide l'entrée d'une action de pruning.

    Raises:
        PruneActionError: Aucun id, raison inconnue ou aucun id numérique
    """
    if not ids:
        raise PruneActionError(NO_IDS_MESSAGE)

    items = list(ids)
    leading = _parse_reason(items[0])
    if reason is not None:
        parsed = _parse_reason(reason)
        if parsed is None:
            raise PruneActionError(INVALID_REASON_MESSAGE, reason=str(reason))
        if leading is not None:
            items = items[1:]
    else:
        if leading is None:
            raise PruneActionError(INVALID_REASON_MESSAGE, reason=str(items[0]))
        parsed = leading
        items = items[1:]

    numeric_ids = _parse_numeric_ids(items)
    if not numeric_ids:
        raise PruneActionError(NO_NUMERIC_IDS_MESSAGE, reason=parsed.value)
    return PruneDirective(reason=parsed, numeric_ids=tuple(numeric_ids))


@dataclass
class PruneOutcome:
    """Résultat d'une action de pruning."""
    message: str
    reason: PruneReason
    pruned: List[str] = field(default_factory=list)
    tokens_saved: int = 0


def format_prune_result(call_ids: List[str], cache: ToolMetadataCache, tokens_saved: int) -> str:
    """Texte de confirmation: une ligne `→ outil: résumé` par appel élagué."""
    if not call_ids:
        return NOTHING_TO_PRUNE_MESSAGE
    lines = [f"Pruned {len(call_ids)} tool output(s) (~{format_token_count(tokens_saved)} tokens):"]
    for call_id in call_ids:
        record = cache.get(call_id)
        if record is None:
            lines.append(f"→ {call_id}")
            continue
        key = extract_parameter_key(record)
        lines.append(f"→ {record.tool_name}: {key}" if key else f"→ {record.tool_name}")
    return "\n".join(lines)


async def estimate_pruned_tokens(
    host,
    session_id: str,
    call_ids: List[str],
    cache: ToolMetadataCache,
    chars_per_token: int,
) -> int:
    """Estime les tokens des résultats élagués d'après l'historique de l'hôte."""
    if not call_ids:
        return 0
    try:
        body = await host.get_conversation(session_id)
    except HostQueryError as e:
        logger.warning(f"Historique indisponible pour {session_id}, économies non estimées: {e}")
        return 0
    history = history_from_body(body, cache) if body is not None else None
    if history is None:
        return 0
    return sum(estimate_tokens(history.result_texts.get(call_id, ""), chars_per_token) for call_id in call_ids)


async def execute_prune_action(
    session_id: str,
    ids: Optional[Sequence[object]],
    *,
    store: SessionStateStore,
    cache: ToolMetadataCache,
    host,
    settings: Settings,
    reason: Optional[str] = None,
) -> PruneOutcome:
    """
    Exécute une action de pruning explicite pour une session.

    Une session enfant ne peut rien élaguer. Les alias inconnus et les outils
    protégés sont ignorés. Les call ids résolus sont ajoutés au store, les
    tokens économisés enregistrés et le compteur de nudge remis à zéro.

    Raises:
        PruneActionError: Entrée invalide (état inchangé)
    """
    directive = parse_prune_directive(ids, reason)

    if await is_child_session(host, store, session_id):
        logger.debug(f"Pruning explicite refusé pour la session enfant {session_id}")
        return PruneOutcome(message=CHILD_SESSION_MESSAGE, reason=directive.reason)

    protected = settings.protected_tool_set
    resolved: List[str] = []
    for call_id in store.resolve_numeric_ids(session_id, directive.numeric_ids):
        record = cache.get(call_id)
        if record is not None and record.tool_name.lower() in protected:
            logger.debug(f"Outil protégé ignoré: {record.tool_name} ({call_id})")
            continue
        resolved.append(call_id)

    added = store.add_pruned_ids(session_id, resolved)
    store.reset_nudge_counter(session_id)
    if not added:
        return PruneOutcome(message=NOTHING_TO_PRUNE_MESSAGE, reason=directive.reason)

    tokens = await estimate_pruned_tokens(host, session_id, added, cache, settings.chars_per_token)
    store.record_tokens_saved(session_id, tokens)
    tokens_saved = store.consume_tokens_counter(session_id)

    logger.info(
        f"✂️ Pruning explicite ({directive.reason.value}) {session_id}: "
        f"{len(added)} sortie(s), ~{format_token_count(tokens_saved)} tokens"
    )
    return PruneOutcome(
        message=format_prune_result(added, cache, tokens_saved),
        reason=directive.reason,
        pruned=added,
        tokens_saved=tokens_saved,
    )
