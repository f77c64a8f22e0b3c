"""
Vue ordonnée de l'historique d'une conversation pour les stratégies.

Les invocations d'outils sont extraites du body (format détecté) avec leur
position et l'index du tour utilisateur auquel elles appartiennent.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ...core.models import ToolInvocation, normalize_call_id
from ...proxy.formats import FormatDescriptor, detect_format
from ...proxy.tool_cache import ToolMetadataCache

logger = logging.getLogger(__name__)


@dataclass
class ConversationHistory:
    """Invocations ordonnées + textes des résultats d'une conversation."""
    invocations: List[ToolInvocation] = field(default_factory=list)
    total_turns: int = 0
    result_texts: Dict[str, str] = field(default_factory=dict)

    def latest_turn_floor(self, recency_floor_turns: int) -> Optional[int]:
        """Premier index de tour exempté par le plancher de récence (None si désactivé)."""
        if recency_floor_turns <= 0:
            return None
        return self.total_turns - recency_floor_turns + 1


def build_history(
    descriptor: FormatDescriptor,
    messages: List[Any],
    cache: Optional[ToolMetadataCache] = None,
) -> ConversationHistory:
    """
    Construit l'historique d'une conversation depuis son tableau de messages.

    Args:
        descriptor: Descripteur du format
        messages: Tableau de messages/items
        cache: Cache alimenté au passage (optionnel)

    Returns:
        ConversationHistory
    """
    history = ConversationHistory()
    seen: set = set()
    turn_index = 0

    for message in messages:
        if descriptor.is_user_turn(message):
            turn_index += 1

        for record in descriptor.iter_tool_calls(message):
            call_id = normalize_call_id(record.call_id)
            if cache is not None:
                cache.record(record)
            if call_id in seen:
                continue
            seen.add(call_id)
            history.invocations.append(ToolInvocation(
                call_id=call_id,
                tool_name=record.tool_name,
                parameters=record.parameters,
                position=len(history.invocations),
                turn_index=turn_index,
            ))

        for raw_id, text in descriptor.iter_tool_results(message):
            history.result_texts[normalize_call_id(raw_id)] = text

    history.total_turns = turn_index
    return history


def history_from_body(body: Any, cache: Optional[ToolMetadataCache] = None) -> Optional[ConversationHistory]:
    """Détecte le format d'un body et en extrait l'historique (None si non reconnu)."""
    descriptor = detect_format(body)
    if descriptor is None:
        return None
    messages = descriptor.locate_messages(body)
    if messages is None:
        return None
    return build_history(descriptor, messages, cache)
