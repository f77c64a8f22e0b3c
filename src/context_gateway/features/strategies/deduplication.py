"""
Déduplication: parmi les appels identiques (outil + paramètres normalisés),
seul le plus récent est conservé.
"""
import json
from collections import defaultdict
from typing import Any, Dict, List, Set, Tuple

from ...core.models import ToolInvocation
from .base import PruningStrategy
from .history import ConversationHistory


def normalize_parameters(value: Any) -> Any:
    """Supprime les valeurs nulles des objets, récursivement."""
    if isinstance(value, dict):
        return {k: normalize_parameters(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [normalize_parameters(v) for v in value]
    return value


def tool_signature(invocation: ToolInvocation) -> Tuple[str, str]:
    """Signature (outil, paramètres sérialisés à clés triées)."""
    params = normalize_parameters(invocation.parameters)
    serialized = json.dumps(params, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    return invocation.tool_name.lower(), serialized


class DeduplicationStrategy(PruningStrategy):
    name = "deduplication"

    def find_candidates(self, history: ConversationHistory) -> Set[str]:
        groups: Dict[Tuple[str, str], List[ToolInvocation]] = defaultdict(list)
        for invocation in history.invocations:
            groups[tool_signature(invocation)].append(invocation)

        candidates: Set[str] = set()
        for members in groups.values():
            if len(members) < 2:
                continue
            latest = max(members, key=lambda inv: inv.position)
            candidates.update(inv.call_id for inv in members if inv is not latest)
        return candidates
