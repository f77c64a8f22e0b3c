"""
Dataclasses métier du Context Pruning Gateway.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Set, Tuple


def normalize_call_id(call_id: str) -> str:
    """Normalise un identifiant d'appel (comparaison insensible à la casse)."""
    return call_id.strip().lower()


class PruneReason(str, Enum):
    """Raison déclarée d'une action de pruning explicite."""
    COMPLETION = "completion"
    NOISE = "noise"
    CONSOLIDATION = "consolidation"


@dataclass(frozen=True)
class ToolCallRecord:
    """Invocation d'outil observée dans une requête sortante."""
    call_id: str
    tool_name: str
    parameters: Any = None


@dataclass(frozen=True)
class ToolResultRef:
    """Référence vers un tool result présent dans un tableau de messages."""
    call_id: str
    tool_name: Optional[str] = None
    content: str = ""


@dataclass(frozen=True)
class PruneDirective:
    """Directive de pruning transitoire, résolue immédiatement en call ids."""
    reason: PruneReason
    numeric_ids: Tuple[int, ...]


@dataclass
class SessionState:
    """
    État de pruning d'une conversation.

    `numeric_ids` est append-only: un call id garde le même alias numérique
    pendant toute la vie de la session, même une fois élagué.
    """
    session_id: str
    pruned_call_ids: Set[str] = field(default_factory=set)
    numeric_ids: Dict[str, int] = field(default_factory=dict)
    call_ids_by_numeric: Dict[int, str] = field(default_factory=dict)
    next_numeric_id: int = 0
    tokens_saved_counter: int = 0
    total_tokens_saved: int = 0
    nudge_counter: int = 0
    parent_id: Optional[str] = None
    last_updated: Optional[str] = None

    @property
    def is_child(self) -> bool:
        return bool(self.parent_id)

    def touch(self):
        self.last_updated = datetime.now().isoformat()

    def to_dict(self) -> Dict[str, Any]:
        """Convertit l'état en dictionnaire sérialisable JSON."""
        return {
            "session_id": self.session_id,
            "pruned_call_ids": sorted(self.pruned_call_ids),
            "numeric_ids": dict(self.numeric_ids),
            "next_numeric_id": self.next_numeric_id,
            "tokens_saved_counter": self.tokens_saved_counter,
            "total_tokens_saved": self.total_tokens_saved,
            "nudge_counter": self.nudge_counter,
            "parent_id": self.parent_id,
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], numeric_id_base: int = 0) -> "SessionState":
        """Reconstruit un état depuis sa forme persistée (tolérante aux champs manquants)."""
        numeric_ids: Dict[str, int] = {}
        raw_map = data.get("numeric_ids")
        if isinstance(raw_map, dict):
            for call_id, value in raw_map.items():
                if isinstance(call_id, str) and isinstance(value, int) and not isinstance(value, bool):
                    numeric_ids[normalize_call_id(call_id)] = value

        pruned: Set[str] = set()
        raw_pruned = data.get("pruned_call_ids")
        if isinstance(raw_pruned, list):
            pruned = {normalize_call_id(x) for x in raw_pruned if isinstance(x, str)}

        next_id = data.get("next_numeric_id")
        floor = max(numeric_ids.values()) + 1 if numeric_ids else numeric_id_base
        if not isinstance(next_id, int) or next_id < floor:
            next_id = floor

        parent_id = data.get("parent_id")
        return cls(
            session_id=str(data.get("session_id", "")),
            pruned_call_ids=pruned,
            numeric_ids=numeric_ids,
            call_ids_by_numeric={v: k for k, v in numeric_ids.items()},
            next_numeric_id=next_id,
            tokens_saved_counter=_non_negative_int(data.get("tokens_saved_counter")),
            total_tokens_saved=_non_negative_int(data.get("total_tokens_saved")),
            nudge_counter=_non_negative_int(data.get("nudge_counter")),
            parent_id=parent_id if isinstance(parent_id, str) and parent_id else None,
            last_updated=data.get("last_updated") if isinstance(data.get("last_updated"), str) else None,
        )

    def summary(self) -> Dict[str, Any]:
        """Résumé exposé par l'API de gestion."""
        return {
            "session_id": self.session_id,
            "pruned_count": len(self.pruned_call_ids),
            "numeric_ids_assigned": len(self.numeric_ids),
            "tokens_saved_counter": self.tokens_saved_counter,
            "total_tokens_saved": self.total_tokens_saved,
            "parent_id": self.parent_id,
            "is_child": self.is_child,
            "last_updated": self.last_updated,
        }


@dataclass(frozen=True)
class ToolInvocation:
    """Invocation d'outil positionnée dans l'historique d'une conversation."""
    call_id: str
    tool_name: str
    parameters: Any
    position: int
    turn_index: int


@dataclass
class AnalysisResult:
    """Candidats produits par une passe d'analyse, par stratégie."""
    deduplicated: Set[str] = field(default_factory=set)
    superseded: Set[str] = field(default_factory=set)

    @property
    def candidates(self) -> Set[str]:
        return self.deduplicated | self.superseded


def _non_negative_int(value: object) -> int:
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return value
    return 0
