"""
Base commune des stratégies de pruning.

Une stratégie est une fonction pure (historique, outils protégés, plancher de
récence) -> ensemble de call ids candidats. Elle ne touche jamais au store.
"""
from abc import ABC, abstractmethod
from typing import Iterable, Set

from ...core.models import ToolInvocation
from .history import ConversationHistory


class PruningStrategy(ABC):
    """Stratégie déterministe de sélection de candidats."""

    name: str = ""

    def __init__(self, protected_tools: Iterable[str] = (), recency_floor_turns: int = 0):
        self.protected_tools = frozenset(t.lower() for t in protected_tools)
        self.recency_floor_turns = max(0, recency_floor_turns)

    def is_protected(self, tool_name: str) -> bool:
        return tool_name.lower() in self.protected_tools

    def is_eligible(self, invocation: ToolInvocation, history: ConversationHistory) -> bool:
        """Ni outil protégé, ni dans les N derniers tours."""
        if self.is_protected(invocation.tool_name):
            return False
        floor = history.latest_turn_floor(self.recency_floor_turns)
        return floor is None or invocation.turn_index < floor

    def analyze(self, history: ConversationHistory) -> Set[str]:
        candidates = self.find_candidates(history)
        by_id = {inv.call_id: inv for inv in history.invocations}
        return {
            call_id for call_id in candidates
            if call_id in by_id and self.is_eligible(by_id[call_id], history)
        }

    @abstractmethod
    def find_candidates(self, history: ConversationHistory) -> Set[str]:
        """Candidats bruts, avant filtrage protégés/récence."""
