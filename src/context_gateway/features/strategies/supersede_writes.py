"""
Supersede-writes: le résultat d'une écriture est candidat dès qu'une lecture
ultérieure du même chemin existe dans la conversation.
"""
import os
from typing import Any, Dict, Iterable, List, Optional, Set

from ...core.constants import DEFAULT_READ_TOOLS, DEFAULT_WRITE_TOOLS, PATH_PARAMETER_KEYS
from .base import PruningStrategy
from .history import ConversationHistory


def extract_path(parameters: Any) -> Optional[str]:
    """Chemin désigné par les paramètres d'un appel, normalisé (None si absent)."""
    if not isinstance(parameters, dict):
        return None
    for key in PATH_PARAMETER_KEYS:
        value = parameters.get(key)
        if isinstance(value, str) and value.strip():
            return os.path.normpath(value.strip())
    return None


class SupersedeWritesStrategy(PruningStrategy):
    name = "supersede_writes"

    def __init__(
        self,
        protected_tools: Iterable[str] = (),
        recency_floor_turns: int = 0,
        write_tools: Iterable[str] = DEFAULT_WRITE_TOOLS,
        read_tools: Iterable[str] = DEFAULT_READ_TOOLS,
    ):
        super().__init__(protected_tools, recency_floor_turns)
        self.write_tools = frozenset(t.lower() for t in write_tools)
        self.read_tools = frozenset(t.lower() for t in read_tools)

    def find_candidates(self, history: ConversationHistory) -> Set[str]:
        # Dernière position de lecture par chemin
        last_read: Dict[str, int] = {}
        for invocation in history.invocations:
            if invocation.tool_name.lower() not in self.read_tools:
                continue
            path = extract_path(invocation.parameters)
            if path is not None:
                last_read[path] = max(last_read.get(path, -1), invocation.position)

        candidates: Set[str] = set()
        for invocation in history.invocations:
            if invocation.tool_name.lower() not in self.write_tools:
                continue
            path = extract_path(invocation.parameters)
            if path is not None and last_read.get(path, -1) > invocation.position:
                candidates.add(invocation.call_id)
        return candidates
