"""Stratégies déterministes de sélection des tool results élagables."""

from .history import ConversationHistory, build_history, history_from_body
from .base import PruningStrategy
from .deduplication import DeduplicationStrategy, normalize_parameters, tool_signature
from .supersede_writes import SupersedeWritesStrategy, extract_path
from .engine import StrategyEngine

__all__ = [
    "ConversationHistory",
    "build_history",
    "history_from_body",
    "PruningStrategy",
    "DeduplicationStrategy",
    "normalize_parameters",
    "tool_signature",
    "SupersedeWritesStrategy",
    "extract_path",
    "StrategyEngine",
]
