"""
Moteur de stratégies: exécute les stratégies activées sur un historique.
"""
import logging

from ...config.settings import Settings
from ...core.models import AnalysisResult
from .deduplication import DeduplicationStrategy
from .history import ConversationHistory
from .supersede_writes import SupersedeWritesStrategy

logger = logging.getLogger(__name__)


class StrategyEngine:
    """Combine déduplication et supersede-writes selon la configuration."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.deduplication = DeduplicationStrategy(
            settings.protected_tools, settings.recency_floor_turns
        )
        self.supersede_writes = SupersedeWritesStrategy(
            settings.protected_tools,
            settings.recency_floor_turns,
            write_tools=settings.supersede_writes.write_tools,
            read_tools=settings.supersede_writes.read_tools,
        )

    def analyze(self, history: ConversationHistory) -> AnalysisResult:
        result = AnalysisResult()
        if self.settings.deduplication.enabled:
            result.deduplicated = self.deduplication.analyze(history)
        if self.settings.supersede_writes.enabled:
            result.superseded = self.supersede_writes.analyze(history)
        logger.debug(
            f"Analyse: {len(result.deduplicated)} doublon(s), "
            f"{len(result.superseded)} écriture(s) remplacée(s)"
        )
        return result
