"""
Analyse en arrière-plan déclenchée par l'inactivité d'une conversation.

`AnalysisScheduler` lance chaque analyse dans une tâche asyncio indépendante
(fire-and-forget) bornée par un timeout; les échecs sont journalisés et
jamais propagés à l'appelant.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List

from ..core.exceptions import HostQueryError
from ..core.models import AnalysisResult
from ..core.tokens import estimate_tokens
from ..proxy.tool_cache import ToolMetadataCache
from ..services.host import is_child_session
from .session_state import SessionStateStore
from .strategies import StrategyEngine, history_from_body

logger = logging.getLogger(__name__)


@dataclass
class AnalysisOutcome:
    session_id: str
    skipped: bool = False
    result: AnalysisResult = field(default_factory=AnalysisResult)
    pruned: List[str] = field(default_factory=list)
    tokens_saved: int = 0


async def analyze_session(
    session_id: str,
    *,
    store: SessionStateStore,
    cache: ToolMetadataCache,
    host,
    engine: StrategyEngine,
    chars_per_token: int = 4,
) -> AnalysisOutcome:
    """
    Exécute les stratégies sur l'historique d'une session et valide les candidats.

    Une session enfant n'est jamais analysée. Un historique introuvable ou
    non reconnu donne une analyse vide.
    """
    if await is_child_session(host, store, session_id):
        logger.debug(f"Session enfant {session_id}: analyse ignorée")
        return AnalysisOutcome(session_id, skipped=True)

    try:
        body = await host.get_conversation(session_id)
    except HostQueryError as e:
        logger.warning(f"Historique indisponible pour {session_id}: {e}")
        return AnalysisOutcome(session_id, skipped=True)

    history = history_from_body(body, cache) if body is not None else None
    if history is None:
        logger.debug(f"Aucun historique exploitable pour {session_id}")
        return AnalysisOutcome(session_id, skipped=True)

    result = engine.analyze(history)
    positions = {inv.call_id: inv.position for inv in history.invocations}
    ordered = sorted(result.candidates, key=lambda call_id: positions.get(call_id, 0))
    added = store.add_pruned_ids(session_id, ordered)

    tokens = sum(estimate_tokens(history.result_texts.get(call_id, ""), chars_per_token) for call_id in added)
    if tokens:
        store.record_tokens_saved(session_id, tokens)
    if added:
        logger.info(f"🧹 Analyse {session_id}: {len(added)} sortie(s) élagable(s), ~{tokens} tokens")

    return AnalysisOutcome(session_id, result=result, pruned=added, tokens_saved=tokens)


class AnalysisScheduler:
    """Planifie les analyses: au plus une par session en cours."""

    def __init__(self, runner: Callable[[str], Awaitable[Any]], timeout_s: float = 30.0):
        self._runner = runner
        self.timeout_s = timeout_s
        self._tasks: Dict[str, asyncio.Task] = {}

    def spawn(self, session_id: str) -> bool:
        """
        Lance l'analyse d'une session en arrière-plan.

        Returns:
            False si une analyse est déjà en cours pour cette session
        """
        task = self._tasks.get(session_id)
        if task is not None and not task.done():
            return False
        task = asyncio.get_running_loop().create_task(self._run(session_id))
        self._tasks[session_id] = task
        task.add_done_callback(lambda t, sid=session_id: self._forget(sid, t))
        return True

    def _forget(self, session_id: str, task: asyncio.Task):
        if self._tasks.get(session_id) is task:
            del self._tasks[session_id]

    async def _run(self, session_id: str):
        try:
            await asyncio.wait_for(self._runner(session_id), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            logger.warning(f"Analyse de {session_id} interrompue après {self.timeout_s}s")
        except Exception:
            logger.exception(f"Échec de l'analyse en arrière-plan (session={session_id})")

    def is_running(self, session_id: str) -> bool:
        task = self._tasks.get(session_id)
        return task is not None and not task.done()

    @property
    def in_flight(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    async def drain(self):
        """Attend la fin des analyses en cours."""
        tasks = [task for task in self._tasks.values() if not task.done()]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
