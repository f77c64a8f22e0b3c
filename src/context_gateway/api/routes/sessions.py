"""
Routes API de gestion des sessions (idle, prune, liste élagable).
"""
from typing import List, Optional, Union

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ...core.exceptions import PruneActionError
from ...services.pruning_service import PruningService
from ..dependencies import get_service

router = APIRouter()


class PruneRequest(BaseModel):
    """Corps d'une action de pruning explicite."""
    reason: Optional[str] = None
    ids: List[Union[str, int]] = Field(default_factory=list)


@router.post("/{session_id}/idle")
async def api_session_idle(session_id: str, service: PruningService = Depends(get_service)):
    """Signal d'inactivité: planifie l'analyse en arrière-plan."""
    scheduled = await service.on_idle(session_id)
    return {"session_id": session_id, "scheduled": scheduled}


@router.post("/{session_id}/prune")
async def api_session_prune(
    session_id: str,
    payload: PruneRequest,
    service: PruningService = Depends(get_service),
):
    """Action de pruning explicite; 400 avec le message de rejet si l'entrée est invalide."""
    try:
        outcome = await service.prune(session_id, payload.ids, payload.reason)
    except PruneActionError as e:
        return JSONResponse(status_code=400, content={"error": e.code, "message": e.message})
    return {
        "message": outcome.message,
        "reason": outcome.reason.value,
        "pruned": outcome.pruned,
        "tokens_saved": outcome.tokens_saved,
    }


@router.get("/{session_id}/prunable")
async def api_session_prunable(session_id: str, service: PruningService = Depends(get_service)):
    """Liste <prunable-tools> courante de la session."""
    prunable = await service.prunable_list(session_id)
    return {"list": prunable.text, "numeric_ids": prunable.numeric_ids}


@router.get("/{session_id}")
async def api_session_summary(session_id: str, service: PruningService = Depends(get_service)):
    """Résumé de l'état de pruning d'une session."""
    return service.session_summary(session_id)
