"""
Route API pour le health check.
"""
from fastapi import APIRouter, Depends

from ...services.pruning_service import PruningService
from ..dependencies import get_service

router = APIRouter()


@router.get("/health")
async def health_check(service: PruningService = Depends(get_service)):
    """État du gateway: sessions connues, appels en cache, analyses en cours."""
    return service.health()
