"""
Dépendances FastAPI partagées par les routes.
"""
from fastapi import HTTPException, Request

from ..services.pruning_service import PruningService


def get_service(request: Request) -> PruningService:
    """Retourne le `PruningService` de l'application."""
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Service non initialisé")
    return service
