"""
Context Pruning Gateway - Application FastAPI Factory.
Proxy LLM qui expurge les tool results obsolètes avant l'envoi au provider.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from .api.router import api_router
from .config.loader import get_settings
from .config.settings import Settings
from .core.exceptions import ConfigurationError
from .services.pruning_service import PruningService

logger = logging.getLogger(__name__)


def _load_settings() -> Settings:
    try:
        return get_settings()
    except ConfigurationError as e:
        logger.warning(f"Configuration indisponible, valeurs par défaut utilisées: {e}")
        return Settings()


def create_app(settings: Optional[Settings] = None, service: Optional[PruningService] = None) -> FastAPI:
    """
    Factory pour créer l'application FastAPI.

    Args:
        settings: Configuration (chargée depuis config.toml si absente)
        service: Service déjà construit (tests)

    Returns:
        Instance configurée de FastAPI
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Gestion du cycle de vie de l'application."""
        # Startup
        await _startup(app, settings)
        yield
        # Shutdown
        await _shutdown(app)

    app = FastAPI(
        title="Context Pruning Gateway",
        description="Proxy LLM qui remplace les tool results obsolètes par un marqueur",
        version="1.0.0",
        lifespan=lifespan,
    )
    if service is not None:
        app.state.service = service

    # Inclusion des routes API
    app.include_router(api_router)
    return app


async def _startup(app: FastAPI, settings: Optional[Settings]):
    """Initialisation au démarrage."""
    service = getattr(app.state, "service", None)
    if service is None:
        service = PruningService(settings or _load_settings())
        app.state.service = service

    await service.start()
    logger.info(
        f"🚀 Context Pruning Gateway démarré (amont: {service.settings.upstream.base_url}, "
        f"{len(service.store.session_ids())} session(s) rechargée(s))"
    )


async def _shutdown(app: FastAPI):
    """Arrêt de l'application."""
    service = getattr(app.state, "service", None)
    if service is not None:
        await service.shutdown()
    logger.info("✅ Gateway arrêté proprement")


# Crée l'application pour uvicorn
app = create_app()
