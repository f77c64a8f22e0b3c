"""
Router principal de l'API.
"""
from fastapi import APIRouter

from .routes import health, proxy, sessions, websocket

# Router principal
api_router = APIRouter()

# Inclusion des sous-routers
api_router.include_router(sessions.router, prefix="/api/sessions", tags=["sessions"])
api_router.include_router(health.router, prefix="", tags=["health"])
api_router.include_router(websocket.router, prefix="", tags=["websocket"])
api_router.include_router(proxy.router, prefix="", tags=["proxy"])
