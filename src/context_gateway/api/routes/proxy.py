"""
Route proxy transparente /v1/{path}.

Le body passe par le GatewayTransport du client amont; la réponse est
relayée telle quelle (chunk par chunk pour les flux SSE).
"""
import logging

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from starlette.background import BackgroundTask

from ...services.pruning_service import PruningService
from ..dependencies import get_service

logger = logging.getLogger(__name__)

router = APIRouter()

# En-têtes recalculés par httpx ou propres à la connexion
_REQUEST_SKIP_HEADERS = {"host", "content-length", "connection", "transfer-encoding", "accept-encoding"}
_RESPONSE_SKIP_HEADERS = {"content-length", "content-encoding", "transfer-encoding", "connection"}


def _forward_headers(request: Request) -> dict:
    return {k: v for k, v in request.headers.items() if k.lower() not in _REQUEST_SKIP_HEADERS}


def _response_headers(response: httpx.Response) -> dict:
    return {k: v for k, v in response.headers.items() if k.lower() not in _RESPONSE_SKIP_HEADERS}


@router.post("/v1/{path:path}")
async def proxy_request(path: str, request: Request, service: PruningService = Depends(get_service)):
    """
    Relaie une requête vers le provider amont.

    Le pruning est appliqué par le transport du client; une erreur réseau
    persistante donne une 502.
    """
    body = await request.body()
    upstream_request = service.client.build_request(
        "POST",
        f"/v1/{path}",
        headers=_forward_headers(request),
        content=body,
        params=dict(request.query_params) or None,
    )

    try:
        response = await service.client.send(upstream_request, stream=True)
    except httpx.HTTPError as e:
        logger.error(f"Provider injoignable ({path}): {e}")
        return JSONResponse(
            status_code=502,
            content={"error": {"type": "upstream_error", "message": str(e)}},
        )

    content_type = response.headers.get("content-type", "")
    if "text/event-stream" in content_type:
        return StreamingResponse(
            response.aiter_bytes(),
            status_code=response.status_code,
            headers=_response_headers(response),
            background=BackgroundTask(response.aclose),
        )

    try:
        content = await response.aread()
    finally:
        await response.aclose()
    return Response(
        content=content,
        status_code=response.status_code,
        headers=_response_headers(response),
    )
