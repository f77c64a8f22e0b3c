"""
Client HTTPX vers le provider amont, équipé du GatewayTransport.

Retry avec backoff exponentiel sur les erreurs réseau uniquement: une
réponse 4xx/5xx est relayée telle quelle au client.
"""
import asyncio
import logging
from typing import Dict, Optional

import httpx

from ..config.settings import UpstreamConfig
from .gateway import ContextGateway, GatewayTransport

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (httpx.ReadError, httpx.ConnectError, httpx.TimeoutException)


class ProxyClient:
    """
    Client HTTP vers l'API LLM amont.

    Gère:
    - Le passage obligatoire par le gateway (transport)
    - Retry avec backoff exponentiel
    - Une pool de connexions partagée
    """

    def __init__(
        self,
        gateway: ContextGateway,
        upstream: UpstreamConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.upstream = upstream
        self.max_retries = upstream.max_retries
        self.retry_delay = upstream.retry_delay_s
        self.transport = GatewayTransport(gateway, transport)
        self._client = httpx.AsyncClient(
            base_url=upstream.base_url,
            transport=self.transport,
            # Le read timeout est critique pour le streaming
            timeout=httpx.Timeout(upstream.timeout_s, connect=10.0),
        )

    def build_request(
        self,
        method: str,
        path: str,
        headers: Dict[str, str],
        content: bytes,
        params: Optional[Dict[str, str]] = None,
    ) -> httpx.Request:
        """Construit une requête vers l'amont."""
        return self._client.build_request(method, path, headers=headers, content=content, params=params)

    async def send(self, request: httpx.Request, stream: bool = False) -> httpx.Response:
        """
        Envoie une requête avec retry sur erreur réseau.

        En mode stream, l'appelant doit fermer la réponse (`aclose`).
        """
        for attempt in range(self.max_retries + 1):
            try:
                return await self._client.send(request, stream=stream)
            except RETRYABLE_ERRORS as e:
                if attempt >= self.max_retries:
                    raise
                delay = self.retry_delay * (2 ** attempt)
                logger.warning(f"⚠️ Retry {attempt + 1}/{self.max_retries} après {delay:.1f}s: {e}")
                await asyncio.sleep(delay)
        raise httpx.ConnectError("Échec après retries")

    async def aclose(self):
        await self._client.aclose()
