"""
Services du Context Pruning Gateway.

`pruning_service` n'est pas réexporté ici: il dépend de `features`, qui
importe `services.host`.
"""

from .websocket_manager import ConnectionManager
from .host import HostClient, HostSession, SessionRegistry, HttpHostClient, is_child_session

__all__ = [
    "ConnectionManager",
    "HostClient",
    "HostSession",
    "SessionRegistry",
    "HttpHostClient",
    "is_child_session",
]
