"""
Couche proxy: descripteurs de format, cache des outils, gateway et client amont.
"""

from .formats import FormatDescriptor, FormatKind, detect_format, get_descriptor
from .tool_cache import ToolMetadataCache
from .gateway import ContextGateway, GatewayTransport, InterceptionResult
from .client import ProxyClient

__all__ = [
    "FormatDescriptor",
    "FormatKind",
    "detect_format",
    "get_descriptor",
    "ToolMetadataCache",
    "ContextGateway",
    "GatewayTransport",
    "InterceptionResult",
    "ProxyClient",
]
