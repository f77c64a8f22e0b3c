"""État de pruning par conversation et sa persistance."""

from .storage import JsonSessionStorage
from .store import SessionStateStore

__all__ = [
    "JsonSessionStorage",
    "SessionStateStore",
]
