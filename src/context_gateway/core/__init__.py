"""
Cœur métier du Context Pruning Gateway.
Modules indépendants sans dépendances vers les autres couches du package.
"""

from .exceptions import (
    ContextGatewayError,
    ConfigurationError,
    PersistenceError,
    HostQueryError,
    PruneActionError,
)
from .constants import (
    REDACTION_MARKER,
    DEFAULT_PROTECTED_TOOLS,
    NUMERIC_ID_BASE,
)
from .tokens import estimate_tokens, estimate_tokens_batch, format_token_count
from .models import (
    normalize_call_id,
    PruneReason,
    ToolCallRecord,
    ToolResultRef,
    PruneDirective,
    SessionState,
    ToolInvocation,
    AnalysisResult,
)

__all__ = [
    # Exceptions
    "ContextGatewayError",
    "ConfigurationError",
    "PersistenceError",
    "HostQueryError",
    "PruneActionError",
    # Constants
    "REDACTION_MARKER",
    "DEFAULT_PROTECTED_TOOLS",
    "NUMERIC_ID_BASE",
    # Tokens
    "estimate_tokens",
    "estimate_tokens_batch",
    "format_token_count",
    # Models
    "normalize_call_id",
    "PruneReason",
    "ToolCallRecord",
    "ToolResultRef",
    "PruneDirective",
    "SessionState",
    "ToolInvocation",
    "AnalysisResult",
]
