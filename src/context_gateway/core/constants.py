"""
Constantes globales du Context Pruning Gateway.
"""

# ============================================================================
# REDACTION
# ============================================================================
REDACTION_MARKER = "[Output removed to save context - information superseded or no longer needed]"

# ============================================================================
# OUTILS PROTÉGÉS
# ============================================================================
# Délégation, suivi des todos et l'outil de pruning lui-même
DEFAULT_PROTECTED_TOOLS = ("task", "todowrite", "todoread", "prune", "batch")

# ============================================================================
# STRATÉGIES
# ============================================================================
DEFAULT_WRITE_TOOLS = ("write", "edit", "multiedit")
DEFAULT_READ_TOOLS = ("read",)

# Clés de paramètres désignant un chemin, par ordre de priorité
PATH_PARAMETER_KEYS = ("filePath", "file_path", "path")

# 0 = plancher de récence désactivé
DEFAULT_RECENCY_FLOOR_TURNS = 0

# ============================================================================
# IDENTIFIANTS NUMÉRIQUES
# ============================================================================
NUMERIC_ID_BASE = 0

# ============================================================================
# TOKENS
# ============================================================================
DEFAULT_CHARS_PER_TOKEN = 4
TIKTOKEN_ENCODING = "cl100k_base"

# ============================================================================
# PRUNE TOOL / NUDGE
# ============================================================================
DEFAULT_NUDGE_FREQUENCY = 10

SYSTEM_REMINDER = (
    "<system-reminder>\n"
    "The tool outputs listed below can be removed from the context with the `prune` tool. "
    "Pass the reason first ('completion', 'noise' or 'consolidation'), then the numeric IDs.\n"
    "</system-reminder>"
)

NUDGE_INSTRUCTION = (
    "<instruction name=\"context_management\">\n"
    "Several tool outputs have accumulated. Review the list and prune the ones "
    "that are no longer needed before continuing.\n"
    "</instruction>"
)

# ============================================================================
# HEADERS / RÉSEAU
# ============================================================================
DEFAULT_SESSION_HEADER = "x-session-id"
DEFAULT_PARENT_HEADER = "x-parent-session-id"
DEFAULT_UPSTREAM_BASE_URL = "https://api.anthropic.com"
DEFAULT_ANALYSIS_TIMEOUT_S = 30.0

# ============================================================================
# STOCKAGE
# ============================================================================
DEFAULT_STORAGE_DIR = "~/.local/share/context-gateway/sessions"
