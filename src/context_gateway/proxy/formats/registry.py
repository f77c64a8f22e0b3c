"""Registre ordonné des descripteurs de format.

Chaque body est présenté à tous les descripteurs: il n'est revendiqué que si
exactement un descripteur le reconnaît. Zéro ou plusieurs correspondances =>
body non reconnu, transmis sans modification.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from .anthropic import AnthropicFormat
from .base import FormatDescriptor, FormatKind
from .bedrock import BedrockFormat
from .openai_chat import OpenAIChatFormat
from .openai_responses import OpenAIResponsesFormat

logger = logging.getLogger(__name__)

DESCRIPTORS: tuple[FormatDescriptor, ...] = (
    AnthropicFormat(),
    BedrockFormat(),
    OpenAIResponsesFormat(),
    OpenAIChatFormat(),
)

# Ajouter un FormatKind sans descripteur doit échouer dès l'import
_registered = {descriptor.kind for descriptor in DESCRIPTORS}
if _registered != set(FormatKind):
    raise RuntimeError(f"Descripteurs manquants: {set(FormatKind) - _registered}")


def detect_format(body: Any) -> Optional[FormatDescriptor]:
    """Retourne l'unique descripteur qui revendique `body`, sinon None."""
    if not isinstance(body, dict):
        return None

    matches = [descriptor for descriptor in DESCRIPTORS if descriptor.detect(body)]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        logger.warning(f"Body ambigu ({', '.join(d.name for d in matches)}), transmis sans modification")
    return None


def get_descriptor(kind: FormatKind) -> FormatDescriptor:
    for descriptor in DESCRIPTORS:
        if descriptor.kind == kind:
            return descriptor
    raise KeyError(kind)
