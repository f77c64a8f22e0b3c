"""Contrat des descripteurs de format.

Un descripteur par protocole filaire. Chaque descripteur sait:
- reconnaître la forme d'un body (`detect`), de façon mutuellement exclusive;
- localiser le tableau de messages;
- injecter une note système ou un tour utilisateur;
- énumérer les appels d'outils (pour le cache) et les tool results;
- écraser le contenu d'un tool result sur place.

Les descripteurs sont sans état. Les méthodes de mutation retournent un bool
indiquant si le body a réellement changé.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Iterator, Optional

from ...core.models import ToolCallRecord, ToolResultRef, normalize_call_id

logger = logging.getLogger(__name__)

Body = dict[str, Any]
Messages = list[Any]


class FormatKind(str, Enum):
    """Énumération fermée des protocoles supportés."""
    ANTHROPIC = "anthropic"
    BEDROCK = "bedrock"
    OPENAI_RESPONSES = "openai-responses"
    OPENAI_CHAT = "openai-chat"


class FormatDescriptor(ABC):
    """Adaptateur d'un protocole filaire vers l'interface uniforme du gateway."""

    kind: FormatKind

    @property
    def name(self) -> str:
        return self.kind.value

    @abstractmethod
    def detect(self, body: Body) -> bool:
        """True si ce descripteur revendique le body."""

    @abstractmethod
    def locate_messages(self, body: Body) -> Optional[Messages]:
        """Retourne le tableau de messages/items (référence mutable) ou None."""

    @abstractmethod
    def inject_system_note(self, body: Body, text: str) -> bool:
        """Ajoute `text` au champ système/instructions."""

    @abstractmethod
    def append_turn(self, body: Body, text: str) -> bool:
        """Ajoute un tour utilisateur contenant `text` en fin d'historique."""

    @abstractmethod
    def iter_tool_calls(self, message: Any) -> Iterator[ToolCallRecord]:
        """Invocations d'outils portées par un message (arguments invalides ignorés)."""

    @abstractmethod
    def iter_tool_results(self, message: Any) -> Iterator[tuple[str, str]]:
        """Couples (call id brut, contenu texte) des tool results d'un message."""

    @abstractmethod
    def overwrite_in_message(self, message: Any, call_id: str, replacement: str) -> bool:
        """Écrase les tool results de `call_id` dans un message; True si modifié."""

    @abstractmethod
    def is_user_turn(self, message: Any) -> bool:
        """True si le message ouvre un nouveau tour utilisateur (hors tool results)."""

    # ------------------------------------------------------------------
    # Opérations dérivées, communes à tous les formats
    # ------------------------------------------------------------------

    def list_tool_calls(self, messages: Messages) -> list[ToolCallRecord]:
        records: list[ToolCallRecord] = []
        for message in messages:
            records.extend(self.iter_tool_calls(message))
        return records

    def list_tool_results(self, messages: Messages, cache=None) -> list[ToolResultRef]:
        """Énumère les tool results; `cache` (optionnel) fournit le nom d'outil."""
        refs: list[ToolResultRef] = []
        for message in messages:
            for raw_id, content in self.iter_tool_results(message):
                call_id = normalize_call_id(raw_id)
                record = cache.get(call_id) if cache is not None else None
                refs.append(ToolResultRef(
                    call_id=call_id,
                    tool_name=record.tool_name if record else None,
                    content=content,
                ))
        return refs

    def overwrite_tool_result(self, messages: Messages, call_id: str, replacement: str) -> bool:
        target = normalize_call_id(call_id)
        replaced = False
        for message in messages:
            if self.overwrite_in_message(message, target, replacement):
                replaced = True
        return replaced

    def has_tool_results(self, messages: Messages) -> bool:
        return any(True for message in messages for _ in self.iter_tool_results(message))


# ----------------------------------------------------------------------
# Helpers partagés par les descripteurs
# ----------------------------------------------------------------------

def same_call_id(raw: object, normalized: str) -> bool:
    return isinstance(raw, str) and normalize_call_id(raw) == normalized


def parse_arguments(raw: object, *, call_id: str, tool_name: str) -> tuple[bool, Any]:
    """Décode des arguments sérialisés. Retourne (ok, valeur).

    Les arguments déjà structurés sont acceptés tels quels; une chaîne JSON
    invalide fait ignorer l'entrée.
    """
    if raw is None or isinstance(raw, (dict, list)):
        return True, raw
    if isinstance(raw, str):
        if not raw.strip():
            return True, {}
        try:
            return True, json.loads(raw)
        except json.JSONDecodeError:
            logger.debug(f"Arguments JSON invalides ignorés (call_id={call_id}, outil={tool_name})")
            return False, None
    return True, raw


def content_to_text(content: object) -> str:
    """Aplatit un contenu (str, blocs texte, blocs json) en texte pour l'estimation."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [content_to_text(item) for item in content]
        return "\n".join(p for p in parts if p)
    if isinstance(content, dict):
        text = content.get("text")
        if isinstance(text, str):
            return text
        if "json" in content:
            return json.dumps(content["json"], ensure_ascii=False)
        if "content" in content:
            return content_to_text(content["content"])
        return ""
    return str(content)


def iter_content_blocks(messages: Messages) -> Iterator[dict[str, Any]]:
    for message in messages:
        if not isinstance(message, dict):
            continue
        content = message.get("content")
        if not isinstance(content, list):
            continue
        for block in content:
            if isinstance(block, dict):
                yield block


def block_styles(messages: Messages) -> set[str]:
    """Styles de blocs outil présents: "anthropic" (type tool_use/tool_result),
    "bedrock" (clés toolUse/toolResult)."""
    styles: set[str] = set()
    for block in iter_content_blocks(messages):
        if block.get("type") in ("tool_use", "tool_result"):
            styles.add("anthropic")
        if "toolUse" in block or "toolResult" in block:
            styles.add("bedrock")
    return styles
