"""OpenAI Responses API: liste plate `input` d'items typés.

Appels: items `function_call` (`call_id`, `name`, `arguments` sérialisés).
Résultats: items `function_call_output` (`call_id`, `output`).
"""

from __future__ import annotations

from typing import Any, Iterator, Optional

from ...core.models import ToolCallRecord
from .base import (
    Body,
    FormatDescriptor,
    FormatKind,
    Messages,
    content_to_text,
    parse_arguments,
    same_call_id,
)


class OpenAIResponsesFormat(FormatDescriptor):
    kind = FormatKind.OPENAI_RESPONSES

    def detect(self, body: Body) -> bool:
        return isinstance(body.get("input"), list) and "messages" not in body

    def locate_messages(self, body: Body) -> Optional[Messages]:
        items = body.get("input")
        return items if isinstance(items, list) else None

    def inject_system_note(self, body: Body, text: str) -> bool:
        if not text:
            return False
        instructions = body.get("instructions")
        if isinstance(instructions, str) and instructions:
            body["instructions"] = instructions + "\n\n" + text
        else:
            body["instructions"] = text
        return True

    def append_turn(self, body: Body, text: str) -> bool:
        items = self.locate_messages(body)
        if not text or items is None:
            return False
        items.append({"type": "message", "role": "user", "content": text})
        return True

    def iter_tool_calls(self, message: Any) -> Iterator[ToolCallRecord]:
        if not isinstance(message, dict) or message.get("type") != "function_call":
            return
        call_id = message.get("call_id")
        name = message.get("name")
        if not isinstance(call_id, str) or not call_id or not isinstance(name, str):
            return
        ok, params = parse_arguments(message.get("arguments"), call_id=call_id, tool_name=name)
        if ok:
            yield ToolCallRecord(call_id=call_id, tool_name=name, parameters=params)

    def iter_tool_results(self, message: Any) -> Iterator[tuple[str, str]]:
        if not isinstance(message, dict) or message.get("type") != "function_call_output":
            return
        call_id = message.get("call_id")
        if isinstance(call_id, str) and call_id:
            yield call_id, content_to_text(message.get("output"))

    def overwrite_in_message(self, message: Any, call_id: str, replacement: str) -> bool:
        if not isinstance(message, dict) or message.get("type") != "function_call_output":
            return False
        if not same_call_id(message.get("call_id"), call_id) or message.get("output") == replacement:
            return False
        message["output"] = replacement
        return True

    def is_user_turn(self, message: Any) -> bool:
        return (
            isinstance(message, dict)
            and message.get("role") == "user"
            and message.get("type", "message") == "message"
        )
