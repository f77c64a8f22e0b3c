"""OpenAI Chat Completions: `messages` seul, sans champ système racine.

Appels: `assistant.tool_calls[].{id, function.name, function.arguments}`.
Résultats: messages `role="tool"` portant `tool_call_id`.
"""

from __future__ import annotations

from typing import Any, Iterator, Optional

from ...core.models import ToolCallRecord
from .base import (
    Body,
    FormatDescriptor,
    FormatKind,
    Messages,
    block_styles,
    content_to_text,
    parse_arguments,
    same_call_id,
)

_SYSTEM_ROLES = ("system", "developer")


class OpenAIChatFormat(FormatDescriptor):
    kind = FormatKind.OPENAI_CHAT

    def detect(self, body: Body) -> bool:
        messages = body.get("messages")
        if not isinstance(messages, list):
            return False
        if "system" in body or "inferenceConfig" in body or "input" in body:
            return False
        return not block_styles(messages)

    def locate_messages(self, body: Body) -> Optional[Messages]:
        messages = body.get("messages")
        return messages if isinstance(messages, list) else None

    def inject_system_note(self, body: Body, text: str) -> bool:
        messages = self.locate_messages(body)
        if not text or messages is None:
            return False
        # Insertion juste après le bloc système de tête
        index = 0
        while index < len(messages):
            message = messages[index]
            if not isinstance(message, dict) or message.get("role") not in _SYSTEM_ROLES:
                break
            index += 1
        messages.insert(index, {"role": "system", "content": text})
        return True

    def append_turn(self, body: Body, text: str) -> bool:
        messages = self.locate_messages(body)
        if not text or messages is None:
            return False
        messages.append({"role": "user", "content": text})
        return True

    def iter_tool_calls(self, message: Any) -> Iterator[ToolCallRecord]:
        if not isinstance(message, dict) or message.get("role") != "assistant":
            return
        tool_calls = message.get("tool_calls")
        if not isinstance(tool_calls, list):
            return
        for tool_call in tool_calls:
            if not isinstance(tool_call, dict):
                continue
            call_id = tool_call.get("id")
            function = tool_call.get("function")
            if not isinstance(call_id, str) or not call_id or not isinstance(function, dict):
                continue
            name = function.get("name")
            if not isinstance(name, str) or not name:
                continue
            ok, params = parse_arguments(function.get("arguments"), call_id=call_id, tool_name=name)
            if ok:
                yield ToolCallRecord(call_id=call_id, tool_name=name, parameters=params)

    def iter_tool_results(self, message: Any) -> Iterator[tuple[str, str]]:
        if not isinstance(message, dict) or message.get("role") != "tool":
            return
        tool_call_id = message.get("tool_call_id")
        if isinstance(tool_call_id, str) and tool_call_id:
            yield tool_call_id, content_to_text(message.get("content"))

    def overwrite_in_message(self, message: Any, call_id: str, replacement: str) -> bool:
        if not isinstance(message, dict) or message.get("role") != "tool":
            return False
        if not same_call_id(message.get("tool_call_id"), call_id) or message.get("content") == replacement:
            return False
        message["content"] = replacement
        return True

    def is_user_turn(self, message: Any) -> bool:
        return isinstance(message, dict) and message.get("role") == "user"
