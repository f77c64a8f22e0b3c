"""Anthropic Messages API: tableau `system` au niveau racine + liste `messages`.

Appels: blocs `tool_use` (champ `id`) dans le contenu assistant.
Résultats: blocs `tool_result` (champ `tool_use_id`) dans un message user.
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


class AnthropicFormat(FormatDescriptor):
    kind = FormatKind.ANTHROPIC

    def detect(self, body: Body) -> bool:
        messages = body.get("messages")
        if not isinstance(messages, list):
            return False
        if "inferenceConfig" in body or "input" in body:
            return False
        styles = block_styles(messages)
        if "bedrock" in styles:
            return False
        return "system" in body or "anthropic" in styles

    def locate_messages(self, body: Body) -> Optional[Messages]:
        messages = body.get("messages")
        return messages if isinstance(messages, list) else None

    def inject_system_note(self, body: Body, text: str) -> bool:
        if not text:
            return False
        system = body.get("system")
        if isinstance(system, str):
            system = [{"type": "text", "text": system}] if system else []
        elif not isinstance(system, list):
            system = []
        system.append({"type": "text", "text": text})
        body["system"] = system
        return True

    def append_turn(self, body: Body, text: str) -> bool:
        messages = self.locate_messages(body)
        if not text or messages is None:
            return False
        messages.append({"role": "user", "content": [{"type": "text", "text": text}]})
        return True

    def iter_tool_calls(self, message: Any) -> Iterator[ToolCallRecord]:
        if not isinstance(message, dict) or message.get("role") != "assistant":
            return
        content = message.get("content")
        if not isinstance(content, list):
            return
        for block in content:
            if not isinstance(block, dict) or block.get("type") != "tool_use":
                continue
            call_id = block.get("id")
            name = block.get("name")
            if not isinstance(call_id, str) or not call_id or not isinstance(name, str):
                continue
            ok, params = parse_arguments(block.get("input"), call_id=call_id, tool_name=name)
            if ok:
                yield ToolCallRecord(call_id=call_id, tool_name=name, parameters=params)

    def iter_tool_results(self, message: Any) -> Iterator[tuple[str, str]]:
        if not isinstance(message, dict) or message.get("role") != "user":
            return
        content = message.get("content")
        if not isinstance(content, list):
            return
        for block in content:
            if not isinstance(block, dict) or block.get("type") != "tool_result":
                continue
            tool_use_id = block.get("tool_use_id")
            if isinstance(tool_use_id, str) and tool_use_id:
                yield tool_use_id, content_to_text(block.get("content"))

    def overwrite_in_message(self, message: Any, call_id: str, replacement: str) -> bool:
        if not isinstance(message, dict) or message.get("role") != "user":
            return False
        content = message.get("content")
        if not isinstance(content, list):
            return False
        modified = False
        for block in content:
            if not isinstance(block, dict) or block.get("type") != "tool_result":
                continue
            if same_call_id(block.get("tool_use_id"), call_id) and block.get("content") != replacement:
                block["content"] = replacement
                modified = True
        return modified

    def is_user_turn(self, message: Any) -> bool:
        if not isinstance(message, dict) or message.get("role") != "user":
            return False
        content = message.get("content")
        if isinstance(content, str):
            return True
        if isinstance(content, list):
            return any(
                isinstance(block, dict) and block.get("type") != "tool_result"
                for block in content
            )
        return False
