"""Bedrock Converse: tableau `system` + `inferenceConfig` au niveau racine.

Appels: blocs `{"toolUse": {"toolUseId", "name", "input"}}` côté assistant.
Résultats: blocs `{"toolResult": {"toolUseId", "content": [...]}}` côté user.
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


class BedrockFormat(FormatDescriptor):
    kind = FormatKind.BEDROCK

    def detect(self, body: Body) -> bool:
        messages = body.get("messages")
        if not isinstance(messages, list) or "input" in body:
            return False
        system = body.get("system")
        if system is not None and not isinstance(system, list):
            return False
        styles = block_styles(messages)
        if "anthropic" in styles:
            return False
        return "inferenceConfig" in body or "bedrock" in styles

    def locate_messages(self, body: Body) -> Optional[Messages]:
        messages = body.get("messages")
        return messages if isinstance(messages, list) else None

    def inject_system_note(self, body: Body, text: str) -> bool:
        if not text:
            return False
        system = body.get("system")
        if not isinstance(system, list):
            system = []
        system.append({"text": text})
        body["system"] = system
        return True

    def append_turn(self, body: Body, text: str) -> bool:
        messages = self.locate_messages(body)
        if not text or messages is None:
            return False
        messages.append({"role": "user", "content": [{"text": text}]})
        return True

    def iter_tool_calls(self, message: Any) -> Iterator[ToolCallRecord]:
        if not isinstance(message, dict) or message.get("role") != "assistant":
            return
        content = message.get("content")
        if not isinstance(content, list):
            return
        for block in content:
            tool_use = block.get("toolUse") if isinstance(block, dict) else None
            if not isinstance(tool_use, dict):
                continue
            call_id = tool_use.get("toolUseId")
            name = tool_use.get("name")
            if not isinstance(call_id, str) or not call_id or not isinstance(name, str):
                continue
            ok, params = parse_arguments(tool_use.get("input"), call_id=call_id, tool_name=name)
            if ok:
                yield ToolCallRecord(call_id=call_id, tool_name=name, parameters=params)

    def iter_tool_results(self, message: Any) -> Iterator[tuple[str, str]]:
        if not isinstance(message, dict) or message.get("role") != "user":
            return
        content = message.get("content")
        if not isinstance(content, list):
            return
        for block in content:
            result = block.get("toolResult") if isinstance(block, dict) else None
            if not isinstance(result, dict):
                continue
            tool_use_id = result.get("toolUseId")
            if isinstance(tool_use_id, str) and tool_use_id:
                yield tool_use_id, content_to_text(result.get("content"))

    def overwrite_in_message(self, message: Any, call_id: str, replacement: str) -> bool:
        if not isinstance(message, dict) or message.get("role") != "user":
            return False
        content = message.get("content")
        if not isinstance(content, list):
            return False
        redacted = [{"text": replacement}]
        modified = False
        for block in content:
            result = block.get("toolResult") if isinstance(block, dict) else None
            if not isinstance(result, dict):
                continue
            if same_call_id(result.get("toolUseId"), call_id) and result.get("content") != redacted:
                result["content"] = [{"text": replacement}]
                modified = True
        return modified

    def is_user_turn(self, message: Any) -> bool:
        if not isinstance(message, dict) or message.get("role") != "user":
            return False
        content = message.get("content")
        if isinstance(content, str):
            return True
        if isinstance(content, list):
            return any(isinstance(block, dict) and "toolResult" not in block for block in content)
        return False
