"""
Configuration des tests pytest.
"""
import json
import os
import sys

import pytest

# Ajoute src au path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from context_gateway.config.settings import Settings, StorageConfig  # noqa: E402
from context_gateway.core import tokens  # noqa: E402

USER_TURN = "__user__"


@pytest.fixture(autouse=True)
def char_token_fallback(monkeypatch):
    """Force l'estimation caractères/token (pas de téléchargement tiktoken)."""
    monkeypatch.setattr(tokens, "_get_encoding", lambda: None)


@pytest.fixture
def settings():
    """Settings par défaut sans persistance disque."""
    return Settings(storage=StorageConfig(enabled=False))


def _anthropic(steps):
    messages = [{"role": "user", "content": "Commence."}]
    for step in steps:
        if step == USER_TURN:
            messages.append({"role": "user", "content": [{"type": "text", "text": "Continue."}]})
            continue
        call_id, tool, params, output = step
        messages.append({
            "role": "assistant",
            "content": [{"type": "tool_use", "id": call_id, "name": tool, "input": params}],
        })
        messages.append({
            "role": "user",
            "content": [{"type": "tool_result", "tool_use_id": call_id, "content": output}],
        })
    return {"model": "claude-test", "system": [{"type": "text", "text": "S"}], "messages": messages}


def _bedrock(steps):
    messages = [{"role": "user", "content": [{"text": "Commence."}]}]
    for step in steps:
        if step == USER_TURN:
            messages.append({"role": "user", "content": [{"text": "Continue."}]})
            continue
        call_id, tool, params, output = step
        messages.append({
            "role": "assistant",
            "content": [{"toolUse": {"toolUseId": call_id, "name": tool, "input": params}}],
        })
        messages.append({
            "role": "user",
            "content": [{"toolResult": {"toolUseId": call_id, "content": [{"text": output}]}}],
        })
    return {"inferenceConfig": {"maxTokens": 512}, "system": [{"text": "S"}], "messages": messages}


def _openai_responses(steps):
    items = [{"type": "message", "role": "user", "content": "Commence."}]
    for step in steps:
        if step == USER_TURN:
            items.append({"type": "message", "role": "user", "content": "Continue."})
            continue
        call_id, tool, params, output = step
        items.append({"type": "function_call", "call_id": call_id, "name": tool, "arguments": json.dumps(params)})
        items.append({"type": "function_call_output", "call_id": call_id, "output": output})
    return {"model": "gpt-test", "instructions": "S", "input": items}


def _openai_chat(steps):
    messages = [{"role": "system", "content": "S"}, {"role": "user", "content": "Commence."}]
    for step in steps:
        if step == USER_TURN:
            messages.append({"role": "user", "content": "Continue."})
            continue
        call_id, tool, params, output = step
        messages.append({
            "role": "assistant",
            "content": None,
            "tool_calls": [{
                "id": call_id,
                "type": "function",
                "function": {"name": tool, "arguments": json.dumps(params)},
            }],
        })
        messages.append({"role": "tool", "tool_call_id": call_id, "content": output})
    return {"model": "gpt-test", "messages": messages}


BUILDERS = {
    "anthropic": _anthropic,
    "bedrock": _bedrock,
    "openai-responses": _openai_responses,
    "openai-chat": _openai_chat,
}


@pytest.fixture
def make_body():
    """
    Fabrique un body dans le format demandé.

    `steps`: tuples (call_id, outil, paramètres, sortie) ou USER_TURN.
    """
    def _make(fmt, steps):
        return BUILDERS[fmt](steps)
    return _make


@pytest.fixture
def user_turn():
    """Marqueur d'un tour utilisateur dans les `steps` de make_body."""
    return USER_TURN


@pytest.fixture(params=sorted(BUILDERS))
def wire_format(request):
    """Paramètre chaque test sur les quatre formats."""
    return request.param
