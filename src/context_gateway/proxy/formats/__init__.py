"""
Descripteurs des protocoles filaires LLM supportés.
"""

from .base import FormatDescriptor, FormatKind, content_to_text
from .anthropic import AnthropicFormat
from .bedrock import BedrockFormat
from .openai_responses import OpenAIResponsesFormat
from .openai_chat import OpenAIChatFormat
from .registry import DESCRIPTORS, detect_format, get_descriptor

__all__ = [
    "FormatDescriptor",
    "FormatKind",
    "content_to_text",
    "AnthropicFormat",
    "BedrockFormat",
    "OpenAIResponsesFormat",
    "OpenAIChatFormat",
    "DESCRIPTORS",
    "detect_format",
    "get_descriptor",
]
