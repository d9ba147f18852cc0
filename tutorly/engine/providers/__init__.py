"""Completion provider abstraction."""
from .base import CancellationToken, ChatTurn, CompletionClient
from .anthropic_provider import AnthropicProvider

__all__ = [
    "CancellationToken",
    "ChatTurn",
    "CompletionClient",
    "AnthropicProvider",
]
