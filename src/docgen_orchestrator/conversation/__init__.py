"""Multi-turn conversation state."""

from __future__ import annotations

from docgen_orchestrator.conversation.manager import (
    ConversationConfig,
    ConversationHistory,
    ConversationManager,
    ConversationMessage,
    ConversationStatistics,
    MessageRole,
)

__all__ = [
    "ConversationConfig",
    "ConversationHistory",
    "ConversationManager",
    "ConversationMessage",
    "ConversationStatistics",
    "MessageRole",
]
