"""
docgen-orchestrator — multi-turn conversation store

File: src/docgen_orchestrator/conversation/manager.py
Last updated: 2026-02-13

Purpose
- Maintain independent multi-turn dialogues with bounded memory and idle expiry.

What should be included in this file
- Start/add/exchange/history/context/end operations over a single lock-guarded table.
- Message trimming that always keeps system messages.
- LRU eviction at capacity and a cancellable background expiry sweep.

Functional requirements
- A conversation never holds more than its configured ``max_messages``.
- Append order equals arrival order for one conversation.
- Unknown ids and bad roles return False/None instead of raising.

Non-functional requirements
- The lock guards in-memory mutation only; it is never held across I/O.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import math
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from types import TracebackType
from typing import Any, Final

import structlog

from docgen_orchestrator.constants import CHARS_PER_TOKEN
from docgen_orchestrator.providers.base import NowFn, SleepFn

ANONYMOUS_OWNER: Final[str] = "anonymous"
MAX_TOPICS: Final[int] = 20
TRIM_KEEP_RATIO: Final[float] = 0.8
TRIM_KEEP_MINIMUM: Final[int] = 10

_TOPIC_KEYWORDS: Final[tuple[str, ...]] = (
    "unity",
    "scriptableobject",
    "monobehaviour",
    "gameobject",
    "component",
    "architecture",
    "pattern",
    "api",
    "interface",
    "class",
    "method",
    "property",
    "documentation",
    "project",
    "template",
    "generator",
    "analysis",
    "export",
)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class MessageRole(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass(frozen=True, slots=True)
class ConversationConfig:
    max_messages: int = 100
    max_tokens_per_message: int = 4000
    inactivity_timeout: timedelta = timedelta(hours=2)
    enable_context_tracking: bool = True
    enable_topic_extraction: bool = True

    def __post_init__(self) -> None:
        if self.max_messages <= 0:
            raise ValueError("max_messages must be > 0")
        if self.max_tokens_per_message <= 0:
            raise ValueError("max_tokens_per_message must be > 0")
        if self.inactivity_timeout <= timedelta(0):
            raise ValueError("inactivity_timeout must be positive")


@dataclass(frozen=True, slots=True)
class ConversationMessage:
    message_id: str
    role: MessageRole
    content: str
    timestamp: datetime
    token_count: int
    sequence: int


@dataclass(slots=True)
class ConversationContext:
    initial_context: str = ""
    last_user_message: str = ""
    last_assistant_message: str = ""
    user_message_count: int = 0
    assistant_message_count: int = 0
    topics: list[str] = field(default_factory=list)


@dataclass(slots=True)
class Conversation:
    conversation_id: str
    owner_id: str
    started_at: datetime
    last_accessed_at: datetime
    config: ConversationConfig
    context: ConversationContext
    messages: list[ConversationMessage] = field(default_factory=list)
    ended_at: datetime | None = None
    total_messages: int = 0
    total_tokens: int = 0


@dataclass(frozen=True, slots=True)
class ConversationHistory:
    """Read-only view returned to callers."""

    conversation_id: str
    owner_id: str
    started_at: datetime
    last_accessed_at: datetime
    total_messages: int
    total_tokens: int
    messages: tuple[ConversationMessage, ...]
    initial_context: str
    topics: tuple[str, ...]
    config: ConversationConfig


@dataclass(frozen=True, slots=True)
class ConversationStatistics:
    active_conversations: int
    total_messages: int
    total_tokens: int
    average_messages_per_conversation: float
    average_age_seconds: float
    memory_estimate_bytes: int


class ConversationManager:
    """Lock-guarded conversation table with trimming, eviction and expiry."""

    def __init__(
        self,
        *,
        max_conversations: int = 50,
        eviction_batch: int = 5,
        default_config: ConversationConfig | None = None,
        sweep_interval: timedelta = timedelta(minutes=30),
        now_fn: NowFn = _utc_now,
        sleep: SleepFn = asyncio.sleep,
        logger: Any | None = None,
    ) -> None:
        if max_conversations <= 0:
            raise ValueError("max_conversations must be > 0")
        if eviction_batch <= 0:
            raise ValueError("eviction_batch must be > 0")
        if sweep_interval <= timedelta(0):
            raise ValueError("sweep_interval must be positive")
        self._max_conversations = max_conversations
        self._eviction_batch = eviction_batch
        self._default_config = (
            default_config if default_config is not None else ConversationConfig()
        )
        self._sweep_interval = sweep_interval
        self._now_fn = now_fn
        self._sleep = sleep
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._lock = asyncio.Lock()
        self._conversations: dict[str, Conversation] = {}
        self._sequence = itertools.count()
        self._sweep_task: asyncio.Task[None] | None = None

    @property
    def active_count(self) -> int:
        return len(self._conversations)

    @property
    def is_running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    def start(self) -> None:
        """Start the periodic expiry sweep on the running event loop."""

        if self.is_running:
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop(), name="conversation-sweep")
        self._logger.info(
            "conversation_sweep_started",
            interval_seconds=self._sweep_interval.total_seconds(),
        )

    async def stop(self) -> None:
        task = self._sweep_task
        self._sweep_task = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        self._logger.info("conversation_sweep_stopped")

    async def __aenter__(self) -> ConversationManager:
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()

    async def start_conversation(
        self,
        owner_id: str | None = None,
        initial_context: str | None = None,
        config: ConversationConfig | None = None,
    ) -> str:
        async with self._lock:
            now = self._now_fn()
            if len(self._conversations) >= self._max_conversations:
                self._evict_least_recent(self._eviction_batch)

            conversation_id = f"conv_{now:%Y%m%d%H%M%S}_{uuid.uuid4().hex[:8]}"
            self._conversations[conversation_id] = Conversation(
                conversation_id=conversation_id,
                owner_id=owner_id or ANONYMOUS_OWNER,
                started_at=now,
                last_accessed_at=now,
                config=config if config is not None else self._default_config,
                context=ConversationContext(initial_context=initial_context or ""),
            )

        self._logger.info(
            "conversation_started",
            conversation_id=conversation_id,
            owner_id=owner_id or ANONYMOUS_OWNER,
        )
        return conversation_id

    async def add_message(self, conversation_id: str, role: str, content: str) -> bool:
        normalized_role = _parse_role(role)
        if normalized_role is None:
            self._logger.warning(
                "conversation_message_rejected", conversation_id=conversation_id, reason="role"
            )
            return False
        if not content or not content.strip():
            self._logger.warning(
                "conversation_message_rejected", conversation_id=conversation_id, reason="empty"
            )
            return False

        async with self._lock:
            conversation = self._lookup_for_append(conversation_id)
            if conversation is None:
                return False
            message = self._append(conversation, normalized_role, content)
            if message is None:
                return False

        self._log_appended(conversation_id, message, content)
        return True

    async def add_exchange(
        self, conversation_id: str, user_content: str, assistant_content: str
    ) -> bool:
        """Append a user turn and its reply as one adjacent pair.

        Both messages are written under a single lock acquisition, so concurrent
        exchanges on the same conversation never interleave.
        """

        if not (user_content and user_content.strip()) or not (
            assistant_content and assistant_content.strip()
        ):
            self._logger.warning(
                "conversation_message_rejected", conversation_id=conversation_id, reason="empty"
            )
            return False

        async with self._lock:
            conversation = self._lookup_for_append(conversation_id)
            if conversation is None:
                return False
            user_message = self._append(conversation, MessageRole.USER, user_content)
            if user_message is None:
                return False
            assistant_message = self._append(
                conversation, MessageRole.ASSISTANT, assistant_content
            )
            if assistant_message is None:
                return False

        self._log_appended(conversation_id, user_message, user_content)
        self._log_appended(conversation_id, assistant_message, assistant_content)
        return True

    async def get_conversation_history(
        self,
        conversation_id: str,
        max_messages: int = 50,
        role_filter: str | None = None,
    ) -> ConversationHistory | None:
        async with self._lock:
            conversation = self._conversations.get(conversation_id)
            if conversation is None:
                return None
            conversation.last_accessed_at = self._now_fn()
            messages = list(conversation.messages)
            if role_filter:
                wanted = role_filter.strip().lower()
                messages = [message for message in messages if message.role.value == wanted]
            if max_messages > 0:
                messages = messages[-max_messages:]
            return ConversationHistory(
                conversation_id=conversation.conversation_id,
                owner_id=conversation.owner_id,
                started_at=conversation.started_at,
                last_accessed_at=conversation.last_accessed_at,
                total_messages=conversation.total_messages,
                total_tokens=conversation.total_tokens,
                messages=tuple(messages),
                initial_context=conversation.context.initial_context,
                topics=tuple(conversation.context.topics),
                config=conversation.config,
            )

    async def get_conversation_context(self, conversation_id: str, message_count: int = 10) -> str:
        """Render recent non-system turns as prompt context; empty for unknown ids."""

        history = await self.get_conversation_history(conversation_id, max_messages=0)
        if history is None:
            return ""
        parts: list[str] = []
        if history.initial_context:
            parts.append(f"Initial Context: {history.initial_context}")
        recent = [message for message in history.messages if message.role is not MessageRole.SYSTEM]
        if message_count > 0:
            recent = recent[-message_count:]
        parts.extend(f"{message.role.value}: {message.content}" for message in recent)
        return "\n\n".join(parts)

    async def get_system_prompt(self, conversation_id: str) -> str:
        history = await self.get_conversation_history(
            conversation_id, max_messages=0, role_filter=MessageRole.SYSTEM.value
        )
        if history is None:
            return ""
        return "\n\n".join(message.content for message in history.messages)

    async def has_conversation(self, conversation_id: str) -> bool:
        async with self._lock:
            return conversation_id in self._conversations

    async def end_conversation(self, conversation_id: str, preserve: bool = False) -> bool:
        async with self._lock:
            conversation = self._conversations.pop(conversation_id, None)
            if conversation is None:
                return False
            conversation.ended_at = self._now_fn()

        self._logger.info(
            "conversation_ended",
            conversation_id=conversation_id,
            total_messages=conversation.total_messages,
            preserve=preserve,
        )
        return True

    async def sweep_expired(self) -> int:
        """Remove conversations idle for longer than their inactivity timeout."""

        async with self._lock:
            now = self._now_fn()
            expired = [
                conversation_id
                for conversation_id, conversation in self._conversations.items()
                if now - conversation.last_accessed_at > conversation.config.inactivity_timeout
            ]
            for conversation_id in expired:
                del self._conversations[conversation_id]

        if expired:
            self._logger.info("conversations_expired", count=len(expired))
        return len(expired)

    async def clear_all(self) -> int:
        async with self._lock:
            count = len(self._conversations)
            self._conversations.clear()
        self._logger.info("conversations_cleared", count=count)
        return count

    async def statistics(self) -> ConversationStatistics:
        async with self._lock:
            now = self._now_fn()
            conversations = list(self._conversations.values())
            total_messages = sum(conversation.total_messages for conversation in conversations)
            total_tokens = sum(conversation.total_tokens for conversation in conversations)
            memory = sum(
                len(message.content) * 2 + 200
                for conversation in conversations
                for message in conversation.messages
            )
            count = len(conversations)
            ages = [(now - item.started_at).total_seconds() for item in conversations]
            average_age = sum(ages) / count if count else 0.0
        return ConversationStatistics(
            active_conversations=count,
            total_messages=total_messages,
            total_tokens=total_tokens,
            average_messages_per_conversation=total_messages / count if count else 0.0,
            average_age_seconds=average_age,
            memory_estimate_bytes=memory,
        )

    def _lookup_for_append(self, conversation_id: str) -> Conversation | None:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            self._logger.warning(
                "conversation_message_rejected",
                conversation_id=conversation_id,
                reason="unknown_conversation",
            )
        return conversation

    def _append(
        self, conversation: Conversation, role: MessageRole, content: str
    ) -> ConversationMessage | None:
        config = conversation.config
        if len(conversation.messages) >= config.max_messages:
            system_count = sum(
                1 for message in conversation.messages if message.role is MessageRole.SYSTEM
            )
            if system_count >= config.max_messages:
                self._logger.warning(
                    "conversation_message_rejected",
                    conversation_id=conversation.conversation_id,
                    reason="system_messages_fill_conversation",
                )
                return None
            self._trim(conversation)

        stored_content = content[: config.max_tokens_per_message * CHARS_PER_TOKEN]
        now = self._now_fn()
        message = ConversationMessage(
            message_id=uuid.uuid4().hex,
            role=role,
            content=stored_content,
            timestamp=now,
            token_count=max(1, math.ceil(len(stored_content) / CHARS_PER_TOKEN)),
            sequence=next(self._sequence),
        )
        conversation.messages.append(message)
        conversation.total_messages += 1
        conversation.total_tokens += message.token_count
        conversation.last_accessed_at = now
        if config.enable_context_tracking:
            _update_context(conversation, message)
        return message

    def _log_appended(
        self, conversation_id: str, message: ConversationMessage, original: str
    ) -> None:
        self._logger.info(
            "conversation_message_added",
            conversation_id=conversation_id,
            role=message.role.value,
            content_chars=len(message.content),
            truncated=len(message.content) < len(original),
        )

    def _trim(self, conversation: Conversation) -> None:
        # Caller holds the lock and has checked that system messages leave room.
        system = [m for m in conversation.messages if m.role is MessageRole.SYSTEM]
        other = [m for m in conversation.messages if m.role is not MessageRole.SYSTEM]
        keep = min(
            max(TRIM_KEEP_MINIMUM, int(len(other) * TRIM_KEEP_RATIO)),
            conversation.config.max_messages - len(system) - 1,
        )
        kept_other = other[-keep:] if keep > 0 else []
        before = len(conversation.messages)
        conversation.messages = sorted(
            [*system, *kept_other], key=lambda message: (message.timestamp, message.sequence)
        )
        self._logger.info(
            "conversation_trimmed",
            conversation_id=conversation.conversation_id,
            before=before,
            after=len(conversation.messages),
        )

    def _evict_least_recent(self, count: int) -> None:
        victims = sorted(
            self._conversations.values(), key=lambda conversation: conversation.last_accessed_at
        )[:count]
        for conversation in victims:
            del self._conversations[conversation.conversation_id]
        self._logger.info(
            "conversations_evicted",
            count=len(victims),
            conversation_ids=[conversation.conversation_id for conversation in victims],
        )

    async def _sweep_loop(self) -> None:
        interval = self._sweep_interval.total_seconds()
        while True:
            await self._sleep(interval)
            try:
                await self.sweep_expired()
            except Exception:  # noqa: BLE001
                self._logger.exception("conversation_sweep_failed")


def _parse_role(role: str) -> MessageRole | None:
    try:
        return MessageRole(role.strip().lower())
    except (ValueError, AttributeError):
        return None


def _update_context(conversation: Conversation, message: ConversationMessage) -> None:
    context = conversation.context
    if message.role is MessageRole.USER:
        context.last_user_message = message.content
        context.user_message_count += 1
    elif message.role is MessageRole.ASSISTANT:
        context.last_assistant_message = message.content
        context.assistant_message_count += 1

    if not conversation.config.enable_topic_extraction:
        return
    lowered = message.content.lower()
    for keyword in _TOPIC_KEYWORDS:
        if keyword in lowered and keyword not in context.topics:
            context.topics.append(keyword)
    if len(context.topics) > MAX_TOPICS:
        context.topics = context.topics[-MAX_TOPICS:]


__all__ = [
    "ANONYMOUS_OWNER",
    "Conversation",
    "ConversationConfig",
    "ConversationContext",
    "ConversationHistory",
    "ConversationManager",
    "ConversationMessage",
    "ConversationStatistics",
    "MessageRole",
]
