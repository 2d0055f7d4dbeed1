"""
docgen-orchestrator — unit tests for the conversation manager

File: tests/unit/conversation/test_conversation_manager.py
Last updated: 2026-02-13

Purpose
- Validate bounded multi-turn conversation state.

What this test file should cover
- Start/add/exchange/history/end lifecycle and role validation.
- Trimming keeps every system message and never exceeds max_messages.
- LRU eviction at capacity and idle expiry sweeps.
- Ordering under concurrent appends to one conversation.

Functional requirements
- Deterministic clock; no real sleeping.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from docgen_orchestrator.conversation.manager import (
    ANONYMOUS_OWNER,
    ConversationConfig,
    ConversationManager,
    MessageRole,
)


@dataclass(slots=True)
class _FakeClock:
    current: datetime = field(default_factory=lambda: datetime(2026, 2, 13, 8, 0, tzinfo=UTC))

    def now(self) -> datetime:
        return self.current

    def advance(self, **delta: float) -> None:
        self.current += timedelta(**delta)


def _manager(
    clock: _FakeClock,
    *,
    max_conversations: int = 50,
    eviction_batch: int = 5,
    max_messages: int = 100,
    inactivity_minutes: int = 120,
) -> ConversationManager:
    return ConversationManager(
        max_conversations=max_conversations,
        eviction_batch=eviction_batch,
        default_config=ConversationConfig(
            max_messages=max_messages,
            inactivity_timeout=timedelta(minutes=inactivity_minutes),
        ),
        now_fn=clock.now,
    )


@pytest.mark.unit
async def test_start_add_history_and_end_lifecycle() -> None:
    clock = _FakeClock()
    manager = _manager(clock)

    conversation_id = await manager.start_conversation("alice", "Unity RPG project")
    assert await manager.add_message(conversation_id, "user", "Describe the architecture") is True
    clock.advance(seconds=1)
    assert await manager.add_message(conversation_id, "Assistant", "It stores items.") is True

    history = await manager.get_conversation_history(conversation_id)
    assert history is not None
    assert history.owner_id == "alice"
    assert history.initial_context == "Unity RPG project"
    assert [message.role for message in history.messages] == [
        MessageRole.USER,
        MessageRole.ASSISTANT,
    ]
    assert history.messages[0].token_count == 7
    assert history.total_messages == 2
    assert "architecture" in history.topics

    assert await manager.end_conversation(conversation_id) is True
    assert await manager.end_conversation(conversation_id) is False
    assert await manager.get_conversation_history(conversation_id) is None
    assert await manager.add_message(conversation_id, "user", "late") is False


@pytest.mark.unit
async def test_add_message_rejects_unknown_role_and_empty_content() -> None:
    manager = _manager(_FakeClock())
    conversation_id = await manager.start_conversation()

    assert await manager.add_message(conversation_id, "moderator", "hello") is False
    assert await manager.add_message(conversation_id, "user", "   ") is False
    assert await manager.add_message("conv_missing", "user", "hello") is False

    history = await manager.get_conversation_history(conversation_id)
    assert history is not None
    assert history.owner_id == ANONYMOUS_OWNER
    assert history.messages == ()


@pytest.mark.unit
async def test_trim_keeps_all_system_messages_and_most_recent_turns() -> None:
    clock = _FakeClock()
    manager = _manager(clock, max_messages=10)
    conversation_id = await manager.start_conversation()

    for index in range(3):
        assert await manager.add_message(conversation_id, "system", f"rule {index}")
    for index in range(12):
        clock.advance(seconds=1)
        role = "user" if index % 2 == 0 else "assistant"
        assert await manager.add_message(conversation_id, role, f"turn {index}")

    history = await manager.get_conversation_history(conversation_id, max_messages=0)
    assert history is not None
    messages = history.messages
    assert len(messages) == 10
    assert [m.content for m in messages if m.role is MessageRole.SYSTEM] == [
        "rule 0",
        "rule 1",
        "rule 2",
    ]
    assert [m.content for m in messages if m.role is not MessageRole.SYSTEM] == [
        f"turn {index}" for index in range(5, 12)
    ]
    assert history.total_messages == 15


@pytest.mark.unit
async def test_conversation_full_of_system_messages_rejects_more() -> None:
    manager = _manager(_FakeClock(), max_messages=2)
    conversation_id = await manager.start_conversation()

    assert await manager.add_message(conversation_id, "system", "a")
    assert await manager.add_message(conversation_id, "system", "b")
    assert await manager.add_message(conversation_id, "user", "c") is False


@settings(max_examples=20, deadline=None)
@given(
    max_messages=st.integers(min_value=2, max_value=25),
    roles=st.lists(st.sampled_from(["user", "assistant", "system"]), min_size=1, max_size=80),
)
def test_trimming_invariant_holds_for_any_append_sequence(
    max_messages: int, roles: list[str]
) -> None:
    async def scenario() -> None:
        clock = _FakeClock()
        manager = _manager(clock, max_messages=max_messages)
        conversation_id = await manager.start_conversation()
        accepted_system: list[str] = []

        for index, role in enumerate(roles):
            clock.advance(seconds=1)
            content = f"{role}-{index}"
            stored = await manager.add_message(conversation_id, role, content)
            if stored and role == "system":
                accepted_system.append(content)

            history = await manager.get_conversation_history(conversation_id, max_messages=0)
            assert history is not None
            assert len(history.messages) <= max_messages
            present = [m.content for m in history.messages if m.role is MessageRole.SYSTEM]
            assert present == accepted_system
            timestamps = [(m.timestamp, m.sequence) for m in history.messages]
            assert timestamps == sorted(timestamps)

    asyncio.run(scenario())


@pytest.mark.unit
async def test_history_supports_role_filter_and_limit_and_touches_access_time() -> None:
    clock = _FakeClock()
    manager = _manager(clock)
    conversation_id = await manager.start_conversation()
    for index in range(4):
        await manager.add_message(conversation_id, "user", f"question {index}")
        await manager.add_message(conversation_id, "assistant", f"answer {index}")

    clock.advance(minutes=30)
    history = await manager.get_conversation_history(
        conversation_id, max_messages=2, role_filter="user"
    )

    assert history is not None
    assert [m.content for m in history.messages] == ["question 2", "question 3"]
    assert history.last_accessed_at == clock.current


@pytest.mark.unit
async def test_context_and_system_prompt_rendering() -> None:
    manager = _manager(_FakeClock())
    conversation_id = await manager.start_conversation(initial_context="Project: Acme")
    await manager.add_message(conversation_id, "system", "Be concise.")
    await manager.add_message(conversation_id, "user", "What is the data model?")
    await manager.add_message(conversation_id, "assistant", "Players own items.")

    context = await manager.get_conversation_context(conversation_id)
    system_prompt = await manager.get_system_prompt(conversation_id)

    assert context == (
        "Initial Context: Project: Acme\n\n"
        "user: What is the data model?\n\n"
        "assistant: Players own items."
    )
    assert system_prompt == "Be concise."
    assert await manager.get_conversation_context("conv_missing") == ""


@pytest.mark.unit
async def test_long_messages_are_truncated_to_token_budget() -> None:
    clock = _FakeClock()
    manager = ConversationManager(
        default_config=ConversationConfig(max_tokens_per_message=5), now_fn=clock.now
    )
    conversation_id = await manager.start_conversation()

    await manager.add_message(conversation_id, "user", "x" * 100)

    history = await manager.get_conversation_history(conversation_id)
    assert history is not None
    assert history.messages[0].content == "x" * 20
    assert history.messages[0].token_count == 5


@pytest.mark.unit
async def test_capacity_evicts_least_recently_accessed_conversations() -> None:
    clock = _FakeClock()
    manager = _manager(clock, max_conversations=3, eviction_batch=2)
    first = await manager.start_conversation("a")
    clock.advance(minutes=1)
    second = await manager.start_conversation("b")
    clock.advance(minutes=1)
    third = await manager.start_conversation("c")
    clock.advance(minutes=1)
    await manager.add_message(first, "user", "keep me warm")

    clock.advance(minutes=1)
    fourth = await manager.start_conversation("d")

    assert manager.active_count == 2
    assert await manager.has_conversation(first)
    assert await manager.has_conversation(fourth)
    assert not await manager.has_conversation(second)
    assert not await manager.has_conversation(third)


@pytest.mark.unit
async def test_sweep_removes_only_idle_conversations() -> None:
    clock = _FakeClock()
    manager = _manager(clock, inactivity_minutes=120)
    idle = await manager.start_conversation()
    clock.advance(minutes=90)
    active = await manager.start_conversation()
    clock.advance(minutes=31)

    removed = await manager.sweep_expired()

    assert removed == 1
    assert not await manager.has_conversation(idle)
    assert await manager.has_conversation(active)


@pytest.mark.unit
async def test_history_access_counts_as_activity_for_expiry() -> None:
    clock = _FakeClock()
    manager = _manager(clock, inactivity_minutes=60)
    conversation_id = await manager.start_conversation()
    clock.advance(minutes=50)
    await manager.get_conversation_history(conversation_id)
    clock.advance(minutes=50)

    assert await manager.sweep_expired() == 0
    assert await manager.has_conversation(conversation_id)


@pytest.mark.unit
async def test_background_sweep_starts_and_stops_with_context_manager() -> None:
    manager = ConversationManager(sweep_interval=timedelta(hours=1))

    async with manager:
        assert manager.is_running is True
    assert manager.is_running is False

    await manager.stop()


@pytest.mark.unit
async def test_concurrent_appends_preserve_arrival_order() -> None:
    manager = _manager(_FakeClock())
    conversation_id = await manager.start_conversation()

    await asyncio.gather(
        *(manager.add_message(conversation_id, "user", f"m{index}") for index in range(20))
    )

    history = await manager.get_conversation_history(conversation_id, max_messages=0)
    assert history is not None
    sequences = [message.sequence for message in history.messages]
    assert sequences == sorted(sequences)
    assert sorted(message.content for message in history.messages) == sorted(
        f"m{index}" for index in range(20)
    )


@pytest.mark.unit
async def test_statistics_and_clear_all() -> None:
    clock = _FakeClock()
    manager = _manager(clock)
    first = await manager.start_conversation()
    await manager.start_conversation()
    await manager.add_message(first, "user", "abcd")
    clock.advance(seconds=10)

    stats = await manager.statistics()
    assert stats.active_conversations == 2
    assert stats.total_messages == 1
    assert stats.total_tokens == 1
    assert stats.average_messages_per_conversation == 0.5
    assert stats.average_age_seconds == 10.0

    assert await manager.clear_all() == 2
    assert manager.active_count == 0


def test_conversation_config_rejects_invalid_bounds() -> None:
    with pytest.raises(ValueError, match="max_messages"):
        ConversationConfig(max_messages=0)
    with pytest.raises(ValueError, match="inactivity_timeout"):
        ConversationConfig(inactivity_timeout=timedelta(0))


@pytest.mark.unit
async def test_concurrent_exchanges_stay_paired() -> None:
    clock = _FakeClock()
    manager = _manager(clock)
    conversation_id = await manager.start_conversation()

    results = await asyncio.gather(
        *(
            manager.add_exchange(conversation_id, f"question {index}", f"answer {index}")
            for index in range(12)
        )
    )

    assert all(results)
    history = await manager.get_conversation_history(conversation_id, max_messages=100)
    assert history is not None
    pairs = list(zip(history.messages[::2], history.messages[1::2], strict=True))
    assert len(pairs) == 12
    for user, assistant in pairs:
        assert user.role is MessageRole.USER
        assert assistant.role is MessageRole.ASSISTANT
        assert user.content.split()[-1] == assistant.content.split()[-1]


@pytest.mark.unit
async def test_exchange_with_blank_side_or_unknown_id_is_rejected() -> None:
    clock = _FakeClock()
    manager = _manager(clock)
    conversation_id = await manager.start_conversation()

    assert await manager.add_exchange(conversation_id, "question", "  ") is False
    assert await manager.add_exchange(conversation_id, "", "answer") is False
    assert await manager.add_exchange("conv_missing", "question", "answer") is False

    history = await manager.get_conversation_history(conversation_id)
    assert history is not None
    assert history.messages == ()
