"""Unit tests for the conversation history store."""

import pytest

from history import ConversationHistory, ConversationRegistry
from schemas import ChatMessage


def _msg(i: int) -> ChatMessage:
    return ChatMessage(role="user" if i % 2 == 0 else "assistant", content=f"m{i}")


class TestConversationHistory:

    @pytest.mark.parametrize("initial", range(0, 11))
    def test_append_never_exceeds_cap_and_drops_oldest(self, initial):
        history = ConversationHistory()
        for i in range(initial):
            history.append(_msg(i))
        before = list(history)

        history.append(_msg(99))

        assert len(history) <= 10
        after = list(history)
        assert after[-1].content == "m99"
        if initial == 10:
            assert before[0] not in after
            assert after[:-1] == before[1:]
        else:
            assert after[:-1] == before

    def test_long_conversation_keeps_last_ten_in_order(self):
        history = ConversationHistory()
        for i in range(25):
            history.append(_msg(i))

        assert [m.content for m in history] == [f"m{i}" for i in range(15, 25)]

    def test_recent_defaults_to_five(self):
        history = ConversationHistory()
        for i in range(8):
            history.append(_msg(i))

        assert [m.content for m in history.recent()] == ["m3", "m4", "m5", "m6", "m7"]
        assert len(history.recent(10)) == 8
        assert history.recent(0) == []

    def test_recent_returns_a_copy(self):
        history = ConversationHistory()
        history.add_user("hello")

        history.recent().clear()

        assert len(history) == 1

    def test_clear(self):
        history = ConversationHistory()
        history.add_user("hi")
        history.add_assistant("hey")

        history.clear()

        assert len(history) == 0
        assert history.recent() == []

    def test_invalid_cap(self):
        with pytest.raises(ValueError):
            ConversationHistory(max_messages=0)


class TestConversationRegistry:

    def test_no_session_gives_fresh_history_each_time(self):
        registry = ConversationRegistry()
        first = registry.get(None)
        first.add_user("hi")

        assert len(registry.get(None)) == 0
        assert len(registry) == 0

    def test_same_session_same_history(self):
        registry = ConversationRegistry()
        registry.get("abc").add_user("hi")

        assert len(registry.get("abc")) == 1
        assert len(registry.get("other")) == 0

    def test_reset_forgets_session(self):
        registry = ConversationRegistry()
        registry.get("abc").add_user("hi")

        assert registry.reset("abc") is True
        assert "abc" not in registry
        assert len(registry.get("abc")) == 0
        assert registry.reset("unknown") is False

    def test_least_recently_used_session_is_evicted(self):
        registry = ConversationRegistry(max_sessions=2)
        registry.get("a")
        registry.get("b")
        registry.get("a")  # touch a, b becomes oldest
        registry.get("c")

        assert "a" in registry
        assert "b" not in registry
        assert "c" in registry

    def test_history_limit_applies_per_session(self):
        registry = ConversationRegistry(history_limit=4)
        history = registry.get("abc")
        for i in range(6):
            history.append(_msg(i))

        assert len(history) == 4
