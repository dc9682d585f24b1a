"""In-memory conversation history, one instance per conversation."""
from collections import OrderedDict
from typing import Iterator, List, Optional

from schemas import ChatMessage

DEFAULT_HISTORY_LIMIT = 10


class ConversationHistory:
    """Ordered log of chat turns, capped at the most recent ``max_messages``.

    Not thread-safe: a conversation is handled one request at a time.
    """

    def __init__(self, max_messages: int = DEFAULT_HISTORY_LIMIT) -> None:
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        self._messages: List[ChatMessage] = []
        self.max_messages = max_messages

    def append(self, message: ChatMessage) -> None:
        """Add message to the end, evicting the oldest entries past the cap."""
        self._messages.append(message)
        if len(self._messages) > self.max_messages:
            self._messages = self._messages[-self.max_messages:]

    def add_user(self, content: str) -> None:
        self.append(ChatMessage(role="user", content=content))

    def add_assistant(self, content: str) -> None:
        self.append(ChatMessage(role="assistant", content=content))

    def recent(self, limit: int = 5) -> List[ChatMessage]:
        """Return the last ``limit`` messages in chronological order."""
        if limit <= 0:
            return []
        return list(self._messages[-limit:])

    def clear(self) -> None:
        self._messages = []

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[ChatMessage]:
        return iter(list(self._messages))


class ConversationRegistry:
    """Maps session ids to their own ConversationHistory.

    Holds at most ``max_sessions`` conversations; the least recently used one
    is dropped when a new session would exceed the cap.
    """

    def __init__(
        self,
        max_sessions: int = 1000,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> None:
        self._sessions: "OrderedDict[str, ConversationHistory]" = OrderedDict()
        self._max_sessions = max_sessions
        self._history_limit = history_limit

    def get(self, session_id: Optional[str]) -> ConversationHistory:
        """History for ``session_id``; a throwaway one when no id is given."""
        if not session_id:
            return ConversationHistory(self._history_limit)

        history = self._sessions.get(session_id)
        if history is None:
            history = ConversationHistory(self._history_limit)
            self._sessions[session_id] = history
            while len(self._sessions) > self._max_sessions:
                self._sessions.popitem(last=False)
        else:
            self._sessions.move_to_end(session_id)
        return history

    def reset(self, session_id: str) -> bool:
        """Clear a session's history. Returns False if the session was unknown."""
        history = self._sessions.pop(session_id, None)
        if history is None:
            return False
        history.clear()
        return True

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
