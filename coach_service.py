# coach_service.py
"""
Coach logic around the upstream model API:

- request building (persona + context + history + new message)
- retry with a fixed schedule and deterministic fallbacks
- voice-mode text cleanup
- Tiny Habits plan extraction from free-text answers
"""

import json
import logging
import re
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from errors import UpstreamError, UpstreamTimeout
from grog_client import UpstreamClient
from history import ConversationHistory
from prompts import (
    COACH_SYSTEM_PROMPT,
    CONTEXT_PROMPT,
    DEFAULT_PLAN_MOTIVATION,
    DEFAULT_PLAN_TIME,
    DEFAULT_PLAN_TINY_VERSION,
    DEFAULT_PLAN_TRIGGER,
    HABIT_DURATION_DAYS,
    HABIT_PLAN_PROMPT,
    MISSED_DAY_PROMPT,
    PLAN_SYSTEM_PROMPT,
    TIMEOUT_FALLBACK,
    UNAVAILABLE_FALLBACK,
    VOICE_MODE_DIRECTIVE,
)
from retry_policy import RetryPolicy
from schemas import ChatContext, ChatMessage, HabitPlan

logger = logging.getLogger(__name__)

# greedy: first "{" through last "}"
_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_NEWLINES_RE = re.compile(r"[\r\n]+")
_FORMAT_MARKERS = ("**", "*", "_", "`")


# ---------- Request building ----------


def build_context_prompt(context: ChatContext) -> str:
    streak_unit = "day" if context.streak == 1 else "days"
    return CONTEXT_PROMPT.format(
        habit_name=context.habit_name,
        current_day=context.current_day,
        duration=HABIT_DURATION_DAYS,
        streak=context.streak,
        streak_unit=streak_unit,
        total_completed=context.total_completed,
        missed_days=context.missed_days,
    )


def build_system_prompt(voice_mode: bool = False) -> str:
    if voice_mode:
        return f"{COACH_SYSTEM_PROMPT}\n\n{VOICE_MODE_DIRECTIVE}"
    return COACH_SYSTEM_PROMPT


def build_chat_messages(
    user_message: str,
    context: ChatContext,
    voice_mode: bool,
    history: ConversationHistory,
) -> List[ChatMessage]:
    """
    Assemble the message list for one chat turn.

    The user message is appended to ``history`` first (so truncation applies
    to it as well), then sent as the last entry after the two system messages
    and the earlier turns.
    """
    history.add_user(user_message)

    return [
        ChatMessage(role="system", content=build_system_prompt(voice_mode)),
        ChatMessage(role="system", content=build_context_prompt(context)),
        *history.recent(history.max_messages),
    ]


# ---------- Deterministic fallbacks ----------


def fallback_message(error: BaseException) -> str:
    """User-facing text for a call that could not be completed."""
    if isinstance(error, UpstreamTimeout):
        return TIMEOUT_FALLBACK
    return UNAVAILABLE_FALLBACK


def default_habit_plan(habit_description: str) -> HabitPlan:
    return HabitPlan(
        tiny_version=DEFAULT_PLAN_TINY_VERSION.format(habit_description=habit_description),
        trigger=DEFAULT_PLAN_TRIGGER,
        time=DEFAULT_PLAN_TIME,
        motivation=DEFAULT_PLAN_MOTIVATION,
    )


# ---------- Text transforms ----------


def prepare_for_voice(text: str) -> str:
    """Strip markdown markers and line breaks so TTS reads plain sentences."""
    for marker in _FORMAT_MARKERS:
        text = text.replace(marker, "")
    return _NEWLINES_RE.sub(" ", text).strip()


def extract_habit_plan(response_text: str, habit_description: str) -> HabitPlan:
    """
    Pull the JSON plan out of a free-text model answer.

    Anything that does not parse into a complete HabitPlan gives the default
    plan for ``habit_description``.
    """
    match = _JSON_OBJECT_RE.search(response_text or "")
    if not match:
        logger.info("No JSON object in habit plan answer, using default plan")
        return default_habit_plan(habit_description)

    try:
        return HabitPlan.model_validate(json.loads(match.group(0)))
    except (json.JSONDecodeError, PydanticValidationError) as e:
        logger.info(f"Habit plan answer did not parse ({type(e).__name__}), using default plan")
        return default_habit_plan(habit_description)


# ---------- Service ----------


class CoachService:
    """AI habit coach for one conversation."""

    def __init__(
        self,
        client: UpstreamClient,
        retry_policy: Optional[RetryPolicy] = None,
        history: Optional[ConversationHistory] = None,
        plan_max_tokens: int = 200,
    ):
        """Initialize the coach.

        Args:
            client: Upstream completion client.
            retry_policy: Retry schedule (default 1s/2s/4s).
            history: This conversation's history (default: a new one).
            plan_max_tokens: Response cap for habit plan requests.
        """
        self.client = client
        self.retry_policy = retry_policy or RetryPolicy()
        self.history = history if history is not None else ConversationHistory()
        self.plan_max_tokens = plan_max_tokens

    async def _complete(
        self,
        messages: List[ChatMessage],
        max_tokens: Optional[int] = None,
    ) -> str:
        return await self.retry_policy.run(
            lambda: self.client.complete(messages, max_tokens=max_tokens)
        )

    async def chat(
        self,
        user_message: str,
        context: Optional[ChatContext] = None,
        voice_mode: bool = False,
    ) -> str:
        """
        One chat turn. Always returns text: upstream failures become the
        fallback message and are not recorded in history.
        """
        messages = build_chat_messages(
            user_message,
            context or ChatContext(),
            voice_mode,
            self.history,
        )

        try:
            reply = await self._complete(messages)
        except UpstreamError as e:
            logger.error(f"Grog API unavailable, answering with fallback: {e}")
            return fallback_message(e)

        self.history.add_assistant(reply)
        return prepare_for_voice(reply) if voice_mode else reply

    async def create_habit_plan(self, habit_description: str) -> HabitPlan:
        prompt = HABIT_PLAN_PROMPT.format(habit_description=habit_description)
        messages = [
            ChatMessage(role="system", content=PLAN_SYSTEM_PROMPT),
            ChatMessage(role="user", content=prompt),
        ]

        try:
            answer = await self._complete(messages, max_tokens=self.plan_max_tokens)
        except UpstreamError as e:
            logger.error(f"Habit plan generation failed, using default plan: {e}")
            return default_habit_plan(habit_description)

        return extract_habit_plan(answer, habit_description)

    async def analyze_missed_day(
        self,
        reason: str,
        context: Optional[ChatContext] = None,
    ) -> str:
        prompt = MISSED_DAY_PROMPT.format(
            reason=reason,
            context_block=build_context_prompt(context or ChatContext()),
        )
        messages = [
            ChatMessage(role="system", content=PLAN_SYSTEM_PROMPT),
            ChatMessage(role="user", content=prompt),
        ]

        try:
            return await self._complete(messages)
        except UpstreamError as e:
            logger.error(f"Missed-day analysis failed, answering with fallback: {e}")
            return fallback_message(e)

    def clear_history(self) -> None:
        self.history.clear()

    def recent_messages(self, limit: int = 5) -> List[ChatMessage]:
        return self.history.recent(limit)
