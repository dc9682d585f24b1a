# schemas.py
"""
Pydantic models shared by the coach service, the HTTP API and the local stores.

Wire format is camelCase (what the mobile client sends), Python attributes are
snake_case. Every model accepts both spellings on input.
"""

from datetime import datetime
from enum import Enum
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ---------- Coach ----------


class ChatContext(CamelModel):
    """
    Habit progress the caller embeds into the prompt.

    Missing fields fall back to a brand-new habit: no name, day 1, nothing done yet.
    """
    habit_name: str = Field(default="", alias="habitName")
    current_day: int = Field(default=1, alias="currentDay")
    streak: int = 0
    total_completed: int = Field(default=0, alias="totalCompleted")
    missed_days: int = Field(default=0, alias="missedDays")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # null counts as missing, so the field keeps its default
        if data is None:
            return {}
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class HabitPlan(CamelModel):
    """Tiny Habits plan: a 2-minute version, an anchor trigger and a time of day."""
    tiny_version: str = Field(alias="tinyVersion")
    trigger: str
    time: str  # "HH:MM"
    motivation: str


# ---------- API requests / responses ----------


class ErrorResponse(BaseModel):
    error: str
    message: Optional[str] = None
    details: Optional[Any] = None
    request_id: Optional[str] = None


class ChatRequest(CamelModel):
    # Optional here so an empty message is reported as a 400 by the endpoint.
    message: Optional[str] = None
    context: ChatContext = Field(default_factory=ChatContext)
    voice_mode: bool = Field(default=False, alias="voiceMode")
    session_id: Optional[str] = Field(default=None, alias="sessionId")


class ChatResponse(CamelModel):
    success: bool = True
    response: str


class ChatResetRequest(CamelModel):
    session_id: Optional[str] = Field(default=None, alias="sessionId")


class ChatHistoryResponse(CamelModel):
    success: bool = True
    messages: List[ChatMessage]


class SuccessResponse(BaseModel):
    success: bool = True


class HabitPlanRequest(CamelModel):
    habit_description: Optional[str] = Field(default=None, alias="habitDescription")


class HabitPlanResponse(CamelModel):
    success: bool = True
    plan: HabitPlan


class AnalyzeMissedRequest(CamelModel):
    reason: Optional[str] = None
    context: ChatContext = Field(default_factory=ChatContext)


class AnalyzeMissedResponse(CamelModel):
    success: bool = True
    analysis: str


# ---------- Local stores ----------


class HabitStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    PAUSED = "paused"


class HabitRecord(CamelModel):
    id: str
    name: str
    tiny_version: str = Field(alias="tinyVersion")
    trigger: str
    time: str
    current_day: int = Field(default=1, alias="currentDay")
    streak: int = 0
    total_completed: int = Field(default=0, alias="totalCompleted")
    missed_days: int = Field(default=0, alias="missedDays")
    status: HabitStatus = HabitStatus.ACTIVE
    created_at: datetime = Field(alias="createdAt")
    last_completed_at: Optional[datetime] = Field(default=None, alias="lastCompletedAt")
    last_skipped_at: Optional[datetime] = Field(default=None, alias="lastSkippedAt")
    last_skip_reason: Optional[str] = Field(default=None, alias="lastSkipReason")


class TranscriptEntry(CamelModel):
    id: str
    timestamp: datetime
    sender: Literal["user", "ai"]
    text: str
    mode: Literal["voice", "text"] = "text"


class AppSettings(CamelModel):
    """User preferences of the mobile app; "auto" answers by voice after voice input."""
    input_mode: Literal["voice", "text"] = Field(default="voice", alias="inputMode")
    response_mode: Literal["voice", "text", "auto"] = Field(default="auto", alias="responseMode")
    voice_speed: float = Field(default=0.7, ge=0.5, le=2.0, alias="voiceSpeed")
    voice_pitch: float = Field(default=1.0, alias="voicePitch")
    language: str = "en-US"
    reminder_time: str = Field(default="07:00", alias="reminderTime")
    evening_check_in_time: str = Field(default="21:00", alias="eveningCheckInTime")
    enable_notifications: bool = Field(default=True, alias="enableNotifications")
    enable_sound: bool = Field(default=True, alias="enableSound")
    enable_haptic: bool = Field(default=True, alias="enableHaptic")
