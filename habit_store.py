# habit_store.py
"""
Local persistence for the client side of the app.

A key-value storage file holds JSON strings under fixed keys, like the
mobile AsyncStorage: one current habit record, the chat transcript and the app settings.
"""

import json
import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Union

from prompts import HABIT_DURATION_DAYS
from schemas import AppSettings, ChatContext, HabitRecord, HabitStatus, TranscriptEntry

logger = logging.getLogger(__name__)

CURRENT_HABIT_KEY = "@habitai:current_habit"
CHAT_TRANSCRIPT_KEY = "@habitai:chat_transcript"
SETTINGS_KEY = "@habitai:settings"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class JsonFileStorage:
    """Key-value storage of strings, kept in a single JSON file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Storage file {self.path} does not hold a JSON object")
        return data

    def _write_all(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, self.path)

    def get_item(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def remove_item(self, key: str) -> None:
        data = self._read_all()
        if data.pop(key, None) is not None:
            self._write_all(data)


class HabitStore:
    """
    The user's single current habit.

    Every mutation is written through to storage before the in-memory copy
    is updated; a failed write leaves ``current_habit`` unchanged.
    """

    def __init__(self, storage: JsonFileStorage):
        self.storage = storage
        self.current_habit: Optional[HabitRecord] = None

    def _save(self, habit: HabitRecord) -> HabitRecord:
        try:
            self.storage.set_item(CURRENT_HABIT_KEY, habit.model_dump_json(by_alias=True))
        except OSError as e:
            logger.error(f"Failed to save habit {habit.id}: {e}")
            raise
        self.current_habit = habit
        return habit

    def create_habit(self, name: str, tiny_version: str, trigger: str, time: str) -> HabitRecord:
        habit = HabitRecord(
            id=uuid.uuid4().hex,
            name=name,
            tiny_version=tiny_version,
            trigger=trigger,
            time=time,
            created_at=_now(),
        )
        return self._save(habit)

    def load_habit(self) -> Optional[HabitRecord]:
        raw = self.storage.get_item(CURRENT_HABIT_KEY)
        self.current_habit = HabitRecord.model_validate_json(raw) if raw else None
        return self.current_habit

    def _advance_day(self, habit: HabitRecord, **changes) -> HabitRecord:
        current_day = habit.current_day + 1
        if current_day > HABIT_DURATION_DAYS:
            changes["status"] = HabitStatus.COMPLETED
        return habit.model_copy(update={"current_day": current_day, **changes})

    def mark_complete(self) -> Optional[HabitRecord]:
        habit = self.current_habit
        if habit is None:
            return None

        updated = self._advance_day(
            habit,
            streak=habit.streak + 1,
            total_completed=habit.total_completed + 1,
            last_completed_at=_now(),
        )
        return self._save(updated)

    def mark_skipped(self, reason: str = "") -> Optional[HabitRecord]:
        """Skipping still moves to the next day but resets the streak."""
        habit = self.current_habit
        if habit is None:
            return None

        updated = self._advance_day(
            habit,
            streak=0,
            missed_days=habit.missed_days + 1,
            last_skipped_at=_now(),
            last_skip_reason=reason,
        )
        return self._save(updated)

    def delete_habit(self) -> None:
        self.storage.remove_item(CURRENT_HABIT_KEY)
        self.current_habit = None

    def chat_context(self) -> ChatContext:
        """Progress of the current habit, ready to send with a chat request."""
        habit = self.current_habit
        if habit is None:
            return ChatContext()
        return ChatContext(
            habit_name=habit.name,
            current_day=habit.current_day,
            streak=habit.streak,
            total_completed=habit.total_completed,
            missed_days=habit.missed_days,
        )


class ChatTranscript:
    """Everything said in the chat screen, persisted after each change."""

    def __init__(self, storage: JsonFileStorage):
        self.storage = storage
        raw = storage.get_item(CHAT_TRANSCRIPT_KEY)
        self.messages: List[TranscriptEntry] = (
            [TranscriptEntry.model_validate(m) for m in json.loads(raw)] if raw else []
        )

    def _persist(self) -> None:
        payload = [m.model_dump(mode="json", by_alias=True) for m in self.messages]
        self.storage.set_item(CHAT_TRANSCRIPT_KEY, json.dumps(payload, ensure_ascii=False))

    def add_message(self, sender: str, text: str, mode: str = "text") -> TranscriptEntry:
        entry = TranscriptEntry(
            id=uuid.uuid4().hex,
            timestamp=_now(),
            sender=sender,
            text=text,
            mode=mode,
        )
        self.messages.append(entry)
        self._persist()
        return entry

    def add_user_message(self, text: str, mode: str = "text") -> TranscriptEntry:
        return self.add_message("user", text, mode)

    def add_ai_message(self, text: str) -> TranscriptEntry:
        return self.add_message("ai", text)

    def recent(self, limit: int = 10) -> List[TranscriptEntry]:
        if limit <= 0:
            return []
        return self.messages[-limit:]

    def delete_message(self, message_id: str) -> bool:
        remaining = [m for m in self.messages if m.id != message_id]
        if len(remaining) == len(self.messages):
            return False
        self.messages = remaining
        self._persist()
        return True

    def clear(self) -> None:
        self.messages = []
        self.storage.remove_item(CHAT_TRANSCRIPT_KEY)


class SettingsStore:
    """
    App preferences. The first load writes the defaults to storage.

    Changes are validated as a whole, so an unknown mode or a voice speed
    outside 0.5-2.0 raises ``pydantic.ValidationError`` and nothing is saved.
    """

    def __init__(self, storage: JsonFileStorage):
        self.storage = storage
        self.settings = AppSettings()

    def _save(self, settings: AppSettings) -> AppSettings:
        self.storage.set_item(SETTINGS_KEY, settings.model_dump_json(by_alias=True))
        self.settings = settings
        return settings

    def load_settings(self) -> AppSettings:
        raw = self.storage.get_item(SETTINGS_KEY)
        if raw is None:
            return self._save(AppSettings())
        self.settings = AppSettings.model_validate_json(raw)
        return self.settings

    def save_settings(self, **changes) -> AppSettings:
        merged = {**self.settings.model_dump(), **changes}
        return self._save(AppSettings.model_validate(merged))

    def set_input_mode(self, mode: str) -> AppSettings:
        return self.save_settings(input_mode=mode)

    def set_response_mode(self, mode: str) -> AppSettings:
        return self.save_settings(response_mode=mode)

    def set_voice_speed(self, speed: float) -> AppSettings:
        return self.save_settings(voice_speed=speed)

    def set_reminder_time(self, time: str) -> AppSettings:
        return self.save_settings(reminder_time=time)

    def toggle_notifications(self) -> AppSettings:
        return self.save_settings(enable_notifications=not self.settings.enable_notifications)

    def toggle_sound(self) -> AppSettings:
        return self.save_settings(enable_sound=not self.settings.enable_sound)

    def toggle_haptic(self) -> AppSettings:
        return self.save_settings(enable_haptic=not self.settings.enable_haptic)

    def reset_settings(self) -> AppSettings:
        return self._save(AppSettings())
