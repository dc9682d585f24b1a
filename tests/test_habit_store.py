"""Unit tests for the local habit, transcript and settings stores."""

import json

import pytest
from pydantic import ValidationError

from habit_store import (
    CHAT_TRANSCRIPT_KEY,
    CURRENT_HABIT_KEY,
    SETTINGS_KEY,
    ChatTranscript,
    HabitStore,
    JsonFileStorage,
    SettingsStore,
)
from schemas import ChatContext, HabitStatus


@pytest.fixture
def storage(tmp_path) -> JsonFileStorage:
    return JsonFileStorage(tmp_path / "storage.json")


@pytest.fixture
def store(storage) -> HabitStore:
    store = HabitStore(storage)
    store.create_habit(name="Reading", tiny_version="Read 1 page", trigger="After coffee", time="08:00")
    return store


class TestJsonFileStorage:

    def test_missing_file_reads_as_empty(self, storage):
        assert storage.get_item("anything") is None

    def test_set_get_remove(self, storage):
        storage.set_item("a", "1")
        storage.set_item("b", "2")

        assert storage.get_item("a") == "1"

        storage.remove_item("a")

        assert storage.get_item("a") is None
        assert json.loads(storage.path.read_text(encoding="utf-8")) == {"b": "2"}

    def test_rejects_non_object_file(self, tmp_path):
        path = tmp_path / "storage.json"
        path.write_text("[1, 2]", encoding="utf-8")

        with pytest.raises(ValueError):
            JsonFileStorage(path).get_item("a")


class TestHabitStore:

    def test_create(self, store, storage):
        habit = store.current_habit

        assert habit.name == "Reading"
        assert habit.current_day == 1
        assert habit.streak == 0
        assert habit.status == HabitStatus.ACTIVE

        saved = json.loads(storage.get_item(CURRENT_HABIT_KEY))
        assert saved["tinyVersion"] == "Read 1 page"
        assert saved["currentDay"] == 1

    def test_mark_complete(self, store):
        store.mark_complete()
        habit = store.mark_complete()

        assert habit.current_day == 3
        assert habit.streak == 2
        assert habit.total_completed == 2
        assert habit.last_completed_at is not None

    def test_mark_skipped_resets_streak(self, store):
        store.mark_complete()
        store.mark_complete()

        habit = store.mark_skipped("was travelling")

        assert habit.current_day == 4
        assert habit.streak == 0
        assert habit.total_completed == 2
        assert habit.missed_days == 1
        assert habit.last_skip_reason == "was travelling"

    def test_load_round_trips_through_storage(self, store, storage):
        store.mark_complete()

        loaded = HabitStore(storage).load_habit()

        assert loaded == store.current_habit

    def test_load_without_habit(self, storage):
        assert HabitStore(storage).load_habit() is None

    def test_mutations_without_habit(self, storage):
        store = HabitStore(storage)

        assert store.mark_complete() is None
        assert store.mark_skipped() is None

    def test_delete(self, store, storage):
        store.delete_habit()

        assert store.current_habit is None
        assert storage.get_item(CURRENT_HABIT_KEY) is None

    def test_completed_after_sixty_six_days(self, store):
        for _ in range(65):
            store.mark_complete()
        assert store.current_habit.status == HabitStatus.ACTIVE

        habit = store.mark_complete()

        assert habit.current_day == 67
        assert habit.status == HabitStatus.COMPLETED

    def test_chat_context(self, store):
        store.mark_complete()
        store.mark_skipped()

        assert store.chat_context() == ChatContext(
            habit_name="Reading", current_day=3, streak=0, total_completed=1, missed_days=1
        )

    def test_chat_context_without_habit(self, storage):
        assert HabitStore(storage).chat_context() == ChatContext()


class TestChatTranscript:

    def test_add_and_recent(self, storage):
        transcript = ChatTranscript(storage)
        transcript.add_user_message("hello", mode="voice")
        transcript.add_ai_message("hi there 👋")

        recent = transcript.recent()

        assert [(m.sender, m.text, m.mode) for m in recent] == [
            ("user", "hello", "voice"),
            ("ai", "hi there 👋", "text"),
        ]
        assert transcript.recent(1)[0].sender == "ai"

    def test_persisted_between_instances(self, storage):
        ChatTranscript(storage).add_user_message("remember me")

        reloaded = ChatTranscript(storage)

        assert [m.text for m in reloaded.messages] == ["remember me"]
        saved = json.loads(storage.get_item(CHAT_TRANSCRIPT_KEY))
        assert saved[0]["sender"] == "user"

    def test_delete_message(self, storage):
        transcript = ChatTranscript(storage)
        first = transcript.add_user_message("one")
        transcript.add_user_message("two")

        assert transcript.delete_message(first.id) is True
        assert transcript.delete_message("missing") is False
        assert [m.text for m in ChatTranscript(storage).messages] == ["two"]

    def test_clear(self, storage):
        transcript = ChatTranscript(storage)
        transcript.add_user_message("one")

        transcript.clear()

        assert transcript.messages == []
        assert storage.get_item(CHAT_TRANSCRIPT_KEY) is None


class TestSettingsStore:

    def test_first_load_saves_defaults(self, storage):
        settings = SettingsStore(storage).load_settings()

        assert settings.input_mode == "voice"
        assert settings.response_mode == "auto"
        assert settings.voice_speed == 0.7
        assert settings.reminder_time == "07:00"
        saved = json.loads(storage.get_item(SETTINGS_KEY))
        assert saved["responseMode"] == "auto"
        assert saved["enableNotifications"] is True

    def test_changes_are_persisted(self, storage):
        store = SettingsStore(storage)
        store.load_settings()
        store.set_input_mode("text")
        store.set_voice_speed(1.5)
        store.set_reminder_time("06:30")

        reloaded = SettingsStore(storage).load_settings()

        assert reloaded.input_mode == "text"
        assert reloaded.voice_speed == 1.5
        assert reloaded.reminder_time == "06:30"

    @pytest.mark.parametrize("speed", [0.4, 2.1])
    def test_voice_speed_out_of_range(self, storage, speed):
        store = SettingsStore(storage)
        store.load_settings()

        with pytest.raises(ValidationError):
            store.set_voice_speed(speed)

        assert store.settings.voice_speed == 0.7

    def test_unknown_modes_are_rejected(self, storage):
        store = SettingsStore(storage)

        with pytest.raises(ValidationError):
            store.set_input_mode("telepathy")
        with pytest.raises(ValidationError):
            store.set_response_mode("sometimes")

        assert store.settings.input_mode == "voice"

    def test_toggles_and_reset(self, storage):
        store = SettingsStore(storage)
        store.toggle_notifications()
        store.toggle_sound()
        settings = store.toggle_haptic()

        assert (settings.enable_notifications, settings.enable_sound, settings.enable_haptic) == (
            False,
            False,
            False,
        )

        store.reset_settings()

        assert SettingsStore(storage).load_settings().enable_notifications is True
