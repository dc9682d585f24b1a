"""
Pytest configuration and fixtures for HabitAI backend tests.
"""
import pytest
from fastapi.testclient import TestClient

from api_main import create_app
from config import Settings
from retry_policy import RetryPolicy
from tests.fakes import FakeUpstream, RecordingSleep


@pytest.fixture
def sleeper() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def retry_policy(sleeper: RecordingSleep) -> RetryPolicy:
    return RetryPolicy(delays=(1.0, 2.0, 4.0), sleep=sleeper)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        env="test",
        grog_api_key="test-api-key",
        grog_api_url="https://grog.test/v1",
    )


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream("Great job! 🎉")


@pytest.fixture
def api_client(test_settings: Settings, upstream: FakeUpstream, retry_policy: RetryPolicy):
    app = create_app(settings=test_settings, upstream=upstream, retry_policy=retry_policy)
    with TestClient(app) as client:
        yield client
