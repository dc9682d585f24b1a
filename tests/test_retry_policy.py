"""Unit tests for the fixed-schedule retry policy."""

import pytest

from errors import UpstreamHTTPError, UpstreamMalformedResponse, UpstreamTimeout
from retry_policy import RetryPolicy
from tests.fakes import FakeUpstream, RecordingSleep


def _call(upstream: FakeUpstream):
    return lambda: upstream.complete([])


class TestRetryPolicy:

    def test_default_schedule(self):
        policy = RetryPolicy()

        assert policy.delays == (1.0, 2.0, 4.0)
        assert policy.max_attempts == 4

    @pytest.mark.asyncio
    async def test_first_success_does_not_sleep(self, retry_policy, sleeper):
        upstream = FakeUpstream("ok")

        assert await retry_policy.run(_call(upstream)) == "ok"
        assert len(upstream.calls) == 1
        assert sleeper.delays == []

    @pytest.mark.asyncio
    async def test_exhaustion_reraises_last_error(self, retry_policy, sleeper):
        upstream = FakeUpstream(UpstreamTimeout(30), UpstreamTimeout(30), UpstreamTimeout(30), UpstreamHTTPError(504))

        with pytest.raises(UpstreamHTTPError) as exc_info:
            await retry_policy.run(_call(upstream))

        assert exc_info.value.status == 504
        assert len(upstream.calls) == 4
        assert sleeper.delays == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_malformed_is_not_retried(self, retry_policy, sleeper):
        upstream = FakeUpstream(UpstreamMalformedResponse("empty"))

        with pytest.raises(UpstreamMalformedResponse):
            await retry_policy.run(_call(upstream))

        assert len(upstream.calls) == 1
        assert sleeper.delays == []

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self, retry_policy):
        upstream = FakeUpstream(ValueError("bug"))

        with pytest.raises(ValueError):
            await retry_policy.run(_call(upstream))

        assert len(upstream.calls) == 1

    @pytest.mark.asyncio
    async def test_custom_schedule(self):
        sleeper = RecordingSleep()
        policy = RetryPolicy(delays=(0.5,), sleep=sleeper)
        upstream = FakeUpstream(UpstreamHTTPError(500))

        with pytest.raises(UpstreamHTTPError):
            await policy.run(_call(upstream))

        assert len(upstream.calls) == 2
        assert sleeper.delays == [0.5]

    @pytest.mark.asyncio
    async def test_no_retries(self):
        policy = RetryPolicy(delays=(), sleep=RecordingSleep())
        upstream = FakeUpstream(UpstreamTimeout(30))

        with pytest.raises(UpstreamTimeout):
            await policy.run(_call(upstream))

        assert len(upstream.calls) == 1
