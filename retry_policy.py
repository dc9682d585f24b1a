"""Bounded retry around one logical upstream call."""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_chain,
    wait_fixed,
)

from errors import UpstreamHTTPError, UpstreamTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_DELAYS = (1.0, 2.0, 4.0)

# Malformed responses are not transient; only these are retried.
RETRYABLE_ERRORS = (UpstreamTimeout, UpstreamHTTPError)


class RetryPolicy:
    """Retry transient upstream failures on a fixed wait schedule.

    One initial attempt plus one retry per entry in ``delays``, waiting
    ``delays[i]`` seconds before retry ``i + 1``. The last error is re-raised
    once the schedule is exhausted.
    """

    def __init__(
        self,
        delays: Sequence[float] = DEFAULT_DELAYS,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        self.delays = tuple(delays)
        self._sleep = sleep or asyncio.sleep

    @property
    def max_attempts(self) -> int:
        return len(self.delays) + 1

    def _retrying(self) -> AsyncRetrying:
        if self.delays:
            wait = wait_chain(*[wait_fixed(d) for d in self.delays])
        else:
            wait = wait_fixed(0)
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait,
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.info(
            f"Retry {retry_state.attempt_number}/{len(self.delays)} in {delay:g}s "
            f"after {type(error).__name__}: {error}"
        )

    async def run(self, call: Callable[[], Awaitable[T]]) -> T:
        """Run ``call`` until it succeeds, fails permanently, or attempts run out."""
        async for attempt in self._retrying():
            with attempt:
                result = await call()
        return result
