"""Upstream model API client (xAI Grog, OpenAI-compatible chat completions)."""
import asyncio
import logging
from typing import Any, List, Optional, Protocol, runtime_checkable

import openai
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from errors import UpstreamHTTPError, UpstreamMalformedResponse, UpstreamTimeout
from schemas import ChatMessage

logger = logging.getLogger(__name__)

_MESSAGE_TYPES = {
    "system": SystemMessage,
    "user": HumanMessage,
    "assistant": AIMessage,
}


@runtime_checkable
class UpstreamClient(Protocol):
    """Protocol for the completion call, so tests can swap in a fake."""

    async def complete(
        self,
        messages: List[ChatMessage],
        max_tokens: Optional[int] = None,
    ) -> str:
        """Send messages and return the single text completion.

        Raises:
            UpstreamTimeout: No answer within the timeout.
            UpstreamHTTPError: Non-success status or unreachable endpoint.
            UpstreamMalformedResponse: Success body without completion text.
        """
        ...


def to_langchain_messages(messages: List[ChatMessage]) -> List[BaseMessage]:
    return [_MESSAGE_TYPES[m.role](content=m.content) for m in messages]


class GrogClient:
    """Chat completion client for the Grog API.

    The SDK's own retries are disabled; the coach service owns retrying.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.x.ai/v1",
        model: str = "grok-2-latest",
        temperature: float = 0.7,
        max_tokens: int = 150,
        timeout: float = 30.0,
        llm: Optional[Any] = None,
    ):
        """Initialize the client.

        Args:
            api_key: Bearer credential.
            base_url: OpenAI-compatible API base.
            model: Model name.
            temperature: Sampling temperature.
            max_tokens: Default response-length cap.
            timeout: Hard wall-clock limit per call, in seconds.
            llm: Pre-built chat model (anything with ``ainvoke``).
        """
        self._timeout = timeout
        self._llm = llm or ChatOpenAI(
            model=model,
            api_key=api_key,
            base_url=base_url,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
            max_retries=0,
        )

    async def complete(
        self,
        messages: List[ChatMessage],
        max_tokens: Optional[int] = None,
    ) -> str:
        payload = to_langchain_messages(messages)
        overrides = {"max_tokens": max_tokens} if max_tokens is not None else {}

        try:
            # wait_for cancels the in-flight request when the timeout fires
            result = await asyncio.wait_for(
                self._llm.ainvoke(payload, **overrides),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.warning(f"[grog] request cancelled after {self._timeout:g}s")
            raise UpstreamTimeout(self._timeout) from exc
        except openai.APITimeoutError as exc:
            raise UpstreamTimeout(self._timeout) from exc
        except openai.APIStatusError as exc:
            logger.warning(f"[grog] HTTP {exc.status_code}: {exc.message}")
            raise UpstreamHTTPError(exc.status_code) from exc
        except openai.APIConnectionError as exc:
            logger.warning(f"[grog] connection failed: {exc}")
            raise UpstreamHTTPError(None, f"Grog API unreachable: {exc}") from exc
        except (
            openai.APIResponseValidationError,
            ValueError,
            AttributeError,
            KeyError,
            IndexError,
            TypeError,
        ) as exc:
            # 200 body without a usable completion: error object, no choices, not JSON
            raise UpstreamMalformedResponse(
                "Grog API response could not be parsed",
                details={"error": str(exc)},
            ) from exc

        content = getattr(result, "content", None)
        if not isinstance(content, str) or not content.strip():
            raise UpstreamMalformedResponse(
                "Grog API response has no completion text",
                details={"content": repr(content)[:200]},
            )
        return content
