"""
Retrying HTTP Fetcher

Issues upstream requests through a shared httpx.AsyncClient and retries
transient failures with bounded exponential backoff.

Retry policy:
    - 2xx: success, the response is returned
    - 429 and 5xx: retryable
    - any other status: UpstreamFetchError raised immediately
    - transport failures (no response): retryable
    - attempts are capped at retries + 1

Delay before retry n (0-based) is min(max_backoff_ms, initial_backoff_ms * 2**n),
jittered into [delay / 2, delay]. A Retry-After header can lengthen the
delay but never past max_backoff_ms.

Author: Khalil_Bannouri
Version: 1.0.0
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import httpx

from order_gateway.core.config import get_settings
from order_gateway.core.errors import UpstreamFetchError

logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 256


@dataclass
class RetryPolicy:
    """
    Bounds for one fetch.

    Attributes:
        retries: Retries after the first attempt
        initial_backoff_ms: Delay before the first retry
        max_backoff_ms: Cap for any single delay
        jitter: Randomize each delay into [delay / 2, delay]
    """
    retries: int = 3
    initial_backoff_ms: int = 250
    max_backoff_ms: int = 4000
    jitter: bool = True

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        settings = get_settings()
        return cls(
            retries=settings.retry_attempts,
            initial_backoff_ms=settings.retry_initial_backoff_ms,
            max_backoff_ms=settings.retry_max_backoff_ms,
        )

    def backoff_ms(self, attempt: int) -> float:
        """Unjittered delay before retry number `attempt` (0-based)."""
        return min(self.max_backoff_ms, self.initial_backoff_ms * (2 ** attempt))


def is_retryable_status(status: int) -> bool:
    return status == 429 or 500 <= status < 600


def _retry_after_ms(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return max(0.0, float(value) * 1000)
    except ValueError:
        return None


def _snippet(response: httpx.Response) -> str:
    try:
        return response.text[:SNIPPET_LENGTH]
    except (UnicodeDecodeError, httpx.ResponseNotRead):
        return ""


class RetryingFetcher:
    """
    Upstream HTTP caller with bounded retry/backoff.

    Example:
        >>> fetcher = RetryingFetcher(httpx.AsyncClient())
        >>> response = await fetcher.fetch("GET", "https://ws-api.toasttab.com/...")
        >>> response.json()
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        policy: Optional[RetryPolicy] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        """
        Args:
            client: Shared async client (tests pass one built on httpx.MockTransport)
            policy: Default retry bounds (settings are used when omitted)
            sleep: Awaitable sleep in seconds (asyncio.sleep by default)
        """
        self.client = client
        self.policy = policy or RetryPolicy.from_settings()
        self._sleep = sleep or asyncio.sleep

    def _delay_ms(self, policy: RetryPolicy, attempt: int, response: Optional[httpx.Response]) -> float:
        delay = policy.backoff_ms(attempt)
        if policy.jitter and delay > 0:
            delay = random.uniform(delay / 2, delay)
        if response is not None:
            retry_after = _retry_after_ms(response)
            if retry_after is not None:
                delay = max(delay, retry_after)
        return min(delay, policy.max_backoff_ms)

    async def fetch(
        self,
        method: str,
        url: str,
        *,
        retries: Optional[int] = None,
        initial_backoff_ms: Optional[int] = None,
        max_backoff_ms: Optional[int] = None,
        **request_kwargs: Any,
    ) -> httpx.Response:
        """
        Send a request, retrying transient failures.

        Args:
            method: HTTP method
            url: Absolute URL
            retries: Override for the policy's retry count
            initial_backoff_ms: Override for the first delay
            max_backoff_ms: Override for the delay cap
            **request_kwargs: Passed to httpx (headers, params, json, ...)

        Returns:
            httpx.Response: A 2xx response

        Raises:
            UpstreamFetchError: Non-retryable status, or retries exhausted
        """
        policy = RetryPolicy(
            retries=self.policy.retries if retries is None else retries,
            initial_backoff_ms=(
                self.policy.initial_backoff_ms if initial_backoff_ms is None else initial_backoff_ms
            ),
            max_backoff_ms=self.policy.max_backoff_ms if max_backoff_ms is None else max_backoff_ms,
            jitter=self.policy.jitter,
        )
        max_attempts = max(0, policy.retries) + 1

        last_response: Optional[httpx.Response] = None
        last_error: Optional[httpx.TransportError] = None

        for attempt in range(max_attempts):
            try:
                response = await self.client.request(method, url, **request_kwargs)
            except httpx.TransportError as e:
                last_error = e
                last_response = None
                logger.warning(
                    f"Upstream transport error on {method} {url} "
                    f"(attempt {attempt + 1}/{max_attempts}): {e}"
                )
            else:
                if response.is_success:
                    return response

                last_response = response
                last_error = None

                if not is_retryable_status(response.status_code):
                    raise UpstreamFetchError(
                        f"Upstream {method} {httpx.URL(url).path} failed: {response.status_code}",
                        status=response.status_code,
                        snippet=_snippet(response),
                        url=url,
                        attempts=attempt + 1,
                    )

                logger.warning(
                    f"Upstream {response.status_code} on {method} {url} "
                    f"(attempt {attempt + 1}/{max_attempts})"
                )

            if attempt + 1 < max_attempts:
                delay_ms = self._delay_ms(policy, attempt, last_response)
                await self._sleep(delay_ms / 1000)

        if last_response is not None:
            raise UpstreamFetchError(
                f"Upstream {method} {httpx.URL(url).path} failed: "
                f"{last_response.status_code} after {max_attempts} attempts",
                status=last_response.status_code,
                snippet=_snippet(last_response),
                url=url,
                attempts=max_attempts,
            )

        raise UpstreamFetchError(
            f"Upstream {method} {httpx.URL(url).path} unreachable: {last_error}",
            status=None,
            url=url,
            attempts=max_attempts,
        ) from last_error
