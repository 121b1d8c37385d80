"""
Record Fetcher - Per-Identifier API Resolution

Resolves one identifier to a found record, a confirmed absence, or a failure
after the retry budget is spent.

Features:
- Explicit shared transport (proxy, relaxed TLS, keep-alive pool, fixed timeout)
- Bounded retry with linear backoff via tenacity (delay x attempt number)
- Provider "not found" payload is terminal and never retried
- Failures are logged and reported as outcomes, never raised

Usage:
    async with build_client() as client:
        fetcher = RecordFetcher(client)
        outcome = await fetcher.fetch(42)
"""

import logging
from typing import Any, Optional

import httpx
import orjson
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from utils.config import settings
from utils.schemas import FetchOutcome, UserRecord

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Address/User not found."


class InvalidResponseError(Exception):
    """Response is neither a not-found payload nor a valid user record."""


def build_client(
    proxy_url: Optional[str] = None,
    timeout: Optional[float] = None,
    max_connections: Optional[int] = None,
    verify: Optional[bool] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Create the outbound HTTP client shared by all fetches.

    Args:
        proxy_url: Proxy URL, defaults to settings.PROXY_URL
        timeout: Per-request timeout in seconds, defaults to settings.API_TIMEOUT
        max_connections: Connection pool cap, defaults to settings.HTTP_MAX_CONNECTIONS
        verify: TLS verification, defaults to settings.API_VERIFY_TLS
        transport: Custom transport (replaces proxy/pool configuration)

    Returns:
        Configured httpx.AsyncClient; the caller owns closing it
    """
    max_connections = max_connections or settings.HTTP_MAX_CONNECTIONS
    headers = {
        "Accept": "*/*",
        "Accept-Language": "en-US,en;q=0.9",
        "Connection": "keep-alive",
        "User-Agent": settings.API_USER_AGENT,
    }

    kwargs: dict[str, Any] = {
        "headers": headers,
        "timeout": httpx.Timeout(timeout or settings.API_TIMEOUT),
    }
    if transport is not None:
        kwargs["transport"] = transport
    else:
        kwargs["proxy"] = proxy_url or settings.PROXY_URL or None
        kwargs["verify"] = settings.API_VERIFY_TLS if verify is None else verify
        kwargs["limits"] = httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max_connections,
        )

    return httpx.AsyncClient(**kwargs)


class RecordFetcher:
    """Fetches single user records with bounded, linearly backed-off retries."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        url_template: Optional[str] = None,
        max_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ) -> None:
        """
        Initialize fetcher.

        Args:
            client: Shared HTTP client (see build_client)
            url_template: Endpoint with an ``{id}`` placeholder
            max_attempts: Total attempts per identifier, defaults to settings.CRAWL_MAX_ATTEMPTS
            retry_delay: Backoff base in seconds, defaults to settings.CRAWL_RETRY_DELAY
        """
        self.client = client
        self.url_template = url_template or settings.user_url_template
        self.max_attempts = max_attempts or settings.CRAWL_MAX_ATTEMPTS
        self.retry_delay = settings.CRAWL_RETRY_DELAY if retry_delay is None else retry_delay

    def _retrying(self, user_id: int) -> AsyncRetrying:
        def log_retry(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                "Retry %d for ID %d in %.1fs: %s",
                retry_state.attempt_number,
                user_id,
                retry_state.next_action.sleep if retry_state.next_action else 0.0,
                error,
            )

        return AsyncRetrying(
            retry=retry_if_exception_type((httpx.HTTPError, InvalidResponseError)),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_incrementing(start=self.retry_delay, increment=self.retry_delay),
            before_sleep=log_retry,
            reraise=True,
        )

    async def fetch(self, user_id: int) -> FetchOutcome:
        """
        Resolve one identifier.

        Args:
            user_id: Identifier to look up

        Returns:
            FetchOutcome with status found, absent or failed
        """
        attempts = 0
        try:
            async for attempt in self._retrying(user_id):
                attempts = attempt.retry_state.attempt_number
                with attempt:
                    record = await self._request(user_id)
        except (httpx.HTTPError, InvalidResponseError) as e:
            error = str(e) or type(e).__name__
            logger.error("Failed to fetch ID %d after %d attempts: %s", user_id, attempts, error)
            return FetchOutcome.failed(user_id, error=error, attempts=attempts)

        if record is None:
            logger.debug("ID %d: User not found", user_id)
            return FetchOutcome.absent(user_id, attempts=attempts)

        logger.debug("ID %d: Found user %s", user_id, record.twitterUsername)
        return FetchOutcome.found(record, attempts=attempts)

    async def _request(self, user_id: int) -> Optional[UserRecord]:
        """
        Issue a single request.

        Returns:
            UserRecord, or None for the provider's not-found payload

        Raises:
            httpx.HTTPError: On transport failure or non-2xx status
            InvalidResponseError: If the body is not a recognizable payload
        """
        response = await self.client.get(self.url_template.format(id=user_id))

        try:
            body = orjson.loads(response.content)
        except orjson.JSONDecodeError:
            body = None

        if isinstance(body, dict) and body.get("message") == NOT_FOUND_MESSAGE:
            return None

        response.raise_for_status()

        if not isinstance(body, dict):
            raise InvalidResponseError(f"Unexpected response body for ID {user_id}")

        try:
            return UserRecord(
                id=user_id,
                address=body.get("address"),
                twitterUsername=body.get("twitterUsername"),
                twitterName=body.get("twitterName"),
            )
        except ValidationError as e:
            raise InvalidResponseError(
                f"Invalid user payload for ID {user_id}: {str(e).splitlines()[0]}"
            ) from e
