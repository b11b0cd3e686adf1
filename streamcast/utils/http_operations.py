"""
HTTP operation utilities

Request helpers with retry logic and translation of transport failures into
the service's error taxonomy.
"""
import logging
import asyncio
from typing import Any

import httpx

from streamcast.exceptions import (
    DispatchFailedError,
    StreamCastError,
    UnauthorizedError,
    UnavailableError,
)
from streamcast.utils.logging_helpers import sanitize_url


logger = logging.getLogger(__name__)


async def request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    max_retries: int = 3,
    backoff_factor: float = 2.0,
    **kwargs: Any,
) -> httpx.Response:
    """
    Send a request with exponential backoff retry logic

    Retries on transient network errors (timeouts, connection errors) and 5xx.
    Does NOT retry on 4xx HTTP errors (client errors).

    Args:
        client: Open httpx client
        method: HTTP method
        url: Absolute or client-relative URL
        max_retries: Maximum number of attempts
        backoff_factor: Exponential backoff multiplier (wait = backoff_factor ^ attempt)

    Returns:
        The successful response

    Raises:
        httpx.HTTPError: If the request fails after all retries
    """
    safe_url = sanitize_url(str(url))
    last_error: Exception | None = None

    for attempt in range(max_retries):
        try:
            response = await client.request(method, url, **kwargs)
            response.raise_for_status()
            return response

        except (httpx.TimeoutException, httpx.ConnectError) as e:
            # Transient network errors - retry
            last_error = e
            if attempt < max_retries - 1:
                wait_time = backoff_factor ** attempt
                logger.warning(
                    f"{method} {safe_url} attempt {attempt + 1}/{max_retries} failed (transient error): "
                    f"{type(e).__name__}. Retrying in {wait_time:.1f}s..."
                )
                await asyncio.sleep(wait_time)
            else:
                logger.error(f"{method} {safe_url} failed after {max_retries} attempts (transient error)")

        except httpx.HTTPStatusError as e:
            # HTTP errors - don't retry on 4xx (client error), retry on 5xx (server error)
            if e.response.status_code < 500:
                logger.error(f"{method} {safe_url}: HTTP {e.response.status_code} (client error)")
                raise

            last_error = e
            if attempt < max_retries - 1:
                wait_time = backoff_factor ** attempt
                logger.warning(
                    f"{method} {safe_url} attempt {attempt + 1}/{max_retries} failed "
                    f"(HTTP {e.response.status_code} server error). "
                    f"Retrying in {wait_time:.1f}s..."
                )
                await asyncio.sleep(wait_time)
            else:
                logger.error(
                    f"{method} {safe_url} failed after {max_retries} attempts (HTTP {e.response.status_code})"
                )

    if last_error:
        raise last_error

    raise RuntimeError(f"Failed to {method} {safe_url} after {max_retries} attempts")


def translate_http_error(exc: httpx.HTTPError, service: str) -> StreamCastError:
    """
    Map an httpx failure onto the error taxonomy.

    Timeouts, connection failures and 5xx become UnavailableError; 401/403
    become UnauthorizedError; any other rejection becomes DispatchFailedError.
    """
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        context = {"service": service, "status_code": status}
        if status >= 500:
            return UnavailableError(f"{service} returned HTTP {status}", context=context)
        if status in (401, 403):
            return UnauthorizedError(f"{service} rejected credentials (HTTP {status})", context=context)
        return DispatchFailedError(
            f"{service} rejected the request (HTTP {status})",
            body=exc.response.text,
            context=context,
        )
    if isinstance(exc, httpx.TimeoutException):
        return UnavailableError(f"{service} timed out", context={"service": service})
    return UnavailableError(
        f"{service} is unreachable: {type(exc).__name__}",
        context={"service": service},
    )
