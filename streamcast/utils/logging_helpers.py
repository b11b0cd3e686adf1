"""
Structured logging helpers for consistent log formatting.

Stream URLs routinely carry provider or camera credentials, so anything that
logs a URL goes through sanitize_url first.
"""
import logging
import re
from datetime import datetime, timezone
from urllib.parse import urlsplit, urlunsplit


_LIVE_PATH_CREDENTIALS = re.compile(r"/(live|timeshift)/[^/]+/[^/]+/")
_SENSITIVE_QUERY_KEYS = ("username", "password", "token", "access_token")


def sanitize_url(url: str) -> str:
    """Remove credentials from URL for safe logging."""
    if "://" not in url:
        return url
    try:
        parts = urlsplit(url)
    except ValueError:
        return url

    netloc = parts.netloc
    if "@" in netloc:
        netloc = f"***:***@{netloc.rsplit('@', 1)[1]}"

    path = _LIVE_PATH_CREDENTIALS.sub(r"/\1/***/***/", parts.path)

    query = parts.query
    if query:
        pairs = []
        for pair in query.split("&"):
            key = pair.split("=", 1)[0]
            pairs.append(f"{key}=***" if key.lower() in _SENSITIVE_QUERY_KEYS else pair)
        query = "&".join(pairs)

    return urlunsplit((parts.scheme, netloc, path, query, parts.fragment))


def log_refresh_start(logger: logging.Logger, user_id: str, server_count: int) -> None:
    """Log guide refresh start."""
    logger.info(
        f"Guide refresh started for user {user_id} ({server_count} server(s)) "
        f"at {datetime.now(timezone.utc).isoformat()}"
    )


def log_refresh_end(
    logger: logging.Logger,
    user_id: str,
    channels_count: int,
    epg_channels_count: int,
    duration_seconds: float,
) -> None:
    """
    Log guide refresh summary.

    Args:
        logger: Logger instance
        user_id: Owner of the refreshed guide
        channels_count: Number of channels in the new snapshot
        epg_channels_count: Number of channels that received EPG entries
        duration_seconds: Wall time of the refresh
    """
    logger.info(
        f"Guide refreshed for user {user_id}: {channels_count} channels, "
        f"{epg_channels_count} channels with EPG ({duration_seconds:.2f}s)"
    )


def log_server_processing(logger: logging.Logger, idx: int, total: int, name: str, url: str) -> None:
    """Log provider server processing header."""
    logger.info(f"Processing server {idx}/{total}: {name} ({sanitize_url(url)})")


def log_dispatch(logger: logging.Logger, content_type: str, target_kind: str, target_id: str) -> None:
    """Log a completed cast dispatch."""
    logger.info(f"Cast {content_type} to {target_kind} {target_id}")
