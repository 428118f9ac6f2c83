"""Search correlation ids using structlog contextvars."""

from __future__ import annotations

import uuid
from collections.abc import Generator
from contextlib import contextmanager

import structlog
import structlog.contextvars as contextvars

logger = structlog.get_logger("lostfound.tracing")


def generate_search_id() -> str:
    """Generate a unique search ID (32 hex characters)."""
    return uuid.uuid4().hex


def get_search_id() -> str | None:
    """Get the current search ID from context, if any."""
    return contextvars.get_contextvars().get("search_id")


@contextmanager
def trace_context(search_id: str | None = None) -> Generator[str, None, None]:
    """Bind a search ID to every log line emitted inside the block.

    Only the search_id key is unbound on exit, so context bound by an
    enclosing caller survives.

    Args:
        search_id: Optional ID to use. If None, generates a new one.

    Yields:
        The search ID being used

    Example:
        >>> with trace_context() as search_id:
        ...     logger.info("Scanning pairs")  # carries search_id
    """
    if search_id is None:
        search_id = generate_search_id()

    tokens = contextvars.bind_contextvars(search_id=search_id)
    try:
        yield search_id
    finally:
        contextvars.reset_contextvars(**tokens)
