"""
Retry policy for the storage boundary.

Transient SQLite failures (locked database, disk I/O) are retried with
exponential backoff. Anything still failing surfaces as PersistenceError.
"""

from __future__ import annotations

import functools
import logging

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.core.config import get_settings
from app.core.exceptions import PersistenceError

logger = logging.getLogger(__name__)


def with_persistence_retry(func):
    """Decorate an async repository method with storage retries."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        settings = get_settings()
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(settings.PERSISTENCE_RETRIES),
                wait=wait_exponential(multiplier=0.1, max=2),
                retry=retry_if_exception_type(OperationalError),
                reraise=True,
            ):
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.warning(
                            f"Retrying {func.__qualname__} "
                            f"(attempt {attempt.retry_state.attempt_number})"
                        )
                    return await func(*args, **kwargs)
        except IntegrityError:
            raise
        except DBAPIError as exc:
            logger.error(f"Storage failure in {func.__qualname__}: {exc}")
            raise PersistenceError(
                "Storage is temporarily unavailable",
                details={"operation": func.__qualname__},
            ) from exc

    return wrapper
