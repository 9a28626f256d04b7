"""Fixed-window attempt counters stored in the database.

Counters live in ``RateLimitCounter`` so every app instance sees the same
numbers. Only failures are recorded: a client who knows the gallery password
is never throttled by their own successful visits.
"""

from __future__ import annotations

import logging
from time import time

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clientgallery.models.rate_limit import RateLimitCounter

logger = logging.getLogger(__name__)


def _window(window_seconds: int) -> int:
    return int(time()) // max(1, int(window_seconds))


def is_limited(db: Session, key: str, limit: int, window_seconds: int) -> bool:
    """True once `limit` failures were recorded for `key` in the current window."""
    if limit <= 0:
        return False
    try:
        bucket = (
            db.query(RateLimitCounter)
            .filter(
                RateLimitCounter.Key == key,
                RateLimitCounter.Window == _window(window_seconds),
            )
            .first()
        )
    except SQLAlchemyError:
        db.rollback()
        # If rate limit storage fails, allow the request rather than blocking clients
        logger.warning("rate_limit.read_failed", extra={"key": key}, exc_info=True)
        return False
    return bucket is not None and int(bucket.Count or 0) >= int(limit)


def record_failure(db: Session, key: str, window_seconds: int) -> int:
    """Increment the counter for `key` and return the new count (0 on storage failure)."""
    window = _window(window_seconds)
    try:
        bucket = (
            db.query(RateLimitCounter)
            .with_for_update()
            .filter(RateLimitCounter.Key == key, RateLimitCounter.Window == window)
            .first()
        )
        if bucket is None:
            bucket = RateLimitCounter(Key=key, Window=window, Count=1)
            db.add(bucket)
        else:
            bucket.Count = int(bucket.Count or 0) + 1
        db.commit()
        return int(bucket.Count)
    except SQLAlchemyError:
        db.rollback()
        logger.warning("rate_limit.write_failed", extra={"key": key}, exc_info=True)
        return 0
