from __future__ import annotations

import logging
import time
from functools import wraps
from typing import Callable, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from nfc_card.core.config import settings
from nfc_card.core.errors import BackendUnavailable


logger = logging.getLogger(__name__)

T = TypeVar("T")


def _get_retry_delay(attempt: int) -> float:
    return min(5.0, settings.read_retry_delay_seconds * (attempt + 1))


# 读操作：数据库故障时有限次重试，最终抛出 BackendUnavailable
def read_with_retry(func: Callable[..., T]) -> Callable[..., T]:
    @wraps(func)
    def wrapper(*args, **kwargs) -> T:
        last_exc: Exception | None = None
        retries = max(0, settings.read_retries)
        for attempt in range(retries + 1):
            try:
                return func(*args, **kwargs)
            except (OperationalError, DBAPIError) as exc:
                last_exc = exc
                db = kwargs.get("db") or (args[0] if args else None)
                if hasattr(db, "rollback"):
                    db.rollback()
                if attempt < retries:
                    delay = _get_retry_delay(attempt)
                    logger.warning(
                        "%s failed (attempt %d/%d), retrying in %.2fs: %s",
                        func.__name__,
                        attempt + 1,
                        retries + 1,
                        delay,
                        exc,
                    )
                    time.sleep(delay)
        raise BackendUnavailable(f"Database unavailable: {func.__name__}") from last_exc

    return wrapper


# 写操作：不重试，数据库故障直接转换为 BackendUnavailable
def write_guard(func: Callable[..., T]) -> Callable[..., T]:
    @wraps(func)
    def wrapper(*args, **kwargs) -> T:
        try:
            return func(*args, **kwargs)
        except IntegrityError:
            raise
        except (OperationalError, DBAPIError) as exc:
            db = kwargs.get("db") or (args[0] if args else None)
            if hasattr(db, "rollback"):
                db.rollback()
            raise BackendUnavailable(f"Database unavailable: {func.__name__}") from exc

    return wrapper
