from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional

from nfc_card.core.config import settings
from nfc_card.core.errors import ValidationError
from nfc_card.core.realtime import ChangeEvent, ChangeHub, Subscription
from nfc_card.services.profiles import PROFILE_TABLE


logger = logging.getLogger(__name__)


def _to_naive_utc(value: datetime) -> datetime:
    # created_at is stored as naive UTC
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _as_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _to_naive_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    text = str(value).strip().replace("Z", "+00:00")
    return _to_naive_utc(datetime.fromisoformat(text))


def parse_date_bound(value: str | None) -> Optional[datetime | date]:
    """Parse a filter bound given as ``YYYY-MM-DD`` or a full ISO timestamp."""
    if value is None or not value.strip():
        return None
    text = value.strip()
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        return _as_datetime(text)
    except ValueError as exc:
        raise ValidationError(f"Invalid date: {value}") from exc


def _lower_bound(value: Any) -> Optional[datetime]:
    return _as_datetime(value)


def _upper_bound(value: Any) -> Optional[datetime]:
    # A bare date means "through the end of that day"
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.max)
    return _as_datetime(value)


@dataclass(frozen=True)
class ProfileFilter:
    search: str = ""
    date_from: Optional[datetime | date] = None
    date_to: Optional[datetime | date] = None

    def matches(self, row: Dict[str, Any]) -> bool:
        term = (self.search or "").strip().lower()
        if term and term not in (row.get("name") or "").lower():
            return False
        created = _as_datetime(row.get("created_at"))
        start = _lower_bound(self.date_from)
        end = _upper_bound(self.date_to)
        if start is not None and (created is None or created < start):
            return False
        if end is not None and (created is None or created > end):
            return False
        return True

    def apply(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [row for row in rows if self.matches(row)]


class Paginator:
    def __init__(self, page_size: int | None = None) -> None:
        self.page_size = max(1, page_size or settings.admin_page_size)
        self.page = 1

    def total_pages(self, count: int) -> int:
        return max(1, math.ceil(count / self.page_size))

    def go_to(self, page: int, count: int) -> int:
        self.page = min(max(1, page), self.total_pages(count))
        return self.page

    def reset(self) -> None:
        self.page = 1

    def slice(self, items: List[Any]) -> List[Any]:
        self.go_to(self.page, len(items))
        start = (self.page - 1) * self.page_size
        return items[start : start + self.page_size]


class ConsoleView:
    """In-memory mirror of the profile table as the admin console shows it.

    Rows are plain dicts shaped like ``profile_row``. Changing the filter
    sends both lists back to page 1; live changes keep the current filter and
    page, clamping the page when the list shrinks.
    """

    def __init__(self, rows: List[Dict[str, Any]] | None = None, page_size: int | None = None) -> None:
        self.rows: List[Dict[str, Any]] = list(rows or [])
        self.filter = ProfileFilter()
        self.verified_pages = Paginator(page_size)
        self.pending_pages = Paginator(page_size)
        self._subscription: Subscription | None = None

    def set_filter(
        self,
        search: str = "",
        date_from: Optional[datetime | date] = None,
        date_to: Optional[datetime | date] = None,
    ) -> None:
        new_filter = ProfileFilter(search=search or "", date_from=date_from, date_to=date_to)
        if new_filter != self.filter:
            self.verified_pages.reset()
            self.pending_pages.reset()
        self.filter = new_filter

    def verified(self) -> List[Dict[str, Any]]:
        return [row for row in self.filter.apply(self.rows) if row.get("is_verified")]

    def pending(self) -> List[Dict[str, Any]]:
        return [row for row in self.filter.apply(self.rows) if not row.get("is_verified")]

    def go_to_verified(self, page: int) -> int:
        return self.verified_pages.go_to(page, len(self.verified()))

    def go_to_pending(self, page: int) -> int:
        return self.pending_pages.go_to(page, len(self.pending()))

    def verified_page(self) -> List[Dict[str, Any]]:
        return self.verified_pages.slice(self.verified())

    def pending_page(self) -> List[Dict[str, Any]]:
        return self.pending_pages.slice(self.pending())

    def apply(self, event: ChangeEvent) -> None:
        if event.table != PROFILE_TABLE:
            return
        if event.event_type in ("INSERT", "UPDATE"):
            row_id = event.new.get("id")
            replaced = False
            for index, row in enumerate(self.rows):
                if row.get("id") == row_id:
                    self.rows[index] = dict(event.new)
                    replaced = True
                    break
            if not replaced:
                self.rows.append(dict(event.new))
        elif event.event_type == "DELETE":
            row_id = event.old.get("id")
            self.rows = [row for row in self.rows if row.get("id") != row_id]
        logger.debug("Console mirrored %s (%d rows)", event.event_type, len(self.rows))
        self.go_to_verified(self.verified_pages.page)
        self.go_to_pending(self.pending_pages.page)

    def attach(self, hub: ChangeHub) -> Subscription:
        if self._subscription is None:
            self._subscription = hub.subscribe(PROFILE_TABLE, self.apply)
        return self._subscription

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
