from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from nfc_card.core.config import settings
from nfc_card.core.database import SessionLocal
from nfc_card.core.errors import CardError
from nfc_card.core.realtime import ChangeEvent, ChangeHub, Subscription, get_hub
from nfc_card.core.schemas import LinkInsight
from nfc_card.models import LinkClick
from nfc_card.services.clicks import CLICK_TABLE
from nfc_card.utils.retry import read_with_retry


logger = logging.getLogger(__name__)


def rank_insights(counts: Dict[str, int]) -> List[LinkInsight]:
    # Most tapped first; equal counts ordered by link type name
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [LinkInsight(link_type=link_type, count=count) for link_type, count in ordered]


@read_with_retry
def compute_insights(db: Session, profile_id: str) -> List[LinkInsight]:
    rows = (
        db.query(LinkClick.link_type, func.count(LinkClick.id))
        .filter(LinkClick.social_media_data_id == profile_id)
        .group_by(LinkClick.link_type)
        .all()
    )
    return rank_insights({str(link_type): int(count or 0) for link_type, count in rows})


def insights_payload(profile_id: str, insights: List[LinkInsight]) -> Dict[str, Any]:
    return {
        "profile_id": profile_id,
        "total": sum(item.count for item in insights),
        "insights": [item.model_dump() for item in insights],
    }


class InsightsFeed:
    """Live per-profile insights.

    Listens for click inserts/updates of one profile, folds bursts that land
    inside the debounce window into a single recompute and pushes each result
    (or an ``{"error": ...}`` payload) to every listener queue. A failed
    recompute is not retried; the next change triggers a fresh one.
    """

    def __init__(
        self,
        profile_id: str,
        session_factory: Callable[[], Session] = SessionLocal,
        hub: ChangeHub | None = None,
        debounce_seconds: float | None = None,
    ) -> None:
        self.profile_id = profile_id
        self.session_factory = session_factory
        self.hub = hub or get_hub()
        self.debounce_seconds = (
            settings.insights_debounce_seconds if debounce_seconds is None else debounce_seconds
        )
        self.recompute_count = 0
        self.latest: Dict[str, Any] | None = None
        self._listeners: List[asyncio.Queue] = []
        self._subscription: Subscription | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._pending: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()

    def listen(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._listeners.append(queue)
        return queue

    async def start(self) -> Dict[str, Any]:
        self._loop = asyncio.get_running_loop()
        if self._subscription is None:
            self._subscription = self.hub.subscribe(
                CLICK_TABLE,
                self._on_change,
                where=("social_media_data_id", self.profile_id),
            )
        return await self.refresh()

    def _on_change(self, event: ChangeEvent) -> None:
        if event.event_type not in ("INSERT", "UPDATE"):
            return
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._schedule)

    def _schedule(self) -> None:
        if self._pending is not None or self._subscription is None:
            return
        self._pending = self._loop.call_later(self.debounce_seconds, self._fire)

    def _fire(self) -> None:
        self._pending = None
        task = self._loop.create_task(self.refresh())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _compute(self) -> List[LinkInsight]:
        with self.session_factory() as db:
            return compute_insights(db, self.profile_id)

    async def refresh(self) -> Dict[str, Any]:
        self.recompute_count += 1
        try:
            insights = await asyncio.to_thread(self._compute)
        except (CardError, SQLAlchemyError) as exc:
            logger.error("Insights refresh for %s failed: %s", self.profile_id, exc)
            payload: Dict[str, Any] = {
                "profile_id": self.profile_id,
                "error": "Error fetching insights",
            }
        else:
            payload = insights_payload(self.profile_id, insights)
        self.latest = payload
        for queue in list(self._listeners):
            queue.put_nowait(payload)
        return payload

    def close(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        for task in list(self._tasks):
            task.cancel()
        self._listeners.clear()
