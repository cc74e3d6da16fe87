from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterator, Dict

from nfc_card.core.realtime import ChangeEvent, ChangeHub
from nfc_card.services.insights import InsightsFeed


def format_sse(event: str, payload: Dict[str, Any]) -> str:
    return f"event: {event}\ndata: {json.dumps(payload, ensure_ascii=False, default=str)}\n\n"


async def insights_stream(feed: InsightsFeed) -> AsyncIterator[str]:
    queue = feed.listen()
    try:
        await feed.start()
        while True:
            payload = await queue.get()
            yield format_sse("error" if "error" in payload else "insights", payload)
    finally:
        feed.close()


async def table_stream(hub: ChangeHub, table: str) -> AsyncIterator[str]:
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def _forward(event: ChangeEvent) -> None:
        payload = {"eventType": event.event_type, "new": event.new, "old": event.old}
        loop.call_soon_threadsafe(queue.put_nowait, payload)

    subscription = hub.subscribe(table, _forward)
    try:
        while True:
            payload = await queue.get()
            yield format_sse("change", payload)
    finally:
        subscription.unsubscribe()
