import json
import logging
from dataclasses import asdict
from typing import Optional

import redis.asyncio as aioredis

from .events import AlertEvent, DeltaBatch


class LogPublisher:
    """Used when no Redis is configured: deltas only reach the log."""

    async def publish_deltas(self, batch: DeltaBatch) -> None:
        if batch:
            logging.info(f"📣 Listing deltas: {len(batch.new)} new, {len(batch.updated)} updated")

    async def publish_alert(self, event: AlertEvent) -> None:
        logging.warning(f"🚨 [{event.severity}] {event.trigger_type} {event.chain}|{event.address}: {event.message}")

    async def close(self) -> None:
        return None


class DeltaPublisher:
    """Fire-and-forget push of listing deltas and alerts onto a Redis stream.

    Every failure is logged and dropped; publishing never blocks persistence.
    """

    def __init__(self, redis_url: str, stream_key: str, maxlen: int = 5000) -> None:
        self._redis = aioredis.from_url(redis_url, decode_responses=True)
        self.stream_key = stream_key
        self.maxlen = maxlen

    async def _xadd(self, kind: str, body: dict) -> Optional[str]:
        try:
            fields = {"kind": kind, "ts": str(body.get("ts", "")), "payload": json.dumps(body)}
            msg_id = await self._redis.xadd(self.stream_key, fields, maxlen=self.maxlen, approximate=True)
            return msg_id
        except Exception as e:
            logging.warning(f"Redis publish ({kind}) failed: {e}")
            return None

    async def publish_deltas(self, batch: DeltaBatch) -> None:
        if not batch:
            return
        await self._xadd("listing_deltas", asdict(batch))

    async def publish_alert(self, event: AlertEvent) -> None:
        await self._xadd("alert", asdict(event))

    async def close(self) -> None:
        """Close underlying Redis connection explicitly to avoid loop-finalizer warnings."""
        try:
            await self._redis.aclose()
        except Exception:
            pass


def make_publisher(redis_url: Optional[str], stream_key: str):
    if redis_url:
        return DeltaPublisher(redis_url, stream_key)
    return LogPublisher()
