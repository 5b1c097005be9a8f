import asyncio
import json

from tokenvet.events import AlertEvent, CycleSummary, DeltaBatch, ListingDelta
from tokenvet.notifier import DeltaPublisher, LogPublisher, make_publisher


class RecordingRedis:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    async def xadd(self, key, fields, maxlen=None, approximate=False):
        if self.fail:
            raise ConnectionError("redis down")
        self.calls.append((key, fields, maxlen, approximate))
        return "1-0"


def _delta():
    return ListingDelta(chain="SOLANA", address="mint", symbol="BONK", name="Bonk",
                        price_usd=0.1, liquidity_usd=10.0, volume_h24=5.0)


def test_delta_batch_truthiness():
    assert not DeltaBatch(ts=1)
    assert DeltaBatch(ts=1, updated=[_delta()])


def test_publishes_to_capped_stream():
    async def scenario():
        pub = DeltaPublisher("redis://localhost:6379/0", "listing_updates", maxlen=100)
        pub._redis = RecordingRedis()
        await pub.publish_deltas(DeltaBatch(ts=5, new=[_delta()]))
        await pub.publish_deltas(DeltaBatch(ts=6))
        return pub._redis.calls

    calls = asyncio.run(scenario())
    assert len(calls) == 1
    key, fields, maxlen, approximate = calls[0]
    assert key == "listing_updates"
    assert (maxlen, approximate) == (100, True)
    assert fields["kind"] == "listing_deltas"
    assert json.loads(fields["payload"])["new"][0]["symbol"] == "BONK"


def test_publish_failures_are_swallowed():
    async def scenario():
        pub = DeltaPublisher("redis://localhost:6379/0", "listing_updates")
        pub._redis = RecordingRedis(fail=True)
        await pub.publish_alert(AlertEvent(ts=1, chain="SOLANA", address="mint", severity="high",
                                           trigger_type="price_crash", message="down 40%"))

    asyncio.run(scenario())


def test_make_publisher_without_redis():
    assert isinstance(make_publisher(None, "k"), LogPublisher)


def test_cycle_summary_describe():
    summary = CycleSummary.start("vet")
    summary.succeeded = 3
    assert "ok=3" in summary.finish().describe()
    summary.skipped = True
    assert "skipped" in summary.describe()
