import asyncio
import logging
import time
from collections import Counter
from dataclasses import replace

from .events import CycleSummary, DeltaBatch, ListingDelta
from .feeds import FeedCollector
from .images import LogoResolver
from .merger import classify_category, merge_feeds
from .metrics import CANDIDATES_DROPPED, CYCLE_SECONDS, RECORDS_INGESTED
from .models import TokenRecord


def to_delta(record: TokenRecord) -> ListingDelta:
    return ListingDelta(
        chain=record.chain.value,
        address=record.address,
        symbol=record.symbol,
        name=record.name,
        price_usd=record.market.price_usd,
        liquidity_usd=record.market.liquidity_usd,
        volume_h24=record.market.volume.h24,
        logo_url=record.logo_url,
    )


class IngestionWorker:
    """One ingestion cycle: collect, merge, enrich, persist, publish.

    Only one cycle runs at a time; a trigger that arrives while a cycle is
    in flight returns immediately with a skipped summary.
    """

    def __init__(self, collector: FeedCollector, store, logos: LogoResolver, publisher, vetting=None) -> None:
        self.collector = collector
        self.store = store
        self.logos = logos
        self.publisher = publisher
        self.vetting = vetting
        self._in_flight = asyncio.Lock()

    async def run_cycle(self) -> CycleSummary:
        if self._in_flight.locked():
            logging.info("⏭️ Ingestion already running; skipping trigger")
            summary = CycleSummary.start("ingest")
            summary.skipped = True
            return summary.finish()
        async with self._in_flight:
            return await self._run()

    async def _run(self) -> CycleSummary:
        summary = CycleSummary.start("ingest")
        try:
            collected = await self.collector.collect()
            summary.api_calls = collected.api_calls

            drops: Counter = Counter()
            records = merge_feeds(collected.payloads, drops)
            for reason, count in drops.items():
                CANDIDATES_DROPPED.labels(reason=reason).inc(count)
            logging.info(f"🔀 Merged {len(records)} records ({sum(drops.values())} candidates dropped)")

            batch = DeltaBatch(ts=int(time.time()))
            for record in records.values():
                try:
                    record = replace(record, category=classify_category(record))
                    if not record.logo_url:
                        calls_before = self.logos.probe.calls + self.logos.jupiter.calls
                        logo = await self.logos.resolve(record.chain, record.address, record.symbol)
                        summary.api_calls += self.logos.probe.calls + self.logos.jupiter.calls - calls_before
                        record = replace(record, logo_url=logo)
                    created = await self.store.upsert_market_metadata(record)
                except Exception:
                    summary.failed += 1
                    logging.exception(f"Failed to upsert {record.key}")
                    continue
                summary.succeeded += 1
                RECORDS_INGESTED.labels(chain=record.chain.value, outcome="created" if created else "updated").inc()
                (batch.new if created else batch.updated).append(to_delta(record))
                if created and self.vetting is not None:
                    self.vetting.enqueue(record.chain, record.address)

            await self.publisher.publish_deltas(batch)
        except Exception:
            logging.exception("Ingestion cycle failed")
            summary.failed += 1
        summary.finish()
        CYCLE_SECONDS.labels(pipeline="ingest").observe(summary.duration_ms / 1000.0)
        logging.info(f"📥 {summary.describe()}")
        return summary
