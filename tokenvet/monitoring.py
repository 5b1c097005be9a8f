"""Continuous re-sampling of vetted tokens.

Each sample fetches live market, holder and activity metrics, compares them
with the token's most recent snapshot, stores a new snapshot and raises
alerts when a metric crosses its threshold.
"""
import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from .config import Settings
from .dexscreener import DexScreenerClient
from .errors import PersistenceError
from .events import AlertEvent, CycleSummary
from .metrics import ALERTS_RAISED, CYCLE_SECONDS
from .models import Alert, AlertSeverity, Chain, Listing, MonitoringSnapshot, Trend
from .payloads import to_int, to_number
from .rugcheck import RugcheckClient


LIQUIDITY_TREND_PCT = 5.0
ACTIVITY_TREND_PCT = 10.0

LIQUIDITY_DROP_PCT = 20.0
HOLDER_LOSS_PCT = 10.0
PRICE_CRASH_PCT = -30.0


def pct_change(current: Optional[float], previous: Optional[float]) -> Optional[float]:
    if current is None or previous is None or previous == 0:
        return None
    return (current - previous) / previous * 100.0


def trend(current: Optional[float], previous: Optional[float], threshold_pct: float) -> Trend:
    change = pct_change(current, previous)
    if change is None:
        return Trend.STABLE
    if change > threshold_pct:
        return Trend.INCREASING
    if change < -threshold_pct:
        return Trend.DECREASING
    return Trend.STABLE


def apply_trends(snap: MonitoringSnapshot, prev: Optional[MonitoringSnapshot]) -> MonitoringSnapshot:
    if prev is None:
        snap.liquidity_trend = snap.holder_trend = snap.activity_trend = Trend.STABLE
        snap.holder_change = None
        return snap
    snap.liquidity_trend = trend(snap.liquidity, prev.liquidity, LIQUIDITY_TREND_PCT)
    snap.activity_trend = trend(snap.txns_24h, prev.txns_24h, ACTIVITY_TREND_PCT)
    snap.holder_trend = Trend.STABLE
    if snap.total_holders is not None and prev.total_holders is not None:
        snap.holder_change = snap.total_holders - prev.total_holders
        # Any net gain or loss of holders counts
        if snap.holder_change > 0:
            snap.holder_trend = Trend.INCREASING
        elif snap.holder_change < 0:
            snap.holder_trend = Trend.DECREASING
    return snap


def _liquidity_drop(cur: MonitoringSnapshot, prev: MonitoringSnapshot) -> Optional[Alert]:
    if not prev.liquidity or prev.liquidity <= 0 or cur.liquidity is None:
        return None
    drop = (prev.liquidity - cur.liquidity) / prev.liquidity * 100.0
    if drop <= LIQUIDITY_DROP_PCT:
        return None
    return Alert(
        severity=AlertSeverity.HIGH,
        trigger_type="liquidity_drop",
        condition_description=f"Liquidity dropped more than {LIQUIDITY_DROP_PCT:.0f}%",
        message=f"Liquidity fell {drop:.1f}% (${prev.liquidity:,.0f} -> ${cur.liquidity:,.0f})",
    )


def _holder_loss(cur: MonitoringSnapshot, prev: MonitoringSnapshot) -> Optional[Alert]:
    if not prev.total_holders or prev.total_holders <= 0 or cur.total_holders is None:
        return None
    loss = (prev.total_holders - cur.total_holders) / prev.total_holders * 100.0
    if loss <= HOLDER_LOSS_PCT:
        return None
    return Alert(
        severity=AlertSeverity.MEDIUM,
        trigger_type="holder_loss",
        condition_description=f"Holder count dropped more than {HOLDER_LOSS_PCT:.0f}%",
        message=f"Holders fell {loss:.1f}% ({prev.total_holders} -> {cur.total_holders})",
    )


def _price_crash(cur: MonitoringSnapshot, prev: MonitoringSnapshot) -> Optional[Alert]:
    change = cur.price_change_24h
    if change is None or change >= PRICE_CRASH_PCT:
        return None
    return Alert(
        severity=AlertSeverity.HIGH,
        trigger_type="price_crash",
        condition_description=f"24h price change below {PRICE_CRASH_PCT:.0f}%",
        message=f"Price down {abs(change):.1f}% in 24h",
    )


ALERT_CHECKS = (_liquidity_drop, _holder_loss, _price_crash)


def detect_alerts(cur: MonitoringSnapshot, prev: Optional[MonitoringSnapshot]) -> List[Alert]:
    """Evaluate every alert check independently; one failing check never blocks the rest."""
    if prev is None:
        return []
    alerts: List[Alert] = []
    for check in ALERT_CHECKS:
        try:
            alert = check(cur, prev)
        except Exception:
            logging.exception(f"alert check {check.__name__} failed for {cur.key}")
            continue
        if alert is not None:
            alerts.append(alert)
    return alerts


class MonitoringSampler:
    def __init__(
        self,
        settings: Settings,
        store,
        dex: DexScreenerClient,
        rugcheck: RugcheckClient,
        publisher,
    ) -> None:
        self.settings = settings
        self.store = store
        self.dex = dex
        self.rugcheck = rugcheck
        self.publisher = publisher

    async def fetch_metrics(self, chain: Chain, address: str) -> Dict[str, Any]:
        """Live market/holder/activity metrics; absent values stay None."""
        pairs = await self.dex.token_pairs(address)
        pair = self.dex.best_pair(pairs) or {}
        txns_h24 = (pair.get("txns") or {}).get("h24") or {}
        buys = to_int(txns_h24.get("buys"))
        sells = to_int(txns_h24.get("sells"))
        metrics: Dict[str, Any] = {
            "price": to_number(pair.get("priceUsd")),
            "market_cap": to_number(pair.get("marketCap")) or to_number(pair.get("fdv")),
            "liquidity": to_number((pair.get("liquidity") or {}).get("usd")),
            "volume_24h": to_number((pair.get("volume") or {}).get("h24")),
            "price_change_24h": to_number((pair.get("priceChange") or {}).get("h24")),
            "buys_24h": buys,
            "sells_24h": sells,
            "txns_24h": (buys or 0) + (sells or 0) if (buys is not None or sells is not None) else None,
            "total_holders": None,
            "top_holder_pct": None,
            "top10_holders_pct": None,
        }
        if chain == Chain.SOLANA:
            facts = self.rugcheck.extract(await self.rugcheck.fetch_report(address))
            metrics["total_holders"] = facts.total_holders
            if facts.top_holders:
                metrics["top_holder_pct"] = facts.top_holders[0].percentage
                metrics["top10_holders_pct"] = sum(h.percentage for h in facts.top_holders[:10])
        return metrics

    async def sample_listing(self, listing: Listing) -> MonitoringSnapshot:
        record = listing.record
        prev = await self.store.latest_snapshot(record.chain, record.address)
        metrics = await self.fetch_metrics(record.chain, record.address)
        snap = MonitoringSnapshot(
            chain=record.chain,
            address=record.address,
            current_tier=listing.tier.value if listing.tier else None,
            raw_data={"metrics": metrics},
            **metrics,
        )
        apply_trends(snap, prev)
        await self.store.save_snapshot(snap)

        for alert in detect_alerts(snap, prev):
            ALERTS_RAISED.labels(trigger_type=alert.trigger_type, severity=alert.severity.value).inc()
            logging.warning(f"🚨 {alert.trigger_type} on {snap.key}: {alert.message}")
            try:
                await self.store.save_alert(record.chain, record.address, alert)
            except PersistenceError:
                logging.exception(f"Failed to persist {alert.trigger_type} alert for {snap.key}")
            await self.publisher.publish_alert(AlertEvent(
                ts=int(snap.scanned_at),
                chain=record.chain.value,
                address=record.address,
                severity=alert.severity.value,
                trigger_type=alert.trigger_type,
                message=alert.message,
            ))

        await self.store.mark_scanned(record.chain, record.address, snap.scanned_at)
        return snap

    async def sample(self, chain: Chain, address: str) -> Optional[MonitoringSnapshot]:
        listing = await self.store.find_one(address, chain)
        if listing is None:
            logging.info(f"No listing for {chain.value}|{address}; nothing to sample")
            return None
        return await self.sample_listing(listing)

    async def run_cycle(self) -> CycleSummary:
        summary = CycleSummary.start("monitor")
        s = self.settings
        calls_before = self.dex.calls + self.rugcheck.calls
        try:
            due = await self.store.list_by_filter(
                vetted=True,
                scanned_before=time.time() - s.monitoring_stale_seconds,
                limit=s.monitoring_batch_size,
            )
            step = max(1, s.monitoring_concurrency)
            for i in range(0, len(due), step):
                batch = due[i:i + step]
                results = await asyncio.gather(
                    *(self.sample_listing(listing) for listing in batch),
                    return_exceptions=True,
                )
                for listing, res in zip(batch, results):
                    if isinstance(res, BaseException):
                        summary.failed += 1
                        logging.error(f"❌ Monitoring failed for {listing.key}: {res}")
                    else:
                        summary.succeeded += 1
                if i + step < len(due):
                    await asyncio.sleep(s.monitoring_batch_delay_ms / 1000.0)
        except Exception:
            logging.exception("Monitoring cycle failed")
            summary.failed += 1
        summary.api_calls = self.dex.calls + self.rugcheck.calls - calls_before
        summary.finish()
        CYCLE_SECONDS.labels(pipeline="monitor").observe(summary.duration_ms / 1000.0)
        logging.info(f"👁️ {summary.describe()}")
        return summary
