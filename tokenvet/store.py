import asyncio
import json
import os
import time
from contextlib import asynccontextmanager
from dataclasses import asdict
from enum import Enum
from typing import Any, AsyncIterator, List, Optional

import aiosqlite

from .errors import PersistenceError
from .models import (
    Alert,
    AlertSeverity,
    Chain,
    Listing,
    MarketData,
    MonitoringSnapshot,
    RiskLevel,
    Tier,
    TokenRecord,
    TokenVettingData,
    Trend,
    VettingResults,
)


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"not JSON serializable: {type(value).__name__}")


def _dumps(value: Any) -> str:
    return json.dumps(value, default=_json_default)


def _tier_column(tier: Optional[Tier]) -> Optional[str]:
    if tier is None or tier == Tier.NONE:
        return None
    return tier.value


class ListingStore:
    """SQLite-backed Listing Store.

    ``listings`` holds the latest canonical record per (chain, address) with its
    vetting state; ``vetting_results``, ``monitoring_snapshots`` and ``alerts``
    are append-only history.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._init_lock = asyncio.Lock()
        self._initialized = False

    async def _ensure_initialized(self) -> None:
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return
            parent = os.path.dirname(self.db_path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            async with aiosqlite.connect(self.db_path) as db:
                # Performance and concurrency pragmas for WAL
                await db.execute("PRAGMA journal_mode=WAL")
                await db.execute("PRAGMA synchronous=NORMAL")
                await db.execute("PRAGMA temp_store=MEMORY")
                await db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS listings (
                        chain TEXT NOT NULL,
                        address TEXT NOT NULL,
                        symbol TEXT,
                        name TEXT,
                        category TEXT,
                        logo_url TEXT,
                        market JSON,
                        risk_score INTEGER,
                        tier TEXT, -- NULL when no tier is earned
                        risk_level TEXT,
                        vetted INTEGER NOT NULL DEFAULT 0,
                        token_age REAL,
                        created_at REAL NOT NULL,
                        updated_at REAL NOT NULL,
                        last_scanned_at REAL,
                        PRIMARY KEY (chain, address)
                    )
                    """
                )
                await db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS vetting_results (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        ts REAL NOT NULL,
                        chain TEXT NOT NULL,
                        address TEXT NOT NULL,
                        overall_score INTEGER NOT NULL,
                        risk_level TEXT NOT NULL,
                        tier TEXT,
                        results JSON NOT NULL,
                        input JSON
                    )
                    """
                )
                await db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS monitoring_snapshots (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        chain TEXT NOT NULL,
                        address TEXT NOT NULL,
                        scanned_at REAL NOT NULL,
                        current_tier TEXT,
                        price REAL,
                        market_cap REAL,
                        liquidity REAL,
                        volume_24h REAL,
                        price_change_24h REAL,
                        total_holders INTEGER,
                        holder_change INTEGER,
                        top_holder_pct REAL,
                        top10_holders_pct REAL,
                        txns_24h INTEGER,
                        buys_24h INTEGER,
                        sells_24h INTEGER,
                        liquidity_trend TEXT NOT NULL,
                        holder_trend TEXT NOT NULL,
                        activity_trend TEXT NOT NULL,
                        raw_data JSON
                    )
                    """
                )
                await db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS alerts (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        ts REAL NOT NULL,
                        chain TEXT NOT NULL,
                        address TEXT NOT NULL,
                        severity TEXT NOT NULL, -- medium|high
                        trigger_type TEXT NOT NULL,
                        condition_description TEXT,
                        message TEXT,
                        detected INTEGER NOT NULL DEFAULT 1
                    )
                    """
                )
                await db.execute("CREATE INDEX IF NOT EXISTS idx_listings_address ON listings(address)")
                await db.execute("CREATE INDEX IF NOT EXISTS idx_listings_scan ON listings(vetted, last_scanned_at)")
                await db.execute("CREATE INDEX IF NOT EXISTS idx_vetting_key_ts ON vetting_results(chain, address, ts)")
                await db.execute("CREATE INDEX IF NOT EXISTS idx_snapshots_key_ts ON monitoring_snapshots(chain, address, scanned_at)")
                await db.execute("CREATE INDEX IF NOT EXISTS idx_alerts_key_ts ON alerts(chain, address, ts)")
                await db.commit()
            self._initialized = True

    @asynccontextmanager
    async def _db(self) -> AsyncIterator[aiosqlite.Connection]:
        try:
            await self._ensure_initialized()
            async with aiosqlite.connect(self.db_path) as db:
                db.row_factory = aiosqlite.Row
                yield db
        except (aiosqlite.Error, OSError) as e:
            raise PersistenceError(f"listing store ({self.db_path}): {e}") from e

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_listing(row: aiosqlite.Row) -> Listing:
        record = TokenRecord(
            chain=Chain(row["chain"]),
            address=row["address"],
            symbol=row["symbol"],
            name=row["name"],
            market=MarketData.from_dict(json.loads(row["market"]) if row["market"] else None),
            logo_url=row["logo_url"],
            category=row["category"],
        )
        return Listing(
            record=record,
            risk_score=row["risk_score"],
            tier=Tier(row["tier"]) if row["tier"] else Tier.NONE if row["vetted"] else None,
            risk_level=RiskLevel(row["risk_level"]) if row["risk_level"] else None,
            vetted=bool(row["vetted"]),
            token_age=row["token_age"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            last_scanned_at=row["last_scanned_at"],
        )

    async def find_one(self, address: str, chain: Optional[Chain] = None) -> Optional[Listing]:
        sql = "SELECT * FROM listings WHERE address = ?"
        params: List[Any] = [address]
        if chain is not None:
            sql += " AND chain = ?"
            params.append(chain.value)
        sql += " ORDER BY updated_at DESC LIMIT 1"
        async with self._db() as db:
            async with db.execute(sql, params) as cur:
                row = await cur.fetchone()
        return self._row_to_listing(row) if row else None

    async def upsert_market_metadata(self, record: TokenRecord) -> bool:
        """Insert or refresh a canonical record. Returns True when it was new."""
        now = time.time()
        async with self._db() as db:
            async with db.execute(
                "SELECT 1 FROM listings WHERE chain = ? AND address = ?",
                (record.chain.value, record.address),
            ) as cur:
                existed = await cur.fetchone() is not None
            await db.execute(
                """
                INSERT INTO listings (chain, address, symbol, name, category, logo_url, market,
                                      created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, json(?), ?, ?)
                ON CONFLICT(chain, address) DO UPDATE SET
                    symbol = COALESCE(excluded.symbol, listings.symbol),
                    name = COALESCE(excluded.name, listings.name),
                    category = COALESCE(excluded.category, listings.category),
                    logo_url = COALESCE(excluded.logo_url, listings.logo_url),
                    market = excluded.market,
                    updated_at = excluded.updated_at
                """,
                (
                    record.chain.value,
                    record.address,
                    record.symbol,
                    record.name,
                    record.category,
                    record.logo_url,
                    _dumps(record.market_dict()),
                    now,
                    now,
                ),
            )
            await db.commit()
        return not existed

    async def save_vetting_results(self, data: TokenVettingData, results: VettingResults) -> None:
        now = time.time()
        tier = _tier_column(results.eligible_tier)
        async with self._db() as db:
            await db.execute(
                """
                INSERT INTO vetting_results (ts, chain, address, overall_score, risk_level, tier, results, input)
                VALUES (?, ?, ?, ?, ?, ?, json(?), json(?))
                """,
                (
                    now,
                    data.chain.value,
                    data.address,
                    results.overall_score,
                    results.risk_level.value,
                    tier,
                    _dumps(results.to_dict()),
                    _dumps(asdict(data)),
                ),
            )
            await db.execute(
                """
                INSERT INTO listings (chain, address, symbol, name, risk_score, tier, risk_level,
                                      vetted, token_age, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, 1, ?, ?, ?)
                ON CONFLICT(chain, address) DO UPDATE SET
                    risk_score = excluded.risk_score,
                    tier = excluded.tier,
                    risk_level = excluded.risk_level,
                    vetted = 1,
                    token_age = excluded.token_age,
                    updated_at = excluded.updated_at
                """,
                (
                    data.chain.value,
                    data.address,
                    data.token_info.symbol,
                    data.token_info.name,
                    results.overall_score,
                    tier,
                    results.risk_level.value,
                    data.token_age,
                    now,
                    now,
                ),
            )
            await db.commit()

    async def list_by_filter(
        self,
        *,
        vetted: Optional[bool] = None,
        tier: Optional[Tier] = None,
        chain: Optional[Chain] = None,
        scanned_before: Optional[float] = None,
        limit: int = 100,
    ) -> List[Listing]:
        clauses: List[str] = []
        params: List[Any] = []
        if vetted is not None:
            clauses.append("vetted = ?")
            params.append(1 if vetted else 0)
        if tier is not None:
            if tier == Tier.NONE:
                clauses.append("tier IS NULL")
            else:
                clauses.append("tier = ?")
                params.append(tier.value)
        if chain is not None:
            clauses.append("chain = ?")
            params.append(chain.value)
        if scanned_before is not None:
            clauses.append("(last_scanned_at IS NULL OR last_scanned_at < ?)")
            params.append(scanned_before)
        sql = "SELECT * FROM listings"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        if scanned_before is not None:
            sql += " ORDER BY COALESCE(last_scanned_at, 0) ASC, created_at ASC"
        else:
            sql += " ORDER BY created_at ASC"
        sql += " LIMIT ?"
        params.append(int(limit))
        async with self._db() as db:
            async with db.execute(sql, params) as cur:
                rows = await cur.fetchall()
        return [self._row_to_listing(r) for r in rows]

    async def mark_scanned(self, chain: Chain, address: str, ts: Optional[float] = None) -> None:
        async with self._db() as db:
            await db.execute(
                "UPDATE listings SET last_scanned_at = ? WHERE chain = ? AND address = ?",
                (ts if ts is not None else time.time(), chain.value, address),
            )
            await db.commit()

    # ------------------------------------------------------------------
    # Monitoring
    # ------------------------------------------------------------------

    async def latest_snapshot(self, chain: Chain, address: str) -> Optional[MonitoringSnapshot]:
        async with self._db() as db:
            async with db.execute(
                """
                SELECT * FROM monitoring_snapshots
                WHERE chain = ? AND address = ?
                ORDER BY scanned_at DESC, id DESC LIMIT 1
                """,
                (chain.value, address),
            ) as cur:
                row = await cur.fetchone()
        if row is None:
            return None
        return MonitoringSnapshot(
            chain=Chain(row["chain"]),
            address=row["address"],
            scanned_at=row["scanned_at"],
            current_tier=row["current_tier"],
            price=row["price"],
            market_cap=row["market_cap"],
            liquidity=row["liquidity"],
            volume_24h=row["volume_24h"],
            price_change_24h=row["price_change_24h"],
            total_holders=row["total_holders"],
            holder_change=row["holder_change"],
            top_holder_pct=row["top_holder_pct"],
            top10_holders_pct=row["top10_holders_pct"],
            txns_24h=row["txns_24h"],
            buys_24h=row["buys_24h"],
            sells_24h=row["sells_24h"],
            liquidity_trend=Trend(row["liquidity_trend"]),
            holder_trend=Trend(row["holder_trend"]),
            activity_trend=Trend(row["activity_trend"]),
            raw_data=json.loads(row["raw_data"]) if row["raw_data"] else {},
        )

    async def save_snapshot(self, snap: MonitoringSnapshot) -> None:
        async with self._db() as db:
            await db.execute(
                """
                INSERT INTO monitoring_snapshots (
                    chain, address, scanned_at, current_tier, price, market_cap, liquidity,
                    volume_24h, price_change_24h, total_holders, holder_change, top_holder_pct,
                    top10_holders_pct, txns_24h, buys_24h, sells_24h, liquidity_trend,
                    holder_trend, activity_trend, raw_data
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, json(?))
                """,
                (
                    snap.chain.value,
                    snap.address,
                    snap.scanned_at,
                    snap.current_tier,
                    snap.price,
                    snap.market_cap,
                    snap.liquidity,
                    snap.volume_24h,
                    snap.price_change_24h,
                    snap.total_holders,
                    snap.holder_change,
                    snap.top_holder_pct,
                    snap.top10_holders_pct,
                    snap.txns_24h,
                    snap.buys_24h,
                    snap.sells_24h,
                    snap.liquidity_trend.value,
                    snap.holder_trend.value,
                    snap.activity_trend.value,
                    _dumps(snap.raw_data),
                ),
            )
            await db.commit()

    async def save_alert(self, chain: Chain, address: str, alert: Alert) -> None:
        async with self._db() as db:
            await db.execute(
                """
                INSERT INTO alerts (ts, chain, address, severity, trigger_type,
                                    condition_description, message, detected)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    time.time(),
                    chain.value,
                    address,
                    alert.severity.value,
                    alert.trigger_type,
                    alert.condition_description,
                    alert.message,
                    1 if alert.detected else 0,
                ),
            )
            await db.commit()

    async def list_alerts(self, chain: Chain, address: str) -> List[Alert]:
        async with self._db() as db:
            async with db.execute(
                "SELECT * FROM alerts WHERE chain = ? AND address = ? ORDER BY ts ASC, id ASC",
                (chain.value, address),
            ) as cur:
                rows = await cur.fetchall()
        return [
            Alert(
                severity=AlertSeverity(r["severity"]),
                trigger_type=r["trigger_type"],
                condition_description=r["condition_description"],
                message=r["message"],
                detected=bool(r["detected"]),
            )
            for r in rows
        ]
