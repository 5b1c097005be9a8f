import asyncio
import logging
import time
from typing import Any, Dict, Iterable, List, Optional, Tuple

from . import scoring
from .config import Settings
from .dexscreener import DexScreenerClient
from .errors import PersistenceError
from .events import CycleSummary
from .metrics import CYCLE_SECONDS, VETTING_RESULTS
from .models import (
    Chain,
    DeveloperInfo,
    HolderEntry,
    HolderInfo,
    Listing,
    SecurityInfo,
    TokenInfo,
    TokenVettingData,
    TradingInfo,
    VettingResults,
    token_key,
)
from .onchain import OnchainAnalyzer
from .payloads import to_int, to_number
from .rugcheck import RugcheckClient, RugcheckFacts


SECONDS_PER_DAY = 86400.0

# Incinerator and system program; tokens sent here never circulate again
BURN_ADDRESSES = frozenset({
    "1nc1nerator11111111111111111111111111111111",
    "11111111111111111111111111111111",
})


def token_age_days(pair_created_at: Optional[float], fallback_created_at: Optional[float],
                   now: Optional[float] = None) -> float:
    """Age in days from a pair creation stamp in seconds or milliseconds."""
    now = time.time() if now is None else now
    created = pair_created_at
    if created is not None and created > 0:
        if created > 1e12:
            created = created / 1000.0
    elif fallback_created_at:
        created = fallback_created_at
    else:
        return 0.0
    return max(0.0, (now - created) / SECONDS_PER_DAY)


def circulating_supply(total_supply: Optional[float], top_holders: List[HolderEntry],
                       locked: Iterable[str] = ()) -> Optional[float]:
    """Total supply less the share held by burn and locker accounts among the top holders.

    Only the largest accounts are visible, so this is an upper bound.
    """
    if not total_supply or total_supply <= 0:
        return None
    skip = BURN_ADDRESSES | set(locked)
    held_pct = sum(h.percentage for h in top_holders if h.address in skip)
    return total_supply * (100.0 - min(100.0, max(0.0, held_pct))) / 100.0


def creator_status(balance_pct: Optional[float]) -> str:
    if balance_pct is None:
        return "unknown"
    if balance_pct < 1:
        return "sold"
    if balance_pct > 10:
        return "holding"
    return "partial"


class VettingOrchestrator:
    """Assembles vetting input, scores it and persists the result.

    Work for one (chain, address) is serialized by a per-key lock; a
    semaphore bounds how many tokens are vetted at once.
    """

    def __init__(
        self,
        settings: Settings,
        store,
        dex: DexScreenerClient,
        rugcheck: RugcheckClient,
        onchain: OnchainAnalyzer,
    ) -> None:
        self.settings = settings
        self.store = store
        self.dex = dex
        self.rugcheck = rugcheck
        self.onchain = onchain
        self._locks: Dict[str, asyncio.Lock] = {}
        # Callers holding or waiting on each key lock; the lock is dropped at zero
        self._lock_users: Dict[str, int] = {}
        self._sem = asyncio.Semaphore(max(1, settings.vetting_concurrency))
        self._pending: Dict[str, Tuple[Chain, str]] = {}
        # Computed results whose save failed, kept until a later vet persists them
        self.unsaved: Dict[str, VettingResults] = {}

    def enqueue(self, chain: Chain, address: str) -> None:
        self._pending.setdefault(token_key(chain, address), (chain, address))

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def assemble(self, chain: Chain, address: str, listing: Optional[Listing] = None) -> TokenVettingData:
        pairs = await self.dex.token_pairs(address)
        pair: Dict[str, Any] = self.dex.best_pair(pairs) or {}

        facts = RugcheckFacts()
        if chain == Chain.SOLANA:
            report = await self.rugcheck.fetch_report(address)
            rc_score, rc_risks, rc_lp = self.rugcheck.summarize(report)
            logging.debug(f"rugcheck {address}: score={rc_score} risks={rc_risks} lp={rc_lp}")
            facts = self.rugcheck.extract(report)
            needs_chain_data = (
                facts.total_supply is None
                or not facts.top_holders
                or (facts.is_mintable is None and facts.is_freezable is None)
            )
            if needs_chain_data:
                onchain = await self.onchain.analyze(address)
                if onchain:
                    if facts.total_supply is None:
                        facts.total_supply = onchain["supply_total"]
                    if not facts.top_holders:
                        facts.top_holders = onchain["top_holders"]
                    if facts.is_mintable is None and facts.is_freezable is None:
                        facts.is_mintable = onchain["is_mintable"]
                        facts.is_freezable = onchain["is_freezable"]

        record = listing.record if listing else None
        base = pair.get("baseToken") or {}
        name = facts.name or base.get("name") or (record.name if record else None) or "Unknown"
        symbol = facts.symbol or base.get("symbol") or (record.symbol if record else None) or "UNKNOWN"
        info = pair.get("info") or {}

        txns_h24 = (pair.get("txns") or {}).get("h24") or {}
        liquidity = to_number((pair.get("liquidity") or {}).get("usd"))
        if liquidity is None and record is not None:
            liquidity = record.market.liquidity_usd

        holder_count = facts.total_holders
        if holder_count is None and record is not None:
            holder_count = record.market.holders

        top10_rate = None
        if facts.top_holders:
            top10_rate = sum(h.percentage for h in facts.top_holders[:10]) / 100.0

        pair_created = to_number(pair.get("pairCreatedAt"))
        if pair_created is None and record is not None:
            pair_created = record.market.pair_created_at

        return TokenVettingData(
            chain=chain,
            address=address,
            token_info=TokenInfo(
                name=name,
                symbol=symbol,
                image=facts.image or info.get("imageUrl") or (record.logo_url if record else None),
                decimals=facts.decimals,
                websites=[w.get("url") for w in info.get("websites") or [] if isinstance(w, dict) and w.get("url")],
                socials=[s.get("url") for s in info.get("socials") or [] if isinstance(s, dict) and s.get("url")],
            ),
            security=SecurityInfo(
                is_mintable=facts.is_mintable,
                is_freezable=facts.is_freezable,
                lp_lock_percentage=facts.lp_lock_percentage,
                total_supply=facts.total_supply,
                circulating_supply=circulating_supply(facts.total_supply, facts.top_holders, facts.locker_accounts),
                lp_locks=facts.lp_locks,
            ),
            holders=HolderInfo(count=holder_count, top_holders=facts.top_holders),
            developer=DeveloperInfo(
                creator_address=facts.creator,
                creator_balance=facts.creator_balance_pct,
                creator_status=creator_status(facts.creator_balance_pct),
                top10_holder_rate=top10_rate,
                twitter_create_token_count=facts.creator_token_count,
            ),
            trading=TradingInfo(
                price=to_number(pair.get("priceUsd")),
                liquidity=liquidity,
                volume_24h=to_number((pair.get("volume") or {}).get("h24")),
                price_change_24h=to_number((pair.get("priceChange") or {}).get("h24")),
                fdv=to_number(pair.get("fdv")),
                holder_count=holder_count,
                buys_24h=to_int(txns_h24.get("buys")),
                sells_24h=to_int(txns_h24.get("sells")),
            ),
            token_age=token_age_days(pair_created, listing.created_at if listing else None),
        )

    async def vet_token(self, chain: Chain, address: str) -> VettingResults:
        """Score one token now. Raises PersistenceError if the result can't be saved."""
        key = token_key(chain, address)
        lock = self._lock_for(key)
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                async with self._sem:
                    return await self._vet(key, chain, address)
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                self._locks.pop(key, None)

    async def _vet(self, key: str, chain: Chain, address: str) -> VettingResults:
        listing = await self.store.find_one(address, chain)
        data = await self.assemble(chain, address, listing)
        results = scoring.score(data)
        VETTING_RESULTS.labels(tier=results.eligible_tier.value).inc()
        logging.info(
            f"🧪 Vetted {key}: score={results.overall_score} risk={results.risk_level.value} "
            f"tier={results.eligible_tier.value} age={data.token_age:.1f}d"
        )
        try:
            await self.store.save_vetting_results(data, results)
        except PersistenceError:
            self.unsaved[key] = results
            logging.exception(f"Failed to persist vetting results for {key}")
            raise
        self.unsaved.pop(key, None)
        self._pending.pop(key, None)
        return results

    def _drain_pending(self, limit: int) -> List[Tuple[Chain, str]]:
        keys = list(self._pending)[:limit]
        return [self._pending[k] for k in keys]

    async def run_backlog(self) -> CycleSummary:
        summary = CycleSummary.start("vet")
        batch_size = max(1, self.settings.vetting_batch_size)
        calls_before = self.dex.calls + self.rugcheck.calls + self.onchain.calls
        try:
            todo = self._drain_pending(batch_size)
            if len(todo) < batch_size:
                seen = {token_key(c, a) for c, a in todo}
                for listing in await self.store.list_by_filter(vetted=False, limit=batch_size):
                    if listing.key not in seen and len(todo) < batch_size:
                        todo.append((listing.record.chain, listing.record.address))
                        seen.add(listing.key)
            results = await asyncio.gather(
                *(self.vet_token(chain, address) for chain, address in todo),
                return_exceptions=True,
            )
            for (chain, address), res in zip(todo, results):
                if isinstance(res, BaseException):
                    summary.failed += 1
                    logging.error(f"❌ Vetting failed for {token_key(chain, address)}: {res}")
                else:
                    summary.succeeded += 1
        except Exception:
            logging.exception("Vetting backlog cycle failed")
            summary.failed += 1
        summary.api_calls = self.dex.calls + self.rugcheck.calls + self.onchain.calls - calls_before
        summary.finish()
        CYCLE_SECONDS.labels(pipeline="vet").observe(summary.duration_ms / 1000.0)
        logging.info(f"🧪 {summary.describe()}")
        return summary
