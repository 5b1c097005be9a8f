from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .jsonclient import JsonClient
from .models import HolderEntry, LpLock
from .payloads import to_int, to_number


@dataclass
class RugcheckFacts:
    """The parts of a Rugcheck report the vetting pipeline reads."""

    name: Optional[str] = None
    symbol: Optional[str] = None
    image: Optional[str] = None
    decimals: Optional[int] = None
    total_supply: Optional[float] = None
    is_mintable: Optional[bool] = None
    is_freezable: Optional[bool] = None
    lp_lock_percentage: Optional[float] = None
    lp_locks: List[LpLock] = field(default_factory=list)
    total_holders: Optional[int] = None
    top_holders: List[HolderEntry] = field(default_factory=list)
    creator: Optional[str] = None
    creator_balance_pct: Optional[float] = None
    creator_token_count: int = 0
    locker_accounts: List[str] = field(default_factory=list)


class RugcheckClient(JsonClient):
    provider = "rugcheck"

    async def fetch_report(self, mint: str) -> Optional[dict]:
        raw = (mint or "").strip()
        if not raw:
            return None
        candidates = [raw]
        if raw.endswith("pump"):
            candidates.append(raw[:-4])
        for candidate in candidates:
            report = await self.get_json(f"tokens/{candidate}/report")
            if isinstance(report, dict):
                return report
        return None

    @staticmethod
    def summarize(report: Optional[dict]) -> Tuple[str, str, str]:
        """(score, top risk names, LP locked text) for log lines."""
        if not report:
            return ("n/a", "n/a", "n/a")
        score = report.get("score")
        risks = report.get("risks") or []
        risk_names = [r.get("name", "?") for r in risks if isinstance(r, dict)][:2]
        risk_text = "none" if not risk_names else ",".join(risk_names)
        lp_pct = _lp_locked_pct(report)
        lp_text = f"{round(lp_pct)}%" if lp_pct is not None else "n/a"
        return (str(score) if score is not None else "n/a", risk_text, lp_text)

    @staticmethod
    def extract(report: Optional[dict]) -> RugcheckFacts:
        facts = RugcheckFacts()
        if not isinstance(report, dict):
            return facts

        meta = report.get("tokenMeta") or {}
        facts.name = meta.get("name")
        facts.symbol = meta.get("symbol")
        facts.image = (report.get("fileMeta") or {}).get("image")

        token = report.get("token") or {}
        decimals = to_int(token.get("decimals"))
        facts.decimals = decimals
        supply_raw = to_number(token.get("supply"))
        if supply_raw is not None and decimals is not None:
            facts.total_supply = supply_raw / float(10 ** max(0, decimals))
        if "mintAuthority" in token:
            facts.is_mintable = token.get("mintAuthority") is not None
        if "freezeAuthority" in token:
            facts.is_freezable = token.get("freezeAuthority") is not None

        facts.lp_lock_percentage = _lp_locked_pct(report)
        facts.lp_locks = _lp_locks(report)
        lockers = report.get("lockers") or {}
        if isinstance(lockers, dict):
            for locker in lockers.values():
                if isinstance(locker, dict):
                    facts.locker_accounts.extend(
                        str(locker[k]) for k in ("owner", "tokenAccount") if locker.get(k)
                    )

        facts.total_holders = to_int(report.get("totalHolders"))
        for holder in (report.get("topHolders") or [])[:10]:
            if not isinstance(holder, dict):
                continue
            pct = to_number(holder.get("pct"))
            if pct is None:
                continue
            facts.top_holders.append(HolderEntry(
                address=str(holder.get("owner") or holder.get("address") or ""),
                balance=to_number(holder.get("uiAmount")) or 0.0,
                percentage=pct,
            ))

        facts.creator = report.get("creator") or None
        creator_raw = to_number(report.get("creatorBalance"))
        if creator_raw is not None and supply_raw:
            facts.creator_balance_pct = creator_raw / supply_raw * 100.0
        creator_tokens = report.get("creatorTokens")
        if isinstance(creator_tokens, list):
            facts.creator_token_count = len(creator_tokens)
        return facts


def _lp_locked_pct(report: Dict[str, Any]) -> Optional[float]:
    best: Optional[float] = None
    for market in report.get("markets") or []:
        if not isinstance(market, dict):
            continue
        pct = to_number((market.get("lp") or {}).get("lpLockedPct"))
        if pct is not None and (best is None or pct > best):
            best = pct
    return best


def _lp_locks(report: Dict[str, Any]) -> List[LpLock]:
    locks: List[LpLock] = []
    lockers = report.get("lockers") or {}
    if isinstance(lockers, dict):
        for locker in lockers.values():
            if not isinstance(locker, dict):
                continue
            unlock = to_number(locker.get("unlockDate"))
            locks.append(LpLock(
                tag="Locked",
                unlock_at=unlock if unlock else None,
                usd_locked=to_number(locker.get("usdcLocked")),
            ))
    # Rugcheck reports burned LP as ~100% locked with no locker entry
    pct = _lp_locked_pct(report)
    if pct is not None and pct >= 99 and not locks:
        locks.append(LpLock(tag="Burned", percentage=pct))
    return locks
