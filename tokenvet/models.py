import time
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Chain(Enum):
    SOLANA = "SOLANA"
    ETHEREUM = "ETHEREUM"
    BSC = "BSC"
    BASE = "BASE"
    SUI = "SUI"
    APTOS = "APTOS"
    NEAR = "NEAR"
    OSMOSIS = "OSMOSIS"
    OTHER = "OTHER"
    UNKNOWN = "UNKNOWN"


class RiskLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    # Only found on rows written before scores were always computed
    INSUFFICIENT_DATA = "insufficient_data"


class Tier(Enum):
    STELLAR = "stellar"
    BLOOM = "bloom"
    SPROUT = "sprout"
    SEED = "seed"
    NEW = "new"
    NONE = "none"


class Trend(Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class AlertSeverity(Enum):
    MEDIUM = "medium"
    HIGH = "high"


def token_key(chain: Chain, address: str) -> str:
    return f"{chain.value}|{address}"


# ---------------------------------------------------------------------------
# Canonical token record
# ---------------------------------------------------------------------------


@dataclass
class PriceChange:
    m5: Optional[float] = None
    h1: Optional[float] = None
    h6: Optional[float] = None
    h24: Optional[float] = None


@dataclass
class Volume:
    h24: float = 0.0


@dataclass
class MarketData:
    price_usd: Optional[float] = None
    liquidity_usd: Optional[float] = None
    fdv: Optional[float] = None
    volume: Volume = field(default_factory=Volume)
    price_change: PriceChange = field(default_factory=PriceChange)
    txns: Optional[Dict[str, Any]] = None
    holders: Optional[int] = None
    pair_address: Optional[str] = None
    pair_created_at: Optional[float] = None
    source: str = ""

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "MarketData":
        d = dict(d or {})
        volume = d.pop("volume", None) or {}
        change = d.pop("price_change", None) or {}
        known = {k: v for k, v in d.items() if k in cls.__dataclass_fields__}
        return cls(
            volume=Volume(h24=volume.get("h24") or 0.0),
            price_change=PriceChange(**{w: change.get(w) for w in ("m5", "h1", "h6", "h24")}),
            **known,
        )


@dataclass
class TokenRecord:
    chain: Chain
    address: str
    symbol: Optional[str] = None
    name: Optional[str] = None
    market: MarketData = field(default_factory=MarketData)
    logo_url: Optional[str] = None
    category: Optional[str] = None

    @property
    def key(self) -> str:
        return token_key(self.chain, self.address)

    def market_dict(self) -> Dict[str, Any]:
        return asdict(self.market)


@dataclass
class Listing:
    """A persisted record plus the vetting state the store keeps beside it."""

    record: TokenRecord
    risk_score: Optional[int] = None
    tier: Optional[Tier] = None
    risk_level: Optional[RiskLevel] = None
    vetted: bool = False
    token_age: Optional[float] = None
    created_at: float = 0.0
    updated_at: float = 0.0
    last_scanned_at: Optional[float] = None

    @property
    def key(self) -> str:
        return self.record.key


# ---------------------------------------------------------------------------
# Scoring input
# ---------------------------------------------------------------------------


@dataclass
class TokenInfo:
    name: str = "Unknown"
    symbol: str = "UNKNOWN"
    image: Optional[str] = None
    decimals: Optional[int] = None
    description: Optional[str] = None
    websites: List[str] = field(default_factory=list)
    socials: List[str] = field(default_factory=list)


@dataclass
class LpLock:
    tag: Optional[str] = None  # "Burned" | "Locked"
    unlock_at: Optional[float] = None  # epoch seconds
    percentage: Optional[float] = None
    usd_locked: Optional[float] = None

    @property
    def is_burned(self) -> bool:
        return (self.tag or "").lower() == "burned"


@dataclass
class SecurityInfo:
    is_mintable: Optional[bool] = None
    is_freezable: Optional[bool] = None
    lp_lock_percentage: Optional[float] = None
    total_supply: Optional[float] = None
    circulating_supply: Optional[float] = None
    lp_locks: List[LpLock] = field(default_factory=list)

    @property
    def lp_burned(self) -> bool:
        return any(lock.is_burned for lock in self.lp_locks)


@dataclass
class HolderEntry:
    address: str
    balance: float
    percentage: float


@dataclass
class HolderInfo:
    count: Optional[int] = None
    top_holders: List[HolderEntry] = field(default_factory=list)


@dataclass
class DeveloperInfo:
    creator_address: Optional[str] = None
    creator_balance: Optional[float] = None  # percent of supply
    creator_status: str = "unknown"
    top10_holder_rate: Optional[float] = None  # fraction 0..1
    twitter_create_token_count: int = 0


@dataclass
class TradingInfo:
    price: Optional[float] = None
    liquidity: Optional[float] = None
    volume_24h: Optional[float] = None
    price_change_24h: Optional[float] = None
    fdv: Optional[float] = None
    holder_count: Optional[int] = None
    buys_24h: Optional[int] = None
    sells_24h: Optional[int] = None


@dataclass
class TokenVettingData:
    chain: Chain
    address: str
    token_info: TokenInfo = field(default_factory=TokenInfo)
    security: SecurityInfo = field(default_factory=SecurityInfo)
    holders: HolderInfo = field(default_factory=HolderInfo)
    developer: DeveloperInfo = field(default_factory=DeveloperInfo)
    trading: TradingInfo = field(default_factory=TradingInfo)
    token_age: float = 0.0  # days

    @property
    def key(self) -> str:
        return token_key(self.chain, self.address)


# ---------------------------------------------------------------------------
# Scoring output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ComponentScore:
    score: int
    flags: Tuple[str, ...] = ()


@dataclass(frozen=True)
class VettingResults:
    distribution: ComponentScore
    liquidity: ComponentScore
    dev_abandonment: ComponentScore
    technical: ComponentScore
    overall_score: int
    risk_level: RiskLevel
    eligible_tier: Tier
    all_flags: Tuple[str, ...]
    data_sufficient: bool
    missing_data: Tuple[str, ...]
    calculated_at: str
    lp_lock_months: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        def _component(c: ComponentScore) -> Dict[str, Any]:
            return {"score": c.score, "flags": list(c.flags)}

        return {
            "componentScores": {
                "distribution": _component(self.distribution),
                "liquidity": _component(self.liquidity),
                "devAbandonment": _component(self.dev_abandonment),
                "technical": _component(self.technical),
            },
            "overallScore": self.overall_score,
            "riskLevel": self.risk_level.value,
            "eligibleTier": self.eligible_tier.value,
            "allFlags": list(self.all_flags),
            "dataSufficient": self.data_sufficient,
            "missingData": list(self.missing_data),
            "calculatedAt": self.calculated_at,
            "lpLockMonths": self.lp_lock_months,
        }


# ---------------------------------------------------------------------------
# Monitoring
# ---------------------------------------------------------------------------


@dataclass
class MonitoringSnapshot:
    chain: Chain
    address: str
    scanned_at: float = field(default_factory=time.time)
    current_tier: Optional[str] = None

    price: Optional[float] = None
    market_cap: Optional[float] = None
    liquidity: Optional[float] = None
    volume_24h: Optional[float] = None
    price_change_24h: Optional[float] = None

    total_holders: Optional[int] = None
    holder_change: Optional[int] = None
    top_holder_pct: Optional[float] = None
    top10_holders_pct: Optional[float] = None

    txns_24h: Optional[int] = None
    buys_24h: Optional[int] = None
    sells_24h: Optional[int] = None

    liquidity_trend: Trend = Trend.STABLE
    holder_trend: Trend = Trend.STABLE
    activity_trend: Trend = Trend.STABLE

    raw_data: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return token_key(self.chain, self.address)


@dataclass(frozen=True)
class Alert:
    severity: AlertSeverity
    trigger_type: str
    condition_description: str
    message: str
    detected: bool = True
