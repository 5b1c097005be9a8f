import time
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class ListingDelta:
    chain: str
    address: str
    symbol: Optional[str]
    name: Optional[str]
    price_usd: Optional[float]
    liquidity_usd: Optional[float]
    volume_h24: float
    logo_url: Optional[str] = None


@dataclass
class DeltaBatch:
    ts: int
    new: List[ListingDelta] = field(default_factory=list)
    updated: List[ListingDelta] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.new or self.updated)


@dataclass
class AlertEvent:
    ts: int
    chain: str
    address: str
    severity: str  # "medium" | "high"
    trigger_type: str
    message: str


@dataclass
class CycleSummary:
    pipeline: str  # "ingest" | "vet" | "monitor"
    started_at: float
    duration_ms: int = 0
    succeeded: int = 0
    failed: int = 0
    api_calls: int = 0
    skipped: bool = False

    @classmethod
    def start(cls, pipeline: str) -> "CycleSummary":
        return cls(pipeline=pipeline, started_at=time.time())

    def finish(self) -> "CycleSummary":
        self.duration_ms = int((time.time() - self.started_at) * 1000)
        return self

    def describe(self) -> str:
        if self.skipped:
            return f"{self.pipeline} cycle skipped (already in flight)"
        return (
            f"{self.pipeline} cycle: ok={self.succeeded} failed={self.failed} "
            f"api_calls={self.api_calls} duration={self.duration_ms}ms"
        )
