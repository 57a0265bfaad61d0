"""Alpha lifecycle: Live / Cooling / Positioning / Legend / Dumped.

The manager owns the history store. Each poll ingests the live feed
(write, prune, persist) and re-classifies every remembered token.
"""
import logging
import math
import os
import time
from dataclasses import dataclass, field, fields
from typing import Dict, List, Optional, Set

from engine.history_store import HistoryStore
from engine.legends import LEGENDS
from engine.models import AlphaState, HistoryRecord, Token

logger = logging.getLogger(__name__)

HOUR = 3600
DAY = 24 * HOUR


@dataclass
class LifecycleConfig:
    retention_days: float = 30
    live_volume_floor: float = 5_000
    cooling_volume_floor: float = 1_000
    cooling_mcap_floor: float = 10_000
    dump_peak_floor: float = 50_000
    dump_ratio: float = 0.25
    stale_after_hours: float = 2
    positioning_peak_floor: float = 50_000
    positioning_min_drawdown_pct: float = 40
    positioning_volume_floor: float = 5_000
    positioning_liquidity_floor: float = 3_000
    positioning_min_age_hours: float = 12
    poll_interval_seconds: float = 60

    @classmethod
    def from_env(cls, prefix: str = "LIFECYCLE_") -> "LifecycleConfig":
        """LIFECYCLE_DUMP_RATIO=0.2 overrides dump_ratio, and so on."""
        overrides = {}
        for f in fields(cls):
            raw = os.getenv(prefix + f.name.upper())
            if raw is None or raw == "":
                continue
            try:
                overrides[f.name] = float(raw)
            except ValueError:
                logger.warning("Ignoring non-numeric %s%s=%r", prefix, f.name.upper(), raw)
        return cls(**overrides)

    @property
    def retention_seconds(self) -> float:
        return self.retention_days * DAY

    @property
    def stale_after_seconds(self) -> float:
        return self.stale_after_hours * HOUR


@dataclass
class AlphaView:
    token: Token
    state: AlphaState
    label: str = ""
    score: Optional[float] = None
    first_seen: Optional[float] = None
    last_seen: Optional[float] = None
    peak_market_cap: Optional[float] = None
    drawdown_pct: Optional[float] = None
    cooling_reason: str = ""

    def to_dict(self) -> Dict:
        return {
            **self.token.to_dict(),
            "state": self.state.value,
            "label": self.label,
            "score": self.score,
            "first_seen": self.first_seen,
            "last_seen": self.last_seen,
            "peak_market_cap": self.peak_market_cap,
            "drawdown_pct": self.drawdown_pct,
            "cooling_reason": self.cooling_reason,
        }


@dataclass
class LifecycleSnapshot:
    live: List[AlphaView] = field(default_factory=list)
    cooling: List[AlphaView] = field(default_factory=list)
    positioning: List[AlphaView] = field(default_factory=list)
    legends: List[AlphaView] = field(default_factory=list)
    dumped: List[AlphaView] = field(default_factory=list)
    updated_at: Optional[float] = None

    def to_dict(self) -> Dict:
        return {
            "live": [a.to_dict() for a in self.live],
            "cooling": [a.to_dict() for a in self.cooling],
            "positioning": [a.to_dict() for a in self.positioning],
            "legends": [a.to_dict() for a in self.legends],
            "dumped": [a.to_dict() for a in self.dumped],
            "updated_at": self.updated_at,
        }


def cooling_label(age_seconds: float) -> str:
    hours = age_seconds / HOUR
    if hours < 1:
        return "Cooled <1h ago"
    if hours < 24:
        return f"Cooled {math.floor(hours)}h ago"
    return f"Cooled {math.floor(age_seconds / DAY)}d ago"


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def _log_score(value: float, low: float, high: float) -> float:
    """0 at `low`, 100 at `high`, log10 in between."""
    if value <= 0:
        return 0.0
    return _clamp((math.log10(value) - math.log10(low)) / (math.log10(high) - math.log10(low)) * 100)


def momentum_score(token: Token, now: float) -> float:
    gain = _clamp(token.price_change_24h, 0, 500) / 500 * 100
    volume = _log_score(token.volume_24h, 1_000, 100_000_000)
    age = token.age_hours(now)
    recency = 50.0 if age is None else _clamp(100 - age / 72 * 100)
    return round(0.5 * gain + 0.3 * volume + 0.2 * recency, 2)


def drawdown_pct(record: HistoryRecord) -> float:
    if record.peak_market_cap <= 0:
        return 0.0
    return _clamp((1 - record.token.market_cap / record.peak_market_cap) * 100)


def opportunity_score(record: HistoryRecord, now: float) -> float:
    volume = _log_score(record.token.volume_24h, 5_000, 5_000_000)
    freshness = _clamp(100 - (now - record.last_seen) / DAY * 100)
    return round(0.5 * drawdown_pct(record) + 0.3 * volume + 0.2 * freshness, 2)


class LifecycleManager:
    def __init__(self, store: HistoryStore, config: Optional[LifecycleConfig] = None,
                 clock=time.time):
        self.store = store
        self.config = config or LifecycleConfig()
        self._clock = clock
        self.feed_addresses: Set[str] = set()

    def _persist(self):
        try:
            self.store.persist()
        except Exception as e:
            logger.warning("Failed to persist alpha history: %s", e)

    def _observe(self, token: Token, now: float) -> HistoryRecord:
        record = self.store.get(token.address)
        if record is None:
            record = HistoryRecord(
                address=token.address,
                first_seen=now,
                last_seen=now,
                peak_market_cap=token.market_cap,
                mcap_at_first_seen=token.market_cap,
                token=token,
            )
        else:
            record.last_seen = max(record.last_seen, now)
            record.peak_market_cap = max(record.peak_market_cap, token.market_cap)
            record.token = token
        self.store.set(record)
        return record

    def ingest(self, tokens: List[Token], now: Optional[float] = None) -> None:
        """Record a feed snapshot: write, prune, then persist."""
        now = self._clock() if now is None else now
        addresses = set()
        for token in tokens:
            if not token.address:
                continue
            self._observe(token, now)
            addresses.add(token.address)
        self.feed_addresses = addresses
        pruned = self.store.prune(now, self.config.retention_seconds)
        if pruned:
            logger.info("Pruned %d alpha history records", pruned)
        self._persist()

    def record_parent(self, parent: Token, derivative: Token, now: Optional[float] = None) -> HistoryRecord:
        """Remember a discovered parent; it then surfaces through normal classification."""
        now = self._clock() if now is None else now
        record = self._observe(parent, now)
        record.cooling_reason = f"Parent of ${derivative.symbol}"
        self._persist()
        direction = "Live" if parent.price_change_24h >= 0 else "Cooling"
        logger.info("Parent $%s recorded (%s, %+.1f%%) via $%s",
                    parent.symbol, direction, parent.price_change_24h, derivative.symbol)
        return record

    def is_dumped(self, record: HistoryRecord) -> bool:
        cfg = self.config
        if record.peak_market_cap < cfg.dump_peak_floor:
            return False
        return record.token.market_cap / record.peak_market_cap < cfg.dump_ratio

    def _by_price_action(self, record: HistoryRecord) -> Optional[AlphaState]:
        cfg = self.config
        t = record.token
        if t.price_change_24h > 0 and t.volume_24h >= cfg.live_volume_floor:
            return AlphaState.LIVE
        if (t.price_change_24h < 0 and t.volume_24h >= cfg.cooling_volume_floor
                and t.market_cap >= cfg.cooling_mcap_floor):
            return AlphaState.COOLING
        return None

    def _view(self, record: HistoryRecord, state: AlphaState, label: str = "",
              score: Optional[float] = None) -> AlphaView:
        return AlphaView(
            token=record.token,
            state=state,
            label=label,
            score=score,
            first_seen=record.first_seen,
            last_seen=record.last_seen,
            peak_market_cap=record.peak_market_cap,
            drawdown_pct=round(drawdown_pct(record), 2),
            cooling_reason=record.cooling_reason,
        )

    def classify_record(self, record: HistoryRecord, now: float) -> Optional[AlphaView]:
        if self.is_dumped(record):
            return self._view(record, AlphaState.DUMPED, f"-{drawdown_pct(record):.0f}% from peak")

        if record.last_state == AlphaState.DUMPED:
            return self._view(record, AlphaState.COOLING, "Recovering from dump")

        age = now - record.last_seen
        if record.address not in self.feed_addresses and age > self.config.stale_after_seconds:
            return self._view(record, AlphaState.COOLING, cooling_label(age))

        state = self._by_price_action(record)
        if state == AlphaState.LIVE:
            return self._view(record, state, score=momentum_score(record.token, now))
        if state == AlphaState.COOLING:
            return self._view(record, state, record.cooling_reason or f"{record.token.price_change_24h:+.1f}% 24h")
        return None

    def is_positioning(self, record: HistoryRecord, now: float) -> bool:
        cfg = self.config
        t = record.token
        age = t.age_hours(now)
        if age is None:
            age = (now - record.first_seen) / HOUR
        return (
            record.peak_market_cap >= cfg.positioning_peak_floor
            and drawdown_pct(record) >= cfg.positioning_min_drawdown_pct
            and t.volume_24h >= cfg.positioning_volume_floor
            and t.liquidity >= cfg.positioning_liquidity_floor
            and age >= cfg.positioning_min_age_hours
        )

    def classify(self, now: Optional[float] = None) -> LifecycleSnapshot:
        now = self._clock() if now is None else now
        snapshot = LifecycleSnapshot(updated_at=now)
        changed = False

        for record in self.store.all():
            view = self.classify_record(record, now)
            state = view.state if view else None
            if state != record.last_state:
                record.last_state = state
                changed = True
            if view is None:
                continue
            if state == AlphaState.LIVE:
                snapshot.live.append(view)
            elif state == AlphaState.COOLING:
                snapshot.cooling.append(view)
            elif state == AlphaState.DUMPED:
                snapshot.dumped.append(view)

            if self.is_positioning(record, now):
                snapshot.positioning.append(self._view(
                    record, AlphaState.POSITIONING,
                    f"-{drawdown_pct(record):.0f}% from peak",
                    score=opportunity_score(record, now),
                ))

        snapshot.live.sort(key=lambda v: v.score or 0, reverse=True)
        snapshot.cooling.sort(key=lambda v: v.last_seen or 0, reverse=True)
        snapshot.dumped.sort(key=lambda v: v.last_seen or 0, reverse=True)
        snapshot.positioning.sort(key=lambda v: v.score or 0, reverse=True)
        snapshot.legends = [AlphaView(token=t, state=AlphaState.LEGEND, label="Legend") for t in LEGENDS]

        if changed:
            self._persist()
        return snapshot

    async def refresh(self, gateway, now: Optional[float] = None) -> LifecycleSnapshot:
        tokens = await gateway.live_feed()
        now = self._clock() if now is None else now
        self.ingest(tokens, now)
        return self.classify(now)
