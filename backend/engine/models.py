"""Canonical value objects shared by the gateway, detectors and lifecycle engine."""
from dataclasses import asdict, dataclass, field
from enum import Enum, IntEnum
from typing import Dict, FrozenSet, List, Optional

PRICE_CHANGE_FLOOR = -100.0
PRICE_CHANGE_CEILING = 5000.0  # bonding-curve launches report absurd 24h gains


class TokenSource(str, Enum):
    BOOSTED = "boosted-feed"
    PROFILE = "profile-feed"
    BONDING_CURVE = "bonding-curve"
    BONDING_CURVE_PRE_GRADUATION = "bonding-curve-pre-graduation"
    NEW_PAIR = "new-pair-feed"


class SignalSource(str, Enum):
    KEYWORD = "keyword"
    LORE = "lore"
    MORPHOLOGY = "morphology"
    DESCRIPTION = "description"
    LP_PAIR = "lp_pair"
    PUMPFUN = "pumpfun"
    AI_MATCH = "ai_match"
    VISUAL_MATCH = "visual_match"


class RelationshipTier(IntEnum):
    WEAK = 0
    LORE = 1
    STRONG = 2
    TRENDING = 3
    AI = 4
    CABAL = 5


class TokenClass(str, Enum):
    OG = "OG"
    RIVAL = "RIVAL"
    SPIN = "SPIN"


class WavePhase(str, Enum):
    WAVE = "WAVE"
    SECOND_LEG = "2ND_LEG"
    LATE = "LATE"
    COLD = "COLD"
    UNKNOWN = "UNKNOWN"


class AlphaState(str, Enum):
    LIVE = "LIVE"
    COOLING = "COOLING"
    POSITIONING = "POSITIONING"
    LEGEND = "LEGEND"
    DUMPED = "DUMPED"


class ClusterSource(str, Enum):
    KEYWORD = "keyword"
    AI = "ai"
    MIXED = "mixed"


class Heat(str, Enum):
    MILD = "MILD"
    WARM = "WARM"
    HOT = "HOT"
    NUCLEAR = "NUCLEAR"


def clamp_price_change(pct) -> float:
    try:
        value = float(pct or 0)
    except (TypeError, ValueError):
        return 0.0
    return max(PRICE_CHANGE_FLOOR, min(PRICE_CHANGE_CEILING, value))


def _as_float(value) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


@dataclass
class Token:
    address: str
    symbol: str
    name: str = ""
    description: str = ""
    price_usd: float = 0.0
    price_change_24h: float = 0.0
    volume_24h: float = 0.0
    market_cap: float = 0.0
    liquidity: float = 0.0
    logo_url: Optional[str] = None
    created_at: Optional[float] = None
    source: Optional[TokenSource] = None
    pair_address: str = ""
    quote_address: str = ""
    chain_id: str = "solana"
    url: str = ""

    def __post_init__(self):
        self.price_change_24h = clamp_price_change(self.price_change_24h)
        self.price_usd = _as_float(self.price_usd)
        self.volume_24h = _as_float(self.volume_24h)
        self.market_cap = _as_float(self.market_cap)
        self.liquidity = _as_float(self.liquidity)
        if self.source is not None and not isinstance(self.source, TokenSource):
            self.source = TokenSource(self.source)

    def age_hours(self, now: float) -> Optional[float]:
        if not self.created_at:
            return None
        return max(0.0, now - self.created_at) / 3600

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["source"] = self.source.value if self.source else None
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> "Token":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


def merge_tokens(tokens: List[Token]) -> List[Token]:
    """Collapse duplicates by address; the higher-volume record wins."""
    best: Dict[str, Token] = {}
    for t in tokens:
        if not t.address:
            continue
        current = best.get(t.address)
        if current is None or t.volume_24h > current.volume_24h:
            best[t.address] = t
    return list(best.values())


@dataclass
class RawCandidate:
    """One detector proposal, before merging."""
    token: Token
    source: SignalSource
    ai_score: Optional[float] = None
    ai_reason: str = ""
    visual_score: Optional[float] = None
    visual_reason: str = ""


@dataclass(frozen=True, order=True)
class SignalStrength:
    """Precedence rank (higher is stronger) plus the displayed tier."""
    rank: int
    tier: RelationshipTier = field(compare=False)
    label: str = field(compare=False, default="")


@dataclass
class Beta:
    token: Token
    sources: FrozenSet[SignalSource]
    signal: SignalStrength
    token_class: Optional[TokenClass] = None
    wave_phase: WavePhase = WavePhase.UNKNOWN
    mcap_ratio: Optional[int] = None
    ai_score: Optional[float] = None
    ai_reason: str = ""
    visual_score: Optional[float] = None
    visual_reason: str = ""

    @property
    def address(self) -> str:
        return self.token.address

    @property
    def is_lp_paired(self) -> bool:
        return SignalSource.LP_PAIR in self.sources

    def to_dict(self) -> Dict:
        return {
            **self.token.to_dict(),
            "signal_sources": sorted(s.value for s in self.sources),
            "tier": self.signal.tier.name,
            "signal_rank": self.signal.rank,
            "token_class": self.token_class.value if self.token_class else None,
            "wave_phase": self.wave_phase.value,
            "mcap_ratio": self.mcap_ratio,
            "ai_score": self.ai_score,
            "ai_reason": self.ai_reason,
            "visual_score": self.visual_score,
            "visual_reason": self.visual_reason,
        }


@dataclass
class HistoryRecord:
    address: str
    first_seen: float
    last_seen: float
    peak_market_cap: float
    mcap_at_first_seen: float
    token: Token
    last_state: Optional[AlphaState] = None
    cooling_reason: str = ""

    def to_dict(self) -> Dict:
        return {
            "address": self.address,
            "firstSeen": self.first_seen,
            "lastSeen": self.last_seen,
            "peakMarketCap": self.peak_market_cap,
            "mcapAtFirstSeen": self.mcap_at_first_seen,
            "token": self.token.to_dict(),
            "lastState": self.last_state.value if self.last_state else None,
            "coolingReason": self.cooling_reason,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "HistoryRecord":
        state = data.get("lastState")
        return cls(
            address=data["address"],
            first_seen=float(data["firstSeen"]),
            last_seen=float(data["lastSeen"]),
            peak_market_cap=float(data.get("peakMarketCap") or 0),
            mcap_at_first_seen=float(data.get("mcapAtFirstSeen") or 0),
            token=Token.from_dict(data.get("token") or {"address": data["address"], "symbol": ""}),
            last_state=AlphaState(state) if state else None,
            cooling_reason=data.get("coolingReason") or "",
        )


@dataclass
class NarrativeCluster:
    key: str
    label: str
    tokens: List[Token]
    total_volume: float
    avg_change: float
    momentum: int
    szn_score: int
    heat: Heat
    source: ClusterSource
    leader: Optional[Token] = None
    ai_enriched: int = 0

    def to_dict(self) -> Dict:
        return {
            "id": f"szn-{self.key}",
            "key": self.key,
            "label": self.label,
            "tokens": [t.to_dict() for t in self.tokens],
            "token_count": len(self.tokens),
            "total_volume": self.total_volume,
            "avg_change": self.avg_change,
            "momentum": self.momentum,
            "szn_score": self.szn_score,
            "heat": self.heat.value,
            "source": self.source.value,
            "leader": self.leader.symbol if self.leader else None,
            "ai_enriched": self.ai_enriched,
        }
