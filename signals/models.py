"""信号输出结构。每次评估都生成新的不可变对象。"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SignalType(str, Enum):
    EXTREME_SELL = "extreme-sell"
    STRONG_SELL = "strong-sell"
    SELL = "sell"
    WEAK_SELL = "weak-sell"
    NEUTRAL = "neutral"
    WEAK_BUY = "weak-buy"
    BUY = "buy"
    STRONG_BUY = "strong-buy"
    EXTREME_BUY = "extreme-buy"

    @property
    def rank(self) -> int:
        """-4（extreme-sell）.. 0（neutral）.. 4（extreme-buy）。"""
        return _ORDER.index(self) - 4

    @property
    def is_bullish(self) -> bool:
        return self.rank > 0

    @property
    def is_bearish(self) -> bool:
        return self.rank < 0

    @classmethod
    def from_level(cls, level: str, bullish: bool) -> "SignalType":
        """fast 档的 extreme/strong/plain/weak + 方向 -> SignalType。"""
        side = "buy" if bullish else "sell"
        name = side if level == "plain" else f"{level}-{side}"
        return cls(name)


_ORDER = list(SignalType)


@dataclass(frozen=True)
class KeyLevels:
    entry: float = 0.0
    stop_loss: float = 0.0
    take_profit1: float = 0.0
    take_profit2: float = 0.0
    take_profit3: float = 0.0
    risk_reward_ratio: float = 0.0
    nearest_support: float = 0.0
    nearest_resistance: float = 0.0


@dataclass(frozen=True)
class Probabilities:
    """四种情景概率（整数，合计恰好 100）。"""
    bullish: int
    bearish: int
    reversal: int
    consolidation: int

    @property
    def total(self) -> int:
        return self.bullish + self.bearish + self.reversal + self.consolidation

    @property
    def most_likely(self) -> str:
        ranked = [
            ("bullish", self.bullish),
            ("bearish", self.bearish),
            ("reversal", self.reversal),
            ("consolidation", self.consolidation),
        ]
        # 同分时保持上面的顺序
        return max(ranked, key=lambda kv: kv[1])[0]


@dataclass(frozen=True)
class TrendAnalysis:
    short_term: str  # 价格 vs EMA20
    medium_term: str  # EMA20 vs EMA50
    long_term: str  # 价格 vs EMA200
    overall: str


@dataclass(frozen=True)
class VolatilityAnalysis:
    level: str  # very-low / low / normal / high / very-high
    atr: float
    atr_percent: float


@dataclass(frozen=True)
class Signal:
    type: SignalType
    confidence: float
    quality_score: float
    strength: float
    confirmations: tuple[str, ...]
    warnings: tuple[str, ...]
    key_levels: KeyLevels
    probabilities: Probabilities
    profile: str  # full / fast / none
    bullish_score: int = 0
    bearish_score: int = 0
    message: str = ""
    trend: TrendAnalysis | None = None
    volatility: VolatilityAnalysis | None = None
    pattern: str = "none"
