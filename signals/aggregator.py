"""信号聚合器：把一组指标读数合成一条可执行的交易建议。

两种档位：
- full：K 线数 >= min_candles 时，走完整指标库 + 投票规则表；
- fast：只有 24h 快照时的粗粒度分类（见 signals.fast）。

聚合器是市场数据的纯函数，不持有任何组合或仓位状态。
"""

from __future__ import annotations

from typing import Sequence

from shared.config.schema import SignalConfig, TierConfig
from shared.models.models import Asset, Candle
from shared.utils.logging import setup_logger
from signals.fast import fast_signal
from signals.levels import key_levels
from signals.models import KeyLevels, Signal, SignalType, TrendAnalysis, VolatilityAnalysis
from signals.probabilities import scenario_probabilities
from signals.rules import Tally, run_rules
from signals.snapshot import IndicatorSnapshot, build_snapshot

_VOLATILITY_BANDS = (
    (0.5, "very-low"),
    (1.5, "low"),
    (3.0, "normal"),
    (5.0, "high"),
)


def _direction(a: float, b: float) -> str:
    if a > b:
        return "bullish"
    if a < b:
        return "bearish"
    return "sideways"


def trend_analysis(snapshot: IndicatorSnapshot) -> TrendAnalysis:
    """多周期趋势：短期 P vs EMA20，中期 EMA20 vs EMA50，长期 P vs EMA200。"""
    ema50 = snapshot.ema50 if snapshot.ema50 is not None else snapshot.ema20
    short = _direction(snapshot.price, snapshot.ema20)
    medium = _direction(snapshot.ema20, ema50)
    long = _direction(snapshot.price, snapshot.ema200)

    if short == medium == long == "bullish":
        overall = "strongly bullish"
    elif short == medium == long == "bearish":
        overall = "strongly bearish"
    elif long == "bullish":
        overall = "bullish long-term with short-term swings"
    elif long == "bearish":
        overall = "bearish long-term with short-term swings"
    else:
        overall = "consolidation"
    return TrendAnalysis(short_term=short, medium_term=medium, long_term=long, overall=overall)


def volatility_analysis(price: float, atr: float) -> VolatilityAnalysis:
    atr_percent = atr / price * 100 if price else 0.0
    for threshold, level in _VOLATILITY_BANDS:
        if atr_percent < threshold:
            return VolatilityAnalysis(level=level, atr=atr, atr_percent=atr_percent)
    return VolatilityAnalysis(level="very-high", atr=atr, atr_percent=atr_percent)


def quality_score(tally: Tally, config: SignalConfig) -> float:
    raw = max(tally.bullish, tally.bearish) * config.quality_per_vote - len(tally.warnings) * config.quality_per_warning
    return min(100.0, max(0.0, raw))


def confidence(tally: Tally) -> float:
    """|net| / (bull + bear) · 100；没有任何投票时为 0。"""
    votes = tally.bullish + tally.bearish
    if votes == 0:
        return 0.0
    return abs(tally.net) / votes * 100


def _tier_matches(tier: TierConfig, tally: Tally, quality: float) -> bool:
    bullish = tier.type.endswith("buy")
    votes = tally.bullish if bullish else tally.bearish
    opposing = tally.bearish if bullish else tally.bullish
    if votes < tier.min_votes:
        return False
    if tier.max_opposing is not None and opposing > tier.max_opposing:
        return False
    return quality >= tier.min_quality


def classify(tally: Tally, quality: float, config: SignalConfig) -> tuple[SignalType, float]:
    """按档位表顺序匹配，返回 (类型, 调整后的质量分)。

    没有任何档位命中时为 neutral，质量分压到 35 以下。
    """
    for tier in config.tiers:
        if _tier_matches(tier, tally, quality):
            adjusted = max(tier.quality_floor, quality) if tier.quality_floor is not None else quality
            return SignalType(tier.type), adjusted
    return SignalType.NEUTRAL, min(35.0, quality)


def _strength(signal_type: SignalType, tally: Tally, config: SignalConfig) -> float:
    if signal_type is SignalType.NEUTRAL:
        return 50.0
    return max(0.0, min(100.0, 50.0 + config.strength_per_vote * tally.net))


def _message(signal_type: SignalType, tally: Tally) -> str:
    if signal_type is SignalType.NEUTRAL:
        return (
            f"NEUTRAL ({tally.bullish} bullish / {tally.bearish} bearish): mixed signals, "
            "wait for a clear confirmation before trading."
        )
    side = "bullish" if signal_type.is_bullish else "bearish"
    return (
        f"{signal_type.value.upper()} ({tally.bullish} bullish vs {tally.bearish} bearish votes): "
        f"most indicators are {side}."
    )


class SignalAggregator:
    """加权投票信号聚合器。

    Parameters
    ----------
    config:
        权重/阈值/档位表；None 时使用内置默认值。
    """

    def __init__(self, config: SignalConfig | None = None):
        self.config = config or SignalConfig()
        self.logger = setup_logger("signals")

    def evaluate(self, candles: Sequence[Candle] | None, asset: Asset | None = None) -> Signal:
        """按数据可用性选择档位。

        K 线足够 -> full；否则有 24h 快照 -> fast；都没有 -> neutral（insufficient data）。
        """
        candles = list(candles or [])
        if len(candles) >= self.config.min_candles:
            return self.full_profile(candles)
        if asset is not None:
            self.logger.debug(
                "Only %s candles for %s, falling back to fast profile", len(candles), asset.id
            )
            return self.fast_profile(asset)
        return self.insufficient_data(len(candles))

    def fast_profile(self, asset: Asset) -> Signal:
        return fast_signal(asset, self.config)

    def insufficient_data(self, available: int) -> Signal:
        need = self.config.min_candles
        return Signal(
            type=SignalType.NEUTRAL,
            confidence=0.0,
            quality_score=0.0,
            strength=50.0,
            confirmations=(),
            warnings=(f"Insufficient data: {available}/{need} candles",),
            key_levels=KeyLevels(),
            probabilities=scenario_probabilities(SignalType.NEUTRAL, None, self.config),
            profile="none",
            message=f"Insufficient data: need at least {need} candles, got {available}",
        )

    def full_profile(self, candles: Sequence[Candle]) -> Signal:
        """完整档：指标快照 -> 规则投票 -> 分类 -> 关键价位 -> 情景概率。"""
        if len(candles) < self.config.min_candles:
            return self.insufficient_data(len(candles))

        snapshot = build_snapshot(candles, self.config)
        tally = run_rules(snapshot, self.config)
        quality = quality_score(tally, self.config)
        signal_type, quality = classify(tally, quality, self.config)

        warnings = list(tally.warnings)
        confirmations = list(tally.confirmations)
        if signal_type is SignalType.NEUTRAL:
            warnings.append("Insufficient confirmations")
            if not confirmations:
                confirmations.append("No clear signals")

        levels = key_levels(
            signal_type,
            snapshot.price,
            snapshot.atr,
            snapshot.levels.nearest_support,
            snapshot.levels.nearest_resistance,
        )
        probabilities = scenario_probabilities(signal_type, snapshot.adx, self.config)

        self.logger.debug(
            "full profile: type=%s bull=%s bear=%s quality=%.0f",
            signal_type.value, tally.bullish, tally.bearish, quality,
        )
        return Signal(
            type=signal_type,
            confidence=confidence(tally),
            quality_score=quality,
            strength=_strength(signal_type, tally, self.config),
            confirmations=tuple(confirmations),
            warnings=tuple(warnings),
            key_levels=levels,
            probabilities=probabilities,
            profile="full",
            bullish_score=tally.bullish,
            bearish_score=tally.bearish,
            message=_message(signal_type, tally),
            trend=trend_analysis(snapshot),
            volatility=volatility_analysis(snapshot.price, snapshot.atr),
            pattern=snapshot.pattern.pattern,
        )
