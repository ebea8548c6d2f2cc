"""快速档：只用 24h 快照（涨跌幅 + 区间位置）的粗粒度分类。

没有指标确认，质量分被限制在 quality_ceiling 以下，
与完整档的投票计分是两条独立路径。
"""

from __future__ import annotations

from shared.config.schema import FastProfileConfig, SignalConfig
from shared.models.models import Asset
from signals.models import KeyLevels, Signal, SignalType
from signals.probabilities import scenario_probabilities

_MOMENTUM_NOTES = {
    ("extreme", True): "Very strong 24h momentum",
    ("strong", True): "Strong 24h momentum",
    ("plain", True): "Positive 24h momentum",
    ("extreme", False): "Very negative 24h momentum",
    ("strong", False): "Strong negative 24h momentum",
    ("plain", False): "Negative 24h momentum",
}


def range_position(price: float, low: float, high: float) -> float:
    """现价在 24h 区间中的位置（0 = 低点，1 = 高点）；区间为 0 时为 0.5。"""
    span = high - low
    if span <= 0:
        return 0.5
    return (price - low) / span


def change_score(change: float, cfg: FastProfileConfig) -> float:
    """涨跌幅分档：按绝对值从大到小匹配，带符号。"""
    for threshold, score in sorted(cfg.change_bands, key=lambda b: -b[0]):
        if change > threshold:
            return score
        if change < -threshold:
            return -score
    return 0.0


def position_score(position: float, cfg: FastProfileConfig) -> float:
    for threshold, bonus in sorted(cfg.range_high_bonus, key=lambda b: -b[0]):
        if position > threshold:
            return bonus
    for threshold, penalty in sorted(cfg.range_low_penalty, key=lambda b: b[0]):
        if position < threshold:
            return penalty
    return 0.0


def fast_score(asset: Asset, cfg: FastProfileConfig) -> float:
    price = asset.current_price
    high = asset.high_24h or price
    low = asset.low_24h or price
    change = asset.price_change_percentage_24h or 0.0
    return change_score(change, cfg) + position_score(range_position(price, low, high), cfg)


def fast_signal(asset: Asset, config: SignalConfig | None = None) -> Signal:
    """24h 快照 -> Signal（profile="fast"）。"""
    config = config or SignalConfig()
    cfg = config.fast
    change = asset.price_change_percentage_24h or 0.0
    score = fast_score(asset, cfg)
    strength = max(0.0, min(100.0, 50.0 + score))

    base_note = f"24h change: {'+' if change >= 0 else ''}{change:.1f}%"
    warnings = ("Basic signal without technical indicators",)

    signal_type = SignalType.NEUTRAL
    quality = cfg.neutral_quality
    confirmations: tuple[str, ...] = ("Only 24h price data available",)
    for tier in sorted(cfg.tiers, key=lambda t: -t.min_score):
        if abs(score) >= tier.min_score:
            bullish = score > 0
            signal_type = SignalType.from_level(tier.level, bullish)
            quality = min(tier.quality, cfg.quality_ceiling)
            note = _MOMENTUM_NOTES.get((tier.level, bullish))
            confirmations = (base_note, note) if note else (base_note,)
            break

    price = asset.current_price
    support = asset.low_24h or price * 0.95
    resistance = asset.high_24h or price * 1.05

    return Signal(
        type=signal_type,
        confidence=min(100.0, abs(score)),
        quality_score=quality,
        strength=strength,
        confirmations=confirmations,
        warnings=warnings,
        key_levels=KeyLevels(entry=price, nearest_support=support, nearest_resistance=resistance),
        probabilities=scenario_probabilities(signal_type, None, config),
        profile="fast",
        bullish_score=int(score) if score > 0 else 0,
        bearish_score=int(-score) if score < 0 else 0,
        message=f"Quick {signal_type.value} from 24h snapshot (score {score:+.0f})",
    )
