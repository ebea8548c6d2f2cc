"""单/双根 K 线形态识别。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from shared.models.models import Candle


@dataclass(frozen=True)
class CandlePattern:
    pattern: str  # doji / hammer / shooting-star / bullish-engulfing / bearish-engulfing / none
    signal: str  # bullish / bearish / neutral
    confidence: float
    explanation: str


NO_PATTERN = CandlePattern(
    pattern="none",
    signal="neutral",
    confidence=0.0,
    explanation="No significant pattern in the latest candles.",
)


def detect_candle_pattern(candles: Sequence[Candle]) -> CandlePattern:
    """识别最近 1~2 根 K 线的形态（至少需要 3 根）。

    判定顺序：doji -> hammer -> shooting-star -> 看涨吞没 -> 看跌吞没。
    - doji：实体 < 振幅的 10%
    - hammer：下影线 > 2 倍实体，上影线 < 0.3 倍实体，阳线
    - shooting-star：镜像，阴线
    - 吞没：前一根反向，当前实体完全包住前一根实体
    """
    if len(candles) < 3:
        return CandlePattern(
            pattern="none",
            signal="neutral",
            confidence=0.0,
            explanation="Not enough candles to detect patterns.",
        )

    last = candles[-1]
    prev = candles[-2]

    body = abs(last.close - last.open)
    total_range = last.high - last.low
    upper_wick = last.high - max(last.open, last.close)
    lower_wick = min(last.open, last.close) - last.low

    if body < total_range * 0.1:
        return CandlePattern(
            pattern="doji",
            signal="neutral",
            confidence=70.0,
            explanation="Doji: buyers and sellers are balanced, wait for the next candle to confirm direction.",
        )

    if lower_wick > body * 2 and upper_wick < body * 0.3 and last.close > last.open:
        return CandlePattern(
            pattern="hammer",
            signal="bullish",
            confidence=75.0,
            explanation="Hammer: sellers pushed price down but buyers took control back, possible rebound.",
        )

    if upper_wick > body * 2 and lower_wick < body * 0.3 and last.close < last.open:
        return CandlePattern(
            pattern="shooting-star",
            signal="bearish",
            confidence=75.0,
            explanation="Shooting star: buyers failed to hold the highs, possible pullback.",
        )

    if (
        prev.close < prev.open
        and last.close > last.open
        and last.open < prev.close
        and last.close > prev.open
    ):
        return CandlePattern(
            pattern="bullish-engulfing",
            signal="bullish",
            confidence=85.0,
            explanation="Bullish engulfing: the current body fully covers the previous bearish body.",
        )

    if (
        prev.close > prev.open
        and last.close < last.open
        and last.open > prev.close
        and last.close < prev.open
    ):
        return CandlePattern(
            pattern="bearish-engulfing",
            signal="bearish",
            confidence=85.0,
            explanation="Bearish engulfing: the current body fully covers the previous bullish body.",
        )

    return NO_PATTERN
