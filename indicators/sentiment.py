"""市场情绪评分（0~100，恐惧 -> 贪婪）。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from indicators.frame import closes
from indicators.momentum import rsi
from indicators.trend import ema
from indicators.volume import analyze_volume
from shared.models.models import Candle


@dataclass(frozen=True)
class SentimentReading:
    sentiment: str  # extreme-fear / fear / neutral / greed / extreme-greed
    score: float


_LEVELS = (
    (75.0, "extreme-greed"),
    (60.0, "greed"),
    (40.0, "neutral"),
    (25.0, "fear"),
)


def market_sentiment(candles: Sequence[Candle], change_24h: float) -> SentimentReading:
    """综合 RSI、24h 涨跌、放量与 EMA20 偏离度的情绪分。不足 14 根 K 线为 50/neutral。"""
    if len(candles) < 14:
        return SentimentReading(sentiment="neutral", score=50.0)

    prices = closes(candles)
    r = rsi(prices)
    volume = analyze_volume([c.volume for c in candles])

    score = 50.0
    if r > 70:
        score += (r - 70) * 0.67
    elif r < 30:
        score -= (30 - r) * 0.67
    else:
        score += (r - 50) * 0.4

    score += min(max(change_24h * 1.5, -15.0), 15.0)

    if volume.is_high:
        if change_24h > 0:
            score += 5
        elif change_24h < 0:
            score -= 5

    ema20 = ema(prices, 20)
    if ema20:
        score += (prices[-1] - ema20) / ema20 * 100 * 0.75

    score = max(0.0, min(100.0, score))
    for threshold, name in _LEVELS:
        if score >= threshold:
            return SentimentReading(sentiment=name, score=score)
    return SentimentReading(sentiment="extreme-fear", score=score)
