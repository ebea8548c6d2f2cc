"""摆动结构（HH/HL/LH/LL）与 RSI 背离。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from indicators.momentum import rsi
from patterns.levels import find_pivots
from shared.models.models import Candle


@dataclass(frozen=True)
class MarketStructure:
    trend: str  # uptrend / downtrend / ranging
    signal: str  # bullish / bearish / neutral
    higher_highs: int
    higher_lows: int
    lower_highs: int
    lower_lows: int


@dataclass(frozen=True)
class Divergence:
    bullish: bool
    bearish: bool
    price_trend: float
    rsi_trend: float


def _count_steps(points: list[float]) -> tuple[int, int]:
    ups = sum(1 for a, b in zip(points, points[1:]) if b > a)
    downs = sum(1 for a, b in zip(points, points[1:]) if b < a)
    return ups, downs


def market_structure(candles: Sequence[Candle], lookback: int = 20) -> MarketStructure:
    """统计最近 lookback 根 K 线中摆动高/低点的抬高与降低次数。

    - uptrend：至少 2 次更高高点且至少 1 次更高低点，且多于更低高点
    - downtrend：至少 2 次更低低点且至少 1 次更低高点，且多于更高低点
    - signal：按多空结构计数的多数方向，相等为 neutral
    不足 10 根为 ranging/neutral。
    """
    if len(candles) < 10:
        return MarketStructure("ranging", "neutral", 0, 0, 0, 0)

    window = candles[-lookback:]
    swing_highs = find_pivots([c.high for c in window], highs=True)
    swing_lows = find_pivots([c.low for c in window], highs=False)
    hh, lh = _count_steps(swing_highs)
    hl, ll = _count_steps(swing_lows)

    if hh >= 2 and hl >= 1 and hh > lh:
        trend = "uptrend"
    elif ll >= 2 and lh >= 1 and ll > hl:
        trend = "downtrend"
    else:
        trend = "ranging"

    bull = hh + hl
    bear = lh + ll
    if bull > bear:
        signal = "bullish"
    elif bear > bull:
        signal = "bearish"
    else:
        signal = "neutral"
    return MarketStructure(trend, signal, hh, hl, lh, ll)


def detect_rsi_divergence(
    prices: Sequence[float],
    window: int = 10,
    period: int = 14,
    bull_rsi: float = 40.0,
    bear_rsi: float = 60.0,
) -> Divergence:
    """最近 window 个收盘价上的价格趋势与 RSI 趋势背离。

    逐点 RSI 取到该点为止的前缀计算；看涨背离：价格下行、RSI 上行且当前 RSI < bull_rsi，
    看跌背离镜像（RSI > bear_rsi）。
    """
    if len(prices) < window:
        return Divergence(bullish=False, bearish=False, price_trend=0.0, rsi_trend=0.0)

    n = len(prices)
    recent = prices[-window:]
    rsis = [rsi(prices[: n - window + i + 1], period) for i in range(window)]
    price_trend = recent[-1] - recent[0]
    rsi_trend = rsis[-1] - rsis[0]
    current = rsis[-1]
    return Divergence(
        bullish=price_trend < 0 and rsi_trend > 0 and current < bull_rsi,
        bearish=price_trend > 0 and rsi_trend < 0 and current > bear_rsi,
        price_trend=price_trend,
        rsi_trend=rsi_trend,
    )
