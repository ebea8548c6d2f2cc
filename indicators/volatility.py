"""波动类指标：True Range / ATR / Bollinger Bands。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
import pandas as pd

from indicators.frame import require_period
from shared.models.models import Candle


@dataclass(frozen=True)
class BollingerReading:
    upper: float
    middle: float
    lower: float
    percent_b: float  # 价格在带内的位置，截断到 0..1
    bandwidth: float  # (upper - lower) / middle


def true_ranges(candles: Sequence[Candle]) -> list[float]:
    """逐根 TR，长度为 len(candles) - 1（第一根没有前收盘价）。"""
    out: list[float] = []
    for prev, cur in zip(candles, candles[1:]):
        out.append(
            max(
                cur.high - cur.low,
                abs(cur.high - prev.close),
                abs(cur.low - prev.close),
            )
        )
    return out


def atr(candles: Sequence[Candle], period: int = 14) -> float:
    """最近 period 个 TR 的简单均值；不足 period+1 根 K 线时返回 0。"""
    require_period(period, "ATR")
    if len(candles) < period + 1:
        return 0.0
    recent = true_ranges(candles)[-period:]
    return sum(recent) / period


def bollinger(prices: Sequence[float], period: int = 20, k: float = 2.0) -> BollingerReading:
    """布林带（总体标准差）。数据不足时三条线都等于最新价，%B=0.5。"""
    require_period(period, "Bollinger")
    last = float(prices[-1]) if prices else 0.0
    if len(prices) < period:
        return BollingerReading(upper=last, middle=last, lower=last, percent_b=0.5, bandwidth=0.0)

    window = np.asarray(prices[-period:], dtype=float)
    middle = float(window.mean())
    sd = float(window.std(ddof=0))
    upper = middle + k * sd
    lower = middle - k * sd

    width = upper - lower
    percent_b = (last - lower) / width if width > 0 else 0.5
    percent_b = min(1.0, max(0.0, percent_b))
    bandwidth = width / middle if middle else 0.0
    return BollingerReading(upper=upper, middle=middle, lower=lower, percent_b=percent_b, bandwidth=bandwidth)


def bollinger_series(prices: Sequence[float], period: int = 20, k: float = 2.0) -> pd.DataFrame:
    """逐根布林带（middle/upper/lower），预热期为 NaN。"""
    require_period(period, "Bollinger")
    s = pd.Series(list(prices), dtype=float)
    middle = s.rolling(period, min_periods=period).mean()
    sd = s.rolling(period, min_periods=period).std(ddof=0)
    return pd.DataFrame({"middle": middle, "upper": middle + k * sd, "lower": middle - k * sd})
