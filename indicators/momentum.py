"""动量类指标：RSI / Stochastic / CCI / Williams %R / ROC / MFI。

每个函数都有明确的最少数据量；不足时返回中性值（RSI=50、%K/%D=50 等），
因为历史数据积累阶段系统也必须能给出结果。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
import pandas as pd

from indicators.frame import candles_to_frame, require_period, typical_prices
from shared.models.models import Candle


@dataclass(frozen=True)
class StochasticReading:
    k: float
    d: float
    signal: str  # overbought / oversold / neutral


@dataclass(frozen=True)
class CCIReading:
    cci: float
    signal: str  # overbought / oversold / bullish / bearish / neutral


@dataclass(frozen=True)
class WilliamsRReading:
    williams_r: float
    signal: str  # overbought / oversold / neutral


@dataclass(frozen=True)
class ROCReading:
    roc: float
    signal: str  # strong-bullish / bullish / neutral / bearish / strong-bearish


@dataclass(frozen=True)
class MFIReading:
    mfi: float
    signal: str  # overbought / oversold / neutral


def rsi(prices: Sequence[float], period: int = 14) -> float:
    """Wilder 平滑 RSI。

    Parameters
    ----------
    prices:
        收盘价序列（旧 -> 新）。
    period:
        平滑窗口。

    Returns
    -------
    float
        0~100；少于 period+1 个价格时返回 50，平均亏损为 0 时返回 100。
    """
    require_period(period, "RSI")
    if len(prices) < period + 1:
        return 50.0

    changes = [b - a for a, b in zip(prices, prices[1:])]
    gains = sum(c for c in changes[:period] if c > 0)
    losses = sum(-c for c in changes[:period] if c < 0)
    avg_gain = gains / period
    avg_loss = losses / period

    for change in changes[period:]:
        gain = change if change > 0 else 0.0
        loss = -change if change < 0 else 0.0
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period

    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def rsi_series(prices: Sequence[float], period: int = 14) -> pd.Series:
    """逐根 RSI（与 `rsi` 同一套 Wilder 递推），预热期为 NaN。"""
    require_period(period, "RSI")
    values = [float("nan")] * len(prices)
    if len(prices) < period + 1:
        return pd.Series(values, dtype=float)

    changes = [b - a for a, b in zip(prices, prices[1:])]
    avg_gain = sum(c for c in changes[:period] if c > 0) / period
    avg_loss = sum(-c for c in changes[:period] if c < 0) / period

    def _value(g: float, l: float) -> float:
        return 100.0 if l == 0 else 100.0 - 100.0 / (1.0 + g / l)

    values[period] = _value(avg_gain, avg_loss)
    for i in range(period, len(changes)):
        change = changes[i]
        avg_gain = (avg_gain * (period - 1) + max(change, 0.0)) / period
        avg_loss = (avg_loss * (period - 1) + max(-change, 0.0)) / period
        values[i + 1] = _value(avg_gain, avg_loss)
    return pd.Series(values, dtype=float)


def stochastic_k_series(candles: Sequence[Candle], k_period: int = 14) -> pd.Series:
    """%K 序列；区间高低相等时取 50。"""
    require_period(k_period, "Stochastic")
    df = candles_to_frame(candles)
    hh = df["high"].rolling(k_period, min_periods=k_period).max()
    ll = df["low"].rolling(k_period, min_periods=k_period).min()
    span = hh - ll
    k = (df["close"] - ll) / span.where(span != 0) * 100
    k = k.where(span != 0, 50.0)
    return k.where(hh.notna())


def stochastic(candles: Sequence[Candle], k_period: int = 14, d_period: int = 3) -> StochasticReading:
    """随机指标。不足 k_period 根时 %K=%D=50。%D 为最近 d_period 个 %K 的均值。"""
    require_period(d_period, "Stochastic %D")
    if len(candles) < k_period:
        return StochasticReading(k=50.0, d=50.0, signal="neutral")

    k_values = stochastic_k_series(candles, k_period).dropna()
    k = float(k_values.iloc[-1])
    d = float(k_values.iloc[-d_period:].mean())

    if k > 80:
        signal = "overbought"
    elif k < 20:
        signal = "oversold"
    else:
        signal = "neutral"
    return StochasticReading(k=k, d=d, signal=signal)


def cci(candles: Sequence[Candle], period: int = 20) -> CCIReading:
    """CCI = (TP − SMA(TP)) / (0.015 · 平均绝对偏差)，阈值 ±100。"""
    require_period(period, "CCI")
    if len(candles) < period:
        return CCIReading(cci=0.0, signal="neutral")

    tp = typical_prices(candles[-period:])
    mean_tp = float(tp.mean())
    mean_dev = float(np.abs(tp - mean_tp).mean())
    value = (float(tp[-1]) - mean_tp) / (0.015 * mean_dev) if mean_dev > 0 else 0.0

    if value < -100:
        signal = "oversold"
    elif value > 100:
        signal = "overbought"
    elif value > 0:
        signal = "bullish"
    elif value < 0:
        signal = "bearish"
    else:
        signal = "neutral"
    return CCIReading(cci=value, signal=signal)


def williams_r(candles: Sequence[Candle], period: int = 14) -> WilliamsRReading:
    """Williams %R，取值 0..-100；> -20 超买，< -80 超卖。数据不足为 -50。"""
    require_period(period, "Williams %R")
    if len(candles) < period:
        return WilliamsRReading(williams_r=-50.0, signal="neutral")

    window = candles[-period:]
    hh = max(c.high for c in window)
    ll = min(c.low for c in window)
    if hh == ll:
        value = -50.0
    else:
        value = (hh - window[-1].close) / (hh - ll) * -100.0

    if value > -20:
        signal = "overbought"
    elif value < -80:
        signal = "oversold"
    else:
        signal = "neutral"
    return WilliamsRReading(williams_r=value, signal=signal)


def roc(prices: Sequence[float], period: int = 12) -> ROCReading:
    """N 周期变化率（%），±5% 为强、±1% 为弱。数据不足为 0。"""
    require_period(period, "ROC")
    if len(prices) < period + 1:
        return ROCReading(roc=0.0, signal="neutral")

    base = prices[-1 - period]
    value = (prices[-1] - base) / base * 100 if base else 0.0

    if value > 5:
        signal = "strong-bullish"
    elif value > 1:
        signal = "bullish"
    elif value < -5:
        signal = "strong-bearish"
    elif value < -1:
        signal = "bearish"
    else:
        signal = "neutral"
    return ROCReading(roc=value, signal=signal)


def mfi(candles: Sequence[Candle], period: int = 14) -> MFIReading:
    """资金流量指数：典型价 × 成交量 的 RSI 类比，阈值 80/20。数据不足为 50。"""
    require_period(period, "MFI")
    if len(candles) < period + 1:
        return MFIReading(mfi=50.0, signal="neutral")

    window = candles[-(period + 1):]
    tp = typical_prices(window)
    flow = tp * np.array([c.volume or 0.0 for c in window], dtype=float)
    diff = np.diff(tp)
    positive = float(flow[1:][diff > 0].sum())
    negative = float(flow[1:][diff < 0].sum())

    if negative == 0:
        value = 100.0 if positive > 0 else 50.0
    else:
        value = 100.0 - 100.0 / (1.0 + positive / negative)

    if value > 80:
        signal = "overbought"
    elif value < 20:
        signal = "oversold"
    else:
        signal = "neutral"
    return MFIReading(mfi=value, signal=signal)
