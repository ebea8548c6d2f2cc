"""趋势类指标：SMA/EMA/MACD/ADX/Parabolic SAR/Supertrend。

数据不足时返回文档约定的中性值，而不是抛错。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import pandas as pd

from indicators.frame import require_period
from indicators.volatility import true_ranges
from shared.models.models import Candle


@dataclass(frozen=True)
class MACDReading:
    macd: float
    signal: float
    histogram: float


@dataclass(frozen=True)
class ADXReading:
    """ADX/DI±。

    注意：这里的 ADX 直接取单窗口 DX，没有再做 Wilder 递推平滑，
    与教科书 ADX 的数值不同（保留现有行为）。
    """
    adx: float
    di_plus: float
    di_minus: float
    trend: str  # strong-up / weak-up / ranging / weak-down / strong-down


@dataclass(frozen=True)
class StopAndReverseReading:
    """SAR / Supertrend 共用读数：value 为止损线，signal 仅在翻转那根 K 线为 buy/sell。"""
    value: float
    trend: str  # bullish / bearish / neutral
    signal: str  # buy / sell / hold


def sma(prices: Sequence[float], period: int) -> float:
    """最近 period 个价格的简单均值；不足时对全部价格取均值，空序列为 0。"""
    require_period(period, "SMA")
    if not prices:
        return 0.0
    window = list(prices[-period:])
    return sum(window) / len(window)


def ema(prices: Sequence[float], period: int) -> float:
    """EMA：前 period 个价格的 SMA 作为种子，乘数 2/(period+1)。

    数据不足 period 时返回最后一个价格（空序列返回 0）。
    """
    require_period(period, "EMA")
    if len(prices) < period:
        return float(prices[-1]) if prices else 0.0

    multiplier = 2.0 / (period + 1)
    value = sum(prices[:period]) / period
    for price in prices[period:]:
        value = (price - value) * multiplier + value
    return value


def ema_series(prices: Sequence[float], period: int) -> pd.Series:
    """逐根 EMA 序列，预热期（前 period-1 根）为 NaN。"""
    require_period(period, "EMA")
    values = [float("nan")] * len(prices)
    if len(prices) >= period:
        multiplier = 2.0 / (period + 1)
        value = sum(prices[:period]) / period
        values[period - 1] = value
        for i in range(period, len(prices)):
            value = (prices[i] - value) * multiplier + value
            values[i] = value
    return pd.Series(values, dtype=float)


def macd(prices: Sequence[float], fast: int = 12, slow: int = 26, signal_period: int = 9) -> MACDReading:
    """MACD = EMA(fast) − EMA(slow)，信号线为 MACD 序列的 EMA(signal_period)。

    MACD 序列取每个前缀（长度 slow..n）上的 EMA 差值；EMA 对前缀是自洽的，
    因此等价于两条 EMA 序列从第 slow 根开始逐点相减。
    """
    if len(prices) < slow:
        return MACDReading(macd=0.0, signal=0.0, histogram=0.0)

    fast_s = ema_series(prices, fast)
    slow_s = ema_series(prices, slow)
    line = (fast_s - slow_s).iloc[slow - 1:].tolist()

    macd_value = ema(prices, fast) - ema(prices, slow)
    signal_value = ema(line, signal_period)
    return MACDReading(macd=macd_value, signal=signal_value, histogram=macd_value - signal_value)


def adx(
    candles: Sequence[Candle],
    period: int = 14,
    weak_threshold: float = 20.0,
    strong_threshold: float = 40.0,
) -> ADXReading:
    """方向运动指标（简化版：ADX = 最近 period 根的 DX）。

    不足 2*period 根 K 线时返回 adx=0、ranging。
    adx < weak_threshold 为 ranging；否则按 DI± 方向区分，adx > strong_threshold 为 strong。
    """
    require_period(period, "ADX")
    if len(candles) < period * 2:
        return ADXReading(adx=0.0, di_plus=0.0, di_minus=0.0, trend="ranging")

    plus_dm: list[float] = []
    minus_dm: list[float] = []
    for prev, cur in zip(candles, candles[1:]):
        up = cur.high - prev.high
        down = prev.low - cur.low
        plus_dm.append(up if up > down and up > 0 else 0.0)
        minus_dm.append(down if down > up and down > 0 else 0.0)
    tr = true_ranges(candles)

    sum_plus = sum(plus_dm[-period:])
    sum_minus = sum(minus_dm[-period:])
    sum_tr = sum(tr[-period:])

    di_plus = sum_plus / sum_tr * 100 if sum_tr > 0 else 0.0
    di_minus = sum_minus / sum_tr * 100 if sum_tr > 0 else 0.0
    di_total = di_plus + di_minus
    dx = abs(di_plus - di_minus) / di_total * 100 if di_total > 0 else 0.0
    value = dx

    if value < weak_threshold:
        trend = "ranging"
    elif di_plus > di_minus:
        trend = "strong-up" if value > strong_threshold else "weak-up"
    else:
        trend = "strong-down" if value > strong_threshold else "weak-down"
    return ADXReading(adx=value, di_plus=di_plus, di_minus=di_minus, trend=trend)


def parabolic_sar(candles: Sequence[Candle], step: float = 0.02, max_step: float = 0.2) -> StopAndReverseReading:
    """Wilder Parabolic SAR。

    至少需要 3 根 K 线；只有最后一根发生趋势翻转时才输出 buy/sell。
    """
    if len(candles) < 3:
        last = candles[-1].close if candles else 0.0
        return StopAndReverseReading(value=last, trend="neutral", signal="hold")

    up = candles[1].close >= candles[0].close
    sar = candles[0].low if up else candles[0].high
    ep = candles[0].high if up else candles[0].low
    af = step
    flipped = False

    for i in range(1, len(candles)):
        cur = candles[i]
        flipped = False
        sar = sar + af * (ep - sar)
        if up:
            sar = min(sar, candles[i - 1].low, candles[i - 2].low if i >= 2 else candles[i - 1].low)
            if cur.low < sar:
                up, flipped = False, True
                sar, ep, af = ep, cur.low, step
            elif cur.high > ep:
                ep = cur.high
                af = min(af + step, max_step)
        else:
            sar = max(sar, candles[i - 1].high, candles[i - 2].high if i >= 2 else candles[i - 1].high)
            if cur.high > sar:
                up, flipped = True, True
                sar, ep, af = ep, cur.high, step
            elif cur.low < ep:
                ep = cur.low
                af = min(af + step, max_step)

    signal = "hold"
    if flipped:
        signal = "buy" if up else "sell"
    return StopAndReverseReading(value=sar, trend="bullish" if up else "bearish", signal=signal)


def supertrend(candles: Sequence[Candle], period: int = 10, multiplier: float = 3.0) -> StopAndReverseReading:
    """Supertrend（ATR 为 TR 的简单均值）。

    不足 period+1 根 K 线时返回 neutral/hold；只有最后一根翻转时输出 buy/sell。
    """
    require_period(period, "Supertrend")
    if len(candles) < period + 1:
        last = candles[-1].close if candles else 0.0
        return StopAndReverseReading(value=last, trend="neutral", signal="hold")

    tr = true_ranges(candles)  # tr[j] 对应 candles[j + 1]
    final_upper = final_lower = 0.0
    up = True
    flipped = False
    line = candles[period].close

    for i in range(period, len(candles)):
        c = candles[i]
        atr_i = sum(tr[i - period:i]) / period
        hl2 = (c.high + c.low) / 2.0
        basic_upper = hl2 + multiplier * atr_i
        basic_lower = hl2 - multiplier * atr_i
        prev_close = candles[i - 1].close

        if i == period:
            final_upper, final_lower = basic_upper, basic_lower
            up = c.close >= hl2
            flipped = False
        else:
            final_upper = basic_upper if basic_upper < final_upper or prev_close > final_upper else final_upper
            final_lower = basic_lower if basic_lower > final_lower or prev_close < final_lower else final_lower
            prev_up = up
            if up and c.close < final_lower:
                up = False
            elif not up and c.close > final_upper:
                up = True
            flipped = up != prev_up
        line = final_lower if up else final_upper

    signal = "hold"
    if flipped:
        signal = "buy" if up else "sell"
    return StopAndReverseReading(value=line, trend="bullish" if up else "bearish", signal=signal)
