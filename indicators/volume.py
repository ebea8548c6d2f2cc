"""量能类指标：成交量对比 / OBV / VWAP。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from indicators.frame import require_period, typical_prices
from shared.models.models import Candle


@dataclass(frozen=True)
class VolumeReading:
    current: float
    average: float
    ratio: float
    is_high: bool


@dataclass(frozen=True)
class OBVReading:
    obv: float
    trend: str  # accumulation / distribution / neutral


@dataclass(frozen=True)
class VWAPReading:
    vwap: float
    signal: str  # bullish / bearish / neutral


def analyze_volume(volumes: Sequence[float], period: int = 20) -> VolumeReading:
    """当前成交量与最近 period 个成交量均值之比；ratio > 1.5 视为放量。"""
    require_period(period, "Volume")
    if not volumes:
        return VolumeReading(current=0.0, average=0.0, ratio=1.0, is_high=False)

    current = float(volumes[-1] or 0.0)
    recent = [float(v or 0.0) for v in volumes[-period:]]
    average = sum(recent) / len(recent)
    ratio = current / average if average > 0 else 1.0
    return VolumeReading(current=current, average=average, ratio=ratio, is_high=ratio > 1.5)


def obv_series(candles: Sequence[Candle]) -> np.ndarray:
    """累计带符号成交量，第一根为 0。"""
    if not candles:
        return np.zeros(0)
    close = np.array([c.close for c in candles], dtype=float)
    volume = np.array([c.volume or 0.0 for c in candles], dtype=float)
    signed = np.sign(np.diff(close)) * volume[1:]
    return np.concatenate([[0.0], np.cumsum(signed)])


def obv(candles: Sequence[Candle], window: int = 10) -> OBVReading:
    """OBV 与尾部窗口内的趋势。

    OBV 在窗口内上升且高于窗口均值为 accumulation，镜像为 distribution；
    数据不足 window+1 根时为 neutral。
    """
    require_period(window, "OBV")
    series = obv_series(candles)
    if len(series) < window + 1:
        return OBVReading(obv=float(series[-1]) if len(series) else 0.0, trend="neutral")

    last = float(series[-1])
    delta = last - float(series[-1 - window])
    mean = float(series[-window:].mean())
    if delta > 0 and last > mean:
        trend = "accumulation"
    elif delta < 0 and last < mean:
        trend = "distribution"
    else:
        trend = "neutral"
    return OBVReading(obv=last, trend=trend)


def vwap(candles: Sequence[Candle]) -> VWAPReading:
    """成交量加权均价；无成交量时为 neutral（vwap 取最新收盘价）。"""
    if not candles:
        return VWAPReading(vwap=0.0, signal="neutral")

    tp = typical_prices(candles)
    volume = np.array([c.volume or 0.0 for c in candles], dtype=float)
    total_volume = float(volume.sum())
    price = candles[-1].close
    if total_volume <= 0:
        return VWAPReading(vwap=price, signal="neutral")

    value = float((tp * volume).sum() / total_volume)
    if price > value:
        signal = "bullish"
    elif price < value:
        signal = "bearish"
    else:
        signal = "neutral"
    return VWAPReading(vwap=value, signal=signal)
