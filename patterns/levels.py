"""支撑/阻力与斐波那契回撤位。"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from shared.models.models import Candle

FIB_RATIOS = (0.0, 0.236, 0.382, 0.5, 0.618, 0.786, 1.0)


@dataclass(frozen=True)
class SupportResistance:
    support: list[float] = field(default_factory=list)
    resistance: list[float] = field(default_factory=list)
    nearest_support: float = 0.0
    nearest_resistance: float = 0.0


@dataclass(frozen=True)
class FibLevel:
    ratio: float
    price: float


@dataclass(frozen=True)
class FibonacciLevels:
    high: float
    low: float
    levels: list[FibLevel] = field(default_factory=list)


def find_pivots(values: Sequence[float], *, highs: bool, half_window: int = 2) -> list[float]:
    """5 根窗口（左右各 2 根）内的严格局部极值。"""
    out: list[float] = []
    for i in range(half_window, len(values) - half_window):
        v = values[i]
        neighbours = [values[j] for j in range(i - half_window, i + half_window + 1) if j != i]
        if highs and all(v > n for n in neighbours):
            out.append(v)
        elif not highs and all(v < n for n in neighbours):
            out.append(v)
    return out


def support_resistance(candles: Sequence[Candle], min_candles: int = 20) -> SupportResistance:
    """局部高低点作为阻力/支撑。

    最近支撑 = 低于现价的最高支撑；最近阻力 = 高于现价的最低阻力；
    找不到（或数据不足 min_candles）时分别回退到现价的 95% / 105%。
    只返回最近 3 个支撑/阻力位。
    """
    price = candles[-1].close if candles else 0.0
    fallback_support = price * 0.95
    fallback_resistance = price * 1.05
    if len(candles) < min_candles:
        return SupportResistance(
            nearest_support=fallback_support,
            nearest_resistance=fallback_resistance,
        )

    resistance = find_pivots([c.high for c in candles], highs=True)
    support = find_pivots([c.low for c in candles], highs=False)

    below = [s for s in support if s < price]
    above = [r for r in resistance if r > price]
    return SupportResistance(
        support=support[-3:],
        resistance=resistance[-3:],
        nearest_support=max(below) if below else fallback_support,
        nearest_resistance=min(above) if above else fallback_resistance,
    )


def fibonacci_levels(candles: Sequence[Candle], lookback: int = 50, min_candles: int = 20) -> FibonacciLevels:
    """最近 lookback 根 K 线高低点之间的回撤位（0 为低点，1 为高点）。"""
    if len(candles) < min_candles:
        price = candles[-1].close if candles else 0.0
        return FibonacciLevels(high=price, low=price)

    recent = candles[-lookback:]
    high = max(c.high for c in recent)
    low = min(c.low for c in recent)
    diff = high - low
    return FibonacciLevels(
        high=high,
        low=low,
        levels=[FibLevel(ratio=r, price=low + diff * r) for r in FIB_RATIOS],
    )
