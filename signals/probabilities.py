"""情景概率：基础表 + ADX 趋势强度调整 + 整数归一化。"""

from __future__ import annotations

import math

from indicators.trend import ADXReading
from shared.config.schema import SignalConfig
from signals.models import Probabilities, SignalType


def normalize(bullish: float, bearish: float, reversal: float, consolidation: float) -> Probabilities:
    """四项按比例取整，余数并入 consolidation，保证合计恰好 100。

    调整后出现的负值先截为 0；全部为 0 时视为完全盘整。
    """
    raw = [max(0.0, v) for v in (bullish, bearish, reversal, consolidation)]
    total = sum(raw)
    if total <= 0:
        return Probabilities(bullish=0, bearish=0, reversal=0, consolidation=100)

    bull = _round_half_up(raw[0] / total * 100)
    bear = _round_half_up(raw[1] / total * 100)
    rev = _round_half_up(raw[2] / total * 100)
    cons = 100 - bull - bear - rev
    if cons < 0:
        # 三项四舍五入都进位时，从最大项里扣回
        bull, bear, rev = _absorb(bull, bear, rev, -cons)
        cons = 0
    return Probabilities(bullish=bull, bearish=bear, reversal=rev, consolidation=cons)


def _round_half_up(value: float) -> int:
    # 0.5 一律进位（内置 round 是银行家舍入）
    return math.floor(value + 0.5)


def _absorb(bull: int, bear: int, rev: int, excess: int) -> tuple[int, int, int]:
    values = [bull, bear, rev]
    while excess > 0:
        i = values.index(max(values))
        values[i] -= 1
        excess -= 1
    return values[0], values[1], values[2]


def base_probabilities(signal_type: SignalType, config: SignalConfig | None = None) -> list[float]:
    config = config or SignalConfig()
    return [float(v) for v in config.probabilities[signal_type.value]]


def scenario_probabilities(
    signal_type: SignalType,
    trend: ADXReading | None = None,
    config: SignalConfig | None = None,
) -> Probabilities:
    """从基础表出发按 ADX 调整后归一化。

    ADX > adx_strong：主导方向 +10，另一方向与盘整各 −5；
    ADX < adx_weak：盘整 +15，看涨 −7，看跌 −8。
    """
    config = config or SignalConfig()
    bull, bear, rev, cons = base_probabilities(signal_type, config)

    if trend is not None:
        if trend.adx > config.adx_strong:
            if trend.di_plus > trend.di_minus:
                bull += 10
                bear -= 5
            else:
                bear += 10
                bull -= 5
            cons -= 5
        elif trend.adx < config.adx_weak:
            cons += 15
            bull -= 7
            bear -= 8

    return normalize(bull, bear, rev, cons)
