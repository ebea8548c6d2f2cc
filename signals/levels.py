"""由方向、现价、ATR 与最近支撑/阻力推导入场/止损/止盈阶梯。"""

from __future__ import annotations

from signals.models import KeyLevels, SignalType


def risk_reward(entry: float, stop_loss: float, take_profit: float) -> float:
    """|TP1 − entry| / |entry − SL|；风险为 0 时返回 0。"""
    risk = abs(entry - stop_loss)
    if risk == 0:
        return 0.0
    return abs(take_profit - entry) / risk


def key_levels(
    signal_type: SignalType,
    price: float,
    atr: float,
    support: float,
    resistance: float,
) -> KeyLevels:
    """按信号方向推导关键价位。

    - 看多：entry = min(P, S·1.01)，SL = max(entry − 2·ATR, S·0.98)，
      TP = entry + {2, 3.5, 5}·ATR，第三档不超过 R·0.99
    - 看空：镜像，围绕阻力
    - 中性：以阻力突破为目标，entry = P，SL = P − 1.5·ATR，TP = R·{1, 1.03, 1.05}
    """
    if signal_type.is_bullish:
        entry = min(price, support * 1.01)
        stop_loss = max(entry - 2 * atr, support * 0.98)
        tp1 = entry + 2 * atr
        tp2 = entry + 3.5 * atr
        tp3 = min(entry + 5 * atr, resistance * 0.99)
    elif signal_type.is_bearish:
        entry = max(price, resistance * 0.99)
        stop_loss = min(entry + 2 * atr, resistance * 1.02)
        tp1 = entry - 2 * atr
        tp2 = entry - 3.5 * atr
        tp3 = max(entry - 5 * atr, support * 1.01)
    else:
        entry = price
        stop_loss = price - 1.5 * atr
        tp1 = resistance
        tp2 = resistance * 1.03
        tp3 = resistance * 1.05

    return KeyLevels(
        entry=entry,
        stop_loss=stop_loss,
        take_profit1=tp1,
        take_profit2=tp2,
        take_profit3=tp3,
        risk_reward_ratio=risk_reward(entry, stop_loss, tp1),
        nearest_support=support,
        nearest_resistance=resistance,
    )
