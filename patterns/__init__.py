"""K 线形态与价格结构识别（patterns）。"""

from patterns.candles import detect_candle_pattern
from patterns.levels import fibonacci_levels, support_resistance
from patterns.structure import detect_rsi_divergence, market_structure

__all__ = [
    "detect_candle_pattern",
    "support_resistance",
    "fibonacci_levels",
    "market_structure",
    "detect_rsi_divergence",
]
