"""技术指标库（indicators）。

纯函数、无状态：每次调用都基于传入的 Candle/价格快照重新计算。
"""

from indicators.momentum import cci, mfi, roc, rsi, stochastic, williams_r
from indicators.sentiment import market_sentiment
from indicators.trend import adx, ema, macd, parabolic_sar, sma, supertrend
from indicators.volatility import atr, bollinger, true_ranges
from indicators.volume import analyze_volume, obv, vwap

__all__ = [
    "rsi",
    "stochastic",
    "cci",
    "williams_r",
    "roc",
    "mfi",
    "sma",
    "ema",
    "macd",
    "adx",
    "parabolic_sar",
    "supertrend",
    "atr",
    "bollinger",
    "true_ranges",
    "analyze_volume",
    "obv",
    "vwap",
    "market_sentiment",
]
