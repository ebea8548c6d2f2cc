"""Candle 序列与 pandas DataFrame 之间的转换。

指标层是“纯计算”：输入按时间升序排列的 Candle 序列（或收盘价序列），
需要滚动窗口的指标在内部转成 DataFrame 再计算。
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd

from shared.models.models import Candle

FRAME_COLUMNS = ["time", "open", "high", "low", "close", "volume"]


def candles_to_frame(candles: Sequence[Candle]) -> pd.DataFrame:
    if not candles:
        return pd.DataFrame(columns=FRAME_COLUMNS)
    return pd.DataFrame(
        {
            "time": [c.time for c in candles],
            "open": [float(c.open) for c in candles],
            "high": [float(c.high) for c in candles],
            "low": [float(c.low) for c in candles],
            "close": [float(c.close) for c in candles],
            "volume": [float(c.volume or 0.0) for c in candles],
        }
    )


def closes(candles: Sequence[Candle]) -> list[float]:
    return [float(c.close) for c in candles]


def typical_prices(candles: Sequence[Candle]) -> np.ndarray:
    return np.array([(c.high + c.low + c.close) / 3.0 for c in candles], dtype=float)


def require_period(period: int, name: str) -> None:
    if period <= 0:
        raise ValueError(f"{name} period must be > 0")
