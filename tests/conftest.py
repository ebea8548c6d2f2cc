import sys
from pathlib import Path

import pytest

# 确保项目根目录在 sys.path，便于测试内直接以顶层包名导入
ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

from shared.models.models import Asset, Candle  # noqa: E402
from shared.utils.ids import SequentialIds  # noqa: E402


def make_candles(closes, spread: float = 0.5, volume: float = 1000.0, start: int = 1_700_000_000, step: int = 3600):
    """按收盘价序列构造 K 线：open 为上一根收盘，high/low 在实体外延伸 spread。"""
    out = []
    prev = closes[0]
    for i, close in enumerate(closes):
        o = prev
        out.append(
            Candle(
                time=start + i * step,
                open=o,
                high=max(o, close) + spread,
                low=min(o, close) - spread,
                close=close,
                volume=volume,
            )
        )
        prev = close
    return out


@pytest.fixture
def candles_factory():
    return make_candles


@pytest.fixture
def btc() -> Asset:
    return Asset(
        id="bitcoin",
        symbol="btc",
        name="Bitcoin",
        current_price=50_000.0,
        price_change_percentage_24h=2.0,
        high_24h=51_000.0,
        low_24h=49_000.0,
    )


@pytest.fixture
def ids() -> SequentialIds:
    return SequentialIds("t")


@pytest.fixture
def fixed_clock():
    return lambda: 1_700_000_000_000
