"""离线合成行情：随机游走 K 线与模拟实时更新。"""

from __future__ import annotations

import time
from dataclasses import replace
from typing import Sequence

import numpy as np

from market.client import INTERVALS, MAX_CANDLES, PriceFeed, check_interval
from shared.models.models import Asset, Candle
from shared.utils.logging import setup_logger

INTERVAL_SECONDS = {"1m": 60, "5m": 300, "15m": 900, "1h": 3600, "4h": 14400, "1d": 86400}

DEFAULT_ASSETS = (
    ("bitcoin", "BTC", "Bitcoin", 50_000.0),
    ("ethereum", "ETH", "Ethereum", 3_000.0),
    ("solana", "SOL", "Solana", 150.0),
    ("cardano", "ADA", "Cardano", 0.5),
    ("dogecoin", "DOGE", "Dogecoin", 0.1),
)


def generate_candles(
    base_price: float,
    periods: int = 100,
    timeframe_seconds: int = 300,
    volatility: float = 0.02,
    *,
    seed: int | None = None,
    end_time: int | None = None,
) -> list[Candle]:
    """随机游走 K 线（periods + 1 根，最后一根结束于 end_time）。

    每根 K 线：close = open · (1 + U(-vol, vol))，high/low 在实体外再随机延伸 [0, vol)，
    成交量 U(500k, 1.5M)。
    """
    if base_price <= 0:
        raise ValueError("base_price must be > 0")
    rng = np.random.default_rng(seed)
    now = int(end_time if end_time is not None else time.time())
    count = periods + 1

    changes = (rng.random(count) - 0.5) * 2 * volatility
    high_ext = rng.random(count) * volatility
    low_ext = rng.random(count) * volatility
    volumes = rng.random(count) * 1_000_000 + 500_000
    closes = base_price * np.cumprod(1 + changes)
    opens = np.concatenate([[base_price], closes[:-1]])

    candles: list[Candle] = []
    for i in range(count):
        o, c = float(opens[i]), float(closes[i])
        candles.append(
            Candle(
                time=now - (periods - i) * timeframe_seconds,
                open=o,
                high=max(o, c) * (1 + float(high_ext[i])),
                low=min(o, c) * (1 - float(low_ext[i])),
                close=c,
                volume=float(volumes[i]),
            )
        )
    return candles


def update_candles(
    candles: Sequence[Candle],
    price: float,
    timeframe_seconds: int = 300,
    now: int | None = None,
) -> list[Candle]:
    """用最新价格更新序列：仍在当前周期内则改写最后一根，否则追加新 K 线。"""
    candles = list(candles)
    if not candles:
        return candles
    now = int(now if now is not None else time.time())
    last = candles[-1]
    if now - last.time < timeframe_seconds:
        candles[-1] = replace(last, close=price, high=max(last.high, price), low=min(last.low, price))
    else:
        candles.append(Candle(time=now, open=last.close, high=max(last.close, price),
                              low=min(last.close, price), close=price, volume=0.0))
    return candles


class SyntheticFeed(PriceFeed):
    """本地合成数据源，便于离线开发/测试。快照由合成 K 线派生，结果可用 seed 复现。"""

    def __init__(self, assets: Sequence[tuple[str, str, str, float]] = DEFAULT_ASSETS,
                 seed: int | None = None, logger=None):
        self.assets = list(assets)
        self.seed = seed
        self.logger = logger or setup_logger("market-synthetic")
        self._history: dict[tuple[str, str], list[Candle]] = {}

    def _base(self, key: str) -> tuple[str, str, str, float] | None:
        for row in self.assets:
            if key.lower() in (row[0], row[1].lower(), row[1].lower() + "usdt"):
                return row
        return None

    def get_historical_candles(self, asset: Asset | str, interval: str = "1h", limit: int = 100) -> list[Candle]:
        check_interval(interval, limit)
        key = asset.id if isinstance(asset, Asset) else asset
        row = self._base(key)
        if row is None:
            self.logger.warning("Unknown synthetic asset: %s", key)
            return []
        asset_id, _, _, price = row
        cache_key = (asset_id, interval)
        if cache_key not in self._history:
            seed = None if self.seed is None else self.seed + INTERVALS.index(interval) * 1000 + len(asset_id)
            self._history[cache_key] = generate_candles(
                price, periods=MAX_CANDLES - 1, timeframe_seconds=INTERVAL_SECONDS[interval], seed=seed
            )
        return self._history[cache_key][-limit:]

    def get_market_prices(self, use_cache: bool = True) -> list[Asset]:
        out: list[Asset] = []
        for asset_id, symbol, name, _ in self.assets:
            day = self.get_historical_candles(asset_id, "1h", 25)
            last, first = day[-1], day[0]
            change = (last.close - first.close) / first.close * 100
            out.append(
                Asset(
                    id=asset_id,
                    symbol=symbol,
                    name=name,
                    current_price=last.close,
                    price_change_percentage_24h=change,
                    high_24h=max(c.high for c in day),
                    low_24h=min(c.low for c in day),
                )
            )
        return out
