"""行情边界：缓存、负载解析与行情源实现。"""

from market.cache import PriceCache
from market.client import INTERVALS, CoinGeckoClient, PriceFeed
from market.payloads import create_price_map, parse_klines, parse_markets
from market.synthetic import SyntheticFeed, generate_candles, update_candles
from shared.config.schema import FeedConfig


def get_price_feed(mode: str, config: FeedConfig | None = None, logger=None, seed: int | None = None) -> PriceFeed:
    """根据模式选择行情源：live -> CoinGecko，synthetic/offline -> 本地随机游走。"""
    mode_l = mode.lower().replace("_", "-")
    if mode_l in {"live", "coingecko", "online"}:
        return CoinGeckoClient(config=config, logger=logger)
    if mode_l in {"synthetic", "offline", "fake", "mock"}:
        return SyntheticFeed(seed=seed, logger=logger)
    raise ValueError(f"Unsupported market mode: {mode}")


__all__ = [
    "INTERVALS",
    "CoinGeckoClient",
    "PriceCache",
    "PriceFeed",
    "SyntheticFeed",
    "create_price_map",
    "generate_candles",
    "get_price_feed",
    "parse_klines",
    "parse_markets",
    "update_candles",
]
