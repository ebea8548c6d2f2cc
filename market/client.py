"""行情客户端（CoinGecko 快照 + Binance K 线 / 本地合成数据）。"""

from __future__ import annotations

from abc import ABC, abstractmethod

import requests

from market.cache import PriceCache
from market.payloads import parse_klines, parse_markets, parse_simple_price
from shared.config.schema import FeedConfig
from shared.models.models import Asset, Candle
from shared.utils.logging import setup_logger

INTERVALS = ("1m", "5m", "15m", "1h", "4h", "1d")
MAX_CANDLES = 1000


class PriceFeed(ABC):
    """行情源抽象基类。

    实现方必须把网络/解析失败转换成空结果或旧数据，不向上抛出。
    """

    @abstractmethod
    def get_market_prices(self, use_cache: bool = True) -> list[Asset]:
        """跟踪资产的 24h 快照列表。"""
        raise NotImplementedError

    @abstractmethod
    def get_historical_candles(self, asset: Asset | str, interval: str = "1h", limit: int = 100) -> list[Candle]:
        """按时间升序的 K 线；不可用时返回空列表。"""
        raise NotImplementedError


def check_interval(interval: str, limit: int) -> None:
    if interval not in INTERVALS:
        raise ValueError(f"Unsupported interval: {interval}")
    if not 0 < limit <= MAX_CANDLES:
        raise ValueError(f"limit must be in 1..{MAX_CANDLES}")


class CoinGeckoClient(PriceFeed):
    """CoinGecko REST 快照 + Binance 公共 K 线。

    Parameters
    ----------
    config:
        URL、超时、TTL 与跟踪资产列表。
    cache:
        快照缓存；不传时按 config.cache_ttl_seconds 新建。
    session:
        requests.Session（测试可注入假会话）。
    """

    def __init__(
        self,
        config: FeedConfig | None = None,
        cache: PriceCache[list[Asset]] | None = None,
        session: requests.Session | None = None,
        logger=None,
    ):
        self.config = config or FeedConfig()
        self.cache = cache if cache is not None else PriceCache(self.config.cache_ttl_seconds)
        self.session = session or requests.Session()
        self.logger = logger or setup_logger("market-coingecko")

    def _get_json(self, url: str, params: dict):
        resp = self.session.get(url, params=params, timeout=self.config.timeout_seconds)
        resp.raise_for_status()
        return resp.json()

    def get_market_prices(self, use_cache: bool = True) -> list[Asset]:
        """拉取跟踪资产快照。

        缓存未过期直接返回；请求失败时回退到旧缓存，没有缓存则返回 []。
        """
        if use_cache:
            cached = self.cache.get()
            if cached is not None:
                return cached

        url = f"{self.config.coingecko_url}/coins/markets"
        params = {
            "vs_currency": self.config.vs_currency,
            "ids": ",".join(self.config.tracked_assets),
            "order": "market_cap_desc",
            "sparkline": "false",
            "price_change_percentage": "24h",
        }
        try:
            assets = parse_markets(self._get_json(url, params))
        except (requests.RequestException, ValueError) as exc:
            stale = self.cache.get_stale()
            if stale is not None:
                self.logger.warning("Market price fetch failed (%s), using stale cache", exc)
                return stale
            self.logger.warning("Market price fetch failed (%s), no cache available", exc)
            return []

        self.cache.set(assets)
        self.logger.info("Fetched %s assets from CoinGecko", len(assets))
        return assets

    def get_asset_price(self, asset_id: str) -> float | None:
        url = f"{self.config.coingecko_url}/simple/price"
        params = {"ids": asset_id, "vs_currencies": self.config.vs_currency}
        try:
            return parse_simple_price(self._get_json(url, params), asset_id, self.config.vs_currency)
        except (requests.RequestException, ValueError) as exc:
            self.logger.warning("Price fetch for %s failed: %s", asset_id, exc)
            return None

    @staticmethod
    def kline_symbol(asset: Asset | str) -> str:
        """资产 -> Binance 交易对（BTC -> BTCUSDT）；已带 USDT 后缀的原样返回。"""
        symbol = asset.symbol if isinstance(asset, Asset) else asset
        symbol = symbol.upper()
        return symbol if symbol.endswith("USDT") else f"{symbol}USDT"

    def get_historical_candles(self, asset: Asset | str, interval: str = "1h", limit: int = 100) -> list[Candle]:
        check_interval(interval, limit)
        params = {"symbol": self.kline_symbol(asset), "interval": interval, "limit": limit}
        try:
            return parse_klines(self._get_json(self.config.klines_url, params))
        except (requests.RequestException, ValueError) as exc:
            self.logger.warning("Kline fetch for %s failed: %s", params["symbol"], exc)
            return []

    def clear_cache(self) -> None:
        self.cache.clear()

