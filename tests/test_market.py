import pytest
import requests

from market import CoinGeckoClient, PriceCache, SyntheticFeed, create_price_map, get_price_feed, parse_klines, parse_markets
from market.client import check_interval
from market.payloads import parse_simple_price
from market.synthetic import generate_candles, update_candles
from shared.config.schema import FeedConfig


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeResponse:
    def __init__(self, payload, status: int = 200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"status {self.status}")

    def json(self):
        return self.payload


class FakeSession:
    """按调用顺序返回预置响应；元素为异常时直接抛出。"""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params, timeout))
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


MARKET_ROW = {
    "id": "bitcoin",
    "symbol": "btc",
    "name": "Bitcoin",
    "current_price": 50_000,
    "price_change_percentage_24h": 2.5,
    "high_24h": 51_000,
    "low_24h": 49_000,
    "ath": 69_000,
}


# ---------- 缓存 ----------

def test_price_cache_ttl_and_stale_read():
    clock = FakeClock()
    cache = PriceCache(ttl_seconds=60, clock=clock)
    assert cache.get() is None
    assert cache.time_until_refresh() == 0.0

    cache.set([1, 2])
    clock.now += 30
    assert cache.get() == [1, 2]
    assert cache.time_until_refresh() == 30

    clock.now += 31
    assert cache.get() is None
    assert cache.get_stale() == [1, 2]
    assert not cache.is_fresh()

    cache.clear()
    assert cache.get_stale() is None
    with pytest.raises(ValueError):
        PriceCache(ttl_seconds=0)


# ---------- 负载解析 ----------

def test_parse_markets_drops_invalid_rows():
    rows = [MARKET_ROW, {"id": "broken", "symbol": "x", "name": "X", "current_price": 0}, "junk"]
    assets = parse_markets(rows)
    assert [a.id for a in assets] == ["bitcoin"]
    assert assets[0].symbol == "BTC"
    assert create_price_map(assets) == {"bitcoin": 50_000}
    with pytest.raises(ValueError):
        parse_markets({"error": "rate limited"})


def test_parse_klines_validates_and_sorts():
    rows = [
        [1_700_003_600_000, "101", "103", "100", "102", "12.5", 0],
        [1_700_000_000_000, "100", "102", "99", "101", "10", 0],
        [1_700_007_200_000, "102", "101", "100", "103", "1", 0],  # high < close
        [1_700_010_800_000, "1", "2"],
    ]
    candles = parse_klines(rows)
    assert [c.time for c in candles] == [1_700_000_000, 1_700_003_600]
    assert candles[1].volume == 12.5


def test_parse_simple_price():
    assert parse_simple_price({"bitcoin": {"usd": 50_000}}, "bitcoin") == 50_000
    assert parse_simple_price({"bitcoin": {"usd": 0}}, "bitcoin") is None
    assert parse_simple_price({}, "bitcoin") is None
    assert parse_simple_price([], "bitcoin") is None


# ---------- CoinGecko 客户端 ----------

def _client(session, clock=None):
    cache = PriceCache(60, clock=clock or FakeClock())
    return CoinGeckoClient(FeedConfig(tracked_assets=["bitcoin"]), cache=cache, session=session)


def test_client_uses_cache_until_expired():
    clock = FakeClock()
    session = FakeSession([FakeResponse([MARKET_ROW]), FakeResponse([MARKET_ROW])])
    client = _client(session, clock)

    assert client.get_market_prices()[0].current_price == 50_000
    client.get_market_prices()
    assert len(session.calls) == 1
    assert session.calls[0][1]["ids"] == "bitcoin"

    clock.now += 120
    client.get_market_prices()
    assert len(session.calls) == 2


def test_client_falls_back_to_stale_cache_on_failure():
    clock = FakeClock()
    session = FakeSession([FakeResponse([MARKET_ROW]), requests.ConnectionError("offline")])
    client = _client(session, clock)
    client.get_market_prices()

    clock.now += 120
    stale = client.get_market_prices()
    assert [a.id for a in stale] == ["bitcoin"]


def test_client_returns_empty_without_cache():
    client = _client(FakeSession([FakeResponse({}, status=429)]))
    assert client.get_market_prices() == []


def test_client_historical_candles():
    rows = [[1_700_000_000_000, "100", "102", "99", "101", "10", 0]]
    session = FakeSession([FakeResponse(rows), requests.Timeout("slow")])
    client = _client(session)

    candles = client.get_historical_candles("btc", "1h", 1)
    assert len(candles) == 1
    assert session.calls[0][1] == {"symbol": "BTCUSDT", "interval": "1h", "limit": 1}
    assert client.get_historical_candles("btc", "1h", 1) == []

    with pytest.raises(ValueError):
        client.get_historical_candles("btc", "2h", 10)


def test_client_asset_price():
    session = FakeSession([FakeResponse({"bitcoin": {"usd": 49_000}}), requests.ConnectionError("x")])
    client = _client(session)
    assert client.get_asset_price("bitcoin") == 49_000
    assert client.get_asset_price("bitcoin") is None


def test_kline_symbol_mapping():
    assert CoinGeckoClient.kline_symbol("eth") == "ETHUSDT"
    assert CoinGeckoClient.kline_symbol("BTCUSDT") == "BTCUSDT"


def test_check_interval_bounds():
    check_interval("1d", 1000)
    with pytest.raises(ValueError):
        check_interval("1h", 1001)
    with pytest.raises(ValueError):
        check_interval("1h", 0)


# ---------- 合成行情 ----------

def test_generate_candles_reproducible():
    a = generate_candles(100.0, periods=50, seed=7, end_time=10_000)
    b = generate_candles(100.0, periods=50, seed=7, end_time=10_000)
    assert a == b
    assert len(a) == 51
    assert a[-1].time == 10_000
    assert all(c.is_valid() for c in a)
    with pytest.raises(ValueError):
        generate_candles(0.0)


def test_update_candles_rewrites_or_appends():
    candles = generate_candles(100.0, periods=5, timeframe_seconds=60, seed=1, end_time=1_000)
    same = update_candles(candles, 150.0, timeframe_seconds=60, now=1_030)
    assert len(same) == len(candles)
    assert same[-1].close == 150.0
    assert same[-1].high >= 150.0

    appended = update_candles(candles, 90.0, timeframe_seconds=60, now=1_060)
    assert len(appended) == len(candles) + 1
    assert appended[-1].open == candles[-1].close
    assert update_candles([], 1.0) == []


def test_synthetic_feed_snapshot_and_history():
    feed = SyntheticFeed(seed=42)
    assets = feed.get_market_prices()
    assert [a.id for a in assets][:2] == ["bitcoin", "ethereum"]
    btc = assets[0]
    assert btc.low_24h <= btc.current_price <= btc.high_24h

    candles = feed.get_historical_candles(btc, "1h", 200)
    assert len(candles) == 200
    assert candles[-1].close == btc.current_price
    assert feed.get_historical_candles("BTCUSDT", "1h", 200) == candles
    assert feed.get_historical_candles("unknown", "1h", 10) == []


def test_get_price_feed_factory():
    assert isinstance(get_price_feed("synthetic"), SyntheticFeed)
    assert isinstance(get_price_feed("live", FeedConfig()), CoinGeckoClient)
    with pytest.raises(ValueError):
        get_price_feed("paper")
