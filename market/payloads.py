"""外部 API 负载的解析与校验。

CoinGecko / Binance 返回的 JSON 在这里转成强类型的 Asset / Candle；
不合法的条目被丢弃并记日志，核心层永远拿不到未校验的数据。
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from shared.models.models import Asset, Candle
from shared.utils.logging import setup_logger

logger = setup_logger("market-payloads")


class CoinGeckoMarket(BaseModel):
    """/coins/markets 单条记录（只保留用到的字段）。"""
    id: str
    symbol: str
    name: str
    current_price: float
    price_change_percentage_24h: Optional[float] = None
    high_24h: Optional[float] = None
    low_24h: Optional[float] = None
    market_cap: Optional[float] = None
    total_volume: Optional[float] = None
    image: Optional[str] = None
    model_config = ConfigDict(extra="ignore")

    @field_validator("current_price")
    @classmethod
    def _positive_price(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("current_price must be > 0")
        return v

    def to_asset(self) -> Asset:
        return Asset(
            id=self.id,
            symbol=self.symbol.upper(),
            name=self.name,
            current_price=self.current_price,
            price_change_percentage_24h=self.price_change_percentage_24h or 0.0,
            high_24h=self.high_24h,
            low_24h=self.low_24h,
            market_cap=self.market_cap,
            total_volume=self.total_volume,
            image=self.image,
        )


class BinanceKline(BaseModel):
    """/api/v3/klines 单行：[open_time_ms, open, high, low, close, volume, close_time_ms, ...]。"""
    open_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float

    @classmethod
    def from_row(cls, row: list[Any]) -> "BinanceKline":
        if not isinstance(row, (list, tuple)) or len(row) < 6:
            raise ValueError(f"kline row must have at least 6 fields: {row!r}")
        return cls(
            open_time=row[0],
            open=row[1],
            high=row[2],
            low=row[3],
            close=row[4],
            volume=row[5],
        )

    def to_candle(self) -> Candle:
        return Candle(
            time=self.open_time // 1000,
            open=self.open,
            high=self.high,
            low=self.low,
            close=self.close,
            volume=self.volume,
        )


def parse_markets(payload: Any) -> list[Asset]:
    """解析 /coins/markets 响应；顶层不是列表时抛 ValueError，单条错误丢弃。"""
    if not isinstance(payload, list):
        raise ValueError("CoinGecko markets payload must be a list")
    assets: list[Asset] = []
    for item in payload:
        try:
            assets.append(CoinGeckoMarket.model_validate(item).to_asset())
        except ValidationError as exc:
            logger.warning("Dropping invalid market row %r: %s", _row_id(item), exc.errors()[0]["msg"])
    return assets


def parse_klines(payload: Any) -> list[Candle]:
    """解析 K 线响应；丢弃字段缺失或 OHLC 不自洽的行，结果按时间升序。"""
    if not isinstance(payload, list):
        raise ValueError("Kline payload must be a list")
    candles: list[Candle] = []
    for row in payload:
        try:
            candle = BinanceKline.from_row(row).to_candle()
        except (ValidationError, ValueError) as exc:
            logger.warning("Dropping invalid kline row: %s", exc)
            continue
        if not candle.is_valid():
            logger.warning("Dropping inconsistent kline at %s", candle.time)
            continue
        candles.append(candle)
    candles.sort(key=lambda c: c.time)
    return candles


def parse_simple_price(payload: Any, asset_id: str, vs_currency: str = "usd") -> float | None:
    """/simple/price 响应 -> 价格；缺失时为 None。"""
    if not isinstance(payload, dict):
        return None
    entry = payload.get(asset_id)
    if not isinstance(entry, dict):
        return None
    value = entry.get(vs_currency)
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    return price if price > 0 else None


def _row_id(item: Any) -> str:
    if isinstance(item, dict):
        return str(item.get("id", "?"))
    return "?"


def create_price_map(assets: Iterable[Asset]) -> dict[str, float]:
    """asset id -> 当前价格。"""
    return {a.id: a.current_price for a in assets}
