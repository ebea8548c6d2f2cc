"""单个资产一次完整评估所需的全部指标读数。

同一资产内按固定顺序计算（背离检测依赖前面的 RSI），
不同资产之间互不依赖，可以并行。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from indicators.frame import closes
from indicators.momentum import (
    CCIReading,
    MFIReading,
    ROCReading,
    StochasticReading,
    WilliamsRReading,
    cci,
    mfi,
    roc,
    rsi,
    stochastic,
    williams_r,
)
from indicators.trend import ADXReading, MACDReading, StopAndReverseReading, adx, ema, macd, parabolic_sar, supertrend
from indicators.volatility import BollingerReading, atr, bollinger
from indicators.volume import OBVReading, VWAPReading, obv, vwap
from patterns.candles import CandlePattern, detect_candle_pattern
from patterns.levels import SupportResistance, support_resistance
from patterns.structure import Divergence, MarketStructure, detect_rsi_divergence, market_structure
from shared.config.schema import SignalConfig
from shared.models.models import Candle


@dataclass(frozen=True)
class IndicatorSnapshot:
    candles: tuple[Candle, ...]
    prices: tuple[float, ...]
    price: float
    prev_price: float
    rsi: float
    stochastic: StochasticReading
    cci: CCIReading
    williams_r: WilliamsRReading
    roc: ROCReading
    mfi: MFIReading
    ema9: float
    ema20: float
    ema21: float
    ema50: float | None
    ema200: float
    macd: MACDReading
    parabolic_sar: StopAndReverseReading
    supertrend: StopAndReverseReading
    structure: MarketStructure
    bollinger: BollingerReading
    obv: OBVReading
    vwap: VWAPReading
    pattern: CandlePattern
    volume_ratio: float
    divergence: Divergence
    change_last_pct: float
    change_5_pct: float
    atr: float
    adx: ADXReading
    levels: SupportResistance


def _pct(new: float, old: float) -> float:
    return (new - old) / old * 100 if old else 0.0


def _volume_ratio(candles: Sequence[Candle], lookback: int) -> float:
    """最新成交量 / 之前 lookback 根的均值；均值为 0 时返回 1。"""
    recent = candles[-(lookback + 1):]
    previous = [c.volume or 0.0 for c in recent[:-1]]
    if not previous:
        return 1.0
    average = sum(previous) / len(previous)
    current = recent[-1].volume or 0.0
    return current / average if average > 0 else 1.0


def build_snapshot(candles: Sequence[Candle], config: SignalConfig | None = None) -> IndicatorSnapshot:
    """计算完整档所需的全部读数（调用方保证 K 线数量已达到最少要求）。"""
    config = config or SignalConfig()
    candles = tuple(candles)
    prices = tuple(closes(candles))
    price = prices[-1]
    prev_price = prices[-2] if len(prices) > 1 else price

    ema50_min = int(config.rule("ema50").bands.get("min_candles", 50))
    div_bands = config.rule("divergence").bands
    lookback = int(config.rule("volume").bands.get("lookback", 9))
    base_5 = prices[-6] if len(prices) >= 6 else prices[0]

    return IndicatorSnapshot(
        candles=candles,
        prices=prices,
        price=price,
        prev_price=prev_price,
        rsi=rsi(prices, 14),
        stochastic=stochastic(candles, 14, 3),
        cci=cci(candles, 20),
        williams_r=williams_r(candles, 14),
        roc=roc(prices, 12),
        mfi=mfi(candles, 14),
        ema9=ema(prices, 9),
        ema20=ema(prices, 20),
        ema21=ema(prices, 21),
        ema50=ema(prices, 50) if len(prices) >= ema50_min else None,
        ema200=ema(prices, 200),
        macd=macd(prices),
        parabolic_sar=parabolic_sar(candles),
        supertrend=supertrend(candles),
        structure=market_structure(candles, 20),
        bollinger=bollinger(prices, 20, 2),
        obv=obv(candles),
        vwap=vwap(candles),
        pattern=detect_candle_pattern(candles),
        volume_ratio=_volume_ratio(candles, lookback),
        divergence=detect_rsi_divergence(
            prices,
            window=int(div_bands.get("window", 10)),
            bull_rsi=div_bands.get("bull_rsi", 40),
            bear_rsi=div_bands.get("bear_rsi", 60),
        ),
        change_last_pct=_pct(price, prev_price),
        change_5_pct=_pct(price, base_5),
        atr=atr(candles, 14),
        adx=adx(candles, 14, config.adx_weak, config.adx_strong),
        levels=support_resistance(candles),
    )
