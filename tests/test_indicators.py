import pytest

from indicators import (
    adx,
    analyze_volume,
    atr,
    bollinger,
    cci,
    ema,
    macd,
    market_sentiment,
    mfi,
    obv,
    parabolic_sar,
    roc,
    rsi,
    sma,
    stochastic,
    supertrend,
    vwap,
    williams_r,
)
from indicators.frame import FRAME_COLUMNS, candles_to_frame
from indicators.momentum import rsi_series
from indicators.trend import ema_series
from indicators.volatility import bollinger_series


def test_rsi_neutral_when_not_enough_prices():
    assert rsi([100.0] * 14) == 50.0


def test_rsi_extremes_on_monotonic_series():
    rising = [float(p) for p in range(100, 130)]
    falling = list(reversed(rising))
    assert rsi(rising) == 100.0
    assert abs(rsi(falling)) < 1e-9


def test_rsi_series_matches_scalar_value():
    prices = [100, 101, 99, 102, 104, 103, 105, 107, 106, 104, 103, 105, 108, 110, 109, 111, 112, 110]
    series = rsi_series([float(p) for p in prices])
    assert abs(series.iloc[-1] - rsi([float(p) for p in prices])) < 1e-9
    assert series.iloc[:14].isna().all()


def test_ema_seeded_with_sma():
    # 种子 (1+2+3)/3=2，乘数 0.5：4 -> 3，5 -> 4
    assert abs(ema([1.0, 2.0, 3.0, 4.0, 5.0], 3) - 4.0) < 1e-9
    assert ema([7.0, 8.0], 5) == 8.0
    assert ema([], 5) == 0.0
    assert ema_series([1.0, 2.0, 3.0, 4.0, 5.0], 3).iloc[-1] == pytest.approx(4.0)


def test_sma_and_invalid_period():
    assert sma([1.0, 2.0, 3.0, 4.0], 2) == 3.5
    assert sma([], 3) == 0.0
    with pytest.raises(ValueError):
        sma([1.0], 0)


def test_macd_zero_for_short_or_flat_series():
    assert macd([100.0] * 10).macd == 0.0
    flat = macd([100.0] * 60)
    assert abs(flat.macd) < 1e-9
    assert abs(flat.histogram) < 1e-9


def test_macd_positive_in_uptrend():
    reading = macd([100.0 + i for i in range(60)])
    assert reading.macd > 0


def test_atr_and_bollinger_on_flat_candles(candles_factory):
    candles = candles_factory([100.0] * 30)
    assert atr(candles) == pytest.approx(1.0)
    assert atr(candles[:10]) == 0.0

    bb = bollinger([c.close for c in candles])
    assert bb.percent_b == 0.5
    assert bb.bandwidth == 0.0
    assert bb.upper == bb.middle == bb.lower == 100.0


def test_bollinger_percent_b_is_clamped():
    prices = [100.0] * 19 + [130.0]
    assert bollinger(prices).percent_b <= 1.0
    prices = [100.0] * 19 + [70.0]
    assert bollinger(prices).percent_b >= 0.0


def test_bollinger_series_matches_latest_reading():
    prices = [100.0 + (i % 7) * 1.5 - (i % 3) for i in range(40)]
    frame = bollinger_series(prices, period=20)
    assert list(frame.columns) == ["middle", "upper", "lower"]
    assert len(frame) == 40
    assert frame.iloc[:19].isna().all().all()
    assert not frame.iloc[19:].isna().any().any()

    last = frame.iloc[-1]
    bb = bollinger(prices, period=20)
    assert last["middle"] == pytest.approx(bb.middle)
    assert last["upper"] == pytest.approx(bb.upper)
    assert last["lower"] == pytest.approx(bb.lower)


def test_oscillators_neutral_with_short_history(candles_factory):
    candles = candles_factory([100.0, 101.0, 102.0])
    st = stochastic(candles)
    assert (st.k, st.d, st.signal) == (50.0, 50.0, "neutral")
    assert williams_r(candles).williams_r == -50.0
    assert cci(candles).cci == 0.0
    assert mfi(candles).mfi == 50.0
    assert roc([100.0, 101.0]).roc == 0.0


def test_oscillators_in_strong_uptrend(candles_factory):
    candles = candles_factory([100.0 + i for i in range(40)])
    assert stochastic(candles).signal == "overbought"
    assert williams_r(candles).signal == "overbought"
    assert mfi(candles).signal == "overbought"
    assert cci(candles).cci > 0


def test_roc_strength_bands():
    assert roc([100.0] * 12 + [110.0]).signal == "strong-bullish"
    assert roc([100.0] * 12 + [98.0]).signal == "bearish"


def test_volume_indicators(candles_factory):
    reading = analyze_volume([100.0] * 19 + [300.0])
    assert reading.is_high
    assert reading.ratio == pytest.approx(300.0 / 110.0)

    rising = candles_factory([100.0 + i for i in range(20)])
    assert obv(rising).trend == "accumulation"
    assert vwap(rising).signal == "bullish"
    assert vwap([]).vwap == 0.0


def test_adx_and_stop_and_reverse_in_uptrend(candles_factory):
    candles = candles_factory([100.0 + i for i in range(40)])
    reading = adx(candles)
    assert reading.trend == "strong-up"
    assert reading.di_plus > reading.di_minus

    assert adx(candles[:20]).trend == "ranging"
    assert parabolic_sar(candles).trend == "bullish"
    assert supertrend(candles).trend == "bullish"
    assert supertrend(candles[:5]).signal == "hold"


def test_market_sentiment_neutral_with_short_history(candles_factory):
    reading = market_sentiment(candles_factory([100.0] * 5), 3.0)
    assert reading.sentiment == "neutral"
    assert reading.score == 50.0


def test_candles_to_frame_empty_has_columns():
    df = candles_to_frame([])
    assert list(df.columns) == FRAME_COLUMNS
