from patterns import detect_candle_pattern, detect_rsi_divergence, fibonacci_levels, market_structure, support_resistance
from patterns.levels import find_pivots
from shared.models.models import Candle


def _candle(o, h, l, c, t=0, v=1000.0):
    return Candle(time=t, open=o, high=h, low=l, close=c, volume=v)


def _filler():
    return [_candle(100, 101, 99, 100.5, t=0), _candle(100.5, 101.5, 99.5, 101, t=1)]


def _from_ranges(highs, lows):
    return [
        _candle((h + l) / 2, h, l, (h + l) / 2, t=i)
        for i, (h, l) in enumerate(zip(highs, lows))
    ]


def test_pattern_requires_three_candles():
    result = detect_candle_pattern(_filler())
    assert result.pattern == "none"
    assert result.confidence == 0.0


def test_doji():
    result = detect_candle_pattern(_filler() + [_candle(100, 101, 99, 100.05, t=2)])
    assert result.pattern == "doji"
    assert result.signal == "neutral"


def test_hammer_and_shooting_star():
    hammer = detect_candle_pattern(_filler() + [_candle(100, 102.3, 95, 102, t=2)])
    assert hammer.pattern == "hammer"
    assert hammer.signal == "bullish"

    star = detect_candle_pattern(_filler() + [_candle(102, 107, 99.8, 100, t=2)])
    assert star.pattern == "shooting-star"
    assert star.signal == "bearish"


def test_engulfing_patterns():
    bullish = detect_candle_pattern(
        [_candle(100, 101, 99, 100.5), _candle(102, 102.2, 99.9, 100, t=1), _candle(99.5, 103.2, 99.4, 103, t=2)]
    )
    assert bullish.pattern == "bullish-engulfing"
    assert bullish.confidence == 85.0

    bearish = detect_candle_pattern(
        [_candle(100, 101, 99, 100.5), _candle(100, 102.1, 99.8, 102, t=1), _candle(102.5, 102.6, 98.8, 99, t=2)]
    )
    assert bearish.pattern == "bearish-engulfing"


def test_find_pivots_strict_local_extremes():
    values = [1, 2, 5, 2, 1, 0, 1, 3, 1, 0]
    assert find_pivots(values, highs=True) == [5, 3]
    assert find_pivots(values, highs=False) == [0]


def test_support_resistance_brackets_price(candles_factory):
    closes = [100 + (3 if i % 4 == 1 else -3 if i % 4 == 3 else 0) + i * 0.1 for i in range(40)]
    candles = candles_factory(closes)
    levels = support_resistance(candles)
    price = candles[-1].close
    assert levels.nearest_support < price < levels.nearest_resistance
    assert len(levels.support) <= 3
    assert len(levels.resistance) <= 3


def test_support_resistance_fallback_with_short_history(candles_factory):
    levels = support_resistance(candles_factory([100.0] * 5))
    assert abs(levels.nearest_support - 95.0) < 1e-9
    assert abs(levels.nearest_resistance - 105.0) < 1e-9


def test_fibonacci_levels_span_range(candles_factory):
    candles = candles_factory([100.0 + i for i in range(30)])
    fib = fibonacci_levels(candles)
    assert fib.levels[0].price == fib.low
    assert abs(fib.levels[-1].price - fib.high) < 1e-9
    assert len(fib.levels) == 7
    assert fibonacci_levels(candles[:5]).levels == []


HIGHS = [10, 11, 14, 12, 11, 12, 16, 13, 12, 13, 18, 14, 13, 14, 20, 15, 14, 15, 22, 16]
LOWS = [9, 9, 11, 9, 5, 9, 13, 10, 6, 10, 15, 11, 7, 11, 17, 12, 8, 12, 19, 13]


def test_market_structure_uptrend_and_downtrend():
    up = market_structure(_from_ranges(HIGHS, LOWS))
    assert up.trend == "uptrend"
    assert up.signal == "bullish"
    assert up.higher_highs == 3
    assert up.higher_lows == 3

    down = market_structure(_from_ranges([100 - l for l in LOWS], [100 - h for h in HIGHS]))
    assert down.trend == "downtrend"
    assert down.signal == "bearish"


def test_market_structure_short_history_is_ranging(candles_factory):
    result = market_structure(candles_factory([100.0] * 5))
    assert (result.trend, result.signal) == ("ranging", "neutral")


def test_rsi_divergence_needs_window():
    result = detect_rsi_divergence([100.0] * 5)
    assert not result.bullish and not result.bearish

    rising = detect_rsi_divergence([100.0 + i for i in range(30)])
    assert rising.price_trend > 0
    assert not rising.bearish
