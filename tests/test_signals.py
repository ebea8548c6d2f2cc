import pytest

from indicators.trend import ADXReading
from shared.config.schema import SignalConfig
from shared.models.models import Asset
from signals import (
    SignalAggregator,
    SignalType,
    Tally,
    build_snapshot,
    classify,
    confidence,
    fast_signal,
    key_levels,
    normalize,
    quality_score,
    risk_reward,
    rule_names,
    run_rules,
    scenario_probabilities,
)
from signals import rules as rules_module
from signals.rules import get_rule


def _asset(price, change, low, high):
    return Asset(
        id="bitcoin", symbol="btc", name="Bitcoin",
        current_price=price, price_change_percentage_24h=change, low_24h=low, high_24h=high,
    )


# ---------- 分类档位 ----------

@pytest.mark.parametrize(
    "bull,bear,quality,expected,expected_quality",
    [
        (12, 0, 72, SignalType.EXTREME_BUY, 72),
        (8, 2, 50, SignalType.STRONG_BUY, 50),
        (5, 1, 10, SignalType.BUY, 35),
        (3, 0, 0, SignalType.WEAK_BUY, 25),
        (0, 12, 70, SignalType.EXTREME_SELL, 70),
        (1, 5, 40, SignalType.SELL, 40),
        (3, 3, 60, SignalType.NEUTRAL, 35),
    ],
)
def test_classify_tiers(bull, bear, quality, expected, expected_quality):
    signal_type, adjusted = classify(Tally(bullish=bull, bearish=bear), quality, SignalConfig())
    assert signal_type is expected
    assert adjusted == expected_quality


def test_extreme_requires_quality_threshold():
    # 12 票但质量不够 -> 降到 strong（反方向票数 0 <= 3）
    signal_type, _ = classify(Tally(bullish=12), 50, SignalConfig())
    assert signal_type is SignalType.STRONG_BUY


def test_quality_and_confidence():
    cfg = SignalConfig()
    assert quality_score(Tally(bullish=5, warnings=["x"]), cfg) == 25
    assert quality_score(Tally(bullish=20), cfg) == 100
    assert quality_score(Tally(warnings=["a", "b"]), cfg) == 0
    assert confidence(Tally(bullish=6, bearish=2)) == 50
    assert confidence(Tally()) == 0


def test_signal_type_helpers():
    assert SignalType.from_level("plain", True) is SignalType.BUY
    assert SignalType.from_level("extreme", False) is SignalType.EXTREME_SELL
    assert SignalType.EXTREME_BUY.rank == 4
    assert SignalType.NEUTRAL.rank == 0
    assert SignalType.WEAK_SELL.is_bearish


# ---------- 情景概率 ----------

@pytest.mark.parametrize(
    "values",
    [(45, 20, 15, 20), (1, 1, 1, 0), (2, 2, 2, 1), (0.5, 0.5, 0.5, 0.5), (60, 10, 10, 20), (-5, 10, 10, 0)],
)
def test_normalize_sums_to_100(values):
    p = normalize(*values)
    assert p.total == 100
    assert min(p.bullish, p.bearish, p.reversal, p.consolidation) >= 0


def test_normalize_edge_cases():
    assert normalize(0, 0, 0, 0).consolidation == 100
    clamped = normalize(-5, 10, 10, 0)
    assert (clamped.bullish, clamped.bearish, clamped.reversal) == (0, 50, 50)


def test_normalize_rounds_halves_up():
    p = normalize(12.5, 12.5, 25, 50)
    assert (p.bullish, p.bearish, p.reversal, p.consolidation) == (13, 13, 25, 49)
    p = normalize(1, 0, 0, 7)
    assert (p.bullish, p.consolidation) == (13, 87)


def test_scenario_probabilities_adx_adjustments():
    strong = ADXReading(adx=50, di_plus=30, di_minus=10, trend="strong-up")
    p = scenario_probabilities(SignalType.BUY, strong)
    assert (p.bullish, p.bearish, p.reversal, p.consolidation) == (55, 15, 15, 15)

    weak = ADXReading(adx=10, di_plus=0, di_minus=0, trend="ranging")
    p = scenario_probabilities(SignalType.NEUTRAL, weak)
    assert (p.bullish, p.bearish, p.reversal, p.consolidation) == (18, 17, 20, 45)

    base = scenario_probabilities(SignalType.STRONG_SELL)
    assert base.most_likely == "bearish"


# ---------- 关键价位 ----------

def test_key_levels_bullish():
    levels = key_levels(SignalType.BUY, price=100, atr=2, support=98, resistance=110)
    assert levels.entry == pytest.approx(98.98)
    assert levels.stop_loss == pytest.approx(96.04)
    assert levels.take_profit1 == pytest.approx(102.98)
    assert levels.take_profit3 == pytest.approx(108.9)
    assert levels.risk_reward_ratio == pytest.approx(4 / 2.94)


def test_key_levels_bearish_and_neutral():
    short = key_levels(SignalType.SELL, price=100, atr=2, support=98, resistance=110)
    assert short.entry == pytest.approx(108.9)
    assert short.stop_loss == pytest.approx(112.2)
    assert short.take_profit3 == pytest.approx(98.98)

    flat = key_levels(SignalType.NEUTRAL, price=100, atr=2, support=98, resistance=110)
    assert flat.entry == 100
    assert flat.stop_loss == pytest.approx(97)
    assert flat.take_profit2 == pytest.approx(113.3)
    assert risk_reward(100, 100, 110) == 0


# ---------- 规则注册表 ----------

def test_rule_registry_order_and_lookup():
    names = rule_names()
    assert names[0] == "rsi"
    assert names[-1] == "candle_pattern"
    assert len(names) == 19
    with pytest.raises(ValueError):
        get_rule("does-not-exist")


def test_custom_rule_runs_when_configured(monkeypatch, candles_factory):
    def always_bull(snapshot, cfg, tally):
        tally.bull(cfg.strong, "custom vote")

    monkeypatch.setitem(rules_module._REGISTRY, "custom", always_bull)
    cfg = SignalConfig(rules={"custom": {"strong": 3}})
    snapshot = build_snapshot(candles_factory([100.0 + i * 0.1 for i in range(40)]), cfg)
    tally = run_rules(snapshot, cfg)
    assert "custom vote" in tally.confirmations

    # 未出现在配置表里的规则视为禁用
    tally = run_rules(snapshot, SignalConfig())
    assert "custom vote" not in tally.confirmations


def test_disabled_rule_does_not_vote(candles_factory):
    falling = candles_factory([200.0 - i for i in range(40)])
    cfg = SignalConfig(rules={"rsi": {"enabled": False}})
    tally = run_rules(build_snapshot(falling, cfg), cfg)
    assert not any(msg.startswith("RSI") for msg in tally.confirmations)

    tally = run_rules(build_snapshot(falling), SignalConfig())
    assert any(msg.startswith("RSI") for msg in tally.confirmations)


def test_partial_rule_override_keeps_default_bands():
    cfg = SignalConfig(rules={"rsi": {"bands": {"oversold": 25}}})
    bands = cfg.rule("rsi").bands
    assert bands["oversold"] == 25
    assert bands["overbought"] == 70
    assert not cfg.rule("missing").enabled


# ---------- 快速档 ----------

def test_fast_profile_extreme_buy_capped_quality():
    signal = fast_signal(_asset(110, 10, 100, 110))
    assert signal.type is SignalType.EXTREME_BUY
    assert signal.profile == "fast"
    assert signal.quality_score <= 40
    assert signal.confidence == 65
    assert signal.key_levels.entry == 110
    assert "Basic signal without technical indicators" in signal.warnings


def test_fast_profile_extreme_sell_and_neutral():
    sell = fast_signal(_asset(100, -10, 100, 110))
    assert sell.type is SignalType.EXTREME_SELL
    assert sell.bearish_score == 65

    flat = fast_signal(_asset(105, 0, 100, 110))
    assert flat.type is SignalType.NEUTRAL
    assert flat.quality_score == 30
    assert flat.confirmations == ("Only 24h price data available",)
    assert flat.probabilities.total == 100


def test_fast_profile_fallback_range():
    signal = fast_signal(Asset(id="x", symbol="x", name="X", current_price=100.0))
    assert signal.key_levels.nearest_support == pytest.approx(95)
    assert signal.key_levels.nearest_resistance == pytest.approx(105)


# ---------- 聚合器 ----------

def test_insufficient_data_is_neutral(candles_factory):
    signal = SignalAggregator().evaluate(candles_factory([100.0] * 10))
    assert signal.type is SignalType.NEUTRAL
    assert signal.confidence == 0
    assert signal.profile == "none"
    assert "insufficient data" in signal.message.lower()
    assert signal.probabilities.total == 100


def test_evaluate_falls_back_to_fast_profile(candles_factory, btc):
    signal = SignalAggregator().evaluate(candles_factory([100.0] * 10), btc)
    assert signal.profile == "fast"


@pytest.mark.parametrize("trend", [1.0, -1.0, 0.0])
def test_full_profile_invariants(candles_factory, trend):
    closes = [1000.0 + trend * i * 5 + (i % 3) for i in range(120)]
    signal = SignalAggregator().evaluate(candles_factory(closes, spread=2.0))
    assert signal.profile == "full"
    assert 0 <= signal.quality_score <= 100
    assert 0 <= signal.confidence <= 100
    assert 0 <= signal.strength <= 100
    assert signal.probabilities.total == 100
    assert signal.trend is not None
    assert signal.volatility is not None
    if signal.type is SignalType.NEUTRAL:
        assert "Insufficient confirmations" in signal.warnings
        assert signal.strength == 50


def test_full_profile_is_deterministic(candles_factory):
    candles = candles_factory([100.0 + (i % 7) - (i % 5) for i in range(80)])
    agg = SignalAggregator()
    assert agg.evaluate(candles) == agg.evaluate(candles)
