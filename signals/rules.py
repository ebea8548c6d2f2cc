"""投票规则注册表：规则名 -> 规则函数。

每条规则读取 IndicatorSnapshot，按配置表里的强/弱权重向多空计数器投票，
并附带一条可读的确认或警告文本。规则按注册顺序执行，确认列表的顺序即执行顺序。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from shared.config.schema import RuleConfig, SignalConfig
from signals.snapshot import IndicatorSnapshot


@dataclass
class Tally:
    """多空计数器 + 确认/警告文本。"""
    bullish: int = 0
    bearish: int = 0
    confirmations: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def bull(self, weight: int, message: str) -> None:
        self.bullish += weight
        self.confirmations.append(message)

    def bear(self, weight: int, message: str) -> None:
        self.bearish += weight
        self.confirmations.append(message)

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    @property
    def net(self) -> int:
        return self.bullish - self.bearish


RuleFn = Callable[[IndicatorSnapshot, RuleConfig, Tally], None]

_REGISTRY: dict[str, RuleFn] = {}


def register_rule(name: str, fn: RuleFn) -> None:
    _REGISTRY[name] = fn


def get_rule(name: str) -> RuleFn:
    if name not in _REGISTRY:
        raise ValueError(f"Unknown signal rule: {name}")
    return _REGISTRY[name]


def rule_names() -> list[str]:
    return list(_REGISTRY)


def _rsi(s: IndicatorSnapshot, cfg: RuleConfig, t: Tally) -> None:
    b = cfg.bands
    if s.rsi < b["oversold"]:
        t.bull(cfg.strong, f"RSI: {s.rsi:.1f} (strongly oversold)")
    elif s.rsi < b["low"]:
        t.bull(cfg.mild, f"RSI: {s.rsi:.1f} (oversold)")
    elif s.rsi > b["overbought"]:
        t.bear(cfg.strong, f"RSI: {s.rsi:.1f} (strongly overbought)")
    elif s.rsi > b["high"]:
        t.bear(cfg.mild, f"RSI: {s.rsi:.1f} (overbought)")


def _stochastic(s: IndicatorSnapshot, cfg: RuleConfig, t: Tally) -> None:
    st = s.stochastic
    if st.signal == "oversold":
        t.bull(cfg.strong, f"Stoch: {st.k:.0f} (oversold)")
    elif st.k < cfg.bands["low"]:
        t.bull(cfg.mild, f"Stoch: {st.k:.0f} (low)")
    elif st.signal == "overbought":
        t.bear(cfg.strong, f"Stoch: {st.k:.0f} (overbought)")
    elif st.k > cfg.bands["high"]:
        t.bear(cfg.mild, f"Stoch: {st.k:.0f} (high)")


def _cci(s: IndicatorSnapshot, cfg: RuleConfig, t: Tally) -> None:
    c = s.cci
    if c.signal == "oversold":
        t.bull(cfg.strong, f"CCI: {c.cci:.0f} (oversold < -100)")
    elif c.signal == "bullish":
        t.bull(cfg.mild, f"CCI: {c.cci:.0f} (bullish)")
    elif c.signal == "overbought":
        t.bear(cfg.strong, f"CCI: {c.cci:.0f} (overbought > 100)")
    elif c.signal == "bearish":
        t.bear(cfg.mild, f"CCI: {c.cci:.0f} (bearish)")


def _williams_r(s: IndicatorSnapshot, cfg: RuleConfig, t: Tally) -> None:
    w = s.williams_r
    if w.signal == "oversold":
        t.bull(cfg.strong, f"%R: {w.williams_r:.0f} (oversold)")
    elif w.signal == "overbought":
        t.bear(cfg.strong, f"%R: {w.williams_r:.0f} (overbought)")


def _roc(s: IndicatorSnapshot, cfg: RuleConfig, t: Tally) -> None:
    r = s.roc
    if r.signal == "strong-bullish":
        t.bull(cfg.strong, f"ROC: +{r.roc:.1f}% (strong momentum)")
    elif r.signal == "bullish":
        t.bull(cfg.mild, f"ROC: +{r.roc:.1f}% (positive)")
    elif r.signal == "strong-bearish":
        t.bear(cfg.strong, f"ROC: {r.roc:.1f}% (strong negative momentum)")
    elif r.signal == "bearish":
        t.bear(cfg.mild, f"ROC: {r.roc:.1f}% (negative)")


def _mfi(s: IndicatorSnapshot, cfg: RuleConfig, t: Tally) -> None:
    m = s.mfi
    if m.signal == "oversold":
        t.bull(cfg.strong, f"MFI: {m.mfi:.0f} (oversold with volume)")
    elif m.signal == "overbought":
        t.bear(cfg.strong, f"MFI: {m.mfi:.0f} (overbought with volume)")


def ema_alignment(s: IndicatorSnapshot) -> str:
    """P > EMA9 > EMA21 为 bullish，P < EMA9 < EMA21 为 bearish，否则 mixed。"""
    if s.price > s.ema9 > s.ema21:
        return "bullish"
    if s.price < s.ema9 < s.ema21:
        return "bearish"
    return "mixed"


def _ema(s: IndicatorSnapshot, cfg: RuleConfig, t: Tally) -> None:
    alignment = ema_alignment(s)
    if alignment == "bullish":
        t.bull(cfg.strong, "EMA: bullish trend (P>9>21)")
    elif alignment == "bearish":
        t.bear(cfg.strong, "EMA: bearish trend (P<9<21)")
    elif s.price > s.ema9:
        t.bull(cfg.mild, "EMA: price above EMA9")
    elif s.price < s.ema9:
        t.bear(cfg.mild, "EMA: price below EMA9")


def _ema50(s: IndicatorSnapshot, cfg: RuleConfig, t: Tally) -> None:
    if s.ema50 is None:
        return
    if s.price > s.ema50 and s.ema9 > s.ema50:
        t.bull(cfg.strong, "EMA50: long-term uptrend")
    elif s.price < s.ema50 and s.ema9 < s.ema50:
        t.bear(cfg.strong, "EMA50: long-term downtrend")


def _macd(s: IndicatorSnapshot, cfg: RuleConfig, t: Tally) -> None:
    m = s.macd
    if m.histogram > 0 and m.macd > m.signal:
        t.bull(cfg.strong, f"MACD: bullish momentum ({m.histogram:.2f})")
    elif m.histogram < 0 and m.macd < m.signal:
        t.bear(cfg.strong, f"MACD: bearish momentum ({m.histogram:.2f})")
    elif m.histogram > 0:
        t.bull(cfg.mild, "MACD: histogram +")
    elif m.histogram < 0:
        t.bear(cfg.mild, "MACD: histogram -")


def _stop_and_reverse(label: str):
    def _rule(s: IndicatorSnapshot, cfg: RuleConfig, t: Tally) -> None:
        reading = s.parabolic_sar if label == "SAR" else s.supertrend
        if reading.signal == "buy":
            t.bull(cfg.strong, f"{label}: BUY signal (reversal)")
        elif reading.trend == "bullish":
            t.bull(cfg.mild, f"{label}: bullish")
        elif reading.signal == "sell":
            t.bear(cfg.strong, f"{label}: SELL signal (reversal)")
        elif reading.trend == "bearish":
            t.bear(cfg.mild, f"{label}: bearish")

    return _rule


def _market_structure(s: IndicatorSnapshot, cfg: RuleConfig, t: Tally) -> None:
    ms = s.structure
    if ms.trend == "uptrend":
        t.bull(cfg.strong, f"Structure: uptrend ({ms.higher_highs} HH)")
    elif ms.trend == "downtrend":
        t.bear(cfg.strong, f"Structure: downtrend ({ms.lower_lows} LL)")
    elif ms.signal == "bullish":
        t.bull(cfg.mild, "Structure: bullish")
    elif ms.signal == "bearish":
        t.bear(cfg.mild, "Structure: bearish")


def _vwap(s: IndicatorSnapshot, cfg: RuleConfig, t: Tally) -> None:
    if s.vwap.signal == "bullish":
        t.bull(cfg.strong, "VWAP: price > VWAP (bullish)")
    elif s.vwap.signal == "bearish":
        t.bear(cfg.strong, "VWAP: price < VWAP (bearish)")


def _bollinger(s: IndicatorSnapshot, cfg: RuleConfig, t: Tally) -> None:
    b = cfg.bands
    pb = s.bollinger.percent_b
    if pb < b["low"]:
        t.bull(cfg.strong, f"BB: lower band ({pb * 100:.0f}%)")
    elif pb < b["near_low"]:
        t.bull(cfg.mild, "BB: near lower band")
    elif pb > b["high"]:
        t.bear(cfg.strong, f"BB: upper band ({pb * 100:.0f}%)")
    elif pb > b["near_high"]:
        t.bear(cfg.mild, "BB: near upper band")


def _volume(s: IndicatorSnapshot, cfg: RuleConfig, t: Tally) -> None:
    b = cfg.bands
    ratio = s.volume_ratio
    if ratio > b["high_ratio"]:
        if s.change_last_pct > b["move_pct"]:
            t.bull(cfg.strong, f"Vol: high ({ratio * 100:.0f}%) + rising")
        elif s.change_last_pct < -b["move_pct"]:
            t.bear(cfg.strong, f"Vol: high ({ratio * 100:.0f}%) + falling")
    elif ratio < b["low_ratio"]:
        t.warn("Low volume")


def _obv(s: IndicatorSnapshot, cfg: RuleConfig, t: Tally) -> None:
    if s.obv.trend == "accumulation":
        t.bull(cfg.strong, "OBV: accumulation")
    elif s.obv.trend == "distribution":
        t.bear(cfg.strong, "OBV: distribution")


def _momentum(s: IndicatorSnapshot, cfg: RuleConfig, t: Tally) -> None:
    b = cfg.bands
    if s.change_last_pct > b["last_pct"] and s.change_5_pct > b["five_pct"]:
        t.bull(cfg.strong, f"Momentum: +{s.change_5_pct:.1f}%")
    elif s.change_last_pct < -b["last_pct"] and s.change_5_pct < -b["five_pct"]:
        t.bear(cfg.strong, f"Momentum: {s.change_5_pct:.1f}%")


def _divergence(s: IndicatorSnapshot, cfg: RuleConfig, t: Tally) -> None:
    if s.divergence.bullish:
        t.bull(cfg.strong, "BULLISH RSI DIVERGENCE")
    if s.divergence.bearish:
        t.bear(cfg.strong, "BEARISH RSI DIVERGENCE")


def _candle_pattern(s: IndicatorSnapshot, cfg: RuleConfig, t: Tally) -> None:
    p = s.pattern
    if p.pattern == "none":
        return
    weight = cfg.strong if p.confidence >= cfg.bands["confidence"] else cfg.mild
    if p.signal == "bullish":
        t.bull(weight, f"Pattern: {p.pattern}")
    elif p.signal == "bearish":
        t.bear(weight, f"Pattern: {p.pattern}")


def apply_quality_filters(s: IndicatorSnapshot, config: SignalConfig, t: Tally) -> None:
    """投票结束后的质量过滤：逆势与 RSI 中性区。"""
    alignment = ema_alignment(s)
    if s.ema50 is not None:
        if t.bullish > t.bearish and alignment == "bearish" and s.price < s.ema50:
            t.warn("Counter-trend signal")
        elif t.bearish > t.bullish and alignment == "bullish" and s.price > s.ema50:
            t.warn("Counter-trend signal")

    bands = config.rule("rsi").bands
    if bands.get("neutral_low", 45) < s.rsi < bands.get("neutral_high", 55):
        t.warn("RSI neutral")


def run_rules(snapshot: IndicatorSnapshot, config: SignalConfig) -> Tally:
    """按注册顺序执行所有启用的规则，再做质量过滤。"""
    tally = Tally()
    for name, fn in _REGISTRY.items():
        cfg = config.rule(name)
        if not cfg.enabled:
            continue
        fn(snapshot, cfg, tally)
    apply_quality_filters(snapshot, config, tally)
    return tally


# 默认注册（顺序即投票顺序）
register_rule("rsi", _rsi)
register_rule("stochastic", _stochastic)
register_rule("cci", _cci)
register_rule("williams_r", _williams_r)
register_rule("roc", _roc)
register_rule("mfi", _mfi)
register_rule("ema", _ema)
register_rule("ema50", _ema50)
register_rule("macd", _macd)
register_rule("parabolic_sar", _stop_and_reverse("SAR"))
register_rule("supertrend", _stop_and_reverse("Supertrend"))
register_rule("market_structure", _market_structure)
register_rule("vwap", _vwap)
register_rule("bollinger", _bollinger)
register_rule("volume", _volume)
register_rule("obv", _obv)
register_rule("momentum", _momentum)
register_rule("divergence", _divergence)
register_rule("candle_pattern", _candle_pattern)
