"""信号聚合：指标快照、投票规则表、分类与关键价位。"""

from signals.aggregator import SignalAggregator, classify, confidence, quality_score
from signals.fast import fast_signal
from signals.levels import key_levels, risk_reward
from signals.models import KeyLevels, Probabilities, Signal, SignalType, TrendAnalysis, VolatilityAnalysis
from signals.probabilities import normalize, scenario_probabilities
from signals.rules import Tally, register_rule, rule_names, run_rules
from signals.snapshot import IndicatorSnapshot, build_snapshot

__all__ = [
    "IndicatorSnapshot",
    "KeyLevels",
    "Probabilities",
    "Signal",
    "SignalAggregator",
    "SignalType",
    "Tally",
    "TrendAnalysis",
    "VolatilityAnalysis",
    "build_snapshot",
    "classify",
    "confidence",
    "fast_signal",
    "key_levels",
    "normalize",
    "quality_score",
    "register_rule",
    "risk_reward",
    "rule_names",
    "run_rules",
    "scenario_probabilities",
]
