"""配置架构定义（Pydantic Schema）。

目标：
- 让配置成为“强类型 + 可演进”的边界协议；
- 启动阶段尽早失败，避免 typo/类型错误在信号或账本计算中“隐蔽爆炸”；
- 把信号聚合器里的权重与阈值集中到一张表里，业务代码只读这张表。

所有默认值与内置常量一致：配置文件缺少某个分块时行为不变。
"""

from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

SIGNAL_TYPES = (
    "extreme-sell",
    "strong-sell",
    "sell",
    "weak-sell",
    "neutral",
    "weak-buy",
    "buy",
    "strong-buy",
    "extreme-buy",
)

TRACKED_ASSETS = [
    "bitcoin",
    "ethereum",
    "tether",
    "binancecoin",
    "solana",
    "cardano",
    "ripple",
    "polkadot",
    "dogecoin",
    "avalanche-2",
    "polygon",
    "chainlink",
    "litecoin",
    "uniswap",
    "stellar",
]


class FeedConfig(BaseModel):
    """行情源配置（CoinGecko 快照 + Binance K 线）。"""
    coingecko_url: str = "https://api.coingecko.com/api/v3"
    klines_url: str = "https://api.binance.com/api/v3/klines"
    vs_currency: str = "usd"
    cache_ttl_seconds: float = 60.0
    timeout_seconds: float = 10.0
    tracked_assets: List[str] = Field(default_factory=lambda: list(TRACKED_ASSETS))
    model_config = ConfigDict(extra="forbid")

    @field_validator("cache_ttl_seconds", "timeout_seconds")
    @classmethod
    def _positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be > 0")
        return v


class SpotConfig(BaseModel):
    """现货账本参数。"""
    fee_rate: float = 0.001
    large_trade_ratio: float = 0.5
    dust_threshold: float = 1e-8
    model_config = ConfigDict(extra="forbid")


class FuturesConfig(BaseModel):
    """合约引擎参数。"""
    fee_rate: float = 0.0005
    maintenance_margin_rate: float = 0.01
    min_leverage: float = 1
    max_leverage: float = 100
    min_margin: float = 10.0
    # 杠杆提示档位：>= 阈值时给出对应提示（从高到低匹配）
    leverage_warnings: Dict[int, str] = Field(
        default_factory=lambda: {
            50: "Very high leverage (50x+): extreme liquidation risk.",
            20: "High leverage (20x+): very risky position.",
            10: "Moderate leverage: manage your risk carefully.",
        }
    )
    stop_loss_liquidation_distance: float = 0.05
    # 为 True 时平仓返还额至少为 0（逐仓亏损以保证金为限），默认按 margin + realized 原样返还
    floor_isolated_loss: bool = False
    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _check_bounds(self) -> "FuturesConfig":
        if self.min_leverage <= 0 or self.max_leverage < self.min_leverage:
            raise ValueError("futures leverage bounds are invalid")
        return self


class RuleConfig(BaseModel):
    """单条投票规则：强/弱两档权重 + 阈值表。"""
    strong: int = 2
    mild: int = 1
    enabled: bool = True
    bands: Dict[str, float] = Field(default_factory=dict)
    model_config = ConfigDict(extra="forbid")


def _default_rules() -> Dict[str, RuleConfig]:
    return {
        "rsi": RuleConfig(
            bands={"oversold": 30, "low": 40, "high": 60, "overbought": 70, "neutral_low": 45, "neutral_high": 55}
        ),
        "stochastic": RuleConfig(bands={"low": 30, "high": 70}),
        "cci": RuleConfig(),
        "williams_r": RuleConfig(),
        "roc": RuleConfig(),
        "mfi": RuleConfig(),
        "ema": RuleConfig(),
        "ema50": RuleConfig(strong=1, mild=1, bands={"min_candles": 50}),
        "macd": RuleConfig(),
        "parabolic_sar": RuleConfig(),
        "supertrend": RuleConfig(),
        "market_structure": RuleConfig(),
        "vwap": RuleConfig(strong=1, mild=1),
        "bollinger": RuleConfig(bands={"low": 0.2, "near_low": 0.3, "near_high": 0.7, "high": 0.8}),
        "volume": RuleConfig(bands={"high_ratio": 1.5, "low_ratio": 0.6, "move_pct": 0.3, "lookback": 9}),
        "obv": RuleConfig(),
        "momentum": RuleConfig(strong=1, mild=1, bands={"last_pct": 0.5, "five_pct": 1.0}),
        "divergence": RuleConfig(bands={"window": 10, "bull_rsi": 40, "bear_rsi": 60}),
        "candle_pattern": RuleConfig(bands={"confidence": 80}),
    }


class TierConfig(BaseModel):
    """分类档位：主方向票数下限、反方向票数上限、质量门槛。"""
    type: Literal[
        "extreme-sell", "strong-sell", "sell", "weak-sell",
        "weak-buy", "buy", "strong-buy", "extreme-buy",
    ]
    min_votes: int
    max_opposing: Optional[int] = None
    min_quality: float = 0.0
    quality_floor: Optional[float] = None
    model_config = ConfigDict(extra="forbid")


def _default_tiers() -> List[TierConfig]:
    return [
        TierConfig(type="extreme-buy", min_votes=12, min_quality=70),
        TierConfig(type="strong-buy", min_votes=8, max_opposing=3, min_quality=45),
        TierConfig(type="buy", min_votes=5, max_opposing=3, quality_floor=35),
        TierConfig(type="weak-buy", min_votes=3, max_opposing=2, quality_floor=25),
        TierConfig(type="extreme-sell", min_votes=12, min_quality=70),
        TierConfig(type="strong-sell", min_votes=8, max_opposing=3, min_quality=45),
        TierConfig(type="sell", min_votes=5, max_opposing=3, quality_floor=35),
        TierConfig(type="weak-sell", min_votes=3, max_opposing=2, quality_floor=25),
    ]


class FastTierConfig(BaseModel):
    """快速档：|score| >= min_score 时归入 level（extreme/strong/plain/weak）。"""
    min_score: float
    level: Literal["extreme", "strong", "plain", "weak"]
    quality: float
    model_config = ConfigDict(extra="forbid")


class FastProfileConfig(BaseModel):
    """24h 快照快速档参数。"""
    change_bands: List[List[float]] = Field(
        default_factory=lambda: [[8, 50], [5, 40], [3, 30], [1.5, 20], [0.5, 10], [0.1, 5]]
    )
    range_high_bonus: List[List[float]] = Field(
        default_factory=lambda: [[0.9, 15], [0.75, 10], [0.6, 5]]
    )
    range_low_penalty: List[List[float]] = Field(
        default_factory=lambda: [[0.1, -15], [0.25, -10], [0.4, -5]]
    )
    tiers: List[FastTierConfig] = Field(
        default_factory=lambda: [
            FastTierConfig(min_score=50, level="extreme", quality=40),
            FastTierConfig(min_score=35, level="strong", quality=35),
            FastTierConfig(min_score=20, level="plain", quality=30),
            FastTierConfig(min_score=5, level="weak", quality=25),
        ]
    )
    neutral_quality: float = 30.0
    quality_ceiling: float = 40.0
    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _check_ceiling(self) -> "FastProfileConfig":
        for tier in self.tiers:
            if tier.quality > self.quality_ceiling:
                raise ValueError("fast profile tier quality exceeds quality_ceiling")
        return self


def _default_probabilities() -> Dict[str, List[int]]:
    # bullish / bearish / reversal / consolidation
    strong_buy = [60, 10, 10, 20]
    buy = [45, 20, 15, 20]
    strong_sell = [10, 60, 10, 20]
    sell = [20, 45, 15, 20]
    return {
        "extreme-buy": strong_buy,
        "strong-buy": strong_buy,
        "buy": buy,
        "weak-buy": buy,
        "neutral": [25, 25, 20, 30],
        "weak-sell": sell,
        "sell": sell,
        "strong-sell": strong_sell,
        "extreme-sell": strong_sell,
    }


class SignalConfig(BaseModel):
    """信号聚合器配置表。"""
    min_candles: int = 20
    quality_per_vote: float = 6.0
    quality_per_warning: float = 5.0
    strength_per_vote: float = 4.0
    rules: Dict[str, RuleConfig] = Field(default_factory=_default_rules)
    tiers: List[TierConfig] = Field(default_factory=_default_tiers)
    fast: FastProfileConfig = Field(default_factory=FastProfileConfig)
    probabilities: Dict[str, List[int]] = Field(default_factory=_default_probabilities)
    adx_strong: float = 40.0
    adx_weak: float = 20.0
    model_config = ConfigDict(extra="forbid")

    @field_validator("rules", mode="before")
    @classmethod
    def _merge_rules(cls, v):
        # 允许 YAML 只覆盖部分规则，其余沿用默认表
        if not isinstance(v, dict):
            return v
        merged = {k: r.model_dump() for k, r in _default_rules().items()}
        for name, override in v.items():
            base = merged.get(name, {})
            if isinstance(override, dict):
                bands = {**base.get("bands", {}), **(override.get("bands") or {})}
                merged[name] = {**base, **override, "bands": bands}
            else:
                merged[name] = override
        return merged

    @field_validator("probabilities")
    @classmethod
    def _check_probabilities(cls, v: Dict[str, List[int]]) -> Dict[str, List[int]]:
        missing = [t for t in SIGNAL_TYPES if t not in v]
        if missing:
            raise ValueError(f"probability table missing types: {', '.join(missing)}")
        for name, row in v.items():
            if len(row) != 4:
                raise ValueError(f"probability row {name} must have 4 entries")
        return v

    def rule(self, name: str) -> RuleConfig:
        return self.rules.get(name) or RuleConfig(enabled=False)


class JournalConfig(BaseModel):
    """本地 SQLite 账本配置。"""
    enabled: bool = True
    path: str = "dataset/state/simulator.sqlite3"
    model_config = ConfigDict(extra="forbid")


class SimulatorConfig(BaseModel):
    """应用总配置。"""
    initial_balance: float = 10_000.0
    feed: FeedConfig = Field(default_factory=FeedConfig)
    spot: SpotConfig = Field(default_factory=SpotConfig)
    futures: FuturesConfig = Field(default_factory=FuturesConfig)
    signals: SignalConfig = Field(default_factory=SignalConfig)
    journal: JournalConfig = Field(default_factory=JournalConfig)

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    @field_validator("initial_balance")
    @classmethod
    def _non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("initial_balance must be >= 0")
        return v

