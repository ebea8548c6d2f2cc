"""核心数据结构：Candle/Asset/Trade/Holding/Portfolio/FuturesPosition。

约定：
- 行情数据（Candle/Asset）在 market 边界处完成解析，核心层只接收这些强类型记录；
- 交易与持仓记录由 engine 层创建，其它模块只读取派生副本。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class TradeType(str, Enum):
    BUY = "buy"
    SELL = "sell"


class PositionSide(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"


class PositionStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    LIQUIDATED = "LIQUIDATED"


class CloseReason(str, Enum):
    USER = "USER"
    STOP_LOSS = "STOP_LOSS"
    TAKE_PROFIT = "TAKE_PROFIT"
    LIQUIDATION = "LIQUIDATION"


@dataclass(frozen=True)
class Candle:
    """K 线（OHLCV），time 为秒级时间戳，序列按时间升序排列。"""
    time: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    def is_valid(self) -> bool:
        return (
            self.high >= max(self.open, self.close)
            and self.low <= min(self.open, self.close)
            and self.volume >= 0
        )


@dataclass
class Asset:
    """行情快照（24h 统计）。"""
    id: str
    symbol: str
    name: str
    current_price: float
    price_change_percentage_24h: float = 0.0
    high_24h: float | None = None
    low_24h: float | None = None
    market_cap: float | None = None
    total_volume: float | None = None
    image: str | None = None


@dataclass(frozen=True)
class Trade:
    """现货成交记录（append-only）。"""
    id: str
    timestamp: int  # 毫秒
    asset: str
    asset_symbol: str
    type: TradeType
    quantity: float
    price: float
    total: float
    fee: float
    net_total: float


@dataclass
class Holding:
    """单一资产持仓（平均成本法）。"""
    asset: str
    asset_symbol: str
    asset_name: str
    quantity: float
    average_buy_price: float
    total_invested: float
    current_price: float
    current_value: float
    pnl: float = 0.0
    pnl_percentage: float = 0.0


@dataclass
class Portfolio:
    """现金 + 持仓组合。"""
    balance: float
    holdings: list[Holding] = field(default_factory=list)
    total_invested: float = 0.0
    total_value: float = 0.0
    total_pnl: float = 0.0
    total_pnl_percentage: float = 0.0
    last_updated: int = 0

    def get_holding(self, asset_id: str) -> Holding | None:
        for h in self.holdings:
            if h.asset == asset_id:
                return h
        return None


@dataclass(frozen=True)
class FuturesPosition:
    """杠杆合约持仓。

    只有 OPEN 状态会被 mark-to-market 替换出新副本；
    一旦进入 CLOSED/LIQUIDATED 即不再变化。
    """
    id: str
    timestamp: int
    asset: str
    asset_symbol: str
    asset_name: str
    side: PositionSide
    status: PositionStatus
    leverage: float
    margin: float
    entry_price: float
    quantity: float
    current_price: float
    liquidation_price: float
    open_fee: float
    stop_loss: float | None = None
    take_profit: float | None = None
    unrealized_pnl: float = 0.0
    unrealized_pnl_percentage: float = 0.0
    funding_fees: float = 0.0
    close_price: float | None = None
    close_timestamp: int | None = None
    close_reason: CloseReason | None = None
    close_fee: float | None = None
    realized_pnl: float | None = None

    @property
    def is_open(self) -> bool:
        return self.status == PositionStatus.OPEN


@dataclass
class TradeForm:
    """现货下单输入。"""
    asset: str
    type: TradeType
    quantity: float


@dataclass
class FuturesForm:
    """合约开仓输入。"""
    asset: str
    side: PositionSide
    margin: float
    leverage: float
    stop_loss: float | None = None
    take_profit: float | None = None


@dataclass
class TradeValidationResult:
    valid: bool
    error: str | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass
class FuturesValidationResult:
    valid: bool
    error: str | None = None
    warnings: list[str] = field(default_factory=list)
    liquidation_price: float | None = None
    max_loss: float | None = None


@dataclass
class PortfolioStats:
    """现货交易统计。"""
    total_trades: int
    buy_trades: int
    sell_trades: int
    total_fees_paid: float
    most_traded_asset: str | None
    average_trade_size: float
    total_return: float
    total_return_percentage: float


@dataclass
class FuturesPortfolio:
    """合约账户汇总。"""
    positions: list[FuturesPosition]
    total_margin_used: float
    total_unrealized_pnl: float
    total_realized_pnl: float
    total_fees_paid: float
    available_margin: float
    margin_utilization: float
