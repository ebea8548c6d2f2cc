"""现货账本：成交校验、市价成交、平均成本持仓与组合估值。

约定：
- 成交记录 append-only，持仓可以随时从成交列表重放得到（rebuild_holdings）；
- 卖出按比例扣减 total_invested，不改变 average_buy_price；
- 剩余数量 <= dust_threshold 的持仓直接删除。
"""

from __future__ import annotations

import time
from collections import Counter
from dataclasses import replace
from typing import Callable, Iterable, Mapping

from shared.config.schema import SpotConfig
from shared.models.models import (
    Asset,
    Holding,
    Portfolio,
    PortfolioStats,
    Trade,
    TradeType,
    TradeValidationResult,
)
from shared.utils.ids import IdGenerator, uuid_ids
from shared.utils.logging import setup_logger


def now_ms() -> int:
    return int(time.time() * 1000)


def _pnl(current_value: float, invested: float) -> tuple[float, float]:
    pnl = current_value - invested
    pct = pnl / invested * 100 if invested else 0.0
    return pnl, pct


def holding_pnl(holding: Holding) -> tuple[float, float, bool]:
    """未实现盈亏：(pnl, pnl%, 是否盈利)。"""
    pnl, pct = _pnl(holding.current_value, holding.total_invested)
    return pnl, pct, pnl >= 0


def portfolio_value(balance: float, holdings: Iterable[Holding], timestamp: int | None = None) -> Portfolio:
    """组合估值。

    total_invested = Σ 投入，total_value = 现金 + Σ 市值，
    total_pnl = Σ 市值 − total_invested，百分比相对 total_invested（为 0 时取 0）。
    """
    holdings = list(holdings)
    invested = sum(h.total_invested for h in holdings)
    market_value = sum(h.current_value for h in holdings)
    pnl, pct = _pnl(market_value, invested)
    return Portfolio(
        balance=balance,
        holdings=holdings,
        total_invested=invested,
        total_value=balance + market_value,
        total_pnl=pnl,
        total_pnl_percentage=pct,
        last_updated=timestamp if timestamp is not None else now_ms(),
    )


def update_holding_prices(holdings: Iterable[Holding], price_map: Mapping[str, float]) -> list[Holding]:
    """按最新价格重算市值与盈亏；价格缺失或为 0 的持仓保持不变。"""
    out: list[Holding] = []
    for h in holdings:
        price = price_map.get(h.asset)
        if not price:
            out.append(h)
            continue
        value = h.quantity * price
        pnl, pct = _pnl(value, h.total_invested)
        out.append(replace(h, current_price=price, current_value=value, pnl=pnl, pnl_percentage=pct))
    return out


def apply_trade(holdings: list[Holding], trade: Trade, asset_name: str | None = None,
                dust_threshold: float = 1e-8) -> list[Holding]:
    """把一笔成交应用到持仓列表上，返回新列表（不修改入参）。"""
    holdings = list(holdings)
    index = next((i for i, h in enumerate(holdings) if h.asset == trade.asset), None)
    price = trade.price

    if trade.type == TradeType.BUY:
        if index is not None:
            existing = holdings[index]
            quantity = existing.quantity + trade.quantity
            invested = existing.total_invested + trade.net_total
            value = quantity * price
            pnl, pct = _pnl(value, invested)
            holdings[index] = replace(
                existing,
                quantity=quantity,
                average_buy_price=invested / quantity,
                total_invested=invested,
                current_price=price,
                current_value=value,
                pnl=pnl,
                pnl_percentage=pct,
            )
        else:
            holdings.append(
                Holding(
                    asset=trade.asset,
                    asset_symbol=trade.asset_symbol,
                    asset_name=asset_name or trade.asset_symbol.upper(),
                    quantity=trade.quantity,
                    average_buy_price=price,
                    total_invested=trade.net_total,
                    current_price=price,
                    current_value=trade.quantity * price,
                )
            )
        return holdings

    if index is None:
        return holdings

    existing = holdings[index]
    remaining = existing.quantity - trade.quantity
    if remaining <= dust_threshold:
        del holdings[index]
        return holdings

    invested = existing.total_invested - existing.total_invested * (trade.quantity / existing.quantity)
    value = remaining * price
    pnl, pct = _pnl(value, invested)
    holdings[index] = replace(
        existing,
        quantity=remaining,
        total_invested=invested,
        current_price=price,
        current_value=value,
        pnl=pnl,
        pnl_percentage=pct,
    )
    return holdings


def rebuild_holdings(trades: Iterable[Trade], asset_names: Mapping[str, str] | None = None,
                     dust_threshold: float = 1e-8) -> list[Holding]:
    """按时间顺序重放成交列表得到持仓（成交列表是唯一事实来源）。"""
    names = asset_names or {}
    holdings: list[Holding] = []
    for trade in sorted(trades, key=lambda t: t.timestamp):
        holdings = apply_trade(holdings, trade, names.get(trade.asset), dust_threshold)
    return holdings


def portfolio_stats(trades: Iterable[Trade], portfolio: Portfolio, initial_balance: float) -> PortfolioStats:
    trades = list(trades)
    total_return = portfolio.total_value - initial_balance
    return_pct = total_return / initial_balance * 100 if initial_balance else 0.0
    if not trades:
        return PortfolioStats(
            total_trades=0,
            buy_trades=0,
            sell_trades=0,
            total_fees_paid=0.0,
            most_traded_asset=None,
            average_trade_size=0.0,
            total_return=total_return,
            total_return_percentage=return_pct,
        )

    counts = Counter(t.asset_symbol for t in trades)
    return PortfolioStats(
        total_trades=len(trades),
        buy_trades=sum(1 for t in trades if t.type == TradeType.BUY),
        sell_trades=sum(1 for t in trades if t.type == TradeType.SELL),
        total_fees_paid=sum(t.fee for t in trades),
        most_traded_asset=counts.most_common(1)[0][0],
        average_trade_size=sum(t.total for t in trades) / len(trades),
        total_return=total_return,
        total_return_percentage=return_pct,
    )


class SpotLedger:
    """现货市价单账本。

    Parameters
    ----------
    config:
        手续费率（默认 0.1%）、大额提示比例、持仓清零阈值。
    id_generator:
        成交 ID 生成器（默认 uuid4）。
    clock:
        返回毫秒时间戳的可调用对象。
    """

    def __init__(
        self,
        config: SpotConfig | None = None,
        id_generator: IdGenerator = uuid_ids,
        clock: Callable[[], int] = now_ms,
    ):
        self.config = config or SpotConfig()
        self.id_generator = id_generator
        self.clock = clock
        self.logger = setup_logger("spot")

    def validate(
        self,
        trade_type: TradeType,
        asset: Asset,
        quantity: float,
        price: float,
        portfolio: Portfolio,
    ) -> TradeValidationResult:
        """成交前校验；失败以 valid=False 返回。"""
        if quantity <= 0:
            return self._reject("Quantity must be greater than 0")
        if price <= 0:
            return self._reject("Invalid price")

        if trade_type == TradeType.BUY:
            total_with_fee = quantity * price * (1 + self.config.fee_rate)
            if total_with_fee > portfolio.balance:
                return self._reject(
                    f"Insufficient balance. You need ${total_with_fee:.2f} "
                    f"but only have ${portfolio.balance:.2f}"
                )
            warnings = []
            if total_with_fee > portfolio.balance * self.config.large_trade_ratio:
                warnings.append(
                    f"This trade uses more than {self.config.large_trade_ratio:.0%} of your balance. "
                    "Consider diversifying."
                )
            return TradeValidationResult(valid=True, warnings=warnings)

        holding = portfolio.get_holding(asset.id)
        if holding is None:
            return self._reject(f"You have no {asset.symbol.upper()} in your portfolio to sell")
        if quantity > holding.quantity:
            return self._reject(
                f"Insufficient quantity. You hold {holding.quantity:.8f} {asset.symbol.upper()} "
                f"but tried to sell {quantity:.8f}"
            )
        return TradeValidationResult(valid=True)

    def _reject(self, error: str) -> TradeValidationResult:
        self.logger.info("Spot trade rejected: %s", error)
        return TradeValidationResult(valid=False, error=error)

    def execute(
        self,
        trade_type: TradeType,
        asset: Asset,
        quantity: float,
        portfolio: Portfolio,
    ) -> tuple[Trade, Portfolio]:
        """按当前价成交，返回 (成交记录, 新组合)。调用方应先通过 validate。"""
        price = asset.current_price
        total = quantity * price
        fee = total * self.config.fee_rate
        net_total = total + fee if trade_type == TradeType.BUY else total - fee
        timestamp = self.clock()

        trade = Trade(
            id=self.id_generator(),
            timestamp=timestamp,
            asset=asset.id,
            asset_symbol=asset.symbol,
            type=trade_type,
            quantity=quantity,
            price=price,
            total=total,
            fee=fee,
            net_total=net_total,
        )

        balance = portfolio.balance - net_total if trade_type == TradeType.BUY else portfolio.balance + net_total
        holdings = apply_trade(portfolio.holdings, trade, asset.name, self.config.dust_threshold)
        self.logger.info(
            "%s %.8f %s @ %.2f fee=%.2f", trade_type.value.upper(), quantity, asset.symbol, price, fee
        )
        return trade, portfolio_value(balance, holdings, timestamp)
