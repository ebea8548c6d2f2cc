"""杠杆合约引擎：开仓校验、强平价、盯市、触发判断与平仓结算。

状态机：OPEN -> {CLOSED | LIQUIDATED}（终态）。
每次更新都返回新的 FuturesPosition 副本，引擎本身不保存仓位列表；
保证金的扣除与返还由调用方（TradingSimulator）负责。
"""

from __future__ import annotations

import time
from dataclasses import replace
from typing import Callable, Iterable, Mapping

from shared.config.schema import FuturesConfig
from shared.models.models import (
    Asset,
    CloseReason,
    FuturesForm,
    FuturesPortfolio,
    FuturesPosition,
    FuturesValidationResult,
    PositionSide,
    PositionStatus,
)
from shared.utils.ids import IdGenerator, uuid_ids
from shared.utils.logging import setup_logger


def now_ms() -> int:
    return int(time.time() * 1000)


def liquidation_price(
    side: PositionSide,
    entry_price: float,
    leverage: float,
    maintenance_margin_rate: float = 0.01,
) -> float:
    """强平价。

    LONG:  entry · (1 − 1/leverage + mmr)
    SHORT: entry · (1 + 1/leverage − mmr)

    例：50000 入场、10x 做多 -> 50000 · (1 − 0.1 + 0.01) = 45500。
    """
    if leverage <= 0:
        raise ValueError("leverage must be > 0")
    if side == PositionSide.LONG:
        return entry_price * (1 - 1 / leverage + maintenance_margin_rate)
    return entry_price * (1 + 1 / leverage - maintenance_margin_rate)


def unrealized_pnl(position: FuturesPosition, current_price: float) -> tuple[float, float]:
    """(pnl, pnl 占保证金百分比)。LONG 随价格上涨递增，SHORT 递减。"""
    if position.side == PositionSide.LONG:
        pnl = (current_price - position.entry_price) * position.quantity
    else:
        pnl = (position.entry_price - current_price) * position.quantity
    pct = pnl / position.margin * 100 if position.margin else 0.0
    return pnl, pct


def should_liquidate(position: FuturesPosition) -> bool:
    if position.side == PositionSide.LONG:
        return position.current_price <= position.liquidation_price
    return position.current_price >= position.liquidation_price


def should_trigger_stop_loss(position: FuturesPosition) -> bool:
    if not position.stop_loss:
        return False
    if position.side == PositionSide.LONG:
        return position.current_price <= position.stop_loss
    return position.current_price >= position.stop_loss


def should_trigger_take_profit(position: FuturesPosition) -> bool:
    if not position.take_profit:
        return False
    if position.side == PositionSide.LONG:
        return position.current_price >= position.take_profit
    return position.current_price <= position.take_profit


def evaluate_triggers(position: FuturesPosition) -> CloseReason | None:
    """单个 tick 最多触发一个原因，优先级：强平 > 止损 > 止盈。"""
    if not position.is_open:
        return None
    if should_liquidate(position):
        return CloseReason.LIQUIDATION
    if should_trigger_stop_loss(position):
        return CloseReason.STOP_LOSS
    if should_trigger_take_profit(position):
        return CloseReason.TAKE_PROFIT
    return None


class FuturesEngine:
    """合约仓位生命周期。

    Parameters
    ----------
    config:
        手续费率、维持保证金率、杠杆范围、最小保证金等。
    id_generator:
        仓位 ID 生成器（默认 uuid4）。
    clock:
        返回毫秒时间戳的可调用对象，测试可注入固定时间。
    """

    def __init__(
        self,
        config: FuturesConfig | None = None,
        id_generator: IdGenerator = uuid_ids,
        clock: Callable[[], int] = now_ms,
    ):
        self.config = config or FuturesConfig()
        self.id_generator = id_generator
        self.clock = clock
        self.logger = setup_logger("futures")

    def liquidation_price(self, side: PositionSide, entry_price: float, leverage: float) -> float:
        return liquidation_price(side, entry_price, leverage, self.config.maintenance_margin_rate)

    def _leverage_warning(self, leverage: float) -> str | None:
        for threshold in sorted(self.config.leverage_warnings, reverse=True):
            if leverage >= threshold:
                return self.config.leverage_warnings[threshold]
        return None

    def validate(self, form: FuturesForm, asset: Asset, available_balance: float) -> FuturesValidationResult:
        """开仓前校验；所有用户可见的失败都以 valid=False 返回，不抛异常。"""
        cfg = self.config
        price = asset.current_price
        warnings: list[str] = []

        if form.margin < cfg.min_margin:
            return self._reject(f"Minimum margin is ${cfg.min_margin:g}")
        if form.margin > available_balance:
            return self._reject(f"Insufficient balance. Available: ${available_balance:.2f}")
        if form.leverage < cfg.min_leverage or form.leverage > cfg.max_leverage:
            return self._reject(
                f"Leverage must be between {cfg.min_leverage:g}x and {cfg.max_leverage:g}x"
            )
        if price <= 0:
            return self._reject("Asset price must be greater than 0")

        liq = self.liquidation_price(form.side, price, form.leverage)

        note = self._leverage_warning(form.leverage)
        if note:
            warnings.append(note)

        if form.stop_loss is not None:
            if form.side == PositionSide.LONG:
                if form.stop_loss >= price:
                    return self._reject("Stop loss must be BELOW the entry price for LONG positions")
                if form.stop_loss <= liq:
                    return self._reject("Stop loss must be ABOVE the liquidation price for LONG positions")
            elif form.stop_loss <= price:
                return self._reject("Stop loss must be ABOVE the entry price for SHORT positions")

            if abs(form.stop_loss - liq) / price < cfg.stop_loss_liquidation_distance:
                warnings.append("Stop loss is very close to the liquidation price.")
        else:
            warnings.append("Consider adding a stop loss to limit losses.")

        if form.take_profit is not None:
            if form.side == PositionSide.LONG and form.take_profit <= price:
                return self._reject("Take profit must be ABOVE the entry price for LONG positions")
            if form.side == PositionSide.SHORT and form.take_profit >= price:
                return self._reject("Take profit must be BELOW the entry price for SHORT positions")

        return FuturesValidationResult(
            valid=True,
            warnings=warnings,
            liquidation_price=liq,
            # 被强平时损失全部保证金
            max_loss=form.margin,
        )

    def _reject(self, error: str) -> FuturesValidationResult:
        self.logger.info("Futures order rejected: %s", error)
        return FuturesValidationResult(valid=False, error=error)

    def open(self, form: FuturesForm, asset: Asset) -> FuturesPosition:
        """按当前价开仓（调用方应先通过 validate）。"""
        price = asset.current_price
        notional = form.margin * form.leverage
        position = FuturesPosition(
            id=self.id_generator(),
            timestamp=self.clock(),
            asset=asset.id,
            asset_symbol=asset.symbol,
            asset_name=asset.name,
            side=form.side,
            status=PositionStatus.OPEN,
            leverage=form.leverage,
            margin=form.margin,
            entry_price=price,
            quantity=notional / price,
            current_price=price,
            liquidation_price=self.liquidation_price(form.side, price, form.leverage),
            open_fee=notional * self.config.fee_rate,
            stop_loss=form.stop_loss,
            take_profit=form.take_profit,
        )
        self.logger.info(
            "Opened %s %s %.0fx margin=%.2f entry=%.2f liq=%.2f",
            position.side.value, position.asset_symbol, position.leverage,
            position.margin, position.entry_price, position.liquidation_price,
        )
        return position

    def mark_to_market(self, position: FuturesPosition, current_price: float) -> FuturesPosition:
        if not position.is_open:
            return position
        pnl, pct = unrealized_pnl(position, current_price)
        return replace(
            position,
            current_price=current_price,
            unrealized_pnl=pnl,
            unrealized_pnl_percentage=pct,
        )

    def close(self, position: FuturesPosition, close_price: float, reason: CloseReason) -> FuturesPosition:
        """平仓结算。

        realized = pnl − open_fee − close_fee − funding_fees；强平不收平仓费。
        返还 margin + realized 由调用方完成。
        """
        if not position.is_open:
            raise ValueError(f"Position {position.id} is not open")

        pnl, pct = unrealized_pnl(position, close_price)
        if reason == CloseReason.LIQUIDATION:
            close_fee = 0.0
        else:
            close_fee = position.margin * position.leverage * self.config.fee_rate
        realized = pnl - position.open_fee - close_fee - position.funding_fees
        status = PositionStatus.LIQUIDATED if reason == CloseReason.LIQUIDATION else PositionStatus.CLOSED

        closed = replace(
            position,
            status=status,
            current_price=close_price,
            close_price=close_price,
            close_timestamp=self.clock(),
            close_reason=reason,
            close_fee=close_fee,
            unrealized_pnl=pnl,
            unrealized_pnl_percentage=pct,
            realized_pnl=realized,
        )
        if status == PositionStatus.LIQUIDATED:
            self.logger.warning(
                "Liquidated %s %s at %.2f realized=%.2f",
                closed.side.value, closed.asset_symbol, close_price, realized,
            )
        else:
            self.logger.info(
                "Closed %s %s at %.2f (%s) realized=%.2f",
                closed.side.value, closed.asset_symbol, close_price, reason.value, realized,
            )
        return closed

    def update_all_positions(
        self,
        positions: Iterable[FuturesPosition],
        price_map: Mapping[str, float],
    ) -> list[FuturesPosition]:
        """用价格表盯市所有 OPEN 仓位；价格缺失或为 0 的保持不变。"""
        out: list[FuturesPosition] = []
        for position in positions:
            price = price_map.get(position.asset)
            if not position.is_open or not price:
                out.append(position)
                continue
            out.append(self.mark_to_market(position, price))
        return out

    def check_position_triggers(
        self,
        positions: Iterable[FuturesPosition],
    ) -> tuple[list[tuple[FuturesPosition, CloseReason]], list[FuturesPosition]]:
        """返回 (待平仓列表 [(仓位, 原因)], 其余仓位)。"""
        to_close: list[tuple[FuturesPosition, CloseReason]] = []
        remaining: list[FuturesPosition] = []
        for position in positions:
            reason = evaluate_triggers(position)
            if reason is None:
                remaining.append(position)
            else:
                to_close.append((position, reason))
        return to_close, remaining


def futures_portfolio(positions: Iterable[FuturesPosition], total_balance: float) -> FuturesPortfolio:
    """合约账户汇总：只有 OPEN 仓位计入已用保证金与浮盈，已平仓位计入已实现盈亏。"""
    positions = list(positions)
    open_positions = [p for p in positions if p.is_open]
    closed_positions = [p for p in positions if not p.is_open]

    margin_used = sum(p.margin for p in open_positions)
    unrealized = sum(p.unrealized_pnl for p in open_positions)
    realized = sum(p.realized_pnl or 0.0 for p in closed_positions)
    fees = sum(p.open_fee + (p.close_fee or 0.0) + p.funding_fees for p in positions)
    utilization = margin_used / total_balance * 100 if total_balance > 0 else 0.0

    return FuturesPortfolio(
        positions=open_positions,
        total_margin_used=margin_used,
        total_unrealized_pnl=unrealized,
        total_realized_pnl=realized,
        total_fees_paid=fees,
        available_margin=total_balance - margin_used,
        margin_utilization=utilization,
    )
