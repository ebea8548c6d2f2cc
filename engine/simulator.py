"""交易模拟器门面：持有余额、成交列表与合约仓位，是唯一的状态写入方。

每次变更（现货成交、开/平仓、价格 tick + 触发判断）都在同一把锁内完成，
用户手动平仓与 tick 触发平仓不会对同一仓位重复返还保证金。
"""

from __future__ import annotations

import threading
from typing import Callable, Mapping

from engine.futures import FuturesEngine, futures_portfolio, now_ms
from engine.spot_ledger import (
    SpotLedger,
    portfolio_stats,
    portfolio_value,
    rebuild_holdings,
    update_holding_prices,
)
from shared.config.schema import SimulatorConfig
from shared.models.models import (
    Asset,
    CloseReason,
    FuturesForm,
    FuturesPortfolio,
    FuturesPosition,
    FuturesValidationResult,
    Portfolio,
    PortfolioStats,
    Trade,
    TradeForm,
    TradeValidationResult,
)
from shared.state.journal import SimulatorState, SqliteJournal
from shared.utils.ids import IdGenerator, uuid_ids
from shared.utils.logging import setup_logger


class TradingSimulator:
    """现货 + 合约模拟账户。

    Parameters
    ----------
    config:
        应用总配置（初始资金、现货/合约参数）。
    journal:
        可选的 SQLite 账本；提供时启动即加载，每次变更后写回。
    id_generator / clock:
        注入给两个引擎，测试可得到确定的 ID 与时间戳。
    """

    def __init__(
        self,
        config: SimulatorConfig | None = None,
        *,
        journal: SqliteJournal | None = None,
        id_generator: IdGenerator = uuid_ids,
        clock: Callable[[], int] = now_ms,
    ):
        self.config = config or SimulatorConfig()
        self.journal = journal
        self.clock = clock
        self.spot = SpotLedger(self.config.spot, id_generator=id_generator, clock=clock)
        self.futures = FuturesEngine(self.config.futures, id_generator=id_generator, clock=clock)
        self.logger = setup_logger("simulator")
        self._lock = threading.Lock()

        self.initial_balance = self.config.initial_balance
        self.balance = self.initial_balance
        self.trades: list[Trade] = []
        self.positions: list[FuturesPosition] = []
        self.prices: dict[str, float] = {}
        self._asset_names: dict[str, str] = {}

        if journal is not None:
            if journal.has_state():
                self._restore(journal.load(default_balance=self.initial_balance))
            else:
                journal.set_balance(self.balance, self.initial_balance)

    def _restore(self, state: SimulatorState) -> None:
        self.initial_balance = state.initial_balance
        self.balance = state.balance
        self.trades = list(state.trades)
        self.positions = list(state.futures_positions)
        self.logger.info(
            "Restored state: balance=%.2f trades=%s positions=%s",
            self.balance, len(self.trades), len(self.positions),
        )

    def state(self) -> SimulatorState:
        return SimulatorState(
            balance=self.balance,
            initial_balance=self.initial_balance,
            trades=list(self.trades),
            futures_positions=list(self.positions),
        )

    def _persist(self) -> None:
        if self.journal is not None:
            self.journal.save(self.state())

    # ---------- 现货 ----------

    def _portfolio_unlocked(self) -> Portfolio:
        holdings = rebuild_holdings(self.trades, self._asset_names, self.config.spot.dust_threshold)
        holdings = update_holding_prices(holdings, self.prices)
        return portfolio_value(self.balance, holdings, self.clock())

    def portfolio(self) -> Portfolio:
        """当前组合（持仓由成交列表重放，再按最新价估值）。"""
        with self._lock:
            return self._portfolio_unlocked()

    def stats(self) -> PortfolioStats:
        with self._lock:
            return portfolio_stats(self.trades, self._portfolio_unlocked(), self.initial_balance)

    def submit_trade(self, form: TradeForm, asset: Asset) -> tuple[TradeValidationResult, Trade | None]:
        """校验并执行现货市价单；校验失败时不改变任何状态。"""
        with self._lock:
            portfolio = self._portfolio_unlocked()
            result = self.spot.validate(form.type, asset, form.quantity, asset.current_price, portfolio)
            if not result.valid:
                return result, None

            trade, updated = self.spot.execute(form.type, asset, form.quantity, portfolio)
            self._asset_names[asset.id] = asset.name
            self.prices[asset.id] = asset.current_price
            self.trades.append(trade)
            self.balance = updated.balance
            if self.journal is not None:
                self.journal.append_trade(trade)
                self.journal.set_balance(self.balance)
            return result, trade

    # ---------- 合约 ----------

    def open_position(self, form: FuturesForm, asset: Asset) -> tuple[FuturesValidationResult, FuturesPosition | None]:
        """校验并开仓；成功时从余额扣除保证金。"""
        with self._lock:
            result = self.futures.validate(form, asset, self.balance)
            if not result.valid:
                return result, None
            position = self.futures.open(form, asset)
            self.positions.append(position)
            self.balance -= position.margin
            self.prices[asset.id] = asset.current_price
            self._persist()
            return result, position

    def _find_open(self, position_id: str) -> int:
        for i, p in enumerate(self.positions):
            if p.id == position_id:
                if not p.is_open:
                    raise ValueError(f"Position {position_id} is not open")
                return i
        raise KeyError(f"Unknown position: {position_id}")

    def _settle(self, index: int, close_price: float, reason: CloseReason) -> FuturesPosition:
        closed = self.futures.close(self.positions[index], close_price, reason)
        self.positions[index] = closed
        credit = closed.margin + (closed.realized_pnl or 0.0)
        if self.config.futures.floor_isolated_loss:
            credit = max(0.0, credit)
        self.balance += credit
        return closed

    def close_position(self, position_id: str, close_price: float | None = None) -> FuturesPosition:
        """用户手动平仓；默认以最近一次盯市价格成交。"""
        with self._lock:
            index = self._find_open(position_id)
            price = close_price if close_price is not None else self.positions[index].current_price
            closed = self._settle(index, price, CloseReason.USER)
            self._persist()
            return closed

    def on_prices(self, price_map: Mapping[str, float]) -> list[FuturesPosition]:
        """价格 tick：盯市所有仓位并结算触发的强平/止损/止盈，返回本次平掉的仓位。"""
        with self._lock:
            self.prices.update({k: v for k, v in price_map.items() if v})
            marked = any(p.is_open and price_map.get(p.asset) for p in self.positions)
            self.positions = self.futures.update_all_positions(self.positions, price_map)
            to_close, _ = self.futures.check_position_triggers(self.positions)

            closed: list[FuturesPosition] = []
            for position, reason in to_close:
                index = self.positions.index(position)
                closed.append(self._settle(index, position.current_price, reason))
            # 只有仓位被盯市或平仓时才写回账本
            if marked or closed:
                self._persist()
            return closed

    def futures_summary(self) -> FuturesPortfolio:
        with self._lock:
            return futures_portfolio(self.positions, self.balance)

    def reset(self) -> None:
        """清空所有成交与仓位，回到初始资金。"""
        with self._lock:
            self.balance = self.initial_balance
            self.trades = []
            self.positions = []
            self.prices = {}
            if self.journal is not None:
                self.journal.reset()
                self.journal.set_balance(self.balance, self.initial_balance)
