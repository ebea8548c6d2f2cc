from dataclasses import replace

import pytest

from engine.spot_ledger import (
    SpotLedger,
    apply_trade,
    holding_pnl,
    portfolio_stats,
    portfolio_value,
    rebuild_holdings,
    update_holding_prices,
)
from shared.config.schema import SpotConfig
from shared.models.models import Portfolio, TradeType


@pytest.fixture
def ledger(ids, fixed_clock) -> SpotLedger:
    return SpotLedger(id_generator=ids, clock=fixed_clock)


@pytest.fixture
def free_ledger(ids, fixed_clock) -> SpotLedger:
    return SpotLedger(SpotConfig(fee_rate=0.0), id_generator=ids, clock=fixed_clock)


def test_average_price_after_two_buys(free_ledger, btc):
    portfolio = Portfolio(balance=200_000)
    _, portfolio = free_ledger.execute(TradeType.BUY, btc, 1, portfolio)
    _, portfolio = free_ledger.execute(TradeType.BUY, replace(btc, current_price=60_000), 1, portfolio)

    holding = portfolio.get_holding("bitcoin")
    assert holding.quantity == 2
    assert holding.average_buy_price == pytest.approx(55_000)
    assert portfolio.balance == pytest.approx(90_000)


def test_buy_fees_enter_cost_basis(ledger, btc):
    trade, portfolio = ledger.execute(TradeType.BUY, btc, 1, Portfolio(balance=200_000))
    assert trade.fee == pytest.approx(50)
    assert trade.net_total == pytest.approx(50_050)
    assert portfolio.balance == pytest.approx(149_950)

    _, portfolio = ledger.execute(TradeType.BUY, replace(btc, current_price=60_000), 1, portfolio)
    holding = portfolio.get_holding("bitcoin")
    assert holding.total_invested == pytest.approx(110_110)
    assert holding.average_buy_price == pytest.approx(holding.total_invested / holding.quantity)


def test_sell_reduces_invested_proportionally(free_ledger, btc):
    _, portfolio = free_ledger.execute(TradeType.BUY, btc, 2, Portfolio(balance=200_000))
    before = portfolio.get_holding("bitcoin")

    trade, portfolio = free_ledger.execute(TradeType.SELL, replace(btc, current_price=60_000), 0.5, portfolio)
    after = portfolio.get_holding("bitcoin")
    assert trade.net_total == pytest.approx(30_000)
    assert after.quantity == pytest.approx(1.5)
    assert after.total_invested == pytest.approx(before.total_invested * 0.75)
    assert after.average_buy_price == before.average_buy_price


def test_full_exit_removes_holding(free_ledger, btc):
    _, portfolio = free_ledger.execute(TradeType.BUY, btc, 1, Portfolio(balance=100_000))
    _, portfolio = free_ledger.execute(TradeType.SELL, btc, 1 - 1e-9, portfolio)
    assert portfolio.get_holding("bitcoin") is None
    assert portfolio.holdings == []


def test_validation(ledger, btc):
    poor = Portfolio(balance=5)
    asset = replace(btc, current_price=10)
    result = ledger.validate(TradeType.BUY, asset, 1, 10, poor)
    assert not result.valid
    assert result.error.startswith("Insufficient balance")

    assert ledger.validate(TradeType.BUY, btc, 0, 50_000, poor).error == "Quantity must be greater than 0"
    assert ledger.validate(TradeType.BUY, btc, 1, 0, poor).error == "Invalid price"
    assert (
        ledger.validate(TradeType.SELL, btc, 1, 50_000, Portfolio(balance=0)).error
        == "You have no BTC in your portfolio to sell"
    )

    big = ledger.validate(TradeType.BUY, btc, 1, 50_000, Portfolio(balance=60_000))
    assert big.valid
    assert big.warnings == ["This trade uses more than 50% of your balance. Consider diversifying."]


def test_cannot_oversell(ledger, btc):
    _, portfolio = ledger.execute(TradeType.BUY, btc, 1, Portfolio(balance=100_000))
    result = ledger.validate(TradeType.SELL, btc, 2, 50_000, portfolio)
    assert not result.valid
    assert result.error.startswith("Insufficient quantity")


def test_rebuild_matches_incremental(ledger, btc):
    portfolio = Portfolio(balance=300_000)
    trades = []
    for trade_type, price, qty in [
        (TradeType.BUY, 50_000, 1),
        (TradeType.BUY, 40_000, 2),
        (TradeType.SELL, 45_000, 1.5),
    ]:
        trade, portfolio = ledger.execute(trade_type, replace(btc, current_price=price), qty, portfolio)
        trades.append(trade)

    rebuilt = rebuild_holdings(trades, {"bitcoin": "Bitcoin"})
    assert len(rebuilt) == 1
    assert rebuilt[0].quantity == pytest.approx(portfolio.holdings[0].quantity)
    assert rebuilt[0].total_invested == pytest.approx(portfolio.holdings[0].total_invested)
    assert rebuilt[0].asset_name == "Bitcoin"


def test_apply_trade_sell_without_holding_is_noop(ledger, btc):
    trade, _ = ledger.execute(TradeType.SELL, btc, 1, Portfolio(balance=0))
    assert apply_trade([], trade) == []


def test_portfolio_value_and_price_updates(free_ledger, btc):
    _, portfolio = free_ledger.execute(TradeType.BUY, btc, 1, Portfolio(balance=100_000))
    holdings = update_holding_prices(portfolio.holdings, {"bitcoin": 55_000, "ethereum": 0})
    pnl, pct, profit = holding_pnl(holdings[0])
    assert (pnl, pct, profit) == (pytest.approx(5_000), pytest.approx(10), True)

    valued = portfolio_value(50_000, holdings, timestamp=1)
    assert valued.total_value == pytest.approx(105_000)
    assert valued.total_pnl_percentage == pytest.approx(10)
    assert valued.last_updated == 1
    assert portfolio_value(1_000, []).total_pnl_percentage == 0


def test_portfolio_stats(ledger, btc):
    eth = replace(btc, id="ethereum", symbol="eth", name="Ethereum", current_price=3_000)
    portfolio = Portfolio(balance=100_000)
    trades = []
    for asset, trade_type, qty in [(btc, TradeType.BUY, 1), (eth, TradeType.BUY, 2), (btc, TradeType.SELL, 0.5)]:
        trade, portfolio = ledger.execute(trade_type, asset, qty, portfolio)
        trades.append(trade)

    stats = portfolio_stats(trades, portfolio, initial_balance=100_000)
    assert stats.total_trades == 3
    assert stats.buy_trades == 2
    assert stats.sell_trades == 1
    assert stats.most_traded_asset == "btc"
    assert stats.total_fees_paid == pytest.approx(sum(t.fee for t in trades))

    empty = portfolio_stats([], Portfolio(balance=100, total_value=100), initial_balance=100)
    assert empty.total_trades == 0
    assert empty.most_traded_asset is None
