import csv
import io

import pytest

from engine.futures import FuturesEngine
from shared.models.models import CloseReason, FuturesForm, PositionSide, Trade, TradeType
from shared.state.journal import SimulatorState, SqliteJournal, position_from_dict, position_to_dict
from shared.utils.trade_export import CSV_COLUMNS, export_trades_csv, trade_row, write_trades_csv


def _trade(trade_id="t-1", ts=1_700_000_000_000, trade_type=TradeType.BUY):
    return Trade(
        id=trade_id,
        timestamp=ts,
        asset="bitcoin",
        asset_symbol="btc",
        type=trade_type,
        quantity=0.123456789,
        price=50_000.0,
        total=6_172.84,
        fee=6.17,
        net_total=6_179.01,
    )


@pytest.fixture
def journal():
    j = SqliteJournal(":memory:")
    yield j
    j.close()


def test_empty_journal_has_no_state(journal):
    assert not journal.has_state()
    state = journal.load(default_balance=5_000)
    assert state.balance == 5_000
    assert state.initial_balance == 5_000
    assert state.trades == []


def test_trades_are_append_only(journal):
    assert journal.append_trade(_trade())
    assert not journal.append_trade(_trade())
    journal.append_trade(_trade("t-0", ts=1_600_000_000_000, trade_type=TradeType.SELL))
    trades = list(journal.iter_trades())
    assert [t.id for t in trades] == ["t-0", "t-1"]
    assert trades[0].type is TradeType.SELL


def test_save_and_load_round_trip(journal, btc, ids, fixed_clock):
    engine = FuturesEngine(id_generator=ids, clock=fixed_clock)
    position = engine.open(FuturesForm("bitcoin", PositionSide.LONG, 1_000, 10, stop_loss=48_000), btc)
    journal.save(SimulatorState(balance=9_000, initial_balance=10_000, trades=[_trade()], futures_positions=[position]))

    closed = engine.close(position, 51_000, CloseReason.USER)
    journal.save(SimulatorState(balance=10_190, initial_balance=10_000, trades=[_trade()], futures_positions=[closed]))

    state = journal.load()
    assert journal.has_state()
    assert state.balance == 10_190
    assert len(state.trades) == 1
    assert state.futures_positions == [closed]


def test_position_dict_conversion(btc, ids, fixed_clock):
    position = FuturesEngine(id_generator=ids, clock=fixed_clock).open(
        FuturesForm("bitcoin", PositionSide.SHORT, 100, 3), btc
    )
    data = position_to_dict(position)
    assert data["side"] == "SHORT"
    assert data["close_reason"] is None
    assert position_from_dict(data) == position


def test_reset_clears_everything(journal):
    journal.set_balance(1, 2)
    journal.append_trade(_trade())
    journal.reset()
    assert not journal.has_state()
    assert list(journal.iter_trades()) == []


def test_trade_row_format():
    row = trade_row(_trade())
    assert row == [
        "2023-11-14",
        "22:13:20",
        "BUY",
        "bitcoin",
        "BTC",
        "0.12345679",
        "50000.00",
        "6172.84",
        "6.17",
        "6179.01",
    ]


def test_write_and_export_csv(tmp_path):
    buf = io.StringIO()
    assert write_trades_csv([_trade(), _trade("t-2")], buf) == 2
    rows = list(csv.reader(io.StringIO(buf.getvalue())))
    assert rows[0] == CSV_COLUMNS
    assert len(rows) == 3

    path = export_trades_csv([], tmp_path / "out" / "trades.csv")
    assert path.read_text(encoding="utf-8").strip() == ",".join(CSV_COLUMNS)
