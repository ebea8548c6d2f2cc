"""SQLite 本地账本：余额、成交记录与合约仓位。

设计
----
- SQLite，trades 表 append-only（以成交 id 为主键，重复写入被忽略）；
- futures_positions 以仓位 id upsert，保存完整 JSON 快照；
- account 为 key/value 表（balance / initial_balance）；
- 持仓不落库，加载后由成交列表重放得到。
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Iterable

from shared.models.models import (
    CloseReason,
    FuturesPosition,
    PositionSide,
    PositionStatus,
    Trade,
    TradeType,
)


@dataclass
class SimulatorState:
    """持久化快照。"""
    balance: float
    initial_balance: float
    trades: list[Trade] = field(default_factory=list)
    futures_positions: list[FuturesPosition] = field(default_factory=list)


def _json_dumps(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, default=str, allow_nan=False)


def position_to_dict(position: FuturesPosition) -> dict[str, Any]:
    data = asdict(position)
    data["side"] = position.side.value
    data["status"] = position.status.value
    data["close_reason"] = position.close_reason.value if position.close_reason else None
    return data


def position_from_dict(data: dict[str, Any]) -> FuturesPosition:
    data = dict(data)
    data["side"] = PositionSide(data["side"])
    data["status"] = PositionStatus(data["status"])
    if data.get("close_reason"):
        data["close_reason"] = CloseReason(data["close_reason"])
    return FuturesPosition(**data)


class SqliteJournal:
    def __init__(self, path: str | Path):
        self.path = Path(path)
        if str(path) != ":memory:":
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(path), isolation_level=None, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._ensure_schema()

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "SqliteJournal":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _ensure_schema(self) -> None:
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS account (
              key TEXT PRIMARY KEY,
              value REAL NOT NULL
            );
            """
        )
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS trades (
              id TEXT PRIMARY KEY,
              ts INTEGER NOT NULL,
              asset TEXT NOT NULL,
              asset_symbol TEXT NOT NULL,
              type TEXT NOT NULL,
              quantity REAL NOT NULL,
              price REAL NOT NULL,
              total REAL NOT NULL,
              fee REAL NOT NULL,
              net_total REAL NOT NULL
            );
            """
        )
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS futures_positions (
              id TEXT PRIMARY KEY,
              ts INTEGER NOT NULL,
              status TEXT NOT NULL,
              raw_json TEXT NOT NULL
            );
            """
        )
        self._conn.execute("CREATE INDEX IF NOT EXISTS idx_trades_ts ON trades(ts);")

    def has_state(self) -> bool:
        row = self._conn.execute("SELECT 1 FROM account WHERE key = 'balance' LIMIT 1;").fetchone()
        return row is not None

    def append_trade(self, trade: Trade) -> bool:
        """追加一条成交；id 已存在时返回 False（不覆盖历史）。"""
        try:
            self._conn.execute(
                """
                INSERT INTO trades (
                  id, ts, asset, asset_symbol, type, quantity, price, total, fee, net_total
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    trade.id,
                    int(trade.timestamp),
                    trade.asset,
                    trade.asset_symbol,
                    trade.type.value,
                    float(trade.quantity),
                    float(trade.price),
                    float(trade.total),
                    float(trade.fee),
                    float(trade.net_total),
                ),
            )
            return True
        except sqlite3.IntegrityError:
            return False

    def upsert_position(self, position: FuturesPosition) -> None:
        self._conn.execute(
            """
            INSERT INTO futures_positions (id, ts, status, raw_json) VALUES (?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET status = excluded.status, raw_json = excluded.raw_json;
            """,
            (position.id, int(position.timestamp), position.status.value, _json_dumps(position_to_dict(position))),
        )

    def set_balance(self, balance: float, initial_balance: float | None = None) -> None:
        rows = [("balance", float(balance))]
        if initial_balance is not None:
            rows.append(("initial_balance", float(initial_balance)))
        self._conn.executemany(
            "INSERT INTO account (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value;",
            rows,
        )

    def save(self, state: SimulatorState) -> None:
        """写入完整快照：余额覆盖、成交只追加、仓位 upsert。"""
        self._conn.execute("BEGIN;")
        try:
            self.set_balance(state.balance, state.initial_balance)
            for trade in state.trades:
                self.append_trade(trade)
            for position in state.futures_positions:
                self.upsert_position(position)
        except Exception:
            self._conn.execute("ROLLBACK;")
            raise
        self._conn.execute("COMMIT;")

    def iter_trades(self) -> Iterable[Trade]:
        cur = self._conn.execute(
            """
            SELECT id, ts, asset, asset_symbol, type, quantity, price, total, fee, net_total
            FROM trades ORDER BY ts ASC, rowid ASC;
            """
        )
        for row in cur.fetchall():
            yield Trade(
                id=row[0],
                timestamp=int(row[1]),
                asset=row[2],
                asset_symbol=row[3],
                type=TradeType(row[4]),
                quantity=float(row[5]),
                price=float(row[6]),
                total=float(row[7]),
                fee=float(row[8]),
                net_total=float(row[9]),
            )

    def iter_positions(self) -> Iterable[FuturesPosition]:
        cur = self._conn.execute("SELECT raw_json FROM futures_positions ORDER BY ts ASC, rowid ASC;")
        for (raw,) in cur.fetchall():
            yield position_from_dict(json.loads(raw))

    def load(self, default_balance: float = 10_000.0) -> SimulatorState:
        """读取快照；空库返回以 default_balance 起步的初始状态。"""
        account = dict(self._conn.execute("SELECT key, value FROM account;").fetchall())
        initial = float(account.get("initial_balance", default_balance))
        return SimulatorState(
            balance=float(account.get("balance", initial)),
            initial_balance=initial,
            trades=list(self.iter_trades()),
            futures_positions=list(self.iter_positions()),
        )

    def reset(self) -> None:
        self._conn.execute("DELETE FROM trades;")
        self._conn.execute("DELETE FROM futures_positions;")
        self._conn.execute("DELETE FROM account;")
