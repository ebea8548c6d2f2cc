"""成交记录 CSV 导出。

列固定为 Date, Time, Type, Asset, Symbol, Quantity, Price, Total, Fee, NetTotal；
数量保留 8 位小数，金额保留 2 位小数，时间按 UTC 输出。
"""

from __future__ import annotations

import csv
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, TextIO

from shared.models.models import Trade

CSV_COLUMNS = ["Date", "Time", "Type", "Asset", "Symbol", "Quantity", "Price", "Total", "Fee", "NetTotal"]


def trade_row(trade: Trade) -> list[str]:
    ts = datetime.fromtimestamp(trade.timestamp / 1000, tz=timezone.utc)
    return [
        ts.strftime("%Y-%m-%d"),
        ts.strftime("%H:%M:%S"),
        trade.type.value.upper(),
        trade.asset,
        trade.asset_symbol.upper(),
        f"{trade.quantity:.8f}",
        f"{trade.price:.2f}",
        f"{trade.total:.2f}",
        f"{trade.fee:.2f}",
        f"{trade.net_total:.2f}",
    ]


def write_trades_csv(trades: Iterable[Trade], fh: TextIO) -> int:
    """写入表头与所有成交，返回写入的成交条数。"""
    writer = csv.writer(fh)
    writer.writerow(CSV_COLUMNS)
    count = 0
    for trade in trades:
        writer.writerow(trade_row(trade))
        count += 1
    return count


def export_trades_csv(trades: Iterable[Trade], path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as fh:
        write_trades_csv(trades, fh)
    return path
