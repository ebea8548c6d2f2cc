"""交易模拟器统一命令行入口。

通过子命令驱动不同任务：

- `prices`：打印跟踪资产的 24h 行情快照。
- `signal`：对单个资产运行信号聚合器（K 线不足时退回快速档）。
- `portfolio`：显示本地账本中的余额、现货持仓与合约仓位。
- `export`：把成交记录导出为 CSV。
- `test`：运行 pytest。
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from typing import Any

from rich import box
from rich.console import Console
from rich.table import Table

from engine.simulator import TradingSimulator
from market import INTERVALS, get_price_feed
from shared.config.config_loader import load_config_or_default
from shared.config.schema import SimulatorConfig
from shared.state.journal import SqliteJournal
from shared.utils.trade_export import export_trades_csv
from signals.aggregator import SignalAggregator
from signals.models import Signal

console = Console()


@dataclass
class CliArgs:
    """命令行参数。

    config: 配置文件路径
    task: 子命令 (prices/signal/portfolio/export/test)
    feed: 行情源 (live/synthetic)
    """
    config: str
    task: str
    feed: str = "live"
    asset: str | None = None
    interval: str = "1h"
    limit: int = 200
    out: str = "trades.csv"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="simulator", description="Crypto trading simulator")

    def _add_common(p: argparse.ArgumentParser, *, default: Any) -> None:
        p.add_argument("--config", default=default, help="config file (default: config/config.yml)")
        p.add_argument(
            "--feed",
            choices=["live", "synthetic"],
            default=default if default is argparse.SUPPRESS else "live",
            help="price feed: live CoinGecko/Binance or offline synthetic data",
        )

    # 允许 `main.py --config ... signal`（全局）与 `main.py signal --config ...`（子命令）
    _add_common(parser, default="config/config.yml")

    sub = parser.add_subparsers(dest="task")

    p_prices = sub.add_parser("prices", help="show tracked asset prices")
    _add_common(p_prices, default=argparse.SUPPRESS)

    p_signal = sub.add_parser("signal", help="evaluate the trading signal for one asset")
    _add_common(p_signal, default=argparse.SUPPRESS)
    p_signal.add_argument("--asset", required=True, help="asset id, e.g. bitcoin")
    p_signal.add_argument("--interval", choices=INTERVALS, default="1h")
    p_signal.add_argument("--limit", type=int, default=200, help="number of candles (max 1000)")

    p_portfolio = sub.add_parser("portfolio", help="show journal balance, holdings and positions")
    _add_common(p_portfolio, default=argparse.SUPPRESS)

    p_export = sub.add_parser("export", help="export trades to CSV")
    _add_common(p_export, default=argparse.SUPPRESS)
    p_export.add_argument("--out", default="trades.csv")

    sub.add_parser("test", help="run pytest")
    return parser


def parse_args(argv: list[str] | None = None) -> CliArgs:
    ns = build_parser().parse_args(argv)
    return CliArgs(
        config=str(getattr(ns, "config", "config/config.yml")),
        task=ns.task or "prices",
        feed=str(getattr(ns, "feed", "live")),
        asset=getattr(ns, "asset", None),
        interval=str(getattr(ns, "interval", "1h")),
        limit=int(getattr(ns, "limit", 200)),
        out=str(getattr(ns, "out", "trades.csv")),
    )


def _open_simulator(cfg: SimulatorConfig) -> TradingSimulator:
    journal = SqliteJournal(cfg.journal.path) if cfg.journal.enabled else None
    return TradingSimulator(cfg, journal=journal)


def show_prices(cfg: SimulatorConfig, feed: str) -> list:
    assets = get_price_feed(feed, cfg.feed).get_market_prices()
    if not assets:
        console.print("[red]Market data unavailable[/red]")
        return []

    table = Table(title="Market prices", box=box.ROUNDED)
    table.add_column("Asset", style="cyan", no_wrap=True)
    table.add_column("Price", justify="right")
    table.add_column("24h", justify="right")
    table.add_column("Low 24h", justify="right")
    table.add_column("High 24h", justify="right")
    for a in assets:
        color = "green" if a.price_change_percentage_24h >= 0 else "red"
        table.add_row(
            f"{a.symbol} ({a.name})",
            f"{a.current_price:,.4f}",
            f"[{color}]{a.price_change_percentage_24h:+.2f}%[/{color}]",
            f"{a.low_24h:,.4f}" if a.low_24h is not None else "-",
            f"{a.high_24h:,.4f}" if a.high_24h is not None else "-",
        )
    console.print(table)
    return assets


def show_signal(cfg: SimulatorConfig, feed: str, asset_id: str, interval: str, limit: int) -> Signal:
    source = get_price_feed(feed, cfg.feed)
    snapshot = next((a for a in source.get_market_prices() if a.id == asset_id), None)
    candles = source.get_historical_candles(snapshot, interval, limit) if snapshot else []
    signal = SignalAggregator(cfg.signals).evaluate(candles, snapshot)

    table = Table(title=f"{asset_id} signal ({signal.profile} profile)", box=box.ROUNDED, show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Type", signal.type.value)
    table.add_row("Confidence", f"{signal.confidence:.0f}%")
    table.add_row("Quality", f"{signal.quality_score:.0f}/100")
    table.add_row("Strength", f"{signal.strength:.0f}")
    table.add_row("Votes", f"{signal.bullish_score} bullish / {signal.bearish_score} bearish")
    k = signal.key_levels
    table.add_row("Entry / SL", f"{k.entry:,.4f} / {k.stop_loss:,.4f}")
    table.add_row("Targets", f"{k.take_profit1:,.4f} / {k.take_profit2:,.4f} / {k.take_profit3:,.4f}")
    table.add_row("Risk:Reward", f"{k.risk_reward_ratio:.2f}")
    p = signal.probabilities
    table.add_row(
        "Scenarios",
        f"bull {p.bullish}% / bear {p.bearish}% / reversal {p.reversal}% / range {p.consolidation}%",
    )
    table.add_row("Confirmations", "\n".join(signal.confirmations) or "-")
    table.add_row("Warnings", "\n".join(signal.warnings) or "-")
    console.print(table)
    console.print(signal.message)
    return signal


def show_portfolio(cfg: SimulatorConfig) -> dict[str, Any]:
    sim = _open_simulator(cfg)
    portfolio = sim.portfolio()
    futures = sim.futures_summary()
    stats = sim.stats()

    table = Table(title="Spot holdings", box=box.ROUNDED)
    table.add_column("Asset", style="cyan")
    table.add_column("Quantity", justify="right")
    table.add_column("Avg price", justify="right")
    table.add_column("Invested", justify="right")
    table.add_column("P&L", justify="right")
    for h in portfolio.holdings:
        table.add_row(
            h.asset_symbol.upper(),
            f"{h.quantity:.8f}",
            f"{h.average_buy_price:,.2f}",
            f"{h.total_invested:,.2f}",
            f"{h.pnl:+,.2f} ({h.pnl_percentage:+.2f}%)",
        )
    console.print(table)

    pos_table = Table(title="Futures positions", box=box.ROUNDED)
    for col in ("Asset", "Side", "Lev", "Margin", "Entry", "Liq", "uPnL"):
        pos_table.add_column(col, justify="right" if col not in ("Asset", "Side") else "left")
    for p in futures.positions:
        pos_table.add_row(
            p.asset_symbol.upper(),
            p.side.value,
            f"{p.leverage:g}x",
            f"{p.margin:,.2f}",
            f"{p.entry_price:,.2f}",
            f"{p.liquidation_price:,.2f}",
            f"{p.unrealized_pnl:+,.2f}",
        )
    console.print(pos_table)
    console.print(
        f"Balance {portfolio.balance:,.2f} | value {portfolio.total_value:,.2f} | "
        f"margin used {futures.total_margin_used:,.2f} | trades {stats.total_trades} | "
        f"return {stats.total_return:+,.2f} ({stats.total_return_percentage:+.2f}%)"
    )
    return {"portfolio": portfolio, "futures": futures, "stats": stats}


def main(argv: list[str] | None = None) -> Any:
    args = parse_args(argv)
    cfg = load_config_or_default(args.config)

    if args.task == "prices":
        return show_prices(cfg, args.feed)

    if args.task == "signal":
        if not args.asset:
            raise ValueError("Must specify --asset")
        return show_signal(cfg, args.feed, args.asset, args.interval, args.limit)

    if args.task == "portfolio":
        return show_portfolio(cfg)

    if args.task == "export":
        sim = _open_simulator(cfg)
        path = export_trades_csv(sim.trades, args.out)
        console.print(f"Exported {len(sim.trades)} trades to {path}")
        return path

    if args.task == "test":
        import pytest

        return pytest.main(["-q"])

    raise ValueError(f"Unknown task: {args.task}")


if __name__ == "__main__":
    main()
