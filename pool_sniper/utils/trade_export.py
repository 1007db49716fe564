"""
Trade History Export

Export completed paper trades to CSV, JSON and a text summary for analysis.
"""

import csv
import json
from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Dict, Any, Optional
from dataclasses import dataclass, asdict
import logging

from ..core.models import CompletedTrade
from ..core.state_store import JsonlTradeLog

logger = logging.getLogger(__name__)


@dataclass
class TradeRecord:
    """Single flattened trade row for export"""
    buy_time: str
    sell_time: str
    mint: str
    pool_id: str
    buy_price: float
    sell_price: float
    peak_price: float
    amount_sol: float
    sol_proceeds: float
    token_amount: float
    reason: str  # profit_target, trailing_stop, time_limit
    pnl_sol: float
    pnl_pct: float
    hold_time_seconds: float

    @classmethod
    def from_trade(cls, trade: CompletedTrade) -> "TradeRecord":
        pnl_pct = (trade.profit_or_loss / trade.trade_size_sol * 100) if trade.trade_size_sol > 0 else 0.0
        return cls(
            buy_time=_iso(trade.buy_timestamp),
            sell_time=_iso(trade.sell_timestamp),
            mint=trade.token_mint,
            pool_id=trade.pool_id,
            buy_price=trade.buy_price,
            sell_price=trade.sell_price,
            peak_price=trade.peak_price,
            amount_sol=trade.trade_size_sol,
            sol_proceeds=trade.sol_proceeds,
            token_amount=trade.token_amount,
            reason=trade.exit_reason.value,
            pnl_sol=trade.profit_or_loss,
            pnl_pct=pnl_pct,
            hold_time_seconds=(trade.sell_timestamp - trade.buy_timestamp) / 1000,
        )


def _iso(epoch_ms: int) -> str:
    return datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc).isoformat()


class TradeExporter:
    """
    Export completed trade history to various formats.

    Supported formats:
    - CSV (spreadsheet compatible)
    - JSON (programmatic access)
    - Summary report (human readable)

    Usage:
        exporter = TradeExporter("data/completed_trades.jsonl")
        exporter.export_csv("trades.csv")
        print(exporter.generate_summary())
    """

    def __init__(self, trades_path: str):
        """
        Args:
            trades_path: Completed-trade JSONL log
        """
        self.trade_log = JsonlTradeLog(trades_path)

    def get_all_trades(self) -> List[TradeRecord]:
        return [TradeRecord.from_trade(t) for t in self.trade_log.read_all()]

    def export_csv(
        self,
        filepath: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None
    ) -> int:
        """
        Export trades to CSV file.

        Args:
            filepath: Output file path
            start_date: Optional start date filter on sell time (YYYY-MM-DD)
            end_date: Optional end date filter on sell time (YYYY-MM-DD)

        Returns:
            Number of rows written
        """
        trades = self.get_all_trades()

        if start_date or end_date:
            trades = self._filter_by_date(trades, start_date, end_date)

        if not trades:
            logger.warning("No trades to export")
            return 0

        Path(filepath).parent.mkdir(parents=True, exist_ok=True)
        with open(filepath, 'w', newline='', encoding='utf-8') as f:
            writer = csv.DictWriter(f, fieldnames=list(asdict(trades[0]).keys()))
            writer.writeheader()
            for trade in trades:
                writer.writerow(asdict(trade))

        logger.info(f"Exported {len(trades)} trades to {filepath}")
        return len(trades)

    def export_json(self, filepath: str, pretty: bool = True) -> int:
        """
        Export trades to JSON file.

        Args:
            filepath: Output file path
            pretty: Pretty print JSON
        """
        trades = self.get_all_trades()

        data = {
            "export_date": datetime.now(timezone.utc).isoformat(),
            "total_trades": len(trades),
            "summary": self.compute_stats(trades),
            "trades": [asdict(t) for t in trades]
        }

        Path(filepath).parent.mkdir(parents=True, exist_ok=True)
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2 if pretty else None)

        logger.info(f"Exported {len(trades)} trades to {filepath}")
        return len(trades)

    @staticmethod
    def compute_stats(trades: List[TradeRecord]) -> Dict[str, Any]:
        wins = [t for t in trades if t.pnl_sol > 0]
        by_reason: Dict[str, Dict[str, float]] = defaultdict(lambda: {"count": 0, "pnl_sol": 0.0})
        for t in trades:
            by_reason[t.reason]["count"] += 1
            by_reason[t.reason]["pnl_sol"] += t.pnl_sol

        return {
            "total_trades": len(trades),
            "wins": len(wins),
            "losses": len(trades) - len(wins),
            "win_rate": (len(wins) / len(trades) * 100) if trades else 0.0,
            "total_pnl_sol": sum(t.pnl_sol for t in trades),
            "total_invested_sol": sum(t.amount_sol for t in trades),
            "by_reason": dict(by_reason),
        }

    def generate_summary(self) -> str:
        """Generate human-readable summary report"""
        trades = self.get_all_trades()

        if not trades:
            return "No trades found."

        stats = self.compute_stats(trades)
        pnl = stats["total_pnl_sol"]
        pnl_str = f"+{pnl:.4f}" if pnl >= 0 else f"{pnl:.4f}"

        lines = [
            "╔══════════════════════════════════════════════════════════════╗",
            "║                    TRADE HISTORY SUMMARY                     ║",
            "╠══════════════════════════════════════════════════════════════╣",
            f"  Generated:        {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
            f"  Total Trades:     {stats['total_trades']:>6}",
            f"  ├── Wins:         {stats['wins']:>6}",
            f"  └── Losses:       {stats['losses']:>6}",
            f"  Win Rate:         {stats['win_rate']:>6.1f}%",
            f"  SOL Invested:     {stats['total_invested_sol']:>10.4f} SOL",
            f"  Total P/L:        {pnl_str:>10} SOL",
            "╠══════════════════════════════════════════════════════════════╣",
            "  BY EXIT REASON",
        ]
        for reason, row in sorted(stats["by_reason"].items()):
            lines.append(f"  {reason:<15} │ {int(row['count']):>4} trades │ {row['pnl_sol']:>+10.4f} SOL")
        lines.append("╚══════════════════════════════════════════════════════════════╝")

        return "\n".join(lines)

    def _filter_by_date(
        self,
        trades: List[TradeRecord],
        start_date: Optional[str],
        end_date: Optional[str]
    ) -> List[TradeRecord]:
        """Filter trades by sell date range"""
        filtered = []
        for trade in trades:
            trade_date = trade.sell_time[:10]  # YYYY-MM-DD
            if start_date and trade_date < start_date:
                continue
            if end_date and trade_date > end_date:
                continue
            filtered.append(trade)
        return filtered
