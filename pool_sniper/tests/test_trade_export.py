"""
Unit tests for trade history export and reporting
"""

import csv
import json

import pytest

from pool_sniper.core.models import CompletedTrade, ExitReason, Position
from pool_sniper.core.state_store import JsonlTradeLog
from pool_sniper.utils.trade_export import TradeExporter

T0 = 1_714_564_800_000  # 2024-05-01 12:00 UTC


def trade(mint, proceeds, reason, sell_offset_ms=90_000):
    position = Position(mint, "Pool" + mint, 0.001, T0, 99.0, 0.0012, 0.1)
    return CompletedTrade.from_position(position, 0.0011, proceeds, reason, T0 + sell_offset_ms)


@pytest.fixture
def exporter(tmp_path):
    path = tmp_path / "completed_trades.jsonl"
    log = JsonlTradeLog(path)
    log.append(trade("A", 0.12, ExitReason.PROFIT_TARGET))
    log.append(trade("B", 0.09, ExitReason.TIME_LIMIT))
    log.append(trade("C", 0.11, ExitReason.TRAILING_STOP, sell_offset_ms=86_400_000))
    return TradeExporter(str(path))


class TestRecords:
    def test_flattened_record(self, exporter):
        record = exporter.get_all_trades()[0]
        assert record.mint == "A"
        assert record.reason == "profit_target"
        assert record.pnl_sol == pytest.approx(0.02)
        assert record.pnl_pct == pytest.approx(20.0)
        assert record.hold_time_seconds == 90.0
        assert record.buy_time.startswith("2024-05-01T12:00:00")


class TestStats:
    def test_summary_numbers(self, exporter):
        stats = TradeExporter.compute_stats(exporter.get_all_trades())
        assert stats["total_trades"] == 3
        assert stats["wins"] == 2
        assert stats["losses"] == 1
        assert stats["win_rate"] == pytest.approx(200 / 3)
        assert stats["total_pnl_sol"] == pytest.approx(0.02)
        assert stats["by_reason"]["time_limit"]["count"] == 1

    def test_empty_stats(self):
        stats = TradeExporter.compute_stats([])
        assert stats["total_trades"] == 0
        assert stats["win_rate"] == 0.0

    def test_text_summary(self, exporter):
        text = exporter.generate_summary()
        assert "TRADE HISTORY SUMMARY" in text
        assert "trailing_stop" in text
        assert "+0.0200" in text

    def test_no_trades(self, tmp_path):
        assert TradeExporter(str(tmp_path / "none.jsonl")).generate_summary() == "No trades found."


class TestExport:
    def test_csv(self, exporter, tmp_path):
        out = tmp_path / "out" / "trades.csv"
        assert exporter.export_csv(str(out)) == 3
        with open(out, newline="", encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        assert [r["mint"] for r in rows] == ["A", "B", "C"]

    def test_csv_date_filter(self, exporter, tmp_path):
        """Filter applies to the sell date"""
        out = tmp_path / "trades.csv"
        assert exporter.export_csv(str(out), start_date="2024-05-02") == 1

    def test_json(self, exporter, tmp_path):
        out = tmp_path / "trades.json"
        exporter.export_json(str(out))
        data = json.loads(out.read_text(encoding="utf-8"))
        assert data["total_trades"] == 3
        assert data["summary"]["wins"] == 2
        assert data["trades"][1]["reason"] == "time_limit"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
