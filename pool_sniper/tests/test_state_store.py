"""
Unit tests for position persistence and the completed-trade log
"""

import json
import os

import pytest

from pool_sniper.core.models import CompletedTrade, ExitReason, Position
from pool_sniper.core.state_store import JsonlTradeLog, JsonPositionStore
from pool_sniper.exceptions import StateException

A = Position("MintA", "PoolA", 0.001, 1_700_000_000_000, 99.0, 0.0012, 0.1)
B = Position("MintB", "PoolB", 0.5, 1_700_000_100_000, 0.19, 0.5, 0.1)


class TestJsonPositionStore:
    def test_round_trip_in_fresh_store(self, tmp_path):
        """Persist [A, B], reload in a new store instance, get [A, B]"""
        path = tmp_path / "active_trades.json"
        JsonPositionStore(path).save([A, B])

        assert JsonPositionStore(path).load() == [A, B]

    def test_file_is_snake_case_json_list(self, file_store):
        file_store.save([A])
        data = json.loads(file_store.path.read_text(encoding="utf-8"))
        assert data == [{
            "token_mint": "MintA",
            "pool_id": "PoolA",
            "buy_price": 0.001,
            "buy_timestamp": 1_700_000_000_000,
            "token_amount": 99.0,
            "peak_price": 0.0012,
            "trade_size_sol": 0.1,
        }]

    def test_missing_file_loads_empty(self, file_store):
        assert file_store.load() == []

    def test_corrupt_file_loads_empty(self, file_store):
        """Unreadable JSON does not crash startup"""
        file_store.path.write_text("{not json", encoding="utf-8")
        assert file_store.load() == []

    def test_non_list_payload_loads_empty(self, file_store):
        file_store.path.write_text('{"MintA": {}}', encoding="utf-8")
        assert file_store.load() == []

    def test_malformed_and_duplicate_entries_skipped(self, file_store):
        """Bad rows are dropped, duplicate mints keep the first"""
        rows = [A.to_dict(), {"pool_id": "x"}, dict(B.to_dict(), peak_price=9.9), B.to_dict()]
        file_store.path.write_text(json.dumps(rows), encoding="utf-8")

        loaded = file_store.load()
        assert [p.token_mint for p in loaded] == ["MintA", "MintB"]
        assert loaded[1].peak_price == 9.9

    def test_peak_below_buy_is_raised(self, file_store):
        """Restored peak is never below the buy price"""
        row = dict(A.to_dict(), peak_price=0.0005)
        file_store.path.write_text(json.dumps([row]), encoding="utf-8")
        assert file_store.load()[0].peak_price == A.buy_price

    def test_save_overwrites(self, file_store):
        file_store.save([A, B])
        file_store.save([B])
        assert file_store.load() == [B]

    def test_save_leaves_no_temp_files(self, file_store, tmp_path):
        file_store.save([A])
        assert os.listdir(tmp_path) == ["active_trades.json"]

    def test_save_failure_raises_state_exception(self, tmp_path):
        """Writing into a path whose parent is a file fails cleanly"""
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        store = JsonPositionStore(blocker / "active_trades.json")

        with pytest.raises(StateException):
            store.save([A])


class TestJsonlTradeLog:
    def make_trade(self, position, reason=ExitReason.TIME_LIMIT):
        return CompletedTrade.from_position(position, 0.0011, 0.108, reason, position.buy_timestamp + 60_000)

    def test_append_and_read(self, file_trade_log):
        """Each trade is one JSON line, read back in order"""
        first = self.make_trade(A, ExitReason.PROFIT_TARGET)
        second = self.make_trade(B)
        file_trade_log.append(first)
        file_trade_log.append(second)

        lines = file_trade_log.path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        assert json.loads(lines[0])["exit_reason"] == "profit_target"
        assert file_trade_log.read_all() == [first, second]

    def test_profit_or_loss(self):
        trade = self.make_trade(A)
        assert trade.profit_or_loss == pytest.approx(0.108 - 0.1)

    def test_bad_lines_skipped(self, file_trade_log):
        file_trade_log.append(self.make_trade(A))
        with file_trade_log.path.open("a", encoding="utf-8") as handle:
            handle.write("garbage\n\n")
        assert len(file_trade_log.read_all()) == 1

    def test_missing_log_reads_empty(self, tmp_path):
        assert JsonlTradeLog(tmp_path / "none.jsonl").read_all() == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
