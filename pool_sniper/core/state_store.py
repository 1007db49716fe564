from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from pool_sniper.core.models import CompletedTrade, Position
from pool_sniper.exceptions import StateException


class JsonPositionStore:
    """
    Active positions mirrored to a JSON list on disk.

    Writes go to a temp file in the same directory and are swapped in with
    ``os.replace``, so a crash mid-write leaves the previous file intact.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.logger = logging.getLogger("pool_sniper.state")

    def load(self) -> list[Position]:
        """Load positions. Missing or unreadable file yields an empty list."""
        if not self.path.exists():
            self.logger.info("No active trades file at %s, starting fresh", self.path)
            return []

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            self.logger.error("Could not read active trades file %s: %s", self.path, exc)
            return []

        if not isinstance(data, list):
            self.logger.error("Active trades file %s is not a JSON list, ignoring it", self.path)
            return []

        positions: list[Position] = []
        seen: set[str] = set()
        for entry in data:
            try:
                position = Position.from_dict(entry)
            except (KeyError, TypeError, ValueError) as exc:
                self.logger.warning("Skipping malformed position entry %r: %s", entry, exc)
                continue
            if position.token_mint in seen:
                self.logger.warning("Duplicate position for %s in %s, keeping the first", position.token_mint, self.path)
                continue
            seen.add(position.token_mint)
            positions.append(position)

        self.logger.info("📂 Loaded %d active position(s) from %s", len(positions), self.path)
        return positions

    def save(self, positions: list[Position]) -> None:
        """Atomically replace the file contents. Raises StateException on I/O failure."""
        payload = json.dumps([p.to_dict() for p in positions], indent=2)
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".active_trades.", suffix=".tmp", dir=self.path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StateException("Failed to save active trades", path=str(self.path), error=str(exc)) from exc


class JsonlTradeLog:
    """Append-only log of completed trades, one JSON object per line."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.logger = logging.getLogger("pool_sniper.state")

    def append(self, trade: CompletedTrade) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(trade.to_dict()) + "\n")
        except OSError as exc:
            raise StateException("Failed to append completed trade", path=str(self.path), error=str(exc)) from exc

    def read_all(self) -> list[CompletedTrade]:
        if not self.path.exists():
            return []

        trades: list[CompletedTrade] = []
        with self.path.open("r", encoding="utf-8") as handle:
            for line_no, line in enumerate(handle, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    trades.append(CompletedTrade.from_dict(json.loads(line)))
                except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
                    self.logger.warning("Skipping malformed trade record at %s:%d: %s", self.path, line_no, exc)
        return trades
