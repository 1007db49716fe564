"""
Logging configuration for the pool sniper.

Colored console output for humans, rotating JSON files for analysis.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
from datetime import datetime, timezone
from pathlib import Path

from .config import Settings


class StructuredFormatter(logging.Formatter):
    """
    Custom formatter that outputs structured JSON logs.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Add extra fields
        if hasattr(record, "extra_data"):
            log_data.update(record.extra_data)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ColoredFormatter(logging.Formatter):
    """Console formatter with colors for important bot events."""

    GREY = "\x1b[90m"
    NEON_GREEN = "\x1b[92m"
    NEON_CYAN = "\x1b[96m"
    NEON_RED = "\x1b[91m"
    MAGENTA = "\x1b[95m"
    YELLOW = "\x1b[93m"
    RESET = "\x1b[0m"

    DATE_FMT = "%H:%M:%S"

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.ERROR:
            color = self.NEON_RED
        elif record.levelno >= logging.WARNING:
            color = self.YELLOW
        else:
            color = self.GREY

        msg = str(record.msg)
        if record.levelno < logging.WARNING:
            if "BUY" in msg or "ACCEPT" in msg:
                color = self.NEON_GREEN
            elif "NEW POOL" in msg or "🔭" in msg:
                color = self.NEON_CYAN
            elif "SELL" in msg or "💰" in msg:
                color = self.MAGENTA

        formatter = logging.Formatter(
            f"{color}%(asctime)s [%(levelname)s] %(name)s: %(message)s{self.RESET}",
            datefmt=self.DATE_FMT,
        )
        return formatter.format(record)


def setup_logging(settings: Settings, enable_file: bool = True) -> None:
    """
    Configure the root logger.

    Console gets the colored formatter; ``bot.log`` (everything) and
    ``errors.log`` (ERROR and above) get rotating JSON handlers.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(settings.LOG_LEVEL.upper())

    # Remove existing handlers to avoid duplicates on reload
    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(ColoredFormatter())
    root_logger.addHandler(console_handler)

    if enable_file:
        log_dir = Path(settings.LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)

        main_handler = logging.handlers.RotatingFileHandler(
            log_dir / "bot.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8",
        )
        main_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(main_handler)

        error_handler = logging.handlers.RotatingFileHandler(
            log_dir / "errors.log",
            maxBytes=5 * 1024 * 1024,  # 5MB
            backupCount=3,
            encoding="utf-8",
        )
        error_handler.setFormatter(StructuredFormatter())
        error_handler.setLevel(logging.ERROR)
        root_logger.addHandler(error_handler)

    # Silence noisy libraries - only show WARNING and above
    for noisy in ("httpx", "httpcore", "solana", "solders", "websockets", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


class TradeLogger:
    """
    Specialized logger for simulated trade events.

    Records carry an ``extra_data`` payload that the JSON formatter merges
    into the log line, so ``bot.log`` can be grepped for ``"event_type"``.

    Usage:
        trade_logger = TradeLogger()
        trade_logger.log_buy(mint="ABC", pool_id="P", price=1.0, ...)
    """

    def __init__(self, name: str = "pool_sniper.trades"):
        self.logger = logging.getLogger(name)

    def log_buy(
        self,
        mint: str,
        pool_id: str,
        price: float,
        amount_sol: float,
        token_amount: float,
        slippage: float,
        budget_after: float,
    ):
        """Log buy trade event"""
        self.logger.info(
            "🟢 BUY %s @ %.10f SOL | %.4f tokens for %.4f SOL (slippage %.2f%%) | budget %.4f SOL",
            mint, price, token_amount, amount_sol, slippage * 100, budget_after,
            extra={"extra_data": {
                "trade_event": True,
                "event_type": "BUY",
                "mint": mint,
                "pool_id": pool_id,
                "price": price,
                "amount_sol": amount_sol,
                "token_amount": token_amount,
                "slippage": slippage,
                "budget_after": budget_after,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }},
        )

    def log_sell(
        self,
        mint: str,
        price: float,
        sol_proceeds: float,
        pnl_sol: float,
        reason: str,
        slippage: float,
        budget_after: float,
    ):
        """Log sell trade event"""
        self.logger.info(
            "💰 SELL %s @ %.10f SOL | %s | proceeds %.4f SOL | P/L %+.4f SOL | budget %.4f SOL",
            mint, price, reason, sol_proceeds, pnl_sol, budget_after,
            extra={"extra_data": {
                "trade_event": True,
                "event_type": "SELL",
                "mint": mint,
                "price": price,
                "sol_proceeds": sol_proceeds,
                "pnl_sol": pnl_sol,
                "reason": reason,
                "slippage": slippage,
                "budget_after": budget_after,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }},
        )
