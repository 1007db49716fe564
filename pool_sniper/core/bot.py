"""
Pool sniper orchestrator.

Wires detector -> qualifier -> ledger for entries and runs the exit engine
in the background. Everything here is paper trading: no keys, no signing.
"""

from __future__ import annotations

import asyncio
import logging

from pool_sniper.config import Settings
from pool_sniper.config.risk_config import RiskConfig
from pool_sniper.core.dexscreener_client import DexScreenerClient
from pool_sniper.core.exit_strategy import ExitStrategyEngine
from pool_sniper.core.ledger import PositionLedger
from pool_sniper.core.models import PoolEvent, Position
from pool_sniper.core.pool_detector import PoolEventDetector
from pool_sniper.core.program_listener import ProgramAccountFeed
from pool_sniper.core.qualifier import TokenQualifier
from pool_sniper.core.rpc_client import SolanaGateway
from pool_sniper.core.state_store import JsonlTradeLog, JsonPositionStore


class PoolSniperBot:
    def __init__(
        self,
        settings: Settings,
        risk: RiskConfig | None = None,
        gateway=None,
        feed=None,
        store=None,
        trade_log=None,
    ) -> None:
        self.settings = settings
        self.risk = risk or RiskConfig()
        self.logger = logging.getLogger("pool_sniper.bot")

        self.dexscreener: DexScreenerClient | None = None
        if gateway is None:
            self.dexscreener = DexScreenerClient(settings)
            gateway = SolanaGateway(settings, fallback_price=self.dexscreener.get_pool_price)
        self.gateway = gateway
        self.feed = feed or ProgramAccountFeed(settings)

        self.ledger = PositionLedger(
            store or JsonPositionStore(settings.ACTIVE_TRADES_FILE),
            trade_log or JsonlTradeLog(settings.COMPLETED_TRADES_FILE),
            limits=self.risk.ledger,
            slippage=self.risk.slippage,
        )
        self.qualifier = TokenQualifier(self.gateway, self.risk.qualifier)
        self.detector = PoolEventDetector(self.gateway, self.feed, settings.RAYDIUM_PROGRAM_ADDRESS)
        self.exit_engine = ExitStrategyEngine(self.ledger, self.gateway.get_current_price, self.risk.exit)

        self._stop_event = asyncio.Event()
        self._exit_task: asyncio.Task | None = None
        self.is_running = False

    async def start(self) -> None:
        """Check RPC, restore positions, start watching for pools and exits."""
        await self.gateway.check_connection()

        restored = self.ledger.restore()
        self.logger.info(
            "💼 Paper budget %.4f SOL | %d open position(s) | trade size %.4f SOL | max %d",
            self.ledger.budget, restored, self.risk.ledger.trade_size_sol, self.risk.ledger.max_positions,
        )

        self._stop_event.clear()
        await self.detector.subscribe(self.handle_new_pool)
        self._exit_task = asyncio.create_task(self.exit_engine.run(self._stop_event))
        self.is_running = True

    async def handle_new_pool(self, event: PoolEvent) -> Position | None:
        """Qualify a fresh pool and paper-buy its token. Never raises."""
        try:
            verdict = await self.qualifier.evaluate(event)
            if not verdict.suitable:
                return None

            mint, pool_id = verdict.token_mint, verdict.pool_id
            if not self.ledger.can_buy(mint):
                return None

            price = await self.gateway.get_current_price(pool_id)
            if price is None or price <= 0:
                self.logger.warning("No usable entry price for %s (pool %s), skipping buy", mint, pool_id)
                return None

            return await self.ledger.buy(mint, pool_id, price)
        except Exception as exc:
            self.logger.error("Failed to handle pool %s: %s", event.pool_id, exc, exc_info=True)
            return None

    async def stop(self) -> None:
        self.logger.info("Initiating graceful shutdown...")
        self.is_running = False
        self._stop_event.set()

        try:
            await self.detector.unsubscribe()
        except Exception as exc:
            self.logger.warning("Error while unsubscribing: %s", exc)

        if self._exit_task is not None:
            try:
                await asyncio.wait_for(self._exit_task, timeout=self.risk.exit.check_interval_seconds + 5)
            except asyncio.TimeoutError:
                self._exit_task.cancel()
            self._exit_task = None

        if hasattr(self.gateway, "close"):
            await self.gateway.close()
        if self.dexscreener is not None:
            await self.dexscreener.close()

        metrics = self.ledger.get_performance_metrics()
        self.logger.info(
            "📊 Session: %d trade(s), %d won / %d lost, P/L %+.4f SOL, budget %.4f SOL, %d still open",
            metrics["total_trades"], metrics["winning_trades"], metrics["losing_trades"],
            metrics["realized_pnl"], metrics["budget"], metrics["open_positions"],
        )
        self.logger.info("Shutdown complete")
