import argparse
import asyncio
import logging
import platform
import signal
import sys

from pool_sniper.config import Settings
from pool_sniper.config.risk_config import RiskConfigManager
from pool_sniper.core.bot import PoolSniperBot
from pool_sniper.exceptions import BotException
from pool_sniper.logger import setup_logging
from pool_sniper.utils.trade_export import TradeExporter

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Raydium new-pool paper trading bot")
    parser.add_argument("--summary", action="store_true", help="print the completed-trade report and exit")
    parser.add_argument("--export-csv", metavar="PATH", help="export completed trades to CSV and exit")
    parser.add_argument("--export-json", metavar="PATH", help="export completed trades to JSON and exit")
    parser.add_argument("--config", metavar="PATH", help="risk config file (YAML or JSON)")
    return parser.parse_args(argv)


async def run_bot(settings: Settings, config_path: str) -> None:
    risk = RiskConfigManager(config_path).load()
    bot = PoolSniperBot(settings, risk)
    shutdown_event = asyncio.Event()

    loop = asyncio.get_running_loop()

    def handle_shutdown(sig):
        logger.info(f"🛑 [SHUTDOWN] Received signal {sig}...")
        shutdown_event.set()

    # add_signal_handler is not supported on Windows
    if platform.system() != "Windows":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: handle_shutdown(s))
    else:
        signal.signal(signal.SIGINT, lambda s, f: loop.call_soon_threadsafe(handle_shutdown, s))

    try:
        await bot.start()
        await shutdown_event.wait()
    finally:
        await bot.stop()


def main(argv=None) -> int:
    args = parse_args(argv)
    settings = Settings.from_env()

    if args.summary or args.export_csv or args.export_json:
        setup_logging(settings, enable_file=False)
        exporter = TradeExporter(settings.COMPLETED_TRADES_FILE)
        if args.export_csv:
            exporter.export_csv(args.export_csv)
        if args.export_json:
            exporter.export_json(args.export_json)
        if args.summary:
            print(exporter.generate_summary())
        return 0

    setup_logging(settings)
    logger.info("🚀 Raydium pool sniper (paper trading) starting")
    try:
        asyncio.run(run_bot(settings, args.config or settings.RISK_CONFIG_PATH))
    except KeyboardInterrupt:
        logger.info("👋 Bot stopped by user.")
    except BotException as e:
        logger.error(f"🔥 Fatal Error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
