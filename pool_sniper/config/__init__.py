"""Config package"""
import os
from dataclasses import dataclass
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from .risk_config import (
    RiskConfig,
    RiskConfigManager,
    LedgerLimits,
    SlippageConfig,
    QualifierRules,
    ExitRules,
)

from ..constants import DEFAULT_RPC_URL, DEXSCREENER_API_BASE, RAYDIUM_V4_PROGRAM


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


@dataclass
class Settings:
    """
    Runtime settings read from the environment (.env supported).

    Trading parameters live in the risk config file; this holds endpoints,
    file locations and timeouts.
    """
    # ============================================
    # ENDPOINTS
    # ============================================
    RPC_URL: str = DEFAULT_RPC_URL
    WSS_URL: str = ""
    RAYDIUM_PROGRAM_ADDRESS: str = str(RAYDIUM_V4_PROGRAM)
    DEXSCREENER_API_BASE: str = DEXSCREENER_API_BASE
    DEXSCREENER_MAX_RETRIES: int = 3
    DEXSCREENER_RETRY_BACKOFF_SEC: float = 1.0

    # ============================================
    # FILES
    # ============================================
    LOG_DIR: str = "logs"
    LOG_LEVEL: str = "INFO"
    ACTIVE_TRADES_FILE: str = "data/active_trades.json"
    COMPLETED_TRADES_FILE: str = "data/completed_trades.jsonl"
    RISK_CONFIG_PATH: str = "config/risk_config.yaml"

    # ============================================
    # TIMING
    # ============================================
    RPC_TIMEOUT_SEC: float = 10.0
    API_TIMEOUT_SEC: float = 10.0

    def __post_init__(self):
        if not self.WSS_URL:
            self.WSS_URL = self.RPC_URL.replace("https", "wss", 1)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, keeping defaults for unset ones."""
        rpc_url = os.getenv("RPC_URL", DEFAULT_RPC_URL)
        return cls(
            RPC_URL=rpc_url,
            WSS_URL=os.getenv("WSS_URL", ""),
            RAYDIUM_PROGRAM_ADDRESS=os.getenv("RAYDIUM_PROGRAM_ADDRESS", str(RAYDIUM_V4_PROGRAM)),
            DEXSCREENER_API_BASE=os.getenv("DEXSCREENER_API_BASE", DEXSCREENER_API_BASE),
            DEXSCREENER_MAX_RETRIES=int(os.getenv("DEXSCREENER_MAX_RETRIES", "3")),
            DEXSCREENER_RETRY_BACKOFF_SEC=_env_float("DEXSCREENER_RETRY_BACKOFF_SEC", 1.0),
            LOG_DIR=os.getenv("LOG_DIR", "logs"),
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
            ACTIVE_TRADES_FILE=os.getenv("ACTIVE_TRADES_FILE", "data/active_trades.json"),
            COMPLETED_TRADES_FILE=os.getenv("COMPLETED_TRADES_FILE", "data/completed_trades.jsonl"),
            RISK_CONFIG_PATH=os.getenv("RISK_CONFIG_PATH", "config/risk_config.yaml"),
            RPC_TIMEOUT_SEC=_env_float("RPC_TIMEOUT_SEC", 10.0),
            API_TIMEOUT_SEC=_env_float("API_TIMEOUT_SEC", 10.0),
        )
