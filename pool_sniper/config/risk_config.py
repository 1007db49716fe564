"""
Risk Configuration Manager

Provides the paper-trading parameters (ledger limits, slippage bands,
qualification rules, exit rules) via a YAML/JSON file.
"""

import json
import yaml
import logging
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field, asdict
from pathlib import Path

from ..constants import RAYDIUM_FEE_RATE
from ..exceptions import ConfigurationException

logger = logging.getLogger(__name__)


@dataclass
class LedgerLimits:
    """Virtual budget and position admission limits"""
    initial_budget_sol: float = 1.0
    trade_size_sol: float = 0.1
    max_positions: int = 5
    fee_rate: float = RAYDIUM_FEE_RATE


@dataclass
class SlippageConfig:
    """Simulated slippage bands (fractions, sampled uniformly per trade)"""
    buy_min: float = 0.01
    buy_max: float = 0.05
    sell_min: float = 0.01
    sell_max: float = 0.03


@dataclass
class QualifierRules:
    """Pool/token qualification rules"""
    max_pool_age_minutes: float = 5.0
    min_liquidity_sol: float = 10.0


@dataclass
class ExitRules:
    """Exit strategy thresholds"""
    profit_target: float = 0.15  # +15% from buy price
    trailing_stop: float = 0.05  # -5% from peak, once armed
    time_limit_minutes: float = 60.0
    check_interval_seconds: float = 10.0


@dataclass
class RiskConfig:
    """Complete risk configuration"""
    # Version for compatibility
    version: str = "1.0"

    # Sub-configs
    ledger: LedgerLimits = field(default_factory=LedgerLimits)
    slippage: SlippageConfig = field(default_factory=SlippageConfig)
    qualifier: QualifierRules = field(default_factory=QualifierRules)
    exit: ExitRules = field(default_factory=ExitRules)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RiskConfig":
        """Create from dictionary"""
        try:
            return cls(
                version=str(data.get("version", "1.0")),
                ledger=LedgerLimits(**(data.get("ledger") or {})),
                slippage=SlippageConfig(**(data.get("slippage") or {})),
                qualifier=QualifierRules(**(data.get("qualifier") or {})),
                exit=ExitRules(**(data.get("exit") or {})),
            )
        except TypeError as e:
            raise ConfigurationException("Unknown risk config key", error=str(e)) from e

    def validate(self) -> List[str]:
        """Validate values, return list of errors"""
        errors = []

        if self.ledger.initial_budget_sol < 0:
            errors.append("initial_budget_sol must be >= 0")
        if self.ledger.trade_size_sol <= 0:
            errors.append("trade_size_sol must be > 0")
        if self.ledger.max_positions < 1:
            errors.append("max_positions must be >= 1")
        if not 0 <= self.ledger.fee_rate < 1:
            errors.append("fee_rate must be in [0, 1)")

        for side in ("buy", "sell"):
            low = getattr(self.slippage, f"{side}_min")
            high = getattr(self.slippage, f"{side}_max")
            if not (0 <= low <= high < 1):
                errors.append(f"{side} slippage band must satisfy 0 <= min <= max < 1")

        if self.qualifier.max_pool_age_minutes <= 0:
            errors.append("max_pool_age_minutes must be > 0")
        if self.qualifier.min_liquidity_sol < 0:
            errors.append("min_liquidity_sol must be >= 0")

        if self.exit.profit_target <= 0:
            errors.append("profit_target must be > 0")
        if not 0 < self.exit.trailing_stop < 1:
            errors.append("trailing_stop must be in (0, 1)")
        if self.exit.time_limit_minutes <= 0:
            errors.append("time_limit_minutes must be > 0")
        if self.exit.check_interval_seconds <= 0:
            errors.append("check_interval_seconds must be > 0")

        return errors


class RiskConfigManager:
    """
    Risk configuration manager.

    Features:
    - Load from YAML or JSON
    - Save configuration
    - Validation
    - Default fallback when the file is missing

    Usage:
        config_manager = RiskConfigManager("config/risk.yaml")
        config = config_manager.get_config()

        # Access values
        trade_size = config.ledger.trade_size_sol
    """

    DEFAULT_CONFIG_PATH = "config/risk_config.yaml"

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize config manager.

        Args:
            config_path: Path to config file
        """
        self.config_path = Path(config_path or self.DEFAULT_CONFIG_PATH)
        self._config: Optional[RiskConfig] = None

    def load(self) -> RiskConfig:
        """
        Load config from file (defaults if it does not exist) and validate.

        Raises:
            ConfigurationException: unreadable file or invalid values
        """
        if self.config_path.exists():
            config = self._load_from_file()
            logger.info(f"Risk config loaded from {self.config_path}")
        else:
            config = RiskConfig()
            logger.info(f"No risk config at {self.config_path}, using defaults")

        errors = config.validate()
        if errors:
            raise ConfigurationException("Invalid risk config", path=str(self.config_path), errors="; ".join(errors))

        self._config = config
        return config

    def _load_from_file(self) -> RiskConfig:
        """Load config from file"""
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                if self.config_path.suffix in ['.yaml', '.yml']:
                    data = yaml.safe_load(f)
                else:
                    data = json.load(f)
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationException("Error loading risk config", path=str(self.config_path), error=str(e)) from e

        if data is not None and not isinstance(data, dict):
            raise ConfigurationException("Risk config must be a mapping", path=str(self.config_path))
        return RiskConfig.from_dict(data or {})

    def save_config(self, config: Optional[RiskConfig] = None):
        """Save config to file"""
        config = config or self.get_config()
        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        data = config.to_dict()
        with open(self.config_path, 'w', encoding='utf-8') as f:
            if self.config_path.suffix in ['.yaml', '.yml']:
                yaml.dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
            else:
                json.dump(data, f, indent=2, ensure_ascii=False)

        logger.info(f"Risk config saved to {self.config_path}")

    def get_config(self) -> RiskConfig:
        """Get current config"""
        if self._config is None:
            self._config = RiskConfig()
        return self._config

