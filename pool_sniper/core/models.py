from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any


class ExitReason(str, Enum):
    PROFIT_TARGET = "profit_target"
    TRAILING_STOP = "trailing_stop"
    TIME_LIMIT = "time_limit"


@dataclass(frozen=True)
class PoolEvent:
    """A newly initialized pool, as extracted from its creating transaction."""
    pool_id: str
    signature: str
    timestamp: datetime  # UTC block time
    token_a_mint: str
    token_b_mint: str
    lp_mint: str = ""
    market_id: str = ""


@dataclass
class Verdict:
    suitable: bool
    reason: str
    token_mint: str | None = None
    pool_id: str | None = None

    @classmethod
    def accept(cls, token_mint: str, pool_id: str) -> Verdict:
        return cls(True, "Token passed all checks", token_mint=token_mint, pool_id=pool_id)

    @classmethod
    def reject(cls, reason: str) -> Verdict:
        return cls(False, reason)


@dataclass
class Position:
    """
    An open simulated holding.

    ``buy_price`` is the reference price before fee and slippage;
    ``token_amount`` is what was credited after both.
    """
    token_mint: str
    pool_id: str
    buy_price: float
    buy_timestamp: int  # epoch ms
    token_amount: float
    peak_price: float
    trade_size_sol: float

    def trailing_armed(self, profit_target: float) -> bool:
        """True once the peak has cleared the profit target band."""
        return self.peak_price > self.buy_price * (1 + profit_target)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Position:
        buy_price = float(data["buy_price"])
        return cls(
            token_mint=str(data["token_mint"]),
            pool_id=str(data.get("pool_id", "")),
            buy_price=buy_price,
            buy_timestamp=int(data["buy_timestamp"]),
            token_amount=float(data["token_amount"]),
            peak_price=max(float(data.get("peak_price", buy_price)), buy_price),
            trade_size_sol=float(data.get("trade_size_sol", 0.0)),
        )


@dataclass(frozen=True)
class CompletedTrade:
    token_mint: str
    pool_id: str
    buy_price: float
    buy_timestamp: int
    token_amount: float
    peak_price: float
    trade_size_sol: float
    sell_price: float
    sol_proceeds: float
    exit_reason: ExitReason
    sell_timestamp: int  # epoch ms
    profit_or_loss: float

    @classmethod
    def from_position(
        cls,
        position: Position,
        sell_price: float,
        sol_proceeds: float,
        exit_reason: ExitReason,
        sell_timestamp: int,
    ) -> CompletedTrade:
        return cls(
            **position.to_dict(),
            sell_price=sell_price,
            sol_proceeds=sol_proceeds,
            exit_reason=exit_reason,
            sell_timestamp=sell_timestamp,
            profit_or_loss=sol_proceeds - position.trade_size_sol,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["exit_reason"] = self.exit_reason.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CompletedTrade:
        names = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in names}
        values["exit_reason"] = ExitReason(values["exit_reason"])
        return cls(**values)


@dataclass
class SellResult:
    sol_proceeds: float
    profit_or_loss: float
    trade: CompletedTrade


@dataclass(frozen=True)
class MintInfo:
    freeze_authority: str | None
    mint_authority: str | None
    decimals: int
    supply: int


@dataclass(frozen=True)
class PoolReserves:
    native_reserve: float  # SOL, UI units
    other_reserve: float  # token, UI units


@dataclass(frozen=True)
class CompiledInstruction:
    program_id_index: int
    accounts: list[int] = field(default_factory=list)
    data: str = ""


@dataclass(frozen=True)
class TransactionSnapshot:
    signature: str
    instructions: list[CompiledInstruction]
    account_keys: list[str]
    log_messages: list[str]
    block_time: int | None  # unix seconds
