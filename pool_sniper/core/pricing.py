"""
Constant-product swap approximation used by the paper ledger.

Both directions apply the pool fee and the sampled slippage as
multiplicative haircuts on the reference price. A non-positive price
means the pool cannot be priced and yields 0.
"""

from __future__ import annotations

import random


def tokens_for_sol(sol_amount: float, price: float, fee_rate: float, slippage: float) -> float:
    """Tokens received for ``sol_amount`` SOL at ``price`` SOL per token."""
    if price <= 0:
        return 0.0
    return sol_amount * (1 - fee_rate) / price * (1 - slippage)


def sol_for_tokens(token_amount: float, price: float, fee_rate: float, slippage: float) -> float:
    """SOL received for selling ``token_amount`` tokens at ``price``."""
    if price <= 0:
        return 0.0
    return token_amount * price * (1 - fee_rate) * (1 - slippage)


def sample_slippage(low: float, high: float, rng: random.Random | None = None) -> float:
    """Uniform draw from [low, high]."""
    return (rng or random).uniform(low, high)
