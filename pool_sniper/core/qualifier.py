from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Callable

from pool_sniper.config.risk_config import QualifierRules
from pool_sniper.constants import WSOL_MINT
from pool_sniper.core.interfaces import ChainGateway
from pool_sniper.core.models import PoolEvent, Verdict


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenQualifier:
    """
    Decides whether a freshly created pool is worth a paper buy.

    Checks run cheapest first and stop at the first failure:
    age, SOL pairing, freeze authority, SOL-side liquidity.
    """

    def __init__(
        self,
        gateway: ChainGateway,
        rules: QualifierRules | None = None,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.gateway = gateway
        self.rules = rules or QualifierRules()
        self.now = now
        self.logger = logging.getLogger("pool_sniper.qualifier")

    async def evaluate(self, event: PoolEvent) -> Verdict:
        verdict = await self._evaluate(event)
        if verdict.suitable:
            self.logger.info("✅ ACCEPT %s (pool %s)", verdict.token_mint, verdict.pool_id)
        else:
            self.logger.info("🚫 REJECT pool %s: %s", event.pool_id, verdict.reason)
        return verdict

    async def _evaluate(self, event: PoolEvent) -> Verdict:
        # 1. Age
        age_minutes = (self.now() - event.timestamp).total_seconds() / 60
        if age_minutes > self.rules.max_pool_age_minutes:
            return Verdict.reject(
                f"Pool too old: {age_minutes:.2f} min > {self.rules.max_pool_age_minutes} min"
            )

        # 2. Pairing
        candidate = self.candidate_mint(event)
        if candidate is None:
            return Verdict.reject(
                f"Pool is not a single-sided SOL pair ({event.token_a_mint or '?'} / {event.token_b_mint or '?'})"
            )

        # 3. Freeze authority
        try:
            mint_info = await self.gateway.get_mint_info(candidate)
        except Exception as exc:
            self.logger.warning("Mint info lookup failed for %s: %s", candidate, exc)
            mint_info = None
        if mint_info is None:
            return Verdict.reject(f"Mint info unavailable for {candidate}")
        if mint_info.freeze_authority is not None:
            return Verdict.reject(f"Freeze authority present: {mint_info.freeze_authority}")

        # 4. Liquidity
        try:
            reserves = await self.gateway.get_pool_reserves(event.pool_id)
        except Exception as exc:
            self.logger.warning("Reserve lookup failed for %s: %s", event.pool_id, exc)
            reserves = None
        if reserves is None:
            return Verdict.reject(f"Pool reserves unavailable for {event.pool_id}")
        native = reserves.native_reserve
        if not isinstance(native, (int, float)) or not math.isfinite(native):
            return Verdict.reject(f"Pool reserves unparseable for {event.pool_id}: {native!r}")
        if native < self.rules.min_liquidity_sol:
            return Verdict.reject(
                f"Insufficient liquidity: {native:.4f} SOL < {self.rules.min_liquidity_sol} SOL"
            )

        return Verdict.accept(candidate, event.pool_id)

    @staticmethod
    def candidate_mint(event: PoolEvent) -> str | None:
        """The non-WSOL side of the pair, or None unless exactly one side is WSOL."""
        mints = (event.token_a_mint, event.token_b_mint)
        if not all(mints):
            return None
        sol_sides = [m == WSOL_MINT for m in mints]
        if sum(sol_sides) != 1:
            return None
        return mints[1] if sol_sides[0] else mints[0]
