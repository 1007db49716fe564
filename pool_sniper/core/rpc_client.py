"""
Solana chain gateway.

Read-only lookups used by the detector, qualifier and exit engine, built on
solana-py's AsyncClient. Every call is bounded by a timeout and guarded by a
circuit breaker; failures are logged and surface as None.
"""

import asyncio
import json
import logging
import struct
from typing import Any, Callable, Dict, List, Optional

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solders.pubkey import Pubkey
from solders.signature import Signature

from ..config import Settings
from ..constants import (
    MINT_ACCOUNT_MIN_SIZE,
    MINT_AUTHORITY_OFFSET,
    MINT_AUTHORITY_OPTION_OFFSET,
    MINT_DECIMALS_OFFSET,
    MINT_FREEZE_AUTHORITY_OFFSET,
    MINT_FREEZE_OPTION_OFFSET,
    MINT_SUPPLY_OFFSET,
    RAYDIUM_POOL_BASE_MINT_OFFSET,
    RAYDIUM_POOL_BASE_VAULT_OFFSET,
    RAYDIUM_POOL_LP_MINT_OFFSET,
    RAYDIUM_POOL_MARKET_ID_OFFSET,
    RAYDIUM_POOL_MIN_SIZE,
    RAYDIUM_POOL_QUOTE_MINT_OFFSET,
    RAYDIUM_POOL_QUOTE_VAULT_OFFSET,
    WSOL_MINT,
)
from ..exceptions import NetworkException, ValidationException
from ..utils.retry import CircuitBreaker, async_retry
from .models import CompiledInstruction, MintInfo, PoolReserves, TransactionSnapshot

logger = logging.getLogger(__name__)


# ============================================
# DECODERS
# ============================================

def _pubkey_at(data: bytes, offset: int) -> str:
    return str(Pubkey.from_bytes(data[offset:offset + 32]))


def _optional_pubkey(data: bytes, option_offset: int, key_offset: int) -> Optional[str]:
    # COption<Pubkey>: u32 tag (0 = None, 1 = Some) then 32 bytes
    tag = struct.unpack_from("<I", data, option_offset)[0]
    return _pubkey_at(data, key_offset) if tag == 1 else None


def decode_mint_info(data: bytes) -> MintInfo:
    """Decode an SPL token mint account."""
    if len(data) < MINT_ACCOUNT_MIN_SIZE:
        raise ValidationException("Mint account too short", size=len(data))
    return MintInfo(
        freeze_authority=_optional_pubkey(data, MINT_FREEZE_OPTION_OFFSET, MINT_FREEZE_AUTHORITY_OFFSET),
        mint_authority=_optional_pubkey(data, MINT_AUTHORITY_OPTION_OFFSET, MINT_AUTHORITY_OFFSET),
        decimals=data[MINT_DECIMALS_OFFSET],
        supply=struct.unpack_from("<Q", data, MINT_SUPPLY_OFFSET)[0],
    )


def decode_raydium_pool(data: bytes) -> Dict[str, str]:
    """Decode the account fields we need from a Raydium AMM v4 pool state."""
    if len(data) < RAYDIUM_POOL_MIN_SIZE:
        raise ValidationException("Raydium pool account too short", size=len(data))
    return {
        "base_vault": _pubkey_at(data, RAYDIUM_POOL_BASE_VAULT_OFFSET),
        "quote_vault": _pubkey_at(data, RAYDIUM_POOL_QUOTE_VAULT_OFFSET),
        "base_mint": _pubkey_at(data, RAYDIUM_POOL_BASE_MINT_OFFSET),
        "quote_mint": _pubkey_at(data, RAYDIUM_POOL_QUOTE_MINT_OFFSET),
        "lp_mint": _pubkey_at(data, RAYDIUM_POOL_LP_MINT_OFFSET),
        "market_id": _pubkey_at(data, RAYDIUM_POOL_MARKET_ID_OFFSET),
    }


def parse_transaction_json(signature: str, payload: Dict[str, Any]) -> TransactionSnapshot:
    """
    Build a TransactionSnapshot from a ``json``-encoded getTransaction result.

    Accepts both the raw RPC result (``meta`` beside ``transaction``) and the
    solders serialization (``meta`` nested inside ``transaction``). Addresses
    loaded from lookup tables are appended to the static keys, writable first,
    matching how instruction account indices address them.
    """
    outer = payload.get("transaction")
    if not isinstance(outer, dict):
        raise ValidationException("Transaction payload missing", signature=signature)

    if "meta" in outer and "message" not in outer:
        tx = outer.get("transaction") or {}
        meta = outer.get("meta") or {}
    else:
        tx = outer
        meta = payload.get("meta") or {}

    message = tx.get("message")
    if not isinstance(message, dict):
        raise ValidationException("Transaction message missing", signature=signature)

    account_keys = [k if isinstance(k, str) else k.get("pubkey", "") for k in message.get("accountKeys", [])]
    loaded = meta.get("loadedAddresses") or {}
    account_keys += list(loaded.get("writable") or []) + list(loaded.get("readonly") or [])

    instructions = []
    for raw in message.get("instructions", []):
        try:
            instructions.append(CompiledInstruction(
                program_id_index=int(raw["programIdIndex"]),
                accounts=[int(i) for i in raw.get("accounts", [])],
                data=raw.get("data", ""),
            ))
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationException("Malformed instruction", signature=signature, error=str(e)) from e

    return TransactionSnapshot(
        signature=signature,
        instructions=instructions,
        account_keys=account_keys,
        log_messages=list(meta.get("logMessages") or []),
        block_time=payload.get("blockTime"),
    )


def _ui_amount(amount: str, decimals: int) -> float:
    return int(amount) / (10 ** decimals)


# ============================================
# GATEWAY
# ============================================

class SolanaGateway:
    """
    ChainGateway backed by a Solana JSON-RPC endpoint.

    Usage:
        gateway = SolanaGateway(settings)
        await gateway.check_connection()
        info = await gateway.get_mint_info(mint)
        await gateway.close()
    """

    def __init__(
        self,
        settings: Settings,
        client: Optional[AsyncClient] = None,
        fallback_price: Optional[Callable[[str], Any]] = None,
    ):
        """
        Args:
            settings: Endpoint and timeout settings
            client: Pre-built AsyncClient (tests)
            fallback_price: Async pool_id -> price used when reserves give no price
        """
        self.settings = settings
        self.client = client or AsyncClient(settings.RPC_URL, commitment=Confirmed)
        self.timeout = settings.RPC_TIMEOUT_SEC
        self.fallback_price = fallback_price
        self.circuit_breaker = CircuitBreaker(failure_threshold=5, recovery_timeout=30.0, name="RPC")

    async def close(self):
        await self.client.close()

    async def _call(self, method: str, *args, **kwargs) -> Any:
        """Run an AsyncClient method with timeout and circuit breaker. Raises NetworkException."""
        if not self.circuit_breaker.can_execute():
            raise NetworkException(
                "RPC circuit open", method=method, retry_after=f"{self.circuit_breaker.retry_after():.1f}s"
            )

        try:
            result = await asyncio.wait_for(
                getattr(self.client, method)(*args, **kwargs),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            self.circuit_breaker.record_failure()
            raise NetworkException("RPC timeout", method=method, timeout=self.timeout) from e
        except Exception as e:
            self.circuit_breaker.record_failure()
            raise NetworkException("RPC call failed", method=method, error=str(e)) from e

        self.circuit_breaker.record_success()
        return result

    @async_retry(max_attempts=3, delay=1.0, exceptions=(NetworkException,))
    async def check_connection(self) -> str:
        """Confirm the endpoint answers. Returns the node's solana-core version."""
        resp = await self._call("get_version")
        version = resp.value.solana_core
        logger.info(f"✅ Connected to Solana RPC {self.settings.RPC_URL} (solana-core {version})")
        return version

    async def get_latest_signature(self, address: str) -> Optional[str]:
        try:
            resp = await self._call(
                "get_signatures_for_address", Pubkey.from_string(address), limit=1, commitment=Confirmed
            )
        except (NetworkException, ValueError) as e:
            logger.warning(f"Signature lookup failed for {address}: {e}")
            return None
        if not resp.value:
            return None
        return str(resp.value[0].signature)

    async def get_transaction(self, signature: str) -> Optional[TransactionSnapshot]:
        try:
            resp = await self._call(
                "get_transaction",
                Signature.from_string(signature),
                encoding="json",
                commitment=Confirmed,
                max_supported_transaction_version=0,
            )
        except (NetworkException, ValueError) as e:
            logger.warning(f"Transaction fetch failed for {signature}: {e}")
            return None
        if resp.value is None:
            return None

        try:
            return parse_transaction_json(signature, json.loads(resp.value.to_json()))
        except ValidationException as e:
            logger.warning(f"Could not parse transaction {signature}: {e}")
            return None

    async def _account_data(self, address: str) -> Optional[bytes]:
        resp = await self._call("get_account_info", Pubkey.from_string(address))
        if resp.value is None:
            return None
        return bytes(resp.value.data)

    async def get_mint_info(self, mint: str) -> Optional[MintInfo]:
        try:
            data = await self._account_data(mint)
            if data is None:
                logger.warning(f"Mint account {mint} not found")
                return None
            return decode_mint_info(data)
        except (NetworkException, ValidationException, ValueError) as e:
            logger.warning(f"Mint info unavailable for {mint}: {e}")
            return None

    async def get_pool_reserves(self, pool_id: str) -> Optional[PoolReserves]:
        try:
            data = await self._account_data(pool_id)
            if data is None:
                logger.warning(f"Pool account {pool_id} not found")
                return None
            pool = decode_raydium_pool(data)

            if pool["quote_mint"] == WSOL_MINT:
                native_vault, other_vault = pool["quote_vault"], pool["base_vault"]
            elif pool["base_mint"] == WSOL_MINT:
                native_vault, other_vault = pool["base_vault"], pool["quote_vault"]
            else:
                logger.warning(f"Pool {pool_id} has no WSOL side")
                return None

            native_resp, other_resp = await asyncio.gather(
                self._call("get_token_account_balance", Pubkey.from_string(native_vault)),
                self._call("get_token_account_balance", Pubkey.from_string(other_vault)),
            )
            native, other = native_resp.value, other_resp.value
            return PoolReserves(
                native_reserve=_ui_amount(native.amount, native.decimals),
                other_reserve=_ui_amount(other.amount, other.decimals),
            )
        except (NetworkException, ValidationException, ValueError, AttributeError) as e:
            logger.warning(f"Reserves unavailable for {pool_id}: {e}")
            return None

    async def get_current_price(self, pool_id: str) -> Optional[float]:
        """SOL per token from vault reserves, falling back to the off-chain source."""
        reserves = await self.get_pool_reserves(pool_id)
        if reserves is not None and reserves.other_reserve > 0 and reserves.native_reserve > 0:
            return reserves.native_reserve / reserves.other_reserve

        if self.fallback_price is not None:
            try:
                price = await self.fallback_price(pool_id)
            except Exception as e:
                logger.warning(f"Fallback price lookup failed for {pool_id}: {e}")
                return None
            if price:
                logger.debug(f"Using fallback price for {pool_id}: {price}")
                return price
        return None
