from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from pool_sniper.config import Settings


class DexScreenerClient:
    """Off-chain price source, used when pool reserves cannot be read."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        self.settings = settings
        self.base_url = settings.DEXSCREENER_API_BASE.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=settings.API_TIMEOUT_SEC)
        self.logger = logging.getLogger("pool_sniper.dexscreener")

    async def close(self) -> None:
        await self.client.aclose()

    async def get_pair(self, pool_id: str) -> dict[str, Any] | None:
        url = f"{self.base_url}/latest/dex/pairs/solana/{pool_id}"
        payload = await self._request(url, log_level="debug")
        if not isinstance(payload, dict):
            return None
        pair = payload.get("pair")
        if isinstance(pair, dict):
            return pair
        pairs = payload.get("pairs")
        if isinstance(pairs, list) and pairs and isinstance(pairs[0], dict):
            return pairs[0]
        return None

    async def get_pool_price(self, pool_id: str) -> float | None:
        """Pair price in SOL (``priceNative``), or None."""
        pair = await self.get_pair(pool_id)
        if not pair:
            return None
        try:
            price = float(pair.get("priceNative") or 0)
        except (TypeError, ValueError):
            self.logger.debug("Unparseable priceNative for %s: %r", pool_id, pair.get("priceNative"))
            return None
        return price if price > 0 else None

    async def _request(
        self,
        url: str,
        log_level: str = "warning",
    ) -> dict[str, Any] | list | None:
        max_retries = max(1, self.settings.DEXSCREENER_MAX_RETRIES)
        backoff = max(0.5, self.settings.DEXSCREENER_RETRY_BACKOFF_SEC)
        for attempt in range(max_retries):
            try:
                response = await self.client.get(url)
                if response.status_code == 429:
                    retry_after = response.headers.get("Retry-After")
                    delay = float(retry_after) if retry_after else backoff * (attempt + 1)
                    self.logger.warning("DexScreener rate limited, retrying in %.1fs", delay)
                    await asyncio.sleep(delay)
                    continue
                response.raise_for_status()
                return response.json()
            except (httpx.HTTPError, ValueError) as exc:
                if attempt < max_retries - 1:
                    await asyncio.sleep(backoff)
                    continue
                getattr(self.logger, log_level)(
                    "DexScreener request failed for %s: %s", url, exc
                )
                return None
        return None
