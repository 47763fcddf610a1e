from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from wallet_tracker.config import AppSettings
from wallet_tracker.providers.helius import HeliusClient, RpcResult, RpcSuccess, describe


@dataclass
class SignatureFetcher:
    settings: AppSettings
    helius: HeliusClient

    async def fetch_result(self, wallet: str, limit: int | None = None) -> RpcResult:
        """Typed variant: the tagged provider result, with signatures extracted on success."""
        n = self.settings.clamp_limit(limit)
        res = await self.helius.get_signatures_for_address(wallet, n)
        if not isinstance(res, RpcSuccess):
            return res
        rows = res.result
        if not isinstance(rows, list):
            logger.debug("Unexpected signatures payload for {}: {}", wallet, rows)
            return RpcSuccess([])
        sigs: list[str] = []
        for row in rows[:n]:
            sig = row.get("signature") if isinstance(row, dict) else None
            if sig:
                sigs.append(sig)
        return RpcSuccess(sigs)

    async def fetch(self, wallet: str, limit: int | None = None) -> list[str]:
        # Newest first, as returned by the provider; empty on any failure
        res = await self.fetch_result(wallet, limit)
        if isinstance(res, RpcSuccess):
            return res.result
        logger.warning("Error fetching signatures for {}: {}", wallet, describe(res))
        return []

    async def latest(self, wallet: str) -> str | None:
        sigs = await self.fetch(wallet, limit=1)
        return sigs[0] if sigs else None
