from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from wallet_tracker.config import LAMPORTS_PER_SOL, SOL_MINT
from wallet_tracker.providers.helius import HeliusClient, RpcSuccess, describe


@dataclass
class TokenLeg:
    mint: str
    amount: float
    price: float | None = None


@dataclass
class Trade:
    input: TokenLeg
    output: TokenLeg
    source: str | None = None


@dataclass
class Transfer:
    mint: str
    amount: float
    from_account: str | None
    to_account: str | None


@dataclass
class ParsedActivity:
    trades: list[Trade] = field(default_factory=list)
    transfers: list[Transfer] = field(default_factory=list)


def _native_leg(raw: Any) -> TokenLeg | None:
    if not isinstance(raw, dict) or raw.get("amount") in (None, "", "0", 0):
        return None
    try:
        lamports = int(raw["amount"])
    except (TypeError, ValueError):
        return None
    return TokenLeg(mint=SOL_MINT, amount=lamports / LAMPORTS_PER_SOL)


def _token_leg(rows: Any) -> TokenLeg | None:
    if not isinstance(rows, list):
        return None
    for row in rows:
        if not isinstance(row, dict) or not row.get("mint"):
            continue
        raw = row.get("rawTokenAmount") or {}
        try:
            amount = int(raw.get("tokenAmount") or 0) / (10 ** int(raw.get("decimals") or 0))
        except (TypeError, ValueError):
            amount = 0.0
        return TokenLeg(mint=row["mint"], amount=amount)
    return None


def trades_from_parsed(tx: dict[str, Any]) -> list[Trade]:
    swap = (tx.get("events") or {}).get("swap")
    if not isinstance(swap, dict):
        return []
    leg_in = _native_leg(swap.get("nativeInput")) or _token_leg(swap.get("tokenInputs"))
    leg_out = _native_leg(swap.get("nativeOutput")) or _token_leg(swap.get("tokenOutputs"))
    if not (leg_in and leg_out):
        logger.debug("Incomplete swap event in {}: {}", tx.get("signature"), swap)
        return []
    return [Trade(input=leg_in, output=leg_out, source=tx.get("source"))]


def transfers_from_parsed(tx: dict[str, Any], wallet: str) -> list[Transfer]:
    out: list[Transfer] = []
    for t in tx.get("tokenTransfers") or []:
        if wallet not in (t.get("fromUserAccount"), t.get("toUserAccount")):
            continue
        out.append(
            Transfer(
                mint=t.get("mint") or "",
                amount=float(t.get("tokenAmount") or 0.0),
                from_account=t.get("fromUserAccount"),
                to_account=t.get("toUserAccount"),
            )
        )
    for t in tx.get("nativeTransfers") or []:
        if wallet not in (t.get("fromUserAccount"), t.get("toUserAccount")):
            continue
        out.append(
            Transfer(
                mint=SOL_MINT,
                amount=int(t.get("amount") or 0) / LAMPORTS_PER_SOL,
                from_account=t.get("fromUserAccount"),
                to_account=t.get("toUserAccount"),
            )
        )
    return out


@dataclass
class HeliusSwapParser:
    """Delegates DEX decoding to the provider's parsed-transactions API."""

    helius: HeliusClient

    async def parse(self, signature: str, wallet: str) -> ParsedActivity:
        res = await self.helius.parse_transactions([signature])
        if not isinstance(res, RpcSuccess):
            logger.warning("Trade parsing failed for {}: {}", signature, describe(res))
            return ParsedActivity()
        rows = [r for r in res.result if isinstance(r, dict)]
        if not rows:
            return ParsedActivity()
        tx = rows[0]
        return ParsedActivity(
            trades=trades_from_parsed(tx), transfers=transfers_from_parsed(tx, wallet)
        )
