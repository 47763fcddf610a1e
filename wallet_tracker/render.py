from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum

from loguru import logger
from rich.console import Console

from wallet_tracker.assets import AssetInfo, AssetLookup, TokenImages
from wallet_tracker.config import LAMPORTS_PER_SOL, AppSettings
from wallet_tracker.display.cards import (
    CardLeg,
    TransactionCard,
    build_card,
    build_transfers_card,
)
from wallet_tracker.display.format import format_timestamp, shorten
from wallet_tracker.parsers.swaps import HeliusSwapParser, TokenLeg, Trade
from wallet_tracker.providers.helius import HeliusClient, RpcSuccess, describe


class RenderOutcome(str, Enum):
    RENDERED = "rendered"
    SKIPPED_LOW_FEE = "skipped_low_fee"
    NOT_FOUND = "not_found"
    NO_TRADES = "no_trades"
    FAILED = "failed"


def classify(trade: Trade, sol_mint: str) -> str:
    return "BUY" if trade.input.mint == sol_mint else "SELL"


def _card_leg(leg: TokenLeg, info: AssetInfo) -> CardLeg:
    return CardLeg(
        name=info.name,
        mint=leg.mint,
        amount=leg.amount or 0.0,
        price=leg.price if leg.price is not None else info.price_usd,
        image_url=info.image_url,
    )


@dataclass
class TransactionRenderer:
    settings: AppSettings
    helius: HeliusClient
    parser: HeliusSwapParser
    assets: AssetLookup
    console: Console
    images: TokenImages | None = None

    async def render(self, signature: str, wallet: str) -> RenderOutcome:
        if not signature:
            logger.error("Invalid signature received: {!r}", signature)
            return RenderOutcome.FAILED
        try:
            with self.console.status(f"Parsing transaction {shorten(signature, 8, 8)}..."):
                return await self._render(signature, wallet)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Error parsing transaction {}: {}", signature, e)
            self.console.print(f"[red]✖ Error parsing transaction {signature}[/red]")
            return RenderOutcome.FAILED

    async def _render(self, signature: str, wallet: str) -> RenderOutcome:
        res = await self.helius.get_transaction(signature)
        if not isinstance(res, RpcSuccess):
            logger.warning("Could not load transaction {}: {}", signature, describe(res))
            return RenderOutcome.FAILED
        tx = res.result
        meta = tx.transaction.meta if tx is not None else None
        if tx is None or meta is None:
            self.console.print(f"[red]✖ Transaction not found: {signature}[/red]")
            return RenderOutcome.NOT_FOUND

        fee_sol = meta.fee / LAMPORTS_PER_SOL
        if fee_sol < self.settings.min_fee_sol:
            logger.info("Skipping low-value transaction {} (fee {} SOL)", signature, fee_sol)
            self.console.print(f"[yellow]ℹ Skipping low-value transaction: {signature}[/yellow]")
            return RenderOutcome.SKIPPED_LOW_FEE

        timestamp = format_timestamp(tx.block_time)
        activity = await self.parser.parse(signature, wallet)
        if not activity.trades:
            if activity.transfers:
                mints = {t.mint for t in activity.transfers}
                infos = await asyncio.gather(*(self.assets.get(m) for m in mints))
                names = {i.mint: i.name for i in infos if not i.placeholder}
                self.console.print(
                    build_transfers_card(signature, wallet, activity.transfers, names, timestamp)
                )
            else:
                self.console.print(f"[dim]No trades found in {signature}[/dim]")
            return RenderOutcome.NO_TRADES

        for trade in activity.trades:
            info_in, info_out = await asyncio.gather(
                self.assets.get(trade.input.mint), self.assets.get(trade.output.mint)
            )
            kind = classify(trade, self.settings.sol_mint)
            token_info = info_out if kind == "BUY" else info_in
            image = await self.images.get(token_info.image_url) if self.images else None
            card = TransactionCard(
                type=kind,
                input=_card_leg(trade.input, info_in),
                output=_card_leg(trade.output, info_out),
                status="failed" if meta.err else "success",
                fee=f"{fee_sol:.6f}",
                timestamp=timestamp,
                signature=signature,
                token_image=image,
            )
            self.console.print(build_card(card, self.settings.token_image_px))
        self.console.print("[green]✔ Transaction parsed successfully[/green]")
        return RenderOutcome.RENDERED
