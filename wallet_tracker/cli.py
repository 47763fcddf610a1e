from __future__ import annotations

import argparse
import asyncio
import sys
import time

from loguru import logger
from rich.console import Console

from wallet_tracker.assets import AssetLookup, TokenImages
from wallet_tracker.chains.signatures import SignatureFetcher
from wallet_tracker.chains.subscription import WalletSubscription
from wallet_tracker.config import AppSettings, load_settings
from wallet_tracker.display.cards import error_panel, help_panel, splash_panel
from wallet_tracker.errors import ConfigError, TrackerError, parse_wallet
from wallet_tracker.parsers.swaps import HeliusSwapParser
from wallet_tracker.providers.helius import HeliusClient, RpcSuccess, describe
from wallet_tracker.render import RenderOutcome, TransactionRenderer

__version__ = "2.0.0"
PROG = "solana-wallet-tracker"


class TrackerArgumentParser(argparse.ArgumentParser):
    console: Console | None = None

    def error(self, message):
        console = self.console or Console(stderr=True)
        console.print(
            error_panel(f"Error: {message}\n\nRun {PROG} --help to see available commands")
        )
        sys.exit(1)


def build_parser(console: Console | None = None) -> argparse.ArgumentParser:
    p = TrackerArgumentParser(
        prog=PROG, description="Monitor and analyse Solana wallet transactions."
    )
    p.console = console
    p.add_argument("-v", "--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--no-splash", action="store_true", help="Skip the splash screen")
    sub = p.add_subparsers(dest="command")

    f = sub.add_parser("fetch", help="Fetch and analyse recent transactions")
    f.add_argument("wallet", help="Wallet address to fetch transactions for")
    f.add_argument(
        "-l", "--limit", type=int, default=None, help="Number of transactions (default 5, max 100)"
    )

    t = sub.add_parser("track", help="Monitor wallet transactions in real time")
    t.add_argument("wallet", help="Wallet address to track transactions for")
    return p


def setup_logging(settings: AppSettings) -> None:
    logger.remove()
    try:
        logger.add(sys.stderr, level=settings.log_level.upper())
    except ValueError as e:
        logger.add(sys.stderr, level="INFO")
        raise ConfigError(f"Invalid log level {settings.log_level!r}: {e}") from e


def build_pipeline(
    settings: AppSettings, helius: HeliusClient, console: Console
) -> tuple[SignatureFetcher, TransactionRenderer]:
    fetcher = SignatureFetcher(settings=settings, helius=helius)
    renderer = TransactionRenderer(
        settings=settings,
        helius=helius,
        parser=HeliusSwapParser(helius=helius),
        assets=AssetLookup(settings=settings, helius=helius),
        images=TokenImages(settings=settings, helius=helius),
        console=console,
    )
    return fetcher, renderer


async def fetch_transactions(
    settings: AppSettings,
    wallet: str,
    limit: int | None,
    console: Console,
    helius: HeliusClient | None = None,
) -> list[RenderOutcome]:
    async with helius or HeliusClient(settings) as h:
        fetcher, renderer = build_pipeline(settings, h, console)
        with console.status("Fetching transactions..."):
            res = await fetcher.fetch_result(wallet, limit)
        if not isinstance(res, RpcSuccess):
            logger.warning("Error fetching transactions for {}: {}", wallet, describe(res))
            console.print(f"[red]✖ Error fetching transactions: {describe(res)}[/red]")
            return []
        if not res.result:
            console.print("[red]✖ No transactions found[/red]")
            return []
        console.print(f"[green]✔ Fetched {len(res.result)} transactions[/green]")
        outcomes = []
        for sig in res.result:
            outcomes.append(await renderer.render(sig, wallet))
        return outcomes


async def track_wallet(
    settings: AppSettings,
    wallet: str,
    console: Console,
    helius: HeliusClient | None = None,
    **subscription_kwargs,
) -> WalletSubscription:
    async with helius or HeliusClient(settings) as h:
        fetcher, renderer = build_pipeline(settings, h, console)

        async def on_signature(sig: str) -> None:
            await renderer.render(sig, wallet)

        subscription = WalletSubscription(
            settings=settings,
            wallet=wallet,
            fetcher=fetcher,
            handler=on_signature,
            **subscription_kwargs,
        )
        await subscription.run()
        return subscription


def show_splash(console: Console, settings: AppSettings) -> None:
    console.clear()
    console.print(splash_panel(max(40, console.width - 8)))
    if settings.splash_seconds > 0:
        time.sleep(settings.splash_seconds)


def handle_error(console: Console, context: str, error: Exception, debug: bool = False) -> int:
    console.print(error_panel(f"{context}:\n{error}"))
    if debug:
        logger.opt(exception=error).error(context)
    return 1


def main(argv: list[str] | None = None) -> int:
    console = Console()
    args = build_parser(console).parse_args(argv)
    try:
        settings = load_settings()
        setup_logging(settings)
    except ConfigError as e:
        return handle_error(console, "Configuration error", e)

    if not args.no_splash:
        show_splash(console, settings)
    if not args.command:
        console.print(help_panel(PROG))
        return 0

    context = f"{args.command.title()} command failed"
    try:
        wallet = parse_wallet(args.wallet)
        settings.require_api_key()
        if args.command == "fetch":
            asyncio.run(fetch_transactions(settings, wallet, args.limit, console))
        else:
            asyncio.run(track_wallet(settings, wallet, console))
    except TrackerError as e:
        return handle_error(console, context, e, settings.debug)
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped.[/yellow]")
    except Exception as e:
        logger.exception("Unhandled error in {} command", args.command)
        return handle_error(console, context, e)
    return 0


if __name__ == "__main__":
    sys.exit(main())
