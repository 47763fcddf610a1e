from __future__ import annotations

import io
from dataclasses import dataclass

import pyfiglet
from loguru import logger
from PIL import Image
from rich import box
from rich.align import Align
from rich.console import Group, RenderableType
from rich.constrain import Constrain
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich_pixels import Pixels

from wallet_tracker.display.format import (
    format_number,
    shorten,
    token_url,
    truncate_name,
    tx_url,
)
from wallet_tracker.parsers.swaps import Transfer

TOKEN_GLYPH = "🪙"


@dataclass
class CardLeg:
    name: str
    mint: str
    amount: float
    price: float | None
    image_url: str


@dataclass
class TransactionCard:
    type: str  # BUY | SELL
    input: CardLeg
    output: CardLeg
    status: str  # success | failed
    fee: str
    timestamp: str
    signature: str
    token_image: bytes | None = None

    @property
    def is_buy(self) -> bool:
        return self.type == "BUY"

    @property
    def token_leg(self) -> CardLeg:
        return self.output if self.is_buy else self.input

    @property
    def sol_leg(self) -> CardLeg:
        return self.input if self.is_buy else self.output


def _leg_line(leg: CardLeg, incoming: bool) -> str:
    arrow, color = ("▼", "green") if incoming else ("▲", "red")
    price = format_number(leg.price) if leg.price is not None else "N/A"
    mint = f"[link={token_url(leg.mint)}]{shorten(leg.mint)}[/link]"
    return (
        f"[{color}]{arrow} {escape(truncate_name(leg.name))} | "
        f"{format_number(leg.amount)} @ ${price} | {mint}[/{color}]"
    )


def token_image(data: bytes | None, size: int = 16) -> RenderableType:
    """Inline pixel rendering of a token logo, or the coin glyph when it can't be drawn."""
    if data:
        try:
            with Image.open(io.BytesIO(data)) as img:
                return Pixels.from_image(img.convert("RGBA"), resize=(size, size))
        except (OSError, ValueError) as e:
            logger.debug("Cannot render token image: {!r}", e)
    return Text(TOKEN_GLYPH)


def build_card(card: TransactionCard, image_px: int = 16) -> Panel:
    color = "green" if card.is_buy else "red"
    status = "✅" if card.status == "success" else "❌"
    token = card.token_leg

    header = Table.grid(padding=(0, 1))
    header.add_row(
        Constrain(token_image(card.token_image, image_px), width=image_px * 2),
        Text.from_markup(f"[link={token.image_url}]{escape(token.name)}[/link]"),
    )
    lines = [
        _leg_line(token, incoming=card.is_buy),
        _leg_line(card.sol_leg, incoming=not card.is_buy),
        f"{status} | [yellow]Fee: {card.fee} SOL[/yellow] | "
        f"[cyan]Sig: [link={tx_url(card.signature)}]{card.signature[:8]}...[/link][/cyan]",
    ]
    body = Group(
        Text.from_markup(f"[bold {color}]{card.type}[/bold {color}] | [blue]{card.timestamp}[/blue]"),
        header,
        Text.from_markup("\n".join(lines)),
    )
    return Panel(body, box=box.ROUNDED, border_style=color, padding=1, expand=False)


def build_transfers_card(
    signature: str, wallet: str, transfers: list[Transfer], names: dict[str, str], timestamp: str
) -> Panel:
    lines = [f"[bold blue]TRANSFER[/bold blue] | [blue]{timestamp}[/blue]"]
    for t in transfers:
        incoming = t.to_account == wallet
        arrow, color = ("▼", "green") if incoming else ("▲", "red")
        other = t.from_account if incoming else t.to_account
        name = escape(truncate_name(names.get(t.mint, shorten(t.mint))))
        lines.append(
            f"[{color}]{arrow} {name} | {format_number(t.amount)} | "
            f"{'from' if incoming else 'to'} {shorten(other or '?')}[/{color}]"
        )
    lines.append(
        f"[cyan]Sig: [link={tx_url(signature)}]{signature[:8]}...[/link][/cyan]"
    )
    return Panel("\n".join(lines), box=box.ROUNDED, border_style="blue", padding=1, expand=False)


def error_panel(message: str, title: str = "❌ Error") -> Panel:
    return Panel(
        Text(message, style="red"),
        box=box.ROUNDED,
        border_style="red",
        title=title,
        padding=1,
        expand=False,
    )


def splash_panel(width: int = 100) -> Panel:
    banner = pyfiglet.figlet_format("Solana Wallet Tracker", font="standard", width=width)
    title = Text(banner.rstrip("\n"), style="bold magenta", no_wrap=True)
    return Panel(Align.center(title), box=box.DOUBLE, border_style="cyan", padding=1)


def help_panel(prog: str) -> Panel:
    body = Group(
        Text.from_markup("[bold green]🌟 Solana Wallet Transaction Tracker[/bold green]\n"),
        Text.from_markup(
            "[dim]Monitor and analyse Solana wallet transactions from the terminal.[/dim]\n"
        ),
        Text.from_markup(
            "[yellow]Commands:[/yellow]\n"
            "  [green]fetch[/green] [dim]<wallet>[/dim]     Fetch and analyse recent transactions\n"
            "  [green]track[/green] [dim]<wallet>[/dim]     Monitor wallet transactions in real time\n"
        ),
        Text.from_markup(
            "[yellow]Options:[/yellow]\n"
            "  [green]-l, --limit[/green] [dim]<number>[/dim]  Transactions to fetch (default 5, max 100)\n"
            "  [green]--no-splash[/green]          Skip the splash screen\n"
            "  [green]-h, --help[/green]           Show this help\n"
            "  [green]-v, --version[/green]        Show the version\n"
        ),
        Text.from_markup(
            "[yellow]Examples:[/yellow]\n"
            f"  $ {prog} fetch [blue]5ZWj7a1f8tWkjBESHKgrLmXshuXxqeGWh9r9xtHyhbEy[/blue] -l 10\n"
            f"  $ {prog} track [blue]5ZWj7a1f8tWkjBESHKgrLmXshuXxqeGWh9r9xtHyhbEy[/blue]\n"
        ),
        Text.from_markup(
            "[yellow]Environment:[/yellow]\n"
            "  [green]HELIUS_API_KEY[/green]       Your Helius API key (required)"
        ),
    )
    return Panel(
        body,
        box=box.ROUNDED,
        border_style="green",
        title="📊 Solana Wallet Tracker",
        padding=1,
        expand=False,
    )
