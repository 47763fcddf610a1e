from __future__ import annotations

from solders.pubkey import Pubkey


class TrackerError(Exception):
    """Base class for errors surfaced to the command line."""


class ConfigError(TrackerError):
    pass


class InvalidWalletError(TrackerError):
    pass


def parse_wallet(address: str | None) -> str:
    if not address:
        raise InvalidWalletError("A wallet address is required.")
    address = address.strip()
    try:
        Pubkey.from_string(address)
    except ValueError as e:
        raise InvalidWalletError(f"Invalid Solana wallet address: {address}") from e
    return address
