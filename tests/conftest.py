from __future__ import annotations

import io
from types import SimpleNamespace
from typing import Any

import pytest
from rich.console import Console

WALLET = "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin"
SOL = "So11111111111111111111111111111111111111112"
USDC = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


def make_tx(fee: int = 5_000_000, err: Any = None, block_time: int | None = 1_700_000_000):
    meta = SimpleNamespace(fee=fee, err=err)
    return SimpleNamespace(block_time=block_time, transaction=SimpleNamespace(meta=meta))


def png_bytes(color=(255, 0, 0, 255), size=(4, 4)) -> bytes:
    from PIL import Image

    buf = io.BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return buf.getvalue()


def swap_payload(sig: str, sol_in: bool = True) -> dict[str, Any]:
    native = {"account": WALLET, "amount": "1500000000"}
    token = [
        {
            "userAccount": WALLET,
            "mint": USDC,
            "rawTokenAmount": {"tokenAmount": "250000000", "decimals": 6},
        }
    ]
    swap = (
        {"nativeInput": native, "tokenOutputs": token}
        if sol_in
        else {"tokenInputs": token, "nativeOutput": native}
    )
    return {"signature": sig, "type": "SWAP", "source": "JUPITER", "events": {"swap": swap}}


class FakeHelius:
    """Stands in for HeliusClient; every method returns a tagged result."""

    def __init__(self, signatures=None, txs=None, parsed=None, assets=None, images=None):
        from wallet_tracker.providers.helius import RpcSuccess

        self.signatures = signatures if signatures is not None else RpcSuccess([])
        self.txs = txs or {}
        self.parsed = parsed or {}
        self.assets = assets or {}
        self.images = images or {}
        self.calls: list[tuple[str, Any]] = []
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        self.closed = True

    async def get_signatures_for_address(self, wallet, limit):
        from wallet_tracker.providers.helius import RpcSuccess

        self.calls.append(("sigs", limit))
        res = self.signatures
        if isinstance(res, RpcSuccess) and isinstance(res.result, list):
            return RpcSuccess(res.result[:limit])
        return res

    async def get_transaction(self, signature):
        from wallet_tracker.providers.helius import RpcSuccess

        self.calls.append(("tx", signature))
        return RpcSuccess(self.txs.get(signature))

    async def parse_transactions(self, signatures):
        from wallet_tracker.providers.helius import RpcSuccess

        self.calls.append(("parse", signatures[0]))
        found = self.parsed.get(signatures[0])
        return RpcSuccess([found] if found else [])

    async def get_asset(self, mint):
        from wallet_tracker.providers.helius import RpcProviderError, RpcSuccess

        self.calls.append(("asset", mint))
        if mint not in self.assets:
            return RpcProviderError("Asset Not Found", code=-32000)
        return RpcSuccess(self.assets[mint])

    async def fetch_image(self, url):
        from wallet_tracker.providers.helius import RpcProviderError, RpcSuccess

        self.calls.append(("image", url))
        if url not in self.images:
            return RpcProviderError(f"image {url}: HTTP 404", code=404)
        return RpcSuccess(self.images[url])


@pytest.fixture
def settings(monkeypatch):
    from wallet_tracker.config import AppSettings

    monkeypatch.delenv("HELIUS_API_KEY", raising=False)
    monkeypatch.delenv("DEBUG", raising=False)
    return AppSettings(
        _env_file=None,
        helius_api_key="test-key",
        reconnect_delay_sec=5.0,
        reconnect_max_delay_sec=5.0,
        heartbeat_interval_sec=30.0,
        splash_seconds=0,
    )


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=140, color_system=None, force_terminal=False)


def output(console: Console) -> str:
    return console.file.getvalue()
