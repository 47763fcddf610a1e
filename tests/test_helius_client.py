from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace
from typing import Any

import httpx


class FakeSolana:
    def __init__(self, value=None, exc: Exception | None = None):
        self.value = value
        self.exc = exc
        self.calls: list[tuple[Any, dict]] = []

    async def get_transaction(self, sig, **kwargs):
        self.calls.append((sig, kwargs))
        if self.exc:
            raise self.exc
        return SimpleNamespace(value=self.value)

    async def close(self):
        pass


def make_client(settings, handler, solana=None):
    from wallet_tracker.providers.helius import HeliusClient

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HeliusClient(settings, http=http, solana=solana or FakeSolana())


def test_signatures_request_envelope(settings):
    from wallet_tracker.providers.helius import RpcSuccess

    captured: dict[str, Any] = {}

    def handler(request: httpx.Request):
        captured["url"] = str(request.url)
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": [{"signature": "s1"}]})

    async def go():
        async with make_client(settings, handler) as c:
            return await c.get_signatures_for_address("WALLET", 7)

    res = asyncio.run(go())
    assert res == RpcSuccess([{"signature": "s1"}])
    assert captured["url"].endswith("/?api-key=test-key")
    body = captured["body"]
    assert body["jsonrpc"] == "2.0"
    assert body["method"] == "getSignaturesForAddress"
    assert body["params"] == ["WALLET", {"limit": 7}]
    assert body["id"]


def test_get_asset_params(settings):
    captured: dict[str, Any] = {}

    def handler(request: httpx.Request):
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"result": {"id": "M"}})

    async def go():
        async with make_client(settings, handler) as c:
            return await c.get_asset("M")

    asyncio.run(go())
    params = captured["body"]["params"]
    assert captured["body"]["method"] == "getAsset"
    assert params["id"] == "M"
    assert params["displayOptions"]["showFungible"] is True


def test_provider_error_is_tagged(settings):
    from wallet_tracker.providers.helius import RpcProviderError

    def handler(request):
        return httpx.Response(200, json={"error": {"code": -32602, "message": "Invalid param"}})

    async def go():
        async with make_client(settings, handler) as c:
            return await c.call("getSignaturesForAddress", [])

    res = asyncio.run(go())
    assert res == RpcProviderError("Invalid param", code=-32602)


def test_http_status_and_malformed_body(settings):
    from wallet_tracker.providers.helius import RpcProviderError

    def rate_limited(request):
        return httpx.Response(429, text="Too many requests")

    def garbage(request):
        return httpx.Response(200, text="<html>oops</html>")

    async def go(handler):
        async with make_client(settings, handler) as c:
            return await c.call("getAsset", {})

    res = asyncio.run(go(rate_limited))
    assert isinstance(res, RpcProviderError)
    assert res.code == 429
    res = asyncio.run(go(garbage))
    assert isinstance(res, RpcProviderError)
    assert "malformed" in res.message


def test_transport_error_is_tagged(settings):
    from wallet_tracker.providers.helius import RpcTransportError, describe

    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async def go():
        async with make_client(settings, handler) as c:
            return await c.call("getSignaturesForAddress", [])

    res = asyncio.run(go())
    assert isinstance(res, RpcTransportError)
    assert describe(res).startswith("transport error")


def test_parse_transactions_posts_signatures(settings):
    from wallet_tracker.providers.helius import RpcProviderError, RpcSuccess

    captured: dict[str, Any] = {}

    def handler(request):
        captured["url"] = str(request.url)
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json=[{"signature": "abc"}])

    async def go(h):
        async with make_client(settings, h) as c:
            return await c.parse_transactions(["abc"])

    res = asyncio.run(go(handler))
    assert res == RpcSuccess([{"signature": "abc"}])
    assert "/v0/transactions" in captured["url"]
    assert captured["body"] == {"transactions": ["abc"]}

    res = asyncio.run(go(lambda request: httpx.Response(200, json={"error": "bad"})))
    assert isinstance(res, RpcProviderError)


def test_get_transaction_uses_solana_client(settings):
    from solana.exceptions import SolanaRpcException
    from solana.rpc.core import RPCException

    from wallet_tracker.providers.helius import (
        RpcProviderError,
        RpcSuccess,
        RpcTransportError,
    )

    sig = "1" * 64
    tx = object()
    solana = FakeSolana(value=tx)

    async def go(sol, signature):
        async with make_client(settings, lambda r: httpx.Response(500), solana=sol) as c:
            return await c.get_transaction(signature)

    assert asyncio.run(go(solana, sig)) == RpcSuccess(tx)
    _, kwargs = solana.calls[0]
    assert kwargs["encoding"] == "jsonParsed"
    assert kwargs["max_supported_transaction_version"] == 0

    assert isinstance(asyncio.run(go(FakeSolana(), "not a signature")), RpcProviderError)
    rejected = FakeSolana(exc=RPCException({"code": -32602, "message": "Invalid param"}))
    assert isinstance(asyncio.run(go(rejected, sig)), RpcProviderError)

    # solana-py wraps transport failures with the provider and request body as context
    wrapped = SolanaRpcException(
        httpx.ConnectError("boom"), FakeSolana.get_transaction, solana, SimpleNamespace()
    )
    res = asyncio.run(go(FakeSolana(exc=wrapped), sig))
    assert isinstance(res, RpcTransportError)
    assert "ConnectError" in res.message


def test_fetch_image_returns_bytes_or_tagged_error(settings):
    from wallet_tracker.providers.helius import (
        RpcProviderError,
        RpcSuccess,
        RpcTransportError,
    )

    def handler(request: httpx.Request):
        if request.url.path == "/logo.png":
            return httpx.Response(200, content=b"\x89PNG-bytes")
        if request.url.path == "/down.png":
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(404)

    async def go(url):
        async with make_client(settings, handler) as c:
            return await c.fetch_image(url)

    assert asyncio.run(go("https://cdn.example/logo.png")) == RpcSuccess(b"\x89PNG-bytes")
    missing = asyncio.run(go("https://cdn.example/missing.png"))
    assert isinstance(missing, RpcProviderError)
    assert missing.code == 404
    assert isinstance(asyncio.run(go("https://cdn.example/down.png")), RpcTransportError)
