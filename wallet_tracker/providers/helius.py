from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Any, Union

import httpx
from loguru import logger
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.core import RPCException
from solders.signature import Signature

from wallet_tracker.config import AppSettings


@dataclass(frozen=True)
class RpcSuccess:
    result: Any


@dataclass(frozen=True)
class RpcProviderError:
    message: str
    code: int | None = None


@dataclass(frozen=True)
class RpcTransportError:
    message: str


RpcResult = Union[RpcSuccess, RpcProviderError, RpcTransportError]


def describe(res: RpcResult) -> str:
    if isinstance(res, RpcProviderError):
        return f"provider error {res.code}: {res.message}" if res.code is not None else res.message
    if isinstance(res, RpcTransportError):
        return f"transport error: {res.message}"
    return "ok"


class HeliusClient:
    """Thin async wrapper over the Helius JSON-RPC and parsed-transactions endpoints.

    Every call returns an ``RpcResult``; nothing here raises on provider or
    network failure.
    """

    def __init__(
        self,
        settings: AppSettings,
        http: httpx.AsyncClient | None = None,
        solana: AsyncClient | None = None,
    ):
        self.settings = settings
        self.http = http or httpx.AsyncClient(timeout=settings.http_timeout_sec)
        self.solana = solana or AsyncClient(settings.rpc_url, timeout=settings.http_timeout_sec)
        self._ids = itertools.count(1)

    async def __aenter__(self) -> HeliusClient:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.http.aclose()
        await self.solana.close()

    async def call(self, method: str, params: Any) -> RpcResult:
        payload = {
            "jsonrpc": "2.0",
            "id": f"wallet-tracker-{next(self._ids)}",
            "method": method,
            "params": params,
        }
        try:
            r = await self.http.post(self.settings.rpc_url, json=payload)
        except httpx.HTTPError as e:
            return RpcTransportError(f"{method}: {e!r}")
        if r.status_code != 200:
            # 401/429 land here; callers treat them like any other provider error
            return RpcProviderError(r.text[:200] or r.reason_phrase, code=r.status_code)
        try:
            body = r.json()
        except ValueError:
            return RpcProviderError(f"{method}: malformed JSON response")
        if not isinstance(body, dict):
            return RpcProviderError(f"{method}: unexpected response shape")
        err = body.get("error")
        if err:
            if isinstance(err, dict):
                return RpcProviderError(str(err.get("message") or err), code=err.get("code"))
            return RpcProviderError(str(err))
        if "result" not in body:
            return RpcProviderError(f"{method}: response has no result")
        return RpcSuccess(body["result"])

    async def get_signatures_for_address(self, wallet: str, limit: int) -> RpcResult:
        return await self.call("getSignaturesForAddress", [wallet, {"limit": limit}])

    async def get_asset(self, mint: str) -> RpcResult:
        return await self.call(
            "getAsset",
            {
                "id": mint,
                "displayOptions": {
                    "showFungible": True,
                    "showInscription": True,
                    "showCollectionMetadata": True,
                },
            },
        )

    async def get_transaction(self, signature: str) -> RpcResult:
        try:
            sig = Signature.from_string(signature)
        except ValueError:
            return RpcProviderError(f"malformed signature: {signature}")
        try:
            resp = await self.solana.get_transaction(
                sig, encoding="jsonParsed", max_supported_transaction_version=0
            )
        except RPCException as e:
            return RpcProviderError(str(e))
        except SolanaRpcException as e:
            return RpcTransportError(e.error_msg)
        except httpx.HTTPError as e:
            return RpcTransportError(repr(e))
        return RpcSuccess(resp.value)

    async def parse_transactions(self, signatures: list[str]) -> RpcResult:
        try:
            r = await self.http.post(
                self.settings.transactions_url, json={"transactions": signatures}
            )
        except httpx.HTTPError as e:
            return RpcTransportError(f"parse transactions: {e!r}")
        if r.status_code != 200:
            return RpcProviderError(r.text[:200] or r.reason_phrase, code=r.status_code)
        try:
            body = r.json()
        except ValueError:
            return RpcProviderError("parse transactions: malformed JSON response")
        if not isinstance(body, list):
            logger.debug("Unexpected parsed-transactions payload: {}", body)
            return RpcProviderError("parse transactions: unexpected response shape")
        return RpcSuccess(body)

    async def fetch_image(self, url: str) -> RpcResult:
        try:
            r = await self.http.get(url, follow_redirects=True)
        except httpx.HTTPError as e:
            return RpcTransportError(f"image {url}: {e!r}")
        if r.status_code != 200:
            return RpcProviderError(f"image {url}: HTTP {r.status_code}", code=r.status_code)
        if not r.content:
            return RpcProviderError(f"image {url}: empty body")
        return RpcSuccess(r.content)
