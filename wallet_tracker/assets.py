from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable

from loguru import logger

from wallet_tracker.config import AppSettings
from wallet_tracker.providers.helius import HeliusClient, RpcSuccess, describe

UNKNOWN_NAME = "Unknown"


@dataclass
class AssetInfo:
    mint: str
    name: str
    symbol: str | None
    image_url: str
    price_usd: float | None = None
    placeholder: bool = False


@dataclass
class TtlCache:
    ttl_sec: float
    clock: Callable[[], float] = time.monotonic
    _items: dict[str, tuple[float, Any]] = field(default_factory=dict)

    def get(self, key: str) -> Any | None:
        hit = self._items.get(key)
        if hit is None:
            return None
        stored_at, value = hit
        if self.clock() - stored_at >= self.ttl_sec:
            del self._items[key]
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        self._items[key] = (self.clock(), value)

    def __len__(self) -> int:
        return len(self._items)


def asset_from_payload(mint: str, payload: Any, default_icon: str) -> AssetInfo | None:
    if not isinstance(payload, dict):
        return None
    content = payload.get("content") or {}
    meta = content.get("metadata") or {}
    links = content.get("links") or {}
    token_info = payload.get("token_info") or {}
    price = (token_info.get("price_info") or {}).get("price_per_token")
    try:
        price_usd = float(price) if price is not None else None
    except (TypeError, ValueError):
        price_usd = None
    return AssetInfo(
        mint=mint,
        name=meta.get("name") or UNKNOWN_NAME,
        symbol=meta.get("symbol") or token_info.get("symbol"),
        image_url=links.get("image") or default_icon,
        price_usd=price_usd,
    )


@dataclass
class AssetLookup:
    """Per-mint metadata with a process-wide, time-bounded cache.

    Lookups never fail: provider errors degrade to a placeholder record that
    is not cached, so the next render tries again.
    """

    settings: AppSettings
    helius: HeliusClient
    cache: TtlCache | None = None

    def __post_init__(self):
        if self.cache is None:
            self.cache = TtlCache(ttl_sec=self.settings.asset_cache_ttl_sec)

    def placeholder(self, mint: str) -> AssetInfo:
        return AssetInfo(
            mint=mint,
            name=UNKNOWN_NAME,
            symbol=None,
            image_url=self.settings.default_token_icon,
            placeholder=True,
        )

    async def get(self, mint: str) -> AssetInfo:
        cached = self.cache.get(mint)
        if cached is not None:
            return cached
        try:
            res = await self.helius.get_asset(mint)
        except Exception as e:
            logger.warning("Error fetching asset info for {}: {}", mint, e)
            return self.placeholder(mint)
        if not isinstance(res, RpcSuccess):
            logger.warning("Error fetching asset info for {}: {}", mint, describe(res))
            return self.placeholder(mint)
        info = asset_from_payload(mint, res.result, self.settings.default_token_icon)
        if info is None:
            logger.debug("No asset metadata for {}", mint)
            return self.placeholder(mint)
        self.cache.set(mint, info)
        return info


@dataclass
class TokenImages:
    """Downloaded token artwork keyed by URL, shared by every card for an hour.

    A missing or broken image falls back to the default token icon; ``None``
    means neither could be fetched and the card shows a glyph instead.
    """

    settings: AppSettings
    helius: HeliusClient
    cache: TtlCache | None = None

    def __post_init__(self):
        if self.cache is None:
            self.cache = TtlCache(ttl_sec=self.settings.asset_cache_ttl_sec)

    async def _download(self, url: str) -> bytes | None:
        cached = self.cache.get(url)
        if cached is not None:
            return cached
        res = await self.helius.fetch_image(url)
        if not isinstance(res, RpcSuccess):
            logger.debug("Error downloading token image {}: {}", url, describe(res))
            return None
        self.cache.set(url, res.result)
        return res.result

    async def get(self, url: str | None) -> bytes | None:
        default = self.settings.default_token_icon
        data = await self._download(url or default)
        if data is None and url and url != default:
            data = await self._download(default)
        return data
