"""Upstream adapters: one method per provider resource.

Transport and HTTP failures raise; HTTP 200 payloads are returned untouched, including
Birdeye's ``{"success": false}`` business errors, which callers detect during extraction.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from .transport import get_json


_LOGGER = logging.getLogger("tokenscope.providers")

MORALIS_BASE_URL = "https://deep-index.moralis.io/api/v2.2"
BIRDEYE_BASE_URL = "https://public-api.birdeye.so"
BSC_CHAIN_ID = "0x38"
DEFAULT_TIMEOUT = 30.0


class ProviderNotConfigured(RuntimeError):
    """Raised when an adapter is called without its API key."""


class _ProviderClient:
    name = "provider"
    base_url = ""

    def __init__(
        self,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_key = api_key
        self.timeout = timeout
        self.client = client

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _headers(self, **extra: str) -> Dict[str, str]:
        raise NotImplementedError

    async def _get(self, resource: str, path: str, params: Dict[str, Any], **headers: str) -> Any:
        if not self.api_key:
            raise ProviderNotConfigured(f"{self.name} api key not configured")
        url = f"{self.base_url}{path}"
        try:
            return await get_json(
                url,
                headers=self._headers(**headers),
                params=params,
                timeout=self.timeout,
                client=self.client,
            )
        except httpx.HTTPStatusError as exc:
            _LOGGER.warning(
                "%s %s failed status=%s body=%s",
                self.name,
                resource,
                exc.response.status_code,
                exc.response.text[:300],
            )
            raise
        except httpx.HTTPError as exc:
            _LOGGER.warning("%s %s failed error=%s", self.name, resource, exc.__class__.__name__)
            raise


class MoralisClient(_ProviderClient):
    name = "moralis"
    base_url = MORALIS_BASE_URL

    def _headers(self, **extra: str) -> Dict[str, str]:
        return {"X-API-Key": self.api_key, "Accept": "application/json", **extra}

    async def token_metadata(self, address: str, chain: str = BSC_CHAIN_ID) -> Any:
        return await self._get(
            "metadata",
            "/erc20/metadata",
            {"chain": chain, "addresses[0]": address},
        )

    async def holder_stats(self, address: str, chain: str = BSC_CHAIN_ID) -> Any:
        return await self._get("holder_stats", f"/erc20/{address}/holders", {"chain": chain})

    async def token_owners(self, address: str, chain: str = "bsc", limit: int = 100) -> Any:
        return await self._get(
            "owners",
            f"/erc20/{address}/owners",
            {"chain": chain, "limit": limit, "order": "DESC"},
        )

    async def token_analytics(self, address: str, chain: str = "bsc") -> Any:
        return await self._get("analytics", f"/tokens/{address}/analytics", {"chain": chain})

    async def token_price(self, address: str, chain: str = "bsc") -> Any:
        return await self._get(
            "price",
            f"/erc20/{address}/price",
            {"chain": chain, "include": "percent_change"},
        )


class BirdeyeClient(_ProviderClient):
    name = "birdeye"
    base_url = BIRDEYE_BASE_URL

    def _headers(self, **extra: str) -> Dict[str, str]:
        headers = {"X-API-KEY": self.api_key, "accept": "application/json"}
        chain = extra.pop("chain", None)
        if chain:
            headers["x-chain"] = chain
        headers.update(extra)
        return headers

    async def top_traders(
        self,
        address: str,
        chain: str,
        time_frame: str = "24h",
        limit: int = 10,
        offset: int = 0,
        sort_by: str = "volume",
        sort_type: str = "desc",
    ) -> Any:
        params = {
            "address": address,
            "time_frame": time_frame,
            "limit": limit,
            "offset": offset,
            "sort_by": sort_by,
            "sort_type": sort_type,
        }
        return await self._get("top_traders", "/defi/v2/tokens/top_traders", params, chain=chain)

    async def token_metadata(self, address: str, chain: str = "solana") -> Any:
        return await self._get(
            "token_metadata", "/defi/v3/token/meta-data/single", {"address": address}, chain=chain
        )

    async def market_data(self, address: str, chain: str = "solana") -> Any:
        return await self._get(
            "market_data", "/defi/v3/token/market-data", {"address": address}, chain=chain
        )

    async def token_holders(self, address: str, chain: str = "solana", limit: int = 100, offset: int = 0) -> Any:
        return await self._get(
            "holders",
            "/defi/v3/token/holder",
            {"address": address, "limit": limit, "offset": offset},
            chain=chain,
        )

    async def trade_data(self, address: str, chain: str = "solana") -> Any:
        return await self._get(
            "trade_data", "/defi/v3/token/trade-data/single", {"address": address}, chain=chain
        )

    async def token_price(self, address: str, chain: str = "bsc") -> Any:
        return await self._get("price", "/defi/price", {"address": address}, chain=chain)
