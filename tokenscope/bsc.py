"""BSC token bundle: Moralis for token data, Birdeye for top traders."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from .bundle import BscBundle
from .chains import BSC, normalize_address
from .extract import (
    BIRDEYE_ITEMS_EXTRACTORS,
    HOLDER_LIST_EXTRACTORS,
    METADATA_EXTRACTORS,
    OBJECT_EXTRACTORS,
    Outcome,
    payload_of,
    settle_all,
)
from .formatters import format_currency, format_percentage, safe_currency_suffix, safe_number_suffix
from .normalize import (
    BSC_HOLDER_WINDOWS,
    bsc_token_analytics,
    empty_holder_change,
    empty_holder_distribution,
    empty_holder_supply,
    empty_holders_by_acquisition,
    holder_distribution,
    holder_supply_concentration,
    market_cap_from_supply,
    normalize_top_traders,
    should_compute_holder_stats,
    to_number,
    to_int,
)
from .providers import BirdeyeClient, MoralisClient


_LOGGER = logging.getLogger("tokenscope.bsc")

EXPLORER_URL = "https://bscscan.com/token/{address}"
DEFAULT_DECIMALS = 18


class BscAggregator:
    def __init__(self, moralis: MoralisClient, birdeye: BirdeyeClient, holder_stats_mode: str = "auto") -> None:
        self.moralis = moralis
        self.birdeye = birdeye
        self.holder_stats_mode = holder_stats_mode

    async def _fetch_moralis_metadata(self, address: str) -> Any:
        return await self.moralis.token_metadata(address)

    async def _fetch_moralis_holder_stats(self, address: str) -> Any:
        return await self.moralis.holder_stats(address)

    async def _fetch_birdeye_top_traders(self, address: str) -> Any:
        return await self.birdeye.top_traders(address, chain=BSC)

    async def _fetch_moralis_analytics(self, address: str) -> Any:
        return await self.moralis.token_analytics(address)

    async def _fetch_moralis_price(self, address: str) -> Any:
        return await self.moralis.token_price(address)

    async def _fetch_moralis_owners(self, address: str) -> Any:
        return await self.moralis.token_owners(address)

    async def get_token_data_bundle(self, address: str) -> Optional[BscBundle]:
        address = normalize_address(BSC, address)
        mode = self.holder_stats_mode
        _LOGGER.info("bundle start chain=bsc address=%s holder_stats_mode=%s", address, mode)
        calls = {
            "metadata": self._fetch_moralis_metadata(address),
            "holder_stats": self._fetch_moralis_holder_stats(address),
            "top_traders": self._fetch_birdeye_top_traders(address),
            "analytics": self._fetch_moralis_analytics(address),
            "price": self._fetch_moralis_price(address),
        }
        if mode == "local":
            calls["owners"] = self._fetch_moralis_owners(address)
        outcomes = await settle_all(calls)

        # an empty stats object counts as unavailable
        provider_stats = payload_of(outcomes["holder_stats"], OBJECT_EXTRACTORS) or None
        if should_compute_holder_stats(mode, provider_stats is not None) and "owners" not in outcomes:
            _LOGGER.info("bundle holder stats unavailable, fetching owners address=%s", address)
            outcomes.update(await settle_all({"owners": self._fetch_moralis_owners(address)}))

        try:
            bundle = self._assemble(address, outcomes, provider_stats)
        except Exception:
            _LOGGER.exception("bundle assembly failed chain=bsc address=%s", address)
            return None
        _LOGGER.info("bundle complete chain=bsc address=%s", address)
        return bundle

    def _assemble(
        self,
        address: str,
        outcomes: Mapping[str, Outcome],
        provider_stats: Optional[Dict[str, Any]],
    ) -> BscBundle:
        metadata = payload_of(outcomes["metadata"], METADATA_EXTRACTORS, {})
        traders = payload_of(outcomes["top_traders"], BIRDEYE_ITEMS_EXTRACTORS, [])
        analytics = payload_of(outcomes["analytics"], OBJECT_EXTRACTORS)
        price = payload_of(outcomes["price"], OBJECT_EXTRACTORS, {})
        owners: List[Any] = []
        if "owners" in outcomes:
            owners = payload_of(outcomes["owners"], HOLDER_LIST_EXTRACTORS, [])

        explorer_url = EXPLORER_URL.format(address=metadata.get("address") or address)
        return BscBundle(
            token_overview=self._overview(metadata, price, explorer_url),
            metadata=self._metadata(address, metadata, explorer_url),
            holder_stats=self._holder_stats(provider_stats, owners, metadata.get("total_supply")),
            top_traders=normalize_top_traders(traders),
            token_analytics=bsc_token_analytics(analytics),
        )

    def _overview(self, metadata: Dict[str, Any], price: Dict[str, Any], explorer_url: str) -> Dict[str, Any]:
        usd_price = to_number(price.get("usdPrice"), 0)
        decimals = to_int(metadata.get("decimals"), DEFAULT_DECIMALS)
        circulating = metadata.get("circulating_supply")

        market_cap = to_number(metadata.get("market_cap"))
        if market_cap is None:
            market_cap = 0
            if circulating and usd_price > 0:
                market_cap = market_cap_from_supply(circulating, usd_price, decimals)

        return {
            "name": metadata.get("name") or "N/A",
            "symbol": metadata.get("symbol") or "N/A",
            "logoURI": metadata.get("logo") or None,
            "price": usd_price,
            "priceFormatted": format_currency(usd_price),
            "priceChange24h": format_percentage(price.get("24hrPercentChange")),
            "liquidityFormatted": safe_currency_suffix(price.get("pairTotalLiquidityUsd")),
            "marketCap": market_cap,
            "marketCapFormatted": safe_currency_suffix(market_cap),
            "fdvFormatted": safe_currency_suffix(metadata.get("fully_diluted_valuation")),
            "circulatingSupply": to_number(circulating, 0),
            "circulatingSupplyFormatted": safe_number_suffix(circulating),
            "circulationRatio": None,
            "explorerUrl": explorer_url,
            "decimals": decimals,
        }

    def _metadata(self, address: str, metadata: Dict[str, Any], explorer_url: str) -> Dict[str, Any]:
        return {
            "address": metadata.get("address") or address,
            "decimals": to_int(metadata.get("decimals"), DEFAULT_DECIMALS),
            "name": metadata.get("name") or "N/A",
            "symbol": metadata.get("symbol") or "N/A",
            "totalSupply": metadata.get("total_supply"),
            "fully_diluted_valuation": metadata.get("fully_diluted_valuation"),
            "market_cap": metadata.get("market_cap"),
            "circulating_supply": metadata.get("circulating_supply"),
            "verified_contract": metadata.get("verified_contract"),
            "possible_spam": metadata.get("possible_spam"),
            "categories": list(metadata.get("categories") or []),
            "links": dict(metadata.get("links") or {}),
            "security_score": metadata.get("security_score"),
            "explorerUrl": explorer_url,
        }

    def _holder_stats(
        self,
        provider_stats: Optional[Dict[str, Any]],
        owners: List[Any],
        total_supply: Any,
    ) -> Dict[str, Any]:
        provider = provider_stats or {}
        use_provider = provider_stats is not None and self.holder_stats_mode != "local"
        stats = {
            "totalHolders": provider.get("totalHolders"),
            "holderChange": provider.get("holderChange") or empty_holder_change(BSC_HOLDER_WINDOWS),
            "holderSupply": empty_holder_supply(),
            "holderDistribution": empty_holder_distribution(),
            "holdersByAcquisition": provider.get("holdersByAcquisition") or empty_holders_by_acquisition(),
            "source": None,
        }
        if use_provider:
            stats["holderSupply"] = provider.get("holderSupply") or stats["holderSupply"]
            stats["holderDistribution"] = provider.get("holderDistribution") or stats["holderDistribution"]
            stats["source"] = "provider"

        if should_compute_holder_stats(self.holder_stats_mode, provider_stats is not None) and owners:
            balances = [owner.get("balance") for owner in owners if isinstance(owner, dict)]
            stats["holderSupply"] = holder_supply_concentration(balances, total_supply)
            stats["holderDistribution"] = holder_distribution(balances, total_supply)
            stats["source"] = "computed"
            _LOGGER.info("holder stats computed holders=%s", len(balances))
        return stats
