"""Solana token bundle built from Birdeye endpoints."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from .bundle import SolanaBundle
from .chains import SOLANA, normalize_address
from .extract import (
    BIRDEYE_DATA_EXTRACTORS,
    BIRDEYE_ITEMS_EXTRACTORS,
    HOLDER_LIST_EXTRACTORS,
    Outcome,
    payload_of,
    settle_all,
)
from .formatters import format_currency, format_percentage, safe_currency_suffix, safe_number_suffix
from .normalize import (
    SOLANA_HOLDER_WINDOWS,
    circulation_ratio,
    empty_holder_change,
    empty_holder_distribution,
    empty_holder_supply,
    empty_holders_by_acquisition,
    holder_distribution,
    holder_supply_concentration,
    normalize_top_traders,
    should_compute_holder_stats,
    solana_token_analytics,
    to_decimal,
    to_int,
    to_number,
)
from .providers import BirdeyeClient


_LOGGER = logging.getLogger("tokenscope.solana")

EXPLORER_URL = "https://solscan.io/token/{address}"


def holder_ui_amount(holder: Mapping[str, Any], decimals: int) -> Optional[Decimal]:
    """Holder balance in token units: ``ui_amount`` when given, else raw ``amount`` scaled down."""

    ui_amount = to_decimal(holder.get("ui_amount"))
    if ui_amount is not None:
        return ui_amount
    raw = to_decimal(holder.get("amount"))
    if raw is None:
        return None
    return raw / (Decimal(10) ** decimals)


class SolanaAggregator:
    def __init__(self, birdeye: BirdeyeClient, holder_stats_mode: str = "auto") -> None:
        self.birdeye = birdeye
        self.holder_stats_mode = holder_stats_mode

    async def _fetch_token_metadata(self, address: str) -> Any:
        return await self.birdeye.token_metadata(address, chain=SOLANA)

    async def _fetch_market_data(self, address: str) -> Any:
        return await self.birdeye.market_data(address, chain=SOLANA)

    async def _fetch_holders(self, address: str) -> Any:
        return await self.birdeye.token_holders(address, chain=SOLANA, limit=100)

    async def _fetch_top_traders(self, address: str) -> Any:
        return await self.birdeye.top_traders(address, chain=SOLANA)

    async def _fetch_trade_data(self, address: str) -> Any:
        return await self.birdeye.trade_data(address, chain=SOLANA)

    async def get_token_data_bundle(self, address: str) -> Optional[SolanaBundle]:
        address = normalize_address(SOLANA, address)
        _LOGGER.info("bundle start chain=solana address=%s holder_stats_mode=%s", address, self.holder_stats_mode)
        calls = {
            "metadata": self._fetch_token_metadata(address),
            "market_data": self._fetch_market_data(address),
            "top_traders": self._fetch_top_traders(address),
            "trade_data": self._fetch_trade_data(address),
        }
        # No provider-side holder stats on Solana: the list is only useful for local computation.
        if should_compute_holder_stats(self.holder_stats_mode, provider_available=False):
            calls["holders"] = self._fetch_holders(address)
        outcomes = await settle_all(calls)

        try:
            bundle = self._assemble(address, outcomes)
        except Exception:
            _LOGGER.exception("bundle assembly failed chain=solana address=%s", address)
            return None
        _LOGGER.info("bundle complete chain=solana address=%s", address)
        return bundle

    def _assemble(self, address: str, outcomes: Mapping[str, Outcome]) -> SolanaBundle:
        metadata = payload_of(outcomes["metadata"], BIRDEYE_DATA_EXTRACTORS, {})
        market = payload_of(outcomes["market_data"], BIRDEYE_DATA_EXTRACTORS, {})
        trade = payload_of(outcomes["trade_data"], BIRDEYE_DATA_EXTRACTORS, {})
        traders = payload_of(outcomes["top_traders"], BIRDEYE_ITEMS_EXTRACTORS, [])
        holders: List[Any] = []
        if "holders" in outcomes:
            holders = payload_of(outcomes["holders"], HOLDER_LIST_EXTRACTORS, [])

        explorer_url = EXPLORER_URL.format(address=address)
        decimals = to_int(metadata.get("decimals"), 0)
        return SolanaBundle(
            token_overview=self._overview(metadata, market, trade, decimals, explorer_url),
            metadata=self._metadata(address, metadata, market, decimals, explorer_url),
            holder_stats=self._holder_stats(trade, holders, market.get("total_supply"), decimals),
            top_traders=normalize_top_traders(traders),
            token_analytics=solana_token_analytics(trade),
        )

    def _overview(
        self,
        metadata: Dict[str, Any],
        market: Dict[str, Any],
        trade: Dict[str, Any],
        decimals: int,
        explorer_url: str,
    ) -> Dict[str, Any]:
        price = trade.get("price")
        if price is None:
            price = market.get("price")
        price = to_number(price, 0)
        circulating = market.get("circulating_supply")
        return {
            "name": metadata.get("name") or "N/A",
            "symbol": metadata.get("symbol") or "N/A",
            "logoURI": metadata.get("logo_uri") or None,
            "price": price,
            "priceFormatted": format_currency(price),
            "priceChange24h": format_percentage(trade.get("price_change_24h_percent")),
            "liquidityFormatted": safe_currency_suffix(market.get("liquidity")),
            "marketCap": to_number(market.get("market_cap"), 0),
            "marketCapFormatted": safe_currency_suffix(market.get("market_cap")),
            "fdvFormatted": safe_currency_suffix(market.get("fdv")),
            "circulatingSupply": to_number(circulating, 0),
            "circulatingSupplyFormatted": safe_number_suffix(circulating),
            "circulationRatio": circulation_ratio(circulating, market.get("total_supply")),
            "explorerUrl": explorer_url,
            "decimals": decimals,
        }

    def _metadata(
        self,
        address: str,
        metadata: Dict[str, Any],
        market: Dict[str, Any],
        decimals: int,
        explorer_url: str,
    ) -> Dict[str, Any]:
        extensions = metadata.get("extensions")
        links = {key: value for key, value in extensions.items() if value} if isinstance(extensions, dict) else {}
        return {
            "address": metadata.get("address") or address,
            "decimals": decimals,
            "name": metadata.get("name") or "N/A",
            "symbol": metadata.get("symbol") or "N/A",
            "totalSupply": market.get("total_supply"),
            "fully_diluted_valuation": market.get("fdv"),
            "market_cap": market.get("market_cap"),
            "circulating_supply": market.get("circulating_supply"),
            "verified_contract": None,
            "possible_spam": None,
            "categories": [],
            "links": links,
            "security_score": None,
            "explorerUrl": explorer_url,
        }

    def _holder_stats(
        self,
        trade: Dict[str, Any],
        holders: List[Any],
        total_supply: Any,
        decimals: int,
    ) -> Dict[str, Any]:
        stats = {
            "totalHolders": trade.get("holder"),
            "holderChange": empty_holder_change(SOLANA_HOLDER_WINDOWS),
            "holderSupply": empty_holder_supply(),
            "holderDistribution": empty_holder_distribution(),
            "holdersByAcquisition": empty_holders_by_acquisition(),
            "source": None,
        }
        if holders:
            balances = [holder_ui_amount(holder, decimals) for holder in holders if isinstance(holder, dict)]
            stats["holderSupply"] = holder_supply_concentration(balances, total_supply)
            stats["holderDistribution"] = holder_distribution(balances, total_supply)
            stats["source"] = "computed"
            _LOGGER.info("holder stats computed holders=%s", len(balances))
        return stats
