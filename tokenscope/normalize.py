"""Derived values and section defaults shared by the chain aggregators."""

from __future__ import annotations

import logging
import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .formatters import format_currency_suffix, format_percentage, format_usd, process_count_value, safe_currency_suffix


_LOGGER = logging.getLogger("tokenscope.normalize")

BSC_HOLDER_WINDOWS = ("5min", "1h", "6h", "24h", "3d", "7d", "30d")
SOLANA_HOLDER_WINDOWS = ("30m", "1h", "2h", "4h", "8h", "24h")
SOLANA_TIMEFRAMES = ("30m", "1h", "2h", "4h", "8h", "24h")
ANALYTICS_TIMEFRAMES = ("5m", "1h", "6h", "24h")
SUPPLY_COHORTS = (10, 25, 50, 100)
TOP_TRADER_LIMIT = 10

# Fractions of total supply; a holder lands in the first class whose threshold it exceeds.
DISTRIBUTION_THRESHOLDS = (
    ("whales", Decimal("0.01")),
    ("dolphins", Decimal("0.001")),
    ("fish", Decimal("0.0001")),
)

SOLANA_ANALYTICS_FAMILIES = (
    ("priceChangePercent", "price_change_{tf}_percent", "percent"),
    ("uniqueWallets", "unique_wallet_{tf}", "count"),
    ("uniqueWalletsChangePercent", "unique_wallet_{tf}_change_percent", "percent"),
    ("buyCounts", "buy_{tf}", "count"),
    ("sellCounts", "sell_{tf}", "count"),
    ("tradeCountChangePercent", "trade_{tf}_change_percent", "percent"),
    ("buyVolumeUSD", "volume_buy_{tf}_usd", "usd"),
    ("sellVolumeUSD", "volume_sell_{tf}_usd", "usd"),
    ("volumeChangePercent", "volume_{tf}_change_percent", "percent"),
)

BSC_ANALYTICS_COUNTERS = (
    "totalBuyers",
    "totalSellers",
    "totalBuys",
    "totalSells",
    "totalBuyVolume",
    "totalSellVolume",
)


def to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        value = repr(value)
    try:
        number = Decimal(str(value).replace(",", "").strip())
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite():
        return None
    return number


def to_number(value: Any, default: Any = None) -> Any:
    """Parse a JSON scalar into int/float, keeping ``default`` for anything unparseable."""

    number = to_decimal(value)
    if number is None:
        return default
    if number == number.to_integral_value() and abs(number) < Decimal(2) ** 53:
        return int(number)
    return float(number)


def to_int(value: Any, default: int) -> int:
    number = to_decimal(value)
    if number is None:
        return default
    return int(number)


def empty_holder_change(windows: Sequence[str]) -> Dict[str, Dict[str, Any]]:
    return {window: {"change": None, "changePercent": None} for window in windows}


def empty_holder_supply() -> Dict[str, Dict[str, Any]]:
    return {f"top{size}": {"supplyPercent": None} for size in SUPPLY_COHORTS}


def empty_holder_distribution() -> Dict[str, int]:
    return {"whales": 0, "dolphins": 0, "fish": 0, "shrimps": 0}


def empty_holders_by_acquisition() -> Dict[str, Any]:
    return {"swap": None, "transfer": None, "airdrop": None}


def market_cap_from_supply(circulating: Any, price: Any, decimals: Any) -> int:
    """``circulating * price / 10**decimals`` in integer arithmetic.

    The price is scaled by 1e6 before multiplying so large raw supplies keep their precision.
    """

    try:
        supply = int(str(circulating).split(".")[0])
        scaled_price = int(round(float(price) * 1_000_000))
        exponent = int(decimals)
        if exponent < 0:
            return 0
        return (supply * scaled_price) // (1_000_000 * 10**exponent)
    except (TypeError, ValueError, OverflowError) as exc:
        _LOGGER.warning("market cap fallback failed error=%s", exc)
        return 0


def circulation_ratio(circulating: Any, total: Any) -> Optional[int]:
    circ = to_decimal(circulating)
    supply = to_decimal(total)
    if circ is None or supply is None:
        return None
    if circ == 0 and supply == 0:
        return 0
    if supply == 0:
        return None
    ratio = (circ / supply * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(ratio)


def _sorted_balances(balances: Iterable[Any]) -> List[Decimal]:
    parsed = (to_decimal(balance) for balance in balances)
    return sorted((value for value in parsed if value is not None), reverse=True)


def holder_supply_concentration(balances: Iterable[Any], total_supply: Any) -> Dict[str, Dict[str, Any]]:
    """Percent of ``total_supply`` held by the top 10/25/50/100 balances."""

    result = empty_holder_supply()
    total = to_decimal(total_supply)
    ordered = _sorted_balances(balances)
    if total is None or total <= 0 or not ordered:
        return result
    for size in SUPPLY_COHORTS:
        held = sum(ordered[:size], Decimal(0))
        percent = (held / total * 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        result[f"top{size}"]["supplyPercent"] = float(percent)
    return result


def holder_distribution(balances: Iterable[Any], total_supply: Any) -> Dict[str, int]:
    counts = empty_holder_distribution()
    total = to_decimal(total_supply)
    if total is None or total <= 0:
        return counts
    thresholds = [(name, total * fraction) for name, fraction in DISTRIBUTION_THRESHOLDS]
    for balance in _sorted_balances(balances):
        if balance <= 0:
            continue
        for name, threshold in thresholds:
            if balance > threshold:
                counts[name] += 1
                break
        else:
            counts["shrimps"] += 1
    return counts


def should_compute_holder_stats(mode: str, provider_available: bool) -> bool:
    if mode == "local":
        return True
    if mode == "provider":
        return False
    return not provider_available


def normalize_top_traders(items: Any, limit: int = TOP_TRADER_LIMIT) -> List[Dict[str, Any]]:
    """Map Birdeye top-trader rows, keeping API order."""

    if not isinstance(items, list):
        return []
    traders = []
    for item in items:
        if len(traders) >= limit:
            break
        if not isinstance(item, dict):
            continue
        buys = item.get("tradeBuy")
        sells = item.get("tradeSell")
        total = item.get("trade")
        if total is None:
            total = (buys or 0) + (sells or 0)
        traders.append(
            {
                "address": item.get("owner") or "N/A",
                "tags": list(item.get("tags") or []),
                "buy": {"count": buys, "amountUSDFormatted": safe_currency_suffix(item.get("volumeBuy"))},
                "sell": {"count": sells, "amountUSDFormatted": safe_currency_suffix(item.get("volumeSell"))},
                "total": {"count": total, "amountUSDFormatted": safe_currency_suffix(item.get("volume"))},
            }
        )
    return traders


def bsc_token_analytics(raw: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    raw = raw or {}
    section: Dict[str, Any] = {
        name: dict(raw.get(name) or {}) for name in BSC_ANALYTICS_COUNTERS
    }
    section["totalLiquidityUsd"] = raw.get("totalLiquidityUsd")
    section["totalFullyDilutedValuation"] = raw.get("totalFullyDilutedValuation")
    return section


def _format_series_value(value: Any, kind: str) -> Any:
    if value is None:
        return "N/A"
    if kind == "percent":
        return format_percentage(value)
    if kind == "usd":
        return format_currency_suffix(value) if to_decimal(value) is not None else "N/A"
    return process_count_value(value)


def solana_token_analytics(trade_data: Optional[Mapping[str, Any]]) -> Dict[str, Dict[str, Any]]:
    trade_data = trade_data or {}
    return {
        family: {
            tf: _format_series_value(trade_data.get(pattern.format(tf=tf)), kind)
            for tf in SOLANA_TIMEFRAMES
        }
        for family, pattern, kind in SOLANA_ANALYTICS_FAMILIES
    }


def summarize_analytics(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Shape raw Moralis analytics for the standalone analytics endpoint."""

    def counters(name: str) -> Dict[str, str]:
        series = raw.get(name) or {}
        return {
            tf: "N/A" if series.get(tf) is None else str(series.get(tf))
            for tf in ANALYTICS_TIMEFRAMES
        }

    def volumes(name: str) -> Dict[str, str]:
        series = raw.get(name) or {}
        return {tf: format_usd(series.get(tf)) for tf in ANALYTICS_TIMEFRAMES}

    return {
        "totalBuyers": counters("totalBuyers"),
        "totalSellers": counters("totalSellers"),
        "totalBuys": counters("totalBuys"),
        "totalSells": counters("totalSells"),
        "totalBuyVolumeFormatted": volumes("totalBuyVolume"),
        "totalSellVolumeFormatted": volumes("totalSellVolume"),
        "rawData": dict(raw),
    }
