from unittest.mock import AsyncMock

import httpx
import pytest

from tokenscope.bsc import BscAggregator
from tokenscope.bundle import BscBundle
from tokenscope.providers import BirdeyeClient, MoralisClient

from conftest import BSC_ADDRESS, MORALIS, routed_transport


OVERVIEW_KEYS = {
    "name",
    "symbol",
    "logoURI",
    "price",
    "priceFormatted",
    "priceChange24h",
    "liquidityFormatted",
    "marketCap",
    "marketCapFormatted",
    "fdvFormatted",
    "circulatingSupply",
    "circulatingSupplyFormatted",
    "circulationRatio",
    "explorerUrl",
    "decimals",
}
METADATA_KEYS = {
    "address",
    "decimals",
    "name",
    "symbol",
    "totalSupply",
    "fully_diluted_valuation",
    "market_cap",
    "circulating_supply",
    "verified_contract",
    "possible_spam",
    "categories",
    "links",
    "security_score",
    "explorerUrl",
}
OWNERS_PATH = f"{MORALIS}/erc20/{BSC_ADDRESS}/owners"
HOLDERS_PATH = f"{MORALIS}/erc20/{BSC_ADDRESS}/holders"


def make_aggregator(routes, calls=None, mode="auto", moralis_key="moralis-key"):
    client = httpx.AsyncClient(transport=routed_transport(routes, calls))
    moralis = MoralisClient(moralis_key, client=client)
    birdeye = BirdeyeClient("birdeye-key", client=client)
    return BscAggregator(moralis, birdeye, holder_stats_mode=mode)


def requested_paths(calls):
    return [request.url.path for request in calls]


@pytest.mark.asyncio
async def test_full_success_bundle(bsc_routes):
    calls = []
    aggregator = make_aggregator(bsc_routes, calls)

    bundle = await aggregator.get_token_data_bundle(BSC_ADDRESS.upper().replace("0X", "0x"))

    assert isinstance(bundle, BscBundle)
    data = bundle.to_dict()
    assert data["chain"] == "bsc"
    overview = data["tokenOverview"]
    assert set(overview) == OVERVIEW_KEYS
    assert overview["name"] == "Test Token"
    assert overview["price"] == 0.5
    assert overview["priceFormatted"] == "$0.50"
    assert overview["priceChange24h"] == "-3.46%"
    assert overview["liquidityFormatted"] == "$250.0K"
    assert overview["marketCap"] == 500
    assert overview["marketCapFormatted"] == "$500.00"
    assert overview["circulationRatio"] is None
    assert overview["decimals"] == 18
    assert overview["explorerUrl"] == f"https://bscscan.com/token/{BSC_ADDRESS}"

    stats = data["holderStats"]
    assert stats["totalHolders"] == 1234
    assert stats["source"] == "provider"
    assert stats["holderSupply"] == {"top10": {"supplyPercent": 45.5}}

    trader = data["topTraders"][0]
    assert trader["address"].startswith("0x1111")
    assert trader["buy"] == {"count": 7, "amountUSDFormatted": "$9.0K"}
    assert trader["total"]["count"] == 12
    assert trader["tags"] == ["sniper-bot"]

    assert data["tokenAnalytics"]["totalBuyers"]["24h"] == 100
    assert data["tokenAnalytics"]["totalLiquidityUsd"] == 50000

    metadata = data["metadata"]
    assert set(metadata) == METADATA_KEYS
    assert metadata["security_score"] == 72
    assert metadata["categories"] == ["meme"]
    assert OWNERS_PATH not in requested_paths(calls)


@pytest.mark.asyncio
async def test_reported_market_cap_wins_over_fallback(bsc_routes):
    bsc_routes[f"{MORALIS}/erc20/metadata"][0]["market_cap"] = "123456"
    bundle = await make_aggregator(bsc_routes).get_token_data_bundle(BSC_ADDRESS)
    assert bundle.token_overview["marketCap"] == 123456
    assert bundle.token_overview["marketCapFormatted"] == "$123.5K"


@pytest.mark.asyncio
async def test_rejected_holder_stats_keeps_other_sections(bsc_routes):
    aggregator = make_aggregator(bsc_routes)
    aggregator._fetch_moralis_holder_stats = AsyncMock(side_effect=httpx.ConnectError("unreachable"))

    bundle = await aggregator.get_token_data_bundle(BSC_ADDRESS)

    assert bundle is not None
    assert bundle.holder_stats["totalHolders"] is None
    assert bundle.token_overview["name"] != "N/A"
    assert bundle.top_traders
    assert set(bundle.holder_stats["holderChange"]) == {"5min", "1h", "6h", "24h", "3d", "7d", "30d"}


@pytest.mark.asyncio
async def test_auto_mode_computes_from_owners_when_provider_fails(bsc_routes):
    bsc_routes[HOLDERS_PATH] = (500, {"message": "internal"})
    calls = []

    bundle = await make_aggregator(bsc_routes, calls).get_token_data_bundle(BSC_ADDRESS)

    stats = bundle.holder_stats
    assert OWNERS_PATH in requested_paths(calls)
    assert stats["source"] == "computed"
    assert stats["holderSupply"]["top10"]["supplyPercent"] == 25.05
    assert stats["holderDistribution"] == {"whales": 1, "dolphins": 0, "fish": 1, "shrimps": 0}


@pytest.mark.asyncio
async def test_provider_mode_never_fetches_owners(bsc_routes):
    bsc_routes[HOLDERS_PATH] = (500, {"message": "internal"})
    calls = []

    bundle = await make_aggregator(bsc_routes, calls, mode="provider").get_token_data_bundle(BSC_ADDRESS)

    assert OWNERS_PATH not in requested_paths(calls)
    assert bundle.holder_stats["source"] is None
    assert bundle.holder_stats["holderSupply"]["top10"]["supplyPercent"] is None


@pytest.mark.asyncio
async def test_local_mode_computes_alongside_provider(bsc_routes):
    calls = []

    bundle = await make_aggregator(bsc_routes, calls, mode="local").get_token_data_bundle(BSC_ADDRESS)

    assert OWNERS_PATH in requested_paths(calls)
    assert bundle.holder_stats["totalHolders"] == 1234
    assert bundle.holder_stats["source"] == "computed"
    assert bundle.holder_stats["holderSupply"]["top10"]["supplyPercent"] == 25.05


@pytest.mark.asyncio
async def test_business_error_from_top_traders_degrades_to_empty(bsc_routes):
    bsc_routes["/defi/v2/tokens/top_traders"] = {"success": False, "message": "rate limited"}
    bundle = await make_aggregator(bsc_routes).get_token_data_bundle(BSC_ADDRESS)
    assert bundle.top_traders == []
    assert bundle.token_overview["name"] == "Test Token"


@pytest.mark.asyncio
async def test_every_upstream_failing_still_yields_defaults():
    bundle = await make_aggregator({}).get_token_data_bundle(BSC_ADDRESS)

    assert bundle is not None
    overview = bundle.token_overview
    assert set(overview) == OVERVIEW_KEYS
    assert overview["name"] == "N/A"
    assert overview["priceFormatted"] == "$0.00"
    assert overview["priceChange24h"] == "N/A"
    assert overview["liquidityFormatted"] == "$0"
    assert overview["fdvFormatted"] == "$0"
    assert overview["circulatingSupplyFormatted"] == "0"
    assert overview["marketCap"] == 0
    assert set(bundle.metadata) == METADATA_KEYS
    assert bundle.metadata["address"] == BSC_ADDRESS
    assert bundle.metadata["links"] == {}
    assert bundle.holder_stats["source"] is None
    assert bundle.top_traders == []


@pytest.mark.asyncio
async def test_missing_moralis_key_only_affects_moralis_sections(bsc_routes):
    bundle = await make_aggregator(bsc_routes, moralis_key="").get_token_data_bundle(BSC_ADDRESS)
    assert bundle.token_overview["name"] == "N/A"
    assert bundle.top_traders[0]["total"]["count"] == 12


@pytest.mark.asyncio
async def test_assembly_error_returns_none(bsc_routes, monkeypatch):
    aggregator = make_aggregator(bsc_routes)

    def explode(*args, **kwargs):
        raise ValueError("bad assembly")

    monkeypatch.setattr(aggregator, "_overview", explode)
    assert await aggregator.get_token_data_bundle(BSC_ADDRESS) is None


@pytest.mark.asyncio
async def test_to_dict_returns_independent_copy(bsc_routes):
    bundle = await make_aggregator(bsc_routes).get_token_data_bundle(BSC_ADDRESS)
    first = bundle.to_dict()
    first["tokenOverview"]["name"] = "mutated"
    first["aiAnalysis"] = {"basicAnalysis": "x"}
    assert bundle.to_dict()["tokenOverview"]["name"] == "Test Token"
    assert "aiAnalysis" not in bundle.to_dict()


@pytest.mark.asyncio
async def test_auto_mode_treats_empty_provider_stats_as_unavailable(bsc_routes):
    bsc_routes[HOLDERS_PATH] = {}
    calls = []

    bundle = await make_aggregator(bsc_routes, calls).get_token_data_bundle(BSC_ADDRESS)

    assert OWNERS_PATH in requested_paths(calls)
    assert bundle.holder_stats["source"] == "computed"
    assert bundle.holder_stats["holderSupply"]["top10"]["supplyPercent"] == 25.05


@pytest.mark.asyncio
async def test_rejected_holder_stats_is_logged_once(bsc_routes, caplog):
    bsc_routes[HOLDERS_PATH] = (500, {"message": "internal"})

    with caplog.at_level("WARNING", logger="tokenscope.extract"):
        await make_aggregator(bsc_routes).get_token_data_bundle(BSC_ADDRESS)

    rejected = [r for r in caplog.records if "upstream rejected call=holder_stats" in r.getMessage()]
    assert len(rejected) == 1
