import copy

import httpx
import pytest

from tokenscope.config import Settings


BSC_ADDRESS = "0x" + "ab" * 20
SOL_ADDRESS = "So11111111111111111111111111111111111111112"
MORALIS = "/api/v2.2"


def routed_transport(routes, calls=None):
    """MockTransport answering by URL path.

    A route value is a JSON payload (200), a ``(status, payload)`` tuple, or a callable taking the request.
    """

    def handler(request):
        if calls is not None:
            calls.append(request)
        route = routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"message": "no route"})
        if callable(route):
            return route(request)
        if isinstance(route, tuple):
            status, payload = route
            return httpx.Response(status, json=payload)
        return httpx.Response(200, json=route)

    return httpx.MockTransport(handler)


class SleepRecorder:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


BSC_PAYLOADS = {
    f"{MORALIS}/erc20/metadata": [
        {
            "address": BSC_ADDRESS,
            "name": "Test Token",
            "symbol": "TT",
            "decimals": "18",
            "logo": "https://logo.example/tt.png",
            "circulating_supply": "1000000000000000000000",
            "total_supply": "2000000000000000000000",
            "fully_diluted_valuation": "1000",
            "verified_contract": True,
            "possible_spam": False,
            "categories": ["meme"],
            "links": {"twitter": "https://x.com/tt", "moralis": "https://moralis.io"},
            "security_score": 72,
        }
    ],
    f"{MORALIS}/erc20/{BSC_ADDRESS}/holders": {
        "totalHolders": 1234,
        "holderChange": {"24h": {"change": 5, "changePercent": 0.4}},
        "holderSupply": {"top10": {"supplyPercent": 45.5}},
        "holderDistribution": {"whales": 3, "dolphins": 7, "fish": 20, "shrimps": 1000},
        "holdersByAcquisition": {"swap": 100, "transfer": 20, "airdrop": 1},
    },
    "/defi/v2/tokens/top_traders": {
        "success": True,
        "data": {
            "items": [
                {
                    "owner": "0x1111222233334444555566667777888899990000",
                    "tags": ["sniper-bot"],
                    "trade": 12,
                    "tradeBuy": 7,
                    "tradeSell": 5,
                    "volume": 15000,
                    "volumeBuy": 9000,
                    "volumeSell": 6000,
                }
            ]
        },
    },
    f"{MORALIS}/tokens/{BSC_ADDRESS}/analytics": {
        "totalBuyers": {"5m": 1, "1h": 10, "6h": 40, "24h": 100},
        "totalSellers": {"5m": 0, "1h": 8, "6h": 30, "24h": 90},
        "totalBuys": {"5m": 2, "1h": 12, "6h": 50, "24h": 150},
        "totalSells": {"5m": 1, "1h": 9, "6h": 33, "24h": 120},
        "totalBuyVolume": {"5m": 10, "1h": 100, "6h": 1000, "24h": 12345.678},
        "totalSellVolume": {"24h": 999.5},
        "totalLiquidityUsd": 50000,
        "totalFullyDilutedValuation": 1000,
    },
    f"{MORALIS}/erc20/{BSC_ADDRESS}/price": {
        "usdPrice": 0.5,
        "24hrPercentChange": "-3.456",
        "pairTotalLiquidityUsd": "250000",
    },
    f"{MORALIS}/erc20/{BSC_ADDRESS}/owners": {
        "result": [
            {"owner_address": "0xaaa", "balance": "500000000000000000000"},
            {"owner_address": "0xbbb", "balance": "1000000000000000000"},
            {"owner_address": "0xccc", "balance": "0"},
        ]
    },
}

SOLANA_PAYLOADS = {
    "/defi/v3/token/meta-data/single": {
        "success": True,
        "data": {
            "address": SOL_ADDRESS,
            "name": "Sol Token",
            "symbol": "ST",
            "decimals": 6,
            "logo_uri": "https://logo.example/st.png",
            "extensions": {"twitter": "https://x.com/st", "website": None},
        },
    },
    "/defi/v3/token/market-data": {
        "success": True,
        "data": {
            "price": 1.1,
            "liquidity": 120000,
            "market_cap": 2500000,
            "fdv": 5000000,
            "circulating_supply": 500000,
            "total_supply": 1000000,
        },
    },
    "/defi/v3/token/holder": {
        "success": True,
        "data": {
            "items": [
                {"owner": "HolderA", "amount": "200000000000", "ui_amount": 200000},
                {"owner": "HolderB", "amount": "5000000", "ui_amount": 5},
            ]
        },
    },
    "/defi/v2/tokens/top_traders": {
        "success": True,
        "data": {
            "items": [
                {
                    "owner": "TraderOne1111111111111111111111111111111111",
                    "tags": [],
                    "tradeBuy": 3,
                    "tradeSell": 2,
                    "volume": 800,
                    "volumeBuy": 500,
                    "volumeSell": 300,
                }
            ]
        },
    },
    "/defi/v3/token/trade-data/single": {
        "success": True,
        "data": {
            "price": 1.25,
            "price_change_24h_percent": 12.5,
            "holder": 4321,
            "price_change_1h_percent": 2.5,
            "unique_wallet_1h": 40,
            "unique_wallet_1h_change_percent": -10,
            "buy_24h": 1500,
            "sell_24h": 700,
            "volume_buy_24h_usd": 25000,
            "volume_sell_24h_usd": 12000,
        },
    },
}


@pytest.fixture
def settings():
    return Settings(
        moralis_api_key="moralis-key",
        birdeye_api_key="birdeye-key",
        xai_api_key="xai-key",
        xai_models=["model-a", "model-b", "model-c"],
    )


@pytest.fixture
def bsc_routes():
    return copy.deepcopy(BSC_PAYLOADS)


@pytest.fixture
def solana_routes():
    return copy.deepcopy(SOLANA_PAYLOADS)


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()
