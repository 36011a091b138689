"""Request-level flow: chain routing, caching and optional narrative."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Union

import httpx

from .bsc import BscAggregator
from .cache import TokenCache, analytics_key, base_data_key
from .chains import BSC, SUPPORTED_CHAINS, detect_chain, normalize_address
from .config import Settings
from .narrative import NarrativeGenerator, normalize_lang
from .normalize import summarize_analytics
from .providers import BirdeyeClient, MoralisClient, ProviderNotConfigured
from .solana import SolanaAggregator
from .transport import retry_with_backoff


_LOGGER = logging.getLogger("tokenscope.service")

WBNB_ADDRESS = "0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c"

Response = Tuple[int, Dict[str, Any]]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class TokenDataService:
    def __init__(
        self,
        settings: Settings,
        moralis: MoralisClient,
        birdeye: BirdeyeClient,
        narrator: NarrativeGenerator,
        cache: Optional[TokenCache] = None,
        bsc: Optional[BscAggregator] = None,
        solana: Optional[SolanaAggregator] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.moralis = moralis
        self.birdeye = birdeye
        self.narrator = narrator
        self.cache = cache or TokenCache(
            default_ttl=settings.cache_ttl_seconds,
            enabled=settings.cache_enabled,
        )
        self.bsc = bsc or BscAggregator(moralis, birdeye, settings.holder_stats_mode)
        self.solana = solana or SolanaAggregator(birdeye, settings.holder_stats_mode)
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings, client: Optional[httpx.AsyncClient] = None) -> "TokenDataService":
        moralis = MoralisClient(settings.moralis_api_key, timeout=settings.http_timeout_seconds, client=client)
        birdeye = BirdeyeClient(settings.birdeye_api_key, timeout=settings.http_timeout_seconds, client=client)
        narrator = NarrativeGenerator(
            settings.xai_api_key,
            settings.xai_models,
            base_url=settings.xai_base_url,
            timeout=settings.llm_timeout_seconds,
            client=client,
        )
        return cls(settings, moralis, birdeye, narrator)

    def _aggregator(self, chain: str) -> Union[BscAggregator, SolanaAggregator]:
        return self.bsc if chain == BSC else self.solana

    def _resolve_chain(self, chain: Optional[str], address: str) -> Tuple[Optional[str], Optional[Response]]:
        requested = (chain or "").strip().lower() or None
        if requested and requested not in SUPPORTED_CHAINS:
            _LOGGER.warning("unsupported chain requested=%s", requested)
            return None, (400, {"success": False, "error": f"Unsupported chain: {requested}"})
        if not address:
            return None, (400, {"success": False, "error": "Missing token address"})
        detected = detect_chain(address, strict=self.settings.strict_chain_detection)
        if detected is None:
            return None, (
                400,
                {
                    "success": False,
                    "error": "Unrecognized address format",
                    "details": "Expected a 0x-prefixed BSC address or a base58 Solana address",
                },
            )
        if requested and requested != detected:
            _LOGGER.warning("chain mismatch requested=%s detected=%s using detected", requested, detected)
        return detected, None

    async def handle(
        self,
        chain: Optional[str],
        address: str,
        analyze: bool = False,
        lang: str = "en",
    ) -> Response:
        address = (address or "").strip()
        _LOGGER.info("token-data start chain=%s address=%s analyze=%s lang=%s", chain, address, analyze, lang)
        resolved, error = self._resolve_chain(chain, address)
        if error is not None:
            return error
        address = normalize_address(resolved, address)
        key = base_data_key(resolved, address)

        source = "cache"
        bundle = self.cache.get(key)
        if bundle is None:
            source = "api"
            try:
                bundle = await self._aggregator(resolved).get_token_data_bundle(address)
            except Exception as exc:
                _LOGGER.exception("token-data aggregator failed chain=%s address=%s", resolved, address)
                return 500, {
                    "success": False,
                    "error": "Internal server error processing request.",
                    "details": str(exc),
                }
            if bundle is None:
                _LOGGER.info("token-data not found chain=%s address=%s", resolved, address)
                return 404, {"success": False, "message": "Token base data not found or failed to fetch."}
            self.cache.set(key, bundle)

        data = bundle.to_dict()
        if analyze:
            source = await self._attach_analysis(data, normalize_lang(lang), source)
        _LOGGER.info("token-data complete chain=%s address=%s source=%s", resolved, address, source)
        return 200, {
            "success": True,
            "data": data,
            "source": source,
            "meta": {"chain": resolved, "address": address, "timestamp": _now_iso()},
        }

    async def _attach_analysis(self, data: Dict[str, Any], lang: str, source: str) -> str:
        try:
            result = await self.narrator.generate(data, lang)
        except Exception:
            _LOGGER.exception("narrative generation raised")
            data["aiAnalysis"] = {"basicAnalysis": "Error: Failed to generate AI analysis"}
            return source
        if result.success:
            data["aiAnalysis"] = {"basicAnalysis": result.analysis}
            return f"{source}+ai"
        _LOGGER.warning("narrative failed error=%s details=%s", result.error, (result.details or "")[:300])
        data["aiAnalysis"] = {"basicAnalysis": f"Error: {result.error or 'Unknown AI analysis failure'}"}
        return source

    async def token_analytics(self, chain: str, address: str) -> Response:
        chain = (chain or "").strip().lower()
        if chain not in SUPPORTED_CHAINS:
            return 400, {"success": False, "error": f"Unsupported chain: {chain}"}
        address = normalize_address(chain, address)
        key = analytics_key(chain, address)
        cached = self.cache.get(key)
        if cached is not None:
            return 200, cached

        _LOGGER.info("token-analytics start chain=%s address=%s", chain, address)
        try:
            raw = await retry_with_backoff(
                lambda: self.moralis.token_analytics(address, chain=chain),
                sleep=self._sleep,
            )
        except (httpx.HTTPError, ProviderNotConfigured) as exc:
            _LOGGER.warning("token-analytics provider failed address=%s error=%s", address, exc)
            return 404, self._analytics_error("TokenAnalytics", "Failed to fetch token analytics", str(exc))
        except Exception as exc:
            _LOGGER.exception("token-analytics failed address=%s", address)
            return 500, self._analytics_error("Server", "Internal server error", str(exc))

        if not isinstance(raw, dict) or not raw or raw.get("success") is False:
            details = raw.get("message") if isinstance(raw, dict) else "empty analytics payload"
            return 404, self._analytics_error("TokenAnalytics", "Failed to fetch token analytics", details)

        body = {"success": True, "data": summarize_analytics(raw), "chain": chain}
        self.cache.set(key, body, ttl=self.settings.analytics_cache_ttl_seconds)
        _LOGGER.info("token-analytics complete chain=%s address=%s", chain, address)
        return 200, body

    @staticmethod
    def _analytics_error(kind: str, message: str, details: Any) -> Dict[str, Any]:
        return {"success": False, "errors": [{"type": kind, "message": message, "details": details}]}

    async def test_birdeye(self) -> Response:
        if not self.birdeye.enabled:
            return 501, {
                "success": False,
                "error": "Service unavailable",
                "details": "BIRDEYE_API_KEY is not configured",
            }
        try:
            payload = await self.birdeye.token_price(WBNB_ADDRESS, chain=BSC)
        except httpx.HTTPError as exc:
            _LOGGER.warning("test-birdeye request failed error=%s", exc)
            return 502, {"success": False, "error": "Birdeye request failed", "details": str(exc)}
        if not isinstance(payload, dict) or payload.get("success") is False:
            details = payload.get("message") if isinstance(payload, dict) else None
            return 502, {"success": False, "error": "Birdeye returned an error", "details": details}
        return 200, {"success": True, "data": payload.get("data")}
