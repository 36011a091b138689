"""LLM narrative over a serialized bundle: prompt building and model fallback."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

import httpx


_LOGGER = logging.getLogger("tokenscope.narrative")

DEFAULT_BASE_URL = "https://api.x.ai/v1"
PROMPT_TIMEFRAMES = ("30m", "1h", "4h", "24h")
SUPPORTED_LANGS = ("en", "zh")

_SYSTEM_MESSAGES = {
    "en": """You are a professional cryptocurrency analyst specializing in crypto markets and on-chain data.
Provide concise, data-focused analysis with clear professional insights. Get straight to the point
without lengthy introductions. Your response must be in English.

Keep the analysis internally consistent. If the `topTraders` data shows significant risk (such as
extensive bot activity or potential manipulation), that finding must constrain optimistic readings
of other metrics like trader counts when judging community interest or market sentiment. Prioritize
and highlight those risk factors, and do not contradict them in the final summary.""",
    "zh": """你是一位专业的加密货币分析师，擅长分析币圈和链上数据，并给出中肯的专业建议。分析时应注重数据，
输出内容简洁明了，直接切入主题，只需提供核心观点和结论。回答必须使用中文。

请确保分析保持内部一致性。如果根据 `topTraders` 数据识别出显著风险（例如大量机器人活动或潜在操纵），
在评估'社区兴趣'或'市场情绪'等结论性指标时，这一发现应当制约基于交易者数量等数据得出的过于乐观的解读。
优先突出这些关键风险因素，避免在总结中出现自相矛盾的结论。""",
}

_LABELS = {
    "en": {
        "intro": (
            "Please provide a concise (300-400 words) integrated basic analysis **in English** based on "
            "the following token data. Merge insights from all aspects and do not list analysis points one by one."
        ),
        "core": "### Token Core Info",
        "name": "Name/Symbol",
        "price": "Price",
        "change": "24h Change",
        "circulating": "Circulating Supply",
        "ratio": "Circulation Ratio",
        "liquidity": "LP Liquidity",
        "market_cap": "Market Cap",
        "fdv": "FDV",
        "holders": "Total Holders",
        "spam": "Possible Spam",
        "security": "Security Score",
        "verified": "Verified Contract",
        "yes": "Yes",
        "no": "No",
        "unknown": "Unknown",
        "holder_section": "### Holder Analysis",
        "holder_change": "30d Holder Change",
        "top10": "Top 10 Supply %",
        "distribution": "Holder Distribution",
        "whales": "Whales",
        "shrimps": "Shrimps",
        "acquisition": "Main Acquisition",
        "trading": "### Trading Activity",
        "buyers_sellers": "24h Buyers/Sellers",
        "buys_sells": "24h Buy/Sell Orders",
        "price_changes": "### Price Change % by Timeframe",
        "volumes": "### Trade Volume by Timeframe",
        "buy": "Buy",
        "sell": "Sell",
        "wallets": "### Wallet Activity by Timeframe",
        "wallets_unit": "wallets",
        "change_unit": "change",
        "counts": "### Trade Counts by Timeframe",
        "buys_unit": "buys",
        "sells_unit": "sells",
        "traders": "### Top Traders (up to 10)",
        "trader": "Trader",
        "trader_address": "Address",
        "trader_total": "Total",
        "trader_trades": "Trades",
        "trader_split": "Buy/Sell",
        "trader_tags": "Tags",
        "none": "None",
        "no_traders": "### Top Traders\nNo valid top trader data available for this token.",
        "links": "### Community Links",
        "no_links": "- No community links data",
        "closing": (
            "Based on all the information above, provide an overall fundamental assessment **in English**. "
            "Identify the 1-2 most significant potential risks and 1-2 key opportunities by connecting insights "
            "from different data sections (e.g., holder concentration with trading data, security score with "
            "market cap). Only note the presence of community links; do not infer activity from them. "
            "**Critically evaluate Trading Activity and Top Traders: volume or counts dominated by bots "
            "(`sniper-bot`, `arbitrage-bot`) may indicate artificial liquidity or manipulation, not genuine "
            "interest.** Compare trends across timeframes for short-term momentum, and weigh the circulation "
            "ratio against market cap and volume to assess supply-side risk."
        ),
    },
    "zh": {
        "intro": "请基于以下代币数据，生成一段简洁（300-400字）、综合性的基本盘分析。请融合各方面信息，不要逐条罗列分析点。**请使用中文回答**。",
        "core": "### 代币核心信息",
        "name": "名称/符号",
        "price": "价格",
        "change": "24h 变化",
        "circulating": "流通供应量",
        "ratio": "流通比例",
        "liquidity": "LP 流动性",
        "market_cap": "市值",
        "fdv": "完全稀释估值 (FDV)",
        "holders": "总持有者数量",
        "spam": "可能为垃圾币",
        "security": "安全评分",
        "verified": "合约已验证",
        "yes": "是",
        "no": "否",
        "unknown": "未知",
        "holder_section": "### 持有者分析",
        "holder_change": "30天持有者变化",
        "top10": "Top 10 持仓占比",
        "distribution": "持有者分布",
        "whales": "鲸鱼",
        "shrimps": "虾",
        "acquisition": "主要获取方式",
        "trading": "### 交易分析",
        "buyers_sellers": "24h 买家/卖家数",
        "buys_sells": "24h 买/卖次数",
        "price_changes": "### 各时间段价格变化百分比",
        "volumes": "### 各时间段交易量",
        "buy": "买入",
        "sell": "卖出",
        "wallets": "### 各时间段钱包活动",
        "wallets_unit": "钱包数",
        "change_unit": "变化",
        "counts": "### 各时间段交易次数",
        "buys_unit": "买入",
        "sells_unit": "卖出",
        "traders": "### 顶级交易者 (最多10个)",
        "trader": "交易者",
        "trader_address": "地址",
        "trader_total": "总额",
        "trader_trades": "总次数",
        "trader_split": "买/卖",
        "trader_tags": "标签",
        "none": "无",
        "no_traders": "### 顶级交易者\n此代币当前无有效的顶级交易者数据。",
        "links": "### 社区链接",
        "no_links": "- 无社区链接数据",
        "closing": (
            "根据以上所有信息，请给出整体的基本面评估。**请用中文回答**。请通过关联不同维度的数据（例如持有者集中度与交易数据、"
            "安全评分与市值）识别 1-2 个最主要的潜在风险和 1-2 个关键机会，并阐述判断依据。社区链接仅需提及存在与否，"
            "切勿据此推断社区活跃度。**请批判性地评估交易分析和顶级交易者数据：由机器人（sniper-bot、arbitrage-bot）"
            "主导的交易可能暗示人为流动性或操纵风险，而不一定代表真实的市场兴趣。**考察不同时间段的交易趋势，"
            "并结合流通比例、市值与交易量评估供应侧风险。"
        ),
    },
}


def normalize_lang(lang: Optional[str]) -> str:
    lang = (lang or "en").strip().lower()
    return lang if lang in SUPPORTED_LANGS else "en"


def mask_address(address: Any) -> str:
    if not address or not isinstance(address, str):
        return "unknown"
    if len(address) <= 8:
        return address
    return f"{address[:4]}...{address[-4:]}"


def _present(value: Any) -> bool:
    return value not in (None, "", "N/A", 0)


def _holder_lines(stats: Mapping[str, Any], labels: Mapping[str, str]) -> List[str]:
    change = (stats.get("holderChange") or {}).get("30d") or {}
    top10 = (stats.get("holderSupply") or {}).get("top10") or {}
    distribution = stats.get("holderDistribution") or {}
    acquisition = stats.get("holdersByAcquisition") or {}
    ranked = sorted(
        ((method, count) for method, count in acquisition.items() if isinstance(count, (int, float))),
        key=lambda item: item[1],
        reverse=True,
    )[:2]
    main_acquisition = ", ".join(f"{method}: {count}" for method, count in ranked) or labels["unknown"]
    return [
        labels["holder_section"],
        f"- {labels['holders']}: {stats.get('totalHolders') or labels['unknown']}",
        f"- {labels['holder_change']}: {change.get('changePercent') or 0}%",
        f"- {labels['top10']}: {top10.get('supplyPercent') or labels['unknown']}%",
        f"- {labels['distribution']}: {labels['whales']}: {distribution.get('whales') or 0}, "
        f"{labels['shrimps']}: {distribution.get('shrimps') or 0}",
        f"- {labels['acquisition']}: {main_acquisition}",
    ]


def _series_lines(analytics: Mapping[str, Any], labels: Mapping[str, str]) -> List[str]:
    lines: List[str] = []

    def series(name: str) -> Mapping[str, Any]:
        value = analytics.get(name)
        return value if isinstance(value, dict) else {}

    price_changes = {tf: series("priceChangePercent").get(tf) for tf in PROMPT_TIMEFRAMES}
    price_changes = {tf: value for tf, value in price_changes.items() if _present(value)}
    if price_changes:
        lines += ["", labels["price_changes"]]
        lines += [f"- {tf}: {value}" for tf, value in price_changes.items()]

    volumes = {}
    for tf in PROMPT_TIMEFRAMES:
        buy = series("buyVolumeUSD").get(tf) or "N/A"
        sell = series("sellVolumeUSD").get(tf) or "N/A"
        if buy != "N/A" or sell != "N/A":
            volumes[tf] = (buy, sell)
    if volumes:
        lines += ["", labels["volumes"]]
        lines += [
            f"- {tf}: {labels['buy']} {buy} / {labels['sell']} {sell}" for tf, (buy, sell) in volumes.items()
        ]

    wallets = {}
    for tf in PROMPT_TIMEFRAMES:
        count = series("uniqueWallets").get(tf)
        change = series("uniqueWalletsChangePercent").get(tf)
        if _present(count) or _present(change):
            wallets[tf] = (count, change)
    if wallets:
        lines += ["", labels["wallets"]]
        lines += [
            f"- {tf}: {count or 'N/A'} {labels['wallets_unit']} ({change or 'N/A'} {labels['change_unit']})"
            for tf, (count, change) in wallets.items()
        ]

    counts = {}
    for tf in PROMPT_TIMEFRAMES:
        buys = series("buyCounts").get(tf)
        sells = series("sellCounts").get(tf)
        if _present(buys) or _present(sells):
            counts[tf] = (buys, sells)
    if counts:
        lines += ["", labels["counts"]]
        lines += [
            f"- {tf}: {buys or 'N/A'} {labels['buys_unit']} / {sells or 'N/A'} {labels['sells_unit']}"
            for tf, (buys, sells) in counts.items()
        ]
    return lines


def _trader_lines(traders: Any, labels: Mapping[str, str]) -> List[str]:
    if isinstance(traders, dict):
        traders = traders.get("items")
    if not isinstance(traders, list) or not traders:
        return [labels["no_traders"]]
    lines = [labels["traders"]]
    for index, trader in enumerate(traders[:10], start=1):
        total = trader.get("total") or {}
        buy = trader.get("buy") or {}
        sell = trader.get("sell") or {}
        tags = ", ".join(trader.get("tags") or []) or labels["none"]
        lines.append(
            f"- {labels['trader']} {index} ({labels['trader_address']}: {mask_address(trader.get('address'))}): "
            f"{labels['trader_total']}: {total.get('amountUSDFormatted')}, "
            f"{labels['trader_trades']}: {total.get('count')} "
            f"({labels['trader_split']}: {buy.get('count')}/{sell.get('count')}), "
            f"{labels['trader_tags']}: {tags}"
        )
    return lines


def _link_lines(metadata: Mapping[str, Any], labels: Mapping[str, str]) -> List[str]:
    links = metadata.get("links")
    if not isinstance(links, dict):
        return [labels["no_links"]]
    lines = [
        f"- {key[:1].upper()}{key[1:]}: {value}"
        for key, value in links.items()
        if value and key != "moralis"
    ]
    return lines or [labels["no_links"]]


def build_prompt(bundle: Mapping[str, Any], lang: str = "en") -> str:
    """Render the analysis prompt for a serialized bundle in ``lang`` (``en`` or ``zh``)."""

    labels = _LABELS[normalize_lang(lang)]
    overview = bundle.get("tokenOverview") or {}
    metadata = bundle.get("metadata") or {}
    stats = bundle.get("holderStats") or {}
    analytics = bundle.get("tokenAnalytics") or {}
    is_solana = bundle.get("chain") == "solana"

    lines = [
        labels["intro"],
        "",
        labels["core"],
        f"- {labels['name']}: {overview.get('name')} ({overview.get('symbol')})",
        f"- {labels['price']}: {overview.get('priceFormatted')} ({labels['change']}: {overview.get('priceChange24h') or 'N/A'})",
        f"- {labels['circulating']}: {overview.get('circulatingSupplyFormatted')}",
    ]
    if overview.get("circulationRatio") is not None:
        lines.append(f"- {labels['ratio']}: {overview.get('circulationRatio')}%")
    lines += [
        f"- {labels['liquidity']}: {overview.get('liquidityFormatted') or 'N/A'}",
        f"- {labels['market_cap']}: {overview.get('marketCapFormatted') or 'N/A'}",
        f"- {labels['fdv']}: {overview.get('fdvFormatted') or 'N/A'}",
    ]
    if is_solana:
        lines.append(f"- {labels['holders']}: {stats.get('totalHolders') or labels['unknown']}")
    lines += [
        f"- {labels['spam']}: {labels['yes'] if metadata.get('possible_spam') else labels['no']}",
        f"- {labels['security']}: {metadata.get('security_score') or labels['unknown']} "
        f"({labels['verified']}: {labels['yes'] if metadata.get('verified_contract') else labels['no']})",
    ]
    if not is_solana:
        lines += [""] + _holder_lines(stats, labels)

    buyers = analytics.get("totalBuyers") if isinstance(analytics.get("totalBuyers"), dict) else {}
    sellers = analytics.get("totalSellers") if isinstance(analytics.get("totalSellers"), dict) else {}
    buys = analytics.get("totalBuys") if isinstance(analytics.get("totalBuys"), dict) else {}
    sells = analytics.get("totalSells") if isinstance(analytics.get("totalSells"), dict) else {}
    lines += [
        "",
        labels["trading"],
        f"- {labels['buyers_sellers']}: {buyers.get('24h') or 0} / {sellers.get('24h') or 0}",
        f"- {labels['buys_sells']}: {buys.get('24h') or 0} / {sells.get('24h') or 0}",
    ]
    lines += _series_lines(analytics, labels)
    lines += [""] + _trader_lines(bundle.get("topTraders"), labels)
    lines += ["", labels["links"]] + _link_lines(metadata, labels)
    lines += ["", labels["closing"]]
    return "\n".join(lines)


@dataclass(frozen=True)
class NarrativeResult:
    success: bool
    analysis: Optional[str] = None
    error: Optional[str] = None
    details: Optional[str] = None
    model: Optional[str] = None


def _response_text(data: Any) -> str:
    if not isinstance(data, dict):
        return ""
    choices = data.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        message = choices[0].get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        if isinstance(content, str) and content.strip():
            return content.strip()
        text = choices[0].get("text")
        if isinstance(text, str) and text.strip():
            return text.strip()
    output = data.get("output")
    if isinstance(output, str) and output.strip():
        return output.strip()
    return ""


class NarrativeGenerator:
    """Chat-completions client that walks a model priority list until one answers."""

    def __init__(
        self,
        api_key: str,
        models: Sequence[str],
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 120.0,
        max_retries: int = 2,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.api_key = api_key
        self.models = list(models)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.client = client
        self._sleep = sleep

    async def generate(self, bundle: Mapping[str, Any], lang: str = "en") -> NarrativeResult:
        if not self.api_key:
            _LOGGER.warning("narrative skipped: XAI_API_KEY not configured")
            return NarrativeResult(
                success=False,
                error="AI API key not configured",
                details="Set XAI_API_KEY to enable analysis",
            )
        if not bundle.get("tokenOverview"):
            return NarrativeResult(success=False, error="Missing token data", details="tokenOverview is empty")

        lang = normalize_lang(lang)
        prompt = build_prompt(bundle, lang)
        messages = [
            {"role": "system", "content": _SYSTEM_MESSAGES[lang]},
            {"role": "user", "content": prompt},
        ]
        _LOGGER.info("narrative start lang=%s prompt_chars=%s models=%s", lang, len(prompt), ",".join(self.models))

        last = NarrativeResult(success=False, error="No AI models configured")
        for model in self.models:
            result = await self._try_model(model, messages)
            if result.success:
                _LOGGER.info("narrative complete model=%s chars=%s", model, len(result.analysis or ""))
                return result
            _LOGGER.warning("narrative model failed model=%s error=%s", model, result.error)
            last = result
        return last

    async def _try_model(self, model: str, messages: List[Dict[str, str]]) -> NarrativeResult:
        attempt = 0
        while True:
            try:
                response = await self._post(model, messages)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                body = exc.response.text
                _LOGGER.warning("xai error model=%s status=%s body=%s", model, status, body[:300])
                if status < 500 or attempt >= self.max_retries:
                    return NarrativeResult(
                        success=False, error=f"API error (HTTP {status})", details=body, model=model
                    )
            except httpx.HTTPError as exc:
                _LOGGER.warning("xai transport error model=%s error=%s", model, exc.__class__.__name__)
                if attempt >= self.max_retries:
                    return NarrativeResult(
                        success=False,
                        error=f"Request to model {model} failed",
                        details=str(exc) or exc.__class__.__name__,
                        model=model,
                    )
            else:
                return self._parse(model, response)
            attempt += 1
            _LOGGER.info("xai retry model=%s attempt=%s/%s", model, attempt, self.max_retries)
            await self._sleep(1.0 * attempt)

    def _parse(self, model: str, response: httpx.Response) -> NarrativeResult:
        try:
            data = response.json()
        except ValueError:
            data = None
        text = _response_text(data)
        if text:
            return NarrativeResult(success=True, analysis=text, model=model)
        keys = sorted(data.keys()) if isinstance(data, dict) else type(data).__name__
        _LOGGER.warning("xai unparseable response model=%s keys=%s", model, keys)
        return NarrativeResult(
            success=False,
            error="Could not extract text from AI response",
            details=f"response keys={keys}",
            model=model,
        )

    async def _post(self, model: str, messages: List[Dict[str, str]]) -> httpx.Response:
        payload = {
            "model": model,
            "messages": messages,
            "temperature": 0.7,
            "max_tokens": 800,
            "stream": False,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        url = f"{self.base_url}/chat/completions"
        if self.client is not None:
            return await self.client.post(url, json=payload, headers=headers, timeout=self.timeout)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(url, json=payload, headers=headers)
