"""Fan-out/fan-in of adapter calls and defensive payload extraction."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Sequence, Tuple


_LOGGER = logging.getLogger("tokenscope.extract")

FULFILLED = "fulfilled"
BUSINESS_ERROR = "business_error"
REJECTED = "rejected"

Extractor = Tuple[str, Callable[[Any], Any]]


@dataclass(frozen=True)
class Outcome:
    name: str
    value: Any = None
    error: Optional[Exception] = None

    @property
    def status(self) -> str:
        if self.error is not None:
            return REJECTED
        if isinstance(self.value, dict) and self.value.get("success") is False:
            return BUSINESS_ERROR
        return FULFILLED

    @property
    def ok(self) -> bool:
        return self.status == FULFILLED


async def settle_all(calls: Mapping[str, Awaitable[Any]]) -> Dict[str, Outcome]:
    """Await every call; a failing call never cancels or hides the others."""

    names = list(calls.keys())
    results = await asyncio.gather(*calls.values(), return_exceptions=True)
    outcomes: Dict[str, Outcome] = {}
    for name, result in zip(names, results):
        if isinstance(result, Exception):
            outcomes[name] = Outcome(name=name, error=result)
        elif isinstance(result, BaseException):
            raise result
        else:
            outcomes[name] = Outcome(name=name, value=result)
    _LOGGER.info(
        "settled calls=%s statuses=%s",
        len(outcomes),
        ",".join(f"{name}:{outcome.status}" for name, outcome in outcomes.items()),
    )
    return outcomes


def _walk(payload: Any, path: Sequence[str]) -> Any:
    for key in path:
        if not isinstance(payload, dict):
            return None
        payload = payload.get(key)
    return payload


def list_at(*path: str) -> Callable[[Any], Optional[list]]:
    def extract(payload: Any) -> Optional[list]:
        value = _walk(payload, path)
        return value if isinstance(value, list) else None

    return extract


def dict_at(*path: str) -> Callable[[Any], Optional[dict]]:
    def extract(payload: Any) -> Optional[dict]:
        value = _walk(payload, path)
        return value if isinstance(value, dict) else None

    return extract


def first_of(*path: str) -> Callable[[Any], Optional[dict]]:
    def extract(payload: Any) -> Optional[dict]:
        value = _walk(payload, path)
        if isinstance(value, list) and value and isinstance(value[0], dict):
            return value[0]
        return None

    return extract


HOLDER_LIST_EXTRACTORS: Tuple[Extractor, ...] = (
    ("list", list_at()),
    ("result", list_at("result")),
    ("data.items", list_at("data", "items")),
    ("data", list_at("data")),
    ("items", list_at("items")),
)

METADATA_EXTRACTORS: Tuple[Extractor, ...] = (
    ("list[0]", first_of()),
    ("result[0]", first_of("result")),
    ("object", dict_at()),
)

BIRDEYE_DATA_EXTRACTORS: Tuple[Extractor, ...] = (("data", dict_at("data")),)

BIRDEYE_ITEMS_EXTRACTORS: Tuple[Extractor, ...] = (
    ("data.items", list_at("data", "items")),
    ("items", list_at("items")),
    ("list", list_at()),
)

OBJECT_EXTRACTORS: Tuple[Extractor, ...] = (("object", dict_at()),)


def extract_first(payload: Any, extractors: Sequence[Extractor], label: str, default: Any = None) -> Any:
    """Try each extractor in order; the first non-None result wins."""

    for name, extractor in extractors:
        value = extractor(payload)
        if value is not None:
            _LOGGER.debug("extract label=%s matched=%s", label, name)
            return value
    keys = sorted(payload.keys()) if isinstance(payload, dict) else None
    _LOGGER.warning(
        "extract label=%s no shape matched type=%s keys=%s",
        label,
        type(payload).__name__,
        keys,
    )
    return default


def payload_of(outcome: Outcome, extractors: Sequence[Extractor], default: Any = None) -> Any:
    """Pull the useful part out of an outcome, degrading every failure state to ``default``."""

    status = outcome.status
    if status == REJECTED:
        _LOGGER.warning("upstream rejected call=%s error=%s", outcome.name, outcome.error)
        return default
    if status == BUSINESS_ERROR:
        _LOGGER.warning(
            "upstream business error call=%s message=%s",
            outcome.name,
            outcome.value.get("message"),
        )
        return default
    if outcome.value is None:
        _LOGGER.warning("upstream empty call=%s", outcome.name)
        return default
    return extract_first(outcome.value, extractors, outcome.name, default)
