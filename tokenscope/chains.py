"""Chain detection from address shape."""

from __future__ import annotations

import logging
import re
from typing import Optional


_LOGGER = logging.getLogger("tokenscope.chains")

BSC = "bsc"
SOLANA = "solana"
SUPPORTED_CHAINS = (BSC, SOLANA)

_BSC_RE = re.compile(r"^0x[0-9a-f]+", re.IGNORECASE)
_BASE58_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


def is_bsc_address(address: object) -> bool:
    return isinstance(address, str) and bool(_BSC_RE.match(address.strip()))


def is_solana_address(address: object) -> bool:
    return isinstance(address, str) and bool(_BASE58_RE.match(address.strip()))


def detect_chain(address: object, strict: bool = False) -> Optional[str]:
    """Return ``bsc`` or ``solana`` for ``address``.

    Unrecognized formats fall back to ``solana`` with a warning, or ``None`` when ``strict``.
    Never raises.
    """

    if is_bsc_address(address):
        return BSC
    if is_solana_address(address):
        return SOLANA
    if strict:
        _LOGGER.warning("unrecognized address format address=%s strict=true", address)
        return None
    _LOGGER.warning("unrecognized address format address=%s defaulting to solana", address)
    return SOLANA


def normalize_address(chain: str, address: str) -> str:
    """EVM addresses are case-insensitive; base58 addresses are not."""

    address = (address or "").strip()
    return address.lower() if chain == BSC else address
