"""Standardized token bundles, one variant per chain."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Union


@dataclass(frozen=True)
class TokenBundle:
    """Sections shared by every chain; ``holder_stats`` and ``token_analytics`` differ per chain."""

    CHAIN: ClassVar[str] = ""

    token_overview: Dict[str, Any]
    metadata: Dict[str, Any]
    holder_stats: Dict[str, Any] = field(default_factory=dict)
    top_traders: List[Dict[str, Any]] = field(default_factory=list)
    token_analytics: Dict[str, Any] = field(default_factory=dict)

    @property
    def chain(self) -> str:
        return self.CHAIN

    def to_dict(self) -> Dict[str, Any]:
        """Deep copy in the wire shape; callers may mutate the result freely."""

        return copy.deepcopy(
            {
                "chain": self.CHAIN,
                "tokenOverview": self.token_overview,
                "holderStats": self.holder_stats,
                "topTraders": self.top_traders,
                "tokenAnalytics": self.token_analytics,
                "metadata": self.metadata,
            }
        )


@dataclass(frozen=True)
class BscBundle(TokenBundle):
    CHAIN: ClassVar[str] = "bsc"


@dataclass(frozen=True)
class SolanaBundle(TokenBundle):
    CHAIN: ClassVar[str] = "solana"


ChainBundle = Union[BscBundle, SolanaBundle]
