"""Market data protocol — prices and cluster ratios."""
from decimal import Decimal
from typing import Protocol

from ..models import ClusterState


class MarketData(Protocol):
    """Abstract interface for the price/cluster service, keyed by asset address."""

    async def fetch_prices(self) -> dict[str, Decimal]: ...

    async def fetch_cluster_states(self) -> dict[str, ClusterState]: ...
