"""Market API client — asset prices and cluster ratios."""
import logging
import ssl
from decimal import Decimal
from typing import Any

import aiohttp
import certifi

from ..config import MarketApiConfig
from ..decimals import to_decimal
from ..errors import ClusterStateUnavailable, DecimalArithmeticError, PriceUnavailable
from ..models import ClusterState

logger = logging.getLogger(__name__)


def parse_prices(data: Any) -> dict[str, Decimal]:
    """Parse ``{"prices": [{"asset": addr, "price": p}]}`` (or the bare list)."""
    items = data.get("prices") if isinstance(data, dict) else data
    if not isinstance(items, list):
        raise PriceUnavailable("Unexpected price data format: prices is not an array")

    prices: dict[str, Decimal] = {}
    for item in items:
        address = item.get("asset") if isinstance(item, dict) else None
        if not address:
            logger.warning("Skipping price entry without asset: %r", item)
            continue
        try:
            price = to_decimal(item.get("price"))
        except DecimalArithmeticError:
            logger.warning("Skipping malformed price for %s: %r", address, item.get("price"))
            continue
        if price < 0:
            logger.warning("Skipping negative price for %s: %s", address, price)
            continue
        prices[address] = price
    return prices


def _ratio(raw: dict[str, Any], snake: str, camel: str) -> Any:
    return raw.get(snake, raw.get(camel))


def parse_cluster_states(data: Any) -> dict[str, ClusterState]:
    """Parse ``{address: {"supply_ratio": .., "debt_ratio": ..}}``.

    Entries with missing or non-positive ratios are left out, so lookups for
    them fail instead of converting with a made-up ratio.
    """
    if not isinstance(data, dict):
        raise ClusterStateUnavailable("Unexpected cluster data format: not an object")

    clusters: dict[str, ClusterState] = {}
    for address, raw in data.items():
        if not isinstance(raw, dict):
            logger.warning("Skipping malformed cluster state for %s", address)
            continue
        try:
            supply_ratio = to_decimal(_ratio(raw, "supply_ratio", "supplyRatio"))
            debt_ratio = to_decimal(_ratio(raw, "debt_ratio", "debtRatio"))
        except DecimalArithmeticError:
            logger.warning("Skipping cluster state for %s with malformed ratios", address)
            continue
        if supply_ratio <= 0 or debt_ratio <= 0:
            logger.warning(
                "Skipping cluster state for %s with non-positive ratios (%s, %s)",
                address, supply_ratio, debt_ratio,
            )
            continue
        clusters[address] = ClusterState(supply_ratio=supply_ratio, debt_ratio=debt_ratio)
    return clusters


class MarketApiClient:
    """Fetch prices and cluster states from the lending market backend."""

    def __init__(self, config: MarketApiConfig) -> None:
        self.base_url = config.base_url.rstrip("/")
        self.timeout = config.timeout

    async def _get_json(self, path: str) -> Any:
        url = f"{self.base_url}/{path}"
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        async with aiohttp.ClientSession(connector=connector) as session:
            async with session.get(
                url, timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as response:
                if response.status != 200:
                    raise RuntimeError(f"HTTP {response.status}")
                return await response.json()

    async def fetch_prices(self) -> dict[str, Decimal]:
        """Current asset prices keyed by resource address."""
        try:
            data = await self._get_json("assets/prices")
        except Exception as e:
            logger.error("Error fetching asset prices: %s", e)
            raise PriceUnavailable(f"Error fetching asset prices: {e}") from e

        prices = parse_prices(data)
        logger.info("Fetched %d asset prices", len(prices))
        for address, price in sorted(prices.items()):
            logger.debug("  %s: $%s", address, price)
        return prices

    async def fetch_cluster_states(self) -> dict[str, ClusterState]:
        """Current supply/debt ratios keyed by resource address."""
        try:
            data = await self._get_json("assets/clusters")
        except Exception as e:
            logger.error("Error fetching cluster states: %s", e)
            raise ClusterStateUnavailable(f"Error fetching cluster states: {e}") from e

        clusters = parse_cluster_states(data)
        logger.info("Fetched %d cluster states", len(clusters))
        return clusters
