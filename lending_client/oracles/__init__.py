"""Market data sources."""
from .market_api import MarketApiClient

__all__ = ["MarketApiClient"]
