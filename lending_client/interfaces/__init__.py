"""Protocol interfaces for the lending client."""
from .chain import LedgerGateway
from .price_oracle import MarketData
from .transport import SigningTransport

__all__ = ["LedgerGateway", "MarketData", "SigningTransport"]
