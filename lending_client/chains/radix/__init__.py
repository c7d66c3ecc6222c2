"""Radix ledger gateway client."""
from .client import GatewayClient

__all__ = ["GatewayClient"]
