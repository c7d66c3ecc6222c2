"""Ledger gateway protocol — ledger state query abstraction."""
from typing import Protocol

from ..models import AccountState, NonFungibleData


class LedgerGateway(Protocol):
    """Abstract interface for reading account and non-fungible state."""

    async def get_account_state(self, address: str) -> AccountState: ...

    async def get_non_fungible_data(
        self, resource_address: str, local_id: str
    ) -> NonFungibleData: ...
