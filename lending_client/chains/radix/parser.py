"""Pure parsing functions for Radix Gateway responses — no I/O."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from ...decimals import ZERO, add, to_decimal
from ...errors import DecimalArithmeticError
from ...models import AccountState, NonFungibleData, NonFungibleField

logger = logging.getLogger(__name__)


def build_entity_details_request(address: str) -> dict[str, Any]:
    """Body for ``/state/entity/details`` with per-vault aggregation and NF ids."""
    return {
        "addresses": [address],
        "aggregation_level": "Vault",
        "opt_ins": {"non_fungible_include_nfids": True},
    }


def build_non_fungible_data_request(resource_address: str, local_id: str) -> dict[str, Any]:
    return {"resource_address": resource_address, "non_fungible_ids": [local_id]}


def sum_vault_amounts(resource: dict[str, Any]) -> Decimal:
    """Total fungible amount held across all vaults of one resource."""
    amount = ZERO
    for vault in resource.get("vaults", {}).get("items", []):
        try:
            amount = add(amount, to_decimal(vault.get("amount", "0")))
        except DecimalArithmeticError:
            logger.warning(
                "Ignoring vault %s with malformed amount %r",
                vault.get("vault_address", "?"),
                vault.get("amount"),
            )
    return amount


def collect_local_ids(resource: dict[str, Any]) -> tuple[str, ...]:
    """Non-fungible local ids held across all vaults of one resource."""
    ids: list[str] = []
    for vault in resource.get("vaults", {}).get("items", []):
        ids.extend(str(i) for i in vault.get("items", []) or [])
    return tuple(ids)


def parse_account_state(address: str, response: dict[str, Any]) -> AccountState:
    """Turn an entity-details response into an :class:`AccountState`.

    An address missing from the response is an account that holds nothing.
    """
    item = next(
        (i for i in response.get("items", []) if i.get("address") == address),
        None,
    )
    if item is None:
        logger.debug("Account %s not present in entity details", address)
        return AccountState(address=address)

    balances: dict[str, Decimal] = {}
    for resource in item.get("fungible_resources", {}).get("items", []):
        resource_address = resource.get("resource_address")
        if resource_address:
            balances[resource_address] = add(
                balances.get(resource_address, ZERO), sum_vault_amounts(resource)
            )

    non_fungibles: dict[str, tuple[str, ...]] = {}
    for resource in item.get("non_fungible_resources", {}).get("items", []):
        resource_address = resource.get("resource_address")
        if resource_address:
            ids = collect_local_ids(resource)
            non_fungibles[resource_address] = (
                non_fungibles.get(resource_address, ()) + ids
            )

    return AccountState(
        address=address, fungible_balances=balances, non_fungibles=non_fungibles
    )


def _sbor_value(node: Any) -> str:
    """Scalar value of a programmatic-JSON node (``{"kind": .., "value": ..}``)."""
    if isinstance(node, dict):
        return str(node.get("value", ""))
    return str(node)


def parse_field(raw: dict[str, Any]) -> NonFungibleField:
    entries = tuple(
        (_sbor_value(e.get("key")), _sbor_value(e.get("value")))
        for e in raw.get("entries", []) or []
    )
    return NonFungibleField(name=str(raw.get("field_name", "")), entries=entries)


def parse_non_fungible_data(
    resource_address: str, local_id: str, response: dict[str, Any]
) -> NonFungibleData:
    """Extract the top-level fields of one non-fungible's programmatic JSON.

    Returns data with no fields when the id is missing or burned.
    """
    for item in response.get("non_fungible_ids", []):
        if item.get("non_fungible_id") != local_id:
            continue
        if item.get("is_burned"):
            logger.warning("Non-fungible %s %s is burned", resource_address, local_id)
            break
        programmatic = item.get("data", {}).get("programmatic_json", {})
        fields = tuple(parse_field(f) for f in programmatic.get("fields", []) or [])
        return NonFungibleData(resource_address, local_id, fields)

    return NonFungibleData(resource_address, local_id)
