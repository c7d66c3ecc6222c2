"""Pure parsing of position badge data — no I/O."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from ...decimals import ZERO, add, to_decimal
from ...errors import DecimalArithmeticError
from ...models import (
    AccountState,
    AssetConfig,
    NonFungibleData,
    Position,
    PositionBadge,
    PositionSide,
)

logger = logging.getLogger(__name__)

# Badge field name → side; anything else on the badge is ignored.
FIELD_SIDES = {side.value: side for side in PositionSide}


def find_badge(account: AccountState, badge_resource_address: str) -> Optional[PositionBadge]:
    """First position badge held by the account, if any."""
    local_ids = account.non_fungibles.get(badge_resource_address, ())
    if not local_ids:
        return None
    if len(local_ids) > 1:
        logger.warning(
            "Account %s holds %d position badges, using %s",
            account.address, len(local_ids), local_ids[0],
        )
    return PositionBadge(badge_resource_address, local_ids[0])


def parse_position(badge: PositionBadge, data: NonFungibleData) -> Position:
    """Split badge fields into supply and borrow unit maps."""
    sides: dict[PositionSide, dict[str, Decimal]] = {side: {} for side in PositionSide}

    for field in data.fields:
        side = FIELD_SIDES.get(field.name)
        if side is None:
            continue
        units = sides[side]
        for address, raw_value in field.entries:
            try:
                value = to_decimal(raw_value)
            except DecimalArithmeticError:
                logger.warning(
                    "Skipping %s entry for %s with malformed units %r",
                    side.value, address, raw_value,
                )
                continue
            units[address] = add(units.get(address, ZERO), value)

    return Position(
        badge=badge,
        supply=sides[PositionSide.SUPPLY],
        borrow=sides[PositionSide.BORROW],
    )


def resolve_assets(
    units: Mapping[str, Decimal],
    assets: Iterable[AssetConfig],
    side: PositionSide,
) -> list[tuple[AssetConfig, Decimal]]:
    """Pair unit balances with configured assets, dropping unknown addresses.

    Order follows the asset registry so snapshots are stable across reads.
    """
    items = dict(units)
    by_address = {a.address: a for a in assets}

    for address in items:
        if address not in by_address:
            logger.warning("Dropping %s units for unknown asset %s", side.value, address)

    return [
        (asset, items[asset.address])
        for asset in by_address.values()
        if asset.address in items and items[asset.address] > ZERO
    ]
