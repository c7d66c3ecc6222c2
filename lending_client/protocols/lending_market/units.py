"""Conversion between native asset amounts and position units.

Each liquidity cluster publishes a supply ratio and a debt ratio expressed as
units per native amount:

    units  = amount × ratio
    amount = units  / ratio

The result is rounded half-up to protocol precision exactly once, after the
full-precision computation, so repeated conversions do not compound error.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, Mapping

from ...decimals import PROTOCOL_DECIMAL_PLACES, ZERO, div, mul, round_dec, to_decimal
from ...errors import ClusterStateUnavailable
from ...models import AssetConfig, AssetName, ClusterState, PositionSide

logger = logging.getLogger(__name__)


class UnitConverter:
    """Translate amounts ↔ units using a snapshot of cluster ratios."""

    def __init__(
        self,
        assets: Iterable[AssetConfig],
        cluster_states: Mapping[str, ClusterState],
        decimal_places: int = PROTOCOL_DECIMAL_PLACES,
    ) -> None:
        self._assets = {a.label: a for a in assets}
        self._clusters = dict(cluster_states)
        self._places = decimal_places

    def ratio(self, side: PositionSide, label: AssetName) -> Decimal:
        """Ratio for ``label`` on ``side``.

        Raises:
            ClusterStateUnavailable: asset unknown, no cluster state loaded for
                its address, or the ratio is not strictly positive.
        """
        asset = self._assets.get(label)
        if asset is None:
            raise ClusterStateUnavailable(f"Asset {label.value} is not configured")

        cluster = self._clusters.get(asset.address)
        if cluster is None:
            raise ClusterStateUnavailable(
                f"No cluster state found for {label.value} ({asset.address})"
            )

        ratio = cluster.ratio(side)
        if ratio <= ZERO:
            raise ClusterStateUnavailable(
                f"Non-positive {side.value} ratio {ratio} for {label.value}"
            )
        return ratio

    def units_to_amount(self, side: PositionSide, label: AssetName, units) -> Decimal:
        ratio = self.ratio(side, label)
        amount = round_dec(div(to_decimal(units), ratio), self._places)
        logger.debug("%s %s units %s → amount %s", label.value, side.value, units, amount)
        return amount

    def amount_to_units(self, side: PositionSide, label: AssetName, amount) -> Decimal:
        ratio = self.ratio(side, label)
        units = round_dec(mul(to_decimal(amount), ratio), self._places)
        logger.debug("%s %s amount %s → units %s", label.value, side.value, amount, units)
        return units
