"""Unit tests for the amount ↔ unit converter."""
from __future__ import annotations

from decimal import Decimal

import pytest

from lending_client.errors import ClusterStateUnavailable
from lending_client.models import AssetConfig, AssetName, ClusterState, PositionSide
from lending_client.protocols.lending_market import UnitConverter


@pytest.fixture()
def converter(
    asset_configs: tuple[AssetConfig, ...], sample_clusters: dict[str, ClusterState]
) -> UnitConverter:
    return UnitConverter(asset_configs, sample_clusters)


class TestConversion:
    def test_supply_units_to_amount(self, converter: UnitConverter) -> None:
        # xUSDT supply ratio 0.5 units per token
        assert converter.units_to_amount(PositionSide.SUPPLY, AssetName.XUSDT, "50") == Decimal("100")

    def test_borrow_amount_to_units(self, converter: UnitConverter) -> None:
        # xUSDT debt ratio 2 units per token
        assert converter.amount_to_units(PositionSide.BORROW, AssetName.XUSDT, "250") == Decimal("500")

    def test_rounds_to_protocol_precision(
        self, asset_configs: tuple[AssetConfig, ...]
    ) -> None:
        converter = UnitConverter(
            asset_configs,
            {asset_configs[0].address: ClusterState(Decimal("3"), Decimal("3"))},
        )
        amount = converter.units_to_amount(PositionSide.SUPPLY, AssetName.XRD, "1")
        assert amount == Decimal("0.333333333333333333")

    @pytest.mark.parametrize("amount", ["1", "0.000000000000000001", "123456.789", "1000000"])
    def test_round_trip_within_one_unit(self, asset_configs, amount: str) -> None:
        ratio = Decimal("1.000000000000000007")
        converter = UnitConverter(
            asset_configs, {asset_configs[2].address: ClusterState(ratio, ratio)}
        )
        units = converter.amount_to_units(PositionSide.SUPPLY, AssetName.HUG, amount)
        back = converter.units_to_amount(PositionSide.SUPPLY, AssetName.HUG, units)

        assert abs(back - Decimal(amount)) <= Decimal("1E-18")

    @pytest.mark.parametrize("units", ["1", "999.999999999999999999", "0.000000000000000003"])
    def test_units_round_trip_within_one_unit(self, asset_configs, units: str) -> None:
        ratio = Decimal("1.000000000000000007")
        converter = UnitConverter(
            asset_configs, {asset_configs[2].address: ClusterState(ratio, ratio)}
        )
        amount = converter.units_to_amount(PositionSide.BORROW, AssetName.HUG, units)
        back = converter.amount_to_units(PositionSide.BORROW, AssetName.HUG, amount)

        assert abs(back - Decimal(units)) <= Decimal("1E-18")


class TestRatio:
    def test_missing_cluster_raises(self, asset_configs: tuple[AssetConfig, ...]) -> None:
        converter = UnitConverter(asset_configs, {})
        with pytest.raises(ClusterStateUnavailable, match="No cluster state"):
            converter.ratio(PositionSide.SUPPLY, AssetName.XRD)

    def test_zero_ratio_raises(self, asset_configs: tuple[AssetConfig, ...]) -> None:
        converter = UnitConverter(
            asset_configs,
            {asset_configs[0].address: ClusterState(Decimal("0"), Decimal("1"))},
        )
        with pytest.raises(ClusterStateUnavailable, match="Non-positive"):
            converter.amount_to_units(PositionSide.SUPPLY, AssetName.XRD, "1")

    def test_unconfigured_asset_raises(self, asset_configs: tuple[AssetConfig, ...]) -> None:
        converter = UnitConverter(asset_configs[:1], {})
        with pytest.raises(ClusterStateUnavailable, match="not configured"):
            converter.ratio(PositionSide.BORROW, AssetName.HUG)
