"""Unit tests for data models."""
from __future__ import annotations

from decimal import Decimal

import pytest

from lending_client.models import (
    UNBOUNDED,
    ActionKind,
    Asset,
    AssetName,
    ClusterState,
    HealthFactor,
    PortfolioSnapshot,
    Position,
    PositionBadge,
    PositionSide,
)


class TestAssetName:
    @pytest.mark.parametrize("label", ["xUSDT", "xusdt", " XUSDT "])
    def test_parse_is_case_insensitive(self, label: str) -> None:
        assert AssetName.parse(label) is AssetName.XUSDT

    def test_parse_unknown_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown asset"):
            AssetName.parse("BTC")


class TestActionKind:
    def test_improves_health(self) -> None:
        assert ActionKind.SUPPLY.improves_health
        assert ActionKind.OPEN_POSITION.improves_health
        assert ActionKind.REPAY.improves_health
        assert not ActionKind.BORROW.improves_health
        assert not ActionKind.WITHDRAW.improves_health


class TestAsset:
    def test_value_and_rate_by_side(self) -> None:
        asset = Asset(
            address="res_xrd",
            label=AssetName.XRD,
            selected_amount=Decimal("10"),
            price=Decimal("0.5"),
            supply_rate=Decimal("5"),
            borrow_rate=Decimal("10"),
            side=PositionSide.BORROW,
        )
        assert asset.value == Decimal("5")
        assert asset.rate == Decimal("10")

    def test_frozen(self) -> None:
        asset = Asset(address="res_xrd", label=AssetName.XRD)
        with pytest.raises(AttributeError):
            asset.price = Decimal("1")  # type: ignore[misc]


class TestClusterState:
    def test_ratio_by_side(self) -> None:
        cluster = ClusterState(supply_ratio=Decimal("0.5"), debt_ratio=Decimal("2"))
        assert cluster.ratio(PositionSide.SUPPLY) == Decimal("0.5")
        assert cluster.ratio(PositionSide.BORROW) == Decimal("2")


class TestHealthFactor:
    def test_unbounded(self) -> None:
        assert UNBOUNDED.is_unbounded
        assert not UNBOUNDED.is_below(Decimal("1.5"))
        assert str(UNBOUNDED) == "∞"

    def test_defined(self) -> None:
        hf = HealthFactor(Decimal("1.25"))
        assert not hf.is_unbounded
        assert hf.is_below(Decimal("1.5"))
        assert not hf.is_below(Decimal("1.25"))
        assert str(hf) == "1.25"

    def test_str_two_places(self) -> None:
        assert str(HealthFactor(Decimal("2"))) == "2.00"


class TestPosition:
    def test_is_empty(self) -> None:
        badge = PositionBadge("res_badge", "#1#")
        assert Position(badge).is_empty
        assert not Position(badge, supply={"res_xrd": Decimal("1")}).is_empty

    def test_units_by_side(self) -> None:
        badge = PositionBadge("res_badge", "#1#")
        position = Position(badge, supply={"a": Decimal("1")}, borrow={"b": Decimal("2")})
        assert position.units(PositionSide.SUPPLY) == {"a": Decimal("1")}
        assert position.units(PositionSide.BORROW) == {"b": Decimal("2")}


class TestPortfolioSnapshot:
    def test_empty_defaults(self) -> None:
        snap = PortfolioSnapshot(account="acc")
        assert not snap.has_position
        assert snap.total_supply_value == 0
        assert snap.total_borrow_value == 0
        assert snap.health_factor.is_unbounded

    def test_lookups(self) -> None:
        row = Asset(address="res_xrd", label=AssetName.XRD, side=PositionSide.SUPPLY)
        snap = PortfolioSnapshot(
            account="acc",
            badge=PositionBadge("res_badge", "#1#"),
            supply_assets=(row,),
            wallet_balances={"res_xrd": Decimal("3")},
        )
        assert snap.has_position
        assert snap.supplied("res_xrd") is row
        assert snap.borrowed("res_xrd") is None
        assert snap.wallet_balance("res_xrd") == Decimal("3")
        assert snap.wallet_balance("res_other") == 0
