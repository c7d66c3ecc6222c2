"""Data models — all frozen (immutable)."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Mapping, Optional

from .decimals import ZERO, mul


class AssetName(str, enum.Enum):
    """Assets supported by the lending market."""

    XRD = "XRD"
    XUSDT = "xUSDT"
    HUG = "HUG"

    @classmethod
    def parse(cls, label: str) -> AssetName:
        """Case-insensitive lookup by label, e.g. ``"xusdt"`` → ``XUSDT``."""
        for member in cls:
            if member.value.lower() == label.strip().lower():
                return member
        raise ValueError(f"Unknown asset label '{label}'")


class PositionSide(enum.Enum):
    """Which half of a position a unit balance belongs to."""

    SUPPLY = "supply"
    BORROW = "borrow"


class ActionKind(enum.Enum):
    OPEN_POSITION = "open_position"
    SUPPLY = "supply"
    BORROW = "borrow"
    WITHDRAW = "withdraw"
    REPAY = "repay"

    @property
    def improves_health(self) -> bool:
        """Supply-like actions can only raise or hold the health factor."""
        return self in (ActionKind.OPEN_POSITION, ActionKind.SUPPLY, ActionKind.REPAY)


@dataclass(frozen=True)
class AssetConfig:
    """Static description of one market asset."""

    label: AssetName
    address: str
    pool_unit_address: str = ""
    supply_rate: Decimal = ZERO
    borrow_rate: Decimal = ZERO
    icon: str = ""

    def rate(self, side: PositionSide) -> Decimal:
        return self.supply_rate if side is PositionSide.SUPPLY else self.borrow_rate


@dataclass(frozen=True)
class Asset:
    """An asset as seen by one account: wallet holdings, staged amount, rates.

    In a :class:`PortfolioSnapshot` ``selected_amount`` holds the native amount
    supplied or owed, ``units`` the position units behind it.
    """

    address: str
    label: AssetName
    wallet_balance: Decimal = ZERO
    selected_amount: Decimal = ZERO
    supply_rate: Decimal = ZERO
    borrow_rate: Decimal = ZERO
    pool_unit_address: str = ""
    side: Optional[PositionSide] = None
    units: Decimal = ZERO
    price: Decimal = ZERO

    @property
    def value(self) -> Decimal:
        return mul(self.selected_amount, self.price)

    @property
    def rate(self) -> Decimal:
        if self.side is PositionSide.BORROW:
            return self.borrow_rate
        return self.supply_rate


@dataclass(frozen=True)
class ClusterState:
    """Read-only mirror of one liquidity cluster's conversion ratios."""

    supply_ratio: Decimal
    debt_ratio: Decimal

    def ratio(self, side: PositionSide) -> Decimal:
        return self.supply_ratio if side is PositionSide.SUPPLY else self.debt_ratio


@dataclass(frozen=True)
class PositionBadge:
    """Non-fungible badge identifying a lending position."""

    resource_address: str
    local_id: str


@dataclass(frozen=True)
class Position:
    """On-ledger position: units supplied and borrowed, keyed by asset address."""

    badge: PositionBadge
    supply: Mapping[str, Decimal] = field(default_factory=dict)
    borrow: Mapping[str, Decimal] = field(default_factory=dict)

    def units(self, side: PositionSide) -> Mapping[str, Decimal]:
        return self.supply if side is PositionSide.SUPPLY else self.borrow

    @property
    def is_empty(self) -> bool:
        return not self.supply and not self.borrow


@dataclass(frozen=True)
class HealthFactor:
    """Collateral-to-debt ratio, or unbounded when there is no debt.

    ``value`` is ``None`` only for :data:`UNBOUNDED`.
    """

    value: Optional[Decimal] = None

    @property
    def is_unbounded(self) -> bool:
        return self.value is None

    def is_below(self, threshold: Decimal) -> bool:
        return self.value is not None and self.value < threshold

    def __str__(self) -> str:
        if self.value is None:
            return "∞"
        return f"{self.value:.2f}"


UNBOUNDED = HealthFactor()


@dataclass(frozen=True)
class AccountState:
    """Account holdings as reported by the ledger gateway."""

    address: str
    fungible_balances: Mapping[str, Decimal] = field(default_factory=dict)
    non_fungibles: Mapping[str, tuple[str, ...]] = field(default_factory=dict)


@dataclass(frozen=True)
class NonFungibleField:
    """Named field of non-fungible data holding a key → value map."""

    name: str
    entries: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True)
class NonFungibleData:
    resource_address: str
    local_id: str
    fields: tuple[NonFungibleField, ...] = ()


@dataclass(frozen=True)
class PortfolioSnapshot:
    """Derived view of one account's position. Never a source of truth."""

    account: str
    badge: Optional[PositionBadge] = None
    supply_assets: tuple[Asset, ...] = ()
    borrow_assets: tuple[Asset, ...] = ()
    # Keyed by resource address; includes pool-unit tokens.
    wallet_balances: Mapping[str, Decimal] = field(default_factory=dict)
    total_supply_value: Decimal = ZERO
    total_borrow_value: Decimal = ZERO
    health_factor: HealthFactor = UNBOUNDED
    net_worth: Decimal = ZERO
    net_rate: Decimal = ZERO
    average_supply_rate: Decimal = ZERO
    average_borrow_rate: Decimal = ZERO
    borrow_power_used: Decimal = ZERO

    @property
    def has_position(self) -> bool:
        return self.badge is not None

    def supplied(self, address: str) -> Optional[Asset]:
        return next((a for a in self.supply_assets if a.address == address), None)

    def borrowed(self, address: str) -> Optional[Asset]:
        return next((a for a in self.borrow_assets if a.address == address), None)

    def wallet_balance(self, address: str) -> Decimal:
        return self.wallet_balances.get(address, ZERO)


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome reported by a signing transport."""

    status: str
    reference: str = ""
