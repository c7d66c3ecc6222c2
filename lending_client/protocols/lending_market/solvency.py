"""Health factor computation and the solvency gate for mutating actions.

health_factor = total_supply_value / total_borrow_value

With no debt the factor is :data:`~lending_client.models.UNBOUNDED`, a
sentinel rather than an infinite number. Withdraw and borrow actions are
rejected when the *projected* factor is defined and below the minimum;
supply and repay actions are never blocked.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from ...decimals import (
    ONE,
    PROTOCOL_DECIMAL_PLACES,
    ZERO,
    add,
    ceil_dec,
    div,
    mul,
    sub,
    to_decimal,
    total,
)
from ...errors import HealthFactorViolation
from ...models import UNBOUNDED, ActionKind, Asset, HealthFactor

DEFAULT_MINIMUM_HEALTH_FACTOR = Decimal("1.5")
DEFAULT_REPAY_SLIPPAGE = Decimal("0.001")
_HUNDRED = Decimal("100")


def health_factor(supply_value, borrow_value) -> HealthFactor:
    borrow = to_decimal(borrow_value)
    if borrow <= ZERO:
        return UNBOUNDED
    return HealthFactor(div(to_decimal(supply_value), borrow))


@dataclass(frozen=True)
class ActionDelta:
    """Quote-currency value an action adds to (or removes from) its side."""

    action: ActionKind
    value: Decimal

    @property
    def supply_change(self) -> Decimal:
        if self.action in (ActionKind.SUPPLY, ActionKind.OPEN_POSITION):
            return self.value
        if self.action is ActionKind.WITHDRAW:
            return -self.value
        return ZERO

    @property
    def borrow_change(self) -> Decimal:
        if self.action is ActionKind.BORROW:
            return self.value
        if self.action is ActionKind.REPAY:
            return -self.value
        return ZERO


@dataclass(frozen=True)
class SolvencyCheck:
    """Current and projected health around one pending action."""

    action: ActionKind | None
    current: HealthFactor
    projected: HealthFactor
    projected_supply_value: Decimal
    projected_borrow_value: Decimal
    allowed: bool


class SolvencyCalculator:
    def __init__(
        self,
        minimum_health_factor: Decimal = DEFAULT_MINIMUM_HEALTH_FACTOR,
        repay_slippage: Decimal = DEFAULT_REPAY_SLIPPAGE,
        decimal_places: int = PROTOCOL_DECIMAL_PLACES,
    ) -> None:
        self.minimum_health_factor = to_decimal(minimum_health_factor)
        self.repay_slippage = to_decimal(repay_slippage)
        self._places = decimal_places

    def project(
        self,
        total_supply_value,
        total_borrow_value,
        delta: ActionDelta | None = None,
    ) -> SolvencyCheck:
        """Compute the current factor and the factor after ``delta`` applies."""
        supply = to_decimal(total_supply_value)
        borrow = to_decimal(total_borrow_value)
        current = health_factor(supply, borrow)

        if delta is None:
            return SolvencyCheck(None, current, current, supply, borrow, True)

        projected_supply = max(add(supply, delta.supply_change), ZERO)
        projected_borrow = max(add(borrow, delta.borrow_change), ZERO)
        projected = health_factor(projected_supply, projected_borrow)

        allowed = delta.action.improves_health or not projected.is_below(
            self.minimum_health_factor
        )
        return SolvencyCheck(
            delta.action, current, projected, projected_supply, projected_borrow, allowed
        )

    def validate(
        self,
        total_supply_value,
        total_borrow_value,
        delta: ActionDelta,
    ) -> SolvencyCheck:
        """Project ``delta`` and raise if the action must be blocked.

        Raises:
            HealthFactorViolation: withdraw/borrow would leave a defined health
                factor below the minimum.
        """
        check = self.project(total_supply_value, total_borrow_value, delta)
        if not check.allowed:
            raise HealthFactorViolation(
                f"{delta.action.value} would lower the health factor from "
                f"{check.current} to {check.projected}, below the minimum "
                f"{self.minimum_health_factor}",
                check,
            )
        return check

    def repay_with_slippage(self, amount) -> Decimal:
        """Amount to pull from the account so the repay covers accrued interest."""
        buffered = mul(to_decimal(amount), add(ONE, self.repay_slippage))
        return ceil_dec(buffered, self._places)

    # ------------------------------------------------------------------
    # Portfolio statistics
    # ------------------------------------------------------------------

    def borrow_power_used(self, total_supply_value, total_borrow_value) -> Decimal:
        """Percent of borrowing capacity (supply / minimum factor) in use."""
        supply = to_decimal(total_supply_value)
        borrow = to_decimal(total_borrow_value)
        if borrow <= ZERO:
            return ZERO
        if supply <= ZERO:
            return _HUNDRED
        capacity = div(supply, self.minimum_health_factor)
        return mul(div(borrow, capacity), _HUNDRED)


def net_worth(total_supply_value, total_borrow_value) -> Decimal:
    return sub(total_supply_value, total_borrow_value)


def average_rate(assets: Iterable[Asset]) -> Decimal:
    """Plain average of the rates of ``assets`` (0 when empty)."""
    rates = [a.rate for a in assets]
    if not rates:
        return ZERO
    return div(total(rates), len(rates))


def net_rate(supply_assets: Iterable[Asset], borrow_assets: Iterable[Asset]) -> Decimal:
    """Value-weighted yield on net worth, in the same units as the asset rates."""
    supply_assets = list(supply_assets)
    borrow_assets = list(borrow_assets)
    worth = net_worth(
        total(a.value for a in supply_assets), total(a.value for a in borrow_assets)
    )
    if worth <= ZERO:
        return ZERO
    earned = total(mul(a.value, a.rate) for a in supply_assets)
    paid = total(mul(a.value, a.rate) for a in borrow_assets)
    return div(sub(earned, paid), worth)
