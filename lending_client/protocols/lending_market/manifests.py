"""Transaction manifest builder for lending market actions.

Produces Radix transaction-manifest instruction sequences. Everything here is
pure: no network access and no signing. Each builder method validates its
arguments and either returns a complete :class:`TransactionIntent` or raises
:class:`~lending_client.errors.InvalidIntent`.

Every sequence that takes the position badge out of the account ends with
``deposit_batch Expression("ENTIRE_WORKTOP")`` so the badge, and anything the
component returned, always lands back in the account.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from ...decimals import PROTOCOL_DECIMAL_PLACES, ZERO, format_decimal, round_dec, to_decimal
from ...errors import DecimalArithmeticError, InvalidIntent
from ...models import ActionKind

BADGE_BUCKET = "position_badge"

METHOD_NAMES = {
    ActionKind.OPEN_POSITION: "open_position",
    ActionKind.SUPPLY: "position_supply",
    ActionKind.BORROW: "position_borrow",
    ActionKind.WITHDRAW: "position_withdraw",
    ActionKind.REPAY: "position_repay",
}


@dataclass(frozen=True)
class AssetAmount:
    """A resource address paired with a decimal amount."""

    address: str
    amount: Decimal


@dataclass(frozen=True)
class TransactionIntent:
    """Ordered manifest instructions for one user action."""

    action: ActionKind
    account: str
    instructions: tuple[str, ...]

    def render(self) -> str:
        return "\n".join(self.instructions) + "\n"

    def __str__(self) -> str:
        return self.render()


# ---------------------------------------------------------------------------
# Instruction formatting
# ---------------------------------------------------------------------------


def _address(address: str) -> str:
    return f'Address("{address}")'


def _decimal(amount: Decimal) -> str:
    return f'Decimal("{format_decimal(amount)}")'


def _bucket(name: str) -> str:
    return f'Bucket("{name}")'


def _local_ids(local_id: str) -> str:
    return f'Array<NonFungibleLocalId>(NonFungibleLocalId("{local_id}"))'


def call_method(address: str, method: str, *args: str) -> str:
    parts = [f'CALL_METHOD {_address(address)} "{method}"', *args]
    return " ".join(parts) + ";"


def withdraw_from_account(account: str, asset: AssetAmount) -> str:
    return call_method(account, "withdraw", _address(asset.address), _decimal(asset.amount))


def take_from_worktop(asset: AssetAmount, bucket: str) -> str:
    return (
        f"TAKE_FROM_WORKTOP {_address(asset.address)} {_decimal(asset.amount)} "
        f"{_bucket(bucket)};"
    )


def withdraw_badge(account: str, badge_resource: str, local_id: str) -> str:
    return call_method(
        account, "withdraw_non_fungibles", _address(badge_resource), _local_ids(local_id)
    )


def take_badge(badge_resource: str, local_id: str) -> str:
    return (
        f"TAKE_NON_FUNGIBLES_FROM_WORKTOP {_address(badge_resource)} "
        f"{_local_ids(local_id)} {_bucket(BADGE_BUCKET)};"
    )


def assert_worktop_contains(asset: AssetAmount) -> str:
    return f"ASSERT_WORKTOP_CONTAINS {_address(asset.address)} {_decimal(asset.amount)};"


def deposit_batch(account: str) -> str:
    return call_method(account, "deposit_batch", 'Expression("ENTIRE_WORKTOP")')


def bucket_array(names: Sequence[str]) -> str:
    return "Array<Bucket>(" + ", ".join(_bucket(n) for n in names) + ")"


def amount_map(assets: Sequence[AssetAmount]) -> str:
    entries = ", ".join(f"{_address(a.address)} => {_decimal(a.amount)}" for a in assets)
    return f"Map<Address, Decimal>({entries})"


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class ManifestBuilder:
    """Build transaction intents against one lending market component."""

    def __init__(
        self,
        component_address: str,
        badge_resource_address: str,
        decimal_places: int = PROTOCOL_DECIMAL_PLACES,
    ) -> None:
        self.component_address = component_address
        self.badge_resource_address = badge_resource_address
        self._places = decimal_places

    # -- validation ----------------------------------------------------

    def _check_account(self, account: str) -> None:
        if not account:
            raise InvalidIntent("Account address is required")
        if not self.component_address:
            raise InvalidIntent("Component address is required")

    def _check_badge(self, local_id: str | None) -> None:
        if not self.badge_resource_address:
            raise InvalidIntent("Position badge resource address is required")
        if not local_id:
            raise InvalidIntent("Position badge local id is required")

    def _check_asset(self, asset: AssetAmount, what: str = "asset") -> AssetAmount:
        if not asset.address:
            raise InvalidIntent(f"Unresolved {what} address")
        try:
            amount = to_decimal(asset.amount)
            rounded = round_dec(amount, self._places)
        except DecimalArithmeticError as e:
            raise InvalidIntent(f"Invalid amount for {asset.address}: {e}") from e
        if amount <= ZERO:
            raise InvalidIntent(
                f"Amount for {asset.address} must be strictly positive, got {amount}"
            )
        if rounded != amount:
            raise InvalidIntent(
                f"Amount {amount} for {asset.address} exceeds {self._places} decimal places"
            )
        return AssetAmount(asset.address, amount)

    def _check_assets(self, assets: Sequence[AssetAmount]) -> list[AssetAmount]:
        if not assets:
            raise InvalidIntent("At least one asset is required")
        checked = [self._check_asset(a) for a in assets]
        addresses = [a.address for a in checked]
        if len(set(addresses)) != len(addresses):
            raise InvalidIntent("Duplicate asset addresses in one intent")
        return checked

    # -- building blocks -----------------------------------------------

    def _badge_out(self, account: str, local_id: str) -> list[str]:
        return [
            withdraw_badge(account, self.badge_resource_address, local_id),
            take_badge(self.badge_resource_address, local_id),
        ]

    @staticmethod
    def _assets_to_buckets(
        account: str, assets: Sequence[AssetAmount]
    ) -> tuple[list[str], list[str]]:
        instructions: list[str] = []
        buckets: list[str] = []
        for i, asset in enumerate(assets, start=1):
            name = f"bucket_{i}"
            instructions.append(withdraw_from_account(account, asset))
            instructions.append(take_from_worktop(asset, name))
            buckets.append(name)
        return instructions, buckets

    def _method(self, action: ActionKind, *args: str) -> str:
        return call_method(self.component_address, METHOD_NAMES[action], *args)

    # -- actions -------------------------------------------------------

    def open_position(
        self, account: str, assets: Sequence[AssetAmount]
    ) -> TransactionIntent:
        """Deposit assets into a new position; the minted badge returns to the account."""
        self._check_account(account)
        checked = self._check_assets(assets)

        instructions, buckets = self._assets_to_buckets(account, checked)
        instructions.append(self._method(ActionKind.OPEN_POSITION, bucket_array(buckets)))
        instructions.append(deposit_batch(account))
        return TransactionIntent(ActionKind.OPEN_POSITION, account, tuple(instructions))

    def supply(
        self, account: str, badge_local_id: str, assets: Sequence[AssetAmount]
    ) -> TransactionIntent:
        self._check_account(account)
        self._check_badge(badge_local_id)
        checked = self._check_assets(assets)

        instructions = self._badge_out(account, badge_local_id)
        asset_steps, buckets = self._assets_to_buckets(account, checked)
        instructions.extend(asset_steps)
        instructions.append(
            self._method(ActionKind.SUPPLY, _bucket(BADGE_BUCKET), bucket_array(buckets))
        )
        instructions.append(deposit_batch(account))
        return TransactionIntent(ActionKind.SUPPLY, account, tuple(instructions))

    def borrow(
        self, account: str, badge_local_id: str, assets: Sequence[AssetAmount]
    ) -> TransactionIntent:
        """Request ``assets`` from the component against the position."""
        self._check_account(account)
        self._check_badge(badge_local_id)
        checked = self._check_assets(assets)

        instructions = self._badge_out(account, badge_local_id)
        instructions.append(
            self._method(ActionKind.BORROW, _bucket(BADGE_BUCKET), amount_map(checked))
        )
        instructions.append(deposit_batch(account))
        return TransactionIntent(ActionKind.BORROW, account, tuple(instructions))

    def withdraw(
        self,
        account: str,
        badge_local_id: str,
        units: AssetAmount,
        expected: AssetAmount,
    ) -> TransactionIntent:
        """Redeem supply units for the underlying asset.

        Args:
            units: pool-unit resource address and the units to redeem.
            expected: underlying asset and the minimum amount the worktop must
                hold after redemption.
        """
        self._check_account(account)
        self._check_badge(badge_local_id)
        units = self._check_asset(units, "pool-unit")
        expected = self._check_asset(expected)

        instructions = self._badge_out(account, badge_local_id)
        instructions.append(withdraw_from_account(account, units))
        instructions.append(take_from_worktop(units, "bucket_1"))
        instructions.append(
            self._method(ActionKind.WITHDRAW, _bucket(BADGE_BUCKET), _bucket("bucket_1"))
        )
        instructions.append(assert_worktop_contains(expected))
        instructions.append(deposit_batch(account))
        return TransactionIntent(ActionKind.WITHDRAW, account, tuple(instructions))

    def repay(
        self, account: str, badge_local_id: str, asset: AssetAmount
    ) -> TransactionIntent:
        """Pay back debt; any excess is returned by the component."""
        self._check_account(account)
        self._check_badge(badge_local_id)
        asset = self._check_asset(asset)

        instructions = self._badge_out(account, badge_local_id)
        instructions.append(withdraw_from_account(account, asset))
        instructions.append(take_from_worktop(asset, "bucket_1"))
        instructions.append(
            self._method(ActionKind.REPAY, _bucket(BADGE_BUCKET), _bucket("bucket_1"))
        )
        instructions.append(deposit_batch(account))
        return TransactionIntent(ActionKind.REPAY, account, tuple(instructions))
