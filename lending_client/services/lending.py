"""Lending actions — resolve, validate, build and submit per account."""
from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Iterator, Mapping

from ..chains.radix import GatewayClient
from ..config import AppConfig
from ..decimals import (
    ZERO,
    DecimalLike,
    div,
    floor_dec,
    format_decimal,
    mul,
    round_dec,
    to_decimal,
    total,
)
from ..errors import (
    ActionInProgress,
    DecimalArithmeticError,
    InsufficientBalance,
    LedgerSubmissionFailed,
    LendingClientError,
    PriceUnavailable,
    ValidationError,
)
from ..interfaces.chain import LedgerGateway
from ..interfaces.price_oracle import MarketData
from ..interfaces.transport import SigningTransport
from ..models import (
    ActionKind,
    Asset,
    AssetConfig,
    AssetName,
    PortfolioSnapshot,
    PositionSide,
    SubmissionResult,
)
from ..oracles import MarketApiClient
from ..protocols.lending_market import (
    ActionDelta,
    AssetAmount,
    ManifestBuilder,
    PositionResolver,
    ResolvedState,
    SolvencyCalculator,
    SolvencyCheck,
    TransactionIntent,
)
from ..transport import ManifestFileTransport

logger = logging.getLogger(__name__)

Amounts = Mapping[AssetName, DecimalLike]
Plan = Callable[[ResolvedState], "tuple[TransactionIntent, SolvencyCheck]"]


@dataclass(frozen=True)
class ActionResult:
    """Outcome of a submitted action and the position re-read afterwards."""

    intent: TransactionIntent
    check: SolvencyCheck
    submission: SubmissionResult
    snapshot: PortfolioSnapshot | None


class LendingService:
    """Runs lending actions for accounts against one market component.

    Collaborators default to the HTTP clients described by ``config`` and can be
    injected for testing or alternative transports.
    """

    def __init__(
        self,
        config: AppConfig,
        gateway: LedgerGateway | None = None,
        market_data: MarketData | None = None,
        transport: SigningTransport | None = None,
    ) -> None:
        self._config = config
        protocol = config.protocol

        self._gateway = gateway or GatewayClient(config.gateway)
        self._market = market_data or MarketApiClient(config.market_api)
        self._transport = transport or ManifestFileTransport(config.transport.manifest_dir)

        self._assets: dict[AssetName, AssetConfig] = {a.label: a for a in config.assets}
        self._calculator = SolvencyCalculator(
            protocol.minimum_health_factor,
            protocol.repay_slippage,
            protocol.decimal_places,
        )
        self._resolver = PositionResolver(
            self._gateway,
            self._market,
            config.assets,
            protocol.badge_resource_address,
            self._calculator,
            protocol.decimal_places,
        )
        self._builder = ManifestBuilder(
            protocol.component_address,
            protocol.badge_resource_address,
            protocol.decimal_places,
        )

        self._in_flight: set[str] = set()
        self._snapshots: dict[str, PortfolioSnapshot] = {}

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def snapshot(self, account: str) -> PortfolioSnapshot:
        """Re-resolve the account's position and cache it."""
        snapshot = await self._resolver.resolve(account)
        self._snapshots[account] = snapshot
        return snapshot

    def cached_snapshot(self, account: str) -> PortfolioSnapshot | None:
        """Last snapshot read for ``account``; may be stale."""
        return self._snapshots.get(account)

    async def market(self, account: str) -> tuple[Asset, ...]:
        return await self._resolver.resolve_market(account)

    async def preview(
        self, account: str, action: ActionKind, amounts: Amounts
    ) -> SolvencyCheck:
        """Current and projected health factor for a staged action; never raises
        on a health-factor violation, the check's ``allowed`` flag reports it."""
        resolved = await self._resolver.resolve_for_action(account)
        value = self._value_of(resolved, self._parse_amounts(amounts))
        snap = resolved.snapshot
        return self._calculator.project(
            snap.total_supply_value, snap.total_borrow_value, ActionDelta(action, value)
        )

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def _asset(self, label: AssetName) -> AssetConfig:
        asset = self._assets.get(label)
        if asset is None:
            raise ValidationError(f"Asset {label.value} is not available in this market")
        return asset

    def _parse_amounts(self, amounts: Amounts) -> dict[AssetName, Decimal]:
        if not amounts:
            raise ValidationError("Select at least one asset")
        places = self._config.protocol.decimal_places
        parsed: dict[AssetName, Decimal] = {}
        for label, raw in amounts.items():
            self._asset(label)
            try:
                amount = to_decimal(raw)
                rounded = round_dec(amount, places)
            except DecimalArithmeticError as e:
                raise ValidationError(f"Please enter a valid number for {label.value}") from e
            if amount <= ZERO:
                raise ValidationError(f"Amount for {label.value} must be greater than 0")
            if rounded != amount:
                raise ValidationError(
                    f"Amount for {label.value} has more than {places} decimal places"
                )
            parsed[label] = amount
        return parsed

    def _price(self, resolved: ResolvedState, label: AssetName) -> Decimal:
        address = self._asset(label).address
        price = resolved.prices.get(address)
        if price is None:
            raise PriceUnavailable(f"No price found for {label.value} ({address})")
        return price

    def _value_of(self, resolved: ResolvedState, amounts: dict[AssetName, Decimal]) -> Decimal:
        return total(mul(amount, self._price(resolved, label)) for label, amount in amounts.items())

    @staticmethod
    def _require_badge(snapshot: PortfolioSnapshot) -> str:
        if snapshot.badge is None:
            raise ValidationError("No position found. Please supply assets first.")
        return snapshot.badge.local_id

    @staticmethod
    def _check_wallet(snapshot: PortfolioSnapshot, asset: AssetConfig, amount: Decimal) -> None:
        balance = snapshot.wallet_balance(asset.address)
        if amount > balance:
            raise InsufficientBalance(
                f"Amount {amount} {asset.label.value} exceeds wallet balance {balance}"
            )

    def _validate(self, resolved: ResolvedState, delta: ActionDelta) -> SolvencyCheck:
        snap = resolved.snapshot
        return self._calculator.validate(snap.total_supply_value, snap.total_borrow_value, delta)

    # ------------------------------------------------------------------
    # Plans: pure validate + build steps, run after the position is resolved
    # ------------------------------------------------------------------

    def _plan_supply(self, account: str, amounts: dict[AssetName, Decimal]) -> Plan:
        def plan(resolved: ResolvedState) -> tuple[TransactionIntent, SolvencyCheck]:
            snap = resolved.snapshot
            for label, amount in amounts.items():
                self._check_wallet(snap, self._asset(label), amount)

            action = ActionKind.SUPPLY if snap.has_position else ActionKind.OPEN_POSITION
            check = self._validate(resolved, ActionDelta(action, self._value_of(resolved, amounts)))

            assets = [AssetAmount(self._asset(label).address, a) for label, a in amounts.items()]
            if snap.badge is None:
                return self._builder.open_position(account, assets), check
            return self._builder.supply(account, snap.badge.local_id, assets), check

        return plan

    def _plan_borrow(self, account: str, amounts: dict[AssetName, Decimal]) -> Plan:
        def plan(resolved: ResolvedState) -> tuple[TransactionIntent, SolvencyCheck]:
            local_id = self._require_badge(resolved.snapshot)
            delta = ActionDelta(ActionKind.BORROW, self._value_of(resolved, amounts))
            check = self._validate(resolved, delta)

            assets = [AssetAmount(self._asset(label).address, a) for label, a in amounts.items()]
            return self._builder.borrow(account, local_id, assets), check

        return plan

    def _plan_withdraw(self, account: str, label: AssetName, amount: Decimal) -> Plan:
        def plan(resolved: ResolvedState) -> tuple[TransactionIntent, SolvencyCheck]:
            snap = resolved.snapshot
            local_id = self._require_badge(snap)
            asset = self._asset(label)

            supplied = snap.supplied(asset.address)
            if supplied is None:
                raise InsufficientBalance(f"No {label.value} supplied to withdraw")
            if amount > supplied.selected_amount:
                raise InsufficientBalance(
                    f"Amount {amount} {label.value} exceeds supplied balance "
                    f"{supplied.selected_amount}"
                )

            delta = ActionDelta(ActionKind.WITHDRAW, mul(amount, self._price(resolved, label)))
            check = self._validate(resolved, delta)

            converter = self._resolver.converter(resolved.clusters)
            if amount == supplied.selected_amount:
                units = supplied.units
            else:
                units = converter.amount_to_units(PositionSide.SUPPLY, label, amount)
            held = snap.wallet_balance(asset.pool_unit_address)
            if units > held:
                raise InsufficientBalance(
                    f"Withdrawing {amount} {label.value} needs {format_decimal(units)} pool units, "
                    f"account holds {format_decimal(held)}"
                )
            # Worktop must hold at least what the units redeem for, rounded down.
            redeemed = floor_dec(
                div(units, converter.ratio(PositionSide.SUPPLY, label)),
                self._config.protocol.decimal_places,
            )
            expected = min(amount, redeemed)

            intent = self._builder.withdraw(
                account,
                local_id,
                AssetAmount(asset.pool_unit_address, units),
                AssetAmount(asset.address, expected),
            )
            return intent, check

        return plan

    def _plan_repay(self, account: str, label: AssetName, amount: Decimal) -> Plan:
        def plan(resolved: ResolvedState) -> tuple[TransactionIntent, SolvencyCheck]:
            snap = resolved.snapshot
            local_id = self._require_badge(snap)
            asset = self._asset(label)

            borrowed = snap.borrowed(asset.address)
            if borrowed is None:
                raise InsufficientBalance(f"No {label.value} debt to repay")
            if amount > borrowed.selected_amount:
                raise InsufficientBalance("Amount exceeds borrowed balance")
            self._check_wallet(snap, asset, amount)

            delta = ActionDelta(ActionKind.REPAY, mul(amount, self._price(resolved, label)))
            check = self._validate(resolved, delta)

            pull = min(
                self._calculator.repay_with_slippage(amount),
                snap.wallet_balance(asset.address),
            )
            intent = self._builder.repay(account, local_id, AssetAmount(asset.address, pull))
            return intent, check

        return plan

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    @contextlib.contextmanager
    def _guard(self, account: str) -> Iterator[None]:
        """Allow one mutating action per account at a time."""
        if account in self._in_flight:
            raise ActionInProgress(account)
        self._in_flight.add(account)
        try:
            yield
        finally:
            self._in_flight.discard(account)

    def is_busy(self, account: str) -> bool:
        return account in self._in_flight

    async def _refresh(self, account: str) -> PortfolioSnapshot | None:
        """Re-read the position after an attempted submission."""
        try:
            return await self.snapshot(account)
        except LendingClientError as e:
            logger.error("Could not refresh position for %s: %s", account, e)
            self._snapshots.pop(account, None)
            return None

    async def _execute(self, account: str, plan: Plan) -> ActionResult:
        with self._guard(account):
            resolved = await self._resolver.resolve_for_action(account)
            self._snapshots[account] = resolved.snapshot

            intent, check = plan(resolved)
            logger.info(
                "Submitting %s for %s — HF %s → %s",
                intent.action.value, account, check.current, check.projected,
            )
            logger.debug("Manifest:\n%s", intent.render())

            try:
                submission = await self._transport.submit(intent)
            except asyncio.CancelledError:
                await self._refresh(account)
                raise
            except Exception as e:
                await self._refresh(account)
                if isinstance(e, LedgerSubmissionFailed):
                    raise
                raise LedgerSubmissionFailed(f"{intent.action.value} submission failed: {e}") from e

            snapshot = await self._refresh(account)
            if not submission:
                raise LedgerSubmissionFailed(f"{intent.action.value} submission returned no result")

            logger.info("%s for %s: %s", intent.action.value, account, submission.status)
            return ActionResult(intent, check, submission, snapshot)

    # ------------------------------------------------------------------
    # Public actions
    # ------------------------------------------------------------------

    async def supply(self, account: str, amounts: Amounts) -> ActionResult:
        """Supply assets, opening a position when the account has none."""
        return await self._execute(account, self._plan_supply(account, self._parse_amounts(amounts)))

    async def borrow(self, account: str, amounts: Amounts) -> ActionResult:
        return await self._execute(account, self._plan_borrow(account, self._parse_amounts(amounts)))

    async def withdraw(self, account: str, label: AssetName, amount: DecimalLike) -> ActionResult:
        parsed = self._parse_amounts({label: amount})[label]
        return await self._execute(account, self._plan_withdraw(account, label, parsed))

    async def repay(self, account: str, label: AssetName, amount: DecimalLike) -> ActionResult:
        parsed = self._parse_amounts({label: amount})[label]
        return await self._execute(account, self._plan_repay(account, label, parsed))
