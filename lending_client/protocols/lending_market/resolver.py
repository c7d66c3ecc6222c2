"""Position snapshot resolver — reads the position badge and values it."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from ...decimals import PROTOCOL_DECIMAL_PLACES, ZERO, total
from ...errors import PriceUnavailable
from ...interfaces.chain import LedgerGateway
from ...interfaces.price_oracle import MarketData
from ...models import (
    AccountState,
    Asset,
    AssetConfig,
    ClusterState,
    PortfolioSnapshot,
    Position,
    PositionSide,
)
from . import parser, solvency
from .units import UnitConverter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedState:
    """A snapshot together with the market data it was valued at."""

    snapshot: PortfolioSnapshot
    prices: dict[str, Decimal]
    clusters: dict[str, ClusterState]


class PositionResolver:
    """Rebuild a :class:`PortfolioSnapshot` from ledger and market state."""

    def __init__(
        self,
        gateway: LedgerGateway,
        market_data: MarketData,
        assets: Iterable[AssetConfig],
        badge_resource_address: str,
        calculator: solvency.SolvencyCalculator | None = None,
        decimal_places: int = PROTOCOL_DECIMAL_PLACES,
    ) -> None:
        self._gateway = gateway
        self._market = market_data
        self._assets = tuple(assets)
        self._badge_resource = badge_resource_address
        self._calculator = calculator or solvency.SolvencyCalculator()
        self._places = decimal_places

    @property
    def assets(self) -> tuple[AssetConfig, ...]:
        return self._assets

    async def fetch_market(self) -> tuple[dict[str, Decimal], dict[str, ClusterState]]:
        """Prices and cluster states, fetched concurrently."""
        prices, clusters = await asyncio.gather(
            self._market.fetch_prices(), self._market.fetch_cluster_states()
        )
        return prices, clusters

    def converter(self, clusters: dict[str, ClusterState]) -> UnitConverter:
        return UnitConverter(self._assets, clusters, self._places)

    async def _fetch_position(self, account: AccountState) -> Position | None:
        badge = parser.find_badge(account, self._badge_resource)
        if badge is None:
            return None

        data = await self._gateway.get_non_fungible_data(
            badge.resource_address, badge.local_id
        )
        return parser.parse_position(badge, data)

    def _wallet_balances(self, account: AccountState) -> dict[str, Decimal]:
        """Holdings of every configured asset and of its pool-unit token."""
        addresses = [a.address for a in self._assets]
        addresses += [a.pool_unit_address for a in self._assets if a.pool_unit_address]
        return {addr: account.fungible_balances.get(addr, ZERO) for addr in addresses}

    def _rows(
        self,
        position: Position,
        side: PositionSide,
        converter: UnitConverter,
        prices: dict[str, Decimal],
        balances: dict[str, Decimal],
    ) -> tuple[Asset, ...]:
        rows: list[Asset] = []
        for cfg, units in parser.resolve_assets(position.units(side), self._assets, side):
            price = prices.get(cfg.address)
            if price is None:
                raise PriceUnavailable(
                    f"No price found for {cfg.label.value} ({cfg.address})"
                )
            amount = converter.units_to_amount(side, cfg.label, units)
            rows.append(
                Asset(
                    address=cfg.address,
                    label=cfg.label,
                    wallet_balance=balances.get(cfg.address, ZERO),
                    selected_amount=amount,
                    supply_rate=cfg.supply_rate,
                    borrow_rate=cfg.borrow_rate,
                    pool_unit_address=cfg.pool_unit_address,
                    side=side,
                    units=units,
                    price=price,
                )
            )
        return tuple(rows)

    def build_snapshot(
        self,
        account: str,
        position: Position | None,
        balances: dict[str, Decimal],
        prices: dict[str, Decimal],
        clusters: dict[str, ClusterState],
    ) -> PortfolioSnapshot:
        """Value a parsed position. Pure; exposed for reuse after a refresh."""
        if position is None:
            return PortfolioSnapshot(account=account, wallet_balances=balances)

        converter = self.converter(clusters)
        supply_rows = self._rows(position, PositionSide.SUPPLY, converter, prices, balances)
        borrow_rows = self._rows(position, PositionSide.BORROW, converter, prices, balances)

        supply_value = total(a.value for a in supply_rows)
        borrow_value = total(a.value for a in borrow_rows)

        return PortfolioSnapshot(
            account=account,
            badge=position.badge,
            supply_assets=supply_rows,
            borrow_assets=borrow_rows,
            wallet_balances=balances,
            total_supply_value=supply_value,
            total_borrow_value=borrow_value,
            health_factor=solvency.health_factor(supply_value, borrow_value),
            net_worth=solvency.net_worth(supply_value, borrow_value),
            net_rate=solvency.net_rate(supply_rows, borrow_rows),
            average_supply_rate=solvency.average_rate(supply_rows),
            average_borrow_rate=solvency.average_rate(borrow_rows),
            borrow_power_used=self._calculator.borrow_power_used(
                supply_value, borrow_value
            ),
        )

    async def resolve(self, account: str) -> PortfolioSnapshot:
        """Read the account's position and value it at current prices.

        An account without a position badge yields an empty snapshot.
        """
        logger.info("Resolving position for account %s", account)
        state = await self._gateway.get_account_state(account)
        balances = self._wallet_balances(state)

        position = await self._fetch_position(state)
        if position is None:
            logger.info("No position badge found for %s", account)
            return self.build_snapshot(account, None, balances, {}, {})

        if position.is_empty:
            logger.info("Position %s is empty", position.badge.local_id)
            return PortfolioSnapshot(
                account=account, badge=position.badge, wallet_balances=balances
            )

        prices, clusters = await self.fetch_market()
        snapshot = self.build_snapshot(account, position, balances, prices, clusters)

        logger.info(
            "Position %s — supply $%.2f  borrow $%.2f  HF %s",
            position.badge.local_id,
            snapshot.total_supply_value,
            snapshot.total_borrow_value,
            snapshot.health_factor,
        )
        return snapshot

    async def resolve_market(self, account: str) -> tuple[Asset, ...]:
        """Every configured asset with the account's wallet balance and rates."""
        state = await self._gateway.get_account_state(account)
        balances = self._wallet_balances(state)
        return tuple(
            Asset(
                address=cfg.address,
                label=cfg.label,
                wallet_balance=balances[cfg.address],
                supply_rate=cfg.supply_rate,
                borrow_rate=cfg.borrow_rate,
                pool_unit_address=cfg.pool_unit_address,
            )
            for cfg in self._assets
        )

    async def resolve_for_action(self, account: str) -> ResolvedState:
        """Like :meth:`resolve`, but always loads market data for validation.

        The position read and the market fetch run concurrently.
        """
        state = await self._gateway.get_account_state(account)
        balances = self._wallet_balances(state)

        position, (prices, clusters) = await asyncio.gather(
            self._fetch_position(state), self.fetch_market()
        )
        snapshot = self.build_snapshot(account, position, balances, prices, clusters)
        return ResolvedState(snapshot, prices, clusters)
