"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from decimal import Decimal
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from lending_client.config import (
    AccountConfig,
    AppConfig,
    GatewayConfig,
    MarketApiConfig,
    ProtocolConfig,
    TransportConfig,
)
from lending_client.models import (
    AccountState,
    AssetConfig,
    AssetName,
    ClusterState,
    NonFungibleData,
    NonFungibleField,
    SubmissionResult,
)

ACCOUNT = "account_tdx_2_alice"
COMPONENT = "component_tdx_2_market"
BADGE_RESOURCE = "resource_tdx_2_badge"
BADGE_ID = "#1#"

XRD = "resource_tdx_2_xrd"
XUSDT = "resource_tdx_2_xusdt"
HUG = "resource_tdx_2_hug"
XRD_POOL_UNIT = "resource_tdx_2_xrd_pu"
XUSDT_POOL_UNIT = "resource_tdx_2_xusdt_pu"
HUG_POOL_UNIT = "resource_tdx_2_hug_pu"


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def asset_configs() -> tuple[AssetConfig, ...]:
    return (
        AssetConfig(AssetName.XRD, XRD, XRD_POOL_UNIT, Decimal("5"), Decimal("10")),
        AssetConfig(AssetName.XUSDT, XUSDT, XUSDT_POOL_UNIT, Decimal("5"), Decimal("10")),
        AssetConfig(AssetName.HUG, HUG, HUG_POOL_UNIT, Decimal("5"), Decimal("10")),
    )


@pytest.fixture()
def sample_protocol_config() -> ProtocolConfig:
    return ProtocolConfig(
        component_address=COMPONENT,
        badge_resource_address=BADGE_RESOURCE,
    )


@pytest.fixture()
def sample_app_config(
    asset_configs: tuple[AssetConfig, ...],
    sample_protocol_config: ProtocolConfig,
    tmp_path: Path,
) -> AppConfig:
    return AppConfig(
        gateway=GatewayConfig(
            endpoints=("https://gateway1.example.com", "https://gateway2.example.com"),
            timeout=5,
        ),
        market_api=MarketApiConfig(base_url="https://market.example.com/api", timeout=5),
        protocol=sample_protocol_config,
        assets=asset_configs,
        accounts=(AccountConfig(label="alice", address=ACCOUNT),),
        transport=TransportConfig(manifest_dir=str(tmp_path / "manifests")),
    )


# ---------------------------------------------------------------------------
# Market data fixtures
#
# Position used across the suite: 500 XRD supplied (500 units at ratio 1,
# $2 each → $1000) and 500 xUSDT owed (1000 units at debt ratio 2, $1 each
# → $500). Health factor 2.00.
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_prices() -> dict[str, Decimal]:
    return {XRD: Decimal("2"), XUSDT: Decimal("1"), HUG: Decimal("0.5")}


@pytest.fixture()
def sample_clusters() -> dict[str, ClusterState]:
    return {
        XRD: ClusterState(supply_ratio=Decimal("1"), debt_ratio=Decimal("1")),
        XUSDT: ClusterState(supply_ratio=Decimal("0.5"), debt_ratio=Decimal("2")),
        HUG: ClusterState(supply_ratio=Decimal("1"), debt_ratio=Decimal("1")),
    }


@pytest.fixture()
def wallet_balances() -> dict[str, Decimal]:
    return {
        XRD: Decimal("200"),
        XUSDT: Decimal("800"),
        HUG: Decimal("100"),
        XRD_POOL_UNIT: Decimal("500"),
        XUSDT_POOL_UNIT: Decimal("100"),
    }


@pytest.fixture()
def account_state(wallet_balances: dict[str, Decimal]) -> AccountState:
    return AccountState(
        address=ACCOUNT,
        fungible_balances=wallet_balances,
        non_fungibles={BADGE_RESOURCE: (BADGE_ID,)},
    )


@pytest.fixture()
def empty_account_state(wallet_balances: dict[str, Decimal]) -> AccountState:
    return AccountState(address=ACCOUNT, fungible_balances=wallet_balances)


@pytest.fixture()
def position_data() -> NonFungibleData:
    return NonFungibleData(
        resource_address=BADGE_RESOURCE,
        local_id=BADGE_ID,
        fields=(
            NonFungibleField("supply", ((XRD, "500"),)),
            NonFungibleField("borrow", ((XUSDT, "1000"),)),
        ),
    )


# ---------------------------------------------------------------------------
# Collaborator mocks
# ---------------------------------------------------------------------------


@pytest.fixture()
def mock_gateway(account_state: AccountState, position_data: NonFungibleData) -> MagicMock:
    gateway = MagicMock()
    gateway.get_account_state = AsyncMock(return_value=account_state)
    gateway.get_non_fungible_data = AsyncMock(return_value=position_data)
    return gateway


@pytest.fixture()
def mock_market(
    sample_prices: dict[str, Decimal], sample_clusters: dict[str, ClusterState]
) -> MagicMock:
    market = MagicMock()
    market.fetch_prices = AsyncMock(return_value=sample_prices)
    market.fetch_cluster_states = AsyncMock(return_value=sample_clusters)
    return market


@pytest.fixture()
def mock_transport() -> MagicMock:
    transport = MagicMock()
    transport.submit = AsyncMock(
        return_value=SubmissionResult(status="committed", reference="txid_tdx_2_abc")
    )
    return transport


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent(f"""\
    gateway:
      endpoints: ["https://gateway.example.com"]
      timeout: 10
    market_api:
      base_url: "https://market.example.com/api/"
    protocol:
      component_address: "{COMPONENT}"
      badge_resource_address: "{BADGE_RESOURCE}"
      minimum_health_factor: "1.5"
      repay_slippage: "0.001"
    assets:
      XRD:
        address: "{XRD}"
        pool_unit_address: "{XRD_POOL_UNIT}"
        supply_rate: 5
        borrow_rate: 10
      xUSDT:
        address: "{XUSDT}"
        pool_unit_address: "{XUSDT_POOL_UNIT}"
        supply_rate: 5
        borrow_rate: 10
    accounts:
      - label: alice
        address: "{ACCOUNT}"
    transport:
      manifest_dir: out
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file


# ---------------------------------------------------------------------------
# Sample gateway responses
# ---------------------------------------------------------------------------


@pytest.fixture()
def entity_details_response() -> dict:
    return {
        "items": [
            {
                "address": ACCOUNT,
                "fungible_resources": {
                    "items": [
                        {
                            "resource_address": XRD,
                            "vaults": {
                                "items": [
                                    {"vault_address": "internal_vault_1", "amount": "150.5"},
                                    {"vault_address": "internal_vault_2", "amount": "49.5"},
                                ]
                            },
                        },
                        {
                            "resource_address": XUSDT,
                            "vaults": {"items": [{"vault_address": "internal_vault_3", "amount": "800"}]},
                        },
                    ]
                },
                "non_fungible_resources": {
                    "items": [
                        {
                            "resource_address": BADGE_RESOURCE,
                            "vaults": {
                                "items": [
                                    {"vault_address": "internal_vault_4", "total_count": "1", "items": [BADGE_ID]}
                                ]
                            },
                        }
                    ]
                },
            }
        ]
    }


@pytest.fixture()
def non_fungible_data_response() -> dict:
    return {
        "non_fungible_ids": [
            {
                "non_fungible_id": BADGE_ID,
                "is_burned": False,
                "data": {
                    "programmatic_json": {
                        "kind": "Tuple",
                        "fields": [
                            {
                                "kind": "Map",
                                "field_name": "supply",
                                "entries": [
                                    {
                                        "key": {"kind": "Reference", "value": XRD},
                                        "value": {"kind": "Decimal", "value": "500"},
                                    }
                                ],
                            },
                            {
                                "kind": "Map",
                                "field_name": "borrow",
                                "entries": [
                                    {
                                        "key": {"kind": "Reference", "value": XUSDT},
                                        "value": {"kind": "Decimal", "value": "1000"},
                                    }
                                ],
                            },
                        ],
                    }
                },
            }
        ]
    }
