"""Configuration loader — reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .decimals import PROTOCOL_DECIMAL_PLACES, to_decimal
from .models import AssetConfig, AssetName

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GatewayConfig:
    endpoints: tuple[str, ...] = ()
    timeout: int = 30


@dataclass(frozen=True)
class MarketApiConfig:
    base_url: str = "http://localhost:3000/api"
    timeout: int = 15


@dataclass(frozen=True)
class ProtocolConfig:
    component_address: str = ""
    badge_resource_address: str = ""
    minimum_health_factor: Decimal = Decimal("1.5")
    repay_slippage: Decimal = Decimal("0.001")
    decimal_places: int = PROTOCOL_DECIMAL_PLACES


@dataclass(frozen=True)
class AccountConfig:
    label: str = ""
    address: str = ""


@dataclass(frozen=True)
class TransportConfig:
    manifest_dir: str = "manifests"


@dataclass(frozen=True)
class AppConfig:
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    market_api: MarketApiConfig = field(default_factory=MarketApiConfig)
    protocol: ProtocolConfig = field(default_factory=ProtocolConfig)
    assets: tuple[AssetConfig, ...] = ()
    accounts: tuple[AccountConfig, ...] = ()
    transport: TransportConfig = field(default_factory=TransportConfig)

    def resolve_account(self, account: str) -> str:
        """Map a configured account label to its address; addresses pass through."""
        for acc in self.accounts:
            if acc.label == account:
                return acc.address
        return account


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_gateway(raw: dict[str, Any]) -> GatewayConfig:
    return GatewayConfig(
        endpoints=tuple(raw.get("endpoints", [])),
        timeout=int(raw.get("timeout", 30)),
    )


def _build_market_api(raw: dict[str, Any]) -> MarketApiConfig:
    return MarketApiConfig(
        base_url=str(raw.get("base_url", MarketApiConfig.base_url)).rstrip("/"),
        timeout=int(raw.get("timeout", 15)),
    )


def _build_protocol(raw: dict[str, Any]) -> ProtocolConfig:
    return ProtocolConfig(
        component_address=raw.get("component_address", ""),
        badge_resource_address=raw.get("badge_resource_address", ""),
        minimum_health_factor=to_decimal(raw.get("minimum_health_factor", "1.5")),
        repay_slippage=to_decimal(raw.get("repay_slippage", "0.001")),
        decimal_places=int(raw.get("decimal_places", PROTOCOL_DECIMAL_PLACES)),
    )


def _build_assets(raw: dict[str, Any]) -> tuple[AssetConfig, ...]:
    assets: list[AssetConfig] = []
    for label, cfg in raw.items():
        assets.append(
            AssetConfig(
                label=AssetName.parse(str(label)),
                address=cfg.get("address", ""),
                pool_unit_address=cfg.get("pool_unit_address", "") or "",
                supply_rate=to_decimal(cfg.get("supply_rate", 0)),
                borrow_rate=to_decimal(cfg.get("borrow_rate", 0)),
                icon=cfg.get("icon", ""),
            )
        )
    return tuple(assets)


def _build_accounts(raw: list[dict[str, Any]]) -> tuple[AccountConfig, ...]:
    return tuple(
        AccountConfig(label=a.get("label", ""), address=a.get("address", ""))
        for a in raw
    )


def _build_transport(raw: dict[str, Any]) -> TransportConfig:
    return TransportConfig(manifest_dir=raw.get("manifest_dir", "manifests"))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (two levels up from this file).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        gateway=_build_gateway(raw.get("gateway", {})),
        market_api=_build_market_api(raw.get("market_api", {})),
        protocol=_build_protocol(raw.get("protocol", {})),
        assets=_build_assets(raw.get("assets", {})),
        accounts=_build_accounts(raw.get("accounts", [])),
        transport=_build_transport(raw.get("transport", {})),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def validate_asset_registry(assets: tuple[AssetConfig, ...]) -> None:
    """Labels and addresses must map one-to-one."""
    labels: set[AssetName] = set()
    addresses: set[str] = set()
    for asset in assets:
        if not asset.address:
            raise ValueError(f"Asset '{asset.label.value}' has no address")
        if asset.label in labels:
            raise ValueError(f"Asset '{asset.label.value}' configured twice")
        if asset.address in addresses:
            raise ValueError(
                f"Asset '{asset.label.value}' reuses address {asset.address}"
            )
        labels.add(asset.label)
        addresses.add(asset.address)


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    if not cfg.gateway.endpoints:
        raise ValueError("At least one gateway endpoint must be configured")
    if not cfg.protocol.component_address:
        raise ValueError("protocol.component_address is required")
    if not cfg.protocol.badge_resource_address:
        raise ValueError("protocol.badge_resource_address is required")
    if cfg.protocol.minimum_health_factor <= 1:
        raise ValueError("protocol.minimum_health_factor must be greater than 1")
    if cfg.protocol.repay_slippage < 0:
        raise ValueError("protocol.repay_slippage cannot be negative")
    if not cfg.assets:
        raise ValueError("At least one asset must be configured")

    validate_asset_registry(cfg.assets)

    for account in cfg.accounts:
        if not account.address:
            raise ValueError(f"Account '{account.label}' has no address")
