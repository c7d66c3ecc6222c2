"""Lending market protocol: unit conversion, solvency, manifests, snapshots."""
from .manifests import AssetAmount, ManifestBuilder, TransactionIntent
from .resolver import PositionResolver, ResolvedState
from .solvency import ActionDelta, SolvencyCalculator, SolvencyCheck, health_factor
from .units import UnitConverter

__all__ = [
    "ActionDelta",
    "AssetAmount",
    "ManifestBuilder",
    "PositionResolver",
    "ResolvedState",
    "SolvencyCalculator",
    "SolvencyCheck",
    "TransactionIntent",
    "UnitConverter",
    "health_factor",
]
