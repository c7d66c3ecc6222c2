"""Signing transport protocol — hands a transaction intent to a signer."""
from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from ..models import SubmissionResult

if TYPE_CHECKING:
    from ..protocols.lending_market.manifests import TransactionIntent


class SigningTransport(Protocol):
    """Abstract interface for submitting a transaction intent."""

    async def submit(self, intent: TransactionIntent) -> SubmissionResult: ...
