"""Manifest file transport — prepares intents for signing in a wallet."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path

from ..errors import LedgerSubmissionFailed
from ..models import SubmissionResult
from ..protocols.lending_market.manifests import TransactionIntent

logger = logging.getLogger(__name__)


class ManifestFileTransport:
    """Write each intent to ``<manifest_dir>/<timestamp>_<action>.rtm``."""

    def __init__(self, manifest_dir: str | Path) -> None:
        self.manifest_dir = Path(manifest_dir)

    def _path_for(self, intent: TransactionIntent) -> Path:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        return self.manifest_dir / f"{stamp}_{intent.action.value}.rtm"

    def _write(self, path: Path, text: str) -> None:
        self.manifest_dir.mkdir(parents=True, exist_ok=True)
        path.write_text(text)

    async def submit(self, intent: TransactionIntent) -> SubmissionResult:
        path = self._path_for(intent)
        try:
            await asyncio.to_thread(self._write, path, intent.render())
        except OSError as e:
            raise LedgerSubmissionFailed(f"Could not write manifest to {path}: {e}") from e

        logger.info("Prepared %s manifest at %s", intent.action.value, path)
        return SubmissionResult(status="prepared", reference=str(path))
