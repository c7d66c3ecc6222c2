"""Signing transports."""
from .manifest_file import ManifestFileTransport

__all__ = ["ManifestFileTransport"]
