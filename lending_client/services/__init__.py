"""Service modules"""
from .lending import ActionResult, LendingService

__all__ = ["ActionResult", "LendingService"]
