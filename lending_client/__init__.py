"""Client for a collateralized lending market on Radix."""

__version__ = "0.1.0"
