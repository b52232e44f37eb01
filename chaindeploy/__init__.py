"""Contract deployment and confirmation tracking for EVM networks."""

__version__ = "0.1.0"
