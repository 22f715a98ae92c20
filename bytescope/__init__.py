"""Bytescope: function-selector fingerprinting for deployed EVM contracts."""

__version__ = "1.0.0"
