"""Transaction and swap execution core for an EVM wallet."""

__version__ = "0.1.0"
