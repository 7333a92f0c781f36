"""TON Colours mint backend."""

__version__ = "0.3.0"
