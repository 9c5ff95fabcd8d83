"""Read wired M-Bus meters over a serial line and decode their data blocks."""

__version__ = "0.1.0"