"""CAN signal codec, DBC parsing, callback types, and SocketCAN/AVTP socket helpers."""

__version__ = "0.1.0"

__all__ = ["canio", "codec", "comm", "dbc", "handlers"]