"""CAN frame records, data callbacks and the observer interfaces."""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

__all__ = [
    "CanVariant",
    "CanFrame",
    "CallbackData",
    "DataCallbackHandler",
    "DataObserver",
    "DataSubscriber",
]


class CanVariant(enum.IntEnum):
    """Classic CAN or CAN FD."""

    CC = 0
    FD = 1

    @property
    def max_payload(self) -> int:
        """Largest payload a frame of this variant carries."""
        return 64 if self is CanVariant.FD else 8


@dataclass
class CanFrame:
    """One CAN frame: identifier (with flag bits), payload, variant and FD flags."""

    can_id: int
    data: bytes = b""
    variant: CanVariant = CanVariant.CC
    flags: int = 0

    def __post_init__(self) -> None:
        self.variant = CanVariant(self.variant)
        self.data = bytes(self.data)
        if len(self.data) > self.variant.max_payload:
            raise ValueError(
                f"{self.variant.name} frame payload is limited to "
                f"{self.variant.max_payload} bytes, got {len(self.data)}"
            )

    @property
    def length(self) -> int:
        """Number of payload bytes."""
        return len(self.data)


@dataclass
class CallbackData:
    """A frame together with the name of the channel it came from."""

    name: str
    frame: CanFrame


class DataCallbackHandler:
    """Holds at most one callback and forwards messages to it."""

    def __init__(self, callback: Optional[Callable[[CallbackData], Any]] = None) -> None:
        self._callback = callback

    @property
    def is_registered(self) -> bool:
        """Whether a callback is currently registered."""
        return self._callback is not None

    def register_callback(self, callback: Callable[[CallbackData], Any]) -> None:
        """Set the callback, replacing any earlier one."""
        self._callback = callback

    def handle_callback(self, msg: CallbackData) -> None:
        """Pass ``msg`` to the callback, if one is registered."""
        if self._callback is not None:
            self._callback(msg)

    def unregister_callback(self) -> None:
        """Remove the callback."""
        self._callback = None


class DataObserver(ABC):
    """Receives decoded CAN messages."""

    @abstractmethod
    def update(self, can_msg: Any) -> None:
        """Handle one decoded CAN message."""


class DataSubscriber(ABC):
    """Source of decoded CAN messages that observers attach to."""

    @abstractmethod
    def register_data_observer(self, data_observer: DataObserver) -> None:
        """Start delivering messages to ``data_observer``."""

    @abstractmethod
    def unregister_data_observer(self, data_observer: DataObserver) -> None:
        """Stop delivering messages to ``data_observer``."""