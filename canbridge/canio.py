"""Reading and writing CAN frames on a raw CAN socket."""

from __future__ import annotations

import logging
import socket
import struct
from types import TracebackType
from typing import Iterable, Optional, Union

from canbridge.comm import setup_can_socket
from canbridge.handlers import CanFrame, CanVariant

__all__ = ["CAN_MTU", "CANFD_MTU", "CanReader", "CanWriter"]

_log = logging.getLogger(__name__)

# Wire layouts of the kernel's can_frame and canfd_frame structures.
_CC_HEADER = struct.Struct("=IBBBB")
_FD_HEADER = struct.Struct("=IBBBB")
_CC_DATA_LEN = 8
_FD_DATA_LEN = 64

CAN_MTU = _CC_HEADER.size + _CC_DATA_LEN
CANFD_MTU = _FD_HEADER.size + _FD_DATA_LEN


def _pack(frame: CanFrame) -> bytes:
    if frame.variant is CanVariant.FD:
        header = _FD_HEADER.pack(frame.can_id, frame.length, frame.flags & 0xFF, 0, 0)
        return header + frame.data.ljust(_FD_DATA_LEN, b"\x00")
    header = _CC_HEADER.pack(frame.can_id, frame.length, 0, 0, 0)
    return header + frame.data.ljust(_CC_DATA_LEN, b"\x00")


def _unpack(raw: bytes) -> Optional[CanFrame]:
    if len(raw) == CANFD_MTU:
        can_id, length, flags, _, _ = _FD_HEADER.unpack_from(raw)
        length = min(length, _FD_DATA_LEN)
        payload = raw[_FD_HEADER.size : _FD_HEADER.size + length]
        return CanFrame(can_id, payload, CanVariant.FD, flags)
    if len(raw) == CAN_MTU:
        can_id, length, _, _, _ = _CC_HEADER.unpack_from(raw)
        length = min(length, _CC_DATA_LEN)
        payload = raw[_CC_HEADER.size : _CC_HEADER.size + length]
        return CanFrame(can_id, payload, CanVariant.CC)
    return None


class _CanEndpoint:
    """Shared socket handling for reader and writer."""

    def __init__(self, sock: Optional[socket.socket] = None) -> None:
        self._sock = sock
        self.ifname = ""

    @property
    def is_open(self) -> bool:
        """Whether a socket is attached."""
        return self._sock is not None

    def _attach(self, ifname: str, can_variant: Union[CanVariant, int]) -> None:
        if self._sock is None:
            if not ifname:
                raise ValueError("CAN interface name is empty")
            self._sock = setup_can_socket(ifname, can_variant)
            self.ifname = ifname
            _log.info("%s opened on %s", type(self).__name__, ifname)

    def _detach(self) -> None:
        if self._sock is not None:
            self._sock.close()
            self._sock = None

    def __enter__(self):
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self._detach()


class CanReader(_CanEndpoint):
    """Receives frames from a raw CAN socket."""

    def open(self, ifname: str, can_variant: Union[CanVariant, int]) -> "CanReader":
        """Bind a raw CAN socket on ``ifname``; does nothing if already open."""
        self._attach(ifname, can_variant)
        return self

    def receive(self, count: int) -> list[CanFrame]:
        """Block until ``count`` frames have been read and return them in order.

        Datagrams that are neither a classic nor an FD frame are skipped.
        """
        if count < 0:
            raise ValueError(f"frame count must not be negative, got {count}")
        if self._sock is None:
            raise RuntimeError("CAN reader is not open")
        frames: list[CanFrame] = []
        while len(frames) < count:
            raw = self._sock.recv(CANFD_MTU)
            frame = _unpack(raw)
            if frame is None:
                _log.warning("error reading CAN frame: got %d bytes", len(raw))
                continue
            frames.append(frame)
        return frames

    def fileno(self) -> int:
        """The socket's file descriptor, or -1 when closed."""
        return self._sock.fileno() if self._sock is not None else -1

    def close(self) -> None:
        """Close the socket; closing twice is harmless."""
        self._detach()


class CanWriter(_CanEndpoint):
    """Sends frames to a raw CAN socket."""

    def open(self, ifname: str, can_variant: Union[CanVariant, int]) -> "CanWriter":
        """Bind a raw CAN socket on ``ifname``; does nothing if already open."""
        self._attach(ifname, can_variant)
        return self

    def send(self, frames: Iterable[CanFrame]) -> int:
        """Write each frame; return how many were written.

        Nothing is written while the writer is closed. A frame that fails to
        go out is logged and the rest are still sent.
        """
        if self._sock is None:
            return 0
        sent = 0
        for frame in frames:
            try:
                self._sock.send(_pack(frame))
            except OSError as err:
                _log.warning("failed to write to CAN bus: %s", err)
                continue
            sent += 1
        return sent

    def close(self) -> None:
        """Close the socket; closing twice is harmless."""
        self._detach()