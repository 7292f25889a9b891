"""Socket setup for CAN and AVTP links, and AVTP presentation-time helpers."""

from __future__ import annotations

import errno
import socket
import struct
import sys
import time
from dataclasses import dataclass
from typing import BinaryIO, Optional, Union

from canbridge.handlers import CanVariant

__all__ = [
    "ETH_P_TSN",
    "ETH_ALEN",
    "LinkAddress",
    "setup_can_socket",
    "calculate_avtp_time",
    "get_presentation_time",
    "present_data",
    "sleep_until",
    "setup_socket_address",
    "create_talker_socket",
    "create_listener_socket",
    "create_loopback_socket",
]

NSEC_PER_SEC = 1_000_000_000
NSEC_PER_MSEC = 1_000_000
ETH_P_TSN = 0x22F0
ETH_ALEN = 6

_IFNAMSIZ = 16
_AVTP_TIME_RANGE = 1 << 32
_HIGH_WORD = 0xFFFFFFFF00000000

_SO_PRIORITY = getattr(socket, "SO_PRIORITY", 12)
_SOL_PACKET = getattr(socket, "SOL_PACKET", 263)
_PACKET_ADD_MEMBERSHIP = getattr(socket, "PACKET_ADD_MEMBERSHIP", 1)
_PACKET_MR_MULTICAST = getattr(socket, "PACKET_MR_MULTICAST", 0)
_SOL_CAN_RAW = getattr(socket, "SOL_CAN_RAW", 101)
_CAN_RAW_FD_FRAMES = getattr(socket, "CAN_RAW_FD_FRAMES", 5)

MacAddress = Union[str, bytes, bytearray, memoryview]


def _family(name: str) -> int:
    family = getattr(socket, name, None)
    if family is None:
        raise OSError(errno.EAFNOSUPPORT, f"{name} sockets are not supported on this platform")
    return family


def _check_ifname(ifname: str) -> str:
    if not ifname:
        raise ValueError("interface name must not be empty")
    if len(ifname.encode()) >= _IFNAMSIZ:
        raise ValueError(f"interface name {ifname!r} is longer than {_IFNAMSIZ - 1} bytes")
    return ifname


def _mac_bytes(macaddr: MacAddress) -> bytes:
    if isinstance(macaddr, str):
        text = macaddr.replace(":", "").replace("-", "")
        try:
            raw = bytes.fromhex(text)
        except ValueError:
            raise ValueError(f"malformed MAC address: {macaddr!r}") from None
    else:
        raw = bytes(macaddr)
    if len(raw) != ETH_ALEN:
        raise ValueError(f"MAC address must be {ETH_ALEN} bytes, got {len(raw)}")
    return raw


@dataclass(frozen=True)
class LinkAddress:
    """A link-layer address on a named interface."""

    ifname: str
    ifindex: int
    protocol: int
    macaddr: bytes = bytes(ETH_ALEN)

    @property
    def sockaddr(self) -> tuple[str, int, int, int, bytes]:
        """The address in the form packet sockets accept for bind and sendto."""
        return (self.ifname, self.protocol, 0, 0, self.macaddr)


def setup_can_socket(ifname: str, can_variant: Union[CanVariant, int]) -> socket.socket:
    """Open a raw CAN socket bound to ``ifname``; CAN FD frames are enabled for FD."""
    _check_ifname(ifname)
    variant = CanVariant(can_variant)
    sock = socket.socket(_family("AF_CAN"), socket.SOCK_RAW, getattr(socket, "CAN_RAW", 1))
    try:
        if variant is CanVariant.FD:
            sock.setsockopt(_SOL_CAN_RAW, _CAN_RAW_FD_FRAMES, 1)
        sock.bind((ifname,))
    except BaseException:
        sock.close()
        raise
    return sock


def calculate_avtp_time(max_transit_time: int, now_ns: Optional[int] = None) -> int:
    """Return the 32-bit AVTP presentation time ``max_transit_time`` ms from now."""
    if now_ns is None:
        now_ns = time.time_ns()
    ptime = now_ns + max_transit_time * NSEC_PER_MSEC
    return ptime % _AVTP_TIME_RANGE


def get_presentation_time(avtp_time: int, now_ns: Optional[int] = None) -> int:
    """Recover the full real-time nanosecond timestamp of a 32-bit AVTP time.

    The result is the first instant not before ``now_ns`` whose low 32 bits
    equal ``avtp_time``.
    """
    if not 0 <= avtp_time < _AVTP_TIME_RANGE:
        raise ValueError(f"AVTP time must fit in 32 bits, got {avtp_time}")
    if now_ns is None:
        now_ns = time.time_ns()
    ptime = (now_ns & _HIGH_WORD) | avtp_time
    if ptime < now_ns:
        ptime += _AVTP_TIME_RANGE
    return ptime


def present_data(data: bytes, stream: Optional[BinaryIO] = None) -> None:
    """Write ``data`` to ``stream`` (standard output by default) in full."""
    if stream is None:
        stream = sys.stdout.buffer
    written = stream.write(data)
    if written is not None and written != len(data):
        raise OSError(errno.EIO, f"short write: {written} of {len(data)} bytes")
    flush = getattr(stream, "flush", None)
    if flush is not None:
        flush()


def sleep_until(presentation_ns: int) -> None:
    """Block until the real-time clock reaches ``presentation_ns``."""
    while True:
        remaining = presentation_ns - time.time_ns()
        if remaining <= 0:
            return
        time.sleep(remaining / NSEC_PER_SEC)


def setup_socket_address(ifname: str, macaddr: MacAddress, protocol: int) -> LinkAddress:
    """Resolve ``ifname`` and build the link address for ``macaddr`` and ``protocol``."""
    _check_ifname(ifname)
    mac = _mac_bytes(macaddr)
    ifindex = socket.if_nametoindex(ifname)
    return LinkAddress(ifname, ifindex, protocol, mac)


def create_talker_socket(priority: int = -1) -> socket.socket:
    """Open a packet socket for sending AVTP frames, optionally with a priority."""
    sock = socket.socket(_family("AF_PACKET"), socket.SOCK_DGRAM, socket.htons(ETH_P_TSN))
    try:
        if priority != -1:
            sock.setsockopt(socket.SOL_SOCKET, _SO_PRIORITY, priority)
    except BaseException:
        sock.close()
        raise
    return sock


def create_listener_socket(ifname: str, macaddr: MacAddress, protocol: int) -> socket.socket:
    """Open a packet socket on ``ifname`` that receives ``protocol`` frames sent to ``macaddr``."""
    sock = socket.socket(_family("AF_PACKET"), socket.SOCK_DGRAM, socket.htons(protocol))
    try:
        address = setup_socket_address(ifname, macaddr, protocol)
        sock.bind(address.sockaddr)
        mreq = struct.pack(
            "iHH8s",
            address.ifindex,
            _PACKET_MR_MULTICAST,
            ETH_ALEN,
            address.macaddr.ljust(8, b"\x00"),
        )
        sock.setsockopt(_SOL_PACKET, _PACKET_ADD_MEMBERSHIP, mreq)
    except BaseException:
        sock.close()
        raise
    return sock


def create_loopback_socket(ifname: str, protocol: int) -> tuple[socket.socket, LinkAddress]:
    """Open a packet socket bound to ``ifname``; return it with its link address."""
    _check_ifname(ifname)
    sock = socket.socket(_family("AF_PACKET"), socket.SOCK_DGRAM, socket.htons(protocol))
    try:
        ifindex = socket.if_nametoindex(ifname)
        address = LinkAddress(ifname, ifindex, protocol)
        sock.bind(address.sockaddr)
    except BaseException:
        sock.close()
        raise
    return sock, address