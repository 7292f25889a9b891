import socket
import struct

import pytest

from canbridge.canio import CANFD_MTU, CAN_MTU, CanReader, CanWriter
from canbridge.handlers import CanFrame, CanVariant


@pytest.fixture
def pair():
    left, right = socket.socketpair(socket.AF_UNIX, socket.SOCK_DGRAM)
    yield left, right
    left.close()
    right.close()


def test_classic_frame_round_trip(pair):
    writer = CanWriter(pair[0])
    reader = CanReader(pair[1])
    frame = CanFrame(0x123, b"\x01\x02\x03", CanVariant.CC)
    assert writer.send([frame]) == 1
    assert reader.receive(1) == [frame]


def test_fd_frame_round_trip_keeps_flags(pair):
    writer = CanWriter(pair[0])
    reader = CanReader(pair[1])
    frame = CanFrame(0x80000456, bytes(range(20)), CanVariant.FD, flags=0x05)
    writer.send([frame])
    (received,) = reader.receive(1)
    assert received == frame
    assert received.flags == 0x05
    assert received.variant is CanVariant.FD


def test_multiple_frames_keep_order(pair):
    writer = CanWriter(pair[0])
    reader = CanReader(pair[1])
    frames = [
        CanFrame(1, b"\xaa", CanVariant.CC),
        CanFrame(2, b"\xbb" * 12, CanVariant.FD),
        CanFrame(3, b"", CanVariant.CC),
    ]
    assert writer.send(frames) == 3
    assert reader.receive(3) == frames


def test_classic_wire_size_and_id(pair):
    writer = CanWriter(pair[0])
    writer.send([CanFrame(0x7FF, b"\x11\x22", CanVariant.CC)])
    raw = pair[1].recv(1024)
    assert len(raw) == 16
    assert len(raw) == CAN_MTU
    assert struct.unpack("=I", raw[:4])[0] == 0x7FF
    assert raw[4] == 2
    assert raw[8:10] == b"\x11\x22"


def test_fd_wire_size(pair):
    writer = CanWriter(pair[0])
    writer.send([CanFrame(0x10, b"\x01", CanVariant.FD, flags=0x04)])
    raw = pair[1].recv(1024)
    assert len(raw) == 72
    assert len(raw) == CANFD_MTU
    assert raw[5] == 0x04


def test_reader_skips_malformed_datagrams(pair):
    reader = CanReader(pair[1])
    pair[0].send(b"\x00" * 5)
    frame = CanFrame(0x42, b"\x09", CanVariant.CC)
    CanWriter(pair[0]).send([frame])
    assert reader.receive(1) == [frame]


def test_receive_zero_frames(pair):
    assert CanReader(pair[1]).receive(0) == []


def test_receive_negative_count_rejected(pair):
    with pytest.raises(ValueError):
        CanReader(pair[1]).receive(-1)


def test_receive_without_open_raises():
    with pytest.raises(RuntimeError):
        CanReader().receive(1)


def test_open_with_empty_name_raises():
    with pytest.raises(ValueError):
        CanReader().open("", CanVariant.CC)
    with pytest.raises(ValueError):
        CanWriter().open("", CanVariant.FD)


def test_open_missing_interface_raises():
    with pytest.raises(OSError):
        CanReader().open("nocan9", CanVariant.CC)


def test_open_when_already_open_keeps_socket(pair):
    reader = CanReader(pair[1])
    assert reader.open("nocan9", CanVariant.CC) is reader
    assert reader.fileno() == pair[1].fileno()


def test_fileno_and_close(pair):
    left, right = socket.socketpair(socket.AF_UNIX, socket.SOCK_DGRAM)
    left.close()
    reader = CanReader(right)
    assert reader.fileno() == right.fileno()
    reader.close()
    assert reader.fileno() == -1
    assert reader.is_open is False
    reader.close()
    assert reader.fileno() == -1


def test_writer_close_stops_sending():
    left, right = socket.socketpair(socket.AF_UNIX, socket.SOCK_DGRAM)
    left.close()
    writer = CanWriter(right)
    writer.close()
    assert writer.is_open is False
    assert right.fileno() == -1
    assert writer.send([CanFrame(1, b"\x00")]) == 0


def test_writer_closed_sends_nothing():
    assert CanWriter().send([CanFrame(1, b"\x00")]) == 0


def test_context_manager_closes():
    left, right = socket.socketpair(socket.AF_UNIX, socket.SOCK_DGRAM)
    left.close()
    with CanWriter(right) as writer:
        assert writer.is_open is True
    assert writer.is_open is False
    assert right.fileno() == -1