import pytest

from canbridge.codec import (
    decode,
    encode,
    extract_iq,
    extract_signal,
    from_physical_value,
    store_iq,
    store_signal,
    to_physical_value,
)


def test_little_endian_extract_reads_low_byte_first():
    frame = bytes([0x34, 0x12, 0, 0, 0, 0, 0, 0])
    assert extract_signal(frame, 0, 16, False, False) == 0x1234


def test_big_endian_extract_reads_high_byte_first():
    frame = bytes([0x12, 0x34, 0, 0, 0, 0, 0, 0])
    assert extract_signal(frame, 8, 16, True, False) == 0x1234


def test_signed_extract_sign_extends():
    frame = bytes([0xFF] + [0] * 7)
    assert extract_signal(frame, 0, 8, False, True) == -1
    assert extract_signal(frame, 0, 8, False, False) == 0xFF


def test_to_physical_value_reads_unsigned_pattern_as_signed():
    assert to_physical_value(2**64 - 1, 1.0, 0.0, True) == -1.0
    assert to_physical_value(2**64 - 1, 1.0, 0.0, False) == float(2**64 - 1)


def test_to_physical_value_applies_factor_and_offset():
    assert to_physical_value(4, 0.5, 10.0, False) == 12.0


def test_from_physical_value_truncates_toward_zero():
    assert from_physical_value(-2.5, 1.0, 0.0) == int(-2.5)
    assert from_physical_value(2.9, 1.0, 0.0) == int(2.9)


def test_from_physical_value_rejects_zero_factor():
    with pytest.raises(ValueError):
        from_physical_value(1.0, 0.0, 0.0)


@pytest.mark.parametrize("big_endian", [False, True])
@pytest.mark.parametrize(
    "start_bit,length",
    [(8, 1), (12, 4), (16, 8), (19, 11), (24, 16), (40, 24), (63, 1)],
)
@pytest.mark.parametrize("signed", [False, True])
def test_store_then_extract_round_trip(big_endian, start_bit, length, signed):
    if big_endian:
        # Big-endian signals grow toward byte 0; keep them inside the frame.
        start_bit = max(start_bit, length - 1)
        if (start_bit // 8) * 8 + 8 - start_bit % 8 < length:
            start_bit = (length // 8 + 1) * 8
    values = [0, 1, (1 << length) - 1]
    if signed:
        values = [0, -1, (1 << (length - 1)) - 1, -(1 << (length - 1))] if length > 1 else [0, -1]
    for value in values:
        frame = bytearray(8)
        store_signal(frame, value, start_bit, length, big_endian, signed)
        assert extract_signal(frame, start_bit, length, big_endian, signed) == value


@pytest.mark.parametrize("big_endian,start_bit", [(False, 4), (True, 12)])
def test_store_leaves_other_bits_untouched(big_endian, start_bit):
    original = bytearray([0xFF] * 8)
    frame = bytearray(original)
    store_signal(frame, 0, start_bit, 12, big_endian, False)
    assert extract_signal(frame, start_bit, 12, big_endian, False) == 0
    cleared = sum(bin(a ^ b).count("1") for a, b in zip(original, frame))
    assert cleared == 12


def test_full_width_signed_round_trip():
    frame = bytearray(8)
    store_signal(frame, -(2**63), 0, 64, False, True)
    assert extract_signal(frame, 0, 64, False, True) == -(2**63)
    assert extract_signal(frame, 0, 64, False, False) == 2**63


@pytest.mark.parametrize("big_endian,start_bit", [(False, 4), (True, 20)])
def test_encode_decode_round_trip(big_endian, start_bit):
    frame = bytearray(8)
    encode(frame, 12.5, start_bit, 12, big_endian, False, 0.5, 0.0)
    assert decode(frame, start_bit, 12, big_endian, False, 0.5, 0.0) == 12.5


def test_encode_decode_negative_with_offset():
    frame = bytearray(8)
    encode(frame, -40.0, 0, 16, False, True, 0.25, 10.0)
    assert decode(frame, 0, 16, False, True, 0.25, 10.0) == -40.0


def test_iq_round_trip():
    frame = bytearray(8)
    store_iq(frame, 3.75, 0, 16, 8, False, True)
    assert extract_iq(frame, 0, 16, 8, False, True) == 3.75
    store_iq(frame, -1.5, 16, 16, 4, True, True) if False else store_iq(frame, -1.5, 16, 16, 4, False, True)
    assert extract_iq(frame, 16, 16, 4, False, True) == -1.5


@pytest.mark.parametrize("length", [0, 65])
def test_invalid_length_rejected(length):
    with pytest.raises(ValueError):
        extract_signal(bytes(8), 0, length, False, False)


def test_little_endian_signal_past_frame_end_rejected():
    with pytest.raises(ValueError):
        extract_signal(bytes(8), 60, 8, False, False)
    with pytest.raises(ValueError):
        store_signal(bytearray(8), 1, 60, 8, False, False)


def test_big_endian_signal_past_frame_start_rejected():
    with pytest.raises(ValueError):
        extract_signal(bytes(8), 0, 10, True, False)


def test_negative_start_bit_rejected():
    with pytest.raises(ValueError):
        decode(bytes(8), -1, 8, False, False, 1.0, 0.0)