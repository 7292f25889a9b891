"""Reading DBC databases and decoding CAN payloads with them."""

from __future__ import annotations

import enum
import os
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Sequence, Union

from canbridge.codec import decode, extract_signal, to_physical_value

__all__ = [
    "MuxType",
    "DbcSignal",
    "DbCanMessage",
    "SignalValue",
    "CanMessage",
    "tokenize",
    "parse_dbc",
    "load_dbc",
    "decode_message",
]

_WORD = re.compile(r"\S+")
_BITS = re.compile(r"^(\d+)\|(\d+)@([01])([+-])")
_SCALE = re.compile(r"^\(([^,]+),([^)]+)\)")
_RANGE = re.compile(r"^\[([^|]+)\|([^\]]+)\]")
_MUX_ID = re.compile(r"^(\d+)")

# A signal line without a multiplexer indicator has exactly this many words.
_PLAIN_SIGNAL_WORDS = 8


class MuxType(enum.IntEnum):
    """Role of a signal in a multiplexed message."""

    NONE = 0
    MULTIPLEXER = 1
    MULTIPLEXED = 2


@dataclass
class DbcSignal:
    """A signal definition from a DBC file.

    ``start_bit`` is already converted to the position of the least
    significant bit for big-endian signals, as the codec expects.
    """

    name: str
    start_bit: int
    length: int
    is_big_endian: bool
    is_signed: bool
    factor: float
    offset: float
    minimum: float
    maximum: float
    unit: str = ""
    receivers: str = ""
    mux_type: MuxType = MuxType.NONE
    mux_id: int = 0


@dataclass
class DbCanMessage:
    """A frame definition from a DBC file with its signals."""

    frame_id: int
    name: str
    signals: list[DbcSignal] = field(default_factory=list)
    is_multiplexed: bool = False


@dataclass
class SignalValue:
    """The decoded physical value of one signal."""

    name: str
    value: float


@dataclass
class CanMessage:
    """The decoded signals of one received frame."""

    can_id: int
    signals: list[SignalValue] = field(default_factory=list)


def tokenize(line: str) -> list[str]:
    """Split a line into its whitespace-separated words."""
    return _WORD.findall(line)


def _match(pattern: re.Pattern[str], word: str, what: str) -> re.Match[str]:
    match = pattern.match(word)
    if match is None:
        raise ValueError(f"malformed {what} in signal definition: {word!r}")
    return match


def _number(text: str, what: str) -> float:
    try:
        return float(text)
    except ValueError:
        raise ValueError(f"malformed {what} in signal definition: {text!r}") from None


def _lsb_start_bit(start_bit: int, length: int) -> int:
    """Convert a Motorola start bit (MSB position) to the LSB position."""
    pos = 7 - (start_bit % 8) + (length - 1)
    if pos < 8:
        return start_bit - length + 1
    cpos = 7 - (pos % 8)
    whole_bytes = pos // 8
    return cpos + whole_bytes * 8 + (start_bit // 8) * 8


def _parse_signal(words: Sequence[str]) -> DbcSignal:
    if len(words) < _PLAIN_SIGNAL_WORDS:
        raise ValueError(f"incomplete signal definition: {' '.join(words)!r}")

    index = 1
    name = words[index]
    index += 1

    mux_type = MuxType.NONE
    mux_id = 0
    if len(words) > _PLAIN_SIGNAL_WORDS:
        mux = words[index]
        index += 1
        if mux[0] == "M":
            mux_type = MuxType.MULTIPLEXER
        elif mux[0] == "m":
            mux_type = MuxType.MULTIPLEXED
        digits = _MUX_ID.match(mux[1:])
        if digits is not None:
            mux_id = int(digits.group(1))

    index += 1  # the ":" separator

    bits = _match(_BITS, words[index], "bit layout")
    index += 1
    start_bit = int(bits.group(1))
    length = int(bits.group(2))
    is_big_endian = bits.group(3) == "0"
    is_signed = bits.group(4) == "-"

    scale = _match(_SCALE, words[index], "scaling")
    index += 1
    factor = _number(scale.group(1), "factor")
    offset = _number(scale.group(2), "offset")

    limits = _match(_RANGE, words[index], "range")
    index += 1
    minimum = _number(limits.group(1), "minimum")
    maximum = _number(limits.group(2), "maximum")

    unit = words[index].strip('"')
    index += 1
    receivers = "".join(words[index:])

    if is_big_endian:
        start_bit = _lsb_start_bit(start_bit, length)

    return DbcSignal(
        name=name,
        start_bit=start_bit,
        length=length,
        is_big_endian=is_big_endian,
        is_signed=is_signed,
        factor=factor,
        offset=offset,
        minimum=minimum,
        maximum=maximum,
        unit=unit,
        receivers=receivers,
        mux_type=mux_type,
        mux_id=mux_id,
    )


def parse_dbc(lines: Union[str, Iterable[str]]) -> dict[int, DbCanMessage]:
    """Parse DBC text into a mapping of frame id to message definition.

    Signal lines belong to the most recent ``BO_`` line; signals that appear
    before any frame are collected under frame id 0.
    """
    if isinstance(lines, str):
        lines = lines.splitlines()

    database: dict[int, DbCanMessage] = {}
    frame_id = 0
    for line in lines:
        words = tokenize(line)
        if not words:
            continue
        keyword = words[0]
        if keyword == "BO_":
            if len(words) >= 5:
                try:
                    frame_id = int(words[1])
                except ValueError:
                    raise ValueError(f"malformed frame id: {words[1]!r}") from None
                database[frame_id] = DbCanMessage(frame_id, words[2].split(":", 1)[0])
        elif keyword == "SG_":
            message = database.setdefault(frame_id, DbCanMessage(frame_id, ""))
            signal = _parse_signal(words)
            if signal.mux_type is not MuxType.NONE:
                message.is_multiplexed = True
            message.signals.append(signal)
    return database


def load_dbc(path: Union[str, os.PathLike[str]]) -> dict[int, DbCanMessage]:
    """Read and parse a DBC file."""
    with open(path, encoding="utf-8", errors="replace") as stream:
        return parse_dbc(stream)


def _decode(can_data: Sequence[int], signal: DbcSignal) -> SignalValue:
    value = decode(
        can_data,
        signal.start_bit,
        signal.length,
        signal.is_big_endian,
        signal.is_signed,
        signal.factor,
        signal.offset,
    )
    return SignalValue(signal.name, value)


def decode_message(can_data: Sequence[int], message: DbCanMessage) -> CanMessage:
    """Decode every signal of ``message`` that is present in ``can_data``.

    In a multiplexed message the multiplexer comes first, followed by the
    plain signals and those multiplexed signals whose id matches it.
    """
    result = CanMessage(message.frame_id)

    if not message.is_multiplexed:
        result.signals.extend(_decode(can_data, signal) for signal in message.signals)
        return result

    selector = 0
    multiplexer = next(
        (s for s in message.signals if s.mux_type is MuxType.MULTIPLEXER), None
    )
    if multiplexer is not None:
        selector = extract_signal(
            can_data,
            multiplexer.start_bit,
            multiplexer.length,
            multiplexer.is_big_endian,
            multiplexer.is_signed,
        )
        scaled = to_physical_value(
            selector, multiplexer.factor, multiplexer.offset, multiplexer.is_signed
        )
        result.signals.append(SignalValue(multiplexer.name, scaled))

    for signal in message.signals:
        if signal.mux_type is MuxType.NONE or (
            signal.mux_type is MuxType.MULTIPLEXED and signal.mux_id == selector
        ):
            result.signals.append(_decode(can_data, signal))
    return result