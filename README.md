# canbridge

A Python library for working with CAN traffic. It has no dependencies outside
the standard library.

| Module | What it provides |
| --- | --- |
| `canbridge.codec` | Packs and unpacks raw signal bits in a CAN payload. Supports Intel (little-endian) and Motorola (big-endian) layouts, signed values, factor/offset scaling and fixed-point IQ values. |
| `canbridge.dbc` | Parses Vector DBC text into `DbCanMessage` / `DbcSignal` records, and decodes payloads into `CanMessage` objects that hold `SignalValue`s. Handles multiplexed messages. |
| `canbridge.handlers` | The `CanFrame` and `CanVariant` types, `CallbackData`, the `DataCallbackHandler` callback holder, and the abstract `DataObserver` / `DataSubscriber` interfaces. |
| `canbridge.comm` | SocketCAN and raw-Ethernet packet socket setup for AVTP/TSN, plus AVTP presentation-time arithmetic. |
| `canbridge.canio` | `CanReader` and `CanWriter`, which read and write `CanFrame`s on a SocketCAN interface. |

`codec`, `dbc` and `handlers` run on any platform. The socket functions in
`comm` and `canio` need Linux, because they rely on `AF_CAN` and `AF_PACKET`.
Opening them usually requires an existing interface such as `vcan0`, and for
packet sockets it also requires the matching privileges.

## Installation

```
pip install .
```

## Encoding and decoding signals

The functions take these arguments:

- `frame`: a mutable byte sequence for writing, or any byte sequence for reading.
- `start_bit`: the bit position of the signal. For big-endian signals this is the position of the least significant bit.
- `length`: the signal width, from 1 to 64 bits.
- `is_big_endian`: the byte order.
- `is_signed`: whether the value is signed.
- `factor` and `offset`: the linear scaling, `physical = raw * factor + offset`.

```python
from canbridge.codec import decode, encode, extract_signal, store_signal

frame = bytearray(8)
encode(frame, 42.5, 0, 16, False, False, 0.5, 0.0)
assert decode(frame, 0, 16, False, False, 0.5, 0.0) == 42.5

store_signal(frame, -3, 16, 8, False, True)     # stored as two's complement
assert extract_signal(frame, 16, 8, False, True) == -3
```

`from_physical_value` truncates toward zero. `extract_iq` and `store_iq` handle
fixed-point values that have a given number of fraction bits.

A signal that does not fit in the frame raises `ValueError`. So does a length
outside 1–64, and so does a factor of zero.

## Reading a DBC database

```python
from canbridge.dbc import decode_message, load_dbc, parse_dbc

database = load_dbc("vehicle.dbc")          # or parse_dbc(text_or_lines)
message = database[291]                     # keyed by the BO_ frame id
payload = bytes(8)
result = decode_message(payload, message)
for signal in result.signals:
    print(signal.name, signal.value)
```

Each value in the database is a `DbCanMessage`. It holds the `frame_id`, the
`name`, a list of `DbcSignal`s and an `is_multiplexed` flag.

A `DbcSignal` holds the following fields:

- `name`, `start_bit`, `length`
- `is_big_endian`, `is_signed`
- `factor`, `offset`
- `minimum`, `maximum`
- `unit`, `receivers`
- `mux_type` (`MuxType.NONE`, `MULTIPLEXER` or `MULTIPLEXED`) and `mux_id`

For big-endian signals, the start bit is already converted to the
least-significant-bit position that the codec expects.

For a multiplexed message, `decode_message` returns the multiplexer first. It
then returns the plain signals, and the multiplexed signals whose `mux_id`
matches the multiplexer value. A malformed signal line raises `ValueError`.

## Callbacks and observers

```python
from canbridge.handlers import CallbackData, CanFrame, CanVariant, DataCallbackHandler

received = []
handler = DataCallbackHandler()
handler.register_callback(received.append)
handler.handle_callback(CallbackData("can0", CanFrame(0x123, b"\x01\x02", CanVariant.CC)))
handler.unregister_callback()
```

`CanFrame` holds the following fields:

- `can_id`: the identifier, including any flag bits.
- `data`: the payload. It is limited to 8 bytes for `CanVariant.CC` and 64 bytes for `CanVariant.FD`.
- `variant`: a `CanVariant`.
- `flags`: the CAN FD flags.

`DataObserver` (with `update`) and `DataSubscriber` (with
`register_data_observer` and `unregister_data_observer`) are abstract base
classes. You implement them in your own code.

## Talking to a CAN interface

```python
from canbridge.canio import CanReader, CanWriter
from canbridge.handlers import CanVariant

with CanReader().open("vcan0", CanVariant.FD) as reader:
    frames = reader.receive(1)          # blocks until one frame arrives

with CanWriter().open("vcan0", CanVariant.FD) as writer:
    sent = writer.send(frames)          # number of frames written
```

`open` does nothing if the object is already open. `close` can safely be called
more than once. `CanReader.fileno()` returns the socket's file descriptor, or
`-1` when the reader is closed.

`CanReader.receive` skips datagrams that are neither classic nor FD frames.
`CanWriter.send` writes nothing when the writer is closed. It logs any frame
that fails to send and moves on to the next one.

## AVTP sockets and timing

`canbridge.comm` provides the following functions:

- `setup_can_socket(ifname, can_variant)`: returns a bound raw CAN socket. CAN FD frames are enabled for `CanVariant.FD`.
- `create_talker_socket(priority=-1)`: returns a packet socket for the TSN ethertype.
- `create_listener_socket(ifname, macaddr, protocol)`: returns a packet socket bound to the interface and joined to the multicast address.
- `create_loopback_socket(ifname, protocol)`: returns a `(socket, LinkAddress)` pair.
- `setup_socket_address(ifname, macaddr, protocol)`: returns a `LinkAddress`, which exposes its bindable form as `.sockaddr`.
- `calculate_avtp_time(max_transit_time, now_ns=None)`: returns the 32-bit AVTP presentation time, `max_transit_time` milliseconds from now.
- `get_presentation_time(avtp_time, now_ns=None)`: recovers the full nanosecond timestamp of a 32-bit AVTP time. The result is the first instant not before `now_ns`.
- `sleep_until(presentation_ns)`: waits until the real-time clock reaches the given time.
- `present_data(data, stream=None)`: writes the bytes in full to `stream`, or to standard output by default. A short write raises `OSError`.

```python
from canbridge.comm import calculate_avtp_time, get_presentation_time

now = 5_000_000_000
avtp = calculate_avtp_time(2, now_ns=now)
assert get_presentation_time(avtp, now_ns=now) == now + 2_000_000
```

## What it does not do

canbridge is a library of building blocks and does not cover the following:

- It does not build or parse AVTP control-format packets. The `comm` module only opens the sockets that such packets would travel over.
- It has no command-line program.
- It has no process that forwards frames between a CAN bus and the network.
- It does not store decoded signal values anywhere.

## Running the tests

```
pip install .[test]
pytest
```