# mbusmeter

`mbusmeter` talks to wired M-Bus meters (heat, water and energy meters)
over a serial line. It initialises the meter with `SND_NKE`, requests its
data with `REQ_UD2`, checks the long frame that comes back (start and stop
bytes, matching L fields, C field, checksum, address) and decodes the
variable data blocks into values with a unit and a power of ten.

## Installing

```
pip install mbusmeter
```

An M-Bus level converter is needed between the serial port and the meter.
`open_serial` opens the port at 8 data bits, even parity, one stop bit;
the default speed is 2400 baud.

## Command line

```
mbusmeter PORT [-a ADDRESS] [-b BAUDRATE] [-v]
```

- `PORT` – serial device (for example `/dev/ttyUSB0`) or a pyserial URL.
- `-a`, `--address` – the meter's primary address, 0–255, decimal or with
  a `0x` prefix; default `1`.
- `-b`, `--baudrate` – default `2400`.
- `-v`, `--verbose` – log protocol details.

On success it prints one line per data block with its index, function,
storage number, tariff, decoded value, unit, power of ten and byte count,
and exits with status 0. If the port cannot be opened or the read fails,
it prints `error: ...` to standard error and exits with status 1.

## Using it from Python

Open the serial port, hand it to a reader and ask a meter for its data:

```python
from mbusmeter.uart import open_serial
from mbusmeter.reader import MbusReader

with open_serial("/dev/ttyUSB0", 2400) as uart:
    reader = MbusReader(uart)
    for block in reader.read_meter_data(0x01):
        print(block.index, block.unit, block.ten_power, block.value)
```

A failed read raises `mbusmeter.model.MbusError`: no acknowledgement of
`SND_NKE`, no answer to `REQ_UD2`, a malformed frame or bad checksum, a
response from another address, or a response that is an application
error, an alarm status or fixed data.

`MbusReader` and `mbusmeter.data_link_layer.DataLinkLayer` take an
optional `Timing` (from `mbusmeter.data_link_layer`) to change the
delays, timeouts and number of send attempts, and the sleep and clock
functions used.

Any object implementing `mbusmeter.uart.UartInterface` (`read_byte`,
`read_array`, `write_array`, `available`, `flush`) can stand in for the
serial port.

Already-received frames can be decoded without a meter attached:
`mbusmeter.data_block_reader.read_data_blocks_from_long_frame` takes a
`mbusmeter.model.LongFrame` and returns its `DataBlock` objects in order,
skipping the 12-byte fixed data header.

### Publishing values

`MbusController` (in `mbusmeter.controller`) polls one meter and hands
matching blocks to sensors. Each sensor is bound to a data block index and
calls your `publish` callback with the decoded value:

```python
from mbusmeter.controller import MbusController

controller = MbusController(reader, 0x01)
controller.create_sensor(0, print, "energy")
controller.create_sensor(1, print, "volume")

controller.read_mbus()
blocks = controller.poll_once()
```

`read_mbus()` requests a read and `poll_once()` serves it, returning the
blocks read or `None`. `start()` serves requests in a background thread and
`stop()` ends it. `disable_mbus()` and `enable_mbus()` pause and resume
reading. The first successful read after creation or after
`disable_mbus()` is logged block by block (`dump_data_blocks`);
`dump_config()` returns and logs the sensor list.

### Supported value information

Primary VIFs for energy (Wh, J), volume (m³), on time, power (W, J/h),
volume flow (m³/h, m³/min, m³/s), flow and return temperature,
temperature difference and dates are decoded; manufacturer-specific VIFs
are marked as such. VIF extensions are skipped. Data fields of 0–4 bytes
(codes 0x0–0x4), 0x5 (2 bytes) and 0xC (4 bytes) are read; other codes are
logged and read as empty.

Values are read as BCD when every nibble is a decimal digit and the result
is non-zero and below ten million, otherwise as a little-endian binary
integer of at most four bytes, then scaled by the power of ten (clamped to
−9…9).

## What it does not do

- No secondary addressing, wireless M-Bus or multi-telegram reads.
- Date blocks are not turned into dates; they are decoded to a number like
  any other block.
- Fixed data responses are not decoded; they raise `MbusError`.
- Nothing is sent to a meter beyond `SND_NKE` and `REQ_UD2`.

## Running the tests

```
pip install "mbusmeter[test]"
pytest
```