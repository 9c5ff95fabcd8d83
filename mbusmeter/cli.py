"""Command line reader that prints the data blocks of one meter."""

from __future__ import annotations

import argparse
import logging
import sys

import serial

from .controller import FUNCTION_NAMES, UNIT_NAMES
from .model import DataBlock, MbusError
from .reader import MbusReader
from .uart import open_serial


def format_data_block(data_block: DataBlock) -> str:
    """Return a one-line description of a data block."""
    return (
        f"[{data_block.index}] {FUNCTION_NAMES[data_block.function]}"
        f" storage={data_block.storage_number} tariff={data_block.tariff}:"
        f" {data_block.value} {UNIT_NAMES[data_block.unit]}"
        f" (ten power {data_block.ten_power}, {data_block.data_length} bytes)"
    )


def _address(text: str) -> int:
    try:
        value = int(text, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an address: {text!r}") from None
    if not 0 <= value <= 0xFF:
        raise argparse.ArgumentTypeError(f"address out of range 0-255: {text}")
    return value


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="mbusmeter", description="Read the variable data of an M-Bus meter."
    )
    parser.add_argument("port", help="serial device or pyserial URL")
    parser.add_argument("-a", "--address", type=_address, default=0x01, help="primary address")
    parser.add_argument("-b", "--baudrate", type=int, default=2400)
    parser.add_argument("-v", "--verbose", action="store_true", help="log protocol details")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        uart = open_serial(args.port, args.baudrate)
    except serial.SerialException as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    with uart:
        try:
            blocks = MbusReader(uart).read_meter_data(args.address)
        except MbusError as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 1

    for block in blocks:
        print(format_data_block(block))
    return 0


if __name__ == "__main__":
    sys.exit(main())