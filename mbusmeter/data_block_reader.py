"""Decoding of variable data blocks from the user data of a long frame."""

from __future__ import annotations

import logging

from .model import FIXED_DATA_HEADER_SIZE, DataBlock, Function, LongFrame, MbusError, Unit

_LOG = logging.getLogger(__name__)

_DIF_BIT_EXTENDED = 7
_DIF_BIT_LSB_STORAGE_NUMBER = 6
_DIF_BIT_FUNCTION_FIELD_LOW_BIT = 4
_DIF_BITS_DATA_FIELD = 0x0F
_DIFE_BITS_STORAGE_NUMBER = 0x0F
_DIFE_BITS_TARIFF = 0x30
_DIFE_BIT_TARIFF_LOW_BIT = 4
_VIF_BITS_UNIT_AND_MULTIPLIER = 0x7F
_VIF_BIT_EXTENDED = 7

# Supported DIF data field codes and their data lengths in bytes.
_DATA_FIELD_LENGTHS = {0x00: 0, 0x01: 1, 0x02: 2, 0x03: 3, 0x04: 4, 0x05: 2, 0x0C: 4}

_ON_TIME_UNITS = (Unit.SECONDS, Unit.MINUTES, Unit.HOURS, Unit.DAYS)

_MAX_TEN_POWER = 9
_BCD_LIMIT = 10_000_000


def pow10_safe(exponent: int) -> float:
    """Return 10 ** exponent with the exponent clamped to [-9, 9]."""
    clamped = max(-_MAX_TEN_POWER, min(_MAX_TEN_POWER, exponent))
    return 10.0**clamped


def _bcd(binary_data: bytes) -> int | None:
    """Return the little-endian BCD value of the bytes, or None if a nibble is not a digit."""
    result = 0
    for position, byte in enumerate(binary_data):
        low, high = byte & 0x0F, byte >> 4
        if low > 9 or high > 9:
            return None
        result += (low + high * 10) * 100**position
    return result


def decode_value(binary_data: bytes, ten_power: int) -> float:
    """Scale the block data, read as BCD when plausible and as binary otherwise."""
    if not binary_data:
        return 0.0
    raw_bin = int.from_bytes(binary_data[:4], "little")
    raw_bcd = _bcd(binary_data)
    factor = pow10_safe(ten_power)
    use_bcd = raw_bcd is not None and 0 < raw_bcd < _BCD_LIMIT
    chosen = raw_bcd if use_bcd else raw_bin
    _LOG.debug(
        "bytes=%s raw_bin=%d raw_bcd=%s chosen=%s",
        binary_data.hex().upper(),
        raw_bin,
        raw_bcd,
        "BCD" if use_bcd else "BIN",
    )
    return chosen * factor


class _Cursor:
    """Reads user data bytes one at a time."""

    def __init__(self, data: bytes, position: int) -> None:
        self.data = data
        self.position = position

    def next_byte(self) -> int:
        if self.position >= len(self.data):
            raise MbusError(f"user data ends at byte {len(self.data)} in the middle of a data block")
        byte = self.data[self.position]
        self.position += 1
        return byte

    def take(self, count: int) -> bytes:
        return bytes(self.next_byte() for _ in range(count))


def _is_extended(byte: int, bit: int) -> bool:
    return bool((byte >> bit) & 1)


def _read_dif(cursor: _Cursor, block: DataBlock) -> int:
    """Fill function, storage number and tariff; return the data length."""
    dif = cursor.next_byte()
    block.storage_number = (dif >> _DIF_BIT_LSB_STORAGE_NUMBER) & 1
    block.function = Function((dif >> _DIF_BIT_FUNCTION_FIELD_LOW_BIT) & 0b11)
    data_field = dif & _DIF_BITS_DATA_FIELD
    length = _DATA_FIELD_LENGTHS.get(data_field)
    if length is None:
        _LOG.warning("Data Field %x not supported", data_field)
        length = 0

    extended = _is_extended(dif, _DIF_BIT_EXTENDED)
    extension_index = 0
    while extended:
        dife = cursor.next_byte()
        block.storage_number |= (dife & _DIFE_BITS_STORAGE_NUMBER) << (4 * extension_index + 1)
        tariff_bits = (dife & _DIFE_BITS_TARIFF) >> _DIFE_BIT_TARIFF_LOW_BIT
        block.tariff |= tariff_bits << (2 * extension_index)
        extended = _is_extended(dife, _DIF_BIT_EXTENDED)
        extension_index += 1
    return length


def _apply_primary_vif(block: DataBlock, vif: int, code: int) -> None:
    low3 = code & 0b111
    low2 = code & 0b11
    if code & 0b1111000 == 0b0000000:
        block.ten_power, block.unit = low3 - 3, Unit.WH
    elif code & 0b1111000 == 0b0001000:
        block.ten_power, block.unit = low3, Unit.J
    elif code & 0b1111000 == 0b0010000:
        block.ten_power, block.unit = low3 - 6, Unit.CUBIC_METER
    elif code & 0b1111100 == 0b0100000:
        block.ten_power, block.unit = 0, _ON_TIME_UNITS[low2]
    elif code & 0b1111000 == 0b0101000:
        block.ten_power, block.unit = low3 - 3, Unit.W
    elif code & 0b1111000 == 0b0110000:
        block.ten_power, block.unit = low3, Unit.J_PER_HOUR
    elif code & 0b1111000 == 0b0111000:
        block.ten_power, block.unit = low3 - 6, Unit.CUBIC_METER_PER_HOUR
    elif code & 0b1111000 == 0b1000000:
        block.ten_power, block.unit = low3 - 7, Unit.CUBIC_METER_PER_MINUTE
    elif code & 0b1111000 == 0b1001000:
        block.ten_power, block.unit = low3 - 9, Unit.CUBIC_METER_PER_SECOND
    elif code & 0b1111100 in (0b1011000, 0b1011100):
        # Flow and return temperature
        block.ten_power, block.unit = low2 - 3, Unit.DEGREES_CELSIUS
    elif code & 0b1111100 == 0b1100000:
        block.ten_power, block.unit = low2 - 3, Unit.K
    elif code & 0b1111110 == 0b1101100:
        block.ten_power, block.unit = 0, Unit.DATE
    elif code == 0x19:
        block.ten_power, block.unit = -3, Unit.CUBIC_METER
    elif code == 0x78:
        block.ten_power, block.unit = 0, Unit.CUBIC_METER
    else:
        _LOG.warning(
            "Primary VIF with unit and multiplier %x not yet supported, VIF %x",
            code,
            vif,
        )


def _read_vif(cursor: _Cursor, block: DataBlock) -> None:
    vif = cursor.next_byte()
    code = vif & _VIF_BITS_UNIT_AND_MULTIPLIER
    if code <= 0b01111011:
        _apply_primary_vif(block, vif, code)
    elif code == 0b01111111:
        block.unit = Unit.MANUFACTURER_SPECIFIC
        block.is_manufacturer_specific = True
    else:
        _LOG.warning("Only primary VIF or manufacturer specific supported. VIF %x unsupported.", vif)

    # VIF extensions are skipped.
    extended = _is_extended(vif, _VIF_BIT_EXTENDED)
    while extended:
        extended = _is_extended(cursor.next_byte(), _VIF_BIT_EXTENDED)


def _read_block(cursor: _Cursor, index: int) -> DataBlock:
    block = DataBlock(index=index)
    length = _read_dif(cursor, block)
    _read_vif(cursor, block)
    block.binary_data = cursor.take(length)
    block.value = decode_value(block.binary_data, block.ten_power)
    if not block.binary_data:
        _LOG.info(
            "DataBlock idx=%d unit=%s ten=%d len=0 -> no data",
            block.index,
            block.unit.name,
            block.ten_power,
        )
    return block


def read_data_blocks_from_long_frame(long_frame: LongFrame) -> list[DataBlock]:
    """Decode every data block after the fixed data header of a long frame."""
    cursor = _Cursor(bytes(long_frame.user_data), FIXED_DATA_HEADER_SIZE)
    end = long_frame.user_data_length()
    blocks: list[DataBlock] = []
    while cursor.position < end:
        blocks.append(_read_block(cursor, len(blocks)))
    return blocks