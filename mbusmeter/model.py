"""Data types shared by the M-Bus link and application layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum

FIXED_DATA_HEADER_SIZE = 12


class MbusError(Exception):
    """Raised when M-Bus data cannot be read or decoded."""


class Function(IntEnum):
    """Function field of a data information field (DIF)."""

    INSTANTANEOUS = 0
    MAXIMUM = 1
    MINIMUM = 2
    DURING_ERROR_STATE = 3


class Unit(Enum):
    """Physical unit of a data block value."""

    WH = 0
    J = 1
    CUBIC_METER = 2
    KG = 3
    SECONDS = 4
    MINUTES = 5
    HOURS = 6
    DAYS = 7
    W = 8
    J_PER_HOUR = 9
    CUBIC_METER_PER_HOUR = 10
    CUBIC_METER_PER_MINUTE = 11
    CUBIC_METER_PER_SECOND = 12
    KG_PER_HOUR = 13
    DEGREES_CELSIUS = 14
    K = 15
    BAR = 16
    DATE = 17
    TIME_AND_DATE = 18
    MANUFACTURER_SPECIFIC = 19
    DIMENSIONLESS = 20


class CiMeterToMasterCode(IntEnum):
    """Response type carried in the low two bits of the CI field."""

    GENERAL_APPLICATION_ERRORS = 0
    ALARM_STATUS = 1
    VARIABLE_DATA_RESPOND = 2
    FIXED_DATA_RESPOND = 3


@dataclass
class DataBlock:
    """One decoded variable data block of a meter response."""

    function: Function = Function.INSTANTANEOUS
    storage_number: int = 0
    tariff: int = 0
    binary_data: bytes = b""
    index: int = 0
    ten_power: int = 0
    unit: Unit = Unit.WH
    is_manufacturer_specific: bool = False
    value: float = 0.0

    @property
    def data_length(self) -> int:
        return len(self.binary_data)


@dataclass
class LongFrame:
    """A long frame as received from the meter."""

    l: int  # noqa: E741
    c: int
    a: int
    ci: int
    user_data: bytes = field(default=b"")
    check_sum: int = 0

    def user_data_length(self) -> int:
        """Number of user data bytes announced by the L field (excludes C, A and CI)."""
        return (self.l - 3) % 256