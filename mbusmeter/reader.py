"""Reading variable data from a meter over the M-Bus."""

from __future__ import annotations

import logging

from .data_block_reader import read_data_blocks_from_long_frame
from .data_link_layer import DataLinkLayer, Timing
from .model import CiMeterToMasterCode, DataBlock, MbusError
from .uart import UartInterface

_LOG = logging.getLogger(__name__)


class MbusReader:
    """Requests user data from a meter and decodes its data blocks."""

    def __init__(self, uart: UartInterface, timing: Timing | None = None) -> None:
        self.data_link_layer = DataLinkLayer(uart, timing)

    def read_meter_data(self, address: int) -> list[DataBlock]:
        """Return the data blocks of the meter at ``address``; raise MbusError on failure."""
        frame = self.data_link_layer.req_ud2(address)

        if frame.ci & 0xF0 != 0x70:
            _LOG.warning("CI not as expected: %#04x", frame.ci)

        response = CiMeterToMasterCode(frame.ci & 0x03)
        if response is CiMeterToMasterCode.VARIABLE_DATA_RESPOND:
            _LOG.debug("Variable data response")
            return read_data_blocks_from_long_frame(frame)
        if response is CiMeterToMasterCode.GENERAL_APPLICATION_ERRORS:
            raise MbusError("meter reported a general application error")
        if response is CiMeterToMasterCode.ALARM_STATUS:
            raise MbusError("meter reported an alarm status")
        raise MbusError("meter sent a fixed data response")