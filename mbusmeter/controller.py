"""Periodic reading of a meter and publishing of its values to sensors."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Protocol

from .model import DataBlock, Function, MbusError, Unit
from .sensor import MbusSensor

_LOG = logging.getLogger(__name__)

UNIT_NAMES: dict[Unit, str] = {
    Unit.WH: "Wh",
    Unit.J: "J",
    Unit.CUBIC_METER: "m3",
    Unit.KG: "kg",
    Unit.SECONDS: "s",
    Unit.MINUTES: "min",
    Unit.HOURS: "h",
    Unit.DAYS: "days",
    Unit.W: "W",
    Unit.J_PER_HOUR: "J/h",
    Unit.CUBIC_METER_PER_HOUR: "m3/h",
    Unit.CUBIC_METER_PER_MINUTE: "m3/min",
    Unit.CUBIC_METER_PER_SECOND: "m3/s",
    Unit.KG_PER_HOUR: "kg/h",
    Unit.DEGREES_CELSIUS: "deg c",
    Unit.K: "K",
    Unit.BAR: "bar",
    Unit.DATE: "date",
    Unit.TIME_AND_DATE: "time and date",
    Unit.MANUFACTURER_SPECIFIC: "manuf. specific",
    Unit.DIMENSIONLESS: "-",
}

FUNCTION_NAMES: dict[Function, str] = {
    Function.INSTANTANEOUS: "instantaneous",
    Function.MAXIMUM: "maximum",
    Function.MINIMUM: "minimum",
    Function.DURING_ERROR_STATE: "during error state",
}

_IDLE_DELAY = 0.1


class _Reader(Protocol):
    def read_meter_data(self, address: int) -> list[DataBlock]: ...


class MbusController:
    """Reads a meter on request and hands its data blocks to the matching sensors."""

    def __init__(self, reader: _Reader, address: int = 0x01) -> None:
        self.reader = reader
        self.address = address
        self.sensors: list[MbusSensor] = []
        self.mbus_enabled = True
        self.have_dumped_data_blocks = False
        self.failed = False
        self._update_requested = threading.Event()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def create_sensor(
        self, index: int, publish: Callable[[float], object], name: str = ""
    ) -> MbusSensor:
        """Create a sensor for the data block with ``index`` and register it."""
        sensor = MbusSensor(index, publish, name)
        self.sensors.append(sensor)
        return sensor

    def enable_mbus(self) -> None:
        _LOG.info("Enabling Mbus")
        self.mbus_enabled = True

    def disable_mbus(self) -> None:
        _LOG.info("Disabling Mbus")
        self.mbus_enabled = False
        self.have_dumped_data_blocks = False

    def read_mbus(self) -> None:
        """Request a reading on the next poll."""
        _LOG.info("Reading mbus")
        self._update_requested.set()

    @property
    def update_requested(self) -> bool:
        return self._update_requested.is_set()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _should_read(self) -> bool:
        requested = self._update_requested.is_set()
        if requested and not self.mbus_enabled:
            _LOG.debug("Read Mbus requested but Mbus disabled")
        return requested and self.mbus_enabled

    def poll_once(self) -> list[DataBlock] | None:
        """Serve a pending read request; return the blocks read, or None if none were."""
        if not self._should_read():
            return None
        try:
            blocks = self.reader.read_meter_data(self.address)
        except MbusError as exc:
            _LOG.warning("Did not successfully read meter data: %s", exc)
            return None
        finally:
            self._update_requested.clear()

        _LOG.info("Successfully read meter data")
        if not self.have_dumped_data_blocks:
            self.dump_data_blocks(blocks)
        for sensor in self.sensors:
            block = next((b for b in blocks if sensor.is_right_sensor_for_data_block(b)), None)
            if block is not None:
                _LOG.debug("Found matching data block")
                sensor.transform_and_publish(block)
        return blocks

    def _run(self) -> None:
        while not self._stop.is_set():
            if self._should_read():
                self.poll_once()
            else:
                self._stop.wait(_IDLE_DELAY)

    def start(self) -> None:
        """Start serving read requests in a background thread."""
        if self.running:
            raise RuntimeError("mbus task is already running")
        self._stop.clear()
        thread = threading.Thread(target=self._run, name="mbus_task", daemon=True)
        try:
            thread.start()
        except RuntimeError:
            _LOG.error("Could not start mbus_task")
            self.failed = True
            raise
        self._thread = thread

    def stop(self) -> None:
        """Stop the background thread and wait for it to finish."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def dump_data_blocks(self, data_blocks: list[DataBlock]) -> list[str]:
        """Log a description of each block and return the logged lines."""
        lines: list[str] = []
        for block in data_blocks:
            lines += [
                f"-- Index: {block.index} --",
                f"Function: {FUNCTION_NAMES[block.function]}",
                f"Storage number: {block.storage_number}",
                f"Unit: {UNIT_NAMES[block.unit]}",
                f"Ten power: {block.ten_power}",
                f"Data length: {block.data_length}",
                "-------------------------------",
            ]
        for line in lines:
            _LOG.info("%s", line)
        self.have_dumped_data_blocks = True
        return lines

    def dump_config(self) -> list[str]:
        """Log the controller configuration and return the logged lines."""
        lines = ["MbusController config:"]
        if self.failed:
            lines.append("MbusController not able to function properly")
        else:
            for sensor in self.sensors:
                lines.append(f"  MbusSensor '{sensor.name}'")
                lines.append(f"    index: {sensor.index}")
        for line in lines:
            _LOG.info("%s", line)
        return lines