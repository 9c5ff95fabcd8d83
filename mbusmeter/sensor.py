"""Sensors that publish the value of one data block of a meter response."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable

from .model import DataBlock

_LOG = logging.getLogger(__name__)


class MbusSensor:
    """Publishes the value of the data block with a given index."""

    def __init__(
        self,
        index: int,
        publish: Callable[[float], object],
        name: str = "",
    ) -> None:
        self.index = index
        self.publish = publish
        self.name = name

    def transform_and_publish(self, data_block: DataBlock | None) -> float | None:
        """Publish the block's value; return it, or None when nothing could be published."""
        if data_block is None:
            _LOG.warning("transform_and_publish: data block is missing")
            return None

        value = data_block.value
        if not math.isfinite(value):
            if not data_block.binary_data:
                _LOG.warning("no valid data to publish for index %d", data_block.index)
                return None
            raw = int.from_bytes(data_block.binary_data[:4], "little")
            value = raw * 10.0**data_block.ten_power
            _LOG.debug(
                "Sensor '%s' fallback raw value: %d, publish value: %f", self.name, raw, value
            )

        self.publish(value)
        _LOG.info(
            "MbusSensor publish index=%d name='%s' unit=%s value=%.6f (ten=%d)",
            data_block.index,
            self.name,
            data_block.unit.name,
            value,
            data_block.ten_power,
        )
        return value

    def is_right_sensor_for_data_block(self, data_block: DataBlock) -> bool:
        """Return whether this sensor publishes the given block."""
        return self.index == data_block.index