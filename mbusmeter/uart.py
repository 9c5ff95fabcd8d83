"""Byte-level serial transport used by the M-Bus data link layer."""

from __future__ import annotations

import abc
from types import TracebackType

import serial


class UartInterface(abc.ABC):
    """A byte stream to and from the meter bus."""

    @abc.abstractmethod
    def read_byte(self) -> int | None:
        """Return the next received byte, or None if nothing is waiting."""

    @abc.abstractmethod
    def read_array(self, length: int) -> bytes:
        """Return up to ``length`` received bytes, fewer if fewer are waiting."""

    @abc.abstractmethod
    def write_array(self, data: bytes) -> None:
        """Send ``data`` on the bus."""

    @abc.abstractmethod
    def available(self) -> int:
        """Return the number of received bytes waiting to be read."""

    @abc.abstractmethod
    def flush(self) -> None:
        """Block until all written data has been transmitted."""


class SerialUartInterface(UartInterface):
    """UART interface backed by an open pyserial port."""

    def __init__(self, port: serial.SerialBase) -> None:
        self._port = port

    def read_byte(self) -> int | None:
        data = self._port.read(1)
        return data[0] if data else None

    def read_array(self, length: int) -> bytes:
        if length <= 0:
            return b""
        return bytes(self._port.read(length))

    def write_array(self, data: bytes) -> None:
        self._port.write(bytes(data))

    def available(self) -> int:
        return self._port.in_waiting

    def flush(self) -> None:
        self._port.flush()

    def close(self) -> None:
        """Close the underlying port."""
        self._port.close()

    def __enter__(self) -> SerialUartInterface:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def open_serial(url: str, baudrate: int = 2400) -> SerialUartInterface:
    """Open a port (device path or pyserial URL) with M-Bus framing, 8E1, non-blocking."""
    port = serial.serial_for_url(
        url,
        baudrate=baudrate,
        bytesize=serial.EIGHTBITS,
        parity=serial.PARITY_EVEN,
        stopbits=serial.STOPBITS_ONE,
        timeout=0,
    )
    return SerialUartInterface(port)