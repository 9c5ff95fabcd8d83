"""M-Bus data link layer: short frame requests and long frame responses."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from .model import LongFrame, MbusError
from .uart import UartInterface

_LOG = logging.getLogger(__name__)

_START_BYTE_SINGLE_CHARACTER = 0xE5
_START_BYTE_SHORT_FRAME = 0x10
_START_BYTE_CONTROL_AND_LONG_FRAME = 0x68
_STOP_BYTE = 0x16
_C_FIELD_BIT_DIRECTION = 6
_C_FIELD_BIT_FCB = 5
_C_FIELD_BIT_FCV = 4
_C_FIELD_FUNCTION_SND_NKE = 0x0
_C_FIELD_FUNCTION_REQ_UD2 = 0xB
_MAX_FLUSH_CHUNK = 255


@dataclass(frozen=True)
class Timing:
    """Delays and timeouts, in seconds, used while talking to a meter."""

    write_settle: float = 0.001
    send_time: float = 0.025
    response_delay: float = 0.138
    response_window: float = 0.5
    byte_timeout: float = 0.150
    poll_interval: float = 0.001
    attempts: int = 3
    sleep: Callable[[float], None] = time.sleep
    clock: Callable[[], float] = time.monotonic


def calculate_checksum(data: Iterable[int]) -> int:
    """Return the 8-bit arithmetic sum of the bytes."""
    return sum(data) & 0xFF


def long_frame_checksum(long_frame: LongFrame) -> int:
    """Return the checksum over C, A, CI and the user data of a long frame."""
    user_data = long_frame.user_data[: long_frame.user_data_length()]
    return calculate_checksum((*user_data, long_frame.c, long_frame.a, long_frame.ci))


class DataLinkLayer:
    """Sends requests to a meter and receives its frames over a UART."""

    def __init__(self, uart: UartInterface, timing: Timing | None = None) -> None:
        self.uart = uart
        self.timing = timing if timing is not None else Timing()
        self.next_req_ud2_fcb = True
        self.meter_is_initialized = False

    def req_ud2(self, address: int) -> LongFrame:
        """Request class 2 user data; return the meter's long frame or raise MbusError."""
        if not self.meter_is_initialized and not self._initialize_meter(address):
            raise MbusError("could not initialize meter")

        fcb = 1 if self.next_req_ud2_fcb else 0
        c = (
            (1 << _C_FIELD_BIT_DIRECTION)
            | (fcb << _C_FIELD_BIT_FCB)
            | (1 << _C_FIELD_BIT_FCV)
            | _C_FIELD_FUNCTION_REQ_UD2
        )
        if not self.try_send_short_frame(c, address):
            raise MbusError("no response to REQ_UD2")
        frame = self._parse_long_frame_response()
        if frame is None:
            raise MbusError("invalid long frame in response to REQ_UD2")
        if frame.a != address:
            raise MbusError(f"response from address {frame.a:#04x}, expected {address:#04x}")
        self.next_req_ud2_fcb = not self.next_req_ud2_fcb
        return frame

    def snd_nke(self, address: int) -> None:
        """Send SND_NKE to reset the meter link; raise MbusError if it is not acknowledged."""
        c = (1 << _C_FIELD_BIT_DIRECTION) | _C_FIELD_FUNCTION_SND_NKE
        if not self.try_send_short_frame(c, address):
            _LOG.warning("No response to SND_NKE")
            raise MbusError("no response to SND_NKE")
        received = self.uart.read_byte()
        if received != _START_BYTE_SINGLE_CHARACTER:
            _LOG.warning("Wrong answer to SND_NKE: %s", received)
            raise MbusError(f"wrong answer to SND_NKE: {received}")
        self.next_req_ud2_fcb = True

    def try_send_short_frame(self, c: int, a: int) -> bool:
        """Send a short frame, retrying while no answer arrives; return whether data arrived."""
        self._flush_rx_buffer()
        for attempt in range(self.timing.attempts):
            if attempt > 0:
                _LOG.debug("Retry transmit short frame")
            self._send_short_frame(c, a)
            self.timing.sleep(self.timing.send_time)
            if self._wait_for_incoming_data():
                return True
        return False

    def _initialize_meter(self, address: int) -> bool:
        try:
            self.snd_nke(address)
        except MbusError:
            self.meter_is_initialized = False
            return False
        self.meter_is_initialized = True
        return True

    def _send_short_frame(self, c: int, a: int) -> None:
        checksum = calculate_checksum((c, a))
        self.uart.write_array(bytes((_START_BYTE_SHORT_FRAME, c, a, checksum, _STOP_BYTE)))
        self.timing.sleep(self.timing.write_settle)
        self.uart.flush()
        self.timing.sleep(self.timing.write_settle)

    def _wait_for_incoming_data(self) -> bool:
        timing = self.timing
        timing.sleep(timing.response_delay)
        deadline = timing.clock() + timing.response_window
        while True:
            if self.uart.available() > 0:
                return True
            if timing.clock() >= deadline:
                _LOG.warning("No data received")
                return False
            timing.sleep(timing.poll_interval)

    def _flush_rx_buffer(self) -> None:
        while (waiting := self.uart.available()) > 0:
            if not self.uart.read_array(min(waiting, _MAX_FLUSH_CHUNK)):
                break

    def _read_next_byte(self) -> int | None:
        timing = self.timing
        start = timing.clock()
        while self.uart.available() == 0:
            timing.sleep(timing.poll_interval)
            if timing.clock() - start > timing.byte_timeout:
                _LOG.warning("No data available after timeout")
                return None
        return self.uart.read_byte()

    def _parse_long_frame_response(self) -> LongFrame | None:
        frame = self._read_long_frame()
        if frame is None:
            self._flush_rx_buffer()
            return None
        # Flip the FCB bit to use for the next REQ_UD2 message.
        self.next_req_ud2_fcb = not self.next_req_ud2_fcb
        return frame

    def _read_long_frame(self) -> LongFrame | None:
        read = self._read_next_byte
        if read() != _START_BYTE_CONTROL_AND_LONG_FRAME:
            return None
        first_l, second_l = read(), read()
        if first_l is None or second_l is None or first_l != second_l:
            return None
        if read() != _START_BYTE_CONTROL_AND_LONG_FRAME:
            return None
        c = read()
        if c is None or (c & 0x0F) != 0x08 or (c & 0xC0) != 0x00:
            return None
        a = read()
        if a is None:
            return None
        ci = read()
        if ci is None:
            return None

        frame = LongFrame(l=first_l, c=c, a=a, ci=ci)
        user_data = bytearray()
        for _ in range(frame.user_data_length()):
            byte = read()
            if byte is None:
                return None
            user_data.append(byte)
        frame.user_data = bytes(user_data)

        check_sum = read()
        if check_sum is None or check_sum != long_frame_checksum(frame):
            return None
        frame.check_sum = check_sum
        if read() != _STOP_BYTE:
            return None
        return frame