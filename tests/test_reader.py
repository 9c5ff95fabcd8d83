from collections import deque

import pytest

from mbusmeter.data_link_layer import Timing
from mbusmeter.model import MbusError, Unit
from mbusmeter.reader import MbusReader
from mbusmeter.uart import UartInterface

FAST = Timing(
    write_settle=0,
    send_time=0,
    response_delay=0,
    response_window=0,
    byte_timeout=0,
    poll_interval=0,
    sleep=lambda seconds: None,
)

METER_RESPONSE = bytes(
    [
        0x68, 0x1B, 0x1B, 0x68, 0x08, 0xB2, 0x72,
        0x78, 0x56, 0x34, 0x12, 0x2D, 0x2C, 0x40, 0x04, 0xDE, 0x10, 0x00, 0x00,
        0x04, 0x06, 0x25, 0x0F, 0x00, 0x00,
        0x04, 0x14, 0x7A, 0xCF, 0x01, 0x00,
        0x6B, 0x16,
    ]
)


class FakeUart(UartInterface):
    """Answers with prepared bytes once the n-th write has happened."""

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.queue = deque()
        self.written = []

    def read_byte(self):
        return self.queue.popleft() if self.queue else None

    def read_array(self, length):
        count = min(length, len(self.queue))
        return bytes(self.queue.popleft() for _ in range(count))

    def write_array(self, data):
        self.written.append(bytes(data))
        self.queue.extend(self.responses.get(len(self.written), b""))

    def available(self):
        return len(self.queue)

    def flush(self):
        pass


def test_read_meter_data():
    uart = FakeUart({1: b"\xE5", 2: METER_RESPONSE})
    reader = MbusReader(uart, FAST)

    blocks = reader.read_meter_data(0xB2)

    assert len(blocks) == 2
    first, second = blocks
    assert first.index == 0
    assert first.data_length == 4
    assert first.binary_data == bytes([0x25, 0x0F, 0x00, 0x00])
    assert first.unit is Unit.WH
    assert first.ten_power == 3
    assert first.value == pytest.approx(3877000.0)

    assert second.index == 1
    assert second.data_length == 4
    assert second.binary_data == bytes([0x7A, 0xCF, 0x01, 0x00])
    assert second.unit is Unit.CUBIC_METER
    assert second.ten_power == -2
    assert second.value == pytest.approx(1186.5)


def test_read_meter_data_sends_snd_nke_then_req_ud2():
    uart = FakeUart({1: b"\xE5", 2: METER_RESPONSE})
    MbusReader(uart, FAST).read_meter_data(0xB2)
    assert uart.written == [
        bytes([0x10, 0x40, 0xB2, 0xF2, 0x16]),
        bytes([0x10, 0x7B, 0xB2, 0x2D, 0x16]),
    ]


def test_read_meter_data_empty_variable_response():
    frame = bytes([0x68, 0x03, 0x03, 0x68, 0x08, 0xB2, 0x72, 0x2C, 0x16])
    uart = FakeUart({1: b"\xE5", 2: frame})
    assert MbusReader(uart, FAST).read_meter_data(0xB2) == []


@pytest.mark.parametrize(
    "frame",
    [
        bytes([0x68, 0x03, 0x03, 0x68, 0x08, 0xB2, 0x70, 0x2A, 0x16]),
        bytes([0x68, 0x03, 0x03, 0x68, 0x08, 0xB2, 0x71, 0x2B, 0x16]),
        bytes([0x68, 0x03, 0x03, 0x68, 0x08, 0xB2, 0x73, 0x2D, 0x16]),
    ],
)
def test_read_meter_data_rejects_non_variable_responses(frame):
    uart = FakeUart({1: b"\xE5", 2: frame})
    with pytest.raises(MbusError):
        MbusReader(uart, FAST).read_meter_data(0xB2)


def test_read_meter_data_without_meter():
    uart = FakeUart()
    with pytest.raises(MbusError):
        MbusReader(uart, FAST).read_meter_data(0xB2)
    assert len(uart.written) == 3


def test_read_meter_data_wrong_address():
    uart = FakeUart({1: b"\xE5", 2: METER_RESPONSE})
    with pytest.raises(MbusError):
        MbusReader(uart, FAST).read_meter_data(0x01)