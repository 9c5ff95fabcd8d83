from unittest import mock

import pytest
import serial

from mbusmeter.cli import format_data_block, main
from mbusmeter.model import DataBlock, Function, Unit

LONG_FRAME = bytes(
    [
        0x68, 0x1B, 0x1B, 0x68, 0x08, 0xB2, 0x72,
        0x01, 0x23, 0x81, 0x82, 0x2D, 0x2C, 0x40, 0x04, 0xDE, 0x10, 0x00, 0x00,
        0x04, 0x06, 0x25, 0x0F, 0x00, 0x00,
        0x04, 0x14, 0x7A, 0xCF, 0x01, 0x00,
        0x7E, 0x16,
    ]
)


class _FakeMeterPort:
    def __init__(self, ack=0xE5):
        self.ack = ack
        self.rx = bytearray()
        self.written = []
        self.closed = False

    @property
    def in_waiting(self):
        return len(self.rx)

    def read(self, size=1):
        data = bytes(self.rx[:size])
        del self.rx[:size]
        return data

    def write(self, data):
        self.written.append(bytes(data))
        if data[1] == 0x40:
            self.rx.append(self.ack)
        elif data[1] & 0x0F == 0x0B:
            self.rx += LONG_FRAME
        return len(data)

    def flush(self):
        pass

    def close(self):
        self.closed = True


def test_format_data_block_uses_names():
    block = DataBlock(
        function=Function.MAXIMUM,
        unit=Unit.MANUFACTURER_SPECIFIC,
        index=1,
        binary_data=b"\xc4\x81",
        value=5.0,
    )
    line = format_data_block(block)
    assert line.startswith("[1] maximum")
    assert "manuf. specific" in line
    assert str(block.value) in line
    assert "2 bytes" in line


def test_main_prints_every_block(capsys):
    port = _FakeMeterPort()
    with mock.patch("serial.serial_for_url", return_value=port):
        code = main(["loop://", "--address", "0xB2"])
    assert code == 0
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 2
    assert lines[0].startswith("[0] instantaneous")
    assert " Wh " in lines[0]
    assert " m3 " in lines[1]
    assert port.closed is True
    assert port.written[0] == bytes([0x10, 0x40, 0xB2, 0xF2, 0x16])
    assert port.written[1] == bytes([0x10, 0x7B, 0xB2, 0x2D, 0x16])


def test_main_reports_unacknowledged_meter(capsys):
    port = _FakeMeterPort(ack=0x00)
    with mock.patch("serial.serial_for_url", return_value=port):
        code = main(["loop://", "-a", "178"])
    assert code == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "error" in captured.err
    assert port.closed is True


def test_main_reports_unopenable_port(capsys):
    with mock.patch("serial.serial_for_url", side_effect=serial.SerialException("busy")):
        code = main(["/dev/null-port"])
    assert code == 1
    assert "busy" in capsys.readouterr().err


@pytest.mark.parametrize("address", ["300", "-1", "meter"])
def test_main_rejects_bad_address(address):
    with pytest.raises(SystemExit) as excinfo:
        main(["loop://", "--address", address])
    assert excinfo.value.code == 2