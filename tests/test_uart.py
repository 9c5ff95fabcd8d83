import pytest
import serial

from mbusmeter.uart import SerialUartInterface, UartInterface, open_serial


@pytest.fixture
def uart():
    interface = open_serial("loop://", 2400)
    yield interface
    interface.close()


def test_available_counts_written_bytes(uart):
    payload = bytes([0x10, 0x40, 0xB2, 0xF2, 0x16])
    uart.write_array(payload)
    uart.flush()
    assert uart.available() == len(payload)


def test_read_byte_then_read_array_round_trip(uart):
    payload = bytes([0x68, 0x06, 0x06, 0x68, 0x08])
    uart.write_array(payload)
    assert uart.read_byte() == payload[0]
    assert uart.read_array(len(payload) - 1) == payload[1:]
    assert uart.available() == 0


def test_read_byte_on_empty_returns_none(uart):
    assert uart.read_byte() is None


def test_read_array_returns_only_what_is_waiting(uart):
    payload = bytes([0xE5])
    uart.write_array(payload)
    assert uart.read_array(10) == payload


def test_read_array_zero_length_is_empty(uart):
    uart.write_array(bytes([0xE5]))
    assert uart.read_array(0) == b""
    assert uart.available() == 1


def test_closed_port_refuses_writes():
    interface = open_serial("loop://", 2400)
    interface.close()
    with pytest.raises(serial.SerialException):
        interface.write_array(bytes([0x10]))


def test_context_manager_closes_port():
    with open_serial("loop://", 2400) as interface:
        interface.write_array(bytes([0x16]))
        assert interface.read_byte() == 0x16
    with pytest.raises(serial.SerialException):
        interface.write_array(bytes([0x16]))


def test_wraps_existing_port():
    port = serial.serial_for_url("loop://", timeout=0)
    interface = SerialUartInterface(port)
    interface.write_array(b"\x01\x02")
    assert interface.read_array(2) == b"\x01\x02"
    interface.close()


def test_serial_interface_fulfils_abstract_interface():
    class Partial(UartInterface):
        def read_byte(self):
            return None

    with pytest.raises(TypeError):
        Partial()

    with open_serial("loop://", 2400) as interface:
        assert isinstance(interface, UartInterface)
        interface.write_array(bytes([0x05]))
        assert interface.available() == 1
        assert interface.read_byte() == 0x05