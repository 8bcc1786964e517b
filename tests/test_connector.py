import queue

import pytest

from fleetcmd.connector import AuthMethod, Connector, FleetAPIConnector


class _Loopback(Connector):
    def __init__(self):
        self._inbox = queue.Queue()
        self.closed = False

    @property
    def vin(self):
        return "TESTVIN0000000000"

    def receive(self):
        return self._inbox

    def send(self, buffer):
        self._inbox.put(bytes(buffer))

    def close(self):
        self.closed = True

    def preferred_auth_method(self):
        return AuthMethod.GCM

    def retry_interval(self):
        return 1.0

    def allowed_latency(self):
        return 4.0


def test_connector_cannot_be_instantiated():
    with pytest.raises(TypeError):
        Connector()


def test_fleet_connector_cannot_be_instantiated():
    with pytest.raises(TypeError):
        FleetAPIConnector()


@pytest.mark.parametrize("value, name", [(0, "NONE"), (1, "GCM"), (2, "HMAC")])
def test_auth_method_values(value, name):
    assert AuthMethod(value).name == name


def test_auth_method_rejects_unknown_value():
    with pytest.raises(ValueError):
        AuthMethod(3)


def test_enter_returns_connector_and_exit_closes():
    conn = _Loopback()
    entered = Connector.__enter__(conn)
    assert entered is conn
    entered.send(b"ping")
    assert entered.receive().get_nowait() == b"ping"
    assert conn.closed is False
    Connector.__exit__(conn, None, None, None)
    assert conn.closed is True


def test_exit_closes_and_does_not_swallow_error():
    conn = _Loopback()
    Connector.__enter__(conn)
    error = RuntimeError("fail")
    suppressed = Connector.__exit__(conn, RuntimeError, error, None)
    assert not suppressed
    assert conn.closed is True