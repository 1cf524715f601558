import socket
import threading
import time

import numpy as np
import pytest

from netsdrclient import NetSdrClient, SampleSink
from netsdrclient.protocol import MSG_DATA_ITEM0, data_item_message


def pick_udp_listen_port() -> int:
    """Return a free ephemeral local UDP port."""
    probe = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        probe.bind(("", 0))
        return int(probe.getsockname()[1])
    finally:
        probe.close()


def wait_until(predicate, timeout: float = 2.0, interval: float = 0.01) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def iq_datagram(samples, sequence: int = 1) -> bytes:
    body = np.asarray(samples, dtype="<i2").tobytes()
    return data_item_message(MSG_DATA_ITEM0, body, sequence=sequence)


class FakeTcpChannel:
    """Control channel double. With auto_reply, every send is echoed back as its reply."""

    def __init__(self, auto_reply: bool = True):
        self.auto_reply = auto_reply
        self.sent: list[bytes] = []
        self.connect_calls = 0
        self.disconnect_calls = 0
        self._connected = False
        self._cb = None

    @property
    def connected(self) -> bool:
        return self._connected

    def set_message_callback(self, cb):
        self._cb = cb

    def connect(self):
        self.connect_calls += 1
        self._connected = True

    def disconnect(self):
        self.disconnect_calls += 1
        self._connected = False

    def send_message(self, data: bytes):
        self.sent.append(bytes(data))
        if self.auto_reply:
            self.reply(data)

    def reply(self, data: bytes):
        if self._cb:
            self._cb(bytes(data))


class FakeUdpChannel:
    def __init__(self):
        self.start_calls = 0
        self.stop_calls = 0
        self.close_calls = 0
        self.listening = False
        self._cb = None

    def set_message_callback(self, cb):
        self._cb = cb

    def start_listening(self):
        self.start_calls += 1
        self.listening = True

    def stop_listening(self):
        self.stop_calls += 1
        self.listening = False

    def close(self):
        self.close_calls += 1
        self.listening = False

    def deliver(self, data: bytes):
        self._cb(bytes(data))


class LoopbackServer:
    """Single-connection TCP server on 127.0.0.1 for control channel tests."""

    def __init__(self):
        self._listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._listener.bind(("127.0.0.1", 0))
        self._listener.listen(4)
        self._listener.settimeout(5.0)
        self.port = self._listener.getsockname()[1]
        self.connections: list[socket.socket] = []

    def accept(self) -> socket.socket:
        conn, _ = self._listener.accept()
        conn.settimeout(5.0)
        self.connections.append(conn)
        return conn

    def accept_in_background(self) -> threading.Thread:
        thread = threading.Thread(target=self.accept, daemon=True)
        thread.start()
        return thread

    def close(self):
        for conn in self.connections:
            conn.close()
        self._listener.close()


@pytest.fixture
def fake_tcp():
    return FakeTcpChannel()


@pytest.fixture
def fake_udp():
    return FakeUdpChannel()


@pytest.fixture
def samples_path(tmp_path):
    return tmp_path / "samples.bin"


@pytest.fixture
def client(fake_tcp, fake_udp, samples_path):
    c = NetSdrClient(fake_tcp, fake_udp, SampleSink(samples_path), ack_timeout=1.0)
    yield c
    c.sink.close()


@pytest.fixture
def loopback_server():
    server = LoopbackServer()
    yield server
    server.close()
