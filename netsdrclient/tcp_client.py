"""NetSDR TCP control channel."""

import socket
import threading
from typing import Callable, Optional

from .common import CONNECT_TIMEOUT, DEFAULT_TCP_PORT, RECV_BUFFER_SIZE, NotConnectedError, log
from .models import DeviceEndpoint

class TcpControlChannel:
    """
    Owns the reliable, ordered connection to the receiver.
    Writes raw frames and hands every non-empty read to the message callback.
    Reads are not aligned to frame boundaries.
    """

    def __init__(self, host: str, port: int = DEFAULT_TCP_PORT,
                 connect_timeout: float = CONNECT_TIMEOUT):
        self.endpoint        = DeviceEndpoint(host, port)
        self.connect_timeout = connect_timeout
        self._sock           = None
        self._lock           = threading.Lock()
        self._message_cb     = None
        self._running        = False
        self._recv_thread    = None

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def set_message_callback(self, cb: Optional[Callable[[bytes], None]]):
        """Register the callback invoked with the bytes of each inbound read."""
        self._message_cb = cb

    def connect(self):
        with self._lock:
            if self._sock is not None:
                log.debug(f"Already connected to {self.endpoint.host}:{self.endpoint.port}")
                return
            log.info(f"Connecting to {self.endpoint.host}:{self.endpoint.port}")
            sock = socket.create_connection(
                (self.endpoint.host, self.endpoint.port), timeout=self.connect_timeout
            )
            sock.settimeout(None)
            self._sock = sock
            self._running = True
            self._recv_thread = threading.Thread(
                target=self._recv_loop, args=(sock,), daemon=True
            )
            self._recv_thread.start()
        log.info("TCP connected")

    def disconnect(self):
        with self._lock:
            sock, self._sock = self._sock, None
            thread, self._recv_thread = self._recv_thread, None
            self._running = False

        if sock is None:
            log.debug("Disconnect requested with no active connection")
            return

        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            log.debug(f"TCP shutdown: {e}")
        try:
            sock.close()
        except OSError as e:
            log.error(f"Error closing TCP socket: {e}")

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2.0)
        log.info("TCP disconnected")

    def send_message(self, data: bytes):
        """Write `data` to the connection. Does not wait for a reply."""
        sock = self._sock
        if sock is None:
            raise NotConnectedError("Control channel is not connected")
        log.debug(f"TX: {bytes(data).hex(' ')}")
        sock.sendall(data)

    def _recv_loop(self, sock: socket.socket):
        # The connected flag is left alone here: only disconnect() clears it.
        while self._running and self._sock is sock:
            try:
                chunk = sock.recv(RECV_BUFFER_SIZE)
            except OSError as e:
                if self._running and self._sock is sock:
                    log.error(f"TCP recv error: {e}")
                break
            if not chunk:
                log.warning("TCP connection closed by receiver")
                break
            log.debug(f"RX: {chunk.hex(' ')}")
            cb = self._message_cb
            if cb is None:
                continue
            try:
                cb(chunk)
            except Exception as e:
                log.error(f"TCP message callback failed: {e}", exc_info=True)
        log.debug("TCP receive loop stopped")
