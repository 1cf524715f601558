"""UDP streaming channel for NetSDR IQ data items."""

import socket
import threading
from typing import Callable, Optional

from .common import (
    DEFAULT_UDP_PORT,
    UDP_DATAGRAM_MAX,
    UDP_POLL_INTERVAL,
    UDP_RCVBUF,
    DisposedError,
    log,
)

class UdpStreamChannel:
    """
    Connectionless receive endpoint for the IQ stream.
    Hands each datagram's full payload to the message callback from a
    background thread. Identity is the bound local address and port.

    The socket and its stop event are created and torn down together under
    one lock, so start/stop/close may be called from different threads.
    """

    def __init__(self, port: int = DEFAULT_UDP_PORT, address: str = "0.0.0.0"):
        self._lock        = threading.Lock()
        self.address      = address
        self.port         = port
        self._sock        = None
        self._stop_event  = None
        self._thread      = None
        self._message_cb  = None
        self.packet_count = 0
        self._disposed    = False

    @property
    def local_address(self) -> tuple[str, int]:
        return (self.address, self.port)

    @property
    def listening(self) -> bool:
        thread = self._thread
        return self._sock is not None and thread is not None and thread.is_alive()

    @property
    def disposed(self) -> bool:
        return self._disposed

    def set_message_callback(self, cb: Optional[Callable[[bytes], None]]):
        """Register the callback invoked with each received datagram."""
        self._message_cb = cb

    def start_listening(self):
        """
        Bind the endpoint and start the receive thread. Returns once the
        socket is bound. A loop that is already running is replaced.
        Raises DisposedError after close().
        """
        self._raise_if_disposed()
        with self._lock:
            self._raise_if_disposed()
            self._teardown_locked()

            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            try:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, UDP_RCVBUF)
                sock.bind(self.local_address)
            except OSError:
                sock.close()
                raise
            sock.settimeout(UDP_POLL_INTERVAL)

            stop_event = threading.Event()
            self._sock = sock
            self._stop_event = stop_event
            self._thread = threading.Thread(
                target=self._recv_loop, args=(sock, stop_event), daemon=True
            )
            self._thread.start()
        log.info(f"Listening for UDP data on {self.address}:{self.port}")

    def stop_listening(self):
        """Stop the receive loop and release the socket. Never raises."""
        try:
            self._stop_internal()
        except Exception as e:
            log.error(f"Error in stop_listening: {e}")

    def close(self):
        """Stop listening and release every owned resource. Safe to repeat."""
        if self._disposed:
            return
        with self._lock:
            if self._disposed:
                return
            # set first so a start_listening() waiting on the lock fails
            self._disposed = True
            try:
                self._teardown_locked()
            except Exception as e:
                log.error(f"Error while stopping: {e}")
            self._sock = None
            self._stop_event = None
            self._thread = None
        log.debug(f"UDP channel {self.address}:{self.port} released")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def __del__(self):
        # __init__ may have failed before _disposed was assigned
        if getattr(self, "_disposed", True):
            return
        try:
            self.close()
        except Exception as e:
            log.debug(f"UDP channel release on collection failed: {e}")

    def __eq__(self, other):
        if self is other:
            return True
        if not isinstance(other, UdpStreamChannel):
            return NotImplemented
        return self.local_address == other.local_address

    def __hash__(self):
        return hash((UdpStreamChannel.__name__, self.address, self.port))

    def __repr__(self):
        state = "listening" if self.listening else "stopped"
        return f"UdpStreamChannel({self.address}:{self.port}, {state})"

    def _raise_if_disposed(self):
        if self._disposed:
            raise DisposedError(f"UDP channel {self.address}:{self.port} has been closed")

    def _stop_internal(self):
        with self._lock:
            thread = self._teardown_locked()
        if thread is not None:
            log.info("Stopped listening for UDP data")

    def _teardown_locked(self) -> Optional[threading.Thread]:
        """Signal the loop, close the socket, wait for the thread. Caller holds _lock."""
        stop_event, self._stop_event = self._stop_event, None
        sock, self._sock = self._sock, None
        thread, self._thread = self._thread, None

        if stop_event is not None:
            stop_event.set()
        if sock is not None:
            try:
                sock.close()
            except Exception as e:
                log.error(f"Error closing UDP socket: {e}")
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=UDP_POLL_INTERVAL * 4)
        return thread

    def _recv_loop(self, sock: socket.socket, stop_event: threading.Event):
        while not stop_event.is_set():
            try:
                data, addr = sock.recvfrom(UDP_DATAGRAM_MAX)
            except socket.timeout:
                continue
            except OSError as e:
                if stop_event.is_set():
                    log.debug("UDP socket closed during receive")
                else:
                    log.error(f"UDP recv error: {e}")
                break

            self.packet_count += 1
            log.debug(f"Received {len(data)} bytes from {addr[0]}:{addr[1]}")
            cb = self._message_cb
            if cb is None:
                continue
            try:
                cb(data)
            except Exception as e:
                log.error(f"UDP message callback failed: {e}", exc_info=True)
        log.debug("UDP receive loop stopped")
