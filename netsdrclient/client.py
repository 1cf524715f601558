"""High-level NetSDR client orchestration."""

import threading
from collections import deque
from typing import Optional

from .common import (
    ACK_TIMEOUT,
    DEFAULT_TCP_PORT,
    DEFAULT_UDP_PORT,
    SAMPLES_FILE,
    AckTimeoutError,
    NotConnectedError,
    ProtocolError,
    log,
)
from .protocol import (
    ad_modes_message,
    describe,
    frequency_message,
    get_samples,
    receiver_state_message,
    rf_filter_message,
    sample_rate_message,
    translate_message,
)
from .sink import SampleSink
from .tcp_client import TcpControlChannel
from .udp_client import UdpStreamChannel

class _PendingResponse:
    """One control item awaiting the next inbound read."""

    __slots__ = ("event", "payload", "cancelled")

    def __init__(self):
        self.event     = threading.Event()
        self.payload   = None
        self.cancelled = False

class NetSdrClient:
    """
    Drives a NetSDR receiver: handshake and commands over the TCP control
    channel, IQ data items over the UDP streaming channel into a SampleSink.

    The protocol carries no request id, so the next inbound read is taken as
    the reply to the oldest outstanding command. Commands are serialized so
    at most one is ever outstanding.
    """

    def __init__(self, tcp: TcpControlChannel, udp: UdpStreamChannel,
                 sink: Optional[SampleSink] = None,
                 ack_timeout: float = ACK_TIMEOUT):
        self._tcp          = tcp
        self._udp          = udp
        self.sink          = sink if sink is not None else SampleSink()
        self.ack_timeout   = ack_timeout
        self.iq_started    = False
        self.missed_count  = 0
        self._last_seq     = None
        self._request_lock = threading.Lock()   # held across send + wait
        self._pending_lock = threading.Lock()
        self._pending      = deque()

        self._tcp.set_message_callback(self._on_tcp_message)
        self._udp.set_message_callback(self._on_udp_message)

    @classmethod
    def create(cls, host: str, tcp_port: int = DEFAULT_TCP_PORT,
               udp_port: int = DEFAULT_UDP_PORT,
               samples_path=SAMPLES_FILE,
               ack_timeout: float = ACK_TIMEOUT) -> "NetSdrClient":
        return cls(
            TcpControlChannel(host, tcp_port),
            UdpStreamChannel(udp_port),
            SampleSink(samples_path),
            ack_timeout=ack_timeout,
        )

    @property
    def connected(self) -> bool:
        return self._tcp.connected

    def connect(self):
        """Open the control channel and send the receiver setup items."""
        if self._tcp.connected:
            log.debug("connect() called while already connected")
            return
        self._tcp.connect()

        try:
            for msg in (sample_rate_message(), rf_filter_message(), ad_modes_message()):
                self._send_request(msg)
        except Exception:
            # a half-configured receiver must not look connected
            log.error("Receiver setup failed, closing control channel")
            self._tcp.disconnect()
            self._cancel_pending()
            raise
        log.info("Receiver setup complete")

    def disconnect(self):
        if self.iq_started:
            self._udp.stop_listening()
            self.iq_started = False
        self._tcp.disconnect()
        self._cancel_pending()

    def start_iq(self):
        if not self._tcp.connected:
            log.warning("start_iq: no active connection")
            return
        self._send_request(receiver_state_message(start=True))
        self._last_seq = None
        self._udp.start_listening()
        self.iq_started = True
        log.info("IQ stream started")

    def stop_iq(self):
        if not self._tcp.connected:
            log.warning("stop_iq: no active connection")
            return
        self._send_request(receiver_state_message(start=False))
        self._udp.stop_listening()
        self.iq_started = False
        log.info("IQ stream stopped")

    def change_frequency(self, hz: int, channel: int):
        if not self._tcp.connected:
            log.warning("change_frequency: no active connection")
            return
        self._send_request(frequency_message(hz, channel))
        log.info(f"Channel {channel} tuned to {hz} Hz")

    def close(self):
        """Disconnect and release the streaming channel and sample file."""
        try:
            self.disconnect()
        finally:
            self._udp.close()
            self.sink.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def _send_request(self, msg: bytes) -> Optional[bytes]:
        """
        Send one control item and block until the next inbound read.
        Returns None when not connected. Raises AckTimeoutError when no reply
        arrives within ack_timeout.
        """
        if not self._tcp.connected:
            log.warning("No active connection, request not sent")
            return None

        with self._request_lock:
            pending = _PendingResponse()
            with self._pending_lock:
                self._pending.append(pending)
            try:
                self._tcp.send_message(msg)
            except Exception:
                self._discard(pending)
                raise

            if not pending.event.wait(timeout=self.ack_timeout):
                self._discard(pending)
                raise AckTimeoutError(f"No reply to {describe(msg) or msg.hex(' ')}")

        if pending.cancelled:
            raise NotConnectedError("Disconnected while awaiting reply")
        log.debug(f"Reply received: {describe(pending.payload) or pending.payload.hex(' ')}")
        return pending.payload

    def _discard(self, pending: _PendingResponse):
        with self._pending_lock:
            try:
                self._pending.remove(pending)
            except ValueError:
                pass

    def _cancel_pending(self):
        with self._pending_lock:
            waiting = list(self._pending)
            self._pending.clear()
        for pending in waiting:
            pending.cancelled = True
            pending.event.set()

    def _on_tcp_message(self, data: bytes):
        with self._pending_lock:
            pending = self._pending.popleft() if self._pending else None
        if pending is None:
            log.warning(f"Unsolicited control data ignored: {bytes(data).hex(' ')}")
            return
        pending.payload = bytes(data)
        pending.event.set()

    def _on_udp_message(self, data: bytes):
        try:
            msg = translate_message(data)
        except ProtocolError as e:
            log.warning(f"Dropping malformed datagram ({len(data)} bytes): {e}")
            return
        if not msg.is_data_item:
            log.debug(f"Ignoring non-data datagram type {msg.msg_type}")
            return

        self._check_sequence(msg.sequence)
        samples = get_samples(16, msg.body)
        if samples.size:
            self.sink.append(samples)

    def _check_sequence(self, sequence: int):
        # Sequence numbers wrap from 0xFFFF to 1; 0 is only used after a reset.
        last = self._last_seq
        self._last_seq = sequence
        if last is None or sequence == 0:
            return
        expected = (last + 1) & 0xFFFF or 1
        if sequence != expected:
            missed = (sequence - expected) & 0xFFFF
            self.missed_count += missed
            log.warning(f"Sequence gap: expected {expected}, got {sequence} "
                        f"({missed} packets missed)")
