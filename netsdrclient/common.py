"""Shared constants, logging and error types for the NetSDR client."""

import logging

logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(message)s')
log = logging.getLogger(__name__)

DEFAULT_TCP_PORT    = 50000         # TCP command/control port of the receiver

DEFAULT_UDP_PORT    = 60000         # local UDP port the receiver streams IQ data to

SAMPLES_FILE        = "samples.bin" # raw 16-bit sample capture

ACK_TIMEOUT         = 5.0           # seconds to wait for a control item reply

CONNECT_TIMEOUT     = 5.0           # seconds allowed for the TCP connection attempt

RECV_BUFFER_SIZE    = 8192          # bytes per TCP read

UDP_DATAGRAM_MAX    = 65536

UDP_RCVBUF          = 4 * 1024 * 1024

UDP_POLL_INTERVAL   = 0.5           # recv timeout so the UDP loop notices stop requests

DEFAULT_SAMPLE_RATE = 100000        # IQ output sample rate sent during the handshake


class NetSdrError(RuntimeError):
    """Base class for client errors."""


class NotConnectedError(NetSdrError):
    """Raised when sending over a control channel that holds no connection."""


class DisposedError(NetSdrError):
    """Raised when a released streaming channel is asked to listen again."""


class AckTimeoutError(NetSdrError):
    """Raised when a control item gets no reply within the configured timeout."""


class ProtocolError(NetSdrError, ValueError):
    """Raised for frames that do not follow NetSDR message framing."""

