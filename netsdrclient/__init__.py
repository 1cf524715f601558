"""NetSDR receiver client package.

TCP control channel, UDP IQ streaming channel, sample capture and the
client that coordinates them.
"""

from .common import (
	ACK_TIMEOUT,
	DEFAULT_SAMPLE_RATE,
	DEFAULT_TCP_PORT,
	DEFAULT_UDP_PORT,
	SAMPLES_FILE,
	AckTimeoutError,
	DisposedError,
	NetSdrError,
	NotConnectedError,
	ProtocolError,
)
from .models import DeviceEndpoint, NetSdrMessage
from .protocol import (
	control_item_message,
	data_item_message,
	frequency_message,
	get_samples,
	translate_message,
)
from .tcp_client import TcpControlChannel
from .udp_client import UdpStreamChannel
from .sink import SampleSink
from .client import NetSdrClient

__all__ = [
	"ACK_TIMEOUT",
	"DEFAULT_SAMPLE_RATE",
	"DEFAULT_TCP_PORT",
	"DEFAULT_UDP_PORT",
	"SAMPLES_FILE",
	"AckTimeoutError",
	"DisposedError",
	"NetSdrError",
	"NotConnectedError",
	"ProtocolError",
	"DeviceEndpoint",
	"NetSdrMessage",
	"control_item_message",
	"data_item_message",
	"frequency_message",
	"get_samples",
	"translate_message",
	"TcpControlChannel",
	"UdpStreamChannel",
	"SampleSink",
	"NetSdrClient",
]
