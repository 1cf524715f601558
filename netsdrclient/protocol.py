"""NetSDR message framing: control items, data items and sample extraction."""

import struct
from typing import Optional

import numpy as np

from .common import DEFAULT_SAMPLE_RATE, ProtocolError
from .models import NetSdrMessage

# Message type (3 upper bits of the header)
MSG_SET_CONTROL_ITEM     = 0
MSG_CURRENT_CONTROL_ITEM = 1
MSG_CONTROL_ITEM_RANGE   = 2
MSG_ACK                  = 3
MSG_DATA_ITEM0           = 4
MSG_DATA_ITEM1           = 5
MSG_DATA_ITEM2           = 6
MSG_DATA_ITEM3           = 7

# Control item codes exercised by the client
ITEM_RECEIVER_STATE       = 0x0018
ITEM_RECEIVER_FREQUENCY   = 0x0020
ITEM_RF_FILTER            = 0x0044
ITEM_AD_MODES             = 0x008A
ITEM_IQ_OUTPUT_SAMPLE_RATE = 0x00B8

CONTROL_ITEM_NAMES = {
    ITEM_RECEIVER_STATE:        "ReceiverState",
    ITEM_RECEIVER_FREQUENCY:    "ReceiverFrequency",
    ITEM_RF_FILTER:             "RFFilter",
    ITEM_AD_MODES:              "ADModes",
    ITEM_IQ_OUTPUT_SAMPLE_RATE: "IQOutputDataSampleRate",
}

HEADER_LEN          = 2
ITEM_CODE_LEN       = 2
SEQUENCE_LEN        = 2
MAX_MESSAGE_LEN     = 0x1FFF    # 13-bit length field
MAX_DATA_ITEM_LEN   = 8194      # sent with a length field of 0

FREQUENCY_LEN       = 5         # 40-bit little-endian Hz

def is_data_item(msg_type: int) -> bool:
    return MSG_DATA_ITEM0 <= msg_type <= MSG_DATA_ITEM3

def _header(msg_type: int, msg_length: int) -> bytes:
    if not 0 <= msg_type <= MSG_DATA_ITEM3:
        raise ProtocolError(f"Invalid message type {msg_type}")
    if is_data_item(msg_type) and msg_length == MAX_DATA_ITEM_LEN:
        msg_length = 0
    if msg_length > MAX_MESSAGE_LEN:
        raise ProtocolError(f"Message too long: {msg_length} bytes")
    return struct.pack("<H", (msg_type << 13) | msg_length)

def control_item_message(msg_type: int, item_code: int, params: bytes = b"") -> bytes:
    """Frame a control item: header, little-endian item code, parameters."""
    if is_data_item(msg_type):
        raise ProtocolError(f"Message type {msg_type} is a data item, not a control item")
    body = struct.pack("<H", item_code) + bytes(params)
    return _header(msg_type, HEADER_LEN + len(body)) + body

def data_item_message(msg_type: int, params: bytes = b"", sequence: int = 0) -> bytes:
    """Frame a data item: header, little-endian sequence number, payload."""
    if not is_data_item(msg_type):
        raise ProtocolError(f"Message type {msg_type} is not a data item")
    body = struct.pack("<H", sequence & 0xFFFF) + bytes(params)
    return _header(msg_type, HEADER_LEN + len(body)) + body

def translate_message(data: bytes) -> NetSdrMessage:
    """
    Split a received frame into type, item code or sequence number, and body.
    Raises ProtocolError if the frame is truncated, its length field disagrees
    with the buffer, or a control item names an unknown code.
    """
    if len(data) < HEADER_LEN:
        raise ProtocolError(f"Frame too short: {len(data)} bytes")

    # ── Header: bits 0-12 length incl. header, bits 13-15 message type ──────
    header   = struct.unpack_from("<H", data, 0)[0]
    msg_type = header >> 13
    length   = header & MAX_MESSAGE_LEN
    if is_data_item(msg_type) and length == 0:
        length = MAX_DATA_ITEM_LEN
    if length != len(data):
        raise ProtocolError(f"Length field {length} does not match frame size {len(data)}")

    offset = HEADER_LEN
    item_code = None
    sequence  = None

    if is_data_item(msg_type):
        if len(data) < offset + SEQUENCE_LEN:
            raise ProtocolError("Data item missing sequence number")
        sequence = struct.unpack_from("<H", data, offset)[0]
        offset += SEQUENCE_LEN
    else:
        if len(data) < offset + ITEM_CODE_LEN:
            raise ProtocolError("Control item missing item code")
        item_code = struct.unpack_from("<H", data, offset)[0]
        if item_code not in CONTROL_ITEM_NAMES:
            raise ProtocolError(f"Unknown control item code 0x{item_code:04x}")
        offset += ITEM_CODE_LEN

    return NetSdrMessage(
        msg_type=msg_type,
        item_code=item_code,
        sequence=sequence,
        body=bytes(data[offset:]),
    )

def get_samples(sample_size: int, body: bytes) -> np.ndarray:
    """
    Unpack little-endian signed samples of `sample_size` bits from a data item
    body. A trailing partial sample is dropped.
    """
    if sample_size not in (8, 16, 24, 32):
        raise ProtocolError(f"Unsupported sample size {sample_size} bits")

    width = sample_size // 8
    n_samples = len(body) // width
    raw = bytes(body[:n_samples * width])

    if width == 1:
        return np.frombuffer(raw, dtype="i1").copy()
    if width == 2:
        return np.frombuffer(raw, dtype="<i2").copy()
    if width == 4:
        return np.frombuffer(raw, dtype="<i4").copy()

    # 24-bit: assemble the three bytes then sign-extend from bit 23
    b = np.frombuffer(raw, dtype=np.uint8).reshape(-1, 3).astype(np.int32)
    values = b[:, 0] | (b[:, 1] << 8) | (b[:, 2] << 16)
    return (values ^ 0x800000) - 0x800000

# ── Commands used by the client ─────────────────────────────────────────────

def sample_rate_message(rate: int = DEFAULT_SAMPLE_RATE) -> bytes:
    return control_item_message(
        MSG_SET_CONTROL_ITEM, ITEM_IQ_OUTPUT_SAMPLE_RATE, rate.to_bytes(5, "little")
    )

def rf_filter_message(mode: int = 0) -> bytes:
    """RF filter selection; mode 0 lets the receiver pick automatically."""
    return control_item_message(MSG_SET_CONTROL_ITEM, ITEM_RF_FILTER, struct.pack("<H", mode))

def ad_modes_message(modes: bytes = b"\x00\x03") -> bytes:
    return control_item_message(MSG_SET_CONTROL_ITEM, ITEM_AD_MODES, modes)

def receiver_state_message(start: bool) -> bytes:
    """
    Run/stop the receiver.
    Start: complex IQ data (0x80), run (0x02), 16-bit contiguous FIFO capture (0x01), 1 block.
    Stop:  idle (0x01), remaining parameters zero.
    """
    if start:
        params = bytes([0x80, 0x02, 0x01, 0x01])
    else:
        params = bytes([0x00, 0x01, 0x00, 0x00])
    return control_item_message(MSG_SET_CONTROL_ITEM, ITEM_RECEIVER_STATE, params)

def frequency_message(hz: int, channel: int) -> bytes:
    """
    Tune `channel` to `hz`. Layout: header(2) item code(2) channel(1) frequency(5),
    so the channel id is always byte 4 of the frame.
    """
    if not 0 <= channel <= 0xFF:
        raise ProtocolError(f"Channel out of range: {channel}")
    if not 0 <= hz < (1 << (8 * FREQUENCY_LEN)):
        raise ProtocolError(f"Frequency out of range: {hz}")
    params = bytes([channel]) + int(hz).to_bytes(FREQUENCY_LEN, "little")
    return control_item_message(MSG_SET_CONTROL_ITEM, ITEM_RECEIVER_FREQUENCY, params)

def describe(data: bytes) -> Optional[str]:
    """Short human-readable label for a frame, or None if it does not parse."""
    try:
        msg = translate_message(data)
    except ProtocolError:
        return None
    if msg.is_data_item:
        return f"DataItem{msg.msg_type - MSG_DATA_ITEM0} seq={msg.sequence} len={len(msg.body)}"
    return f"type={msg.msg_type} item={CONTROL_ITEM_NAMES[msg.item_code]} len={len(msg.body)}"
