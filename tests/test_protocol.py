import numpy as np
import pytest

from netsdrclient import ProtocolError
from netsdrclient.protocol import (
    ITEM_RECEIVER_FREQUENCY,
    ITEM_RECEIVER_STATE,
    MAX_DATA_ITEM_LEN,
    MSG_ACK,
    MSG_DATA_ITEM0,
    MSG_DATA_ITEM3,
    MSG_SET_CONTROL_ITEM,
    ad_modes_message,
    control_item_message,
    data_item_message,
    describe,
    frequency_message,
    get_samples,
    receiver_state_message,
    rf_filter_message,
    sample_rate_message,
    translate_message,
)


class TestFraming:
    def test_control_item_layout(self):
        frame = control_item_message(MSG_SET_CONTROL_ITEM, ITEM_RECEIVER_STATE, b"\x80\x02\x01\x01")
        assert frame == bytes([0x08, 0x00, 0x18, 0x00, 0x80, 0x02, 0x01, 0x01])

    def test_message_type_in_upper_bits(self):
        frame = control_item_message(MSG_ACK, ITEM_RECEIVER_STATE)
        assert frame[:2] == bytes([0x04, 0x60])

    def test_data_item_layout(self):
        frame = data_item_message(MSG_DATA_ITEM0, b"\x01\x00\x02\x00", sequence=7)
        assert frame == bytes([0x08, 0x80, 0x07, 0x00, 0x01, 0x00, 0x02, 0x00])

    def test_max_data_item_uses_zero_length(self):
        frame = data_item_message(MSG_DATA_ITEM0, bytes(MAX_DATA_ITEM_LEN - 4))
        assert len(frame) == MAX_DATA_ITEM_LEN
        assert frame[0] == 0x00 and frame[1] & 0x1F == 0

        msg = translate_message(frame)
        assert msg.is_data_item
        assert len(msg.body) == MAX_DATA_ITEM_LEN - 4

    def test_oversized_control_item(self):
        with pytest.raises(ProtocolError):
            control_item_message(MSG_SET_CONTROL_ITEM, ITEM_RECEIVER_STATE, bytes(9000))

    def test_wrong_kind(self):
        with pytest.raises(ProtocolError):
            control_item_message(MSG_DATA_ITEM3, ITEM_RECEIVER_STATE)
        with pytest.raises(ProtocolError):
            data_item_message(MSG_SET_CONTROL_ITEM)


class TestTranslate:
    def test_control_item(self):
        msg = translate_message(receiver_state_message(start=False))
        assert msg.msg_type == MSG_SET_CONTROL_ITEM
        assert msg.item_code == ITEM_RECEIVER_STATE
        assert msg.sequence is None
        assert msg.body == bytes([0x00, 0x01, 0x00, 0x00])

    def test_data_item(self):
        msg = translate_message(data_item_message(MSG_DATA_ITEM0, b"\xff\x7f", sequence=42))
        assert msg.is_data_item
        assert msg.sequence == 42
        assert msg.item_code is None
        assert msg.body == b"\xff\x7f"

    @pytest.mark.parametrize("frame", [
        b"",
        b"\x05",
        b"\x10\x20\x30\x40\x50",            # length field disagrees
        bytes([0x04, 0x00, 0x34, 0x12]),    # unknown item code
        bytes([0x02, 0x80]),                # data item without sequence
    ])
    def test_rejects_malformed(self, frame):
        with pytest.raises(ProtocolError):
            translate_message(frame)

    def test_describe(self):
        assert "ReceiverFrequency" in describe(frequency_message(1000, 0))
        assert "seq=3" in describe(data_item_message(MSG_DATA_ITEM0, b"", sequence=3))
        assert describe(b"\x05") is None


class TestSamples:
    def test_16_bit(self):
        body = np.array([0, 1, -1, 32767, -32768], dtype="<i2").tobytes()
        samples = get_samples(16, body)
        assert samples.tolist() == [0, 1, -1, 32767, -32768]

    def test_partial_sample_dropped(self):
        assert get_samples(16, b"\x01\x00\x02").tolist() == [1]

    def test_24_bit_sign_extension(self):
        body = bytes([0xFF, 0xFF, 0xFF, 0x01, 0x00, 0x00, 0x00, 0x00, 0x80])
        assert get_samples(24, body).tolist() == [-1, 1, -(1 << 23)]

    def test_8_and_32_bit(self):
        assert get_samples(8, b"\x01\xff").tolist() == [1, -1]
        assert get_samples(32, b"\xff\xff\xff\xff").tolist() == [-1]

    def test_unsupported_size(self):
        with pytest.raises(ProtocolError):
            get_samples(12, b"\x00\x00")


class TestCommands:
    def test_frequency_channel_at_offset_four(self):
        frame = frequency_message(123456789, 2)
        assert frame[4] == 2
        assert frame == bytes([0x0A, 0x00, 0x20, 0x00, 0x02, 0x15, 0xCD, 0x5B, 0x07, 0x00])
        assert translate_message(frame).item_code == ITEM_RECEIVER_FREQUENCY

    @pytest.mark.parametrize("hz, channel", [(-1, 0), (1 << 40, 0), (1000, 256), (1000, -1)])
    def test_frequency_out_of_range(self, hz, channel):
        with pytest.raises(ProtocolError):
            frequency_message(hz, channel)

    def test_setup_items(self):
        assert translate_message(sample_rate_message(100000)).body == (100000).to_bytes(5, "little")
        assert translate_message(rf_filter_message()).body == b"\x00\x00"
        assert translate_message(ad_modes_message()).body == b"\x00\x03"

    def test_receiver_state_start(self):
        assert translate_message(receiver_state_message(start=True)).body == bytes([0x80, 0x02, 0x01, 0x01])
