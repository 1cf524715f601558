"""Data structures for receiver endpoints and decoded NetSDR messages."""

from dataclasses import dataclass, field
from typing import Optional

@dataclass
class DeviceEndpoint:
    host: str
    port: int

@dataclass
class NetSdrMessage:
    """Decoded NetSDR frame."""
    msg_type:   int
    item_code:  Optional[int]   # control items only
    sequence:   Optional[int]   # data items only, 16-bit wrapping counter
    body:       bytes = field(default=b"", repr=False)

    @property
    def is_data_item(self) -> bool:
        # message types 4-7 are DataItem0..DataItem3
        return self.msg_type >= 4
