"""Append-only capture file for decoded 16-bit samples."""

import threading
from pathlib import Path

import numpy as np

from .common import SAMPLES_FILE, log

class SampleSink:
    """
    Flat binary file of little-endian int16 samples. The file is opened in
    append mode on the first write and never truncated.
    """

    def __init__(self, path=SAMPLES_FILE):
        self.path          = Path(path)
        self.bytes_written = 0
        self._fh           = None
        self._lock         = threading.Lock()

    def append(self, samples) -> int:
        """Append `samples` as int16 and return the number of bytes written."""
        data = np.asarray(samples).astype("<i2", copy=False).tobytes()
        with self._lock:
            if self._fh is None:
                self._fh = open(self.path, "ab")
                log.info(f"Writing samples to {self.path}")
            self._fh.write(data)
            self._fh.flush()
            self.bytes_written += len(data)
        return len(data)

    def close(self):
        with self._lock:
            fh, self._fh = self._fh, None
        if fh is not None:
            try:
                fh.close()
            except OSError as e:
                log.error(f"Error closing sample file {self.path}: {e}")
