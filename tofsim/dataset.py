"""
Time-of-Flight Event Dataset

Dense [frame][row][col] grid of 16-bit unsigned time-of-flight bins held in a
single contiguous numpy buffer (frame-major, row-major within a frame).

Cell values:
    SENTINEL (8001)   no event recorded
    [0, MAX_TOF_BIN)  quantized time-of-flight bin of a recorded event

A cell moves from SENTINEL to a valid value at most once. Both the signal
pass and the noise pass go through write_if_empty(), so "first writer wins"
holds whatever order the writes arrive in.

The binary export is the raw little-endian uint16 stream with no header; the
shape travels separately (see save_metadata()).
"""

import json
import logging
from pathlib import Path

import numpy as np

logger = logging.getLogger(__name__)

SENTINEL = 8001
MAX_TOF_BIN = 8000  # exclusive upper bound of valid bins
DEFAULT_FILENAME = "tennis_tof_physics.bin"
_EXPORT_DTYPE = np.dtype("<u2")


class ToFDataset:
    """
    Occupancy-tracked event grid.

    :param n_frames: Number of frames (>= 0).
    :param height:   Rows per frame (> 0).
    :param width:    Columns per frame (> 0).
    :param data:     Optional existing flat buffer to adopt (length must match).
    """
    def __init__(self, n_frames, height, width, data=None):
        self.n_frames = int(n_frames)
        self.height = int(height)
        self.width = int(width)
        if self.n_frames < 0 or self.height <= 0 or self.width <= 0:
            raise ValueError("Dataset needs n_frames >= 0 and a positive height and width.")

        size = self.n_frames * self.height * self.width
        if data is None:
            self.data = np.full(size, SENTINEL, dtype=np.uint16)
        else:
            data = np.asarray(data, dtype=np.uint16).reshape(-1)
            if data.size != size:
                raise ValueError(f"Buffer holds {data.size} cells, shape needs {size}.")
            self.data = data

    def __len__(self):
        return int(self.data.size)

    @property
    def shape(self):
        return self.n_frames, self.height, self.width

    @property
    def pixels_per_frame(self):
        return self.height * self.width

    def as_array(self):
        """(frames, rows, cols) view of the buffer."""
        return self.data.reshape(self.shape)

    def flat_index(self, frame, row, col):
        """Frame-major, row-major flat index. Works on scalars and arrays."""
        return (np.asarray(frame, dtype=np.int64) * self.pixels_per_frame
                + np.asarray(row, dtype=np.int64) * self.width
                + np.asarray(col, dtype=np.int64))

    def is_sentinel(self, index):
        """True where the cell(s) at flat index still hold no event."""
        return self.data[index] == SENTINEL

    def write_if_empty(self, index, values):
        """
        Write values into cells that are still SENTINEL.

        When the same index appears more than once in a batch, only its first
        occurrence is considered, matching sequential one-by-one writes.

        :param index:  Flat index or array of flat indices.
        :param values: Bin value(s), broadcastable to index.
        :return: Boolean mask (per input element) of writes that landed.
        """
        index = np.atleast_1d(np.asarray(index, dtype=np.int64))
        values = np.broadcast_to(np.asarray(values, dtype=np.uint16), index.shape)
        written = np.zeros(index.shape, dtype=bool)
        if index.size == 0:
            return written

        _, first = np.unique(index, return_index=True)
        first = first[self.data[index[first]] == SENTINEL]
        self.data[index[first]] = values[first]
        written[first] = True
        return written

    def occupied_count(self):
        return int(np.count_nonzero(self.data != SENTINEL))

    # ---------- export / import ----------

    def to_bytes(self):
        """Raw little-endian uint16 stream, 2 * frames * width * height bytes."""
        return self.data.astype(_EXPORT_DTYPE, copy=False).tobytes()

    @classmethod
    def from_bytes(cls, buffer, n_frames, height, width):
        expected = 2 * int(n_frames) * int(height) * int(width)
        if len(buffer) != expected:
            raise ValueError(f"Expected {expected} bytes for shape {(n_frames, height, width)}, got {len(buffer)}.")
        data = np.frombuffer(buffer, dtype=_EXPORT_DTYPE).astype(np.uint16)
        return cls(n_frames, height, width, data=data)

    def save(self, path=DEFAULT_FILENAME):
        path = Path(path)
        path.write_bytes(self.to_bytes())
        logger.info("Wrote %d frames (%dx%d) to %s", self.n_frames, self.width, self.height, path)
        return path

    @classmethod
    def load(cls, path, n_frames, height, width):
        return cls.from_bytes(Path(path).read_bytes(), n_frames, height, width)

    def metadata(self):
        return {
            "n_frames": self.n_frames,
            "height": self.height,
            "width": self.width,
            "dtype": "uint16",
            "byte_order": "little",
            "layout": "frame-major, row-major",
            "sentinel": SENTINEL,
            "max_tof_bin": MAX_TOF_BIN - 1,
        }

    def save_metadata(self, path):
        """JSON sidecar with the shape a consumer needs to read the raw stream."""
        path = Path(path)
        path.write_text(json.dumps(self.metadata(), indent=2), encoding="utf-8")
        return path

    # ---------- per-pixel summaries ----------

    def photon_count_map(self):
        """
        Number of recorded events (signal and noise) per pixel across all frames.

        :return: int64 array of shape (height, width).
        """
        if self.n_frames == 0:
            return np.zeros((self.height, self.width), dtype=np.int64)
        valid = self.as_array() < MAX_TOF_BIN
        return valid.sum(axis=0, dtype=np.int64)

    def ground_truth_map(self, signal_coordinates):
        """
        Number of signal writes per pixel, from the recorded (row, col) list.

        :param signal_coordinates: Iterable of (row, col) pairs.
        :return: int64 array of shape (height, width).
        """
        counts = np.zeros((self.height, self.width), dtype=np.int64)
        coords = np.asarray(list(signal_coordinates), dtype=np.int64).reshape(-1, 2)
        if coords.size:
            np.add.at(counts, (coords[:, 0], coords[:, 1]), 1)
        return counts
