"""
Single-Photon ToF Sensor Simulator

This module turns a SimulationParameters snapshot into a synthetic photon
counting dataset. A run has two passes:

Signal pass: for every frame the ball is advanced by the trajectory
integrator, the radiometric model gives the expected number of returned
photons, and a uniform draw below that value counts as a detection. Each
detection is projected through a pinhole camera onto the pixel grid and its
round-trip time of flight is quantized into a bin. Frames are processed in
fixed-size chunks so the caller regains control between chunks.
Noise pass: background and dark-count events are scattered uniformly over
the cells that are still empty, up to a hard cap.

The primary entry points are:
    SimulationRun.step()     Run one chunk (or the noise pass) and report status.
    SimulationRun.run()      Drive step() to completion.
    generate_data()          One-call convenience wrapper.

Known approximation: the detection trial compares one uniform draw against
the expected photon count directly. This is only a good single-photon
model while the expected value stays well below 1.
"""

import logging
from collections import namedtuple
from dataclasses import dataclass

import numpy as np

from .dataset import MAX_TOF_BIN, ToFDataset
from .math_utils import _round_half_up
from .params import SimulationParameters
from .physics import BallisticState
from .radiometry import SPEED_OF_LIGHT, RadiometricModel

logger = logging.getLogger(__name__)

TOF_BIN_WIDTH_NS = 0.256  # [ns] per quantized time-of-flight bin

RUNNING = "running"
DONE = "done"
CANCELLED = "cancelled"

StepStatus = namedtuple("StepStatus", ["state", "progress"])

DetectionBatch = namedtuple("DetectionBatch", ["n_detected", "frame_offsets", "rows", "cols", "tof_bins"])


@dataclass(frozen=True, eq=False)
class SimulationResult:
    """
    Outcome of a completed run.

    :param dataset:              The filled ToFDataset.
    :param signal_photons:       Detection trials that succeeded, including the
                                 ones whose projection fell off the grid.
    :param noise_events:         Noise events drawn (after the cap), including
                                 the ones dropped on an occupied cell.
    :param signal_coordinates:   (row, col) of every signal write, in frame order.
    :param noise_events_written: Noise events that actually filled a cell.
    :param noise_capped:         True when the noise count hit the cap.
    """
    dataset: ToFDataset
    signal_photons: int
    noise_events: int
    signal_coordinates: tuple
    noise_events_written: int = 0
    noise_capped: bool = False

    @property
    def shape(self):
        """(frames, rows, cols) of the dataset."""
        return self.dataset.shape

    def to_bytes(self):
        return self.dataset.to_bytes()


class DetectionEngine:
    """
    Per-frame detection, projection and quantization against a fixed snapshot.

    Camera model: pinhole at (0, camera_height, 0) looking along +z, with
    rows growing downwards.
        f   = (width / 2) / tan(fov / 2)                  [px]
        row = round(height / 2 - f * (y - camera_height) / z)
        col = round(width / 2 + f * x / z)

    :param params:     SimulationParameters snapshot.
    :param radiometry: RadiometricModel built from the same snapshot.
    """
    def __init__(self, params, radiometry):
        self.width = params.resolution_width
        self.height = params.resolution_height
        self.camera_height = float(params.camera_height)
        self.camera_position = np.array([0.0, self.camera_height, 0.0], dtype=float)

        fov = np.deg2rad(params.detector_fov)
        self.focal_px = (self.width / 2.0) / np.tan(fov / 2.0)  # [px]
        self.center_row = self.height / 2.0
        self.center_col = self.width / 2.0

        self.radiometry = radiometry
        self.pulse_energy = radiometry.pulse_energy  # [J]

    def distances(self, positions):
        """Euclidean distance [m] from the camera to each (n, 3) position."""
        offset = np.asarray(positions, dtype=float) - self.camera_position
        return np.sqrt(np.sum(offset * offset, axis=1))

    def expected_photons(self, distances):
        return self.radiometry.received_photons(self.pulse_energy, distances)

    def project(self, positions):
        """
        Pinhole projection to rounded (row, col) floats.

        A position with z == 0 gives inf / NaN, which the validity gate rejects.
        """
        positions = np.asarray(positions, dtype=float).reshape(-1, 3)
        x, y, z = positions[:, 0], positions[:, 1], positions[:, 2]
        with np.errstate(divide="ignore", invalid="ignore"):
            rows = _round_half_up(self.center_row - self.focal_px * ((y - self.camera_height) / z))
            cols = _round_half_up(self.center_col + self.focal_px * (x / z))
        return rows, cols

    def quantize_tof(self, distances):
        """Round-trip time of flight in bins of TOF_BIN_WIDTH_NS (floor)."""
        tof_ns = (2.0 * np.asarray(distances, dtype=float) / SPEED_OF_LIGHT) * 1e9
        return np.floor(tof_ns / TOF_BIN_WIDTH_NS)

    def valid_mask(self, rows, cols, tof_bins):
        """Pixel inside the grid and bin strictly inside (0, MAX_TOF_BIN)."""
        with np.errstate(invalid="ignore"):
            return (
                (rows >= 0) & (rows < self.height)
                & (cols >= 0) & (cols < self.width)
                & (tof_bins > 0) & (tof_bins < MAX_TOF_BIN)
            )

    def detect(self, positions, draws):
        """
        Run the detection trial for a block of consecutive frames.

        :param positions: (n, 3) ball positions, one per frame [m].
        :param draws:     (n,) uniform draws in [0, 1), one per frame.
        :return: DetectionBatch; n_detected counts every successful trial,
                 the remaining fields only those that passed the validity gate.
        """
        positions = np.asarray(positions, dtype=float).reshape(-1, 3)
        distances = self.distances(positions)
        expected = self.expected_photons(distances)

        detected = np.flatnonzero(np.asarray(draws, dtype=float) < expected)
        rows, cols = self.project(positions[detected])
        tof_bins = self.quantize_tof(distances[detected])
        valid = self.valid_mask(rows, cols, tof_bins)

        return DetectionBatch(
            n_detected=int(detected.size),
            frame_offsets=detected[valid],
            rows=rows[valid].astype(np.int64),
            cols=cols[valid].astype(np.int64),
            tof_bins=tof_bins[valid].astype(np.uint16),
        )


class SimulationRun:
    """
    Cooperative, chunked execution of one simulation.

    Each call to step() does a bounded amount of work and returns a
    StepStatus. The caller decides when to call again, so long runs never
    monopolize the host. cancel() is honoured at the next chunk boundary.

    :param params:            SimulationParameters snapshot.
    :param rng:               numpy Generator for every random draw. Defaults to
                              np.random.default_rng(params.random_seed).
    :param progress_callback: Optional callable receiving integer progress
                              0..100, non-decreasing; 100 only on completion.
    """
    def __init__(self, params, rng=None, progress_callback=None):
        if not isinstance(params, SimulationParameters):
            raise TypeError("params must be a SimulationParameters instance.")

        self.params = params
        self.rng = rng if rng is not None else np.random.default_rng(params.random_seed)
        self.progress_callback = progress_callback

        self.radiometry = RadiometricModel(params)
        self.engine = DetectionEngine(params, self.radiometry)
        self.dataset = ToFDataset(params.n_frames, params.resolution_height, params.resolution_width)
        self._ball = BallisticState(params.initial_position, params.initial_velocity, params.restitution)
        self._dt = params.timestep  # [s]

        # ---------- run state ----------
        self.state = RUNNING
        self.progress = 0
        self.current_frame = 0
        self.signal_photons = 0
        self.signal_coordinates = []
        self.result = None
        self._cancel_requested = False

        logger.info(
            "Starting simulation: %d frames at %dx%d px, chunk size %d",
            params.n_frames, params.resolution_width, params.resolution_height, params.chunk_size,
        )

    def cancel(self):
        """Request termination at the next chunk boundary."""
        self._cancel_requested = True

    @property
    def finished(self):
        return self.state != RUNNING

    def _report(self, progress):
        progress = max(int(progress), self.progress)
        self.progress = progress
        if self.progress_callback is not None:
            self.progress_callback(progress)

    def _process_signal_chunk(self):
        p = self.params
        start = self.current_frame
        stop = min(start + p.chunk_size, p.n_frames)

        positions = self._ball.advance(stop - start, self._dt)
        draws = self.rng.random(stop - start)
        batch = self.engine.detect(positions, draws)

        self.signal_photons += batch.n_detected
        index = self.dataset.flat_index(start + batch.frame_offsets, batch.rows, batch.cols)
        written = self.dataset.write_if_empty(index, batch.tof_bins)
        self.signal_coordinates.extend(
            zip(batch.rows[written].tolist(), batch.cols[written].tolist())
        )

        self.current_frame = stop
        logger.debug("Signal pass: %d/%d frames, %d photons so far", stop, p.n_frames, self.signal_photons)
        self._report(_round_half_up(stop / p.n_frames * p.signal_progress_span))

    def _inject_noise(self):
        """
        Scatter background events over still-empty cells.

        :return: (events drawn, events written, cap triggered)
        """
        p = self.params
        per_frame = self.radiometry.background_noise(p.frame_duration_us)
        total = int(np.floor(per_frame * p.n_frames))

        capped = total > p.max_noise_events
        if capped:
            logger.warning(
                "High noise count (%d) capped to %d to bound memory and compute.",
                total, p.max_noise_events,
            )
            total = p.max_noise_events

        if total <= 0 or p.n_frames == 0:
            return max(total, 0), 0, capped

        frames = self.rng.integers(0, p.n_frames, size=total)
        rows = self.rng.integers(0, p.resolution_height, size=total)
        cols = self.rng.integers(0, p.resolution_width, size=total)
        tof_bins = self.rng.integers(1, MAX_TOF_BIN, size=total)  # [1, 7999]

        written = self.dataset.write_if_empty(self.dataset.flat_index(frames, rows, cols), tof_bins)
        return total, int(np.count_nonzero(written)), capped

    def step(self):
        """
        Advance the run by one unit of work.

        Signal chunks come first; once every frame is processed the next call
        runs the noise pass and completes the run.

        :return: StepStatus(state, progress).
        :raises RuntimeError: If the run has already finished or been cancelled.
        """
        if self.state != RUNNING:
            raise RuntimeError(f"Simulation run is already {self.state}.")

        if self._cancel_requested:
            self.state = CANCELLED
            logger.info("Simulation cancelled at frame %d/%d", self.current_frame, self.params.n_frames)
            return StepStatus(self.state, self.progress)

        if self.current_frame < self.params.n_frames:
            self._process_signal_chunk()
            return StepStatus(self.state, self.progress)

        noise_events, noise_written, capped = self._inject_noise()
        self.result = SimulationResult(
            dataset=self.dataset,
            signal_photons=self.signal_photons,
            noise_events=noise_events,
            signal_coordinates=tuple(self.signal_coordinates),
            noise_events_written=noise_written,
            noise_capped=capped,
        )
        self.state = DONE
        self._report(100)
        logger.info(
            "Simulation complete. Signal photons: %d, Noise events: %d",
            self.signal_photons, noise_events,
        )
        return StepStatus(self.state, self.progress)

    def __iter__(self):
        """Yield a StepStatus per step until the run is done or cancelled."""
        while self.state == RUNNING:
            yield self.step()

    def run(self):
        """
        Drive the run to the end.

        :return: SimulationResult, or None if the run was cancelled.
        """
        for _ in self:
            pass
        return self.result


def generate_data(params, rng=None, progress_callback=None):
    """Run a complete simulation and return its SimulationResult (None if cancelled)."""
    return SimulationRun(params, rng=rng, progress_callback=progress_callback).run()
