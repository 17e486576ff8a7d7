"""
Simulation Parameter Snapshot

This module defines SimulationParameters, the immutable value handed to the
simulation engine at the start of a run. It is built either directly or from
a SimulationConfig-like object (any object exposing the same attributes),
and it validates everything in __post_init__:

Structural values (resolution, frame count, field of view, frame duration,
aperture, camera height, tunables) are rejected with ValueError when they are
out of range, because a wrong value there would corrupt the dataset shape.
Efficiencies, reflectivity and restitution are clamped into [0, 1], and
non-negative physical rates are clamped to 0.
"""

from dataclasses import dataclass, fields, replace as _dc_replace

import numpy as np

from .Config import SimulationConfig
from .math_utils import _as_count, _as_finite, _as_vector3, _clip_non_negative, _clip_unit


@dataclass(frozen=True, eq=False)
class SimulationParameters:
    """
    Immutable parameter snapshot for one simulation run.

    :param initial_position:   Ball start position (x, y, z) [m].
    :param initial_velocity:   Ball start velocity (vx, vy, vz) [m/s].
    :param reflectivity:       Surface reflectivity [0..1].
    :param restitution:        Bounce restitution coefficient [0..1].
    :param resolution_width:   Detector width [px], > 0.
    :param resolution_height:  Detector height [px], > 0.
    :param detector_fov:       Full horizontal field of view [deg], in (0, 180).
    :param frame_duration_us:  Frame duration / integration window [us], > 0.
    :param quantum_efficiency: Detector quantum efficiency [0..1].
    :param aperture_diameter:  Receiver aperture diameter [m], >= 0.
    :param system_efficiency:  Optical system throughput [0..1].
    :param filter_bandwidth:   Optical filter bandwidth [nm], >= 0.
    :param dark_count_rate:    Dark-count rate [1/s], >= 0.
    :param solar_irradiance:   Solar spectral irradiance [W/m^2/nm], >= 0.
    :param laser_peak_power:   Laser peak power [W], >= 0.
    :param n_frames:           Number of frames, >= 0.
    :param camera_height:      Height of the detector above ground [m].
    :param random_seed:        Seed for the default random generator, or None.
    :param chunk_size:         Frames per scheduler batch, > 0.
    :param signal_progress_span: Progress percentage covered by the signal pass, in [0, 99].
    :param max_noise_events:   Cap on the number of injected noise events, >= 0.
    :param preview_max_points: Upper bound on preview samples, > 0.
    """
    initial_position: np.ndarray = SimulationConfig.initial_position
    initial_velocity: np.ndarray = SimulationConfig.initial_velocity
    reflectivity: float = SimulationConfig.reflectivity
    restitution: float = SimulationConfig.restitution
    resolution_width: int = SimulationConfig.resolution_width
    resolution_height: int = SimulationConfig.resolution_height
    detector_fov: float = SimulationConfig.detector_fov
    frame_duration_us: float = SimulationConfig.frame_duration_us
    quantum_efficiency: float = SimulationConfig.quantum_efficiency
    aperture_diameter: float = SimulationConfig.aperture_diameter
    system_efficiency: float = SimulationConfig.system_efficiency
    filter_bandwidth: float = SimulationConfig.filter_bandwidth
    dark_count_rate: float = SimulationConfig.dark_count_rate
    solar_irradiance: float = SimulationConfig.solar_irradiance
    laser_peak_power: float = SimulationConfig.laser_peak_power
    n_frames: int = SimulationConfig.n_frames
    camera_height: float = SimulationConfig.camera_height
    random_seed: object = SimulationConfig.random_seed
    chunk_size: int = SimulationConfig.chunk_size
    signal_progress_span: int = SimulationConfig.signal_progress_span
    max_noise_events: int = SimulationConfig.max_noise_events
    preview_max_points: int = SimulationConfig.preview_max_points

    def __post_init__(self):
        # object.__setattr__ is required here because the dataclass is frozen.
        def _set(name, value):
            object.__setattr__(self, name, value)

        # ---------- trajectory initial conditions ----------
        for name in ("initial_position", "initial_velocity"):
            vec = _as_vector3(getattr(self, name), name).copy()
            vec.setflags(write=False)  # snapshot must not be mutated through the array
            _set(name, vec)

        # ---------- structural values: reject ----------
        _set("resolution_width", _as_count(self.resolution_width, "resolution_width", minimum=1))
        _set("resolution_height", _as_count(self.resolution_height, "resolution_height", minimum=1))
        _set("n_frames", _as_count(self.n_frames, "n_frames", minimum=0))

        detector_fov = _as_finite(self.detector_fov, "detector_fov")
        if not (0.0 < detector_fov < 180.0):
            raise ValueError("detector_fov must be in the range (0, 180) degrees.")
        _set("detector_fov", detector_fov)

        frame_duration_us = _as_finite(self.frame_duration_us, "frame_duration_us")
        if frame_duration_us <= 0.0:
            raise ValueError("frame_duration_us must be > 0.")
        _set("frame_duration_us", frame_duration_us)

        aperture_diameter = _as_finite(self.aperture_diameter, "aperture_diameter")
        if aperture_diameter < 0.0:
            raise ValueError("aperture_diameter must be >= 0.")
        _set("aperture_diameter", aperture_diameter)

        _set("camera_height", _as_finite(self.camera_height, "camera_height"))

        # ---------- unit interval values: clamp ----------
        for name in ("reflectivity", "restitution", "quantum_efficiency", "system_efficiency"):
            _set(name, _clip_unit(getattr(self, name), name))

        # ---------- non-negative physical rates: clamp ----------
        for name in ("filter_bandwidth", "dark_count_rate", "solar_irradiance", "laser_peak_power"):
            _set(name, _clip_non_negative(getattr(self, name), name))

        # ---------- run tunables ----------
        _set("chunk_size", _as_count(self.chunk_size, "chunk_size", minimum=1))
        _set("max_noise_events", _as_count(self.max_noise_events, "max_noise_events", minimum=0))
        _set("preview_max_points", _as_count(self.preview_max_points, "preview_max_points", minimum=1))
        span = _as_count(self.signal_progress_span, "signal_progress_span", minimum=0)
        if span > 99:
            raise ValueError("signal_progress_span must be <= 99 so that 100 marks completion only.")
        _set("signal_progress_span", span)

    @property
    def pixels_per_frame(self):
        return self.resolution_width * self.resolution_height

    @property
    def dataset_shape(self):
        """(frames, rows, cols) shape of the output dataset."""
        return self.n_frames, self.resolution_height, self.resolution_width

    @property
    def timestep(self):
        """Integration timestep [s], equal to one frame duration."""
        return self.frame_duration_us * 1e-6

    @classmethod
    def from_config(cls, config=SimulationConfig, **overrides):
        """
        Build a snapshot from a SimulationConfig class or instance.

        Every field is read with getattr so partial config objects fall back
        to the package defaults. Keyword overrides win over the config.
        """
        values = {}
        for field in fields(cls):
            values[field.name] = getattr(config, field.name, getattr(SimulationConfig, field.name))
        values.update(overrides)
        return cls(**values)

    def replace(self, **changes):
        """Return a new validated snapshot with some fields changed."""
        return _dc_replace(self, **changes)

    def to_dict(self):
        """Plain-Python view of the snapshot (vectors as lists)."""
        out = {}
        for field in fields(self):
            value = getattr(self, field.name)
            out[field.name] = value.tolist() if isinstance(value, np.ndarray) else value
        return out
