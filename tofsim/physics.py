"""
Ballistic Trajectory Integration for the Bouncing-Ball Scene

This module advances the reflective ball through the scene one frame at a
time. It contains the following components:

BallisticState, the mutable position/velocity pair stepped with a fixed
timestep under gravity, with ground-bounce restitution on the vertical axis.
integrate_trajectory(), which produces one position per frame.
sample_preview_trajectory(), which runs the same physics for every frame
but only keeps a bounded, strided subset of positions for visualization.

Coordinates are (x, y, z) in meters with y pointing up and the ground plane
at y = 0. The integrator is deterministic: identical inputs produce
bit-identical trajectories, and no random draws happen in this module.
"""

import math

import numpy as np

from .math_utils import _as_vector3

GRAVITY = 9.8  # [m/s^2] acts on the vertical (y) component only


class BallisticState:
    """
    Position and velocity of the ball, advanced in place.

    :param position:    Initial position (x, y, z) [m].
    :param velocity:    Initial velocity (vx, vy, vz) [m/s].
    :param restitution: Fraction of vertical speed kept after a bounce [0..1].
    """
    def __init__(self, position, velocity, restitution):
        self.position = _as_vector3(position, "position").copy()  # [m]
        self.velocity = _as_vector3(velocity, "velocity").copy()  # [m/s]
        self.restitution = float(np.clip(restitution, 0.0, 1.0))
        self.frames_advanced = 0

    def step(self, dt):
        """
        Advance one frame.

        Translation uses the velocity from before the gravity update:
            p <- p + v * dt
            v_y <- v_y - g * dt
        If the new height is <= 0 it is clamped to exactly 0 and the vertical
        velocity is reflected and scaled: v_y <- -v_y * restitution.
        Horizontal components are never touched by a bounce.

        :param dt: Timestep [s].
        :return: The updated position array (a view of the internal state).
        """
        self.position += self.velocity * dt
        self.velocity[1] -= GRAVITY * dt

        if self.position[1] <= 0.0:
            self.position[1] = 0.0
            self.velocity[1] = -self.velocity[1] * self.restitution

        self.frames_advanced += 1
        return self.position

    def advance(self, n_steps, dt):
        """
        Advance n_steps frames and return every intermediate position.

        :param n_steps: Number of frames to advance; <= 0 returns an empty array.
        :param dt:      Timestep [s].
        :return: numpy array of shape (n_steps, 3) [m].
        """
        n_steps = max(int(n_steps), 0)
        positions = np.empty((n_steps, 3), dtype=float)
        for i in range(n_steps):
            positions[i] = self.step(dt)
        return positions


def integrate_trajectory(initial_position, initial_velocity, restitution, dt, n_frames):
    """
    Integrate the ball trajectory and return one position per frame.

    :param initial_position: Start position (x, y, z) [m].
    :param initial_velocity: Start velocity (vx, vy, vz) [m/s].
    :param restitution:      Bounce restitution coefficient [0..1].
    :param dt:               Fixed timestep [s].
    :param n_frames:         Number of frames; non-positive yields an empty (0, 3) array.
    :return: numpy array of shape (n_frames, 3) [m].
    """
    state = BallisticState(initial_position, initial_velocity, restitution)
    return state.advance(n_frames, float(dt))


def preview_stride(n_frames, max_points):
    """Record every stride-th frame so that at most about max_points are kept."""
    if n_frames <= max_points:
        return 1
    return int(math.ceil(n_frames / max_points))


def sample_preview_trajectory(params):
    """
    Downsampled trajectory for visualization.

    Every frame is integrated so the end state is exact, but only frames
    whose index is a multiple of the stride are recorded. The final position
    is always appended after the loop, so the last point is the true end
    state even when n_frames is not a multiple of the stride (it then appears
    twice when frame n_frames - 1 was itself recorded).

    :param params: SimulationParameters snapshot.
    :return: numpy array of shape (k, 3) [m]; empty (0, 3) when n_frames <= 0.
    """
    n_frames = int(params.n_frames)
    if n_frames <= 0:
        return np.empty((0, 3), dtype=float)

    stride = preview_stride(n_frames, params.preview_max_points)
    dt = params.timestep
    state = BallisticState(params.initial_position, params.initial_velocity, params.restitution)

    samples = []
    for frame_idx in range(n_frames):
        position = state.step(dt)
        if frame_idx % stride == 0:
            samples.append(position.copy())

    samples.append(state.position.copy())
    return np.asarray(samples, dtype=float)
