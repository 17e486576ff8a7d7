"""
Math Utilities Module

This module provides helper functions for the numeric validation and
rounding operations shared across the time-of-flight simulation pipeline.
It covers 3-vector coercion, finite-scalar checks, unit-interval clamping,
positive-integer validation and the round-half-up convention used when
projecting onto the pixel grid.

All validators raise ValueError with the offending parameter name so that
a bad parameter snapshot is rejected before any buffer is allocated.
"""

import numbers

import numpy as np


def _as_vector3(value, name):
    """
    Validate and convert an input into a flat, finite 3-element float vector.

    Takes any array-like input (list, tuple, numpy array, etc.) and
    converts it to a 1D numpy array of exactly 3 elements with float64
    dtype.

    :param value: Array-like input to convert into a 3D vector.
    :param name:  Human-readable parameter name, shown in error messages.

    :return: numpy array of shape (3,) with dtype float64.
    :raises ValueError: If the input does not contain exactly 3 finite elements.
    """
    # Convert the input to a numpy float array and flatten it to 1D
    vec = np.asarray(value, dtype=float).reshape(-1)

    # Check that the flattened array has exactly 3 elements
    if vec.size != 3:
        raise ValueError(f"{name} must be a 3D vector.")

    # NaN or inf would propagate silently through the integrator
    if not np.all(np.isfinite(vec)):
        raise ValueError(f"{name} must contain only finite values.")

    return vec


def _as_finite(value, name):
    """
    Convert a scalar to float and reject NaN / inf.

    :param value: Scalar input.
    :param name:  Parameter name for error messages.
    :return: The value as a Python float.
    :raises ValueError: If the value is not finite.
    """
    value = float(value)
    if not np.isfinite(value):
        raise ValueError(f"{name} must be finite.")
    return value


def _clip_unit(value, name):
    """Finite check, then clamp into [0, 1]."""
    return float(np.clip(_as_finite(value, name), 0.0, 1.0))


def _clip_non_negative(value, name):
    """Finite check, then clamp to >= 0."""
    return max(_as_finite(value, name), 0.0)


def _as_count(value, name, minimum=0):
    """
    Validate an integer count such as a resolution dimension or frame count.

    Accepts Python and numpy integers, and floats with an exact integral
    value (e.g. 32.0 coming from a numeric text field). Booleans are rejected.

    :param value:   Candidate count.
    :param name:    Parameter name for error messages.
    :param minimum: Smallest accepted value (inclusive).
    :return: The count as a Python int.
    :raises ValueError: If the value is not integral or below minimum.
    """
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer, got a bool.")

    if isinstance(value, numbers.Integral):
        count = int(value)
    else:
        number = _as_finite(value, name)
        if not number.is_integer():
            raise ValueError(f"{name} must be an integer, got {value!r}.")
        count = int(number)

    if count < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {count}.")
    return count


def _round_half_up(values):
    """
    Round to the nearest integer with ties going towards +inf.

    numpy's np.round uses round-half-to-even; pixel projection needs the
    half-up convention so that a coordinate of exactly 15.5 lands on 16.

    :param values: Scalar or array of floats (may contain NaN / inf).
    :return: Float array of rounded values (non-finite inputs stay non-finite).
    """
    return np.floor(np.asarray(values, dtype=float) + 0.5)
