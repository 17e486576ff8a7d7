"""
Radiometric Link Budget for the Single-Photon ToF Sensor

This module converts the physical parameters of a run into expected event
counts. Two quantities are modelled:

Signal: the expected number of detected photons returned from the ball for
one laser pulse, using a Lambertian reflector and a receiver aperture solid
angle falloff.
Background: the expected number of noise events in an integration window,
from filtered solar background light plus the detector dark-count rate.

Both are deterministic functions of the SimulationParameters snapshot; the
model holds no state beyond it, so repeated evaluation is idempotent.
"""

import numpy as np

PLANCK = 6.626e-34  # [J s]
SPEED_OF_LIGHT = 3e8  # [m/s]
LASER_WAVELENGTH = 780e-9  # [m]
LASER_PULSE_WIDTH = 0.5e-9  # [s]

# Empirical scale between irradiance * bandwidth * aperture and the
# background power that reaches the detector.
BACKGROUND_COUPLING = 1e-4


def photon_energy(wavelength=LASER_WAVELENGTH):
    """E_ph = h * c / lambda [J]."""
    return PLANCK * SPEED_OF_LIGHT / wavelength


class RadiometricModel:
    """
    Link budget evaluated against a fixed parameter snapshot.

    :param params: SimulationParameters (or any object with the same
                   reflectivity, efficiency, aperture and background attributes).
    """
    def __init__(self, params):
        self.params = params
        self.photon_energy = photon_energy()  # [J] constant per run
        radius = 0.5 * float(params.aperture_diameter)
        self.aperture_area = np.pi * radius * radius  # [m^2] A_rx

    @property
    def pulse_energy(self):
        """Laser energy per pulse [J] = peak power * fixed pulse width."""
        return float(self.params.laser_peak_power) * LASER_PULSE_WIDTH

    def received_photons(self, pulse_energy, distance):
        """
        Expected detected photons for one pulse reflected at the given distance.

            N_tx = E_pulse / E_ph
            solid_angle = A_rx / d^2
            N_rx = N_tx * eta_sys * (rho / pi) * solid_angle * QE

        Accepts scalar or array distances. Distances <= 0 (or non-finite)
        yield 0 without a division warning.

        :param pulse_energy: Transmitted pulse energy [J].
        :param distance:     Target distance [m], scalar or array.
        :return: Expected photon count (float, or array matching distance).
        """
        p = self.params
        distance = np.asarray(distance, dtype=float)
        valid = np.isfinite(distance) & (distance > 0.0)
        safe_distance = np.where(valid, distance, 1.0)  # placeholder, masked out below

        n_tx = float(pulse_energy) / self.photon_energy
        solid_angle = self.aperture_area / (safe_distance * safe_distance)
        n_rx = n_tx * p.system_efficiency * (p.reflectivity / np.pi) * solid_angle * p.quantum_efficiency
        n_rx = np.where(valid, n_rx, 0.0)

        if n_rx.ndim == 0:
            return float(n_rx)
        return n_rx

    def background_noise(self, integration_time_us):
        """
        Expected noise events in an integration window.

            P_bg = irradiance * bandwidth * A_rx * coupling        [W]
            rate = P_bg / E_ph * eta_sys * QE + dark_count_rate     [1/s]
            N    = rate * window                                    [events]

        :param integration_time_us: Window length [us]; non-positive yields 0.
        :return: Expected number of noise events in the window.
        """
        p = self.params
        window = max(float(integration_time_us), 0.0) * 1e-6  # [s]
        background_power = p.solar_irradiance * p.filter_bandwidth * self.aperture_area * BACKGROUND_COUPLING
        photon_rate = background_power / self.photon_energy * p.system_efficiency * p.quantum_efficiency
        return float((photon_rate + p.dark_count_rate) * window)
