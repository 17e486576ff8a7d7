class SimulationConfig:
    # Ball initial conditions
    initial_position = (-1.0, 2.0, 1.5)  # [m] (x, y, z), y is up, z is depth from the camera
    initial_velocity = (1.0, 0.0, 1.0)  # [m/s]
    reflectivity = 0.01  # [0..1] Lambertian reflectivity of the ball surface
    restitution = 0.8  # [0..1] fraction of vertical speed kept after a bounce

    # Detector
    resolution_width = 32  # [px]
    resolution_height = 32  # [px]
    detector_fov = 50.0  # [deg] full horizontal field of view
    frame_duration_us = 55.0  # [us] one laser pulse / integration window per frame
    quantum_efficiency = 0.3  # [0..1]
    aperture_diameter = 0.025  # [m] receiver aperture
    system_efficiency = 0.6  # [0..1] optics + electronics throughput
    filter_bandwidth = 10.0  # [nm] optical band-pass width
    dark_count_rate = 100.0  # [1/s] spontaneous detector events

    # Environment and laser
    solar_irradiance = 0.01  # [W/m^2/nm] ambient background
    laser_peak_power = 0.01  # [W]

    # Run size
    n_frames = 100000
    camera_height = 1.0  # [m] detector sits at (0, camera_height, 0)

    # Stochastic source
    random_seed = None  # optional deterministic seed

    # Scheduler and output bounds
    chunk_size = 5000  # frames per cooperative batch
    signal_progress_span = 95  # [%] progress share of the signal pass, remainder is the noise pass
    max_noise_events = 1000000  # hard cap on injected background events
    preview_max_points = 30000  # max points returned by the preview sampler
