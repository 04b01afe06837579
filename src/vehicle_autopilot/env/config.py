"""
Environment Configuration Module

Defines physical parameters, simulation settings and target setup for the
reference rigid-body environment.
"""

from dataclasses import dataclass, field

VALID_INTEGRATORS = ("semi_implicit", "euler")
VALID_MOTION_TYPES = ("stationary", "linear")


@dataclass
class VehicleParams:
    """Physical parameters and initial state of the vehicle."""

    mass: float = 1.0  # kg
    moment_of_inertia: float = 1.0  # kg*m^2, isotropic

    # Drag coefficients (0 = free space)
    linear_drag: float = 0.0  # 1/s
    angular_drag: float = 0.0  # 1/s

    # Initial state
    initial_position: tuple[float, float, float] = (0.0, 0.0, 0.0)
    initial_rotation: tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0)  # x, y, z, w
    initial_velocity: tuple[float, float, float] = (0.0, 0.0, 0.0)
    initial_angular_velocity: tuple[float, float, float] = (0.0, 0.0, 0.0)

    def __post_init__(self) -> None:
        if self.mass <= 0:
            raise ValueError(f"mass must be > 0, got {self.mass}")
        if self.moment_of_inertia <= 0:
            raise ValueError(
                f"moment_of_inertia must be > 0, got {self.moment_of_inertia}"
            )


@dataclass
class SimulationParams:
    """Simulation parameters."""

    dt: float = 0.02  # fixed timestep in seconds
    max_time: float = 60.0  # maximum run duration in seconds
    integrator: str = "semi_implicit"  # 'semi_implicit' or 'euler'

    # Numerical stability
    max_velocity: float = 100.0  # m/s, clip velocities beyond this
    max_angular_velocity: float = 10.0  # rad/s, clip angular velocities

    def __post_init__(self) -> None:
        if self.dt <= 0:
            raise ValueError(f"dt must be > 0, got {self.dt}")
        if self.integrator not in VALID_INTEGRATORS:
            raise ValueError(
                f"Invalid integrator: {self.integrator}. "
                f"Must be one of {VALID_INTEGRATORS}"
            )


@dataclass
class TargetParams:
    """Target setup."""

    motion_type: str = "stationary"  # 'stationary' or 'linear'
    position: tuple[float, float, float] = (0.0, 0.0, 100.0)  # start position
    velocity: tuple[float, float, float] = (0.0, 0.0, 0.0)  # m/s, linear motion only

    def __post_init__(self) -> None:
        if self.motion_type not in VALID_MOTION_TYPES:
            raise ValueError(
                f"Invalid motion_type: {self.motion_type}. "
                f"Must be one of {VALID_MOTION_TYPES}"
            )


@dataclass
class LoggingParams:
    """Logging configuration."""

    enabled: bool = True
    log_interval: int = 10  # steps between history entries
    output_dir: str = "experiments"


@dataclass
class EnvConfig:
    """Complete environment configuration."""

    vehicle: VehicleParams = field(default_factory=VehicleParams)
    simulation: SimulationParams = field(default_factory=SimulationParams)
    target: TargetParams = field(default_factory=TargetParams)
    logging: LoggingParams = field(default_factory=LoggingParams)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "EnvConfig":
        """
        Create EnvConfig from a dictionary (e.g., from load_config).

        Args:
            config_dict: Configuration dictionary.

        Returns:
            EnvConfig instance.
        """
        vehicle_dict = config_dict.get("vehicle", {})
        sim_dict = config_dict.get("simulation", {}).copy()
        target_dict = config_dict.get("target", {})
        logging_dict = config_dict.get("logging", {})

        # Top-level shortcuts
        if "dt" in config_dict and "dt" not in sim_dict:
            sim_dict["dt"] = config_dict["dt"]
        if "max_time" in config_dict and "max_time" not in sim_dict:
            sim_dict["max_time"] = config_dict["max_time"]

        defaults = VehicleParams()
        return cls(
            vehicle=VehicleParams(
                mass=vehicle_dict.get("mass", defaults.mass),
                moment_of_inertia=vehicle_dict.get(
                    "moment_of_inertia", defaults.moment_of_inertia
                ),
                linear_drag=vehicle_dict.get("linear_drag", defaults.linear_drag),
                angular_drag=vehicle_dict.get("angular_drag", defaults.angular_drag),
                initial_position=tuple(
                    vehicle_dict.get("initial_position", defaults.initial_position)
                ),
                initial_rotation=tuple(
                    vehicle_dict.get("initial_rotation", defaults.initial_rotation)
                ),
                initial_velocity=tuple(
                    vehicle_dict.get("initial_velocity", defaults.initial_velocity)
                ),
                initial_angular_velocity=tuple(
                    vehicle_dict.get(
                        "initial_angular_velocity", defaults.initial_angular_velocity
                    )
                ),
            ),
            simulation=SimulationParams(
                dt=sim_dict.get("dt", 0.02),
                max_time=sim_dict.get("max_time", 60.0),
                integrator=sim_dict.get("integrator", "semi_implicit"),
                max_velocity=sim_dict.get("max_velocity", 100.0),
                max_angular_velocity=sim_dict.get("max_angular_velocity", 10.0),
            ),
            target=TargetParams(
                motion_type=target_dict.get("motion_type", "stationary"),
                position=tuple(target_dict.get("position", (0.0, 0.0, 100.0))),
                velocity=tuple(target_dict.get("velocity", (0.0, 0.0, 0.0))),
            ),
            logging=LoggingParams(
                enabled=logging_dict.get("enabled", True),
                log_interval=logging_dict.get("log_interval", 10),
                output_dir=logging_dict.get("output_dir", "experiments"),
            ),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "vehicle": {
                "mass": self.vehicle.mass,
                "moment_of_inertia": self.vehicle.moment_of_inertia,
                "linear_drag": self.vehicle.linear_drag,
                "angular_drag": self.vehicle.angular_drag,
                "initial_position": list(self.vehicle.initial_position),
                "initial_rotation": list(self.vehicle.initial_rotation),
                "initial_velocity": list(self.vehicle.initial_velocity),
                "initial_angular_velocity": list(self.vehicle.initial_angular_velocity),
            },
            "simulation": {
                "dt": self.simulation.dt,
                "max_time": self.simulation.max_time,
                "integrator": self.simulation.integrator,
                "max_velocity": self.simulation.max_velocity,
                "max_angular_velocity": self.simulation.max_angular_velocity,
            },
            "target": {
                "motion_type": self.target.motion_type,
                "position": list(self.target.position),
                "velocity": list(self.target.velocity),
            },
            "logging": {
                "enabled": self.logging.enabled,
                "log_interval": self.logging.log_interval,
                "output_dir": self.logging.output_dir,
            },
        }
