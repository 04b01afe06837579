"""
Autopilot Configuration Module

Typed configuration for the thruster agent and the maneuver sequencer:
gain presets and limits per controller group, maneuver thresholds, thruster
multipliers and the autotune timeout.
"""

from dataclasses import dataclass, field

from vehicle_autopilot.controllers import GainSet

from .interfaces import ForceMode

VALID_REVERSE_THRUST_POLICIES = ("mirror", "suppress")


@dataclass
class ControllerSettings:
    """Gain preset and limits for one controller group."""

    gains: GainSet = field(default_factory=GainSet)
    output_limit: float = 1.0  # symmetric per-axis output bound
    integral_saturation: float = 1.0

    def __post_init__(self) -> None:
        if self.output_limit <= 0:
            raise ValueError(f"output_limit must be > 0, got {self.output_limit}")
        if self.integral_saturation < 0:
            raise ValueError(
                f"integral_saturation must be >= 0, got {self.integral_saturation}"
            )

    @classmethod
    def from_dict(cls, config: dict, defaults: "ControllerSettings") -> "ControllerSettings":
        """
        Create settings from a config section, falling back to `defaults`.

        Args:
            config: Section with p, i, d, oscillation_period, output_limit,
                integral_saturation keys (all optional).
            defaults: Settings supplying missing values.
        """
        merged_gains = {**defaults.gains.to_dict(), **config}
        return cls(
            gains=GainSet.from_dict(merged_gains),
            output_limit=float(config.get("output_limit", defaults.output_limit)),
            integral_saturation=float(
                config.get("integral_saturation", defaults.integral_saturation)
            ),
        )

    def to_dict(self) -> dict:
        return {
            **self.gains.to_dict(),
            "output_limit": self.output_limit,
            "integral_saturation": self.integral_saturation,
        }


def _default_main_thrust() -> ControllerSettings:
    return ControllerSettings(GainSet(p=2.0, i=0.0, d=0.1), output_limit=5.0)


def _default_side_thrust() -> ControllerSettings:
    return ControllerSettings(GainSet(p=2.0, i=0.0, d=0.1), output_limit=5.0)


def _default_torque() -> ControllerSettings:
    return ControllerSettings(GainSet(p=12.5, i=0.0, d=0.2), output_limit=100.0)


def _default_position_hold() -> ControllerSettings:
    return ControllerSettings(GainSet(p=0.5, i=0.0, d=0.0), output_limit=2.0)


@dataclass
class AutopilotConfig:
    """
    Complete autopilot configuration.

    Attributes:
        main_thrust: Forward thruster loop (velocity along local +Z).
        side_thrust: Lateral thruster loop; the up thruster shares its gains.
        torque: Orientation loop.
        position_hold: Station-keeping loop; turns the position error into
            a velocity setpoint (output_limit bounds that setpoint in m/s).
        cruise_speed: Forward speed commanded while closing on the target (m/s).
        max_deceleration_distance_percent: Share of the distance (at the start
            of forward thrust) at which the vehicle turns around to brake.
        stopping_distance: Distance at which the vehicle switches to
            station-keeping (m).
        braking_deceleration: Deceleration of the braking curve (m/s^2);
            0 commands a plain zero-velocity setpoint while braking.
        alignment_tolerance: dot(forward, heading) needed to start thrusting.
        turnaround_tolerance: |dot(forward, heading)| below which the turn
            around counts as done.
        reverse_thrust_policy: 'mirror' pushes backward on negative main
            thrust, 'suppress' drops it.
        torque_priority: Scale forward thrust down while large torque is
            being applied.
        force_mode: ForceMode used for every applied force and torque.
        main_thrust_multiplier: Scale on main thruster output.
        side_thrust_multiplier: Scale on side thruster output.
        up_thrust_multiplier: Scale on up thruster output.
        torque_multiplier: Scale on torque output.
        autotune_timeout: Seconds before an unfinished autotune is abandoned.
    """

    main_thrust: ControllerSettings = field(default_factory=_default_main_thrust)
    side_thrust: ControllerSettings = field(default_factory=_default_side_thrust)
    torque: ControllerSettings = field(default_factory=_default_torque)
    position_hold: ControllerSettings = field(default_factory=_default_position_hold)

    cruise_speed: float = 10.0
    max_deceleration_distance_percent: float = 40.0
    stopping_distance: float = 10.0
    braking_deceleration: float = 2.5
    alignment_tolerance: float = 0.99
    turnaround_tolerance: float = 0.1

    reverse_thrust_policy: str = "mirror"
    torque_priority: bool = True
    force_mode: ForceMode = ForceMode.FORCE

    main_thrust_multiplier: float = 1.0
    side_thrust_multiplier: float = 1.0
    up_thrust_multiplier: float = 1.0
    torque_multiplier: float = 1.0

    autotune_timeout: float = 30.0

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.reverse_thrust_policy not in VALID_REVERSE_THRUST_POLICIES:
            raise ValueError(
                f"Invalid reverse_thrust_policy: {self.reverse_thrust_policy}. "
                f"Must be one of {VALID_REVERSE_THRUST_POLICIES}"
            )
        if isinstance(self.force_mode, str):
            try:
                self.force_mode = ForceMode(self.force_mode)
            except ValueError:
                raise ValueError(
                    f"Invalid force_mode: {self.force_mode}. "
                    f"Must be one of {[m.value for m in ForceMode]}"
                ) from None
        if self.cruise_speed <= 0:
            raise ValueError(f"cruise_speed must be > 0, got {self.cruise_speed}")
        if not 0 < self.max_deceleration_distance_percent <= 100:
            raise ValueError(
                "max_deceleration_distance_percent must be in (0, 100], "
                f"got {self.max_deceleration_distance_percent}"
            )
        if self.stopping_distance < 0:
            raise ValueError(
                f"stopping_distance must be >= 0, got {self.stopping_distance}"
            )
        if self.braking_deceleration < 0:
            raise ValueError(
                f"braking_deceleration must be >= 0, got {self.braking_deceleration}"
            )
        if not 0 < self.alignment_tolerance < 1:
            raise ValueError(
                f"alignment_tolerance must be in (0, 1), got {self.alignment_tolerance}"
            )
        if not 0 < self.turnaround_tolerance < 1:
            raise ValueError(
                f"turnaround_tolerance must be in (0, 1), got {self.turnaround_tolerance}"
            )
        if self.autotune_timeout <= 0:
            raise ValueError(
                f"autotune_timeout must be > 0, got {self.autotune_timeout}"
            )

    @classmethod
    def from_dict(cls, config_dict: dict) -> "AutopilotConfig":
        """
        Create AutopilotConfig from a dictionary (e.g., from load_config).

        Reads the 'autopilot', 'controllers' and 'autotune' sections; missing
        keys take the dataclass defaults.

        Args:
            config_dict: Configuration dictionary.

        Returns:
            AutopilotConfig instance.
        """
        defaults = cls()
        ap = config_dict.get("autopilot", {})
        controllers = config_dict.get("controllers", {})
        autotune = config_dict.get("autotune", {})

        return cls(
            main_thrust=ControllerSettings.from_dict(
                controllers.get("main_thrust", {}), defaults.main_thrust
            ),
            side_thrust=ControllerSettings.from_dict(
                controllers.get("side_thrust", {}), defaults.side_thrust
            ),
            torque=ControllerSettings.from_dict(
                controllers.get("torque", {}), defaults.torque
            ),
            position_hold=ControllerSettings.from_dict(
                controllers.get("position_hold", {}), defaults.position_hold
            ),
            cruise_speed=ap.get("cruise_speed", defaults.cruise_speed),
            max_deceleration_distance_percent=ap.get(
                "max_deceleration_distance_percent",
                defaults.max_deceleration_distance_percent,
            ),
            stopping_distance=ap.get("stopping_distance", defaults.stopping_distance),
            braking_deceleration=ap.get(
                "braking_deceleration", defaults.braking_deceleration
            ),
            alignment_tolerance=ap.get(
                "alignment_tolerance", defaults.alignment_tolerance
            ),
            turnaround_tolerance=ap.get(
                "turnaround_tolerance", defaults.turnaround_tolerance
            ),
            reverse_thrust_policy=ap.get(
                "reverse_thrust_policy", defaults.reverse_thrust_policy
            ),
            torque_priority=ap.get("torque_priority", defaults.torque_priority),
            force_mode=ap.get("force_mode", defaults.force_mode),
            main_thrust_multiplier=ap.get(
                "main_thrust_multiplier", defaults.main_thrust_multiplier
            ),
            side_thrust_multiplier=ap.get(
                "side_thrust_multiplier", defaults.side_thrust_multiplier
            ),
            up_thrust_multiplier=ap.get(
                "up_thrust_multiplier", defaults.up_thrust_multiplier
            ),
            torque_multiplier=ap.get("torque_multiplier", defaults.torque_multiplier),
            autotune_timeout=autotune.get("timeout", defaults.autotune_timeout),
        )

    def to_dict(self) -> dict:
        """Convert to the nested dictionary layout read by from_dict."""
        return {
            "autopilot": {
                "cruise_speed": self.cruise_speed,
                "max_deceleration_distance_percent": (
                    self.max_deceleration_distance_percent
                ),
                "stopping_distance": self.stopping_distance,
                "braking_deceleration": self.braking_deceleration,
                "alignment_tolerance": self.alignment_tolerance,
                "turnaround_tolerance": self.turnaround_tolerance,
                "reverse_thrust_policy": self.reverse_thrust_policy,
                "torque_priority": self.torque_priority,
                "force_mode": self.force_mode.value,
                "main_thrust_multiplier": self.main_thrust_multiplier,
                "side_thrust_multiplier": self.side_thrust_multiplier,
                "up_thrust_multiplier": self.up_thrust_multiplier,
                "torque_multiplier": self.torque_multiplier,
            },
            "controllers": {
                "main_thrust": self.main_thrust.to_dict(),
                "side_thrust": self.side_thrust.to_dict(),
                "torque": self.torque.to_dict(),
                "position_hold": self.position_hold.to_dict(),
            },
            "autotune": {"timeout": self.autotune_timeout},
        }
