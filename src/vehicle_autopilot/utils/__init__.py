"""
Vehicle Autopilot Utilities Package

Support code shared by the simulator, the CLIs and the tests:
- Config: nested defaults, YAML/JSON files, AUTOPILOT_* environment overrides
- DataLogger: per-tick records of state, phase and thruster commands
- Plotter: trajectory, speed and phase-timeline figures
- Quaternion math and frame helpers (quaternion, coordinate_frame)
- Maneuver metrics (metrics)

Nothing here imports the controllers or the autopilot, so both can depend
on quaternion and coordinate_frame freely.
"""

import datetime
import json
import logging
import os
from enum import Enum
from pathlib import Path

import numpy as np
import yaml
from dotenv import load_dotenv

from .metrics import (
    ManeuverMetrics,
    SuccessCriteria,
    compute_maneuver_metrics,
    compute_phase_durations,
    format_metrics_report,
)

__all__ = [
    "load_config",
    "DataLogger",
    "Plotter",
    "get_default_config",
    # Metrics
    "ManeuverMetrics",
    "SuccessCriteria",
    "compute_maneuver_metrics",
    "compute_phase_durations",
    "format_metrics_report",
]

logger = logging.getLogger(__name__)


def get_default_config() -> dict:
    """
    Build the full default configuration.

    A fresh dictionary is returned on every call. File and environment
    values are merged over it, so any key missing from a config file
    keeps the value below.

    Returns:
        Nested configuration dictionary.
    """
    return {
        "dt": 0.02,  # simulation timestep in seconds
        "max_time": 60.0,  # seconds
        "vehicle": {
            "mass": 1.0,  # kg
            "moment_of_inertia": 1.0,  # kg*m^2
            "linear_drag": 0.0,
            "angular_drag": 0.0,
            "initial_position": [0.0, 0.0, 0.0],
            "initial_rotation": [0.0, 0.0, 0.0, 1.0],  # x, y, z, w
            "initial_velocity": [0.0, 0.0, 0.0],
            "initial_angular_velocity": [0.0, 0.0, 0.0],
        },
        "simulation": {
            "integrator": "semi_implicit",
            "max_velocity": 100.0,  # m/s
            "max_angular_velocity": 10.0,  # rad/s
        },
        "autopilot": {
            "cruise_speed": 10.0,  # m/s
            "max_deceleration_distance_percent": 40.0,
            "stopping_distance": 10.0,  # meters
            "braking_deceleration": 2.5,  # m/s^2
            "alignment_tolerance": 0.99,
            "turnaround_tolerance": 0.1,
            "reverse_thrust_policy": "mirror",
            "torque_priority": True,
            "force_mode": "force",
            "main_thrust_multiplier": 1.0,
            "side_thrust_multiplier": 1.0,
            "up_thrust_multiplier": 1.0,
            "torque_multiplier": 1.0,
        },
        "controllers": {
            "main_thrust": {"p": 2.0, "i": 0.0, "d": 0.1, "output_limit": 5.0},
            "side_thrust": {"p": 2.0, "i": 0.0, "d": 0.1, "output_limit": 5.0},
            "torque": {"p": 12.5, "i": 0.0, "d": 0.2, "output_limit": 100.0},
            "position_hold": {"p": 0.5, "i": 0.0, "d": 0.0, "output_limit": 2.0},
        },
        "autotune": {
            "timeout": 30.0,  # seconds
        },
        "target": {
            "motion_type": "stationary",
            "position": [0.0, 0.0, 100.0],
            "velocity": [0.0, 0.0, 0.0],
        },
        "logging": {
            "enabled": True,
            "output_dir": "experiments",
            "log_interval": 10,  # steps between log entries
        },
    }


def load_config(
    config_path: str | Path | None = None,
    load_env: bool = True,
) -> dict:
    """
    Load the run configuration.

    Sources, later ones winning:
        defaults -> YAML/JSON file -> .env file and process environment

    Recognized environment variables include:
    - AUTOPILOT_DT -> config["dt"]
    - AUTOPILOT_MAX_TIME -> config["max_time"]
    - AUTOPILOT_CRUISE_SPEED -> config["autopilot"]["cruise_speed"]
    - AUTOPILOT_STOPPING_DISTANCE -> config["autopilot"]["stopping_distance"]
    - AUTOPILOT_REVERSE_THRUST_POLICY -> config["autopilot"]["reverse_thrust_policy"]
    - AUTOPILOT_TARGET_POSITION -> config["target"]["position"] ("x,y,z")

    Args:
        config_path: YAML (.yaml/.yml) or JSON file; None skips the file step.
        load_env: Read .env and apply the AUTOPILOT_* overrides.

    Returns:
        Configuration dictionary.

    Raises:
        FileNotFoundError: If config_path does not exist.
        PermissionError: If config_path is not readable.
        ValueError: If config_path is not a file, has an unknown suffix,
            cannot be parsed, or does not hold a mapping.
    """
    config = get_default_config()

    if config_path is not None:
        config_path = Path(config_path)

        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        if not config_path.is_file():
            raise ValueError(f"Configuration path is not a file: {config_path}")

        try:
            with open(config_path) as f:
                if config_path.suffix in (".yaml", ".yml"):
                    file_config = yaml.safe_load(f)
                elif config_path.suffix == ".json":
                    file_config = json.load(f)
                else:
                    raise ValueError(f"Unsupported config format: {config_path.suffix}")
        except PermissionError as e:
            raise PermissionError(
                f"Cannot read configuration file: {config_path}"
            ) from e
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ValueError(f"Malformed configuration file: {config_path}") from e

        if file_config:
            if not isinstance(file_config, dict):
                raise ValueError(
                    f"Configuration file must contain a mapping: {config_path}"
                )
            config = _deep_merge(config, file_config)

    if load_env:
        load_dotenv()
        config = _apply_env_overrides(config)

    return config


def _deep_merge(base: dict, override: dict) -> dict:
    """Merge override into a copy of base, recursing into nested dicts."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _json_serializer(obj):
    """
    `default=` hook for json.dump covering log and summary payloads.

    numpy arrays become lists, numpy scalars plain numbers, Enum members
    their values, dates ISO strings and paths strings.

    Raises:
        TypeError: For any other type.
    """
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.generic):
        return obj.item()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime.datetime, datetime.date)):
        return obj.isoformat()
    if isinstance(obj, Path):
        return str(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _parse_vector(value: str) -> list[float]:
    parts = [p.strip() for p in value.split(",")]
    if len(parts) != 3:
        raise ValueError(f"expected 3 comma-separated values, got {value!r}")
    return [float(p) for p in parts]


def _apply_env_overrides(config: dict) -> dict:
    """Overlay AUTOPILOT_* environment variables onto config in place and return it."""
    # Top-level scalars
    env_mappings = {
        "AUTOPILOT_DT": ("dt", float),
        "AUTOPILOT_MAX_TIME": ("max_time", float),
    }

    for env_var, (config_key, type_fn) in env_mappings.items():
        value = os.getenv(env_var)
        if value is not None:
            try:
                config[config_key] = type_fn(value)
            except ValueError:
                logger.warning(
                    "Invalid value for %s: '%s', using default", env_var, value
                )

    # Nested (section, key) overrides
    nested_env_mappings = {
        "AUTOPILOT_CRUISE_SPEED": ("autopilot", "cruise_speed", float),
        "AUTOPILOT_STOPPING_DISTANCE": ("autopilot", "stopping_distance", float),
        "AUTOPILOT_BRAKING_DECELERATION": ("autopilot", "braking_deceleration", float),
        "AUTOPILOT_REVERSE_THRUST_POLICY": ("autopilot", "reverse_thrust_policy", str),
        "AUTOPILOT_FORCE_MODE": ("autopilot", "force_mode", str),
        "AUTOPILOT_AUTOTUNE_TIMEOUT": ("autotune", "timeout", float),
        "AUTOPILOT_TARGET_MOTION_TYPE": ("target", "motion_type", str),
        "AUTOPILOT_TARGET_POSITION": ("target", "position", _parse_vector),
        "AUTOPILOT_TARGET_VELOCITY": ("target", "velocity", _parse_vector),
        "AUTOPILOT_LOG_DIR": ("logging", "output_dir", str),
    }

    for env_var, (section, config_key, type_fn) in nested_env_mappings.items():
        value = os.getenv(env_var)
        if value is not None:
            try:
                config.setdefault(section, {})[config_key] = type_fn(value)
            except ValueError:
                logger.warning(
                    "Invalid value for %s: '%s', using default", env_var, value
                )

    return config


class DataLogger:
    """
    Buffers every Nth tick of a maneuver and writes the buffer as JSON.

    Attributes:
        output_dir (Path): Where save() writes.
        experiment_name (str): Stem of the JSON file name.
        log_interval (int): Keep one tick out of this many.
    """

    def __init__(
        self,
        output_dir: str | Path = "experiments",
        experiment_name: str | None = None,
        log_interval: int = 10,
    ):
        """
        Args:
            output_dir: Output directory, created on save().
            experiment_name: File stem; a run_<timestamp> name if None.
            log_interval: Ticks per recorded entry (>= 1).

        Raises:
            ValueError: If log_interval < 1.
        """
        if log_interval < 1:
            raise ValueError(f"log_interval must be >= 1, got {log_interval}")
        self.output_dir = Path(output_dir)
        self.experiment_name = experiment_name or datetime.datetime.now().strftime(
            "run_%Y%m%d_%H%M%S"
        )
        self.log_interval = log_interval
        self.data = []
        self._step_count = 0

    def log(self, state: dict, phase: str, commands: dict, info: dict | None = None) -> None:
        """
        Log a single step's data.

        Args:
            state: Vehicle state dictionary.
            phase: Maneuver phase name.
            commands: Applied thrust and torque commands.
            info: Additional info dictionary.
        """
        self._step_count += 1
        if self._step_count % self.log_interval == 0:
            self.data.append(
                {
                    "step": self._step_count,
                    "state": state,
                    "phase": phase,
                    "commands": commands,
                    "info": info or {},
                }
            )

    def save(self) -> Path:
        """
        Save logged data to file.

        Returns:
            Path to saved log file.
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        log_path = self.output_dir / f"{self.experiment_name}.json"
        with open(log_path, "w") as f:
            json.dump(self.data, f, indent=2, default=_json_serializer)
        logger.info("Saved %d log entries to %s", len(self.data), log_path)
        return log_path

    def reset(self) -> None:
        """Reset logger state for a new run."""
        self.data = []
        self._step_count = 0


class Plotter:
    """
    Matplotlib figures for a maneuver run: the X/Z path with the target,
    speed and distance over time, and the phase timeline.

    pyplot is imported on first use with the Agg backend.
    """

    def __init__(self, figsize: tuple[int, int] = (10, 6), style: str = "default"):
        self.figsize = figsize
        self.style = style

    @staticmethod
    def _pyplot():
        import matplotlib

        matplotlib.use("Agg")
        import matplotlib.pyplot as plt

        return plt

    def plot_trajectory(
        self,
        history: list[dict],
        target_position=None,
        save_path: str | Path | None = None,
    ):
        """
        Plot the vehicle path projected on the X/Z plane.

        Args:
            history: Recorded state dictionaries with a 'position' key.
            target_position: Optional target position [x, y, z].
            save_path: Optional path to save figure.

        Returns:
            Tuple of (figure, axes).
        """
        plt = self._pyplot()
        positions = np.array([h["position"] for h in history]).reshape(-1, 3)

        with plt.style.context(self.style):
            fig, ax = plt.subplots(figsize=self.figsize)
            ax.plot(positions[:, 2], positions[:, 0], label="Vehicle")
            if len(positions):
                ax.scatter(positions[0, 2], positions[0, 0], marker="o", label="Start")
            if target_position is not None:
                ax.scatter(
                    target_position[2], target_position[0], marker="x", s=80, label="Target"
                )
            ax.set_xlabel("Z Position (m)")
            ax.set_ylabel("X Position (m)")
            ax.set_title("Maneuver Trajectory")
            ax.legend()
            ax.grid(True)

        if save_path:
            fig.savefig(save_path)
        return fig, ax

    def plot_speed(
        self,
        history: list[dict],
        target_position=None,
        save_path: str | Path | None = None,
    ):
        """
        Plot speed (and distance to target, if given) over time.

        Args:
            history: Recorded state dictionaries.
            target_position: Optional target position for the distance curve.
            save_path: Optional path to save figure.

        Returns:
            Tuple of (figure, axes).
        """
        plt = self._pyplot()
        times = np.array([h["time"] for h in history])
        velocities = np.array([h["velocity"] for h in history]).reshape(-1, 3)
        speeds = np.linalg.norm(velocities, axis=1)

        with plt.style.context(self.style):
            fig, ax = plt.subplots(figsize=self.figsize)
            ax.plot(times, speeds, label="Speed (m/s)")
            if target_position is not None:
                positions = np.array([h["position"] for h in history]).reshape(-1, 3)
                distances = np.linalg.norm(
                    np.asarray(target_position) - positions, axis=1
                )
                ax.plot(times, distances, label="Distance (m)")
            ax.set_xlabel("Time (s)")
            ax.set_title("Speed Over Time")
            ax.legend()
            ax.grid(True)

        if save_path:
            fig.savefig(save_path)
        return fig, ax

    def plot_phase_timeline(
        self,
        phase_history: list[tuple[float, str]],
        end_time: float,
        save_path: str | Path | None = None,
    ):
        """
        Plot maneuver phases as horizontal bars.

        Args:
            phase_history: (entry_time, phase_name) pairs in order.
            end_time: Time at which the last phase ends.
            save_path: Optional path to save figure.

        Returns:
            Tuple of (figure, axes).
        """
        plt = self._pyplot()
        names = list(dict.fromkeys(name for _, name in phase_history))

        with plt.style.context(self.style):
            fig, ax = plt.subplots(figsize=self.figsize)
            for idx, (start, name) in enumerate(phase_history):
                end = (
                    phase_history[idx + 1][0]
                    if idx + 1 < len(phase_history)
                    else end_time
                )
                ax.barh(names.index(name), end - start, left=start)
            ax.set_yticks(range(len(names)))
            ax.set_yticklabels(names)
            ax.set_xlabel("Time (s)")
            ax.set_title("Maneuver Phases")
            ax.grid(True, axis="x")

        if save_path:
            fig.savefig(save_path)
        return fig, ax
