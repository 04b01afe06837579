"""
Maneuver Metrics

This module provides metrics computation for evaluating a maneuver run:
- Final distance, speed and angular speed
- Peak speed
- Phase order and time spent per phase
- Success criteria evaluation

Design Philosophy:
- Stateless functions computing metrics from recorded run data
- Phases are handled by name so metrics stay independent of the autopilot
- Configurable success criteria thresholds
"""

import logging
from dataclasses import dataclass, field

import numpy as np

logger = logging.getLogger(__name__)

# Phases every successful approach must visit, in order
EXPECTED_PHASE_ORDER = (
    "turn_towards_target",
    "forward_thrust_movement",
    "turning_around",
    "forward_thrust_deceleration",
    "no_movement",
)


@dataclass
class SuccessCriteria:
    """
    Configuration for success criteria evaluation.

    Attributes:
        stopping_distance: Maximum final distance to the target (m).
        max_final_speed: Maximum final linear speed (m/s).
        max_final_angular_speed: Maximum final angular speed (rad/s).
        require_phase_order: Whether the expected phase order is required.
    """

    stopping_distance: float = 10.0
    max_final_speed: float = 0.5
    max_final_angular_speed: float = 0.1
    require_phase_order: bool = True


@dataclass
class ManeuverMetrics:
    """
    Computed metrics for a single maneuver run.

    Attributes:
        duration: Run time in seconds.
        final_distance: Distance to target at the end of the run.
        final_speed: Linear speed at the end of the run.
        final_angular_speed: Angular speed at the end of the run.
        max_speed: Peak linear speed.
        phase_order: Entered phase names, in order.
        phase_durations: Seconds spent per phase name.
        phase_order_ok: Whether phase_order matches the expected sequence.
        success: Whether the run met the success criteria.
    """

    duration: float = 0.0
    final_distance: float = 0.0
    final_speed: float = 0.0
    final_angular_speed: float = 0.0
    max_speed: float = 0.0
    phase_order: list[str] = field(default_factory=list)
    phase_durations: dict[str, float] = field(default_factory=dict)
    phase_order_ok: bool = False
    success: bool = False

    def to_dict(self) -> dict:
        """Convert metrics to dictionary."""
        return {
            "duration": self.duration,
            "final_distance": self.final_distance,
            "final_speed": self.final_speed,
            "final_angular_speed": self.final_angular_speed,
            "max_speed": self.max_speed,
            "phase_order": list(self.phase_order),
            "phase_durations": dict(self.phase_durations),
            "phase_order_ok": self.phase_order_ok,
            "success": self.success,
        }


def compute_phase_durations(
    phase_history: list[tuple[float, str]], end_time: float
) -> dict[str, float]:
    """
    Compute time spent in each phase.

    Args:
        phase_history: (entry_time, phase_name) pairs in order.
        end_time: Time at which the last phase ends.

    Returns:
        Mapping of phase name to accumulated seconds.
    """
    durations: dict[str, float] = {}
    for idx, (start, name) in enumerate(phase_history):
        end = phase_history[idx + 1][0] if idx + 1 < len(phase_history) else end_time
        durations[name] = durations.get(name, 0.0) + max(end - start, 0.0)
    return durations


def compute_maneuver_metrics(
    history: list[dict],
    phase_history: list[tuple[float, str]],
    target_position,
    criteria: SuccessCriteria | None = None,
) -> ManeuverMetrics:
    """
    Compute all metrics for a single maneuver run.

    Args:
        history: Recorded state dictionaries with keys:
            - time: simulation time
            - position: (3,) position
            - velocity: (3,) linear velocity
            - angular_velocity: (3,) angular velocity
        phase_history: (entry_time, phase_name) pairs in order.
        target_position: Final target position [x, y, z].
        criteria: Success criteria configuration.

    Returns:
        ManeuverMetrics with computed values.
    """
    if criteria is None:
        criteria = SuccessCriteria()

    if not history:
        logger.warning("No recorded history, metrics are empty")
        return ManeuverMetrics()

    times = np.array([h["time"] for h in history])
    positions = np.array([h["position"] for h in history])
    velocities = np.array([h["velocity"] for h in history])
    angular = np.array([h["angular_velocity"] for h in history])

    speeds = np.linalg.norm(velocities, axis=1)
    duration = float(times[-1])
    final_distance = float(np.linalg.norm(np.asarray(target_position) - positions[-1]))
    final_speed = float(speeds[-1])
    final_angular_speed = float(np.linalg.norm(angular[-1]))

    phase_order = [name for _, name in phase_history]
    phase_order_ok = tuple(phase_order) == EXPECTED_PHASE_ORDER

    success = (
        final_distance <= criteria.stopping_distance
        and final_speed <= criteria.max_final_speed
        and final_angular_speed <= criteria.max_final_angular_speed
        and (phase_order_ok or not criteria.require_phase_order)
    )

    return ManeuverMetrics(
        duration=duration,
        final_distance=final_distance,
        final_speed=final_speed,
        final_angular_speed=final_angular_speed,
        max_speed=float(np.max(speeds)),
        phase_order=phase_order,
        phase_durations=compute_phase_durations(phase_history, duration),
        phase_order_ok=phase_order_ok,
        success=success,
    )


def format_metrics_report(metrics: ManeuverMetrics) -> str:
    """
    Format maneuver metrics as human-readable report.

    Args:
        metrics: ManeuverMetrics to format.

    Returns:
        Formatted string report.
    """
    lines = [
        "=" * 60,
        "MANEUVER SUMMARY",
        "=" * 60,
        "",
        f"Duration: {metrics.duration:.2f}s",
        f"Final Distance: {metrics.final_distance:.3f}m",
        f"Final Speed: {metrics.final_speed:.3f}m/s",
        f"Final Angular Speed: {metrics.final_angular_speed:.4f}rad/s",
        f"Max Speed: {metrics.max_speed:.3f}m/s",
        "",
        "Phases:",
    ]
    for name in metrics.phase_order:
        lines.append(f"  {name:<30} {metrics.phase_durations.get(name, 0.0):8.2f}s")
    if not metrics.phase_order:
        lines.append("  N/A")
    lines += [
        "",
        f"SUCCESS CRITERIA MET: {'YES' if metrics.success else 'NO'}",
        "=" * 60,
    ]
    return "\n".join(lines)
