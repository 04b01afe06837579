#!/usr/bin/env python3
"""
Maneuver Simulation Script

This script wires the autopilot to the reference rigid-body environment and
provides a complete run pipeline:
- Build environment, thruster agent, target and maneuver sequencer from config
- Fly the approach-decelerate-hold maneuver with a fixed timestep
- Run a relay autotune on a single controller group
- Compute metrics, print a report, and optionally save logs and plots

Usage:
    vehicle-autopilot-sim
    vehicle-autopilot-sim --config configs/maneuver.yaml --plots
    python -m vehicle_autopilot.simulate --target 20,0,80 --max-time 40
"""

import argparse
import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np

from vehicle_autopilot.autopilot import (
    AutopilotConfig,
    ControllerGroup,
    ManeuverPhase,
    ManeuverSequencer,
    ThrusterAgent,
)
from vehicle_autopilot.controllers import GainSet, TuningResult
from vehicle_autopilot.env import EnvConfig, RigidBodyEnv, TargetMotion
from vehicle_autopilot.utils import (
    DataLogger,
    Plotter,
    get_default_config,
    load_config,
)
from vehicle_autopilot.utils.coordinate_frame import world_to_local
from vehicle_autopilot.utils.metrics import (
    ManeuverMetrics,
    SuccessCriteria,
    compute_maneuver_metrics,
    format_metrics_report,
)

logger = logging.getLogger(__name__)


@dataclass
class ManeuverResult:
    """
    Outcome of a simulated maneuver.

    Attributes:
        history: Recorded vehicle states (plus the final state).
        phase_history: (entry_time, phase_name) pairs in order.
        final_phase: Phase the sequencer ended in.
        steps: Number of ticks simulated.
        target_position: Target position at the end of the run.
        metrics: Computed maneuver metrics.
    """

    history: list[dict]
    phase_history: list[tuple[float, str]]
    final_phase: ManeuverPhase
    steps: int
    target_position: np.ndarray
    metrics: ManeuverMetrics = field(default_factory=ManeuverMetrics)

    def to_dict(self) -> dict:
        return {
            "phase_history": [[t, name] for t, name in self.phase_history],
            "final_phase": self.final_phase.value,
            "steps": self.steps,
            "target_position": self.target_position.tolist(),
            "metrics": self.metrics.to_dict(),
        }


@dataclass
class AutotuneOutcome:
    """
    Outcome of a simulated relay autotune.

    Attributes:
        group: Controller group that was tuned.
        tuned: Whether the tuner observed a full oscillation.
        result: Tuning result when tuned.
        gains: Gain set after the run (tuned gains when successful).
        elapsed: Simulated seconds spent.
    """

    group: ControllerGroup
    tuned: bool
    result: TuningResult | None
    gains: GainSet
    elapsed: float

    def to_dict(self) -> dict:
        return {
            "group": self.group.value,
            "tuned": self.tuned,
            "result": self.result.to_dict() if self.result else None,
            "gains": self.gains.to_dict(),
            "elapsed": self.elapsed,
        }


def _build(config: dict) -> tuple[EnvConfig, RigidBodyEnv, ThrusterAgent]:
    env_config = EnvConfig.from_dict(config)
    env = RigidBodyEnv(env_config)
    env.reset()
    agent = ThrusterAgent(env, AutopilotConfig.from_dict(config))
    return env_config, env, agent


def run_maneuver(
    config: dict | None = None,
    max_steps: int | None = None,
    data_logger: DataLogger | None = None,
    criteria: SuccessCriteria | None = None,
) -> ManeuverResult:
    """
    Fly one maneuver on the reference environment.

    Each tick calls sequencer.update(dt) and then env.step(dt).

    Args:
        config: Configuration dictionary; missing keys take the defaults.
        max_steps: Tick limit; max_time / dt if None.
        data_logger: Optional logger receiving every tick.
        criteria: Success criteria; stopping distance taken from config if None.

    Returns:
        ManeuverResult with history, phases and metrics.
    """
    config = config if config is not None else get_default_config()
    env_config, env, agent = _build(config)
    target = TargetMotion(env_config.target, clock=lambda: env.time)
    sequencer = ManeuverSequencer(env, agent, target)

    dt = env_config.simulation.dt
    if max_steps is None:
        max_steps = int(round(env_config.simulation.max_time / dt))

    sequencer.enter()
    phase = sequencer.phase
    steps = 0
    for steps in range(1, max_steps + 1):
        phase = sequencer.update(dt)
        state = env.step(dt)
        if data_logger is not None:
            data_logger.log(
                state,
                phase.value,
                {
                    "main_thrust": agent.last_main_thrust,
                    "side_thrust": agent.last_side_thrust,
                    "up_thrust": agent.last_up_thrust,
                    "torque": agent.last_torque,
                },
            )

    history = env.get_history()
    if not history or history[-1]["step"] != env.state["step"]:
        history.append(env.state)

    phase_history = [(t, p.value) for t, p in sequencer.phase_history]
    target_position = target.get_target_pose().position

    if criteria is None:
        criteria = SuccessCriteria(
            stopping_distance=agent.config.stopping_distance
        )
    metrics = compute_maneuver_metrics(history, phase_history, target_position, criteria)

    logger.info(
        "Maneuver finished after %d steps in phase %s (distance %.2fm)",
        steps,
        phase.name,
        metrics.final_distance,
    )

    return ManeuverResult(
        history=history,
        phase_history=phase_history,
        final_phase=phase,
        steps=steps,
        target_position=np.asarray(target_position),
        metrics=metrics,
    )


def run_autotune(
    config: dict | None = None,
    group: ControllerGroup = ControllerGroup.MAIN_THRUST,
    setpoint: float = 1.0,
    max_steps: int | None = None,
) -> AutotuneOutcome:
    """
    Relay-autotune one controller group on the reference environment.

    The group's loop tracks a constant setpoint: forward velocity for main
    thrust, right velocity for side thrust, yaw rate for torque. The run ends
    when the tuner completes, times out, or max_steps is reached.

    Args:
        config: Configuration dictionary; missing keys take the defaults.
        group: Controller group to tune.
        setpoint: Constant setpoint of the tuned loop.
        max_steps: Tick limit; max_time / dt if None.

    Returns:
        AutotuneOutcome.
    """
    config = config if config is not None else get_default_config()
    env_config, env, agent = _build(config)

    dt = env_config.simulation.dt
    if max_steps is None:
        max_steps = int(round(env_config.simulation.max_time / dt))

    agent.start_autotuning(group)
    for _ in range(max_steps):
        _, rotation = env.get_pose()
        velocity, _ = env.get_velocity()
        local_velocity = world_to_local(rotation, velocity)

        if group is ControllerGroup.MAIN_THRUST:
            agent.update_main_thrust(local_velocity[2], setpoint, dt)
        elif group is ControllerGroup.SIDE_THRUST:
            agent.update_side_thrust(local_velocity[0], setpoint, dt)
        else:
            agent.update_torque_rate((0.0, setpoint, 0.0), dt)

        agent.update(dt)
        env.step(dt)
        if not agent.is_autotuning:
            break
    else:
        logger.warning("Autotune of %s hit the step limit", group.value)
        agent.stop_autotuning()

    result = agent.last_tuning_result
    return AutotuneOutcome(
        group=group,
        tuned=result is not None,
        result=result,
        gains=GainSet(**agent.gains_for(group).to_dict()),
        elapsed=agent.elapsed_time,
    )


def save_outputs(
    result: ManeuverResult,
    output_dir: str | Path,
    plots: bool = False,
) -> Path:
    """
    Write the run summary (and optionally plots) to output_dir.

    Returns:
        Path to the JSON summary.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    summary_path = output_dir / "maneuver_summary.json"
    with open(summary_path, "w") as f:
        json.dump(result.to_dict(), f, indent=2)
    logger.info("Summary saved to %s", summary_path)

    if plots:
        import matplotlib.pyplot as plt

        plotter = Plotter()
        for fig, _ in (
            plotter.plot_trajectory(
                result.history,
                result.target_position,
                save_path=output_dir / "trajectory.png",
            ),
            plotter.plot_speed(
                result.history,
                result.target_position,
                save_path=output_dir / "speed.png",
            ),
            plotter.plot_phase_timeline(
                result.phase_history,
                result.metrics.duration,
                save_path=output_dir / "phases.png",
            ),
        ):
            plt.close(fig)
        logger.info("Plots saved to %s", output_dir)

    return summary_path


def _parse_vector(value: str) -> list[float]:
    """Parse comma-separated vector argument like '0,0,100'."""
    try:
        parts = value.split(",")
        if len(parts) != 3:
            raise ValueError(f"Expected 3 values for [x,y,z], got {len(parts)}")
        return [float(p.strip()) for p in parts]
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid vector format: {value}. {e}")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Simulate the vehicle autopilot maneuver"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to YAML or JSON configuration file",
    )
    parser.add_argument(
        "--target",
        type=_parse_vector,
        help="Target position as x,y,z",
    )
    parser.add_argument(
        "--max-time",
        type=float,
        help="Simulated duration in seconds",
    )
    parser.add_argument(
        "--reverse-thrust-policy",
        type=str,
        choices=["mirror", "suppress"],
        help="What the main thruster does with negative commands",
    )

    # Output options
    parser.add_argument(
        "--output-dir",
        type=str,
        help="Directory for the summary, step log and plots",
    )
    parser.add_argument(
        "--plots",
        action="store_true",
        help="Save trajectory, speed and phase plots (needs --output-dir)",
    )

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Warnings only")

    return parser.parse_args(argv)


def _configure_logging(verbose: bool, quiet: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    _configure_logging(args.verbose, args.quiet)

    try:
        config = load_config(args.config)
    except (FileNotFoundError, PermissionError, ValueError) as e:
        logger.error("Failed to load configuration: %s", e)
        return 1

    if args.target is not None:
        config["target"]["position"] = args.target
    if args.max_time is not None:
        config["max_time"] = args.max_time
        config["simulation"].pop("max_time", None)
    if args.reverse_thrust_policy is not None:
        config["autopilot"]["reverse_thrust_policy"] = args.reverse_thrust_policy

    data_logger = None
    if args.output_dir:
        data_logger = DataLogger(
            output_dir=args.output_dir,
            experiment_name="maneuver_steps",
            log_interval=config["logging"].get("log_interval", 10),
        )

    try:
        result = run_maneuver(config, data_logger=data_logger)
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        return 1

    print(format_metrics_report(result.metrics))

    if args.output_dir:
        data_logger.save()
        save_outputs(result, args.output_dir, plots=args.plots)

    if result.metrics.success:
        logger.info("SUCCESS: vehicle stopped within %.2fm", result.metrics.final_distance)
        return 0
    logger.warning(
        "FAILED: maneuver did not settle (distance %.2fm, speed %.3fm/s)",
        result.metrics.final_distance,
        result.metrics.final_speed,
    )
    return 1


if __name__ == "__main__":
    sys.exit(main())
