#!/usr/bin/env python3
"""
Relay Auto-Tuning CLI Script

This script runs the Ziegler-Nichols relay experiment on one of the autopilot
loops in the reference environment. The tuner never raises P on its own, so
the script does it: every attempt that times out without oscillating is
retried with P increased by --p-step, up to --max-attempts.

Usage Examples:
    # Tune the main thruster starting from P=2
    python scripts/relay_autotune.py --group main_thrust

    # Start higher and step faster
    python scripts/relay_autotune.py --group main_thrust --p 50 --p-step 25

    # Tune the torque loop around a yaw-rate setpoint
    python scripts/relay_autotune.py --group torque --setpoint 0.5

Environment Variables:
    TUNING_OUTPUT_DIR: Override default output directory for tuning results
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

# Add src to path for local development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from vehicle_autopilot.autopilot import ControllerGroup
from vehicle_autopilot.simulate import run_autotune
from vehicle_autopilot.utils import load_config

logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Relay-autotune an autopilot control loop",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/relay_autotune.py --group main_thrust --p 50 --p-step 25
  python scripts/relay_autotune.py --group torque --setpoint 0.5
        """,
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to YAML/JSON configuration file",
    )
    parser.add_argument(
        "--group",
        type=str,
        choices=[g.value for g in ControllerGroup],
        default=ControllerGroup.MAIN_THRUST.value,
        help="Controller group to tune (default: main_thrust)",
    )
    parser.add_argument(
        "--setpoint",
        type=float,
        default=1.05,
        help="Setpoint tracked during the experiment (default: 1.05)",
    )
    parser.add_argument(
        "--p",
        type=float,
        help="Starting proportional gain (default: configured value)",
    )
    parser.add_argument(
        "--p-step",
        type=float,
        default=10.0,
        help="P increase after an attempt without oscillation (default: 10.0)",
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        default=10,
        help="Maximum number of attempts (default: 10)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Seconds per attempt before giving up (default: configured value)",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=os.getenv("TUNING_OUTPUT_DIR", "reports/tuning"),
        help="Output directory for tuning results (default: reports/tuning)",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Suppress non-essential output",
    )

    return parser.parse_args()


def main() -> int:
    """Main entry point."""
    args = parse_args()

    level = logging.DEBUG if args.verbose else logging.WARNING if args.quiet else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config)
    except (FileNotFoundError, PermissionError, ValueError) as e:
        logger.error("Failed to load config file: %s", e)
        return 1

    if args.max_attempts < 1:
        logger.error("--max-attempts must be >= 1")
        return 1

    group = ControllerGroup(args.group)
    section = config["controllers"].setdefault(group.value, {})
    if args.p is not None:
        section["p"] = args.p
    if args.timeout is not None:
        config["autotune"]["timeout"] = args.timeout
    # Each attempt is bounded by the autotune timeout
    config["max_time"] = config["autotune"]["timeout"] + 1.0
    config["simulation"].pop("max_time", None)

    outcome = None
    for attempt in range(1, args.max_attempts + 1):
        logger.info(
            "Attempt %d/%d: %s with P=%.4f",
            attempt,
            args.max_attempts,
            group.value,
            section.get("p", 0.0),
        )
        try:
            outcome = run_autotune(config, group=group, setpoint=args.setpoint)
        except ValueError as e:
            logger.error("Invalid configuration: %s", e)
            return 1
        if outcome.tuned:
            break
        section["p"] = section.get("p", 0.0) + args.p_step

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    results_path = output_dir / f"relay_{group.value}.json"
    with open(results_path, "w") as f:
        json.dump(outcome.to_dict(), f, indent=2)

    print("\n" + "=" * 60)
    print("RELAY AUTOTUNE COMPLETE")
    print("=" * 60)
    print(f"Group: {group.value}")
    print(f"Attempts: {attempt}")
    if outcome.tuned:
        result = outcome.result
        print(f"Ultimate gain (Ku): {result.ultimate_gain:.4f}")
        print(f"Oscillation period (Tu): {result.oscillation_period:.4f}s")
        print(
            f"Gains: P={result.gains.p:.4f} I={result.gains.i:.4f} "
            f"D={result.gains.d:.4f}"
        )
    else:
        print("No oscillation observed; raise --p or --p-step")
    print(f"Results saved to: {results_path}")
    print("=" * 60)

    return 0 if outcome.tuned else 1


if __name__ == "__main__":
    sys.exit(main())
