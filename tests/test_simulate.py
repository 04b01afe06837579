"""Tests for the simulation pipeline and command-line entry point."""

import json
from unittest import mock

import pytest

from vehicle_autopilot.autopilot import ControllerGroup, ManeuverPhase
from vehicle_autopilot.simulate import main, parse_args, run_autotune, run_maneuver
from vehicle_autopilot.utils import DataLogger, get_default_config
from vehicle_autopilot.utils.metrics import EXPECTED_PHASE_ORDER


@pytest.fixture
def no_dotenv():
    """Keep a developer's .env file out of the tests."""
    with mock.patch("vehicle_autopilot.utils.load_dotenv"):
        yield


class TestRunManeuver:
    """Tests for run_maneuver."""

    def test_default_maneuver_succeeds(self):
        """Test the default approach stops near the target."""
        config = get_default_config()
        config["max_time"] = 30.0

        result = run_maneuver(config)

        assert result.steps == 1500
        assert result.final_phase is ManeuverPhase.NO_MOVEMENT
        assert tuple(result.metrics.phase_order) == EXPECTED_PHASE_ORDER
        assert result.metrics.success
        assert result.metrics.final_distance < 10.0
        assert result.metrics.duration == pytest.approx(30.0)
        assert result.history[-1]["step"] == 1500

    def test_max_steps_limits_run(self):
        """Test max_steps overrides max_time."""
        result = run_maneuver(max_steps=5)
        assert result.steps == 5
        assert result.final_phase is ManeuverPhase.FORWARD_THRUST_MOVEMENT
        assert not result.metrics.success

    def test_data_logger_receives_ticks(self, tmp_path):
        """Test the optional logger is fed phase and command data."""
        data_logger = DataLogger(tmp_path, experiment_name="steps", log_interval=5)
        run_maneuver(max_steps=20, data_logger=data_logger)

        assert len(data_logger.data) == 4
        entry = data_logger.data[-1]
        assert entry["phase"] == "forward_thrust_movement"
        assert set(entry["commands"]) == {"main_thrust", "side_thrust", "up_thrust", "torque"}

    def test_result_to_dict_is_json_serializable(self):
        """Test the result summary can be dumped as JSON."""
        result = run_maneuver(max_steps=10)
        data = json.loads(json.dumps(result.to_dict()))
        assert data["steps"] == 10
        assert data["phase_history"][0] == [0.0, "turn_towards_target"]
        assert data["target_position"] == [0.0, 0.0, 100.0]

    def test_invalid_config_raises(self):
        """Test invalid autopilot settings raise ValueError."""
        config = get_default_config()
        config["autopilot"]["reverse_thrust_policy"] = "reverse"
        with pytest.raises(ValueError, match="reverse_thrust_policy"):
            run_maneuver(config, max_steps=1)


class TestRunAutotune:
    """Tests for run_autotune."""

    def test_high_gain_loop_is_tuned(self):
        """Test an oscillating main thrust loop yields Ziegler-Nichols gains."""
        config = get_default_config()
        config["controllers"]["main_thrust"]["p"] = 75.0

        outcome = run_autotune(config, ControllerGroup.MAIN_THRUST, setpoint=1.05)

        assert outcome.tuned
        assert outcome.result.ultimate_gain == pytest.approx(75.0)
        assert outcome.result.oscillation_period == pytest.approx(0.02)
        assert outcome.gains.p == pytest.approx(45.0)
        assert outcome.gains.i == pytest.approx(4500.0)
        assert outcome.gains.d == pytest.approx(0.1125)
        assert outcome.elapsed < 1.0
        assert json.loads(json.dumps(outcome.to_dict()))["group"] == "main_thrust"

    def test_damped_loop_times_out(self):
        """Test a loop that never oscillates is abandoned at the timeout."""
        config = get_default_config()
        config["autotune"]["timeout"] = 2.0

        outcome = run_autotune(config, ControllerGroup.SIDE_THRUST, setpoint=1.05)

        assert not outcome.tuned
        assert outcome.result is None
        assert outcome.elapsed == pytest.approx(2.0, abs=0.05)

    def test_step_limit_stops_autotune(self, caplog):
        """Test hitting max_steps stops the tuner with a warning."""
        outcome = run_autotune(group=ControllerGroup.TORQUE, max_steps=10)
        assert not outcome.tuned
        assert outcome.elapsed == pytest.approx(0.2)
        assert "step limit" in caplog.text


class TestCommandLine:
    """Tests for the simulate entry point."""

    def test_parse_args_defaults(self):
        """Test default argument values."""
        args = parse_args([])
        assert args.config is None
        assert args.target is None
        assert not args.plots

    def test_parse_target_vector(self):
        """Test --target accepts x,y,z."""
        args = parse_args(["--target", "10, 0, 50"])
        assert args.target == [10.0, 0.0, 50.0]

    def test_parse_rejects_bad_vector(self):
        """Test a malformed --target exits with a usage error."""
        with pytest.raises(SystemExit):
            parse_args(["--target", "1,2"])

    def test_verbosity_flags_are_exclusive(self):
        """Test -v and -q cannot be combined."""
        with pytest.raises(SystemExit):
            parse_args(["-v", "-q"])

    def test_main_writes_outputs(self, tmp_path, no_dotenv, capsys):
        """Test a successful run returns 0 and writes summary, log and plots."""
        code = main(
            ["--max-time", "30", "-q", "--output-dir", str(tmp_path), "--plots"]
        )

        assert code == 0
        assert "MANEUVER SUMMARY" in capsys.readouterr().out
        summary = json.loads((tmp_path / "maneuver_summary.json").read_text())
        assert summary["final_phase"] == "no_movement"
        assert summary["metrics"]["success"]
        for name in ("maneuver_steps.json", "trajectory.png", "speed.png", "phases.png"):
            assert (tmp_path / name).exists()

    def test_main_short_run_fails(self, no_dotenv):
        """Test a run too short to settle returns 1."""
        assert main(["--max-time", "2", "-q"]) == 1

    def test_main_missing_config_returns_error(self, no_dotenv):
        """Test a missing config file returns 1."""
        assert main(["--config", "/nonexistent/config.yaml", "-q"]) == 1

    def test_main_uses_config_file(self, tmp_path, no_dotenv):
        """Test values from --config reach the run."""
        path = tmp_path / "config.yaml"
        path.write_text("max_time: 1.0\n")
        with mock.patch(
            "vehicle_autopilot.simulate.run_maneuver", wraps=run_maneuver
        ) as runner:
            assert main(["--config", str(path), "-q"]) == 1
        assert runner.call_args.args[0]["max_time"] == 1.0
