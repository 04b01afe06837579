"""Tests for the thruster agent and autopilot configuration."""

import math

import numpy as np
import pytest

from vehicle_autopilot.autopilot import (
    AutopilotConfig,
    ControllerGroup,
    ControllerSettings,
    ForceMode,
    ReverseThrustPolicy,
    ThrusterAgent,
)
from vehicle_autopilot.controllers import GainSet
from vehicle_autopilot.env import EnvConfig, RigidBodyEnv, VehicleParams
from vehicle_autopilot.utils.quaternion import Quaternion


def _body(**vehicle) -> RigidBodyEnv:
    env = RigidBodyEnv(EnvConfig(vehicle=VehicleParams(**vehicle)))
    env.reset()
    return env


class TestAutopilotConfig:
    """Tests for AutopilotConfig parsing and validation."""

    def test_defaults(self):
        """Test default gains and maneuver thresholds."""
        config = AutopilotConfig()
        assert config.torque.gains.p == 12.5
        assert config.main_thrust.output_limit == 5.0
        assert config.reverse_thrust_policy == "mirror"
        assert config.force_mode is ForceMode.FORCE
        assert config.stopping_distance == 10.0
        assert config.position_hold.gains.p == 0.5
        assert config.position_hold.output_limit == 2.0

    def test_from_dict_merges_partial_sections(self):
        """Test missing keys fall back to defaults per controller group."""
        config = AutopilotConfig.from_dict(
            {
                "autopilot": {"cruise_speed": 4.0, "force_mode": "acceleration"},
                "controllers": {"torque": {"p": 3.0}},
                "autotune": {"timeout": 5.0},
            }
        )
        assert config.cruise_speed == 4.0
        assert config.force_mode is ForceMode.ACCELERATION
        assert config.torque.gains.p == 3.0
        assert config.torque.gains.d == 0.2
        assert config.torque.output_limit == 100.0
        assert config.autotune_timeout == 5.0

    def test_roundtrip(self):
        """Test from_dict(to_dict()) reproduces the config."""
        config = AutopilotConfig(reverse_thrust_policy="suppress", cruise_speed=7.0)
        assert AutopilotConfig.from_dict(config.to_dict()) == config

    @pytest.mark.parametrize(
        "kwargs, match",
        [
            ({"reverse_thrust_policy": "brake"}, "reverse_thrust_policy"),
            ({"force_mode": "teleport"}, "force_mode"),
            ({"cruise_speed": 0.0}, "cruise_speed"),
            ({"max_deceleration_distance_percent": 120.0}, "max_deceleration"),
            ({"stopping_distance": -1.0}, "stopping_distance"),
            ({"alignment_tolerance": 1.0}, "alignment_tolerance"),
            ({"autotune_timeout": 0.0}, "autotune_timeout"),
        ],
    )
    def test_invalid_values_raise(self, kwargs, match):
        """Test that invalid configuration raises ValueError."""
        with pytest.raises(ValueError, match=match):
            AutopilotConfig(**kwargs)

    def test_non_finite_gain_in_dict_raises(self):
        """Test that a NaN gain in a config section raises ValueError."""
        with pytest.raises(ValueError, match="must be finite"):
            AutopilotConfig.from_dict({"controllers": {"main_thrust": {"p": math.nan}}})

    def test_controller_settings_validation(self):
        """Test output_limit must be positive."""
        with pytest.raises(ValueError, match="output_limit"):
            ControllerSettings(GainSet(p=1.0), output_limit=0.0)


class TestThrusterAgent:
    """Tests for thrust and torque actuation."""

    def test_requires_body(self):
        """Test that a missing body raises ValueError."""
        with pytest.raises(ValueError, match="physics body"):
            ThrusterAgent(None)

    def test_accepts_config_dict(self):
        """Test the agent builds its config from a dictionary."""
        agent = ThrusterAgent(_body(), {"autopilot": {"reverse_thrust_policy": "suppress"}})
        assert agent.reverse_thrust_policy is ReverseThrustPolicy.SUPPRESS

    def test_up_thruster_shares_side_gains(self):
        """Test the up and side loops reference the same gain set."""
        agent = ThrusterAgent(_body())
        assert agent.up_thrust_controller.gains is agent.side_thrust_controller.gains
        assert agent.up_thrust_controller is not agent.side_thrust_controller

    def test_main_thrust_pushes_forward(self):
        """Test positive main thrust accelerates along local forward."""
        rotation = Quaternion.from_axis_angle([0.0, 1.0, 0.0], math.pi / 2)
        body = _body(initial_rotation=tuple(rotation.as_array()))
        agent = ThrusterAgent(body)
        thrust = agent.update_main_thrust(0.0, 1.0, 0.02)
        assert thrust == pytest.approx(2.0)
        body.step(0.1)
        velocity, _ = body.get_velocity()
        # Local forward is world +X after a quarter turn about Y
        assert np.allclose(velocity, [0.2, 0.0, 0.0])

    def test_mirror_policy_pushes_backward(self):
        """Test MIRROR applies negative thrust along local backward."""
        body = _body(initial_velocity=(0.0, 0.0, 1.0))
        agent = ThrusterAgent(body)
        thrust = agent.update_main_thrust(1.0, 0.0, 0.02)
        assert thrust < 0.0
        body.step(0.1)
        velocity, _ = body.get_velocity()
        assert velocity[2] < 1.0

    def test_suppress_policy_drops_negative_thrust(self):
        """Test SUPPRESS applies nothing for negative commands."""
        body = _body(initial_velocity=(0.0, 0.0, 1.0))
        agent = ThrusterAgent(body, AutopilotConfig(reverse_thrust_policy="suppress"))
        assert agent.update_main_thrust(1.0, 0.0, 0.02) == 0.0
        body.step(0.1)
        velocity, _ = body.get_velocity()
        assert velocity[2] == pytest.approx(1.0)

    def test_suppress_policy_keeps_positive_thrust(self):
        """Test SUPPRESS leaves forward thrust alone."""
        agent = ThrusterAgent(_body(), AutopilotConfig(reverse_thrust_policy="suppress"))
        assert agent.update_main_thrust(0.0, 1.0, 0.02) > 0.0

    def test_side_and_up_thrust_directions(self):
        """Test side thrust acts along local right and up thrust along local up."""
        body = _body()
        agent = ThrusterAgent(body)
        agent.update_side_thrust(0.0, 1.0, 0.02)
        agent.update_up_thrust(0.0, -1.0, 0.02)
        body.step(0.1)
        velocity, _ = body.get_velocity()
        assert velocity[0] > 0.0
        assert velocity[1] < 0.0
        assert velocity[2] == pytest.approx(0.0)

    def test_multipliers_and_modifier(self):
        """Test output is scaled by the multiplier and the modifier."""
        config = AutopilotConfig(main_thrust_multiplier=0.5)
        agent = ThrusterAgent(_body(), config)
        assert agent.update_main_thrust(0.0, 1.0, 0.02, modifier=0.5) == pytest.approx(0.5)
        assert agent.last_main_thrust == pytest.approx(0.5)

    def test_force_mode_is_forwarded(self):
        """Test the configured force mode reaches the body."""
        body = _body(mass=4.0)
        agent = ThrusterAgent(body, AutopilotConfig(force_mode="acceleration"))
        agent.update_main_thrust(0.0, 1.0, 0.02)
        body.step(0.1)
        velocity, _ = body.get_velocity()
        # ACCELERATION ignores mass
        assert velocity[2] == pytest.approx(0.2)

    def test_torque_turns_toward_target(self):
        """Test update_torque applies torque about the error axis."""
        body = _body()
        agent = ThrusterAgent(body)
        target = Quaternion.from_axis_angle([0.0, 1.0, 0.0], 0.5)
        torque = agent.update_torque(target, 0.02)
        assert torque[1] > 0.0
        assert np.allclose(agent.last_torque, torque)
        body.step(0.02)
        _, angular = body.get_velocity()
        assert angular[1] > 0.0

    def test_torque_rate_brakes_spin(self):
        """Test update_torque_rate opposes the current angular velocity."""
        body = _body(initial_angular_velocity=(0.0, 0.0, 2.0))
        agent = ThrusterAgent(body)
        torque = agent.update_torque_rate(np.zeros(3), 0.02)
        assert torque[2] < 0.0

    def test_hold_position_commands_velocity_toward_target(self):
        """Test the hold setpoint points at the target and is bounded."""
        body = _body()
        agent = ThrusterAgent(body)
        setpoint = agent.hold_position([0.0, 0.0, 0.0], [1.0, -10.0, 0.0], 0.02)
        assert np.allclose(setpoint, [0.5, -2.0, 0.0])
        velocity, _ = body.get_velocity()
        assert np.allclose(velocity, 0.0)
        assert agent.last_main_thrust == 0.0

    def test_hold_position_at_target_is_zero(self):
        """Test the hold setpoint vanishes on the target."""
        agent = ThrusterAgent(_body())
        assert np.allclose(agent.hold_position([3.0, 1.0, 2.0], [3.0, 1.0, 2.0], 0.02), 0.0)

    def test_reset_clears_controllers(self):
        """Test reset clears every loop's integrator."""
        config = AutopilotConfig.from_dict(
            {"controllers": {"side_thrust": {"i": 1.0}, "position_hold": {"i": 1.0}}}
        )
        agent = ThrusterAgent(_body(), config)
        agent.update_side_thrust(0.0, 1.0, 0.1)
        agent.hold_position([0.0, 0.0, 0.0], [0.0, 0.0, 1.0], 0.1)
        assert agent.side_thrust_controller.integral != 0.0
        assert agent.position_controller.controllers[2].integral != 0.0
        agent.reset()
        assert agent.side_thrust_controller.integral == 0.0
        assert agent.position_controller.controllers[2].integral == 0.0


class TestAgentGainsAndTuning:
    """Tests for gain edits and autotune hosting."""

    def test_change_p_value(self):
        """Test change_p_value edits the live gain set."""
        agent = ThrusterAgent(_body())
        assert agent.change_p_value(1.5, ControllerGroup.MAIN_THRUST) == pytest.approx(3.5)
        assert agent.main_thrust_controller.gains.p == pytest.approx(3.5)

    def test_change_p_value_rejects_non_finite(self):
        """Test a non-finite P edit raises ValueError."""
        agent = ThrusterAgent(_body())
        with pytest.raises(ValueError, match="must be finite"):
            agent.change_p_value(math.inf, ControllerGroup.TORQUE)

    def test_gains_for_each_group(self):
        """Test gains_for returns the live gain set of each group."""
        agent = ThrusterAgent(_body())
        assert agent.gains_for(ControllerGroup.MAIN_THRUST) is agent.config.main_thrust.gains
        assert agent.gains_for(ControllerGroup.SIDE_THRUST) is agent.config.side_thrust.gains
        assert agent.gains_for(ControllerGroup.TORQUE) is agent.torque_controller.gains

    def test_update_advances_clock(self):
        """Test update accumulates elapsed time and validates dt."""
        agent = ThrusterAgent(_body())
        agent.update(0.25)
        agent.update(0.25)
        assert agent.elapsed_time == pytest.approx(0.5)
        with pytest.raises(ValueError, match="dt must be"):
            agent.update(0.0)

    def test_autotune_zeroes_i_and_d(self):
        """Test a running autotune keeps the loop P-only."""
        agent = ThrusterAgent(_body())
        agent.start_autotuning(ControllerGroup.MAIN_THRUST)
        agent.update(0.02)
        gains = agent.gains_for(ControllerGroup.MAIN_THRUST)
        assert gains.i == 0.0
        assert gains.d == 0.0
        assert agent.is_autotuning

    def test_autotune_timeout(self, caplog):
        """Test an autotune without oscillation is abandoned with a warning."""
        agent = ThrusterAgent(_body(), AutopilotConfig(autotune_timeout=0.1))
        agent.start_autotuning(ControllerGroup.SIDE_THRUST)
        for _ in range(10):
            assert agent.update(0.02) is False
        assert not agent.is_autotuning
        assert agent.last_tuning_result is None
        assert "timed out" in caplog.text

    def test_autotune_completes_on_oscillation(self):
        """Test a sign-alternating loop error completes the autotune."""
        agent = ThrusterAgent(_body())
        agent.start_autotuning(ControllerGroup.MAIN_THRUST)
        completed = []
        for velocity in [2.0, 0.0, 2.0]:
            agent.update_main_thrust(velocity, 1.0, 0.02)
            completed.append(agent.update(0.02))
        assert completed == [False, False, True]
        assert not agent.is_autotuning
        result = agent.last_tuning_result
        assert result.ultimate_gain == pytest.approx(2.0)
        assert result.oscillation_period == pytest.approx(0.02)
        assert agent.gains_for(ControllerGroup.MAIN_THRUST).p == pytest.approx(1.2)

    def test_replacing_autotune(self):
        """Test starting a second autotune replaces the first."""
        agent = ThrusterAgent(_body())
        first = agent.start_autotuning(ControllerGroup.MAIN_THRUST)
        second = agent.start_autotuning(ControllerGroup.TORQUE)
        assert first is not second
        assert agent.autotuner is second
        agent.stop_autotuning()
        assert not agent.is_autotuning
