"""
Tests for the parameter update rules.

Tests cover:
- Plain gradient descent
- Classical and smoothed momentum, including velocity accumulation
- Momentum disabled by a zero coefficient or MomentumKind.NONE
- OptimizerConfig validation and MomentumKind parsing
"""

import numpy as np
import pytest


class TestApplyUpdate:
    """
    Test suite for apply_update.

    For parameter theta, gradient g and learning rate lr:
        Classical:  v = mu * v + g;             theta -= lr * v
        Smoothed:   v = mu * v + (1 - mu) * g;  theta -= lr * v
    """

    def test_plain_descent_without_momentum(self):
        from fcnet.optimizer import apply_update

        parameter = np.array([1.0, 2.0], dtype=np.float32)
        velocity = np.zeros(2, dtype=np.float32)

        apply_update(parameter, velocity, np.array([0.5, -0.5], np.float32), 0.2)

        assert np.allclose(parameter, [0.9, 2.1]), f"Got {parameter}"
        assert np.all(velocity == 0), "Velocity should be untouched without momentum"

    def test_classical_momentum_two_steps(self):
        from fcnet.optimizer import MomentumKind, apply_update

        parameter = np.zeros(1, dtype=np.float32)
        velocity = np.zeros(1, dtype=np.float32)
        gradient = np.ones(1, dtype=np.float32)

        apply_update(parameter, velocity, gradient, 0.1, 0.9, MomentumKind.CLASSICAL)
        assert np.isclose(velocity[0], 1.0)
        assert np.isclose(parameter[0], -0.1)

        apply_update(parameter, velocity, gradient, 0.1, 0.9, MomentumKind.CLASSICAL)
        assert np.isclose(velocity[0], 1.9), "v2 = 0.9 * 1 + 1"
        assert np.isclose(parameter[0], -0.29)

    def test_smoothed_momentum_two_steps(self):
        from fcnet.optimizer import MomentumKind, apply_update

        parameter = np.zeros(1, dtype=np.float32)
        velocity = np.zeros(1, dtype=np.float32)
        gradient = np.ones(1, dtype=np.float32)

        apply_update(parameter, velocity, gradient, 0.1, 0.9, MomentumKind.SMOOTHED)
        assert np.isclose(velocity[0], 0.1), "v1 = (1 - 0.9) * 1"

        apply_update(parameter, velocity, gradient, 0.1, 0.9, MomentumKind.SMOOTHED)
        assert np.isclose(velocity[0], 0.19), "v2 = 0.9 * 0.1 + 0.1"
        assert np.isclose(parameter[0], -0.029)

    def test_smoothed_velocity_converges_to_gradient(self):
        """For a constant gradient the smoothed velocity approaches g."""
        from fcnet.optimizer import MomentumKind, apply_update

        parameter = np.zeros(1, dtype=np.float32)
        velocity = np.zeros(1, dtype=np.float32)
        gradient = np.full(1, 3.0, dtype=np.float32)

        for _ in range(200):
            apply_update(parameter, velocity, gradient, 0.0, 0.9, MomentumKind.SMOOTHED)

        assert np.isclose(velocity[0], 3.0, atol=1e-3)

    def test_none_kind_ignores_coefficient(self):
        from fcnet.optimizer import MomentumKind, apply_update

        parameter = np.ones(1, dtype=np.float32)
        velocity = np.zeros(1, dtype=np.float32)

        apply_update(parameter, velocity, np.ones(1, np.float32), 0.5, 0.9, MomentumKind.NONE)

        assert np.isclose(parameter[0], 0.5)
        assert velocity[0] == 0.0

    def test_zero_learning_rate_leaves_parameter(self):
        from fcnet.optimizer import apply_update

        parameter = np.array([1.0, -1.0], dtype=np.float32)
        velocity = np.zeros(2, dtype=np.float32)

        apply_update(parameter, velocity, np.ones(2, np.float32), 0.0, 0.9)

        assert np.array_equal(parameter, [1.0, -1.0])

    def test_updates_in_place(self):
        from fcnet.optimizer import apply_update

        parameter = np.ones((2, 2), dtype=np.float32)
        reference = parameter

        apply_update(parameter, np.zeros_like(parameter), np.ones_like(parameter), 0.1)

        assert reference is parameter and np.allclose(reference, 0.9)


class TestOptimizerConfig:
    def test_defaults_are_valid(self):
        from fcnet.optimizer import MomentumKind, OptimizerConfig

        config = OptimizerConfig()
        config.validate()

        assert config.momentum_kind is MomentumKind.CLASSICAL
        assert config.momentum_coefficient == 0.0
        assert config.weight_decay == 0.0

    @pytest.mark.parametrize(
        "kwargs", [{"momentum_coefficient": 1.0}, {"momentum_coefficient": -0.1}, {"weight_decay": -1e-4}]
    )
    def test_invalid_values_raise(self, kwargs):
        from fcnet.exceptions import InvalidConfigurationError
        from fcnet.optimizer import OptimizerConfig

        with pytest.raises(InvalidConfigurationError):
            OptimizerConfig(**kwargs).validate()


class TestMomentumKind:
    def test_parse_names(self):
        from fcnet.optimizer import MomentumKind

        assert MomentumKind.parse("Classical") is MomentumKind.CLASSICAL
        assert MomentumKind.parse("smoothed") is MomentumKind.SMOOTHED
        assert MomentumKind.parse(MomentumKind.NONE) is MomentumKind.NONE

    def test_parse_unknown_raises(self):
        from fcnet.exceptions import InvalidConfigurationError
        from fcnet.optimizer import MomentumKind

        with pytest.raises(InvalidConfigurationError, match="nesterov"):
            MomentumKind.parse("nesterov")
