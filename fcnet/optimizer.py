"""
Parameter Update Rules

This module implements the gradient-descent update applied by every layer,
with two optional momentum variants. Weight decay (L2 regularization) is
added to the weight gradient by the layer before the update is applied; see
`Layer.backward`.

Update policies (for parameter theta, gradient g, learning rate lr):
    None:       theta = theta - lr * g
    Classical:  v = mu * v + g;             theta = theta - lr * v
    Smoothed:   v = mu * v + (1 - mu) * g;  theta = theta - lr * v

The smoothed variant is an exponential moving average of the gradient, the
same form used for the first moment in Adam.

Reference:
    - "On the importance of initialization and momentum in deep learning"
      (Sutskever et al., 2013)

Classes:
    MomentumKind: Which momentum policy to use
    OptimizerConfig: Per-network optimizer settings

Functions:
    apply_update: Update a parameter (and its velocity) in place
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union

import numpy as np

from fcnet.exceptions import InvalidConfigurationError


class MomentumKind(Enum):
    """Momentum policy applied in `apply_update`."""

    NONE = "none"
    CLASSICAL = "classical"
    SMOOTHED = "smoothed"

    @classmethod
    def parse(cls, value: Union["MomentumKind", str]) -> "MomentumKind":
        """Resolve a momentum kind from a member or a case-insensitive name."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            known = ", ".join(member.value for member in cls)
            raise InvalidConfigurationError(
                f"Unknown momentum kind: {value!r} (expected one of: {known})"
            ) from None


@dataclass(frozen=True)
class OptimizerConfig:
    """
    Optimizer settings owned by a single Network.

    Attributes:
        momentum_kind: Momentum policy
        momentum_coefficient: mu in the update rules; <= 0 disables momentum
        weight_decay: L2 coefficient added to weight gradients; 0 disables it
    """

    momentum_kind: MomentumKind = MomentumKind.CLASSICAL
    momentum_coefficient: float = 0.0
    weight_decay: float = 0.0

    def validate(self) -> None:
        """Raise InvalidConfigurationError for out-of-range settings."""
        if not 0.0 <= self.momentum_coefficient < 1.0:
            raise InvalidConfigurationError(
                f"momentum_coefficient must be in [0, 1), got {self.momentum_coefficient}"
            )
        if self.weight_decay < 0.0:
            raise InvalidConfigurationError(
                f"weight_decay must be non-negative, got {self.weight_decay}"
            )


def apply_update(
    parameter: np.ndarray,
    velocity: np.ndarray,
    gradient: np.ndarray,
    learning_rate: float,
    momentum_coefficient: float = 0.0,
    momentum_kind: MomentumKind = MomentumKind.CLASSICAL,
) -> None:
    """
    Apply one gradient-descent step to `parameter` in place.

    Args:
        parameter: Parameter array to update (modified in place)
        velocity: Velocity buffer with the parameter's shape (modified in
                  place when momentum is active, untouched otherwise)
        gradient: Gradient of the loss w.r.t. the parameter
        learning_rate: Step size
        momentum_coefficient: mu; values <= 0 select plain gradient descent
        momentum_kind: Classical or smoothed momentum
    """
    if momentum_kind is MomentumKind.NONE or momentum_coefficient <= 0:
        parameter -= learning_rate * gradient
        return

    velocity *= momentum_coefficient
    if momentum_kind is MomentumKind.CLASSICAL:
        velocity += gradient
    else:
        velocity += (1.0 - momentum_coefficient) * gradient

    parameter -= learning_rate * velocity
