"""
Activation Functions for Fully Connected Networks

This module implements the nonlinearities a layer can apply to its
pre-activation Z, together with their derivatives. Derivatives are evaluated
at Z (not at the activation output), because that is what each layer caches
during the forward pass.

All functions operate on (units, samples) matrices and return new float32
arrays.

Functions:
    linear / linear_derivative: Identity activation
    relu / relu_derivative: Rectified Linear Unit
    sigmoid / sigmoid_derivative: Logistic function
    tanh / tanh_derivative: Hyperbolic tangent
    softmax: Column-wise probability distribution (output layer only)

Classes:
    Activation: Closed set of activation kinds, each carrying its forward
                function, derivative, and weight-initialization scale
"""

from enum import Enum
from typing import Callable, Dict, Union

import numpy as np

from fcnet.exceptions import InvalidConfigurationError
from fcnet.matrix import as_matrix, ones_like


def linear(z: np.ndarray) -> np.ndarray:
    """Identity activation: returns a copy of Z."""
    return as_matrix(z).copy()


def linear_derivative(z: np.ndarray) -> np.ndarray:
    """Derivative of the identity: all ones with Z's shape."""
    return ones_like(z)


def relu(z: np.ndarray) -> np.ndarray:
    """
    Compute ReLU (Rectified Linear Unit) activation.

    Mathematical Formula:
        ReLU(z) = max(0, z)

    Args:
        z: Pre-activation matrix of any 2D shape.

    Returns:
        Matrix of the same shape with negative entries set to zero.

    Example:
        >>> relu(np.array([[-2.0, 0.0, 3.0]]))
        array([[0., 0., 3.]], dtype=float32)
    """
    z = as_matrix(z)
    return np.maximum(z, 0).astype(np.float32)


def relu_derivative(z: np.ndarray) -> np.ndarray:
    """
    Compute the derivative of ReLU at Z.

    The derivative is 1 where z > 0 and 0 elsewhere. ReLU is not
    differentiable at z = 0; we use 0 as the subgradient there.
    """
    z = as_matrix(z)
    return (z > 0).astype(np.float32)


def sigmoid(z: np.ndarray) -> np.ndarray:
    """
    Compute the logistic sigmoid.

    Mathematical Formula:
        sigmoid(z) = 1 / (1 + exp(-z))

    For very negative z, exp(-z) overflows to inf in float32 and the result
    correctly becomes 0, so the overflow warning is suppressed.
    """
    z = as_matrix(z)
    with np.errstate(over="ignore"):
        return (1.0 / (1.0 + np.exp(-z))).astype(np.float32)


def sigmoid_derivative(z: np.ndarray) -> np.ndarray:
    """
    Compute the derivative of sigmoid at Z.

    Mathematical Formula:
        sigmoid'(z) = s * (1 - s), where s = sigmoid(z)
    """
    s = sigmoid(z)
    return s * (1.0 - s)


def tanh(z: np.ndarray) -> np.ndarray:
    """Compute the hyperbolic tangent elementwise."""
    z = as_matrix(z)
    return np.tanh(z)


def tanh_derivative(z: np.ndarray) -> np.ndarray:
    """
    Compute the derivative of tanh at Z.

    Mathematical Formula:
        tanh'(z) = 1 - tanh(z)^2
    """
    t = tanh(z)
    return 1.0 - t * t


def softmax(z: np.ndarray) -> np.ndarray:
    """
    Compute softmax independently for every column of Z.

    Each column holds the output-layer logits of one sample, so each column
    is turned into a probability distribution over the classes.

    Mathematical Formula:
        softmax(z)_ij = exp(z_ij) / sum_k(exp(z_kj))

    Numerical Stability:
        We subtract the column maximum before exponentiation to prevent
        overflow. This doesn't change the result because:
        exp(z_i - max) / sum(exp(z_k - max)) = exp(z_i) / sum(exp(z_k))

    Args:
        z: Logits of shape (classes, samples).

    Returns:
        probabilities: Same shape as Z; every column sums to 1.

    Example:
        >>> probs = softmax(np.array([[1.0], [2.0], [3.0]]))
        >>> probs.ravel()  # [0.09, 0.24, 0.67]
    """
    z = as_matrix(z)

    # Step 1: Subtract the per-column maximum (max entry becomes exp(0) = 1)
    column_max = np.max(z, axis=0, keepdims=True)
    exponentials = np.exp(z - column_max)

    # Step 2: Normalize each column by its own sum
    column_sum = np.sum(exponentials, axis=0, keepdims=True)
    return exponentials / column_sum


def _softmax_derivative(z: np.ndarray) -> np.ndarray:
    raise InvalidConfigurationError(
        "softmax has no standalone derivative; its gradient is combined with "
        "cross-entropy as (A - one_hot(Y)) at the output layer"
    )


class Activation(Enum):
    """
    Closed set of activation kinds a layer can use.

    Each member dispatches to its forward function and derivative, and knows
    the scale used to initialize the weights feeding into it:
        - ReLU: He initialization, sqrt(2 / fan_in)
        - tanh / sigmoid: Xavier initialization, sqrt(1 / fan_in)
        - everything else: fixed 0.01
    """

    LINEAR = "linear"
    RELU = "relu"
    SIGMOID = "sigmoid"
    TANH = "tanh"
    SOFTMAX = "softmax"

    @classmethod
    def parse(cls, value: Union["Activation", str]) -> "Activation":
        """
        Resolve an activation from a member or a case-insensitive name.

        Raises:
            InvalidConfigurationError: If the name is not a known activation.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            known = ", ".join(member.value for member in cls)
            raise InvalidConfigurationError(
                f"Unknown activation function: {value!r} (expected one of: {known})"
            ) from None

    def forward(self, z: np.ndarray) -> np.ndarray:
        """Apply this activation to Z."""
        return _FORWARD[self](z)

    def derivative(self, z: np.ndarray) -> np.ndarray:
        """Evaluate this activation's derivative at Z."""
        return _DERIVATIVE[self](z)

    def init_scale(self, input_size: int) -> float:
        """Half-width of the uniform weight-initialization interval."""
        if self is Activation.RELU:
            return float(np.sqrt(2.0 / input_size))
        if self in (Activation.TANH, Activation.SIGMOID):
            return float(np.sqrt(1.0 / input_size))
        return 0.01


_FORWARD: Dict[Activation, Callable[[np.ndarray], np.ndarray]] = {
    Activation.LINEAR: linear,
    Activation.RELU: relu,
    Activation.SIGMOID: sigmoid,
    Activation.TANH: tanh,
    Activation.SOFTMAX: softmax,
}

_DERIVATIVE: Dict[Activation, Callable[[np.ndarray], np.ndarray]] = {
    Activation.LINEAR: linear_derivative,
    Activation.RELU: relu_derivative,
    Activation.SIGMOID: sigmoid_derivative,
    Activation.TANH: tanh_derivative,
    Activation.SOFTMAX: _softmax_derivative,
}
