"""
Fully Connected Layer

This module implements the one layer type the network is built from: an
affine transform followed by an elementwise (or, at the output, column-wise)
activation. Each layer owns its weights, biases, and momentum velocities,
and caches what it saw during the forward pass for use in the backward pass.

Gradient computation and parameter update are separate calls:
`backward` is pure with respect to the parameters and returns all gradients,
including the one for the previous layer (computed from pre-update weights);
`update_parameters` then mutates the weights in place.

Classes:
    Layer: Dense layer, Z = W @ X + b, A = activation(Z)
    LayerGradients: Result of Layer.backward
"""

from typing import NamedTuple, Optional, Union

import numpy as np

from fcnet import matrix
from fcnet.activations import Activation
from fcnet.exceptions import InvalidConfigurationError, ShapeMismatchError
from fcnet.optimizer import MomentumKind, apply_update


class LayerGradients(NamedTuple):
    """
    Gradients produced by one layer's backward pass.

    Attributes:
        weight_gradient: dL/dW, shape (output_size, input_size)
        bias_gradient: dL/db, shape (output_size, 1)
        input_gradient: dL/dA of the previous layer, shape (input_size, batch)
    """

    weight_gradient: np.ndarray
    bias_gradient: np.ndarray
    input_gradient: np.ndarray


class Layer:
    """
    Fully Connected (Dense) Layer.

    Computes the affine transformation followed by an activation:
        Z = W @ X + b
        A = activation(Z)

    Inputs are laid out as (features, samples), so each column of X is one
    sample and the bias column vector is broadcast across columns.

    Attributes:
        weights: Weight matrix of shape (output_size, input_size)
        biases: Bias column vector of shape (output_size, 1)
        weight_velocity: Momentum buffer with the shape of weights
        bias_velocity: Momentum buffer with the shape of biases
        input: Input seen by the last forward call
        z: Pre-activation from the last forward call
        a: Activation output from the last forward call

    Weight Initialization:
        Uniform in [-scale, scale], where scale depends on the activation
        (He for ReLU, Xavier for tanh/sigmoid, 0.01 otherwise).
        Biases and velocities start at zero.
    """

    def __init__(
        self,
        input_size: int,
        output_size: int,
        activation: Union[Activation, str],
        rng: np.random.Generator,
        name: Optional[str] = None,
    ):
        """
        Initialize a dense layer.

        Args:
            input_size: Number of input features (fan_in)
            output_size: Number of units (fan_out)
            activation: Activation member or name ("relu", "sigmoid", "tanh",
                        "softmax", "linear")
            rng: Random generator used for weight initialization
            name: Optional label used in messages and parameter names

        Raises:
            InvalidConfigurationError: For non-positive sizes or an unknown
                                       activation name.
        """
        if input_size <= 0 or output_size <= 0:
            raise InvalidConfigurationError(
                f"Layer sizes must be positive, got input_size={input_size}, "
                f"output_size={output_size}"
            )

        self.input_size = input_size
        self.output_size = output_size
        self.activation = Activation.parse(activation)
        self.name = name or f"dense_{input_size}x{output_size}"

        init_scale = self.activation.init_scale(input_size)
        self.weights = rng.uniform(
            -init_scale, init_scale, size=(output_size, input_size)
        ).astype(np.float32)
        self.biases = np.zeros((output_size, 1), dtype=np.float32)

        self.weight_velocity = np.zeros_like(self.weights)
        self.bias_velocity = np.zeros_like(self.biases)

        # Cache for backward pass
        self.input: Optional[np.ndarray] = None
        self.z: Optional[np.ndarray] = None
        self.a: Optional[np.ndarray] = None

    def forward(self, input_matrix: np.ndarray) -> np.ndarray:
        """
        Forward pass: A = activation(W @ X + b)

        Args:
            input_matrix: Input of shape (input_size, batch)

        Returns:
            Activation of shape (output_size, batch)

        Raises:
            ShapeMismatchError: If the input has the wrong number of rows.
        """
        input_matrix = matrix.as_matrix(input_matrix)

        self.input = input_matrix
        self.z = matrix.add_bias(matrix.multiply(self.weights, input_matrix), self.biases)
        self.a = self.activation.forward(self.z)

        return self.a

    def backward(
        self,
        upstream_gradient: np.ndarray,
        prev_activation: Optional[np.ndarray] = None,
        batch_size: Optional[int] = None,
        weight_decay: float = 0.0,
    ) -> LayerGradients:
        """
        Backward pass: compute gradients for weights, biases, and input.

        Args:
            upstream_gradient: dL/dA for this layer, shape (output_size, batch).
                For a softmax layer this must already be dL/dZ, i.e. the
                combined softmax + cross-entropy gradient (A - one_hot(Y)).
            prev_activation: Activation of the previous layer (or the network
                input). Defaults to the input cached by forward().
            batch_size: Number of samples to average over. Defaults to the
                number of columns in upstream_gradient.
            weight_decay: L2 coefficient; when > 0, weight_decay * W is added
                to the weight gradient.

        Returns:
            LayerGradients(weight_gradient, bias_gradient, input_gradient)

        Mathematical Derivation:
            Forward: Z = W @ X + b, A = f(Z)

            dZ = dA * f'(Z)              (elementwise)
            dW = dZ @ X^T / m  (+ lambda * W)
            db = sum_columns(dZ) / m
            dX = W^T @ dZ                (with W before any update)
        """
        if self.z is None:
            raise RuntimeError(f"Layer {self.name}: backward() called before forward()")

        upstream_gradient = matrix.as_matrix(upstream_gradient)
        if prev_activation is None:
            prev_activation = self.input
        if batch_size is None:
            batch_size = upstream_gradient.shape[1]

        if self.activation is Activation.SOFTMAX:
            dz = upstream_gradient
        else:
            dz = matrix.multiply_elementwise(
                upstream_gradient, self.activation.derivative(self.z)
            )

        inverse_batch = 1.0 / batch_size
        weight_gradient = matrix.scale(
            matrix.multiply(dz, matrix.transpose(prev_activation)), inverse_batch
        )
        if weight_decay > 0:
            weight_gradient = matrix.add(
                weight_gradient, matrix.scale(self.weights, weight_decay)
            )

        bias_gradient = matrix.scale(matrix.sum_columns(dz), inverse_batch)
        input_gradient = matrix.multiply(matrix.transpose(self.weights), dz)

        return LayerGradients(weight_gradient, bias_gradient, input_gradient)

    def update_parameters(
        self,
        weight_gradient: np.ndarray,
        bias_gradient: np.ndarray,
        learning_rate: float,
        momentum_coefficient: float = 0.0,
        momentum_kind: MomentumKind = MomentumKind.CLASSICAL,
    ) -> None:
        """
        Apply one optimizer step to the weights and biases in place.

        Velocities persist across calls and are only zeroed at construction.

        Raises:
            ShapeMismatchError: If a gradient's shape differs from its parameter.
        """
        if weight_gradient.shape != self.weights.shape:
            raise ShapeMismatchError(
                "update_parameters (weights)", self.weights.shape, weight_gradient.shape
            )
        if bias_gradient.shape != self.biases.shape:
            raise ShapeMismatchError(
                "update_parameters (biases)", self.biases.shape, bias_gradient.shape
            )

        apply_update(
            self.weights,
            self.weight_velocity,
            weight_gradient,
            learning_rate,
            momentum_coefficient,
            momentum_kind,
        )
        apply_update(
            self.biases,
            self.bias_velocity,
            bias_gradient,
            learning_rate,
            momentum_coefficient,
            momentum_kind,
        )

    def get_parameters(self) -> dict:
        """Return dictionary of learnable parameters."""
        return {f"{self.name}.weight": self.weights, f"{self.name}.bias": self.biases}

    def parameter_count(self) -> int:
        """Number of learnable scalars in this layer."""
        return int(self.weights.size + self.biases.size)

    def __repr__(self) -> str:
        return (
            f"Layer(name={self.name!r}, input_size={self.input_size}, "
            f"output_size={self.output_size}, activation={self.activation.value!r})"
        )
