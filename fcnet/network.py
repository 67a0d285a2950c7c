"""
Feedforward Network and Training Loop

This module assembles layers into a classifier and trains it with
mini-batch gradient descent:

1. Forward: thread the input through every layer in order
2. Loss: categorical cross-entropy against the true class
3. Backward: seed the output gradient with (A - one_hot(Y)), then walk the
   layers from last to first; each layer computes its gradients from its
   current weights, updates itself, and hands the input gradient back
4. Training loop: per-epoch learning rate, seeded shuffle, mini-batches,
   periodic evaluation, and early stopping on validation accuracy

The (A - one_hot(Y)) shortcut is the closed-form gradient of cross-entropy
through softmax, so the output layer must use softmax.

Classes:
    TrainingConfig: All hyperparameters for one training run
    ProgressSnapshot: Periodic training metrics
    TrainingHistory: Result of Network.train
    Network: Ordered stack of layers with forward/backward/train

Functions:
    one_hot: Encode class indices as (num_classes, num_samples) columns
    cross_entropy_loss: Mean negative log-probability of the true class
    get_predictions: Arg-max class per sample
    get_accuracy: Fraction of correct predictions
    build_network: Construct a network from a list of layer sizes
"""

import time
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, List, Optional, Sequence, Tuple, Union

import numpy as np

from fcnet import matrix
from fcnet.activations import Activation
from fcnet.exceptions import (
    DataIntegrityError,
    InvalidConfigurationError,
    ShapeMismatchError,
)
from fcnet.layers import Layer
from fcnet.optimizer import MomentumKind, OptimizerConfig
from fcnet.scheduler import LearningRateScheduler, ScheduleType
from fcnet.utils import create_batches, print_progress, shuffle_indices, validate_dataset

LOSS_EPSILON = 1e-8
SUPPORTED_LOSSES = ("cross_entropy",)


@dataclass
class TrainingConfig:
    """
    Configuration for one training run.

    Attributes:
        learning_rate: Initial learning rate
        decay_rate: Schedule decay parameter (see LearningRateScheduler)
        step_size: Epochs per step for the step-decay schedule
        epochs: Maximum number of passes over the training data
        batch_size: Samples per mini-batch (the last batch may be smaller)
        schedule_type: Learning rate policy
        momentum_coefficient: Momentum mu; 0 disables momentum
        momentum_kind: Classical or smoothed (EMA) momentum
        weight_decay: L2 coefficient added to weight gradients
        seed: Base seed; epoch e is shuffled with seed + e
        eval_every: Evaluate (and check early stopping) every K epochs
        patience: Stop after this many evaluations without improvement
        min_improvement: Validation gain required to count as improvement
        cosine_horizon: Cosine schedule length; defaults to epochs
        verbose: Print a progress line at every evaluation
    """

    learning_rate: float = 0.01
    decay_rate: float = 0.85
    step_size: int = 2
    epochs: int = 10
    batch_size: int = 32
    schedule_type: ScheduleType = ScheduleType.STEP_DECAY
    momentum_coefficient: float = 0.95
    momentum_kind: MomentumKind = MomentumKind.CLASSICAL
    weight_decay: float = 0.0
    seed: int = 42
    eval_every: int = 1
    patience: int = 10
    min_improvement: float = 0.001
    cosine_horizon: Optional[int] = None
    verbose: bool = False

    def validate(self) -> None:
        """Raise InvalidConfigurationError for settings that cannot train."""
        if self.epochs <= 0:
            raise InvalidConfigurationError(f"epochs must be positive, got {self.epochs}")
        if self.batch_size <= 0:
            raise InvalidConfigurationError(
                f"batch_size must be positive, got {self.batch_size}"
            )
        if self.eval_every <= 0:
            raise InvalidConfigurationError(
                f"eval_every must be positive, got {self.eval_every}"
            )
        if self.learning_rate < 0:
            raise InvalidConfigurationError(
                f"learning_rate must be non-negative, got {self.learning_rate}"
            )
        if self.patience < 0:
            raise InvalidConfigurationError(f"patience must be non-negative, got {self.patience}")
        self.optimizer_config().validate()

    def optimizer_config(self) -> OptimizerConfig:
        """Optimizer settings for this run."""
        return OptimizerConfig(
            momentum_kind=MomentumKind.parse(self.momentum_kind),
            momentum_coefficient=self.momentum_coefficient,
            weight_decay=self.weight_decay,
        )

    def make_scheduler(self) -> LearningRateScheduler:
        """Fresh learning rate scheduler for this run."""
        return LearningRateScheduler(
            self.schedule_type,
            self.learning_rate,
            decay_rate=self.decay_rate,
            step_size=self.step_size,
            total_epochs=self.cosine_horizon or self.epochs,
        )


@dataclass(frozen=True)
class ProgressSnapshot:
    """Metrics recorded at one evaluation point (epoch is zero-based)."""

    epoch: int
    train_loss: float
    train_accuracy: float
    validation_accuracy: Optional[float]
    learning_rate: float
    elapsed_seconds: float


@dataclass
class TrainingHistory:
    """
    Outcome of Network.train.

    Attributes:
        snapshots: One entry per evaluation, in order
        best_validation_accuracy: Highest validation accuracy seen, if any
        epochs_completed: Number of epochs that ran to completion
        stopped_early: True if training halted on the patience limit
    """

    snapshots: List[ProgressSnapshot] = field(default_factory=list)
    best_validation_accuracy: Optional[float] = None
    epochs_completed: int = 0
    stopped_early: bool = False

    @property
    def final_snapshot(self) -> Optional[ProgressSnapshot]:
        return self.snapshots[-1] if self.snapshots else None


ProgressCallback = Callable[[ProgressSnapshot], None]


def one_hot(labels: np.ndarray, num_classes: int) -> np.ndarray:
    """
    Encode class indices as one-hot columns.

    Args:
        labels: Integer class indices, shape (num_samples,)
        num_classes: Number of rows in the encoding

    Returns:
        float32 matrix of shape (num_classes, num_samples) with a single 1
        per column at the label's row

    Example:
        >>> one_hot(np.array([2, 0]), 3)
        array([[0., 1.],
               [0., 0.],
               [1., 0.]], dtype=float32)
    """
    labels = np.asarray(labels, dtype=np.int64)
    if labels.size and (labels.min() < 0 or labels.max() >= num_classes):
        raise DataIntegrityError(
            f"Labels must lie in [0, {num_classes}), found range "
            f"[{labels.min()}, {labels.max()}]"
        )

    encoded = np.zeros((num_classes, labels.shape[0]), dtype=np.float32)
    encoded[labels, np.arange(labels.shape[0])] = 1.0
    return encoded


def cross_entropy_loss(predictions: np.ndarray, labels: np.ndarray) -> float:
    """
    Compute categorical cross-entropy.

    Formula:
        loss = -mean_over_samples(log(p_true + epsilon))

    where p_true is the predicted probability of each sample's true class
    and epsilon (1e-8) keeps log() finite when p_true is 0.

    Args:
        predictions: Class probabilities, shape (num_classes, num_samples)
        labels: True class indices, shape (num_samples,)

    Returns:
        Scalar loss (average over samples)

    Raises:
        ShapeMismatchError: If there is not one label per column.
        DataIntegrityError: If a label is outside [0, num_classes).
    """
    probabilities = matrix.as_matrix(predictions)
    labels = np.asarray(labels, dtype=np.int64)
    if probabilities.shape[1] != labels.shape[0]:
        raise ShapeMismatchError("cross_entropy_loss", probabilities.shape, labels.shape)
    num_classes = probabilities.shape[0]
    if labels.size and (labels.min() < 0 or labels.max() >= num_classes):
        raise DataIntegrityError(
            f"Labels must lie in [0, {num_classes}), found range "
            f"[{labels.min()}, {labels.max()}]"
        )

    true_class_probs = probabilities[labels, np.arange(labels.shape[0])].astype(np.float64)
    return float(-np.mean(np.log(true_class_probs + LOSS_EPSILON)))


def get_predictions(output: np.ndarray) -> np.ndarray:
    """
    Return the arg-max row of every column.

    Ties resolve to the lowest row index.
    """
    return np.argmax(matrix.as_matrix(output), axis=0)


def get_accuracy(predictions: np.ndarray, labels: np.ndarray) -> float:
    """Fraction of samples whose prediction equals the label (0.0 if empty)."""
    predictions = np.asarray(predictions)
    labels = np.asarray(labels)
    if predictions.shape != labels.shape:
        raise ShapeMismatchError("get_accuracy", predictions.shape, labels.shape)
    if labels.size == 0:
        return 0.0
    return float(np.mean(predictions == labels))


class Network:
    """
    Fully connected feedforward classifier.

    The network owns its layers exclusively and threads activations between
    them; layers never reference each other.

    Usage:
        network = Network()
        network.add_layer(Layer(784, 128, "relu", rng, name="hidden1"))
        network.add_layer(Layer(128, 10, "softmax", rng, name="output"))
        history = network.train(x_train, y_train, x_val, y_val, TrainingConfig())

    Attributes:
        layers: Ordered list of layers, input first
        loss: Loss function name (only "cross_entropy" is supported)
        optimizer: Momentum and weight decay settings used by backward().
                   Plain gradient descent until train() installs the
                   settings from its TrainingConfig.
    """

    def __init__(self, loss: str = "cross_entropy"):
        if loss not in SUPPORTED_LOSSES:
            raise InvalidConfigurationError(
                f"Unsupported loss function: {loss!r} (expected one of: "
                f"{', '.join(SUPPORTED_LOSSES)})"
            )

        self.layers: List[Layer] = []
        self.loss = loss
        self.optimizer = OptimizerConfig()

    def add_layer(self, layer: Layer) -> None:
        """
        Append a layer to the stack.

        Sizes are not checked here; a mismatch surfaces as a
        ShapeMismatchError on the first forward call, or as an
        InvalidConfigurationError from validate().
        """
        self.layers.append(layer)

    def validate(self) -> None:
        """
        Check the layer stack before training.

        Raises:
            InvalidConfigurationError: If the stack is empty, adjacent sizes do
                not chain, or the output layer is not softmax.
        """
        if not self.layers:
            raise InvalidConfigurationError("Network has no layers")

        for index, (current, following) in enumerate(zip(self.layers, self.layers[1:])):
            if current.output_size != following.input_size:
                raise InvalidConfigurationError(
                    f"Layer {index} ({current.name}) outputs {current.output_size} units "
                    f"but layer {index + 1} ({following.name}) expects "
                    f"{following.input_size} inputs"
                )

        self._require_softmax_output()

    def _require_softmax_output(self) -> None:
        output_layer = self.layers[-1]
        if output_layer.activation is not Activation.SOFTMAX:
            raise InvalidConfigurationError(
                f"Cross-entropy training requires a softmax output layer, "
                f"got {output_layer.activation.value!r} in {output_layer.name}"
            )

    @property
    def input_size(self) -> int:
        return self.layers[0].input_size

    @property
    def output_size(self) -> int:
        return self.layers[-1].output_size

    def parameter_count(self) -> int:
        """Total number of learnable scalars."""
        return sum(layer.parameter_count() for layer in self.layers)

    def forward(self, x: np.ndarray) -> np.ndarray:
        """
        Run the input through every layer.

        Args:
            x: Input of shape (input_size, num_samples)

        Returns:
            Output activation of shape (output_size, num_samples)
        """
        activation = x
        for layer in self.layers:
            activation = layer.forward(activation)
        return activation

    def compute_loss(self, predictions: np.ndarray, labels: np.ndarray) -> float:
        """Categorical cross-entropy of predictions against labels."""
        return cross_entropy_loss(predictions, labels)

    def backward(
        self,
        x: np.ndarray,
        y: np.ndarray,
        learning_rate: float,
        batch_size: Optional[int] = None,
        momentum_coefficient: Optional[float] = None,
    ) -> None:
        """
        Backpropagate one batch and update every layer.

        Must follow forward(x) on the same batch, since it reads each
        layer's cached activations.

        Args:
            x: Batch input, shape (input_size, batch)
            y: Batch labels, shape (batch,)
            learning_rate: Step size for this update
            batch_size: Samples to average gradients over; defaults to len(y)
            momentum_coefficient: Overrides the optimizer's coefficient

        Algorithm:
            dA = A_last - one_hot(Y)
            for layer in reversed(layers):
                dW, db, dA_prev = layer.backward(dA, prev_activation)
                layer.update_parameters(dW, db)
                dA = dA_prev
        """
        if not self.layers:
            raise InvalidConfigurationError("Network has no layers")
        self._require_softmax_output()

        output_layer = self.layers[-1]
        if output_layer.a is None:
            raise RuntimeError("backward() called before forward()")

        labels = np.asarray(y, dtype=np.int64)
        if output_layer.a.shape[1] != labels.shape[0]:
            raise ShapeMismatchError("backward (labels)", output_layer.a.shape, labels.shape)

        if batch_size is None:
            batch_size = labels.shape[0]
        if momentum_coefficient is None:
            momentum_coefficient = self.optimizer.momentum_coefficient

        # Closed-form gradient of cross-entropy through softmax
        gradient = matrix.subtract(output_layer.a, one_hot(labels, output_layer.output_size))

        for index in range(len(self.layers) - 1, -1, -1):
            layer = self.layers[index]
            prev_activation = x if index == 0 else self.layers[index - 1].a

            gradients = layer.backward(
                gradient, prev_activation, batch_size, self.optimizer.weight_decay
            )
            layer.update_parameters(
                gradients.weight_gradient,
                gradients.bias_gradient,
                learning_rate,
                momentum_coefficient,
                self.optimizer.momentum_kind,
            )
            gradient = gradients.input_gradient

    def predict(self, x: np.ndarray) -> np.ndarray:
        """Predicted class index for every column of x."""
        return get_predictions(self.forward(x))

    def evaluate(self, x: np.ndarray, y: np.ndarray) -> Tuple[float, np.ndarray]:
        """
        Score the network on a dataset without updating parameters.

        Returns:
            Tuple of (accuracy, predictions)
        """
        predictions = self.predict(x)
        return get_accuracy(predictions, y), predictions

    def get_predictions(self, output: np.ndarray) -> np.ndarray:
        return get_predictions(output)

    def get_accuracy(self, predictions: np.ndarray, labels: np.ndarray) -> float:
        return get_accuracy(predictions, labels)

    def train(
        self,
        x_train: np.ndarray,
        y_train: np.ndarray,
        x_val: Optional[np.ndarray] = None,
        y_val: Optional[np.ndarray] = None,
        config: Optional[TrainingConfig] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> TrainingHistory:
        """
        Train with shuffled mini-batches and early stopping.

        For each epoch:
            (a) take the epoch's learning rate from the scheduler
            (b) shuffle sample indices with seed (config.seed + epoch)
            (c) split them into consecutive batches of config.batch_size
            (d) forward, accumulate loss, backward-with-update per batch
            (e) every config.eval_every epochs (and after the last epoch),
                measure train/validation accuracy, report progress, and
                check early stopping

        The network's optimizer settings (momentum kind, coefficient, and
        weight decay) are replaced by config.optimizer_config() before the
        first epoch.

        Early stopping only applies when validation data is given: the
        patience counter resets when validation accuracy beats the best so
        far by more than config.min_improvement, and training stops once it
        exceeds config.patience. An epoch always finishes all its batches
        before the check.

        Args:
            x_train: Training features, shape (input_size, num_samples)
            y_train: Training labels, shape (num_samples,)
            x_val: Optional validation features
            y_val: Optional validation labels
            config: Hyperparameters; defaults to TrainingConfig()
            progress_callback: Called with a ProgressSnapshot at every
                               evaluation. Defaults to printing when
                               config.verbose is set.

        Returns:
            TrainingHistory with one snapshot per evaluation

        Raises:
            InvalidConfigurationError: Bad network or hyperparameters
            DataIntegrityError: Inconsistent or malformed data
        """
        config = config if config is not None else TrainingConfig()
        config.validate()
        self.validate()

        if (x_val is None) != (y_val is None):
            raise InvalidConfigurationError("x_val and y_val must be given together")
        has_validation = x_val is not None

        validate_dataset(x_train, y_train, self.input_size, self.output_size)
        if has_validation:
            validate_dataset(x_val, y_val, self.input_size, self.output_size)

        x_train = matrix.as_matrix(x_train)
        y_train = np.asarray(y_train, dtype=np.int64)
        num_samples = y_train.shape[0]
        if num_samples == 0:
            raise DataIntegrityError("Training set is empty")

        self.optimizer = config.optimizer_config()
        scheduler = config.make_scheduler()

        if progress_callback is None and config.verbose:
            progress_callback = partial(print_progress, total_epochs=config.epochs)

        history = TrainingHistory()
        checks_without_improvement = 0
        start_time = time.perf_counter()

        for epoch in range(config.epochs):
            learning_rate = scheduler.get_learning_rate()
            order = shuffle_indices(num_samples, config.seed, epoch)

            epoch_loss = 0.0
            for batch_indices in create_batches(order, config.batch_size):
                x_batch = x_train[:, batch_indices]
                y_batch = y_train[batch_indices]

                output = self.forward(x_batch)
                epoch_loss += self.compute_loss(output, y_batch) * len(batch_indices)
                self.backward(x_batch, y_batch, learning_rate, len(batch_indices))

            history.epochs_completed = epoch + 1

            is_last_epoch = epoch == config.epochs - 1
            if epoch % config.eval_every != 0 and not is_last_epoch:
                continue

            train_accuracy, _ = self.evaluate(x_train, y_train)
            validation_accuracy = self.evaluate(x_val, y_val)[0] if has_validation else None

            snapshot = ProgressSnapshot(
                epoch=epoch,
                train_loss=epoch_loss / num_samples,
                train_accuracy=train_accuracy,
                validation_accuracy=validation_accuracy,
                learning_rate=learning_rate,
                elapsed_seconds=time.perf_counter() - start_time,
            )
            history.snapshots.append(snapshot)
            if progress_callback is not None:
                progress_callback(snapshot)

            if validation_accuracy is None:
                continue

            best = history.best_validation_accuracy
            if best is None or validation_accuracy > best + config.min_improvement:
                checks_without_improvement = 0
            else:
                checks_without_improvement += 1
            if best is None or validation_accuracy > best:
                history.best_validation_accuracy = validation_accuracy

            if checks_without_improvement > config.patience:
                history.stopped_early = True
                break

        return history


def build_network(
    layer_sizes: Sequence[int],
    hidden_activation: Union[Activation, str] = Activation.RELU,
    output_activation: Union[Activation, str] = Activation.SOFTMAX,
    seed: int = 42,
) -> Network:
    """
    Build a network from consecutive layer sizes.

    Example:
        build_network([784, 128, 64, 10]) creates two ReLU hidden layers
        (784->128, 128->64) and a softmax output layer (64->10).

    Args:
        layer_sizes: Input size followed by each layer's output size
        hidden_activation: Activation for every layer but the last
        output_activation: Activation for the last layer
        seed: Seed for the weight-initialization generator

    Returns:
        Network with len(layer_sizes) - 1 layers
    """
    if len(layer_sizes) < 2:
        raise InvalidConfigurationError(
            f"Need at least an input and an output size, got {list(layer_sizes)}"
        )

    rng = np.random.default_rng(seed)
    network = Network()
    num_layers = len(layer_sizes) - 1

    for index, (input_size, output_size) in enumerate(zip(layer_sizes, layer_sizes[1:])):
        is_output = index == num_layers - 1
        network.add_layer(
            Layer(
                input_size,
                output_size,
                output_activation if is_output else hidden_activation,
                rng,
                name="output" if is_output else f"hidden{index + 1}",
            )
        )

    return network
