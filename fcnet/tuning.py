"""
Hyperparameter Grid Search

Trains a fresh network for every combination of learning rate, decay rate,
momentum coefficient, batch size, and weight decay, scores each on the
validation split, and keeps the best.

Trials are independent: each builds its own network from the same seed and
receives its own TrainingConfig, so nothing carries over from one trial to
the next.

Classes:
    HyperparameterConfig: One point in the search grid
    TrialResult: Outcome of training one configuration
    GridSearchResult: Best configuration plus every trial

Functions:
    run_trial: Train and score a single configuration
    grid_search: Exhaustive search over the Cartesian product
"""

import itertools
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence

import numpy as np

from fcnet.exceptions import InvalidConfigurationError
from fcnet.network import TrainingConfig, TrainingHistory, build_network

DEFAULT_LAYER_SIZES = (784, 256, 128, 10)


@dataclass(frozen=True)
class HyperparameterConfig:
    """Immutable snapshot of the searched hyperparameters."""

    learning_rate: float
    decay_rate: float
    momentum_coefficient: float
    batch_size: int
    weight_decay: float

    def to_training_config(self, base: Optional[TrainingConfig] = None) -> TrainingConfig:
        """Overlay these values on a base config (defaults to TrainingConfig())."""
        return replace(
            base if base is not None else TrainingConfig(),
            learning_rate=self.learning_rate,
            decay_rate=self.decay_rate,
            momentum_coefficient=self.momentum_coefficient,
            batch_size=self.batch_size,
            weight_decay=self.weight_decay,
        )

    def describe(self) -> str:
        return (
            f"LR={self.learning_rate}, Decay={self.decay_rate}, "
            f"Beta={self.momentum_coefficient}, BS={self.batch_size}, "
            f"WD={self.weight_decay}"
        )


@dataclass(frozen=True)
class TrialResult:
    config: HyperparameterConfig
    validation_accuracy: float
    history: TrainingHistory


@dataclass
class GridSearchResult:
    """
    Outcome of grid_search.

    Attributes:
        best_config: Configuration with the highest validation accuracy
                     (earliest trial wins ties)
        best_validation_accuracy: Its validation accuracy
        trials: Every trial in the order it ran
    """

    best_config: HyperparameterConfig
    best_validation_accuracy: float
    trials: List[TrialResult] = field(default_factory=list)


def run_trial(
    config: HyperparameterConfig,
    x_train: np.ndarray,
    y_train: np.ndarray,
    x_val: np.ndarray,
    y_val: np.ndarray,
    layer_sizes: Sequence[int] = DEFAULT_LAYER_SIZES,
    base_config: Optional[TrainingConfig] = None,
    seed: int = 42,
) -> TrialResult:
    """
    Train a fresh network with one configuration and score it.

    The network is trained on the training split only and evaluated on the
    validation split only.
    """
    network = build_network(layer_sizes, seed=seed)
    history = network.train(
        x_train, y_train, x_val, y_val, config=config.to_training_config(base_config)
    )
    validation_accuracy, _ = network.evaluate(x_val, y_val)
    return TrialResult(config, validation_accuracy, history)


def grid_search(
    learning_rates: Sequence[float],
    decay_rates: Sequence[float],
    momentum_coefficients: Sequence[float],
    batch_sizes: Sequence[int],
    weight_decays: Sequence[float],
    x_train: np.ndarray,
    y_train: np.ndarray,
    x_val: np.ndarray,
    y_val: np.ndarray,
    layer_sizes: Sequence[int] = DEFAULT_LAYER_SIZES,
    base_config: Optional[TrainingConfig] = None,
    seed: int = 42,
    verbose: bool = False,
) -> GridSearchResult:
    """
    Try every combination of the given values.

    Combinations are visited with learning rate as the outermost loop and
    weight decay as the innermost.

    Args:
        learning_rates, decay_rates, momentum_coefficients, batch_sizes,
        weight_decays: Values to search for each hyperparameter
        x_train, y_train: Training split
        x_val, y_val: Validation split used for scoring
        layer_sizes: Network architecture for every trial
        base_config: Settings shared by all trials (epochs, schedule, ...)
        seed: Weight-initialization and shuffle seed for every trial
        verbose: Print one line per trial

    Returns:
        GridSearchResult with the best configuration and all trials

    Raises:
        InvalidConfigurationError: If any value list is empty.
    """
    grid = list(
        itertools.product(
            learning_rates, decay_rates, momentum_coefficients, batch_sizes, weight_decays
        )
    )
    if not grid:
        raise InvalidConfigurationError("Grid search needs at least one value per hyperparameter")

    base_config = replace(base_config if base_config is not None else TrainingConfig(), seed=seed)

    if verbose:
        print(f"Starting grid search over {len(grid)} combinations...")
        print()

    trials: List[TrialResult] = []
    best: Optional[TrialResult] = None

    for trial_number, values in enumerate(grid, start=1):
        config = HyperparameterConfig(*values)
        if verbose:
            print(f"Trial {trial_number}: {config.describe()}")

        result = run_trial(
            config, x_train, y_train, x_val, y_val, layer_sizes, base_config, seed
        )
        trials.append(result)

        is_best = best is None or result.validation_accuracy > best.validation_accuracy
        if is_best:
            best = result
        if verbose:
            label = "New best validation accuracy" if is_best else "Validation accuracy"
            print(f"  -> {label}: {result.validation_accuracy:.2%}")
            print()

    if verbose:
        print(
            f"Grid search complete. Best: {best.config.describe()} "
            f"(Validation Acc={best.validation_accuracy:.2%})"
        )

    return GridSearchResult(best.config, best.validation_accuracy, trials)
