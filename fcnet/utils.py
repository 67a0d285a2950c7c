"""
Utility Functions for Data Handling and Training

This module provides the plumbing around the training engine:
- Deterministic shuffling and mini-batch slicing
- Dataset validation before training starts
- Loading feature vectors and labels from CSV files
- Train/validation splitting and a synthetic dataset for experiments
- Writing predictions and formatting progress lines

Feature matrices are laid out as (num_features, num_samples): each column is
one flattened image. Label vectors are 1D integer arrays with one entry per
column.

Functions:
    shuffle_indices: Seeded permutation of sample indices for one epoch
    create_batches: Split indices into consecutive mini-batches
    validate_dataset: Check features and labels for consistency
    load_vectors_csv / load_labels_csv / load_dataset: CSV ingestion
    load_fashion_mnist: Load the four Fashion-MNIST CSV files
    normalize_pixels: Scale 0-255 pixel values into [0, 1]
    train_validation_split: Hold out part of a dataset for validation
    make_separable_dataset: Synthetic linearly separable classification data
    export_predictions: Write one predicted class per line
    format_progress / print_progress: Human-readable progress reporting
"""

import os
from typing import TYPE_CHECKING, List, Optional, Tuple

import numpy as np

from fcnet.exceptions import DataIntegrityError, InvalidConfigurationError

if TYPE_CHECKING:
    from fcnet.network import ProgressSnapshot

FASHION_MNIST_IMAGE_SIZE = 784
FASHION_MNIST_CLASSES = 10


def shuffle_indices(num_samples: int, base_seed: int, epoch: int) -> np.ndarray:
    """
    Return a permutation of range(num_samples) for the given epoch.

    The generator is seeded with base_seed + epoch, so the same arguments
    always produce the same order (NumPy's permutation is a Fisher-Yates
    shuffle). This keeps runs comparable across a hyperparameter search.

    Args:
        num_samples: Number of samples to permute
        base_seed: Run-level seed
        epoch: Zero-based epoch number

    Returns:
        1D int64 array containing each index exactly once
    """
    rng = np.random.default_rng(base_seed + epoch)
    return rng.permutation(num_samples)


def create_batches(indices: np.ndarray, batch_size: int) -> List[np.ndarray]:
    """
    Split indices into consecutive batches of batch_size.

    The final batch holds the remainder and may be smaller.
    """
    if batch_size <= 0:
        raise InvalidConfigurationError(f"batch_size must be positive, got {batch_size}")

    return [indices[start : start + batch_size] for start in range(0, len(indices), batch_size)]


def validate_dataset(
    features: np.ndarray,
    labels: np.ndarray,
    num_features: Optional[int] = None,
    num_classes: Optional[int] = None,
) -> None:
    """
    Check that a features/labels pair can be trained or evaluated on.

    Args:
        features: Matrix of shape (num_features, num_samples)
        labels: Integer class indices, shape (num_samples,)
        num_features: Expected number of feature rows, if known
        num_classes: Labels must lie in [0, num_classes), if known

    Raises:
        DataIntegrityError: On the first inconsistency found.
    """
    features = np.asarray(features)
    labels = np.asarray(labels)

    if features.ndim != 2:
        raise DataIntegrityError(
            f"Features must be a 2D (features, samples) matrix, got shape {features.shape}"
        )
    if labels.ndim != 1:
        raise DataIntegrityError(f"Labels must be 1D, got shape {labels.shape}")
    if features.shape[1] != labels.shape[0]:
        raise DataIntegrityError(
            f"Feature/label count mismatch: {features.shape[1]} samples, "
            f"{labels.shape[0]} labels"
        )
    if num_features is not None and features.shape[0] != num_features:
        raise DataIntegrityError(
            f"Expected {num_features} features per sample, got {features.shape[0]}"
        )
    if not np.issubdtype(features.dtype, np.number):
        raise DataIntegrityError(f"Features must be numeric, got dtype {features.dtype}")
    if not np.all(np.isfinite(features)):
        raise DataIntegrityError("Features contain NaN or infinite values")
    if labels.size and not np.issubdtype(labels.dtype, np.integer):
        raise DataIntegrityError(f"Labels must be integers, got dtype {labels.dtype}")
    if num_classes is not None and labels.size:
        low, high = int(labels.min()), int(labels.max())
        if low < 0 or high >= num_classes:
            raise DataIntegrityError(
                f"Labels must lie in [0, {num_classes}), found range [{low}, {high}]"
            )


def load_vectors_csv(
    filepath: str, expected_size: Optional[int] = FASHION_MNIST_IMAGE_SIZE
) -> np.ndarray:
    """
    Load one feature vector per line from a comma-separated file.

    Args:
        filepath: Path to the CSV file
        expected_size: Required number of values per line (None to skip check)

    Returns:
        Raw values as float32, shape (num_samples, vector_size)

    Raises:
        DataIntegrityError: If a value cannot be parsed or a row has the
                            wrong width.
    """
    rows = []
    with open(filepath, "r", encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            fields = [field for field in line.strip().split(",") if field.strip()]
            if not fields:
                continue
            try:
                values = [float(field) for field in fields]
            except ValueError as error:
                raise DataIntegrityError(
                    f"{filepath}:{line_number}: malformed numeric value ({error})"
                ) from error

            if expected_size is not None and len(values) != expected_size:
                raise DataIntegrityError(
                    f"{filepath}:{line_number}: expected {expected_size} values, "
                    f"got {len(values)}"
                )
            rows.append(values)

    if not rows:
        return np.zeros((0, expected_size or 0), dtype=np.float32)

    widths = {len(row) for row in rows}
    if len(widths) > 1:
        raise DataIntegrityError(f"{filepath}: rows have differing widths {sorted(widths)}")

    return np.array(rows, dtype=np.float32)


def load_labels_csv(filepath: str) -> np.ndarray:
    """
    Load one integer label per line. Blank lines are skipped.

    Raises:
        DataIntegrityError: If a non-blank line is not an integer.
    """
    labels = []
    with open(filepath, "r", encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            text = line.strip()
            if not text:
                continue
            try:
                labels.append(int(text))
            except ValueError as error:
                raise DataIntegrityError(
                    f"{filepath}:{line_number}: malformed label {text!r}"
                ) from error
    return np.array(labels, dtype=np.int64)


def normalize_pixels(values: np.ndarray) -> np.ndarray:
    """Scale 0-255 pixel intensities into [0, 1]."""
    return (np.asarray(values, dtype=np.float32) / 255.0).astype(np.float32)


def load_dataset(
    vectors_path: str,
    labels_path: str,
    expected_size: Optional[int] = FASHION_MNIST_IMAGE_SIZE,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Load a features/labels pair ready for training.

    Returns:
        Tuple of (features, labels): features normalized into [0, 1] with
        shape (vector_size, num_samples); labels of shape (num_samples,)

    Raises:
        DataIntegrityError: For malformed files or a count mismatch.
    """
    vectors = load_vectors_csv(vectors_path, expected_size=expected_size)
    labels = load_labels_csv(labels_path)

    if vectors.shape[0] != labels.shape[0]:
        raise DataIntegrityError(
            f"Number of images and labels do not match: {vectors.shape[0]} vectors "
            f"in {vectors_path}, {labels.shape[0]} labels in {labels_path}"
        )

    features = np.ascontiguousarray(normalize_pixels(vectors).T)
    return features, labels


def load_fashion_mnist(
    data_dir: str = "data",
) -> Tuple[Tuple[np.ndarray, np.ndarray], Tuple[np.ndarray, np.ndarray]]:
    """
    Load the Fashion-MNIST train and test partitions from CSV.

    Expects these files in data_dir:
        fashion_mnist_train_vectors.csv, fashion_mnist_train_labels.csv,
        fashion_mnist_test_vectors.csv, fashion_mnist_test_labels.csv

    Returns:
        ((train_features, train_labels), (test_features, test_labels))
    """
    train = load_dataset(
        os.path.join(data_dir, "fashion_mnist_train_vectors.csv"),
        os.path.join(data_dir, "fashion_mnist_train_labels.csv"),
    )
    test = load_dataset(
        os.path.join(data_dir, "fashion_mnist_test_vectors.csv"),
        os.path.join(data_dir, "fashion_mnist_test_labels.csv"),
    )
    return train, test


def train_validation_split(
    features: np.ndarray,
    labels: np.ndarray,
    validation_fraction: float = 0.1,
    seed: int = 42,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Randomly hold out a fraction of the samples for validation.

    Returns:
        Tuple of (train_features, train_labels, val_features, val_labels)
    """
    if not 0.0 < validation_fraction < 1.0:
        raise InvalidConfigurationError(
            f"validation_fraction must be in (0, 1), got {validation_fraction}"
        )

    validate_dataset(features, labels)
    num_samples = labels.shape[0]
    num_validation = max(1, int(round(num_samples * validation_fraction)))

    order = np.random.default_rng(seed).permutation(num_samples)
    val_idx, train_idx = order[:num_validation], order[num_validation:]

    return (
        features[:, train_idx],
        labels[train_idx],
        features[:, val_idx],
        labels[val_idx],
    )


def make_separable_dataset(
    num_samples: int = 300,
    num_features: int = FASHION_MNIST_IMAGE_SIZE,
    num_classes: int = 3,
    seed: int = 0,
    noise: float = 0.1,
    density: float = 0.1,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Generate a linearly separable classification dataset.

    Each class gets a random binary prototype vector with roughly
    `density` of its features switched on (like the sparse bright pixels of
    an image); every sample is its class prototype plus uniform noise,
    clipped into [0, 1]. With small noise the classes are separated by a
    wide margin.

    Returns:
        Tuple of (features, labels): features of shape
        (num_features, num_samples), labels cycling through the classes
    """
    rng = np.random.default_rng(seed)
    prototypes = (rng.random((num_features, num_classes)) < density).astype(np.float32)

    labels = np.arange(num_samples, dtype=np.int64) % num_classes
    jitter = rng.uniform(-noise, noise, size=(num_features, num_samples))
    features = np.clip(prototypes[:, labels] + jitter, 0.0, 1.0).astype(np.float32)

    return features, labels


def export_predictions(predictions: np.ndarray, filepath: str) -> None:
    """Write one predicted class index per line."""
    directory = os.path.dirname(filepath)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(filepath, "w", encoding="utf-8") as f:
        for prediction in np.asarray(predictions).tolist():
            f.write(f"{int(prediction)}\n")


def format_progress(snapshot: "ProgressSnapshot", total_epochs: Optional[int] = None) -> str:
    """
    Format a ProgressSnapshot as a single log line.

    Example:
        Epoch 5/50 | Loss: 0.4123 | Train Acc: 86.20% | Val Acc: 85.10% | LR: 1.00e-02 | 12.3s
    """
    epoch_label = f"{snapshot.epoch + 1}"
    if total_epochs is not None:
        epoch_label += f"/{total_epochs}"

    parts = [
        f"Epoch {epoch_label}",
        f"Loss: {snapshot.train_loss:.4f}",
        f"Train Acc: {snapshot.train_accuracy:.2%}",
    ]
    if snapshot.validation_accuracy is not None:
        parts.append(f"Val Acc: {snapshot.validation_accuracy:.2%}")
    parts.append(f"LR: {snapshot.learning_rate:.2e}")
    parts.append(f"{snapshot.elapsed_seconds:.1f}s")

    return " | ".join(parts)


def print_progress(snapshot: "ProgressSnapshot", total_epochs: Optional[int] = None) -> None:
    """Print a progress line for a ProgressSnapshot."""
    print(format_progress(snapshot, total_epochs))
