#!/usr/bin/env python3
"""
Train a Fully Connected Classifier on Fashion-MNIST

This script loads the Fashion-MNIST CSV files, holds out a validation split,
trains a feedforward network with mini-batch gradient descent, reports test
accuracy, and writes train/test predictions (one class per line).

Usage:
    python train.py --data-dir data --hidden 128 64 --epochs 10

    # No data files? Train on a synthetic separable dataset instead:
    python train.py --synthetic --epochs 20

Expected files in --data-dir:
    fashion_mnist_train_vectors.csv, fashion_mnist_train_labels.csv,
    fashion_mnist_test_vectors.csv, fashion_mnist_test_labels.csv
"""

import argparse
import os
import sys
import time

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from fcnet.network import TrainingConfig, build_network
from fcnet.optimizer import MomentumKind
from fcnet.scheduler import ScheduleType
from fcnet.utils import (
    FASHION_MNIST_CLASSES,
    FASHION_MNIST_IMAGE_SIZE,
    export_predictions,
    load_fashion_mnist,
    make_separable_dataset,
    train_validation_split,
)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Train a fully connected classifier")
    parser.add_argument("--data-dir", default="data", help="Directory with the CSV files")
    parser.add_argument(
        "--synthetic",
        action="store_true",
        help="Use a synthetic separable dataset instead of the CSV files",
    )
    parser.add_argument(
        "--hidden",
        type=int,
        nargs="*",
        default=[128, 64],
        help="Hidden layer sizes (ReLU); output layer is softmax",
    )
    parser.add_argument("--epochs", type=int, default=10)
    parser.add_argument("--batch-size", type=int, default=32)
    parser.add_argument("--learning-rate", type=float, default=0.01)
    parser.add_argument("--decay-rate", type=float, default=0.85)
    parser.add_argument("--step-size", type=int, default=2)
    parser.add_argument(
        "--schedule",
        default=ScheduleType.STEP_DECAY.value,
        choices=[schedule.value for schedule in ScheduleType],
    )
    parser.add_argument("--momentum", type=float, default=0.95)
    parser.add_argument(
        "--momentum-kind",
        default=MomentumKind.CLASSICAL.value,
        choices=[kind.value for kind in MomentumKind],
    )
    parser.add_argument("--weight-decay", type=float, default=0.0)
    parser.add_argument("--eval-every", type=int, default=1)
    parser.add_argument("--patience", type=int, default=10)
    parser.add_argument("--validation-fraction", type=float, default=0.1)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument(
        "--output-dir", default=".", help="Where to write the prediction files"
    )
    return parser.parse_args(argv)


def load_data(args: argparse.Namespace):
    """Return ((train_x, train_y), (test_x, test_y))."""
    if args.synthetic:
        features, labels = make_separable_dataset(
            num_samples=1200, num_classes=FASHION_MNIST_CLASSES, seed=args.seed
        )
        train_x, train_y, test_x, test_y = train_validation_split(
            features, labels, validation_fraction=0.25, seed=args.seed + 1
        )
        return (train_x, train_y), (test_x, test_y)

    return load_fashion_mnist(args.data_dir)


def main(argv=None) -> None:
    args = parse_args(argv)
    full_start = time.time()

    print("=" * 60)
    print("Fully Connected Network Training")
    print("=" * 60)
    print()

    # ==================== Data Loading ====================
    print("Loading data...")
    load_start = time.time()
    (full_train_x, full_train_y), (test_x, test_y) = load_data(args)
    print(f"Loaded {full_train_x.shape[1]:,} training and {test_x.shape[1]:,} test samples")
    print(f"Data loaded in {time.time() - load_start:.1f}s")

    train_x, train_y, val_x, val_y = train_validation_split(
        full_train_x, full_train_y, validation_fraction=args.validation_fraction, seed=args.seed
    )
    print(f"Train: {train_x.shape[1]:,} samples, Val: {val_x.shape[1]:,} samples")
    print()

    # ==================== Model ====================
    layer_sizes = [FASHION_MNIST_IMAGE_SIZE, *args.hidden, FASHION_MNIST_CLASSES]
    network = build_network(layer_sizes, seed=args.seed)

    print("Network:")
    for layer in network.layers:
        print(f"  - {layer.name}: {layer.input_size} -> {layer.output_size} ({layer.activation.value})")
    print(f"Parameters: {network.parameter_count():,}")
    print()

    config = TrainingConfig(
        learning_rate=args.learning_rate,
        decay_rate=args.decay_rate,
        step_size=args.step_size,
        epochs=args.epochs,
        batch_size=args.batch_size,
        schedule_type=ScheduleType.parse(args.schedule),
        momentum_coefficient=args.momentum,
        momentum_kind=MomentumKind.parse(args.momentum_kind),
        weight_decay=args.weight_decay,
        seed=args.seed,
        eval_every=args.eval_every,
        patience=args.patience,
        verbose=True,
    )

    # ==================== Training ====================
    print("Starting training...")
    print("-" * 60)
    train_start = time.time()
    history = network.train(train_x, train_y, val_x, val_y, config)
    print("-" * 60)
    print(f"Training completed in {time.time() - train_start:.1f}s")
    if history.stopped_early:
        print(f"Stopped early after {history.epochs_completed} epochs")
    if history.best_validation_accuracy is not None:
        print(f"Best validation accuracy: {history.best_validation_accuracy:.2%}")
    print()

    # ==================== Evaluation ====================
    train_accuracy, train_predictions = network.evaluate(full_train_x, full_train_y)
    test_accuracy, test_predictions = network.evaluate(test_x, test_y)
    print(f"Train accuracy: {train_accuracy:.2%}")
    print(f"Test accuracy: {test_accuracy:.2%}")

    train_path = os.path.join(args.output_dir, "train_predictions.csv")
    test_path = os.path.join(args.output_dir, "test_predictions.csv")
    export_predictions(train_predictions, train_path)
    export_predictions(test_predictions, test_path)
    print(f"Saved predictions to {train_path} and {test_path}")

    elapsed = time.time() - full_start
    print()
    print("=" * 60)
    print(f"Model ran in {int(elapsed // 60)}min {int(elapsed % 60)}s")
    print("=" * 60)


if __name__ == "__main__":
    main()
