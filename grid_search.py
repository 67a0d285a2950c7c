#!/usr/bin/env python3
"""
Hyperparameter Grid Search on Fashion-MNIST

Every combination of the listed values trains a fresh network on the
training split and is scored on a held-out validation split. The test set
is never touched.

Usage:
    python grid_search.py --data-dir data --epochs 6 \
        --learning-rates 0.01 0.005 --momentum 0.9 0.95 --batch-sizes 32 64

    python grid_search.py --synthetic --epochs 5
"""

import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from fcnet.network import TrainingConfig
from fcnet.scheduler import ScheduleType
from fcnet.tuning import grid_search
from fcnet.utils import (
    FASHION_MNIST_CLASSES,
    FASHION_MNIST_IMAGE_SIZE,
    load_dataset,
    make_separable_dataset,
    train_validation_split,
)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Grid search over training hyperparameters")
    parser.add_argument("--data-dir", default="data")
    parser.add_argument("--synthetic", action="store_true")
    parser.add_argument("--hidden", type=int, nargs="*", default=[256, 128])
    parser.add_argument("--epochs", type=int, default=6)
    parser.add_argument("--learning-rates", type=float, nargs="+", default=[0.01, 0.005])
    parser.add_argument("--decay-rates", type=float, nargs="+", default=[0.85])
    parser.add_argument("--momentum", type=float, nargs="+", default=[0.9, 0.95])
    parser.add_argument("--batch-sizes", type=int, nargs="+", default=[32, 64])
    parser.add_argument("--weight-decays", type=float, nargs="+", default=[0.0, 1e-4])
    parser.add_argument(
        "--schedule",
        default=ScheduleType.STEP_DECAY.value,
        choices=[schedule.value for schedule in ScheduleType],
    )
    parser.add_argument("--step-size", type=int, default=2)
    parser.add_argument("--validation-fraction", type=float, default=0.1)
    parser.add_argument("--seed", type=int, default=42)
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)

    if args.synthetic:
        features, labels = make_separable_dataset(
            num_samples=1000, num_classes=FASHION_MNIST_CLASSES, seed=args.seed
        )
    else:
        features, labels = load_dataset(
            os.path.join(args.data_dir, "fashion_mnist_train_vectors.csv"),
            os.path.join(args.data_dir, "fashion_mnist_train_labels.csv"),
        )

    train_x, train_y, val_x, val_y = train_validation_split(
        features, labels, validation_fraction=args.validation_fraction, seed=args.seed
    )
    print(f"Train: {train_x.shape[1]:,} samples, Val: {val_x.shape[1]:,} samples")
    print()

    base_config = TrainingConfig(
        epochs=args.epochs,
        schedule_type=ScheduleType.parse(args.schedule),
        step_size=args.step_size,
    )

    result = grid_search(
        args.learning_rates,
        args.decay_rates,
        args.momentum,
        args.batch_sizes,
        args.weight_decays,
        train_x,
        train_y,
        val_x,
        val_y,
        layer_sizes=[FASHION_MNIST_IMAGE_SIZE, *args.hidden, FASHION_MNIST_CLASSES],
        base_config=base_config,
        seed=args.seed,
        verbose=True,
    )

    print()
    print("All trials (best first):")
    ranked = sorted(result.trials, key=lambda trial: trial.validation_accuracy, reverse=True)
    for trial in ranked:
        print(f"  {trial.validation_accuracy:.2%}  {trial.config.describe()}")


if __name__ == "__main__":
    main()
