"""
Tests for Utility Functions

Tests for shuffling, batching, dataset validation, CSV loading, splitting,
prediction export, and progress formatting.
"""

import os
import tempfile

import numpy as np
import pytest

from fcnet.exceptions import DataIntegrityError, InvalidConfigurationError
from fcnet.network import ProgressSnapshot
from fcnet.utils import (
    create_batches,
    export_predictions,
    format_progress,
    load_dataset,
    load_labels_csv,
    load_vectors_csv,
    make_separable_dataset,
    normalize_pixels,
    shuffle_indices,
    train_validation_split,
    validate_dataset,
)


class TestShuffleIndices:
    """Test the per-epoch seeded shuffle."""

    def test_is_permutation(self):
        order = shuffle_indices(100, base_seed=42, epoch=0)

        np.testing.assert_array_equal(np.sort(order), np.arange(100))

    def test_same_seed_and_epoch_reproduce(self):
        np.testing.assert_array_equal(
            shuffle_indices(50, base_seed=7, epoch=3), shuffle_indices(50, base_seed=7, epoch=3)
        )

    def test_epochs_differ(self):
        """Different epochs should (almost surely) give different orders."""
        first = shuffle_indices(50, base_seed=7, epoch=0)
        second = shuffle_indices(50, base_seed=7, epoch=1)

        assert not np.array_equal(first, second)

    def test_seed_plus_epoch(self):
        """The generator seed is base_seed + epoch."""
        np.testing.assert_array_equal(
            shuffle_indices(30, base_seed=10, epoch=2), shuffle_indices(30, base_seed=12, epoch=0)
        )


class TestCreateBatches:
    """Test mini-batch slicing."""

    def test_even_split(self):
        batches = create_batches(np.arange(12), batch_size=4)

        assert [len(batch) for batch in batches] == [4, 4, 4]

    def test_last_batch_holds_remainder(self):
        batches = create_batches(np.arange(10), batch_size=4)

        assert [len(batch) for batch in batches] == [4, 4, 2]
        np.testing.assert_array_equal(np.concatenate(batches), np.arange(10))

    def test_batch_larger_than_dataset(self):
        batches = create_batches(np.arange(3), batch_size=32)

        assert len(batches) == 1 and len(batches[0]) == 3

    def test_preserves_order(self):
        indices = np.array([5, 2, 9, 0, 7])

        batches = create_batches(indices, batch_size=2)

        np.testing.assert_array_equal(np.concatenate(batches), indices)

    @pytest.mark.parametrize("batch_size", [0, -3])
    def test_non_positive_batch_size_raises(self, batch_size):
        with pytest.raises(InvalidConfigurationError):
            create_batches(np.arange(5), batch_size)


class TestValidateDataset:
    """Test the pre-training integrity checks."""

    def test_valid_dataset_passes(self):
        features, labels = make_separable_dataset(num_samples=20, num_features=5)

        validate_dataset(features, labels, num_features=5, num_classes=3)

    def test_count_mismatch(self):
        with pytest.raises(DataIntegrityError, match="mismatch"):
            validate_dataset(np.zeros((4, 10)), np.zeros(9, dtype=np.int64))

    def test_wrong_feature_count(self):
        with pytest.raises(DataIntegrityError):
            validate_dataset(np.zeros((4, 10)), np.zeros(10, dtype=np.int64), num_features=5)

    def test_non_finite_features(self):
        features = np.zeros((3, 4))
        features[1, 2] = np.nan

        with pytest.raises(DataIntegrityError, match="NaN"):
            validate_dataset(features, np.zeros(4, dtype=np.int64))

    def test_labels_out_of_range(self):
        with pytest.raises(DataIntegrityError):
            validate_dataset(np.zeros((3, 2)), np.array([0, 3]), num_classes=3)

    def test_negative_labels(self):
        with pytest.raises(DataIntegrityError):
            validate_dataset(np.zeros((3, 2)), np.array([-1, 0]), num_classes=3)

    def test_float_labels_rejected(self):
        with pytest.raises(DataIntegrityError, match="integers"):
            validate_dataset(np.zeros((3, 2)), np.array([0.0, 1.0]))

    def test_features_must_be_2d(self):
        with pytest.raises(DataIntegrityError):
            validate_dataset(np.zeros(6), np.zeros(6, dtype=np.int64))


class TestCsvLoading:
    """Test CSV ingestion."""

    @pytest.fixture
    def data_dir(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            yield tmpdir

    @staticmethod
    def write(path, text):
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)

    def test_load_vectors(self, data_dir):
        path = os.path.join(data_dir, "vectors.csv")
        self.write(path, "0,128,255\n10,20,30\n")

        vectors = load_vectors_csv(path, expected_size=3)

        assert vectors.shape == (2, 3)
        assert vectors.dtype == np.float32
        np.testing.assert_array_equal(vectors[0], [0.0, 128.0, 255.0])

    def test_load_vectors_skips_blank_lines(self, data_dir):
        path = os.path.join(data_dir, "vectors.csv")
        self.write(path, "1,2\n\n3,4\n\n")

        vectors = load_vectors_csv(path, expected_size=2)

        assert vectors.shape == (2, 2)

    def test_load_vectors_malformed_value(self, data_dir):
        path = os.path.join(data_dir, "vectors.csv")
        self.write(path, "1,2\n3,abc\n")

        with pytest.raises(DataIntegrityError, match=":2:"):
            load_vectors_csv(path, expected_size=2)

    def test_load_vectors_wrong_width(self, data_dir):
        path = os.path.join(data_dir, "vectors.csv")
        self.write(path, "1,2,3\n4,5\n")

        with pytest.raises(DataIntegrityError, match="expected 3 values"):
            load_vectors_csv(path, expected_size=3)

    def test_load_labels(self, data_dir):
        path = os.path.join(data_dir, "labels.csv")
        self.write(path, "3\n0\n\n9\n")

        labels = load_labels_csv(path)

        np.testing.assert_array_equal(labels, [3, 0, 9])
        assert labels.dtype == np.int64

    def test_load_labels_malformed(self, data_dir):
        path = os.path.join(data_dir, "labels.csv")
        self.write(path, "1\ntwo\n")

        with pytest.raises(DataIntegrityError, match="malformed label"):
            load_labels_csv(path)

    def test_load_dataset_layout_and_normalization(self, data_dir):
        vectors_path = os.path.join(data_dir, "vectors.csv")
        labels_path = os.path.join(data_dir, "labels.csv")
        self.write(vectors_path, "0,255,51\n255,0,102\n")
        self.write(labels_path, "1\n0\n")

        features, labels = load_dataset(vectors_path, labels_path, expected_size=3)

        assert features.shape == (3, 2), "Features should be (features, samples)"
        np.testing.assert_allclose(features[:, 0], [0.0, 1.0, 0.2], atol=1e-6)
        np.testing.assert_array_equal(labels, [1, 0])

    def test_load_dataset_count_mismatch(self, data_dir):
        vectors_path = os.path.join(data_dir, "vectors.csv")
        labels_path = os.path.join(data_dir, "labels.csv")
        self.write(vectors_path, "1,2\n3,4\n")
        self.write(labels_path, "1\n")

        with pytest.raises(DataIntegrityError, match="do not match"):
            load_dataset(vectors_path, labels_path, expected_size=2)

    def test_missing_file_raises(self, data_dir):
        with pytest.raises(FileNotFoundError):
            load_labels_csv(os.path.join(data_dir, "missing.csv"))


class TestSplitAndSynthetic:
    """Test the validation split and synthetic dataset."""

    def test_normalize_pixels(self):
        np.testing.assert_allclose(normalize_pixels(np.array([0, 255, 51])), [0.0, 1.0, 0.2], atol=1e-6)

    def test_split_sizes(self):
        features, labels = make_separable_dataset(num_samples=100, num_features=6)

        train_x, train_y, val_x, val_y = train_validation_split(
            features, labels, validation_fraction=0.2, seed=1
        )

        assert train_x.shape == (6, 80) and train_y.shape == (80,)
        assert val_x.shape == (6, 20) and val_y.shape == (20,)

    def test_split_keeps_pairs_together(self):
        """Each feature column should stay with its label."""
        features = np.arange(10, dtype=np.float32).reshape(1, 10)
        labels = np.arange(10, dtype=np.int64)

        train_x, train_y, val_x, val_y = train_validation_split(features, labels, 0.3, seed=0)

        np.testing.assert_array_equal(train_x[0], train_y)
        np.testing.assert_array_equal(val_x[0], val_y)
        assert sorted(np.concatenate([train_y, val_y]).tolist()) == list(range(10))

    @pytest.mark.parametrize("fraction", [0.0, 1.0, -0.1])
    def test_split_fraction_bounds(self, fraction):
        features, labels = make_separable_dataset(num_samples=10, num_features=2)

        with pytest.raises(InvalidConfigurationError):
            train_validation_split(features, labels, fraction)

    def test_separable_dataset_shapes(self):
        features, labels = make_separable_dataset(num_samples=30, num_features=12, num_classes=3)

        assert features.shape == (12, 30)
        assert features.dtype == np.float32
        assert features.min() >= 0.0 and features.max() <= 1.0
        np.testing.assert_array_equal(np.bincount(labels), [10, 10, 10])


class TestOutput:
    """Test prediction export and progress lines."""

    def test_export_predictions(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "nested", "predictions.csv")

            export_predictions(np.array([3, 0, 7]), path)

            with open(path, encoding="utf-8") as f:
                assert f.read() == "3\n0\n7\n"

    def test_format_progress_with_validation(self):
        snapshot = ProgressSnapshot(
            epoch=4,
            train_loss=0.41234,
            train_accuracy=0.862,
            validation_accuracy=0.851,
            learning_rate=0.01,
            elapsed_seconds=12.34,
        )

        line = format_progress(snapshot, total_epochs=50)

        assert line == (
            "Epoch 5/50 | Loss: 0.4123 | Train Acc: 86.20% | Val Acc: 85.10% "
            "| LR: 1.00e-02 | 12.3s"
        )

    def test_format_progress_without_validation(self):
        snapshot = ProgressSnapshot(0, 1.0, 0.5, None, 0.1, 0.0)

        line = format_progress(snapshot)

        assert line.startswith("Epoch 1 |")
        assert "Val Acc" not in line
