"""
Dense Matrix Algebra Primitives

This module implements the small set of 2D matrix operations the network
needs for forward and backward propagation. Every operation is a pure
function: inputs are never modified and each call returns a newly allocated
float32 array.

Layout convention used throughout the package:
    - Activations and inputs: (features_or_units, samples)
    - Weights: (output_units, input_units)
    - Biases: (output_units, 1)

Matrix multiplication dominates the cost of training, so `multiply` splits
the output rows of large products into contiguous blocks and computes them
on a thread pool. NumPy releases the GIL inside its kernels, and each worker
writes a disjoint block of the result, so no locking is needed.

Functions:
    as_matrix: Coerce input to a 2D float32 array
    multiply: Matrix product (row-parallel for large shapes)
    add_bias: Broadcast a column vector across every column
    add, subtract, multiply_elementwise: Same-shape elementwise operations
    scale: Multiply by a scalar
    transpose: Swap rows and columns
    sum_columns: Row-wise sum across all columns
    identity, ones_like: Constant matrices
"""

import math
import os
from concurrent.futures import ThreadPoolExecutor
from functools import lru_cache
from typing import Optional

import numpy as np

from fcnet.exceptions import ShapeMismatchError

DTYPE = np.float32

# Products with fewer multiply-adds than this run on the calling thread
PARALLEL_MIN_WORK = 1 << 21
# Each worker gets at least this many output rows
PARALLEL_MIN_ROWS_PER_WORKER = 4


def as_matrix(values) -> np.ndarray:
    """
    Convert input to a 2D float32 array.

    Arrays that are already float32 are returned without copying, so callers
    must not rely on this function for isolation.

    Raises:
        ShapeMismatchError: If the input is not two-dimensional.
    """
    matrix = np.asarray(values, dtype=DTYPE)
    if matrix.ndim != 2:
        raise ShapeMismatchError("as_matrix (expected 2D)", matrix.shape)
    return matrix


def _require_same_shape(operation: str, a: np.ndarray, b: np.ndarray) -> None:
    if a.shape != b.shape:
        raise ShapeMismatchError(operation, a.shape, b.shape)


def _default_workers() -> int:
    return os.cpu_count() or 1


@lru_cache(maxsize=None)
def _thread_pool(max_workers: int) -> ThreadPoolExecutor:
    """Shared executor per worker count, created on first use."""
    return ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="fcnet-matmul")


def multiply(a, b, workers: Optional[int] = None) -> np.ndarray:
    """
    Compute the matrix product a @ b.

    For (m, n) @ (n, p) the result has shape (m, p). Each output row depends
    only on the matching row of `a`, so rows are partitioned into contiguous
    blocks and computed concurrently when the product is large enough to be
    worth it.

    Args:
        a: Left operand, shape (m, n)
        b: Right operand, shape (n, p)
        workers: Number of worker threads. Defaults to os.cpu_count().
                 Use 1 to force the serial path.

    Returns:
        Newly allocated float32 array of shape (m, p)

    Raises:
        ShapeMismatchError: If a.shape[1] != b.shape[0]
    """
    a = as_matrix(a)
    b = as_matrix(b)
    if a.shape[1] != b.shape[0]:
        raise ShapeMismatchError("multiply", a.shape, b.shape)

    rows = a.shape[0]
    result = np.empty((rows, b.shape[1]), dtype=DTYPE)

    num_workers = workers if workers is not None else _default_workers()
    work = rows * a.shape[1] * b.shape[1]
    num_workers = min(num_workers, rows // PARALLEL_MIN_ROWS_PER_WORKER)

    if num_workers <= 1 or work < PARALLEL_MIN_WORK:
        np.matmul(a, b, out=result)
        return result

    block_size = math.ceil(rows / num_workers)

    def compute_block(start: int) -> None:
        stop = min(start + block_size, rows)
        np.matmul(a[start:stop], b, out=result[start:stop])

    # list() drains the iterator so worker exceptions propagate here
    list(_thread_pool(num_workers).map(compute_block, range(0, rows, block_size)))
    return result


def add_bias(z, bias) -> np.ndarray:
    """
    Add a column vector to every column of z.

    Args:
        z: Matrix of shape (rows, samples)
        bias: Column vector of shape (rows, 1)

    Returns:
        z + bias broadcast across columns, shape (rows, samples)
    """
    z = as_matrix(z)
    bias = as_matrix(bias)
    if bias.shape != (z.shape[0], 1):
        raise ShapeMismatchError("add_bias", z.shape, bias.shape)
    return z + bias


def add(a, b) -> np.ndarray:
    """Elementwise a + b. Shapes must match exactly."""
    a = as_matrix(a)
    b = as_matrix(b)
    _require_same_shape("add", a, b)
    return a + b


def subtract(a, b) -> np.ndarray:
    """Elementwise a - b. Shapes must match exactly."""
    a = as_matrix(a)
    b = as_matrix(b)
    _require_same_shape("subtract", a, b)
    return a - b


def multiply_elementwise(a, b) -> np.ndarray:
    """Elementwise (Hadamard) product. Shapes must match exactly."""
    a = as_matrix(a)
    b = as_matrix(b)
    _require_same_shape("multiply_elementwise", a, b)
    return a * b


def scale(a, scalar: float) -> np.ndarray:
    """Multiply every element by a scalar."""
    a = as_matrix(a)
    return a * DTYPE(scalar)


def transpose(a) -> np.ndarray:
    """
    Return the transpose of a as a new contiguous array (never a view).
    """
    a = as_matrix(a)
    return a.T.copy()


def sum_columns(a) -> np.ndarray:
    """
    Sum across all columns of each row.

    Used to reduce per-sample bias gradients over a batch.

    Args:
        a: Matrix of shape (rows, samples)

    Returns:
        Column vector of shape (rows, 1)
    """
    a = as_matrix(a)
    return np.sum(a, axis=1, keepdims=True, dtype=DTYPE)


def identity(n: int) -> np.ndarray:
    """Return the n x n identity matrix."""
    return np.eye(n, dtype=DTYPE)


def ones_like(a) -> np.ndarray:
    """Return a matrix of ones with the shape of a."""
    a = as_matrix(a)
    return np.ones(a.shape, dtype=DTYPE)
