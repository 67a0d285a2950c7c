"""
Error Types for the Training Engine

Every failure in this package is fatal: the engine is deterministic numeric
code, so nothing is retried. The three error types mirror the three ways a
run can be wrong before or while it executes.

Classes:
    FCNetError: Base class for all errors raised by this package
    ShapeMismatchError: Matrix operands with incompatible dimensions
    InvalidConfigurationError: Bad activation, layer chain, or hyperparameters
    DataIntegrityError: Malformed or inconsistent input data
"""


class FCNetError(ValueError):
    """Base class for errors raised by fcnet."""


class ShapeMismatchError(FCNetError):
    """
    Raised when a matrix operation receives incompatible dimensions.

    The message always contains the offending shapes so the failing call
    can be located without a debugger.
    """

    def __init__(self, operation: str, *shapes: tuple):
        self.operation = operation
        self.shapes = shapes
        formatted = ", ".join(str(tuple(shape)) for shape in shapes)
        super().__init__(f"Incompatible shapes for {operation}: {formatted}")


class InvalidConfigurationError(FCNetError):
    """Raised for unknown activations, broken layer chains, or bad settings."""


class DataIntegrityError(FCNetError):
    """Raised when features or labels are malformed or inconsistent."""
