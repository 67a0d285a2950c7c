"""
Learning Rate Scheduling

A scheduler produces one learning rate per epoch. It holds a single piece of
state, the epoch counter, which starts at 0 and advances after every call to
`get_learning_rate()`, so the first call returns the rate for epoch 0.

Policies:
    Constant:     lr = lr0
    StepDecay:    lr = lr0 * decay_rate ** floor(epoch / step_size)
    Exponential:  lr = lr0 * exp(-decay_rate * epoch)
    Cosine:       lr = lr0 * 0.5 * (1 + cos(pi * epoch / total_epochs))

Reference:
    "SGDR: Stochastic Gradient Descent with Warm Restarts"
    (Loshchilov & Hutter, 2017) - cosine annealing

Classes:
    ScheduleType: Which decay policy to use
    LearningRateScheduler: Stateful per-epoch learning rate source
"""

import math
from enum import Enum
from typing import Optional, Union

from fcnet.exceptions import InvalidConfigurationError


class ScheduleType(Enum):
    """Learning rate decay policy."""

    CONSTANT = "constant"
    STEP_DECAY = "step"
    EXPONENTIAL = "exponential"
    COSINE = "cosine"

    @classmethod
    def parse(cls, value: Union["ScheduleType", str]) -> "ScheduleType":
        """Resolve a schedule from a member, its value, or its member name."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        for member in cls:
            if text in (member.value, member.name.lower()):
                return member
        known = ", ".join(member.value for member in cls)
        raise InvalidConfigurationError(
            f"Unknown schedule type: {value!r} (expected one of: {known})"
        )


class LearningRateScheduler:
    """
    Per-epoch learning rate scheduler.

    Example:
        >>> scheduler = LearningRateScheduler(ScheduleType.STEP_DECAY, 0.1,
        ...                                   decay_rate=0.5, step_size=2)
        >>> [scheduler.get_learning_rate() for _ in range(5)]
        [0.1, 0.1, 0.05, 0.05, 0.025]
    """

    def __init__(
        self,
        schedule_type: Union[ScheduleType, str],
        initial_rate: float,
        decay_rate: float = 0.1,
        step_size: int = 10,
        total_epochs: Optional[int] = None,
    ):
        """
        Initialize the scheduler.

        Args:
            schedule_type: Decay policy
            initial_rate: Learning rate at epoch 0
            decay_rate: Multiplier per step (StepDecay) or rate constant
                        (Exponential). Ignored by Constant and Cosine.
            step_size: Epochs per step (StepDecay only)
            total_epochs: Cosine horizon; the rate reaches 0 at this epoch and
                          stays there. Required for Cosine.

        Raises:
            InvalidConfigurationError: For a non-positive step size or a
                                       cosine schedule without a horizon.
        """
        self.schedule_type = ScheduleType.parse(schedule_type)
        self.initial_rate = initial_rate
        self.decay_rate = decay_rate
        self.step_size = step_size
        self.total_epochs = total_epochs

        if self.schedule_type is ScheduleType.STEP_DECAY and step_size <= 0:
            raise InvalidConfigurationError(f"step_size must be positive, got {step_size}")
        if self.schedule_type is ScheduleType.COSINE and (
            total_epochs is None or total_epochs <= 0
        ):
            raise InvalidConfigurationError(
                "Cosine schedule requires a positive total_epochs horizon"
            )

        self._current_epoch = 0

    @property
    def current_epoch(self) -> int:
        """Epoch whose rate the next get_learning_rate() call returns."""
        return self._current_epoch

    def peek(self) -> float:
        """Return the rate for the current epoch without advancing."""
        return self._rate_for(self._current_epoch)

    def get_learning_rate(self) -> float:
        """Return the rate for the current epoch, then advance the counter."""
        rate = self._rate_for(self._current_epoch)
        self._current_epoch += 1
        return rate

    def reset(self) -> None:
        """Set the epoch counter back to 0. Configuration is unchanged."""
        self._current_epoch = 0

    def _rate_for(self, epoch: int) -> float:
        if self.schedule_type is ScheduleType.CONSTANT:
            return self.initial_rate

        if self.schedule_type is ScheduleType.STEP_DECAY:
            return self.initial_rate * self.decay_rate ** (epoch // self.step_size)

        if self.schedule_type is ScheduleType.EXPONENTIAL:
            return self.initial_rate * math.exp(-self.decay_rate * epoch)

        # Cosine: progress is clamped so the rate stays at 0 past the horizon
        progress = min(epoch, self.total_epochs) / self.total_epochs
        return self.initial_rate * 0.5 * (1.0 + math.cos(math.pi * progress))


# =============================================================================
# DEMO
# Run with: python -m fcnet.scheduler
# =============================================================================
if __name__ == "__main__":
    print("=" * 60)
    print("LEARNING RATE SCHEDULES (lr0=0.1, 10 epochs)")
    print("=" * 60)

    for schedule in ScheduleType:
        demo = LearningRateScheduler(
            schedule, 0.1, decay_rate=0.5, step_size=2, total_epochs=10
        )
        rates = [demo.get_learning_rate() for _ in range(10)]
        print(f"{schedule.value:>12}: " + " ".join(f"{rate:.4f}" for rate in rates))
