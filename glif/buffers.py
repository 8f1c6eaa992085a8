"""
Ring buffers queueing input for the steps ahead of the current one.
"""

import numpy as np


class RingBuffer:
    """Per-step accumulator over a sliding window of absolute steps.

    Slot `step % size` holds the summed input for `step`. Reading a step
    returns its value and clears the slot for reuse `size` steps later.
    """

    __slots__ = ["size", "position", "_wheel"]

    def __init__(self, size: int = 16):
        if size < 1:
            raise ValueError(f"Ring buffer size must be positive, got {size}")
        self.size = size
        self.position = 0  # first step that has not been read yet
        self._wheel = np.zeros(size)

    def add_value(self, step: int, value: float) -> None:
        """Accumulate value into the slot of absolute step `step`."""
        if not (self.position <= step < self.position + self.size):
            raise ValueError(
                f"Step {step} outside buffer window "
                f"[{self.position}, {self.position + self.size})"
            )
        self._wheel[step % self.size] += value

    def get_value(self, step: int) -> float:
        """Return the input for `step` and clear its slot."""
        index = step % self.size
        value = float(self._wheel[index])
        self._wheel[index] = 0.0
        self.position = max(self.position, step + 1)
        return value

    def resize(self, size: int) -> None:
        """Change the window length, keeping input queued inside the new window."""
        if size < 1:
            raise ValueError(f"Ring buffer size must be positive, got {size}")
        steps = np.arange(self.position, self.position + min(self.size, size))
        wheel = np.zeros(size)
        wheel[steps % size] = self._wheel[steps % self.size]
        self.size = size
        self._wheel = wheel

    def clear(self) -> None:
        self._wheel.fill(0.0)

    def reset(self, position: int = 0) -> None:
        self.clear()
        self.position = position
