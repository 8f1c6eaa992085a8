"""
Spike events, sub-step spike timing and event sinks.
"""

from dataclasses import dataclass
from typing import List, Protocol

import numpy as np


@dataclass
class SpikeEvent:
    __slots__ = ["sender", "step", "offset", "weight", "multiplicity"]
    """A spike stamped at the end of absolute step `step`.

    The threshold crossing happened `offset` ms before the end of that step.
    """

    sender: int
    step: int
    offset: float
    weight: float
    multiplicity: int

    def time(self, h: float) -> float:
        """Precise spike time in ms."""
        # offset counts back from the end of the stamped step
        return self.step * h - self.offset


class EventSink(Protocol):
    """Receiver of the spikes emitted during an update."""

    def send(self, event: SpikeEvent) -> None: ...


def spike_offset(
    v_old: float, th_old: float, v_new: float, th_new: float, h: float
) -> float:
    """
    Sub-step offset of a threshold crossing, measured back from step end.

    Membrane potential and threshold are taken to move linearly from
    (v_old, th_old) to (v_new, th_new) over the step; the lines cross a
    fraction frac of the way through and the offset is (1 - frac) * h.
    The result lies in [0, h).
    """
    offset = (1 - (v_old - th_old) / ((th_new - th_old) - (v_new - v_old))) * h
    # v_old == th_old puts the crossing exactly at step start
    return min(max(offset, 0.0), float(np.nextafter(h, 0.0)))


class SpikeRecorder:
    """Event sink that keeps every spike it receives."""

    def __init__(self):
        self.events: List[SpikeEvent] = []

    def send(self, event: SpikeEvent) -> None:
        self.events.append(event)

    def __len__(self) -> int:
        return len(self.events)

    def clear(self) -> None:
        self.events.clear()

    def senders(self) -> np.ndarray:
        return np.array([e.sender for e in self.events], dtype=np.int64)

    def steps(self) -> np.ndarray:
        return np.array([e.step for e in self.events], dtype=np.int64)

    def times(self, h: float) -> np.ndarray:
        """Precise spike times in ms."""
        return np.array([e.time(h) for e in self.events])

    def for_sender(self, sender: int) -> List[SpikeEvent]:
        return [e for e in self.events if e.sender == sender]
