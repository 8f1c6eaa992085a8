"""
Multimeter: samples named recordables of one neuron once per step.
"""

from collections import deque
from typing import Callable, Dict, List, Optional

import numpy as np

from .errors import UnknownRecordableError


class Multimeter:
    """Records the requested channels of the neuron it is attached to.

    Channels are looked up in the neuron's recordables map (V_m,
    AScurrents_sum, I_syn). With max_history set, only the most recent
    samples are kept.
    """

    def __init__(
        self, record_from: Optional[List[str]] = None, max_history: Optional[int] = None
    ):
        self.record_from = list(record_from or ["V_m"])
        self.max_history = max_history
        self.times: deque = deque(maxlen=max_history)
        self.data: Dict[str, deque] = {
            name: deque(maxlen=max_history) for name in self.record_from
        }
        self._getters: Dict[str, Callable[[], float]] = {}

    def attach(self, recordables: Dict[str, Callable[[], float]]) -> None:
        """Bind to a neuron's recordables map, validating the channels."""
        for name in self.record_from:
            if name not in recordables:
                raise UnknownRecordableError(name, recordables.keys())
        self._getters = {name: recordables[name] for name in self.record_from}

    def record(self, time: float) -> None:
        """Sample every channel at `time` (ms)."""
        self.times.append(time)
        for name, getter in self._getters.items():
            self.data[name].append(getter())

    def clear(self) -> None:
        self.times.clear()
        for queue in self.data.values():
            queue.clear()

    def get_history(self, name: Optional[str] = None):
        """Return recorded samples as arrays, for one channel or all."""
        if name is not None:
            if name not in self.data:
                raise UnknownRecordableError(name, self.data.keys())
            return np.array(self.data[name])
        return {
            "times": np.array(self.times),
            **{key: np.array(queue) for key, queue in self.data.items()},
        }
