"""
Alpha-shaped postsynaptic currents, one two-state filter per receptor.
"""

import numpy as np

from .propagators import PropagatorTable


class AlphaSynapses:
    """Filter state (y1, y2) of every receptor port.

    y2 is the synaptic current seen by the membrane; y1 is its driving
    state, kicked by PSCInitialValue * weight for each incoming spike so a
    unit weight produces a current peaking at 1 pA after tau_syn.
    """

    __slots__ = ["y1", "y2"]

    def __init__(self, n_receptors: int = 0):
        self.y1 = np.zeros(n_receptors)
        self.y2 = np.zeros(n_receptors)

    def __len__(self) -> int:
        return len(self.y1)

    def resize(self, n_receptors: int) -> None:
        """Grow or shrink to n_receptors, keeping the state of kept ports."""
        old = len(self.y1)
        if n_receptors == old:
            return
        keep = min(old, n_receptors)
        y1 = np.zeros(n_receptors)
        y2 = np.zeros(n_receptors)
        y1[:keep] = self.y1[:keep]
        y2[:keep] = self.y2[:keep]
        self.y1, self.y2 = y1, y2

    def reset(self) -> None:
        self.y1.fill(0.0)
        self.y2.fill(0.0)

    def voltage_contribution(self, table: PropagatorTable) -> float:
        """Exact contribution of the current filter state to U over one step."""
        return float(np.dot(table.P31, self.y1) + np.dot(table.P32, self.y2))

    def current(self) -> float:
        """Total synaptic current I_syn."""
        return float(self.y2.sum())

    def propagate(self, table: PropagatorTable, weights: np.ndarray) -> None:
        """
        Advance every filter by one step, then apply the spikes of this step.

        Decay comes first so that spikes delivered in this step only act on
        the membrane from the next step on.
        """
        self.y2 = table.P21 * self.y1 + table.P22 * self.y2
        self.y1 = self.y1 * table.P11
        self.y1 += table.psc_initial_values * weights
