"""
Adaptive threshold: th_inf plus an optional spike-driven and an optional
voltage-driven component.
"""

from .parameters import GLIFParameters
from .propagators import PropagatorTable
from .variants import VariantCapabilities


class AdaptiveThreshold:
    """Threshold components relative to th_inf.

    last_spike jumps by a_spike on every reset and decays at b_spike
    (variants with reset rule R); last_voltage follows the membrane at rate
    a_voltage and decays at b_voltage (variant A). Inactive components are
    held at zero.
    """

    __slots__ = ["last_spike", "last_voltage"]

    def __init__(self):
        self.last_spike = 0.0
        self.last_voltage = 0.0

    def reset(self) -> None:
        self.last_spike = 0.0
        self.last_voltage = 0.0

    def value(self, th_inf: float) -> float:
        return self.last_spike + self.last_voltage + th_inf

    def decay_spike_component(
        self, caps: VariantCapabilities, table: PropagatorTable
    ) -> None:
        """Exact one-step decay of the spike component."""
        if caps.has_reset_r:
            self.last_spike = self.last_spike * table.spike_decay
        else:
            self.last_spike = 0.0

    def on_reset(self, params: GLIFParameters) -> None:
        self.last_spike += params.a_spike

    def integrate_voltage_component(
        self,
        caps: VariantCapabilities,
        params: GLIFParameters,
        table: PropagatorTable,
        v_old: float,
        I_total: float,
    ) -> None:
        """
        Advance the voltage component exactly over one step.

        The membrane relaxes from v_old towards beta = I_total / G with rate
        G / C_m during the step; the component is driven by a_voltage * U and
        decays at b_voltage.
        """
        if not caps.has_voltage_adapt:
            self.last_voltage = 0.0
            return

        beta = I_total / params.G
        steady = params.a_voltage / params.b_voltage * beta
        self.last_voltage = (
            steady
            + table.voltage_decay * (self.last_voltage - steady)
            + params.a_voltage * (v_old - beta) * table.voltage_coupling
        )
