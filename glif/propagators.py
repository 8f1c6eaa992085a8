"""
Exact-integration propagators of the GLIF neuron.

The sub-threshold system is linear: the membrane potential U relaxes with
tau_m = C_m / G and is driven by the injected current and, per receptor,
by an alpha-shaped current produced by the two-state filter

    dy1/dt = -y1 / tau_syn
    dy2/dt = y1 - y2 / tau_syn
    dU/dt  = -U / tau_m + (I + y2) / C_m

Over one step h the map (y1, y2, U) -> (y1', y2', U') is the matrix
exponential of this system. Its entries are computed once per
configuration and step size and stored in a PropagatorTable.
"""

from dataclasses import dataclass

import numpy as np

from .errors import BadPropertyError
from .parameters import GLIFParameters

# Below this |h * (1/tau_m - 1/tau_syn)| the closed forms of P31/P32 lose
# precision to cancellation and the Taylor series is used instead
RESONANCE_SERIES_CUTOFF = 0.1
RESONANCE_SERIES_TERMS = 12


def _resonance_series(x: np.ndarray, order: int) -> np.ndarray:
    """sum_n (-x)^n / (n + order)!  for order 1 or 2.

    order=1 is (1 - exp(-x)) / x, order=2 is (x - 1 + exp(-x)) / x^2; both
    evaluate exactly to 1 and 1/2 at x == 0.
    """
    term = np.full_like(x, 1.0 if order == 1 else 0.5)
    total = term.copy()
    for n in range(1, RESONANCE_SERIES_TERMS):
        term = term * (-x) / (n + order)
        total = total + term
    return total


def propagator_32(tau_syn, tau_m: float, C_m: float, h: float) -> np.ndarray:
    """Contribution of the synaptic current y2 to U over one step."""
    tau_syn = np.asarray(tau_syn, dtype=float)
    a = 1.0 / tau_m - 1.0 / tau_syn
    x = a * h
    near = np.abs(x) < RESONANCE_SERIES_CUTOFF

    p_syn = np.exp(-h / tau_syn)
    p_mem = np.exp(-h / tau_m)

    # a == 0 only inside the series branch; keep the division well defined
    safe_a = np.where(near, 1.0, a)
    generic = (p_syn - p_mem) / (C_m * safe_a)
    series = h * p_syn * _resonance_series(np.where(near, x, 0.0), 1) / C_m
    return np.where(near, series, generic)


def propagator_31(tau_syn, tau_m: float, C_m: float, h: float) -> np.ndarray:
    """Contribution of the synaptic filter state y1 to U over one step."""
    tau_syn = np.asarray(tau_syn, dtype=float)
    a = 1.0 / tau_m - 1.0 / tau_syn
    x = a * h
    near = np.abs(x) < RESONANCE_SERIES_CUTOFF

    p_syn = np.exp(-h / tau_syn)
    p_mem = np.exp(-h / tau_m)

    safe_a = np.where(near, 1.0, a)
    generic = (h * p_syn / safe_a + (p_mem - p_syn) / safe_a**2) / C_m
    series = h * h * p_syn * _resonance_series(np.where(near, x, 0.0), 2) / C_m
    return np.where(near, series, generic)


def voltage_coupling(b_voltage: float, g_m: float, h: float) -> float:
    """
    Weight of the membrane deviation in the voltage-driven threshold update.

    (exp(-g_m h) - exp(-b_voltage h)) / (b_voltage - g_m), with g_m = G / C_m;
    equals h * exp(-b_voltage h) when the two rates coincide.
    """
    delta = b_voltage - g_m
    if delta == 0.0:
        return h * float(np.exp(-b_voltage * h))
    return float(np.exp(-b_voltage * h) * np.expm1(delta * h) / delta)


@dataclass
class PropagatorTable:
    """Per-step coefficients derived from a parameter set and step size h."""

    h: float
    t_ref_total: float
    P30: float
    P33: float
    P11: np.ndarray
    P21: np.ndarray
    P22: np.ndarray
    P31: np.ndarray
    P32: np.ndarray
    psc_initial_values: np.ndarray
    asc_decay: np.ndarray  # exp(-k h), one step of after-spike current decay
    asc_refractory_decay: np.ndarray  # exp(-k t_ref_total)
    spike_decay: float  # exp(-b_spike h)
    voltage_decay: float  # exp(-b_voltage h)
    voltage_coupling: float  # (exp(-h G/C_m) - exp(-b_voltage h)) / (b_voltage - G/C_m)

    @property
    def n_receptors(self) -> int:
        return len(self.P11)

    @classmethod
    def build(cls, params: GLIFParameters, h: float) -> "PropagatorTable":
        """
        Validate the parameters, then derive all coefficients for step h.

        Raises:
            BadPropertyError: If the parameters or the step size are invalid.
        """
        violations = params.validate()
        if not h > 0.0:
            violations.append(f"Simulation resolution must be strictly positive, got {h}")
        if violations:
            raise BadPropertyError(violations)

        tau_m = params.tau_m
        P33 = float(np.exp(-h / tau_m))
        P30 = 1.0 / params.C_m * (1.0 - P33) * tau_m

        tau_syn = params.tau_syn
        P11 = np.exp(-h / tau_syn)

        return cls(
            h=h,
            t_ref_total=params.t_ref,
            P30=P30,
            P33=P33,
            P11=P11,
            P21=h * P11,
            P22=P11.copy(),
            P31=propagator_31(tau_syn, tau_m, params.C_m, h),
            P32=propagator_32(tau_syn, tau_m, params.C_m, h),
            psc_initial_values=np.e / tau_syn,
            asc_decay=np.exp(-params.k * h),
            asc_refractory_decay=np.exp(-params.k * params.t_ref),
            spike_decay=float(np.exp(-params.b_spike * h)),
            voltage_decay=float(np.exp(-params.b_voltage * h)),
            voltage_coupling=voltage_coupling(params.b_voltage, 1.0 / tau_m, h),
        )
