"""
Parameter set of the GLIF neuron and its named-option (status) surface.

Potentials are stored relative to the resting potential E_L; the status
dictionary exposes V_th and V_reset as absolute values.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from .errors import BadPropertyError
from .variants import VariantCapabilities, get_capabilities, resolve_variant

# Status name -> attribute, for scalars copied verbatim
SCALAR_OPTIONS = {
    "g": "G",
    "C_m": "C_m",
    "t_ref": "t_ref",
    "a_spike": "a_spike",
    "b_spike": "b_spike",
    "a_reset": "voltage_reset_a",
    "b_reset": "voltage_reset_b",
    "a_voltage": "a_voltage",
    "b_voltage": "b_voltage",
}

ASC_OPTIONS = ("asc_init", "k", "asc_amps", "r")

PARAMETER_KEYS = frozenset(
    ["E_L", "V_reset", "V_th", "tau_syn", "glif_model", "has_connections"]
    + list(SCALAR_OPTIONS)
    + list(ASC_OPTIONS)
)


def _as_float(key: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise BadPropertyError(f"{key} must be a number, got {value!r}") from None


def _as_vector(key: str, value: Any) -> np.ndarray:
    try:
        vector = np.asarray(value, dtype=float)
    except (TypeError, ValueError):
        raise BadPropertyError(f"{key} must be a list of numbers, got {value!r}") from None
    if vector.ndim != 1:
        raise BadPropertyError(f"{key} must be a one-dimensional list of numbers")
    return vector.copy()


@dataclass
class GLIFParameters:
    """Parameters of one GLIF neuron (units: mV, nS, pF, ms, pA)."""

    E_L: float = -78.85  # Resting potential
    G: float = 9.43  # Membrane conductance
    th_inf: float = 27.17  # Instantaneous threshold, relative to E_L
    C_m: float = 58.72  # Membrane capacitance
    t_ref: float = 3.75  # Refractory period
    V_reset: float = 0.0  # Reset potential, relative to E_L
    a_spike: float = 0.37  # Spike-induced threshold jump
    b_spike: float = 0.009  # Spike-induced threshold decay rate (1/ms)
    voltage_reset_a: float = 0.20  # Voltage reset slope
    voltage_reset_b: float = 18.51  # Voltage reset intercept
    a_voltage: float = 0.005  # Voltage-induced threshold adaptation rate (1/ms)
    b_voltage: float = 0.09  # Voltage-induced threshold decay rate (1/ms)
    asc_init: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0]))
    k: np.ndarray = field(default_factory=lambda: np.array([0.003, 0.1]))
    asc_amps: np.ndarray = field(default_factory=lambda: np.array([-9.18, -198.94]))
    r: np.ndarray = field(default_factory=lambda: np.array([1.0, 1.0]))
    tau_syn: np.ndarray = field(default_factory=lambda: np.array([2.0]))
    has_connections: bool = False
    glif_model: str = "lif"

    def __post_init__(self):
        """Store every vector option as a float array."""
        for key in ASC_OPTIONS + ("tau_syn",):
            setattr(self, key, _as_vector(key, getattr(self, key)))

    @property
    def n_receptors(self) -> int:
        return len(self.tau_syn)

    @property
    def n_asc(self) -> int:
        return len(self.k)

    @property
    def tau_m(self) -> float:
        """Membrane time constant C_m / G."""
        return self.C_m / self.G

    @property
    def capabilities(self) -> VariantCapabilities:
        return get_capabilities(self.glif_model)

    def copy(self) -> "GLIFParameters":
        return copy.deepcopy(self)

    def validate(self, asc_length: Optional[int] = None) -> List[str]:
        """
        Return the list of violated invariants (empty when valid).

        Args:
            asc_length: Required length of the after-spike current vectors;
                None only requires the four vectors to agree.
        """
        violations = []

        if self.V_reset >= self.th_inf:
            violations.append("Reset potential must be smaller than threshold.")
        if self.C_m <= 0.0:
            violations.append("Capacitance must be strictly positive.")
        if self.G <= 0.0:
            violations.append("Membrane conductance must be strictly positive.")
        if self.t_ref <= 0.0:
            violations.append("Refractory time constant must be strictly positive.")
        if self.b_voltage <= 0.0:
            violations.append(
                "Voltage-induced threshold time constant must be strictly positive."
            )
        if self.b_spike <= 0.0:
            violations.append(
                "Spike induced threshold time constant must be strictly positive."
            )
        if np.any(self.k <= 0.0):
            violations.append(
                "After-spike current time constant must be strictly positive."
            )
        if np.any(self.tau_syn <= 0.0):
            violations.append("All synaptic time constants must be strictly positive.")

        lengths = {key: len(getattr(self, key)) for key in ASC_OPTIONS}
        if len(set(lengths.values())) != 1:
            violations.append(
                f"asc_init, k, asc_amps and r must have the same length, got {lengths}"
            )
        elif asc_length is not None and self.n_asc != asc_length:
            violations.append(
                f"The number of after-spike currents is fixed at {asc_length}, got {self.n_asc}"
            )

        try:
            resolve_variant(self.glif_model)
        except BadPropertyError as e:
            violations.extend(e.violations)

        return violations

    def check(self, asc_length: Optional[int] = None) -> None:
        """Raise BadPropertyError if any invariant is violated."""
        violations = self.validate(asc_length)
        if violations:
            raise BadPropertyError(violations)

    def get_status(self) -> Dict[str, Any]:
        """Return the named options, with absolute V_th and V_reset."""
        status = {
            "E_L": self.E_L,
            "V_th": self.th_inf + self.E_L,
            "V_reset": self.V_reset + self.E_L,
        }
        for key, attr in SCALAR_OPTIONS.items():
            status[key] = getattr(self, attr)
        for key in ASC_OPTIONS:
            status[key] = getattr(self, key).tolist()
        status["tau_syn"] = self.tau_syn.tolist()
        status["has_connections"] = self.has_connections
        status["glif_model"] = self.glif_model
        return status

    def set_status(self, d: Dict[str, Any], asc_length: Optional[int] = None) -> float:
        """
        Apply named options in place and return the change of E_L.

        Only ever call this on a copy: on failure the object is left half
        updated and must be discarded.

        Raises:
            BadPropertyError: With every violated invariant.
        """
        violations = []

        # Potentials defined relative to E_L follow a change of E_L unless
        # they are given in the same call
        old_E_L = self.E_L
        if "E_L" in d:
            self.E_L = _as_float("E_L", d["E_L"])
        delta_EL = self.E_L - old_E_L

        if "V_reset" in d:
            self.V_reset = _as_float("V_reset", d["V_reset"]) - self.E_L
        else:
            self.V_reset -= delta_EL

        if "V_th" in d:
            self.th_inf = _as_float("V_th", d["V_th"]) - self.E_L
        else:
            self.th_inf -= delta_EL

        for key, attr in SCALAR_OPTIONS.items():
            if key in d:
                setattr(self, attr, _as_float(key, d[key]))

        for key in ASC_OPTIONS:
            if key in d:
                setattr(self, key, _as_vector(key, d[key]))

        if "has_connections" in d:
            violations.append("has_connections is read-only.")

        if "glif_model" in d:
            try:
                self.glif_model = resolve_variant(d["glif_model"]).value
            except BadPropertyError as e:
                violations.extend(e.violations)

        if "tau_syn" in d:
            tau_syn = _as_vector("tau_syn", d["tau_syn"])
            if self.has_connections and len(tau_syn) < self.n_receptors:
                violations.append(
                    "The neuron has connections, therefore the number of ports cannot be reduced."
                )
            else:
                self.tau_syn = tau_syn

        violations.extend(self.validate(asc_length))
        if violations:
            raise BadPropertyError(violations)

        return delta_EL

    @classmethod
    def from_status(cls, d: Optional[Dict[str, Any]] = None) -> "GLIFParameters":
        """Build a parameter set from the defaults overridden by named options."""
        params = cls()
        d = d or {}
        unknown = sorted(set(d) - PARAMETER_KEYS)
        if unknown:
            raise BadPropertyError(f"Unknown parameter(s): {unknown}")
        params.set_status(d)
        return params
