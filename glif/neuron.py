#
# Generalized leaky integrate-and-fire point neuron with alpha-shaped
# postsynaptic currents, integrated exactly on a fixed time grid.
#

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import numpy as np
from loguru import logger

from .buffers import RingBuffer
from .errors import (
    BadPropertyError,
    IncompatibleReceptorTypeError,
    NotCalibratedError,
    ResetAboveThresholdError,
)
from .parameters import PARAMETER_KEYS, GLIFParameters
from .propagators import PropagatorTable
from .recording import Multimeter
from .spikes import EventSink, SpikeEvent, spike_offset
from .synapses import AlphaSynapses
from .threshold import AdaptiveThreshold
from .variants import VariantCapabilities

STATE_KEYS = frozenset(["V_m", "ASCurrents"])

# Default length of the input ring buffers, in steps
DEFAULT_BUFFER_SIZE = 64


def setup_neuron_logger(level: str = "INFO") -> None:
    """Setup colored logging for the neuron model with specified level."""
    logger.remove()
    logger.configure(extra={"node_id": "-"})
    logger.add(
        lambda msg: print(msg, end=""),
        format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        + "<level>{level: <8}</level> | "
        + "<cyan>N:{extra[node_id]}</cyan> | "
        + "<level>{message}</level>",
        level=level,
        colorize=True,
    )


class Phase(Enum):
    INTEGRATING = "integrating"
    REFRACTORY = "refractory"


@dataclass
class RefractoryTimer:
    """Countdown of the refractory period.

    t_ref_total is the refractory duration cached at configuration time;
    the countdown runs in steps of h so it is unaffected by later changes.
    """

    t_ref_remaining: float = 0.0
    t_ref_total: float = 0.0

    @property
    def phase(self) -> Phase:
        return Phase.REFRACTORY if self.t_ref_remaining > 0.0 else Phase.INTEGRATING

    def start(self) -> None:
        self.t_ref_remaining = self.t_ref_total

    def countdown(self, h: float) -> bool:
        """Count down one step; True if the refractory period ended in it."""
        self.t_ref_remaining -= h
        return self.t_ref_remaining <= 0.0


@dataclass
class GLIFState:
    """Dynamic state of one neuron; potentials relative to E_L."""

    U: float
    threshold: float
    ASCurrents: np.ndarray
    I: float = 0.0  # external current applied during the next step
    ASCurrents_sum: float = 0.0
    I_syn: float = 0.0
    synapses: AlphaSynapses = field(default_factory=AlphaSynapses)

    @classmethod
    def from_parameters(cls, params: GLIFParameters) -> "GLIFState":
        return cls(
            U=0.0,
            threshold=params.th_inf,
            ASCurrents=params.asc_init.copy(),
            synapses=AlphaSynapses(params.n_receptors),
        )

    def get_status(self, params: GLIFParameters) -> Dict[str, Any]:
        return {
            "V_m": self.U + params.E_L,
            "ASCurrents": self.ASCurrents.tolist(),
            "threshold": self.threshold + params.E_L,
            "AScurrents_sum": self.ASCurrents_sum,
            "I_syn": self.I_syn,
        }

    def set_status(
        self,
        d: Dict[str, Any],
        params: GLIFParameters,
        delta_EL: float,
        delta_th_inf: float,
    ) -> None:
        """Apply state options; `params` is the already updated parameter set."""
        if "V_m" in d:
            try:
                self.U = float(d["V_m"]) - params.E_L
            except (TypeError, ValueError):
                raise BadPropertyError(f"V_m must be a number, got {d['V_m']!r}") from None
        else:
            self.U -= delta_EL

        if "ASCurrents" in d:
            try:
                currents = np.asarray(d["ASCurrents"], dtype=float)
            except (TypeError, ValueError):
                raise BadPropertyError("ASCurrents must be a list of numbers") from None
            if currents.shape != (params.n_asc,):
                raise BadPropertyError(
                    f"ASCurrents must have {params.n_asc} entries, got {currents.size}"
                )
            self.ASCurrents = currents.copy()

        # Keep the stored threshold consistent with a moved th_inf
        self.threshold += delta_th_inf


class GLIFNeuron:
    __slots__ = [
        "node_id",
        "logger",
        "logger_active",
        "params",
        "state",
        "threshold_model",
        "timer",
        "table",
        "caps",
        "buffer_size",
        "spike_buffers",
        "current_buffer",
        "multimeters",
        "metadata",
        "recordables",
    ]
    """
    GLIF point neuron: parameters, state, propagators and input buffers of
    one instance, plus the per-step update.
    """

    MODEL_NAME = "glif_psc"

    def __init__(
        self,
        node_id: int = 0,
        params: Optional[GLIFParameters] = None,
        log_level: str = "WARNING",
        metadata: Optional[Dict[str, Any]] = None,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
    ):
        self.node_id = node_id
        setup_neuron_logger(log_level)

        # Performance optimization: pre-compute if debug logging is active
        self.logger_active = log_level.upper() == "DEBUG"
        self.logger = logger.bind(node_id=node_id)

        self.params = params.copy() if params is not None else GLIFParameters()
        self.params.check()
        self.metadata = metadata or {}

        self.state = GLIFState.from_parameters(self.params)
        self.threshold_model = AdaptiveThreshold()
        self.timer = RefractoryTimer(t_ref_total=self.params.t_ref)

        # Derived by calibrate()
        self.table: Optional[PropagatorTable] = None
        self.caps: VariantCapabilities = self.params.capabilities

        self.buffer_size = buffer_size
        self.spike_buffers: List[RingBuffer] = []
        self.current_buffer = RingBuffer(buffer_size)
        self._sync_receptors()

        self.multimeters: List[Multimeter] = []
        self.recordables: Dict[str, Callable[[], float]] = {
            "V_m": lambda: self.state.U + self.params.E_L,
            "AScurrents_sum": lambda: self.state.ASCurrents_sum,
            "I_syn": lambda: self.state.I_syn,
        }

        self.logger.info(
            f"Initializing {self.MODEL_NAME} neuron {node_id}: "
            f"model={self.params.glif_model}, receptors={self.params.n_receptors}, "
            f"after-spike currents={self.params.n_asc}"
        )

    # --- Readouts ---

    @property
    def V_m(self) -> float:
        """Membrane potential in mV."""
        return self.state.U + self.params.E_L

    @property
    def ASCurrents(self) -> np.ndarray:
        return self.state.ASCurrents.copy()

    @property
    def phase(self) -> Phase:
        return self.timer.phase

    @property
    def n_receptors(self) -> int:
        return self.params.n_receptors

    # --- Configuration ---

    def _sync_receptors(self) -> None:
        """Match per-receptor buffers and filter state to tau_syn."""
        n = self.params.n_receptors
        del self.spike_buffers[n:]
        while len(self.spike_buffers) < n:
            buffer = RingBuffer(self.buffer_size)
            buffer.reset(self.current_buffer.position)
            self.spike_buffers.append(buffer)
        self.state.synapses.resize(n)

    def _derive(self, resolution: float) -> None:
        """Rebuild the propagator table and variant capabilities."""
        self.table = PropagatorTable.build(self.params, resolution)
        self.caps = self.params.capabilities
        self.timer.t_ref_total = self.table.t_ref_total

    def calibrate(self, resolution: float) -> None:
        """
        Prepare the neuron for simulation with step size `resolution` (ms).

        Validates the parameters, derives the propagators and restarts the
        refractory countdown and the threshold components.
        """
        self._derive(resolution)
        self.timer.t_ref_remaining = 0.0
        self.threshold_model.reset()

        self.logger.info(
            f"Calibrated with h={resolution} ms: model={self.params.glif_model}, "
            f"tau_m={self.params.tau_m:.4f} ms, receptors={self.table.n_receptors}"
        )

    def init_buffers(self) -> None:
        """Drop all queued input."""
        for buffer in self.spike_buffers:
            buffer.clear()
        self.current_buffer.clear()

    def reset(self) -> None:
        """Return state, buffers and refractory countdown to their initial values."""
        self.state = GLIFState.from_parameters(self.params)
        self.threshold_model.reset()
        self.timer.t_ref_remaining = 0.0
        for buffer in self.spike_buffers:
            buffer.reset()
        self.current_buffer.reset()
        for multimeter in self.multimeters:
            multimeter.clear()

    def get_status(self) -> Dict[str, Any]:
        status = self.params.get_status()
        status.update(self.state.get_status(self.params))
        status["t_ref_remaining"] = self.timer.t_ref_remaining
        status["recordables"] = list(self.recordables)
        status["node_id"] = self.node_id
        return status

    def set_status(self, d: Dict[str, Any]) -> None:
        """
        Validate and apply named parameter and state options, all or nothing.

        Raises:
            BadPropertyError: If any option is unknown or violates an
                invariant; parameters and state are then left unchanged.
        """
        unknown = sorted(set(d) - PARAMETER_KEYS - STATE_KEYS)
        if unknown:
            raise BadPropertyError(f"Unknown or read-only option(s): {unknown}")

        # Work on temporaries; commit only once both are consistent
        ptmp = self.params.copy()
        delta_EL = ptmp.set_status(d, asc_length=self.params.n_asc)
        stmp = copy.deepcopy(self.state)
        stmp.set_status(d, ptmp, delta_EL, ptmp.th_inf - self.params.th_inf)

        self.params = ptmp
        self.state = stmp
        self.caps = ptmp.capabilities
        self._sync_receptors()
        if self.table is not None:
            self._derive(self.table.h)

        self.logger.info(f"Status updated: {sorted(d)}")

    # --- Connections and input ---

    def connect_receptor(self, receptor: int) -> int:
        """
        Accept a connection to 1-based receptor port `receptor`.

        Returns:
            The receptor, used as the connection's routing key.
        """
        if receptor <= 0 or receptor > self.params.n_receptors:
            raise IncompatibleReceptorTypeError(receptor, self.MODEL_NAME, "SpikeEvent")

        self.params.has_connections = True
        self.logger.info(f"Connection accepted on receptor {receptor}")
        return receptor

    def handle_spike(
        self, receptor: int, step: int, weight: float, multiplicity: int = 1
    ) -> None:
        """Queue a spike for delivery to `receptor` at absolute step `step`."""
        if receptor <= 0 or receptor > self.params.n_receptors:
            raise IncompatibleReceptorTypeError(receptor, self.MODEL_NAME, "SpikeEvent")
        self.spike_buffers[receptor - 1].add_value(step, weight * multiplicity)

    def handle_current(self, step: int, current: float, weight: float = 1.0) -> None:
        """Queue an injected current (pA) for absolute step `step`."""
        self.current_buffer.add_value(step, weight * current)

    def attach(self, multimeter: Multimeter) -> None:
        multimeter.attach(self.recordables)
        self.multimeters.append(multimeter)

    # --- State transitions ---

    def _leave_refractory(self) -> None:
        """Reset after-spike currents, voltage and threshold at refractory end."""
        params, state, table = self.params, self.state, self.table

        if self.caps.has_asc:
            state.ASCurrents = (
                params.asc_amps + state.ASCurrents * params.r * table.asc_refractory_decay
            )

        if self.caps.has_reset_r:
            # Linear reset around the pre-reset potential
            state.U = params.voltage_reset_a * state.U + params.voltage_reset_b
            self.threshold_model.on_reset(params)
            state.threshold = self.threshold_model.value(params.th_inf)
        else:
            state.U = params.V_reset

        if state.U > state.threshold:
            self.logger.critical(
                f"Simulation terminated: voltage ({state.U:f}) reset above "
                f"threshold ({state.threshold:f})"
            )
            raise ResetAboveThresholdError(state.U, state.threshold)

    def _integrate(self, v_old: float) -> None:
        """Advance after-spike currents, voltage and threshold by one step."""
        params, state, table = self.params, self.state, self.table

        # The sum uses the currents from before this step's decay
        state.ASCurrents_sum = 0.0
        if self.caps.has_asc:
            state.ASCurrents_sum = float(state.ASCurrents.sum())
            state.ASCurrents = state.ASCurrents * table.asc_decay

        I_total = state.I + state.ASCurrents_sum
        state.U = (
            v_old * table.P33
            + I_total * table.P30
            + state.synapses.voltage_contribution(table)
        )
        state.I_syn = state.synapses.current()

        self.threshold_model.integrate_voltage_component(
            self.caps, params, table, v_old, I_total
        )
        state.threshold = self.threshold_model.value(params.th_inf)

    def update(
        self,
        origin: int,
        from_lag: int,
        to_lag: int,
        sink: Optional[EventSink] = None,
    ) -> List[SpikeEvent]:
        """
        Advance the neuron over steps origin + [from_lag, to_lag).

        Emitted spikes are sent to `sink` (if given) and returned.

        Raises:
            NotCalibratedError: If calibrate() was never called.
            ResetAboveThresholdError: If a reset leaves U above threshold.
        """
        if self.table is None:
            raise NotCalibratedError(
                f"Neuron {self.node_id} must be calibrated before update"
            )

        table, params, state = self.table, self.params, self.state
        h = table.h
        output_events: List[SpikeEvent] = []
        weights = np.zeros(table.n_receptors)

        v_old = state.U
        th_old = state.threshold

        for lag in range(from_lag, to_lag):
            step = origin + lag

            self.threshold_model.decay_spike_component(self.caps, table)

            if self.timer.t_ref_remaining > 0.0:
                if self.timer.countdown(h):
                    self._leave_refractory()
                else:
                    # Voltage is held during the refractory period
                    state.U = v_old
            else:
                self._integrate(v_old)

                if state.U > state.threshold:
                    self.timer.start()
                    offset = spike_offset(v_old, th_old, state.U, state.threshold, h)
                    event = SpikeEvent(self.node_id, step + 1, offset, 1.0, 1)
                    output_events.append(event)
                    if sink is not None:
                        sink.send(event)

                    if self.logger_active:
                        self.logger.debug(
                            f"SPIKE at step {step + 1} (offset {offset:.6f} ms): "
                            f"U={state.U:.4f} > threshold={state.threshold:.4f}"
                        )

            # Alpha-shaped PSCs; spikes of this step act from the next step on
            for i, buffer in enumerate(self.spike_buffers):
                weights[i] = buffer.get_value(step)
            state.synapses.propagate(table, weights)

            state.I = self.current_buffer.get_value(step)

            for multimeter in self.multimeters:
                multimeter.record((step + 1) * h)

            if self.logger_active:
                self.logger.debug(
                    f"Step {step}: U={state.U:.4f}, threshold={state.threshold:.4f}, "
                    f"t_ref_remaining={self.timer.t_ref_remaining:.4f}"
                )

            v_old = state.U
            th_old = state.threshold

        return output_events
