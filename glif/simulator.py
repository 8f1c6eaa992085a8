#!/usr/bin/env python3
"""
Simulation driver.

Owns the clock and step size, calibrates the neurons, advances them in
slices of min-delay steps, routes emitted spikes to their targets and
feeds stimulation devices into the neurons' input buffers.
"""

import time
from typing import Any, Dict, List, NamedTuple, Optional, Union

import numpy as np
from loguru import logger

from .errors import GLIFError
from .neuron import GLIFNeuron, setup_neuron_logger
from .parameters import GLIFParameters
from .recording import Multimeter
from .spikes import SpikeEvent, SpikeRecorder

# Slice length used when no neuron-to-neuron connection bounds it
DEFAULT_SLICE_STEPS = 10


class Connection(NamedTuple):
    source: int
    target: int
    receptor: int
    weight: float
    delay_steps: int


class DCSource:
    """Constant current (pA) injected while start <= t < stop."""

    def __init__(self, target: int, amplitude: float, start: float = 0.0, stop: Optional[float] = None):
        self.target = target
        self.amplitude = amplitude
        self.start = start
        self.stop = stop

    def is_active(self, t: float) -> bool:
        return self.start <= t and (self.stop is None or t < self.stop)


class SpikeGenerator:
    """Emits spikes at the given times (ms) to one receptor of one neuron."""

    def __init__(
        self,
        target: int,
        spike_times: List[float],
        receptor: int = 1,
        weight: float = 1.0,
        delay_steps: int = 1,
    ):
        self.target = target
        self.spike_times = sorted(spike_times)
        self.receptor = receptor
        self.weight = weight
        self.delay_steps = delay_steps

    def delivery_steps(self, h: float) -> np.ndarray:
        """Buffer steps at which the spikes reach the target."""
        stamps = np.rint(np.asarray(self.spike_times, dtype=float) / h).astype(np.int64)
        return stamps - 1 + self.delay_steps


class Simulator:
    """Discrete-time driver for a set of GLIF neurons."""

    def __init__(self, resolution: float = 0.1, log_level: str = "WARNING"):
        if not resolution > 0.0:
            raise ValueError(f"Resolution must be strictly positive, got {resolution}")

        self.resolution = resolution
        self.log_level = log_level
        self.current_step = 0

        self.neurons: Dict[int, GLIFNeuron] = {}
        self.connections: List[Connection] = []
        self.dc_sources: List[DCSource] = []
        self.spike_generators: List[SpikeGenerator] = []
        self.multimeters: Dict[int, List[Multimeter]] = {}

        self.spike_recorder = SpikeRecorder()
        self._pending: List[SpikeEvent] = []

        setup_neuron_logger(log_level)
        self.logger = logger.bind(node_id="sim")

    # --- Building ---

    def add_neuron(
        self,
        params: Union[GLIFParameters, Dict[str, Any], None] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> GLIFNeuron:
        """Create a neuron with the next free node id (ids start at 1)."""
        if isinstance(params, dict):
            params = GLIFParameters.from_status(params)

        node_id = len(self.neurons) + 1
        neuron = GLIFNeuron(node_id, params, log_level=self.log_level, metadata=metadata)
        # Input windows start at the current clock, also after earlier runs
        for buffer in neuron.spike_buffers + [neuron.current_buffer]:
            buffer.reset(self.current_step)
        self.neurons[node_id] = neuron
        return neuron

    def _delay_to_steps(self, delay: float) -> int:
        delay_steps = int(round(delay / self.resolution))
        if delay_steps < 1:
            raise ValueError(
                f"Delay {delay} ms is shorter than one step ({self.resolution} ms)"
            )
        return delay_steps

    def _ensure_buffer(self, neuron: GLIFNeuron, size: int) -> None:
        """Grow the neuron's input buffers to at least `size` steps."""
        if neuron.buffer_size < size:
            neuron.buffer_size = size
            for buffer in neuron.spike_buffers + [neuron.current_buffer]:
                buffer.resize(size)

    def connect(
        self,
        source: int,
        target: int,
        receptor: int = 1,
        weight: float = 1.0,
        delay: float = 1.0,
    ) -> Connection:
        """Route spikes of `source` to receptor `receptor` of `target`."""
        if source not in self.neurons or target not in self.neurons:
            raise KeyError(f"Unknown neuron in connection {source} -> {target}")

        delay_steps = self._delay_to_steps(delay)
        target_neuron = self.neurons[target]
        receptor = target_neuron.connect_receptor(receptor)
        self._ensure_buffer(target_neuron, delay_steps + DEFAULT_SLICE_STEPS)

        connection = Connection(source, target, receptor, weight, delay_steps)
        self.connections.append(connection)
        return connection

    def add_dc_source(
        self, target: int, amplitude: float, start: float = 0.0, stop: Optional[float] = None
    ) -> DCSource:
        if target not in self.neurons:
            raise KeyError(f"Unknown neuron {target}")
        source = DCSource(target, amplitude, start, stop)
        self.dc_sources.append(source)
        return source

    def add_spike_generator(
        self,
        target: int,
        spike_times: List[float],
        receptor: int = 1,
        weight: float = 1.0,
        delay: Optional[float] = None,
    ) -> SpikeGenerator:
        if target not in self.neurons:
            raise KeyError(f"Unknown neuron {target}")

        delay_steps = self._delay_to_steps(delay if delay is not None else self.resolution)
        target_neuron = self.neurons[target]
        receptor = target_neuron.connect_receptor(receptor)
        self._ensure_buffer(target_neuron, delay_steps + DEFAULT_SLICE_STEPS)

        generator = SpikeGenerator(target, spike_times, receptor, weight, delay_steps)
        self.spike_generators.append(generator)
        return generator

    def record(self, target: int, record_from: Optional[List[str]] = None, max_history: Optional[int] = None) -> Multimeter:
        """Attach a multimeter to a neuron."""
        multimeter = Multimeter(record_from, max_history=max_history)
        self.neurons[target].attach(multimeter)
        self.multimeters.setdefault(target, []).append(multimeter)
        return multimeter

    # --- Running ---

    def send(self, event: SpikeEvent) -> None:
        """Event sink for all neurons: record now, route after the slice."""
        self.spike_recorder.send(event)
        self._pending.append(event)

    def _slice_steps(self) -> int:
        if self.connections:
            return min(c.delay_steps for c in self.connections)
        return DEFAULT_SLICE_STEPS

    def _prepare(self) -> int:
        """Calibrate stale neurons and size every input window; return the slice length."""
        for neuron in self.neurons.values():
            if neuron.table is None or neuron.table.h != self.resolution:
                neuron.calibrate(self.resolution)

        # A window must hold one slice of device input plus the longest
        # delay of spikes routed past the slice end
        slice_steps = self._slice_steps()
        delays = [c.delay_steps for c in self.connections] + [
            g.delay_steps for g in self.spike_generators
        ]
        required = slice_steps + max(delays, default=0)
        for neuron in self.neurons.values():
            self._ensure_buffer(neuron, required)
        return slice_steps

    def _apply_devices(self, origin: int, n_steps: int) -> None:
        h = self.resolution
        for source in self.dc_sources:
            neuron = self.neurons[source.target]
            for step in range(origin, origin + n_steps):
                if source.is_active(step * h):
                    neuron.handle_current(step, source.amplitude)

        for generator in self.spike_generators:
            neuron = self.neurons[generator.target]
            for step in generator.delivery_steps(h):
                if origin <= step < origin + n_steps:
                    neuron.handle_spike(generator.receptor, int(step), generator.weight)

    def _deliver(self) -> None:
        for event in self._pending:
            for connection in self.connections:
                if connection.source != event.sender:
                    continue
                self.neurons[connection.target].handle_spike(
                    connection.receptor,
                    event.step - 1 + connection.delay_steps,
                    connection.weight * event.weight,
                    event.multiplicity,
                )
        self._pending.clear()

    def simulate(self, duration: float) -> Dict[str, Any]:
        """
        Advance all neurons by `duration` ms.

        Returns:
            Run summary: steps, spikes emitted and wall-clock time.

        Raises:
            ResetAboveThresholdError: If a neuron's reset is inconsistent.
        """
        n_steps = int(round(duration / self.resolution))
        if not self.neurons:
            self.logger.warning("No neurons to simulate")
            return {"steps": 0, "spikes": 0, "wall_time": 0.0}

        slice_steps = self._prepare()
        spikes_before = len(self.spike_recorder)
        start_time = time.perf_counter()

        self.logger.info(
            f"Simulating {len(self.neurons)} neuron(s) for {duration} ms "
            f"({n_steps} steps, slice {slice_steps} steps)"
        )

        end_step = self.current_step + n_steps
        try:
            while self.current_step < end_step:
                origin = self.current_step
                length = min(slice_steps, end_step - origin)

                self._apply_devices(origin, length)
                for neuron in self.neurons.values():
                    neuron.update(origin, 0, length, sink=self)
                self._deliver()

                self.current_step += length
        except GLIFError as e:
            self.logger.error(f"Simulation aborted at step {self.current_step}: {e}")
            raise

        summary = {
            "steps": n_steps,
            "spikes": len(self.spike_recorder) - spikes_before,
            "wall_time": time.perf_counter() - start_time,
        }
        self.logger.info(
            f"Simulation finished: {summary['spikes']} spikes in "
            f"{summary['wall_time']:.3f}s"
        )
        return summary

    @property
    def time(self) -> float:
        """Current simulation time in ms."""
        return self.current_step * self.resolution

    def reset(self) -> None:
        """Reset the simulation to initial state."""
        self.current_step = 0
        self._pending.clear()
        self.spike_recorder.clear()
        for neuron in self.neurons.values():
            neuron.reset()

    def get_spike_times(self, node_id: int) -> np.ndarray:
        """Precise spike times (ms) of one neuron."""
        events = self.spike_recorder.for_sender(node_id)
        return np.array([e.time(self.resolution) for e in events])
