"""
Exception hierarchy for the GLIF neuron model.

GLIFError (base)
├── BadPropertyError - invalid configuration, raised before anything is committed
├── IncompatibleReceptorTypeError - connection to a receptor the neuron does not have
├── ResetAboveThresholdError - fatal: membrane potential reset above the threshold
├── NotCalibratedError - update requested before propagators were derived
└── UnknownRecordableError - recorder asked for a channel the model does not expose
"""

from typing import List, Sequence


class GLIFError(Exception):
    """Base exception for all GLIF model errors."""


class BadPropertyError(GLIFError, ValueError):
    """Invalid configuration.

    Carries every violated invariant of one configuration call, so that a
    caller fixing a parameter set sees all problems at once.
    """

    def __init__(self, violations: Sequence[str] | str):
        if isinstance(violations, str):
            violations = [violations]
        self.violations: List[str] = list(violations)
        super().__init__("; ".join(self.violations))


class IncompatibleReceptorTypeError(GLIFError, ValueError):
    """Connection requested to a receptor port that does not exist."""

    def __init__(self, receptor: int, model: str, event_type: str = "SpikeEvent"):
        self.receptor = receptor
        self.model = model
        self.event_type = event_type
        super().__init__(
            f"Receptor type {receptor} is not available in {model} for {event_type}"
        )


class ResetAboveThresholdError(GLIFError, RuntimeError):
    """Membrane potential ended above threshold right after a reset.

    This is an inconsistent parameter combination; the run cannot continue.
    """

    def __init__(self, voltage: float, threshold: float):
        self.voltage = voltage
        self.threshold = threshold
        super().__init__(
            f"Simulation terminated: voltage ({voltage:f}) reset above threshold ({threshold:f})"
        )


class NotCalibratedError(GLIFError, RuntimeError):
    """Update requested before the propagator table was built."""


class UnknownRecordableError(GLIFError, KeyError):
    """Recording requested for a channel the model does not expose."""

    def __init__(self, name: str, available: Sequence[str]):
        self.name = name
        self.available = list(available)
        super().__init__(
            f"Unknown recordable '{name}'. Valid options: {self.available}"
        )
