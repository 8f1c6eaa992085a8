"""
GLIF Neuron Package
Generalized leaky integrate-and-fire point neurons with alpha-shaped
postsynaptic currents, integrated exactly on a fixed time grid.
"""

# Import core neuron functionality
from .neuron import GLIFNeuron, GLIFState, Phase, RefractoryTimer, setup_neuron_logger
from .parameters import GLIFParameters
from .propagators import PropagatorTable, propagator_31, propagator_32
from .synapses import AlphaSynapses
from .threshold import AdaptiveThreshold
from .variants import ModelVariant, VariantCapabilities, get_capabilities, resolve_variant

# Import events and collaborators
from .spikes import EventSink, SpikeEvent, SpikeRecorder, spike_offset
from .buffers import RingBuffer
from .recording import Multimeter

# Import simulation functionality
from .simulator import Connection, DCSource, SpikeGenerator, Simulator

from .errors import (
    GLIFError,
    BadPropertyError,
    IncompatibleReceptorTypeError,
    ResetAboveThresholdError,
    NotCalibratedError,
    UnknownRecordableError,
)

__all__ = [
    # Single neuron components
    "GLIFNeuron",
    "GLIFState",
    "GLIFParameters",
    "Phase",
    "RefractoryTimer",
    "setup_neuron_logger",
    "PropagatorTable",
    "propagator_31",
    "propagator_32",
    "AlphaSynapses",
    "AdaptiveThreshold",
    "ModelVariant",
    "VariantCapabilities",
    "get_capabilities",
    "resolve_variant",
    # Events and collaborators
    "EventSink",
    "SpikeEvent",
    "SpikeRecorder",
    "spike_offset",
    "RingBuffer",
    "Multimeter",
    # Simulation
    "Connection",
    "DCSource",
    "SpikeGenerator",
    "Simulator",
    # Errors
    "GLIFError",
    "BadPropertyError",
    "IncompatibleReceptorTypeError",
    "ResetAboveThresholdError",
    "NotCalibratedError",
    "UnknownRecordableError",
]

__version__ = "0.1.0"
