"""
Pytest fixtures for GLIF neuron tests.
"""

import sys
import tempfile
from pathlib import Path

import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from glif import GLIFNeuron, GLIFParameters

RESOLUTION = 0.1


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as tmp:
        yield Path(tmp)


@pytest.fixture
def default_params():
    """Return the default parameter set (LIF variant)."""
    return GLIFParameters()


@pytest.fixture
def make_neuron():
    """Return a factory for calibrated neurons built from named options."""

    def _make(options=None, resolution=RESOLUTION, node_id=1):
        neuron = GLIFNeuron(node_id, GLIFParameters.from_status(options or {}))
        neuron.calibrate(resolution)
        return neuron

    return _make


@pytest.fixture
def lif_neuron(make_neuron):
    """Return a calibrated LIF neuron with one receptor."""
    return make_neuron({"glif_model": "lif"})


@pytest.fixture
def sample_config_yaml():
    """Return a minimal run configuration YAML."""
    return """
name: "test_run"
resolution: 0.1
duration: 100.0
neurons:
  - label: "driven"
    params:
      glif_model: "lif"
  - label: "target"
    params:
      glif_model: "lif_r_asc"
      tau_syn: [2.0, 5.0]
connections:
  - source: 1
    target: 2
    receptor: 2
    weight: 500.0
    delay: 1.5
dc_sources:
  - target: 1
    amplitude: 400.0
record:
  - "V_m"
  - "I_syn"
"""
