"""
Run configuration.

Provides Pydantic models for YAML configuration parsing and validation,
and builds a ready-to-run Simulator from a validated configuration.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .parameters import GLIFParameters
from .simulator import Simulator
from .variants import resolve_variant

RECORDABLES = ("V_m", "AScurrents_sum", "I_syn")


class NeuronConfig(BaseModel):
    """Configuration for a single neuron."""

    label: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)

    @field_validator("params")
    @classmethod
    def validate_model(cls, v):
        if "glif_model" in v:
            resolve_variant(v["glif_model"])
        return v


class DCSourceConfig(BaseModel):
    """Constant current injected into one neuron."""

    target: int = Field(ge=1)
    amplitude: float
    start: float = Field(default=0.0, ge=0.0)
    stop: float | None = None

    @model_validator(mode="after")
    def validate_window(self):
        if self.stop is not None and self.stop <= self.start:
            raise ValueError("stop must be later than start")
        return self


class SpikeSourceConfig(BaseModel):
    """Spike train delivered to one receptor of one neuron."""

    target: int = Field(ge=1)
    receptor: int = Field(default=1, ge=1)
    weight: float = 1.0
    delay: float | None = Field(default=None, gt=0.0)
    spike_times: list[float] = Field(default_factory=list)

    @field_validator("spike_times")
    @classmethod
    def validate_spike_times(cls, v):
        if any(t < 0.0 for t in v):
            raise ValueError("spike_times must be non-negative")
        return sorted(v)


class ConnectionConfig(BaseModel):
    """Spike route from one neuron to a receptor of another."""

    source: int = Field(ge=1)
    target: int = Field(ge=1)
    receptor: int = Field(default=1, ge=1)
    weight: float = 1.0
    delay: float = Field(default=1.0, gt=0.0)


class RunConfig(BaseModel):
    """Root configuration for one simulation run."""

    name: str = "glif_run"
    resolution: float = Field(default=0.1, gt=0.0)
    duration: float = Field(default=1000.0, gt=0.0)
    log_level: str = "WARNING"
    neurons: list[NeuronConfig] = Field(default_factory=lambda: [NeuronConfig()])
    connections: list[ConnectionConfig] = Field(default_factory=list)
    dc_sources: list[DCSourceConfig] = Field(default_factory=list)
    spike_sources: list[SpikeSourceConfig] = Field(default_factory=list)
    record: list[str] = Field(default_factory=lambda: ["V_m"])

    @field_validator("record")
    @classmethod
    def validate_record(cls, v):
        for name in v:
            if name not in RECORDABLES:
                raise ValueError(f"Invalid recordable: {name}. Allowed: {RECORDABLES}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        allowed = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Invalid log level: {v}. Allowed: {sorted(allowed)}")
        return v.upper()

    @model_validator(mode="after")
    def validate_targets(self):
        n = len(self.neurons)
        targets = (
            [s.target for s in self.dc_sources]
            + [s.target for s in self.spike_sources]
            + [c.source for c in self.connections]
            + [c.target for c in self.connections]
        )
        for target in targets:
            if target > n:
                raise ValueError(f"Neuron {target} does not exist (only {n} configured)")
        return self


def build_simulator(config: RunConfig) -> Simulator:
    """
    Create neurons, devices and multimeters described by a run configuration.

    Raises:
        BadPropertyError: If a neuron's parameters are invalid.
        IncompatibleReceptorTypeError: If a source targets a missing receptor.
    """
    sim = Simulator(config.resolution, log_level=config.log_level)

    for neuron_config in config.neurons:
        metadata = {"label": neuron_config.label} if neuron_config.label else None
        sim.add_neuron(GLIFParameters.from_status(neuron_config.params), metadata=metadata)

    for c in config.connections:
        sim.connect(c.source, c.target, c.receptor, c.weight, c.delay)
    for s in config.dc_sources:
        sim.add_dc_source(s.target, s.amplitude, s.start, s.stop)
    for s in config.spike_sources:
        sim.add_spike_generator(s.target, s.spike_times, s.receptor, s.weight, s.delay)

    if config.record:
        for node_id in sim.neurons:
            sim.record(node_id, list(config.record))

    return sim


def load_config(config_path: str | Path) -> RunConfig:
    """Load and validate a run configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated RunConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML parsing fails
        pydantic.ValidationError: If config validation fails
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r") as f:
        raw_config = yaml.safe_load(f)

    if raw_config is None:
        raise ValueError("Empty configuration file")

    return RunConfig(**raw_config)


def load_config_from_string(config_string: str) -> RunConfig:
    """Load and validate a run configuration from YAML string."""
    raw_config = yaml.safe_load(config_string)

    if raw_config is None:
        raise ValueError("Empty configuration string")

    return RunConfig(**raw_config)
