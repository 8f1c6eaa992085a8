#!/usr/bin/env python3
"""
Command-line runner: simulate a YAML run configuration and summarise the
spiking of every neuron.
"""

import argparse
import sys

import numpy as np
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .config import build_simulator, load_config
from .errors import GLIFError


def summarise(sim, console: Console, title: str) -> None:
    """Print a per-neuron spike summary table."""
    table = Table(title=title)
    table.add_column("Neuron", style="cyan", justify="right")
    table.add_column("Label")
    table.add_column("Model")
    table.add_column("Spikes", justify="right")
    table.add_column("Mean ISI (ms)", justify="right")
    table.add_column("Rate (Hz)", justify="right")
    table.add_column("V_m (mV)", justify="right")

    duration_s = sim.time / 1000.0
    for node_id, neuron in sim.neurons.items():
        times = sim.get_spike_times(node_id)
        isi = f"{np.mean(np.diff(times)):.3f}" if len(times) > 1 else "-"
        rate = f"{len(times) / duration_s:.2f}" if duration_s > 0 else "-"
        table.add_row(
            str(node_id),
            escape(str(neuron.metadata.get("label", "-"))),
            neuron.params.glif_model,
            str(len(times)),
            isi,
            rate,
            f"{neuron.V_m:.3f}",
        )

    console.print(table)


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Run a GLIF neuron simulation")
    ap.add_argument("config", help="Path to YAML run configuration")
    ap.add_argument("--log-level", default=None, help="Override the configured log level")
    args = ap.parse_args(argv)

    console = Console()

    try:
        config = load_config(args.config)
        if args.log_level:
            config.log_level = args.log_level.upper()
        sim = build_simulator(config)
        summary = sim.simulate(config.duration)
    except (GLIFError, ValidationError, ValueError, FileNotFoundError, yaml.YAMLError) as e:
        console.print(Panel(f"[bold red]{type(e).__name__}[/bold red]\n{escape(str(e))}", style="red", expand=False))
        return 1

    summarise(sim, console, f"{config.name}: {config.duration} ms at h={config.resolution} ms")
    console.print(
        f"[dim]{summary['steps']} steps, {summary['spikes']} spikes, "
        f"{summary['wall_time']:.3f}s[/dim]"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
