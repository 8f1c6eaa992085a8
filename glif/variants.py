"""
GLIF model variant registry: maps model identifiers to the adaptation
mechanisms they switch on.

Used at configuration time to resolve the `glif_model` option once; the
update loop only ever sees the resulting capability tuple.
"""

from enum import Enum
from typing import NamedTuple

from .errors import BadPropertyError


class ModelVariant(str, Enum):
    """Supported GLIF model variants."""

    LIF = "lif"
    LIF_R = "lif_r"
    LIF_ASC = "lif_asc"
    LIF_R_ASC = "lif_r_asc"
    LIF_R_ASC_A = "lif_r_asc_a"


class VariantCapabilities(NamedTuple):
    """Mechanisms active for one variant.

    has_reset_r: linear voltage reset plus spike-driven threshold component
    has_asc: after-spike currents
    has_voltage_adapt: voltage-driven threshold component
    """

    has_reset_r: bool
    has_asc: bool
    has_voltage_adapt: bool


# Map variant -> capabilities
VARIANT_REGISTRY = {
    ModelVariant.LIF: VariantCapabilities(False, False, False),
    ModelVariant.LIF_R: VariantCapabilities(True, False, False),
    ModelVariant.LIF_ASC: VariantCapabilities(False, True, False),
    ModelVariant.LIF_R_ASC: VariantCapabilities(True, True, False),
    ModelVariant.LIF_R_ASC_A: VariantCapabilities(True, True, True),
}


def resolve_variant(name: str | ModelVariant) -> ModelVariant:
    """
    Return the variant for a case-insensitive model identifier.

    Args:
        name: One of lif, lif_r, lif_asc, lif_r_asc, lif_r_asc_a.

    Raises:
        BadPropertyError: If the identifier is not a known variant.
    """
    if isinstance(name, ModelVariant):
        return name
    if not isinstance(name, str):
        raise BadPropertyError(f"glif_model must be a string, got {type(name).__name__}")

    key = name.strip().lower()
    try:
        return ModelVariant(key)
    except ValueError:
        raise BadPropertyError(
            f"Bad glif model type string '{name}'. Valid options: {list_variants()}"
        ) from None


def get_capabilities(name: str | ModelVariant) -> VariantCapabilities:
    """Return the capability tuple for a model identifier."""
    return VARIANT_REGISTRY[resolve_variant(name)]


def list_variants() -> list[str]:
    """Return list of valid model identifiers."""
    return [variant.value for variant in VARIANT_REGISTRY]
