"""
Pattern-Propagation Models

Base class and registry for models that compute the pattern-propagation
factor F⁴ applied multiplicatively to received power. The factor covers
multipath interference, diffraction and ground-wave effects along the legs
of an interaction; 1 is free space, values up to 16 occur for perfectly
constructive two-way multipath and 0 is complete cancellation.

A transmitter or receiver without a propagation model uses F⁴ = 1. The
'none' model is different: it is an explicit null that forces F⁴ = 0 and
callers detect it with is_null_model().

Models read interaction geometry only; they never modify the interaction.

Other models (fast_multipath, alarm, ground_wave) register themselves on
import.

References:
    - Blake, "Radar Range-Performance Analysis", Artech House, 1986,
      Chapter 6 (pattern-propagation factor)
    - Skolnik, "Radar Handbook", 3rd Ed., Chapter 26
"""

import logging
from typing import Any, Callable, Dict, Optional

from emsim.em.attenuation import AttenuationModel
from emsim.errors import ConfigurationError

logger = logging.getLogger(__name__)


class PropagationModel:
    """
    Base pattern-propagation model (F⁴ = 1).

    Attributes:
        name: Model name (used in log output)
        debug: Log intermediate values of each evaluation
    """

    model_type = "base"

    def __init__(self, name: str = "") -> None:
        self.name = name or self.model_type
        self.debug = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}('{self.name}')"

    def process_input(self, command: str, value: Any) -> bool:
        if command == "debug":
            self.debug = bool(value)
            return True
        return False

    def initialize(self, xmtr_rcvr) -> None:
        """Called once by the owning transmitter or receiver."""

    def is_null_model(self) -> bool:
        return False

    def compute_propagation_factor(self, interaction, environment) -> float:
        """
        Pattern-propagation factor for the interaction.

        Args:
            interaction: Interaction whose geometry and beam data are set
            environment: Scenario environment

        Returns:
            F⁴ (>= 0)
        """
        return 1.0

    @staticmethod
    def get_frequency(interaction) -> float:
        """Receiver frequency, or the transmitter's for passive receivers."""
        return AttenuationModel.get_frequency(interaction)


class NullPropagation(PropagationModel):
    """Explicitly disabled propagation (F⁴ = 0)."""

    model_type = "none"

    def is_null_model(self) -> bool:
        return True

    def compute_propagation_factor(self, interaction, environment) -> float:
        return 0.0


# =============================================================================
# REGISTRY
# =============================================================================

_MODEL_FACTORIES: Dict[str, Callable[[str], PropagationModel]] = {}


def register_propagation_type(model_type: str, factory: Callable[[str], PropagationModel]) -> None:
    """Register a factory for a propagation model type string."""
    _MODEL_FACTORIES[model_type] = factory


def create_propagation_model(model_type: str, name: str = "") -> PropagationModel:
    """
    Create an (uninitialized) propagation model from its type string.

    Raises:
        ConfigurationError: If the type is not registered
    """
    factory = _MODEL_FACTORIES.get(model_type)
    if factory is None:
        raise ConfigurationError(
            f"unknown propagation model type '{model_type}' "
            f"(known: {', '.join(sorted(_MODEL_FACTORIES))})",
            "propagation_model",
        )
    return factory(name)


def propagation_model_from_input(value: Any) -> Optional[PropagationModel]:
    """
    Build a propagation model from configuration.

    Accepts a model object, a type string, or a dict with 'type' (and
    optionally 'name') plus model keywords. The inline terminator
    'end_propagation_model' is accepted and ignored.
    """
    if value is None:
        return None
    if isinstance(value, PropagationModel):
        return value
    if isinstance(value, str):
        return create_propagation_model(value)
    if isinstance(value, dict):
        model = create_propagation_model(value.get("type", "none"), value.get("name", ""))
        for key, item in value.items():
            if key in ("type", "name", "end_propagation_model"):
                continue
            if not model.process_input(key, item):
                raise ConfigurationError(f"unknown propagation keyword '{key}'", "propagation_model")
        logger.debug("Created propagation model %r", model)
        return model
    raise ConfigurationError(
        f"expected a model type or definition, got {type(value).__name__}", "propagation_model"
    )


register_propagation_type(NullPropagation.model_type, NullPropagation)
