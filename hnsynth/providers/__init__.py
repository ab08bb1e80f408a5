"""HN Synth provider layer.

Every structured completion goes through a StructuredProvider;
LiteLLMProvider is the production implementation.
"""

from hnsynth.providers.base import StructuredProvider
from hnsynth.providers.litellm_provider import LiteLLMProvider
from hnsynth.providers.registry import apply_overrides, load_generator_config

__all__ = [
    "LiteLLMProvider",
    "StructuredProvider",
    "apply_overrides",
    "load_generator_config",
]
