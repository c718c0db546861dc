"""Artifact generation.

Provides:
- Generator / GeneratorRegistry: the narrow interface the pipeline depends on
- AnthropicGenerator: Claude-backed production generator
- GeneratorFake: scenario-driven deterministic generator for tests
"""

from app.generation.anthropic_generator import AnthropicGenerator
from app.generation.base import Generator, GeneratorRegistry
from app.generation.fake import GeneratorFake

__all__ = ["AnthropicGenerator", "Generator", "GeneratorFake", "GeneratorRegistry"]
