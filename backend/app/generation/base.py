"""Generator protocol: the narrow capability the pipeline depends on.

Production uses AnthropicGenerator; tests use GeneratorFake. The pipeline never
retries a generator and treats any exception (timeouts included) as a
generation failure.
"""

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from app.core.exceptions import GenerationError
from app.domain.entitlements import ArtifactType


@runtime_checkable
class Generator(Protocol):
    """Produces an artifact payload from domain inputs."""

    async def generate(self, artifact_type: ArtifactType, inputs: dict[str, Any]) -> dict[str, Any]:
        """Generate a JSON-serialisable payload.

        Args:
            artifact_type: Artifact to produce
            inputs: Domain inputs plus pipeline context keys (``_period_id``, ``_tier``)

        Raises:
            GenerationError: If no payload can be produced
        """
        ...


class GeneratorRegistry:
    """Routes each artifact type to its generator, with an optional fallback."""

    def __init__(
        self,
        generators: Mapping[ArtifactType, Generator] | None = None,
        default: Generator | None = None,
    ):
        self._generators = dict(generators or {})
        self._default = default

    def for_type(self, artifact_type: ArtifactType) -> Generator:
        generator = self._generators.get(artifact_type, self._default)
        if generator is None:
            raise GenerationError(f"No generator registered for {artifact_type.value}")
        return generator

    async def generate(self, artifact_type: ArtifactType, inputs: dict[str, Any]) -> dict[str, Any]:
        return await self.for_type(artifact_type).generate(artifact_type, inputs)
