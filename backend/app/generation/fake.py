"""GeneratorFake: Scenario-based test double for the Generator protocol.

Scenarios:
- happy_path: Deterministic payload per call, instant
- failure: Raises GenerationError (API outage, rate limit)
- timeout: Raises TimeoutError, as a generator-level timeout would
- slow: happy_path after ``delay`` seconds, for overlapping concurrent requests

Every call is recorded so tests can assert on how many paid generations happened.
"""

import asyncio
from typing import Any

from app.core.exceptions import GenerationError
from app.domain.entitlements import ArtifactType


class GeneratorFake:
    """Deterministic Generator for tests and local development."""

    VALID_SCENARIOS = {"happy_path", "failure", "timeout", "slow"}

    def __init__(self, scenario: str = "happy_path", delay: float = 0.05):
        """Initialize GeneratorFake with a named scenario.

        Raises:
            ValueError: If scenario is not recognized
        """
        if scenario not in self.VALID_SCENARIOS:
            raise ValueError(f"Unknown scenario: {scenario}. Valid scenarios: {self.VALID_SCENARIOS}")
        self.scenario = scenario
        self.delay = delay
        self.calls: list[tuple[ArtifactType, dict[str, Any]]] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def generate(self, artifact_type: ArtifactType, inputs: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((artifact_type, dict(inputs)))
        generation = self.call_count

        if self.scenario == "failure":
            raise GenerationError("Anthropic API rate limit exceeded. Retry after 60 seconds.")

        if self.scenario == "timeout":
            raise TimeoutError("Generation timed out")

        if self.scenario == "slow":
            await asyncio.sleep(self.delay)

        return {
            "artifact_type": artifact_type.value,
            "content": {
                "headline": f"Reading for {inputs.get('_period_id', 'today')}",
                "overview": "The stars align in your favour; move with patience and intent.",
            },
            "model": "fake",
            "generation": generation,  # differs per call so convergence is observable
        }
