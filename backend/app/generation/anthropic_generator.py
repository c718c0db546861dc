"""AnthropicGenerator: Claude-backed Generator for all divinatory artifact types.

- Direct anthropic.AsyncAnthropic call, one request per artifact
- Per-call timeout via asyncio.wait_for; a timeout is a GenerationError
- Retries only Claude 529 overload (not billed); every other failure propagates
- Responses are parsed as JSON after stripping markdown fences
"""

import asyncio
import json
from typing import Any

import anthropic
import structlog
from anthropic._exceptions import OverloadedError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from app.core.config import Settings, get_settings
from app.core.exceptions import GenerationError
from app.domain.entitlements import ArtifactType
from app.generation.prompts import build_prompt

logger = structlog.get_logger(__name__)


def strip_json_fences(content: str) -> str:
    """Remove markdown code fences wrapping JSON output."""
    content = content.strip()
    if content.startswith("```"):
        first_newline = content.find("\n")
        if first_newline != -1:
            content = content[first_newline + 1 :]
        if content.endswith("```"):
            content = content[:-3].rstrip()
    return content


def parse_json_object(content: str) -> dict[str, Any]:
    """Parse a JSON object from model output.

    Raises:
        GenerationError: If the output is not a JSON object
    """
    try:
        parsed = json.loads(strip_json_fences(content))
    except json.JSONDecodeError as e:
        raise GenerationError(f"Model returned invalid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise GenerationError("Model returned JSON that is not an object")
    return parsed


class AnthropicGenerator:
    """Generates structured readings with Claude."""

    def __init__(self, client: Any | None = None, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.client = client or anthropic.AsyncAnthropic(api_key=self.settings.anthropic_api_key)

    @retry(
        retry=retry_if_exception_type(OverloadedError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=2, min=2, max=20),
        reraise=True,
        before_sleep=lambda rs: logger.warning(
            "claude_overloaded_retrying",
            attempt=rs.attempt_number,
            sleep_seconds=rs.next_action.sleep,
        ),
    )
    async def _create(self, system: str, messages: list[dict]):
        return await asyncio.wait_for(
            self.client.messages.create(
                model=self.settings.generation_model,
                max_tokens=self.settings.generation_max_tokens,
                system=system,
                messages=messages,
            ),
            timeout=self.settings.generation_timeout_seconds,
        )

    async def generate(self, artifact_type: ArtifactType, inputs: dict[str, Any]) -> dict[str, Any]:
        system, messages = build_prompt(artifact_type, inputs)

        try:
            response = await self._create(system, messages)
        except TimeoutError as e:
            raise GenerationError(
                f"Generation timed out after {self.settings.generation_timeout_seconds}s"
            ) from e
        except anthropic.APIError as e:
            raise GenerationError(f"Anthropic API error: {type(e).__name__}") from e

        text = response.content[0].text if response.content else ""
        if not text.strip():
            raise GenerationError("Empty response from model")

        content = parse_json_object(text)
        usage = {
            "input_tokens": response.usage.input_tokens,
            "output_tokens": response.usage.output_tokens,
        }
        logger.info(
            "artifact_generated",
            artifact_type=artifact_type.value,
            model=self.settings.generation_model,
            **usage,
        )

        return {
            "artifact_type": artifact_type.value,
            "content": content,
            "model": self.settings.generation_model,
            "usage": usage,
        }
