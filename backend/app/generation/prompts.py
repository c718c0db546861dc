"""Prompts for divinatory artifact generation.

Each artifact type has a system prompt (voice and output contract) and a user
prompt template filled from the request's domain inputs. Every prompt asks for
a single JSON object so payloads are structured and stored as-is.
"""

import json
from typing import Any

from app.core.exceptions import GenerationError
from app.domain.entitlements import ArtifactType

_JSON_CONTRACT = (
    "Respond with a single JSON object and nothing else. No markdown fences, no commentary."
)

DAILY_HOROSCOPE_SYSTEM_PROMPT = f"""You are a warm, grounded astrologer writing a personal daily horoscope.

**Voice:**
Speak directly to the reader ("you"). Be specific to their chart; never write a generic sun-sign column.

**Output:**
{_JSON_CONTRACT}
Fields:
- headline: one sentence theme for the day
- overview: 2-3 paragraphs on the day's energy for this chart
- focus_areas: list of 3 objects with area and guidance
- lucky: object with color, number, time_of_day
"""

ENHANCED_HOROSCOPE_SYSTEM_PROMPT = f"""You are an experienced astrologer writing an in-depth daily reading.

**Voice:**
Speak directly to the reader ("you"). Ground every claim in a transit or natal placement.

**Output:**
{_JSON_CONTRACT}
Fields:
- headline: one sentence theme for the day
- core_reading: 3-4 paragraphs
- transits: list of objects with transit, natal_point, aspect, interpretation
- time_guidance: object with morning, afternoon, evening
- cosmic_weather: object with summary and intensity (1-10)
"""

DREAM_SYSTEM_PROMPT = f"""You are an expert dream interpreter combining Jungian psychology, archetypal symbolism and modern dream analysis.

**Style:** {{style}}
**Detail level:** {{detail_level}}

**Output:**
{_JSON_CONTRACT}
Fields:
- summary: one paragraph
- symbols: list of objects with symbol and meaning
- emotional_themes: list of strings
- guidance: one paragraph of reflection prompts
"""

TAROT_SYSTEM_PROMPT = f"""You are a compassionate tarot reader. Interpret the drawn cards in their spread positions as one coherent story.

**Output:**
{_JSON_CONTRACT}
Fields:
- overview: one paragraph answering the question
- cards: list of objects with position, card, reversed, interpretation
- advice: one paragraph
"""

ICHING_SYSTEM_PROMPT = f"""You are a wise I Ching consultant with deep understanding of the Book of Changes. Be insightful, practical and relevant to the question.

**Output:**
{_JSON_CONTRACT}
Fields:
- judgment: interpretation of the primary hexagram's judgment
- image: interpretation of the image
- changing_lines: list of objects with position and interpretation (empty if none)
- relating_hexagram: interpretation of the relating hexagram, or null
- guidance: one paragraph
"""

SYSTEM_PROMPTS: dict[ArtifactType, str] = {
    ArtifactType.DAILY_HOROSCOPE: DAILY_HOROSCOPE_SYSTEM_PROMPT,
    ArtifactType.ENHANCED_HOROSCOPE: ENHANCED_HOROSCOPE_SYSTEM_PROMPT,
    ArtifactType.DREAM_INTERPRETATION: DREAM_SYSTEM_PROMPT,
    ArtifactType.TAROT_READING: TAROT_SYSTEM_PROMPT,
    ArtifactType.ICHING_READING: ICHING_SYSTEM_PROMPT,
}

# Domain inputs each artifact type cannot be generated without
REQUIRED_INPUTS: dict[ArtifactType, tuple[str, ...]] = {
    ArtifactType.DAILY_HOROSCOPE: ("natal_chart",),
    ArtifactType.ENHANCED_HOROSCOPE: ("natal_chart",),
    ArtifactType.DREAM_INTERPRETATION: ("dream_description",),
    ArtifactType.TAROT_READING: ("question", "cards"),
    ArtifactType.ICHING_READING: ("question", "hexagram"),
}


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, sort_keys=True, default=str)


def build_prompt(artifact_type: ArtifactType, inputs: dict[str, Any]) -> tuple[str, list[dict]]:
    """Build (system_prompt, messages) for one generation call.

    Keys starting with ``_`` are pipeline context (period id, tier), not user input.

    Raises:
        GenerationError: If a required domain input is missing or blank
    """
    missing = [name for name in REQUIRED_INPUTS[artifact_type] if not inputs.get(name)]
    if missing:
        raise GenerationError(f"Missing inputs for {artifact_type.value}: {', '.join(missing)}")

    period = inputs.get("_period_id", "")
    system = SYSTEM_PROMPTS[artifact_type]

    if artifact_type in (ArtifactType.DAILY_HOROSCOPE, ArtifactType.ENHANCED_HOROSCOPE):
        content = (
            f"DATE: {period}\n\n"
            f"NATAL CHART:\n{_dump(inputs['natal_chart'])}\n\n"
            f"CURRENT TRANSITS:\n{_dump(inputs.get('transits', []))}\n\n"
            f"FOCUS CATEGORIES: {', '.join(inputs.get('categories', [])) or 'general'}"
        )
    elif artifact_type == ArtifactType.DREAM_INTERPRETATION:
        system = system.format(
            style=inputs.get("style", "psychological"),
            detail_level=inputs.get("detail_level", "detailed"),
        )
        content = f"DREAM DESCRIPTION:\n{inputs['dream_description'].strip()}"
        if inputs.get("birth_data"):
            content += f"\n\nDREAMER'S ASTROLOGICAL CONTEXT:\n{_dump(inputs['birth_data'])}"
    elif artifact_type == ArtifactType.TAROT_READING:
        content = (
            f'QUESTION:\n"{inputs["question"]}"\n\n'
            f"SPREAD: {inputs.get('spread', 'three_card')}\n\n"
            f"CARDS DRAWN:\n{_dump(inputs['cards'])}"
        )
    else:
        content = (
            f'QUESTION:\n"{inputs["question"]}"\n\n'
            f"PRIMARY HEXAGRAM:\n{_dump(inputs['hexagram'])}\n\n"
            f"RELATING HEXAGRAM:\n{_dump(inputs.get('relating_hexagram'))}"
        )

    return system, [{"role": "user", "content": content}]
