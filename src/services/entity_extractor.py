"""LLM-based named-entity extraction for document chunks.

Each chunk is sent to the LLM with a short prompt asking for a JSON array
of ``{name, type, relevance}`` objects.  The response is parsed leniently:
markdown fences are stripped, a surrounding preamble is cut away, and
entries with an unknown type or a missing name are dropped.  Output that
cannot be parsed at all yields an empty list, since one bad chunk must not
stop a graph build.  Transport failures (:class:`~src.utils.errors.LLMError`)
are left to propagate so the caller can log them per chunk.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any

from src.interfaces.llm_provider import ILLMProvider
from src.models.graph import EntityType, ExtractedEntity
from src.utils.logging import get_logger

# Matches markdown code fences (```json ... ``` or ``` ... ```) that LLMs
# frequently wrap around JSON output despite being asked not to.
_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)

_PROMPT_TEXT_LIMIT = 1000
_SYSTEM_PROMPT = "Return ONLY valid JSON."
_VALID_TYPES = {t.value for t in EntityType}


class EntityExtractor:
    """Extracts entities from chunk text using an LLM.

    Parameters
    ----------
    llm_provider:
        The LLM backend used for text completion.
    temperature:
        Sampling temperature for the extraction call.
    """

    def __init__(self, llm_provider: ILLMProvider, temperature: float = 0.1) -> None:
        self._llm = llm_provider
        self._temperature = temperature
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def extract_entities(self, text: str) -> list[ExtractedEntity]:
        """Return the entities the LLM finds in *text*.

        Only the first 1000 characters are sent.  Returns ``[]`` for empty
        text or unparseable model output.

        Raises
        ------
        src.utils.errors.LLMError
            If the completion call itself fails.
        """
        if not text or not text.strip():
            return []

        response = await self._llm.complete(
            system_prompt=_SYSTEM_PROMPT,
            user_prompt=self._build_prompt(text),
            temperature=self._temperature,
        )

        try:
            raw_items = self._parse_response(response)
        except (json.JSONDecodeError, ValueError) as exc:
            self._logger.warning(
                "entity_json_parse_failed",
                error=str(exc),
                provider=self._llm.get_provider_name(),
            )
            return []

        entities = [entity for entity in map(self._to_entity, raw_items) if entity is not None]
        self._logger.debug(
            "entities_extracted",
            returned=len(raw_items),
            kept=len(entities),
        )
        return entities

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _build_prompt(text: str) -> str:
        return (
            "Extract key entities from text. Return JSON array with: name, "
            "type (person/organization/concept/topic/location), relevance (1-10).\n"
            "\n"
            f'Text: "{text[:_PROMPT_TEXT_LIMIT]}..."\n'
            "\n"
            'Format: [{"name": "string", "type": "string", "relevance": number}]'
        )

    @staticmethod
    def _parse_response(response: str) -> list[Any]:
        """Pull a JSON array out of the model response.

        Raises
        ------
        json.JSONDecodeError
            If no valid JSON can be extracted.
        ValueError
            If the parsed value is not a list.
        """
        text = response.strip()

        fence_match = _JSON_FENCE_RE.search(text)
        if fence_match:
            text = fence_match.group(1).strip()

        if not text.startswith("["):
            start = text.find("[")
            end = text.rfind("]")
            if start != -1 and end > start:
                text = text[start : end + 1]

        parsed = json.loads(text)
        if isinstance(parsed, dict) and isinstance(parsed.get("entities"), list):
            parsed = parsed["entities"]
        if not isinstance(parsed, list):
            raise ValueError("LLM response is not a JSON array")
        return parsed

    @staticmethod
    def _to_entity(item: Any) -> ExtractedEntity | None:
        if not isinstance(item, dict):
            return None

        name = str(item.get("name") or "").strip()
        entity_type = str(item.get("type") or "").strip().lower()
        if not name or entity_type not in _VALID_TYPES:
            return None

        try:
            relevance = float(item.get("relevance", 1))
        except (TypeError, ValueError):
            return None
        if not math.isfinite(relevance):
            return None

        return ExtractedEntity(
            name=name,
            type=EntityType(entity_type),
            relevance=min(max(relevance, 1.0), 10.0),
        )
