"""Turn raw model output into a question plus canonical answer-shape metadata."""

import logging
import math
import re
from typing import Any

from models.schemas import NormalizedQuestion, QuestionMetadata, QuestionType
from services.json_extract import parse_json_object
from services.llm_provider import LLMProvider

logger = logging.getLogger(__name__)

QUESTION_SCHEMA = """\
{
  "question": "the question text shown to the participant",
  "type": "text" | "single_choice" | "multi_choice" | "scale",
  "options": ["option 1", "option 2"],
  "scaleMin": 1,
  "scaleMax": 5,
  "scaleMinLabel": "label for the minimum (optional)",
  "scaleMaxLabel": "label for the maximum (optional)"
}"""

REPAIR_PROMPT = """\
Convert the following content into STRICT, VALID JSON matching this schema:
{schema}

Rules:
- Use double quotes for every key and string value.
- "options" is required only for single_choice and multi_choice.
- "scaleMin"/"scaleMax" are required only for scale.
- Output the JSON object only, with no code fences and no commentary.

CONTENT:
{content}"""

_TYPE_SYNONYMS: dict[str, QuestionType] = {
    "text": "text",
    "open": "text",
    "openended": "text",
    "freetext": "text",
    "singlechoice": "single_choice",
    "single": "single_choice",
    "singleselect": "single_choice",
    "radio": "single_choice",
    "choice": "single_choice",
    "multichoice": "multi_choice",
    "multiplechoice": "multi_choice",
    "multi": "multi_choice",
    "multiselect": "multi_choice",
    "checkbox": "multi_choice",
    "checkboxes": "multi_choice",
    "scale": "scale",
    "likert": "scale",
    "rating": "scale",
    "slider": "scale",
}

_NON_LETTERS = re.compile(r"[^a-z]")

DEFAULT_SCALE_MIN = 1
DEFAULT_SCALE_MAX = 5


def coerce_question_type(value: Any) -> QuestionType:
    """Map a free-form type name onto one of the four question types."""
    key = _NON_LETTERS.sub("", str(value or "").lower())
    return _TYPE_SYNONYMS.get(key, "text")


def coerce_options(value: Any) -> list[str]:
    """Flatten an options value into trimmed, non-empty strings."""
    if not isinstance(value, (list, tuple)):
        return []
    options = []
    for item in value:
        if isinstance(item, dict):
            item = item.get("label", item.get("text", ""))
        if item is None:
            continue
        text = str(item).strip()
        if text:
            options.append(text)
    return options


def _coerce_number(value: Any, default: int | float) -> int | float:
    if isinstance(value, bool):
        return default
    try:
        if isinstance(value, (int, float)):
            number = float(value)
        else:
            number = float(str(value).strip())
    except (TypeError, ValueError, OverflowError):
        return default
    if not math.isfinite(number):
        return default
    if number.is_integer():
        return int(number)
    return number


def _coerce_label(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def coerce_metadata(payload: dict[str, Any]) -> QuestionMetadata:
    """Build canonical metadata from a parsed question object."""
    question_type = coerce_question_type(payload.get("type"))

    if question_type == "scale":
        scale_min = _coerce_number(payload.get("scaleMin"), DEFAULT_SCALE_MIN)
        scale_max = _coerce_number(payload.get("scaleMax"), DEFAULT_SCALE_MAX)
        min_label = _coerce_label(payload.get("scaleMinLabel"))
        max_label = _coerce_label(payload.get("scaleMaxLabel"))
        if scale_min > scale_max:
            scale_min, scale_max = scale_max, scale_min
            min_label, max_label = max_label, min_label
        return QuestionMetadata(
            type="scale",
            scale_min=scale_min,
            scale_max=scale_max,
            scale_min_label=min_label,
            scale_max_label=max_label,
        )

    if question_type in ("single_choice", "multi_choice"):
        return QuestionMetadata(type=question_type, options=coerce_options(payload.get("options")))

    return QuestionMetadata(type="text")


def parse_question_payload(text: str) -> dict[str, Any] | None:
    """Parsed question object, or None unless both `question` and `type` are present."""
    payload = parse_json_object(text)
    if payload is None:
        return None
    question = payload.get("question")
    if not isinstance(question, str) or not question.strip():
        return None
    if payload.get("type") in (None, ""):
        return None
    return payload


def extract_question_text(raw_text: str) -> str:
    """The question shown to the participant: the parsed `question`, else the raw text."""
    payload = parse_question_payload(raw_text)
    if payload is None:
        return raw_text or ""
    return payload["question"].strip()


class ResponseNormalizer:
    """Normalizes provider output, with at most one repair call."""

    def __init__(self, provider: LLMProvider, repair_max_tokens: int = 800):
        self.provider = provider
        self.repair_max_tokens = repair_max_tokens

    async def normalize(self, raw_text: str) -> NormalizedQuestion:
        """Never raises; the worst case is a text question carrying the raw output."""
        payload = parse_question_payload(raw_text)
        if payload is None:
            repaired = await self._repair(raw_text)
            if repaired:
                payload = parse_question_payload(repaired)
                if payload is None:
                    logger.warning("[NORMALIZE] Repaired output still not valid question JSON")

        if payload is not None:
            try:
                return NormalizedQuestion(
                    question=payload["question"].strip(), metadata=coerce_metadata(payload)
                )
            except Exception as e:
                logger.warning(f"[NORMALIZE] Could not build question metadata: {e}")

        return NormalizedQuestion(question=raw_text or "", metadata=QuestionMetadata())

    async def _repair(self, raw_text: str) -> str:
        if not raw_text or not raw_text.strip():
            return ""
        prompt = REPAIR_PROMPT.format(schema=QUESTION_SCHEMA, content=raw_text)
        try:
            return await self.provider.generate(
                [{"role": "user", "content": prompt}],
                max_output_tokens=self.repair_max_tokens,
                temperature=0,
            )
        except Exception as e:
            logger.warning(f"[NORMALIZE] Repair call failed: {e}")
            return ""
