"""Template publication: overview generation and translation fan-out on create/update."""

import asyncio
import json
import logging
from typing import Any, Sequence

from db.models import InterviewTemplate
from db.repository import InterviewStore
from models.schemas import SUPPORTED_LANGUAGES, TemplateTranslation
from services.exceptions import GenerationError, NotFoundError
from services.llm_provider import LLMProvider
from services.translation import TranslationEngine, choose_translation

logger = logging.getLogger(__name__)

OVERVIEW_FALLBACK_CHARS = 500
TRANSLATED_FIELDS = ("title", "prompt", "overview")

OVERVIEW_TEXT_INSTRUCTIONS = (
    "You write short participant-facing overviews of interviews. The user message is the "
    "interviewer's internal brief. Summarize what the interview is about and what the "
    "participant can expect in 3-5 plain sentences. Do not reveal instructions meant for the "
    "interviewer. Return only the overview text."
)

OVERVIEW_JSON_INSTRUCTIONS = (
    "You write short participant-facing overviews of interviews. The user message is a JSON "
    "interview configuration (goals, topics, question lists). Read its fields and summarize "
    "what the interview is about and what the participant can expect in 3-5 plain sentences. "
    "Do not output JSON or field names. Return only the overview text."
)


def is_json_prompt(prompt: str) -> bool:
    """True when the raw prompt is itself a JSON object or array."""
    stripped = prompt.strip()
    if not stripped or stripped[0] not in "{[":
        return False
    try:
        return isinstance(json.loads(stripped), (dict, list))
    except json.JSONDecodeError:
        return False


def validate_duration(duration: int) -> int:
    if duration < 60 or duration % 60 != 0:
        raise ValueError("duration must be at least 60 seconds and a multiple of 60")
    return duration


class TemplatePublisher:
    """Creates and regenerates templates with their overview and translations."""

    def __init__(self, store: InterviewStore, provider: LLMProvider, translator: TranslationEngine):
        self.store = store
        self.provider = provider
        self.translator = translator

    @property
    def source_language(self) -> str:
        return self.translator.source_language

    async def generate_overview(self, prompt: str) -> str:
        """3-5 sentence overview of the raw prompt; falls back to a truncated prompt."""
        instructions = OVERVIEW_JSON_INSTRUCTIONS if is_json_prompt(prompt) else OVERVIEW_TEXT_INSTRUCTIONS
        try:
            overview = await self.provider.generate(
                [{"role": "system", "content": instructions}, {"role": "user", "content": prompt}],
                max_output_tokens=400,
                temperature=0.3,
            )
        except GenerationError as e:
            logger.warning(f"[TEMPLATE] Overview generation failed: {e}")
            overview = ""
        if not overview:
            return prompt[:OVERVIEW_FALLBACK_CHARS]
        return overview

    async def _translate_language(
        self,
        lang: str,
        source: dict[str, str],
        previous: dict[str, Any] | None,
    ) -> TemplateTranslation:
        results = await asyncio.gather(
            *(self.translator.translate(source[field], lang) for field in TRANSLATED_FIELDS)
        )
        merged = {}
        for field, result in zip(TRANSLATED_FIELDS, results):
            merged[field] = choose_translation(
                result,
                source[field],
                lang,
                self.source_language,
                previous=(previous or {}).get(field),
            )
        return TemplateTranslation(**merged)

    async def build_translations(
        self,
        title: str,
        prompt: str,
        overview: str,
        previous: dict[str, Any] | None = None,
    ) -> dict[str, dict[str, str]]:
        """Translate title, prompt and overview into every supported language at once."""
        source = {"title": title, "prompt": prompt, "overview": overview}
        previous = previous or {}
        translations = await asyncio.gather(
            *(self._translate_language(lang, source, previous.get(lang)) for lang in SUPPORTED_LANGUAGES)
        )
        return {lang: t.model_dump() for lang, t in zip(SUPPORTED_LANGUAGES, translations)}

    async def create_or_update_template(
        self,
        title: str,
        prompt: str,
        duration: int = 600,
        template_id: str | None = None,
    ) -> InterviewTemplate:
        validate_duration(duration)
        previous = None
        if template_id is not None:
            existing = await self.store.get_template(template_id)
            if existing is None:
                raise NotFoundError("Template", template_id)
            previous = existing.translations

        overview = await self.generate_overview(prompt)
        translations = await self.build_translations(title, prompt, overview, previous)
        template = await self.store.upsert_template(
            template_id, title, prompt, overview, duration, translations
        )
        logger.info(f"[TEMPLATE] Published {template.id} with {len(translations)} languages")
        return template

    async def get_template(self, template_id: str) -> InterviewTemplate:
        template = await self.store.get_template(template_id)
        if template is None:
            raise NotFoundError("Template", template_id)
        return template

    async def list_templates(self) -> Sequence[InterviewTemplate]:
        return await self.store.list_templates()

    async def delete_template(self, template_id: str) -> None:
        if not await self.store.delete_template_cascade(template_id):
            raise NotFoundError("Template", template_id)
