"""Translation through the LLM provider, with dialect handling and a quality-gated merge."""

import json
import logging
import re

from models.schemas import LANGUAGE_NAMES, AnalysisResult
from services.json_extract import parse_json_object
from services.llm_provider import LLMProvider

logger = logging.getLogger(__name__)

DIALECT_LANGUAGE = "gsw"
MIN_TRANSLATION_LENGTH = 2

_CJK = re.compile(r"[\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff\uff66-\uff9f]")

_DEFAULT_INSTRUCTIONS = (
    "You are a professional translator. Translate the user's text to {language}.\n"
    "Rules:\n"
    "- Return ONLY the translated text, no explanations, no quotes, no preamble\n"
    "- Keep proper nouns, product names and acronyms as-is\n"
    "- Preserve line breaks and formatting from the original"
)

_ROMANSH_INSTRUCTIONS = (
    "You are a professional translator. Translate the user's text to Romansh, using the "
    "standard written form Rumantsch Grischun.\n"
    "Rules:\n"
    "- Return ONLY the translated text, no explanations, no quotes, no preamble\n"
    "- Do not answer in Italian or German\n"
    "- Preserve line breaks and formatting from the original"
)

_SWISS_GERMAN_INSTRUCTIONS = (
    "You are a native Swiss German (Schweizerdeutsch) writer. Translate the user's text into "
    "written Swiss German dialect.\n"
    "Rules:\n"
    "- Use Swiss German dialect vocabulary and spelling (e.g. 'isch', 'nöd', 'chli', 'Grüezi', "
    "'mir händ'), never Standard German (Hochdeutsch)\n"
    "- Do not use the letter 'ß'; write 'ss'\n"
    "- Return ONLY the translated text, no explanations, no quotes, no preamble\n"
    "- Preserve line breaks and formatting from the original"
)

_SWISS_GERMAN_TWO_STEP = (
    "Translate the user's text in two steps. First translate it into Standard German. Then "
    "rewrite that German text into written Swiss German dialect (Schweizerdeutsch) with "
    "dialect vocabulary and spelling, never Hochdeutsch and never 'ß'.\n"
    "Return ONLY the final Swiss German text, without the intermediate German version or any "
    "explanation."
)

_ANALYSIS_TRANSLATION_PROMPT = """\
Translate the following interview analysis report from English to {language}.
Maintain the exact JSON structure and translate all text content accurately while preserving the professional tone and meaning.

Original English Report:
{report}

Respond ONLY with the translated JSON in the same format:
{{
  "executive_summary": "translated summary",
  "key_findings": ["translated finding 1", "translated finding 2"],
  "segment_analysis": "translated analysis",
  "recommended_actions": ["translated action 1", "translated action 2"]
}}"""

_ANALYSIS_REPAIR_PROMPT = """\
Fix the following into STRICT VALID JSON (no code fences, no comments) preserving meaning. Keys must be: executive_summary (string), key_findings (string array), segment_analysis (string), recommended_actions (string array).

CONTENT:
{content}"""


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code, code)


def instructions_for(target_lang: str) -> str:
    """System instruction for translating into ``target_lang``."""
    if target_lang == "rm":
        return _ROMANSH_INSTRUCTIONS
    if target_lang == DIALECT_LANGUAGE:
        return _SWISS_GERMAN_INSTRUCTIONS
    return _DEFAULT_INSTRUCTIONS.format(language=language_name(target_lang))


def contains_cjk(text: str) -> bool:
    return bool(_CJK.search(text or ""))


def is_suspect_dialect_output(result: str, source_text: str) -> bool:
    """Dialect output that is empty, echoes the source, or kept the source's CJK script."""
    cleaned = (result or "").strip()
    if not cleaned:
        return True
    if cleaned == source_text.strip():
        return True
    return contains_cjk(source_text) and contains_cjk(cleaned)


def choose_translation(
    result: str | None,
    source_text: str,
    target_lang: str,
    source_lang: str,
    previous: str | None = None,
) -> str:
    """Quality gate for a translated field.

    The source language keeps its result as-is. Other languages reject results
    that are empty, shorter than two characters, or identical to the
    untranslated source, falling back to ``previous`` and then ``source_text``.
    """
    if target_lang == source_lang:
        return result if result else source_text

    cleaned = (result or "").strip()
    rejected = (
        not cleaned
        or len(cleaned) < MIN_TRANSLATION_LENGTH
        or cleaned == source_text.strip()
    )
    if not rejected:
        return cleaned
    if previous:
        return previous
    return source_text


class TranslationEngine:
    """Translates short texts and report payloads through the configured LLM provider."""

    def __init__(self, provider: LLMProvider, source_language: str = "en", max_output_tokens: int = 2000):
        self.provider = provider
        self.source_language = source_language
        self.max_output_tokens = max_output_tokens

    async def _complete(self, system: str, text: str) -> str:
        return await self.provider.generate(
            [{"role": "system", "content": system}, {"role": "user", "content": text}],
            max_output_tokens=self.max_output_tokens,
            temperature=0.3,
        )

    async def translate(self, text: str, target_lang: str) -> str:
        """Translate ``text`` to ``target_lang``; any failure returns ``text`` unchanged."""
        if not text or not text.strip():
            return text

        try:
            result = (await self._complete(instructions_for(target_lang), text)).strip()

            if target_lang == DIALECT_LANGUAGE and is_suspect_dialect_output(result, text):
                logger.info("[TRANSLATE] Swiss German output suspect, retrying with two-step instruction")
                retry = (await self._complete(_SWISS_GERMAN_TWO_STEP, text)).strip()
                if retry:
                    result = retry

            return result or text
        except Exception as e:
            logger.warning(f"[TRANSLATE] Translation to {target_lang} failed, keeping source text: {e}")
            return text

    async def translate_analysis(self, analysis: AnalysisResult, target_lang: str) -> AnalysisResult:
        """Translate a whole analysis object as JSON; falls back to the English analysis."""
        if target_lang == "en":
            return analysis

        prompt = _ANALYSIS_TRANSLATION_PROMPT.format(
            language=language_name(target_lang),
            report=json.dumps(analysis.model_dump(), ensure_ascii=False, indent=2),
        )
        try:
            response = await self.provider.generate(
                [{"role": "user", "content": prompt}],
                max_output_tokens=2500,
                temperature=0.3,
            )
            payload = parse_json_object(response)
            if payload is None:
                repaired = await self.provider.generate(
                    [{"role": "user", "content": _ANALYSIS_REPAIR_PROMPT.format(content=response)}],
                    max_output_tokens=1000,
                    temperature=0,
                )
                payload = parse_json_object(repaired)
        except Exception as e:
            logger.warning(f"[TRANSLATE] Analysis translation to {target_lang} failed: {e}")
            return analysis

        if payload is None:
            logger.warning(f"[TRANSLATE] JSON repair failed for {target_lang}; falling back to English")
            return analysis
        return AnalysisResult.model_validate(payload)
