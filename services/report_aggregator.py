"""Report aggregation over completed interviews, written once per supported language."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Sequence

from config import Settings
from db.models import InterviewSession, InterviewTemplate, ReportAggregation, ReportDetail
from db.repository import InterviewStore
from models.schemas import SUPPORTED_LANGUAGES, AnalysisResult
from services.exceptions import NotFoundError
from services.json_extract import parse_json_object
from services.llm_provider import LLMProvider
from services.translation import TranslationEngine

logger = logging.getLogger(__name__)

MASTER_LANGUAGE = "en"

ANALYSIS_PROMPT_TEMPLATE = """\
You are an expert qualitative researcher analyzing interview data.

Interview Topic: {title}
Number of Sessions: {count}

Interview Conversations:
{conversations}

Please analyze these interviews IN ENGLISH and provide a structured report in JSON format with the following fields:
1. executive_summary: A concise 2-3 paragraph summary of the overall findings
2. key_findings: An array of 4-6 key discoveries or insights
3. segment_analysis: A paragraph analyzing trends across different user segments (if identifiable)
4. recommended_actions: An array of 3-5 actionable recommendations based on the findings

Respond ONLY with valid JSON in this exact format:
{{
  "executive_summary": "string",
  "key_findings": ["string", "string"],
  "segment_analysis": "string",
  "recommended_actions": ["string", "string"]
}}"""

ANALYSIS_REPAIR_PROMPT = """\
Convert the following content into STRICT, VALID JSON matching this schema keys: {{executive_summary: string, key_findings: string[], segment_analysis: string, recommended_actions: string[]}}. Output JSON only with no code fences, no commentary.

CONTENT:
{content}"""


@dataclass
class TemplateStats:
    total_interviews: int
    completed_interviews: int
    in_progress_interviews: int
    total_messages: int
    avg_duration: str
    avg_duration_seconds: int | None
    last_conducted_at: datetime | None

    def as_fields(self) -> dict[str, Any]:
        return {
            "total_interviews": self.total_interviews,
            "completed_interviews": self.completed_interviews,
            "in_progress_interviews": self.in_progress_interviews,
            "total_messages": self.total_messages,
            "avg_duration": self.avg_duration,
            "avg_duration_seconds": self.avg_duration_seconds,
            "last_conducted_at": self.last_conducted_at,
        }


@dataclass
class Conversation:
    session_id: str
    messages: list[tuple[str, str]]


def compute_average_duration(sessions: Sequence[InterviewSession]) -> int | None:
    """Mean completed-session duration in whole seconds, each clamped at zero."""
    durations = [
        max(0, int((s.ended_at - s.started_at).total_seconds()))
        for s in sessions
        if s.ended_at is not None and s.started_at is not None
    ]
    if not durations:
        return None
    return round(sum(durations) / len(durations))


def format_duration(seconds: int | None) -> str:
    minutes = round((seconds or 0) / 60)
    return f"{minutes} min"


def default_analysis(title: str, session_count: int) -> AnalysisResult:
    """Minimal payload used when the analysis call cannot produce a report."""
    return AnalysisResult(
        executive_summary=(
            f'Analysis of {session_count} interview sessions for "{title}". Due to processing '
            "limitations, detailed analysis is not available at this time."
        ),
        key_findings=[
            f"Total of {session_count} sessions were conducted",
            "Detailed findings require manual review",
        ],
        segment_analysis="Segment analysis not available",
        recommended_actions=[
            "Review individual sessions for detailed insights",
            "Consider conducting follow-up interviews",
        ],
    )


def format_conversations(conversations: Sequence[Conversation]) -> str:
    blocks = []
    for index, conversation in enumerate(conversations, 1):
        lines = "\n".join(f"{role}: {content}" for role, content in conversation.messages)
        blocks.append(f"--- Session {index} ({conversation.session_id}) ---\n{lines}")
    return "\n\n".join(blocks)


def _payload_fields(analysis: AnalysisResult) -> dict[str, Any]:
    return {
        "executive_summary": analysis.executive_summary,
        "key_findings": list(analysis.key_findings),
        "segment_analysis": analysis.segment_analysis,
        "recommended_actions": list(analysis.recommended_actions),
    }


class ReportAggregator:
    """Runs the batch analysis over every template's completed sessions."""

    def __init__(
        self,
        store: InterviewStore,
        provider: LLMProvider,
        translator: TranslationEngine,
        settings: Settings,
    ):
        self.store = store
        self.provider = provider
        self.translator = translator
        self.max_sessions = max(1, settings.report_max_sessions)
        self.max_messages = max(1, settings.report_max_messages)
        self.max_chars = max(1, settings.report_max_chars)
        self.concurrency = max(1, settings.report_translate_concurrency)

    async def run_aggregation(self) -> str:
        """Analyze all templates and write one report row per (template, language)."""
        templates = await self.store.list_templates()
        total_sessions = await self.store.count_sessions()
        aggregation = await self.store.insert_report_aggregation(self.provider.model_name, total_sessions)
        logger.info(
            f"[REPORT] Aggregation {aggregation.id} started: {len(templates)} templates, "
            f"{total_sessions} sessions"
        )

        try:
            for template in templates:
                await self.aggregate_template(aggregation.id, template)
            await self.store.update_report_aggregation_status(aggregation.id, "completed")
        except Exception as e:
            logger.error(f"[REPORT] Aggregation {aggregation.id} failed: {e}")
            try:
                await self.store.update_report_aggregation_status(aggregation.id, "failed")
            except Exception as status_error:
                logger.warning(f"[REPORT] Could not mark aggregation as failed: {status_error}")
            raise

        logger.info(f"[REPORT] Aggregation {aggregation.id} completed")
        return aggregation.id

    async def collect_stats(
        self, template: InterviewTemplate
    ) -> tuple[TemplateStats, list[InterviewSession]]:
        sessions = await self.store.get_sessions_by_template(template.id)
        completed = [s for s in sessions if s.status == "completed"]
        in_progress = [s for s in sessions if s.status in ("active", "extended")]
        total_messages = await self.store.count_turns_by_template(template.id)
        avg_seconds = compute_average_duration(completed)

        stats = TemplateStats(
            total_interviews=len(sessions),
            completed_interviews=len(completed),
            in_progress_interviews=len(in_progress),
            total_messages=total_messages,
            avg_duration=format_duration(avg_seconds),
            avg_duration_seconds=avg_seconds,
            last_conducted_at=sessions[0].started_at if sessions else None,
        )
        return stats, completed

    async def sample_conversations(self, completed: Sequence[InterviewSession]) -> list[Conversation]:
        """Most recent completed sessions, each cut to its latest turns and truncated per turn."""
        conversations = []
        for session in completed[: self.max_sessions]:
            turns = await self.store.get_ordered_turns(session.id, limit=self.max_messages)
            messages = [
                (turn.role, (turn.content or "")[: self.max_chars])
                for turn in turns
                if turn.role != "system"
            ]
            conversations.append(Conversation(session_id=session.id, messages=messages))
        return conversations

    async def analyze(self, title: str, conversations: Sequence[Conversation]) -> AnalysisResult:
        """English analysis with one repair call; never raises."""
        prompt = ANALYSIS_PROMPT_TEMPLATE.format(
            title=title,
            count=len(conversations),
            conversations=format_conversations(conversations),
        )
        try:
            response = await self.provider.generate(
                [{"role": "user", "content": prompt}], max_output_tokens=2000, temperature=0.3
            )
            payload = parse_json_object(response)
            if payload is None:
                logger.warning(f"[REPORT] Analysis for '{title}' was not JSON, attempting repair")
                repaired = await self.provider.generate(
                    [{"role": "user", "content": ANALYSIS_REPAIR_PROMPT.format(content=response)}],
                    max_output_tokens=1000,
                    temperature=0,
                )
                payload = parse_json_object(repaired)
            if payload is None:
                raise ValueError("Failed to parse analysis JSON")
            return AnalysisResult.model_validate(payload)
        except Exception as e:
            logger.error(f"[REPORT] Analysis for '{title}' failed: {e}")
            return default_analysis(title, len(conversations))

    async def _insert_row(
        self,
        aggregation_id: str,
        template: InterviewTemplate,
        language: str,
        stats: TemplateStats,
        analysis: AnalysisResult,
    ) -> ReportDetail:
        return await self.store.insert_report_detail(
            aggregation_id=aggregation_id,
            template_id=template.id,
            template_title=template.title,
            language=language,
            **stats.as_fields(),
            **_payload_fields(analysis),
        )

    async def aggregate_template(self, aggregation_id: str, template: InterviewTemplate) -> None:
        stats, completed = await self.collect_stats(template)

        english: AnalysisResult | None = None
        if completed:
            conversations = await self.sample_conversations(completed)
            english = await self.analyze(template.title, conversations)

        if english is None:
            for language in SUPPORTED_LANGUAGES:
                await self._insert_row(aggregation_id, template, language, stats, AnalysisResult.empty())
        else:
            await self._insert_row(aggregation_id, template, MASTER_LANGUAGE, stats, english)
            await self.translate_rows(aggregation_id, template, stats, english)

        await self.backfill_missing(aggregation_id, template, stats, english)

    async def translate_rows(
        self,
        aggregation_id: str,
        template: InterviewTemplate,
        stats: TemplateStats,
        english: AnalysisResult,
    ) -> None:
        """Translate into the other languages with a bounded pool of queue workers."""
        queue: asyncio.Queue[str] = asyncio.Queue()
        for language in SUPPORTED_LANGUAGES:
            if language != MASTER_LANGUAGE:
                queue.put_nowait(language)

        async def worker() -> None:
            while True:
                try:
                    language = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                try:
                    translated = await self.translator.translate_analysis(english, language)
                    await self._insert_row(aggregation_id, template, language, stats, translated)
                except Exception as e:
                    logger.warning(
                        f"[REPORT] Translation to {language} for template {template.id} failed: {e}"
                    )
                    try:
                        await self._insert_row(
                            aggregation_id, template, language, stats, AnalysisResult.empty()
                        )
                    except Exception as insert_error:
                        logger.error(f"[REPORT] Empty row for {language} not written: {insert_error}")

        workers = min(self.concurrency, queue.qsize())
        await asyncio.gather(*(worker() for _ in range(max(1, workers))))

    async def backfill_missing(
        self,
        aggregation_id: str,
        template: InterviewTemplate,
        stats: TemplateStats,
        english: AnalysisResult | None,
    ) -> None:
        """Write a fallback row for every language that has none."""
        try:
            existing = await self.store.get_report_languages(aggregation_id, template.id)
            missing = [lang for lang in SUPPORTED_LANGUAGES if lang not in existing]
            if not missing:
                return
            logger.warning(f"[REPORT] Backfilling {missing} for template {template.id}")
            fallback = english or AnalysisResult.empty()
            for language in missing:
                await self._insert_row(aggregation_id, template, language, stats, fallback)
        except Exception as e:
            logger.warning(f"[REPORT] Verification of language rows failed: {e}")

    async def get_aggregation(
        self, aggregation_id: str, language: str = MASTER_LANGUAGE
    ) -> tuple[ReportAggregation, Sequence[ReportDetail]]:
        aggregation = await self.store.get_report_aggregation(aggregation_id)
        if aggregation is None:
            raise NotFoundError("Aggregation", aggregation_id)
        details = await self.store.get_report_details(aggregation_id, language)
        return aggregation, details

    async def list_aggregations(self) -> Sequence[ReportAggregation]:
        return await self.store.list_report_aggregations()
