"""Storage operations used by the orchestration services."""

import logging
import uuid
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .models import (
    ConversationLog,
    InterviewSession,
    InterviewTemplate,
    ReportAggregation,
    ReportDetail,
)

logger = logging.getLogger(__name__)


class InterviewStore:
    """Async SQLAlchemy access to templates, sessions, conversation logs and reports.

    Every method opens its own short-lived session. Writes that must be atomic
    run inside ``session.begin()``.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._factory = session_factory

    # --- Templates ---

    async def get_template(self, template_id: str) -> InterviewTemplate | None:
        async with self._factory() as db:
            return await db.get(InterviewTemplate, template_id)

    async def list_templates(self) -> Sequence[InterviewTemplate]:
        async with self._factory() as db:
            result = await db.execute(
                select(InterviewTemplate).order_by(InterviewTemplate.created_at.desc())
            )
            return result.scalars().all()

    async def upsert_template(
        self,
        template_id: str | None,
        title: str,
        prompt: str,
        overview: str,
        duration: int,
        translations: dict[str, Any],
    ) -> InterviewTemplate:
        """Create or fully replace a template together with its translation map."""
        async with self._factory() as db:
            async with db.begin():
                template = await db.get(InterviewTemplate, template_id) if template_id else None
                if template is None:
                    template = InterviewTemplate(id=template_id or str(uuid.uuid4()))
                    db.add(template)
                template.title = title
                template.prompt = prompt
                template.overview = overview
                template.duration = duration
                template.translations = translations
            return template

    async def delete_template_cascade(self, template_id: str) -> bool:
        """Delete a template with its sessions, conversation logs and report rows."""
        async with self._factory() as db:
            async with db.begin():
                template = await db.get(InterviewTemplate, template_id)
                if template is None:
                    return False
                session_ids = select(InterviewSession.id).where(
                    InterviewSession.template_id == template_id
                )
                await db.execute(delete(ReportDetail).where(ReportDetail.template_id == template_id))
                await db.execute(
                    delete(ConversationLog).where(ConversationLog.session_id.in_(session_ids))
                )
                await db.execute(
                    delete(InterviewSession).where(InterviewSession.template_id == template_id)
                )
                await db.delete(template)
        logger.info(f"Template {template_id} deleted with dependents")
        return True

    # --- Sessions ---

    async def create_session(self, template_id: str, language: str) -> InterviewSession:
        async with self._factory() as db:
            session = InterviewSession(
                id=str(uuid.uuid4()),
                template_id=template_id,
                language=language,
                status="active",
                started_at=datetime.utcnow(),
            )
            db.add(session)
            await db.commit()
            return session

    async def get_session(self, session_id: str) -> InterviewSession | None:
        async with self._factory() as db:
            return await db.get(InterviewSession, session_id)

    async def get_sessions_by_template(self, template_id: str) -> Sequence[InterviewSession]:
        """Sessions of a template, most recently started first."""
        async with self._factory() as db:
            result = await db.execute(
                select(InterviewSession)
                .where(InterviewSession.template_id == template_id)
                .order_by(InterviewSession.started_at.desc())
            )
            return result.scalars().all()

    async def count_sessions(self) -> int:
        async with self._factory() as db:
            result = await db.execute(select(func.count()).select_from(InterviewSession))
            return result.scalar_one()

    async def update_session_status(self, session_id: str, status: str) -> InterviewSession | None:
        """Set the session status; ``ended_at`` is stamped only on the first completion."""
        async with self._factory() as db:
            async with db.begin():
                session = await db.get(InterviewSession, session_id)
                if session is None:
                    return None
                session.status = status
                if status == "completed" and session.ended_at is None:
                    session.ended_at = datetime.utcnow()
            return session

    async def set_session_summary(self, session_id: str, summary: str) -> None:
        async with self._factory() as db:
            await db.execute(
                update(InterviewSession)
                .where(InterviewSession.id == session_id)
                .values(summary=summary)
            )
            await db.commit()

    # --- Conversation logs ---

    async def append_turn(
        self,
        session_id: str,
        role: str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> ConversationLog:
        async with self._factory() as db:
            turn = ConversationLog(
                session_id=session_id,
                role=role,
                content=content,
                metadata_=metadata,
                timestamp=datetime.utcnow(),
            )
            db.add(turn)
            await db.commit()
            return turn

    async def get_ordered_turns(self, session_id: str, limit: int | None = None) -> list[ConversationLog]:
        """Turns of a session in insertion order; with ``limit``, only the most recent ones."""
        async with self._factory() as db:
            query = select(ConversationLog).where(ConversationLog.session_id == session_id)
            if limit is None:
                result = await db.execute(
                    query.order_by(ConversationLog.timestamp.asc(), ConversationLog.id.asc())
                )
                return list(result.scalars().all())
            result = await db.execute(
                query.order_by(ConversationLog.timestamp.desc(), ConversationLog.id.desc()).limit(limit)
            )
            return list(reversed(result.scalars().all()))

    async def count_turns_by_template(self, template_id: str) -> int:
        async with self._factory() as db:
            session_ids = select(InterviewSession.id).where(InterviewSession.template_id == template_id)
            result = await db.execute(
                select(func.count())
                .select_from(ConversationLog)
                .where(ConversationLog.session_id.in_(session_ids))
            )
            return result.scalar_one()

    # --- Reports ---

    async def insert_report_aggregation(self, llm_model: str, total_sessions: int) -> ReportAggregation:
        async with self._factory() as db:
            aggregation = ReportAggregation(
                id=str(uuid.uuid4()),
                created_at=datetime.utcnow(),
                llm_model=llm_model,
                total_sessions=total_sessions,
                status="processing",
            )
            db.add(aggregation)
            await db.commit()
            return aggregation

    async def update_report_aggregation_status(self, aggregation_id: str, status: str) -> bool:
        async with self._factory() as db:
            result = await db.execute(
                update(ReportAggregation)
                .where(ReportAggregation.id == aggregation_id)
                .values(status=status)
            )
            await db.commit()
            return result.rowcount > 0

    async def get_report_aggregation(self, aggregation_id: str) -> ReportAggregation | None:
        async with self._factory() as db:
            return await db.get(ReportAggregation, aggregation_id)

    async def list_report_aggregations(self) -> Sequence[ReportAggregation]:
        async with self._factory() as db:
            result = await db.execute(
                select(ReportAggregation).order_by(ReportAggregation.created_at.desc())
            )
            return result.scalars().all()

    async def insert_report_detail(self, **fields: Any) -> ReportDetail:
        """Insert one report row in its own transaction."""
        async with self._factory() as db:
            async with db.begin():
                detail = ReportDetail(**fields)
                db.add(detail)
            return detail

    async def get_report_languages(self, aggregation_id: str, template_id: str) -> set[str]:
        async with self._factory() as db:
            result = await db.execute(
                select(ReportDetail.language).where(
                    ReportDetail.aggregation_id == aggregation_id,
                    ReportDetail.template_id == template_id,
                )
            )
            return set(result.scalars().all())

    async def get_report_details(self, aggregation_id: str, language: str) -> Sequence[ReportDetail]:
        async with self._factory() as db:
            result = await db.execute(
                select(ReportDetail)
                .where(ReportDetail.aggregation_id == aggregation_id, ReportDetail.language == language)
                .order_by(ReportDetail.total_interviews.desc(), ReportDetail.id.asc())
            )
            return result.scalars().all()
