"""SQLAlchemy ORM models for templates, sessions, conversation logs and reports."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class InterviewTemplate(Base):
    """Interview definition plus its per-language translations."""

    __tablename__ = "interview_templates"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    title: Mapped[str] = mapped_column(String(255))
    prompt: Mapped[str] = mapped_column(Text)
    overview: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration: Mapped[int] = mapped_column(Integer, default=600)
    # {lang: {"title", "prompt", "overview"}}
    translations: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class InterviewSession(Base):
    """One participant's run through a template."""

    __tablename__ = "interview_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    template_id: Mapped[str] = mapped_column(ForeignKey("interview_templates.id"), index=True)
    language: Mapped[str] = mapped_column(String(10), default="en")
    status: Mapped[str] = mapped_column(String(20), default="active")
    started_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)


class ConversationLog(Base):
    """Append-only conversation turn."""

    __tablename__ = "conversation_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(ForeignKey("interview_sessions.id"), index=True)
    role: Mapped[str] = mapped_column(String(20))
    content: Mapped[str] = mapped_column(Text)
    metadata_: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class ReportAggregation(Base):
    """One batch analysis run over all templates."""

    __tablename__ = "report_aggregations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    llm_model: Mapped[str] = mapped_column(String(255))
    total_sessions: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(20), default="processing")


class ReportDetail(Base):
    """Statistics and analysis for one (aggregation, template, language)."""

    __tablename__ = "report_details"
    __table_args__ = (Index("idx_report_details_lang", "aggregation_id", "template_id", "language"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    aggregation_id: Mapped[str] = mapped_column(ForeignKey("report_aggregations.id"))
    template_id: Mapped[str] = mapped_column(ForeignKey("interview_templates.id"))
    template_title: Mapped[str] = mapped_column(String(255))
    language: Mapped[str] = mapped_column(String(10), default="en")
    total_interviews: Mapped[int] = mapped_column(Integer, default=0)
    completed_interviews: Mapped[int] = mapped_column(Integer, default=0)
    in_progress_interviews: Mapped[int] = mapped_column(Integer, default=0)
    total_messages: Mapped[int] = mapped_column(Integer, default=0)
    avg_duration: Mapped[str | None] = mapped_column(String(50), nullable=True)
    avg_duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_conducted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    executive_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    key_findings: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    segment_analysis: Mapped[str | None] = mapped_column(Text, nullable=True)
    recommended_actions: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
