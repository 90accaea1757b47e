"""Markdown export of one interview session."""

from datetime import datetime
from typing import Any

from db.models import ConversationLog, InterviewSession, InterviewTemplate


def _format_date(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else "N/A"


def format_session_duration(session: InterviewSession) -> str:
    if not session.started_at or not session.ended_at:
        return "N/A"
    seconds = max(0, int((session.ended_at - session.started_at).total_seconds()))
    return f"{seconds // 60}min {seconds % 60}s"


def _metadata_lines(role: str, metadata: dict[str, Any] | None) -> list[str]:
    if not metadata:
        return []
    lines = []
    if role == "assistant" and metadata.get("type"):
        lines.append(f"*Question type: {metadata['type']}*")
        if metadata.get("options"):
            lines.append(f"*Options: {', '.join(metadata['options'])}*")
        if metadata.get("scaleMin") is not None and metadata.get("scaleMax") is not None:
            lines.append(f"*Scale: {metadata['scaleMin']} - {metadata['scaleMax']}*")
    if role == "user":
        if metadata.get("selectedOptions"):
            lines.append(f"*Selected: {', '.join(metadata['selectedOptions'])}*")
        if metadata.get("scaleValue") is not None:
            lines.append(f"*Rating: {metadata['scaleValue']}*")
    return lines


def export_session_markdown(
    session: InterviewSession,
    template: InterviewTemplate,
    turns: list[ConversationLog],
) -> str:
    """Render session details, the optional summary and the full conversation log."""
    parts = [
        "# Interview Report\n",
        "## Session\n",
        f"- **Title**: {template.title}",
        f"- **Session ID**: {session.id}",
        f"- **Language**: {session.language}",
        f"- **Started**: {_format_date(session.started_at)}",
    ]
    if session.ended_at:
        parts.append(f"- **Ended**: {_format_date(session.ended_at)}")
    parts.append(f"- **Duration**: {format_session_duration(session)}")
    parts.append(f"- **Status**: {session.status}\n")

    if session.summary:
        parts.append("## Summary\n")
        parts.append(f"{session.summary}\n")

    parts.append("## Conversation\n")
    parts.append(f"{len(turns)} messages\n")
    parts.append("---\n")
    for turn in turns:
        label = "**Participant**" if turn.role == "user" else "**Interviewer**"
        parts.append(f"### {label} ({_format_date(turn.timestamp)})\n")
        parts.append(f"{turn.content}\n")
        for line in _metadata_lines(turn.role, turn.metadata_):
            parts.append(f"{line}\n")
        parts.append("---\n")

    parts.append(f"\n*Generated {datetime.utcnow().strftime('%Y-%m-%d %H:%M')} UTC*\n")
    return "\n".join(parts)
