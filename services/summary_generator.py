"""Per-session interview summary via LLM, cached on the session row."""

import logging

from db.models import ConversationLog
from db.repository import InterviewStore
from services.exceptions import GenerationError, NotFoundError
from services.llm_provider import LLMProvider
from services.translation import language_name

logger = logging.getLogger(__name__)

SUMMARY_PROMPT_TEMPLATE = """\
You are an expert interviewer analyzing a completed interview session.

Interview Title: {title}
Language: {language}
Session ID: {session_id}

CONVERSATION LOG:
{conversation}

Please create a comprehensive summary of this interview IN {language}. Include:

1. **Overview**: Brief summary of the interview (2-3 sentences)
2. **Key Points**: Main topics discussed and important insights (3-5 bullet points)
3. **User Profile**: Summary of the interviewee's background and context if mentioned
4. **Notable Responses**: Highlight any particularly interesting or significant responses

Format your response in clear, professional {language}. Structure it with proper headings and bullet points for readability."""


def format_conversation(turns: list[ConversationLog]) -> str:
    return "\n\n".join(
        f"{turn.role.upper()}: {turn.content}" for turn in turns if turn.role != "system"
    )


class SummaryGenerator:
    """Generates a structured summary of one interview in the session's language."""

    def __init__(self, store: InterviewStore, provider: LLMProvider, max_tokens: int = 1500):
        self.store = store
        self.provider = provider
        self.max_tokens = max_tokens

    async def get_summary(self, session_id: str) -> str | None:
        session = await self.store.get_session(session_id)
        if session is None:
            raise NotFoundError("Session", session_id)
        return session.summary

    async def generate(self, session_id: str) -> str:
        """Return the cached summary, or generate and store one."""
        session = await self.store.get_session(session_id)
        if session is None:
            raise NotFoundError("Session", session_id)
        if session.summary:
            return session.summary

        template = await self.store.get_template(session.template_id)
        if template is None:
            raise NotFoundError("Template", session.template_id)

        turns = await self.store.get_ordered_turns(session_id)
        if not turns:
            raise NotFoundError("Conversation logs", session_id)

        language = language_name(session.language)
        prompt = SUMMARY_PROMPT_TEMPLATE.format(
            title=template.title,
            language=language,
            session_id=session_id,
            conversation=format_conversation(turns),
        )
        summary = await self.provider.generate(
            [{"role": "user", "content": prompt}], max_output_tokens=self.max_tokens, temperature=0.3
        )
        if not summary:
            raise GenerationError("Empty summary generated")

        await self.store.set_session_summary(session_id, summary)
        logger.info(f"[SUMMARY] Stored summary for session {session_id} ({len(summary)} chars)")
        return summary
