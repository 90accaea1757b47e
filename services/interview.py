"""Interview turn controller: greeting, structured question turns and session status."""

import logging

from db.models import ConversationLog, InterviewSession, InterviewTemplate
from db.repository import InterviewStore
from models.schemas import (
    SUPPORTED_LANGUAGES,
    ChatMessage,
    ChatResponse,
    InitResponse,
    NormalizedQuestion,
    QuestionMetadata,
    ResponseMetadata,
)
from services.exceptions import GenerationError, NotFoundError, SessionStateError
from services.llm_provider import LLMProvider
from services.question_normalizer import QUESTION_SCHEMA, ResponseNormalizer
from services.session_export import export_session_markdown
from services.translation import language_name

logger = logging.getLogger(__name__)

GREETING_PROMPT = """\
You are conducting an interview. {prompt}

Respond exclusively in {language}.

Start the interview with a warm, brief greeting and introduce the topic. In the same concise \
opening message, ask the participant for three profile details: their occupation, their age, \
and the region where they live. Do not ask any topic questions yet."""

GREETING_OPENER = "Please start the interview."

TURN_PROMPT = """\
You are conducting an interview. {prompt}

Respond exclusively in {language}.

If the participant has not yet shared their occupation, age and region, collect the missing \
details first in one concise question before moving on to topic questions. Then ask one \
question at a time, with follow-ups based on the participant's answers. Keep questions \
concise and focused.

Reply with a single JSON object that matches this schema:
{schema}

Choose the question type:
- "text": open-ended questions that need a free-form answer
- "single_choice": 2-5 mutually exclusive options; provide them in "options"
- "multi_choice": 2-7 options where several may apply; provide them in "options"
- "scale": rating or agreement questions; use "scaleMin": 1 and "scaleMax": 5 with optional labels

Write "question" and every option in {language}. Output the JSON object only."""

SIMPLE_PROMPT = """\
You are conducting an interview. {prompt}

Respond exclusively in {language}. Ask the participant one short follow-up question about \
their last answer."""

FALLBACK_GREETING = "Hello! Thank you for participating in this interview. Let's begin."
FALLBACK_REPLY = "I apologize, I did not understand. Could you please rephrase?"


class InterviewController:
    """Drives one interview session turn by turn."""

    def __init__(
        self,
        store: InterviewStore,
        provider: LLMProvider,
        normalizer: ResponseNormalizer,
        greeting_max_tokens: int = 300,
        turn_max_tokens: int = 800,
    ):
        self.store = store
        self.provider = provider
        self.normalizer = normalizer
        self.greeting_max_tokens = greeting_max_tokens
        self.turn_max_tokens = turn_max_tokens

    async def _load(self, session_id: str) -> tuple[InterviewSession, InterviewTemplate]:
        session = await self.store.get_session(session_id)
        if session is None:
            raise NotFoundError("Session", session_id)
        template = await self.store.get_template(session.template_id)
        if template is None:
            raise NotFoundError("Template", session.template_id)
        return session, template

    async def _generate(self, messages: list[ChatMessage], max_tokens: int) -> str:
        """Provider call where a failed generation counts as an empty reply."""
        try:
            return await self.provider.generate(messages, max_output_tokens=max_tokens, temperature=0.7)
        except GenerationError as e:
            logger.warning(f"[CHAT] Generation failed: {e}")
            return ""

    async def start_session(self, template_id: str, language: str = "en") -> str:
        template = await self.store.get_template(template_id)
        if template is None:
            raise NotFoundError("Template", template_id)
        if language not in SUPPORTED_LANGUAGES:
            logger.warning(f"[SESSION] Unsupported language '{language}', using English")
            language = "en"
        session = await self.store.create_session(template_id, language)
        logger.info(f"[SESSION] Started {session.id} for template {template_id} ({language})")
        return session.id

    async def initialize_interview(self, session_id: str) -> InitResponse:
        """Generate and store the greeting, or return the one already stored."""
        session, template = await self._load(session_id)
        title = _localized_title(template, session.language)

        history = await self.store.get_ordered_turns(session_id)
        existing = next((turn for turn in history if turn.role == "assistant"), None)
        if existing is not None:
            return InitResponse(message=existing.content, title=title, duration=template.duration)

        language = language_name(session.language)
        system = GREETING_PROMPT.format(prompt=template.prompt, language=language)
        greeting = await self._generate(
            [ChatMessage(role="system", content=system), ChatMessage(role="user", content=GREETING_OPENER)],
            self.greeting_max_tokens,
        )
        if not greeting:
            logger.warning(f"[CHAT] Empty greeting for {session_id}, using fallback")
            greeting = FALLBACK_GREETING

        await self.store.append_turn(session_id, "assistant", greeting, QuestionMetadata().to_wire())
        logger.info(f"[CHAT] Greeting stored for session {session_id}")
        return InitResponse(message=greeting, title=title, duration=template.duration)

    async def send_turn(
        self,
        session_id: str,
        message: str,
        response_metadata: ResponseMetadata | None = None,
    ) -> ChatResponse:
        """Store the participant's answer and the next structured question."""
        session, template = await self._load(session_id)
        if session.status == "completed":
            raise SessionStateError(f"Session {session_id} is already completed")

        history = await self.store.get_ordered_turns(session_id)
        answer_metadata = response_metadata or ResponseMetadata()
        await self.store.append_turn(session_id, "user", message, answer_metadata.to_wire())

        language = language_name(session.language)
        system = TURN_PROMPT.format(prompt=template.prompt, language=language, schema=QUESTION_SCHEMA)
        messages = [ChatMessage(role="system", content=system)]
        messages.extend(
            ChatMessage(role=turn.role, content=turn.content) for turn in history if turn.role != "system"
        )
        messages.append(ChatMessage(role="user", content=message))

        raw = await self._generate(messages, self.turn_max_tokens)
        if not raw:
            logger.warning(f"[CHAT] Empty reply for {session_id}, retrying with simplified prompt")
            simple = SIMPLE_PROMPT.format(prompt=template.prompt, language=language)
            raw = await self._generate(
                [ChatMessage(role="system", content=simple), ChatMessage(role="user", content=message)],
                self.turn_max_tokens,
            )

        if raw:
            reply = await self.normalizer.normalize(raw)
        else:
            logger.error(f"[CHAT] No reply generated for {session_id}, using fallback text")
            reply = NormalizedQuestion(question=FALLBACK_REPLY)

        if not reply.question.strip():
            reply = NormalizedQuestion(question=FALLBACK_REPLY)

        metadata = reply.metadata.to_wire()
        await self.store.append_turn(session_id, "assistant", reply.question, metadata)
        return ChatResponse(message=reply.question, metadata=metadata)

    async def get_session(self, session_id: str) -> InterviewSession:
        session = await self.store.get_session(session_id)
        if session is None:
            raise NotFoundError("Session", session_id)
        return session

    async def get_history(self, session_id: str) -> list[ConversationLog]:
        if await self.store.get_session(session_id) is None:
            raise NotFoundError("Session", session_id)
        return await self.store.get_ordered_turns(session_id)

    async def export_markdown(self, session_id: str) -> str:
        session, template = await self._load(session_id)
        turns = await self.store.get_ordered_turns(session_id)
        return export_session_markdown(session, template, turns)

    async def end_session(self, session_id: str) -> InterviewSession:
        session = await self.store.update_session_status(session_id, "completed")
        if session is None:
            raise NotFoundError("Session", session_id)
        logger.info(f"[SESSION] Completed {session_id}")
        return session

    async def extend_session(self, session_id: str) -> InterviewSession:
        """Continue past the time limit; only active sessions can be extended."""
        session = await self.store.get_session(session_id)
        if session is None:
            raise NotFoundError("Session", session_id)
        if session.status == "extended":
            return session
        if session.status != "active":
            raise SessionStateError(f"Session {session_id} cannot be extended from '{session.status}'")
        return await self.store.update_session_status(session_id, "extended")


def _localized_title(template: InterviewTemplate, language: str) -> str:
    translation = (template.translations or {}).get(language) or {}
    return translation.get("title") or template.title
