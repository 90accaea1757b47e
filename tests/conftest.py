import sys
from collections import deque
from pathlib import Path
from typing import Any, Callable

import pytest
import pytest_asyncio

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from db.database import close_db, init_db
from db.repository import InterviewStore
from services.llm_provider import LLMProvider, coerce_messages


class FakeProvider(LLMProvider):
    """Scripted provider: replies are consumed in order, callables get the message list."""

    def __init__(self, *replies: str | Exception | Callable[..., Any], default: str = ""):
        self.model_name = "fake-model"
        self.replies = deque(replies)
        self.default = default
        self.calls: list[dict[str, Any]] = []

    def queue(self, *replies: str | Exception | Callable[..., Any]) -> None:
        self.replies.extend(replies)

    async def generate(self, messages, max_output_tokens=1000, temperature=None):
        messages = coerce_messages(messages)
        self.calls.append(
            {"messages": messages, "max_output_tokens": max_output_tokens, "temperature": temperature}
        )
        reply = self.replies.popleft() if self.replies else self.default
        if callable(reply):
            reply = reply(messages)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def prompts(self) -> list[str]:
        """Last message content of every call."""
        return [call["messages"][-1].content for call in self.calls]


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest_asyncio.fixture
async def store(tmp_path):
    factory = await init_db(str(tmp_path / "test.db"))
    try:
        yield InterviewStore(factory)
    finally:
        await close_db()


@pytest_asyncio.fixture
async def template(store):
    return await store.upsert_template(
        None,
        "Coffee habits",
        "Ask about the participant's coffee habits.",
        "A short chat about coffee.",
        600,
        {
            "ja": {"title": "コーヒー習慣", "prompt": "p", "overview": "o"},
            "en": {"title": "Coffee habits", "prompt": "p", "overview": "o"},
        },
    )
