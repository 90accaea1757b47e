import pytest

from conftest import FakeProvider
from services.exceptions import GenerationError, NotFoundError
from services.summary_generator import SummaryGenerator, format_conversation


@pytest.mark.asyncio
async def test_summary_is_generated_once_and_cached(store, template):
    session = await store.create_session(template.id, "de")
    await store.append_turn(session.id, "assistant", "Hallo!", {"type": "text"})
    await store.append_turn(session.id, "user", "Ich trinke Kaffee.", {"type": "text"})
    provider = FakeProvider("## Überblick\nKaffee.")
    generator = SummaryGenerator(store, provider)

    first = await generator.generate(session.id)
    second = await generator.generate(session.id)

    assert first == second == "## Überblick\nKaffee."
    assert len(provider.calls) == 1
    prompt = provider.prompts()[0]
    assert "IN German" in prompt
    assert "USER: Ich trinke Kaffee." in prompt
    assert await generator.get_summary(session.id) == first


@pytest.mark.asyncio
async def test_summary_requires_turns(store, template):
    session = await store.create_session(template.id, "en")
    with pytest.raises(NotFoundError):
        await SummaryGenerator(store, FakeProvider()).generate(session.id)


@pytest.mark.asyncio
async def test_empty_summary_is_an_error(store, template):
    session = await store.create_session(template.id, "en")
    await store.append_turn(session.id, "assistant", "Hi", {"type": "text"})
    generator = SummaryGenerator(store, FakeProvider(""))
    with pytest.raises(GenerationError):
        await generator.generate(session.id)
    assert await generator.get_summary(session.id) is None


@pytest.mark.asyncio
async def test_unknown_session(store):
    with pytest.raises(NotFoundError):
        await SummaryGenerator(store, FakeProvider()).get_summary("missing")


def test_format_conversation_skips_system_turns():
    class Turn:
        def __init__(self, role, content):
            self.role = role
            self.content = content

    text = format_conversation([Turn("system", "hidden"), Turn("assistant", "Q"), Turn("user", "A")])
    assert text == "ASSISTANT: Q\n\nUSER: A"
