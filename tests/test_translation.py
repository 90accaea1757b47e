import pytest

from conftest import FakeProvider
from models.schemas import AnalysisResult
from services.translation import (
    TranslationEngine,
    choose_translation,
    instructions_for,
    is_suspect_dialect_output,
)


class TestChooseTranslation:
    def test_source_language_keeps_result(self):
        assert choose_translation("Title", "Title", "en", "en") == "Title"
        assert choose_translation("", "Title", "en", "en") == "Title"

    def test_accepts_real_translation(self):
        assert choose_translation("  Titre  ", "Title", "fr", "en") == "Titre"

    def test_rejects_echo_of_source(self):
        assert choose_translation("Title", "Title", "fr", "en") == "Title"
        assert choose_translation("Title", "Title", "fr", "en", previous="Titre") == "Titre"

    def test_rejects_too_short(self):
        assert choose_translation("T", "Title", "ja", "en", previous="タイトル") == "タイトル"

    def test_rejects_empty(self):
        assert choose_translation(None, "Title", "de", "en") == "Title"


class TestInstructions:
    def test_romansh_names_written_standard(self):
        assert "Rumantsch Grischun" in instructions_for("rm")

    def test_swiss_german_forbids_standard_german(self):
        text = instructions_for("gsw")
        assert "Hochdeutsch" in text
        assert "ß" in text

    def test_default_uses_language_name(self):
        assert "Simplified Chinese" in instructions_for("zh")

    def test_suspect_dialect_output(self):
        assert is_suspect_dialect_output("", "Hello")
        assert is_suspect_dialect_output("Hello", "Hello")
        assert is_suspect_dialect_output("こんにちは世界", "こんにちは")
        assert not is_suspect_dialect_output("Grüezi mitenand", "Hello everyone")


class TestTranslationEngine:
    @pytest.mark.asyncio
    async def test_translate_returns_model_output(self):
        provider = FakeProvider("  Bonjour  ")
        engine = TranslationEngine(provider)
        assert await engine.translate("Hello", "fr") == "Bonjour"
        assert provider.calls[0]["messages"][0].role == "system"
        assert provider.calls[0]["messages"][1].content == "Hello"

    @pytest.mark.asyncio
    async def test_blank_text_is_not_sent(self):
        provider = FakeProvider()
        engine = TranslationEngine(provider)
        assert await engine.translate("   ", "fr") == "   "
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_failure_returns_source_text(self):
        engine = TranslationEngine(FakeProvider(RuntimeError("timeout")))
        assert await engine.translate("Hello", "ja") == "Hello"

    @pytest.mark.asyncio
    async def test_empty_result_returns_source_text(self):
        engine = TranslationEngine(FakeProvider(""))
        assert await engine.translate("Hello", "it") == "Hello"

    @pytest.mark.asyncio
    async def test_swiss_german_retries_once_on_echo(self):
        provider = FakeProvider("Hello there", "Grüezi mitenand")
        engine = TranslationEngine(provider)
        assert await engine.translate("Hello there", "gsw") == "Grüezi mitenand"
        assert len(provider.calls) == 2
        assert "two steps" in provider.calls[1]["messages"][0].content

    @pytest.mark.asyncio
    async def test_swiss_german_retry_is_not_repeated(self):
        provider = FakeProvider("Hello there", "Hello there", "Grüezi")
        engine = TranslationEngine(provider)
        assert await engine.translate("Hello there", "gsw") == "Hello there"
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_other_languages_never_retry(self):
        provider = FakeProvider("Hello there", "Hallo")
        engine = TranslationEngine(provider)
        assert await engine.translate("Hello there", "de") == "Hello there"
        assert len(provider.calls) == 1


class TestTranslateAnalysis:
    english = AnalysisResult(
        executive_summary="Summary",
        key_findings=["Finding"],
        segment_analysis="Segments",
        recommended_actions=["Act"],
    )

    @pytest.mark.asyncio
    async def test_english_is_returned_without_call(self):
        provider = FakeProvider()
        result = await TranslationEngine(provider).translate_analysis(self.english, "en")
        assert result is self.english
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_translated_payload_is_validated(self):
        provider = FakeProvider(
            '```json\n{"executive_summary": "Résumé", "key_findings": ["Constat"], '
            '"segment_analysis": "Segments", "recommended_actions": "Agir"}\n```'
        )
        result = await TranslationEngine(provider).translate_analysis(self.english, "fr")
        assert result.executive_summary == "Résumé"
        assert result.recommended_actions == ["Agir"]

    @pytest.mark.asyncio
    async def test_repair_then_fallback_to_english(self):
        provider = FakeProvider("not json", "still not json")
        result = await TranslationEngine(provider).translate_analysis(self.english, "ja")
        assert result == self.english
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_repair_succeeds(self):
        provider = FakeProvider("Here you go: executive_summary = ...", '{"executive_summary": "要約"}')
        result = await TranslationEngine(provider).translate_analysis(self.english, "ja")
        assert result.executive_summary == "要約"
        assert result.key_findings == []
