import pytest

from conftest import FakeProvider
from services.question_normalizer import (
    ResponseNormalizer,
    coerce_metadata,
    coerce_question_type,
    extract_question_text,
    parse_question_payload,
)


class TestCoerceQuestionType:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("likert", "scale"),
            ("Rating", "scale"),
            ("multiple-choice", "multi_choice"),
            ("checkbox", "multi_choice"),
            ("single choice", "single_choice"),
            ("radio", "single_choice"),
            ("open_ended", "text"),
            ("something else", "text"),
            (None, "text"),
        ],
    )
    def test_synonyms(self, raw, expected):
        assert coerce_question_type(raw) == expected


class TestCoerceMetadata:
    def test_scale_defaults(self):
        metadata = coerce_metadata({"type": "scale"})
        assert metadata.to_wire() == {"type": "scale", "scaleMin": 1, "scaleMax": 5}

    def test_reversed_scale_is_swapped_with_labels(self):
        metadata = coerce_metadata(
            {
                "type": "scale",
                "scaleMin": 10,
                "scaleMax": "0",
                "scaleMinLabel": "Great",
                "scaleMaxLabel": "Awful",
            }
        )
        assert metadata.scale_min == 0
        assert metadata.scale_max == 10
        assert metadata.scale_min_label == "Awful"
        assert metadata.scale_max_label == "Great"

    def test_unparseable_numbers_use_defaults(self):
        metadata = coerce_metadata({"type": "scale", "scaleMin": "low", "scaleMax": True})
        assert (metadata.scale_min, metadata.scale_max) == (1, 5)

    def test_choice_options_are_cleaned(self):
        metadata = coerce_metadata(
            {"type": "single_choice", "options": [" Yes ", "", None, {"label": "No"}, 3]}
        )
        assert metadata.to_wire() == {"type": "single_choice", "options": ["Yes", "No", "3"]}

    def test_text_carries_no_extra_fields(self):
        metadata = coerce_metadata({"type": "text", "options": ["a"], "scaleMin": 1})
        assert metadata.to_wire() == {"type": "text"}


class TestParseQuestionPayload:
    def test_requires_question_and_type(self):
        assert parse_question_payload('{"question": "Q?"}') is None
        assert parse_question_payload('{"type": "text"}') is None
        assert parse_question_payload('{"question": "  ", "type": "text"}') is None
        assert parse_question_payload('{"question": "Q?", "type": "text"}') == {
            "question": "Q?",
            "type": "text",
        }

    def test_extract_question_text_falls_back_to_raw(self):
        assert extract_question_text("  How are you?  ") == "  How are you?  "
        assert extract_question_text('{"question": " Why? ", "type": "text"}') == "Why?"


class TestResponseNormalizer:
    @pytest.mark.asyncio
    async def test_valid_json_needs_no_repair(self):
        provider = FakeProvider()
        normalizer = ResponseNormalizer(provider)
        result = await normalizer.normalize(
            '```json\n{"question": "Pick one", "type": "single_choice", "options": ["A", "B"]}\n```'
        )
        assert result.question == "Pick one"
        assert result.metadata.to_wire() == {"type": "single_choice", "options": ["A", "B"]}
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_repairs_prose_into_scale_question(self):
        provider = FakeProvider(
            '{"question": "How satisfied are you?", "type": "likert", "scaleMin": 1, "scaleMax": 7}'
        )
        normalizer = ResponseNormalizer(provider)
        result = await normalizer.normalize("On a scale of 1 to 7, how satisfied are you?")

        assert result.question == "How satisfied are you?"
        assert result.metadata.to_wire() == {"type": "scale", "scaleMin": 1, "scaleMax": 7}
        assert len(provider.calls) == 1
        assert provider.calls[0]["temperature"] == 0
        assert "On a scale of 1 to 7" in provider.prompts()[0]

    @pytest.mark.asyncio
    async def test_failed_repair_returns_raw_text_question(self):
        provider = FakeProvider("still not json")
        normalizer = ResponseNormalizer(provider)
        result = await normalizer.normalize("Tell me about your morning.")

        assert result.question == "Tell me about your morning."
        assert result.metadata.to_wire() == {"type": "text"}
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_repair_exception_is_swallowed(self):
        provider = FakeProvider(RuntimeError("boom"))
        normalizer = ResponseNormalizer(provider)
        result = await normalizer.normalize("Plain question?")
        assert result.question == "Plain question?"
        assert result.metadata.type == "text"

    @pytest.mark.asyncio
    async def test_empty_output_skips_repair(self):
        provider = FakeProvider()
        result = await ResponseNormalizer(provider).normalize("")
        assert result.question == ""
        assert provider.calls == []


class TestOversizedModelOutput:
    @pytest.mark.asyncio
    async def test_scale_bound_too_large_for_float_uses_default(self):
        provider = FakeProvider()
        raw = '{"question": "Rate it", "type": "scale", "scaleMin": 1, "scaleMax": 1' + "0" * 400 + "}"

        result = await ResponseNormalizer(provider).normalize(raw)

        assert result.question == "Rate it"
        assert result.metadata.to_wire() == {"type": "scale", "scaleMin": 1, "scaleMax": 5}
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_unparseable_integer_falls_back_to_raw_text(self):
        provider = FakeProvider("")
        raw = '{"question": "Rate it", "type": "scale", "scaleMax": ' + "9" * 5000 + "}"

        result = await ResponseNormalizer(provider).normalize(raw)

        assert result.question == raw
        assert result.metadata.to_wire() == {"type": "text"}
        assert len(provider.calls) == 1

    def test_coerce_metadata_with_huge_and_infinite_bounds(self):
        metadata = coerce_metadata({"type": "scale", "scaleMin": "-1e999", "scaleMax": 10**400})
        assert (metadata.scale_min, metadata.scale_max) == (1, 5)

    @pytest.mark.asyncio
    async def test_fallback_keeps_raw_text_verbatim(self):
        provider = FakeProvider("no json either")
        result = await ResponseNormalizer(provider).normalize("  What brought you here?\n")
        assert result.question == "  What brought you here?\n"
