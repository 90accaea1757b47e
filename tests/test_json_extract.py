from services.json_extract import extract_balanced_json_object, extract_fenced_block, parse_json_object


class TestExtractBalancedJsonObject:
    def test_ignores_braces_inside_strings(self):
        text = 'Sure! {"question": "Use {curly} or }", "type": "text"} thanks'
        assert extract_balanced_json_object(text) == '{"question": "Use {curly} or }", "type": "text"}'

    def test_handles_escaped_quotes(self):
        text = 'x {"a": "say \\"hi\\" }"} y'
        assert extract_balanced_json_object(text) == '{"a": "say \\"hi\\" }"}'

    def test_nested_objects(self):
        text = 'prefix {"a": {"b": {"c": 1}}} suffix {"d": 2}'
        assert extract_balanced_json_object(text) == '{"a": {"b": {"c": 1}}}'

    def test_unclosed_object_returns_none(self):
        assert extract_balanced_json_object('{"a": 1') is None

    def test_no_object(self):
        assert extract_balanced_json_object("just words") is None
        assert extract_balanced_json_object("") is None


class TestParseJsonObject:
    def test_prefers_fenced_block(self):
        text = 'Example: {"ignored": true}\n```json\n{"question": "Q?", "type": "scale"}\n```'
        assert parse_json_object(text) == {"question": "Q?", "type": "scale"}

    def test_falls_back_to_full_text_when_fence_is_not_json(self):
        text = '```\nnot json\n```\n{"question": "Q?"}'
        assert parse_json_object(text) == {"question": "Q?"}

    def test_rejects_invalid_json(self):
        assert parse_json_object("{question: 'Q?'}") is None

    def test_only_objects_are_returned(self):
        assert parse_json_object("[1, 2, 3]") is None

    def test_empty_input(self):
        assert parse_json_object("") is None
        assert parse_json_object("   ") is None


def test_extract_fenced_block_without_language_tag():
    assert extract_fenced_block("```\n{\"a\": 1}\n```") == '{"a": 1}'
    assert extract_fenced_block("no fence") is None


def test_integer_beyond_conversion_limit_is_not_json():
    text = '{"question": "Rate it", "type": "scale", "scaleMax": ' + "9" * 5000 + "}"
    assert parse_json_object(text) is None


def test_pathological_nesting_is_not_json():
    depth = 100_000
    assert parse_json_object('{"a": ' * depth + "1" + "}" * depth) is None
