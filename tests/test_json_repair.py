import pytest

from errors import NutritionParseError
from json_repair import clean_json_text, extract_text_from_response, parse_json_object, strip_reasoning


def test_parses_plain_json():
    assert parse_json_object('{"title": "Salad", "totalCalories": 250}') == {"title": "Salad", "totalCalories": 250}


def test_dict_passes_through():
    data = {"title": "Soup"}
    assert parse_json_object(data) is data


def test_strips_think_block_and_fences():
    text = '<think>counting rice grains</think>\n```json\n{"title": "Rice"}\n```'
    assert parse_json_object(text) == {"title": "Rice"}


def test_valid_strings_are_not_touched():
    text = '{"title": "Rice, note: spicy", "notes": ["a: b"]}'
    assert parse_json_object(text) == {"title": "Rice, note: spicy", "notes": ["a: b"]}


def test_repairs_trailing_comma_and_unquoted_keys():
    assert parse_json_object('{title: "Salad", totalCalories: 250,}') == {"title": "Salad", "totalCalories": 250}


def test_quotes_bare_word_values_but_not_literals():
    result = parse_json_object('{"title": Salad, "confidence": 80, "vegan": true, "extra": null,}')
    assert result == {"title": "Salad", "confidence": 80, "vegan": True, "extra": None}


def test_rounds_decimals_while_repairing():
    assert parse_json_object('{"grams": 12.5, "fat": 3.4,}') == {"grams": 13, "fat": 3}


def test_clean_truncates_runaway_decimals():
    text = '{"grams": 1.' + "3" * 60 + "}"
    assert clean_json_text(text) == '{"grams": 1}'


def test_anchor_picks_the_right_object():
    text = 'Notes {"a": 1} and the result {"title": "X", "totalCalories": 100}'
    assert parse_json_object(text, anchor="title") == {"title": "X", "totalCalories": 100}


def test_empty_response():
    with pytest.raises(NutritionParseError):
        parse_json_object("   ")


def test_no_json():
    with pytest.raises(NutritionParseError, match="No JSON found"):
        parse_json_object("I could not see any food in this photo.")


def test_invalid_beyond_repair():
    with pytest.raises(NutritionParseError, match="invalid JSON format") as exc:
        parse_json_object('{"title": "x", "items": [}')
    assert exc.value.raw == '{"title": "x", "items": [}'


def test_strip_reasoning_keeps_body():
    assert strip_reasoning("<THINK>x</THINK> ```{}```") == "{}"


@pytest.mark.parametrize("data,expected", [
    ({"choices": [{"message": {"content": "hello"}}]}, "hello"),
    ({"choices": [{"message": {"content": [{"type": "text", "text": "a"}, {"type": "text", "text": "b"}]}}]}, "a b"),
    ({"output_text": "plain"}, "plain"),
    ({"output_text": ["one", "two"]}, "one\ntwo"),
    ({"output": [{"content": [{"text": "from output"}]}]}, "from output"),
    ({"response": {"output": [{"content": "nested"}]}}, "nested"),
    ({"candidates": [{"content": {"parts": [{"text": "{\"a\""}, {"text": ": 1}"}]}}]}, '{"a": 1}'),
    ([{"text": "x"}, "y"], "x y"),
    ("  raw  ", "raw"),
])
def test_extract_text_shapes(data, expected):
    assert extract_text_from_response(data) == expected


def test_extract_text_nothing_usable():
    assert extract_text_from_response({"choices": [{"message": {"content": ""}}]}) is None
    assert extract_text_from_response(None) is None


def test_fractional_confidence_survives_repair():
    from nutrition import normalize_summary
    text = '{"title": "Salad", "confidence": 0.85, "totalCalories": 300, "macros": {},}'
    repaired = parse_json_object(text)
    assert repaired["confidence"] == 0.85
    assert normalize_summary(repaired)["confidence"] == 85
    assert normalize_summary(parse_json_object('{"confidence": 0.4, "grams": 12.5,}'))["confidence"] == 40


def test_clean_leaves_values_below_one_alone():
    assert clean_json_text('{"confidence": 0.85, "fat": 3.4}') == '{"confidence": 0.85, "fat": 3}'
