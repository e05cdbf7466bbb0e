import pytest

from llm_vision.errors import ConfigurationError
from llm_vision.utils.text import format_megabytes, parse_header_pairs, parse_json_object


def test_format_megabytes():
    assert format_megabytes(20 * 1024 * 1024) == "20.00"
    assert format_megabytes(20 * 1024 * 1024, precision=0) == "20"
    assert format_megabytes(1536 * 1024, precision=1) == "1.5"


def test_parse_header_pairs():
    assert parse_header_pairs(["X-One: 1", "X-Url: http://a:b"]) == {
        "X-One": "1",
        "X-Url": "http://a:b",
    }
    with pytest.raises(ConfigurationError):
        parse_header_pairs(["no separator"])
    with pytest.raises(ConfigurationError):
        parse_header_pairs([": value"])


def test_parse_json_object():
    assert parse_json_object(None, field="p") == {}
    assert parse_json_object("  ", field="p") == {}
    assert parse_json_object('{"seed": 1}', field="p") == {"seed": 1}
    assert parse_json_object({"a": 1}, field="p") == {"a": 1}
    with pytest.raises(ConfigurationError, match="valid JSON"):
        parse_json_object("{oops", field="additional_parameters")
    with pytest.raises(ConfigurationError, match="JSON object"):
        parse_json_object("[1, 2]", field="additional_parameters")
