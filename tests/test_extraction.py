import pytest

from credential_monitor.probes.extraction import extract_response_text, find_response_text


@pytest.mark.parametrize(
    "body, expected",
    [
        ({"output_text": "hello"}, "hello"),
        ({"output_text": ["", "  hello  "]}, "hello"),
        ({"output": [{"text": "hello"}]}, "hello"),
        ({"output": [{"content": [{"type": "output_text", "text": "hello"}]}]}, "hello"),
        ({"output": [{"content": ["hello"]}]}, "hello"),
        ({"content": [{"type": "text", "text": "hello"}]}, "hello"),
        ({"content": ["hello"]}, "hello"),
        ({"choices": [{"message": {"content": "hello"}}]}, "hello"),
        ({"choices": [{"message": {"content": [{"text": "hello"}]}}]}, "hello"),
        ({"choices": [{"output_text": ["hello"]}]}, "hello"),
        ({"text": "hello"}, "hello"),
    ],
)
def test_recognized_shapes(body, expected):
    assert extract_response_text(body) == expected


def test_first_matcher_wins():
    body = {
        "text": "from text",
        "content": [{"type": "text", "text": "from content"}],
        "output_text": "from output_text",
    }
    assert find_response_text(body) == ("output_text", "from output_text")

    del body["output_text"]
    assert find_response_text(body) == ("content", "from content")


def test_empty_fragments_are_skipped():
    body = {
        "content": [{"type": "tool_use", "id": "x"}, {"type": "text", "text": "   "}],
        "text": "fallback",
    }
    assert find_response_text(body) == ("text", "fallback")


@pytest.mark.parametrize(
    "body",
    [
        {},
        {"content": []},
        {"choices": [{"message": {"content": None}}]},
        {"output": "not a list"},
        "plain string",
        None,
        ["hello"],
    ],
)
def test_no_text(body):
    assert extract_response_text(body) == ""
    assert find_response_text(body) is None
