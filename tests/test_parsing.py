import pytest

from legallens.llm.parsing import extract_fenced_block, parse_structured_reply


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ('```json\n{"a": 1}\n```', '{"a": 1}'),
        ('```json{"a": 1}```', '{"a": 1}'),
        ('Here you go:\n```\n{"a": 1}\n```\nThanks', '{"a": 1}'),
        ('```javascript\n[1, 2]\n```', "[1, 2]"),
        ('```{"a": 1}``` and ```{"b": 2}```', '{"a": 1}'),
        ('Run:\n```bash\necho hi\n```\nResult:\n```json\n{"a": 1}\n```', '{"a": 1}'),
        ("```\n42\n```", "42"),
        ("```42\n```", "42"),
        ("```c++\n[3]\n```", "[3]"),
    ],
)
def test_extract_fenced_block(text, expected):
    assert extract_fenced_block(text) == expected


def test_extract_fenced_block_without_fence_returns_none():
    assert extract_fenced_block('{"a": 1}') is None
    assert extract_fenced_block("``` unterminated") is None


def test_parse_prefers_fenced_block():
    result = parse_structured_reply('Sure!\n```json\n{"risk": "low"}\n```')

    assert result.ok
    assert result.fenced
    assert result.value == {"risk": "low"}


def test_parse_bare_json():
    result = parse_structured_reply('  {"items": [1, 2, 3]}  ')

    assert result.ok
    assert not result.fenced
    assert result.value == {"items": [1, 2, 3]}


def test_decode_failure_is_reported_not_raised():
    fenced = parse_structured_reply("```json\n{not json}\n```")
    bare = parse_structured_reply("I cannot answer that.")

    assert not fenced.ok and fenced.fenced and fenced.value is None
    assert not bare.ok and not bare.fenced
    assert bare.error


def test_json_block_is_found_after_other_fences():
    reply = 'Run:\n```bash\necho hi\n```\nResult:\n```json\n{"a": 1}\n```'

    result = parse_structured_reply(reply)

    assert result.ok
    assert result.fenced
    assert result.value == {"a": 1}


def test_bare_scalar_on_first_fenced_line_is_not_a_language_tag():
    result = parse_structured_reply("```42\n```")

    assert result.ok
    assert result.value == 42
