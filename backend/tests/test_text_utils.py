import pytest

from novelshelf.utils.text import (
    collapse_blank_lines,
    collapse_whitespace,
    decode_entities,
    safe_truncate,
    strip_tags,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Tom&nbsp;&amp;&nbsp;Jerry", "Tom & Jerry"),
        ("&lt;b&gt;", "<b>"),
        ("&quot;hi&quot; &#39;there&#39;", "\"hi\" 'there'"),
        ("&#160;&#xA0;&apos;", "  '"),
        ("&copy; 2020", "&copy; 2020"),
    ],
)
def test_decode_entities(raw, expected):
    assert decode_entities(raw) == expected


def test_decode_entities_is_single_pass():
    assert decode_entities("&amp;lt;") == "&lt;"


def test_strip_tags_keeps_inner_text():
    assert strip_tags('<p class="x">One <em>two</em></p>') == "One two"


def test_collapse_helpers():
    assert collapse_whitespace("  a \n\t b  ") == "a b"
    assert collapse_blank_lines("a\n\n\n\n\nb\n\nc") == "a\n\nb\n\nc"


class TestSafeTruncate:
    def test_short_text_unchanged(self):
        assert safe_truncate("short", 10) == "short"

    def test_none_passes_through(self):
        assert safe_truncate(None, 10) is None

    def test_result_fits_limit(self):
        text = "word " * 200
        result = safe_truncate(text, 50)
        assert len(result) <= 50
        assert result.endswith("...")
