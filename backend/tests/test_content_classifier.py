import pytest

from novelshelf.core.content_classifier import (
    ContentClassifier,
    ExclusionReason,
    ImportConfig,
)
from novelshelf.core.epub import ManifestItem

classifier = ContentClassifier()


@pytest.mark.parametrize(
    "item_id, href",
    [
        ("cover", "text/part0000.xhtml"),
        ("item1", "Text/Cover.xhtml"),
        ("titlepage", "tp.xhtml"),
        ("item2", "title_page.xhtml"),
        ("item3", "Title-Page.html"),
        ("item4", "title page.html"),
    ],
)
def test_structural_exclusion(item_id, href):
    item = ManifestItem(id=item_id, href=href)
    assert classifier.structural_exclusion(item) == ExclusionReason.COVER_OR_TITLE_PAGE


def test_structural_pass():
    assert classifier.structural_exclusion(ManifestItem(id="ch1", href="ch1.xhtml")) is None


@pytest.mark.parametrize(
    "title",
    ["Table of Contents", "CONTENTS", "TOC", "Copyright Notice", "Title Page", "Stocking"],
)
def test_front_matter_titles(title):
    body = "x" * 200
    assert classifier.content_exclusion(title, body) == ExclusionReason.FRONT_MATTER_TITLE


def test_information_must_match_exactly():
    body = "x" * 200
    assert classifier.content_exclusion("  Information ", body) == ExclusionReason.INFORMATION_PAGE
    assert classifier.content_exclusion("Information Age", body) is None


def test_length_threshold():
    assert classifier.content_exclusion("One", "x" * 59) == ExclusionReason.TOO_SHORT
    assert classifier.content_exclusion("One", "x" * 60) is None


def test_length_counts_collapsed_whitespace():
    body = "word \n\n\n   " * 11  # 54 chars once collapsed
    assert classifier.content_exclusion("One", body) == ExclusionReason.TOO_SHORT


def test_missing_title_only_checks_length():
    assert classifier.content_exclusion(None, "x" * 60) is None
    assert classifier.content_exclusion(None, "short") == ExclusionReason.TOO_SHORT


def test_custom_config():
    custom = ContentClassifier(ImportConfig(min_body_chars=5, excluded_title_keywords=("afterword",)))
    assert custom.content_exclusion("Contents", "hello world") is None
    assert custom.content_exclusion("Afterword", "hello world") == ExclusionReason.FRONT_MATTER_TITLE
