from __future__ import annotations

import re

import pytest

from linkpreview.models.metadata.document import MetadataDocument
from linkpreview.services.preview.formatter import (
    ELLIPSIS,
    PLACEHOLDER_IMAGE,
    TITLE_RULES,
    TRUNCATE_AT,
    error_fragment,
    escape,
    extract_domain,
    format_preview,
    select,
    truncate,
)

_URL = "https://example.com/x"


def _doc(**kwargs) -> MetadataDocument:
    return MetadataDocument.model_validate(kwargs)


def _span(html: str, css_class: str) -> str:
    match = re.search(rf'<span class="{css_class}">(.*?)</span>', html)
    assert match is not None, f"no {css_class} span in {html!r}"
    return match.group(1)


def _title(html: str) -> str:
    return _span(html, "lp-title").removesuffix("<br>")


# ---------------------------------------------------------------------------
# Escaping
# ---------------------------------------------------------------------------


class TestEscape:
    def test_replaces_the_five_special_characters(self):
        assert escape("""<a href="x">'&'</a>""") == (
            "&lt;a href=&quot;x&quot;&gt;&#039;&amp;&#039;&lt;/a&gt;"
        )

    def test_none_is_empty_string(self):
        assert escape(None) == ""

    def test_title_with_script_is_escaped_in_fragment(self):
        html = format_preview(_URL, _doc(general={"title": "<script>&\"'</script>"}))
        title = _title(html)
        assert title == "&lt;script&gt;&amp;&quot;&#039;&lt;/script&gt;"
        assert not set("<>\"'") & set(title)
        assert re.search(r"&(?!amp;|lt;|gt;|quot;|#039;)", title) is None

    def test_url_and_domain_are_escaped(self):
        html = format_preview('https://ex"ample.com/<x>', _doc())
        assert 'href="https://ex&quot;ample.com/&lt;x&gt;"' in html
        assert _span(html, "lp-url") == "ex&quot;ample.com"


# ---------------------------------------------------------------------------
# Truncation
# ---------------------------------------------------------------------------


class TestTruncate:
    def test_short_text_is_untouched(self):
        text = "t" * 50
        assert truncate(text) == text

    def test_text_at_limit_is_untouched(self):
        text = "t" * TRUNCATE_AT
        assert truncate(text) == text

    def test_cuts_at_last_whitespace_before_limit(self):
        text = ("word " * 60).strip()  # 299 characters
        result = truncate(text)
        assert result.endswith(ELLIPSIS)
        assert len(result) <= TRUNCATE_AT + 1
        assert result[:-1] == text[: len(result) - 1]
        assert text[len(result) - 1].isspace()

    def test_whitespace_exactly_at_limit(self):
        text = "a" * TRUNCATE_AT + " " + "b" * 50
        assert truncate(text) == "a" * TRUNCATE_AT + ELLIPSIS

    def test_hard_cut_without_whitespace(self):
        result = truncate("a" * 300)
        assert result == "a" * TRUNCATE_AT + ELLIPSIS
        assert len(result) == TRUNCATE_AT + 1

    def test_hard_cut_does_not_split_entities(self):
        escaped = escape("x" + "&" * 100)
        result = truncate(escaped)
        assert result == "x" + "&amp;" * 35 + ELLIPSIS

    def test_limit_counts_escaped_characters(self):
        # 40 ampersands are only 40 visible characters but 200 escaped ones.
        html = format_preview(_URL, _doc(general={"title": "&" * 40}))
        assert _title(html).endswith(ELLIPSIS)

    def test_long_title_in_fragment(self):
        html = format_preview(_URL, _doc(general={"title": "a" * 300}))
        title = _title(html)
        assert len(title) <= TRUNCATE_AT + 1
        assert title.endswith(ELLIPSIS)

    def test_fifty_character_title_in_fragment(self):
        html = format_preview(_URL, _doc(general={"title": "t" * 50}))
        assert _title(html) == "t" * 50


# ---------------------------------------------------------------------------
# Field selection
# ---------------------------------------------------------------------------


class TestFieldSelection:
    def test_open_graph_title_wins(self):
        doc = _doc(general={"title": "General"}, openGraph={"title": "OG"})
        assert _title(format_preview(_URL, doc)) == "OG"

    def test_general_title_fallback(self):
        doc = _doc(general={"title": "General"}, openGraph={"title": ""})
        assert _title(format_preview(_URL, doc)) == "General"

    def test_description_priority_and_trim(self):
        doc = _doc(
            general={"description": "  general  "},
            openGraph={"description": "  og desc \n"},
        )
        assert _span(format_preview(_URL, doc), "lp-desc") == "og desc"
        doc = _doc(general={"description": "  general  "})
        assert _span(format_preview(_URL, doc), "lp-desc") == "general"

    def test_author_from_structured_data(self):
        doc = _doc(structuredData={"author": {"name": "Jane <Doe>"}})
        html = format_preview(_URL, doc)
        assert '<span class="lp-author">Jane &lt;Doe&gt;</span> - ' in html

    def test_first_of_several_authors(self):
        doc = _doc(jsonLd={"author": [{"name": "First"}, {"name": "Second"}]})
        assert _span(format_preview(_URL, doc), "lp-author") == "First"

    def test_no_author_no_byline(self):
        assert "lp-author" not in format_preview(_URL, _doc())

    @pytest.mark.parametrize(
        "image",
        [
            {"url": "https://img.example/a.png"},
            [{"url": "https://img.example/a.png"}, {"url": "https://img.example/b.png"}],
        ],
    )
    def test_first_image_is_lazy_loaded(self, image):
        doc = _doc(openGraph={"title": "T", "image": image})
        html = format_preview(_URL, doc)
        assert (
            f'<img src="{PLACEHOLDER_IMAGE}" data-src="https://img.example/a.png" alt="T">'
            in html
        )
        assert "b.png" not in html

    def test_empty_image_list(self):
        doc = _doc(openGraph={"image": []})
        assert "<img" not in format_preview(_URL, doc)

    def test_select_walks_rules_in_order(self):
        doc = _doc(general={"title": "G"})
        assert select(doc, TITLE_RULES) == "G"
        assert select(_doc(), TITLE_RULES) is None


# ---------------------------------------------------------------------------
# Fragment
# ---------------------------------------------------------------------------


class TestFormatPreview:
    def test_empty_document(self):
        html = format_preview(_URL, MetadataDocument())
        assert html.startswith('<div class="lp"><a class="lp-img" href="https://example.com/x"')
        assert html.endswith("</a></div>")
        assert _span(html, "lp-url") == "example.com"
        assert _title(html) == ""
        assert _span(html, "lp-desc") == ""
        assert "<img" not in html
        assert "None" not in html
        assert "<svg" in html

    def test_newlines_become_spaces(self):
        doc = _doc(general={"title": "Hello\r\nWorld", "description": "a\nb"})
        html = format_preview(_URL, doc)
        assert "\n" not in html and "\r" not in html
        assert _title(html) == "Hello World"
        assert _span(html, "lp-desc") == "a b"

    def test_is_deterministic(self):
        doc = _doc(general={"title": "Hello World", "description": "A page."})
        assert format_preview(_URL, doc) == format_preview(_URL, doc)


class TestExtractDomain:
    @pytest.mark.parametrize(
        ("url", "domain"),
        [
            ("https://example.com/a/b", "example.com"),
            ("http://example.com", "example.com"),
            ("HTTPS://Example.com:8080/x", "Example.com:8080"),
            ("ftp://example.com/x", "ftp://example.com/x"),
            ("not a url", "not a url"),
        ],
    )
    def test_extract_domain(self, url, domain):
        assert extract_domain(url) == domain


def test_error_fragment():
    html = error_fragment("Did not receive <metadata>")
    assert html == (
        '<div style="color:#ff0000; font-weight:bold">'
        "ERROR: Did not receive &lt;metadata&gt;</div>"
    )
