"""Render a ``MetadataDocument`` as a link-preview HTML fragment.

Pure functions only: no I/O, and every field of the document may be
missing.  Text fields are escaped first, then trimmed, then truncated, so
the length limit counts characters of the escaped text.
"""

from __future__ import annotations

import re
from typing import Any, Optional

from linkpreview.models.metadata.document import MetadataDocument

TRUNCATE_AT = 180
ELLIPSIS = "…"

# Ordered extraction rules: the first attribute path yielding a non-empty
# value wins.
TITLE_RULES = ("open_graph.title", "general.title")
DESCRIPTION_RULES = ("open_graph.description", "general.description")
AUTHOR_RULES = ("structured_data.author.name",)
IMAGE_RULES = ("open_graph.image.url",)

# 1x1 transparent GIF used as the eager ``src`` until the lazy loader swaps in
# ``data-src``.
PLACEHOLDER_IMAGE = "data:image/png;base64,R0lGODlhAQABAAD/ACwAAAAAAQABAAACADs="

ICON_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 67.733 67.733">'
    '<path fill="#424242" d="M0 0h67.733v67.733H0z"/>'
    '<path fill="#fff" d="M33.867 13.547a20.32 20.32 0 00-20.32 20.32 20.32 20.32 0 '
    "0020.32 20.32 20.32 20.32 0 0020.32-20.32H50.8A16.933 16.933 0 0133.867 50.8a16.933 "
    '16.933 0 01-16.934-16.933 16.933 16.933 0 0116.934-16.934z"/>'
    '<path fill="#fff" d="M26.383 36.361l4.99 4.99 19.955-19.957 4.99 4.99V11.415H41.35l4.99 '
    '4.99L26.382 36.36"/></svg>'
)

_ESCAPES = str.maketrans(
    {
        "&": "&amp;",
        "<": "&lt;",
        ">": "&gt;",
        '"': "&quot;",
        "'": "&#039;",
    }
)

_DOMAIN = re.compile(r"^https?://([^/]+)", re.IGNORECASE)
_WORD_BOUNDARY = re.compile(r"(.{0,%d})\s" % TRUNCATE_AT, re.DOTALL)
_PARTIAL_ENTITY = re.compile(r"&[#\w]*$")
_NEWLINES = re.compile(r"[\r\n]+")


def escape(text: Optional[str]) -> str:
    """Replace ``& < > " '`` with HTML entities.  ``None`` becomes ``""``."""
    if text is None:
        return ""
    return text.translate(_ESCAPES)


def truncate(text: str) -> str:
    """Shorten *text* to at most ``TRUNCATE_AT`` characters plus an ellipsis.

    Cuts at the last whitespace at or before the limit.  Text with no such
    whitespace is cut hard at the limit, backing off to the start of any
    entity reference the cut would split.
    """
    if len(text) <= TRUNCATE_AT:
        return text
    match = _WORD_BOUNDARY.match(text)
    if match:
        head = match.group(1)
    else:
        head = _PARTIAL_ENTITY.sub("", text[:TRUNCATE_AT])
    return head + ELLIPSIS


def extract_domain(url: str) -> str:
    """``scheme://host/rest`` -> ``host``; anything else is returned as-is."""
    match = _DOMAIN.match(url)
    return match.group(1) if match else url


def select(document: MetadataDocument, rules: tuple[str, ...]) -> Any:
    """Return the first non-empty value reached by one of *rules*.

    A rule is a dotted attribute path.  A list met along the way stands for
    its first element, so ``open_graph.image.url`` works for one image or
    several.
    """
    for rule in rules:
        value = _lookup(document, rule)
        if value:
            return value
    return None


def _lookup(obj: Any, path: str) -> Any:
    for name in path.split("."):
        if isinstance(obj, list):
            obj = obj[0] if obj else None
        if obj is None:
            return None
        obj = getattr(obj, name, None)
    return obj


def format_preview(url: str, document: MetadataDocument) -> str:
    """Build the preview fragment for *url* from *document*."""
    link = escape(url)
    domain = escape(extract_domain(url))
    title = truncate(escape(select(document, TITLE_RULES)).strip())
    description = truncate(escape(select(document, DESCRIPTION_RULES)).strip())
    author = escape(select(document, AUTHOR_RULES))
    image = escape(select(document, IMAGE_RULES))

    img = (
        f'<img src="{PLACEHOLDER_IMAGE}" data-src="{image}" alt="{title}">'
        if image
        else ""
    )
    byline = f'<span class="lp-author">{author}</span> - ' if author else ""
    fragment = (
        f'<div class="lp"><a class="lp-img" href="{link}" target="_blank">'
        f"{ICON_SVG}{img}</a>"
        f'<a class="lp-meta" href="{link}" target="_blank">'
        f'<span class="lp-title">{title}<br></span>'
        f'<span class="lp-desc">{description}</span>'
        f'<div class="mt-1 text-sm">{byline}<span class="lp-url">{domain}</span></div>'
        f"</a></div>"
    )
    return _NEWLINES.sub(" ", fragment)


def error_fragment(message: str) -> str:
    """The inline fragment shown in place of a preview that failed."""
    return (
        '<div style="color:#ff0000; font-weight:bold">'
        f"ERROR: {escape(message)}</div>"
    )
