"""HTML -> MetadataDocument.

Reads three families of metadata from a page:

- general: ``<title>``, ``meta[name=description]``, ``link[rel=canonical]``
  and ``<html lang>``;
- Open Graph: every ``og:*`` meta property.  Each ``og:image`` starts a new
  image and the ``og:image:*`` properties that follow annotate it;
- structured data: the first JSON-LD object that names an author (falling
  back to the first one with a ``@type``).
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterator, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from linkpreview.models.metadata.document import (
    GeneralMetadata,
    MetadataDocument,
    OpenGraphMetadata,
    StructuredData,
)

logger = logging.getLogger(__name__)

_IMAGE_PROPERTIES = {"secure_url", "type", "width", "height", "alt"}


def extract_metadata(html: str, base_url: str) -> MetadataDocument:
    """Parse *html* (served from *base_url*) into a ``MetadataDocument``."""
    soup = BeautifulSoup(html, "html.parser")
    return MetadataDocument(
        general=_general(soup, base_url),
        open_graph=_open_graph(soup, base_url),
        structured_data=_structured_data(soup),
    )


# ---------------------------------------------------------------------------
# General
# ---------------------------------------------------------------------------


def _general(soup: BeautifulSoup, base_url: str) -> GeneralMetadata:
    title = soup.title.get_text().strip() if soup.title else None

    description = None
    for meta in soup.find_all("meta", attrs={"name": True, "content": True}):
        if meta["name"].strip().lower() == "description":
            description = meta["content"].strip()
            break

    canonical = None
    link = soup.find("link", rel="canonical", href=True)
    if isinstance(link, Tag):
        canonical = urljoin(base_url, link["href"].strip())

    lang = soup.html.get("lang") if soup.html else None

    return GeneralMetadata(
        title=title or None,
        description=description or None,
        canonical=canonical,
        lang=lang or None,
    )


# ---------------------------------------------------------------------------
# Open Graph
# ---------------------------------------------------------------------------


def _open_graph(soup: BeautifulSoup, base_url: str) -> Optional[OpenGraphMetadata]:
    fields: dict[str, Any] = {}
    images: list[dict[str, str]] = []

    for meta in soup.find_all("meta", attrs={"content": True}):
        prop = (meta.get("property") or meta.get("name") or "").strip().lower()
        if not prop.startswith("og:"):
            continue
        content = meta["content"].strip()
        name = prop[3:]

        if name in ("image", "image:url"):
            if name == "image:url" and images and "url" not in images[-1]:
                images[-1]["url"] = urljoin(base_url, content)
            else:
                images.append({"url": urljoin(base_url, content)})
        elif name.startswith("image:"):
            attr = name[len("image:"):]
            if attr not in _IMAGE_PROPERTIES:
                continue
            if not images:
                images.append({})
            if attr == "secure_url":
                content = urljoin(base_url, content)
            images[-1].setdefault(attr, content)
        elif ":" not in name:
            fields.setdefault(name, content)

    images = [image for image in images if image.get("url")]
    if images:
        fields["image"] = images
    if not fields:
        return None
    return OpenGraphMetadata.model_validate(fields)


# ---------------------------------------------------------------------------
# Structured data (JSON-LD)
# ---------------------------------------------------------------------------


def _structured_data(soup: BeautifulSoup) -> Optional[StructuredData]:
    typed: Optional[dict[str, Any]] = None
    for node in _json_ld_nodes(soup):
        if node.get("author"):
            return _reduce(node)
        if typed is None and node.get("@type"):
            typed = node
    return _reduce(typed) if typed is not None else None


def _json_ld_nodes(soup: BeautifulSoup) -> Iterator[dict[str, Any]]:
    for script in soup.find_all("script", type="application/ld+json"):
        try:
            data = json.loads(script.get_text())
        except ValueError:
            logger.debug("Skipping malformed JSON-LD block")
            continue
        yield from _flatten(data)


def _flatten(data: Any) -> Iterator[dict[str, Any]]:
    if isinstance(data, list):
        for item in data:
            yield from _flatten(item)
    elif isinstance(data, dict):
        yield data
        graph = data.get("@graph")
        if isinstance(graph, list):
            yield from _flatten(graph)


def _reduce(node: dict[str, Any]) -> StructuredData:
    return StructuredData.model_validate(
        {
            "@type": _text(node.get("@type")),
            "headline": _text(node.get("headline")),
            "author": _author(node.get("author")),
        }
    )


def _author(value: Any) -> Any:
    if isinstance(value, list):
        authors = [_author(item) for item in value]
        return [author for author in authors if author is not None] or None
    if isinstance(value, dict):
        return {"name": _text(value.get("name"))}
    return _text(value)


def _text(value: Any) -> Optional[str]:
    if isinstance(value, list):
        value = next((item for item in value if isinstance(item, str)), None)
    return value.strip() if isinstance(value, str) and value.strip() else None
