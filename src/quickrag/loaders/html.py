"""HTML text extraction shared by the web and file loaders."""

import re
from dataclasses import dataclass, field
from typing import Optional

from bs4 import BeautifulSoup, SoupStrainer

_NOISE_TAGS = ["script", "style", "noscript", "nav", "footer", "header"]
_BLOCK_TAGS = [
    "p", "div", "section", "article", "main", "pre", "blockquote",
    "h1", "h2", "h3", "h4", "h5", "h6", "li", "tr", "table", "ul", "ol", "br",
]
_BLANK_LINES = re.compile(r"\n\s*\n+")


@dataclass
class ExtractedPage:
    """Text and page-level metadata pulled out of an HTML document."""

    text: str
    title: Optional[str] = None
    language: Optional[str] = None
    metadata: dict = field(default_factory=dict)


def _block_text(soup: BeautifulSoup) -> str:
    """Text of a parsed tree with block elements separated by blank lines."""
    for tag in soup.find_all(_BLOCK_TAGS):
        tag.insert_before("\n\n")
        tag.insert_after("\n\n")
    return soup.get_text()


def _normalize(text: str) -> str:
    lines = [line.strip() for line in text.splitlines()]
    return _BLANK_LINES.sub("\n\n", "\n".join(lines)).strip()


def extract_html(html: str, css_classes: Optional[list[str]] = None) -> ExtractedPage:
    """Extract readable text from HTML.

    With css_classes only elements carrying one of those classes are parsed,
    in document order. Without them, boilerplate tags are dropped and the text
    of <article>, <main> or <body> (first found) is used.

    Args:
        html: Raw HTML markup
        css_classes: Optional list of CSS classes to keep

    Returns:
        ExtractedPage with normalized text (blocks separated by blank lines)
    """
    full = BeautifulSoup(html, "html.parser")
    title_tag = full.find("title")
    title = title_tag.get_text(strip=True) if title_tag else None
    html_tag = full.find("html")
    language = html_tag.get("lang") if html_tag else None

    if css_classes:
        filtered = BeautifulSoup(html, "html.parser", parse_only=SoupStrainer(class_=css_classes))
        text = _block_text(filtered)
    else:
        for tag in full(_NOISE_TAGS):
            tag.decompose()
        body = full.find("article") or full.find("main") or full.find("body") or full
        text = _block_text(body)

    return ExtractedPage(text=_normalize(text), title=title or None, language=language or None)
