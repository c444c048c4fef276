"""HTML → content tree, via BeautifulSoup.

Tags become :class:`Element` (class list, inline style and ``data-*``
attributes kept), strings become :class:`TextNode`.  Comments, doctypes and
whitespace-only strings are dropped.  Non-rendering tags such as
``<script>`` are kept in the tree; the extractor and layout skip them.
"""

from __future__ import annotations
from pathlib import Path

from bs4 import BeautifulSoup
from bs4.element import Comment, Doctype, NavigableString, Tag

from .content import Document, Element

_DROPPED_STRINGS = (Comment, Doctype)


def parse_style(value: str) -> dict[str, str]:
    """``"display: none; color:red"`` → ``{"display": "none", "color": "red"}``."""
    style: dict[str, str] = {}
    for decl in value.split(";"):
        name, sep, val = decl.partition(":")
        if sep and name.strip():
            style[name.strip().lower()] = val.strip()
    return style


def _convert(tag: Tag, element: Element) -> None:
    for child in tag.children:
        if isinstance(child, Tag):
            attrs = dict(child.attrs)
            classes = attrs.pop("class", [])
            if isinstance(classes, str):
                classes = classes.split()
            style = parse_style(attrs.pop("style", "") or "")
            dataset = {k[5:]: str(v) for k, v in attrs.items() if k.startswith("data-")}
            plain = {k: str(v) for k, v in attrs.items() if not k.startswith("data-")}
            sub = Element(child.name, classes=classes, style=style, dataset=dataset, attrs=plain)
            element.append(sub)
            _convert(child, sub)
        elif isinstance(child, NavigableString) and not isinstance(child, _DROPPED_STRINGS):
            text = str(child)
            if text.strip():
                element.append_text(text)


def load_html(markup: str) -> Document:
    """Build a Document from HTML markup (the ``<body>`` if present, else everything)."""
    soup = BeautifulSoup(markup, "html.parser")
    document = Document()
    root = soup.body or soup
    _convert(root, document.body)
    document.version = 0
    return document


def load_html_file(path: str | Path) -> Document:
    raw = Path(path).read_text(encoding="utf-8", errors="replace")
    return load_html(raw)
