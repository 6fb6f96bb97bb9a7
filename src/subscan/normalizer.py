"""Turn raw email bodies into text suitable for pattern matching."""

from __future__ import annotations

import re
from html.parser import HTMLParser
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from subscan.models import RawEmail

_WHITESPACE = re.compile(r"\s+")
_NEWLINES = re.compile(r"\r\n|\r|\n")

# Decoded entities and full-width forms folded to what the patterns expect.
_ENTITY_FIXUPS = {
    "\u00a0": " ",
    "￥": "¥",
}

_SKIPPED_TAGS = frozenset({"style", "script"})


def html_to_text(html: str | None) -> str:
    """Strip tags from HTML, keeping tag boundaries as line breaks.

    ``<style>`` and ``<script>`` contents are dropped entirely. Character
    and entity references (``&yen;``, ``&#165;``, ``&nbsp;`` ...) are decoded.
    """
    if not html:
        return ""
    stripper = _HTMLTextExtractor()
    stripper.feed(html)
    stripper.close()
    return stripper.get_text()


def collapse_whitespace(text: str | None) -> str:
    """Collapse runs of whitespace to single spaces and trim."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text).strip()


def normalize(text: str | None = None, html: str | None = None) -> str:
    """Return one normalized text blob for a body.

    Plain text is used when present; otherwise the HTML part is converted.
    Missing bodies yield an empty string.
    """
    if text and text.strip():
        return collapse_whitespace(_fix_characters(text))
    return collapse_whitespace(html_to_text(html))


def split_lines(text: str | None) -> list[str]:
    """Split on newlines, trim each line and drop empty ones."""
    if not text:
        return []
    lines = (collapse_whitespace(line) for line in _NEWLINES.split(text))
    return [line for line in lines if line]


def body_lines(text: str | None = None, html: str | None = None) -> list[str]:
    """Line-oriented view of a body.

    HTML is preferred here because receipts keep their row structure in
    the HTML part while the plain-text part is often flattened.
    """
    if html and html.strip():
        lines = split_lines(html_to_text(html))
        if lines:
            return lines
    return split_lines(_fix_characters(text or ""))


def full_text(email: RawEmail) -> str:
    """Subject, sender and normalized body joined for classification."""
    body = normalize(email.text_body, email.html_body)
    return collapse_whitespace(f"{email.subject} {email.sender} {body}")


def _fix_characters(text: str) -> str:
    for char, replacement in _ENTITY_FIXUPS.items():
        text = text.replace(char, replacement)
    return text


class _HTMLTextExtractor(HTMLParser):
    """HTMLParser subclass that keeps text and turns tags into newlines."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._parts: list[str] = []
        self._skip_depth = 0

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in _SKIPPED_TAGS:
            self._skip_depth += 1
        self._parts.append("\n")

    def handle_endtag(self, tag: str) -> None:
        if tag in _SKIPPED_TAGS and self._skip_depth:
            self._skip_depth -= 1
        self._parts.append("\n")

    def handle_startendtag(
        self, tag: str, attrs: list[tuple[str, str | None]]
    ) -> None:
        self._parts.append("\n")

    def handle_data(self, data: str) -> None:
        if not self._skip_depth:
            self._parts.append(data)

    def get_text(self) -> str:
        return _fix_characters("".join(self._parts))
