"""Markdown → sentences: strip formatting, one sentence per entry.

Strategy:
- Drop YAML front matter.
- Fenced code blocks are kept whole as a single sentence (fence lines removed).
- Headings, list items and block quotes each start a new paragraph.
- Inline formatting is removed: emphasis, inline code ticks, HTML tags;
  links and images keep only their text.
- Paragraphs are split on sentence-ending punctuation followed by whitespace
  and an upper-case letter, digit, quote or bracket.
"""

from __future__ import annotations

import re

_FRONT_MATTER_RE = re.compile(r"\A---\s*\n.*?\n---\s*(?:\n|\Z)", re.DOTALL)
_FENCE_RE = re.compile(
    r"^(?P<fence>```|~~~)[^\n]*\n(?P<body>.*?)^(?P=fence)[ \t]*$", re.MULTILINE | re.DOTALL
)
_BLANK_LINE_RE = re.compile(r"\n(?:[ \t]*\n)+")

_HEADING_RE = re.compile(r"^#{1,6}\s+")
_BLOCK_START_RE = re.compile(r"^(?:[-*+]\s+|\d+[.)]\s+|>\s?)")
_RULE_RE = re.compile(r"^\s*(?:[-*_]\s*){3,}$")
_TABLE_RULE_RE = re.compile(r"^\s*\|?\s*:?-{3,}:?\s*(?:\|\s*:?-{3,}:?\s*)*\|?\s*$")

_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\([^)]*\)")
_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]*\)")
_STRONG_RE = re.compile(r"(\*\*|__)(.+?)\1")
_EM_RE = re.compile(r"(?<![\w*])\*(?!\s)(.+?)(?<!\s)\*(?![\w*])")
_CODE_RE = re.compile(r"`([^`]+)`")
_HTML_RE = re.compile(r"<[^>\n]+>")

_SENTENCE_END_RE = re.compile(r"(?<=[.!?])\s+(?=[A-Z0-9\"'(\[])")


class SentenceSplitter:
    """Split a markdown document into plain-text sentences."""

    def split(self, content: str) -> list[str]:
        if not content.strip():
            return []

        content = _FRONT_MATTER_RE.sub("", content.replace("\r\n", "\n"))

        sentences: list[str] = []
        pos = 0
        for match in _FENCE_RE.finditer(content):
            sentences.extend(self._split_prose(content[pos : match.start()]))
            # Blank lines are dropped so a stored split round-trips on "\n\n".
            code = _BLANK_LINE_RE.sub("\n", match.group("body")).strip("\n")
            if code.strip():
                sentences.append(code)
            pos = match.end()
        sentences.extend(self._split_prose(content[pos:]))
        return sentences

    def _split_prose(self, text: str) -> list[str]:
        sentences: list[str] = []
        for paragraph in _paragraphs(text):
            cleaned = _strip_inline(paragraph)
            sentences.extend(
                s.strip() for s in _SENTENCE_END_RE.split(cleaned) if s.strip()
            )
        return sentences


def _paragraphs(text: str) -> list[str]:
    """Group lines into paragraphs; block-level markers start a new one."""
    paragraphs: list[str] = []
    current: list[str] = []

    def flush() -> None:
        if current:
            paragraphs.append(" ".join(current))
            current.clear()

    for raw in text.split("\n"):
        line = raw.strip()
        if not line or _RULE_RE.match(line) or _TABLE_RULE_RE.match(line):
            flush()
            continue
        if _HEADING_RE.match(line):
            flush()
            current.append(_HEADING_RE.sub("", line, count=1).strip())
            flush()
            continue
        if _BLOCK_START_RE.match(line):
            flush()
            line = _BLOCK_START_RE.sub("", line, count=1).strip()
        if line.startswith("|") and line.endswith("|"):
            flush()
            line = " ".join(cell.strip() for cell in line.strip("|").split("|") if cell.strip())
        current.append(line)
    flush()
    return paragraphs


def _strip_inline(text: str) -> str:
    text = _IMAGE_RE.sub(r"\1", text)
    text = _LINK_RE.sub(r"\1", text)
    text = _HTML_RE.sub("", text)
    text = _STRONG_RE.sub(r"\2", text)
    text = _EM_RE.sub(r"\1", text)
    text = _CODE_RE.sub(r"\1", text)
    return re.sub(r"\s{2,}", " ", text).strip()
