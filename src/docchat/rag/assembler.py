"""Context assembler: expand each hit into a window of surrounding sentences.

Pipeline:
  1. Resolve each hit to its (document, position).
  2. Fetch the document's sentences in [position - before, position + after],
     ascending. The default window (3 back, 5 forward) favours the text that
     follows a match.
  3. Join the window into one passage and collapse blank-line runs.
  4. Join passages in hit order (closest first) with a blank line. Exact
     duplicate passages are kept only once; nothing is re-ranked.

Output is a pure function of the store contents and the hit list.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from docchat.db.repository import CorpusRepository
from docchat.rag.retriever import Hit

_SENTENCE_SEPARATOR = "\n"
_PASSAGE_SEPARATOR = "\n\n"

# A line break followed by one or more blank (or whitespace-only) lines.
_BLANK_LINES_RE = re.compile(r"\n(?:[ \t]*\n)+")


@dataclass(frozen=True)
class ContextWindow:
    before: int = 3
    after: int = 5


def assemble(
    hits: list[Hit],
    repo: CorpusRepository,
    window: ContextWindow | None = None,
) -> str:
    """Build the context block for *hits*.

    Args:
        hits: Nearest-neighbour hits, closest first.
        repo: Corpus repository used to resolve hits and fetch windows.
        window: Sentences to include before / after each hit.

    Returns:
        The context block; an empty string when there are no hits.
    """
    window = window or ContextWindow()
    passages: list[str] = []
    seen: set[str] = set()
    for hit in hits:
        passage = build_passage(hit.sentence_id, repo, window)
        if not passage or passage in seen:
            continue
        seen.add(passage)
        passages.append(passage)
    return _PASSAGE_SEPARATOR.join(passages)


def build_passage(sentence_id: int, repo: CorpusRepository, window: ContextWindow) -> str:
    """Return the windowed passage around one sentence ('' if nothing resolves)."""
    sentence = repo.get_sentence(sentence_id)
    if sentence is None:
        return ""
    rows = repo.sentences_in_window(
        sentence.document_id,
        sentence.position - window.before,
        sentence.position + window.after,
    )
    passage = _SENTENCE_SEPARATOR.join(s.text for s in rows)
    return _BLANK_LINES_RE.sub("\n", passage)
