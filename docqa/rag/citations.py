"""Citation extraction from generated answers.

The model is asked to end its answer with ``[Document 1, Document 3]``.
Parsing is best effort: malformed or missing citations produce an empty
result, never an error.
"""

import re
from typing import List, NamedTuple

from docqa.models import RetrievedChunk, SourceReference

# Accepts "[Document 1, Document 3]" and the short form "[Document 1, 3]"
CITATION_PATTERN = re.compile(
    r"\[\s*Document\s+(\d+(?:\s*,\s*(?:Document\s+)?\d+)*)\s*\]",
    re.IGNORECASE,
)
EXCERPT_LENGTH = 150


class CitationParse(NamedTuple):
    found: bool
    numbers: List[int]


def parse_citations(answer_text: str) -> CitationParse:
    """Find the first citation group and return its 1-based document numbers."""
    match = CITATION_PATTERN.search(answer_text or "")
    if match is None:
        return CitationParse(found=False, numbers=[])
    return CitationParse(found=True, numbers=[int(n) for n in re.findall(r"\d+", match.group(1))])


def excerpt(text: str, length: int = EXCERPT_LENGTH) -> str:
    return text[:length] + "..."


def cited_sources(answer_text: str, retrieved: List[RetrievedChunk]) -> List[SourceReference]:
    """Map citations in the answer to the retrieved chunks they refer to.

    Numbers outside the retrieved range are ignored. Repeated citations are
    kept once, in the order first cited.
    """
    parsed = parse_citations(answer_text)
    sources: List[SourceReference] = []
    seen = set()
    for number in parsed.numbers:
        idx = number - 1
        if idx < 0 or idx >= len(retrieved) or idx in seen:
            continue
        seen.add(idx)
        chunk = retrieved[idx].chunk
        sources.append(SourceReference(title=chunk.metadata.source, excerpt=excerpt(chunk.text)))
    return sources
