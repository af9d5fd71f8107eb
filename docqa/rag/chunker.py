"""Text chunking utilities.

This module provides functions for splitting normalized units into
overlapping chunks.
"""

import logging
from typing import List

from langchain_text_splitters import RecursiveCharacterTextSplitter

from docqa.errors import ConfigurationError
from docqa.models import Chunk, NormalizedUnit

logger = logging.getLogger(__name__)

SEPARATORS = ["\n\n", "\n", ". ", " ", ""]


def make_splitter(chunk_size: int, chunk_overlap: int) -> RecursiveCharacterTextSplitter:
    """Create the splitter used for all units.

    Separators are kept at the end of the preceding piece and whitespace is
    not stripped, so every character of the input lands in some chunk.

    Raises:
        ConfigurationError: If the overlap is not smaller than the chunk size.
    """
    if chunk_size <= 0 or chunk_overlap < 0:
        raise ConfigurationError(
            f"Invalid chunking parameters: size={chunk_size}, overlap={chunk_overlap}"
        )
    if chunk_overlap >= chunk_size:
        raise ConfigurationError(
            f"Chunk overlap ({chunk_overlap}) must be smaller than chunk size ({chunk_size})"
        )
    return RecursiveCharacterTextSplitter(
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        length_function=len,
        separators=SEPARATORS,
        keep_separator="end",
        strip_whitespace=False,
    )


def _locate(text: str, pieces: List[str], chunk_overlap: int) -> List[int]:
    # A chunk starts at most chunk_overlap characters before the previous one
    # ends and never after it; offsets only move forward.
    offsets: List[int] = []
    prev_end = 0
    for piece in pieces:
        lo = max(0, prev_end - chunk_overlap)
        found = text.find(piece, lo, prev_end + len(piece))
        if found < 0:
            found = text.find(piece, lo)
        if found < 0:
            found = lo
        offsets.append(found)
        prev_end = found + len(piece)
    return offsets


def chunk_units(
    units: List[NormalizedUnit], chunk_size: int, chunk_overlap: int
) -> List[Chunk]:
    """Split normalized units into chunks.

    Chunks never span two units. Each chunk keeps its unit's metadata and
    gets a ``chunk_index`` counted from 0 within that unit.

    Args:
        units: Units to split.
        chunk_size: Maximum chunk length in characters.
        chunk_overlap: Characters shared by consecutive chunks of a unit.

    Returns:
        Flat list of chunks, unit by unit.
    """
    splitter = make_splitter(chunk_size, chunk_overlap)
    chunks: List[Chunk] = []
    for unit in units:
        pieces = [p for p in splitter.split_text(unit.text) if p]
        offsets = _locate(unit.text, pieces, chunk_overlap)
        for idx, (piece, start) in enumerate(zip(pieces, offsets)):
            chunks.append(
                Chunk(
                    text=piece,
                    metadata=unit.metadata.model_copy(),
                    chunk_index=idx,
                    start_index=start,
                )
            )
    logger.info(f"Split {len(units)} unit(s) into {len(chunks)} chunk(s)")
    return chunks
