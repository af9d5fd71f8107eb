"""Data models for RAG pipeline.

This module defines Pydantic models for documents, chunks, retrieval
results and answers.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class DocumentObject(BaseModel):
    """A document as listed by the document source.

    Attributes:
        key: Object key, unique within the bucket.
        size: Size in bytes.
        last_modified: Last modification time reported by storage.
    """

    key: str
    size: int = 0
    last_modified: datetime | None = None


class ChunkMetadata(BaseModel):
    """Provenance attached to normalized units and inherited by chunks.

    Attributes:
        source: Object key of the originating document.
        last_modified: Modification time of the originating document.
        page_number: 1-based page or section number for paged formats.
    """

    source: str
    last_modified: datetime | None = None
    page_number: int | None = None


class NormalizedUnit(BaseModel):
    """Plain text extracted from a document (whole file, page or section)."""

    text: str
    metadata: ChunkMetadata


class Chunk(BaseModel):
    """Bounded text segment, the unit of embedding and retrieval.

    Attributes:
        text: Chunk text content.
        metadata: Metadata inherited unchanged from the parent unit.
        chunk_index: Position of the chunk within its parent unit.
        start_index: Character offset of the chunk in the parent unit text.
    """

    text: str
    metadata: ChunkMetadata
    chunk_index: int
    start_index: int = 0


class RetrievedChunk(BaseModel):
    """A chunk returned by similarity search.

    Attributes:
        chunk: The matched chunk.
        rank: 0-based position in the result list.
        score: Cosine similarity to the query.
    """

    chunk: Chunk
    rank: int
    score: float


class SourceReference(BaseModel):
    """A cited source shown next to an answer."""

    title: str
    excerpt: str


class AnswerRecord(BaseModel):
    """Answer with the sources the model cited.

    Attributes:
        answer: Generated answer text.
        sources: Cited chunks, in citation order.
        timestamp: When the answer was produced (UTC).
    """

    answer: str
    sources: list[SourceReference] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class IndexState(str, Enum):
    ABSENT = "absent"
    BUILDING = "building"
    READY = "ready"


class ReindexResult(BaseModel):
    success: bool
    message: str


class ServiceStatus(BaseModel):
    """Readiness of the service.

    Attributes:
        ready: True when a populated index is serving queries.
        state: Lifecycle state of the index manager.
        empty_corpus: True when the placeholder index is active.
    """

    ready: bool
    state: IndexState
    empty_corpus: bool = False
