import json
import logging
import os
import shutil
from datetime import datetime, timezone
from typing import List

import faiss
import numpy as np
from pydantic import ValidationError

from docqa.errors import IndexLoadError
from docqa.models import Chunk, RetrievedChunk

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1
INDEX_FILE = "index.faiss"
META_FILE = "meta.json"


class FaissStore:
    """Immutable FAISS index over chunk embeddings.

    Vectors are L2-normalized and searched by inner product, so scores are
    cosine similarities. A store is built once from chunks and embeddings,
    then only searched, saved or loaded.
    """

    def __init__(
        self,
        index,
        chunks: List[Chunk],
        embed_model: str,
        placeholder: bool = False,
        built_at: str | None = None,
    ):
        self.index = index
        self.chunks = chunks
        self.embed_model = embed_model
        self.placeholder = placeholder
        self.built_at = built_at or datetime.now(timezone.utc).isoformat()

    @staticmethod
    def _normalize(vecs: np.ndarray) -> np.ndarray:
        norms = np.linalg.norm(vecs, axis=1, keepdims=True) + 1e-12
        return vecs / norms

    @classmethod
    def from_embeddings(
        cls,
        chunks: List[Chunk],
        embeddings: List[List[float]],
        embed_model: str,
        placeholder: bool = False,
    ) -> "FaissStore":
        if not chunks or len(chunks) != len(embeddings):
            raise ValueError(
                f"Need one embedding per chunk (chunks={len(chunks)}, embeddings={len(embeddings)})"
            )
        vectors = cls._normalize(np.array(embeddings, dtype=np.float32))
        # Inner product search on normalized vectors = cosine similarity
        index = faiss.IndexFlatIP(vectors.shape[1])
        index.add(vectors)
        return cls(index, list(chunks), embed_model, placeholder=placeholder)

    @property
    def dim(self) -> int:
        return self.index.d

    def __len__(self) -> int:
        return self.index.ntotal

    def search(self, query_embedding: List[float], top_k: int = 5) -> List[RetrievedChunk]:
        if self.placeholder or self.index.ntotal == 0 or top_k < 1:
            return []
        q = np.array([query_embedding], dtype=np.float32)
        if q.shape[1] != self.index.d:
            raise ValueError(
                f"Query embedding dimension {q.shape[1]} does not match index dimension {self.index.d}"
            )
        q = self._normalize(q)
        scores, idxs = self.index.search(q, min(top_k, self.index.ntotal))
        hits: List[RetrievedChunk] = []
        for score, idx in zip(scores[0].tolist(), idxs[0].tolist()):
            if idx < 0 or idx >= len(self.chunks):
                continue
            hits.append(
                RetrievedChunk(chunk=self.chunks[idx], rank=len(hits), score=float(score))
            )
        return hits

    def save(self, path: str) -> None:
        """Persist the index directory, replacing any previous one."""
        staging = f"{path.rstrip(os.sep)}.staging"
        shutil.rmtree(staging, ignore_errors=True)
        os.makedirs(staging)
        faiss.write_index(self.index, os.path.join(staging, INDEX_FILE))
        meta = {
            "format_version": FORMAT_VERSION,
            "embed_model": self.embed_model,
            "dim": self.index.d,
            "count": self.index.ntotal,
            "built_at": self.built_at,
            "chunks": [c.model_dump(mode="json") for c in self.chunks],
        }
        with open(os.path.join(staging, META_FILE), "w", encoding="utf-8") as f:
            json.dump(meta, f)
        shutil.rmtree(path, ignore_errors=True)
        os.replace(staging, path)

    @staticmethod
    def exists(path: str) -> bool:
        return os.path.isfile(os.path.join(path, INDEX_FILE)) and os.path.isfile(
            os.path.join(path, META_FILE)
        )

    @classmethod
    def load(cls, path: str, embed_model: str) -> "FaissStore":
        """Load a persisted index.

        Args:
            path: Index directory written by ``save``.
            embed_model: Embedding model the caller will query with.

        Raises:
            IndexLoadError: If files are missing, unreadable or incompatible.
        """
        if not cls.exists(path):
            raise IndexLoadError(f"No persisted index at {path}")
        try:
            with open(os.path.join(path, META_FILE), "r", encoding="utf-8") as f:
                meta = json.load(f)
            index = faiss.read_index(os.path.join(path, INDEX_FILE))
        except (OSError, ValueError, RuntimeError) as e:
            raise IndexLoadError(f"Cannot read persisted index at {path}: {e}") from e

        if not isinstance(meta, dict) or meta.get("format_version") != FORMAT_VERSION:
            raise IndexLoadError(
                f"Incompatible index format {meta.get('format_version') if isinstance(meta, dict) else None!r}, "
                f"expected {FORMAT_VERSION}"
            )
        if meta.get("embed_model") != embed_model:
            raise IndexLoadError(
                f"Index was built with {meta.get('embed_model')!r}, current model is {embed_model!r}"
            )
        try:
            chunks = [Chunk.model_validate(c) for c in meta.get("chunks", [])]
        except ValidationError as e:
            raise IndexLoadError(f"Corrupt chunk metadata in {path}: {e}") from e
        count = meta.get("count")
        if (
            index.d != meta.get("dim")
            or index.ntotal != count
            or len(chunks) != count
            or not chunks
        ):
            raise IndexLoadError(
                f"Index at {path} is inconsistent: dim={index.d}, vectors={index.ntotal}, "
                f"chunks={len(chunks)}, count={count}"
            )
        return cls(index, chunks, embed_model, built_at=meta.get("built_at"))
