import logging
from typing import List

from docqa.models import RetrievedChunk
from docqa.rag.index_manager import IndexManager

logger = logging.getLogger(__name__)


class Retriever:
    """Top-K similarity search over the active index."""

    def __init__(self, index_manager: IndexManager, embedder, top_k: int = 5):
        self.index_manager = index_manager
        self.embedder = embedder
        self.top_k = top_k

    def retrieve(self, query: str, k: int | None = None) -> List[RetrievedChunk]:
        """Return the chunks most similar to the query, best first.

        Builds the index on first use. Returns an empty list when the corpus
        is empty.
        """
        k = self.top_k if k is None else k
        if not self.index_manager.ensure_ready():
            logger.info("Corpus is empty, no chunks to retrieve")
            return []
        q_emb = self.embedder.embed_query(query)
        hits = self.index_manager.search(q_emb, k)
        logger.info(f"Retrieved {len(hits)} chunk(s) for query ({len(query)} chars)")
        return hits
