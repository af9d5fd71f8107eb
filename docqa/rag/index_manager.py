"""Vector index lifecycle.

The IndexManager owns the single active FaissStore. It loads the persisted
index when one exists, otherwise builds a new one from the document source,
and serializes builds so that concurrent callers share one in-flight build.
A failed build never replaces an index that is already serving.
"""

import logging
import shutil
import threading
from concurrent.futures import Future
from typing import List

from docqa.config import Settings
from docqa.errors import DocQAError, IndexBuildError, IndexLoadError
from docqa.models import Chunk, ChunkMetadata, IndexState, ReindexResult, RetrievedChunk
from docqa.rag.chunker import chunk_units
from docqa.rag.faiss_store import FaissStore
from docqa.rag.loader import load_documents

logger = logging.getLogger(__name__)

PLACEHOLDER_TEXT = "No documents available"
PLACEHOLDER_SOURCE = "placeholder"


class IndexManager:
    """Owns the active vector index and its ABSENT/BUILDING/READY lifecycle.

    Args:
        settings: Application settings.
        source: Document source (``list_objects_by_extension``,
            ``get_object_content``, ``materialize``).
        embedder: Embedding oracle (``embed_texts``, ``embed_query``).
    """

    def __init__(self, settings: Settings, source, embedder) -> None:
        self.settings = settings
        self.source = source
        self.embedder = embedder
        self.index_path = settings.vector_db_path
        self._lock = threading.Lock()
        self._store: FaissStore | None = None
        self._building: Future | None = None
        self._building_is_reindex = False

    @property
    def state(self) -> IndexState:
        with self._lock:
            if self._building is not None:
                return IndexState.BUILDING
            return IndexState.READY if self._store is not None else IndexState.ABSENT

    def is_ready(self) -> bool:
        """True when a populated index is serving (placeholder excluded)."""
        store = self._store
        return store is not None and not store.placeholder

    def is_empty_corpus(self) -> bool:
        store = self._store
        return store is not None and store.placeholder

    def ensure_ready(self) -> bool:
        """Make sure an index is available, loading or building it if needed.

        Idempotent. Callers arriving while a build is in flight wait for that
        build instead of starting another one.

        Returns:
            True if a populated index is serving, False if the corpus is empty.

        Raises:
            DocQAError: If no index is serving and the build fails.
        """
        with self._lock:
            if self._store is not None:
                return not self._store.placeholder
            future = self._building
            owner = future is None
            if owner:
                future = self._start_build(reindex=False)
        if owner:
            self._run_build(future, allow_load=True)
        return future.result()

    def reindex(self) -> ReindexResult:
        """Discard the persisted index and build a fresh one from the source.

        The current index keeps serving queries until the new one is built.
        Concurrent reindex requests share a single build.

        Raises:
            DocQAError: If the rebuild fails.
        """
        while True:
            with self._lock:
                future = self._building
                if future is None:
                    future = self._start_build(reindex=True)
                    owner = True
                    break
                if self._building_is_reindex:
                    owner = False
                    break
            # An organic build is running; let it finish, then rebuild anyway.
            future.exception()

        if owner:
            logger.info("Reindex requested, discarding persisted index")
            shutil.rmtree(self.index_path, ignore_errors=True)
            self._run_build(future, allow_load=False)

        populated = future.result()
        if populated:
            return ReindexResult(success=True, message="Documents were reindexed successfully.")
        return ReindexResult(success=False, message="No documents found to index.")

    def search(self, query_embedding: List[float], top_k: int) -> List[RetrievedChunk]:
        store = self._store
        if store is None:
            raise IndexBuildError("Vector index is not initialized")
        return store.search(query_embedding, top_k)

    def _start_build(self, reindex: bool) -> Future:
        # Caller holds self._lock
        future: Future = Future()
        self._building = future
        self._building_is_reindex = reindex
        return future

    def _run_build(self, future: Future, allow_load: bool) -> None:
        try:
            store = self._load_persisted() if allow_load else None
            if store is None:
                store = self._build()
        except DocQAError as e:
            self._finish(future, error=e)
        except Exception as e:
            self._finish(future, error=IndexBuildError(f"Failed to build vector index: {e}"), cause=e)
        except BaseException as e:
            # Waiters must not block on a future that is never resolved
            self._finish(future, error=IndexBuildError(f"Vector index build interrupted: {e!r}"), cause=e)
            raise
        else:
            self._finish(future, store=store)

    def _finish(self, future, store=None, error=None, cause=None) -> None:
        with self._lock:
            if store is not None:
                self._store = store
            self._building = None
            self._building_is_reindex = False
        if error is not None:
            if cause is not None:
                error.__cause__ = cause
            logger.error(f"Index build failed: {error}")
            future.set_exception(error)
        else:
            future.set_result(not store.placeholder)

    def _load_persisted(self) -> FaissStore | None:
        if not FaissStore.exists(self.index_path):
            return None
        try:
            store = FaissStore.load(self.index_path, self.embedder.model_id)
        except IndexLoadError as e:
            logger.warning(f"Persisted index unusable, rebuilding: {e}")
            return None
        except Exception as e:
            logger.warning(f"Failed to load persisted index, rebuilding: {e}")
            return None
        logger.info(f"Loaded persisted index with {len(store)} chunk(s) from {self.index_path}")
        return store

    def _build(self) -> FaissStore:
        logger.info("Building vector index from document source")
        objects = self.source.list_objects_by_extension(self.settings.supported_extensions)
        logger.info(f"Found {len(objects)} document(s)")
        units = (
            load_documents(self.source, objects, max_workers=self.settings.load_workers)
            if objects
            else []
        )
        if not units:
            return self._placeholder()

        chunks = chunk_units(units, self.settings.chunk_size, self.settings.chunk_overlap)
        embeddings = self.embedder.embed_texts([c.text for c in chunks])
        store = FaissStore.from_embeddings(chunks, embeddings, self.embedder.model_id)
        store.save(self.index_path)
        logger.info(f"Vector index built with {len(store)} chunk(s) and saved to {self.index_path}")
        return store

    def _placeholder(self) -> FaissStore:
        logger.warning("No documents to index, using placeholder index")
        sentinel = Chunk(
            text=PLACEHOLDER_TEXT,
            metadata=ChunkMetadata(source=PLACEHOLDER_SOURCE),
            chunk_index=0,
        )
        embeddings = self.embedder.embed_texts([sentinel.text])
        return FaissStore.from_embeddings(
            [sentinel], embeddings, self.embedder.model_id, placeholder=True
        )
