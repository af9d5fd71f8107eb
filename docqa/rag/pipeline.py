"""RAG service for document question answering.

This module provides the DocumentQAService class, which wires the
document source, index manager, retriever and answer synthesizer and
exposes the operations used by the user interface.
"""

import logging

from docqa.config import Settings
from docqa.errors import DocQAError, InvalidQueryError
from docqa.models import AnswerRecord, DocumentObject, ReindexResult, ServiceStatus
from docqa.rag.cos_client import COSClient, has_extension
from docqa.rag.embeddings import EmbeddingClient
from docqa.rag.generator import GeneratorClient
from docqa.rag.index_manager import IndexManager
from docqa.rag.retriever import Retriever
from docqa.rag.synthesizer import AnswerSynthesizer

logger = logging.getLogger(__name__)


class DocumentQAService:
    """Answers questions over the documents in the configured bucket.

    Collaborators default to the IBM Cloud implementations and can be
    replaced, for example with in-memory fakes in tests.
    """

    def __init__(
        self,
        settings: Settings,
        source=None,
        embedder=None,
        generator=None,
    ) -> None:
        """Initialize the service.

        Args:
            settings: Application settings.
            source: Document source; defaults to COSClient.
            embedder: Embedding oracle; defaults to EmbeddingClient.
            generator: Generation oracle; defaults to GeneratorClient.
        """
        self.settings = settings.validate()
        self.source = source if source is not None else COSClient(settings)
        self.embedder = embedder if embedder is not None else EmbeddingClient(settings)
        self.generator = generator if generator is not None else GeneratorClient(settings)
        self.index = IndexManager(settings, self.source, self.embedder)
        self.retriever = Retriever(self.index, self.embedder, top_k=settings.top_k)
        self.synthesizer = AnswerSynthesizer(self.generator)

    def warm_up(self) -> bool:
        """Build or load the index at startup.

        Failures are logged and swallowed so the service can start anyway;
        the next query retries the build.

        Returns:
            True if a populated index is serving.
        """
        logger.info("Initializing vector index")
        try:
            ready = self.index.ensure_ready()
        except DocQAError as e:
            logger.error(f"Vector index initialization failed, continuing without it: {e}")
            return False
        logger.info("Vector index initialization complete")
        return ready

    def answer_query(self, query) -> AnswerRecord:
        """Answer a question from the indexed documents.

        Raises:
            InvalidQueryError: If the query is not a non-empty string.
            DocQAError: If retrieval or generation fails.
        """
        if not isinstance(query, str) or not query.strip():
            raise InvalidQueryError("Please enter a valid question.")
        query = query.strip()
        retrieved = self.retriever.retrieve(query, self.settings.top_k)
        return self.synthesizer.synthesize(query, retrieved)

    def list_documents(self) -> list[DocumentObject]:
        extensions = self.settings.supported_extensions
        objects = self.source.list_objects_by_extension(extensions)
        return [o for o in objects if has_extension(o.key, extensions)]

    def reindex(self) -> ReindexResult:
        return self.index.reindex()

    def status(self) -> ServiceStatus:
        return ServiceStatus(
            ready=self.index.is_ready(),
            state=self.index.state,
            empty_corpus=self.index.is_empty_corpus(),
        )

    def source_url(self, key: str) -> str | None:
        """Presigned download link for a source, when the source supports it."""
        presign = getattr(self.source, "generate_presigned_url", None)
        if presign is None:
            return None
        try:
            return presign(key)
        except RuntimeError as e:
            logger.debug(f"No download link for {key}: {e}")
            return None
