"""Exception types raised by the document QA pipeline."""


class DocQAError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(DocQAError, ValueError):
    """Settings are inconsistent (for example overlap >= chunk size)."""


class InvalidQueryError(DocQAError, ValueError):
    """The user query is empty or not a string."""


class SourceUnavailableError(DocQAError, RuntimeError):
    """The document source cannot be listed or read."""


class UnsupportedDocumentError(DocQAError, RuntimeError):
    """A single document is corrupt or of an unsupported sub-format."""

    def __init__(self, key: str, reason: str):
        super().__init__(f"Cannot load document {key}: {reason}")
        self.key = key


class IndexLoadError(DocQAError, RuntimeError):
    """A persisted index is missing, corrupt or incompatible."""


class IndexBuildError(DocQAError, RuntimeError):
    """Building the vector index failed."""


class EmbeddingProviderError(DocQAError, RuntimeError):
    """The embedding service failed after retries."""


class GenerationProviderError(DocQAError, RuntimeError):
    """The text generation service failed after retries."""
