import logging
from typing import Any

from ibm_watsonx_ai import Credentials
from ibm_watsonx_ai.foundation_models import Embeddings as WXEmbeddings
from ibm_watsonx_ai.wml_client_error import ApiRequestFailure
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from docqa.config import Settings
from docqa.errors import EmbeddingProviderError

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (ApiRequestFailure, ConnectionError, TimeoutError)


def _vector_of(item: Any) -> list[float] | None:
    if isinstance(item, dict):
        for field in ("embedding", "vector", "values"):
            if field in item:
                return item[field]
        return None
    if isinstance(item, list) and (not item or isinstance(item[0], (int, float))):
        return item
    return None


def extract_vectors(data: Any) -> list[list[float]]:
    """Normalize the shapes watsonx.ai returns for a batch of embeddings."""
    if hasattr(data, "get_result"):
        data = data.get_result()
    # 1) {"results": [{"embedding"|"vector"|"values": [...]}, ...]}
    if isinstance(data, dict) and isinstance(data.get("results"), list):
        vectors = [_vector_of(item) for item in data["results"]]
        if vectors and all(v is not None for v in vectors):
            return vectors
    # 2) {"embeddings": [[...], ...]}
    if isinstance(data, dict) and "embeddings" in data:
        return data["embeddings"]
    # 3) direct list of vectors
    if isinstance(data, list) and all(isinstance(v, list) for v in data):
        return data
    raise EmbeddingProviderError(
        f"Unexpected embeddings response format from watsonx.ai: {type(data)} "
        f"keys={list(data.keys()) if isinstance(data, dict) else 'n/a'}"
    )


class EmbeddingClient:
    """Embedding oracle backed by watsonx.ai.

    Requests are batched and retried with exponential backoff on transient
    provider errors; persistent failures surface as EmbeddingProviderError.
    """

    def __init__(self, settings: Settings, client=None):
        self.settings = settings
        self.model_id = settings.watsonx_embed_model
        if client is None:
            credentials = Credentials(
                api_key=settings.ibm_cloud_api_key,
                url=f"https://{settings.watsonx_region}.ml.cloud.ibm.com",
            )
            client = WXEmbeddings(
                model_id=settings.watsonx_embed_model,
                project_id=settings.watsonx_project_id,
                credentials=credentials,
            )
        self.client = client

    def _call(self, fn, *args):
        retrying = Retrying(
            stop=stop_after_attempt(max(1, self.settings.provider_max_retries)),
            wait=wait_exponential(
                multiplier=self.settings.provider_backoff_seconds, max=30
            ),
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            before_sleep=lambda state: logger.warning(
                f"Embedding request failed (attempt {state.attempt_number}), retrying"
            ),
        )
        try:
            return retrying(fn, *args)
        except RetryError as e:
            cause = e.last_attempt.exception()
            raise EmbeddingProviderError(f"Embedding request failed: {cause}") from cause
        except EmbeddingProviderError:
            raise
        except Exception as e:
            raise EmbeddingProviderError(f"Embedding request failed: {e}") from e

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        vectors: list[list[float]] = []
        batch_size = max(1, self.settings.embed_batch_size)
        for start in range(0, len(texts), batch_size):
            batch = texts[start : start + batch_size]
            result = self._call(self.client.embed_documents, batch)
            batch_vectors = extract_vectors(result)
            if len(batch_vectors) != len(batch):
                raise EmbeddingProviderError(
                    f"Embedding count ({len(batch_vectors)}) doesn't match text count ({len(batch)})"
                )
            vectors.extend(batch_vectors)
        return vectors

    def embed_query(self, text: str) -> list[float]:
        result = self._call(self.client.embed_query, text)
        if hasattr(result, "get_result"):
            result = result.get_result()
        vector = _vector_of(result)
        if vector is None:
            vectors = extract_vectors(result)
            if not vectors:
                raise EmbeddingProviderError("Empty query embedding from watsonx.ai")
            vector = vectors[0]
        return vector
