"""Application configuration settings.

This module defines the Settings dataclass that loads configuration
from environment variables.
"""

from dataclasses import dataclass, field
import os

from docqa.errors import ConfigurationError

SUPPORTED_EXTENSIONS = (".pdf", ".txt", ".md", ".docx", ".html")


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    Attributes:
        ibm_cloud_api_key: IBM Cloud API key for authentication.
        watsonx_region: Watsonx.ai service region.
        watsonx_project_id: Watsonx.ai project ID.
        watsonx_embed_model: Embedding model ID.
        watsonx_gen_model: Generation model ID.
        cos_endpoint: Cloud Object Storage endpoint.
        cos_bucket: Cloud Object Storage bucket holding the corpus.
        cos_instance_crn: Cloud Object Storage instance CRN.
        cos_api_key: Cloud Object Storage API key (optional).
        cos_auth_endpoint: Cloud Object Storage auth endpoint.
        cos_hmac_access_key_id: HMAC access key ID.
        cos_hmac_secret_access_key: HMAC secret access key.
        cos_prefix: Only keys under this prefix are part of the corpus.
        cos_timeout: Connect/read timeout for COS calls, in seconds.
        vector_db_path: Directory holding the persisted FAISS index.
        temp_dir: Directory for temporary files of binary documents.
        chunk_size: Maximum chunk length in characters.
        chunk_overlap: Characters shared by consecutive chunks.
        top_k: Number of chunks retrieved per query.
        temperature: Generation temperature.
        max_new_tokens: Generation token limit.
        embed_batch_size: Texts sent per embedding request.
        load_workers: Threads used to load documents during a build.
        provider_max_retries: Attempts for embedding/generation calls.
        provider_backoff_seconds: Base delay of the exponential backoff.
        log_level: Root logging level.
        supported_extensions: File extensions that make up the corpus.
    """

    ibm_cloud_api_key: str
    watsonx_region: str
    watsonx_project_id: str
    watsonx_embed_model: str
    watsonx_gen_model: str

    cos_endpoint: str
    cos_bucket: str
    cos_instance_crn: str
    cos_api_key: str | None
    cos_auth_endpoint: str
    cos_hmac_access_key_id: str
    cos_hmac_secret_access_key: str
    cos_prefix: str
    cos_timeout: float

    vector_db_path: str
    temp_dir: str

    chunk_size: int
    chunk_overlap: int
    top_k: int
    temperature: float
    max_new_tokens: int
    embed_batch_size: int
    load_workers: int
    provider_max_retries: int
    provider_backoff_seconds: float
    log_level: str

    supported_extensions: tuple[str, ...] = field(default=SUPPORTED_EXTENSIONS)

    @classmethod
    def from_env(cls) -> "Settings":
        """Create Settings instance from environment variables.

        Returns:
            Settings instance with values loaded from environment.
        """
        return cls(
            ibm_cloud_api_key=os.getenv("IBM_CLOUD_API_KEY", ""),
            watsonx_region=os.getenv("WATSONX_REGION", "us-south"),
            watsonx_project_id=os.getenv("WATSONX_PROJECT_ID", ""),
            watsonx_embed_model=os.getenv(
                "WATSONX_EMBED_MODEL",
                "ibm/granite-embedding-30m-english",
            ),
            watsonx_gen_model=os.getenv(
                "WATSONX_GEN_MODEL", "ibm/granite-13b-instruct-v2"
            ),
            cos_endpoint=os.getenv("COS_ENDPOINT", ""),
            cos_bucket=os.getenv("COS_BUCKET", ""),
            cos_instance_crn=os.getenv("COS_INSTANCE_CRN", ""),
            cos_api_key=os.getenv("COS_API_KEY") or os.getenv("IBM_CLOUD_API_KEY"),
            cos_auth_endpoint=os.getenv(
                "COS_AUTH_ENDPOINT",
                "https://iam.cloud.ibm.com/identity/token",
            ),
            cos_hmac_access_key_id=os.getenv("COS_HMAC_ACCESS_KEY_ID", ""),
            cos_hmac_secret_access_key=os.getenv("COS_HMAC_SECRET_ACCESS_KEY", ""),
            cos_prefix=os.getenv("COS_PREFIX", ""),
            cos_timeout=float(os.getenv("COS_TIMEOUT", "30")),
            vector_db_path=os.getenv("VECTOR_DB_PATH", "data/faiss_store"),
            temp_dir=os.getenv("TEMP_DIR", "data/tmp"),
            chunk_size=int(os.getenv("CHUNK_SIZE", "500")),
            chunk_overlap=int(os.getenv("CHUNK_OVERLAP", "200")),
            top_k=int(os.getenv("TOP_K", "5")),
            temperature=float(os.getenv("TEMPERATURE", "0.7")),
            max_new_tokens=int(os.getenv("MAX_NEW_TOKENS", "1024")),
            embed_batch_size=int(os.getenv("EMBED_BATCH_SIZE", "32")),
            load_workers=int(os.getenv("LOAD_WORKERS", "4")),
            provider_max_retries=int(os.getenv("PROVIDER_MAX_RETRIES", "3")),
            provider_backoff_seconds=float(
                os.getenv("PROVIDER_BACKOFF_SECONDS", "1.0")
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    def validate(self) -> "Settings":
        """Check the pipeline parameters for consistency.

        Returns:
            The same Settings instance, for chaining.

        Raises:
            ConfigurationError: If chunking or retrieval parameters are invalid.
        """
        if self.chunk_size <= 0 or self.chunk_overlap < 0:
            raise ConfigurationError(
                f"CHUNK_SIZE must be positive and CHUNK_OVERLAP non-negative "
                f"(got {self.chunk_size}, {self.chunk_overlap})"
            )
        if self.chunk_overlap >= self.chunk_size:
            raise ConfigurationError(
                f"CHUNK_OVERLAP ({self.chunk_overlap}) must be smaller than "
                f"CHUNK_SIZE ({self.chunk_size})"
            )
        if self.top_k < 1:
            raise ConfigurationError(f"TOP_K must be at least 1 (got {self.top_k})")
        return self
