import os
import re
import threading
import zlib
from contextlib import contextmanager
from datetime import datetime, timezone

import pytest

from docqa.config import Settings
from docqa.errors import EmbeddingProviderError, SourceUnavailableError
from docqa.models import DocumentObject
from docqa.rag.cos_client import has_extension

DIM = 64


def make_settings(tmp_path, **overrides) -> Settings:
    values = dict(
        ibm_cloud_api_key="",
        watsonx_region="us-south",
        watsonx_project_id="",
        watsonx_embed_model="fake-embed",
        watsonx_gen_model="fake-gen",
        cos_endpoint="",
        cos_bucket="docs",
        cos_instance_crn="",
        cos_api_key=None,
        cos_auth_endpoint="",
        cos_hmac_access_key_id="",
        cos_hmac_secret_access_key="",
        cos_prefix="",
        cos_timeout=5.0,
        vector_db_path=str(tmp_path / "faiss_store"),
        temp_dir=str(tmp_path / "tmp"),
        chunk_size=200,
        chunk_overlap=50,
        top_k=3,
        temperature=0.0,
        max_new_tokens=256,
        embed_batch_size=8,
        load_workers=2,
        provider_max_retries=2,
        provider_backoff_seconds=0.0,
        log_level="DEBUG",
    )
    values.update(overrides)
    return Settings(**values)


class FakeSource:
    """In-memory document source with the COSClient interface."""

    def __init__(self, documents=None, temp_dir=None):
        self.documents = dict(documents or {})
        self.temp_dir = temp_dir
        self.list_calls = 0
        self.materialized = []
        self.fail_listing = False
        self.gate = None
        self.entered = threading.Event()

    def list_objects(self):
        self.list_calls += 1
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.fail_listing:
            raise SourceUnavailableError("bucket unreachable")
        stamp = datetime(2024, 1, 1, tzinfo=timezone.utc)
        return [
            DocumentObject(key=key, size=len(body), last_modified=stamp)
            for key, body in self.documents.items()
        ]

    def list_objects_by_extension(self, extensions):
        return [o for o in self.list_objects() if has_extension(o.key, extensions)]

    def _bytes(self, key):
        body = self.documents[key]
        return body.encode("utf-8") if isinstance(body, str) else body

    def get_object_content(self, key):
        return self._bytes(key).decode("utf-8", errors="replace")

    @contextmanager
    def materialize(self, key):
        os.makedirs(self.temp_dir, exist_ok=True)
        path = os.path.join(self.temp_dir, f"{len(self.materialized)}-{os.path.basename(key)}")
        with open(path, "wb") as f:
            f.write(self._bytes(key))
        self.materialized.append(path)
        try:
            yield path
        finally:
            os.remove(path)


def fake_vector(text: str) -> list[float]:
    """Deterministic bag-of-words embedding."""
    vec = [0.0] * DIM
    for word in re.findall(r"\w+", text.lower()):
        vec[zlib.crc32(word.encode("utf-8")) % DIM] += 1.0
    if not any(vec):
        vec[0] = 1.0
    return vec


class FakeEmbedder:
    model_id = "fake-embed"

    def __init__(self):
        self.text_calls = 0
        self.query_calls = 0
        self.fail = False

    def embed_texts(self, texts):
        self.text_calls += 1
        if self.fail:
            raise EmbeddingProviderError("quota exceeded")
        return [fake_vector(t) for t in texts]

    def embed_query(self, text):
        self.query_calls += 1
        return fake_vector(text)


class FakeGenerator:
    def __init__(self, response="Answer text [Document 1]"):
        self.response = response
        self.prompts = []

    def generate(self, prompt):
        self.prompts.append(prompt)
        return self.response


CORPUS = {
    "handbook/vacation.txt": (
        "Employees receive twenty five vacation days per year. "
        "Vacation requests are approved by the team lead."
    ),
    "handbook/security.md": (
        "Passwords must be rotated every ninety days. "
        "Security incidents are reported to the security desk."
    ),
    "handbook/expenses.html": (
        "<p>Travel expenses are reimbursed within thirty days "
        "when receipts are attached.</p>"
    ),
}


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def source(tmp_path):
    return FakeSource(CORPUS, temp_dir=str(tmp_path / "materialized"))


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def generator():
    return FakeGenerator()
