import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import PurePosixPath
from typing import Iterable, Iterator

import ibm_boto3
from ibm_botocore.client import Config
from ibm_botocore.exceptions import BotoCoreError, ClientError

from docqa.config import Settings
from docqa.errors import SourceUnavailableError
from docqa.models import DocumentObject

logger = logging.getLogger(__name__)


def has_extension(key: str, extensions: Iterable[str]) -> bool:
    """Return True if the key ends with one of the extensions (case-insensitive)."""
    suffix = PurePosixPath(key).suffix.lower()
    return bool(suffix) and suffix in {ext.lower() for ext in extensions}


def _normalize_endpoint(raw: str) -> str:
    # Strip quotes, remove trailing slash, ensure https
    endpoint = raw.strip().strip('"').strip("'").rstrip("/")
    if not endpoint.startswith(("http://", "https://")):
        endpoint = f"https://{endpoint}"
    elif endpoint.startswith("http://"):
        endpoint = endpoint.replace("http://", "https://", 1)
    return endpoint


class COSClient:
    """Read-only access to the document bucket in IBM Cloud Object Storage."""

    def __init__(self, settings: Settings, client=None):
        self.settings = settings
        self.bucket = settings.cos_bucket
        if client is not None:
            self.mode = "hmac" if settings.cos_hmac_access_key_id else "iam"
            self.client = client
            return
        if not settings.cos_endpoint or not settings.cos_bucket:
            raise ValueError(
                "Missing COS configuration. Please set COS_ENDPOINT and COS_BUCKET."
            )
        endpoint = _normalize_endpoint(settings.cos_endpoint)
        timeouts = {
            "connect_timeout": settings.cos_timeout,
            "read_timeout": settings.cos_timeout,
        }

        # Prefer HMAC if keys are present; otherwise use IAM
        if settings.cos_hmac_access_key_id and settings.cos_hmac_secret_access_key:
            self.mode = "hmac"
            self.client = ibm_boto3.client(
                "s3",
                aws_access_key_id=settings.cos_hmac_access_key_id,
                aws_secret_access_key=settings.cos_hmac_secret_access_key,
                config=Config(signature_version="s3v4", **timeouts),
                endpoint_url=endpoint,
            )
        else:
            self.mode = "iam"
            if not settings.cos_api_key or not settings.cos_instance_crn:
                raise ValueError(
                    "Missing IBM Cloud credentials. Please set COS_API_KEY (or "
                    "IBM_CLOUD_API_KEY) and COS_INSTANCE_CRN, or HMAC keys."
                )
            self.client = ibm_boto3.client(
                "s3",
                ibm_api_key_id=settings.cos_api_key,
                ibm_service_instance_id=settings.cos_instance_crn,
                ibm_auth_endpoint=settings.cos_auth_endpoint,
                config=Config(signature_version="oauth", **timeouts),
                endpoint_url=endpoint,
            )

    def list_objects(self) -> list[DocumentObject]:
        """List every object in the bucket (under the configured prefix).

        Raises:
            SourceUnavailableError: If the bucket cannot be listed.
        """
        params = {"Bucket": self.bucket}
        if self.settings.cos_prefix:
            params["Prefix"] = self.settings.cos_prefix
        objects: list[DocumentObject] = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(**params):
                for item in page.get("Contents", []):
                    if item["Key"].endswith("/"):
                        continue
                    objects.append(
                        DocumentObject(
                            key=item["Key"],
                            size=item.get("Size", 0),
                            last_modified=item.get("LastModified"),
                        )
                    )
        except (ClientError, BotoCoreError) as e:
            raise SourceUnavailableError(
                f"Failed to list objects in bucket {self.bucket}: {e}"
            ) from e
        return objects

    def list_objects_by_extension(
        self, extensions: Iterable[str]
    ) -> list[DocumentObject]:
        extensions = tuple(extensions)
        return [o for o in self.list_objects() if has_extension(o.key, extensions)]

    def get_object_content(self, key: str) -> str:
        try:
            obj = self.client.get_object(Bucket=self.bucket, Key=key)
            data = obj["Body"].read()
        except (ClientError, BotoCoreError) as e:
            raise SourceUnavailableError(f"Failed to read object {key}: {e}") from e
        return data.decode("utf-8", errors="replace")

    @contextmanager
    def materialize(self, key: str) -> Iterator[str]:
        """Download an object to a temporary file for the duration of the block.

        The file is removed when the block exits, whether parsing succeeded
        or not.

        Args:
            key: Object key to download.

        Yields:
            Path of the local copy.
        """
        os.makedirs(self.settings.temp_dir, exist_ok=True)
        fd, path = tempfile.mkstemp(
            prefix="docqa-",
            suffix=PurePosixPath(key).suffix,
            dir=self.settings.temp_dir,
        )
        os.close(fd)
        try:
            try:
                self.client.download_file(Bucket=self.bucket, Key=key, Filename=path)
            except (ClientError, BotoCoreError) as e:
                raise SourceUnavailableError(
                    f"Failed to download object {key}: {e}"
                ) from e
            yield path
        finally:
            try:
                os.remove(path)
            except FileNotFoundError:
                pass

    def generate_presigned_url(self, key: str, expires_in: int = 3600) -> str:
        if self.mode != "hmac":
            raise RuntimeError(
                "Presigned URLs require HMAC credentials; IAM mode does not support presign."
            )
        return self.client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=expires_in,
        )
