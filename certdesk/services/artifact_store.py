"""Durable storage for rendered certificates.

Two backends share one interface:

* ``LocalArtifactStore`` keeps PDFs under ``<SITE_ROOT>/certificates`` and
  hands out itsdangerous-signed download links served by the ``artifacts``
  blueprint.
* ``AzureBlobArtifactStore`` keeps PDFs in a private blob container and
  hands out read-only SAS links.

Every method raises :class:`StorageError` when the backend fails.
"""

from __future__ import annotations

import logging
import os
from datetime import timedelta
from typing import BinaryIO
from urllib.parse import quote

from azure.core.exceptions import AzureError, ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import (
    BlobSasPermissions,
    BlobServiceClient,
    ContentSettings,
    generate_blob_sas,
)
from flask import has_request_context, request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from ..constants import (
    ARTIFACT_CONTENT_TYPE,
    DEFAULT_ARTIFACT_URL_TTL_SECONDS,
    DEFAULT_CONTAINER_NAME,
)
from ..errors import StorageError
from ..shared.storage import ensure_dir, is_safe_key, write_atomic
from ..shared.time import now_utc

logger = logging.getLogger("certdesk.storage")

_TOKEN_SALT = "certdesk-artifact"


def _check_key(key: str) -> str:
    if not is_safe_key(key):
        raise StorageError(f"Invalid artifact key: {key!r}")
    return key


class LocalArtifactStore:
    def __init__(
        self,
        root: str,
        secret_key: str,
        *,
        public_base_url: str | None = None,
        default_ttl: int = DEFAULT_ARTIFACT_URL_TTL_SECONDS,
    ):
        self.root = root
        self.public_base_url = (public_base_url or "").rstrip("/")
        self.default_ttl = default_ttl
        self._serializer = URLSafeTimedSerializer(secret_key, salt=_TOKEN_SALT)

    def _path(self, key: str) -> str:
        return os.path.join(self.root, _check_key(key))

    def put(self, key: str, data: bytes | BinaryIO, content_type: str = ARTIFACT_CONTENT_TYPE) -> str:
        path = self._path(key)
        try:
            payload = data.read() if hasattr(data, "read") else data
            ensure_dir(self.root)
            write_atomic(path, payload)
        except OSError as exc:
            raise StorageError(f"Could not write {key}: {exc}") from exc
        logger.info("[STORE] backend=local put key=%s bytes=%d", key, len(payload))
        return f"{self._base_url()}/artifacts/{quote(key)}"

    def exists(self, key: str) -> bool:
        return os.path.isfile(self._path(key))

    def get(self, key: str) -> bytes:
        try:
            with open(self._path(key), "rb") as fh:
                return fh.read()
        except OSError as exc:
            raise StorageError(f"Could not read {key}: {exc}") from exc

    def _base_url(self) -> str:
        if self.public_base_url:
            return self.public_base_url
        if has_request_context():
            return request.host_url.rstrip("/")
        return ""

    def access_url(self, key: str, ttl: int | None = None) -> str:
        """Signed download link; needs PUBLIC_BASE_URL when called outside a request."""
        base = self._base_url()
        if not base:
            raise StorageError("PUBLIC_BASE_URL is not configured; cannot build a public certificate link")
        token = self._serializer.dumps({"k": _check_key(key), "ttl": int(ttl or self.default_ttl)})
        return f"{base}/artifacts/{quote(key)}?token={token}"

    def verify_token(self, key: str, token: str) -> bool:
        """Return True when ``token`` grants access to ``key`` right now."""
        try:
            payload = self._serializer.loads(token)
            if payload.get("k") != key:
                return False
            self._serializer.loads(token, max_age=int(payload.get("ttl") or self.default_ttl))
        except SignatureExpired:
            logger.info("[STORE] backend=local expired link key=%s", key)
            return False
        except BadSignature:
            return False
        return True

    def delete(self, key: str) -> bool:
        path = self._path(key)
        try:
            os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageError(f"Could not delete {key}: {exc}") from exc
        logger.info("[STORE] backend=local delete key=%s", key)
        return True

    def close(self) -> None:
        pass


class AzureBlobArtifactStore:
    def __init__(
        self,
        connection_string: str,
        container_name: str = DEFAULT_CONTAINER_NAME,
        *,
        default_ttl: int = DEFAULT_ARTIFACT_URL_TTL_SECONDS,
    ):
        if not connection_string:
            raise StorageError("Azure Storage connection string is not configured")
        self.connection_string = connection_string
        self.container_name = container_name
        self.default_ttl = default_ttl
        self._service: BlobServiceClient | None = None
        self._container = None

    def _container_client(self):
        if self._container is not None:
            return self._container
        try:
            service = BlobServiceClient.from_connection_string(self.connection_string)
            container = service.get_container_client(self.container_name)
            if not container.exists():
                try:
                    container.create_container()
                    logger.info("[STORE] backend=azure created container=%s", self.container_name)
                except ResourceExistsError:
                    pass
        except AzureError as exc:
            raise StorageError(f"Could not open container {self.container_name}: {exc}") from exc
        self._service = service
        self._container = container
        return container

    def _blob(self, key: str):
        return self._container_client().get_blob_client(_check_key(key))

    def put(self, key: str, data: bytes | BinaryIO, content_type: str = ARTIFACT_CONTENT_TYPE) -> str:
        blob = self._blob(key)
        try:
            blob.upload_blob(
                data,
                overwrite=True,
                content_settings=ContentSettings(content_type=content_type),
            )
        except AzureError as exc:
            raise StorageError(f"Upload failed for {key}: {exc}") from exc
        logger.info("[STORE] backend=azure put key=%s", key)
        return blob.url

    def exists(self, key: str) -> bool:
        try:
            return bool(self._blob(key).exists())
        except AzureError as exc:
            raise StorageError(f"Existence check failed for {key}: {exc}") from exc

    def get(self, key: str) -> bytes:
        try:
            return self._blob(key).download_blob().readall()
        except AzureError as exc:
            raise StorageError(f"Download failed for {key}: {exc}") from exc

    def access_url(self, key: str, ttl: int | None = None) -> str:
        blob = self._blob(key)
        credential = getattr(self._service, "credential", None)
        account_key = getattr(credential, "account_key", None)
        if not account_key:
            raise StorageError("Azure Storage account key not configured")
        sas = generate_blob_sas(
            account_name=self._service.account_name,
            container_name=self.container_name,
            blob_name=key,
            account_key=account_key,
            permission=BlobSasPermissions(read=True),
            expiry=now_utc() + timedelta(seconds=int(ttl or self.default_ttl)),
        )
        return f"{blob.url}?{sas}"

    def delete(self, key: str) -> bool:
        try:
            self._blob(key).delete_blob(delete_snapshots="include")
        except ResourceNotFoundError:
            return False
        except AzureError as exc:
            raise StorageError(f"Delete failed for {key}: {exc}") from exc
        logger.info("[STORE] backend=azure delete key=%s", key)
        return True

    def close(self) -> None:
        if self._service is not None:
            self._service.close()
        self._service = None
        self._container = None


def build_artifact_store(config):
    backend = (config.get("ARTIFACT_STORE") or "local").strip().lower()
    ttl = int(config.get("ARTIFACT_URL_TTL_SECONDS") or DEFAULT_ARTIFACT_URL_TTL_SECONDS)
    if backend == "azure":
        return AzureBlobArtifactStore(
            config.get("AZURE_STORAGE_CONNECTION_STRING") or "",
            config.get("AZURE_STORAGE_CONTAINER") or DEFAULT_CONTAINER_NAME,
            default_ttl=ttl,
        )
    if backend != "local":
        raise StorageError(f"Unknown artifact store backend: {backend!r}")
    return LocalArtifactStore(
        os.path.join(config["SITE_ROOT"], "certificates"),
        config["SECRET_KEY"],
        public_base_url=config.get("PUBLIC_BASE_URL"),
        default_ttl=ttl,
    )
