from __future__ import annotations
import logging
import os
import re
import secrets
import time
from pathlib import Path
from typing import Optional

import requests

from .errors import NotFound, StoreUnavailable

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


def make_key(filename: Optional[str]) -> str:
    """`<epoch-ms>_<random>_<sanitised name>`, unique per upload."""
    base = os.path.basename(filename or "") or "upload"
    safe = _UNSAFE_CHARS.sub("_", base)[-100:]
    return f"{int(time.time() * 1000)}_{secrets.token_hex(4)}_{safe}"


class BlobStore:
    name = "abstract"

    def put(self, data: bytes, filename: Optional[str] = None,
            content_type: Optional[str] = None) -> str:
        raise NotImplementedError

    def read(self, key: str) -> bytes:
        raise NotImplementedError

    def url(self, key: str) -> str:
        raise NotImplementedError

    def delete(self, key: str) -> bool:
        raise NotImplementedError


class LocalBlobStore(BlobStore):
    """Blobs as files under `root`, served by the app under `url_prefix`."""

    name = "local"

    def __init__(self, root: str, url_prefix: str = "/uploads"):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.url_prefix = url_prefix.rstrip("/")

    def _path(self, key: str) -> Path:
        # prevent path traversal
        if not key or key != os.path.basename(key) or key in (".", ".."):
            raise NotFound(f"Unknown blob {key!r}")
        return self.root / key

    def put(self, data, filename=None, content_type=None):
        key = make_key(filename)
        try:
            with open(self.root / key, "wb") as f:
                f.write(data)
        except OSError as e:
            logger.exception("could not write blob %s", key)
            raise StoreUnavailable("Could not store image") from e
        return key

    def read(self, key):
        p = self._path(key)
        if not p.exists():
            raise NotFound(f"Unknown blob {key!r}")
        return p.read_bytes()

    def url(self, key):
        return f"{self.url_prefix}/{key}"

    def delete(self, key):
        try:
            p = self._path(key)
        except NotFound:
            return False
        if not p.exists():
            return False
        try:
            p.unlink()
        except OSError as e:
            logger.exception("could not delete blob %s", key)
            raise StoreUnavailable("Could not delete image") from e
        return True


class RemoteBlobStore(BlobStore):
    """Object storage over HTTP (Supabase storage REST layout).

    Uploaded objects must live in a public bucket for `url()` to resolve.
    """

    name = "remote"
    TIMEOUT = 15  # seconds

    def __init__(self, base_url: str, bucket: str, api_key: str,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {api_key}",
            "apikey": api_key,
        })

    def _object_url(self, key: str) -> str:
        return f"{self.base_url}/storage/v1/object/{self.bucket}/{key}"

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            return self.session.request(method, url, timeout=self.TIMEOUT, **kwargs)
        except requests.RequestException as e:
            logger.error("object storage %s %s failed: %s", method, url, e)
            raise StoreUnavailable("Object storage unreachable") from e

    def put(self, data, filename=None, content_type=None):
        key = make_key(filename)
        resp = self._request(
            "POST", self._object_url(key), data=data,
            headers={"Content-Type": content_type or "application/octet-stream", "x-upsert": "false"},
        )
        if not resp.ok:
            logger.error("object storage rejected %s: %s %s", key, resp.status_code, resp.text[:200])
            raise StoreUnavailable("Could not store image")
        return key

    def read(self, key):
        resp = self._request("GET", self._object_url(key))
        if resp.status_code in (400, 404):
            raise NotFound(f"Unknown blob {key!r}")
        if not resp.ok:
            raise StoreUnavailable("Could not read image")
        return resp.content

    def url(self, key):
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{key}"

    def delete(self, key):
        resp = self._request(
            "DELETE", f"{self.base_url}/storage/v1/object/{self.bucket}",
            json={"prefixes": [key]},
        )
        if not resp.ok:
            logger.error("object storage delete %s: %s", key, resp.status_code)
            raise StoreUnavailable("Could not delete image")
        try:
            removed = resp.json()
        except ValueError:
            return True
        return bool(removed) if isinstance(removed, list) else True


def build_blob_store(settings) -> BlobStore:
    if settings.blob_backend == "local":
        return LocalBlobStore(settings.uploads_dir, settings.uploads_url_prefix)
    if settings.blob_backend == "remote":
        if not (settings.remote_storage_url and settings.remote_storage_bucket and settings.remote_storage_key):
            raise StoreUnavailable("SF_REMOTE_STORAGE_URL, _BUCKET and _KEY are required for remote blobs")
        return RemoteBlobStore(settings.remote_storage_url, settings.remote_storage_bucket,
                               settings.remote_storage_key)
    raise ValueError(f"unknown blob backend: {settings.blob_backend}")
