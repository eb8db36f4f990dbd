from __future__ import annotations
import os
from functools import lru_cache
from typing import Optional, List
from pydantic import BaseModel

BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
DATA_DIR = os.environ.get("SF_DATA_DIR", os.path.join(BASE_DIR, "data"))

STORE_BACKENDS = ("postgres", "sqlite", "json", "memory")
BLOB_BACKENDS = ("local", "remote")
CATALOG_VARIANTS = ("single", "multi")


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.environ.get(name)
    if not raw:
        return default
    return [p.strip() for p in raw.split(",") if p.strip()]


class Settings(BaseModel):
    store_backend: str = "sqlite"
    database_url: Optional[str] = None
    sqlite_path: str = os.path.join(DATA_DIR, "storefront.db")
    json_path: str = os.path.join(DATA_DIR, "storefront.json")

    blob_backend: str = "local"
    uploads_dir: str = os.path.join(DATA_DIR, "uploads")
    uploads_url_prefix: str = "/uploads"
    remote_storage_url: Optional[str] = None
    remote_storage_bucket: Optional[str] = None
    remote_storage_key: Optional[str] = None

    catalog_variant: str = "multi"

    admin_email: Optional[str] = None
    admin_password: Optional[str] = None
    secret_key: str = "dev-insecure-secret"  # override in production
    admin_token_minutes: int = 60 * 8
    customer_token_minutes: int = 60 * 24
    secure_cookies: bool = False
    password_rounds: int = 12

    max_upload_bytes: int = 5 * 1024 * 1024
    allowed_image_types: List[str] = ["image/png", "image/jpeg", "image/webp"]

    host: str = "127.0.0.1"
    port: int = 5000

    cors_origins: List[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            store_backend=os.environ.get("SF_STORE_BACKEND", defaults.store_backend),
            database_url=os.environ.get("SF_DATABASE_URL"),
            sqlite_path=os.environ.get("SF_SQLITE_PATH", defaults.sqlite_path),
            json_path=os.environ.get("SF_JSON_PATH", defaults.json_path),
            blob_backend=os.environ.get("SF_BLOB_BACKEND", defaults.blob_backend),
            uploads_dir=os.environ.get("SF_UPLOADS_DIR", defaults.uploads_dir),
            uploads_url_prefix=os.environ.get("SF_UPLOADS_URL_PREFIX", defaults.uploads_url_prefix),
            remote_storage_url=os.environ.get("SF_REMOTE_STORAGE_URL"),
            remote_storage_bucket=os.environ.get("SF_REMOTE_STORAGE_BUCKET"),
            remote_storage_key=os.environ.get("SF_REMOTE_STORAGE_KEY"),
            catalog_variant=os.environ.get("SF_CATALOG_VARIANT", defaults.catalog_variant),
            admin_email=os.environ.get("SF_ADMIN_EMAIL"),
            admin_password=os.environ.get("SF_ADMIN_PASSWORD"),
            secret_key=os.environ.get("SF_SECRET_KEY", defaults.secret_key),
            secure_cookies=_env_bool("SF_SECURE_COOKIES"),
            host=os.environ.get("SF_HOST", defaults.host),
            port=int(os.environ.get("SF_PORT", defaults.port)),
            cors_origins=_env_list("SF_CORS_ORIGINS", defaults.cors_origins),
            log_level=os.environ.get("SF_LOG_LEVEL", defaults.log_level),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
