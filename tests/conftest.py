import pytest
from fastapi.testclient import TestClient

from storefront.blob_store import LocalBlobStore
from storefront.config import Settings
from storefront.json_store import JsonRecordStore
from storefront.main import create_app
from storefront.record_store import SqlRecordStore
from storefront.uploads import ImageUpload

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
ADMIN_EMAIL = "admin@shop.io"
ADMIN_PASSWORD = "admin-pass"


@pytest.fixture(params=["sqlite", "json", "memory"])
def store(request, tmp_path):
    if request.param == "sqlite":
        s = SqlRecordStore.sqlite(str(tmp_path / "storefront.db"))
    elif request.param == "json":
        s = JsonRecordStore(str(tmp_path / "storefront.json"))
    else:
        s = JsonRecordStore(None)
    yield s
    s.close()


@pytest.fixture
def blobs(tmp_path):
    return LocalBlobStore(str(tmp_path / "uploads"))


@pytest.fixture
def make_image():
    counter = {"n": 0}

    def _make(name=None, data=None, content_type="image/png"):
        counter["n"] += 1
        return ImageUpload(
            filename=name or f"photo{counter['n']}.png",
            content_type=content_type,
            data=data if data is not None else PNG_BYTES + bytes([counter["n"] % 256]),
        )
    return _make


@pytest.fixture
def make_settings(tmp_path):
    def _make(**overrides):
        base = dict(
            store_backend="memory",
            sqlite_path=str(tmp_path / "app.db"),
            json_path=str(tmp_path / "app.json"),
            uploads_dir=str(tmp_path / "app-uploads"),
            admin_email=ADMIN_EMAIL,
            admin_password=ADMIN_PASSWORD,
            secret_key="test-secret",
            password_rounds=4,
        )
        base.update(overrides)
        return Settings(**base)
    return _make


@pytest.fixture
def make_client(make_settings):
    def _make(**overrides):
        return TestClient(create_app(make_settings(**overrides)))
    return _make


@pytest.fixture
def client(make_client):
    return make_client()


def login_admin(c: TestClient) -> TestClient:
    r = c.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert r.status_code == 200, r.text
    return c


@pytest.fixture
def admin_client(client):
    return login_admin(client)
