import os
import tempfile

import pytest
from fastapi.testclient import TestClient

# Set test environment before importing the app
_tmp = tempfile.mkdtemp()
os.environ["GALLERY_DATA_DIR"] = os.path.join(_tmp, "data")
os.environ["GALLERY_STORAGE_DIR"] = os.path.join(_tmp, "objects")
os.environ["GALLERY_DB_PATH"] = os.path.join(_tmp, "data", "test.db")
os.environ["GALLERY_STORAGE_BACKEND"] = "local"
os.environ["GALLERY_JWT_SECRET"] = "test-secret-key-for-testing-only-32chars!"  # noqa: S105
os.environ["GALLERY_ADMIN_USERNAME"] = "admin"
os.environ["GALLERY_ADMIN_PASSWORD"] = "admin123"

from gallery.api.deps import get_services
from gallery.database import init_db, make_engine
from gallery.main import app
from gallery.services.container import assemble
from gallery.services.mutations import UploadedFile
from gallery.stores.metadata import LegacyMetadataStore
from gallery.stores.object_store import LocalObjectStore
from gallery.stores.relational import SQLRelationalStore

JPEG_HEADER = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00"


def jpeg(size: int = 1024, name: str = "photo.jpg") -> UploadedFile:
    """A fake JPEG of exactly ``size`` bytes."""
    data = JPEG_HEADER + b"\x00" * max(size - len(JPEG_HEADER), 0)
    return UploadedFile(filename=name, content_type="image/jpeg", data=data[:size])


@pytest.fixture
def db_engine(tmp_path):
    """Fresh SQLite database per test."""
    engine = make_engine(f"sqlite:///{tmp_path / 'gallery.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def relational(db_engine):
    return SQLRelationalStore(db_engine)


@pytest.fixture
def objects(tmp_path):
    root = tmp_path / "objects"
    root.mkdir()
    return LocalObjectStore(root)


@pytest.fixture
def metadata(objects):
    return LegacyMetadataStore(objects)


@pytest.fixture
def services(relational, objects, metadata):
    return assemble(relational, objects, metadata)


@pytest.fixture
def client(services):
    """Test client whose routes use the per-test stores."""
    app.dependency_overrides[get_services] = lambda: services
    with TestClient(app) as test_client:
        app.state.gallery = services
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_client(client):
    """Client carrying the admin session cookie."""
    response = client.post("/api/auth/login", json={"username": "admin", "password": "admin123"})
    assert response.status_code == 200
    return client
