import os
import sys
import tempfile
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Keep the app's import-time directory setup out of the working tree
os.environ.setdefault("UPLOADS_DIR", tempfile.mkdtemp(prefix="listing-images-"))

from fastapi.testclient import TestClient

from app.config import Settings, get_settings
from app.main import app
from app.services.auth import auth_service
from app.services.local_storage import ListingImageStorage


@pytest.fixture()
def settings(tmp_path):
    return Settings(uploads_dir=str(tmp_path / "uploads"))


@pytest.fixture()
def storage(settings):
    return ListingImageStorage(settings.listings_path, settings.public_url_prefix)


@pytest.fixture()
def client(settings):
    app.dependency_overrides[get_settings] = lambda: settings
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers():
    token, _ = auth_service.create_access_token("42", role="agent")
    return {"Authorization": f"Bearer {token}"}

