"""Pytest configuration and shared fixtures."""

import io
import uuid

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from app import config as app_config
from app.main import app
from app.staging import StagedFile


def image_bytes(fmt="PNG", size=(64, 48), mode="RGB", color=(200, 30, 30)):
    """Encode a solid-color test image."""
    img = Image.new(mode, size, color if mode != "L" else 128)
    out = io.BytesIO()
    img.save(out, format=fmt)
    return out.getvalue()


@pytest.fixture
def make_image():
    return image_bytes


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    """Point the staging directory at an empty temp dir."""
    directory = tmp_path / "uploads"
    directory.mkdir()
    monkeypatch.setattr(app_config, "UPLOAD_DIR", directory)
    return directory


@pytest.fixture
def client(upload_dir):
    return TestClient(app)


@pytest.fixture
def stage(upload_dir):
    """Write bytes into the staging directory the way an upload would."""
    counter = {"index": 0}

    def _stage(name, data, content_type=None):
        path = upload_dir / f"{uuid.uuid4().hex}{'.' + name.rsplit('.', 1)[-1] if '.' in name else ''}"
        path.write_bytes(data)
        staged = StagedFile(
            original_name=name,
            path=path,
            content_type=content_type,
            size=len(data),
            index=counter["index"],
        )
        counter["index"] += 1
        return staged

    return _stage


def staged_paths(directory):
    return sorted(p.name for p in directory.iterdir())
