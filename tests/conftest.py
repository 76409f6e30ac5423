import os

os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from unittest.mock import MagicMock

import pytest
from bson import ObjectId

from storage import MediaStorage
from video_service import VideoService


@pytest.fixture
def mock_db() -> MagicMock:
    """A pymongo Database double handing out one MagicMock per collection name."""
    collections = {}
    db = MagicMock()
    db.__getitem__.side_effect = lambda name: collections.setdefault(name, MagicMock(name=name))
    return db


@pytest.fixture
def mock_storage() -> MagicMock:
    storage = MagicMock(spec=MediaStorage)
    storage.upload.side_effect = lambda path, probe=False: {
        "url": f"https://cdn.example.com/{os.path.basename(path)}",
        "public_id": os.path.basename(path),
        "duration": 12.5 if probe else None,
    }
    storage.delete.return_value = True
    return storage


@pytest.fixture
def service(mock_db, mock_storage) -> VideoService:
    return VideoService(mock_db, mock_storage)


@pytest.fixture
def owner_id() -> ObjectId:
    return ObjectId()


@pytest.fixture
def make_video(owner_id):
    def _make(**overrides):
        doc = {
            "_id": ObjectId(),
            "title": "Cats",
            "description": "Cats doing things",
            "duration": 12.5,
            "videoFile": {"url": "https://cdn.example.com/v.mp4", "public_id": "video/v.mp4"},
            "thumbnail": {"url": "https://cdn.example.com/t.jpg", "public_id": "image/t.jpg"},
            "views": 3,
            "isPublished": False,
            "owner": owner_id,
        }
        doc.update(overrides)
        return doc

    return _make
