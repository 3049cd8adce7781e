"""
Pytest fixtures for imageserver tests.
"""

import collections
import dataclasses
import io
import logging

import pytest
from PIL import Image

from imageserver.exceptions import BlobNotFoundError


class FakeObjectStore:
    """Dict backed object store that counts calls."""

    def __init__(self):
        self.blobs = {}
        self.put_counts = collections.Counter()
        self.exists_calls = collections.Counter()

    def upload_object(self, key, data, content_type='application/octet-stream'):
        self.blobs[key] = data
        self.put_counts[key] += 1

    def download_object(self, key):
        try:
            return self.blobs[key]
        except KeyError:
            raise BlobNotFoundError(key)

    def object_exists(self, key):
        self.exists_calls[key] += 1
        return key in self.blobs

    def delete_object(self, key):
        self.blobs.pop(key, None)

    def list_keys(self, prefix):
        return sorted(key for key in self.blobs if key.startswith(prefix))

    def get_url(self, key):
        return f"https://storage.example.com/{key}"


class FakeImageDb:
    """In-memory metadata store that hands out copies like a real database."""

    def __init__(self):
        self.records = {}
        self.get_calls = 0

    def get_by_id(self, image_id):
        self.get_calls += 1
        record = self.records.get(image_id)
        return dataclasses.replace(record) if record else None

    def get_all(self):
        return [dataclasses.replace(r) for r in self.records.values()]

    def add(self, record):
        self.records[record.id] = dataclasses.replace(record)

    def update(self, record):
        self.records[record.id] = dataclasses.replace(record)

    def delete(self, image_id):
        self.records.pop(image_id, None)


class ImmediateBackground:
    """Runs submitted jobs inline and swallows their errors."""

    def __init__(self):
        self.submitted = []

    def submit(self, description, func, *args, **kwargs):
        self.submitted.append(description)
        try:
            func(*args, **kwargs)
        except Exception as e:
            logging.getLogger('test').error(f"{description}: {e}")
        return None

    def shutdown(self, wait=False):
        pass


@pytest.fixture
def make_image():
    """Fixture returning a factory for encoded test images."""
    def _make(width=800, height=600, fmt='PNG', mode='RGB', color='red'):
        img = Image.new(mode, (width, height), color=color)
        buffer = io.BytesIO()
        img.save(buffer, format=fmt)
        return buffer.getvalue()
    return _make


@pytest.fixture
def sample_png_bytes(make_image):
    """Fixture providing an 800x600 PNG."""
    return make_image(800, 600)


@pytest.fixture
def object_store():
    return FakeObjectStore()


@pytest.fixture
def image_db():
    return FakeImageDb()


@pytest.fixture
def background():
    return ImmediateBackground()


@pytest.fixture
def logger():
    """Fixture providing a logger."""
    return logging.getLogger('test')


@pytest.fixture
def settings():
    """Settings with on-upload pre-generation disabled."""
    from imageserver.settings import Settings

    return Settings(pregenerate_on_upload=[])


@pytest.fixture
def service(object_store, image_db, settings, logger):
    """ImageService over in-memory fakes, without a background pool."""
    from imageserver.image_service import ImageService
    from imageserver.memory_cache import MemoryCache

    return ImageService(
        object_store=object_store,
        image_db=image_db,
        cache=MemoryCache(),
        settings=settings,
        logger=logger,
    )


@pytest.fixture
def service_with_background(object_store, image_db, background, logger):
    """ImageService whose background jobs run inline, with default settings."""
    from imageserver.image_service import ImageService
    from imageserver.memory_cache import MemoryCache
    from imageserver.settings import Settings

    return ImageService(
        object_store=object_store,
        image_db=image_db,
        cache=MemoryCache(),
        background=background,
        settings=Settings(),
        logger=logger,
    )


def image_size(data):
    with Image.open(io.BytesIO(data)) as img:
        return img.size


@pytest.fixture
def size_of():
    """Fixture returning a helper that decodes bytes to (width, height)."""
    return image_size
