"""Tests for LocalClient class."""

import os

import pytest

from imageserver.exceptions import BlobNotFoundError
from imageserver.local_client import LocalClient


class TestLocalClient:
    """Tests for LocalClient class."""

    @pytest.fixture
    def client(self, tmp_path, logger):
        return LocalClient(str(tmp_path / 'store'), logger=logger)

    def test_creates_root(self, tmp_path):
        """Test the root directory is created on init."""
        LocalClient(str(tmp_path / 'new_root'))

        assert (tmp_path / 'new_root').is_dir()

    def test_upload_and_download(self, client):
        """Test a blob round trips through the filesystem."""
        client.upload_object('original/abc.png', b'data', 'image/png')

        assert client.object_exists('original/abc.png')
        assert client.download_object('original/abc.png') == b'data'

    def test_upload_overwrites(self, client):
        """Test uploading to an existing key replaces it."""
        client.upload_object('resized/abc_10w.png', b'one')
        client.upload_object('resized/abc_10w.png', b'two')

        assert client.download_object('resized/abc_10w.png') == b'two'

    def test_upload_leaves_no_temp_files(self, client):
        """Test the temporary file is renamed into place."""
        client.upload_object('resized/abc_10w.png', b'data')

        assert os.listdir(os.path.join(client.root_path, 'resized')) == ['abc_10w.png']

    def test_missing_object(self, client):
        """Test missing keys report False and raise on download."""
        assert client.object_exists('original/missing.png') is False
        with pytest.raises(BlobNotFoundError):
            client.download_object('original/missing.png')

    def test_delete(self, client):
        """Test delete removes the blob and tolerates repeats."""
        client.upload_object('original/abc.png', b'data')

        client.delete_object('original/abc.png')
        client.delete_object('original/abc.png')

        assert client.object_exists('original/abc.png') is False

    def test_list_keys(self, client):
        """Test listing by prefix."""
        client.upload_object('resized/abc_10w.png', b'1')
        client.upload_object('resized/abc_20h.png', b'2')
        client.upload_object('resized/abd_10w.png', b'3')
        client.upload_object('original/abc.png', b'4')

        assert client.list_keys('resized/abc_') == ['resized/abc_10w.png', 'resized/abc_20h.png']

    def test_list_keys_missing_directory(self, client):
        """Test listing an absent directory returns nothing."""
        assert client.list_keys('resized/abc_') == []

    def test_key_cannot_escape_root(self, client):
        """Test keys resolving outside the root are rejected."""
        with pytest.raises(ValueError):
            client.upload_object('../outside.png', b'data')

    def test_get_url(self, client):
        """Test local blobs have no URL."""
        assert client.get_url('original/abc.png') is None
