"""
LocalClient - Filesystem object store with the same interface as S3Client.
"""

import logging
import os
import tempfile
from typing import List, Optional

from .exceptions import BlobNotFoundError


class LocalClient:
    """
    Stores blobs as files under a root directory, one file per key.
    """

    def __init__(self, root_path: str, logger: Optional[logging.Logger] = None):
        """
        Initialize local client.

        Args:
            root_path: Directory under which keys are stored
            logger: Optional logger instance
        """
        self.root_path = os.path.abspath(root_path)
        self.logger = logger or logging.getLogger(__name__)
        os.makedirs(self.root_path, exist_ok=True)

    def _path(self, key: str) -> str:
        path = os.path.abspath(os.path.join(self.root_path, key.lstrip('/')))
        if os.path.commonpath([path, self.root_path]) != self.root_path:
            raise ValueError(f"Key escapes storage root: {key}")
        return path

    def object_exists(self, key: str) -> bool:
        return os.path.isfile(self._path(key))

    def download_object(self, key: str) -> bytes:
        path = self._path(key)
        try:
            with open(path, 'rb') as f:
                return f.read()
        except FileNotFoundError as e:
            raise BlobNotFoundError(key) from e

    def upload_object(
        self,
        key: str,
        data: bytes,
        content_type: str = 'application/octet-stream'
    ) -> None:
        """Write a blob; the rename keeps readers from seeing partial files."""
        path = self._path(key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=os.path.dirname(path), prefix='.upload_')
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def delete_object(self, key: str) -> None:
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            pass

    def list_keys(self, prefix: str) -> List[str]:
        """List keys starting with prefix."""
        prefix = prefix.lstrip('/')
        directory = os.path.dirname(self._path(prefix)) if '/' in prefix else self.root_path
        if not os.path.isdir(directory):
            return []

        keys = []
        for dirpath, _, filenames in os.walk(directory):
            for name in filenames:
                if name.startswith('.upload_'):
                    continue
                rel = os.path.relpath(os.path.join(dirpath, name), self.root_path).replace(os.sep, '/')
                if rel.startswith(prefix):
                    keys.append(rel)
        return sorted(keys)

    def get_url(self, key: str) -> Optional[str]:
        """Local blobs have no externally reachable URL."""
        return None
