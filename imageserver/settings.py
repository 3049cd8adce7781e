"""
Settings - Environment driven configuration for the image server.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from .resolutions import PREDEFINED_RESOLUTIONS


def str2bool(value, raise_exc=False):
    """converts diverse string values into boolean True or False."""
    true_set = {'yes', 'true', 't', 'y', '1'}
    false_set = {'no', 'false', 'f', 'n', '0'}

    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        value = value.lower()
        if value in true_set:
            return True
        if value in false_set:
            return False

    if raise_exc:
        raise ValueError('Expected "%s"' % '", "'.join(true_set | false_set))
    return None


def _split_names(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [name.strip().lower() for name in value.split(',') if name.strip()]


@dataclass
class Settings:
    """
    Runtime configuration.

    Attributes:
        storage_backend: 's3' or 'local'
        s3_*: S3/MinIO connection details (used when storage_backend is 's3')
        local_root: Root directory for the local object store
        sql_*: MySQL connection details for the metadata store
        metadata_cache_sliding_seconds: Sliding expiration for cached records
        existence_cache_seconds: Absolute expiration for blob existence flags
        cache_size_limit: Maximum number of cache entries before eviction
        background_workers: Size of the background generation pool
        pregenerate_on_upload: Catalog names generated after each upload
        background_resolutions: Catalog names generated after a thumbnail request
    """
    storage_backend: str = 'local'
    s3_endpoint: Optional[str] = None
    s3_bucket: Optional[str] = None
    s3_prefix: str = ''
    s3_access_key: Optional[str] = None
    s3_secret_key: Optional[str] = None
    s3_region: Optional[str] = None
    s3_url_expiry: int = 3600
    s3_verify_ssl: bool = True
    local_root: str = './attachments'

    sql_host: str = 'localhost'
    sql_port: int = 3306
    sql_user: str = 'imageserver'
    sql_password: str = ''
    sql_database: str = 'images'
    sql_pool_size: int = 8

    metadata_cache_sliding_seconds: int = 600
    existence_cache_seconds: int = 120
    cache_size_limit: int = 10000

    background_workers: int = 2
    pregenerate_on_upload: List[str] = field(default_factory=lambda: ['thumbnail'])
    background_resolutions: List[str] = field(default_factory=lambda: ['small', 'medium'])

    port: int = 8080
    server: str = 'wsgiref'
    debug_app: bool = False
    log_level: str = 'INFO'
    max_upload_bytes: int = 300 * 1024 * 1024

    @classmethod
    def from_env(cls) -> 'Settings':
        """Create settings from environment variables."""
        s3_endpoint = os.getenv('S3_ENDPOINT') or None
        default_backend = 's3' if s3_endpoint else 'local'
        return cls(
            storage_backend=os.getenv('STORAGE_BACKEND', default_backend).lower(),
            s3_endpoint=s3_endpoint,
            s3_bucket=os.getenv('S3_BUCKET'),
            s3_prefix=os.getenv('S3_PREFIX', ''),
            s3_access_key=os.getenv('S3_ACCESS_KEY'),
            s3_secret_key=os.getenv('S3_SECRET_KEY'),
            s3_region=os.getenv('S3_REGION'),
            s3_url_expiry=int(os.getenv('S3_URL_EXPIRY', '3600')),
            s3_verify_ssl=str2bool(os.getenv('S3_VERIFY_SSL', 'true'), raise_exc=True),
            local_root=os.getenv('LOCAL_ROOT', './attachments'),
            sql_host=os.getenv('SQL_HOST', 'localhost'),
            sql_port=int(os.getenv('SQL_PORT', '3306')),
            sql_user=os.getenv('SQL_USER', 'imageserver'),
            sql_password=os.getenv('SQL_PASSWORD', ''),
            sql_database=os.getenv('SQL_DATABASE', 'images'),
            sql_pool_size=int(os.getenv('SQL_POOL_SIZE', '8')),
            metadata_cache_sliding_seconds=int(os.getenv('METADATA_CACHE_SLIDING_SECONDS', '600')),
            existence_cache_seconds=int(os.getenv('EXISTENCE_CACHE_SECONDS', '120')),
            cache_size_limit=int(os.getenv('CACHE_SIZE_LIMIT', '10000')),
            background_workers=int(os.getenv('BACKGROUND_WORKERS', '2')),
            pregenerate_on_upload=_split_names(os.getenv('PREGENERATE_ON_UPLOAD', 'thumbnail')),
            background_resolutions=_split_names(os.getenv('BACKGROUND_RESOLUTIONS', 'small,medium')),
            port=int(os.getenv('PORT', '8080')),
            server=os.getenv('SERVER', 'wsgiref'),
            debug_app=str2bool(os.getenv('DEBUG_APP', 'false'), raise_exc=True),
            log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
            max_upload_bytes=int(os.getenv('MAX_UPLOAD_BYTES', str(300 * 1024 * 1024))),
        )

    def validate(self) -> List[str]:
        """
        Validate configuration.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []
        if self.storage_backend not in ('s3', 'local'):
            errors.append(f"STORAGE_BACKEND must be 's3' or 'local', got '{self.storage_backend}'")
        if self.storage_backend == 's3':
            if not self.s3_endpoint:
                errors.append("S3_ENDPOINT is required")
            if not self.s3_bucket:
                errors.append("S3_BUCKET is required")
            if not self.s3_access_key:
                errors.append("S3_ACCESS_KEY is required")
            if not self.s3_secret_key:
                errors.append("S3_SECRET_KEY is required")
        if self.storage_backend == 'local' and not self.local_root:
            errors.append("LOCAL_ROOT is required")
        if self.background_workers < 1:
            errors.append("BACKGROUND_WORKERS must be at least 1")
        if self.existence_cache_seconds <= 0 or self.metadata_cache_sliding_seconds <= 0:
            errors.append("Cache expirations must be positive")
        for name in self.pregenerate_on_upload + self.background_resolutions:
            if name not in PREDEFINED_RESOLUTIONS:
                errors.append(f"Unknown resolution name: {name}")
        return errors
