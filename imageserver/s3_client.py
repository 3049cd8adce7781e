"""
S3Client - S3/MinIO object store for originals and resized artifacts.
"""

import logging
from typing import List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from .exceptions import BlobNotFoundError
from .settings import Settings

_MISSING_CODES = ('404', 'NoSuchKey', 'NotFound')


class S3Client:
    """
    Wrapper for S3/MinIO operations.

    Keys passed in are relative; the configured prefix is applied here so the
    rest of the server never sees it.
    """

    def __init__(self, settings: Settings, logger: Optional[logging.Logger] = None):
        """
        Initialize S3 client.

        Args:
            settings: Server settings carrying the S3 connection details
            logger: Optional logger instance
        """
        self.bucket = settings.s3_bucket
        self.prefix = (settings.s3_prefix or '').strip('/')
        self.url_expiry = settings.s3_url_expiry
        self.logger = logger or logging.getLogger(__name__)

        self._client = boto3.client(
            's3',
            endpoint_url=settings.s3_endpoint,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
            region_name=settings.s3_region,
            config=Config(
                signature_version='s3v4',
                s3={'addressing_style': 'path'}
            ),
            verify=settings.s3_verify_ssl
        )

    @property
    def client(self):
        """Return the underlying boto3 client."""
        return self._client

    def s3_key(self, key: str) -> str:
        """Normalize a relative key into a full S3 object key."""
        key = key.lstrip('/')
        return f"{self.prefix}/{key}" if self.prefix else key

    def ensure_bucket(self) -> None:
        """Create the bucket if it does not exist yet."""
        try:
            self._client.head_bucket(Bucket=self.bucket)
        except ClientError as e:
            if e.response['Error']['Code'] in ('404', 'NoSuchBucket'):
                self.logger.info(f"Creating bucket {self.bucket}")
                self._client.create_bucket(Bucket=self.bucket)
            else:
                raise

    def object_exists(self, key: str) -> bool:
        """Check if an object exists in S3."""
        try:
            self._client.head_object(Bucket=self.bucket, Key=self.s3_key(key))
            return True
        except ClientError as e:
            if e.response['Error']['Code'] in _MISSING_CODES:
                return False
            raise

    def download_object(self, key: str) -> bytes:
        """
        Download an object from S3.

        Raises:
            BlobNotFoundError: If the key does not exist
        """
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=self.s3_key(key))
        except ClientError as e:
            if e.response['Error']['Code'] in _MISSING_CODES:
                raise BlobNotFoundError(key) from e
            raise
        return response['Body'].read()

    def upload_object(
        self,
        key: str,
        data: bytes,
        content_type: str = 'application/octet-stream'
    ) -> None:
        """Upload an object to S3, overwriting any existing object."""
        self._client.put_object(
            Bucket=self.bucket,
            Key=self.s3_key(key),
            Body=data,
            ContentType=content_type
        )

    def delete_object(self, key: str) -> None:
        """Delete an object; deleting a missing key is not an error."""
        try:
            self._client.delete_object(Bucket=self.bucket, Key=self.s3_key(key))
        except ClientError as e:
            if e.response['Error']['Code'] not in _MISSING_CODES:
                raise

    def list_keys(self, prefix: str) -> List[str]:
        """List relative keys starting with prefix."""
        full_prefix = self.s3_key(prefix)
        strip = len(self.prefix) + 1 if self.prefix else 0

        keys = []
        paginator = self._client.get_paginator('list_objects_v2')
        for page in paginator.paginate(Bucket=self.bucket, Prefix=full_prefix):
            for obj in page.get('Contents', []):
                keys.append(obj['Key'][strip:])
        return keys

    def get_url(self, key: str) -> Optional[str]:
        """Generate a pre-signed GET URL for an object."""
        return self._client.generate_presigned_url(
            'get_object',
            Params={'Bucket': self.bucket, 'Key': self.s3_key(key)},
            ExpiresIn=self.url_expiry
        )
