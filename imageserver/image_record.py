"""
ImageRecord - Metadata for one uploaded image, plus the result shapes
returned to callers.
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional


def _parse_datetime(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass
class ImageRecord:
    """
    Record for a single uploaded image.

    Attributes:
        id: Unique identifier assigned at upload
        original_blob_key: Object store key of the unmodified original
        original_file_name: File name supplied by the uploader
        content_type: MIME type of the original
        file_extension: Normalized extension of the original (e.g. '.png')
        width: Pixel width of the original
        height: Pixel height of the original
        size_bytes: Size of the original in bytes
        uploaded_at: UTC time of the first upload
        updated_at: UTC time of the last replacement, if any
        is_compressed: Reserved, always False
        compression_type: Reserved, always None
    """
    id: str
    original_blob_key: str
    original_file_name: str
    content_type: str
    file_extension: str
    width: int
    height: int
    size_bytes: int
    uploaded_at: datetime
    updated_at: Optional[datetime] = None
    is_compressed: bool = False
    compression_type: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data['uploaded_at'] = self.uploaded_at.isoformat() if self.uploaded_at else None
        data['updated_at'] = self.updated_at.isoformat() if self.updated_at else None
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'ImageRecord':
        """Create from dictionary."""
        return cls(
            id=data['id'],
            original_blob_key=data['original_blob_key'],
            original_file_name=data['original_file_name'],
            content_type=data['content_type'],
            file_extension=data['file_extension'],
            width=int(data['width']),
            height=int(data['height']),
            size_bytes=int(data['size_bytes']),
            uploaded_at=_parse_datetime(data['uploaded_at']),
            updated_at=_parse_datetime(data.get('updated_at')),
            is_compressed=bool(data.get('is_compressed', False)),
            compression_type=data.get('compression_type'),
        )

    @property
    def file_stem(self) -> str:
        """Original file name without its extension, falling back to the id."""
        name = self.original_file_name or self.id
        stem, _, _ = name.rpartition('.')
        return stem or name


@dataclass
class UploadResult:
    """Outcome of an upload or replacement."""
    id: str
    path: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ImageDownload:
    """Bytes to stream back to a client, with naming metadata."""
    data: bytes
    content_type: str
    file_name: str


@dataclass
class ResizedImageUrl:
    """Location of a height-targeted artifact."""
    image_id: str
    height: int
    url: Optional[str] = None
    path: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)
