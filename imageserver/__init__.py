"""
Image server: upload images, keep originals in object storage and metadata
in MySQL, and serve resized renderings generated on demand.
"""

__version__ = "1.0.0"

from .settings import Settings
from .s3_client import S3Client
from .local_client import LocalClient
from .image_db import ImageDb
from .image_record import ImageRecord, ImageDownload, UploadResult, ResizedImageUrl
from .memory_cache import MemoryCache, CacheEntryOptions, CachePriority
from .resize_engine import ResizeEngine
from .background import BackgroundGenerator
from .generation_result import GenerationResult
from .image_service import ImageService

__all__ = [
    "Settings",
    "S3Client",
    "LocalClient",
    "ImageDb",
    "ImageRecord",
    "ImageDownload",
    "UploadResult",
    "ResizedImageUrl",
    "MemoryCache",
    "CacheEntryOptions",
    "CachePriority",
    "ResizeEngine",
    "BackgroundGenerator",
    "GenerationResult",
    "ImageService",
]
