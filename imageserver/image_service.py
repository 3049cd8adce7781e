"""
ImageService - Uploads, metadata lookups and on-demand resized artifacts.

Originals live in the object store under ``original/<id><ext>``; resized
renderings live under ``resized/<id>_<suffix>.png`` and are generated the
first time they are asked for. Record lookups and blob existence checks are
fronted by a MemoryCache which is never authoritative: every miss falls
through to the stores.

Two requests racing for the same missing artifact may both generate and
upload it. The last upload wins, and since both render the same input the
overwrite is harmless.
"""

import dataclasses
import logging
import os
import time
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from .background import BackgroundGenerator
from .exceptions import BlobNotFoundError, GenerationError, ValidationError
from .generation_result import GenerationResult
from .image_record import ImageDownload, ImageRecord, ResizedImageUrl, UploadResult
from .memory_cache import CacheEntryOptions, CachePriority, MemoryCache
from .resize_engine import ResizeEngine
from .resolutions import (
    ARTIFACT_CONTENT_TYPE,
    ARTIFACT_EXTENSION,
    ORIGINAL,
    PREDEFINED_RESOLUTIONS,
    artifact_key,
    artifact_prefix,
    available_resolutions,
    candidate_artifact_keys,
    dimension_suffix,
    exists_cache_key,
    fits,
    get_resolution,
    metadata_cache_key,
    original_key,
    thumbnail_target,
)
from .settings import Settings

ALLOWED_EXTENSIONS = ('.jpg', '.jpeg', '.png', '.gif', '.bmp', '.webp')
DEFAULT_EXTENSION = '.png'


def utcnow() -> datetime:
    """Naive UTC timestamp, as stored in DATETIME columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_extension(file_name: Optional[str]) -> str:
    """Lower-cased extension of file_name, or '.png' if missing or unsupported."""
    extension = os.path.splitext(file_name or '')[1].lower()
    if extension not in ALLOWED_EXTENSIONS:
        return DEFAULT_EXTENSION
    return extension


class ImageService:
    """
    Coordinates the object store, metadata store, cache and resize engine.
    """

    def __init__(
        self,
        object_store,
        image_db,
        cache: MemoryCache,
        resize_engine: Optional[ResizeEngine] = None,
        background: Optional[BackgroundGenerator] = None,
        settings: Optional[Settings] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the service.

        Args:
            object_store: S3Client or LocalClient
            image_db: Metadata store (ImageDb)
            cache: Shared cache for records and existence flags
            resize_engine: Resize engine, a default one is created if omitted
            background: Pool for fire-and-forget generation; without one,
                opportunistic generation is skipped
            settings: Cache lifetimes and pre-generation lists
            logger: Optional logger instance
        """
        self.store = object_store
        self.image_db = image_db
        self.cache = cache
        self.logger = logger or logging.getLogger(__name__)
        self.engine = resize_engine or ResizeEngine(logger=self.logger)
        self.background = background
        self.settings = settings or Settings()
        self._stop_requested = False

    # --- Cache helpers --------------------------------------------------------

    def _metadata_options(self, priority: CachePriority = CachePriority.NORMAL) -> CacheEntryOptions:
        return CacheEntryOptions(
            sliding_seconds=self.settings.metadata_cache_sliding_seconds,
            priority=priority
        )

    def _existence_options(self) -> CacheEntryOptions:
        return CacheEntryOptions(
            absolute_seconds=self.settings.existence_cache_seconds,
            priority=CachePriority.LOW
        )

    def _cache_record(self, record: ImageRecord, priority: CachePriority = CachePriority.NORMAL) -> None:
        self.cache.set(metadata_cache_key(record.id), record, self._metadata_options(priority))

    def _mark_exists(self, blob_key: str, exists: bool) -> None:
        self.cache.set(exists_cache_key(blob_key), exists, self._existence_options())

    def _artifact_exists(self, blob_key: str) -> bool:
        """Existence check fronted by a short-lived cache entry."""
        exists, found = self.cache.try_get(exists_cache_key(blob_key))
        if found:
            self.logger.debug(f"Existence cache hit: {blob_key} -> {exists}")
            return exists
        exists = self.store.object_exists(blob_key)
        self._mark_exists(blob_key, exists)
        return exists

    def _invalidate(self, image_id: str, blob_keys) -> None:
        """Remove the record and the existence flags of blob_keys from the cache."""
        self.cache.remove(metadata_cache_key(image_id))
        for key in set(blob_keys):
            self.cache.remove(exists_cache_key(key))

    # --- Metadata -------------------------------------------------------------

    def get_image(self, image_id: str) -> Optional[ImageRecord]:
        """Read-through record lookup."""
        record, found = self.cache.try_get(metadata_cache_key(image_id))
        if found:
            self.logger.debug(f"Metadata cache hit: {image_id}")
            return record

        record = self.image_db.get_by_id(image_id)
        if record is not None:
            self._cache_record(record)
        return record

    def get_all_images(self) -> List[ImageRecord]:
        return self.image_db.get_all()

    # --- Upload / replace / delete --------------------------------------------

    def _measure_upload(self, data: bytes):
        if not data:
            raise ValidationError("File is empty or null")
        return self.engine.measure(data)

    def upload_image(
        self,
        data: bytes,
        file_name: Optional[str] = None,
        content_type: Optional[str] = None
    ) -> UploadResult:
        """
        Store a new original and create its record.

        Raises:
            ValidationError: If data is empty or not an image
        """
        width, height = self._measure_upload(data)

        image_id = str(uuid.uuid4())
        extension = normalize_extension(file_name)
        blob_key = original_key(image_id, extension)

        self.store.upload_object(blob_key, data, content_type or self.engine.get_content_type(extension))
        self._mark_exists(blob_key, True)

        record = ImageRecord(
            id=image_id,
            original_blob_key=blob_key,
            original_file_name=file_name or f"image_{image_id}{extension}",
            content_type=content_type or self.engine.get_content_type(extension),
            file_extension=extension,
            width=width,
            height=height,
            size_bytes=len(data),
            uploaded_at=utcnow(),
        )
        self.image_db.add(record)
        self._cache_record(record, CachePriority.HIGH)

        self.logger.info(f"Uploaded {record.original_file_name} as {image_id} ({width}x{height}, {len(data)} bytes)")
        self._schedule_generation(image_id, self.settings.pregenerate_on_upload, 'upload')

        return UploadResult(id=image_id, path=blob_key)

    def update_image(
        self,
        image_id: str,
        data: bytes,
        file_name: Optional[str] = None,
        content_type: Optional[str] = None
    ) -> Optional[UploadResult]:
        """
        Replace an image's original. Old derived artifacts are deleted once
        the new original and record are stored; if either write fails the old
        version is left in place.

        Returns:
            UploadResult, or None if the image does not exist

        Raises:
            ValidationError: If data is empty or not an image
        """
        existing = self.image_db.get_by_id(image_id)
        if existing is None:
            return None

        width, height = self._measure_upload(data)
        extension = normalize_extension(file_name)
        blob_key = original_key(image_id, extension)
        key_changed = blob_key != existing.original_blob_key

        self.store.upload_object(blob_key, data, content_type or self.engine.get_content_type(extension))

        record = dataclasses.replace(
            existing,
            original_blob_key=blob_key,
            original_file_name=file_name or existing.original_file_name,
            content_type=content_type or self.engine.get_content_type(extension),
            file_extension=extension,
            width=width,
            height=height,
            size_bytes=len(data),
            updated_at=utcnow(),
        )
        try:
            self.image_db.update(record)
        except Exception:
            if key_changed:
                self._delete_quietly(blob_key)
            raise

        removed = self._delete_blobs(existing, include_original=key_changed)
        self._invalidate(image_id, removed + [existing.original_blob_key, blob_key])
        self._cache_record(record, CachePriority.HIGH)
        self._mark_exists(blob_key, True)

        self.logger.info(f"Replaced original of {image_id} ({width}x{height})")
        return UploadResult(id=image_id, path=blob_key)

    def delete_image(self, image_id: str) -> bool:
        """
        Delete an image's record, original and derived blobs.

        Returns:
            True if the image existed
        """
        record = self.image_db.get_by_id(image_id)
        if record is None:
            self.cache.remove(metadata_cache_key(image_id))
            return False

        removed = self._delete_blobs(record)
        self.image_db.delete(image_id)
        self._invalidate(image_id, removed)

        self.logger.info(f"Deleted image {image_id} ({len(removed)} blob keys cleared)")
        return True

    def _delete_blobs(self, record: ImageRecord, include_original: bool = True) -> List[str]:
        """
        Delete every derived blob, and the original unless include_original
        is False. Failures are logged and ignored.

        Returns:
            Every key a delete was attempted for
        """
        keys = [record.original_blob_key] if include_original else []
        keys.extend(candidate_artifact_keys(record.id))
        try:
            listed = self.store.list_keys(artifact_prefix(record.id))
        except Exception as e:
            self.logger.warning(f"Could not list artifacts of {record.id}: {e}")
            listed = []
        keys.extend(key for key in listed if key not in keys)

        for key in keys:
            self._delete_quietly(key)
        return keys

    def _delete_quietly(self, key: str) -> None:
        try:
            self.store.delete_object(key)
        except Exception as e:
            self.logger.warning(f"Could not delete blob {key}: {e}")

    # --- Downloads ------------------------------------------------------------

    def download_image(self, image_id: str) -> Optional[ImageDownload]:
        """Original bytes of an image, or None if it or its blob is missing."""
        record = self.get_image(image_id)
        if record is None:
            return None

        try:
            data = self.store.download_object(record.original_blob_key)
        except BlobNotFoundError:
            self.logger.warning(f"Original blob missing for {image_id}: {record.original_blob_key}")
            return None

        return ImageDownload(
            data=data,
            content_type=record.content_type or 'image/png',
            file_name=record.original_file_name or f"{image_id}.png"
        )

    def download_image_with_resolution(self, image_id: str, resolution: str) -> Optional[ImageDownload]:
        """
        Download by catalog name; 'original' is an alias for download_image.
        """
        if resolution and resolution.lower() == ORIGINAL:
            return self.download_image(image_id)

        target = get_resolution(resolution)
        if target is None:
            return None

        record = self.get_image(image_id)
        if record is None:
            return None

        width, height = target
        return self._serve_artifact(record, width, height, f"{record.file_stem}_{resolution.lower()}{ARTIFACT_EXTENSION}")

    def get_resized_image(
        self,
        image_id: str,
        width: Optional[int] = None,
        height: Optional[int] = None
    ) -> Optional[ImageDownload]:
        """
        Resized rendering of an image, generated on first request.

        With one dimension the aspect ratio is preserved; with both the
        output is exactly width x height.

        Returns:
            ImageDownload, or None if the image is unknown, the target is
            larger than the original, or generation failed
        """
        if width is None and height is None:
            return None
        if (width is not None and width <= 0) or (height is not None and height <= 0):
            return None

        record = self.get_image(image_id)
        if record is None:
            return None

        if not fits(width, height, record.width, record.height):
            self.logger.debug(f"Rejected {width}x{height} for {image_id}: exceeds {record.width}x{record.height}")
            return None

        suffix = dimension_suffix(width, height)
        return self._serve_artifact(record, width, height, f"{record.file_stem}_{suffix}{ARTIFACT_EXTENSION}")

    def _serve_artifact(
        self,
        record: ImageRecord,
        width: Optional[int],
        height: Optional[int],
        file_name: str
    ) -> Optional[ImageDownload]:
        if not fits(width, height, record.width, record.height):
            return None

        key = artifact_key(record.id, width, height)
        try:
            data = self._read_or_generate(record, width, height, key)
        except Exception as e:
            self.logger.error(f"Could not serve {key}: {e}")
            return None

        if (width is None) != (height is None) and (width or height) == thumbnail_target():
            self._schedule_generation(record.id, self.settings.background_resolutions, 'thumbnail follow-up')

        return ImageDownload(data=data, content_type=ARTIFACT_CONTENT_TYPE, file_name=file_name)

    def _read_or_generate(self, record: ImageRecord, width, height, key: str) -> bytes:
        if not self._artifact_exists(key):
            self._generate_artifact(record, width, height, key)
        try:
            return self.store.download_object(key)
        except BlobNotFoundError:
            self.logger.info(f"Stale existence flag for {key}, regenerating")
            self._generate_artifact(record, width, height, key)
            return self.store.download_object(key)

    def _generate_artifact(self, record: ImageRecord, width: Optional[int], height: Optional[int], key: str) -> None:
        """
        Render and store one artifact.

        Raises:
            GenerationError: If the original cannot be read, resized or the
                result cannot be stored
        """
        try:
            original = self.store.download_object(record.original_blob_key)
            data, new_width, new_height = self.engine.resize(original, width, height)
            self.store.upload_object(key, data, ARTIFACT_CONTENT_TYPE)
        except Exception as e:
            self._mark_exists(key, False)
            raise GenerationError(f"Failed to generate resized image: {e}") from e

        self._mark_exists(key, True)
        self.logger.info(f"Generated {key} ({new_width}x{new_height}, {len(data)} bytes)")

    def get_resized_image_url(self, image_id: str, height: int) -> Optional[ResizedImageUrl]:
        """
        Ensure the height-targeted artifact exists and report where it lives.

        Returns:
            ResizedImageUrl (with error set for invalid heights), or None if
            the image is unknown
        """
        record = self.get_image(image_id)
        if record is None:
            return None

        result = ResizedImageUrl(image_id=image_id, height=height)
        if height <= 0:
            result.error = "Requested height must be positive."
            return result
        if height > record.height:
            result.error = "Requested height cannot be greater than original image height."
            return result

        key = artifact_key(image_id, height=height)
        try:
            if not self._artifact_exists(key):
                self._generate_artifact(record, None, height, key)
        except GenerationError as e:
            self.logger.error(f"Could not generate {key}: {e}")
            result.error = "Could not generate resized image."
            return result

        result.path = key
        result.url = self.store.get_url(key)
        return result

    # --- Catalog --------------------------------------------------------------

    def get_available_resolutions(self, image_id: str) -> Optional[List[str]]:
        record = self.get_image(image_id)
        if record is None:
            return None
        return available_resolutions(record.width, record.height)

    def generate_predefined_resolutions(self, image_id: str) -> Optional[GenerationResult]:
        """
        Generate every catalog size that fits and is missing.

        A failing resolution is recorded and does not stop the others.

        Returns:
            GenerationResult, or None if the image is unknown
        """
        record = self.get_image(image_id)
        if record is None:
            return None

        result = GenerationResult(image_id=image_id)
        for name, (width, height) in PREDEFINED_RESOLUTIONS.items():
            if not fits(width, height, record.width, record.height):
                result.add_skipped(name, "exceeds original dimensions")
                continue

            key = artifact_key(image_id, width, height)
            try:
                if self._artifact_exists(key):
                    result.add_skipped(name, "already exists")
                    continue
                self._generate_artifact(record, width, height, key)
                result.add_generated(name)
            except Exception as e:
                self.logger.error(f"Error generating {name} for {image_id}: {e}")
                result.add_skipped(name, f"error: {e}")

        self.logger.info(
            f"Generated {len(result.generated)} resolutions for {image_id}, "
            f"skipped {len(result.skipped)} ({result.elapsed_seconds:.1f}s)"
        )
        return result

    def stop(self) -> None:
        """Request generate_all_predefined_resolutions to stop after the current image."""
        self._stop_requested = True

    def generate_all_predefined_resolutions(
        self,
        cadence: float = 0.0,
        limit: Optional[int] = None
    ) -> List[GenerationResult]:
        """
        Run generate_predefined_resolutions for every stored image.

        Args:
            cadence: Seconds to sleep between images
            limit: Optional maximum number of images to process
        """
        results = []
        for record in self.image_db.get_all():
            if self._stop_requested:
                self.logger.info("Stop requested, halting generation")
                break
            if limit and len(results) >= limit:
                break

            result = self.generate_predefined_resolutions(record.id)
            if result is not None:
                results.append(result)

            if cadence > 0:
                time.sleep(cadence)
        return results

    # --- Background -----------------------------------------------------------

    def _schedule_generation(self, image_id: str, names: List[str], reason: str) -> None:
        """Fire-and-forget generation of catalog names; never raises."""
        if not names or self.background is None:
            return
        self.background.submit(
            f"{reason} {','.join(names)} for {image_id}",
            self._generate_named, image_id, list(names)
        )

    def _generate_named(self, image_id: str, names: List[str]) -> None:
        record = self.get_image(image_id)
        if record is None:
            self.logger.debug(f"Image {image_id} vanished before background generation")
            return

        for name in names:
            target = get_resolution(name)
            if target is None:
                self.logger.warning(f"Unknown resolution in background list: {name}")
                continue
            width, height = target
            if not fits(width, height, record.width, record.height):
                continue

            key = artifact_key(image_id, width, height)
            try:
                if not self._artifact_exists(key):
                    self._generate_artifact(record, width, height, key)
            except Exception as e:
                self.logger.error(f"Background generation of {name} for {image_id} failed: {e}")
