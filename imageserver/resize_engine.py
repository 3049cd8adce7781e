"""
ResizeEngine - Measures images and renders resized PNG artifacts.
"""

import io
import logging
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from .exceptions import ValidationError


def calculate_dimensions(
    original_width: int,
    original_height: int,
    target_width: Optional[int],
    target_height: Optional[int]
) -> Tuple[int, int]:
    """
    Calculate output dimensions.

    With one target the aspect ratio is preserved and the other dimension is
    truncated; with both targets they are used verbatim.
    """
    if target_width is not None and target_height is not None:
        return target_width, target_height

    aspect_ratio = original_width / original_height

    if target_width is not None:
        return target_width, int(target_width / aspect_ratio)

    if target_height is not None:
        return int(target_height * aspect_ratio), target_height

    return original_width, original_height


class ResizeEngine:
    """
    Decodes image bytes and produces resized renderings using Pillow.

    Artifacts are always encoded as PNG regardless of the original format.
    """

    OUTPUT_FORMAT = 'PNG'
    CONTENT_TYPE = 'image/png'

    CONTENT_TYPES = {
        '.jpg': 'image/jpeg',
        '.jpeg': 'image/jpeg',
        '.png': 'image/png',
        '.gif': 'image/gif',
        '.bmp': 'image/bmp',
        '.webp': 'image/webp',
    }

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def measure(self, image_data: bytes) -> Tuple[int, int]:
        """
        Fully decode image bytes and return (width, height). Truncated data
        and images over Pillow's pixel limit are rejected.

        Raises:
            ValidationError: If the bytes are not a decodable image
        """
        try:
            with Image.open(io.BytesIO(image_data)) as img:
                img.verify()
            with Image.open(io.BytesIO(image_data)) as img:
                img.load()
                return img.size
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError) as e:
            raise ValidationError(f"Not a valid image: {e}") from e

    def resize(
        self,
        image_data: bytes,
        target_width: Optional[int],
        target_height: Optional[int]
    ) -> Tuple[bytes, int, int]:
        """
        Render a resized copy of an image.

        Args:
            image_data: Original image as bytes
            target_width: Requested width, or None to derive it
            target_height: Requested height, or None to derive it

        Returns:
            Tuple of (png_bytes, width, height)
        """
        try:
            img = Image.open(io.BytesIO(image_data))
            img = self._convert_color_mode(img)
            new_width, new_height = calculate_dimensions(
                img.width, img.height, target_width, target_height
            )
            if new_width <= 0 or new_height <= 0:
                raise ValueError(f"Cannot resize {img.width}x{img.height} to {new_width}x{new_height}")

            resized = img.resize((new_width, new_height), Image.Resampling.LANCZOS)

            output = io.BytesIO()
            resized.save(output, format=self.OUTPUT_FORMAT, optimize=True)
            return output.getvalue(), new_width, new_height

        except Exception as e:
            self.logger.error(f"Error resizing image: {e}")
            raise

    def _convert_color_mode(self, img: Image.Image) -> Image.Image:
        """Convert image to a color mode PNG can store."""
        if img.mode in ('RGBA', 'RGB', 'LA', 'L'):
            return img
        if img.mode == 'P':
            return img.convert('RGBA')
        return img.convert('RGB')

    def get_content_type(self, extension: str) -> str:
        """Get content type for a file extension."""
        return self.CONTENT_TYPES.get(extension.lower(), 'image/png')
