"""
Resolution catalog and artifact key naming.

Derived artifacts have no record of their own: the blob key computed here from
(image_id, width, height) is the artifact's address, and the blob's existence
is the artifact's existence.

Requests that give both dimensions are stored under `<w>w<h>h`, e.g.
`resized/<id>_300w200h.png`. Earlier layouts wrote exact-size renderings to
the width-only key `<w>w`, where they overwrote aspect-preserving ones; blobs
written under that scheme are not read back under the new key.
"""

from typing import Dict, List, Optional, Tuple

ORIGINAL = 'original'

# Ordered: iteration order drives bulk generation and the resolution listing.
PREDEFINED_RESOLUTIONS: Dict[str, Tuple[Optional[int], Optional[int]]] = {
    'thumbnail': (160, None),
    'small': (320, None),
    'medium': (640, None),
    'large': (1024, None),
    'xlarge': (1920, None),
}

THUMBNAIL = 'thumbnail'

# Sizes clients commonly ask for outside the catalog; enumerated on
# invalidation because the cache has no reverse index.
COMMON_SIZES = (100, 150, 200, 240, 250, 300, 400, 480, 500, 600, 720, 800, 1080, 1200)

ORIGINAL_PREFIX = 'original'
RESIZED_PREFIX = 'resized'
ARTIFACT_EXTENSION = '.png'
ARTIFACT_CONTENT_TYPE = 'image/png'

METADATA_CACHE_PREFIX = 'image:'
EXISTS_CACHE_PREFIX = 'exists:'


def thumbnail_target() -> int:
    """The single dimension of the smallest catalog entry."""
    width, height = PREDEFINED_RESOLUTIONS[THUMBNAIL]
    return width if width is not None else height


def get_resolution(name: str) -> Optional[Tuple[Optional[int], Optional[int]]]:
    """Look up a catalog entry by case-insensitive name."""
    if name is None:
        return None
    return PREDEFINED_RESOLUTIONS.get(name.lower())


def dimension_suffix(width: Optional[int], height: Optional[int]) -> str:
    """
    Suffix encoding the requested target, e.g. '640w', '300h' or '300w200h'.

    Raises:
        ValueError: If neither dimension is given
    """
    if width is not None and height is not None:
        return f"{width}w{height}h"
    if width is not None:
        return f"{width}w"
    if height is not None:
        return f"{height}h"
    raise ValueError("Either width or height must be specified.")


def original_key(image_id: str, extension: str) -> str:
    """Blob key of an original upload."""
    return f"{ORIGINAL_PREFIX}/{image_id}{extension}"


def artifact_key(image_id: str, width: Optional[int] = None, height: Optional[int] = None) -> str:
    """Blob key of the resized artifact for (image_id, width, height)."""
    return f"{RESIZED_PREFIX}/{image_id}_{dimension_suffix(width, height)}{ARTIFACT_EXTENSION}"


def artifact_prefix(image_id: str) -> str:
    """Common prefix of every artifact key derived from an image."""
    return f"{RESIZED_PREFIX}/{image_id}_"


def metadata_cache_key(image_id: str) -> str:
    return f"{METADATA_CACHE_PREFIX}{image_id}"


def exists_cache_key(blob_key: str) -> str:
    return f"{EXISTS_CACHE_PREFIX}{blob_key}"


def fits(width: Optional[int], height: Optional[int], original_width: int, original_height: int) -> bool:
    """True if the target is no larger than the original in every given dimension."""
    if width is not None and width > original_width:
        return False
    if height is not None and height > original_height:
        return False
    return True


def available_resolutions(original_width: int, original_height: int) -> List[str]:
    """'original' followed by every catalog name that fits the original."""
    names = [ORIGINAL]
    for name, (width, height) in PREDEFINED_RESOLUTIONS.items():
        if fits(width, height, original_width, original_height):
            names.append(name)
    return names


def candidate_artifact_keys(image_id: str) -> List[str]:
    """
    Artifact keys that may exist for an image: both the width and height
    variants of every catalog size and of every common size.
    """
    sizes = []
    for width, height in PREDEFINED_RESOLUTIONS.values():
        sizes.append(width if width is not None else height)
    sizes.extend(size for size in COMMON_SIZES if size not in sizes)

    keys = []
    for size in sizes:
        keys.append(artifact_key(image_id, width=size))
        keys.append(artifact_key(image_id, height=size))
    return keys
