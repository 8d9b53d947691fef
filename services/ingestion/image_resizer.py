"""Image resizing service.

Provides a small OOP wrapper around Pillow that downsizes images so their
longer side fits `max_dimension` while preserving aspect ratio, and always
re-encodes the result as JPEG.

Public class: `ImageResizer`

Example:
    resizer = ImageResizer(max_dimension=1500)
    jpeg_bytes = resizer.resize(png_bytes)
"""
from __future__ import annotations

import io
from typing import Tuple

from PIL import Image

from utils.constants import IMAGE_QUALITY, MAX_IMAGE_DIMENSION


class ImageResizer:
    """Resize and re-encode image bytes.

    Args:
        max_dimension: Maximum length of the longer side in pixels. Defaults to 1500.
        quality: JPEG quality used when re-encoding. Defaults to 85.
        background: Color used to flatten images with an alpha channel.
    """

    def __init__(
        self,
        max_dimension: int = MAX_IMAGE_DIMENSION,
        quality: int = IMAGE_QUALITY,
        background: Tuple[int, int, int] | None = None,
    ):
        self.max_dimension = max_dimension
        self.quality = quality
        self.background = background or (255, 255, 255)

    @staticmethod
    def _open(data: bytes) -> Image.Image:
        try:
            return Image.open(io.BytesIO(data))
        except Exception as exc:
            raise ValueError("Bytes are not a supported image format") from exc

    def dimensions(self, data: bytes) -> Tuple[int, int]:
        with self._open(data) as img:
            return img.size

    def needs_resize(self, data: bytes) -> bool:
        width, height = self.dimensions(data)
        return max(width, height) > self.max_dimension

    def target_size(self, width: int, height: int) -> Tuple[int, int]:
        """Return the new size; images already within bounds keep their size."""
        longer = max(width, height)
        if longer <= self.max_dimension:
            return width, height
        scale = self.max_dimension / longer
        return max(1, round(width * scale)), max(1, round(height * scale))

    def resize(self, data: bytes) -> bytes:
        """Return JPEG bytes of the image fitted within `max_dimension`.

        Raises:
            ValueError: If the bytes cannot be opened or decoded as an image.
        """
        src = self._open(data)
        try:
            src = src.convert("RGBA")
            new_size = self.target_size(*src.size)
            if new_size != src.size:
                src = src.resize(new_size, Image.LANCZOS)

            # Flatten alpha against the background color
            background = Image.new("RGB", src.size, self.background)
            background.paste(src, mask=src.split()[3])

            out_io = io.BytesIO()
            background.save(out_io, format="JPEG", quality=self.quality)
        except (OSError, Image.DecompressionBombError) as exc:
            # Truncated or corrupt pixel data only surfaces on decode.
            raise ValueError(f"Image data could not be decoded: {exc}") from exc
        return out_io.getvalue()
