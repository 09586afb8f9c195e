"""
Icon rasterization.

Renders SVG (or raster) icons to fixed-size square PNG previews with a
transparent background. The same preview is written next to the source
icon and sent to Gemini as the image payload.
"""

import io
import base64
import logging
from pathlib import Path
from typing import Optional, Union

import cairosvg
from PIL import Image

from icon_catalog.core.exceptions import ImageConversionError

logger = logging.getLogger(__name__)

ICON_SIZE = 128
PNG_MIME_TYPE = "image/png"

IconSource = Union[str, bytes, Path]

UTF8_BOM = b"\xef\xbb\xbf"


def _looks_like_svg(data: bytes) -> bool:
    head = data[:512].lstrip(UTF8_BOM + b" \t\r\n").lower()
    return head.startswith(b"<svg") or head.startswith(b"<?xml") or b"<svg" in head


def _load_source_bytes(source: IconSource) -> bytes:
    """Return raw bytes for SVG markup, bytes, or a file path."""
    if isinstance(source, bytes):
        return source
    if isinstance(source, Path):
        return source.read_bytes()
    markup = source.lstrip("\ufeff \t\r\n")
    if markup.startswith("<"):
        return markup.encode("utf-8")
    return Path(source).read_bytes()


def _open_image(data: bytes, size: int) -> Image.Image:
    if _looks_like_svg(data):
        if data.startswith(UTF8_BOM):
            data = data[len(UTF8_BOM):]
        # Render at the target width; cairosvg keeps the SVG aspect ratio
        png_bytes = cairosvg.svg2png(bytestring=data, output_width=size)
        data = png_bytes
    image = Image.open(io.BytesIO(data))
    image.load()
    return image.convert("RGBA")


def fit_to_square(image: Image.Image, size: int = ICON_SIZE) -> Image.Image:
    """
    Fit an image inside a size x size square, centered on transparent padding.

    Args:
        image: RGBA image of any dimensions
        size: Edge length of the output square

    Returns:
        New RGBA image of exactly size x size
    """
    width, height = image.size
    scale = min(size / width, size / height)
    new_width = max(1, round(width * scale))
    new_height = max(1, round(height * scale))

    resized = image.resize((new_width, new_height), Image.Resampling.LANCZOS)

    canvas = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    offset = ((size - new_width) // 2, (size - new_height) // 2)
    canvas.paste(resized, offset, resized)
    return canvas


def render_icon_png(
    source: IconSource,
    output_path: Optional[Union[str, Path]] = None,
    size: int = ICON_SIZE
) -> bytes:
    """
    Render an icon to a square PNG.

    Args:
        source: SVG markup (str/bytes) or a path to an SVG or raster image
        output_path: When given, the PNG is also written to this path
        size: Edge length of the output square in pixels

    Returns:
        PNG bytes

    Raises:
        ImageConversionError: If the source cannot be decoded or encoded
    """
    try:
        data = _load_source_bytes(source)
        image = fit_to_square(_open_image(data, size), size)

        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        png_bytes = buffer.getvalue()
    except Exception as e:
        logger.error(f"PNG conversion failed: {e}")
        raise ImageConversionError(f"Could not render icon: {e}") from e

    if output_path is not None:
        Path(output_path).write_bytes(png_bytes)
        logger.debug(f"Wrote PNG preview: {output_path}")

    return png_bytes


def encode_png_base64(png_bytes: bytes) -> str:
    """Base64-encode PNG bytes for an inline Gemini image part."""
    return base64.standard_b64encode(png_bytes).decode("utf-8")
