import io

import pytest
from PIL import Image

from icon_catalog.core.exceptions import ImageConversionError
from icon_catalog.core.image_converter import (
    ICON_SIZE,
    encode_png_base64,
    fit_to_square,
    render_icon_png,
)
from tests.conftest import SIMPLE_SVG, WIDE_SVG


def _open(png_bytes):
    return Image.open(io.BytesIO(png_bytes))


def test_render_svg_markup_to_square_png(tmp_path):
    out = tmp_path / "icon.png"

    png_bytes = render_icon_png(SIMPLE_SVG, out)

    image = _open(png_bytes)
    assert image.format == "PNG"
    assert image.size == (ICON_SIZE, ICON_SIZE)
    assert image.mode == "RGBA"
    assert out.read_bytes() == png_bytes


def test_svg_markup_with_byte_order_mark_is_rendered():
    image = _open(render_icon_png("\ufeff" + SIMPLE_SVG, size=32))

    assert image.size == (32, 32)


def test_svg_file_with_byte_order_mark_is_rendered(tmp_path):
    source = tmp_path / "bom.svg"
    source.write_bytes(b"\xef\xbb\xbf" + SIMPLE_SVG.encode("utf-8"))

    image = _open(render_icon_png(source, size=32))

    assert image.size == (32, 32)
    assert image.getpixel((16, 16))[3] == 255


def test_wide_svg_is_padded_with_transparency():
    image = _open(render_icon_png(WIDE_SVG.encode("utf-8"), size=64)).convert("RGBA")

    assert image.size == (64, 64)
    # Top and bottom bands are padding
    assert image.getpixel((32, 0))[3] == 0
    assert image.getpixel((32, 63))[3] == 0
    # Center is opaque red
    assert image.getpixel((32, 32))[:3] == (255, 0, 0)
    assert image.getpixel((32, 32))[3] == 255


def test_render_raster_file_path(tmp_path):
    source = tmp_path / "tall.png"
    Image.new("RGBA", (10, 40), (0, 0, 255, 255)).save(source)

    image = _open(render_icon_png(str(source), size=32))

    assert image.size == (32, 32)
    assert image.getpixel((0, 16))[3] == 0
    assert image.getpixel((16, 16))[3] == 255


def test_fit_to_square_keeps_aspect_ratio():
    canvas = fit_to_square(Image.new("RGBA", (200, 100), (0, 255, 0, 255)), size=100)

    assert canvas.size == (100, 100)
    assert canvas.getbbox() == (0, 25, 100, 75)


def test_invalid_source_raises_conversion_error():
    with pytest.raises(ImageConversionError):
        render_icon_png(b"definitely not an image")


def test_encode_png_base64():
    assert encode_png_base64(b"\x89PNG") == "iVBORw=="
