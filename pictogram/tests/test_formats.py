"""Tests for the format tables."""

import pytest

from pictogram.formats import (
    OutputFormat,
    get_file_extension,
    is_extension_supported,
    is_filename_supported,
    is_mime_type_supported,
    supported_formats_string,
    validate_file,
)


def test_canonical_extension_and_mime():
    assert OutputFormat.JPEG.extension == "jpg"
    assert OutputFormat.JPEG.mime_type == "image/jpeg"
    assert OutputFormat.WEBP.display_name == "WebP"
    assert OutputFormat.PNG.filename("edited_image") == "edited_image.png"


@pytest.mark.parametrize("ext", [".jpg", ".JPEG", "jpe", ".jfif"])
def test_jpeg_extension_aliases(ext):
    assert OutputFormat.from_extension(ext) is OutputFormat.JPEG


def test_mime_aliases():
    assert OutputFormat.from_mime_type("image/jpg") is OutputFormat.JPEG
    assert OutputFormat.from_mime_type("IMAGE/X-MS-BMP") is OutputFormat.BMP
    assert OutputFormat.from_mime_type("image/tiff") is None
    assert is_mime_type_supported("image/webp")


def test_all_extensions():
    assert set(OutputFormat.BMP.all_extensions) == {".bmp", ".dib"}


def test_parse_names_and_extensions():
    assert OutputFormat.parse("WebP") is OutputFormat.WEBP
    assert OutputFormat.parse(".jpg") is OutputFormat.JPEG
    with pytest.raises(ValueError):
        OutputFormat.parse("tiff")


def test_from_pil_format():
    assert OutputFormat.from_pil_format("JPEG") is OutputFormat.JPEG
    assert OutputFormat.from_pil_format("TIFF") is None
    assert OutputFormat.from_pil_format(None) is None


def test_file_extension_helpers():
    assert get_file_extension("Photo.Final.PNG") == ".png"
    assert get_file_extension("README") is None
    assert get_file_extension("trailing.") is None
    assert is_extension_supported("gif")
    assert not is_extension_supported(".tiff")
    assert is_filename_supported("a.webp")
    assert not is_filename_supported("a.txt")


def test_validate_file_requires_agreement():
    assert validate_file("photo.jpg", "image/jpeg")
    assert not validate_file("photo.jpg", "image/png")
    assert not validate_file("photo.txt", "text/plain")


def test_supported_formats_string():
    assert supported_formats_string() == "JPEG, PNG, BMP, GIF, WebP"
