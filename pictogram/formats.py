"""Output format enumeration and the extension / MIME type tables."""

import enum
from typing import Dict, List, Optional


class OutputFormat(enum.Enum):
    """Binary raster formats the codec can write."""
    JPEG = "jpeg"
    PNG = "png"
    BMP = "bmp"
    GIF = "gif"
    WEBP = "webp"

    @property
    def extension(self) -> str:
        """Canonical file extension, without the dot."""
        return _EXTENSIONS[self]

    @property
    def mime_type(self) -> str:
        return _MIME_TYPES[self]

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def pil_format(self) -> str:
        """Format name understood by ``PIL.Image.save``."""
        return _PIL_FORMATS[self]

    @property
    def all_extensions(self) -> List[str]:
        """Every extension (with dot) that identifies this format."""
        return [ext for ext, fmt in EXTENSION_TO_FORMAT.items() if fmt is self]

    def filename(self, base: str) -> str:
        return f"{base}.{self.extension}"

    @classmethod
    def from_extension(cls, extension: str) -> Optional["OutputFormat"]:
        return EXTENSION_TO_FORMAT.get(_normalize_extension(extension))

    @classmethod
    def from_mime_type(cls, mime_type: str) -> Optional["OutputFormat"]:
        return MIME_TYPE_TO_FORMAT.get(mime_type.strip().lower())

    @classmethod
    def from_filename(cls, filename: str) -> Optional["OutputFormat"]:
        extension = get_file_extension(filename)
        if extension is None:
            return None
        return cls.from_extension(extension)

    @classmethod
    def from_pil_format(cls, pil_format: Optional[str]) -> Optional["OutputFormat"]:
        if not pil_format:
            return None
        for fmt, name in _PIL_FORMATS.items():
            if name == pil_format.upper():
                return fmt
        return None

    @classmethod
    def parse(cls, text: str) -> "OutputFormat":
        """Resolves a format name ("png", "WebP") or an extension ("jpg", ".jpeg")."""
        value = text.strip().lower()
        for fmt in cls:
            if fmt.value == value:
                return fmt
        fmt = cls.from_extension(value)
        if fmt is None:
            raise ValueError(f"Unknown image format: {text!r}")
        return fmt


_EXTENSIONS: Dict[OutputFormat, str] = {
    OutputFormat.JPEG: "jpg",
    OutputFormat.PNG: "png",
    OutputFormat.BMP: "bmp",
    OutputFormat.GIF: "gif",
    OutputFormat.WEBP: "webp",
}

_MIME_TYPES: Dict[OutputFormat, str] = {
    OutputFormat.JPEG: "image/jpeg",
    OutputFormat.PNG: "image/png",
    OutputFormat.BMP: "image/bmp",
    OutputFormat.GIF: "image/gif",
    OutputFormat.WEBP: "image/webp",
}

_DISPLAY_NAMES: Dict[OutputFormat, str] = {
    OutputFormat.JPEG: "JPEG",
    OutputFormat.PNG: "PNG",
    OutputFormat.BMP: "BMP",
    OutputFormat.GIF: "GIF",
    OutputFormat.WEBP: "WebP",
}

_PIL_FORMATS: Dict[OutputFormat, str] = {
    OutputFormat.JPEG: "JPEG",
    OutputFormat.PNG: "PNG",
    OutputFormat.BMP: "BMP",
    OutputFormat.GIF: "GIF",
    OutputFormat.WEBP: "WEBP",
}

# Lowercase, with the dot. Several extensions alias to JPEG and BMP.
EXTENSION_TO_FORMAT: Dict[str, OutputFormat] = {
    ".jpg": OutputFormat.JPEG,
    ".jpeg": OutputFormat.JPEG,
    ".jpe": OutputFormat.JPEG,
    ".jfif": OutputFormat.JPEG,
    ".png": OutputFormat.PNG,
    ".gif": OutputFormat.GIF,
    ".bmp": OutputFormat.BMP,
    ".dib": OutputFormat.BMP,
    ".webp": OutputFormat.WEBP,
}

MIME_TYPE_TO_FORMAT: Dict[str, OutputFormat] = {
    "image/jpeg": OutputFormat.JPEG,
    "image/jpg": OutputFormat.JPEG,
    "image/png": OutputFormat.PNG,
    "image/gif": OutputFormat.GIF,
    "image/bmp": OutputFormat.BMP,
    "image/x-ms-bmp": OutputFormat.BMP,
    "image/webp": OutputFormat.WEBP,
}

SUPPORTED_EXTENSIONS = tuple(EXTENSION_TO_FORMAT)
SUPPORTED_MIME_TYPES = tuple(MIME_TYPE_TO_FORMAT)


def _normalize_extension(extension: str) -> str:
    ext = extension.strip().lower()
    return ext if ext.startswith(".") else f".{ext}"


def get_file_extension(filename: str) -> Optional[str]:
    """Returns the lowercase extension (with dot) of ``filename``, or None."""
    dot = filename.rfind(".")
    if dot == -1 or dot == len(filename) - 1:
        return None
    return filename[dot:].lower()


def is_extension_supported(extension: str) -> bool:
    return _normalize_extension(extension) in EXTENSION_TO_FORMAT


def is_mime_type_supported(mime_type: str) -> bool:
    return mime_type.strip().lower() in MIME_TYPE_TO_FORMAT


def is_filename_supported(filename: str) -> bool:
    return OutputFormat.from_filename(filename) is not None


def validate_file(filename: str, mime_type: str) -> bool:
    """True when both the name and the MIME type are known and agree on the format."""
    from_name = OutputFormat.from_filename(filename)
    from_mime = OutputFormat.from_mime_type(mime_type)
    if from_name is None or from_mime is None:
        return False
    return from_name is from_mime


def supported_formats_string() -> str:
    return ", ".join(fmt.display_name for fmt in OutputFormat)


def supported_extensions_string() -> str:
    return ", ".join(SUPPORTED_EXTENSIONS)
