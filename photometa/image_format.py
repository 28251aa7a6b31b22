from __future__ import annotations

from enum import Enum
from pathlib import Path


class FormatTag(Enum):
    JPEG = "jpeg"
    PNG = "png"
    GIF = "gif"
    WEBP = "webp"


EXTENSION_FORMATS: dict[str, FormatTag] = {
    ".jpg": FormatTag.JPEG,
    ".jpeg": FormatTag.JPEG,
    ".png": FormatTag.PNG,
    ".gif": FormatTag.GIF,
    ".webp": FormatTag.WEBP,
}

IMAGE_EXTENSIONS: tuple[str, ...] = tuple(EXTENSION_FORMATS)


def parse_format_tag(value: FormatTag | str) -> FormatTag | None:
    """Map a tag, an extension (".JPG") or a tag name ("webp") to a FormatTag.

    Returns None for anything that is not one of the four known formats.
    """

    if isinstance(value, FormatTag):
        return value
    if not isinstance(value, str):
        return None
    raw = value.strip().lower()
    if not raw:
        return None
    if not raw.startswith("."):
        raw = "." + raw
    return EXTENSION_FORMATS.get(raw)


def format_from_path(path: str | Path) -> FormatTag | None:
    return parse_format_tag(Path(path).suffix)


def is_image_file(path: str | Path) -> bool:
    return Path(path).suffix.lower() in EXTENSION_FORMATS
