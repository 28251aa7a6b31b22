from .image_format import IMAGE_EXTENSIONS, FormatTag, format_from_path, parse_format_tag
from .image_size import (
    Dimensions,
    DimensionsResult,
    ErrorKind,
    ImageSizeError,
    InvalidDimensionsError,
    MalformedGifError,
    MalformedJpegError,
    MalformedPngError,
    UnknownWebpSubformatError,
    UnsupportedFormatError,
    extract_dimensions,
    get_image_size,
    try_extract_dimensions,
)

__version__ = "0.1.0"

__all__ = [
    "IMAGE_EXTENSIONS",
    "Dimensions",
    "DimensionsResult",
    "ErrorKind",
    "FormatTag",
    "ImageSizeError",
    "InvalidDimensionsError",
    "MalformedGifError",
    "MalformedJpegError",
    "MalformedPngError",
    "UnknownWebpSubformatError",
    "UnsupportedFormatError",
    "extract_dimensions",
    "format_from_path",
    "get_image_size",
    "parse_format_tag",
    "try_extract_dimensions",
]
