from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from .image_format import FormatTag, parse_format_tag


class ErrorKind(str, Enum):
    UNSUPPORTED_FORMAT = "UnsupportedFormat"
    MALFORMED_JPEG = "MalformedJpeg"
    MALFORMED_PNG = "MalformedPng"
    MALFORMED_GIF = "MalformedGif"
    UNKNOWN_WEBP_SUBFORMAT = "UnknownWebpSubformat"
    INVALID_DIMENSIONS = "InvalidDimensions"


class ImageSizeError(RuntimeError):
    kind: ErrorKind


class UnsupportedFormatError(ImageSizeError):
    kind = ErrorKind.UNSUPPORTED_FORMAT


class MalformedJpegError(ImageSizeError):
    kind = ErrorKind.MALFORMED_JPEG


class MalformedPngError(ImageSizeError):
    kind = ErrorKind.MALFORMED_PNG


class MalformedGifError(ImageSizeError):
    kind = ErrorKind.MALFORMED_GIF


class UnknownWebpSubformatError(ImageSizeError):
    kind = ErrorKind.UNKNOWN_WEBP_SUBFORMAT


class InvalidDimensionsError(ImageSizeError):
    kind = ErrorKind.INVALID_DIMENSIONS

    def __init__(self, width: Any, height: Any, *, fmt: FormatTag | None = None):
        self.width = width
        self.height = height
        self.fmt = fmt
        label = fmt.name if fmt is not None else "image"
        super().__init__(f"invalid {label} dimensions: width={width!r} height={height!r}")


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


@dataclass(frozen=True)
class Dimensions:
    width: int
    height: int

    def __post_init__(self) -> None:
        if not (_is_positive_int(self.width) and _is_positive_int(self.height)):
            raise InvalidDimensionsError(self.width, self.height)

    def to_dict(self) -> dict[str, int]:
        return {"width": self.width, "height": self.height}


@dataclass(frozen=True)
class DimensionsResult:
    dimensions: Dimensions | None = None
    error: ImageSizeError | None = None

    def ok(self) -> bool:
        return self.error is None and self.dimensions is not None

    @property
    def kind(self) -> ErrorKind | None:
        return self.error.kind if self.error is not None else None

    def unwrap(self) -> Dimensions:
        if self.error is not None:
            raise self.error
        if self.dimensions is None:
            raise InvalidDimensionsError(None, None)
        return self.dimensions


def _read_uint(
    data: bytes,
    offset: int,
    size: int,
    byteorder: str,
    error: type[ImageSizeError],
    what: str,
) -> int:
    if offset < 0 or offset + size > len(data):
        raise error(f"{what}: need {size} bytes at offset {offset}, buffer has {len(data)}")
    return int.from_bytes(data[offset : offset + size], byteorder, signed=False)


# SOF0..SOF15 minus DHT (0xC4) and JPG (0xC8).
_JPEG_SOF_MARKERS = frozenset(code for code in range(0xC0, 0xD0) if code not in (0xC4, 0xC8))
_JPEG_EOI = 0xD9
_JPEG_SOS = 0xDA


def _jpeg_standalone(marker: int) -> bool:
    # TEM, RST0-7 and SOI carry no length field.
    return marker == 0x01 or 0xD0 <= marker <= 0xD8


def _jpeg_size(data: bytes) -> tuple[int, int]:
    n = len(data)
    if n < 2:
        raise MalformedJpegError("invalid JPEG (too short)")

    i = 2
    while i < n:
        if data[i] != 0xFF:
            raise MalformedJpegError(f"invalid JPEG (expected marker at offset {i}, got 0x{data[i]:02X})")

        # Skip fill bytes 0xFF
        while i + 1 < n and data[i + 1] == 0xFF:
            i += 1
        if i + 1 >= n:
            break

        marker = data[i + 1]
        if marker in _JPEG_SOF_MARKERS:
            height = _read_uint(data, i + 5, 2, "big", MalformedJpegError, "truncated JPEG SOF segment")
            width = _read_uint(data, i + 7, 2, "big", MalformedJpegError, "truncated JPEG SOF segment")
            return width, height
        if marker in (_JPEG_EOI, _JPEG_SOS):
            break
        if _jpeg_standalone(marker):
            i += 2
            continue

        seg_len = _read_uint(data, i + 2, 2, "big", MalformedJpegError, "truncated JPEG segment length")
        if seg_len < 2:
            raise MalformedJpegError(f"invalid JPEG segment length {seg_len} for marker 0x{marker:02X} at offset {i}")
        seg_end = i + 2 + seg_len
        if seg_end > n:
            raise MalformedJpegError(
                f"JPEG segment 0x{marker:02X} at offset {i} declares {seg_len} bytes, past end of buffer ({n})"
            )
        i = seg_end

    raise MalformedJpegError("could not determine JPEG size (no SOF marker found)")


def _png_size(data: bytes) -> tuple[int, int]:
    if len(data) < 24:
        raise MalformedPngError("invalid PNG (too short)")
    # IHDR is the first chunk; width/height are big-endian uint32.
    width = _read_uint(data, 16, 4, "big", MalformedPngError, "invalid PNG")
    height = _read_uint(data, 20, 4, "big", MalformedPngError, "invalid PNG")
    if width <= 0 or height <= 0:
        raise MalformedPngError(f"invalid PNG dimensions: {width}x{height}")
    return width, height


def _gif_size(data: bytes) -> tuple[int, int]:
    if len(data) < 10:
        raise MalformedGifError("invalid GIF (too short)")
    # Logical Screen Descriptor: little-endian uint16 pair.
    width = _read_uint(data, 6, 2, "little", MalformedGifError, "invalid GIF")
    height = _read_uint(data, 8, 2, "little", MalformedGifError, "invalid GIF")
    if width <= 0 or height <= 0:
        raise MalformedGifError(f"invalid GIF dimensions: {width}x{height}")
    return width, height


def _webp_size(data: bytes) -> tuple[int, int]:
    if len(data) < 16:
        raise UnknownWebpSubformatError("invalid WebP (too short for sub-format tag)")
    tag = bytes(data[12:16])
    err = UnknownWebpSubformatError

    if tag == b"VP8 ":
        # Lossy: 14-bit fields, top two bits are scaling flags. No +1 bias.
        width = _read_uint(data, 26, 2, "little", err, "truncated WebP VP8 frame header") & 0x3FFF
        height = _read_uint(data, 28, 2, "little", err, "truncated WebP VP8 frame header") & 0x3FFF
        return width, height
    if tag == b"VP8L":
        bits = _read_uint(data, 21, 4, "little", err, "truncated WebP VP8L header")
        return (bits & 0x3FFF) + 1, ((bits >> 14) & 0x3FFF) + 1
    if tag == b"VP8X":
        width = _read_uint(data, 24, 3, "little", err, "truncated WebP VP8X header") + 1
        height = _read_uint(data, 27, 3, "little", err, "truncated WebP VP8X header") + 1
        return width, height

    raise UnknownWebpSubformatError(f"unknown WebP sub-format tag: {tag!r}")


def _check_signature(data: bytes, fmt: FormatTag) -> None:
    if fmt is FormatTag.JPEG:
        if data[:2] != b"\xff\xd8":
            raise MalformedJpegError("invalid JPEG signature")
    elif fmt is FormatTag.PNG:
        if data[:8] != b"\x89PNG\r\n\x1a\n":
            raise MalformedPngError("invalid PNG signature")
        if data[12:16] != b"IHDR":
            raise MalformedPngError("invalid PNG (missing IHDR)")
    elif fmt is FormatTag.GIF:
        if data[:6] not in (b"GIF87a", b"GIF89a"):
            raise MalformedGifError("invalid GIF signature")
    elif fmt is FormatTag.WEBP:
        if data[:4] != b"RIFF" or data[8:12] != b"WEBP":
            raise UnknownWebpSubformatError("invalid WebP RIFF header")


_DECODERS: dict[FormatTag, Callable[[bytes], tuple[int, int]]] = {
    FormatTag.JPEG: _jpeg_size,
    FormatTag.PNG: _png_size,
    FormatTag.GIF: _gif_size,
    FormatTag.WEBP: _webp_size,
}


def _as_bytes(buffer: Any) -> bytes:
    if isinstance(buffer, bytes):
        return buffer
    if isinstance(buffer, (bytearray, memoryview)):
        return bytes(buffer)
    raise TypeError(f"image buffer must be bytes-like, got {type(buffer).__name__}")


def extract_dimensions(buffer: bytes, fmt: FormatTag | str, *, strict: bool = False) -> Dimensions:
    """Recover pixel width/height from the header bytes of an image.

    `fmt` is trusted as-is (normally derived from the file extension); the
    buffer is never sniffed to pick a decoder. With `strict`, the format's
    magic bytes must match as well.

    Raises an `ImageSizeError` subclass on failure; see `ErrorKind`.
    """

    tag = parse_format_tag(fmt)
    if tag is None:
        raise UnsupportedFormatError(f"unsupported image type: {fmt}")

    data = _as_bytes(buffer)
    if strict:
        _check_signature(data, tag)

    width, height = _DECODERS[tag](data)
    if not (_is_positive_int(width) and _is_positive_int(height)):
        raise InvalidDimensionsError(width, height, fmt=tag)
    return Dimensions(width=width, height=height)


def try_extract_dimensions(buffer: bytes, fmt: FormatTag | str, *, strict: bool = False) -> DimensionsResult:
    """Like `extract_dimensions`, but returns the failure as a value."""

    try:
        return DimensionsResult(dimensions=extract_dimensions(buffer, fmt, strict=strict))
    except ImageSizeError as exc:
        return DimensionsResult(error=exc)


def get_image_size(path: str | Path, *, strict: bool = False) -> Dimensions:
    path = Path(path)
    tag = parse_format_tag(path.suffix)
    if tag is None:
        raise UnsupportedFormatError(f"unsupported image type: {path.suffix or path.name}")
    return extract_dimensions(path.read_bytes(), tag, strict=strict)
