from __future__ import annotations

import re
from pathlib import Path
from typing import Any

_NON_SLUG_CHARS = re.compile(r"[^\w\s-]", re.ASCII)
_WHITESPACE = re.compile(r"\s+")
_DASH_RUNS = re.compile(r"-+")


def generate_slug(value: Any) -> str:
    """Album id from a folder name: "Summer in Rome!" -> "summer-in-rome"."""

    text = str(value).lower()
    text = _NON_SLUG_CHARS.sub("", text)
    text = _WHITESPACE.sub("-", text)
    return _DASH_RUNS.sub("-", text)


def extract_file_name(value: str | Path) -> str:
    """File name without its last extension ("a.b.jpg" -> "a.b", "README" -> "README")."""

    raw = str(value).replace("\\", "/")
    base = raw.rsplit("/", 1)[-1]
    parts = base.split(".")
    stem = ".".join(parts[:-1])
    return stem or parts[0]
