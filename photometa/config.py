from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG: dict[str, Any] = {
    "images_dir": "src/assets/images",
    "metadata_dir": "src/data/metadata",
    "force_dimensions": False,
    "strict": False,
    "workers": 1,
    "placeholders": {
        "name": "Add name",
        "country": "",
        "date_description": "Add date description",
        "start_date": "YYYY-MM-DD",
        "end_date": "YYYY-MM-DD",
        "location": "Add location",
    },
}


def load_config(path: str | Path) -> dict[str, Any]:
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"config must contain a mapping: {path}")
    merged = merge_defaults(DEFAULT_CONFIG, data)
    validate_config(merged)
    return merged


def merge_defaults(defaults: dict[str, Any], override: Any) -> dict[str, Any]:
    if not isinstance(override, dict):
        return dict(defaults)
    merged: dict[str, Any] = {}
    for key, value in defaults.items():
        if isinstance(value, dict):
            merged[key] = merge_defaults(value, override.get(key))
        else:
            merged[key] = override.get(key, value)
    for key, value in override.items():
        if key not in merged:
            merged[key] = value
    return merged


def validate_config(cfg: dict[str, Any]) -> None:
    for key in ("images_dir", "metadata_dir"):
        if not isinstance(cfg.get(key), str) or not cfg.get(key):
            raise ValueError(f"{key} must be a non-empty string")
    for key in ("force_dimensions", "strict"):
        if not isinstance(cfg.get(key), bool):
            raise ValueError(f"{key} must be boolean")
    workers = cfg.get("workers")
    if not isinstance(workers, int) or isinstance(workers, bool) or workers < 1:
        raise ValueError("workers must be an integer >= 1")
    placeholders = cfg.get("placeholders")
    if not isinstance(placeholders, dict):
        raise ValueError("placeholders must be a mapping")
    for key in DEFAULT_CONFIG["placeholders"]:
        if not isinstance(placeholders.get(key), str):
            raise ValueError(f"placeholders.{key} must be a string")
