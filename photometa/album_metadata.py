from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

from .config import DEFAULT_CONFIG
from .image_format import is_image_file
from .image_size import Dimensions, ImageSizeError, get_image_size
from .slugs import extract_file_name, generate_slug

Measure = Callable[[Path], Dimensions]


@dataclass(frozen=True)
class AlbumBuildResult:
    album_id: str
    metadata: dict[str, Any]
    messages: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def ok(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class GenerationReport:
    albums: list[AlbumBuildResult]
    written: list[Path]
    messages: list[str]
    warnings: list[str]
    errors: list[str]

    def ok(self) -> bool:
        return not self.errors

    def raise_if_errors(self) -> None:
        if self.errors:
            raise ValueError("\n".join(self.errors))


def find_image_files(images_dir: str | Path) -> list[Path]:
    root = Path(images_dir)
    if not root.is_dir():
        raise FileNotFoundError(f"images directory not found: {root}")
    return sorted(p for p in root.rglob("*") if p.is_file() and is_image_file(p))


def group_images_by_album(images_dir: str | Path, files: Iterable[Path]) -> dict[str, dict[str, Path]]:
    """Group photos by their first-level folder.

    Returns {album_id: {file_name: path}}; a later file with the same stem
    replaces an earlier one.
    """

    root = Path(images_dir)
    albums: dict[str, dict[str, Path]] = {}
    for path in files:
        rel = Path(path).relative_to(root)
        album_id = generate_slug(rel.parts[0])
        albums.setdefault(album_id, {})[extract_file_name(path)] = Path(path)
    return albums


def metadata_path(metadata_dir: str | Path, album_id: str) -> Path:
    return Path(metadata_dir) / f"{album_id}.json"


def read_existing_metadata(path: str | Path) -> dict[str, Any]:
    path = Path(path)
    if not path.exists():
        return {}
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"metadata file must contain an object: {path}")
    return data


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value)


def _stripped(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    return ""


def valid_dimensions(value: Any) -> bool:
    if not isinstance(value, dict):
        return False
    try:
        Dimensions(width=value.get("width"), height=value.get("height"))
    except ImageSizeError:
        return False
    return True


def _existing_photos(existing: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
    out: dict[str, dict[str, Any]] = {}
    photos = existing.get("photos")
    if isinstance(photos, list):
        for photo in photos:
            if isinstance(photo, dict) and isinstance(photo.get("fileName"), str):
                out[photo["fileName"]] = photo
    return out


def _needs_dimensions(existing_photo: Mapping[str, Any], *, force: bool) -> bool:
    return force or not valid_dimensions(existing_photo.get("dimensions"))


def photos_needing_dimensions(
    photos: Mapping[str, Path],
    existing: Mapping[str, Any],
    *,
    force_dimensions: bool = False,
) -> list[Path]:
    known = _existing_photos(existing)
    return [
        path
        for file_name, path in photos.items()
        if _needs_dimensions(known.get(file_name, {}), force=force_dimensions)
    ]


def build_album_metadata(
    album_id: str,
    photos: Mapping[str, Path],
    existing: Mapping[str, Any] | None = None,
    *,
    force_dimensions: bool = False,
    strict: bool = False,
    placeholders: Mapping[str, str] | None = None,
    measure: Measure | None = None,
) -> AlbumBuildResult:
    """Merge scanned photos with an album's existing metadata.

    Captions, locations, album fields and photo order are preserved.
    Dimensions are extracted when missing or invalid, or for every photo
    when `force_dimensions` is set. A photo that cannot be measured is
    recorded in `errors` and left out of `metadata["photos"]`.
    """

    existing = existing or {}
    ph = dict(DEFAULT_CONFIG["placeholders"])
    if placeholders:
        ph.update(placeholders)
    if measure is None:
        measure = partial(get_image_size, strict=strict)

    messages: list[str] = []
    errors: list[str] = []

    name = existing.get("name") if _non_empty_str(existing.get("name")) else ph["name"]
    country = existing.get("country") if _non_empty_str(existing.get("country")) else ph["country"]
    start_date = existing.get("startDate") if _non_empty_str(existing.get("startDate")) else ph["start_date"]
    end_date = existing.get("endDate") if _non_empty_str(existing.get("endDate")) else ph["end_date"]
    date_description = _stripped(existing.get("dateDescription")) or ph["date_description"]
    slug = _stripped(existing.get("slug")) or album_id

    known = _existing_photos(existing)
    updated: list[dict[str, Any]] = []
    for file_name, path in photos.items():
        prior = known.get(file_name, {})
        caption = prior.get("caption") if isinstance(prior.get("caption"), str) else ""
        location = _stripped(prior.get("location")) or ph["location"]
        dimensions = prior.get("dimensions")

        if _needs_dimensions(prior, force=force_dimensions):
            try:
                measured = measure(Path(path))
            except (ImageSizeError, OSError) as exc:
                errors.append(f"Error processing photo {file_name} in album {album_id}: {exc}")
                continue
            if force_dimensions:
                verb = "Updated"
            elif dimensions is not None:
                verb = "Repaired"
            else:
                verb = "Added"
            dimensions = measured.to_dict()
            messages.append(
                f"{verb} dimensions for {file_name} in album {album_id}: {measured.width}x{measured.height}"
            )

        updated.append(
            {
                "fileName": file_name,
                "caption": caption,
                "location": location,
                "dimensions": dimensions,
            }
        )

    order: dict[str, int] = {}
    if isinstance(existing.get("photos"), list):
        for idx, photo in enumerate(existing["photos"]):
            if isinstance(photo, dict) and isinstance(photo.get("fileName"), str):
                order[photo["fileName"]] = idx
    unknown = len(order) + len(updated)
    updated.sort(
        key=lambda p: (order.get(p["fileName"], unknown), p["fileName"].casefold(), p["fileName"])
    )

    metadata = {
        "slug": slug,
        "name": name,
        "country": country,
        "dateDescription": date_description,
        "startDate": start_date,
        "endDate": end_date,
        "photos": updated,
    }
    return AlbumBuildResult(album_id=album_id, metadata=metadata, messages=messages, errors=errors)


def write_album_metadata(path: str | Path, metadata: Mapping[str, Any]) -> Path:
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(metadata, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    return out_path


def _measure_all(paths: list[Path], *, strict: bool, workers: int) -> Measure:
    def measure_one(path: Path) -> tuple[Dimensions | None, Exception | None]:
        try:
            return get_image_size(path, strict=strict), None
        except (ImageSizeError, OSError) as exc:
            return None, exc

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="photometa-dims") as pool:
        results = dict(zip(paths, pool.map(measure_one, paths)))

    def lookup(path: Path) -> Dimensions:
        dims, exc = results[path] if path in results else measure_one(path)
        if exc is not None:
            raise exc
        assert dims is not None
        return dims

    return lookup


def generate_metadata(
    images_dir: str | Path,
    metadata_dir: str | Path,
    *,
    force_dimensions: bool = False,
    strict: bool = False,
    workers: int = 1,
    placeholders: Mapping[str, str] | None = None,
) -> GenerationReport:
    """Create or update one metadata JSON file per album.

    Nothing is written unless every photo of every album could be measured.
    """

    workers = int(workers)
    if workers < 1:
        raise ValueError("workers must be >= 1")

    messages: list[str] = []
    warnings: list[str] = []
    errors: list[str] = []

    files = find_image_files(images_dir)
    messages.append(f"Found {len(files)} image files in {images_dir}")
    albums = group_images_by_album(images_dir, files)
    messages.append(f"Found {len(albums)} albums")

    existing_by_album: dict[str, dict[str, Any]] = {}
    for album_id in albums:
        try:
            existing_by_album[album_id] = read_existing_metadata(metadata_path(metadata_dir, album_id))
        except (OSError, ValueError) as exc:
            warnings.append(f"Error reading metadata file for album {album_id}: {exc}")
            existing_by_album[album_id] = {}

    measure: Measure | None = None
    if workers > 1:
        pending: list[Path] = []
        for album_id, photos in albums.items():
            pending.extend(
                photos_needing_dimensions(photos, existing_by_album[album_id], force_dimensions=force_dimensions)
            )
        measure = _measure_all(pending, strict=strict, workers=workers)

    results: list[AlbumBuildResult] = []
    for album_id, photos in albums.items():
        messages.append(f"Processing album: {album_id} ({len(photos)} photos)")
        res = build_album_metadata(
            album_id,
            photos,
            existing_by_album[album_id],
            force_dimensions=force_dimensions,
            strict=strict,
            placeholders=placeholders,
            measure=measure,
        )
        messages.extend(res.messages)
        errors.extend(res.errors)
        results.append(res)

    written: list[Path] = []
    if not errors:
        for res in results:
            out = write_album_metadata(metadata_path(metadata_dir, res.album_id), res.metadata)
            messages.append(f"Generated metadata file: {out}")
            written.append(out)

    return GenerationReport(albums=results, written=written, messages=messages, warnings=warnings, errors=errors)
