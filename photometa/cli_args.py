from __future__ import annotations

from pathlib import Path


def require_positive_int(value: int | None, *, flag_name: str) -> int | None:
    if value is None:
        return None
    number = int(value)
    if number <= 0:
        raise ValueError(f"{flag_name} must be > 0")
    return number


def resolve_input_path(
    value: str | Path,
    *,
    cwd: Path | None = None,
    config_dir: Path | None = None,
) -> Path:
    path = Path(value).expanduser()
    if path.is_absolute():
        return path

    cwd_path = Path.cwd() if cwd is None else Path(cwd)
    candidates: list[Path] = []
    if config_dir is not None:
        candidates.append(Path(config_dir) / path)
    candidates.append(cwd_path / path)

    for candidate in candidates:
        if candidate.exists():
            return candidate

    return candidates[0]


def resolve_output_path(value: str | Path, *, cwd: Path | None = None, config_dir: Path | None = None) -> Path:
    path = Path(value).expanduser()
    if path.is_absolute():
        return path
    if config_dir is not None:
        return Path(config_dir) / path
    cwd_path = Path.cwd() if cwd is None else Path(cwd)
    return cwd_path / path
