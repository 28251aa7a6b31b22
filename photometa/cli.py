from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from photometa import __version__

from .cli_args import require_positive_int, resolve_input_path, resolve_output_path
from .config import DEFAULT_CONFIG, load_config, merge_defaults, validate_config


def _resolve_generate_config(args: argparse.Namespace) -> dict[str, Any]:
    config_dir: Path | None = None
    if args.config:
        cfg_path = Path(str(args.config)).expanduser()
        if not cfg_path.is_file():
            raise SystemExit(f"config not found: {cfg_path}")
        try:
            cfg = load_config(cfg_path)
        except Exception as exc:
            raise SystemExit(f"failed to load config: {cfg_path} ({exc})") from exc
        config_dir = cfg_path.resolve().parent
    else:
        cfg = merge_defaults(DEFAULT_CONFIG, {})

    overrides: dict[str, Any] = {}
    if args.images_dir is not None:
        overrides["images_dir"] = str(args.images_dir)
    if args.metadata_dir is not None:
        overrides["metadata_dir"] = str(args.metadata_dir)
    if args.force_dimensions:
        overrides["force_dimensions"] = True
    if args.strict:
        overrides["strict"] = True
    try:
        workers = require_positive_int(args.workers, flag_name="--workers")
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc
    if workers is not None:
        overrides["workers"] = workers

    cfg = merge_defaults(cfg, overrides)
    try:
        validate_config(cfg)
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc

    # Paths from the config file are relative to it; CLI paths to the cwd.
    images_base = None if "images_dir" in overrides else config_dir
    metadata_base = None if "metadata_dir" in overrides else config_dir
    cfg["images_dir"] = resolve_input_path(cfg["images_dir"], config_dir=images_base)
    cfg["metadata_dir"] = resolve_output_path(cfg["metadata_dir"], config_dir=metadata_base)
    return cfg


def _cmd_generate(args: argparse.Namespace) -> int:
    from photometa.album_metadata import generate_metadata

    cfg = _resolve_generate_config(args)
    quiet = bool(args.quiet)
    if cfg["force_dimensions"] and not quiet:
        print("Force regeneration of dimensions enabled", file=sys.stderr)

    try:
        report = generate_metadata(
            cfg["images_dir"],
            cfg["metadata_dir"],
            force_dimensions=bool(cfg["force_dimensions"]),
            strict=bool(cfg["strict"]),
            workers=int(cfg["workers"]),
            placeholders=cfg["placeholders"],
        )
    except (OSError, ValueError) as exc:
        raise SystemExit(f"Error generating metadata: {exc}") from exc

    if not quiet:
        for msg in report.messages:
            print(msg, file=sys.stderr)
    for w in report.warnings:
        print(w, file=sys.stderr)
    if report.errors:
        print(f"Encountered {len(report.errors)} errors:", file=sys.stderr)
        for idx, e in enumerate(report.errors, start=1):
            print(f"  {idx}. {e}", file=sys.stderr)
        print("No metadata was written. Please fix these issues and run again.", file=sys.stderr)
        return 1

    for out in report.written:
        print(str(out))
    return 0


def _cmd_dims(args: argparse.Namespace) -> int:
    from photometa.image_size import ImageSizeError, get_image_size

    entries: list[dict[str, Any]] = []
    failed = 0
    for raw in args.paths:
        path = Path(str(raw))
        try:
            dims = get_image_size(path, strict=bool(args.strict))
        except ImageSizeError as exc:
            failed += 1
            entries.append({"path": str(path), "error": str(exc), "kind": exc.kind.value})
            continue
        except OSError as exc:
            failed += 1
            entries.append({"path": str(path), "error": str(exc), "kind": "ReadError"})
            continue
        entries.append({"path": str(path), **dims.to_dict()})

    report = {"images": entries}
    text = json.dumps(report, indent=2, sort_keys=True, ensure_ascii=False)
    if args.output == "-":
        print(text)
    else:
        out_path = resolve_output_path(str(args.output))
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(text + "\n", encoding="utf-8")
        print(str(out_path))
    return 1 if failed else 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="photometa",
        description="Read image dimensions from file headers and maintain per-album photo metadata.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    generate = sub.add_parser("generate", help="Create or update album metadata JSON files.")
    generate.add_argument("--config", default=None, help="Optional YAML/JSON config file.")
    generate.add_argument(
        "--images-dir",
        default=None,
        help=f"Directory with one sub-folder per album (default: {DEFAULT_CONFIG['images_dir']}).",
    )
    generate.add_argument(
        "--metadata-dir",
        default=None,
        help=f"Output directory for <album>.json files (default: {DEFAULT_CONFIG['metadata_dir']}).",
    )
    generate.add_argument(
        "-f",
        "--force-dimensions",
        action="store_true",
        help="Force regeneration of dimensions for all photos.",
    )
    generate.add_argument("--strict", action="store_true", help="Also require each format's signature bytes.")
    generate.add_argument("--workers", type=int, default=None, help="Threads used to read image headers (default: 1).")
    generate.add_argument("-q", "--quiet", action="store_true", help="Only print errors and written paths.")

    dims = sub.add_parser("dims", help="Print image dimensions as JSON.")
    dims.add_argument("paths", nargs="+", help="Image file paths (.jpg/.jpeg/.png/.gif/.webp).")
    dims.add_argument("--strict", action="store_true", help="Also require each format's signature bytes.")
    dims.add_argument("--output", default="-", help="Output JSON path (use - for stdout).")

    args = parser.parse_args(argv)

    if args.command == "generate":
        return _cmd_generate(args)
    if args.command == "dims":
        return _cmd_dims(args)

    raise SystemExit("unknown command")


if __name__ == "__main__":
    raise SystemExit(main())
