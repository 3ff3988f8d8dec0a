"""Command-line entry point for Pictogram."""

import argparse
import logging
import re
import sys
import time
from pathlib import Path
from typing import List, Optional, Sequence

from pictogram.config import config
from pictogram.errors import ExportError, FileValidationError, InvalidOperationError
from pictogram.formats import OutputFormat, supported_formats_string
from pictogram.imaging.operations import (
    ConvertFormat,
    EditOperation,
    FlipHorizontal,
    FlipVertical,
    Resize,
    RotateLeft,
    RotateRight,
)
from pictogram.imaging.thumbnails import ThumbnailCache, build_thumbnail_key
from pictogram.io.export import FileExportSink
from pictogram.io.indexer import find_images
from pictogram.io.sidecar import EditSidecar
from pictogram.logging_setup import setup_logging
from pictogram.models import ExportArtifact
from pictogram.session import EditSession

log = logging.getLogger(__name__)

_SIMPLE_OPS = {
    "rotate-right": RotateRight,
    "rotate-left": RotateLeft,
    "flip-h": FlipHorizontal,
    "flip-v": FlipVertical,
}
_RESIZE_RE = re.compile(r"^(\d*)x(\d*)$")


def parse_operation(text: str) -> EditOperation:
    """Parses ``rotate-right``, ``flip-h``, ``resize=800x``, ``convert=webp`` and friends."""
    name, _, arg = text.strip().lower().partition("=")
    if name in _SIMPLE_OPS and not arg:
        return _SIMPLE_OPS[name]()
    if name == "resize":
        m = _RESIZE_RE.match(arg)
        if not m or not (m.group(1) or m.group(2)):
            raise argparse.ArgumentTypeError(f"resize expects WxH, Wx or xH, got {arg!r}")
        width = int(m.group(1)) if m.group(1) else None
        height = int(m.group(2)) if m.group(2) else None
        return Resize(width=width, height=height)
    if name == "convert":
        try:
            return ConvertFormat(to=OutputFormat.parse(arg))
        except ValueError as e:
            raise argparse.ArgumentTypeError(str(e)) from None
    raise argparse.ArgumentTypeError(f"Unknown operation: {text!r}")


def parse_format(text: str) -> OutputFormat:
    try:
        return OutputFormat.parse(text)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Unknown format {text!r}; choose from {supported_formats_string()}"
        ) from None


def run_edit(args: argparse.Namespace) -> int:
    source = Path(args.input)
    session = EditSession(quality=args.quality)
    try:
        session.load_file(source)
    except (FileValidationError, OSError) as e:
        log.error(f"Cannot load {source}: {e}")
        print(f"error: cannot load {source}: {e}", file=sys.stderr)
        return 1

    sidecar = EditSidecar(source.parent) if (args.from_sidecar or args.save_sidecar) else None
    ops: List[EditOperation] = []
    if args.from_sidecar:
        ops.extend(sidecar.get_operations(source.name))
    ops.extend(args.ops or [])
    if args.format is not None:
        ops.append(ConvertFormat(to=args.format))

    try:
        for op in ops:
            session.apply(op)
    except InvalidOperationError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    output_dir = Path(args.output_dir) if args.output_dir else source.parent
    t_start = time.perf_counter()
    outcome = session.export(FileExportSink(output_dir, overwrite=args.overwrite))
    if not outcome.ok:
        print(f"error: {outcome.error}", file=sys.stderr)
        return 1

    artifact: ExportArtifact = outcome.artifact
    if artifact.format is not session.target_format:
        print(
            f"note: {session.target_format.display_name} output is not available; "
            f"wrote {artifact.format.display_name} instead",
            file=sys.stderr,
        )
    log.info(f"Edit of {source.name} with {len(session.operations)} operation(s) took {time.perf_counter() - t_start:.3f}s")
    print(f"{outcome.destination} ({artifact.width}x{artifact.height}, {artifact.mime_type})")

    if args.save_sidecar:
        sidecar.set_operations(source.name, session.operations)
        sidecar.save()
    return 0


def run_thumbs(args: argparse.Namespace) -> int:
    directory = Path(args.directory)
    if not directory.is_dir():
        print(f"error: not a directory: {directory}", file=sys.stderr)
        return 1

    images = find_images(directory)
    requests = []
    names = {}
    for image in images:
        try:
            data = image.path.read_bytes()
        except OSError as e:
            log.warning(f"Cannot read {image.path}: {e}")
            continue
        key = build_thumbnail_key(image.path, image.mtime_ns)
        names[key] = image.path.name
        requests.append((key, image.path.name, data))

    cache = ThumbnailCache.from_config()
    entries = cache.get_or_create_many(requests, max_workers=args.workers)

    sink = FileExportSink(Path(args.output_dir) if args.output_dir else directory / "thumbnails", overwrite=True)
    written = 0
    for key, entry in entries.items():
        # One thumbnail per source file name, extension included
        artifact = ExportArtifact(
            data=entry.data,
            filename=f"{names[key]}.thumb.{entry.format.extension}",
            mime_type=entry.format.mime_type,
            width=entry.width,
            height=entry.height,
            format=entry.format,
        )
        try:
            sink.save(artifact)
        except ExportError as e:
            log.error(f"Cannot write thumbnail {artifact.filename}: {e}")
            continue
        written += 1
    print(f"{written} of {len(images)} thumbnails written to {sink.directory}")
    return 0 if written == len(images) else 1


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--debug", action="store_true", help="Enable debug logging and timing information")

    parser = argparse.ArgumentParser(prog="pictogram", description="Pictogram - non-destructive raster image editor")
    sub = parser.add_subparsers(dest="command", required=True)

    edit = sub.add_parser("edit", parents=[common], help="Apply edits to an image and export it")
    edit.add_argument("input", help="Image to edit")
    edit.add_argument(
        "--op", dest="ops", action="append", type=parse_operation, metavar="OP",
        help="rotate-right, rotate-left, flip-h, flip-v, resize=WxH|Wx|xH, convert=FMT (repeatable, applied in order)",
    )
    edit.add_argument("--format", type=parse_format, help=f"Output format ({supported_formats_string()})")
    edit.add_argument("--quality", type=int, default=None, help="JPEG quality 1-100 (default from config)")
    edit.add_argument("--output-dir", help="Directory for the exported file (default: next to the input)")
    edit.add_argument("--overwrite", action="store_true", help="Replace an existing output file")
    edit.add_argument("--from-sidecar", action="store_true", help="Start from the edits stored in pictogram.json")
    edit.add_argument("--save-sidecar", action="store_true", help="Store the edits in pictogram.json")
    edit.set_defaults(func=run_edit)

    thumbs = sub.add_parser("thumbs", parents=[common], help="Write PNG thumbnails for every image in a directory")
    thumbs.add_argument("directory")
    thumbs.add_argument("--output-dir", help="Directory for thumbnails (default: DIRECTORY/thumbnails)")
    thumbs.add_argument("--workers", type=int, default=None, help="Thumbnail worker threads")
    thumbs.set_defaults(func=run_thumbs)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Pictogram Application Entry Point"""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.debug)
    log.info(f"Starting Pictogram ({args.command}), config at {config.config_path}")
    return args.func(args)


def cli():
    sys.exit(main())


if __name__ == "__main__":
    cli()
