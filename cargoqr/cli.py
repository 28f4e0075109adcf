"""cargoqr CLI: build cargo payloads, QR codes and composite photos."""

import argparse
import asyncio
import sys
import time
from pathlib import Path

from cargoqr.config import ArtifactSettings
from cargoqr.errors import CargoQRError
from cargoqr.logging import audit, get_logger, setup_logging
from cargoqr.record import CargoRecord, LengthUnit, Location, WeightUnit

log = get_logger("cli")


def _record_from_args(parser: argparse.ArgumentParser, args) -> CargoRecord:
    """Build the record; the three location flags go together or not at all."""
    loc_parts = (args.lat, args.lng, args.ts)
    given = [p is not None for p in loc_parts]
    if any(given) and not all(given):
        parser.error("--lat, --lng and --ts must be given together")
    try:
        if all(given):
            location = Location(args.lat, args.lng, args.ts)
        elif args.gps_now is not None:
            lat, lng = args.gps_now
            location = Location(lat, lng, int(time.time() * 1000))
        else:
            location = None
    except ValueError as e:
        parser.error(str(e))

    return CargoRecord(
        id=args.id,
        description=args.description,
        length=args.length,
        width=args.width,
        height=args.height,
        weight=args.weight,
        length_unit=LengthUnit.IMPERIAL if args.inches else LengthUnit.METRIC,
        weight_unit=WeightUnit.IMPERIAL if args.pounds else WeightUnit.METRIC,
        notes=args.notes,
        location=location,
    )


def _settings_from_args(args) -> ArtifactSettings:
    return ArtifactSettings.from_env().with_overrides(
        renderer=getattr(args, "renderer", None),
        ecc=getattr(args, "ecc", None),
        code_size=getattr(args, "size", None),
        jpeg_quality=getattr(args, "quality", None),
    )


def cmd_payload(parser, args):
    """Print the payload text (or a readable summary) for a record."""
    from cargoqr.payload import serialize, summary_lines

    record = _record_from_args(parser, args)
    if args.summary:
        print("\n".join(summary_lines(record)))
    else:
        print(serialize(record))


def cmd_render(parser, args):
    """Write the record's QR code as an image file."""
    from cargoqr.payload import serialize
    from cargoqr.renderer import get_renderer

    settings = _settings_from_args(args)
    record = _record_from_args(parser, args)
    renderer = get_renderer(settings.renderer, ecc=settings.ecc, margin=settings.margin)

    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    img = renderer.render(serialize(record), settings.code_size)
    img.save(output)
    print(f"Code: {output} ({img.size[0]}x{img.size[1]}, ECC {settings.ecc})")


def cmd_compose(parser, args):
    """Composite the record's QR code onto a photo and write the JPEG."""
    from cargoqr.pipeline import ArtifactPipeline
    from cargoqr.sink import DirectorySink

    settings = _settings_from_args(args)
    record = _record_from_args(parser, args)
    pipeline = ArtifactPipeline(settings=settings, sink=DirectorySink(args.output_dir))

    async def run():
        pipeline.update(record=record)
        return await pipeline.on_photo_changed(args.photo)

    artifact = asyncio.run(run())
    if artifact is None:
        raise CargoQRError(f"Photo could not be used: {args.photo}")

    path = pipeline.deliver(args.filename)
    w, h = artifact.image.size
    print(f"Artifact: {path} ({w}x{h}, {len(artifact.data)} bytes)")
    print(f"Payload:  {artifact.payload}")


def _add_record_args(p: argparse.ArgumentParser):
    p.add_argument("--id", default="", help="Cargo identifier")
    p.add_argument("--description", default="", help="Cargo description")
    p.add_argument("--length", default="", help="Length, as entered")
    p.add_argument("--width", default="", help="Width, as entered")
    p.add_argument("--height", default="", help="Height, as entered")
    p.add_argument("--weight", default="", help="Weight, as entered")
    p.add_argument("--inches", action="store_true", help="Dimensions are in inches (default cm)")
    p.add_argument("--pounds", action="store_true", help="Weight is in pounds (default kg)")
    p.add_argument("--notes", default="", help="Free-text notes")
    p.add_argument("--lat", type=float, default=None, help="Latitude in degrees")
    p.add_argument("--lng", type=float, default=None, help="Longitude in degrees")
    p.add_argument("--ts", type=int, default=None, help="Fix timestamp, epoch milliseconds")
    p.add_argument("--gps-now", type=float, nargs=2, metavar=("LAT", "LNG"), default=None,
                   help="Location stamped with the current time")


def _add_code_args(p: argparse.ArgumentParser):
    p.add_argument("-e", "--ecc", default=None, choices=["L", "M", "Q", "H"], help="Error correction level")
    p.add_argument("--renderer", default=None, choices=["qrcode", "segno"], help="QR backend")
    p.add_argument("--size", type=int, default=None, help="Code raster side in px")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cargoqr", description="Cargo photo + QR record compositor")

    parser.add_argument("-V", "--verbose", action="store_true", help="Enable DEBUG-level logging")
    parser.add_argument("--log-file", default=None, help="Write JSON logs to file")
    parser.add_argument("--json-logs", action="store_true", help="JSON logs on the console too")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- payload ---
    p_payload = subparsers.add_parser("payload", help="Print the payload for a cargo record")
    _add_record_args(p_payload)
    p_payload.add_argument("--summary", action="store_true", help="Readable summary instead of JSON")

    # --- render ---
    p_render = subparsers.add_parser("render", help="Write the cargo QR code image")
    _add_record_args(p_render)
    _add_code_args(p_render)
    p_render.add_argument("-o", "--output", default="output/cargo_qr.png", help="Output file path")

    # --- compose ---
    p_compose = subparsers.add_parser("compose", help="Composite the QR code onto a cargo photo")
    p_compose.add_argument("photo", help="Path to the cargo photo")
    _add_record_args(p_compose)
    _add_code_args(p_compose)
    p_compose.add_argument("-q", "--quality", type=float, default=None, help="JPEG quality fraction (0, 1]")
    p_compose.add_argument("-o", "--output-dir", default="output", help="Directory for the artifact")
    p_compose.add_argument("--filename", default=None, help="Artifact file name (default cargo_<ms>.jpg)")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    level = "DEBUG" if args.verbose else "INFO"
    setup_logging(level=level, log_file=args.log_file, json_format=args.json_logs)
    audit("cli.start", logger=log, command=args.command, verbose=args.verbose)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    commands = {
        "payload": cmd_payload,
        "render": cmd_render,
        "compose": cmd_compose,
    }
    try:
        commands[args.command](parser, args)
    except CargoQRError as e:
        audit("cli.failed", logger=log, command=args.command, error=type(e).__name__)
        print(f"error: {e}", file=sys.stderr)
        sys.exit(1)
    audit("cli.done", logger=log, command=args.command)


if __name__ == "__main__":
    main()
