"""Command-line interface for elevgrid."""

from __future__ import annotations

import argparse
import csv
import json
import logging
import sys
from pathlib import Path
from typing import Any, TextIO

from elevgrid import __version__
from elevgrid.api import get_elevation_raster, get_point_elevations
from elevgrid.config import ElevationConfig, default_config, load_config
from elevgrid.dem.mosaic import RESAMPLING_CHOICES, write_mosaic
from elevgrid.errors import ConfigurationError, ElevgridError
from elevgrid.logging_utils import LogOptions, configure_logging
from elevgrid.providers.registry import list_point_providers, list_tile_providers

LOGGER = logging.getLogger("elevgrid.cli")


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    """Register options shared by raster and point requests."""
    parser.add_argument("--provider", help="Provider name (see `elevgrid providers`).")
    parser.add_argument("--zoom", type=int, help="Tile zoom level.")
    parser.add_argument("--api-key", help="Provider credential override.")
    parser.add_argument(
        "--max-workers",
        type=int,
        help="Concurrent requests (0 picks a CPU-based default).",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Overall time budget in seconds; unfinished requests are reported as failures.",
    )
    parser.add_argument("--retries", type=int, help="Retries per request on transient errors.")
    parser.add_argument(
        "--config",
        help="JSON config file (defaults to $ELEVGRID_CONFIG when set).",
    )


def _add_raster_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the raster subcommand."""
    raster = subparsers.add_parser("raster", help="Fetch a mosaicked elevation raster.")
    extent = raster.add_mutually_exclusive_group(required=True)
    extent.add_argument(
        "--bounds",
        nargs=4,
        type=float,
        metavar=("MINX", "MINY", "MAXX", "MAXY"),
        help="Bounding box in --crs units.",
    )
    extent.add_argument("--aoi", help="GeoJSON file whose envelope is fetched.")
    raster.add_argument("--crs", help="CRS of the bounds or AOI (e.g. EPSG:4326).")
    raster.add_argument("--target-crs", help="Output CRS (default: EPSG:3857).")
    raster.add_argument(
        "--resampling",
        choices=RESAMPLING_CHOICES,
        help="Resampling used when reprojecting.",
    )
    raster.add_argument("--max-tiles", type=int, help="Refuse requests above this tile count.")
    raster.add_argument("--compression", help="GeoTIFF compression (e.g. deflate).")
    raster.add_argument("--output", required=True, help="Output GeoTIFF path.")
    _add_common_options(raster)


def _add_points_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the points subcommand."""
    points = subparsers.add_parser("points", help="Look up elevations for CSV points.")
    points.add_argument("--input", required=True, help="CSV file with coordinate columns.")
    points.add_argument("--x-column", default="x", help="Column holding x/longitude.")
    points.add_argument("--y-column", default="y", help="Column holding y/latitude.")
    points.add_argument("--crs", default="EPSG:4326", help="CRS of the input coordinates.")
    points.add_argument(
        "--column",
        default="elevation",
        help="Name of the appended elevation column.",
    )
    points.add_argument("--output", default="-", help="Output CSV path ('-' for stdout).")
    _add_common_options(points)


def _add_providers_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the providers subcommand."""
    providers = subparsers.add_parser("providers", help="List registered providers.")
    providers.add_argument("--json", action="store_true", help="Emit JSON.")


def _base_config(args: argparse.Namespace) -> ElevationConfig:
    if getattr(args, "config", None):
        return load_config(Path(args.config))
    return default_config()


def _request_options(args: argparse.Namespace) -> dict[str, Any]:
    """Collect option overrides from parsed arguments."""
    keys = (
        "provider",
        "zoom",
        "api_key",
        "max_workers",
        "timeout",
        "retries",
        "target_crs",
        "resampling",
        "max_tiles",
    )
    return {key: getattr(args, key) for key in keys if getattr(args, key, None) is not None}


def _run_raster(args: argparse.Namespace) -> int:
    if args.aoi:
        aoi_path = Path(args.aoi)
        try:
            geometry: Any = json.loads(aoi_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"Unable to read AOI {aoi_path}: {exc}") from exc
    else:
        geometry = tuple(args.bounds)
    mosaic = get_elevation_raster(
        geometry,
        args.crs,
        config=_base_config(args),
        **_request_options(args),
    )
    output = write_mosaic(mosaic, Path(args.output), compression=args.compression)
    valid = int(mosaic.valid_mask().sum())
    height, width = mosaic.shape
    LOGGER.info(
        "Wrote %sx%s mosaic (%s valid cells, %s missing tile(s)) to %s",
        width,
        height,
        valid,
        len(mosaic.missing_tiles),
        output,
    )
    return 0


def _read_csv(path: Path) -> list[dict[str, str]]:
    try:
        with path.open("r", encoding="utf-8", newline="") as handle:
            return list(csv.DictReader(handle))
    except OSError as exc:
        raise ConfigurationError(f"Unable to read points file {path}: {exc}") from exc


def _write_csv(records: list[dict[str, Any]], handle: TextIO) -> None:
    if not records:
        return
    writer = csv.DictWriter(handle, fieldnames=list(records[0]))
    writer.writeheader()
    writer.writerows(records)


def _run_points(args: argparse.Namespace) -> int:
    rows = _read_csv(Path(args.input))
    records = get_point_elevations(
        rows,
        args.crs,
        x=args.x_column,
        y=args.y_column,
        column=args.column,
        config=_base_config(args),
        **_request_options(args),
    )
    if args.output == "-":
        _write_csv(records, sys.stdout)
    else:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with output_path.open("w", encoding="utf-8", newline="") as handle:
            _write_csv(records, handle)
        LOGGER.info("Wrote %s point(s) to %s", len(records), output_path)
    return 0


def _provider_rows() -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for name, provider in sorted(list_tile_providers().items()):
        spec = provider.spec()
        rows.append(
            {
                "name": name,
                "kind": "tile",
                "max_zoom": spec.max_zoom,
                "tile_size": spec.tile_size,
                "api_key_env": spec.api_key_env,
                "description": spec.description,
            }
        )
    for name, provider in sorted(list_point_providers().items()):
        spec = provider.spec()
        rows.append(
            {
                "name": name,
                "kind": "point",
                "batch_size": spec.batch_size,
                "api_key_env": spec.api_key_env,
                "description": spec.description,
            }
        )
    return rows


def _run_providers(args: argparse.Namespace) -> int:
    rows = _provider_rows()
    if args.json:
        print(json.dumps(rows, indent=2))
        return 0
    for row in rows:
        print(f"{row['kind']:<6} {row['name']:<14} {row['description']}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the CLI entrypoint and return an exit code."""
    parser = argparse.ArgumentParser(
        prog="elevgrid",
        description="Elevation rasters and point lookups from remote providers",
    )
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (repeatable).",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Reduce log output to warnings and errors.",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit logs as JSON on stderr.",
    )
    parser.add_argument(
        "--log-file",
        help="Optional path for JSON log output.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_raster_parser(subparsers)
    _add_points_parser(subparsers)
    _add_providers_parser(subparsers)

    args = parser.parse_args(argv)
    log_file_value = getattr(args, "log_file", None)
    log_options = LogOptions(
        verbose=getattr(args, "verbose", 0) or 0,
        quiet=bool(getattr(args, "quiet", False)),
        log_file=Path(log_file_value) if log_file_value else None,
        json_console=bool(getattr(args, "log_json", False)),
    )
    configure_logging(log_options)

    try:
        if args.command == "raster":
            return _run_raster(args)
        if args.command == "points":
            return _run_points(args)
        if args.command == "providers":
            return _run_providers(args)
    except ElevgridError as exc:
        LOGGER.error("%s", exc)
        return 1

    parser.error("Unknown command")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
