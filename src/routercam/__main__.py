"""CLI entry point: ``python -m routercam input.stl -o output.gcode``"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

from .config.defaults import DEFAULT_STOCK, build_default_tool_library
from .config.settings import AppSettings
from .core.errors import RouterCamError
from .core.job import JobResult, MeshJob, VectorJob, polylines_from_json
from .core.machine import MachineConfig, OriginPosition
from .core.model import SUPPORTED_EXTENSIONS, load_mesh
from .core.stock import StockConfig
from .core.tool import ToolType
from .logging_config import setup_logging

log = logging.getLogger("routercam.cli")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="routercam",
        description="Generate router G-code from vector paths (JSON) or meshes (STL, OBJ, ...).",
    )
    p.add_argument("input", type=Path,
                   help="Input mesh file or JSON vector file")
    p.add_argument(
        "-o", "--output", type=Path, default=None,
        help="Output G-code file (default: <input>.gcode)",
    )
    p.add_argument("--settings", type=Path, default=None,
                   help="Settings JSON (default: ~/.routercam/settings.json)")

    # Tool parameters
    p.add_argument("--tool-preset", default=None,
                   help="Tool preset name (default: from settings)")
    p.add_argument("--tool-type", choices=[t.value for t in ToolType], default=None,
                   help="Override the preset's tool type")
    p.add_argument("--diameter", type=float, default=None,
                   help="Tool diameter in mm (overrides preset)")
    p.add_argument("--angle", type=float, default=None,
                   help="V-bit included angle in degrees (overrides preset)")

    # Feeds and speeds
    p.add_argument("--rpm", type=int, default=None,
                   help="Spindle RPM (default: preset)")
    p.add_argument("--feed", type=float, default=None,
                   help="Cutting feed in mm/min (default: preset)")
    p.add_argument("--plunge", type=float, default=None,
                   help="Plunge feed in mm/min (default: preset)")

    # Machine and stock
    p.add_argument("--safe-z", type=float, default=None,
                   help="Clearance height above the stock top (default: 5)")
    p.add_argument("--origin", choices=[o.value for o in OriginPosition], default=None,
                   help="Work zero position on the stock (default: front-left)")
    p.add_argument("--stock-width", type=float, default=None,
                   help="Stock X size in mm (mesh default: model extent)")
    p.add_argument("--stock-height", type=float, default=None,
                   help="Stock Y size in mm (mesh default: model extent)")
    p.add_argument("--stock-thickness", type=float, default=None,
                   help="Stock Z size in mm (mesh default: model extent)")

    # Vector options
    p.add_argument("--depth", type=float, default=None,
                   help="Profile cut depth in mm (default: 1)")
    p.add_argument("--offset", type=float, default=0.0,
                   help="Sideways path offset in mm, positive to the left (default: 0)")
    p.add_argument("--no-optimize", action="store_true",
                   help="Cut paths in input order")

    # Mesh options
    p.add_argument("--resolution", type=float, default=None,
                   help="Height-map sample spacing in mm (default: 0.5)")
    p.add_argument("--stepover", type=float, default=None,
                   help="Distance between raster rows in mm (default: 40%% of the tool diameter)")
    p.add_argument("--invert", action="store_true",
                   help="Engrave the relief into the stock instead of following it")

    # Logging
    p.add_argument("-v", "--verbose", action="store_true",
                   help="Enable debug logging")
    p.add_argument("--log-file", default=None,
                   help="Also write the log to this file")

    return p


def _resolve_tool(args, settings: AppSettings):
    lib = build_default_tool_library()
    name = args.tool_preset or settings.tool_preset
    tool = lib.get(name)
    if tool is None:
        print(f"Error: unknown tool preset {name!r} (available: {', '.join(lib.names())})",
              file=sys.stderr)
        return None

    overrides = {}
    if args.tool_type is not None:
        overrides["tool_type"] = ToolType(args.tool_type)
    if args.diameter is not None:
        overrides["diameter"] = args.diameter
    if args.angle is not None:
        overrides["angle"] = args.angle
    if args.rpm is not None:
        overrides["spindle_speed"] = args.rpm
    if args.feed is not None:
        overrides["feed_rate"] = args.feed
    if args.plunge is not None:
        overrides["plunge_rate"] = args.plunge
    return replace(tool, **overrides)


def _stock(args, default: StockConfig) -> StockConfig:
    return StockConfig(
        width=args.stock_width if args.stock_width is not None else default.width,
        height=args.stock_height if args.stock_height is not None else default.height,
        thickness=args.stock_thickness if args.stock_thickness is not None else default.thickness,
    )


def _print_result(result: JobResult, output: Path) -> None:
    s = result.stats
    print(f"  Segments: {len(result.toolpath.segments)}  Points: {result.toolpath.total_points}")
    if result.grid_size is not None:
        print(f"  Height map: {result.grid_size[0]} x {result.grid_size[1]}")
    print(f"  Cutting: {s.cutting_distance:.1f} mm  Rapid: {s.rapid_distance:.1f} mm  "
          f"Total: {s.total_distance:.1f} mm")
    print(f"  Estimated time: {s.estimated_time:.1f} min")
    for issue in result.issues:
        if issue.severity == "warning":
            print(f"  Warning: {issue.message}")
    print(f"Wrote {output}")


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.WARNING, args.log_file)
    log.debug("Arguments: %s", vars(args))

    settings = AppSettings.load(args.settings)
    output: Path = args.output or args.input.with_suffix(".gcode")
    suffix = args.input.suffix.lower()

    tool = _resolve_tool(args, settings)
    if tool is None:
        return 1
    machine = MachineConfig(safe_z=args.safe_z if args.safe_z is not None else settings.safe_z)
    origin = args.origin or settings.origin_position
    print(f"Tool: {tool.describe()}  RPM: {tool.spindle_speed}  "
          f"Feed: {tool.feed_rate:g}  Plunge: {tool.plunge_rate:g}")

    try:
        if suffix == ".json":
            print(f"Loading {args.input} ...")
            polylines = polylines_from_json(json.loads(args.input.read_text()))
            print(f"  Paths: {len(polylines)}")
            stock = _stock(args, DEFAULT_STOCK)
            job = VectorJob(
                polylines=polylines,
                tool=tool,
                machine=machine,
                stock=stock,
                cut_depth=args.depth if args.depth is not None else settings.cut_depth,
                origin_position=origin,
                offset=args.offset,
                optimize=not args.no_optimize,
                name=args.input.stem,
            )
        elif suffix in SUPPORTED_EXTENSIONS:
            print(f"Loading {args.input} ...")
            model = load_mesh(args.input)
            if model.was_repaired:
                print("  Warning: mesh was repaired (may not be watertight)")
            print(f"  Extents: {model.extents}")
            # Footprint starts at the stock's front-left corner, base on Z=0
            model.translate_to_origin()
            stock = _stock(args, model.fitted_stock())
            job = MeshJob(
                triangles=model.triangles,
                tool=tool,
                machine=machine,
                stock=stock,
                resolution=args.resolution if args.resolution is not None else settings.resolution,
                stepover=args.stepover if args.stepover is not None else settings.stepover,
                origin_position=origin,
                invert=args.invert,
                name=args.input.stem,
            )
        else:
            print(f"Error: unsupported input type {suffix!r}", file=sys.stderr)
            return 1

        print(f"Stock: {stock.width:.3f} x {stock.height:.3f} x {stock.thickness:.3f}")
        print("Computing toolpath ...")
        result = job.run()
    except (RouterCamError, ValueError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if any(i.severity == "error" for i in result.issues):
        print("VALIDATION ERRORS:", file=sys.stderr)
        for issue in result.issues:
            if issue.severity == "error":
                print(f"  ERROR: {issue.message}", file=sys.stderr)
        return 1

    output.write_text(result.gcode)
    _print_result(result, output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
