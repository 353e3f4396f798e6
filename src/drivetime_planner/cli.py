"""
Command-line interface for the application.

This module provides the main entry point for the CLI.
"""

from __future__ import annotations

import argparse
import asyncio
import functools
import http.server
import sys

from drivetime_planner import __version__
from drivetime_planner.colors import resolve, rgb_to_hex
from drivetime_planner.config import get_settings
from drivetime_planner.flows.generate import ISOCHRONES_PATH, drive_time_flow
from drivetime_planner.logging_config import configure
from drivetime_planner.markers import clamp
from drivetime_planner.schemas import MARKER_IDS
from drivetime_planner.store import DataStore


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="drivetime-planner",
        description="Drive-time (isochrone) polygons around a map point",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # 'info' command
    subparsers.add_parser("info", help="Show configuration")

    # 'generate' command - headless run that builds the site
    gen_parser = subparsers.add_parser("generate", help="Generate drive time areas for a point")
    gen_parser.add_argument("--x", type=float, required=True, help="X / longitude")
    gen_parser.add_argument("--y", type=float, required=True, help="Y / latitude")
    gen_parser.add_argument(
        "--wkid",
        type=int,
        default=4326,
        help="Spatial reference of the point (default: 4326)",
    )
    gen_parser.add_argument(
        "--times",
        type=float,
        nargs=3,
        metavar=("T1", "T2", "T3"),
        default=None,
        help="Drive time in minutes for markers 1-3 (default: configured)",
    )

    # 'serve' command - serve built site locally
    serve_parser = subparsers.add_parser("serve", help="Serve site locally")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to serve on (default: api_port from settings)",
    )

    return parser


def cmd_info(_args: argparse.Namespace) -> int:
    """Handle the 'info' command."""
    settings = get_settings()
    print(f"Application: {settings.app_name}")
    print(f"Version: {__version__}")
    print(f"Environment: {settings.app_env}")
    print(f"Mode: {settings.mode.value}")
    print(f"Service: {settings.service_url}")
    print(f"Max drive time: {settings.max_drive_time} min")
    for marker_id in MARKER_IDS:
        minutes = clamp(settings.default_drive_times.for_marker(marker_id), settings.max_drive_time)
        color = rgb_to_hex(resolve(marker_id, settings.polygon_colors.for_marker(marker_id)))
        print(f"  Marker {marker_id}: {minutes} min, {color}")

    record = DataStore(settings.data_dir).read_raw(ISOCHRONES_PATH)
    if record is None:
        print("Last run: none")
    else:
        meta, data = record.get("meta", {}), record.get("data", {})
        done = [k for k, v in sorted(data.get("completed", {}).items()) if v]
        print(f"Last run: {meta.get('fetched_at', 'unknown')}")
        print(f"  Completed markers: {', '.join(done) or 'none'}")
        if data.get("error"):
            print(f"  Error: {data['error']}")
    return 0


def cmd_generate(args: argparse.Namespace) -> int:
    """Handle the 'generate' command: run the flow for one point."""
    drive_times = dict(zip(MARKER_IDS, args.times, strict=True)) if args.times else None
    result = asyncio.run(
        drive_time_flow(x=args.x, y=args.y, wkid=args.wkid, drive_times=drive_times)
    )

    for marker_id, done in sorted(result["completed"].items()):
        print(f"Marker {marker_id}: {'done' if done else 'not drawn'}")
    if result["error"]:
        print(f"Error: {result['error']}", file=sys.stderr)
        return 1
    print(f"Site: {result['output']}")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Handle the 'serve' command: serve the built site locally."""
    settings = get_settings()
    port = args.port if args.port is not None else settings.api_port
    site_dir = DataStore(settings.data_dir).site

    if not site_dir.exists():
        print("No site directory found. Run 'drivetime-planner generate' first.", file=sys.stderr)
        return 1

    handler = functools.partial(http.server.SimpleHTTPRequestHandler, directory=str(site_dir))

    with http.server.HTTPServer(("", port), handler) as server:
        print(f"Serving site on http://localhost:{port}/ (Ctrl+C to stop)")
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            print("\nServer stopped.")

    return 0


def main() -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return 0

    settings = get_settings()
    configure("DEBUG" if args.debug or settings.debug else settings.log_level)

    commands = {
        "info": cmd_info,
        "generate": cmd_generate,
        "serve": cmd_serve,
    }

    handler = commands.get(args.command)
    if handler:
        return handler(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
