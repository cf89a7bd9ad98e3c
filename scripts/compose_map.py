#!/usr/bin/env python3
"""CLI entry point for composing scenario maps."""

import argparse
import sys

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt

from composer import MapComposer
from config import get_scenario, list_scenarios
from errors import GeoLayersError
from interactive import save_html
from logging_config import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compose a layered map (static and/or interactive) for a scenario"
    )
    parser.add_argument(
        "--scenario",
        default="greenland",
        help="Registered scenario name",
    )
    parser.add_argument(
        "--data-dir",
        help="Directory holding the scenario inputs (default: $GEOLAYERS_DATA_DIR or ./data)",
    )
    parser.add_argument(
        "--static-out",
        help="Write the static map to this image path (png, svg, pdf)",
    )
    parser.add_argument(
        "--interactive-out",
        help="Write the interactive map to this HTML path",
    )
    parser.add_argument(
        "--dpi",
        type=int,
        default=200,
        help="Resolution of the static map",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level",
    )
    parser.add_argument(
        "--log-file",
        help="Also write logs to this file",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List registered scenarios and exit",
    )
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.list:
        for name, title in list_scenarios().items():
            print(f"{name}: {title}")
        return 0

    if not args.static_out and not args.interactive_out:
        parser.error("at least one of --static-out / --interactive-out is required")

    logger = setup_logging(args.log_level, args.log_file)

    try:
        scenario = get_scenario(args.scenario)
    except KeyError as exc:
        print(f"Error: {exc.args[0]}", file=sys.stderr)
        return 2
    if args.data_dir:
        scenario = scenario.with_data_dir(args.data_dir)

    composer = MapComposer(scenario)

    try:
        if args.static_out:
            fig, _ = composer.render_static()
            composer.static_renderer.save(args.static_out, fig, dpi=args.dpi)
            plt.close(fig)

        if args.interactive_out:
            web_map = composer.render_interactive()
            save_html(web_map, args.interactive_out)
    except (GeoLayersError, FileNotFoundError) as exc:
        logger.error("Composition failed: %s", exc)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
