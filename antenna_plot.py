#!/usr/bin/env python3
"""
Antenna Pattern Plot CLI

Tabulate an antenna pattern from a command file.

Usage:
    python antenna_plot.py plot_commands.txt
    python antenna_plot.py plot_commands.txt --patterns patterns.yaml

Example command file:
    pattern_file   patterns.yaml
    pattern_name   search_beam
    axes           both
    azimuth_range  -30 30 deg
    azimuth_step   0.5 deg
    elevation_range -10 10 deg
    elevation_step 0.5 deg
    frequency      3 ghz
    output_file    search_beam.plt
    gnuplot_file   search_beam.gnu
    png_file       search_beam.png
"""

import argparse
import logging
import sys

from emsim.errors import ConfigurationError
from emsim.io.pattern_plot import AntennaPlot, load_pattern_file

logger = logging.getLogger("antenna_plot")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Tabulate an antenna pattern gain grid")
    parser.add_argument("command_file", type=str, help="Antenna plot command file")
    parser.add_argument(
        "--patterns", type=str, default=None, help="YAML file of named pattern definitions"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    plot = AntennaPlot()
    try:
        if args.patterns:
            plot.patterns.update(load_pattern_file(args.patterns))
        plot.process_command_file(args.command_file)
        ok = plot.execute()
    except (ConfigurationError, OSError) as exc:
        logger.error("%s", exc)
        return 1
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
