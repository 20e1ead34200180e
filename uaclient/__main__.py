"""
Command line entry point.

Usage:
    uaclient [-c systemconfig.json] [--log-level DEBUG]
    python -m uaclient
"""

import argparse
import sys
from typing import List, Optional

from .config import DEFAULT_CONFIG_PATH, load_config
from .errors import ConfigError
from .logging import configure_logging, log_error
from .system import UAClientSystem


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="uaclient",
        description="Republish OPC UA server nodes as HTTP browse and access services",
    )
    parser.add_argument("-c", "--config", default=DEFAULT_CONFIG_PATH,
                        help="path to the system configuration file (default: %(default)s)")
    parser.add_argument("--log-level", default=None,
                        help="override the configured log level")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level or "INFO")

    try:
        settings = load_config(args.config)
    except ConfigError as e:
        log_error(f"Configuration error: {e}")
        return 1

    configure_logging(args.log_level or settings.log_level, settings.log_format)

    system = UAClientSystem(settings)
    try:
        system.run()
    except ConfigError as e:
        log_error(f"Resource configuration error: {e}")
        return 1
    except OSError as e:
        log_error(f"Could not start HTTP listener: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
