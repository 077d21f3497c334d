#!/usr/bin/env python3
"""
Configuration Management CLI Tool

Command-line tool for the performance dashboard configuration: write a
sample file, show the effective configuration, or validate a file.
"""

import argparse
import os
import sys
from dataclasses import asdict

import yaml

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from src.config.config_manager import ConfigManager


def cmd_sample(args) -> int:
    ConfigManager().save_sample_config(args.output)
    print(f"Sample configuration written to {args.output}")
    return 0


def cmd_show(args) -> int:
    config = ConfigManager(args.config).load()
    print(yaml.safe_dump(asdict(config), sort_keys=False))
    return 0


def cmd_validate(args) -> int:
    if not os.path.exists(args.config):
        print(f"Configuration file not found: {args.config}")
        return 1
    try:
        ConfigManager(args.config).load()
    except ValueError as e:
        print(f"Invalid configuration: {e}")
        return 1
    print(f"{args.config} is valid")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Performance dashboard configuration tool")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sample = subparsers.add_parser("sample", help="Write a sample configuration file")
    sample.add_argument("--output", default="config.yaml", help="Destination path")
    sample.set_defaults(func=cmd_sample)

    show = subparsers.add_parser("show", help="Print the effective configuration")
    show.add_argument("--config", default="config.yaml", help="Configuration file path")
    show.set_defaults(func=cmd_show)

    validate = subparsers.add_parser("validate", help="Validate a configuration file")
    validate.add_argument("--config", default="config.yaml", help="Configuration file path")
    validate.set_defaults(func=cmd_validate)

    args = parser.parse_args()
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
