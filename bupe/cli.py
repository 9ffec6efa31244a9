from __future__ import annotations

import argparse
from dataclasses import replace
import json
import logging
import sys
from pathlib import Path

from .builder import build
from .config_file import ConfigFileError, load_config
from .env import log_level, staging_root
from .errors import EpubError
from .models import config_to_dict
from .parser import parse

logger = logging.getLogger("bupe.cli")


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="bupe", description="Build and inspect EPUB 2/3 publications.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log staging steps")
    commands = parser.add_subparsers(dest="command", required=True)

    build_cmd = commands.add_parser("build", help="Build an EPUB from a JSON book description")
    build_cmd.add_argument("config", help="JSON configuration file")
    build_cmd.add_argument("-o", "--output", help="Output EPUB file path")

    parse_cmd = commands.add_parser("parse", help="Print the metadata of an EPUB file as JSON")
    parse_cmd.add_argument("input", help="Input EPUB file path")
    return parser.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    level = "DEBUG" if verbose else log_level()
    logging.basicConfig(level=getattr(logging, level, logging.WARNING), format="%(levelname)s %(name)s: %(message)s")


def run_build(config_file: str, output: str | None) -> int:
    config = load_config(config_file)
    tmp_dir = staging_root()
    if tmp_dir and "tmp_dir" not in config.extras:
        config = replace(config, extras={**config.extras, "tmp_dir": tmp_dir})
    output_path = Path(output) if output else Path(config_file).with_suffix(".epub")
    epub_file = build(config, output_path)
    print(f"EPUB saved to: {epub_file}")
    return 0


def run_parse(input_file: str) -> int:
    config = parse(input_file)
    print(json.dumps(config_to_dict(config), ensure_ascii=False, indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    setup_logging(args.verbose)
    try:
        if args.command == "build":
            return run_build(args.config, args.output)
        return run_parse(args.input)
    except (EpubError, ConfigFileError, OSError) as exc:
        logger.debug("command failed", exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
