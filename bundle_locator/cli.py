"""
Bundle Locator
==============
Finds the embedded .deps.json of a .NET single-file app host without running
the application, and optionally dumps or extracts it.

Strategies:
  signature - scan the file for the 32-byte bundle signature (default)
  sections  - read the header-offset field from the data section / symbol
  trace     - run the app host with host tracing and parse its stderr
  auto      - signature, then sections

Usage:
  python -m bundle_locator <app_host> [--strategy NAME] [--dump] [--extract FILE]
"""

import argparse
import io
import json
import sys
import time
from pathlib import Path

from . import __version__, depsdump
from .errors import LocatorError
from .log import Logger
from .pipeline import STRATEGIES, TieredLocator, create_locator
from .readers import detect_format
from .source import BoundedView, RandomAccessSource
from .trace import DEFAULT_TIMEOUT


class Config:
    """Immutable configuration parsed from CLI arguments."""
    __slots__ = ("path", "strategy", "platform", "timeout", "json", "dump",
                 "extract", "graph", "verbose")

    def __init__(self, args):
        self.path = Path(args.path)
        self.strategy = args.strategy
        self.platform = args.platform
        self.timeout = args.timeout
        self.json = bool(args.json)
        self.dump = bool(args.dump)
        self.extract = Path(args.extract) if args.extract else None
        self.graph = Path(args.graph) if args.graph else None
        self.verbose = bool(args.verbose)

    def __repr__(self):
        return (f"Config(path={self.path}, strategy={self.strategy}, platform={self.platform}, "
                f"timeout={self.timeout}, json={self.json}, dump={self.dump}, "
                f"extract={self.extract}, graph={self.graph}, verbose={self.verbose})")


def build_argparser():
    parser = argparse.ArgumentParser(
        prog="bundle-locator",
        description="Locate the bundled .deps.json of a single-file app host.",
    )
    parser.add_argument("path", help="path to the single-file app host")
    parser.add_argument("-s", "--strategy", default="signature",
                        choices=list(STRATEGIES) + [TieredLocator.name],
                        help="discovery strategy (default: %(default)s)")
    parser.add_argument("--platform", default=None,
                        help="data section layout for the sections strategy: "
                             "linux/elf, darwin/macho or windows/pe (default: host)")
    parser.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT,
                        help="seconds to wait for the trace line (default: %(default)s)")
    parser.add_argument("--json", action="store_true", help="print the result as JSON")
    parser.add_argument("--dump", action="store_true", help="print a summary of the .deps.json")
    parser.add_argument("-x", "--extract", metavar="FILE", help="write the .deps.json bytes to FILE")
    parser.add_argument("--graph", metavar="PNG",
                        help="render the runtime library graph (needs networkx + matplotlib)")
    parser.add_argument("-v", "--verbose", action="store_true", help="print strategy diagnostics")
    return parser


def format_json(cfg, strategy, location, file_size, elapsed_ms):
    out = {
        "tool": "bundle_locator",
        "version": __version__,
        "file": str(cfg.path),
        "file_size": file_size,
        "strategy": strategy,
        "offset": hex(location.offset),
        "size": location.size,
        "elapsed_ms": round(elapsed_ms, 3),
    }
    return json.dumps(out, indent=2)


def _print_banner():
    print("=" * 65)
    print(f"  Bundle Locator v{__version__}")
    print("  .deps.json discovery for single-file app hosts")
    print("=" * 65)


def run(cfg, logger):
    """Locate (and optionally dump / extract / graph) the .deps.json. Returns an exit code."""
    if not cfg.path.is_file():
        logger.error(f"File not found: {cfg.path}")
        return 1

    locator = create_locator(cfg.strategy, logger=logger, platform=cfg.platform,
                             timeout=cfg.timeout)

    with RandomAccessSource(cfg.path) as source:
        file_size = len(source)
        fmt = detect_format(source)

    if not cfg.json:
        _print_banner()
        print(f"\n  File:          {cfg.path}")
        print(f"  Size:          {file_size:,} bytes ({file_size / (1024*1024):.2f} MB)")
        print(f"  Binary Format: {(fmt or 'unknown').upper()}")
        print(f"  Strategy:      {locator!r}")

    started = time.perf_counter()
    if isinstance(locator, TieredLocator):
        strategy, location = locator.locate_with_tier(cfg.path)
    else:
        strategy, location = locator.name, locator.locate(cfg.path)
    elapsed_ms = (time.perf_counter() - started) * 1000

    if cfg.json:
        print(format_json(cfg, strategy, location, file_size, elapsed_ms))
    else:
        print(f"\n  .deps.json:    {location} (via {strategy})")
        print(f"  Elapsed:       {elapsed_ms:.3f} ms")

    if not (cfg.dump or cfg.extract or cfg.graph):
        return 0

    # Reuse the location found above rather than running the strategy again.
    with BoundedView(RandomAccessSource(cfg.path), location) as stream:
        payload = stream.read()

    if cfg.extract:
        cfg.extract.parent.mkdir(parents=True, exist_ok=True)
        cfg.extract.write_bytes(payload)
        logger.info(f"Wrote {len(payload):,} bytes to {cfg.extract}")

    if cfg.dump or cfg.graph:
        try:
            deps = depsdump.load_deps(io.BytesIO(payload))
        except ValueError as e:
            logger.error(f"Invalid .deps.json payload: {e}")
            return 1
        if cfg.dump:
            print()
            depsdump.dump_deps(deps, sys.stdout)
        if cfg.graph:
            written = depsdump.render_dependency_graph(deps, cfg.graph)
            if written:
                logger.info(f"Dependency graph saved: {written}")
            else:
                logger.warn("Dependency graph skipped (networkx + matplotlib not installed or no libraries)")

    return 0


def main(argv=None):
    parser = build_argparser()
    cfg = Config(parser.parse_args(argv))
    logger = Logger(enable_diag=cfg.verbose)
    try:
        return run(cfg, logger)
    except LocatorError as e:
        logger.error(str(e))
        return 1
