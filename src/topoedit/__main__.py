import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from topoedit.dot import parse_dot
from topoedit.errors import TopoEditError
from topoedit.layout import LayoutKind, apply_layout
from topoedit.serialization import dumps, load_file

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(levelname)s:%(name)s:%(message)s",
    )


def _write_output(text: str, output: Optional[str]) -> None:
    if output:
        out_path = Path(output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(text + "\n", encoding="utf-8")
        logger.info("Wrote %s", out_path)
    else:
        sys.stdout.write(text + "\n")


def _convert(args: argparse.Namespace) -> None:
    text = Path(args.path).read_text(encoding="utf-8")
    nodes, edges = parse_dot(text)
    if not nodes:
        logger.warning("No nodes found in %s", args.path)
    logger.info("Parsed %d node(s), %d edge(s) from %s", len(nodes), len(edges), args.path)
    _write_output(dumps(nodes, edges, wh_id=args.wh_id), args.output)


def _layout(args: argparse.Namespace) -> None:
    nodes, edges = load_file(Path(args.path))
    result = apply_layout(args.strategy, nodes, edges)
    positions: dict[str, dict[str, float]] = {}
    for node in result.nodes:
        positions.setdefault(node.data.code, {"x": node.position.x, "y": node.position.y})
    logger.info("Laid out %d node(s) with %s", len(result.nodes), args.strategy)
    _write_output(json.dumps(positions, indent=2), args.output)


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Convert and lay out warehouse topologies")
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    convert = subparsers.add_parser("convert", help="Convert DOT text to topology JSON")
    convert.add_argument("path", help="Path to the DOT file")
    convert.add_argument("-o", "--output", help="Output path (default: stdout)")
    convert.add_argument(
        "--wh-id",
        type=int,
        default=None,
        help="Warehouse id to write (default: current time in ms)",
    )
    convert.set_defaults(handler=_convert)

    layout = subparsers.add_parser("layout", help="Compute node positions for a topology JSON file")
    layout.add_argument("path", help="Path to the topology JSON file")
    layout.add_argument(
        "--strategy",
        choices=[kind.value for kind in LayoutKind],
        default=LayoutKind.HIERARCHICAL.value,
        help="Layout strategy (default: hierarchical)",
    )
    layout.add_argument("-o", "--output", help="Output path (default: stdout)")
    layout.set_defaults(handler=_layout)

    args = parser.parse_args(argv)

    _configure_logging(args.log_level)

    try:
        args.handler(args)
    except (OSError, TopoEditError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
