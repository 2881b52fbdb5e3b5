"""Command-line interface for snapshotting HTML files."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import shutil
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .cli_config import load_config

# Configuration directory for global CLI usage
CONFIG_DIR = Path.home() / ".config" / "domsnap"
CONFIG_ENV_FILE = CONFIG_DIR / ".env"


def _load_config() -> None:
    load_config(
        config_dir=CONFIG_DIR,
        config_env_file=CONFIG_ENV_FILE,
        cwd=Path.cwd(),
        load_env=load_dotenv,
        copy_file=shutil.copy,
    )


_load_config()

from . import ConvertOptions, convert_async, get_font_embed_css_async, load_options_from_env
from .css_parser import parse_css
from .dom import Document, Node
from .loader import load_html_file


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def _write_output(text: str, output: Optional[str]) -> None:
    if output is None:
        print(text)
        return

    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    logging.info("Wrote %s", path)


def _select_root(document: Document, element_id: Optional[str]) -> Node:
    if element_id:
        node = document.get_element_by_id(element_id)
        if node is None:
            raise ValueError(f"No element with id {element_id!r}")
        return node
    if document.body is None:
        raise ValueError("Document has no body")
    return document.body


def _build_options(args: argparse.Namespace) -> ConvertOptions:
    """Environment defaults overlaid with the flags given on the command line."""
    options = load_options_from_env(ConvertOptions())

    if getattr(args, "skip_fonts", False):
        options.skip_fonts = True
    if getattr(args, "preferred_font_format", None):
        options.preferred_font_format = args.preferred_font_format
    if getattr(args, "include_query_params", False):
        options.include_query_params = True
    if getattr(args, "cache_bust", False):
        options.cache_bust = True
    if getattr(args, "placeholder", None):
        options.image_placeholder = args.placeholder
    if getattr(args, "background_color", None):
        options.background_color = args.background_color
    if getattr(args, "width", None):
        options.width = args.width
    if getattr(args, "height", None):
        options.height = args.height
    if getattr(args, "timeout", None):
        options.fetch_request_init["timeout"] = args.timeout

    return options


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="domsnap",
        description="Turn HTML into self-contained snapshots with inlined resources.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  # SVG snapshot of the page body
  domsnap render page.html -o out.svg

  # Self-contained XHTML of a single element, without fonts
  domsnap render page.html --element-id card --format markup --skip-fonts

  # Aggregate @font-face CSS with inlined font files
  domsnap fonts page.html --preferred-font-format woff2

  # Split a style sheet into top-level rules
  domsnap extract style.css
""",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    render = subparsers.add_parser("render", help="Snapshot an HTML file")
    render.add_argument("input", help="HTML file to snapshot")
    render.add_argument(
        "-o",
        "--output",
        type=str,
        default=None,
        help="Output file (default: stdout)",
    )
    render.add_argument(
        "--format",
        choices=["svg", "markup", "data-url"],
        default="svg",
        help="Output format (default: svg)",
    )
    render.add_argument("--element-id", default=None, help="Snapshot this element instead of <body>")
    render.add_argument("--base-url", default=None, help="Resolve relative URLs against this URL")
    render.add_argument("--width", type=float, default=None, help="Output width in pixels")
    render.add_argument("--height", type=float, default=None, help="Output height in pixels")
    render.add_argument("--background-color", default=None, help="Background color of the root")
    render.add_argument("--skip-fonts", action="store_true", help="Do not embed web fonts")
    render.add_argument(
        "--preferred-font-format",
        default=None,
        help="Keep only this font format, e.g. woff2",
    )
    render.add_argument(
        "--include-query-params",
        action="store_true",
        help="Let query strings take part in resource cache keys",
    )
    render.add_argument("--cache-bust", action="store_true", help="Append a timestamp to fetched URLs")
    render.add_argument("--placeholder", default=None, help="Data URL for resources that fail to load")
    render.add_argument("--timeout", type=float, default=None, help="Per-request timeout in seconds")

    fonts = subparsers.add_parser("fonts", help="Print the embedded @font-face CSS of an HTML file")
    fonts.add_argument("input", help="HTML file to scan")
    fonts.add_argument("-o", "--output", type=str, default=None, help="Output file (default: stdout)")
    fonts.add_argument("--base-url", default=None, help="Resolve relative URLs against this URL")
    fonts.add_argument(
        "--preferred-font-format",
        default=None,
        help="Keep only this font format, e.g. woff2",
    )
    fonts.add_argument("--timeout", type=float, default=None, help="Per-request timeout in seconds")

    extract = subparsers.add_parser("extract", help="Split a CSS file into top-level rules")
    extract.add_argument("input", help="CSS file to split")
    extract.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Output as a JSON array",
    )

    for subparser in (render, fonts, extract):
        subparser.add_argument(
            "-v",
            "--verbose",
            action="store_true",
            default=argparse.SUPPRESS,
            help="Enable verbose logging",
        )

    return parser.parse_args(argv)


async def _run_render_async(args: argparse.Namespace) -> int:
    document = load_html_file(args.input, args.base_url)
    root = _select_root(document, args.element_id)
    options = _build_options(args)

    logging.info("Rendering %s", args.input)
    snapshot = await convert_async(root, options)
    if args.format != "markup" and (snapshot.width <= 0 or snapshot.height <= 0):
        logging.warning(
            "Snapshot size is %gx%g; the page sets no inline width/height, "
            "pass --width and --height to size the SVG",
            snapshot.width,
            snapshot.height,
        )

    if args.format == "markup":
        output = snapshot.to_markup()
    elif args.format == "data-url":
        output = snapshot.to_svg_data_url()
    else:
        output = snapshot.to_svg()

    _write_output(output, args.output)
    return 0


async def _run_fonts_async(args: argparse.Namespace) -> int:
    document = load_html_file(args.input, args.base_url)
    if document.body is None:
        logging.error("Document has no body")
        return 1

    css_text = await get_font_embed_css_async(document.body, _build_options(args))
    if not css_text:
        logging.warning("No embeddable @font-face rules found in %s", args.input)
    _write_output(css_text, args.output)
    return 0


def _run_extract(args: argparse.Namespace) -> int:
    fragments = parse_css(Path(args.input).read_text(encoding="utf-8"))
    if args.json_output:
        print(json.dumps([fragment.strip() for fragment in fragments], indent=2, ensure_ascii=False))
    else:
        for fragment in fragments:
            print(fragment.strip())
    return 0


def _dispatch(args: argparse.Namespace) -> int:
    if args.command == "render":
        return asyncio.run(_run_render_async(args))
    if args.command == "fonts":
        return asyncio.run(_run_fonts_async(args))
    return _run_extract(args)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for the domsnap command."""
    args = _parse_args(argv)
    _setup_logging(args.verbose)

    try:
        return _dispatch(args)
    except KeyboardInterrupt:
        logging.info("Interrupted")
        return 130
    except Exception as exc:
        logging.error("Error: %s", exc)
        if args.verbose:
            logging.exception("Full traceback:")
        return 1


if __name__ == "__main__":
    sys.exit(main())
