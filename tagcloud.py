"""CLI entrypoint for rendering a tag cloud from a JSON tag file."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from tagcloud_core import (
    counts_from_tags,
    load_tags_from_json_path,
    make_rng,
    parse_directive,
    render_cloud,
    render_page,
)

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Render a tag cloud as an HTML fragment.")
    parser.add_argument(
        "tags_path",
        help="JSON object mapping each tag to its items (or to an occurrence count).",
    )
    parser.add_argument(
        "output_path",
        nargs="?",
        default=None,
        help="Destination file. Written to stdout when omitted.",
    )
    parser.add_argument(
        "-d",
        "--directive",
        default="",
        help="Tag cloud directive, e.g. 'font-size: 16 - 28px, threshold: 2, sort: freq'.",
    )
    parser.add_argument("--tag-dir", default="/tags", help="Base path used for tag links.")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for 'sort: rand'.")
    parser.add_argument("--page", action="store_true", help="Wrap the fragment in a standalone HTML page.")
    parser.add_argument("--title", type=str, default="Tag Cloud", help="HTML document title (with --page).")
    parser.add_argument("--heading", type=str, default=None, help="Heading text displayed above the cloud (with --page).")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log parsing and rendering details.")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    tags_path = Path(args.tags_path)
    if not tags_path.exists():
        raise SystemExit(f"Tag file not found: {tags_path}")

    try:
        tags = load_tags_from_json_path(tags_path)
        label_counts = counts_from_tags(tags)
    except (TypeError, ValueError) as exc:
        raise SystemExit(f"Invalid tag file {tags_path}: {exc}")

    config = parse_directive(args.directive)
    logger.debug("Parsed directive %r into %s", args.directive, config)
    html = render_cloud(config, label_counts, args.tag_dir, make_rng(args.seed))

    if args.page:
        html = render_page(html, style=config.style, title=args.title, heading=args.heading)

    if args.output_path is None:
        sys.stdout.write(html)
        return

    output_path = Path(args.output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(html, encoding="utf-8")
    print(output_path)


if __name__ == "__main__":
    main()
