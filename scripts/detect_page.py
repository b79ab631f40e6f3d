#!/usr/bin/env python3
"""
Run filter detection on a saved page.

Prints the detected filter state and the tax query it compiles to, which
is handy when a theme or filter plugin renders markup the detector does
not recognize yet.

Usage:
    PYTHONPATH=src python scripts/detect_page.py page.html --url "https://shop.example/?product_cat=shoes"
    PYTHONPATH=src python scripts/detect_page.py page.html --globals jsf.json --post-type product
"""

import argparse
import json
import os
import sys
from dataclasses import replace
from pathlib import Path

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "src"))

from config.settings import get_settings  # noqa: E402
from core.logging import configure_logging  # noqa: E402
from filters.compiler import QueryContext, compile_filters  # noqa: E402
from filters.config import FilterConfig  # noqa: E402
from filters.detector import FilterDetector, PageSnapshot  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(description="Detect active filters in a saved page")
    parser.add_argument("html", type=Path, help="Saved page markup")
    parser.add_argument("--url", default="", help="Page URL including the query string")
    parser.add_argument(
        "--globals",
        type=Path,
        default=None,
        help='JSON file with page globals, e.g. {"JetSmartFilters": {...}}',
    )
    parser.add_argument("--post-type", default=None, help="Post type to compile for (default: shop context)")
    parser.add_argument("--debug", action="store_true", help="Log source failures")
    args = parser.parse_args()

    configure_logging(log_level="DEBUG" if args.debug else "WARNING")

    page_globals = {}
    if args.globals:
        page_globals = json.loads(args.globals.read_text(encoding="utf-8"))

    settings = get_settings()
    config = FilterConfig.from_settings(settings)
    if args.debug:
        config = replace(config, debug=True)

    snapshot = PageSnapshot(
        url=args.url,
        html=args.html.read_text(encoding="utf-8"),
        globals=page_globals,
    )
    state = FilterDetector(config).detect(snapshot)

    context = QueryContext(
        post_type=args.post_type,
        commerce_scope=args.post_type in (None, "product"),
        woocommerce_active=config.woocommerce_active,
    )
    fragment = compile_filters(state, context, config)

    print(json.dumps(
        {"filters": state.to_dict(), "tax_query": fragment.to_tax_query()},
        indent=2,
    ))
    return 0


if __name__ == "__main__":
    sys.exit(main())
