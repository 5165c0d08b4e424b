"""
Command line entry point.

Usage:
    python -m orderlens.cli resolve document.json [--customer "ABC MEDICALS"] [--division D1]

document.json holds "tokens" ({text, x, y} list) or "rows" (list of cell lists, as read
from a spreadsheet; a header row maps the name, quantity and item-code columns), plus
"customers", "products", optional "schemes" and "customer".
The DocumentResult is printed as JSON.
"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import settings
from .pipelines import process_document, process_sheet

logger = logging.getLogger(__name__)

EXIT_BAD_INPUT = 2


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _resolve(args: argparse.Namespace) -> int:
    try:
        document = json.loads(Path(args.document).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Cannot read {args.document}: {e}")
        return EXIT_BAD_INPUT

    tokens = document.get("tokens")
    run = process_document if tokens is not None else process_sheet
    result = run(
        tokens if tokens is not None else document.get("rows", []),
        document.get("customers", []),
        document.get("products", []),
        document.get("schemes", []),
        customer_text=args.customer or document.get("customer"),
        division=args.division or document.get("division"),
        settings=settings,
    )
    json.dump(result.to_dict(), sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Resolve purchase-order lines against master data")
    sub = parser.add_subparsers(dest="command", required=True)

    resolve = sub.add_parser("resolve", help="Process one document JSON file")
    resolve.add_argument("document", help="Path to the document JSON")
    resolve.add_argument("--customer", help="Customer name (overrides header detection)")
    resolve.add_argument("--division", help="Division used to filter schemes")
    resolve.set_defaults(func=_resolve)

    args = parser.parse_args(argv)
    _configure_logging(settings.log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
