"""Docs Browse entry point."""

import argparse
import asyncio
import json
import sys


def _browse_cli(argv: list[str]) -> int:
    """Run one browse call and print the report as JSON.

    Usage:
        docs-browse browse URL [URL ...] [--request TEXT] [--focus REGEX]
    """
    parser = argparse.ArgumentParser(prog="docs-browse browse")
    parser.add_argument("urls", nargs="+", help="Documentation URLs")
    parser.add_argument("--request", default=None, help="What you want to build")
    parser.add_argument("--focus", default=None, help="Regex for summary lines")
    parser.add_argument(
        "--context-only",
        action="store_true",
        help="Print only the documentation context",
    )
    args = parser.parse_args(argv)

    from docs_browse.browse import browse

    report = asyncio.run(browse(args.urls, args.request, args.focus))
    if args.context_only:
        print(report.documentation_context)
    else:
        print(json.dumps(report.to_dict(), ensure_ascii=False, indent=2))
    return 0 if report.summary.successful else 1


def _cli() -> None:
    """CLI dispatcher: server (default) or browse subcommand."""
    if len(sys.argv) >= 2 and sys.argv[1] == "browse":
        sys.exit(_browse_cli(sys.argv[2:]))
    else:
        from docs_browse.server import main

        main()


if __name__ == "__main__":
    _cli()
