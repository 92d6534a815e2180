# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""DocDetect CLI: classify one or more URLs.

Usage:
    docdetect URL [URL ...] [--json] [--arbiter | --no-arbiter] [--model MODEL]
                            [--rpm N] [--timeout SECONDS] [-v]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Sequence

from . import ClassificationResult
from .config import DetectorConfig
from .engine import DocumentationDetector
from .errors import ConfigError
from .logging_config import configure

_EPILOG = """\
examples:
  %(prog)s https://docs.python.org/3/                 URL-pattern verdict, no fetch
  %(prog)s https://github.com/axios/axios --json      Full result as JSON
  %(prog)s https://example.com/guide --no-arbiter     Heuristics only

environment:
  OPENAI_API_KEY            enables the arbiter unless --no-arbiter is given
  DOCDETECT_*               see DetectorConfig.from_env for the full list
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docdetect",
        description="Decide whether URLs point to technical documentation.",
        epilog=_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("urls", nargs="+", metavar="URL", help="URL(s) to classify")
    parser.add_argument("--json", action="store_true", help="Print full results as a JSON array")
    parser.add_argument(
        "--arbiter",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Consult the LLM arbiter for inconclusive results (default: on when OPENAI_API_KEY is set)",
    )
    parser.add_argument("--model", type=str, metavar="MODEL", help="Arbiter model (default: gpt-4o)")
    parser.add_argument("--rpm", type=int, metavar="N", help="Requests per minute (default: 10)")
    parser.add_argument("--timeout", type=float, metavar="SECONDS", help="Fetch/arbiter timeout (default: 10)")
    parser.add_argument(
        "-v", "--verbose", action="count", default=0, help="-v for INFO logs, -vv for DEBUG (stderr)"
    )
    parser.add_argument("--log-json", action="store_true", help="Emit logs as JSON lines")
    return parser


def config_from_args(args: argparse.Namespace) -> DetectorConfig:
    overrides: dict = {}
    if args.arbiter is not None:
        overrides["enable_arbiter"] = args.arbiter
    if args.model:
        overrides["arbiter_model"] = args.model
    if args.rpm is not None:
        overrides["requests_per_minute"] = args.rpm
    if args.timeout is not None:
        overrides["request_timeout"] = args.timeout
    return DetectorConfig.from_env(**overrides)


def format_result(result: ClassificationResult) -> str:
    verdict = "DOC" if result.is_documentation else "NOT-DOC"
    line = f"{result.url}\t{verdict}\t{result.confidence:.2f}\t{result.source.value}"
    if result.warnings:
        line += f"\t({'; '.join(result.warnings)})"
    return line


async def _run(urls: Sequence[str], config: DetectorConfig) -> list[ClassificationResult]:
    async with DocumentationDetector(config) as detector:
        return [await detector.classify(url) for url in urls]


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    level = {0: "WARNING", 1: "INFO"}.get(args.verbose, "DEBUG")
    configure(json_output=args.log_json, level=level)

    try:
        config = config_from_args(args)
        results = asyncio.run(_run(args.urls, config))
    except (ConfigError, ValueError) as e:
        parser.error(str(e))

    if args.json:
        json.dump([r.to_dict() for r in results], sys.stdout, indent=2, ensure_ascii=False)
        sys.stdout.write("\n")
    else:
        for r in results:
            print(format_result(r))


if __name__ == "__main__":
    main()
