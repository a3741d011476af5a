"""
Run one SEO analysis from the CLI.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from analyzer.progress import CallbackProgressSink
from app.cache import build_cache
from app.config import get_cache_settings
from app.errors import AnalysisError, format_error_response
from app.services.analysis_service import build_analysis_service
from llm_analysis.adapter import SUPPORTED_MODELS


def _print_progress(stage: str, progress: int) -> None:
    print(f"[{progress:3d}%] {stage}", file=sys.stderr)


def main() -> int:
    parser = argparse.ArgumentParser(description="Run a competitive SEO analysis.")
    parser.add_argument("keyword", help="Keyword to analyse.")
    parser.add_argument("target_url", help="Page that should rank for the keyword.")
    parser.add_argument(
        "--model",
        dest="model",
        default="claude-sonnet-4-5",
        choices=SUPPORTED_MODELS,
        help="Language model used for every stage.",
    )
    parser.add_argument(
        "--format",
        dest="output_format",
        default="json",
        choices=("json", "markdown"),
        help="Print the report as JSON or markdown.",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    cache = build_cache(get_cache_settings())
    service = build_analysis_service(cache)
    try:
        request = service.validate(args.keyword, args.target_url, args.model)
        outcome = service.analyze(request, progress_sink=CallbackProgressSink(_print_progress))
    except AnalysisError as exc:
        print(json.dumps(format_error_response(exc), indent=2))
        return 1
    finally:
        service.close()
        cache.close()

    if args.output_format == "markdown":
        print(outcome.markdown)
    else:
        print(json.dumps(outcome.report.to_dict(), indent=2, default=str))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
