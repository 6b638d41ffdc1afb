"""
Study Registration command line.

Usage:
    studyreg estimate criteria.json            # summary sentence
    studyreg estimate criteria.json --json     # {"available": ..., "matched": ...}
    studyreg estimate criteria.json --explain  # plus every adjustment
    studyreg serve --port 8000
"""

import argparse
import json
import sys
from pathlib import Path

from studyreg import __version__
from studyreg.config import get_settings
from studyreg.core.enums import AdjustmentKind
from studyreg.core.schemas import EstimateBreakdown, RecruitmentCriteria
from studyreg.feasibility.estimator import explain
from studyreg.observability.logging_config import configure_logging


def _load_criteria(source: str) -> RecruitmentCriteria:
    text = sys.stdin.read() if source == "-" else Path(source).read_text(encoding="utf-8")
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("criteria file must contain a JSON object")
    return RecruitmentCriteria.model_validate(data)


def _format_breakdown(breakdown: EstimateBreakdown) -> list[str]:
    lines = []
    for adj in breakdown.adjustments:
        op = "x" if adj.kind is AdjustmentKind.MULTIPLY else "-"
        lines.append(f"  {adj.step:<22} {op} {adj.amount:<10g} -> {adj.pool_after:,.1f}")
    return lines


def cmd_estimate(args: argparse.Namespace) -> int:
    try:
        criteria = _load_criteria(args.criteria)
    except (OSError, ValueError) as e:
        print(f"error: cannot read criteria from {args.criteria}: {e}", file=sys.stderr)
        return 2

    breakdown = explain(criteria, get_settings().estimator.to_weights())
    result = breakdown.result

    if args.json:
        payload = result.model_dump()
        if args.explain:
            payload["breakdown"] = [a.model_dump(mode="json") for a in breakdown.adjustments]
        print(json.dumps(payload, indent=2))
        return 0

    print(result.summary())
    if args.explain:
        print("\n".join(_format_breakdown(breakdown)))
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("studyreg.api.routes:app", host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="studyreg", description="Study registration feasibility tools"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    est = sub.add_parser("estimate", help="Estimate matching volunteers for a criteria file")
    est.add_argument("criteria", help="Path to a criteria JSON file, or - for stdin")
    est.add_argument("--json", action="store_true", help="Print the result as JSON")
    est.add_argument("--explain", action="store_true", help="Show each adjustment")
    est.set_defaults(func=cmd_estimate)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(get_settings().logging)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
