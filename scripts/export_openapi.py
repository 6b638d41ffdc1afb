#!/usr/bin/env python3
"""
Export the Study Registration OpenAPI schema.

Writes docs/openapi.json from the FastAPI app's generated schema; no server
is started.

Usage:
    python scripts/export_openapi.py                     # -> docs/openapi.json
    python scripts/export_openapi.py --output api.json   # custom path
"""

import argparse
import json
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from studyreg.api import create_app  # noqa: E402

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH")


def export_openapi(output_path: Path | None = None) -> dict:
    """Write the schema as JSON and return it."""
    schema = create_app().openapi()

    if output_path is None:
        output_path = Path(__file__).resolve().parent.parent / "docs" / "openapi.json"
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(schema, indent=2), encoding="utf-8")

    info = schema.get("info", {})
    print(f"OpenAPI schema written to {output_path}")
    print(f"  {info.get('title')} {info.get('version')}")
    for path, methods in sorted(schema.get("paths", {}).items()):
        for method in methods:
            if method.upper() in HTTP_METHODS:
                print(f"  {method.upper():6s} {path}")
    return schema


def main() -> int:
    parser = argparse.ArgumentParser(description="Export the studyreg OpenAPI schema")
    parser.add_argument(
        "--output", "-o", type=Path, help="Output file (default: docs/openapi.json)"
    )
    args = parser.parse_args()

    schema = export_openapi(args.output)
    endpoints = sum(
        1
        for methods in schema.get("paths", {}).values()
        for m in methods
        if m.upper() in HTTP_METHODS
    )
    schemas_count = len(schema.get("components", {}).get("schemas", {}))
    print(f"\n{endpoints} endpoints, {schemas_count} schemas")
    return 0


if __name__ == "__main__":
    sys.exit(main())
