"""
Utility script to generate and write the OpenAPI schema for the task API.

This script builds the FastAPI application and serializes its OpenAPI schema
to a JSON file so that API clients and documentation tools can consume a
stable document without running the server.

Usage:
    python -m task_api.generate_openapi [output_path]

Notes:
- The default output is interfaces/openapi.json under the current directory.
- Tags declared in task_api.main.openapi_tags are always present in the output.
"""
from __future__ import annotations

import argparse
import json
import logging
import os
from typing import Any, Dict, List, Optional, Sequence

from .main import create_app, openapi_tags
from .repositories import InMemoryRepository
from .settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT = os.path.join("interfaces", "openapi.json")


def _ensure_tags(schema: Dict[str, Any]) -> None:
    """
    Ensure the OpenAPI schema contains the expected tags metadata. This does not
    override existing tag definitions unless missing.
    """
    existing_tags: List[Dict[str, Any]] = schema.get("tags", []) or []
    existing_names = {t.get("name") for t in existing_tags if isinstance(t, dict)}
    for tag in openapi_tags:
        if tag.get("name") not in existing_names:
            existing_tags.append(tag)
    if existing_tags:
        schema["tags"] = existing_tags


# PUBLIC_INTERFACE
def generate_openapi(output_path: str = DEFAULT_OUTPUT) -> str:
    """Generate the OpenAPI schema file and return the written file path."""
    # The schema does not depend on the store; avoid touching a database.
    app = create_app(settings=Settings(), repository=InMemoryRepository())
    schema = app.openapi()
    _ensure_tags(schema)

    out_dir = os.path.dirname(os.path.abspath(output_path))
    os.makedirs(out_dir, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(schema, f, indent=2, ensure_ascii=False)
    logger.info("Wrote OpenAPI schema to %s", output_path)
    return output_path


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Export the task API OpenAPI schema to JSON.")
    parser.add_argument("output", nargs="?", default=DEFAULT_OUTPUT, help="destination file")
    args = parser.parse_args(argv)
    path = generate_openapi(args.output)
    print(f"Wrote OpenAPI schema to: {path}")


if __name__ == "__main__":
    main()
