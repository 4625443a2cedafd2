#!/usr/bin/env python3
"""
Export OpenAPI schema from FastAPI application
The mobile client generates its TypeScript API types from this file
"""

import json
import sys
from pathlib import Path

# Add parent directory to path to import app
sys.path.insert(0, str(Path(__file__).parent.parent))

from app import app


def export_schema(output_dir: Path = None) -> Path:
    """Export OpenAPI schema to JSON file"""
    openapi_schema = app.openapi()

    output_dir = output_dir or Path(__file__).parent.parent / "openapi"
    output_dir.mkdir(exist_ok=True)

    output_file = output_dir / "schema.json"
    with open(output_file, "w") as f:
        json.dump(openapi_schema, f, indent=2, ensure_ascii=False)

    print(f"OpenAPI schema exported to {output_file}")
    print(f"Schema contains {len(openapi_schema.get('paths', {}))} endpoints")
    return output_file


if __name__ == "__main__":
    export_schema(Path(sys.argv[1]) if len(sys.argv) > 1 else None)
