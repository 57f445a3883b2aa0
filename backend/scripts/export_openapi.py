"""
Write the API's OpenAPI schema to docs/openapi.json.

Usage:
    cd backend
    python scripts/export_openapi.py
"""
import json
import sys
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from radiocheck.main import app  # noqa: E402


def main() -> None:
    output = BASE_DIR.parent / "docs" / "openapi.json"
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(app.openapi(), indent=2, ensure_ascii=False))
    print(f"OpenAPI schema written to {output}")


if __name__ == "__main__":
    main()
