"""Export the engine's OpenAPI document to a static JSON file.

Usage: python -m scripts.export_openapi [output-path]
"""

import json
import sys
from pathlib import Path

from main import app

OUTPUT_PATH = Path(__file__).resolve().parent.parent / "openapi.json"


def main(argv: list[str] | None = None):
    args = sys.argv[1:] if argv is None else argv
    path = Path(args[0]) if args else OUTPUT_PATH
    document = app.openapi()
    path.write_text(json.dumps(document, indent=2, sort_keys=True) + "\n")
    print(f"Wrote {len(document.get('paths', {}))} paths to {path}")


if __name__ == "__main__":
    main()
