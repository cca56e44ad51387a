"""CLI command that parses documents and prints their word-stream summary."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

from quickread.config import IngestionSettings
from quickread.ingestion.adapters import build_default_registry
from quickread.ingestion.ingestor import DocumentIngestor
from quickread.ingestion.registry import AdapterRegistry

logger = logging.getLogger(__name__)


def _collect_inputs(target: Path, registry: AdapterRegistry) -> list[Path]:
    if target.is_file():
        return [target]
    if target.is_dir():
        return sorted(
            path for path in target.rglob("*") if path.is_file() and registry.adapter_for(path) is not None
        )
    return []


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Parse documents into a word stream and emit a JSON summary")
    parser.add_argument("--path", required=True, help="Source file or directory")
    parser.add_argument("--media-type", default=None, help="Media type used when the extension is not recognised")
    parser.add_argument("--words", action="store_true", help="Include the full word stream in the output")
    parser.add_argument("--preview", action="store_true", help="Include preview markup and chapters in the output")
    args = parser.parse_args(argv)

    settings = IngestionSettings.from_env()
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=settings.log_level,
    )

    source_path = Path(args.path)
    registry = build_default_registry(settings)
    ingestor = DocumentIngestor(registry, settings)
    files = _collect_inputs(source_path, registry)
    if not files:
        logger.warning("No supported files found at %s", source_path)

    results: list[dict[str, object]] = []
    errors: list[dict[str, str]] = []

    for file_path in files:
        result = ingestor.ingest(file_path, args.media_type)
        try:
            if result.error is not None:
                errors.append({"source_path": str(file_path), **result.error.to_dict()})
                continue
            results.append(result.to_dict(include_words=args.words, include_preview=args.preview))
        finally:
            ingestor.release(result)

    payload = {
        "path": str(source_path),
        "processed": len(results),
        "results": results,
        "errors": errors,
    }
    print(json.dumps(payload, ensure_ascii=True, indent=2))
    return 0 if not errors else 1


if __name__ == "__main__":
    raise SystemExit(main())
