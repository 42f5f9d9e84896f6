"""Enrich CycloneDX SBOM files with CERT-In component properties."""

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from ._cache import JsonFileSnapshotStore, MemorySnapshotStore, ResultCache
from ._enrichment import DocumentResolution, DocumentResolver, FetchOrchestrator, create_default_orchestrator
from .config import DEFAULT_MAX_CONCURRENCY, Config
from .exceptions import FileProcessingError, ParsingError, ValidationError
from .logging_config import logger


def build_cache(config: Config) -> ResultCache:
    """
    Create and initialize the result cache described by the configuration.

    A persistent JSON file store is used when caching is enabled; otherwise
    results live only for the current run.
    """
    if config.cache_enabled and config.cache_file is not None:
        store = JsonFileSnapshotStore(Path(config.cache_file))
    else:
        store = MemorySnapshotStore()
    return ResultCache(store, max_snapshot_age_ms=config.max_snapshot_age_ms).init()


def load_sbom(path: Path) -> Dict[str, Any]:
    """
    Read a CycloneDX JSON document.

    Raises:
        FileProcessingError: If the file cannot be read
        ParsingError: If the file is not valid JSON
        ValidationError: If the document has no ``components`` array
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            document = json.load(f)
    except json.JSONDecodeError as e:
        raise ParsingError(f"Invalid JSON in {path}: {e}") from e
    except OSError as e:
        raise FileProcessingError(f"Cannot read {path}: {e}") from e

    if not isinstance(document, dict) or not isinstance(document.get("components"), list):
        raise ValidationError(f"{path} must contain a 'components' array")
    return document


def write_sbom(document: Dict[str, Any], path: Path) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(document, f, indent=2)
            f.write("\n")
    except OSError as e:
        raise FileProcessingError(f"Cannot write {path}: {e}") from e


async def enrich_document(
    document: Dict[str, Any],
    orchestrator: FetchOrchestrator,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
) -> Tuple[Dict[str, Any], DocumentResolution]:
    """
    Enrich every component of a document.

    Returns:
        (enriched document, resolution details). The input is not modified.
    """
    resolver = DocumentResolver(orchestrator, max_concurrency=max_concurrency)
    resolution = await resolver.resolve(document)
    return {**document, "components": resolution.components}, resolution


def enrich_sbom_file(input_file: Path, output_file: Path, config: Optional[Config] = None) -> DocumentResolution:
    """
    Enrich an SBOM file and write the result.

    Args:
        input_file: CycloneDX JSON to read
        output_file: Where to write the enriched document
        config: Runtime configuration (defaults apply when omitted)

    Returns:
        DocumentResolution describing how each component was resolved
    """
    config = config or Config()
    config.validate()

    document = load_sbom(Path(input_file))
    logger.info(f"Loaded {len(document['components'])} components from {input_file}")

    cache = build_cache(config)
    with create_default_orchestrator(cache, config) as orchestrator:
        enriched, resolution = asyncio.run(enrich_document(document, orchestrator, config.max_concurrency))

    write_sbom(enriched, Path(output_file))
    logger.info(f"Wrote enriched SBOM to {output_file}")
    return resolution
