"""Content-derived cache keys for components and whole SBOM documents.

A fingerprint is computed from a canonical JSON rendering of the fields
that influence enrichment (object keys sorted at every level), digested
with BLAKE2b and prefixed with the entity kind::

    component:3f0c9a...   (one component plus the vulnerabilities affecting it)
    file:91be07...        (the whole document)
"""

import hashlib
import json
from typing import Any, Dict, Iterable, List, Mapping, Optional

COMPONENT_PREFIX = "component"
FILE_PREFIX = "file"

# 128-bit digest; collisions are negligible for any realistic working set
DIGEST_SIZE = 16

# Fields of a component that affect its enrichment result
COMPONENT_FIELDS = ("name", "version", "purl", "group", "externalReferences")


def get_bom_ref(component: Mapping[str, Any]) -> Optional[str]:
    """Return the stable reference id of a component, if it has one."""
    return component.get("bom-ref") or component.get("bomRef")


def canonical_json(data: Any) -> str:
    """Serialize data so that key insertion order never matters."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def digest(data: Any) -> str:
    """Hex digest of the canonical form of data."""
    return hashlib.blake2b(canonical_json(data).encode("utf-8"), digest_size=DIGEST_SIZE).hexdigest()


def vulnerabilities_affecting(
    component: Mapping[str, Any], vulnerabilities: Optional[Iterable[Mapping[str, Any]]]
) -> List[Mapping[str, Any]]:
    """
    Select the document vulnerabilities whose ``affects`` list names this component.

    Args:
        component: CycloneDX component dict
        vulnerabilities: The document's ``vulnerabilities`` array

    Returns:
        Matching vulnerability records, in document order
    """
    ref = get_bom_ref(component)
    if not ref or not vulnerabilities:
        return []

    matches = []
    for vuln in vulnerabilities:
        affects = vuln.get("affects")
        if not isinstance(affects, list):
            continue
        if any(isinstance(a, Mapping) and a.get("ref") == ref for a in affects):
            matches.append(vuln)
    return matches


def component_fingerprint(
    component: Mapping[str, Any], vulnerabilities: Optional[Iterable[Mapping[str, Any]]] = None
) -> str:
    """
    Fingerprint a single component.

    Covers name, version, purl, group, external references, and the
    document vulnerabilities that affect the component.
    """
    data: Dict[str, Any] = {field: component.get(field) for field in COMPONENT_FIELDS}
    data["vulnerabilities"] = vulnerabilities_affecting(component, vulnerabilities)
    return f"{COMPONENT_PREFIX}:{digest(data)}"


def document_fingerprint(document: Mapping[str, Any]) -> str:
    """
    Fingerprint a whole SBOM document.

    Covers every component's identity fields and stable reference id,
    the full vulnerability list, and the metadata timestamp and version.
    """
    components = document.get("components") or []
    metadata = document.get("metadata") or {}
    data = {
        "components": [
            {**{field: c.get(field) for field in COMPONENT_FIELDS}, "bomRef": get_bom_ref(c)} for c in components
        ],
        "vulnerabilities": document.get("vulnerabilities") or [],
        "metadata": {
            "timestamp": metadata.get("timestamp"),
            "version": metadata.get("version"),
        },
    }
    return f"{FILE_PREFIX}:{digest(data)}"


def fingerprint_of(kind: str, entity: Mapping[str, Any], context: Optional[Iterable[Mapping[str, Any]]] = None) -> str:
    """
    Fingerprint an entity by kind.

    Args:
        kind: "component" or "file"
        entity: Component dict or SBOM document dict
        context: Document vulnerabilities (component fingerprints only)
    """
    if kind == COMPONENT_PREFIX:
        return component_fingerprint(entity, context)
    if kind == FILE_PREFIX:
        return document_fingerprint(entity)
    raise ValueError(f"Unknown fingerprint kind: {kind}")


def generate_key(kind: str, *params: Any) -> str:
    """Build a dependency key such as ``npm:lodash`` or ``maven:org.slf4j:slf4j-api``."""
    return ":".join([kind, *(str(p) for p in params)])
