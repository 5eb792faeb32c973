from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

DEFAULT_SOURCE_TITLE = "Reference"


def _field(node: Any, name: str) -> Any:
    """Read a field from either an SDK object or a plain dict."""
    if node is None:
        return None
    if isinstance(node, dict):
        return node.get(name)
    return getattr(node, name, None)


def grounding_chunks_from_response(response: Any) -> List[Any]:
    """candidates[0].grounding_metadata.grounding_chunks, or [] when any link is missing."""
    candidates = _field(response, "candidates") or []
    if not candidates:
        return []
    metadata = _field(candidates[0], "grounding_metadata")
    return list(_field(metadata, "grounding_chunks") or [])


def web_sources(chunks: Optional[Sequence[Any]]) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for chunk in chunks or []:
        web = _field(chunk, "web")
        if not web:
            continue
        out.append({
            "title": _field(web, "title") or DEFAULT_SOURCE_TITLE,
            "uri": _field(web, "uri"),
        })
    return out


def merge_sources(
    record_sources: Any,
    chunks: Optional[Sequence[Any]],
) -> List[Dict[str, Any]]:
    """Model-emitted sources first, then web citations in original order. Duplicates are kept."""
    own = list(record_sources) if isinstance(record_sources, list) else []
    return own + web_sources(chunks)


def attach_sources(record: Dict[str, Any], chunks: Optional[Sequence[Any]]) -> Dict[str, Any]:
    return {**record, "sources": merge_sources(record.get("sources"), chunks)}
