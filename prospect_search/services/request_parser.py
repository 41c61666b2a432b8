"""Builds a SearchRequest from loosely typed inbound parameters"""

import json
from typing import Dict, Any, List, Mapping

from ..config.settings import settings
from ..errors import InvalidRequest
from ..models.schemas import SearchRequest
from ..query.dsl import BUCKETS, parse_filter_dsl
from ..query.entities import EntityType

TRUTHY = {"1", "true", "yes", "on"}


def parse_search_params(params: Mapping[str, Any]) -> SearchRequest:
    """Validate and normalise search parameters, raising InvalidRequest before any engine call"""
    errors: List[str] = []

    entity_type = params.get("type")
    if not entity_type:
        errors.append("type is required")
    elif str(entity_type).lower() not in EntityType.values():
        errors.append("type must be one of: " + ", ".join(EntityType.values()))

    free_text = params.get("searchTerm")
    if free_text is None or not str(free_text).strip():
        free_text = params.get("q")

    filters: Dict[str, Any] = {}
    try:
        filters = parse_filter_payload(params.get("filter_dsl"))
    except InvalidRequest as e:
        errors.extend(e.errors)

    sort = []
    try:
        sort = parse_sort(params.get("sort"))
    except InvalidRequest as e:
        errors.extend(e.errors)

    page = _parse_int(params.get("page"), "page", 1, errors)
    count = params.get("count", params.get("per_page"))
    per_page = _parse_int(count, "count", settings.default_per_page, errors)

    if errors:
        raise InvalidRequest("Validation failed", errors)

    return SearchRequest(
        entity_type=str(entity_type).lower(),
        free_text=free_text,
        filters=filters,
        sort=sort,
        page=page,
        per_page=per_page,
        semantic_query=params.get("semantic_query"),
        debug=str(params.get("debug", "")).lower() in TRUTHY,
    )


def parse_filter_payload(raw: Any) -> Dict[str, Any]:
    """Decode ``filter_dsl`` (object or JSON text), validate it and keep only known buckets"""
    if raw is None or raw == "":
        return {}
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise InvalidRequest(f"filter_dsl is not valid JSON: {e.msg}")
    if not isinstance(raw, Mapping):
        raise InvalidRequest("filter_dsl must be an object")

    # Raises on structural problems; the raw shape is what gets echoed back
    parse_filter_dsl(raw)
    return {bucket: raw[bucket] for bucket in BUCKETS if raw.get(bucket)}


def parse_sort(raw: Any) -> List[Dict[str, str]]:
    """Accept a JSON list of ``{field, direction}`` or ``"field:dir,field2:dir"``"""
    if raw is None or raw == "":
        return []
    if isinstance(raw, str):
        text = raw.strip()
        if text.startswith("["):
            try:
                raw = json.loads(text)
            except json.JSONDecodeError as e:
                raise InvalidRequest(f"sort is not valid JSON: {e.msg}")
        else:
            raw = []
            for part in text.split(","):
                field, _, direction = part.strip().partition(":")
                raw.append({"field": field.strip(), "direction": direction.strip() or "asc"})
    if isinstance(raw, Mapping):
        raw = [raw]
    if not isinstance(raw, list):
        raise InvalidRequest("sort must be a list of {field, direction}")

    sort = []
    for item in raw:
        if not isinstance(item, Mapping):
            raise InvalidRequest("sort entries must be objects with field and direction")
        field = str(item.get("field") or "").strip()
        if not field:
            continue
        direction = "desc" if str(item.get("direction") or "").lower() == "desc" else "asc"
        sort.append({"field": field, "direction": direction})
    return sort


def _parse_int(value: Any, name: str, default: int, errors: List[str]) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        errors.append(f"{name} must be an integer")
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        errors.append(f"{name} must be an integer")
        return default
