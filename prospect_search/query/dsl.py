"""Parsing and structural validation of the filter DSL"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Any, List, Mapping, Optional, Tuple, Union

from ..errors import InvalidRequest
from .entities import EntityType

logger = logging.getLogger(__name__)

BUCKETS = tuple(EntityType.values())
LOCATION_KEY = "location"
LOCATION_SUBKEYS = {"countries": "country", "states": "state", "cities": "city"}

VALUE_KEYS = {"include", "exclude", "min", "max", "range", "presence", "operator"}
RANGE_KEYS = {"min", "max", "gte", "lte"}
LOCATION_KEYS = {"include", "exclude", "known", "unknown"}
PRESENCE_VALUES = {"known", "unknown", "any"}
OPERATORS = {"and", "or"}


@dataclass(frozen=True)
class FilterValue:
    """One normalised filter value: a set, a range, a presence check or a mix"""

    include: Tuple[str, ...] = ()
    exclude: Tuple[str, ...] = ()
    min: Optional[float] = None
    max: Optional[float] = None
    presence: Optional[str] = None
    operator: str = "or"

    @property
    def has_range(self) -> bool:
        return self.min is not None or self.max is not None

    def is_empty(self) -> bool:
        return not (self.include or self.exclude or self.has_range or self.presence)


@dataclass(frozen=True)
class LocationValue:
    include: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    exclude: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    known: bool = False
    unknown: bool = False


BucketValue = Union[FilterValue, LocationValue]


@dataclass(frozen=True)
class FilterDSL:
    contact: Dict[str, BucketValue] = field(default_factory=dict)
    company: Dict[str, BucketValue] = field(default_factory=dict)

    def bucket(self, entity: EntityType) -> Dict[str, BucketValue]:
        return self.contact if EntityType(entity) == EntityType.CONTACT else self.company

    def is_empty(self) -> bool:
        return not self.contact and not self.company


def parse_filter_dsl(raw: Optional[Mapping[str, Any]]) -> FilterDSL:
    """Validate a raw DSL mapping and turn it into typed values, raising InvalidRequest on bad shapes"""
    if raw is None:
        return FilterDSL()
    if isinstance(raw, FilterDSL):
        return raw
    if not isinstance(raw, Mapping):
        raise InvalidRequest("filter_dsl must be an object")

    errors: List[str] = []
    buckets: Dict[str, Dict[str, BucketValue]] = {name: {} for name in BUCKETS}

    for bucket_name, bucket in raw.items():
        if bucket_name not in BUCKETS:
            logger.warning("Ignoring unknown filter_dsl bucket '%s'", bucket_name)
            continue
        if bucket is None:
            continue
        if not isinstance(bucket, Mapping):
            errors.append(f"{bucket_name} must be an object")
            continue

        for filter_id, value in bucket.items():
            path = f"{bucket_name}.{filter_id}"
            try:
                if filter_id == LOCATION_KEY and isinstance(value, Mapping):
                    buckets[bucket_name][filter_id] = _parse_location(value, path)
                else:
                    buckets[bucket_name][filter_id] = _parse_value(value, path)
            except InvalidRequest as e:
                errors.extend(e.errors)

    if errors:
        raise InvalidRequest("Invalid filter_dsl", errors)

    return FilterDSL(contact=buckets["contact"], company=buckets["company"])


def _parse_value(value: Any, path: str) -> FilterValue:
    # Bare scalar: equality shorthand, booleans mean presence
    if isinstance(value, bool):
        return FilterValue(presence="known" if value else "unknown")
    if isinstance(value, (str, int, float)):
        text = str(value).strip()
        return FilterValue(include=(text,) if text else ())
    if isinstance(value, list):
        return FilterValue(include=_string_list(value, path))
    if not isinstance(value, Mapping):
        raise InvalidRequest(f"{path} has an unsupported value type")

    errors = [f"Unknown key '{key}' in {path}" for key in value if key not in VALUE_KEYS]

    include: Tuple[str, ...] = ()
    exclude: Tuple[str, ...] = ()
    try:
        include = _string_list(value.get("include"), f"{path}.include")
    except InvalidRequest as e:
        errors.extend(e.errors)
    try:
        exclude = _string_list(value.get("exclude"), f"{path}.exclude")
    except InvalidRequest as e:
        errors.extend(e.errors)

    bounds = {"min": value.get("min"), "max": value.get("max")}
    nested_range = value.get("range")
    if nested_range is not None:
        if not isinstance(nested_range, Mapping):
            errors.append(f"{path}.range must be an object with min/max")
        else:
            for key in nested_range:
                if key not in RANGE_KEYS:
                    errors.append(f"Invalid range key '{key}' in {path}.range")
            bounds["min"] = nested_range.get("min", nested_range.get("gte", bounds["min"]))
            bounds["max"] = nested_range.get("max", nested_range.get("lte", bounds["max"]))

    numbers = {}
    for key, bound in bounds.items():
        try:
            numbers[key] = _number(bound, f"{path}.{key}")
        except InvalidRequest as e:
            errors.extend(e.errors)

    presence = value.get("presence")
    if presence is not None and presence not in PRESENCE_VALUES:
        errors.append(f"{path}.presence must be 'known' or 'unknown'")

    operator = str(value.get("operator") or "or").lower()
    if operator not in OPERATORS:
        errors.append(f"{path}.operator must be 'and' or 'or'")

    if errors:
        raise InvalidRequest(f"Invalid filter {path}", errors)

    return FilterValue(
        include=include,
        exclude=exclude,
        min=numbers.get("min"),
        max=numbers.get("max"),
        presence=None if presence == "any" else presence,
        operator=operator,
    )


def _parse_location(value: Mapping[str, Any], path: str) -> LocationValue:
    errors = [f"Unknown key '{key}' in {path}" for key in value if key not in LOCATION_KEYS]
    sides: Dict[str, Dict[str, Tuple[str, ...]]] = {"include": {}, "exclude": {}}

    for side in sides:
        block = value.get(side)
        if block is None:
            continue
        if not isinstance(block, Mapping):
            errors.append(f"{path}.{side} must be an object")
            continue
        for key, items in block.items():
            dimension = LOCATION_SUBKEYS.get(key)
            if dimension is None:
                errors.append(f"Unknown location key '{key}' in {path}.{side}")
                continue
            if not isinstance(items, list):
                errors.append(f"{path}.{side}.{key} must be a list")
                continue
            try:
                values = _string_list(items, f"{path}.{side}.{key}")
            except InvalidRequest as e:
                errors.extend(e.errors)
                continue
            if values:
                sides[side][dimension] = values

    if errors:
        raise InvalidRequest(f"Invalid filter {path}", errors)

    return LocationValue(
        include=sides["include"],
        exclude=sides["exclude"],
        known=bool(value.get("known")),
        unknown=bool(value.get("unknown")),
    )


def _string_list(value: Any, path: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        value = [value]
    if not isinstance(value, list):
        raise InvalidRequest(f"{path} must be an array")

    items = []
    for item in value:
        if isinstance(item, bool) or not isinstance(item, (str, int, float)):
            raise InvalidRequest(f"{path} must only contain strings")
        text = str(item).strip()
        if text and text not in items:
            items.append(text)
    return tuple(items)


def _number(value: Any, path: str) -> Optional[float]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise InvalidRequest(f"{path} must be numeric or null")
    if isinstance(value, (int, float)):
        return value
    try:
        return float(str(value).replace(",", "").strip())
    except ValueError:
        raise InvalidRequest(f"{path} must be numeric or null")


def dsl_filter_keys(dsl: FilterDSL) -> List[str]:
    """``bucket.filter_id`` labels for logging"""
    return [f"{name}.{key}" for name in BUCKETS for key in dsl.bucket(EntityType(name))]
