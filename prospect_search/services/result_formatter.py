import re
from typing import Dict, Any, List, Optional

from ..query.entities import EntityType

WORK_EMAIL_TYPES = {"work", "business", "professional"}
PERSONAL_EMAIL_TYPES = {"personal", "private", "home"}
MOBILE_PHONE_TYPES = {"mobile", "cell"}
DIRECT_PHONE_TYPES = {"direct", "work", "office"}


def _to_int(value: Any) -> Any:
    if isinstance(value, str):
        digits = re.sub(r"[^0-9]", "", value)
        return int(digits) if digits else None
    return value


def _typed_values(entries: Any, value_key: str) -> List[Dict[str, Optional[str]]]:
    """Normalise a nested list of emails/phones into ``[{value, type}]``"""
    values = []
    if isinstance(entries, str):
        entries = [part for part in entries.split(";")]
    if not isinstance(entries, list):
        return values
    for entry in entries:
        if isinstance(entry, dict):
            value = entry.get(value_key)
            kind = entry.get("type")
        else:
            value, kind = entry, None
        if isinstance(value, str) and value.strip():
            values.append({"value": value.strip(), "type": kind.lower() if isinstance(kind, str) else None})
    return values


def _first_of_type(entries: List[Dict[str, Optional[str]]], types: set) -> Optional[str]:
    for entry in entries:
        if entry["type"] in types:
            return entry["value"]
    return None


def _untyped(entries: List[Dict[str, Optional[str]]]) -> List[str]:
    return [entry["value"] for entry in entries if not entry["type"]]


class ResultFormatter:
    """Reshapes raw engine hits and aggregations into the API response"""

    def format(
        self,
        results: Dict[str, Any],
        entity: EntityType,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        entity = EntityType(entity)
        items = [self.format_hit(hit, entity) for hit in results.get("data", [])]

        # Stable: phone first, then email, engine order otherwise
        items = sorted(items, key=lambda item: (
            not item["attributes"].get("has_contact_phone"),
            not item["attributes"].get("has_contact_email"),
        ))

        return {
            "data": items,
            "meta": {
                "current_page": results.get("current_page", 1),
                "per_page": results.get("per_page"),
                "total": results.get("total", 0),
                "last_page": results.get("last_page", 1),
            },
            "filters": filters or {},
            "aggregations": self.format_aggregations(results.get("aggregations") or {}),
        }

    def format_hit(self, hit: Dict[str, Any], entity: EntityType) -> Dict[str, Any]:
        attributes = dict(hit.get("_source") or {})
        es_id = hit.get("_id") or attributes.get("_id") or attributes.get("id")

        self.merge_synonyms(attributes, entity)
        self.build_address(attributes)
        self.flatten_contact_info(attributes)

        if entity == EntityType.COMPANY:
            has_email = bool(attributes.get("company_email") or attributes.get("emails"))
            has_phone = bool(attributes.get("phone_number") or attributes.get("company_phone"))
        else:
            has_email = bool(
                attributes.get("emails")
                or attributes.get("work_email")
                or attributes.get("personal_email")
                or attributes.get("email")
            )
            has_phone = bool(
                attributes.get("phone_numbers")
                or attributes.get("mobile_number")
                or attributes.get("direct_number")
                or attributes.get("phone")
            )
        attributes["has_contact_email"] = has_email
        attributes["has_contact_phone"] = has_phone

        if es_id is not None:
            attributes.setdefault("_id", es_id)
            attributes.setdefault("id", es_id)

        return {
            "id": es_id,
            "_id": es_id,
            "attributes": attributes,
            "highlights": hit.get("highlight") or {},
        }

    def merge_synonyms(self, attributes: Dict[str, Any], entity: EntityType) -> None:
        attributes["company"] = attributes.get("company") or attributes.get("name")
        attributes["domain"] = attributes.get("domain") or attributes.get("company_domain")
        attributes["website"] = attributes.get("website") or attributes.get("domain")

        if "employee_count" in attributes and "number_of_employees" not in attributes:
            attributes["number_of_employees"] = _to_int(attributes["employee_count"])
        if isinstance(attributes.get("number_of_employees"), str):
            attributes["number_of_employees"] = _to_int(attributes["number_of_employees"])

        if entity == EntityType.COMPANY:
            attributes["industry"] = attributes.get("industry") or attributes.get("business_category")
            if not attributes.get("company_linkedin_url"):
                attributes["company_linkedin_url"] = attributes.get("linkedin_url")

        social = attributes.get("social_media")
        social = dict(social) if isinstance(social, dict) else {}
        for key in ("facebook_url", "twitter_url"):
            if not social.get(key) and attributes.get(key):
                social[key] = attributes[key]
        if social:
            attributes["social_media"] = social

    def build_address(self, attributes: Dict[str, Any]) -> None:
        if attributes.get("address"):
            return
        location = attributes.get("location") if isinstance(attributes.get("location"), dict) else {}
        parts = [
            attributes.get(key) or location.get(key)
            for key in ("street", "city", "state", "postal_code", "country")
        ]
        parts = [str(part) for part in parts if part]
        if parts:
            attributes["address"] = ", ".join(parts)

    def flatten_contact_info(self, attributes: Dict[str, Any]) -> None:
        """Derive work/personal email and mobile/direct phone from the nested lists"""
        emails = _typed_values(attributes.get("emails"), "email")
        phones = _typed_values(attributes.get("phone_numbers") or attributes.get("phones"), "phone_number")

        if not attributes.get("work_email") and emails:
            attributes["work_email"] = _first_of_type(emails, WORK_EMAIL_TYPES) or next(iter(_untyped(emails)), None)
        if not attributes.get("personal_email") and emails:
            personal = _first_of_type(emails, PERSONAL_EMAIL_TYPES)
            if personal is None:
                remaining = [v for v in _untyped(emails) if v != attributes.get("work_email")]
                personal = remaining[0] if remaining else None
            attributes["personal_email"] = personal

        if not attributes.get("mobile_number") and phones:
            attributes["mobile_number"] = _first_of_type(phones, MOBILE_PHONE_TYPES) or next(iter(_untyped(phones)), None)
        if not attributes.get("direct_number") and phones:
            direct = _first_of_type(phones, DIRECT_PHONE_TYPES)
            if direct is None:
                remaining = [v for v in _untyped(phones) if v != attributes.get("mobile_number")]
                direct = remaining[0] if remaining else None
            attributes["direct_number"] = direct

    def format_aggregations(self, aggregations: Dict[str, Any]) -> Dict[str, Any]:
        formatted = {}
        for name, agg in aggregations.items():
            value = self.format_aggregation(agg)
            if value is not None:
                formatted[name] = value
        return formatted

    def format_aggregation(self, agg: Any) -> Any:
        """Bucket lists become ``[{key, count}]``, keyed buckets a dict of counts, single filters a count"""
        if not isinstance(agg, dict):
            return None
        buckets = agg.get("buckets")
        if isinstance(buckets, list):
            return [
                {"key": bucket.get("key_as_string", bucket.get("key")), "count": bucket.get("doc_count", 0)}
                for bucket in buckets
                if bucket.get("key") not in (None, "")
            ]
        if isinstance(buckets, dict):
            return {key: bucket.get("doc_count", 0) for key, bucket in buckets.items()}
        if "doc_count" in agg:
            return int(agg["doc_count"])
        return None
