from typing import Dict, Any, Iterable, List, Mapping

# Numeric fields sort on the raw value, everything else on its .sort sub-field
NUMERIC_SORT_FIELDS = {
    "employee_count",
    "annual_revenue_usd",
    "founded_year",
    "latest_funding_amount",
    "total_funding_usd",
}


def build_sort(sort: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Translate ``[{field, direction}]`` into engine sort clauses"""
    clauses = []
    for item in sort or []:
        field = str(item.get("field") or "").strip()
        if not field:
            continue
        direction = "desc" if str(item.get("direction") or "").lower() == "desc" else "asc"

        if field == "_score":
            clauses.append({"_score": {"order": direction}})
        elif field in NUMERIC_SORT_FIELDS or field.endswith(".sort"):
            clauses.append({field: {"order": direction}})
        else:
            clauses.append({f"{field}.sort": {"order": direction}})
    return clauses
