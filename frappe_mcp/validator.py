import json
from typing import Any, Dict, Iterable, List

from frappe_mcp.errors import ValidationError

FILTER_OPERATORS = (
    "=", "!=", "<", ">", "<=", ">=", "like", "not like",
    "in", "not in", "is", "is not", "between",
)


def infer_type(value: Any):
    if value is None:
        return None
    if isinstance(value, (int, float, bool)):
        return value
    if isinstance(value, str):
        v = value.strip().lower()
        if v == "":
            return None
        if v in ("true", "false"):
            return v == "true"
        try:
            if "." in v:
                return float(v)
            return int(v)
        except ValueError:
            return value
    return value


def coerce_int(value: Any, name: str):
    if value is None:
        return None
    coerced = infer_type(value)
    if isinstance(coerced, bool) or not isinstance(coerced, (int, float)):
        raise ValidationError(f"Parameter '{name}' must be an integer, got {value!r}")
    return int(coerced)


def _is_condition(item: Any) -> bool:
    return isinstance(item, (list, tuple))


def _is_operator_pair(value: Any) -> bool:
    return (
        isinstance(value, (list, tuple))
        and len(value) == 2
        and isinstance(value[0], str)
        and value[0].lower() in FILTER_OPERATORS
    )


def normalize_filters(filters: Any) -> List[list]:
    """Convert filters to Frappe's ``[[field, operator, value], ...]`` form.

    Accepts a mapping of ``field -> value`` or ``field -> [operator, value]``,
    a list of conditions (returned unchanged), or a JSON string of either.
    Normalizing an already normalized list is a no-op.
    """
    if not filters:
        return []
    if isinstance(filters, str):
        try:
            filters = json.loads(filters)
        except ValueError:
            raise ValidationError(f"Filters must be a JSON object or list, got {filters!r}")
        return normalize_filters(filters)
    if isinstance(filters, list) and all(_is_condition(f) for f in filters):
        return filters
    if isinstance(filters, dict):
        normalized = []
        for field, value in filters.items():
            if _is_operator_pair(value):
                normalized.append([field, value[0], value[1]])
            else:
                normalized.append([field, "=", value])
        return normalized
    raise ValidationError(f"Unsupported filter format: {filters!r}")


def missing_params(arguments: Dict[str, Any], required: Iterable[str]) -> List[str]:
    missing = []
    for key in required:
        value = arguments.get(key)
        if value is None or (isinstance(value, (str, dict, list)) and len(value) == 0):
            missing.append(key)
    return missing


def require(value: Any, message: str):
    if value is None or (isinstance(value, (str, dict, list)) and len(value) == 0):
        raise ValidationError(message)
