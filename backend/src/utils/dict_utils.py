from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import inspect

from utils.datetime_utils import ensure_local


def json_value(value: Any) -> Any:
    """Convert a column value to a JSON-friendly value."""
    if isinstance(value, datetime):
        return ensure_local(value).isoformat()  # type: ignore[union-attr]
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def model_to_dict(obj: Any, exclude: Optional[Iterable[str]] = None) -> Dict[str, Any]:
    """
    Serialize the column attributes of an ORM object.

    Relationships are not followed. Column attributes use their Python
    attribute names (e.g. `metadata_json`, not the column name).
    """
    excluded = set(exclude or ())
    mapper = inspect(obj).mapper
    return {
        attr.key: json_value(getattr(obj, attr.key))
        for attr in mapper.column_attrs
        if attr.key not in excluded
    }


def models_to_list(rows: Iterable[Any], exclude: Optional[Iterable[str]] = None) -> List[Dict[str, Any]]:
    return [model_to_dict(row, exclude) for row in rows]
