"""Conversion between plain metadata mappings and Kadi4Mat extras.

Kadi4Mat stores generic record metadata as a list of typed entries::

    {"key": "temperature", "type": "float", "value": 25.5, "unit": "°C"}
    {"key": "sample", "type": "dict", "value": [{"key": "name", ...}]}
    {"key": "runs", "type": "list", "value": [{"type": "int", "value": 1}]}

Entries inside a ``list`` carry no key.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping, Sequence
from datetime import date, datetime, time, timezone
from typing import Any

# "25.5 °C", "-3 mV", "1e-3 mol/l" (a single unit token)
_UNIT_RE = re.compile(r"^\s*(?P<num>[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)\s+(?P<unit>[^\s\d][^\s]*)\s*$")

EXTRA_TYPES = ("str", "int", "float", "bool", "date", "dict", "list")


def _date_value(value: date) -> str:
    if isinstance(value, datetime):
        moment = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    else:
        moment = datetime.combine(value, time(), tzinfo=timezone.utc)
    return moment.isoformat()


def _parse_unit(text: str) -> dict[str, Any] | None:
    match = _UNIT_RE.match(text)
    if not match:
        return None
    raw = match.group("num")
    if re.fullmatch(r"[-+]?\d+", raw):
        return {"type": "int", "value": int(raw), "unit": match.group("unit")}
    return {"type": "float", "value": float(raw), "unit": match.group("unit")}


def _convert(value: Any, *, nest_objects: bool, parse_units: bool) -> dict[str, Any]:
    if value is None:
        return {"type": "str", "value": None}
    if isinstance(value, bool):
        return {"type": "bool", "value": value}
    if isinstance(value, int):
        return {"type": "int", "value": value}
    if isinstance(value, float):
        return {"type": "float", "value": value}
    if isinstance(value, (date, datetime)):
        return {"type": "date", "value": _date_value(value)}
    if isinstance(value, str):
        if parse_units:
            parsed = _parse_unit(value)
            if parsed is not None:
                return parsed
        return {"type": "str", "value": value}
    if isinstance(value, Mapping):
        if not nest_objects:
            return {"type": "str", "value": json.dumps(value, default=str, ensure_ascii=False)}
        return {"type": "dict", "value": json_to_extras(value, nest_objects=True, parse_units=parse_units)}
    if isinstance(value, Sequence):
        if not nest_objects:
            return {"type": "str", "value": json.dumps(list(value), default=str, ensure_ascii=False)}
        return {
            "type": "list",
            "value": [_convert(item, nest_objects=True, parse_units=parse_units) for item in value],
        }
    return {"type": "str", "value": str(value)}


def json_to_extras(
    data: Mapping[str, Any],
    *,
    nest_objects: bool = True,
    parse_units: bool = True,
) -> list[dict[str, Any]]:
    """Convert a metadata mapping to an extras list, preserving key order.

    With ``nest_objects`` off, mappings and lists are sent as JSON strings.
    With ``parse_units`` on, "number unit" strings become numeric extras
    carrying a ``unit``.
    """
    extras = []
    for key, value in data.items():
        entry = {"key": str(key)}
        entry.update(_convert(value, nest_objects=nest_objects, parse_units=parse_units))
        extras.append(entry)
    return extras


def _restore(extra: Mapping[str, Any]) -> Any:
    kind = extra.get("type")
    value = extra.get("value")
    if kind == "dict":
        return extras_to_json(value or [])
    if kind == "list":
        return [_restore(item) for item in value or []]
    if extra.get("unit") and value is not None:
        return f"{value} {extra['unit']}"
    return value


def extras_to_json(extras: Sequence[Mapping[str, Any]]) -> dict[str, Any]:
    """Inverse of :func:`json_to_extras`; units are re-attached as "value unit"."""
    return {extra["key"]: _restore(extra) for extra in extras}


def merge_extras(
    base: Sequence[Mapping[str, Any]] | None,
    updates: Sequence[Mapping[str, Any]] | None,
) -> list[dict[str, Any]]:
    """Replace entries of *base* by key with those in *updates*."""
    updates = list(updates or [])
    replaced = {e["key"] for e in updates}
    return [dict(e) for e in base or [] if e["key"] not in replaced] + [dict(e) for e in updates]


def nested_extras(extras: Sequence[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
    """Top-level ``dict``/``list`` entries."""
    return [e for e in extras if e.get("type") in {"dict", "list"}]
