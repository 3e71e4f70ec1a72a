# recipe_lineage/services/ingredients.py
from __future__ import annotations

import json
from typing import Any, Optional


def _clean_str(value: Any) -> Optional[str]:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _pair_from_entry(entry: Any) -> Optional[tuple[str, str]]:
    if isinstance(entry, dict):
        lowered = {str(k).lower(): v for k, v in entry.items()}
        name = _clean_str(lowered.get("name") or lowered.get("ingredient"))
        if not name:
            return None
        quantity = _clean_str(lowered.get("quantity") or lowered.get("amount")) or ""
        return name, quantity
    if isinstance(entry, (list, tuple)):
        if not entry:
            return None
        name = _clean_str(entry[0])
        if not name:
            return None
        quantity = _clean_str(entry[1]) if len(entry) > 1 else None
        return name, quantity or ""
    name = _clean_str(entry)
    if name:
        return name, ""
    return None


def normalize_ingredients(value: Any) -> dict[str, str]:
    """
    Convert any stored or submitted ingredient shape into an ordered
    name -> quantity map.

    Accepted shapes: a mapping, a list of {name, quantity} objects,
    a list of [name, quantity] pairs, a list of bare names, or a JSON
    string holding any of those. Blank names are dropped; a repeated
    name keeps its first position and its last quantity.
    """
    if value is None:
        return {}
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return {}
        try:
            value = json.loads(text)
        except ValueError:
            return {text: ""}

    result: dict[str, str] = {}
    if isinstance(value, dict):
        for key, quantity in value.items():
            name = _clean_str(key)
            if name:
                result[name] = _clean_str(quantity) or ""
        return result

    if isinstance(value, (list, tuple)):
        for entry in value:
            pair = _pair_from_entry(entry)
            if pair:
                result[pair[0]] = pair[1]
        return result

    raise ValueError(f"Unsupported ingredients format: {type(value).__name__}")
