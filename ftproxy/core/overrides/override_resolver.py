"""
Step override merging - Core layer
Pure functions: given a live step and an override document, produce the merged step
"""

import math
import sys
from typing import Any, Dict, List, Optional

from .override_models import UI_HINT_STRING_KEYS, UI_HINT_BOOL_KEYS, UI_HINT_LIST_KEYS

UNORDERED = float(sys.maxsize)


def normalize_step_key(value: Any) -> str:
    """Step and journey names compare trimmed and case-insensitive"""
    if value is None:
        return ""
    return str(value).strip().lower()


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _numeric(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def field_order(override_field: Dict[str, Any], fallback_index: int) -> float:
    """Explicit order (orderIdx, then orderIndex) or the directive's list position"""
    for key in ("orderIdx", "orderIndex"):
        number = _numeric(override_field.get(key))
        if number is not None:
            return number
    return float(fallback_index)


def ui_hints(override_field: Dict[str, Any]) -> Dict[str, Any]:
    """UI hint keys present on a directive with the expected type"""
    hints = {}
    for key in UI_HINT_STRING_KEYS:
        if isinstance(override_field.get(key), str):
            hints[key] = override_field[key]
    for key in UI_HINT_BOOL_KEYS:
        if isinstance(override_field.get(key), bool):
            hints[key] = override_field[key]
    for key in UI_HINT_LIST_KEYS:
        if isinstance(override_field.get(key), list):
            hints[key] = override_field[key]
    return hints


def find_step_override(step: Dict[str, Any], document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Locate the override entry for a step

    The document's journeyName, when both it and the step carry one, must match.
    Within formDrivenFlows the first step entry whose journeyStep matches wins.
    """
    if not step or not document:
        return None

    doc_journey = document.get("journeyName")
    step_journey = step.get("journeyName")
    if doc_journey and step_journey and normalize_step_key(doc_journey) != normalize_step_key(step_journey):
        return None

    step_key = normalize_step_key(step.get("journeyStep"))
    if not step_key:
        return None

    for flow in _as_list(document.get("formDrivenFlows")):
        if not isinstance(flow, dict):
            continue
        for candidate in _as_list(flow.get("steps")):
            if isinstance(candidate, dict) and normalize_step_key(candidate.get("journeyStep")) == step_key:
                return candidate

    return None


def apply_field_overrides(step: Dict[str, Any], step_override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge visibility/UI hints into the step's fields, reorder them and drop hidden ones"""
    source_fields = _as_list(step.get("fields"))
    if not source_fields:
        return step

    override_fields = _as_list(step_override.get("fields"))
    if not override_fields:
        return step

    by_name: Dict[str, Dict[str, Any]] = {}
    for index, directive in enumerate(override_fields):
        if not isinstance(directive, dict):
            continue
        name = str(directive.get("name") or "")
        if not name or name in by_name:
            continue
        by_name[name] = {
            "order": field_order(directive, index),
            "has_visibility": isinstance(directive.get("isVisible"), bool),
            "is_visible": directive.get("isVisible"),
            "ui": ui_hints(directive),
        }

    entries = []
    for index, field in enumerate(source_fields):
        name = str(field.get("name") or "") if isinstance(field, dict) else ""
        override = by_name.get(name)
        merged = field
        if override:
            merged = dict(field)
            if override["has_visibility"]:
                merged["isVisible"] = override["is_visible"]
            if override["ui"]:
                live_ui = field.get("ui") if isinstance(field.get("ui"), dict) else {}
                merged["ui"] = {**live_ui, **override["ui"]}
        entries.append({
            "field": merged,
            "index": index,
            "has_override": override is not None,
            "order": override["order"] if override else UNORDERED,
        })

    # order asc, overridden first on ties, then original position
    entries.sort(key=lambda entry: (entry["order"], not entry["has_override"], entry["index"]))

    fields = [
        entry["field"] for entry in entries
        if not (isinstance(entry["field"], dict) and entry["field"].get("isVisible") is False)
    ]
    return {**step, "fields": fields}


def resolve_override(step: Dict[str, Any], document: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Apply the matching override entry to a step; unchanged when nothing matches"""
    step_override = find_step_override(step, document)
    if not step_override:
        return step
    return apply_field_overrides(step, step_override)
