"""
Tests for step override merging and the mtime-cached override document
"""

import asyncio
import json
import os

from ftproxy.core.overrides.override_resolver import (
    apply_field_overrides,
    field_order,
    find_step_override,
    normalize_step_key,
    resolve_override,
)
from ftproxy.services.overrides.override_service import StepOverrideService


def _step(*names, **extra):
    step = {"journeyStep": "Personal-Details", "fields": [{"name": n, "value": None} for n in names]}
    step.update(extra)
    return step


def _document(fields, journey_step="Personal-Details", journey_name=None):
    document = {"formDrivenFlows": [{"name": "main", "steps": [{"journeyStep": journey_step, "fields": fields}]}]}
    if journey_name:
        document["journeyName"] = journey_name
    return document


def test_step_names_match_trimmed_and_case_insensitive():
    assert normalize_step_key("  Personal-DETAILS ") == "personal-details"
    document = _document([{"name": "a"}], journey_step=" personal-details ")
    assert find_step_override(_step("a"), document) is not None


def test_journey_name_mismatch_disables_overrides():
    document = _document([{"name": "a", "isVisible": False}], journey_name="OtherJourney")
    step = _step("a", "b", journeyName="DigitalAccountOpening")
    assert resolve_override(step, document) is step


def test_first_matching_step_entry_wins():
    document = {
        "formDrivenFlows": [
            {"steps": [{"journeyStep": "Personal-Details", "fields": [{"name": "first"}]}]},
            {"steps": [{"journeyStep": "Personal-Details", "fields": [{"name": "second"}]}]},
        ]
    }
    assert find_step_override(_step("a"), document)["fields"][0]["name"] == "first"


def test_explicit_order_then_unordered_fields_in_original_position():
    step = _step("a", "b", "c", "d")
    merged = apply_field_overrides(step, {"fields": [{"name": "c", "orderIdx": 1}, {"name": "a", "orderIdx": 2}]})
    assert [f["name"] for f in merged["fields"]] == ["c", "a", "b", "d"]


def test_order_index_alias_and_list_position_fallback():
    assert field_order({"orderIndex": 7}, 0) == 7
    assert field_order({"orderIdx": "3"}, 0) == 3
    assert field_order({"orderIdx": None}, 5) == 5
    assert field_order({"orderIdx": ""}, 2) == 2
    assert field_order({"orderIdx": True}, 4) == 4


def test_overridden_field_sorts_before_unordered_on_equal_order():
    step = _step("a", "b")
    # directive without explicit order falls back to its list index (0)
    merged = apply_field_overrides(step, {"fields": [{"name": "b"}]})
    assert [f["name"] for f in merged["fields"]] == ["b", "a"]


def test_hidden_fields_are_dropped_and_ui_hints_merged():
    step = _step("phone", "secret")
    step["fields"][0]["ui"] = {"placeholder": "live", "inputType": "tel"}
    merged = apply_field_overrides(step, {"fields": [
        {"name": "phone", "placeholder": "from config", "phoneCountrySelect": True, "mask": 7},
        {"name": "secret", "isVisible": False},
    ]})

    assert [f["name"] for f in merged["fields"]] == ["phone"]
    assert merged["fields"][0]["ui"] == {"placeholder": "from config", "inputType": "tel", "phoneCountrySelect": True}
    assert "ui" not in step["fields"][0] or step["fields"][0]["ui"]["placeholder"] == "live"


def test_non_bool_visibility_is_ignored_and_remote_hidden_fields_dropped():
    step = _step("a", "b")
    step["fields"][1]["isVisible"] = False
    merged = apply_field_overrides(step, {"fields": [{"name": "a", "isVisible": "no"}]})
    assert [f["name"] for f in merged["fields"]] == ["a"]
    assert "isVisible" not in merged["fields"][0]


def test_duplicate_directives_first_one_wins():
    merged = apply_field_overrides(_step("a", "b"), {"fields": [
        {"name": "a", "orderIdx": 5, "placeholder": "first"},
        {"name": "a", "orderIdx": 0, "placeholder": "second"},
        {"name": "b", "orderIdx": 1},
    ]})
    assert [f["name"] for f in merged["fields"]] == ["b", "a"]
    assert merged["fields"][1]["ui"]["placeholder"] == "first"


def test_step_without_fields_is_unchanged():
    step = {"journeyStep": "Personal-Details", "fields": []}
    assert resolve_override(step, _document([{"name": "a"}])) is step


def test_override_service_caches_until_file_changes(tmp_path):
    path = tmp_path / "step-overrides.json"
    path.write_text(json.dumps(_document([{"name": "b", "orderIdx": 0}])), encoding="utf-8")
    service = StepOverrideService(path)

    merged = asyncio.run(service.apply(_step("a", "b")))
    assert [f["name"] for f in merged["fields"]] == ["b", "a"]

    path.write_text(json.dumps(_document([{"name": "a", "isVisible": False}])), encoding="utf-8")
    stat = path.stat()
    os.utime(path, (stat.st_atime, stat.st_mtime + 10))

    merged = asyncio.run(service.apply(_step("a", "b")))
    assert [f["name"] for f in merged["fields"]] == ["b"]


def test_missing_or_invalid_document_means_no_overrides(tmp_path):
    missing = StepOverrideService(tmp_path / "absent.json")
    step = _step("a")
    assert asyncio.run(missing.apply(step)) is step

    broken_path = tmp_path / "broken.json"
    broken_path.write_text("{not: [valid", encoding="utf-8")
    broken = StepOverrideService(broken_path)
    assert asyncio.run(broken.load_document()) is None
    assert asyncio.run(broken.apply(step)) is step


def test_bundled_document_hides_internal_score():
    from ftproxy.core.config import PathConfig

    service = StepOverrideService(PathConfig.get_step_overrides_file())
    step = _step("internalScore", "email", "firstName", journeyName="DigitalAccountOpening")
    merged = asyncio.run(service.apply(step))
    assert [f["name"] for f in merged["fields"]] == ["firstName", "email"]
