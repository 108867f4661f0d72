"""Tests for schema documents and the validation gate."""

import pytest

from capcat.errors import CatalogValidationError, ConfigError
from capcat.schema.schema import SCHEMAS, get_schema
from capcat.schema.validator import parse_catalog_item, require_valid, validate_document


def _record(**overrides) -> dict:
    data = {
        "id": "skill:lint",
        "kind": "skill",
        "provider": "openai",
        "name": "Lint",
        "description": "Lint a repository",
        "source": "openai-skills",
        "lastSeenAt": "2026-03-01",
        "install": {"kind": "skill.sh", "target": "lint", "args": []},
    }
    data.update(overrides)
    return data


def test_all_schemas_registered():
    assert set(SCHEMAS) == {
        "catalog-item",
        "whitelist",
        "quarantine",
        "sync-state",
        "security-report",
        "install-audit",
    }


def test_valid_record_parses():
    item = parse_catalog_item(_record())
    assert item.id == "skill:lint"
    assert item.adoption_signal == 50


def test_missing_required_field_is_fatal():
    data = _record()
    del data["description"]
    with pytest.raises(CatalogValidationError) as exc:
        parse_catalog_item(data)
    assert exc.value.item_id == "skill:lint"
    assert any("description" in issue for issue in exc.value.issues)


def test_blank_name_is_rejected():
    with pytest.raises(CatalogValidationError):
        parse_catalog_item(_record(name="   "))


def test_unknown_kind_is_rejected():
    issues = validate_document(_record(kind="widget"), get_schema())
    assert issues


def test_bad_date_is_rejected():
    issues = validate_document(_record(lastSeenAt="March 1"), get_schema())
    assert any("pattern" in issue for issue in issues)


def test_signal_out_of_range_is_rejected():
    issues = validate_document(_record(adoptionSignal=120), get_schema())
    assert any("maximum" in issue for issue in issues)


def test_boolean_is_not_a_counter():
    issues = validate_document(
        _record(securitySignals={"knownVulnerabilities": True}), get_schema()
    )
    assert issues


def test_install_must_match_one_variant():
    issues = validate_document(
        _record(install={"kind": "manual", "target": "x", "args": []}), get_schema()
    )
    assert issues
    assert not validate_document(
        _record(install={"kind": "manual", "instructions": "Enable it"}), get_schema()
    )


def test_require_valid_raises_config_error():
    with pytest.raises(ConfigError):
        require_valid({"approved": "not-a-list"}, "whitelist")
    require_valid({"approved": ["skill:a"]}, "whitelist")


def test_sync_state_schema_checks_each_registry():
    assert not validate_document(
        {"registries": {"a": {"lastSuccessfulSyncAt": "2026-03-01T00:00:00+00:00"}}},
        get_schema("sync-state"),
    )
    assert validate_document(
        {"registries": {"a": {"lastSuccessfulSyncAt": "yesterday"}}},
        get_schema("sync-state"),
    )
