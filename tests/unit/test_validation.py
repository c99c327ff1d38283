"""
Unit tests for backup document validation.

Tests cover:
- Version check
- Per-collection size bound (checked before field validation)
- Collected, annotated and capped field errors
"""

import pytest

from backend.pantrysync_server.errors import (
    ImportTooLargeError,
    ImportValidationError,
    UnsupportedBackupVersionError,
)
from backend.pantrysync_server.sync.validation import (
    check_sizes,
    collect_errors,
    validate_backup,
)


def make_backup(**data):
    return {"version": 1, "exportedAt": "2024-01-01T00:00:00.000Z", "data": data}


class TestVersion:
    """Tests for the version check."""

    @pytest.mark.parametrize("version", [0, 2, "1", None, True])
    def test_unsupported_versions(self, version):
        """Only version 1 is accepted."""
        with pytest.raises(UnsupportedBackupVersionError) as exc_info:
            validate_backup({"version": version, "data": {}})
        assert exc_info.value.code == "IMPORT_UNSUPPORTED_VERSION"

    def test_version_one(self):
        assert validate_backup(make_backup()) == {}


class TestSizeBound:
    """Tests for the per-collection record bound."""

    def test_oversized_collection(self):
        """A collection over the bound is reported with its count."""
        recipes = [{"id": str(i), "title": "t"} for i in range(10_001)]

        with pytest.raises(ImportTooLargeError) as exc_info:
            check_sizes({"recipes": recipes})

        error = exc_info.value
        assert error.code == "IMPORT_ARRAY_TOO_LARGE"
        assert error.details == {
            "limit": 10_000,
            "violations": [{"section": "recipes", "count": 10_001}],
        }

    def test_exactly_at_bound(self):
        """The bound itself is allowed."""
        check_sizes({"recipes": [{}] * 10_000})

    def test_size_checked_before_fields(self):
        """Oversized but invalid records still fail on size first."""
        backup = make_backup(inventory=[{"bad": True}] * 6, cookware=[{}] * 4)

        with pytest.raises(ImportTooLargeError) as exc_info:
            validate_backup(backup, max_array_size=5)

        assert exc_info.value.violations == [{"section": "inventory", "count": 6}]


class TestFieldValidation:
    """Tests for collected field errors."""

    def test_errors_are_annotated(self):
        """Messages carry collection, index and field."""
        errors = collect_errors(
            {
                "inventory": [{"id": "a", "name": "Milk"}, {"id": "b", "quantity": -2}],
                "recipes": [{"id": "r1"}],
            }
        )

        assert errors == [
            "inventory[1]: name: Required",
            "inventory[1]: quantity: Number must be greater than or equal to 0",
            "recipes[0]: title: Required",
        ]

    def test_non_list_collection(self):
        """A collection that is not an array is an error."""
        errors = collect_errors({"recipes": {"id": "r1"}})
        assert errors == ["recipes: Expected array, received object"]

    def test_non_object_record(self):
        errors = collect_errors({"cookware": ["wok"]})
        assert errors == ["cookware[0]: Expected object, received string"]

    def test_section_must_be_object(self):
        """KV sections must be objects when present."""
        assert collect_errors({"preferences": None}) == []
        assert collect_errors({"preferences": [1]}) == [
            "preferences: Expected object, received array"
        ]

    def test_unknown_fields_allowed(self):
        """Unknown record fields and top-level keys are not errors."""
        errors = collect_errors(
            {
                "inventory": [{"id": 1, "name": "Milk", "futureField": [1, 2]}],
                "somethingNew": 42,
            }
        )
        assert errors == []

    def test_updated_at_never_fails(self):
        """updatedAt is lenient."""
        assert collect_errors({"recipes": [{"id": "r", "title": "t", "updatedAt": "junk"}]}) == []

    def test_errors_capped(self):
        """At most max_errors messages are returned, with the total."""
        backup = make_backup(inventory=[{"id": str(i)} for i in range(30)])

        with pytest.raises(ImportValidationError) as exc_info:
            validate_backup(backup, max_errors=20)

        error = exc_info.value
        assert error.code == "IMPORT_VALIDATION_FAILED"
        assert len(error.details["errors"]) == 20
        assert error.details["totalErrors"] == 30
        assert error.details["errors"][0] == "inventory[0]: name: Required"

    def test_data_must_be_object(self):
        with pytest.raises(ImportValidationError) as exc_info:
            validate_backup({"version": 1, "data": []})
        assert exc_info.value.errors == ["data: Expected object, received array"]

    def test_valid_backup_returns_data(self):
        data = {
            "inventory": [{"id": "apple-1", "name": "Apple", "quantity": 3}],
            "wasteLog": [{"itemName": "Bread"}],
            "preferences": {"theme": "dark"},
        }
        assert validate_backup(make_backup(**data)) == data
