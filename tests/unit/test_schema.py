"""
Unit tests for record contracts.

Tests cover:
- Field kinds and value validation
- Contract definitions
- Known/extra envelope split and flatten
- Lenient timestamp parsing
"""

from datetime import datetime, timezone

import pytest

from backend.pantrysync_server.schema import (
    ALL_CONTRACTS,
    CORE_CONTRACTS,
    FieldKind,
    RecordContract,
    RecordEnvelope,
    field,
    format_timestamp,
    get_contract,
    parse_timestamp,
    try_parse_timestamp,
)
from backend.pantrysync_server.schema.contracts import INVENTORY, RECIPES, WASTE_LOG


class TestFieldKind:
    """Tests for FieldKind enum."""

    def test_from_str_valid(self):
        """Valid strings convert to FieldKind."""
        assert FieldKind.from_str("str") == FieldKind.STRING
        assert FieldKind.from_str("int") == FieldKind.INTEGER
        assert FieldKind.from_str("list_str") == FieldKind.LIST_STRING

    def test_from_str_invalid(self):
        """Invalid strings raise ValueError."""
        with pytest.raises(ValueError, match="Invalid field kind"):
            FieldKind.from_str("blob")


class TestFieldDef:
    """Tests for FieldDef value validation."""

    def test_required_missing(self):
        """Missing required field fails."""
        ok, message = field("name", "str", required=True).validate_value(None)
        assert ok is False
        assert message == "Required"

    def test_optional_missing(self):
        """Missing optional field passes."""
        assert field("unit", "str").validate_value(None) == (True, None)

    def test_required_string_blank(self):
        """Required strings must not be blank."""
        ok, message = field("name", "str", required=True).validate_value("   ")
        assert ok is False
        assert "empty" in message

    def test_string_too_long(self):
        """Strings are bounded."""
        f = field("unit", "str", max_length=5)
        assert f.validate_value("grams")[0] is True
        ok, message = f.validate_value("kilograms")
        assert ok is False
        assert "at most 5" in message

    def test_string_wrong_type(self):
        """Non-strings are rejected with the received type."""
        ok, message = field("name", "str").validate_value(12)
        assert ok is False
        assert message == "Expected string, received number"

    def test_identifier(self):
        """Identifiers accept non-empty strings and integers."""
        f = field("id", "id", required=True)
        assert f.validate_value("apple-1")[0] is True
        assert f.validate_value(42)[0] is True
        assert f.validate_value("")[0] is False
        assert f.validate_value(True)[0] is False
        assert f.validate_value(1.5)[0] is False

    def test_number_minimum(self):
        """Numbers below the minimum fail."""
        f = field("quantity", "number", minimum=0)
        assert f.validate_value(0)[0] is True
        assert f.validate_value(2.5)[0] is True
        ok, message = f.validate_value(-1)
        assert ok is False
        assert message == "Number must be greater than or equal to 0"

    def test_number_rejects_bool_and_nan(self):
        """Booleans and non-finite floats are not numbers."""
        f = field("quantity", "number")
        assert f.validate_value(True)[0] is False
        assert f.validate_value(float("nan"))[0] is False
        assert f.validate_value(float("inf"))[0] is False

    def test_integer_rejects_fraction(self):
        """Integer fields reject fractional values."""
        f = field("servings", "int")
        assert f.validate_value(4)[0] is True
        assert f.validate_value(4.0)[0] is True
        assert f.validate_value(4.5) == (False, "Expected integer, received float")

    def test_boolean(self):
        """Boolean fields only accept bools."""
        f = field("isFavorite", "bool")
        assert f.validate_value(False)[0] is True
        assert f.validate_value(0)[0] is False

    def test_timestamp(self):
        """Timestamps accept strings and epoch numbers."""
        f = field("deletedAt", "timestamp")
        assert f.validate_value("2024-01-01T00:00:00Z")[0] is True
        assert f.validate_value(1_700_000_000_000)[0] is True
        assert f.validate_value({})[0] is False

    def test_list_string(self):
        """String lists check every element."""
        f = field("alternatives", "list_str")
        assert f.validate_value(["wok", "skillet"])[0] is True
        ok, message = f.validate_value(["wok", 3])
        assert ok is False
        assert message == "Item 1 must be a string"

    def test_object_and_list(self):
        """Objects and arrays are shape-checked only."""
        assert field("nutrition", "object").validate_value({"kcal": 100})[0] is True
        assert field("nutrition", "object").validate_value([1])[0] is False
        assert field("meals", "list").validate_value([{"any": "thing"}])[0] is True
        assert field("meals", "list").validate_value("x")[0] is False

    def test_minimum_only_for_numbers(self):
        """minimum on a string field is a definition error."""
        with pytest.raises(ValueError):
            field("name", "str", minimum=1)


class TestRecordContract:
    """Tests for RecordContract definitions."""

    def test_requires_id_field(self):
        """Contracts must define an id field."""
        with pytest.raises(ValueError, match="'id'"):
            RecordContract(name="things", fields=(field("name", "str"),))

    def test_duplicate_fields(self):
        """Duplicate field names are rejected."""
        with pytest.raises(ValueError, match="Duplicate"):
            RecordContract(
                name="things",
                fields=(field("id", "id"), field("name", "str"), field("name", "str")),
            )

    def test_known_keys_include_updated_at(self):
        """Timestamped contracts treat updatedAt as known."""
        assert "updatedAt" in INVENTORY.known_keys
        assert "updatedAt" not in WASTE_LOG.known_keys

    def test_core_contracts(self):
        """The five core collections are timestamped and keyed by item_id."""
        names = [c.name for c in CORE_CONTRACTS]
        assert names == ["inventory", "recipes", "mealPlans", "shoppingList", "cookware"]
        assert all(c.timestamped and c.key_column == "item_id" for c in CORE_CONTRACTS)

    def test_tables_are_unique(self):
        """Every contract has its own table."""
        tables = [c.table for c in ALL_CONTRACTS]
        assert len(tables) == len(set(tables))
        assert all(tables)

    def test_get_contract(self):
        """Contracts are looked up by collection name."""
        assert get_contract("recipes") is RECIPES
        with pytest.raises(KeyError):
            get_contract("pets")


class TestRecordEnvelope:
    """Tests for the known/extra split."""

    def test_split_separates_unknown_fields(self):
        """Unknown fields go to the extra bag, known ones to data."""
        envelope = RecordEnvelope.split(
            {
                "id": 5,
                "name": "Milk",
                "notes": None,
                "updatedAt": 1000,
                "brandNew": {"x": 1},
            },
            INVENTORY,
        )

        assert envelope.key == "5"
        assert envelope.known == {"name": "Milk"}
        assert envelope.extra == {"brandNew": {"x": 1}}
        assert envelope.updated_at == 1000
        assert envelope.deleted_at is None

    def test_split_soft_delete(self):
        """deletedAt is parsed into the deleted_at column."""
        envelope = RecordEnvelope.split(
            {"id": "a", "name": "Eggs", "deletedAt": "2024-01-01T00:00:00Z"}, INVENTORY
        )
        assert envelope.deleted_at == 1704067200000

    @pytest.mark.parametrize("value", ["", "   ", "not a date", True])
    def test_split_unparseable_deleted_at_stays_live(self, value):
        """A deletedAt that is not a real instant does not soft-delete."""
        envelope = RecordEnvelope.split({"id": "a", "name": "Eggs", "deletedAt": value}, INVENTORY)
        assert envelope.deleted_at is None
        assert envelope.known["deletedAt"] == value

    def test_split_missing_timestamp(self):
        """Missing updatedAt parses to the epoch."""
        envelope = RecordEnvelope.split({"id": "r1", "title": "Soup"}, RECIPES)
        assert envelope.updated_at == 0

    def test_split_generates_log_ids(self):
        """Log entries without id get a random 24-hex id."""
        envelope = RecordEnvelope.split({"itemName": "Bread"}, WASTE_LOG)
        assert len(envelope.key) == 24
        int(envelope.key, 16)
        assert envelope.updated_at is None

    def test_split_core_requires_id(self):
        """Core records without id cannot be stored."""
        with pytest.raises(ValueError):
            RecordEnvelope.split({"title": "Soup"}, RECIPES)

    def test_flatten_restores_extra(self):
        """flatten() merges the extra bag back into the record."""
        envelope = RecordEnvelope(
            key="5",
            known={"name": "Milk"},
            extra={"brandNew": {"x": 1}},
            updated_at=1000,
        )
        assert envelope.flatten(INVENTORY) == {
            "id": "5",
            "name": "Milk",
            "updatedAt": "1970-01-01T00:00:01.000Z",
            "brandNew": {"x": 1},
        }

    def test_flatten_log_has_no_updated_at(self):
        """Untimestamped contracts export without updatedAt."""
        envelope = RecordEnvelope(key="e1", known={"itemName": "Bread"})
        assert envelope.flatten(WASTE_LOG) == {"id": "e1", "itemName": "Bread"}


class TestTimestamps:
    """Tests for lenient timestamp parsing."""

    def test_iso_with_z(self):
        assert parse_timestamp("2024-01-01T00:00:00Z") == 1704067200000

    def test_iso_with_offset(self):
        assert parse_timestamp("2024-01-01T01:00:00+01:00") == 1704067200000

    def test_date_only(self):
        assert parse_timestamp("2024-01-01") == 1704067200000

    def test_epoch_millis(self):
        assert parse_timestamp(1_700_000_000_000) == 1_700_000_000_000

    def test_datetime(self):
        value = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert parse_timestamp(value) == 1704067200000

    def test_naive_datetime_is_utc(self):
        assert parse_timestamp(datetime(2024, 1, 1)) == 1704067200000

    @pytest.mark.parametrize(
        "value", [None, "", "not a date", True, float("nan"), 10**20, {"at": 1}]
    )
    def test_unparseable_is_epoch(self, value):
        """Anything unparseable maps to the epoch."""
        assert parse_timestamp(value) == 0

    def test_format(self):
        assert format_timestamp(1704067200123) == "2024-01-01T00:00:00.123Z"
        assert format_timestamp(None) is None

    @pytest.mark.parametrize("value", [None, "", "not a date", True, float("nan"), 10**20])
    def test_try_parse_unparseable_is_none(self, value):
        assert try_parse_timestamp(value) is None

    def test_try_parse_keeps_real_epoch(self):
        assert try_parse_timestamp("1970-01-01T00:00:00Z") == 0
        assert try_parse_timestamp(0) == 0
