"""
Record contracts for every collection in a backup document.

The five core collections are timestamped and reconciled with
last-write-wins. Log collections and custom locations are append-style and
keyed by client-assigned entry ids (generated when missing).
"""

from __future__ import annotations

from .types import RecordContract, field

LONG_TEXT = 10_000

INVENTORY = RecordContract(
    name="inventory",
    table="inventory_items",
    soft_delete=True,
    fields=(
        field("id", "id", required=True),
        field("name", "str", required=True),
        field("barcode", "str"),
        field("quantity", "number", minimum=0),
        field("unit", "str"),
        field("storageLocation", "str"),
        field("purchaseDate", "str"),
        field("expirationDate", "str"),
        field("category", "str"),
        field("usdaCategory", "str"),
        field("nutrition", "object"),
        field("notes", "str", max_length=LONG_TEXT),
        field("imageUri", "str", max_length=LONG_TEXT),
        field("fdcId", "int"),
        field("servingSize", "str"),
        field("deletedAt", "timestamp"),
    ),
)

RECIPES = RecordContract(
    name="recipes",
    table="saved_recipes",
    fields=(
        field("id", "id", required=True),
        field("title", "str", required=True),
        field("description", "str", max_length=LONG_TEXT),
        field("ingredients", "list"),
        field("instructions", "list"),
        field("prepTime", "int", minimum=0),
        field("cookTime", "int", minimum=0),
        field("servings", "int", minimum=0),
        field("imageUri", "str", max_length=LONG_TEXT),
        field("cloudImageUri", "str", max_length=LONG_TEXT),
        field("nutrition", "object"),
        field("isFavorite", "bool"),
    ),
)

MEAL_PLANS = RecordContract(
    name="mealPlans",
    table="meal_plans",
    fields=(
        field("id", "id", required=True),
        field("date", "str", required=True),
        field("meals", "list"),
    ),
)

SHOPPING_LIST = RecordContract(
    name="shoppingList",
    table="shopping_items",
    fields=(
        field("id", "id", required=True),
        field("name", "str", required=True),
        field("quantity", "number", minimum=0),
        field("unit", "str"),
        field("isChecked", "bool"),
        field("category", "str"),
        field("recipeId", "str"),
    ),
)

COOKWARE = RecordContract(
    name="cookware",
    table="cookware_items",
    fields=(
        field("id", "id", required=True),
        field("name", "str"),
        field("category", "str"),
        field("alternatives", "list_str"),
    ),
)

WASTE_LOG = RecordContract(
    name="wasteLog",
    table="waste_log_entries",
    key_column="entry_id",
    timestamped=False,
    generate_missing_id=True,
    fields=(
        field("id", "id"),
        field("itemName", "str", required=True),
        field("quantity", "number"),
        field("unit", "str"),
        field("reason", "str"),
        field("date", "str"),
    ),
)

CONSUMED_LOG = RecordContract(
    name="consumedLog",
    table="consumed_log_entries",
    key_column="entry_id",
    timestamped=False,
    generate_missing_id=True,
    fields=(
        field("id", "id"),
        field("itemName", "str", required=True),
        field("quantity", "number"),
        field("unit", "str"),
        field("date", "str"),
    ),
)

CUSTOM_LOCATIONS = RecordContract(
    name="customLocations",
    table="custom_locations",
    key_column="location_id",
    timestamped=False,
    generate_missing_id=True,
    fields=(
        field("id", "id"),
        field("name", "str", required=True),
        field("type", "str"),
    ),
)

# Replaced together inside one transaction
CORE_CONTRACTS: tuple[RecordContract, ...] = (
    INVENTORY,
    RECIPES,
    MEAL_PLANS,
    SHOPPING_LIST,
    COOKWARE,
)

LOG_CONTRACTS: tuple[RecordContract, ...] = (
    WASTE_LOG,
    CONSUMED_LOG,
    CUSTOM_LOCATIONS,
)

ALL_CONTRACTS: tuple[RecordContract, ...] = CORE_CONTRACTS + LOG_CONTRACTS

# Plan-limited collections, in the order warnings are reported
QUOTA_COLLECTIONS: tuple[str, ...] = (INVENTORY.name, COOKWARE.name)

KV_SECTIONS: tuple[str, ...] = ("preferences", "analytics", "onboarding", "userProfile")


def get_contract(name: str) -> RecordContract:
    """Look up a collection contract by its backup-document name.

    Raises:
        KeyError: If no collection has that name
    """
    for contract in ALL_CONTRACTS:
        if contract.name == name:
            return contract
    raise KeyError(name)
