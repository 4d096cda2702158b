import pytest

from legacy_migration.models.schema import (
    ColumnMapping,
    EntityKind,
    ProjectionCatalog,
    TableProjection,
)
from legacy_migration.services.projections import DEFAULT_PROJECTIONS, build_default_catalog


def test_default_migration_order():
    order = build_default_catalog().migration_order()
    assert [kind.value for kind in order] == [
        "banks", "deliveries", "notices", "users", "merchants", "shops",
        "buyerAccounts", "goods", "bankCards", "tasks", "orders", "messages",
    ]


def test_every_kind_follows_its_dependencies():
    catalog = build_default_catalog()
    order = catalog.migration_order()
    for position, kind in enumerate(order):
        for dependency in catalog.get(kind).dependencies:
            assert order.index(dependency) < position


def test_selected_kinds_are_ordered_by_dependencies():
    catalog = build_default_catalog()
    order = catalog.migration_order(["orders", "users", "tasks"])
    assert order == [EntityKind.USER, EntityKind.TASK, EntityKind.ORDER]


def test_unknown_kind_is_rejected():
    with pytest.raises(ValueError):
        build_default_catalog().migration_order(["invoices"])


def test_dependencies_include_selector_and_lookup_kinds():
    catalog = build_default_catalog()
    assert set(catalog.get(EntityKind.MESSAGE).dependencies) == {EntityKind.USER, EntityKind.MERCHANT}
    assert set(catalog.get(EntityKind.BANK_CARD).dependencies) == {EntityKind.USER, EntityKind.BANK}
    assert set(catalog.get(EntityKind.ORDER).dependencies) == {
        EntityKind.TASK, EntityKind.USER, EntityKind.BUYER_ACCOUNT
    }


def test_dependency_cycle_is_detected():
    catalog = ProjectionCatalog(name="cycle")
    catalog.add(TableProjection(
        kind=EntityKind.SHOP, legacy_table="shop", target_table="shops",
        legacy_columns=["id", "goods_id"],
        column_mappings=[ColumnMapping(target_column="goodsId", source_column="goods_id",
                                       references=EntityKind.GOODS)],
    ))
    catalog.add(TableProjection(
        kind=EntityKind.GOODS, legacy_table="goods", target_table="goods",
        legacy_columns=["id", "shop_id"],
        column_mappings=[ColumnMapping(target_column="shopId", source_column="shop_id",
                                       references=EntityKind.SHOP)],
    ))
    with pytest.raises(ValueError, match="cycle"):
        catalog.migration_order()


def test_manifest_must_contain_mapped_columns():
    with pytest.raises(ValueError):
        TableProjection(
            kind=EntityKind.BANK, legacy_table="bank", target_table="banks",
            legacy_columns=["id", "bank_name"],
            column_mappings=[ColumnMapping(target_column="icon", source_column="bank_logo")],
        )
    with pytest.raises(ValueError):
        TableProjection(kind=EntityKind.BANK, legacy_table="bank", target_table="banks",
                        legacy_columns=["bank_name"])


def test_manifests_have_unique_columns():
    for projection in DEFAULT_PROJECTIONS:
        assert len(set(projection.legacy_columns)) == len(projection.legacy_columns), projection.legacy_table


def test_orders_manifest_matches_legacy_table():
    orders = build_default_catalog().get(EntityKind.ORDER)
    assert len(orders.legacy_columns) == 59
    assert orders.legacy_columns[:5] == ["id", "user_id", "seller_id", "shop_id", "seller_task_id"]


def test_catalog_file_can_replace_builtin_projections(tmp_path):
    path = str(tmp_path / "mapping.json")
    build_default_catalog().save_to_json(path)

    loaded = ProjectionCatalog.from_json_file(path)

    assert loaded.migration_order() == build_default_catalog().migration_order()
    messages = loaded.get("messages")
    receiver = next(m for m in messages.column_mappings if m.target_column == "receiverId")
    assert receiver.reference_kind({"user_type": 1}) == EntityKind.USER
    assert receiver.reference_kind({"user_type": 2}) == EntityKind.MERCHANT
