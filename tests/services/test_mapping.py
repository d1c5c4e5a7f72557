"""Tests for aggregate mapping metadata."""

import pytest
from sqlalchemy import Column, Integer, MetaData, Table

from relational_kernel.domain.property_path import PropertyPath
from relational_kernel.exceptions import UnmappedEntityError, UnmappedPathError
from relational_services.mapping import (
    AggregateMapping,
    MappingContext,
    NestedTableMapping,
)
from tests.aggregates import (
    ADDRESSES,
    CUSTOMER_MAPPING,
    LINE_ITEMS,
    ORDERS,
    WAREHOUSE_MAPPING,
    Customer,
    Warehouse,
)


def _tables():
    md = MetaData()
    root = Table("root", md, Column("id", Integer, primary_key=True), Column("version", Integer))
    child = Table("child", md, Column("id", Integer, primary_key=True), Column("root_id", Integer))
    grandchild = Table(
        "grandchild", md, Column("id", Integer, primary_key=True), Column("child_id", Integer)
    )
    return root, child, grandchild


class TestAggregateMapping:
    def test_paths_in_declaration_order(self):
        assert CUSTOMER_MAPPING.paths == (ORDERS, LINE_ITEMS, ADDRESSES)

    def test_versioning(self):
        assert CUSTOMER_MAPPING.is_versioned
        assert CUSTOMER_MAPPING.version.name == "version"
        assert not WAREHOUSE_MAPPING.is_versioned
        assert WAREHOUSE_MAPPING.version is None

    def test_nested_for_unknown_path(self):
        with pytest.raises(UnmappedPathError) as exc_info:
            CUSTOMER_MAPPING.nested_for(PropertyPath.of("invoices"))
        assert exc_info.value.code == "UNMAPPED_PATH"
        assert exc_info.value.property_path == "invoices"
        assert exc_info.value.entity_type == "Customer"

    def test_nested_is_read_only(self):
        with pytest.raises(TypeError):
            CUSTOMER_MAPPING.nested[PropertyPath.of("x")] = None

    def test_missing_parent_path_rejected(self):
        root, _, grandchild = _tables()
        with pytest.raises(ValueError, match="unmapped parent"):
            AggregateMapping(
                entity_type=Customer,
                table=root,
                nested={
                    PropertyPath.of("child", "grandchild"): NestedTableMapping(
                        grandchild, parent_column="child_id"
                    )
                },
            )

    def test_parent_without_key_column_rejected(self):
        root, child, grandchild = _tables()
        with pytest.raises(ValueError, match="needs a key_column"):
            AggregateMapping(
                entity_type=Customer,
                table=root,
                nested={
                    PropertyPath.of("child"): NestedTableMapping(child, parent_column="root_id"),
                    PropertyPath.of("child", "grandchild"): NestedTableMapping(
                        grandchild, parent_column="child_id"
                    ),
                },
            )

    def test_unknown_columns_rejected(self):
        root, child, _ = _tables()
        with pytest.raises(ValueError, match="no column 'rev'"):
            AggregateMapping(entity_type=Customer, table=root, version_column="rev")
        with pytest.raises(ValueError, match="no column 'owner_id'"):
            NestedTableMapping(child, parent_column="owner_id")

    def test_key_without_key_column(self):
        _, child, _ = _tables()
        with pytest.raises(ValueError, match="no key column"):
            NestedTableMapping(child, parent_column="root_id").key


class TestMappingContext:
    def test_lookup(self, mapping_context):
        assert mapping_context.mapping_for(Customer) is CUSTOMER_MAPPING
        assert Warehouse in mapping_context

    def test_unknown_entity(self, mapping_context):
        class Invoice:
            pass

        with pytest.raises(UnmappedEntityError) as exc_info:
            mapping_context.mapping_for(Invoice)
        assert exc_info.value.code == "UNMAPPED_ENTITY"
        assert Invoice not in mapping_context

    def test_register_replaces(self):
        context = MappingContext()
        context.register(CUSTOMER_MAPPING)
        context.register(CUSTOMER_MAPPING)
        assert context.mapping_for(Customer) is CUSTOMER_MAPPING
