"""
End-to-end tests for AggregateDeleter.

Covers:
- Deleting one aggregate by id
- Deleting many aggregates as one batched pass
- Version groups and optimistic lock conflicts
- Deleting every aggregate of a type
- Trace and structured log output
"""

import logging

import pytest

from relational_config.schema import ExecutorSettings
from relational_kernel.exceptions import OptimisticLockError, UnmappedEntityError
from relational_kernel.tracer import compute_input_fingerprint
from relational_services.aggregate_deleter import AggregateDeleter, VersionedId, _split_id
from tests.aggregates import (
    Customer,
    Warehouse,
    addresses,
    bins,
    customers,
    line_items,
    orders,
    warehouses,
)
from tests.conftest import count_rows


class TestDeleteById:
    def test_deletes_whole_aggregate(self, session, mapping_context, seed_customer):
        seed_customer(1, version=3)
        seed_customer(2)
        deleter = AggregateDeleter(session, mapping_context)

        deleter.delete_by_id(Customer, 1, previous_version=3)

        assert count_rows(session, customers) == 1
        assert count_rows(session, orders) == 2
        assert count_rows(session, line_items) == 4
        assert count_rows(session, addresses) == 1

    def test_stale_version(self, session, mapping_context, seed_customer):
        seed_customer(1, version=3)
        deleter = AggregateDeleter(session, mapping_context)

        with pytest.raises(OptimisticLockError):
            deleter.delete_by_id(Customer, 1, previous_version=2)

    def test_unmapped_entity(self, session, mapping_context):
        class Invoice:
            pass

        deleter = AggregateDeleter(session, mapping_context)
        with pytest.raises(UnmappedEntityError):
            deleter.delete_by_id(Invoice, 1)


class TestDeleteAllById:
    def test_batches_across_aggregates(self, session, mapping_context, seed_customer, statement_log):
        for customer_id in range(1, 6):
            seed_customer(customer_id, version=1)
        statement_log.clear()
        deleter = AggregateDeleter(session, mapping_context)

        deleted = deleter.delete_all_by_id(Customer, [VersionedId(i, 1) for i in range(1, 5)])

        assert deleted == 4
        assert count_rows(session, customers) == 1
        assert count_rows(session, line_items) == 4
        # 4 locks + 3 nested batches + 1 versioned root batch
        assert deleter.executor.statement_count == 8
        deletes = [many for sql, many in statement_log if sql.lstrip().upper().startswith("DELETE")]
        assert deletes == [True, True, True, True]

    def test_plain_ids_and_version_groups(self, session, mapping_context, seed_customer):
        seed_customer(1, version=1)
        seed_customer(2, version=1)
        seed_customer(3, version=4)
        deleter = AggregateDeleter(session, mapping_context)

        deleter.delete_all_by_id(Customer, [VersionedId(1, 1), VersionedId(3, 4), VersionedId(2, 1)])

        for table in (customers, orders, line_items, addresses):
            assert count_rows(session, table) == 0

    def test_unversioned_aggregate(self, session, mapping_context, seed_warehouse):
        for warehouse_id in (1, 2, 3):
            seed_warehouse(warehouse_id)
        deleter = AggregateDeleter(
            session, mapping_context, ExecutorSettings(acquire_locks=False)
        )

        deleter.delete_all_by_id(Warehouse, [1, 2])

        assert count_rows(session, warehouses) == 1
        assert count_rows(session, bins) == 3
        # one nested batch + one plain root batch
        assert deleter.executor.statement_count == 2

    def test_empty_ids(self, session, mapping_context):
        deleter = AggregateDeleter(session, mapping_context)
        assert deleter.delete_all_by_id(Customer, []) == 0
        assert deleter.executor.statement_count == 0

    def test_logs_and_trace(self, session, mapping_context, seed_customer, captured_logs):
        seed_customer(1)
        seed_customer(2)
        deleter = AggregateDeleter(session, mapping_context)

        deleter.delete_all_by_id(entity_type=Customer, ids=[VersionedId(1, 0), VersionedId(2, 0)])

        logs = captured_logs()
        summary = next(r for r in logs if r["message"] == "aggregates_deleted")
        assert summary["aggregate_count"] == 2
        assert summary["statement_count"] == 6
        assert summary["entity_type"] == "Customer"
        assert "unit_of_work_id" in summary

        trace = next(r for r in logs if r["message"] == "RELATIONAL_OPERATION_TRACE")
        assert trace["operation_name"] == "aggregate_delete_batch"
        assert len(trace["input_fingerprint"]) == 16

    def test_positional_call_fingerprints_entity_type(self, session, mapping_context, captured_logs):
        deleter = AggregateDeleter(session, mapping_context)

        deleter.delete_all_by_id(Customer, [])

        trace = next(
            r for r in captured_logs() if r["message"] == "RELATIONAL_OPERATION_TRACE"
        )
        assert trace["input_fingerprint"] == compute_input_fingerprint(
            ("entity_type",), {"entity_type": Customer}
        )


class TestIdEntries:
    """Only VersionedId carries a version; every other entry is a root id."""

    def test_versioned_id_splits(self):
        assert _split_id(VersionedId(4, 2)) == (4, 2)

    def test_plain_tuple_is_a_composite_id(self):
        assert _split_id(("eu", 17)) == (("eu", 17), None)

    def test_plain_and_versioned_ids_mix(self, session, mapping_context, seed_customer):
        seed_customer(1, version=2)
        seed_customer(2, version=5)
        deleter = AggregateDeleter(session, mapping_context)

        deleter.delete_all_by_id(Customer, [VersionedId(1, 2), 2])

        assert count_rows(session, customers) == 0


class TestLogLevelSetting:
    """Each deleter applies the log level from its own settings."""

    def test_later_deleter_level_applies(self, session, mapping_context):
        kernel_logger = logging.getLogger("relational_kernel")

        AggregateDeleter(session, mapping_context, ExecutorSettings(log_level="DEBUG"))
        assert kernel_logger.level == logging.DEBUG

        AggregateDeleter(session, mapping_context, ExecutorSettings(log_level="ERROR"))
        assert kernel_logger.level == logging.ERROR

    def test_level_filters_deleter_logs(self, session, mapping_context, seed_customer, captured_logs):
        seed_customer(1)
        deleter = AggregateDeleter(
            session, mapping_context, ExecutorSettings(log_level="WARNING")
        )

        deleter.delete_by_id(Customer, 1, previous_version=0)

        assert not any(r["message"] == "aggregate_deleted" for r in captured_logs())


class TestDeleteAll:
    def test_clears_type(self, session, mapping_context, seed_customer, seed_warehouse):
        seed_customer(1)
        seed_customer(2)
        seed_warehouse(1)
        deleter = AggregateDeleter(session, mapping_context)

        deleter.delete_all(Customer)

        for table in (customers, orders, line_items, addresses):
            assert count_rows(session, table) == 0
        assert count_rows(session, warehouses) == 1
