from __future__ import annotations

from unittest.mock import patch

from safecrud.db.executor import INVALID_TABLE_LABEL, QueryExecutor
from safecrud.db.metrics import observe_operation
from safecrud.metrics.registry import (
    SAFECRUD_OPERATION_LATENCY_SECONDS,
    SAFECRUD_OPERATION_TOTAL,
)


def _get_counter_value(table: str, op_type: str, outcome: str) -> float:
    return SAFECRUD_OPERATION_TOTAL.labels(table=table, op_type=op_type, outcome=outcome)._value.get()


def _get_histogram_sample_count(table: str, op_type: str) -> int:
    samples = list(SAFECRUD_OPERATION_LATENCY_SECONDS.labels(table=table, op_type=op_type).collect())
    for sample_family in samples:
        for sample in sample_family.samples:
            if sample.name.endswith("_count"):
                return int(sample.value)
    return 0


class TestObserveOperation:
    def test_increments_counter_and_histogram(self) -> None:
        initial = _get_counter_value("metrics_t", "create", "success")
        initial_samples = _get_histogram_sample_count("metrics_t", "create")

        observe_operation("metrics_t", "create", "success", 0.01)

        assert _get_counter_value("metrics_t", "create", "success") == initial + 1
        assert _get_histogram_sample_count("metrics_t", "create") == initial_samples + 1

    def test_metric_errors_are_swallowed(self) -> None:
        with patch.object(SAFECRUD_OPERATION_TOTAL, "labels", side_effect=RuntimeError("registry broken")):
            observe_operation("metrics_t", "read", "success", 0.01)


class TestExecutorMetricsIntegration:
    def test_each_call_is_counted_by_outcome(self, executor: QueryExecutor, users_table: str) -> None:
        created = _get_counter_value(users_table, "create", "success")
        rejected = _get_counter_value(users_table, "update", "rejected")
        not_found = _get_counter_value(users_table, "delete", "not_found")

        executor.create(users_table, {"name": "Ann"})
        executor.update(users_table, {"name": "Bob"}, {})
        executor.delete(users_table, {"id": 999})

        assert _get_counter_value(users_table, "create", "success") == created + 1
        assert _get_counter_value(users_table, "update", "rejected") == rejected + 1
        assert _get_counter_value(users_table, "delete", "not_found") == not_found + 1

    def test_result_survives_metric_failure(self, executor: QueryExecutor, users_table: str) -> None:
        with patch.object(SAFECRUD_OPERATION_TOTAL, "labels", side_effect=RuntimeError("registry broken")):
            res = executor.create(users_table, {"name": "Ann"})
        assert res.status is True


class TestMetricLabels:
    def _table_labels(self) -> set[str]:
        labels = set()
        for family in SAFECRUD_OPERATION_TOTAL.collect():
            for sample in family.samples:
                labels.add(sample.labels["table"])
        return labels

    def test_rejected_table_names_share_one_label(self, executor: QueryExecutor) -> None:
        before = _get_counter_value(INVALID_TABLE_LABEL, "read", "rejected")

        for i in range(3):
            assert executor.read(f"bad table {i}; --").outcome.value == "rejected"

        assert _get_counter_value(INVALID_TABLE_LABEL, "read", "rejected") == before + 3
        assert not [label for label in self._table_labels() if label.startswith("bad table")]

    def test_tables_outside_allow_list_are_not_labelled(self, connection, users_table: str) -> None:
        guarded = QueryExecutor(connection, allowed_tables=[users_table])

        guarded.read("not_allowed_table_xyz")

        assert "not_allowed_table_xyz" not in self._table_labels()
