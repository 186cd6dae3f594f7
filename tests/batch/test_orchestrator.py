"""
Tests for ImportOrchestrator -- the run lifecycle end to end.

Covers preview and sample generation, start_run hooks, batched resumable
processing, cancellation, completion hooks, stats clearing and the SQL
stats store wiring.
"""

import csv
import io

import pytest

from importer_kernel.domain.dtos import Fail
from importer_kernel.exceptions import (
    ImportAbortedError,
    MissingRowProcessorError,
    OperationNotFoundError,
    PageNotFoundError,
    RunNotStartedError,
)

from importer_config import ImporterPage, PageRegistry
from importer_ingestion.adapters.base import describe_source
from importer_ingestion.domain.types import FieldDefinition, OperationDefinition, RawRow

from importer_batch import (
    ImportOrchestrator,
    InMemoryRecordRepository,
    RunStats,
    RunStatus,
    UpsertRowProcessor,
)

HEADERS = ("SKU", "Name", "Price", "Category")
FIELD_MAP = {"sku": "SKU", "name": "Name", "price": "Price", "category": "Category"}


def _rows(n, start=0):
    return [
        RawRow.from_cells(HEADERS, [f"SKU{i}", f"Product {i}", "9.99", ""])
        for i in range(start, start + n)
    ]


class Hooks:
    """Records lifecycle hook calls; behaviour is switched per test."""

    def __init__(self):
        self.before = []
        self.after = []
        self.before_result = True
        self.before_raises = None
        self.after_raises = False

    def before_import(self, context):
        self.before.append(context)
        if self.before_raises is not None:
            raise self.before_raises
        return self.before_result

    def after_import(self, context):
        self.after.append(context)
        if self.after_raises:
            raise RuntimeError("cache flush failed")


@pytest.fixture
def records():
    return InMemoryRecordRepository("sku")


@pytest.fixture
def hooks():
    return Hooks()


@pytest.fixture
def operation(records, hooks):
    return OperationDefinition(
        operation_id="products",
        fields=[
            FieldDefinition(key="sku", label="SKU", required=True, unique=True),
            FieldDefinition(key="name", label="Product Name"),
            FieldDefinition(key="price", label="Price", type="number", required=True, minimum=0.01),
            FieldDefinition(key="category", label="Category", type="term", match_by="name"),
        ],
        batch_size=100,
        process_callback=UpsertRowProcessor(records, "sku"),
        before_import=hooks.before_import,
        after_import=hooks.after_import,
    )


@pytest.fixture
def registry(operation):
    return PageRegistry([ImporterPage("shop", {"products": operation})])


@pytest.fixture
def orch(registry, stats_store, entity_repo, clock):
    return ImportOrchestrator(registry, stats_store, entity_repository=entity_repo, clock=clock)


class TestSideEffectFree:
    def test_unknown_page_and_operation(self, orch):
        with pytest.raises(PageNotFoundError):
            orch.get_stats("blog", "products")
        with pytest.raises(OperationNotFoundError):
            orch.get_stats("shop", "orders")

    def test_preview(self, orch, write_csv):
        path = write_csv([list(HEADERS)] + [[f"S{i}", "n", "1", ""] for i in range(8)])
        preview = orch.get_preview(path)
        assert preview["headers"] == list(HEADERS)
        assert len(preview["rows"]) == 5

    def test_generate_sample(self, orch):
        filename, text = orch.generate_sample("shop", "products")
        assert filename == "products-sample.csv"
        header, example = list(csv.reader(io.StringIO(text)))
        assert header == ["SKU", "Product Name", "Price", "Category"]
        assert example[0] == "Example"
        assert example[3] == "Category Name"

    def test_dry_run_touches_nothing(self, orch, records, stats_store):
        report = orch.dry_run("shop", "products", _rows(3), FIELD_MAP)
        assert report.valid_rows == 3
        assert records.records == {}
        assert len(stats_store) == 0

    def test_dry_run_from_source(self, orch, write_csv):
        path = write_csv([list(HEADERS), ["A", "a", "0", ""], ["B", "b", "2", ""]])
        report = orch.dry_run("shop", "products", describe_source(path), FIELD_MAP)
        assert report.error_count == 1
        assert report.errors[0].row == 2

    def test_default_stats(self, orch):
        assert orch.get_stats("shop", "products") == RunStats()


class TestStartRun:
    def test_initialises_stats(self, orch, clock):
        started = orch.start_run("shop", "products", total=250)
        assert started["total_items"] == 250
        assert started["batch_size"] == 100
        stats = orch.get_stats("shop", "products")
        assert stats.last_run == clock.now()
        assert stats.total_processed == 0

    def test_total_from_source(self, orch, write_csv):
        path = write_csv([list(HEADERS)] + [[f"S{i}", "n", "1", ""] for i in range(7)], name="prod.csv")
        started = orch.start_run("shop", "products", describe_source(path))
        assert started["total_items"] == 7
        assert orch.get_stats("shop", "products").source_file == "prod.csv"

    def test_before_import_sees_previous_stats(self, orch, hooks):
        orch.start_run("shop", "products", total=2)
        orch.run_batch("shop", "products", _rows(2), 0, FIELD_MAP)
        orch.complete("shop", "products")
        orch.start_run("shop", "products", total=3)
        context = hooks.before[-1]
        assert (context.page_id, context.operation_id, context.total) == ("shop", "products", 3)
        assert context.stats.created == 2

    @pytest.mark.parametrize(
        "result, reason",
        [
            (False, "before_import returned False"),
            (Fail.of("locked", "Store is in maintenance."), "Store is in maintenance."),
        ],
    )
    def test_before_import_aborts(self, orch, hooks, stats_store, captured_logs, result, reason):
        hooks.before_result = result
        with pytest.raises(ImportAbortedError) as exc_info:
            orch.start_run("shop", "products", total=10)
        assert exc_info.value.reason == reason
        assert len(stats_store) == 0
        assert any(r["message"] == "run_aborted" for r in captured_logs())

    def test_before_import_exception_aborts(self, orch, hooks, stats_store):
        hooks.before_raises = ValueError("no API key")
        with pytest.raises(ImportAbortedError) as exc_info:
            orch.start_run("shop", "products")
        assert exc_info.value.reason == "no API key"
        assert len(stats_store) == 0

    def test_aborted_start_keeps_previous_stats(self, orch, hooks):
        orch.start_run("shop", "products", total=1)
        orch.run_batch("shop", "products", _rows(1), 0, FIELD_MAP)
        hooks.before_result = False
        with pytest.raises(ImportAbortedError):
            orch.start_run("shop", "products")
        assert orch.get_stats("shop", "products").created == 1

    def test_requires_row_processor(self, stats_store, clock):
        op = OperationDefinition(operation_id="products", fields=[FieldDefinition(key="sku")])
        orch = ImportOrchestrator(PageRegistry([ImporterPage("shop", {"products": op})]), stats_store, clock=clock)
        with pytest.raises(MissingRowProcessorError):
            orch.start_run("shop", "products")
        with pytest.raises(MissingRowProcessorError):
            orch.run_batch("shop", "products", _rows(1), 0, FIELD_MAP)

    def test_logs_run_started(self, orch, captured_logs):
        orch.start_run("shop", "products", total=5)
        record = next(r for r in captured_logs() if r["message"] == "run_started")
        assert record["page_id"] == "shop"
        assert record["operation_id"] == "products"
        assert record["total"] == 5


class TestRunBatch:
    def test_requires_started_run(self, orch):
        with pytest.raises(RunNotStartedError):
            orch.run_batch("shop", "products", _rows(1), 0, FIELD_MAP)

    def test_first_batch(self, orch, records):
        orch.start_run("shop", "products", total=250)
        result = orch.run_batch("shop", "products", _rows(100), 0, FIELD_MAP)
        assert result.processed == 100
        assert result.tally.created == 100
        assert result.has_more is True
        assert result.offset == 100
        assert result.percentage == 40
        assert len(records.records) == 100

    def test_final_batch(self, orch):
        orch.start_run("shop", "products", total=250)
        orch.run_batch("shop", "products", _rows(100), 0, FIELD_MAP)
        orch.run_batch("shop", "products", _rows(100, 100), 100, FIELD_MAP)
        result = orch.run_batch("shop", "products", _rows(50, 200), 200, FIELD_MAP)
        assert result.has_more is False
        assert result.total_processed == 250
        assert result.percentage == 100

    def test_resumable_batches_match_single_pass(self, orch, registry, entity_repo, clock):
        from importer_batch import InMemoryStatsStore

        rows = _rows(190) + [RawRow.from_cells(HEADERS, ["", "x", "1", ""])] + _rows(9, 190)

        orch.start_run("shop", "products", total=200)
        orch.run_batch("shop", "products", rows[:100], 0, FIELD_MAP)
        split = orch.run_batch("shop", "products", rows[100:], 100, FIELD_MAP).stats

        whole_records = InMemoryRecordRepository("sku")
        op = OperationDefinition(
            operation_id="products",
            fields=list(registry.get_operation("shop", "products").fields.values()),
            batch_size=200,
            process_callback=UpsertRowProcessor(whole_records, "sku"),
        )
        whole = ImportOrchestrator(
            PageRegistry([ImporterPage("shop", {"products": op})]),
            InMemoryStatsStore(clock),
            entity_repository=entity_repo,
            clock=clock,
        )
        whole.start_run("shop", "products", total=200)
        single = whole.run_batch("shop", "products", rows, 0, FIELD_MAP).stats

        assert split == single
        assert split.failed == 1
        assert split.errors[0].row == 192

    def test_row_numbers_are_file_lines(self, orch):
        orch.start_run("shop", "products", total=150)
        rows = _rows(49, 100) + [RawRow.from_cells(HEADERS, ["BAD", "x", "free", ""])]
        result = orch.run_batch("shop", "products", rows, 100, FIELD_MAP)
        assert result.tally.errors[0].row == 151
        assert result.tally.errors[0].item == "BAD"

    def test_upsert_counts_updates(self, orch):
        orch.start_run("shop", "products", total=4)
        orch.run_batch("shop", "products", _rows(2), 0, FIELD_MAP)
        result = orch.run_batch("shop", "products", _rows(2), 2, FIELD_MAP)
        assert result.tally.updated == 2
        assert result.stats.created == 2
        assert result.stats.updated == 2

    def test_reads_from_source_file(self, orch, operation, write_csv):
        path = write_csv([list(HEADERS)] + [[f"S{i}", "n", "1", ""] for i in range(150)])
        source = describe_source(path)
        orch.start_run("shop", "products", source)
        first = orch.run_batch("shop", "products", source, 0, FIELD_MAP)
        second = orch.run_batch("shop", "products", source, first.offset, FIELD_MAP)
        assert (first.processed, first.has_more, first.offset) == (100, True, 100)
        assert (second.processed, second.has_more, second.offset) == (50, False, 150)

    def test_resolves_entities_live(self, orch, entity_repo, records):
        term_id = entity_repo.add("term", name="Shoes")
        orch.start_run("shop", "products", total=1)
        rows = [RawRow.from_cells(HEADERS, ["A1", "Boot", "20", "Shoes"])]
        result = orch.run_batch("shop", "products", rows, 0, FIELD_MAP)
        assert result.tally.created == 1
        assert list(records.records.values())[0]["category"] == term_id

    def test_optional_missing_entity_becomes_null(self, orch, records):
        orch.start_run("shop", "products", total=1)
        rows = [RawRow.from_cells(HEADERS, ["A1", "Boot", "20", "Nowhere"])]
        result = orch.run_batch("shop", "products", rows, 0, FIELD_MAP)
        assert result.tally.created == 1
        assert list(records.records.values())[0]["category"] is None

    def test_required_missing_entity_fails(self, stats_store, entity_repo, clock, records):
        op = OperationDefinition(
            operation_id="products",
            fields=[
                FieldDefinition(key="sku", required=True),
                FieldDefinition(key="category", label="Category", type="term", required=True),
            ],
            process_callback=UpsertRowProcessor(records, "sku"),
        )
        orch = ImportOrchestrator(
            PageRegistry([ImporterPage("shop", {"products": op})]),
            stats_store,
            entity_repository=entity_repo,
            clock=clock,
        )
        orch.start_run("shop", "products", total=1)
        rows = [RawRow.from_cells(HEADERS, ["A1", "Boot", "20", "Nowhere"])]
        result = orch.run_batch("shop", "products", rows, 0, FIELD_MAP)
        assert result.tally.failed == 1
        assert result.tally.errors[0].message == 'Category "Nowhere" not found.'
        assert records.records == {}

    def test_errors_capped_in_stats(self, orch):
        orch.start_run("shop", "products", total=30)
        rows = [RawRow.from_cells(HEADERS, [f"S{i}", "n", "free", ""]) for i in range(30)]
        result = orch.run_batch("shop", "products", rows, 0, FIELD_MAP)
        assert result.tally.failed == 30
        assert len(result.tally.errors) == 30
        assert len(result.stats.errors) == 20
        assert result.stats.errors[0].row == 12
        assert result.stats.failed == 30

    def test_logs_batch_processed(self, orch, captured_logs):
        orch.start_run("shop", "products", total=4)
        orch.run_batch("shop", "products", _rows(2), 0, FIELD_MAP)
        record = next(r for r in captured_logs() if r["message"] == "batch_processed")
        assert record["created_count"] == 2
        assert record["percentage"] == 50
        assert record["has_more"] is True


class TestCancellation:
    def test_cancel_keeps_counts(self, orch):
        orch.start_run("shop", "products", total=300)
        orch.run_batch("shop", "products", _rows(100), 0, FIELD_MAP)
        stats = orch.cancel("shop", "products")
        assert stats.last_status is RunStatus.CANCELLED
        assert stats.total_processed == 100
        assert stats.total == 300

    def test_request_cancel_stops_next_batch(self, orch, records, captured_logs):
        orch.start_run("shop", "products", total=300)
        orch.run_batch("shop", "products", _rows(100), 0, FIELD_MAP)
        assert orch.request_cancel("shop", "products").cancel_requested is True

        result = orch.run_batch("shop", "products", _rows(100, 100), 100, FIELD_MAP)
        assert result.cancelled is True
        assert result.processed == 0
        assert result.has_more is False
        assert result.stats.last_status is RunStatus.CANCELLED
        assert result.stats.total_processed == 100
        assert len(records.records) == 100
        assert any(r["message"] == "batch_refused" for r in captured_logs())

    def test_cancelled_run_refuses_batches(self, orch, records):
        orch.start_run("shop", "products", total=300)
        orch.cancel("shop", "products")
        result = orch.run_batch("shop", "products", _rows(10), 0, FIELD_MAP)
        assert result.cancelled is True
        assert records.records == {}

    def test_completed_run_refuses_batches(self, orch):
        orch.start_run("shop", "products", total=1)
        orch.run_batch("shop", "products", _rows(1), 0, FIELD_MAP)
        orch.complete("shop", "products")
        result = orch.run_batch("shop", "products", _rows(1, 1), 1, FIELD_MAP)
        assert result.processed == 0
        assert result.cancelled is False
        assert result.has_more is False

    def test_cancel_skips_after_import(self, orch, hooks):
        orch.start_run("shop", "products", total=10)
        orch.cancel("shop", "products")
        assert hooks.after == []

    def test_request_cancel_after_completion_ignored(self, orch):
        orch.start_run("shop", "products", total=1)
        orch.complete("shop", "products")
        assert orch.request_cancel("shop", "products").cancel_requested is False


class TestComplete:
    def test_after_import_fires_once(self, orch, hooks):
        orch.start_run("shop", "products", total=2)
        orch.run_batch("shop", "products", _rows(2), 0, FIELD_MAP)
        first = orch.complete("shop", "products")
        second = orch.complete("shop", "products")
        assert first == second
        assert len(hooks.after) == 1
        assert hooks.after[0].stats.created == 2

    def test_after_import_failure_logged(self, orch, hooks, captured_logs):
        hooks.after_raises = True
        orch.start_run("shop", "products", total=1)
        stats = orch.complete("shop", "products")
        assert stats.last_status is RunStatus.COMPLETE
        record = next(r for r in captured_logs() if r["message"] == "after_import_failed")
        assert record["level"] == "ERROR"
        assert record["exc_type"] == "RuntimeError"

    def test_status_from_string(self, orch, hooks):
        orch.start_run("shop", "products", total=1)
        stats = orch.complete("shop", "products", "error")
        assert stats.last_status is RunStatus.ERROR
        assert hooks.after == []

    def test_backfills_unknown_total(self, orch):
        orch.start_run("shop", "products")
        orch.run_batch("shop", "products", _rows(3), 0, FIELD_MAP)
        assert orch.complete("shop", "products").total == 3

    def test_logs_run_completed(self, orch, captured_logs):
        orch.start_run("shop", "products", total=1)
        orch.run_batch("shop", "products", _rows(1), 0, FIELD_MAP)
        orch.complete("shop", "products")
        record = next(r for r in captured_logs() if r["message"] == "run_completed")
        assert record["status"] == "complete"
        assert record["created_count"] == 1

    def test_cancelled_run_stays_cancelled(self, orch, hooks, captured_logs):
        orch.start_run("shop", "products", total=2)
        orch.run_batch("shop", "products", _rows(1), 0, FIELD_MAP)
        orch.cancel("shop", "products")
        stats = orch.complete("shop", "products", RunStatus.COMPLETE)
        assert stats.last_status is RunStatus.CANCELLED
        assert hooks.after == []
        completed = [r for r in captured_logs() if r["message"] == "run_completed"]
        assert [r["status"] for r in completed] == ["cancelled"]

    def test_completed_run_cannot_be_cancelled(self, orch, hooks):
        orch.start_run("shop", "products", total=1)
        orch.complete("shop", "products")
        assert orch.cancel("shop", "products").last_status is RunStatus.COMPLETE
        assert len(hooks.after) == 1

    def test_new_run_can_be_sealed_again(self, orch):
        orch.start_run("shop", "products", total=1)
        orch.cancel("shop", "products")
        orch.start_run("shop", "products", total=1)
        assert orch.complete("shop", "products").last_status is RunStatus.COMPLETE


class TestClearStats:
    def test_clear(self, orch, captured_logs):
        orch.start_run("shop", "products", total=1)
        orch.run_batch("shop", "products", _rows(1), 0, FIELD_MAP)
        orch.clear_stats("shop", "products")
        assert orch.get_stats("shop", "products") == RunStats()
        assert any(r["message"] == "stats_cleared" for r in captured_logs())

    def test_clear_then_batch_needs_new_run(self, orch):
        orch.start_run("shop", "products", total=1)
        orch.clear_stats("shop", "products")
        with pytest.raises(RunNotStartedError):
            orch.run_batch("shop", "products", _rows(1), 0, FIELD_MAP)


class TestSqlBackedRun:
    def test_full_run_persists(self, db_session, registry, entity_repo, clock):
        orch = ImportOrchestrator.from_session(db_session, registry, entity_repo, clock)
        orch.start_run("shop", "products", total=3)
        orch.run_batch("shop", "products", _rows(2), 0, FIELD_MAP)
        orch.run_batch("shop", "products", [RawRow.from_cells(HEADERS, ["", "x", "1", ""])], 2, FIELD_MAP)
        orch.complete("shop", "products")
        db_session.commit()

        reread = ImportOrchestrator.from_session(db_session, registry, entity_repo, clock)
        stats = reread.get_stats("shop", "products")
        assert stats.created == 2
        assert stats.failed == 1
        assert stats.errors[0].row == 4
        assert stats.last_status is RunStatus.COMPLETE
        assert stats.last_run == clock.now()
