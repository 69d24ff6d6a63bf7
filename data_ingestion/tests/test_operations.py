from datetime import datetime

import pytest

from data_ingestion.config import SHEET_SOURCE_KEY
from data_ingestion.errors import DatasetEditError
from data_ingestion.metadata import assemble_metadata
from data_ingestion.operations import (
    DatasetRegistry,
    add_column,
    add_row,
    create_dataset,
    delete_column,
    delete_row,
    query_rows,
    rename_column,
    sheet_names,
    switch_sheet,
    update_row,
)
from data_ingestion.pipeline import upload


@pytest.fixture
def people():
    return create_dataset(
        "people",
        columns=[("name", "string"), ("age", "number")],
        rows=[{"name": "Alice", "age": "30"}, {"name": "Bob", "age": None}],
    )


def test_create_dataset_defaults():
    ds = create_dataset("scratch")
    assert ds.column_names == ["Column_1"]
    assert ds.rows == [{"Column_1": ""}]
    assert ds.file_name == "scratch.csv"
    assert ds.description == "Manually created dataset: scratch"
    assert ds.summary.total_rows == 1
    assert ds.summary.missing_values == 1


def test_create_dataset_coerces_rows(people):
    assert people.rows[0] == {"name": "Alice", "age": 30.0}
    assert people.summary.numeric_columns == 1
    assert people.column("age").nullable


def test_create_dataset_rejects_bad_input():
    with pytest.raises(DatasetEditError):
        create_dataset("  ")
    with pytest.raises(DatasetEditError):
        create_dataset("x", columns=[("a", "string"), ("a", "number")])
    with pytest.raises(DatasetEditError):
        create_dataset("x", columns=[("a", "currency")])


def test_add_column_fills_default_and_keeps_input(people):
    ds = add_column(people, "active", "boolean", "yes")
    assert ds.column_names == ["name", "age", "active"]
    assert [r["active"] for r in ds.rows] == [True, True]
    assert ds.summary.boolean_columns == 1
    assert isinstance(ds.updated_at, datetime)
    assert people.column_names == ["name", "age"]


def test_add_column_rejects_bad_names(people):
    for name in ("", "name", SHEET_SOURCE_KEY):
        with pytest.raises(DatasetEditError):
            add_column(people, name)
    with pytest.raises(DatasetEditError):
        add_column(people, "x", "money")


def test_rename_column(people):
    ds = rename_column(people, "age", "years")
    assert ds.column_names == ["name", "years"]
    assert ds.rows[0] == {"name": "Alice", "years": 30.0}
    assert rename_column(people, "age", "age") is people
    with pytest.raises(DatasetEditError):
        rename_column(people, "missing", "other")
    with pytest.raises(DatasetEditError):
        rename_column(people, "age", "name")


def test_delete_column_keeps_one(people):
    ds = delete_column(people, "age")
    assert ds.column_names == ["name"]
    assert ds.rows == [{"name": "Alice"}, {"name": "Bob"}]
    with pytest.raises(DatasetEditError):
        delete_column(ds, "name")


def test_row_edits(people):
    ds = add_row(people, {"name": "Cara"})
    assert ds.rows[-1] == {"name": "Cara", "age": None}
    assert ds.summary.total_rows == 3

    ds = update_row(ds, 1, {"age": "41"})
    assert ds.rows[1] == {"name": "Bob", "age": 41.0}
    assert ds.summary.missing_values == 1

    ds = delete_row(ds, 0)
    assert [r["name"] for r in ds.rows] == ["Bob", "Cara"]


def test_row_edit_errors(people):
    with pytest.raises(DatasetEditError):
        add_row(people, {"height": 1})
    with pytest.raises(DatasetEditError):
        update_row(people, 5, {"age": 1})
    with pytest.raises(DatasetEditError):
        update_row(people, 0, {"height": 1})
    single = create_dataset("one")
    with pytest.raises(DatasetEditError):
        delete_row(single, 0)


def test_switch_sheet_and_back(sales_costs_workbook):
    ds = upload(sales_costs_workbook, "book.xlsx").dataset
    assert sheet_names(ds) == ["Sales", "Costs"]
    assert ds.active_sheet_index is None

    costs = switch_sheet(ds, 1)
    assert costs.active_sheet_index == 1
    assert costs.column_names == ["region", "cost"]
    assert costs.rows == [{"region": "East", "cost": 50.0}]

    edited = update_row(costs, 0, {"cost": 75})
    assert edited.sheets[1].rows[0]["cost"] == 75.0

    combined = switch_sheet(edited, None)
    assert combined.active_sheet_index is None
    assert combined.column_names == ["region", "amount", "cost"]
    assert combined.summary.total_rows == 3
    assert [r[SHEET_SOURCE_KEY] for r in combined.rows] == ["Sales", "Sales", "Costs"]
    assert combined.rows[2]["cost"] == 75.0
    assert combined.rows[2]["amount"] is None


def test_switch_sheet_errors(people, sales_costs_workbook):
    with pytest.raises(DatasetEditError):
        switch_sheet(people, 0)
    ds = upload(sales_costs_workbook, "book.xlsx").dataset
    with pytest.raises(DatasetEditError):
        switch_sheet(ds, 2)


def test_query_rows(people):
    assert query_rows(people, "ali").row_count == 1
    assert query_rows(people, "BOB alice").row_count == 2
    assert query_rows(people, "30").rows == [people.rows[0]]
    everything = query_rows(people, "   ")
    assert everything.row_count == 2
    assert everything.columns == ["name", "age"]
    assert query_rows(people, "zed").rows == []


def test_registry(people):
    registry = DatasetRegistry()
    other = create_dataset("other")
    registry.add(people)
    registry.add(other)
    assert len(registry) == 2
    assert people.id in registry
    assert registry.get(people.id) is people
    assert [d.name for d in registry.list()] == ["people", "other"]
    assert registry.delete(people.id) is True
    assert registry.delete(people.id) is False
    assert registry.get(people.id) is None
    with pytest.raises(DatasetEditError):
        registry.require(people.id)
    assert list(registry) == [other]


def test_appending_a_duplicate_row_is_counted(people):
    ds = add_row(people, dict(people.rows[0]))
    assert ds.summary.duplicate_rows == people.summary.duplicate_rows + 1
    assert assemble_metadata(ds).quality.uniqueness.duplicate_rows == ds.summary.duplicate_rows


def test_add_row_in_combined_view_targets_a_sheet(sales_costs_workbook):
    ds = upload(sales_costs_workbook, "book.xlsx").dataset
    with pytest.raises(DatasetEditError):
        add_row(ds, {"region": "West", "cost": 9})
    with pytest.raises(DatasetEditError):
        add_row(ds, {"region": "West", SHEET_SOURCE_KEY: "Budget"})

    ds = add_row(ds, {"region": "West", "cost": 9, SHEET_SOURCE_KEY: "Costs"})
    assert ds.rows[-1][SHEET_SOURCE_KEY] == "Costs"
    assert ds.sheets[1].rows[-1] == {"region": "West", "cost": 9.0}
    assert ds.sheets[1].summary.total_rows == 2

    rebuilt = switch_sheet(switch_sheet(ds, 0), None)
    assert rebuilt.summary.total_rows == 4
    assert rebuilt.rows[-1]["region"] == "West"
    assert rebuilt.rows[-1]["cost"] == 9.0
