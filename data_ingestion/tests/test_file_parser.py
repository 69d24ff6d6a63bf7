import pandas as pd
import pytest

from data_ingestion.errors import (
    EmptyDataset,
    EmptyFile,
    FileTooLarge,
    NoValidHeaders,
    UnreadableFile,
    UnsupportedFormat,
)
from data_ingestion.config import IngestConfig
from data_ingestion.file_parser import (
    build_headers,
    detect_delimiter,
    format_size,
    parse_file,
    parse_grid,
    validate_file,
)


def test_csv_header_is_first_row_and_cells_stay_text():
    outcome = parse_file(b"name,age\nAlice,30\nBob,\n", "people.csv")
    assert outcome.file_kind == "csv"
    assert len(outcome.sheets) == 1
    sheet = outcome.sheets[0]
    assert sheet.name == "people"
    assert sheet.headers == ["name", "age"]
    assert sheet.frame["age"].tolist() == ["30", ""]


def test_csv_blank_rows_are_dropped():
    outcome = parse_file(b"a,b\n1,2\n,\n3,4\n", "t.csv")
    assert outcome.sheets[0].frame.shape[0] == 2


def test_csv_semicolon_delimiter_detected():
    outcome = parse_file(b"a;b;c\n1;2;3\n4;5;6\n", "semi.csv")
    assert outcome.sheets[0].headers == ["a", "b", "c"]


def test_single_column_csv_keeps_delimiter_like_characters():
    assert detect_delimiter("note\na;b\nc;d\ne;f\n") == ","
    outcome = parse_file(b"note\na;b\nc|d\ne\tf\n", "notes.csv")
    sheet = outcome.sheets[0]
    assert sheet.headers == ["note"]
    assert sheet.frame.iloc[:, 0].tolist() == ["a;b", "c|d", "e\tf"]


def test_detect_delimiter_prefers_consistent_splits():
    assert detect_delimiter("a\tb\tc\n1\t2\t3\n") == "\t"
    assert detect_delimiter("single\nvalue\n") == ","


def test_headers_are_trimmed_named_and_deduplicated():
    assert build_headers([" id ", "", "name", "name", "a  b"]) == [
        "id",
        "Column_2",
        "name",
        "name_1",
        "a b",
    ]


def test_header_may_not_collide_with_sheet_tag():
    headers = build_headers(["_sheet_source", "x"])
    assert headers[0] != "_sheet_source"


def test_blank_header_row_raises_no_valid_headers():
    with pytest.raises(NoValidHeaders):
        parse_file(b",,\n1,2,3\n", "nohdr.csv")


def test_empty_inputs_raise_empty_file():
    with pytest.raises(EmptyFile):
        parse_file(b"", "empty.csv")
    with pytest.raises(EmptyFile):
        parse_file(b"   \n\n", "blank.csv")


def test_validation_happens_before_parsing():
    with pytest.raises(UnsupportedFormat):
        parse_file(b"a,b\n1,2\n", "data.txt")
    with pytest.raises(FileTooLarge):
        parse_file(b"a,b\n1,2\n", "data.csv", IngestConfig(max_file_size=4))
    assert validate_file(10, "Report.XLSX") == ".xlsx"


def test_unreadable_workbook():
    with pytest.raises(UnreadableFile):
        parse_file(b"definitely not a zip archive", "broken.xlsx")


def test_workbook_yields_one_sheet_per_tab(sales_costs_workbook):
    outcome = parse_file(sales_costs_workbook, "book.xlsx")
    assert outcome.file_kind == "excel"
    assert [s.name for s in outcome.sheets] == ["Sales", "Costs"]
    assert outcome.sheets[0].headers == ["region", "amount"]
    assert outcome.sheets[0].frame["amount"].tolist() == [100, 200]


def test_failing_sheet_is_skipped_with_warning(make_workbook):
    data = make_workbook(
        {
            "Good": pd.DataFrame({"x": [1, 2]}),
            "Empty": pd.DataFrame(),
        }
    )
    outcome = parse_file(data, "mixed.xlsx")
    assert [s.name for s in outcome.sheets] == ["Good"]
    assert len(outcome.warnings) == 1
    assert "Empty" in outcome.warnings[0]


def test_workbook_with_no_usable_sheet_raises_empty_dataset(make_workbook):
    data = make_workbook({"Empty": pd.DataFrame()})
    with pytest.raises(EmptyDataset):
        parse_file(data, "empty.xlsx")


def test_spreadsheet_header_is_first_non_blank_row():
    raw = pd.DataFrame(
        [[None, None], ["id", "value"], [1, "a"], [None, None], [2, "b"]], dtype=object
    )
    sheet = parse_grid("S", raw)
    assert sheet.headers == ["id", "value"]
    assert sheet.frame.shape[0] == 2


def test_format_size():
    assert format_size(0) == "0 B"
    assert format_size(512) == "512 B"
    assert format_size(1536) == "1.5 KB"
    assert format_size(50 * 1024 * 1024) == "50 MB"
