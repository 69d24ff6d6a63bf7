from data_ingestion.models import Column
from data_ingestion.semantics import (
    annotate_column,
    build_semantics,
    detect_business_domains,
    keyword_matches,
)


def test_keyword_families():
    assert annotate_column(Column("order_date", "date"), []).category == "date"
    assert annotate_column(Column("unit_price", "number"), [1.0, 2.0]).category == "measure"
    assert annotate_column(Column("quantity", "number"), [1.0, 1.0]).category == "measure"
    assert annotate_column(Column("产品名称", "string"), ["a", "b", "a"]).category == "dimension"
    assert annotate_column(Column("客户编号", "string"), ["a", "b", "a"]).category == "identifier"


def test_identifier_family_wins_over_later_families():
    semantic = annotate_column(Column("product_code", "string"), ["A", "B", "A"])
    assert semantic.category == "identifier"
    assert "keyword: code" in semantic.possible_meanings


def test_type_fallback():
    assert annotate_column(Column("score", "number"), [1.0]).category == "measure"
    assert annotate_column(Column("when", "date"), []).category == "date"
    assert annotate_column(Column("active", "boolean"), [True]).category == "dimension"
    notes = annotate_column(Column("notes", "string"), ["a", "b", "a"])
    assert notes.category == "text"


def test_uniqueness_strengthens_or_establishes_roles():
    unique_values = [f"u{i}" for i in range(50)]
    strengthened = annotate_column(Column("customer_id", "string"), unique_values)
    assert strengthened.category == "identifier"
    assert strengthened.confidence == 1.0

    established = annotate_column(Column("reference", "string"), unique_values)
    assert established.category == "identifier"

    repeated = ["North"] * 25 + ["South"] * 25
    region = annotate_column(Column("region", "string"), repeated)
    assert region.category == "dimension"


def test_uniqueness_does_not_override_a_keyword_role():
    unique_values = [f"person {i}" for i in range(50)]
    names = annotate_column(Column("customer_name", "string"), unique_values)
    assert names.category == "dimension"
    assert names.confidence == 0.75

    codes = annotate_column(Column("product_code", "string"), ["A"] * 50)
    assert codes.category == "identifier"
    assert codes.confidence == 0.9


def test_latin_keywords_match_at_name_edges():
    assert keyword_matches("Customer_ID", "id")
    assert keyword_matches("id_number", "id")
    assert not keyword_matches("Provider Name", "id")
    assert keyword_matches("销售日期", "日期")


def test_business_domains():
    assert detect_business_domains(["order_id", "customer", "revenue"]) == ["sales"]
    assert detect_business_domains(["employee", "salary"]) == ["hr"]
    assert detect_business_domains(["sku", "warehouse"]) == ["inventory"]
    assert detect_business_domains(["foo", "bar"]) == ["unknown"]


def test_build_semantics_transactional_table():
    columns = [
        Column("order_id", "string"),
        Column("order_date", "date"),
        Column("category", "string"),
        Column("amount", "number"),
    ]
    rows = [
        {"order_id": f"A{i}", "order_date": None, "category": "Books", "amount": float(i)}
        for i in range(5)
    ]
    semantics = build_semantics(columns, rows)
    assert semantics.possible_key_columns == ["order_id"]
    assert semantics.possible_date_columns == ["order_date"]
    assert semantics.possible_currency_columns == ["amount"]
    assert semantics.possible_category_columns == ["category"]
    assert semantics.table_type == "transactional"
    assert semantics.business_domain == ["sales"]


def test_build_semantics_without_dates_is_analytical():
    columns = [Column("status", "string"), Column("total", "number")]
    rows = [{"status": "open", "total": 1.0}, {"status": "open", "total": 2.0}]
    assert build_semantics(columns, rows).table_type == "analytical"
