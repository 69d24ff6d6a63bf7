from data_ingestion.models import Column
from data_ingestion.quality import analyze_quality, quality_score
from data_ingestion.statistics import numeric_statistics


def test_clean_table_scores_full_marks():
    columns = [Column("id", "string"), Column("v", "number")]
    rows = [{"id": "a", "v": 1.0}, {"id": "b", "v": 2.0}]
    report = analyze_quality(columns, rows)
    assert report.consistency.score == 100.0
    assert report.consistency.issues == []
    assert report.completeness.completeness_rate == 100.0
    assert report.uniqueness.unique_rows == 2


def test_missing_and_duplicate_issues():
    columns = [Column("name", "string"), Column("age", "number")]
    rows = [
        {"name": "Alice", "age": 30.0},
        {"name": "Bob", "age": None},
        {"name": "Alice", "age": 30.0},
    ]
    report = analyze_quality(columns, rows)
    assert report.completeness.total_cells == 6
    assert report.completeness.empty_cells == 1
    assert report.uniqueness.duplicate_rows == 1
    kinds = {i.type: i for i in report.consistency.issues}
    assert kinds["missing_values"].severity == "medium"
    assert kinds["missing_values"].examples == ["age"]
    assert kinds["duplicates"].severity == "medium"
    # 100 - 16.67 (missing %) - min(20, 33.33) (duplicate %)
    assert report.consistency.score == 63.33


def test_heavy_missing_is_high_severity_and_penalty_is_capped():
    columns = [Column("a", "string"), Column("b", "string")]
    rows = [{"a": "x", "b": ""}, {"a": "", "b": ""}, {"a": "y", "b": ""}]
    report = analyze_quality(columns, rows)
    missing = [i for i in report.consistency.issues if i.type == "missing_values"][0]
    assert missing.severity == "high"
    assert report.consistency.score == 70.0


def test_score_formula_bounds():
    assert quality_score(0, 0) == 100.0
    assert quality_score(5, 2.5) == 92.5
    assert quality_score(100, 100) == 50.0
    for missing in (0, 10, 50, 100):
        for dup in (0, 10, 50, 100):
            assert 0 <= quality_score(missing, dup) <= 100


def test_small_duplicate_share_is_low_severity():
    columns = [Column("k", "number")]
    rows = [{"k": float(i)} for i in range(20)] + [{"k": 0.0}]
    report = analyze_quality(columns, rows)
    dup = [i for i in report.consistency.issues if i.type == "duplicates"][0]
    assert dup.severity == "low"


def test_outliers_are_informational():
    columns = [Column("v", "number")]
    rows = [{"v": v} for v in (1.0, 2.0, 3.0, 4.0, 100.0)]
    stats = {"v": numeric_statistics([r["v"] for r in rows])}
    report = analyze_quality(columns, rows, stats)
    outliers = [i for i in report.consistency.issues if i.type == "outliers"]
    assert len(outliers) == 1
    assert outliers[0].column == "v"
    assert outliers[0].examples == [100.0]
    assert outliers[0].severity == "low"
    assert report.consistency.score == 100.0


def test_empty_table():
    report = analyze_quality([Column("a", "string")], [])
    assert report.consistency.score == 100.0
    assert report.uniqueness.duplicate_rate == 0.0
