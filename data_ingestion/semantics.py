"""Business-semantic annotation of columns and tables.

Column roles come from name keywords (English and Chinese), with the inferred
type as a fallback and the column's uniqueness ratio as a refinement. Table
roles and business domains are derived from the annotated columns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .config import (
    DIMENSION_UNIQUE_RATIO,
    IDENTIFIER_UNIQUE_RATIO,
    SEMANTIC_CONFIDENCE_BOOST,
)
from .models import CellValue, Column, Row, is_missing


@dataclass
class SemanticType:
    category: str  # identifier | measure | dimension | date | text | other
    confidence: float
    possible_meanings: List[str] = field(default_factory=list)


@dataclass
class KeywordFamily:
    category: str
    keywords: Tuple[str, ...]
    confidence: float
    meanings: Tuple[str, ...]


# Checked in order; the first family with a matching keyword wins.
KEYWORD_FAMILIES: Tuple[KeywordFamily, ...] = (
    KeywordFamily("identifier", ("id", "key", "code", "编号", "序号"), 0.9, ("identifier", "record key")),
    KeywordFamily("date", ("date", "time", "日期", "时间"), 0.9, ("event date", "timestamp")),
    KeywordFamily(
        "measure",
        ("amount", "price", "cost", "value", "金额", "价格", "成本"),
        0.85,
        ("monetary amount", "price"),
    ),
    KeywordFamily(
        "measure", ("count", "number", "qty", "quantity", "数量"), 0.8, ("count", "quantity")
    ),
    KeywordFamily(
        "dimension",
        ("name", "type", "category", "status", "名称", "类型", "类别", "状态"),
        0.75,
        ("category", "label"),
    ),
)

TYPE_FALLBACK: Dict[str, Tuple[str, float]] = {
    "date": ("date", 0.6),
    "number": ("measure", 0.6),
    "boolean": ("dimension", 0.6),
    "string": ("text", 0.5),
}

CURRENCY_KEYWORDS = (
    "amount", "price", "cost", "revenue", "salary", "income", "expense", "payment",
    "profit", "fee", "金额", "价格", "成本", "收入", "工资", "费用",
)

DOMAIN_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "sales": ("sales", "revenue", "order", "customer", "product", "销售", "订单", "客户", "产品"),
    "finance": ("budget", "expense", "income", "balance", "account", "invoice", "tax", "财务", "预算", "收入", "支出"),
    "marketing": ("campaign", "leads", "conversion", "clicks", "impressions", "channel", "营销", "推广", "渠道"),
    "hr": ("employee", "salary", "department", "position", "hire", "员工", "工资", "部门", "职位"),
    "operations": ("shipment", "delivery", "logistics", "supply", "production", "运营", "物流", "配送", "生产"),
    "inventory": ("inventory", "stock", "warehouse", "sku", "库存", "仓库"),
}


def _is_ascii(text: str) -> bool:
    return all(ord(ch) < 128 for ch in text)


def keyword_matches(name: str, keyword: str) -> bool:
    """Latin keywords match at either end of the name; CJK keywords anywhere."""
    lowered = name.strip().lower()
    if not _is_ascii(keyword):
        return keyword in lowered
    return lowered.startswith(keyword) or lowered.endswith(keyword)


def _match_family(name: str) -> Optional[Tuple[KeywordFamily, str]]:
    for family in KEYWORD_FAMILIES:
        for keyword in family.keywords:
            if keyword_matches(name, keyword):
                return family, keyword
    return None


def unique_ratio(values: Sequence[CellValue]) -> Optional[float]:
    present = [v for v in values if not is_missing(v)]
    if not present:
        return None
    return len({(type(v).__name__, v) for v in present}) / len(present)


def _reinforce(
    semantic: SemanticType, category: str, meaning: str, from_keyword: bool
) -> SemanticType:
    """Raise confidence in a matching role; only a type fallback may be replaced."""
    if semantic.category == category:
        confidence = min(1.0, semantic.confidence + SEMANTIC_CONFIDENCE_BOOST)
        return SemanticType(category, round(confidence, 2), semantic.possible_meanings)
    if from_keyword:
        return semantic
    meanings = [meaning] + [m for m in semantic.possible_meanings if m != meaning]
    return SemanticType(category, 0.7, meanings)


def annotate_column(column: Column, values: Sequence[CellValue]) -> SemanticType:
    """Assign a business role to one column."""
    matched = _match_family(column.name)
    if matched is not None:
        family, keyword = matched
        semantic = SemanticType(
            family.category, family.confidence, [*family.meanings, f"keyword: {keyword}"]
        )
    else:
        category, confidence = TYPE_FALLBACK.get(column.type, ("other", 0.3))
        semantic = SemanticType(category, confidence, [f"{column.type} column"])

    if column.type == "string":
        ratio = unique_ratio(values)
        if ratio is not None and ratio > IDENTIFIER_UNIQUE_RATIO:
            semantic = _reinforce(semantic, "identifier", "unique values", matched is not None)
        elif ratio is not None and ratio < DIMENSION_UNIQUE_RATIO:
            semantic = _reinforce(semantic, "dimension", "repeated categories", matched is not None)
    return semantic


def detect_business_domains(column_names: Sequence[str]) -> List[str]:
    lowered = [n.lower() for n in column_names]
    domains = [
        domain
        for domain, keywords in DOMAIN_KEYWORDS.items()
        if any(k in name for name in lowered for k in keywords)
    ]
    return domains or ["unknown"]


@dataclass
class Semantics:
    possible_key_columns: List[str]
    possible_date_columns: List[str]
    possible_currency_columns: List[str]
    possible_category_columns: List[str]
    table_type: str  # transactional | analytical | master | reference | unknown
    business_domain: List[str]


def _table_type(
    columns: Sequence[Column], keys: List[str], dates: List[str], measures: List[str], categories: List[str]
) -> str:
    if dates and measures:
        return "transactional"
    if measures and categories:
        return "analytical"
    if keys and not measures:
        return "master" if len(columns) > 2 else "reference"
    if categories and not measures:
        return "reference"
    return "unknown"


def build_semantics(
    columns: Sequence[Column],
    rows: Sequence[Row],
    semantic_types: Optional[Mapping[str, SemanticType]] = None,
) -> Semantics:
    """Table-level semantics from per-column roles (computed when not given)."""
    if semantic_types is None:
        semantic_types = {
            c.name: annotate_column(c, [r.get(c.name) for r in rows]) for c in columns
        }
    keys, dates, currency, categories, measures = [], [], [], [], []
    for col in columns:
        role = semantic_types[col.name].category
        if role == "identifier":
            keys.append(col.name)
        if col.type == "date" or role == "date":
            dates.append(col.name)
        if col.type == "number" and role != "identifier":
            measures.append(col.name)
            if any(k in col.name.lower() for k in CURRENCY_KEYWORDS):
                currency.append(col.name)
        if role == "dimension":
            categories.append(col.name)

    return Semantics(
        possible_key_columns=keys,
        possible_date_columns=dates,
        possible_currency_columns=currency,
        possible_category_columns=categories,
        table_type=_table_type(columns, keys, dates, measures, categories),
        business_domain=detect_business_domains([c.name for c in columns]),
    )
