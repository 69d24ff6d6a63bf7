import io
from pathlib import Path
from typing import Dict

import pandas as pd
import pytest


def workbook_bytes(sheets: Dict[str, pd.DataFrame]) -> bytes:
    """Serialize ``sheets`` into an in-memory .xlsx workbook."""
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        for name, frame in sheets.items():
            frame.to_excel(writer, sheet_name=name, index=False)
    return buffer.getvalue()


@pytest.fixture
def sales_costs_workbook() -> bytes:
    return workbook_bytes(
        {
            "Sales": pd.DataFrame({"region": ["North", "South"], "amount": [100, 200]}),
            "Costs": pd.DataFrame({"region": ["East"], "cost": [50]}),
        }
    )


@pytest.fixture
def orders_csv(tmp_path: Path) -> Path:
    path = tmp_path / "orders.csv"
    path.write_text(
        "order_id,order_date,category,amount,quantity\n"
        "A001,2024-01-01,Books,100,1\n"
        "A002,2024-01-02,Games,200,2\n"
        "A003,2024-01-03,Books,300,3\n"
        "A004,2024-01-04,Games,400,4\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def make_workbook():
    return workbook_bytes
