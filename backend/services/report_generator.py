"""
Financial report assembly and CSV/Excel rendering.

Author: MoneyWise Team
"""

from dataclasses import dataclass, field
from datetime import datetime
from io import BytesIO
from typing import List, Optional

import pandas as pd
from sqlalchemy.orm import Session as DBSession

from models import Expense, Budget
from .observability import timed_block

SUPPORTED_FORMATS = {
    "CSV": ("text/csv", "csv"),
    "EXCEL": ("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", "xlsx"),
}


class UnsupportedReportFormat(ValueError):
    """Requested output format has no renderer."""


@dataclass
class ReportData:
    expenses: list
    budgets: list
    total_expenses: float
    total_budget: float
    savings: float
    category_breakdown: List[dict] = field(default_factory=list)


def build_report_data(
    db: DBSession,
    user_id: str,
    start_date: datetime,
    end_date: datetime,
    categories: Optional[List[str]] = None,
) -> ReportData:
    """Collect the user's expenses in [start_date, end_date] and all budgets."""
    query = (
        db.query(Expense)
        .filter(Expense.user_id == user_id)
        .filter(Expense.date >= start_date)
        .filter(Expense.date <= end_date)
    )
    if categories:
        query = query.filter(Expense.category.in_(categories))
    expenses = query.order_by(Expense.date.asc()).all()

    budgets = db.query(Budget).filter(Budget.user_id == user_id).all()

    totals: dict = {}
    for expense in expenses:
        totals[expense.category] = totals.get(expense.category, 0.0) + expense.amount

    total_expenses = sum(e.amount for e in expenses)
    total_budget = sum(b.amount for b in budgets)

    breakdown = [
        {
            "category": category,
            "amount": amount,
            "percentage": (amount / total_expenses * 100) if total_expenses else 0.0,
        }
        for category, amount in totals.items()
    ]

    return ReportData(
        expenses=expenses,
        budgets=budgets,
        total_expenses=total_expenses,
        total_budget=total_budget,
        savings=total_budget - total_expenses,
        category_breakdown=breakdown,
    )


def _breakdown_frame(data: ReportData) -> pd.DataFrame:
    rows = [
        {
            "Category": item["category"],
            "Amount": f"{item['amount']:.2f}",
            "Percentage": f"{item['percentage']:.1f}%",
        }
        for item in data.category_breakdown
    ]
    return pd.DataFrame(rows, columns=["Category", "Amount", "Percentage"])


def _totals_frame(data: ReportData) -> pd.DataFrame:
    return pd.DataFrame(
        [
            ["Total Expenses", f"{data.total_expenses:.2f}"],
            ["Total Budget", f"{data.total_budget:.2f}"],
            ["Savings", f"{data.savings:.2f}"],
        ]
    )


def generate_csv_report(data: ReportData) -> bytes:
    """Category breakdown table, a blank line, then the three totals."""
    with timed_block("reports.csv"):
        body = _breakdown_frame(data).to_csv(index=False, lineterminator="\n")
        totals = _totals_frame(data).to_csv(index=False, header=False, lineterminator="\n")
        return (body + "\n" + totals).encode("utf-8")


def generate_excel_report(data: ReportData) -> bytes:
    """Same layout as the CSV report on a single "Financial Report" sheet."""
    with timed_block("reports.excel"):
        buffer = BytesIO()
        breakdown = _breakdown_frame(data)
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            breakdown.to_excel(writer, sheet_name="Financial Report", index=False)
            _totals_frame(data).to_excel(
                writer,
                sheet_name="Financial Report",
                index=False,
                header=False,
                startrow=len(breakdown) + 2,
            )
            sheet = writer.sheets["Financial Report"]
            sheet.column_dimensions["A"].width = 30
            sheet.column_dimensions["B"].width = 15
            sheet.column_dimensions["C"].width = 15
        return buffer.getvalue()


def render_report(data: ReportData, report_format: str) -> tuple[bytes, str, str]:
    """Render data; returns (payload, content type, file extension)."""
    fmt = report_format.upper()
    if fmt not in SUPPORTED_FORMATS:
        raise UnsupportedReportFormat(f"Unsupported format: {report_format}")
    content_type, extension = SUPPORTED_FORMATS[fmt]
    payload = generate_csv_report(data) if fmt == "CSV" else generate_excel_report(data)
    return payload, content_type, extension
