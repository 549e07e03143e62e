from dataclasses import asdict, fields
from typing import Sequence

import pandas as pd

from ledger.domain import BudgetStatus, IncomeExpenseSummary


def _row(record) -> dict:
    row = asdict(record)
    if isinstance(record, BudgetStatus):
        row.update(
            remaining_amount=record.remaining_amount,
            percent_used=record.percent_used,
            is_over_budget=record.is_over_budget,
        )
    return row


def report_frame(records: Sequence) -> pd.DataFrame:
    """One row per report record, in the order given.

    Money columns keep their Decimal values (object dtype).
    """
    if not records:
        return pd.DataFrame()
    df = pd.DataFrame([_row(r) for r in records])
    names = [f.name for f in fields(records[0])]
    extra = [c for c in df.columns if c not in names]
    return df[names + extra]


def summary_frame(summary: IncomeExpenseSummary) -> pd.DataFrame:
    return pd.DataFrame([summary._asdict()])


def to_csv(records: Sequence) -> str:
    return report_frame(records).to_csv(index=False)
