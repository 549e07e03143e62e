from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional, Union

from ledger import aggregator
from ledger.config import Settings, get_settings
from ledger.domain import (
    AccountBalanceSummary,
    BudgetStatus,
    IncomeExpenseSummary,
    SpendingByCategory,
)
from ledger.filters import month_bounds
from ledger.gateway import LedgerGateway
from ledger.log import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class MonthlyReport:
    year: int
    month: int
    user_id: Optional[int]
    spending: List[SpendingByCategory]
    budgets: List[BudgetStatus]
    summary: IncomeExpenseSummary


class ReportService:
    """Facade running aggregator reports over one gateway snapshot per call."""

    def __init__(self, gateway: LedgerGateway, settings: Optional[Settings] = None):
        self.gateway = gateway
        self.settings = settings or get_settings()

    def monthly_spending_by_category(
        self, year: int, month: int, user_id: Optional[int] = None
    ) -> List[SpendingByCategory]:
        snap = self.gateway.snapshot()
        rows = aggregator.monthly_spending_by_category(
            snap.transactions, snap.accounts, snap.categories, year, month, user_id
        )
        logger.info("report_run", report="monthly_spending", year=year, month=month, user_id=user_id, rows=len(rows))
        return rows

    def account_balance_summary(self) -> List[AccountBalanceSummary]:
        snap = self.gateway.snapshot()
        rows = aggregator.account_balance_summary(snap.accounts, snap.users)
        logger.info("report_run", report="account_balances", rows=len(rows))
        return rows

    def budget_status(self, year: int, month: int) -> List[BudgetStatus]:
        snap = self.gateway.snapshot()
        rows = aggregator.budget_status(
            snap.budgets, snap.transactions, snap.accounts, snap.users, snap.categories, year, month
        )
        over = sum(1 for r in rows if r.is_over_budget)
        logger.info("report_run", report="budget_status", year=year, month=month, rows=len(rows), over_budget=over)
        return rows

    def income_expense_summary(
        self,
        start_date: Union[date, datetime],
        end_date: Union[date, datetime],
        user_id: Optional[int] = None,
    ) -> IncomeExpenseSummary:
        snap = self.gateway.snapshot()
        summary = aggregator.income_expense_summary(
            snap.transactions, snap.accounts, start_date, end_date, user_id
        )
        logger.info(
            "report_run",
            report="income_expense",
            start=str(start_date),
            end=str(end_date),
            user_id=user_id,
            net=str(summary.net_amount),
        )
        return summary

    def top_spending_categories(
        self, user_id: int, top_count: Optional[int] = None
    ) -> List[SpendingByCategory]:
        if top_count is None:
            top_count = self.settings.default_top_count
        snap = self.gateway.snapshot()
        rows = aggregator.top_spending_categories(
            snap.transactions, snap.accounts, snap.categories, user_id, top_count
        )
        logger.info("report_run", report="top_spending", user_id=user_id, top_count=top_count, rows=len(rows))
        return rows

    def monthly_report(self, year: int, month: int, user_id: Optional[int] = None) -> MonthlyReport:
        """Spending, budget status and income/expense for one month.

        All three parts come from the same snapshot. Budget rows are limited to
        user_id when one is given.
        """
        start, end = month_bounds(year, month)
        snap = self.gateway.snapshot()
        spending = aggregator.monthly_spending_by_category(
            snap.transactions, snap.accounts, snap.categories, year, month, user_id
        )
        budgets = aggregator.budget_status(
            snap.budgets, snap.transactions, snap.accounts, snap.users, snap.categories, year, month
        )
        if user_id is not None:
            budgets = [b for b in budgets if b.user_id == user_id]
        summary = aggregator.income_expense_summary(snap.transactions, snap.accounts, start, end, user_id)
        logger.info(
            "report_run",
            report="monthly",
            year=year,
            month=month,
            user_id=user_id,
            categories=len(spending),
            budgets=len(budgets),
        )
        return MonthlyReport(
            year=year,
            month=month,
            user_id=user_id,
            spending=spending,
            budgets=budgets,
            summary=summary,
        )
