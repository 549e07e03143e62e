"""Reporting views derived from ledger snapshots.

Every function here is pure: inputs are materialized collections (or a single
forward pass over an iterable of transactions) and nothing is mutated. Owner,
name and type lookups come from the collaborator collections passed in, never
from storage.
"""
from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple, Union

from ledger.domain import (
    Account,
    AccountBalanceSummary,
    Budget,
    BudgetPeriod,
    BudgetStatus,
    Category,
    CategoryType,
    IncomeExpenseSummary,
    SpendingByCategory,
    Transaction,
    User,
)
from ledger.filters import (
    account_owners,
    all_of,
    by_date_range,
    expenses_only,
    in_month,
    iter_transactions,
    owned_by,
)

DEFAULT_TOP_COUNT = 5
UNKNOWN = "Unknown"

ZERO = Decimal("0")


def _group_by_category(trans: Iterable[Transaction]) -> Tuple[Dict[int, Decimal], Dict[int, int]]:
    totals: Dict[int, Decimal] = defaultdict(Decimal)
    counts: Dict[int, int] = defaultdict(int)
    for t in trans:
        totals[t.category_id] += abs(t.amount)
        counts[t.category_id] += 1
    return totals, counts


def _spending_rows(
    totals: Dict[int, Decimal],
    counts: Dict[int, int],
    cats: Iterable[Category],
    type_label: Optional[str] = None,
) -> List[SpendingByCategory]:
    by_id = {c.id: c for c in cats}
    rows = []
    for cid, total in totals.items():
        cat = by_id.get(cid)
        if type_label is not None:
            label = type_label
        else:
            label = cat.type.label if cat else UNKNOWN
        rows.append(
            SpendingByCategory(
                category_id=cid,
                category_name=cat.name if cat else UNKNOWN,
                category_type=label,
                total_amount=total,
                transaction_count=counts[cid],
            )
        )
    rows.sort(key=lambda r: (-r.total_amount, r.category_id))
    return rows


def monthly_spending_by_category(
    transactions: Iterable[Transaction],
    accounts: Iterable[Account],
    categories: Iterable[Category],
    year: int,
    month: int,
    user_id: Optional[int] = None,
) -> List[SpendingByCategory]:
    """Absolute amount and count per category for one calendar month.

    Income and expense categories are both reported; categories without a
    matching transaction are left out.
    """
    pred = all_of(in_month(year, month), owned_by(account_owners(accounts), user_id))
    totals, counts = _group_by_category(iter_transactions(transactions, pred))
    return _spending_rows(totals, counts, categories)


def account_balance_summary(
    accounts: Iterable[Account], users: Iterable[User]
) -> List[AccountBalanceSummary]:
    names = {u.id: u.name for u in users}
    counts: Dict[tuple, int] = defaultdict(int)
    balances: Dict[tuple, Decimal] = defaultdict(Decimal)
    for a in accounts:
        key = (a.user_id, a.type)
        counts[key] += 1
        balances[key] += a.balance

    # user id separates users sharing a name; type follows its storage code
    keys = sorted(counts, key=lambda k: (names.get(k[0], UNKNOWN), k[0], k[1].code))
    return [
        AccountBalanceSummary(
            user_id=uid,
            user_name=names.get(uid, UNKNOWN),
            account_type=acc_type.label,
            account_count=counts[(uid, acc_type)],
            total_balance=balances[(uid, acc_type)],
        )
        for uid, acc_type in keys
    ]


def budget_status(
    budgets: Iterable[Budget],
    transactions: Iterable[Transaction],
    accounts: Iterable[Account],
    users: Iterable[User],
    categories: Iterable[Category],
    year: int,
    month: int,
) -> List[BudgetStatus]:
    """Monthly budgets joined to the month's expenses of the same user and category.

    Yearly budgets are not evaluated. A budget with no matching expenses
    reports zero spent.
    """
    owners = account_owners(accounts)
    spent: Dict[Tuple[int, int], Decimal] = defaultdict(Decimal)
    for t in iter_transactions(transactions, all_of(in_month(year, month), expenses_only)):
        owner = owners.get(t.account_id)
        if owner is not None:
            spent[(owner, t.category_id)] += abs(t.amount)

    user_names = {u.id: u.name for u in users}
    cat_names = {c.id: c.name for c in categories}
    rows = [
        BudgetStatus(
            budget_id=b.id,
            user_id=b.user_id,
            user_name=user_names.get(b.user_id, UNKNOWN),
            category_name=cat_names.get(b.category_id, UNKNOWN),
            budget_amount=b.amount,
            spent_amount=spent.get((b.user_id, b.category_id), ZERO),
            period=b.period.label,
        )
        for b in budgets
        if b.period is BudgetPeriod.MONTHLY
    ]
    rows.sort(key=lambda r: (r.user_name, r.category_name, r.budget_id))
    return rows


def income_expense_summary(
    transactions: Iterable[Transaction],
    accounts: Iterable[Account],
    start_date: Union[date, datetime],
    end_date: Union[date, datetime],
    user_id: Optional[int] = None,
) -> IncomeExpenseSummary:
    """Income, expenses and net over an inclusive date range.

    net_amount is the plain sum of the matching amounts, which always equals
    total_income - total_expenses.
    """
    pred = all_of(by_date_range(start_date, end_date), owned_by(account_owners(accounts), user_id))
    income = expenses = net = ZERO
    for t in iter_transactions(transactions, pred):
        if t.is_income:
            income += t.amount
        elif t.is_expense:
            expenses += -t.amount
        net += t.amount
    return IncomeExpenseSummary(total_income=income, total_expenses=expenses, net_amount=net)


def top_spending_categories(
    transactions: Iterable[Transaction],
    accounts: Iterable[Account],
    categories: Iterable[Category],
    user_id: int,
    top_count: Optional[int] = DEFAULT_TOP_COUNT,
) -> List[SpendingByCategory]:
    if top_count is None or top_count <= 0:
        top_count = DEFAULT_TOP_COUNT

    pred = all_of(expenses_only, owned_by(account_owners(accounts), user_id))
    totals, counts = _group_by_category(iter_transactions(transactions, pred))
    rows = _spending_rows(totals, counts, categories, type_label=CategoryType.EXPENSE.label)
    return rows[:top_count]
