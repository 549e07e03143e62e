from datetime import date, datetime
from decimal import Decimal

import pytest

from ledger.aggregator import (
    account_balance_summary,
    budget_status,
    income_expense_summary,
    monthly_spending_by_category,
    top_spending_categories,
)
from ledger.domain import Account, Budget, Category, Transaction, User
from ledger.filters import InvalidPeriodError

D = Decimal


def make_tx(id, acc_id, cat_id, amount, day):
    return Transaction(id=id, account_id=acc_id, category_id=cat_id, amount=amount, transaction_date=day)


def make_world():
    users = (User(1, "john@example.com", "John Doe"), User(2, "jane@example.com", "Jane Smith"))
    accounts = (
        Account(1, 1, "Primary Checking", 1, "5250.00"),
        Account(3, 1, "Visa Credit Card", 3, "-1250.75"),
        Account(5, 2, "Checking Account", 1, "3800.50"),
    )
    categories = (
        Category(1, "Groceries", 1),
        Category(2, "Dining Out", 1),
        Category(7, "Shopping", 1),
        Category(11, "Salary", 2),
    )
    transactions = (
        make_tx(1, 1, 1, "-125.50", "2024-10-05"),
        make_tx(2, 1, 1, "-98.75", "2024-10-15"),
        make_tx(3, 1, 11, "4500.00", "2024-10-01"),
        make_tx(4, 1, 2, "-65.00", "2024-10-12"),
        make_tx(5, 3, 7, "-89.99", "2024-11-10"),
        make_tx(6, 1, 7, "-250.00", "2024-11-22"),
        make_tx(7, 5, 1, "-175.00", "2024-10-08"),
        make_tx(8, 5, 11, "5500.00", "2024-10-01"),
    )
    return users, accounts, categories, transactions


# --- monthly spending by category


def test_monthly_spending_scenario():
    _, accounts, categories, _ = make_world()
    trans = (
        make_tx(1, 1, 1, "-125.50", "2024-10-05"),
        make_tx(2, 1, 1, "-98.75", "2024-10-15"),
        make_tx(3, 1, 11, "4500.00", "2024-10-01"),
    )
    rows = monthly_spending_by_category(trans, accounts, categories, 2024, 10)

    assert [r.category_name for r in rows] == ["Salary", "Groceries"]
    salary, groceries = rows
    assert salary.total_amount == D("4500.00")
    assert salary.transaction_count == 1
    assert salary.category_type == "Income"
    assert groceries.total_amount == D("224.25")
    assert groceries.transaction_count == 2
    assert groceries.category_type == "Expense"


def test_monthly_spending_user_filter():
    _, accounts, categories, trans = make_world()
    rows = monthly_spending_by_category(trans, accounts, categories, 2024, 10, user_id=2)
    assert [(r.category_name, r.total_amount) for r in rows] == [
        ("Salary", D("5500.00")),
        ("Groceries", D("175.00")),
    ]


def test_monthly_spending_without_filter_covers_all_users():
    _, accounts, categories, trans = make_world()
    rows = monthly_spending_by_category(trans, accounts, categories, 2024, 10)
    groceries = next(r for r in rows if r.category_id == 1)
    assert groceries.total_amount == D("399.25")
    assert groceries.transaction_count == 3


def test_monthly_spending_counts_match_filtered_transactions():
    _, accounts, categories, trans = make_world()
    rows = monthly_spending_by_category(trans, accounts, categories, 2024, 10, user_id=1)
    expected = [t for t in trans if t.transaction_date.month == 10 and t.account_id in (1, 3)]
    assert sum(r.transaction_count for r in rows) == len(expected)
    # Shopping has no October transactions and is left out
    assert 7 not in {r.category_id for r in rows}


def test_monthly_spending_ties_break_on_category_id():
    accounts = (Account(1, 1, "A", 1),)
    categories = (Category(5, "B", 1), Category(2, "A", 1))
    trans = (make_tx(1, 1, 5, "-10", "2024-01-02"), make_tx(2, 1, 2, "-10", "2024-01-03"))
    rows = monthly_spending_by_category(trans, accounts, categories, 2024, 1)
    assert [r.category_id for r in rows] == [2, 5]


def test_monthly_spending_empty_month():
    _, accounts, categories, trans = make_world()
    assert monthly_spending_by_category(trans, accounts, categories, 2034, 1) == []
    assert monthly_spending_by_category((), accounts, categories, 2024, 10) == []


def test_monthly_spending_accepts_a_generator():
    _, accounts, categories, trans = make_world()
    rows = monthly_spending_by_category((t for t in trans), accounts, categories, 2024, 11)
    assert [(r.category_name, r.total_amount) for r in rows] == [("Shopping", D("339.99"))]


def test_monthly_spending_rejects_invalid_month():
    _, accounts, categories, trans = make_world()
    with pytest.raises(InvalidPeriodError):
        monthly_spending_by_category(trans, accounts, categories, 2024, 13)


def test_monthly_spending_unknown_category_is_labelled():
    accounts = (Account(1, 1, "A", 1),)
    rows = monthly_spending_by_category((make_tx(1, 1, 42, "-5", "2024-01-02"),), accounts, (), 2024, 1)
    assert rows[0].category_name == "Unknown"


# --- account balance summary


def test_account_balance_summary_groups_and_orders():
    users, _, _, _ = make_world()
    accounts = (
        Account(1, 1, "Primary Checking", 1, "5250.00"),
        Account(2, 1, "Emergency Savings", 2, "15000.00"),
        Account(3, 1, "Visa Credit Card", 3, "-1250.75"),
        Account(4, 1, "Second Checking", 1, "100.00"),
        Account(5, 2, "Checking Account", 1, "3800.50"),
        Account(7, 2, "Investment Portfolio", 5, "45000.00"),
    )
    rows = account_balance_summary(accounts, users)

    assert [(r.user_name, r.account_type) for r in rows] == [
        ("Jane Smith", "Checking"),
        ("Jane Smith", "Investment"),
        ("John Doe", "Checking"),
        ("John Doe", "Savings"),
        ("John Doe", "CreditCard"),
    ]
    john_checking = rows[2]
    assert john_checking.account_count == 2
    assert john_checking.total_balance == D("5350.00")
    assert rows[4].total_balance == D("-1250.75")


def test_account_balance_summary_empty():
    assert account_balance_summary((), ()) == []


# --- budget status


def test_budget_status_scenario():
    users, accounts, categories, trans = make_world()
    budgets = (Budget(1, 1, 1, "500.00", 1, "2024-10-01"),)
    (status,) = budget_status(budgets, trans, accounts, users, categories, 2024, 10)

    assert status.user_name == "John Doe"
    assert status.category_name == "Groceries"
    assert status.spent_amount == D("224.25")
    assert status.remaining_amount == D("275.75")
    assert status.percent_used == D("44.85")
    assert status.is_over_budget is False
    assert status.period == "Monthly"


def test_budget_status_without_spending_defaults_to_zero():
    users, accounts, categories, trans = make_world()
    budgets = (Budget(1, 1, 2, "200.00", 1, "2024-10-01"),)
    (status,) = budget_status(budgets, trans, accounts, users, categories, 2024, 12)

    assert status.spent_amount == 0
    assert status.remaining_amount == D("200.00")
    assert status.is_over_budget is False


def test_budget_status_counts_both_accounts_of_the_user():
    users, accounts, categories, trans = make_world()
    budgets = (Budget(1, 1, 7, "300.00", 1, "2024-10-01"),)
    (status,) = budget_status(budgets, trans, accounts, users, categories, 2024, 11)
    assert status.spent_amount == D("339.99")
    assert status.is_over_budget


def test_budget_status_ignores_income_and_other_users():
    users, accounts, categories, _ = make_world()
    trans = (
        make_tx(1, 1, 1, "-50", "2024-10-02"),
        make_tx(2, 1, 1, "30", "2024-10-03"),  # refund into groceries
        make_tx(3, 5, 1, "-400", "2024-10-04"),  # Jane's groceries
    )
    budgets = (Budget(1, 1, 1, "100", 1, "2024-10-01"),)
    (status,) = budget_status(budgets, trans, accounts, users, categories, 2024, 10)
    assert status.spent_amount == D("50")


def test_budget_status_skips_yearly_budgets_and_orders_rows():
    users, accounts, categories, trans = make_world()
    budgets = (
        Budget(1, 1, 7, "300", 1, "2024-01-01"),
        Budget(2, 1, 1, "6000", 2, "2024-01-01"),
        Budget(3, 2, 1, "400", 1, "2024-01-01"),
        Budget(4, 1, 1, "500", 1, "2024-01-01"),
    )
    rows = budget_status(budgets, trans, accounts, users, categories, 2024, 10)
    assert [(r.user_name, r.category_name) for r in rows] == [
        ("Jane Smith", "Groceries"),
        ("John Doe", "Groceries"),
        ("John Doe", "Shopping"),
    ]
    assert 2 not in {r.budget_id for r in rows}


def test_budget_status_no_budgets():
    users, accounts, categories, trans = make_world()
    assert budget_status((), trans, accounts, users, categories, 2024, 10) == []


# --- income / expense summary


def test_income_expense_summary_totals():
    _, accounts, _, trans = make_world()
    summary = income_expense_summary(trans, accounts, date(2024, 10, 1), date(2024, 10, 31), user_id=1)
    assert summary.total_income == D("4500.00")
    assert summary.total_expenses == D("289.25")
    assert summary.net_amount == D("4210.75")


def test_income_expense_net_equals_raw_sum():
    _, accounts, _, trans = make_world()
    start, end = date(2024, 10, 1), date(2024, 11, 30)
    income, expenses, net = income_expense_summary(trans, accounts, start, end)
    assert net == income - expenses
    assert net == sum((t.amount for t in trans if start <= t.transaction_date <= end), D("0"))


def test_income_expense_boundaries_are_inclusive_and_truncated():
    _, accounts, _, trans = make_world()
    summary = income_expense_summary(
        trans, accounts, datetime(2024, 10, 15, 18, 0), datetime(2024, 11, 10, 0, 0, 1)
    )
    # 2024-10-15 groceries and 2024-11-10 credit card purchase are both in range
    assert summary.total_expenses == D("188.74")
    assert summary.total_income == 0


def test_income_expense_summary_empty_is_zero():
    assert income_expense_summary((), (), date(2024, 1, 1), date(2024, 12, 31)) == (0, 0, 0)


def test_income_expense_summary_reversed_range_is_zero():
    _, accounts, _, trans = make_world()
    assert income_expense_summary(trans, accounts, date(2024, 12, 31), date(2024, 1, 1)) == (0, 0, 0)


# --- top spending categories


def make_ranked():
    accounts = (Account(1, 1, "A", 1), Account(2, 2, "B", 1))
    categories = (Category(1, "Rent", 1), Category(2, "Food", 1), Category(3, "Fun", 1), Category(4, "Pay", 2))
    trans = (
        make_tx(1, 1, 1, "-500", "2024-01-01"),
        make_tx(2, 1, 2, "-300", "2024-02-01"),
        make_tx(3, 1, 3, "-100", "2024-03-01"),
        make_tx(4, 1, 4, "2000", "2024-03-01"),
        make_tx(5, 2, 3, "-9000", "2024-03-01"),
    )
    return accounts, categories, trans


def test_top_spending_scenario():
    accounts, categories, trans = make_ranked()
    rows = top_spending_categories(trans, accounts, categories, 1, 2)
    assert len(rows) == 2
    assert [r.total_amount for r in rows] == [D("500"), D("300")]
    assert all(r.category_type == "Expense" for r in rows)


def test_top_spending_ignores_income_and_other_users():
    accounts, categories, trans = make_ranked()
    rows = top_spending_categories(trans, accounts, categories, 1, 10)
    assert [r.category_name for r in rows] == ["Rent", "Food", "Fun"]
    assert rows[2].total_amount == D("100")


@pytest.mark.parametrize("top_count", [0, -3, None])
def test_top_spending_non_positive_count_defaults_to_five(top_count):
    accounts = (Account(1, 1, "A", 1),)
    categories = tuple(Category(i, f"C{i}", 1) for i in range(1, 8))
    trans = tuple(make_tx(i, 1, i, -i, "2024-01-01") for i in range(1, 8))
    rows = top_spending_categories(trans, accounts, categories, 1, top_count)
    assert [r.category_id for r in rows] == [7, 6, 5, 4, 3]


def test_top_spending_sorted_descending():
    _, accounts, categories, trans = make_world()
    rows = top_spending_categories(trans, accounts, categories, 1)
    amounts = [r.total_amount for r in rows]
    assert amounts == sorted(amounts, reverse=True)
    assert len(rows) <= 5


def test_top_spending_no_expenses():
    accounts, categories, _ = make_ranked()
    trans = (make_tx(1, 1, 4, "1000", "2024-01-01"),)
    assert top_spending_categories(trans, accounts, categories, 1) == []


# --- purity


def test_reports_are_idempotent():
    users, accounts, categories, trans = make_world()
    budgets = (Budget(1, 1, 1, "500.00", 1, "2024-10-01"),)

    def run():
        return (
            monthly_spending_by_category(trans, accounts, categories, 2024, 10),
            account_balance_summary(accounts, users),
            budget_status(budgets, trans, accounts, users, categories, 2024, 10),
            income_expense_summary(trans, accounts, date(2024, 1, 1), date(2024, 12, 31)),
            top_spending_categories(trans, accounts, categories, 1),
        )

    assert run() == run()
