from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import IntEnum
from typing import NamedTuple, Optional, Union

Money = Union[Decimal, int, str, float]


class _CodedEnum(IntEnum):
    """Closed enumeration stored as a small integer code."""

    @classmethod
    def from_code(cls, code: int):
        try:
            return cls(int(code))
        except (TypeError, ValueError):
            raise ValueError(f"{code!r} is not a valid {cls.__name__} code") from None

    @property
    def code(self) -> int:
        return int(self.value)

    @property
    def label(self) -> str:
        return self.name.title().replace("_", "")


class CategoryType(_CodedEnum):
    EXPENSE = 1
    INCOME = 2


class AccountType(_CodedEnum):
    CHECKING = 1
    SAVINGS = 2
    CREDIT_CARD = 3
    CASH = 4
    INVESTMENT = 5


class BudgetPeriod(_CodedEnum):
    MONTHLY = 1
    YEARLY = 2


def to_decimal(value: Money) -> Decimal:
    if isinstance(value, bool):
        raise TypeError("bool is not a monetary amount")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        # go through str so 0.1 stays 0.1
        result = Decimal(str(value))
    else:
        result = Decimal(value)
    if not result.is_finite():
        raise ValueError(f"monetary amount must be finite, got {value!r}")
    return result


def as_day(value: Union[date, datetime, str]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _coerce(obj, name: str, fn) -> None:
    object.__setattr__(obj, name, fn(getattr(obj, name)))


@dataclass(frozen=True)
class User:
    id: Optional[int]
    email: str
    name: str
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Category:
    id: Optional[int]
    name: str
    type: CategoryType
    icon: Optional[str] = None
    color: Optional[str] = None  # hex, e.g. "#FF5733"

    def __post_init__(self):
        _coerce(self, "type", CategoryType.from_code)


@dataclass(frozen=True)
class Account:
    id: Optional[int]
    user_id: int
    name: str
    type: AccountType
    balance: Decimal = Decimal("0")
    currency: str = "USD"
    created_at: Optional[datetime] = None

    def __post_init__(self):
        _coerce(self, "type", AccountType.from_code)
        _coerce(self, "balance", to_decimal)


@dataclass(frozen=True)
class Transaction:
    id: Optional[int]
    account_id: int
    category_id: int
    amount: Decimal  # + for income, - for expense
    transaction_date: date
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        _coerce(self, "amount", to_decimal)
        _coerce(self, "transaction_date", as_day)

    @property
    def is_expense(self) -> bool:
        return self.amount < 0

    @property
    def is_income(self) -> bool:
        return self.amount > 0


@dataclass(frozen=True)
class Budget:
    id: Optional[int]
    user_id: int
    category_id: int
    amount: Decimal
    period: BudgetPeriod
    start_date: date

    def __post_init__(self):
        _coerce(self, "amount", to_decimal)
        _coerce(self, "period", BudgetPeriod.from_code)
        _coerce(self, "start_date", as_day)


# --- report records


@dataclass(frozen=True)
class SpendingByCategory:
    category_id: int
    category_name: str
    category_type: str
    total_amount: Decimal
    transaction_count: int


@dataclass(frozen=True)
class AccountBalanceSummary:
    user_id: int
    user_name: str
    account_type: str
    account_count: int
    total_balance: Decimal


@dataclass(frozen=True)
class BudgetStatus:
    budget_id: int
    user_id: int
    user_name: str
    category_name: str
    budget_amount: Decimal
    spent_amount: Decimal = field(default=Decimal("0"))
    period: str = BudgetPeriod.MONTHLY.label

    @property
    def remaining_amount(self) -> Decimal:
        return self.budget_amount - self.spent_amount

    @property
    def percent_used(self) -> Decimal:
        """Unrounded; presentation code decides the precision."""
        if self.budget_amount > 0:
            return self.spent_amount / self.budget_amount * 100
        return Decimal("0")

    @property
    def is_over_budget(self) -> bool:
        return self.spent_amount > self.budget_amount


class IncomeExpenseSummary(NamedTuple):
    total_income: Decimal
    total_expenses: Decimal
    net_amount: Decimal
