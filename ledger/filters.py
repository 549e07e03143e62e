import calendar
from datetime import date, datetime
from typing import Callable, Dict, Iterable, Iterator, Optional, Tuple, Union

from ledger.domain import Account, Transaction, as_day

Predicate = Callable[[Transaction], bool]


class InvalidPeriodError(ValueError):
    """Raised for a year/month pair that is not a calendar month."""


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """First and last day of the given month, both inclusive."""
    if not 1 <= month <= 12:
        raise InvalidPeriodError(f"month must be in 1..12, got {month}")
    if not date.min.year <= year <= date.max.year:
        raise InvalidPeriodError(f"year out of range: {year}")
    last = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last)


def iter_transactions(trans: Iterable[Transaction], pred: Predicate) -> Iterator[Transaction]:
    for t in trans:
        if pred(t):
            yield t


def all_of(*preds: Predicate) -> Predicate:
    def _filter(t: Transaction) -> bool:
        return all(p(t) for p in preds)

    return _filter


def by_date_range(start: Union[date, datetime], end: Union[date, datetime]) -> Predicate:
    start_day, end_day = as_day(start), as_day(end)

    def _filter(t: Transaction) -> bool:
        return start_day <= t.transaction_date <= end_day

    return _filter


def in_month(year: int, month: int) -> Predicate:
    return by_date_range(*month_bounds(year, month))


def expenses_only(t: Transaction) -> bool:
    return t.is_expense


def account_owners(accounts: Iterable[Account]) -> Dict[int, int]:
    return {a.id: a.user_id for a in accounts}


def owned_by(owners: Dict[int, int], user_id: Optional[int]) -> Predicate:
    """Keep transactions whose account belongs to user_id; None keeps all."""
    if user_id is None:
        return lambda t: True

    def _filter(t: Transaction) -> bool:
        return owners.get(t.account_id) == user_id

    return _filter
