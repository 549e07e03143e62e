"""Storage side of the reporting engine.

The aggregator only reads snapshots; everything that writes goes through a
LedgerGateway, which owns id assignment, uniqueness and the cascade /
no-action rules between users, accounts, categories, transactions and
budgets.
"""
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal
from itertools import count
from typing import Dict, NamedTuple, Optional, Tuple

from ledger.domain import Account, Budget, Category, CategoryType, Transaction, User, as_day
from ledger.log import get_logger

logger = get_logger(__name__)


class GatewayError(Exception):
    """Base class for storage rule violations."""


class ConstraintViolationError(GatewayError):
    """A uniqueness or value constraint was broken."""


class ReferentialIntegrityError(GatewayError):
    """A referenced row is missing, or a delete would orphan rows."""


class LedgerSnapshot(NamedTuple):
    users: Tuple[User, ...]
    accounts: Tuple[Account, ...]
    categories: Tuple[Category, ...]
    transactions: Tuple[Transaction, ...]
    budgets: Tuple[Budget, ...]


class LedgerGateway(ABC):

    # users
    @abstractmethod
    def add_user(self, user: User) -> User:
        pass

    @abstractmethod
    def get_user(self, user_id: int) -> Optional[User]:
        pass

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[User]:
        """Case-insensitive, like the uniqueness rule on email."""
        pass

    @abstractmethod
    def update_user(self, user: User) -> bool:
        pass

    @abstractmethod
    def delete_user(self, user_id: int) -> bool:
        pass

    @abstractmethod
    def users(self) -> Tuple[User, ...]:
        pass

    # categories
    @abstractmethod
    def add_category(self, category: Category) -> Category:
        pass

    @abstractmethod
    def get_category(self, category_id: int) -> Optional[Category]:
        pass

    @abstractmethod
    def update_category(self, category: Category) -> bool:
        pass

    @abstractmethod
    def delete_category(self, category_id: int) -> bool:
        pass

    @abstractmethod
    def categories(self, type: Optional[CategoryType] = None) -> Tuple[Category, ...]:
        pass

    # accounts
    @abstractmethod
    def add_account(self, account: Account) -> Account:
        pass

    @abstractmethod
    def get_account(self, account_id: int) -> Optional[Account]:
        pass

    @abstractmethod
    def update_account(self, account: Account) -> bool:
        pass

    @abstractmethod
    def delete_account(self, account_id: int) -> bool:
        pass

    @abstractmethod
    def accounts(self, user_id: Optional[int] = None) -> Tuple[Account, ...]:
        pass

    # transactions
    @abstractmethod
    def add_transaction(self, transaction: Transaction) -> Transaction:
        pass

    @abstractmethod
    def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        pass

    @abstractmethod
    def update_transaction(self, transaction: Transaction) -> bool:
        pass

    @abstractmethod
    def delete_transaction(self, transaction_id: int) -> bool:
        pass

    @abstractmethod
    def transactions(
        self,
        account_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Tuple[Transaction, ...]:
        pass

    # budgets
    @abstractmethod
    def add_budget(self, budget: Budget) -> Budget:
        pass

    @abstractmethod
    def get_budget(self, budget_id: int) -> Optional[Budget]:
        pass

    @abstractmethod
    def update_budget(self, budget: Budget) -> bool:
        pass

    @abstractmethod
    def delete_budget(self, budget_id: int) -> bool:
        pass

    @abstractmethod
    def budgets(self, user_id: Optional[int] = None) -> Tuple[Budget, ...]:
        pass

    def recent_transactions(self, count: int = 20) -> Tuple[Transaction, ...]:
        ordered = sorted(self.transactions(), key=lambda t: (t.transaction_date, t.id), reverse=True)
        return tuple(ordered[: max(0, count)])

    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            users=self.users(),
            accounts=self.accounts(),
            categories=self.categories(),
            transactions=self.transactions(),
            budgets=self.budgets(),
        )


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryGateway(LedgerGateway):
    """Dict-backed gateway, used for seed data, the dashboard and tests."""

    def __init__(self):
        self._users: Dict[int, User] = {}
        self._categories: Dict[int, Category] = {}
        self._accounts: Dict[int, Account] = {}
        self._transactions: Dict[int, Transaction] = {}
        self._budgets: Dict[int, Budget] = {}
        self._ids = {name: count(1) for name in ("user", "category", "account", "transaction", "budget")}

    # --- checks

    def _check_user(self, user: User, own_id: Optional[int] = None) -> None:
        email = user.email.strip().lower()
        for other in self._users.values():
            if other.id != own_id and other.email.strip().lower() == email:
                raise ConstraintViolationError(f"email already registered: {user.email}")

    def _check_category(self, category: Category, own_id: Optional[int] = None) -> None:
        for other in self._categories.values():
            if other.id != own_id and (other.name, other.type) == (category.name, category.type):
                raise ConstraintViolationError(
                    f"category {category.name!r} of type {category.type.label} already exists"
                )

    def _check_account(self, account: Account) -> None:
        if account.user_id not in self._users:
            raise ReferentialIntegrityError(f"user {account.user_id} does not exist")

    def _check_transaction(self, transaction: Transaction) -> None:
        if transaction.account_id not in self._accounts:
            raise ReferentialIntegrityError(f"account {transaction.account_id} does not exist")
        if transaction.category_id not in self._categories:
            raise ReferentialIntegrityError(f"category {transaction.category_id} does not exist")

    def _check_budget(self, budget: Budget, own_id: Optional[int] = None) -> None:
        if budget.user_id not in self._users:
            raise ReferentialIntegrityError(f"user {budget.user_id} does not exist")
        if budget.category_id not in self._categories:
            raise ReferentialIntegrityError(f"category {budget.category_id} does not exist")
        if budget.amount <= 0:
            raise ConstraintViolationError(f"budget amount must be positive, got {budget.amount}")
        key = (budget.user_id, budget.category_id, budget.period)
        for other in self._budgets.values():
            if other.id != own_id and (other.user_id, other.category_id, other.period) == key:
                raise ConstraintViolationError(
                    f"user {budget.user_id} already has a {budget.period.label} budget "
                    f"for category {budget.category_id}"
                )

    # --- users

    def add_user(self, user: User) -> User:
        self._check_user(user)
        stored = replace(user, id=next(self._ids["user"]), created_at=user.created_at or _now())
        self._users[stored.id] = stored
        logger.debug("user_added", user_id=stored.id)
        return stored

    def get_user(self, user_id: int) -> Optional[User]:
        return self._users.get(user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        wanted = email.strip().lower()
        return next((u for u in self._users.values() if u.email.strip().lower() == wanted), None)

    def update_user(self, user: User) -> bool:
        current = self._users.get(user.id)
        if current is None:
            return False
        self._check_user(user, own_id=user.id)
        self._users[user.id] = replace(user, created_at=user.created_at or current.created_at)
        return True

    def delete_user(self, user_id: int) -> bool:
        if user_id not in self._users:
            return False
        for account_id in [a.id for a in self._accounts.values() if a.user_id == user_id]:
            self.delete_account(account_id)
        for budget_id in [b.id for b in self._budgets.values() if b.user_id == user_id]:
            del self._budgets[budget_id]
        del self._users[user_id]
        logger.info("user_deleted", user_id=user_id)
        return True

    def users(self) -> Tuple[User, ...]:
        return tuple(self._users[k] for k in sorted(self._users))

    # --- categories

    def add_category(self, category: Category) -> Category:
        self._check_category(category)
        stored = replace(category, id=next(self._ids["category"]))
        self._categories[stored.id] = stored
        logger.debug("category_added", category_id=stored.id)
        return stored

    def get_category(self, category_id: int) -> Optional[Category]:
        return self._categories.get(category_id)

    def update_category(self, category: Category) -> bool:
        if category.id not in self._categories:
            return False
        self._check_category(category, own_id=category.id)
        self._categories[category.id] = category
        return True

    def delete_category(self, category_id: int) -> bool:
        if category_id not in self._categories:
            return False
        in_use = any(t.category_id == category_id for t in self._transactions.values()) or any(
            b.category_id == category_id for b in self._budgets.values()
        )
        if in_use:
            raise ReferentialIntegrityError(
                f"category {category_id} is referenced by transactions or budgets"
            )
        del self._categories[category_id]
        return True

    def categories(self, type: Optional[CategoryType] = None) -> Tuple[Category, ...]:
        rows = self._categories.values()
        if type is not None:
            wanted = CategoryType.from_code(type)
            rows = [c for c in rows if c.type is wanted]
        return tuple(sorted(rows, key=lambda c: (c.type.code, c.name)))

    # --- accounts

    def add_account(self, account: Account) -> Account:
        self._check_account(account)
        stored = replace(account, id=next(self._ids["account"]), created_at=account.created_at or _now())
        self._accounts[stored.id] = stored
        logger.debug("account_added", account_id=stored.id, user_id=stored.user_id)
        return stored

    def get_account(self, account_id: int) -> Optional[Account]:
        return self._accounts.get(account_id)

    def update_account(self, account: Account) -> bool:
        current = self._accounts.get(account.id)
        if current is None:
            return False
        self._check_account(account)
        self._accounts[account.id] = replace(account, created_at=account.created_at or current.created_at)
        return True

    def update_balance(self, account_id: int, balance: Decimal) -> bool:
        current = self._accounts.get(account_id)
        if current is None:
            return False
        self._accounts[account_id] = replace(current, balance=balance)
        return True

    def delete_account(self, account_id: int) -> bool:
        if account_id not in self._accounts:
            return False
        doomed = [t.id for t in self._transactions.values() if t.account_id == account_id]
        for tid in doomed:
            del self._transactions[tid]
        del self._accounts[account_id]
        logger.info("account_deleted", account_id=account_id, transactions_removed=len(doomed))
        return True

    def accounts(self, user_id: Optional[int] = None) -> Tuple[Account, ...]:
        rows = [a for a in self._accounts.values() if user_id is None or a.user_id == user_id]
        return tuple(sorted(rows, key=lambda a: (a.user_id, a.name, a.id)))

    # --- transactions

    def add_transaction(self, transaction: Transaction) -> Transaction:
        self._check_transaction(transaction)
        stored = replace(
            transaction,
            id=next(self._ids["transaction"]),
            created_at=transaction.created_at or _now(),
        )
        self._transactions[stored.id] = stored
        logger.debug("transaction_added", transaction_id=stored.id, account_id=stored.account_id)
        return stored

    def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        return self._transactions.get(transaction_id)

    def update_transaction(self, transaction: Transaction) -> bool:
        current = self._transactions.get(transaction.id)
        if current is None:
            return False
        self._check_transaction(transaction)
        self._transactions[transaction.id] = replace(
            transaction, created_at=transaction.created_at or current.created_at
        )
        return True

    def delete_transaction(self, transaction_id: int) -> bool:
        return self._transactions.pop(transaction_id, None) is not None

    def transactions(
        self,
        account_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Tuple[Transaction, ...]:
        start = as_day(start_date) if start_date is not None else None
        end = as_day(end_date) if end_date is not None else None
        rows = [
            t
            for t in self._transactions.values()
            if (account_id is None or t.account_id == account_id)
            and (start is None or t.transaction_date >= start)
            and (end is None or t.transaction_date <= end)
        ]
        return tuple(sorted(rows, key=lambda t: t.id))

    # --- budgets

    def add_budget(self, budget: Budget) -> Budget:
        self._check_budget(budget)
        stored = replace(budget, id=next(self._ids["budget"]))
        self._budgets[stored.id] = stored
        logger.debug("budget_added", budget_id=stored.id, user_id=stored.user_id)
        return stored

    def get_budget(self, budget_id: int) -> Optional[Budget]:
        return self._budgets.get(budget_id)

    def update_budget(self, budget: Budget) -> bool:
        if budget.id not in self._budgets:
            return False
        self._check_budget(budget, own_id=budget.id)
        self._budgets[budget.id] = budget
        return True

    def delete_budget(self, budget_id: int) -> bool:
        return self._budgets.pop(budget_id, None) is not None

    def budgets(self, user_id: Optional[int] = None) -> Tuple[Budget, ...]:
        rows = [b for b in self._budgets.values() if user_id is None or b.user_id == user_id]
        return tuple(sorted(rows, key=lambda b: (b.user_id, b.category_id, b.id)))
