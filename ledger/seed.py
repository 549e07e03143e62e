import json
from pathlib import Path
from typing import Any, Callable, Dict, Union

from ledger.domain import Account, Budget, Category, Transaction, User
from ledger.gateway import GatewayError, InMemoryGateway
from ledger.log import get_logger

logger = get_logger(__name__)


class SeedError(ValueError):
    """A seed document row could not be turned into a record."""


def _rows(data: dict, section: str) -> list:
    rows = data.get(section, [])
    if not isinstance(rows, list):
        raise SeedError(f"{section}: expected a list, got {type(rows).__name__}")
    return rows


def _load_section(
    data: dict,
    section: str,
    build: Callable[[Dict[str, Any]], Any],
    insert: Callable[[Any], Any],
) -> Dict[int, int]:
    """Insert every row of a section; returns seed id -> stored id."""
    ids: Dict[int, int] = {}
    for index, row in enumerate(_rows(data, section)):
        try:
            record = build(row)
        except (KeyError, TypeError, ValueError, ArithmeticError) as e:
            raise SeedError(f"{section}[{index}]: {e}") from e
        try:
            stored = insert(record)
        except GatewayError as e:
            raise SeedError(f"{section}[{index}]: {e}") from e
        ids[row.get("id", index + 1)] = stored.id
    return ids


def load_seed_data(data: dict) -> InMemoryGateway:
    gateway = InMemoryGateway()

    user_ids = _load_section(
        data,
        "users",
        lambda r: User(id=None, email=r["email"], name=r["name"]),
        gateway.add_user,
    )
    category_ids = _load_section(
        data,
        "categories",
        lambda r: Category(
            id=None, name=r["name"], type=r["type"], icon=r.get("icon"), color=r.get("color")
        ),
        gateway.add_category,
    )
    account_ids = _load_section(
        data,
        "accounts",
        lambda r: Account(
            id=None,
            user_id=user_ids[r["user_id"]],
            name=r["name"],
            type=r["type"],
            balance=r.get("balance", "0"),
            currency=r.get("currency", "USD"),
        ),
        gateway.add_account,
    )
    _load_section(
        data,
        "transactions",
        lambda r: Transaction(
            id=None,
            account_id=account_ids[r["account_id"]],
            category_id=category_ids[r["category_id"]],
            amount=r["amount"],
            transaction_date=r["transaction_date"],
            description=r.get("description"),
        ),
        gateway.add_transaction,
    )
    _load_section(
        data,
        "budgets",
        lambda r: Budget(
            id=None,
            user_id=user_ids[r["user_id"]],
            category_id=category_ids[r["category_id"]],
            amount=r["amount"],
            period=r["period"],
            start_date=r["start_date"],
        ),
        gateway.add_budget,
    )
    return gateway


def load_seed(path: Union[str, Path]) -> InMemoryGateway:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    gateway = load_seed_data(data)
    snap = gateway.snapshot()
    logger.info(
        "seed_loaded",
        path=str(path),
        users=len(snap.users),
        accounts=len(snap.accounts),
        categories=len(snap.categories),
        transactions=len(snap.transactions),
        budgets=len(snap.budgets),
    )
    return gateway
