#!/usr/bin/env python3

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Literal


class AccountType(Enum):
    CHECKING = "checking"
    SAVINGS = "savings"
    CREDITLINE = "creditline"
    MONEYMRKT = "moneymrkt"
    UNKNOWN = "unknown"


class TransactionType(Enum):
    ATM = "atm"
    CASH = "cash"
    CHECK = "check"
    CREDIT = "credit"
    DEBIT = "debit"
    DEP = "dep"
    DIRECTDEBIT = "directdebit"
    DIRECTDEP = "directdep"
    DIV = "div"
    FEE = "fee"
    INT = "int"
    OTHER = "other"
    PAYMENT = "payment"
    POS = "pos"
    REPEATPMT = "repeatpmt"
    SRVCHG = "srvchg"
    XFER = "xfer"
    UNKNOWN = "unknown"


class Severity(Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    UNKNOWN = "unknown"


def _code_table(enum_cls: type[Enum]) -> MappingProxyType:
    return MappingProxyType(
        {member.name: member for member in enum_cls if member.name != "UNKNOWN"}
    )


ACCOUNT_TYPES = _code_table(AccountType)
TRANSACTION_TYPES = _code_table(TransactionType)
SEVERITY = _code_table(Severity)


@dataclass(frozen=True)
class Status:
    code: int
    severity: Severity
    message: str


@dataclass(frozen=True)
class SignOn:
    language: str
    fi_id: str
    fi_name: str
    status: Status


@dataclass(frozen=True)
class Balance:
    amount: Decimal
    amount_in_pennies: int
    posted_at: datetime | None
    reported: bool = True


@dataclass(frozen=True)
class Transaction:
    amount: Decimal
    amount_in_pennies: int
    fit_id: str
    memo: str
    name: str
    payee: str
    check_number: str
    ref_number: str
    posted_at: datetime
    occurred_at: datetime | None
    type: TransactionType
    sic: str


@dataclass(frozen=True)
class Account:
    bank_id: str
    id: str
    branch_id: str
    type: AccountType
    currency: str
    transactions: tuple[Transaction, ...]
    balance: Balance
    available_balance: Balance | None


@dataclass(frozen=True)
class Statement:
    """One statement; transactions and balances are the account's own objects."""

    currency: str
    start_date: datetime
    end_date: datetime
    account: Account
    transactions: tuple[Transaction, ...]
    balance: Balance
    available_balance: Balance | None


@dataclass(frozen=True)
class InducedPosting:
    flag: Literal["*"] | Literal["!"]
    account: str


@dataclass
class TXN:
    date: date
    payee: str
    narration: str
    name: str
    memo: str
    amount: Decimal
    currency: str
    fit_id: str
    check_number: str
    ref_number: str
    posting_type: str
    induced_postings: list[InducedPosting] = field(default_factory=list)
    meta: dict[str, str] = field(default_factory=dict)
