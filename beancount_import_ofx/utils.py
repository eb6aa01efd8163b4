#!/usr/bin/env python3

from datetime import date, timedelta
from decimal import Decimal

from beancount.core.data import (
    EMPTY_SET,
    Amount,
    Balance,
    Posting,
    Transaction,
    new_metadata,
)

from beancount_import_ofx.models import TXN


def make_posting(
    amount: Decimal | None,
    currency: str | None,
    account: str,
    flag: str | None = None,
):
    if amount is not None:
        units = Amount(number=amount, currency=currency)
    else:
        units = None
    posting = Posting(
        account=account,
        units=units,  # type: ignore
        cost=None,
        price=None,
        flag=flag,
        meta=None,
    )
    return posting


def make_transaction(
    account: str, txn: TXN, fname: str, lineno: int, flag: str
) -> Transaction:
    postings = [make_posting(account=account, amount=txn.amount, currency=txn.currency)]
    for posting in txn.induced_postings:
        postings.append(
            make_posting(
                account=posting.account, amount=None, currency=None, flag=posting.flag
            )
        )

    return Transaction(
        meta=new_metadata(filename=fname, lineno=lineno, kvlist=txn.meta),
        date=txn.date,
        flag=flag,
        payee=txn.payee or None,
        narration=txn.narration,
        tags=EMPTY_SET,
        links=EMPTY_SET,
        postings=postings,
    )


def make_balance(
    fname: str,
    lineno: int,
    date: date,
    account: str,
    currency: str,
    amount: Decimal,
):
    """Balance assertions apply at the start of a day, so date the day after."""
    return Balance(
        meta=new_metadata(filename=fname, lineno=lineno),
        date=date + timedelta(days=1),
        account=account,
        amount=Amount(number=amount, currency=currency),
        tolerance=None,
        diff_amount=None,
    )


def flatten_dict(dd, separator=":", prefix=""):
    return (
        {
            prefix + separator + k if prefix else k: v
            for kk, vv in dd.items()
            for k, v in flatten_dict(vv, separator, kk).items()
        }
        if isinstance(dd, dict)
        else {prefix: dd}
    )
