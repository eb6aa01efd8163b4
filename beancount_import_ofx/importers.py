#!/usr/bin/env python3

import logging
import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from beancount.core.data import Directive, Transaction
from beancount.ingest.importer import ImporterProtocol

from beancount_import_ofx.models import TXN, Statement
from beancount_import_ofx.models import Transaction as OfxTransaction
from beancount_import_ofx.ofx102 import OFX102, load
from beancount_import_ofx.utils import make_balance, make_transaction

logger = logging.getLogger(__name__)

FIT_ID_KEY = "fitid"
DUPLICATE_KEY = "__duplicate__"


def existing_fit_ids(existing_entries: Iterable[Directive] | None) -> set[str]:
    fit_ids = set()
    for entry in existing_entries or ():
        if isinstance(entry, Transaction) and entry.meta and FIT_ID_KEY in entry.meta:
            fit_ids.add(str(entry.meta[FIT_ID_KEY]))
    return fit_ids


@dataclass
class OfxImporter(ImporterProtocol):
    """Beancount importer for OFX 1.0.2 bank and credit card statements."""

    account_id: str
    account: str
    currency: str = "USD"
    file_encoding: str = "ISO-8859-1"
    process_callbacks: Sequence[Callable[[TXN], TXN]] = ()

    def parse(self, file) -> OFX102:
        return load(file.name, encoding=self.file_encoding)

    def statements(self, parser: OFX102) -> list[Statement]:
        return [s for s in parser.statements() if s.account.id == self.account_id]

    def ofx_to_txn(self, transaction: OfxTransaction, currency: str) -> TXN:
        meta = {FIT_ID_KEY: transaction.fit_id}
        if transaction.check_number:
            meta["check"] = transaction.check_number
        if transaction.ref_number:
            meta["ref"] = transaction.ref_number

        return TXN(
            date=transaction.posted_at.date(),
            payee=transaction.payee or transaction.name,
            narration=transaction.memo,
            name=transaction.name,
            memo=transaction.memo,
            amount=transaction.amount,
            currency=currency,
            fit_id=transaction.fit_id,
            check_number=transaction.check_number,
            ref_number=transaction.ref_number,
            posting_type=transaction.type.name,
            meta=meta,
        )

    def identify(self, file) -> bool:
        logger.info(f"Looking at {file.name}")
        try:
            parser = self.parse(file)
            account_ids = [account.id for account in parser.accounts()]
        except ValueError as e:
            logger.debug(f"Not an OFX 1.x file: {e}")
            return False
        logger.debug(f"Found {account_ids=}")
        return self.account_id in account_ids

    def extract(self, file, existing_entries=None) -> list[Directive]:
        fname = str(file.name)
        parser = self.parse(file)
        seen_fit_ids = existing_fit_ids(existing_entries)

        extracted_directives = []
        lineno = 0
        for statement in self.statements(parser):
            currency = statement.currency or self.currency
            logger.debug(f"Extracting {statement.account.id=} {currency=}")

            for transaction in statement.transactions:
                lineno += 1
                txn = self.ofx_to_txn(transaction, currency=currency)
                for cb in self.process_callbacks:
                    txn = cb(txn)
                logger.debug(f"Converted to {txn=}")

                entry = make_transaction(
                    account=self.account,
                    txn=txn,
                    fname=fname,
                    lineno=lineno,
                    flag=self.FLAG,
                )
                if txn.fit_id and txn.fit_id in seen_fit_ids:
                    entry.meta[DUPLICATE_KEY] = True
                logger.info(f"New {entry=}")
                extracted_directives.append(entry)

            if not statement.balance.reported:
                logger.debug(f"No ledger balance for {statement.account.id=} {currency=}")
                continue

            balance_date = statement.balance.posted_at or statement.end_date
            lineno += 1
            final_balance = make_balance(
                fname=fname,
                lineno=lineno,
                date=balance_date.date(),
                account=self.account,
                currency=currency,
                amount=statement.balance.amount,
            )
            logger.info(f"New {final_balance=}")
            extracted_directives.append(final_balance)

        return extracted_directives

    def file_account(self, _):
        return self.account

    def file_date(self, file):
        statements = self.statements(self.parse(file))
        if not statements:
            return None
        return max(statement.end_date.date() for statement in statements)

    def file_name(self, file):
        match = re.search(r"\.(ofx|qfx)$", str(file.name), re.IGNORECASE)
        if match:
            return f"{self.account_id}.{match.group(1).lower()}"
        return None
