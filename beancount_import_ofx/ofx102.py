#!/usr/bin/env python3

from __future__ import annotations

import logging
import re
import warnings
from pathlib import Path
from types import MappingProxyType

import bs4

from beancount_import_ofx import query
from beancount_import_ofx.models import (
    ACCOUNT_TYPES,
    SEVERITY,
    TRANSACTION_TYPES,
    Account,
    AccountType,
    Balance,
    Severity,
    SignOn,
    Statement,
    Status,
    Transaction,
    TransactionType,
)
from beancount_import_ofx.normalizers import (
    MalformedDate,
    build_date,
    in_pennies,
    lookup,
    to_decimal,
    to_int,
)

logger = logging.getLogger(__name__)

HEADER_LINE_RE = re.compile(r"^(.*?):(.*?)\s*$")
LONE_CR_RE = re.compile(r"\r(?!\n)")
BODY_START_RE = re.compile(r"<OFX>", re.IGNORECASE)
XML_PROLOG_RE = re.compile(r"<\?(xml|ofx)\b", re.IGNORECASE)

STATEMENT_RESPONSES = "stmttrnrs, ccstmttrnrs"
SUB_STATEMENTS = "stmtrs, ccstmtrs"

Headers = MappingProxyType


class UnsupportedFileError(ValueError):
    pass


def _optional_date(text: str):
    try:
        return build_date(text)
    except MalformedDate:
        logger.debug(f"Ignoring malformed optional date {text=}")
        return None


class OFX102:
    """Reads accounts, statements and sign-on data from an OFX 1.0.2 body.

    Every accessor is computed on first use and cached on the instance. The
    tree is never modified, so two threads racing on the first call of the
    same accessor both compute equal results and whichever write lands last
    is kept; no lock is taken.
    """

    VERSION = "1.0.2"

    def __init__(self, headers: Headers | None = None, body: str = "") -> None:
        self.headers = headers
        self.body = body
        self.html = query.parse_body(body)
        self._statements: tuple[Statement, ...] | None = None
        self._accounts: tuple[Account, ...] | None = None
        self._account: Account | None = None
        self._sign_on: SignOn | None = None

    @classmethod
    def from_text(cls, text: str) -> OFX102:
        header_text, body = split_document(text)
        if XML_PROLOG_RE.match(header_text):
            raise UnsupportedFileError("OFX 2.x XML documents are not supported")
        headers = cls.parse_headers(header_text)
        version = (headers or {}).get("VERSION")
        if version and not version.startswith("1"):
            raise UnsupportedFileError(f"OFX {version=} is not supported")
        return cls(headers=headers, body=body)

    @staticmethod
    def parse_headers(header_text: str) -> Headers | None:
        """Parses ``KEY:VALUE`` header lines; a value of ``NONE`` becomes None."""
        header_text = LONE_CR_RE.sub("\n", header_text)

        headers = {}
        for line in header_text.splitlines():
            match = HEADER_LINE_RE.match(line)
            if not match:
                continue
            key, value = match.groups()
            headers[key] = None if value == "NONE" else value

        if not headers:
            return None
        return MappingProxyType(headers)

    def statement_responses(self) -> list[bs4.Tag]:
        return query.search(self.html, STATEMENT_RESPONSES)

    def statements(self) -> tuple[Statement, ...]:
        if self._statements is None:
            self._statements = tuple(
                statement
                for node in self.statement_responses()
                for statement in self._build_statements(node)
            )
            logger.debug(f"Built {len(self._statements)} statements")
        return self._statements

    def accounts(self) -> tuple[Account, ...]:
        if self._accounts is None:
            unique = {}
            for node in self.statement_responses():
                for account in self._build_accounts(node):
                    unique.setdefault(account.id, account)
            self._accounts = tuple(unique.values())
            logger.debug(f"Built {len(self._accounts)} accounts")
        return self._accounts

    def account(self) -> Account | None:
        """Deprecated: the first response's account, unaware of grouping."""
        warnings.warn(
            "OFX102.account() is deprecated, use accounts() instead",
            DeprecationWarning,
            stacklevel=2,
        )
        if self._account is None:
            nodes = self.statement_responses()
            if not nodes:
                return None
            self._account = self._build_account(nodes[0])
        return self._account

    def sign_on(self) -> SignOn:
        if self._sign_on is None:
            self._sign_on = self._build_sign_on()
        return self._sign_on

    def _build_statements(self, node: bs4.Tag) -> list[Statement]:
        sub_nodes = query.search(node, SUB_STATEMENTS)
        if len(sub_nodes) > 1:
            logger.debug(f"Found {len(sub_nodes)} sub-statements in one response")
            return [self._build_statement(sub, sub) for sub in sub_nodes]

        # Single account: statement fields sit right under the response.
        return [self._build_statement(node, sub_nodes or node)]

    def _build_statement(self, node_for_account, node_for_statement) -> Statement:
        account = self._build_account(node_for_account)
        return Statement(
            currency=query.text(query.search(node_for_statement, "curdef")),
            start_date=build_date(
                query.text(query.search(node_for_statement, "banktranlist > dtstart"))
            ),
            end_date=build_date(
                query.text(query.search(node_for_statement, "banktranlist > dtend"))
            ),
            account=account,
            transactions=account.transactions,
            balance=account.balance,
            available_balance=account.available_balance,
        )

    def _build_accounts(self, node: bs4.Tag) -> list[Account]:
        sub_nodes = query.search(node, SUB_STATEMENTS)
        if len(sub_nodes) > 1:
            return [self._build_account(sub) for sub in sub_nodes]
        return [self._build_account(node)]

    def _build_account(self, node: bs4.Tag) -> Account:
        def field(selector: str) -> str:
            return query.text(query.search(node, selector))

        return Account(
            bank_id=field("bankacctfrom > bankid"),
            id=field("bankacctfrom > acctid, ccacctfrom > acctid"),
            branch_id=field("bankacctfrom > branchid"),
            type=lookup(
                ACCOUNT_TYPES, field("bankacctfrom > accttype"), AccountType.UNKNOWN
            ),
            currency=field("stmtrs > curdef, ccstmtrs > curdef"),
            transactions=self._build_transactions(node),
            balance=self._build_balance(node),
            available_balance=self._build_available_balance(node),
        )

    def _build_status(self, nodes: list[bs4.Tag]) -> Status:
        return Status(
            code=to_int(query.text(query.search(nodes, "code"))),
            severity=lookup(
                SEVERITY, query.text(query.search(nodes, "severity")), Severity.UNKNOWN
            ),
            message=query.text(query.search(nodes, "message")),
        )

    def _build_sign_on(self) -> SignOn:
        def field(selector: str) -> str:
            return query.text(query.search(self.html, selector))

        return SignOn(
            language=field("signonmsgsrsv1 > sonrs > language"),
            fi_id=field("signonmsgsrsv1 > sonrs > fi > fid"),
            fi_name=field("signonmsgsrsv1 > sonrs > fi > org"),
            status=self._build_status(
                query.search(self.html, "signonmsgsrsv1 > sonrs > status")
            ),
        )

    def _build_transactions(self, node: bs4.Tag) -> tuple[Transaction, ...]:
        return tuple(
            self._build_transaction(element)
            for element in query.search(node, "banktranlist > stmttrn")
        )

    def _build_transaction(self, element: bs4.Tag) -> Transaction:
        def field(selector: str) -> str:
            return query.text(query.search(element, selector))

        amount = to_decimal(field("trnamt"))
        return Transaction(
            amount=amount,
            amount_in_pennies=in_pennies(amount),
            fit_id=field("fitid"),
            memo=field("memo"),
            name=field("name"),
            payee=field("payee"),
            check_number=field("checknum"),
            ref_number=field("refnum"),
            posted_at=build_date(field("dtposted")),
            occurred_at=_optional_date(field("dtuser")),
            type=lookup(TRANSACTION_TYPES, field("trntype"), TransactionType.UNKNOWN),
            sic=field("sic"),
        )

    def _build_balance(self, node: bs4.Tag) -> Balance:
        amount = to_decimal(query.text(query.search(node, "ledgerbal > balamt")))
        return Balance(
            amount=amount,
            amount_in_pennies=in_pennies(amount),
            posted_at=_optional_date(
                query.text(query.search(node, "ledgerbal > dtasof"))
            ),
            reported=bool(query.search(node, "ledgerbal")),
        )

    def _build_available_balance(self, node: bs4.Tag) -> Balance | None:
        if not query.search(node, "availbal"):
            return None

        amount = to_decimal(query.text(query.search(node, "availbal > balamt")))
        return Balance(
            amount=amount,
            amount_in_pennies=in_pennies(amount),
            posted_at=build_date(query.text(query.search(node, "availbal > dtasof"))),
        )


def split_document(text: str) -> tuple[str, str]:
    """Splits an OFX 1.x document into its header block and SGML body."""
    match = BODY_START_RE.search(text)
    if not match:
        raise UnsupportedFileError("No <OFX> element found")
    return text[: match.start()].strip(), text[match.start() :]


def load(path: str | Path, encoding: str = "latin-1") -> OFX102:
    logger.info(f"Loading OFX document {path}")
    with open(path, encoding=encoding) as f:
        return OFX102.from_text(f.read())
