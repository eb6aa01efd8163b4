#!/usr/bin/env python3

import random
import string
from pathlib import Path

FIXTURES = Path(__file__).parent / "fixtures"

HEADER = """OFXHEADER:100
DATA:OFXSGML
VERSION:102
SECURITY:NONE
ENCODING:USASCII
CHARSET:1252
COMPRESSION:NONE
OLDFILEUID:NONE
NEWFILEUID:NONE
"""


def random_string(size: int, letters: bool = False, digits: bool = False):
    population = ""
    if letters:
        population += string.ascii_letters
    if digits:
        population += string.digits
    return "".join(random.choices(population=population, k=size))


def fake_account_id():
    return random_string(size=5, digits=True) + "-" + random_string(size=7, digits=True)


def fixture_text(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="latin-1")


def make_stmttrn(
    fit_id: str, amount: str = "-1.00", posted: str = "20200101", trntype: str = "DEBIT"
) -> str:
    return (
        f"<STMTTRN>\n<TRNTYPE>{trntype}\n<DTPOSTED>{posted}\n"
        f"<TRNAMT>{amount}\n<FITID>{fit_id}\n<NAME>name {fit_id}\n</STMTTRN>\n"
    )


def make_stmtrs(
    account_id: str,
    currency: str = "EUR",
    transactions: str = "",
    start: str = "20200101",
    end: str = "20200131",
    balance: str = "0.00",
) -> str:
    return (
        f"<STMTRS>\n<CURDEF>{currency}\n"
        f"<BANKACCTFROM>\n<BANKID>1\n<ACCTID>{account_id}\n<ACCTTYPE>SAVINGS\n"
        "</BANKACCTFROM>\n"
        f"<BANKTRANLIST>\n<DTSTART>{start}\n<DTEND>{end}\n{transactions}"
        "</BANKTRANLIST>\n"
        f"<LEDGERBAL>\n<BALAMT>{balance}\n<DTASOF>{end}\n</LEDGERBAL>\n"
        "</STMTRS>\n"
    )


def make_document(*responses: str) -> str:
    """Wraps STMTTRNRS contents into a complete OFX 1.0.2 document."""
    body = "".join(
        f"<STMTTRNRS>\n<TRNUID>{i}\n{response}</STMTTRNRS>\n"
        for i, response in enumerate(responses)
    )
    return (
        HEADER
        + "\n<OFX>\n<SIGNONMSGSRSV1>\n<SONRS>\n<STATUS>\n<CODE>0\n<SEVERITY>INFO\n"
        + "</STATUS>\n<LANGUAGE>ENG\n</SONRS>\n</SIGNONMSGSRSV1>\n<BANKMSGSRSV1>\n"
        + body
        + "</BANKMSGSRSV1>\n</OFX>\n"
    )
