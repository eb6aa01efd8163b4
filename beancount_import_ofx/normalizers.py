#!/usr/bin/env python3

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import TypeVar

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)

OFFSET_ANNOTATION_RE = re.compile(r"\[([+-]?\d{1,4})(?::[^\]\s]*)?\]\Z")
OFFSET_RE = re.compile(r"\A([+-]?\d{1,2})(\d{0,2})\Z")
DATE_TIME_RE = re.compile(r"\A(\d{8})(\d{4}|\d{6})?(?:\.(\d+))?\Z")
LEADING_INT_RE = re.compile(r"\A\s*([+-]?\d+)")

DEFAULT_OFFSET = "+0000"


class MalformedDate(ValueError):
    pass


def _is_calendar_date(text: str) -> bool:
    if len(text) < 8 or not text[:8].isdigit():
        return False
    try:
        date(int(text[0:4]), int(text[4:6]), int(text[6:8]))
    except ValueError:
        return False
    return True


def format_offset(offset: str) -> str:
    """Pads an OFX offset like ``-3`` or ``+0530`` to ``-0300`` / ``+0530``."""
    match = OFFSET_RE.match(offset)
    if not match:
        raise MalformedDate(f"Unparseable UTC offset {offset=}")
    hours, minutes = match.groups()
    return "%+03d%02d" % (int(hours), int(minutes or 0))


def build_date(text: str) -> datetime:
    """Parses an OFX date-time into a timezone aware datetime.

    Input format is ``YYYYMMDD[HHMMSS][.XXX][[gmt offset[:tz name]]]``.

    Some banks export the day with a missing digit (``2025024`` for
    2025-02-04), so when the first eight characters are not a calendar date
    a ``0`` is inserted at index 6 before parsing. Without an offset
    annotation the time is taken to be UTC.

    Raises:
      MalformedDate: the digits or the offset cannot be parsed.
    """
    if not _is_calendar_date(text):
        if len(text) < 6:
            raise MalformedDate(f"Too short for an OFX date: {text=}")
        text = text[:6] + "0" + text[6:]

    match = OFFSET_ANNOTATION_RE.search(text)
    if match:
        offset = format_offset(match.group(1))
        text = text[: match.start()]
    else:
        offset = DEFAULT_OFFSET

    parts = DATE_TIME_RE.match(text)
    if not parts:
        raise MalformedDate(f"Unparseable OFX date {text=}")
    day, time, fraction = parts.groups()

    value = day + (time or "") + (f".{fraction[:6]}" if fraction else "")
    fmt = "%Y%m%d"
    if time:
        fmt += "%H%M%S" if len(time) == 6 else "%H%M"
    if fraction:
        fmt += ".%f"

    try:
        return datetime.strptime(f"{value} {offset}", f"{fmt} %z")
    except ValueError as e:
        raise MalformedDate(f"Invalid OFX date {value=} {offset=}") from e


def to_decimal(text: str | None) -> Decimal:
    """Converts locale formatted amounts like ``10,50`` or ``2,752.32``.

    A comma is read as the decimal separator unless a period follows it, in
    which case commas are thousands separators (and vice versa). Anything
    unparseable becomes ``0.0``.
    """
    amount = (text or "").strip()
    if "," in amount and "." in amount:
        if amount.rfind(",") > amount.rfind("."):
            amount = amount.replace(".", "").replace(",", ".")
        else:
            amount = amount.replace(",", "")
    else:
        amount = amount.replace(",", ".")

    try:
        value = Decimal(amount)
    except InvalidOperation:
        logger.debug(f"Could not parse amount {text=}, using 0.0")
        return Decimal("0.0")
    if not value.is_finite():
        logger.debug(f"Non-finite amount {text=}, using 0.0")
        return Decimal("0.0")
    return value


def in_pennies(amount: Decimal) -> int:
    return int(amount * 100)


def to_int(text: str | None) -> int:
    match = LEADING_INT_RE.match(text or "")
    return int(match.group(1)) if match else 0


def lookup(table: Mapping[str, E], code: str | None, unknown: E) -> E:
    return table.get((code or "").strip().upper(), unknown)
