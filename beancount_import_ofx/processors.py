#!/usr/bin/env python3

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Sequence
from copy import deepcopy

import yaml
from beancount.core import flags

from beancount_import_ofx.models import TXN, InducedPosting
from beancount_import_ofx.utils import flatten_dict

logger = logging.getLogger(__name__)

MATCHABLE_FIELDS = (
    "payee",
    "narration",
    "name",
    "memo",
    "fit_id",
    "check_number",
    "ref_number",
    "posting_type",
)


class TXNHook(ABC):
    """Applies regex rule sets to transactions read from an OFX statement.

    A rule set maps an identifier (an account, or a meta key) to a list of
    rules. A rule is a mapping of TXN field name to regex and matches when all
    of its regexes match.
    """

    def __init__(self, rule_sets: dict[str, Sequence[dict[str, str]]]) -> None:
        self.rule_sets = rule_sets

    @classmethod
    def from_yaml(cls, fname) -> TXNHook:
        with open(fname) as f:
            rule_sets = flatten_dict(yaml.safe_load(f))

        for identifier, rule_set in rule_sets.items():
            if not isinstance(identifier, str):
                raise TypeError(f"{identifier=} was not of type `str`")
            if not isinstance(rule_set, list):
                raise TypeError(f"{rule_set=} for {identifier=} was not of type `list`")
            for rule in rule_set:
                if not isinstance(rule, dict):
                    raise TypeError(f"{rule=} was not of type `dict`")
                for field_name, regex in rule.items():
                    if not isinstance(field_name, str):
                        raise TypeError(f"{field_name=} was not of type `str`")
                    if not isinstance(regex, str):
                        raise TypeError(f"{regex=} was not of type `str`")

        return cls(rule_sets=rule_sets)

    def __call__(self, original_txn: TXN) -> TXN:
        txn = deepcopy(original_txn)
        for identifier, rule_set in self.rule_sets.items():
            for rule in rule_set:
                matches = self.match(rule, txn)
                if matches is not None:
                    logger.debug(f"{identifier=} matched {txn.fit_id=}")
                    self.augment(identifier=identifier, matches=matches, txn=txn)
        return txn

    @staticmethod
    def match(rule: dict[str, str], txn: TXN) -> list[re.Match] | None:
        matches = []
        for field_name, pattern in rule.items():
            if field_name not in MATCHABLE_FIELDS:
                raise ValueError(
                    f"You specified a condition identifier {field_name} "
                    "in your yaml, that is not in the list of allowed fields: "
                    f"{MATCHABLE_FIELDS}"
                )
            match = re.search(
                pattern=pattern,
                string=getattr(txn, field_name),
                flags=re.IGNORECASE,
            )
            if not match:
                return None
            matches.append(match)
        return matches

    @abstractmethod
    def augment(self, identifier: str, matches: list[re.Match], txn: TXN) -> None:
        ...


class AccountProcessor(TXNHook):
    def augment(self, identifier: str, matches: list[re.Match], txn: TXN) -> None:
        posting = InducedPosting(flag=flags.FLAG_WARNING, account=identifier)
        txn.induced_postings.append(posting)


class MetaProcessor(TXNHook):
    """Sets ``txn.meta[key]`` from rules.

    ``key`` rule sets take the value from a ``(?P<meta>...)`` group;
    ``key:value`` rule sets use ``value``.
    """

    def augment(self, identifier: str, matches: list[re.Match], txn: TXN) -> None:
        key, _, value = identifier.partition(":")
        if ":" in value:
            raise ValueError(
                f"Rule set {identifier=} is nested too deep, "
                "expected meta_key or meta_key:meta_value"
            )

        if value:
            meta_values = [value]
        else:
            meta_values = [
                match.group("meta") for match in matches if "meta" in match.groupdict()
            ]

        fields = defaultdict(list)
        for match in matches:
            for field_name, group in match.groupdict().items():
                if field_name != "meta" and group is not None:
                    fields[field_name].append(group.strip())
        for field_name, values in fields.items():
            if field_name not in MATCHABLE_FIELDS:
                raise ValueError(
                    f"A regex in your yaml contained a named group '{field_name}', "
                    f"which is not in the list of possible names: {MATCHABLE_FIELDS}"
                )
            setattr(txn, field_name, " ".join(values))

        if key and meta_values:
            txn.meta[key] = " ".join(meta_values).upper()
