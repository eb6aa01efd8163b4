#!/usr/bin/env python3

from datetime import date
from decimal import Decimal
from textwrap import dedent

import pytest
import yaml

from beancount_import_ofx import processors
from beancount_import_ofx.models import TXN
from beancount_import_ofx.utils import flatten_dict


def make_txn(**kwargs) -> TXN:
    values = dict(
        date=date(2020, 1, 1),
        payee="payee",
        narration="narration",
        name="name",
        memo="memo",
        amount=Decimal("-1.23"),
        currency="USD",
        fit_id="fit_id",
        check_number="",
        ref_number="",
        posting_type="DEBIT",
    )
    values.update(kwargs)
    return TXN(**values)


@pytest.mark.parametrize(
    "file_content",
    [
        """
    Expenses:
      Housing:
        Rent:
          - payee: Landlord
    """,
        """
    Expenses:
      Housing:
        Rent:
          - payee: Landlord
            memo: rent
    """,
        """
    Expenses:
      Housing:
        Rent:
          - check_number: '^0012'
    """,
        """
    Expenses:
      Housing:
        Rent:
          - payee: Landlord
            memo: something else
          - posting_type: CHECK
    """,
    ],
)
def test_account_processor(file_content):
    rule_sets = flatten_dict(yaml.safe_load(file_content))
    account_processor = processors.AccountProcessor(rule_sets=rule_sets)

    affected_txn = make_txn(
        payee="Mr Landlord and Mrs Landlordess",
        memo="rent for march",
        check_number="001234",
        posting_type="CHECK",
    )

    augmented_txn = account_processor(affected_txn)
    assert augmented_txn.induced_postings[0].account == "Expenses:Housing:Rent"
    assert augmented_txn.induced_postings[0].flag == "!"
    assert affected_txn.induced_postings == []

    unaffected_txn = make_txn(payee="someone else", memo="something special")
    still_unaffected_txn = account_processor(unaffected_txn)
    assert still_unaffected_txn == unaffected_txn


@pytest.mark.parametrize(
    "file_content, expected_meta",
    [
        (
            """
            zero:
                something:
                    - payee: 'payee_affected'
            """,
            {"zero": "SOMETHING"},
        ),
        (
            """
            one:
                something:
                    - payee: 'something that doesnt match'
                      memo: 'memo_affected'
            """,
            {},
        ),
        (
            """
            two:
                - name: '(?P<meta>name)_affected'
            """,
            {"two": "NAME"},
        ),
        (
            """
            three:
                - memo: '(?P<meta>memo)_affected'
                  name: '(?P<meta>name_affected)'
            """,
            {"three": "MEMO NAME_AFFECTED"},
        ),
        (
            """
            four:
                - payee: '(payee)_affected'
            """,
            {},
        ),
    ],
)
def test_meta_processor_metatags(file_content, expected_meta):
    rule_sets = flatten_dict(yaml.safe_load(dedent(file_content)))
    meta_processor = processors.MetaProcessor(rule_sets=rule_sets)

    txn = make_txn(payee="payee_affected", memo="memo_affected", name="name_affected")
    augmented_txn = meta_processor(txn)
    assert augmented_txn.meta == expected_meta

    unaffected_txn = make_txn()
    assert meta_processor(unaffected_txn) == unaffected_txn


@pytest.mark.parametrize(
    "file_content, expected_attrs",
    [
        (
            """
            zero:
                - payee: '(?P<payee>payee)_affected'
            """,
            {"payee": "payee"},
        ),
        (
            """
            one:
                - memo: 'memo_(?P<narration>affected)'
            """,
            {"narration": "affected"},
        ),
        (
            """
            two:
                - payee: '(?P<narration>payee)_affected'
                  memo: '(?P<narration>memo)_affected'
            """,
            {"narration": "payee memo"},
        ),
        (
            """
            three:
                - iban: '(?P<narration>payee)_affected'
            """,
            None,
        ),
        (
            """
            four:
                - payee: '(?P<nrrtn>payee)_affected'
            """,
            None,
        ),
    ],
)
def test_meta_processor_txnattributes(file_content, expected_attrs):
    rule_sets = flatten_dict(yaml.safe_load(dedent(file_content)))
    meta_processor = processors.MetaProcessor(rule_sets=rule_sets)

    txn = make_txn(payee="payee_affected", memo="memo_affected ")

    if expected_attrs is None:
        with pytest.raises(expected_exception=ValueError):
            meta_processor(txn)
        return

    augmented_txn = meta_processor(txn)
    assert expected_attrs.items() <= augmented_txn.__dict__.items()


def test_meta_processor_rejects_deep_nesting():
    rule_sets = {"a:b:c": [{"payee": "payee"}]}
    with pytest.raises(ValueError):
        processors.MetaProcessor(rule_sets=rule_sets)(make_txn())


def test_from_yaml(tmp_path):
    rules = tmp_path / "rules.yaml"
    rules.write_text(
        dedent(
            """
            Expenses:
              Groceries:
                - name: 'market'
            """
        )
    )
    account_processor = processors.AccountProcessor.from_yaml(rules)
    assert account_processor.rule_sets == {"Expenses:Groceries": [{"name": "market"}]}

    txn = account_processor(make_txn(name="SUPERMARKET 42"))
    assert [p.account for p in txn.induced_postings] == ["Expenses:Groceries"]


@pytest.mark.parametrize(
    "file_content",
    [
        "Expenses: not a list",
        "Expenses:\n  - not a dict",
        "Expenses:\n  - name: 42",
    ],
)
def test_from_yaml_type_errors(tmp_path, file_content):
    rules = tmp_path / "rules.yaml"
    rules.write_text(file_content)
    with pytest.raises(TypeError):
        processors.AccountProcessor.from_yaml(rules)
