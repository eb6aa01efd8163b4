#!/usr/bin/env python3
"""Tag path queries (name, `>`, descendant, `,`) over a parsed OFX 1.x SGML body."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from functools import lru_cache

import bs4

logger = logging.getLogger(__name__)

LEAF_RE = re.compile(r"<([A-Za-z0-9.]+)>([^<]+)")
STEP_RE = re.compile(r"\s*(>)?\s*([A-Za-z0-9.]+)\s*")

CHILD = ">"
DESCENDANT = " "

Nodes = bs4.Tag | Iterable[bs4.Tag]


def close_leaf_elements(body: str) -> str:
    def close(match: re.Match) -> str:
        tag, value = match.groups()
        end_tag = f"</{tag.lower()}>"
        following = match.string[match.end() : match.end() + len(end_tag)]
        if not value.strip() or following.lower() == end_tag:
            return match.group(0)
        return f"<{tag}>{value.strip()}</{tag}>"

    return LEAF_RE.sub(close, body)


def parse_body(body: str) -> bs4.BeautifulSoup:
    return bs4.BeautifulSoup(close_leaf_elements(body), "html.parser")


@lru_cache(maxsize=None)
def compile_selector(selector: str) -> tuple[tuple[tuple[str, str], ...], ...]:
    alternatives = []
    for alternative in selector.split(","):
        steps = []
        position = 0
        while position < len(alternative):
            match = STEP_RE.match(alternative, position)
            if not match or match.end() == position:
                raise ValueError(f"Unsupported selector {selector=}")
            combinator = CHILD if match.group(1) else DESCENDANT
            if not steps and combinator == CHILD:
                raise ValueError(f"Selector cannot start with '>': {selector=}")
            steps.append((combinator, match.group(2).lower()))
            position = match.end()
        if not steps:
            raise ValueError(f"Empty alternative in {selector=}")
        alternatives.append(tuple(steps))
    return tuple(alternatives)


def _as_list(nodes: Nodes) -> list[bs4.Tag]:
    if isinstance(nodes, bs4.Tag):
        return [nodes]
    return list(nodes)


def _match(root: bs4.Tag, steps: tuple[tuple[str, str], ...]) -> list[bs4.Tag]:
    current = [root]
    for combinator, name in steps:
        found = []
        for node in current:
            found.extend(node.find_all(name, recursive=combinator == DESCENDANT))
        current = found
    return current


def search(nodes: Nodes, selector: str) -> list[bs4.Tag]:
    """Returns the tags under ``nodes`` matching ``selector`` in document order."""
    alternatives = compile_selector(selector)
    results = []
    seen = set()
    for root in _as_list(nodes):
        matched = {id(tag) for steps in alternatives for tag in _match(root, steps)}
        for tag in root.find_all(True):
            if id(tag) in matched and id(tag) not in seen:
                seen.add(id(tag))
                results.append(tag)
    return results


def text(nodes: Nodes) -> str:
    return "".join(node.get_text().strip() for node in _as_list(nodes))
