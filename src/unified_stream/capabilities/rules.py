"""Ordered rule tables for capability classification.

Each capability is described by a list of ``Rule`` objects evaluated in
priority order; the first rule whose predicate matches decides the result.
Deny rules are simply rules with ``result=False`` placed ahead of the allow
rules they veto, so every vendor family rule can be tested on its own.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from unified_stream.capabilities.naming import ModelView

Predicate = Callable[[ModelView], bool]


@dataclass(frozen=True)
class Rule:
    """A single ``(predicate, result)`` pair."""

    name: str
    predicate: Predicate
    result: bool

    def matches(self, view: ModelView) -> bool:
        return self.predicate(view)


@dataclass(frozen=True)
class RuleTable:
    """Rules evaluated in order, first match wins."""

    name: str
    rules: Sequence[Rule]
    default: bool = False

    def decide(self, view: ModelView) -> Rule | None:
        """Return the rule that decides ``view``, or None for the default."""
        for rule in self.rules:
            if rule.matches(view):
                return rule
        return None

    def evaluate(self, view: ModelView) -> bool:
        rule = self.decide(view)
        return rule.result if rule is not None else self.default


def allow(name: str, predicate: Predicate) -> Rule:
    return Rule(name=name, predicate=predicate, result=True)


def deny(name: str, predicate: Predicate) -> Rule:
    return Rule(name=name, predicate=predicate, result=False)


def id_matches(pattern: str) -> Predicate:
    """Case-insensitive regex search against the normalized base id."""
    compiled = re.compile(pattern, re.IGNORECASE)
    return lambda view: compiled.search(view.base_id) is not None


def id_contains(*needles: str) -> Predicate:
    return lambda view: any(needle in view.base_id for needle in needles)


def id_startswith(*prefixes: str) -> Predicate:
    return lambda view: view.base_id.startswith(prefixes)


def id_in(ids: Iterable[str]) -> Predicate:
    frozen = frozenset(ids)
    return lambda view: view.base_id in frozen


def name_matches(pattern: str) -> Predicate:
    compiled = re.compile(pattern, re.IGNORECASE)
    return lambda view: bool(view.name) and compiled.search(view.name) is not None


def provider_is(*provider_ids: str) -> Predicate:
    return lambda view: view.provider_id in provider_ids


def provider_type_is(*types: str) -> Predicate:
    return lambda view: view.provider_type in types


def all_of(*predicates: Predicate) -> Predicate:
    return lambda view: all(predicate(view) for predicate in predicates)


def any_of(*predicates: Predicate) -> Predicate:
    return lambda view: any(predicate(view) for predicate in predicates)


def negate(predicate: Predicate) -> Predicate:
    return lambda view: not predicate(view)


def by_name(predicate: Predicate) -> Predicate:
    """Apply ``predicate`` to the model's display name instead of its id."""
    return lambda view: bool(view.name) and predicate(view.with_name_as_id())
