#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************

from __future__ import annotations

from typing import TYPE_CHECKING

from rulekeeper.logging import get_logger
from rulekeeper.models.ruleset import RequiredStatusChecksRule

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from rulekeeper.models.ruleset import Rule, Ruleset, StatusCheck

DEFAULT_DENYLIST: frozenset[str] = frozenset({"policy-bot", "VersionBot", "ResinCI"})

_VARIANT_ADDITIONS: dict[str, frozenset[str]] = {
    "default": frozenset(),
    "flowzone": frozenset({"Flowzone"}),
}

_logger = get_logger(__name__)


def denylist_for_variant(variant: str, base: Iterable[str] = DEFAULT_DENYLIST) -> frozenset[str]:
    additions = _VARIANT_ADDITIONS.get(variant)
    if additions is None:
        raise RuntimeError(f"unknown policy variant '{variant}', expected one of {sorted(_VARIANT_ADDITIONS)}")

    return frozenset(base) | additions


class NoiseFilter:
    """
    Removes status checks owned by bots or otherwise transient from rules.

    A check is considered noise if its context starts with any of the denylisted prefixes.
    Filtering is deterministic and idempotent, the input is never modified.
    """

    def __init__(self, denylist: Iterable[str] = DEFAULT_DENYLIST):
        self._denylist = tuple(sorted(set(denylist)))

    @property
    def denylist(self) -> tuple[str, ...]:
        return self._denylist

    def is_noise(self, check: StatusCheck) -> bool:
        return check.context.startswith(self._denylist)

    def filter(self, rules: Sequence[Rule]) -> list[Rule]:
        result: list[Rule] = []

        for rule in rules:
            if isinstance(rule, RequiredStatusChecksRule):
                checks = [check for check in rule.checks if not self.is_noise(check)]
                if len(checks) == 0:
                    _logger.debug("dropping status check rule, all checks are denylisted: %s", rule.contexts)
                    continue

                result.append(rule.with_checks(checks))
            else:
                result.append(rule)

        return result

    def filter_ruleset(self, ruleset: Ruleset) -> Ruleset | None:
        rules = self.filter(ruleset.rules)
        if len(rules) == 0:
            _logger.debug("dropping ruleset '%s' without remaining rules", ruleset.name)
            return None

        return ruleset.with_rules(rules)

    def filter_rulesets(self, rulesets: Iterable[Ruleset]) -> list[Ruleset]:
        result = []
        for ruleset in rulesets:
            filtered = self.filter_ruleset(ruleset)
            if filtered is not None:
                result.append(filtered)
        return result
