#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from jsonbender.core import BendingException  # type: ignore

from rulekeeper.logging import get_logger
from rulekeeper.models.branch import BranchDeclaration
from rulekeeper.models.ruleset import Ruleset

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

BOOKKEEPING_FIELDS: frozenset[str] = frozenset(
    {
        "id",
        "source",
        "source_type",
        "created_at",
        "updated_at",
        "node_id",
        "current_user_can_bypass",
        "_links",
    }
)

_logger = get_logger(__name__)


def sanitize(raw: Mapping[str, Any]) -> dict[str, Any]:
    """
    Returns a copy of a ruleset as returned by the GitHub API without its bookkeeping fields.
    """
    return {k: v for k, v in raw.items() if k not in BOOKKEEPING_FIELDS}


class RulesetSanitizer:
    """
    Prepares rulesets fetched from GitHub for the declarative document.

    reserved_names maps the names of configured branch specs to the name of the branch
    declaration that the respective ruleset supersedes.
    """

    def __init__(self, reserved_names: Mapping[str, str]):
        self._reserved_names = dict(reserved_names)

    def sanitize_all(self, raw_rulesets: Iterable[Mapping[str, Any]], translated_names: Iterable[str]) -> list[Ruleset]:
        """
        Converts fetched rulesets into model objects, skipping every ruleset
        whose name was already produced by the translation in the same run.
        A ruleset that cannot be converted is logged and contributes nothing.
        """
        skip_names = set(translated_names)
        result = []

        for raw in raw_rulesets:
            try:
                ruleset = Ruleset.from_provider_data(sanitize(raw))
            except BendingException as ex:
                _logger.warning("failed to convert fetched ruleset '%s': %s", raw.get("name", raw.get("id")), ex)
                continue

            if ruleset.name in skip_names:
                _logger.debug("skipping fetched ruleset '%s', superseded by translated ruleset", ruleset.name)
                continue

            result.append(ruleset)

        return result

    def superseded_branches(self, rulesets: Iterable[Ruleset]) -> list[BranchDeclaration]:
        """
        Returns an unprotected branch declaration for every active ruleset with a
        reserved name that requires status checks, since the legacy protection of
        that branch is superseded by the ruleset.
        """
        result: dict[str, BranchDeclaration] = {}

        for ruleset in rulesets:
            branch_name = self._reserved_names.get(ruleset.name)
            if branch_name is None:
                continue

            if ruleset.is_active and ruleset.has_status_check_rule():
                result[branch_name] = BranchDeclaration.unprotected(branch_name)

        return list(result.values())
