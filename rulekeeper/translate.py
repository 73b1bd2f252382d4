#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING, Any

from jsonbender import F, If, K, OptionalS, S, bend  # type: ignore

from rulekeeper.logging import get_logger
from rulekeeper.models.branch import DEFAULT_BRANCH_NAME, BranchDeclaration, BranchProtection, RequiredStatusChecks
from rulekeeper.models.document import BRANCHES_KEY, RULESETS_KEY
from rulekeeper.models.ruleset import (
    DEFAULT_BRANCH_TOKEN,
    PULL_REQUEST,
    BypassActor,
    PullRequestRule,
    RefCondition,
    RequiredStatusChecksRule,
    Rule,
    Ruleset,
    StatusCheck,
)

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

_logger = get_logger(__name__)


@dataclasses.dataclass(frozen=True)
class BranchSpec:
    """
    Maps the name of a ruleset to the legacy branch it is translated from and
    the ref pattern the resulting ruleset covers.

    An empty source pattern denotes the default branch of the repository.
    """

    name: str
    source_ref_pattern: str = ""
    include_pattern: str | None = None

    @classmethod
    def from_config(cls, data: Mapping[str, Any]) -> BranchSpec:
        if "name" not in data:
            raise RuntimeError(f"branch spec without 'name': {data}")

        return cls(
            name=data["name"],
            source_ref_pattern=data.get("source_ref_pattern") or "",
            include_pattern=data.get("include_pattern"),
        )

    def targets_default_branch(self, default_branch: str | None) -> bool:
        return self.source_ref_pattern == "" or self.source_ref_pattern == default_branch

    def source_branch(self, default_branch: str) -> str:
        return default_branch if self.targets_default_branch(default_branch) else self.source_ref_pattern

    def resolve_include_pattern(self, default_branch: str | None) -> str:
        if self.targets_default_branch(default_branch):
            return DEFAULT_BRANCH_TOKEN
        elif self.include_pattern is not None:
            return self.include_pattern
        else:
            return f"refs/heads/{self.source_ref_pattern}"

    def declaration_name(self, default_branch: str | None) -> str:
        return DEFAULT_BRANCH_NAME if self.targets_default_branch(default_branch) else self.source_ref_pattern


DEFAULT_BRANCH_SPECS: tuple[BranchSpec, ...] = (BranchSpec(name="Default"),)


_STATUS_CHECK_MAPPING = {
    "context": S("context"),
    "integration_id": OptionalS("app_id", default=None),
}

_PULL_REQUEST_MAPPING = {
    "type": K(PULL_REQUEST),
    "required_approving_review_count": OptionalS(
        "required_pull_request_reviews", "required_approving_review_count", default=0
    ),
    "dismiss_stale_reviews_on_push": OptionalS("required_pull_request_reviews", "dismiss_stale_reviews", default=False),
    "require_code_owner_review": OptionalS(
        "required_pull_request_reviews", "require_code_owner_reviews", default=False
    ),
    "require_last_push_approval": OptionalS(
        "required_pull_request_reviews", "require_last_push_approval", default=False
    ),
    "required_review_thread_resolution": OptionalS("required_conversation_resolution", "enabled", default=False),
}


def _status_checks_of(required_status_checks: Mapping[str, Any]) -> list[StatusCheck]:
    checks = required_status_checks.get("checks") or []
    if len(checks) > 0:
        return [StatusCheck(**bend(_STATUS_CHECK_MAPPING, check)) for check in checks]

    return [StatusCheck(context=context) for context in required_status_checks.get("contexts") or []]


class LegacyTranslator:
    """
    Translates the legacy protection of a branch as returned by the REST API
    into a repository ruleset.
    """

    def __init__(self, bypass_actors: Sequence[BypassActor], emit_pull_request_rule: bool = False):
        self._bypass_actors = list(bypass_actors)
        self._emit_pull_request_rule = emit_pull_request_rule

    def translate(
        self,
        protection: Mapping[str, Any] | None,
        branch_spec: BranchSpec,
        default_branch: str | None = None,
    ) -> Ruleset:
        rules: list[Rule] = []

        if protection is not None:
            if self._emit_pull_request_rule and protection.get("required_pull_request_reviews") is not None:
                rules.append(PullRequestRule(**bend(_PULL_REQUEST_MAPPING, protection)))

            required_status_checks = protection.get("required_status_checks")
            if required_status_checks is not None:
                # the strict policy is always enforced for translated rulesets
                rules.append(RequiredStatusChecksRule.of(_status_checks_of(required_status_checks), strict_policy=True))

        ruleset = Ruleset(
            name=branch_spec.name,
            target="branch",
            enforcement="active",
            conditions=RefCondition(include=[branch_spec.resolve_include_pattern(default_branch)], exclude=[]),
            rules=rules,
            bypass_actors=list(self._bypass_actors),
        )

        _logger.trace("translated protection of '%s' into ruleset: %s", branch_spec.name, ruleset)
        return ruleset


def _graphql_protection_mapping() -> dict[str, Any]:
    return {
        "enforce_admins": OptionalS("isAdminEnforced", default=False) >> F(bool),
        "required_pull_request_reviews": If(
            OptionalS("requiresApprovingReviews", default=False) == K(True),
            F(lambda x: {"required_approving_review_count": x.get("requiredApprovingReviewCount")}),
            K(None),
        ),
        "restrictions": K(None),
        "required_status_checks": If(
            OptionalS("requiresStatusChecks", default=False) == K(True),
            F(
                lambda x: RequiredStatusChecks(
                    strict=bool(x.get("requiresStrictStatusChecks")),
                    contexts=list(x.get("requiredStatusCheckContexts") or []),
                )
            ),
            K(None),
        ),
    }


def branch_declaration_from_rule(rule: Mapping[str, Any], default_branch: str) -> BranchDeclaration:
    """
    Maps a branchProtectionRule node as returned by the GraphQL API to a branch declaration.
    """
    pattern = rule["pattern"]
    name = DEFAULT_BRANCH_NAME if pattern == default_branch else pattern
    return BranchDeclaration(name=name, protection=BranchProtection(**bend(_graphql_protection_mapping(), rule)))


def _unique_name(name: str, index: int, used_names: set[str]) -> str:
    # ruleset names must be unique within a repository
    candidate = name
    suffix = index + 1
    while candidate in used_names:
        candidate = f"{name} {suffix}"
        suffix += 1
    return candidate


def upgrade_document(doc: Mapping[str, Any]) -> dict[str, Any] | None:
    """
    Upgrades the rulesets of a document from the branch protection oriented layout
    into the evaluated ruleset layout.

    Returns the computed branches and rulesets, or None if the document has no rulesets
    and thus needs no upgrade. The remaining keys of the document are not part of the result.
    """
    raw_rulesets = doc.get(RULESETS_KEY) or []
    if len(raw_rulesets) == 0:
        return None

    upgraded_rulesets = []
    used_names: set[str] = set()
    first_contexts: list[str] = []

    for index, raw_ruleset in enumerate(raw_rulesets):
        rules = [Rule.from_data(rule) for rule in raw_ruleset.get("rules") or []]
        contexts = [
            context for rule in rules if isinstance(rule, RequiredStatusChecksRule) for context in rule.contexts
        ]

        if index == 0:
            first_contexts = contexts
            name = "Default"
        else:
            name = raw_ruleset.get("name") or f"Ruleset {index + 1}"

        name = _unique_name(name, index, used_names)
        used_names.add(name)

        raw_conditions = raw_ruleset.get("conditions") or {}
        conditions = RefCondition.from_model_data(raw_conditions["ref_name"]) if "ref_name" in raw_conditions else None

        upgraded_rulesets.append(
            Ruleset(
                name=name,
                target=raw_ruleset.get("target") or "branch",
                enforcement="evaluate",
                conditions=conditions,
                rules=[
                    PullRequestRule(type=PULL_REQUEST),
                    RequiredStatusChecksRule.of([StatusCheck(context=context) for context in contexts]),
                ],
                bypass_actors=[BypassActor.from_model_data(actor) for actor in raw_ruleset.get("bypass_actors") or []],
            )
        )

    default_branch = BranchDeclaration(
        name=DEFAULT_BRANCH_NAME,
        protection=BranchProtection(
            enforce_admins=False,
            required_pull_request_reviews=None,
            restrictions=None,
            required_status_checks=RequiredStatusChecks(strict=True, contexts=first_contexts),
        ),
    )

    return {
        BRANCHES_KEY: [default_branch.to_model_dict()],
        RULESETS_KEY: [ruleset.to_model_dict() for ruleset in upgraded_rulesets],
    }
