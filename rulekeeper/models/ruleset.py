#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING, Any, ClassVar

from jsonbender import F, Forall, K, OptionalS, S  # type: ignore

from rulekeeper.models import ModelObject
from rulekeeper.utils import UNSET, is_set_and_valid, is_unset

if TYPE_CHECKING:
    from collections.abc import Mapping

DEFAULT_BRANCH_TOKEN = "~DEFAULT_BRANCH"

REQUIRED_STATUS_CHECKS = "required_status_checks"
PULL_REQUEST = "pull_request"


def _without_keys(keys: set[str]):
    return F(lambda x: {k: v for k, v in x.items() if k not in keys} if isinstance(x, dict) else {})


@dataclasses.dataclass
class StatusCheck(ModelObject):
    """
    A single required status check. Checks are identified by their context,
    the integration id is only present when the check is bound to a specific app.
    """

    context: str
    integration_id: int | None = None

    def to_model_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"context": self.context}
        if self.integration_id is not None:
            result["integration_id"] = self.integration_id
        return result


@dataclasses.dataclass
class BypassActor(ModelObject):
    actor_id: int | None
    actor_type: str
    bypass_mode: str = "always"


@dataclasses.dataclass
class RefCondition(ModelObject):
    include: list[str] = dataclasses.field(default_factory=list)
    exclude: list[str] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class Rule(ModelObject):
    """
    Base class for a rule contained in a ruleset. The rule types that are inspected
    have dedicated subclasses, all other types are kept as OpaqueRule.
    """

    type: str

    @staticmethod
    def from_data(data: Mapping[str, Any]) -> Rule:
        match data.get("type"):
            case "required_status_checks":
                return RequiredStatusChecksRule.from_model_data(data)
            case "pull_request":
                return PullRequestRule.from_model_data(data)
            case _:
                return OpaqueRule.from_model_data(data)

    def to_model_dict(self) -> dict[str, Any]:
        return {"type": self.type}


@dataclasses.dataclass
class RequiredStatusChecksRule(Rule):
    strict_policy: bool
    checks: list[StatusCheck]
    extra_parameters: dict[str, Any] = dataclasses.field(default_factory=dict)

    _known_parameters: ClassVar[set[str]] = {"strict_required_status_checks_policy", "required_status_checks"}

    @classmethod
    def of(cls, checks: list[StatusCheck], strict_policy: bool = True) -> RequiredStatusChecksRule:
        return cls(type=REQUIRED_STATUS_CHECKS, strict_policy=strict_policy, checks=checks)

    @property
    def contexts(self) -> list[str]:
        return [check.context for check in self.checks]

    def with_checks(self, checks: list[StatusCheck]) -> RequiredStatusChecksRule:
        return dataclasses.replace(self, checks=list(checks))

    @classmethod
    def get_mapping_from_model(cls) -> dict[str, Any]:
        return {
            "type": K(REQUIRED_STATUS_CHECKS),
            "strict_policy": OptionalS("parameters", "strict_required_status_checks_policy", default=False),
            "checks": OptionalS("parameters", "required_status_checks", default=[])
            >> Forall(lambda x: StatusCheck.from_model_data(x)),
            "extra_parameters": OptionalS("parameters", default={}) >> _without_keys(cls._known_parameters),
        }

    def to_model_dict(self) -> dict[str, Any]:
        parameters: dict[str, Any] = {
            "strict_required_status_checks_policy": self.strict_policy,
            "required_status_checks": [check.to_model_dict() for check in self.checks],
        }
        parameters.update(self.extra_parameters)
        return {"type": self.type, "parameters": parameters}


@dataclasses.dataclass
class PullRequestRule(Rule):
    required_approving_review_count: int = 0
    dismiss_stale_reviews_on_push: bool = False
    require_code_owner_review: bool = False
    require_last_push_approval: bool = False
    required_review_thread_resolution: bool = False
    extra_parameters: dict[str, Any] = dataclasses.field(default_factory=dict)

    _parameter_keys: ClassVar[list[str]] = [
        "required_approving_review_count",
        "dismiss_stale_reviews_on_push",
        "require_code_owner_review",
        "require_last_push_approval",
        "required_review_thread_resolution",
    ]

    @classmethod
    def get_mapping_from_model(cls) -> dict[str, Any]:
        mapping: dict[str, Any] = {"type": K(PULL_REQUEST)}
        for key in cls._parameter_keys:
            mapping[key] = OptionalS("parameters", key, default=UNSET)
        mapping["extra_parameters"] = OptionalS("parameters", default={}) >> _without_keys(set(cls._parameter_keys))
        return mapping

    def to_model_dict(self) -> dict[str, Any]:
        parameters = {key: self.__getattribute__(key) for key in self._parameter_keys}
        parameters.update(self.extra_parameters)
        return {"type": self.type, "parameters": parameters}


@dataclasses.dataclass
class OpaqueRule(Rule):
    """
    A rule of a type that is not inspected, its parameters are kept verbatim.
    """

    parameters: Any = UNSET

    @classmethod
    def get_mapping_from_model(cls) -> dict[str, Any]:
        return {
            "type": S("type"),
            "parameters": OptionalS("parameters", default=UNSET),
        }

    def to_model_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.type}
        if not is_unset(self.parameters):
            result["parameters"] = self.parameters
        return result


@dataclasses.dataclass
class Ruleset(ModelObject):
    """
    Represents a repository ruleset as stored in the declarative document.
    """

    name: str
    target: str = "branch"
    enforcement: str = "active"
    conditions: RefCondition | None = None
    rules: list[Rule] = dataclasses.field(default_factory=list)
    bypass_actors: list[BypassActor] = dataclasses.field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.enforcement == "active"

    def status_check_rules(self) -> list[RequiredStatusChecksRule]:
        return [rule for rule in self.rules if isinstance(rule, RequiredStatusChecksRule)]

    def has_status_check_rule(self) -> bool:
        return len(self.status_check_rules()) > 0

    def with_rules(self, rules: list[Rule]) -> Ruleset:
        return dataclasses.replace(self, rules=list(rules))

    @classmethod
    def get_mapping_from_model(cls) -> dict[str, Any]:
        return {
            "name": S("name"),
            "target": OptionalS("target", default=UNSET),
            "enforcement": OptionalS("enforcement", default=UNSET),
            "conditions": OptionalS("conditions", default=None)
            >> F(lambda x: RefCondition.from_model_data(x["ref_name"]) if x and "ref_name" in x else None),
            "rules": OptionalS("rules", default=[]) >> F(lambda x: [Rule.from_data(rule) for rule in x or []]),
            "bypass_actors": OptionalS("bypass_actors", default=[])
            >> F(lambda x: [BypassActor.from_model_data(actor) for actor in x or []]),
        }

    def to_model_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "target": self.target,
            "enforcement": self.enforcement,
        }

        if is_set_and_valid(self.conditions):
            result["conditions"] = {"ref_name": self.conditions.to_model_dict()}  # type: ignore

        result["rules"] = [rule.to_model_dict() for rule in self.rules]
        result["bypass_actors"] = [actor.to_model_dict() for actor in self.bypass_actors]
        return result
