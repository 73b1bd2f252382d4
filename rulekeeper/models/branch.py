#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************

from __future__ import annotations

import dataclasses
from typing import Any

from jsonbender import F, OptionalS, S  # type: ignore

from rulekeeper.models import ModelObject

DEFAULT_BRANCH_NAME = "default"


@dataclasses.dataclass
class RequiredStatusChecks(ModelObject):
    strict: bool = True
    contexts: list[str] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class BranchProtection(ModelObject):
    """
    The legacy protection settings of a branch as kept in the declarative document.
    """

    enforce_admins: bool = False
    required_pull_request_reviews: dict[str, Any] | None = None
    restrictions: dict[str, Any] | None = None
    required_status_checks: RequiredStatusChecks | None = None

    @classmethod
    def get_mapping_from_model(cls) -> dict[str, Any]:
        mapping = super().get_mapping_from_model()
        mapping["required_status_checks"] = OptionalS("required_status_checks", default=None) >> F(
            lambda x: RequiredStatusChecks.from_model_data(x) if x is not None else None
        )
        return mapping


@dataclasses.dataclass
class BranchDeclaration(ModelObject):
    """
    A branch entry of the declarative document. A protection of None states that the
    branch is intentionally not protected by legacy means, which is different to the
    branch not being listed at all.
    """

    name: str
    protection: BranchProtection | None = None

    @classmethod
    def unprotected(cls, name: str) -> BranchDeclaration:
        return cls(name=name, protection=None)

    @classmethod
    def get_mapping_from_model(cls) -> dict[str, Any]:
        return {
            "name": S("name"),
            "protection": OptionalS("protection", default=None)
            >> F(lambda x: BranchProtection.from_model_data(x) if x is not None else None),
        }

    def to_model_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "protection": self.protection.to_model_dict() if self.protection is not None else None,
        }
