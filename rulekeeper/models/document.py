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

from rulekeeper.models import ModelObject
from rulekeeper.models.branch import BranchDeclaration
from rulekeeper.models.ruleset import Ruleset

RULESETS_KEY = "rulesets"
BRANCHES_KEY = "branches"


@dataclasses.dataclass
class RepoDocument(ModelObject):
    """
    The part of the declarative document of a single repository that is computed
    from its live settings. Other top-level keys are carried over when merging.
    """

    rulesets: list[Ruleset] = dataclasses.field(default_factory=list)
    branches: list[BranchDeclaration] = dataclasses.field(default_factory=list)

    def to_model_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}

        if len(self.rulesets) > 0:
            result[RULESETS_KEY] = [ruleset.to_model_dict() for ruleset in self.rulesets]

        if len(self.branches) > 0:
            result[BRANCHES_KEY] = [branch.to_model_dict() for branch in self.branches]

        return result
