#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************

from io import StringIO
from typing import Any

import pytest

from rulekeeper.config import RuleKeeperConfig
from rulekeeper.providers.github.stats import RequestStatistics
from rulekeeper.utils import IndentingPrinter


class FakeProvider:
    """
    An in-memory stand-in for the GitHubProvider.

    A value of type Exception configured for a branch protection or the rulesets
    of a repository is raised instead of being returned.
    """

    def __init__(
        self,
        repositories: dict[str, dict[str, Any]] | None = None,
        protections: dict[tuple[str, str], Any] | None = None,
        rulesets: dict[str, Any] | None = None,
        protection_rules: dict[str, list[dict[str, Any]]] | None = None,
    ):
        self.repositories = repositories or {}
        self.protections = protections or {}
        self.rulesets = rulesets or {}
        self.protection_rules = protection_rules or {}
        self.statistics = RequestStatistics()
        self.protection_requests: list[str] = []
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exception_type, exception_value, exception_traceback):
        await self.close()

    async def close(self) -> None:
        self.closed = True

    async def get_repository(self, org_id: str, repo_name: str) -> dict[str, Any]:
        if repo_name not in self.repositories:
            raise RuntimeError(f"failed retrieving data for repo '{org_id}/{repo_name}'")
        return self.repositories[repo_name]

    async def get_branch_protection(self, org_id: str, repo_name: str, branch_name: str) -> dict[str, Any] | None:
        self.protection_requests.append(branch_name)
        value = self.protections.get((repo_name, branch_name))
        if isinstance(value, Exception):
            raise value
        return value

    async def list_rulesets(self, org_id: str, repo_name: str, includes_parents: bool = False) -> list[dict[str, Any]]:
        value = self.rulesets.get(repo_name, [])
        if isinstance(value, Exception):
            raise value
        return [{"id": x["id"], "name": x["name"]} for x in value]

    async def get_ruleset(self, org_id: str, repo_name: str, ruleset_id: str) -> dict[str, Any] | None:
        for ruleset in self.rulesets.get(repo_name, []):
            if str(ruleset["id"]) == ruleset_id:
                return ruleset
        return None

    async def iter_org_repositories(self, org_id: str):
        names = list(self.repositories)
        for i in range(0, len(names), 2):
            yield [{"name": name} for name in names[i : i + 2]]

    async def get_branch_protection_rules(self, org_id: str, repo_name: str) -> list[dict[str, Any]]:
        return self.protection_rules.get(repo_name, [])


@pytest.fixture()
def provider_factory():
    return FakeProvider


@pytest.fixture()
def output():
    return StringIO()


@pytest.fixture()
def printer(output):
    return IndentingPrinter(output)


@pytest.fixture()
def repos_dir(tmp_path):
    return tmp_path / "repos"


@pytest.fixture()
def config_factory(tmp_path, repos_dir):
    def create(**configuration: Any) -> RuleKeeperConfig:
        return RuleKeeperConfig.from_dict({"repos_dir": str(repos_dir), **configuration}, str(tmp_path))

    return create


@pytest.fixture()
def default_branch_protection():
    return {
        "url": "https://api.github.com/repos/test-org/test-repo/branches/main/protection",
        "required_status_checks": {
            "strict": False,
            "contexts": ["ci/build", "policy-bot/verify"],
        },
        "enforce_admins": {"enabled": False},
    }
