#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************

import pytest
import yaml

from rulekeeper.orchestrator import (
    DocumentError,
    FetchResult,
    FetchStatus,
    RepositoryOrchestrator,
    RepositoryOutcome,
    load_document,
    write_document,
)
from rulekeeper.providers.github.exception import GitHubException

_REPO = {"name": "test-repo", "default_branch": "main", "archived": False}

_DEFAULT_BYPASS_ACTORS = [
    {"actor_id": 1, "actor_type": "OrganizationAdmin", "bypass_mode": "always"},
    {"actor_id": 5, "actor_type": "RepositoryRole", "bypass_mode": "always"},
    {"actor_id": 15368, "actor_type": "Integration", "bypass_mode": "always"},
]


def _status_check_rule(*contexts: str) -> dict:
    return {
        "type": "required_status_checks",
        "parameters": {
            "strict_required_status_checks_policy": True,
            "required_status_checks": [{"context": x} for x in contexts],
        },
    }


def _read_yaml(path) -> dict:
    with open(path) as file:
        return yaml.safe_load(file)


class TestRepositoryOrchestrator:
    @pytest.fixture(autouse=True)
    def setup(self, provider_factory, config_factory, repos_dir):
        self.provider_factory = provider_factory
        self.config_factory = config_factory
        self.document_file = repos_dir / "test-repo.yml"

    def create_orchestrator(self, provider, **configuration) -> RepositoryOrchestrator:
        return RepositoryOrchestrator(provider, "test-org", self.config_factory(**configuration))

    @pytest.mark.asyncio
    async def test_denylisted_checks_are_removed(self, default_branch_protection):
        provider = self.provider_factory(
            repositories={"test-repo": _REPO},
            protections={("test-repo", "main"): default_branch_protection},
        )

        outcome = await self.create_orchestrator(provider).process("test-repo")

        assert outcome == RepositoryOutcome.WRITTEN
        assert _read_yaml(self.document_file) == {
            "rulesets": [
                {
                    "name": "Default",
                    "target": "branch",
                    "enforcement": "active",
                    "conditions": {"ref_name": {"include": ["~DEFAULT_BRANCH"], "exclude": []}},
                    "rules": [_status_check_rule("ci/build")],
                    "bypass_actors": _DEFAULT_BYPASS_ACTORS,
                }
            ],
            "branches": [{"name": "default", "protection": None}],
        }

    @pytest.mark.asyncio
    async def test_only_denylisted_checks_write_nothing(self):
        protection = {"required_status_checks": {"strict": True, "contexts": ["policy-bot/verify"]}}
        provider = self.provider_factory(
            repositories={"test-repo": _REPO},
            protections={("test-repo", "main"): protection},
        )

        outcome = await self.create_orchestrator(provider).process("test-repo")

        assert outcome == RepositoryOutcome.NO_WRITE_NEEDED
        assert not self.document_file.exists()

    @pytest.mark.asyncio
    async def test_fetched_ruleset_with_translated_name_is_not_emitted(self, default_branch_protection):
        fetched_default = {
            "id": 1,
            "name": "Default",
            "source_type": "Repository",
            "source": "test-org/test-repo",
            "enforcement": "active",
            "conditions": {"ref_name": {"include": ["~DEFAULT_BRANCH"], "exclude": []}},
            "rules": [_status_check_rule("ci/outdated")],
            "bypass_actors": [],
        }
        fetched_release = {
            "id": 2,
            "name": "Release",
            "target": "branch",
            "source_type": "Repository",
            "source": "test-org/test-repo",
            "enforcement": "active",
            "node_id": "RRS_2",
            "conditions": {"ref_name": {"include": ["refs/heads/release"], "exclude": []}},
            "rules": [{"type": "deletion"}, _status_check_rule("ci/release", "VersionBot")],
            "bypass_actors": [],
        }

        provider = self.provider_factory(
            repositories={"test-repo": _REPO},
            protections={("test-repo", "main"): default_branch_protection},
            rulesets={"test-repo": [fetched_default, fetched_release]},
        )

        await self.create_orchestrator(provider).process("test-repo")

        rulesets = _read_yaml(self.document_file)["rulesets"]

        assert [x["name"] for x in rulesets] == ["Default", "Release"]
        assert rulesets[0]["rules"] == [_status_check_rule("ci/build")]
        assert rulesets[1] == {
            "name": "Release",
            "target": "branch",
            "enforcement": "active",
            "conditions": {"ref_name": {"include": ["refs/heads/release"], "exclude": []}},
            "rules": [{"type": "deletion"}, _status_check_rule("ci/release")],
            "bypass_actors": [],
        }

    @pytest.mark.asyncio
    async def test_fetched_reserved_ruleset_supersedes_branch(self):
        fetched_default = {
            "id": 1,
            "name": "Default",
            "enforcement": "active",
            "rules": [_status_check_rule("ci/build")],
        }

        provider = self.provider_factory(
            repositories={"test-repo": _REPO},
            rulesets={"test-repo": [fetched_default]},
        )

        await self.create_orchestrator(provider).process("test-repo")

        document = _read_yaml(self.document_file)
        assert [x["name"] for x in document["rulesets"]] == ["Default"]
        assert document["branches"] == [{"name": "default", "protection": None}]

    @pytest.mark.asyncio
    async def test_missing_protection_falls_back_to_default_branch(self, default_branch_protection):
        provider = self.provider_factory(
            repositories={"test-repo": _REPO},
            protections={("test-repo", "main"): default_branch_protection},
        )

        orchestrator = self.create_orchestrator(
            provider,
            branch_specs=[{"name": "Default"}, {"name": "Release", "source_ref_pattern": "release"}],
        )
        await orchestrator.process("test-repo")

        assert provider.protection_requests == ["main", "release", "main"]

        rulesets = _read_yaml(self.document_file)["rulesets"]
        assert [x["name"] for x in rulesets] == ["Default", "Release"]
        assert rulesets[1]["conditions"] == {"ref_name": {"include": ["refs/heads/release"], "exclude": []}}
        assert rulesets[1]["rules"] == [_status_check_rule("ci/build")]

    @pytest.mark.asyncio
    async def test_transient_errors_contribute_nothing(self):
        provider = self.provider_factory(
            repositories={"test-repo": _REPO},
            protections={("test-repo", "main"): GitHubException("/protection", 500, "server error")},
            rulesets={"test-repo": RuntimeError("failed retrieving rulesets")},
        )

        outcome = await self.create_orchestrator(provider).process("test-repo")

        assert outcome == RepositoryOutcome.NO_WRITE_NEEDED
        assert not self.document_file.exists()

    @pytest.mark.asyncio
    async def test_malformed_ruleset_contributes_nothing(self, default_branch_protection):
        malformed = {"id": 1, "name": "Odd", "conditions": {"ref_name": None}, "rules": []}
        valid = {
            "id": 2,
            "name": "Release",
            "enforcement": "active",
            "conditions": {"ref_name": {"include": ["refs/heads/release"], "exclude": []}},
            "rules": [_status_check_rule("ci/release")],
            "bypass_actors": [],
        }

        provider = self.provider_factory(
            repositories={"test-repo": _REPO},
            protections={("test-repo", "main"): default_branch_protection},
            rulesets={"test-repo": [malformed, valid]},
        )

        outcome = await self.create_orchestrator(provider).process("test-repo")

        assert outcome == RepositoryOutcome.WRITTEN
        assert [x["name"] for x in _read_yaml(self.document_file)["rulesets"]] == ["Default", "Release"]

    @pytest.mark.asyncio
    async def test_existing_settings_are_preserved(self, repos_dir, default_branch_protection):
        repos_dir.mkdir()
        self.document_file.write_text(
            "repository:\n  has_wiki: false\nrulesets:\n- name: Stale\nlabels:\n- name: bug\n"
        )

        provider = self.provider_factory(
            repositories={"test-repo": _REPO},
            protections={("test-repo", "main"): default_branch_protection},
        )

        outcome = await self.create_orchestrator(provider).process("test-repo")

        assert outcome == RepositoryOutcome.WRITTEN

        document = _read_yaml(self.document_file)
        assert list(document) == ["repository", "rulesets", "labels", "branches"]
        assert document["repository"] == {"has_wiki": False}
        assert document["labels"] == [{"name": "bug"}]
        assert [x["name"] for x in document["rulesets"]] == ["Default"]

    @pytest.mark.asyncio
    async def test_second_run_is_unchanged(self, default_branch_protection):
        provider = self.provider_factory(
            repositories={"test-repo": _REPO},
            protections={("test-repo", "main"): default_branch_protection},
        )
        orchestrator = self.create_orchestrator(provider)

        assert await orchestrator.process("test-repo") == RepositoryOutcome.WRITTEN
        assert await orchestrator.process("test-repo") == RepositoryOutcome.UNCHANGED

    @pytest.mark.asyncio
    async def test_archived_and_excluded_repositories_are_skipped(self):
        provider = self.provider_factory(
            repositories={
                "old-repo": {"name": "old-repo", "default_branch": "main", "archived": True},
                ".github": {"name": ".github", "default_branch": "main", "archived": False},
            },
        )
        orchestrator = self.create_orchestrator(provider)

        assert await orchestrator.process("old-repo") == RepositoryOutcome.SKIPPED_ARCHIVED
        assert await orchestrator.process(".github") == RepositoryOutcome.SKIPPED_EXCLUDED
        assert provider.protection_requests == []

    @pytest.mark.asyncio
    async def test_unreadable_document(self, repos_dir, default_branch_protection):
        repos_dir.mkdir()
        self.document_file.write_text("rulesets: [\n")

        provider = self.provider_factory(
            repositories={"test-repo": _REPO},
            protections={("test-repo", "main"): default_branch_protection},
        )

        with pytest.raises(DocumentError) as exc_info:
            await self.create_orchestrator(provider).process("test-repo")

        assert exc_info.value.path == str(self.document_file)

    @pytest.mark.asyncio
    async def test_graphql_branch_source(self):
        rules = [
            {
                "pattern": "main",
                "isAdminEnforced": True,
                "requiresApprovingReviews": False,
                "requiresStatusChecks": True,
                "requiredStatusCheckContexts": ["ci/build"],
                "requiresStrictStatusChecks": True,
            }
        ]

        provider = self.provider_factory(
            repositories={"test-repo": _REPO},
            protection_rules={"test-repo": rules},
        )

        await self.create_orchestrator(provider, branch_source="graphql").process("test-repo")

        assert provider.protection_requests == []
        assert _read_yaml(self.document_file) == {
            "branches": [
                {
                    "name": "default",
                    "protection": {
                        "enforce_admins": True,
                        "required_pull_request_reviews": None,
                        "restrictions": None,
                        "required_status_checks": {"strict": True, "contexts": ["ci/build"]},
                    },
                }
            ]
        }


class TestDocumentIO:
    @pytest.mark.asyncio
    async def test_missing_document(self, tmp_path):
        assert await load_document(str(tmp_path / "missing.yml")) is None

    @pytest.mark.asyncio
    async def test_empty_document(self, tmp_path):
        path = tmp_path / "empty.yml"
        path.write_text("")

        assert await load_document(str(path)) == {}

    @pytest.mark.asyncio
    async def test_non_mapping_document(self, tmp_path):
        path = tmp_path / "list.yml"
        path.write_text("- a\n- b\n")

        with pytest.raises(DocumentError):
            await load_document(str(path))

    @pytest.mark.asyncio
    async def test_write_keeps_key_order(self, tmp_path):
        path = tmp_path / "nested" / "repo.yml"

        await write_document(str(path), {"rulesets": [], "branches": [{"name": "default", "protection": None}]})

        assert path.read_text() == "rulesets: []\nbranches:\n- name: default\n  protection: null\n"


def test_fetch_result():
    assert FetchResult.of(None).status == FetchStatus.ABSENT
    assert FetchResult.of({"a": 1}).has_data is True

    error = RuntimeError("failed")
    result = FetchResult.transient_error(error)
    assert result.status == FetchStatus.TRANSIENT_ERROR
    assert result.error is error
    assert result.data is None
