#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************

import pytest
import yaml

from rulekeeper.operations.upgrade import UpgradeOperation

_LEGACY_DOCUMENT = """\
repository:
  description: test repository
rulesets:
- name: Main
  target: branch
  enforcement: active
  conditions:
    ref_name:
      include:
      - ~DEFAULT_BRANCH
      exclude: []
  rules:
  - type: required_status_checks
    parameters:
      strict_required_status_checks_policy: false
      required_status_checks:
      - context: ci/build
        integration_id: 15368
      - context: ci/lint
  bypass_actors:
  - actor_id: 5
    actor_type: RepositoryRole
    bypass_mode: always
"""


class TestUpgradeOperation:
    @pytest.fixture(autouse=True)
    def setup(self, config_factory, printer, output, repos_dir):
        self.config = config_factory()
        self.printer = printer
        self.output = output
        self.repos_dir = repos_dir

    def create_operation(self, repos_dir=None) -> UpgradeOperation:
        operation = UpgradeOperation(repos_dir)
        operation.init(self.config, self.printer)
        return operation

    @pytest.mark.asyncio
    async def test_upgrade_documents(self):
        self.repos_dir.mkdir()
        (self.repos_dir / "legacy.yml").write_text(_LEGACY_DOCUMENT)
        (self.repos_dir / "plain.yml").write_text("repository:\n  has_wiki: false\n")
        (self.repos_dir / "notes.txt").write_text("not a document")

        operation = self.create_operation()
        operation.pre_execute()

        assert await operation.execute() == 0

        upgraded = yaml.safe_load((self.repos_dir / "legacy.yml").read_text())

        assert list(upgraded) == ["repository", "rulesets", "branches"]
        assert upgraded["repository"] == {"description": "test repository"}
        assert upgraded["branches"][0]["protection"]["required_status_checks"] == {
            "strict": True,
            "contexts": ["ci/build", "ci/lint"],
        }

        ruleset = upgraded["rulesets"][0]
        assert ruleset["name"] == "Default"
        assert ruleset["enforcement"] == "evaluate"
        assert [x["type"] for x in ruleset["rules"]] == ["pull_request", "required_status_checks"]
        assert ruleset["rules"][1]["parameters"]["required_status_checks"] == [
            {"context": "ci/build"},
            {"context": "ci/lint"},
        ]

        assert (self.repos_dir / "plain.yml").read_text() == "repository:\n  has_wiki: false\n"

        output = self.output.getvalue()
        assert f"Successfully updated file: {self.repos_dir / 'legacy.yml'}" in output
        assert "Upgraded 1 of 2 document(s), 0 failed." in output

    @pytest.mark.asyncio
    async def test_invalid_document_is_reported(self, tmp_path):
        documents_dir = tmp_path / "documents"
        documents_dir.mkdir()
        (documents_dir / "a-broken.yml").write_text("rulesets: [\n")
        (documents_dir / "b-legacy.yml").write_text(_LEGACY_DOCUMENT)

        operation = self.create_operation(str(documents_dir))

        assert await operation.execute() == 1

        output = self.output.getvalue()
        assert "error processing file" in output
        assert "a-broken.yml" in output
        assert "Upgraded 1 of 2 document(s), 1 failed." in output

        upgraded = yaml.safe_load((documents_dir / "b-legacy.yml").read_text())
        assert upgraded["rulesets"][0]["name"] == "Default"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "content",
        [
            "rulesets:\n- just a string\n",
            "rulesets:\n- name: Main\n  conditions:\n    ref_name: null\n",
            "rulesets:\n- name: Main\n  bypass_actors:\n  - oops\n",
            "rulesets:\n- name: Main\n  rules:\n  - type: required_status_checks\n    parameters:\n"
            "      required_status_checks:\n      - oops\n",
        ],
    )
    async def test_unexpected_structure_is_reported(self, content):
        self.repos_dir.mkdir()
        (self.repos_dir / "a-odd.yml").write_text(content)
        (self.repos_dir / "b-legacy.yml").write_text(_LEGACY_DOCUMENT)

        assert await self.create_operation().execute() == 1

        output = self.output.getvalue()
        assert "unexpected document structure" in output
        assert "a-odd.yml" in output
        assert "Upgraded 1 of 2 document(s), 1 failed." in output

        assert (self.repos_dir / "a-odd.yml").read_text() == content

        upgraded = yaml.safe_load((self.repos_dir / "b-legacy.yml").read_text())
        assert upgraded["rulesets"][0]["name"] == "Default"
        assert upgraded["rulesets"][0]["enforcement"] == "evaluate"

    @pytest.mark.asyncio
    async def test_missing_directory(self):
        with pytest.raises(RuntimeError):
            await self.create_operation().execute()
