#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************

import pytest

from rulekeeper.operations.drift import DriftOperation

_TEMPLATE = """\
repository:
  has_wiki: false
  vulnerability_alerts: true
  topics:
  - tooling
  - python
"""


class TestDriftOperation:
    @pytest.fixture(autouse=True)
    def setup(self, provider_factory, config_factory, printer, output, tmp_path):
        self.provider = provider_factory(
            repositories={
                "in-line": {
                    "name": "in-line",
                    "has_wiki": False,
                    "has_issues": True,
                    "vulnerability_alerts": {"enabled": True},
                    "topics": ["python", "tooling"],
                },
                "drifted": {
                    "name": "drifted",
                    "has_wiki": True,
                    "vulnerability_alerts": {"enabled": True},
                    "topics": ["python"],
                },
                "old-repo": {"name": "old-repo", "archived": True, "has_wiki": True},
            }
        )
        self.config = config_factory()
        self.printer = printer
        self.output = output

        self.template_file = tmp_path / "settings.yml"
        self.template_file.write_text(_TEMPLATE)

    def create_operation(self, template_file: str, repo_names=()) -> DriftOperation:
        operation = DriftOperation("test-org", "secret", template_file, repo_names)
        operation.init(self.config, self.printer)
        operation.create_provider = lambda: self.provider  # type: ignore
        return operation

    @pytest.mark.asyncio
    async def test_detect_drift(self):
        operation = self.create_operation(str(self.template_file))
        operation.pre_execute()

        assert await operation.execute() == 1
        assert operation.drifted_repositories == ["drifted"]

        output = self.output.getvalue()
        assert "drifted deviates from the template:" in output
        assert "  has_wiki: true" in output
        assert "in-line deviates" not in output
        assert "Drift detection complete. (1 drifted, 0 failed)" in output

    @pytest.mark.asyncio
    async def test_no_drift(self):
        operation = self.create_operation(str(self.template_file), ["in-line"])

        assert await operation.execute() == 0
        assert operation.drifted_repositories == []

    @pytest.mark.asyncio
    async def test_failing_repository(self):
        operation = self.create_operation(str(self.template_file), ["missing-repo", "in-line"])

        assert await operation.execute() == 1
        assert "failed to check repository 'missing-repo'" in self.output.getvalue()

    @pytest.mark.asyncio
    async def test_plain_template(self, tmp_path):
        template_file = tmp_path / "plain.yml"
        template_file.write_text("has_wiki: true\n")

        operation = self.create_operation(str(template_file), ["drifted"])

        assert await operation.execute() == 0

    @pytest.mark.asyncio
    async def test_missing_template(self, tmp_path):
        operation = self.create_operation(str(tmp_path / "missing.yml"))

        with pytest.raises(RuntimeError, match="not found"):
            await operation.execute()
