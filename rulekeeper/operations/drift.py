#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import yaml
from aiohttp import ClientError
from jsonbender.core import BendingException  # type: ignore

from rulekeeper.document import flatten_enabled, structural_diff
from rulekeeper.logging import get_logger
from rulekeeper.orchestrator import DocumentError, load_document
from rulekeeper.providers.github.exception import GitHubException

from . import OrganizationOperation

if TYPE_CHECKING:
    from collections.abc import Sequence

    from rulekeeper.providers.github import GitHubProvider

_logger = get_logger(__name__)

_REPOSITORY_ERRORS = (RuntimeError, GitHubException, ClientError, BendingException, asyncio.TimeoutError)


class DriftOperation(OrganizationOperation):
    """
    Compares the live settings of repositories against a template document and reports
    every setting that deviates from it.
    """

    def __init__(
        self,
        org_id: str,
        access_token: str,
        template_file: str,
        repo_names: Sequence[str] = (),
    ) -> None:
        super().__init__(org_id, access_token, repo_names)
        self._template_file = template_file
        self._drifted: list[str] = []

    @property
    def drifted_repositories(self) -> list[str]:
        return self._drifted

    def pre_execute(self) -> None:
        self.printer.println(
            f"Detecting drift of organization [bold]{self.org_id}[/] against template '{self._template_file}':"
        )
        self.printer.println()

    async def load_template(self) -> dict[str, Any]:
        try:
            template = await load_document(self._template_file)
        except DocumentError as ex:
            raise RuntimeError(str(ex)) from ex

        if template is None:
            raise RuntimeError(f"template file '{self._template_file}' not found")

        # settings files keep the repository settings below a 'repository' key
        repository = template.get("repository")
        if isinstance(repository, dict):
            return repository

        return template

    async def execute(self) -> int:
        template = await self.load_template()
        self._drifted = []
        failed = 0

        async with self.create_provider() as provider:
            async for repo_name in self.iter_repo_names(provider):
                try:
                    await self._check_repository(provider, template, repo_name)
                except _REPOSITORY_ERRORS as ex:
                    failed += 1
                    self.printer.print_error(f"failed to check repository '{repo_name}':\n{ex}")

            self.print_statistics(provider)

        self.printer.println()
        self.printer.println(f"Drift detection complete. ({len(self._drifted)} drifted, {failed} failed)")
        return 1 if len(self._drifted) > 0 or failed > 0 else 0

    async def _check_repository(self, provider: GitHubProvider, template: dict[str, Any], repo_name: str) -> None:
        repo_data = await provider.get_repository(self.org_id, repo_name)

        if repo_data.get("archived", False) is True or repo_name in self.config.excluded_repositories:
            _logger.info("skipping repo '%s'", repo_name)
            return

        diff = structural_diff(template, flatten_enabled(repo_data))
        if diff is None:
            _logger.debug("repo '%s' matches the template", repo_name)
            return

        self._drifted.append(repo_name)
        self.printer.println(f"[bold]{repo_name}[/] deviates from the template:")
        self.printer.level_up()
        self.printer.println(yaml.safe_dump(diff, sort_keys=False, default_flow_style=False).rstrip())
        self.printer.level_down()
