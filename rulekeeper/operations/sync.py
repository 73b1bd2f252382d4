#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************

from __future__ import annotations

import asyncio
import dataclasses
from typing import TYPE_CHECKING

from aiohttp import ClientError
from jsonbender.core import BendingException  # type: ignore

from rulekeeper.logging import get_logger
from rulekeeper.orchestrator import DocumentError, RepositoryOrchestrator, RepositoryOutcome
from rulekeeper.providers.github.exception import GitHubException

from . import OrganizationOperation

if TYPE_CHECKING:
    from collections.abc import Sequence

_logger = get_logger(__name__)

_REPOSITORY_ERRORS = (DocumentError, RuntimeError, GitHubException, ClientError, BendingException, asyncio.TimeoutError)


@dataclasses.dataclass
class SyncSummary:
    written: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: int = 0

    def record(self, outcome: RepositoryOutcome) -> None:
        match outcome:
            case RepositoryOutcome.WRITTEN:
                self.written += 1
            case RepositoryOutcome.UNCHANGED | RepositoryOutcome.NO_WRITE_NEEDED:
                self.unchanged += 1
            case _:
                self.skipped += 1

    def __str__(self) -> str:
        return (
            f"written: {self.written}, unchanged: {self.unchanged}, "
            f"skipped: {self.skipped}, failed: {self.failed}"
        )


class SyncOperation(OrganizationOperation):
    """
    Reconciles the declarative documents of repositories with their live branch protection
    rules and rulesets.
    """

    def __init__(self, org_id: str, access_token: str, repo_names: Sequence[str] = ()) -> None:
        super().__init__(org_id, access_token, repo_names)
        self._summary = SyncSummary()

    @property
    def summary(self) -> SyncSummary:
        return self._summary

    def pre_execute(self) -> None:
        self.printer.println(f"Reconciling repository settings of organization [bold]{self.org_id}[/]:")
        self.printer.println()

    async def execute(self) -> int:
        self._summary = SyncSummary()

        async with self.create_provider() as provider:
            orchestrator = RepositoryOrchestrator(provider, self.org_id, self.config)

            # a failure to enumerate repositories propagates and aborts the whole batch
            async for repo_name in self.iter_repo_names(provider):
                await self._process_repository(orchestrator, repo_name)

            self.print_statistics(provider)

        self.printer.println()
        self.printer.println(f"Repository settings processing complete. ({self._summary})")
        return 1 if self._summary.failed > 0 else 0

    async def _process_repository(self, orchestrator: RepositoryOrchestrator, repo_name: str) -> None:
        self.printer.level_up()

        try:
            outcome = await orchestrator.process(repo_name)
        except _REPOSITORY_ERRORS as ex:
            _logger.debug("processing of repo '%s' failed", repo_name, exc_info=True)
            self._summary.failed += 1
            self.printer.println(f"Processing repository: [bold]{repo_name}[/] [red]failed[/]")
            self.printer.print_error(f"failed to process repository '{repo_name}':\n{ex}")
        else:
            self._summary.record(outcome)

            if not outcome.is_skipped or self.printer.is_info_enabled():
                self.printer.println(f"Processing repository: [bold]{repo_name}[/] ({outcome.value})")
        finally:
            self.printer.level_down()
