#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from rulekeeper.utils import IndentingPrinter, unwrap

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from rulekeeper.config import RuleKeeperConfig
    from rulekeeper.providers.github import GitHubProvider


class Operation(ABC):
    def __init__(self) -> None:
        self._config: RuleKeeperConfig | None = None
        self._printer: IndentingPrinter | None = None

    def init(self, config: RuleKeeperConfig, printer: IndentingPrinter) -> None:
        self._config = config
        self._printer = printer

    @property
    def config(self) -> RuleKeeperConfig:
        return unwrap(self._config)

    @property
    def printer(self) -> IndentingPrinter:
        return unwrap(self._printer)

    @printer.setter
    def printer(self, value: IndentingPrinter):
        self._printer = value

    @abstractmethod
    def pre_execute(self) -> None: ...

    @abstractmethod
    async def execute(self) -> int: ...

    def post_execute(self) -> None:
        return


class OrganizationOperation(Operation, ABC):
    """
    Base class for operations that process the repositories of an organization.

    Either the explicitly given repositories are processed, or all repositories of the
    organization are enumerated page by page.
    """

    def __init__(self, org_id: str, access_token: str, repo_names: Sequence[str] = ()) -> None:
        super().__init__()
        self._org_id = org_id
        self._access_token = access_token
        self._repo_names = list(repo_names)

    @property
    def org_id(self) -> str:
        return self._org_id

    @property
    def repo_names(self) -> list[str]:
        return self._repo_names

    def create_provider(self) -> GitHubProvider:
        from rulekeeper.providers.github import GitHubProvider
        from rulekeeper.providers.github.cache import file_cache, no_cache

        cache_strategy = file_cache() if self.config.use_cache else no_cache()
        return GitHubProvider(self._access_token, cache_strategy, self.config.max_rate_limit_wait)

    async def iter_repo_names(self, provider: GitHubProvider) -> AsyncIterator[str]:
        if len(self._repo_names) > 0:
            for repo_name in self._repo_names:
                yield repo_name
        else:
            async for page in provider.iter_org_repositories(self._org_id):
                for repo in page:
                    yield repo["name"]

    def print_statistics(self, provider: GitHubProvider) -> None:
        self.printer.print_info(f"GitHub requests: {provider.statistics}")
