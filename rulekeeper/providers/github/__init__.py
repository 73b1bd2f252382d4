#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************

from __future__ import annotations

import contextlib
from asyncio import CancelledError
from typing import TYPE_CHECKING

from rulekeeper.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from typing import Any

    from rulekeeper.providers.github.cache import CacheStrategy
    from rulekeeper.providers.github.stats import RequestStatistics

_logger = get_logger(__name__)


class GitHubProvider:
    """
    Access to the parts of the GitHub REST and GraphQL API needed to read branch
    protection and ruleset settings.
    """

    def __init__(
        self,
        token: str,
        cache_strategy: CacheStrategy | None = None,
        max_rate_limit_wait: float | None = None,
    ):
        from rulekeeper.providers.github.auth import token_auth
        from rulekeeper.providers.github.rest.requester import DEFAULT_MAX_RATE_LIMIT_WAIT

        from .graphql import GraphQLClient
        from .rest import RestApi

        wait = max_rate_limit_wait if max_rate_limit_wait is not None else DEFAULT_MAX_RATE_LIMIT_WAIT
        self.rest_api = RestApi(token_auth(token), cache_strategy, wait)
        self.graphql_client = GraphQLClient(token_auth(token), wait)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exception_type, exception_value, exception_traceback):
        await self.close()

    async def close(self) -> None:
        with contextlib.suppress(CancelledError):
            await self.rest_api.close()

        with contextlib.suppress(CancelledError):
            await self.graphql_client.close()

    @property
    def statistics(self) -> RequestStatistics:
        return self.rest_api.statistics.merge(self.graphql_client.statistics)

    async def get_repository(self, org_id: str, repo_name: str) -> dict[str, Any]:
        return await self.rest_api.repo.get_repo_data(org_id, repo_name)

    async def get_branch_protection(self, org_id: str, repo_name: str, branch_name: str) -> dict[str, Any] | None:
        return await self.rest_api.repo.get_branch_protection(org_id, repo_name, branch_name)

    async def list_rulesets(self, org_id: str, repo_name: str, includes_parents: bool = False) -> list[dict[str, Any]]:
        return await self.rest_api.repo.get_rulesets(org_id, repo_name, includes_parents)

    async def get_ruleset(self, org_id: str, repo_name: str, ruleset_id: str) -> dict[str, Any] | None:
        return await self.rest_api.repo.get_ruleset(org_id, repo_name, ruleset_id)

    async def iter_org_repositories(self, org_id: str) -> AsyncIterator[list[dict[str, Any]]]:
        async for page in self.rest_api.org.iter_repos(org_id):
            yield page

    async def get_branch_protection_rules(self, org_id: str, repo_name: str) -> list[dict[str, Any]]:
        return await self.graphql_client.get_branch_protection_rules(org_id, repo_name)
