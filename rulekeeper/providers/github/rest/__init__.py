#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************

from __future__ import annotations

from functools import cached_property
from typing import TYPE_CHECKING

from rulekeeper.providers.github.cache import file_cache

from .requester import DEFAULT_MAX_RATE_LIMIT_WAIT, Requester

if TYPE_CHECKING:
    from rulekeeper.providers.github.auth import AuthStrategy
    from rulekeeper.providers.github.cache import CacheStrategy
    from rulekeeper.providers.github.stats import RequestStatistics


class RestApi:
    # use a fixed API version
    _GH_API_VERSION = "2022-11-28"
    _GH_API_URL_ROOT = "api.github.com"

    def __init__(
        self,
        auth_strategy: AuthStrategy | None = None,
        cache_strategy: CacheStrategy | None = None,
        max_rate_limit_wait: float = DEFAULT_MAX_RATE_LIMIT_WAIT,
    ):
        self._auth_strategy = auth_strategy
        self._requester = Requester(
            auth_strategy,
            cache_strategy if cache_strategy is not None else file_cache(),
            self._GH_API_URL_ROOT,
            self._GH_API_VERSION,
            max_rate_limit_wait,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exception_type, exception_value, exception_traceback):
        await self.close()

    @property
    def statistics(self) -> RequestStatistics:
        return self._requester.statistics

    async def close(self) -> None:
        await self._requester.close()

    @property
    def requester(self) -> Requester:
        return self._requester

    @cached_property
    def repo(self):
        from .repo_client import RepoClient

        return RepoClient(self)

    @cached_property
    def org(self):
        from .org_client import OrgClient

        return OrgClient(self)


class RestClient:
    def __init__(self, rest_api: RestApi):
        self.__rest_api = rest_api

    @property
    def rest_api(self) -> RestApi:
        return self.__rest_api

    @property
    def requester(self) -> Requester:
        return self.__rest_api.requester
