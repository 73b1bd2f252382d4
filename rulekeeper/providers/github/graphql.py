#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************

from __future__ import annotations

import asyncio
import json
import time
from functools import cache
from typing import TYPE_CHECKING

from aiohttp.client import ClientSession, ClientTimeout, TCPConnector
from aiohttp_retry import ExponentialRetry, RetryClient

from rulekeeper.logging import get_logger, is_trace_enabled
from rulekeeper.providers.github.exception import RateLimitException
from rulekeeper.providers.github.rest.requester import (
    DEFAULT_MAX_RATE_LIMIT_WAIT,
    RateLimitKind,
    classify_rate_limit,
    seconds_until_reset,
)
from rulekeeper.providers.github.stats import RequestStatistics
from rulekeeper.utils import query_json

if TYPE_CHECKING:
    from typing import Any

    from rulekeeper.providers.github.auth import AuthStrategy

_logger = get_logger(__name__)


class GraphQLClient:
    _GH_GRAPHQL_URL_ROOT = "api.github.com/graphql"

    def __init__(self, auth_strategy: AuthStrategy, max_rate_limit_wait: float = DEFAULT_MAX_RATE_LIMIT_WAIT):
        self._auth = auth_strategy.get_auth()
        self._base_url = f"https://{self._GH_GRAPHQL_URL_ROOT}"
        self._statistics = RequestStatistics()
        self._max_rate_limit_wait = max_rate_limit_wait

        self._session = ClientSession(
            timeout=ClientTimeout(connect=3, sock_connect=3),
            connector=TCPConnector(limit=10),
        )

        self._client = RetryClient(
            retry_options=ExponentialRetry(3, exceptions={Exception}),
            client_session=self._session,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exception_type, exception_value, exception_traceback):
        await self.close()

    async def close(self) -> None:
        await self._session.close()

    @property
    def statistics(self) -> RequestStatistics:
        return self._statistics

    async def get_branch_protection_rules(self, org_id: str, repo_name: str) -> list[dict[str, Any]]:
        _logger.debug("retrieving branch protection rules for repo '%s/%s'", org_id, repo_name)

        variables = {"owner": org_id, "repo": repo_name}
        return await self._run_paged_query(variables, "get-branch-protection-rules.gql")

    async def _run_paged_query(
        self,
        input_variables: dict[str, Any],
        query_file: str,
        prefix_selector: str = "data.repository.branchProtectionRules",
    ) -> list[dict[str, Any]]:
        _logger.debug("running graphql query '%s' with input '%s'", query_file, json.dumps(input_variables))

        query = _get_query_from_file(query_file)

        finished = False
        end_cursor = None
        result = []

        while not finished:
            variables = {"endCursor": end_cursor}
            variables.update(input_variables)

            status, body = await self._request_raw("POST", query, variables)
            json_data = json.loads(body)

            if is_trace_enabled():
                _logger.trace("graphql result = %s", json.dumps(json_data, indent=2))

            if status >= 400 or "errors" in json_data or "data" not in json_data:
                raise RuntimeError(f"failed running graphql query '{query_file}': {body}")

            connection = query_json(prefix_selector, json_data)
            # a missing repository yields a null node
            if connection is None:
                break

            result.extend(connection.get("nodes") or [])

            page_info = connection.get("pageInfo") or {}
            if page_info.get("hasNextPage", False):
                end_cursor = page_info["endCursor"]
            else:
                finished = True

        return result

    async def _request_raw(self, method: str, query: str, variables: dict[str, Any]) -> tuple[int, str]:
        _logger.trace("'%s', query = %s, variables = %s", method, query[0:300] + "...", variables)

        headers: dict[str, Any] = {}
        self._auth.update_headers_with_authorization(headers)

        for attempt in range(2):
            async with self._client.request(
                method,
                url=self._base_url,
                headers=headers,
                json={"query": query, "variables": variables},
            ) as response:
                self._statistics.sent_request()

                text = await response.text()
                status = response.status
                response_headers = {k.lower(): v for k, v in response.headers.items()}

            match classify_rate_limit(status, response_headers, text):
                case RateLimitKind.PRIMARY:
                    if attempt > 0:
                        raise RateLimitException(self._base_url, status, text, secondary=False)

                    wait = seconds_until_reset(response_headers, time.time(), self._max_rate_limit_wait)
                    _logger.warning("hit primary rate limit for graphql query, waiting %.0f seconds", wait)
                    self._statistics.waited_for_rate_limit()
                    await asyncio.sleep(wait)

                case RateLimitKind.SECONDARY:
                    _logger.warning("hit secondary rate limit for graphql query")
                    raise RateLimitException(self._base_url, status, text, secondary=True)

                case _:
                    self._statistics.update_remaining_rate_limit(int(response_headers.get("x-ratelimit-remaining", -1)))
                    return status, text

        raise RuntimeError("unreachable: no response for graphql query")


@cache
def _get_query_from_file(query_file: str) -> str:
    from importlib_resources import files

    from rulekeeper import resources

    return files(resources).joinpath(f"graphql/{query_file}").read_text()
