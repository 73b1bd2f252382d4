#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************

from collections.abc import AsyncIterator
from typing import Any

from rulekeeper.logging import get_logger
from rulekeeper.providers.github.exception import GitHubException
from rulekeeper.providers.github.rest import RestApi, RestClient

_logger = get_logger(__name__)


class OrgClient(RestClient):
    def __init__(self, rest_api: RestApi):
        super().__init__(rest_api)

    async def iter_repos(self, org_id: str) -> AsyncIterator[list[dict[str, Any]]]:
        """
        Yields the repositories of an organization one page at a time.
        """
        _logger.debug("retrieving repos for org '%s'", org_id)

        params = {"type": "all"}
        page = 0
        try:
            async for repos in self.requester.iter_paged_json("GET", f"/orgs/{org_id}/repos", params=params):
                page += 1
                _logger.debug("retrieved page %d with %d repos for org '%s'", page, len(repos), org_id)
                yield repos
        except GitHubException as ex:
            raise RuntimeError(f"failed to retrieve repos for org '{org_id}':\n{ex}") from ex
