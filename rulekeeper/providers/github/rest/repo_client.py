#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************

import json
from typing import Any
from urllib.parse import quote

from rulekeeper.logging import get_logger
from rulekeeper.providers.github.exception import GitHubException
from rulekeeper.providers.github.rest import RestApi, RestClient

_logger = get_logger(__name__)


class RepoClient(RestClient):
    def __init__(self, rest_api: RestApi):
        super().__init__(rest_api)

    async def get_repo_data(self, org_id: str, repo_name: str) -> dict[str, Any]:
        _logger.debug("retrieving repo data for '%s/%s'", org_id, repo_name)

        try:
            return await self.requester.request_json("GET", f"/repos/{org_id}/{repo_name}")
        except GitHubException as ex:
            raise RuntimeError(f"failed retrieving data for repo '{org_id}/{repo_name}':\n{ex}") from ex

    async def get_branch_protection(self, org_id: str, repo_name: str, branch_name: str) -> dict[str, Any] | None:
        """
        Returns the legacy protection of a branch, or None if the branch does not exist
        or is not protected.
        """
        _logger.debug("retrieving protection of branch '%s' in repo '%s/%s'", branch_name, org_id, repo_name)

        url_path = f"/repos/{org_id}/{repo_name}/branches/{quote(branch_name, safe='')}/protection"
        status, body = await self.requester.request_raw("GET", url_path)

        if status == 404:
            _logger.debug("branch '%s' in repo '%s/%s' is not protected", branch_name, org_id, repo_name)
            return None

        if status >= 400:
            raise RuntimeError(
                f"failed retrieving protection of branch '{branch_name}' in repo '{org_id}/{repo_name}':\n"
                f"{GitHubException(url_path, status, body)}"
            )

        return json.loads(body)

    async def get_rulesets(self, org_id: str, repo_name: str, includes_parents: bool = False) -> list[dict[str, Any]]:
        """
        Lists the rulesets of a repository, the entries only contain summary information.
        """
        _logger.debug("retrieving rulesets for repo '%s/%s'", org_id, repo_name)

        try:
            params = {"includes_parents": str(includes_parents).lower()}
            return await self.requester.request_paged_json(
                "GET", f"/repos/{org_id}/{repo_name}/rulesets", params=params
            )
        except GitHubException as ex:
            if ex.is_not_found:
                return []

            raise RuntimeError(f"failed retrieving rulesets for repo '{org_id}/{repo_name}':\n{ex}") from ex

    async def get_ruleset(self, org_id: str, repo_name: str, ruleset_id: str) -> dict[str, Any] | None:
        _logger.debug("retrieving ruleset '%s' for repo '%s/%s'", ruleset_id, org_id, repo_name)

        url_path = f"/repos/{org_id}/{repo_name}/rulesets/{ruleset_id}"
        status, body = await self.requester.request_raw("GET", url_path, params={"includes_parents": "false"})

        if status == 404:
            return None

        if status >= 400:
            raise RuntimeError(
                f"failed retrieving ruleset '{ruleset_id}' for repo '{org_id}/{repo_name}':\n"
                f"{GitHubException(url_path, status, body)}"
            )

        return json.loads(body)
