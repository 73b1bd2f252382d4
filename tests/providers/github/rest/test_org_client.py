#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************

import pretend
import pytest

from rulekeeper.providers.github.exception import GitHubException
from rulekeeper.providers.github.rest.org_client import OrgClient


class TestOrgClientRepos:
    @pytest.mark.asyncio
    async def test_iter_repos(self):
        pages = [[{"name": "repo-a"}, {"name": "repo-b"}], [{"name": "repo-c"}]]

        async def mock_iter_paged_json(method, url, params):
            assert method == "GET"
            assert url == "/orgs/test-org/repos"
            assert params == {"type": "all"}

            for page in pages:
                yield page

        org_client = OrgClient(pretend.stub(requester=pretend.stub(iter_paged_json=mock_iter_paged_json)))

        result = [page async for page in org_client.iter_repos("test-org")]
        assert result == pages

    @pytest.mark.asyncio
    async def test_iter_repos_error(self):
        async def mock_iter_paged_json(method, url, params):
            yield [{"name": "repo-a"}]
            raise GitHubException(url, 502, "Bad Gateway")

        org_client = OrgClient(pretend.stub(requester=pretend.stub(iter_paged_json=mock_iter_paged_json)))

        received = []
        with pytest.raises(RuntimeError) as e:
            async for page in org_client.iter_repos("test-org"):
                received.append(page)

        assert received == [[{"name": "repo-a"}]]
        assert "test-org" in str(e.value)
