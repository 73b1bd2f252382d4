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
from enum import Enum
from typing import TYPE_CHECKING, Any

from aiohttp import ClientTimeout, TCPConnector
from aiohttp_client_cache.session import CachedSession as AsyncCachedSession
from aiohttp_retry import ExponentialRetry, RetryClient

from rulekeeper.logging import get_logger, is_trace_enabled
from rulekeeper.providers.github.exception import (
    BadCredentialsException,
    GitHubException,
    InsufficientPermissionsException,
    RateLimitException,
)
from rulekeeper.providers.github.stats import RequestStatistics

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping

    from rulekeeper.providers.github.auth import AuthStrategy
    from rulekeeper.providers.github.cache import CacheStrategy

_logger = get_logger(__name__)

# upper bound for waiting on a primary rate limit to reset, in seconds
DEFAULT_MAX_RATE_LIMIT_WAIT = 900.0
# wait time used when GitHub does not tell when the limit resets
_FALLBACK_RATE_LIMIT_WAIT = 60.0


class RateLimitKind(Enum):
    PRIMARY = 1
    SECONDARY = 2


def classify_rate_limit(status: int, headers: Mapping[str, str], body: str) -> RateLimitKind | None:
    """
    Determines whether a response indicates that a rate limit was hit.

    A primary rate limit is signalled by an exhausted x-ratelimit-remaining header,
    a secondary one by a retry-after header or the respective error message.
    """
    if status not in (403, 429):
        return None

    if headers.get("x-ratelimit-remaining") == "0":
        return RateLimitKind.PRIMARY

    if "retry-after" in headers or "secondary rate limit" in body.lower():
        return RateLimitKind.SECONDARY

    return None


def seconds_until_reset(
    headers: Mapping[str, str],
    now: float,
    max_wait: float = DEFAULT_MAX_RATE_LIMIT_WAIT,
) -> float:
    reset = headers.get("x-ratelimit-reset")
    if reset is None:
        wait = _FALLBACK_RATE_LIMIT_WAIT
    else:
        try:
            wait = float(reset) - now + 1
        except ValueError:
            wait = _FALLBACK_RATE_LIMIT_WAIT

    return min(max(wait, 0.0), max_wait)


class Requester:
    def __init__(
        self,
        auth_strategy: AuthStrategy | None,
        cache_strategy: CacheStrategy,
        base_url: str,
        api_version: str,
        max_rate_limit_wait: float = DEFAULT_MAX_RATE_LIMIT_WAIT,
    ):
        self._auth = auth_strategy.get_auth() if auth_strategy is not None else None

        self._headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": api_version,
        }

        self._statistics = RequestStatistics()
        self._cache_strategy = cache_strategy
        self._max_rate_limit_wait = max_rate_limit_wait

        self._base_url = f"https://{base_url}"
        self._session = AsyncCachedSession(
            cache=self._cache_strategy.get_cache_backend(),
            timeout=ClientTimeout(connect=3, sock_connect=3),
            connector=TCPConnector(limit=10),
        )

        self._client = RetryClient(
            retry_options=ExponentialRetry(3, exceptions={Exception}),
            client_session=self._session,
        )

    @property
    def statistics(self) -> RequestStatistics:
        return self._statistics

    async def close(self) -> None:
        await self._session.close()

    def _build_url(self, url_path: str) -> str:
        return f"{self._base_url}{url_path}"

    async def iter_paged_json(
        self,
        method: str,
        url_path: str,
        params: dict[str, str] | None = None,
    ) -> AsyncIterator[list[dict[str, Any]]]:
        """
        Yields the entries of a paged resource one page at a time, following the next links.
        """
        from urllib import parse

        query_params: dict[str, str] | None = {"per_page": "100"}

        while query_params is not None:
            if params is not None:
                query_params.update(params)

            status, body, next_url = await self._request_raw_with_next_link(method, url_path, None, query_params)
            self._check_response(url_path, status, body)
            entries = json.loads(body)

            if next_url is None:
                query_params = None
            else:
                query_params = {k: v[0] for k, v in parse.parse_qs(parse.urlparse(next_url).query).items()}

            yield entries

    async def request_paged_json(
        self,
        method: str,
        url_path: str,
        params: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        result = []
        async for entries in self.iter_paged_json(method, url_path, params):
            result.extend(entries)
        return result

    async def request_json(
        self,
        method: str,
        url_path: str,
        data: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        input_data = None
        if data is not None:
            input_data = json.dumps(data)

        status, body = await self.request_raw(method, url_path, input_data, params)
        self._check_response(url_path, status, body)
        json_result = json.loads(body)
        if is_trace_enabled():
            _logger.trace("'%s' url = %s, json = %s", method, url_path, json.dumps(json_result, indent=2))
        return json_result

    async def request_raw(
        self,
        method: str,
        url_path: str,
        data: str | None = None,
        params: dict[str, Any] | None = None,
    ) -> tuple[int, str]:
        status, body, _ = await self._request_raw_with_next_link(method, url_path, data, params)
        _logger.trace("'%s' url = %s, result = (%d)", method, url_path, status)
        return status, body

    async def _request_raw_with_next_link(
        self,
        method: str,
        url_path: str,
        data: str | None = None,
        params: dict[str, Any] | None = None,
    ) -> tuple[int, str, str | None]:
        # a primary rate limit is retried exactly once after waiting for its reset
        for attempt in range(2):
            status, text, next_url, headers = await self._send(method, url_path, data, params)

            match classify_rate_limit(status, headers, text):
                case RateLimitKind.PRIMARY:
                    if attempt > 0:
                        raise RateLimitException(self._build_url(url_path), status, text, secondary=False)

                    wait = seconds_until_reset(headers, time.time(), self._max_rate_limit_wait)
                    _logger.warning("hit primary rate limit for '%s', waiting %.0f seconds", url_path, wait)
                    self._statistics.waited_for_rate_limit()
                    await asyncio.sleep(wait)

                case RateLimitKind.SECONDARY:
                    _logger.warning(
                        "hit secondary rate limit for '%s', retry-after = %s",
                        url_path,
                        headers.get("retry-after", "n/a"),
                    )
                    return status, text, next_url

                case _:
                    self._check_permissions(url_path, status, text, headers)
                    return status, text, next_url

        raise RuntimeError(f"unreachable: no response for '{url_path}'")

    async def _send(
        self,
        method: str,
        url_path: str,
        data: str | None,
        params: dict[str, Any] | None,
    ) -> tuple[int, str, str | None, Mapping[str, str]]:
        _logger.trace("'%s' url = %s, data = %s, params = %s", method, url_path, data, params)

        headers = self._headers.copy()
        if self._auth is not None:
            self._auth.update_headers_with_authorization(headers)

        url = self._build_url(url_path)
        async with self._client.request(
            method,
            url=url,
            headers=headers,
            params=params,
            data=data,
            **self._cache_strategy.get_request_parameters(),
        ) as response:
            self._statistics.sent_request()

            text = await response.text()
            status = response.status
            links = response.links
            next_link = links.get("next", None) if links is not None else None
            next_url = next_link.get("url", None) if next_link is not None else None

            if getattr(response, "from_cache", False):
                self._statistics.received_cached_response()
            else:
                self._statistics.update_remaining_rate_limit(int(response.headers.get("x-ratelimit-remaining", -1)))

            response_headers = {k.lower(): v for k, v in response.headers.items()}
            return status, text, str(next_url) if next_url is not None else None, response_headers

    def _check_response(self, url_path: str, status_code: int, body: str) -> None:
        if status_code >= 400:
            self._create_exception(self._build_url(url_path), status_code, body)

    @staticmethod
    def _check_permissions(url_path: str, status_code: int, body: str, headers: Mapping[str, str]):
        if status_code == 403:
            existing_scopes = {x.strip() for x in headers.get("x-oauth-scopes", "").split(",") if len(x) > 0}
            required_scopes = {x.strip() for x in headers.get("x-accepted-oauth-scopes", "").split(",") if len(x) > 0}

            missing_scopes = required_scopes - existing_scopes
            if len(missing_scopes) > 0:
                raise InsufficientPermissionsException(url_path, status_code, body, sorted(missing_scopes))

    @staticmethod
    def _create_exception(url: str, status_code: int, body: str):
        if status_code == 401:
            raise BadCredentialsException(url, body)
        else:
            raise GitHubException(url, status_code, body)
