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

if TYPE_CHECKING:
    from typing import Any

    from aiohttp_client_cache import CacheBackend

_AIOHTTP_CACHE_DIR = ".cache/async_http"


class CacheStrategy(ABC):
    @abstractmethod
    def get_cache_backend(self) -> CacheBackend: ...

    @abstractmethod
    def get_request_parameters(self) -> dict[str, Any]: ...


def file_cache(cache_dir: str = _AIOHTTP_CACHE_DIR) -> CacheStrategy:
    return _FileCache(cache_dir)


def no_cache() -> CacheStrategy:
    return _NoCache()


class _FileCache(CacheStrategy):
    """
    Caches responses on disk, revalidating them with GitHub using conditional requests
    which do not count against the rate limit when the resource did not change.
    """

    def __init__(self, cache_dir: str):
        self._cache_dir = cache_dir

    def get_cache_backend(self) -> CacheBackend:
        from aiohttp_client_cache.backends import FileBackend

        return FileBackend(
            cache_name=self._cache_dir,
            use_temp=False,
        )

    def get_request_parameters(self) -> dict[str, Any]:
        return {"refresh": True}

    def __str__(self):
        return f"file-cache('{self._cache_dir}')"


class _NoCache(CacheStrategy):
    def get_cache_backend(self) -> CacheBackend:
        from aiohttp_client_cache import CacheBackend

        # an expiration of 0 disables caching for all responses
        return CacheBackend(expire_after=0)

    def get_request_parameters(self) -> dict[str, Any]:
        return {}

    def __str__(self):
        return "no-cache"
