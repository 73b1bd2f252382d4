#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from typing import Any


class AuthImpl(ABC):
    @abstractmethod
    def update_headers_with_authorization(self, headers: MutableMapping[str, Any]) -> None: ...


class AuthStrategy(ABC):
    @abstractmethod
    def get_auth(self) -> AuthImpl: ...


@dataclass(frozen=True)
class TokenAuthStrategy(AuthStrategy):
    """
    An AuthStrategy using a personal access token.
    """

    token: str

    def get_auth(self) -> AuthImpl:
        return _TokenAuth(self.token)

    def __repr__(self) -> str:
        return "TokenAuthStrategy(token=<redacted>)"


@dataclass(frozen=True)
class _TokenAuth(AuthImpl):
    token: str

    def update_headers_with_authorization(self, headers: MutableMapping[str, Any]) -> None:
        headers["Authorization"] = f"Bearer {self.token}"

    def __repr__(self) -> str:
        return "_TokenAuth(token=<redacted>)"


def token_auth(github_token: str) -> AuthStrategy:
    return TokenAuthStrategy(github_token)
