#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************


class GitHubException(Exception):
    """
    Raised when a request to the GitHub API returned an error status.
    """

    def __init__(self, url: str | None, status: int, data: str):
        super().__init__(url, status, data)
        self.__url = url
        self.__status = status
        self.__data = data

    @property
    def url(self) -> str | None:
        return self.__url

    @property
    def status(self) -> int:
        return self.__status

    @property
    def data(self) -> str:
        return self.__data

    @property
    def is_not_found(self) -> bool:
        return self.__status == 404

    def __str__(self):
        return f"Exception while accessing '{self.url}': (status={self.status}, body={self.data})"


class BadCredentialsException(GitHubException):
    def __init__(self, url: str, message: str):
        super().__init__(url, 401, message)

    @property
    def message(self) -> str:
        return self.data

    def __str__(self):
        return f"Bad Credentials while accessing '{self.url}': (message={self.message})"


class InsufficientPermissionsException(GitHubException):
    def __init__(self, url: str, status: int, message: str, missing_scopes: list[str]):
        super().__init__(url, status, message)
        self.__missing_scopes = missing_scopes

    @property
    def missing_scopes(self) -> list[str]:
        return self.__missing_scopes

    def __str__(self):
        return f"Insufficient permissions while accessing '{self.url}': (missing scopes={self.missing_scopes})"


class RateLimitException(GitHubException):
    """
    Raised when a request is still rate limited after waiting for the limit to reset.
    """

    def __init__(self, url: str, status: int, data: str, secondary: bool):
        super().__init__(url, status, data)
        self.__secondary = secondary

    @property
    def secondary(self) -> bool:
        return self.__secondary

    def __str__(self):
        kind = "secondary" if self.secondary else "primary"
        return f"Hit {kind} rate limit while accessing '{self.url}': (status={self.status}, body={self.data})"
