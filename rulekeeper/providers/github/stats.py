#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************

from __future__ import annotations

import dataclasses


@dataclasses.dataclass
class RequestStatistics:
    total_requests: int = 0
    cached_responses: int = 0
    rate_limit_waits: int = 0
    remaining_rate_limit: int = -1

    def merge(self, other: RequestStatistics) -> RequestStatistics:
        remaining = [x for x in (self.remaining_rate_limit, other.remaining_rate_limit) if x != -1]

        return RequestStatistics(
            total_requests=self.total_requests + other.total_requests,
            cached_responses=self.cached_responses + other.cached_responses,
            rate_limit_waits=self.rate_limit_waits + other.rate_limit_waits,
            remaining_rate_limit=min(remaining) if len(remaining) > 0 else -1,
        )

    def sent_request(self) -> None:
        self.total_requests += 1

    def received_cached_response(self) -> None:
        self.cached_responses += 1

    def waited_for_rate_limit(self) -> None:
        self.rate_limit_waits += 1

    def update_remaining_rate_limit(self, remaining: int) -> None:
        self.remaining_rate_limit = remaining

    def __str__(self) -> str:
        return (
            f"requests: {self.total_requests}, cached: {self.cached_responses}, "
            f"rate limit waits: {self.rate_limit_waits}, remaining rate limit: {self.remaining_rate_limit}"
        )
