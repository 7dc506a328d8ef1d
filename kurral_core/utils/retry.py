# Copyright (C) 2025 The Kurral Engine Authors
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# Kurral Engine is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with Kurral Engine. If not, see <https://www.gnu.org/licenses/>.

"""
Retry with exponential backoff for external calls.

Only transient failures (timeouts, connection errors, 429/5xx) are retried.
Each attempt runs under an explicit timeout; a timed-out attempt counts
toward the retry budget.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from kurral_core.llm.failures import is_transient_failure
from kurral_core.runtime_config import EngineRetryConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    initial_delay_sec: float = 1.0
    timeout_sec: float | None = None

    @classmethod
    def from_runtime(cls, retry: EngineRetryConfig, *, timeout_sec: float | None = None) -> "RetryPolicy":
        return cls(
            max_retries=retry.max_retries,
            initial_delay_sec=retry.initial_delay_sec,
            timeout_sec=timeout_sec,
        )

    def delay_for(self, retry_index: int) -> float:
        """Delay before retry number `retry_index` (0-based): d, 2d, 4d, ..."""
        return self.initial_delay_sec * (2 ** retry_index)


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    *,
    operation: str,
    policy: RetryPolicy,
    is_retryable: Callable[[BaseException], bool] = is_transient_failure,
) -> T:
    attempt = 0
    while True:
        try:
            if policy.timeout_sec:
                return await asyncio.wait_for(fn(), timeout=policy.timeout_sec)
            return await fn()
        except Exception as e:
            if attempt >= policy.max_retries or not is_retryable(e):
                if attempt:
                    logger.warning("[Retry] %s failed after %d attempts: %s", operation, attempt + 1, e)
                raise
            delay = policy.delay_for(attempt)
            attempt += 1
            logger.debug(
                "[Retry] %s attempt %d/%d failed (%s), retrying in %.2fs",
                operation,
                attempt,
                policy.max_retries + 1,
                e,
                delay,
            )
            await asyncio.sleep(delay)
