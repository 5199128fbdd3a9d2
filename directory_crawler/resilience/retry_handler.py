"""
Retry handling with a fixed delay between attempts.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Tuple

from ..config import RetryConfig
from ..models import ExtractionError


logger = logging.getLogger(__name__)


class RetryHandler:
    """Runs a coroutine function until it succeeds or the attempt cap is hit."""

    def __init__(self, config: Optional[RetryConfig] = None, sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        """
        Initialize retry handler.

        Args:
            config: RetryConfig instance, uses defaults if None
            sleep: Awaitable sleep, swapped out in tests
        """
        self.config = config or RetryConfig()
        self._sleep = sleep
        self.total_attempts = 0
        self.total_exhausted = 0

    async def execute_with_retry(
        self,
        func: Callable[..., Awaitable[Any]],
        *args,
        label: str = "",
        **kwargs
    ) -> Tuple[bool, Any]:
        """
        Await `func` with retry logic.

        An `ExtractionError` result or a raised exception counts as a failed
        attempt; anything else is returned as success.

        Args:
            func: Coroutine function to execute
            *args: Positional arguments for func
            label: Name used in log lines
            **kwargs: Keyword arguments for func

        Returns:
            Tuple of (success, result or last error reason)
        """
        last_error = None
        max_retries = max(1, self.config.max_retries)

        for attempt in range(1, max_retries + 1):
            self.total_attempts += 1
            try:
                result = await func(*args, **kwargs)
                if not isinstance(result, ExtractionError):
                    return True, result
                last_error = result.reason
            except Exception as e:
                last_error = f"{type(e).__name__}: {e}"

            logger.warning("%s attempt %d/%d failed: %s", label or "task", attempt, max_retries, last_error)

            # Don't sleep after last attempt
            if attempt < max_retries:
                await self._sleep(self.config.retry_delay)

        self.total_exhausted += 1
        return False, last_error

    def get_stats(self) -> dict:
        return {
            'total_attempts': self.total_attempts,
            'total_exhausted': self.total_exhausted,
            'max_retries': self.config.max_retries,
            'retry_delay': self.config.retry_delay,
        }
