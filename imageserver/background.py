"""
BackgroundGenerator - Bounded worker pool for fire-and-forget generation.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional


class BackgroundGenerator:
    """
    Runs jobs on a bounded thread pool without handing results back.

    Failures are logged and dropped; nothing is retried.
    """

    def __init__(self, max_workers: int = 2, logger: Optional[logging.Logger] = None):
        """
        Initialize the pool.

        Args:
            max_workers: Number of worker threads
            logger: Optional logger instance
        """
        self.max_workers = max_workers
        self.logger = logger or logging.getLogger(__name__)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix='imageserver-bg'
        )
        self._closed = False

    def submit(self, description: str, func: Callable, *args, **kwargs) -> Optional[Future]:
        """
        Schedule func(*args, **kwargs) and return immediately.

        Returns:
            The future, or None if the pool is shut down
        """
        if self._closed:
            self.logger.warning(f"Background pool closed, dropping: {description}")
            return None
        try:
            future = self._executor.submit(func, *args, **kwargs)
        except RuntimeError as e:
            self.logger.warning(f"Could not schedule {description}: {e}")
            return None
        future.add_done_callback(lambda f: self._log_outcome(description, f))
        self.logger.debug(f"Scheduled background job: {description}")
        return future

    def _log_outcome(self, description: str, future: Future) -> None:
        if future.cancelled():
            self.logger.debug(f"Background job cancelled: {description}")
            return
        error = future.exception()
        if error is not None:
            self.logger.error(f"Background job failed: {description}: {error}")
        else:
            self.logger.debug(f"Background job finished: {description}")

    def shutdown(self, wait: bool = False) -> None:
        """Stop accepting work and cancel queued jobs; running jobs are not awaited unless wait is True."""
        self._closed = True
        self._executor.shutdown(wait=wait, cancel_futures=True)
