"""Polling pop for callers that need to block until an item arrives.

FileQueue.pop never blocks; this wraps it in a poll loop with a timeout.
"""

import time
from dataclasses import dataclass
from typing import Optional

from .queue import FileQueue


TIMEOUT_EXIT_CODE = 124


@dataclass
class WaitConfig:
    """Configuration for wait_pop operations."""
    timeout_sec: float = 0
    poll_ms: int = 500


@dataclass
class WaitResult:
    """Result of a wait_pop operation."""
    payload: Optional[bytes]
    wait_duration_ms: int
    poll_count: int
    timed_out: bool
    exit_code: int


class PopWaiter:
    """Polls a queue until an item is popped or the timeout expires.

    The queue is always polled at least once, so a zero timeout behaves like
    a single non-blocking pop. Errors raised by pop are not caught.
    """

    def __init__(self, queue: FileQueue, config: Optional[WaitConfig] = None):
        self.queue = queue
        self.config = config or WaitConfig()

        if self.config.timeout_sec < 0:
            raise ValueError(f"timeout_sec must be >= 0, got {self.config.timeout_sec}")
        if self.config.poll_ms <= 0:
            raise ValueError(f"poll_ms must be > 0, got {self.config.poll_ms}")

    def execute(self) -> WaitResult:
        start_time = time.monotonic()
        poll_count = 0
        poll_interval_sec = self.config.poll_ms / 1000.0
        deadline = start_time + self.config.timeout_sec

        while True:
            poll_count += 1
            payload = self.queue.pop()

            if payload is not None:
                return WaitResult(
                    payload=payload,
                    wait_duration_ms=int((time.monotonic() - start_time) * 1000),
                    poll_count=poll_count,
                    timed_out=False,
                    exit_code=0
                )

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            time.sleep(min(poll_interval_sec, remaining))

        return WaitResult(
            payload=None,
            wait_duration_ms=int((time.monotonic() - start_time) * 1000),
            poll_count=poll_count,
            timed_out=True,
            exit_code=TIMEOUT_EXIT_CODE
        )


def wait_pop(queue: FileQueue, timeout_sec: float = 0, poll_ms: int = 500) -> WaitResult:
    """Convenience function to pop with polling.

    Args:
        queue: Queue to pop from
        timeout_sec: Maximum time to wait in seconds (default 0, a single poll)
        poll_ms: Polling interval in milliseconds (default 500)

    Returns:
        WaitResult with the payload (or None on timeout), duration and poll count
    """
    config = WaitConfig(timeout_sec=timeout_sec, poll_ms=poll_ms)
    return PopWaiter(queue, config).execute()
