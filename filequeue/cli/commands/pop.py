"""Pop command: claim items and write their payloads out."""

import logging
import sys
from argparse import Namespace
from pathlib import Path

from filequeue.wait import TIMEOUT_EXIT_CODE, wait_pop

from .common import open_queue


logger = logging.getLogger(__name__)


def pop_items(args: Namespace) -> int:
    """Pop one item (or every item with --all).

    With --wait the first pop polls for up to that many seconds; --all then
    keeps popping without waiting until the queue is empty. Payloads popped
    with --all are written one per line.

    Returns:
        0 if at least one item was popped, 124 if none was
    """
    config, queue = open_queue(args)

    timeout_sec = args.wait if args.wait is not None else config.wait_timeout_sec
    poll_ms = args.poll_ms if args.poll_ms is not None else config.wait_poll_ms

    if args.output and args.all:
        raise ValueError("--output cannot be combined with --all")

    result = wait_pop(queue, timeout_sec=timeout_sec, poll_ms=poll_ms)
    if result.payload is None:
        logger.info(f"No item available in {queue.base_dir} after {result.poll_count} poll(s)")
        return TIMEOUT_EXIT_CODE

    logger.debug(f"Popped {len(result.payload)} bytes after {result.wait_duration_ms}ms")

    if args.output:
        Path(args.output).write_bytes(result.payload)
        logger.info(f"Wrote payload to {args.output}")
        return 0

    out = sys.stdout.buffer
    if not args.all:
        out.write(result.payload)
        out.flush()
        return 0

    count = 0
    payload = result.payload
    while payload is not None:
        out.write(payload + b"\n")
        count += 1
        payload = queue.pop()
    out.flush()

    logger.info(f"Drained {count} item(s) from {queue.base_dir}")
    return 0
