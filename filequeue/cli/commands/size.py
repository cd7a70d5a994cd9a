"""Len command: print the number of queued items."""

import logging
from argparse import Namespace

from .common import open_queue


logger = logging.getLogger(__name__)


def queue_length(args: Namespace) -> int:
    _, queue = open_queue(args)
    count = queue.len()
    logger.debug(f"{queue.base_dir}: {count} item(s)")
    print(count)
    return 0
