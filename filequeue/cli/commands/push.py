"""Push command: append items from arguments, a file or stdin."""

import logging
import sys
from argparse import Namespace
from pathlib import Path
from typing import List

from .common import open_queue


logger = logging.getLogger(__name__)


def read_payloads(args: Namespace) -> List[bytes]:
    """Collect payloads from DATA arguments, --file, or stdin, in that order of preference."""
    if args.data and args.file:
        raise ValueError("Give either DATA arguments or --file, not both")

    if args.data:
        return [item.encode('utf-8') for item in args.data]

    if args.file:
        source = Path(args.file)
        if not source.exists():
            raise FileNotFoundError(f"Input file not found: {source}")
        return [source.read_bytes()]

    return [sys.stdin.buffer.read()]


def push_items(args: Namespace) -> int:
    _, queue = open_queue(args)
    payloads = read_payloads(args)

    for payload in payloads:
        name = queue.push(payload)
        logger.info(f"Pushed {name} to {queue.base_dir}")
        print(name)

    return 0
