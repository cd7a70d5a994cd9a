"""Sweep command: move orphaned claim files out of the queue directory."""

import logging
from argparse import Namespace

from .common import open_queue


logger = logging.getLogger(__name__)


def sweep_orphans(args: Namespace) -> int:
    config, queue = open_queue(args)

    dest_dir = args.dest or config.sweep_dest_dir
    min_age_sec = args.min_age_sec if args.min_age_sec is not None else config.sweep_min_age_sec

    if args.dry_run:
        for claim in queue.stale_claims(min_age_sec):
            print(claim.name)
        logger.info(f"[DRY RUN] Would sweep claims older than {min_age_sec}s to {dest_dir}")
        return 0

    moved = queue.sweep_orphans(dest_dir, min_age_sec=min_age_sec)
    for path in moved:
        print(path)

    logger.info(f"Swept {len(moved)} orphaned claim(s) from {queue.base_dir}")
    return 0
