"""Helpers shared by the CLI commands."""

import logging
from argparse import Namespace

from filequeue.config import QueueConfig, load_config
from filequeue.queue import FileQueue


def configure_logging(args: Namespace) -> None:
    """Set up logging from --log-level, --debug, --quiet and --verbose.

    Logs go to stderr so that stdout carries only command output.
    """
    level_name = 'warning' if args.log_level == 'warn' else args.log_level
    log_level = getattr(logging, level_name.upper())
    if args.debug:
        log_level = logging.DEBUG
    elif args.quiet:
        log_level = logging.ERROR
    elif args.verbose:
        log_level = logging.DEBUG

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def open_queue(args: Namespace) -> tuple[QueueConfig, FileQueue]:
    """Load the config file (if any) and open the queue named by DIR."""
    config = load_config(args.config)
    queue = config.open_queue(args.dir)
    return config, queue
