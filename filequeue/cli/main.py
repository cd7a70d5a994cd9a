"""Main CLI entry point for filequeue."""

import argparse
import logging
import sys
from typing import Optional

from filequeue.exceptions import ConfigValidationError

from .commands import queue_length, push_items, pop_items, sweep_orphans
from .commands.common import configure_logging


logger = logging.getLogger(__name__)


def _common_options() -> argparse.ArgumentParser:
    """Options accepted by every sub-command."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        'dir',
        nargs='?',
        type=str,
        help='Queue directory (default: base_dir from --config or $FILEQUEUE_DIR)'
    )
    common.add_argument(
        '--config',
        type=str,
        help='Path to YAML config file'
    )
    common.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )
    common.add_argument(
        '--quiet',
        action='store_true',
        help='Suppress non-error output'
    )
    common.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose output'
    )
    common.add_argument(
        '--log-level',
        choices=['debug', 'info', 'warn', 'error'],
        default='warn',
        help='Set log level'
    )
    return common


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the filequeue CLI."""
    parser = argparse.ArgumentParser(
        prog='filequeue',
        description='FIFO queue stored in a shared directory'
    )

    subparsers = parser.add_subparsers(dest='command', help='Commands')
    common = _common_options()

    # Len command
    subparsers.add_parser('len', parents=[common], help='Print the number of queued items')

    # Push command
    push_parser = subparsers.add_parser('push', parents=[common], help='Append items')
    push_parser.add_argument(
        'data',
        nargs='*',
        help='Payloads to push, one item each (UTF-8)'
    )
    push_parser.add_argument(
        '--file',
        type=str,
        help='Push the content of this file as a single item'
    )

    # Pop command
    pop_parser = subparsers.add_parser('pop', parents=[common], help='Claim and remove the oldest item')
    pop_parser.add_argument(
        '--wait',
        type=float,
        metavar='SEC',
        help='Poll for up to SEC seconds when the queue is empty'
    )
    pop_parser.add_argument(
        '--poll-ms',
        type=int,
        help='Polling interval in milliseconds'
    )
    pop_parser.add_argument(
        '--all',
        action='store_true',
        help='Drain the queue, writing one payload per line'
    )
    pop_parser.add_argument(
        '--output',
        type=str,
        metavar='PATH',
        help='Write the payload to PATH instead of stdout'
    )

    # Sweep command
    sweep_parser = subparsers.add_parser('sweep', parents=[common], help='Move orphaned claim files aside')
    sweep_parser.add_argument(
        '--dest',
        type=str,
        help='Destination directory (relative paths are inside the queue directory)'
    )
    sweep_parser.add_argument(
        '--min-age-sec',
        type=float,
        help='Only sweep claims at least this old'
    )
    sweep_parser.add_argument(
        '--dry-run',
        action='store_true',
        help='List claim files without moving them'
    )

    return parser


COMMANDS = {
    'len': queue_length,
    'push': push_items,
    'pop': pop_items,
    'sweep': sweep_orphans,
}


def main(args: Optional[list] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    configure_logging(parsed_args)
    handler = COMMANDS[parsed_args.command]

    try:
        return handler(parsed_args)
    except ConfigValidationError as e:
        for error in e.errors:
            location = f" ({error.path})" if error.path else ""
            logger.error(f"Validation error{location}: {error.message}")
        return e.exit_code
    except ValueError as e:
        logger.error(f"Validation error: {e}")
        return 2
    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        return 1
    except OSError as e:
        logger.error(f"Queue operation failed: {e}")
        return 1
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return 1


if __name__ == '__main__':
    sys.exit(main())
