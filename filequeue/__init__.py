"""Directory-backed FIFO queue shared by processes through the filesystem."""

from .exceptions import ClaimCleanupError, ConfigValidationError, ValidationError
from .queue import FileQueue
from .wait import PopWaiter, WaitConfig, WaitResult, wait_pop
from .config import QueueConfig, ConfigLoader, load_config

__version__ = "0.1.0"

__all__ = [
    'FileQueue',
    'PopWaiter',
    'WaitConfig',
    'WaitResult',
    'wait_pop',
    'QueueConfig',
    'ConfigLoader',
    'load_config',
    'ClaimCleanupError',
    'ConfigValidationError',
    'ValidationError',
]
