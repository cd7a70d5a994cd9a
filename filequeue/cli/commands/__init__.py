"""CLI command handlers."""

from .size import queue_length
from .push import push_items
from .pop import pop_items
from .sweep import sweep_orphans

__all__ = ['queue_length', 'push_items', 'pop_items', 'sweep_orphans']
