"""Directory-backed FIFO queue.

Every queued item is one ``<key>.item`` file in the base directory and the
directory listing is the queue's only index.  Processes that can see the same
directory (locally or over a network mount) are peers of the same queue:

- push writes a dot-prefixed staging file, then renames it to ``<key>.item``
- pop sorts the ``.item`` names and claims the first one it can rename to
  ``<key>.item.pop-<random>``; losing that rename to another consumer is not an
  error, the next name in the same listing is tried instead
- the claimer reads the claim file, removes it and returns the bytes

Claiming relies on rename being atomic on the underlying filesystem.
"""

import datetime
import logging
import os
import shutil
import time
from pathlib import Path
from typing import List, Optional, Union

from . import naming
from .exceptions import ClaimCleanupError


logger = logging.getLogger(__name__)

DEFAULT_DIR_MODE = 0o755
DEFAULT_FILE_MODE = 0o644


class FileQueue:
    """FIFO queue stored as files in a single directory."""

    def __init__(self,
                 base_dir: Union[str, os.PathLike],
                 dir_mode: int = DEFAULT_DIR_MODE,
                 file_mode: int = DEFAULT_FILE_MODE):
        """Open (and create if needed) a queue rooted at base_dir.

        Args:
            base_dir: Queue directory, relative or absolute. Resolved once so
                later working-directory changes do not affect the handle.
            dir_mode: Mode for created directories (umask applies)
            file_mode: Mode for item files (umask applies)

        Raises:
            OSError: If the directory cannot be created, e.g. the path is an
                existing regular file or permission is denied
        """
        self.base_dir = Path(base_dir).resolve()
        self.dir_mode = dir_mode
        self.file_mode = file_mode

        self.base_dir.mkdir(mode=dir_mode, parents=True, exist_ok=True)

    def __repr__(self) -> str:
        return f"FileQueue({str(self.base_dir)!r})"

    def __len__(self) -> int:
        return self.len()

    def len(self) -> int:
        """Number of queued items visible right now.

        This is a snapshot: other peers may change the count immediately
        after it is taken. Claimed and staging files are not counted.

        Raises:
            OSError: If the base directory cannot be listed
        """
        return len(self._list_items_sorted())

    def push(self, data: Union[bytes, bytearray, memoryview]) -> str:
        """Append an item.

        The payload is written to a staging file and renamed into place, so
        consumers never see a partially written item.

        Args:
            data: Item payload, may be empty

        Returns:
            File name of the new item (relative to the base directory)

        Raises:
            TypeError: If data is not bytes-like
            OSError: If the staging file cannot be written or renamed
        """
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError(f"Queue items must be bytes, got {type(data).__name__}")

        key = naming.new_key()
        target = self.base_dir / naming.item_name(key)
        temp_path = self.base_dir / naming.staging_name(key)

        try:
            fd = os.open(temp_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, self.file_mode)
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())

            temp_path.rename(target)
        except Exception:
            if temp_path.exists():
                temp_path.unlink()
            raise

        logger.debug(f"Pushed {target.name} ({len(data)} bytes)")
        return target.name

    def pop(self) -> Optional[bytes]:
        """Claim, read and remove the oldest item.

        Returns:
            The payload, or None when no item could be claimed from the
            listing taken at the start of the call

        Raises:
            OSError: If the directory cannot be listed, or a claimed item
                cannot be read (its claim file is left behind)
            ClaimCleanupError: If the claimed item was read but its claim file
                could not be removed
        """
        items = self._list_items_sorted()

        for item in items:
            source = self.base_dir / item
            claim_path = self.base_dir / naming.claim_name(item)

            try:
                source.rename(claim_path)
            except OSError as e:
                # Another consumer claimed or removed it first
                logger.debug(f"Lost claim race for {item}: {e}")
                continue

            payload = claim_path.read_bytes()

            try:
                claim_path.unlink()
            except OSError as e:
                raise ClaimCleanupError(e, claim_path, payload) from e

            logger.debug(f"Popped {item} ({len(payload)} bytes)")
            return payload

        return None

    def claims(self) -> List[Path]:
        """List claim files currently in the base directory.

        Claims normally exist only while a pop is running; ones that linger
        were left by a consumer that died between claiming and removing.
        """
        return sorted(
            entry for entry in self.base_dir.iterdir()
            if naming.is_claim(entry.name)
        )

    def stale_claims(self, min_age_sec: float = 3600) -> List[Path]:
        """Claim files whose status-change time is at least min_age_sec old.

        The claiming rename sets the status-change time, so a fresh claim held
        by a running pop is never reported.
        """
        cutoff = time.time() - min_age_sec
        stale = []

        for claim_path in self.claims():
            try:
                if claim_path.stat().st_ctime > cutoff:
                    continue
            except FileNotFoundError:
                # The pop holding this claim finished meanwhile
                continue
            stale.append(claim_path)

        return stale

    def sweep_orphans(self,
                      dest_dir: Union[str, os.PathLike],
                      min_age_sec: float = 3600,
                      timestamp_subdir: bool = True) -> List[Path]:
        """Move stale claim files out of the base directory.

        A claim is stale once its status-change time (set by the claiming
        rename) is at least min_age_sec old. Stale claims are moved, never
        put back in the queue, so an item that may already have been consumed
        is not delivered twice.

        Args:
            dest_dir: Directory receiving the orphans. Relative paths are
                taken relative to the base directory.
            min_age_sec: Minimum age of a claim before it is swept
            timestamp_subdir: If True, move into a UTC timestamp subdirectory

        Returns:
            Final paths of the moved claim files
        """
        dest_base = Path(dest_dir)
        if not dest_base.is_absolute():
            dest_base = self.base_dir / dest_base
        dest_base = dest_base.resolve()

        if dest_base == self.base_dir:
            raise ValueError(f"Sweep destination must differ from the queue directory: {dest_base}")

        if timestamp_subdir:
            timestamp = datetime.datetime.now(datetime.timezone.utc).strftime("%Y%m%dT%H%M%S")
            dest_parent = dest_base / timestamp
        else:
            dest_parent = dest_base

        moved = []

        for claim_path in self.stale_claims(min_age_sec):
            try:
                dest_parent.mkdir(mode=self.dir_mode, parents=True, exist_ok=True)
                dest = dest_parent / claim_path.name
                shutil.move(str(claim_path), str(dest))
            except FileNotFoundError:
                # The pop holding this claim finished meanwhile
                logger.debug(f"Claim vanished during sweep: {claim_path.name}")
                continue

            logger.warning(f"Moved orphaned claim {claim_path.name} to {dest_parent}")
            moved.append(dest)

        return moved

    def _list_items_sorted(self) -> List[str]:
        items = [name for name in os.listdir(self.base_dir) if naming.is_item(name)]
        items.sort()
        return items
