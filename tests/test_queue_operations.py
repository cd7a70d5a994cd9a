"""Unit tests for queue operations.

Covers construction, len, push and pop against a real temporary directory,
with failure injection for the hard-error paths.
"""

import os
import shutil
import tempfile
from pathlib import Path
import pytest
from unittest.mock import patch, MagicMock

from filequeue import FileQueue, ClaimCleanupError
from filequeue import naming


class TestQueueConstruction:
    """Test suite for opening queues."""

    @pytest.fixture
    def temp_workspace(self):
        """Create a temporary workspace for testing."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield tmpdir

    def test_creates_missing_directories(self, temp_workspace):
        """Missing base directory and parents are created."""
        base = Path(temp_workspace) / "a" / "b" / "queue"

        queue = FileQueue(base)

        assert base.is_dir()
        assert queue.base_dir == base.resolve()

    def test_accepts_existing_populated_directory(self, temp_workspace):
        """A directory already holding items from another peer is reused as-is."""
        (Path(temp_workspace) / "00000000000000000001-x.item").write_bytes(b"left over")

        queue = FileQueue(temp_workspace)

        assert queue.len() == 1
        assert queue.pop() == b"left over"

    def test_relative_path_is_resolved(self, temp_workspace, monkeypatch):
        """Relative paths are resolved once, at construction."""
        monkeypatch.chdir(temp_workspace)
        queue = FileQueue("relative_queue")

        monkeypatch.chdir("/")
        queue.push(b"still here")

        assert queue.base_dir == (Path(temp_workspace) / "relative_queue").resolve()
        assert queue.base_dir.is_absolute()
        assert queue.len() == 1

    def test_creates_directory_mode(self, temp_workspace):
        """Created directories get 0755 filtered by the process umask."""
        umask = os.umask(0)
        os.umask(umask)
        base = Path(temp_workspace) / "modes" / "queue"

        FileQueue(base)

        assert base.stat().st_mode & 0o777 == 0o755 & ~umask

    def test_existing_directory_mode_untouched(self, temp_workspace):
        base = Path(temp_workspace) / "queue"
        base.mkdir()
        base.chmod(0o700)

        FileQueue(base)

        assert base.stat().st_mode & 0o777 == 0o700

    def test_path_is_existing_file(self, temp_workspace):
        """Construction fails when the path is a regular file."""
        blocker = Path(temp_workspace) / "not_a_dir"
        blocker.write_text("file")

        with pytest.raises(OSError):
            FileQueue(blocker)

    def test_path_below_existing_file(self, temp_workspace):
        """Construction fails when a parent is a regular file."""
        blocker = Path(temp_workspace) / "not_a_dir"
        blocker.write_text("file")

        with pytest.raises(OSError):
            FileQueue(blocker / "queue")

    def test_independent_handles_share_items(self, temp_workspace):
        """Two handles on one directory see the same queue."""
        producer = FileQueue(temp_workspace)
        consumer = FileQueue(temp_workspace)

        producer.push(b"shared")

        assert consumer.len() == 1
        assert consumer.pop() == b"shared"
        assert producer.len() == 0


class TestQueueOperations:
    """Test suite for len, push and pop."""

    @pytest.fixture
    def temp_workspace(self):
        """Create a temporary workspace for testing."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield tmpdir

    @pytest.fixture
    def queue(self, temp_workspace):
        """Create a FileQueue in the temp workspace."""
        return FileQueue(temp_workspace)

    def test_empty_queue_len(self, queue):
        assert queue.len() == 0
        assert len(queue) == 0

    def test_len_counts_pushes(self, queue):
        for i in range(5):
            queue.push(f"payload-{i}".encode())

        assert queue.len() == 5

    def test_push_then_pop(self, queue):
        """A pop right after a push returns that payload and empties the queue."""
        queue.push(b"kris")

        assert queue.len() == 1
        assert queue.pop() == b"kris"
        assert queue.len() == 0

    def test_pop_empty_returns_none(self, queue):
        assert queue.pop() is None

    def test_empty_payload_is_not_none(self, queue):
        """An empty payload is a real item, distinct from the empty-queue result."""
        queue.push(b"")

        payload = queue.pop()

        assert payload == b""
        assert payload is not None
        assert queue.pop() is None

    def test_binary_payload_roundtrip(self, queue):
        data = bytes(range(256)) * 4
        queue.push(bytearray(data))

        assert queue.pop() == data

    def test_push_rejects_str(self, queue):
        with pytest.raises(TypeError):
            queue.push("text")
        assert queue.len() == 0

    def test_fifo_order_single_writer(self, queue):
        """Sequential pops return items in push order."""
        for item in (b"a", b"b", b"c"):
            queue.push(item)

        assert [queue.pop(), queue.pop(), queue.pop()] == [b"a", b"b", b"c"]
        assert queue.pop() is None

    def test_fifo_order_many_items(self, queue):
        """Order holds for many pushes inside one clock tick."""
        expected = [f"{i:04d}".encode() for i in range(200)]
        for item in expected:
            queue.push(item)

        popped = []
        while (payload := queue.pop()) is not None:
            popped.append(payload)

        assert popped == expected

    def test_push_returns_item_name(self, queue):
        name = queue.push(b"x")

        assert name.endswith(".item")
        assert (queue.base_dir / name).read_bytes() == b"x"

    def test_push_names_are_distinct(self, queue):
        names = {queue.push(b"same") for _ in range(100)}

        assert len(names) == 100
        assert queue.len() == 100

    def test_push_file_mode(self, queue):
        """Item files get 0644 filtered by the process umask."""
        umask = os.umask(0)
        os.umask(umask)

        name = queue.push(b"x")

        mode = (queue.base_dir / name).stat().st_mode & 0o777
        assert mode == 0o644 & ~umask

    def test_push_leaves_no_staging_file(self, queue):
        queue.push(b"x")

        assert [p.name for p in queue.base_dir.iterdir() if p.name.endswith(".tmp")] == []

    def test_push_cleanup_on_failure(self, queue):
        """Staging file is removed and the error raised if the rename fails."""
        with patch.object(Path, 'rename', side_effect=OSError("rename failed")):
            with pytest.raises(OSError):
                queue.push(b"content")

        assert list(queue.base_dir.iterdir()) == []

    def test_len_ignores_other_files(self, queue):
        """Claim, staging and unrelated files are not counted."""
        queue.push(b"counted")
        (queue.base_dir / "00000000000000000001-x.item.pop-0.25").write_bytes(b"claimed")
        (queue.base_dir / ".00000000000000000002-x.tmp").write_bytes(b"staging")
        (queue.base_dir / "notes.txt").write_text("unrelated")

        assert queue.len() == 1

    def test_pop_ignores_claims_and_staging(self, queue):
        (queue.base_dir / "00000000000000000001-x.item.pop-0.25").write_bytes(b"claimed")
        (queue.base_dir / ".00000000000000000002-x.tmp").write_bytes(b"staging")

        assert queue.pop() is None

    def test_len_on_removed_directory(self, queue):
        """Listing failures propagate."""
        shutil.rmtree(queue.base_dir)

        with pytest.raises(FileNotFoundError):
            queue.len()

    def test_pop_on_removed_directory(self, queue):
        shutil.rmtree(queue.base_dir)

        with pytest.raises(FileNotFoundError):
            queue.pop()


class TestPopRaces:
    """Test claim races and the hard-error paths after a claim."""

    @pytest.fixture
    def queue(self, tmp_path):
        return FileQueue(tmp_path / "queue")

    def test_vanished_candidate_is_skipped(self, queue):
        """An item claimed by someone else after the listing is not an error."""
        queue.push(b"real")
        snapshot = ["00000000000000000000-ghost.item"] + queue._list_items_sorted()

        with patch.object(FileQueue, '_list_items_sorted', return_value=snapshot):
            assert queue.pop() == b"real"

    def test_all_candidates_lost_returns_none(self, queue):
        """Losing every claim in the snapshot yields None without re-listing."""
        queue.push(b"one")
        queue.push(b"two")

        with patch.object(FileQueue, '_list_items_sorted', wraps=queue._list_items_sorted) as listing:
            with patch.object(Path, 'rename', side_effect=FileNotFoundError("claimed elsewhere")):
                assert queue.pop() is None

        assert listing.call_count == 1
        assert queue.len() == 2

    def test_failed_claim_advances_to_next(self, queue):
        """A failed rename moves on to the next item in the same snapshot."""
        queue.push(b"first")
        queue.push(b"second")

        original_rename = Path.rename
        calls = []

        def flaky_rename(self, target):
            calls.append(self.name)
            if len(calls) == 1:
                raise FileNotFoundError(f"lost race for {self.name}")
            return original_rename(self, target)

        with patch.object(Path, 'rename', flaky_rename):
            assert queue.pop() == b"second"

        # The first item was never touched and is still queued
        assert queue.len() == 1
        assert queue.pop() == b"first"

    def test_claim_uses_pop_suffix(self, queue):
        name = queue.push(b"x")

        original_rename = Path.rename
        targets = []

        def capture_rename(self, target):
            targets.append(Path(target).name)
            return original_rename(self, target)

        with patch.object(Path, 'rename', capture_rename):
            queue.pop()

        assert len(targets) == 1
        assert targets[0].startswith(f"{name}.pop-")

    def test_read_failure_after_claim(self, queue):
        """A read failure on a claimed item is raised and the claim is left behind."""
        queue.push(b"unreadable")

        with patch.object(Path, 'read_bytes', side_effect=PermissionError(13, "Permission denied")):
            with pytest.raises(PermissionError):
                queue.pop()

        assert queue.len() == 0
        assert len(queue.claims()) == 1

    def test_delete_failure_after_read(self, queue):
        """A failed claim removal raises ClaimCleanupError carrying the payload."""
        queue.push(b"delivered")

        with patch.object(Path, 'unlink', side_effect=PermissionError(13, "Permission denied")):
            with pytest.raises(ClaimCleanupError) as exc_info:
                queue.pop()

        error = exc_info.value
        assert isinstance(error, OSError)
        assert error.payload == b"delivered"
        assert error.errno == 13
        assert isinstance(error.__cause__, PermissionError)
        assert error.claim_path.exists()
        assert queue.claims() == [error.claim_path]
        assert queue.len() == 0

    def test_claims_lists_in_flight_files(self, queue):
        claim = queue.base_dir / "00000000000000000001-x.item.pop-0.5"
        claim.write_bytes(b"orphan")
        queue.push(b"queued")

        assert queue.claims() == [claim]


class TestNaming:
    """Test ordering keys and file classification."""

    @pytest.mark.skipif(not hasattr(os, "fork"), reason="requires fork")
    def test_key_lock_released_in_forked_child(self):
        """A child forked while the key lock is held can still generate keys."""
        with naming._lock:
            pid = os.fork()
            if pid == 0:
                os._exit(1 if naming._lock.locked() else 0)

        _, status = os.waitpid(pid, 0)
        assert os.WIFEXITED(status)
        assert os.WEXITSTATUS(status) == 0

    def test_keys_strictly_increase(self):
        keys = [naming.new_key() for _ in range(1000)]

        assert keys == sorted(keys)
        assert len(set(keys)) == len(keys)

    def test_keys_increase_when_clock_stalls(self):
        """Same timestamp from the clock still yields increasing keys."""
        with patch('filequeue.naming.time.time_ns', return_value=1_700_000_000_000_000_000):
            keys = [naming.new_key() for _ in range(10)]

        assert keys == sorted(keys)
        assert len(set(keys)) == 10

    def test_key_layout(self):
        stamp, pid, sequence, token = naming.new_key().split("-")

        assert len(stamp) == 20 and stamp.isdigit()
        assert int(pid) == os.getpid()
        assert len(sequence) == 6 and sequence.isdigit()
        assert len(token) == 8

    def test_classification(self):
        key = naming.new_key()
        item = naming.item_name(key)
        claim = naming.claim_name(item)
        staging = naming.staging_name(key)

        assert naming.is_item(item)
        assert not naming.is_claim(item)
        assert naming.is_claim(claim)
        assert not naming.is_item(claim)
        assert not naming.is_item(staging)
        assert not naming.is_claim(staging)

    def test_claim_names_are_unique(self):
        names = {naming.claim_name("k.item") for _ in range(100)}
        assert len(names) == 100
