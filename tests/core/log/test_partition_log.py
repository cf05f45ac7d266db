"""Tests for the partition log."""

import os
import tempfile
import threading
import time
from pathlib import Path

import pytest

from commandlog.core.log.log import PartitionLog
from commandlog.errors import ClientClosedError


class TestPartitionLog:
    """Test PartitionLog append, read and recovery."""

    @pytest.fixture
    def temp_dir(self):
        """Create a temporary directory for tests."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    def test_create_empty_log(self, temp_dir):
        """Test a new log is empty."""
        log = PartitionLog(temp_dir)

        assert log.start_offset == 0
        assert log.end_offset == 0
        assert log.read(0) == []

        log.close()

    def test_append_assigns_sequential_offsets(self, temp_dir):
        """Test appends get gapless increasing offsets."""
        log = PartitionLog(temp_dir)

        offsets = [log.append(key=f"k{i}".encode(), value=b"v").offset for i in range(5)]

        assert offsets == [0, 1, 2, 3, 4]
        assert log.end_offset == 5

        log.close()

    def test_read_from_offset(self, temp_dir):
        """Test reading a range of records."""
        log = PartitionLog(temp_dir)
        for i in range(10):
            log.append(key=None, value=f"msg-{i}".encode())

        records = log.read(start_offset=4, max_records=3)

        assert [r.offset for r in records] == [4, 5, 6]
        assert records[0].value == b"msg-4"

        log.close()

    def test_read_past_end_is_empty(self, temp_dir):
        """Test reading at the end offset returns nothing."""
        log = PartitionLog(temp_dir)
        log.append(key=None, value=b"v")

        assert log.read(start_offset=1) == []

        log.close()

    def test_tombstone_append(self, temp_dir):
        """Test appending a record without a value."""
        log = PartitionLog(temp_dir)

        record = log.append(key=b"k", value=None)

        assert record.is_tombstone
        assert log.read(0)[0].value is None

        log.close()

    def test_recovery_after_reopen(self, temp_dir):
        """Test records are recovered when the log is reopened."""
        log = PartitionLog(temp_dir)
        log.append(key=b"a", value=b"1")
        log.append(key=b"b", value=None)
        log.append(key=b"c", value=b"3")
        log.close()

        reopened = PartitionLog(temp_dir)

        records = reopened.read(0)
        assert [r.key for r in records] == [b"a", b"b", b"c"]
        assert records[1].is_tombstone
        assert reopened.append(key=b"d", value=b"4").offset == 3

        reopened.close()

    def test_recovery_truncates_torn_tail(self, temp_dir):
        """Test a partially written record is discarded on reopen."""
        log = PartitionLog(temp_dir)
        log.append(key=b"a", value=b"1")
        log.append(key=b"b", value=b"2")
        path = log.path
        log.close()

        valid_size = path.stat().st_size
        with open(path, "ab") as f:
            f.write(b"\x00\x00\x00\x40partial")

        reopened = PartitionLog(temp_dir)

        assert reopened.end_offset == 2
        assert path.stat().st_size == valid_size
        assert reopened.append(key=b"c", value=b"3").offset == 2

        reopened.close()

    def test_append_after_close_fails(self, temp_dir):
        """Test appending to a closed log raises."""
        log = PartitionLog(temp_dir)
        log.close()

        with pytest.raises(ClientClosedError):
            log.append(key=None, value=b"v")

    def test_wait_times_out_without_records(self, temp_dir):
        """Test waiting returns False after the timeout."""
        log = PartitionLog(temp_dir)

        start = time.monotonic()
        available = log.wait_for_records(offset=0, timeout_sec=0.1)

        assert not available
        assert time.monotonic() - start >= 0.09

        log.close()

    def test_wait_wakes_on_append(self, temp_dir):
        """Test a waiting reader is woken by an append."""
        log = PartitionLog(temp_dir)

        def writer():
            time.sleep(0.05)
            log.append(key=None, value=b"v")

        thread = threading.Thread(target=writer)
        thread.start()

        start = time.monotonic()
        available = log.wait_for_records(offset=0, timeout_sec=5.0)
        elapsed = time.monotonic() - start

        thread.join()

        assert available
        assert elapsed < 2.0

        log.close()

    def test_wait_interrupted(self, temp_dir):
        """Test notify_waiters ends a wait whose predicate fires."""
        log = PartitionLog(temp_dir)
        interrupted = threading.Event()

        def interrupter():
            time.sleep(0.05)
            interrupted.set()
            log.notify_waiters()

        thread = threading.Thread(target=interrupter)
        thread.start()

        start = time.monotonic()
        available = log.wait_for_records(
            offset=0,
            timeout_sec=5.0,
            interrupted=interrupted.is_set,
        )
        elapsed = time.monotonic() - start

        thread.join()

        assert not available
        assert elapsed < 2.0

        log.close()

    def test_concurrent_appends(self, temp_dir):
        """Test concurrent writers never share an offset."""
        log = PartitionLog(temp_dir)
        offsets = []
        lock = threading.Lock()

        def writer(count):
            for _ in range(count):
                offset = log.append(key=None, value=b"v").offset
                with lock:
                    offsets.append(offset)

        threads = [threading.Thread(target=writer, args=(20,)) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(offsets) == list(range(100))
        assert log.end_offset == 100

        log.close()

    def test_partial_write_is_rolled_back(self, temp_dir, monkeypatch):
        """Test a short write leaves no garbage ahead of the next record."""
        log = PartitionLog(temp_dir)
        log.append(key=b"a", value=b"1")
        size_before = log.path.stat().st_size

        real_write = os.write

        def short_write(fd, data):
            return real_write(fd, data[:5])

        monkeypatch.setattr(os, "write", short_write)
        with pytest.raises(IOError):
            log.append(key=b"b", value=b"2")
        monkeypatch.setattr(os, "write", real_write)

        assert log.path.stat().st_size == size_before
        assert log.end_offset == 1

        assert log.append(key=b"c", value=b"3").offset == 1
        log.close()

        reopened = PartitionLog(temp_dir)
        assert [r.key for r in reopened.read(0)] == [b"a", b"c"]
        reopened.close()

    def test_synced_append_hidden_until_fsync(self, temp_dir, monkeypatch):
        """Test a synced record is fsynced before readers can see it."""
        log = PartitionLog(temp_dir)
        visible_at_fsync = []

        real_fsync = os.fsync

        def recording_fsync(fd):
            visible_at_fsync.append(len(log._records))
            real_fsync(fd)

        monkeypatch.setattr(os, "fsync", recording_fsync)
        log.append(key=b"a", value=b"1", sync=True)
        monkeypatch.setattr(os, "fsync", real_fsync)

        assert visible_at_fsync == [0]
        assert log.end_offset == 1

        log.close()


class TestSharedPartitionLog:
    """Test several PartitionLog instances on one file."""

    @pytest.fixture
    def temp_dir(self):
        """Create a temporary directory for tests."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    def test_writers_share_one_sequence(self, temp_dir):
        """Test offsets stay gapless across instances."""
        first = PartitionLog(temp_dir)
        second = PartitionLog(temp_dir)

        assert first.append(key=b"a", value=b"1").offset == 0
        assert second.append(key=b"b", value=b"2").offset == 1
        assert first.append(key=b"c", value=b"3").offset == 2

        assert first.end_offset == 3
        assert second.end_offset == 3
        assert [r.key for r in second.read(0)] == [b"a", b"b", b"c"]

        first.close()
        second.close()

    def test_concurrent_writers_on_two_instances(self, temp_dir):
        """Test concurrent appends through two instances never share an offset."""
        logs = [PartitionLog(temp_dir), PartitionLog(temp_dir)]
        offsets = []
        lock = threading.Lock()

        def writer(log):
            for _ in range(25):
                offset = log.append(key=None, value=b"v").offset
                with lock:
                    offsets.append(offset)

        threads = [threading.Thread(target=writer, args=(logs[i % 2],)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(offsets) == list(range(100))

        for log in logs:
            log.close()

        reopened = PartitionLog(temp_dir)
        assert reopened.end_offset == 100
        reopened.close()

    def test_wait_sees_foreign_append(self, temp_dir):
        """Test a reader is woken by an append made through another instance."""
        reader = PartitionLog(temp_dir)
        writer_log = PartitionLog(temp_dir)

        def writer():
            time.sleep(0.1)
            writer_log.append(key=None, value=b"v")

        thread = threading.Thread(target=writer)
        thread.start()

        start = time.monotonic()
        available = reader.wait_for_records(offset=0, timeout_sec=5.0)
        elapsed = time.monotonic() - start

        thread.join()

        assert available
        assert elapsed < 2.0
        assert reader.read(0)[0].value == b"v"

        reader.close()
        writer_log.close()

    def test_next_writer_truncates_torn_tail(self, temp_dir):
        """Test a crashed writer's partial frame is cut before the next append."""
        log = PartitionLog(temp_dir)
        log.append(key=b"a", value=b"1")
        valid_size = log.path.stat().st_size

        with open(log.path, "ab") as f:
            f.write(b"\x00\x00\x00\x40partial")

        assert log.end_offset == 1
        assert log.append(key=b"b", value=b"2").offset == 1
        log.close()

        reopened = PartitionLog(temp_dir)
        assert [r.key for r in reopened.read(0)] == [b"a", b"b"]
        assert reopened.path.stat().st_size > valid_size
        reopened.close()
