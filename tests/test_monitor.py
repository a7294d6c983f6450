"""Tests for the SystemMonitor class."""

import os
import threading
import time
from queue import Queue

import pytest
from conftest import counter_text, process_line

from jiffytop.config import MAX_PROCESS_ROWS
from jiffytop.errors import SamplingCancelled, SourceNotFound
from jiffytop.models import ProcessState, ProcessUsage, UsageReading
from jiffytop.monitor import MonitorSnapshot, SystemMonitor
from jiffytop.reader import ProcfsReader

requires_procfs = pytest.mark.skipif(not os.path.exists("/proc/stat"), reason="requires Linux procfs")


class TestMonitorSnapshot:
    """Tests for MonitorSnapshot dataclass."""

    def test_monitor_snapshot_creation(self):
        """Test MonitorSnapshot can be created with all fields."""
        snapshot = MonitorSnapshot(
            system=UsageReading(12.5, 25, 200, 1),
            core_count=4,
            uptime_seconds=3600.0,
            processes=[],
        )
        assert snapshot.system.percent == 12.5
        assert snapshot.core_count == 4
        assert snapshot.processes == []

    def test_monitor_snapshot_uses_slots(self):
        """Test MonitorSnapshot uses __slots__ for memory efficiency."""
        snapshot = MonitorSnapshot(
            system=UsageReading(0.0, 0, 0, 1, zero_window=True),
            core_count=0,
            uptime_seconds=0.0,
            processes=[],
        )
        assert not hasattr(snapshot, "__dict__")


class TestSystemMonitor:
    """Tests for SystemMonitor class."""

    def test_monitor_creation(self):
        """Test SystemMonitor can be instantiated."""
        queue: Queue[MonitorSnapshot] = Queue()
        monitor = SystemMonitor(queue)

        assert monitor.poll_rate == 2.0
        assert not monitor.per_core
        assert not monitor.is_running

    def test_poll_rate_minimum(self):
        """Test poll rate has a minimum value."""
        queue: Queue[MonitorSnapshot] = Queue()
        monitor = SystemMonitor(queue, poll_rate=0.01)
        assert monitor.poll_rate >= 0.1

        monitor.poll_rate = 0.0
        assert monitor.poll_rate >= 0.1

    def test_collect_snapshot_from_fake_proc(self, proc_root, add_process):
        """Test a snapshot is assembled from the fake proc tree."""
        add_process(10, command="idle loop", cmdline="/bin/idle --forever", num_threads=3)
        add_process(11, command="kworker/0:1")
        monitor = SystemMonitor(
            Queue(),
            poll_rate=0.1,
            reader=ProcfsReader(proc_root),
            list_pids=lambda: [10, 11, 12],
        )

        snapshot = monitor.collect_snapshot()

        assert snapshot.core_count == 1
        assert snapshot.uptime_seconds == pytest.approx(3725.5)
        assert snapshot.cpu_model == "Fake CPU"
        # Files never change, so no ticks elapse
        assert snapshot.system.zero_window
        assert snapshot.system.percent == 0.0

        by_pid = {proc.pid: proc for proc in snapshot.processes}
        assert set(by_pid) == {10, 11}
        assert by_pid[10].command == "/bin/idle --forever"
        assert by_pid[10].threads == 3
        assert by_pid[10].state is ProcessState.SLEEPING
        assert by_pid[11].command == "[kworker/0:1]"
        for proc in snapshot.processes:
            assert isinstance(proc, ProcessUsage)
            assert isinstance(proc.username, str)
            assert proc.cpu_percent == 0.0

    def test_collect_snapshot_computes_shares(self, proc_root, add_process):
        """Test process shares use the system ticks of the same window."""
        (proc_root / "stat").write_text(counter_text((0,) * 10, (0,) * 10, (0,) * 10))
        add_process(20, utime=0)
        add_process(21, utime=0)

        def advance():
            (proc_root / "stat").write_text(
                counter_text((100, 0, 0, 100, 0, 0, 0, 0, 0, 0), (0,) * 10, (0,) * 10)
            )
            add_process(20, utime=50)
            add_process(21, utime=10)

        monitor = SystemMonitor(
            Queue(),
            poll_rate=0.6,
            reader=ProcfsReader(proc_root),
            per_core=True,
            list_pids=lambda: [20, 21],
        )
        timer = threading.Timer(0.2, advance)
        timer.start()
        try:
            snapshot = monitor.collect_snapshot()
        finally:
            timer.cancel()

        assert snapshot.system.percent == pytest.approx(50.0)
        assert [proc.pid for proc in snapshot.processes] == [20, 21]
        # per-core: 100 * 50 * 2 cores / 200 ticks
        assert snapshot.processes[0].cpu_percent == pytest.approx(50.0)
        assert snapshot.processes[1].cpu_percent == pytest.approx(10.0)
        assert snapshot.processes[0].active_jiffies == 50

    def test_reused_pid_skipped(self, proc_root, add_process):
        """Test a pid whose start time changed within the window is dropped."""
        add_process(30, starttime=100)
        monitor = SystemMonitor(
            Queue(),
            poll_rate=0.6,
            reader=ProcfsReader(proc_root),
            list_pids=lambda: [30],
        )
        timer = threading.Timer(0.2, lambda: add_process(30, starttime=999))
        timer.start()
        try:
            snapshot = monitor.collect_snapshot()
        finally:
            timer.cancel()
        assert snapshot.processes == []

    def test_malformed_process_skipped(self, proc_root, add_process, caplog):
        """Test a malformed process record is skipped with a warning."""
        add_process(40)
        (proc_root / "40" / "stat").write_text("40 (broken\n")
        monitor = SystemMonitor(
            Queue(),
            poll_rate=0.1,
            reader=ProcfsReader(proc_root),
            list_pids=lambda: [40],
        )
        snapshot = monitor.collect_snapshot()
        assert snapshot.processes == []
        assert "Skipping pid 40" in caplog.text

    def test_missing_cpuinfo_leaves_model_blank(self, proc_root, caplog):
        """Test a missing cpuinfo is logged once and does not fail the cycle."""
        (proc_root / "cpuinfo").unlink()
        monitor = SystemMonitor(
            Queue(),
            poll_rate=0.1,
            reader=ProcfsReader(proc_root),
            list_pids=list,
        )
        assert monitor.collect_snapshot().cpu_model == ""
        assert monitor.collect_snapshot().cpu_model == ""
        assert caplog.text.count("CPU model unavailable") == 1

    def test_missing_stat_raises(self, tmp_path):
        """Test a cycle without /proc/stat fails with a typed error."""
        monitor = SystemMonitor(Queue(), reader=ProcfsReader(tmp_path), list_pids=list)
        with pytest.raises(SourceNotFound):
            monitor.collect_snapshot()

    def test_stop_cancels_window(self, proc_root):
        """Test collect_snapshot raises once stop has been requested."""
        monitor = SystemMonitor(Queue(), poll_rate=30.0, reader=ProcfsReader(proc_root), list_pids=list)
        monitor.stop()
        with pytest.raises(SamplingCancelled):
            monitor.collect_snapshot()

    def test_monitor_start_stop(self, proc_root):
        """Test SystemMonitor can be started and stopped."""
        queue: Queue[MonitorSnapshot] = Queue()
        monitor = SystemMonitor(queue, poll_rate=0.1, reader=ProcfsReader(proc_root), list_pids=list)

        assert not monitor.is_running

        monitor.start()
        assert monitor.is_running

        monitor.stop()
        assert not monitor.is_running

    def test_stop_interrupts_long_window(self, proc_root):
        """Test stop() returns promptly even with a long poll window."""
        monitor = SystemMonitor(Queue(), poll_rate=30.0, reader=ProcfsReader(proc_root), list_pids=list)
        monitor.start()
        time.sleep(0.1)

        start = time.monotonic()
        monitor.stop()
        assert time.monotonic() - start < 2.0
        assert not monitor.is_running

    def test_monitor_start_idempotent(self, proc_root):
        """Test starting an already running monitor is safe."""
        queue: Queue[MonitorSnapshot] = Queue()
        monitor = SystemMonitor(queue, poll_rate=0.1, reader=ProcfsReader(proc_root), list_pids=list)

        monitor.start()
        thread1 = monitor._thread

        monitor.start()  # Should not create a new thread
        thread2 = monitor._thread

        assert thread1 is thread2
        monitor.stop()

    def test_failed_cycles_publish_nothing(self, tmp_path, caplog):
        """Test the loop logs failures and keeps running without queuing stale data."""
        queue: Queue[MonitorSnapshot] = Queue()
        monitor = SystemMonitor(queue, poll_rate=0.1, reader=ProcfsReader(tmp_path), list_pids=list)

        monitor.start()
        try:
            time.sleep(0.35)
            assert monitor.is_running
            assert queue.empty()
        finally:
            monitor.stop()
        assert "Monitor cycle failed" in caplog.text

    def test_non_ascii_counters_do_not_kill_thread(self, proc_root, caplog):
        """Test a counter with Unicode digits fails the cycle, not the thread."""
        (proc_root / "stat").write_text("cpu ² 0 0 0 0 0 0 0 0 0\n")
        queue: Queue[MonitorSnapshot] = Queue()
        monitor = SystemMonitor(queue, poll_rate=0.1, reader=ProcfsReader(proc_root), list_pids=list)

        monitor.start()
        try:
            time.sleep(0.35)
            assert monitor.is_running
            assert queue.empty()
        finally:
            monitor.stop()
        assert "Monitor cycle failed" in caplog.text

    def test_daemon_thread(self, proc_root):
        """Test monitor thread is a daemon thread."""
        queue: Queue[MonitorSnapshot] = Queue()
        monitor = SystemMonitor(queue, poll_rate=0.1, reader=ProcfsReader(proc_root), list_pids=list)

        monitor.start()

        try:
            assert monitor._thread is not None
            assert monitor._thread.daemon is True
            assert monitor._thread.name == "SystemMonitor"
        finally:
            monitor.stop()


@requires_procfs
class TestLiveSystem:
    """Tests against the real /proc."""

    def test_monitor_collects_data(self):
        """Test SystemMonitor collects and queues data."""
        queue: Queue[MonitorSnapshot] = Queue()
        monitor = SystemMonitor(queue, poll_rate=0.2)

        monitor.start()

        try:
            snapshot = queue.get(timeout=5.0)
            assert isinstance(snapshot, MonitorSnapshot)
            assert 0.0 <= snapshot.system.percent <= 100.0
            assert snapshot.core_count >= 1
            assert snapshot.uptime_seconds > 0
        finally:
            monitor.stop()

    def test_monitor_collects_processes(self):
        """Test SystemMonitor collects bounded process rows from the live system."""
        monitor = SystemMonitor(Queue(), poll_rate=0.2)

        snapshot = monitor.collect_snapshot()

        assert len(snapshot.processes) > 0
        for proc in snapshot.processes:
            assert isinstance(proc, ProcessUsage)
            assert proc.pid > 0
            assert 0.0 <= proc.cpu_percent <= 100.0
        assert len(snapshot.processes) <= MAX_PROCESS_ROWS

    def test_live_process_line_format(self):
        """Test our synthetic lines match the shape of a real one."""
        real = ProcfsReader().read_process_stat(os.getpid())
        fake = process_line(os.getpid())
        assert len(real.rsplit(")", 1)[1].split()) >= 44
        assert len(fake.rsplit(")", 1)[1].split()) >= 44
