"""Background sampling engine for jiffytop."""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from queue import Queue

import psutil

from jiffytop.config import DEFAULT_POLL_INTERVAL, MAX_PROCESS_ROWS, MIN_POLL_INTERVAL
from jiffytop.errors import (
    JiffytopError,
    ParseError,
    SamplingCancelled,
    SourceNotFound,
    SourceUnreadable,
)
from jiffytop.jiffies import process_active_jiffies
from jiffytop.models import ProcessStat, ProcessUsage, UsageReading
from jiffytop.parsers import parse_cpu_model
from jiffytop.reader import ProcfsReader
from jiffytop.sampler import UtilizationSampler, process_share_percent, usage_reading

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MonitorSnapshot:
    """One sampling window's worth of system and process usage."""

    system: UsageReading
    core_count: int
    uptime_seconds: float
    processes: list[ProcessUsage]
    cpu_model: str = ""


class SystemMonitor:
    """
    System monitor that samples /proc counters off the rendering path.

    Runs in a separate daemon thread and pushes updates to a thread-safe Queue.
    Each cycle reads the counters at both ends of one poll window, so the
    system reading and every process share cover the same ticks. The stop
    event is also the cancellation token, so stop() cuts a window short.
    """

    def __init__(
        self,
        update_queue: Queue[MonitorSnapshot],
        poll_rate: float = DEFAULT_POLL_INTERVAL,
        reader: ProcfsReader | None = None,
        per_core: bool = False,
        list_pids: Callable[[], list[int]] = psutil.pids,
        log: logging.Logger | None = None,
    ) -> None:
        """
        Initialize the SystemMonitor.

        Args:
            update_queue: Thread-safe queue to push updates to.
            poll_rate: Length of each sampling window (in seconds). Default 2.0s.
            reader: Source of procfs text. Default a ProcfsReader on /proc.
            per_core: Report process shares scaled to one core.
            list_pids: Returns the pids to sample each cycle.
            log: Logger for cycle failures. Defaults to this module's logger.
        """
        self._queue = update_queue
        self._poll_rate = max(MIN_POLL_INTERVAL, poll_rate)
        self._log = log or logger
        self._reader = reader if reader is not None else ProcfsReader(log=self._log)
        self._sampler = UtilizationSampler(self._reader, log=self._log)
        self._per_core = per_core
        self._list_pids = list_pids
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._cpu_model: str | None = None

    @property
    def poll_rate(self) -> float:
        """Get the current poll rate."""
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        """Set the poll rate."""
        self._poll_rate = max(MIN_POLL_INTERVAL, value)

    @property
    def per_core(self) -> bool:
        return self._per_core

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the monitoring thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="SystemMonitor",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            try:
                snapshot = self.collect_snapshot()
            except SamplingCancelled:
                break
            except JiffytopError as exc:
                # Nothing is published for a failed cycle; the next one starts fresh
                self._log.error("Monitor cycle failed: %s", exc)
                self._stop_event.wait(timeout=self._poll_rate)
                continue
            self._queue.put(snapshot)

    def collect_snapshot(self) -> MonitorSnapshot:
        """
        Sample one poll window and build a snapshot.

        Blocks for poll_rate seconds.

        Raises:
            SamplingCancelled: stop() was called during the window.
            JiffytopError: /proc/stat or /proc/uptime could not be read or parsed.
        """
        pids = self._list_pids()

        series_before = self._sampler.read_counter_series()
        procs_before = self._read_processes(pids)

        if self._stop_event.wait(timeout=self._poll_rate):
            raise SamplingCancelled()

        series_after = self._sampler.read_counter_series()
        procs_after = self._read_processes(list(procs_before))

        system_before = series_before.aggregate
        system_after = series_after.aggregate
        cores = series_after.core_count if self._per_core else 1

        rows: list[tuple[ProcessStat, float]] = []
        for pid, after in procs_after.items():
            before = procs_before[pid]
            if before.starttime != after.starttime:
                # Pid was reused by a new process within the window
                continue
            share = process_share_percent(before, after, system_before, system_after, cores)
            rows.append((after, share))

        rows.sort(key=lambda row: row[1], reverse=True)
        processes = [self._to_usage(stat, share) for stat, share in rows[:MAX_PROCESS_ROWS]]

        return MonitorSnapshot(
            system=usage_reading(system_before, system_after),
            core_count=series_after.core_count,
            uptime_seconds=self._reader.read_uptime(),
            processes=processes,
            cpu_model=self._read_cpu_model(),
        )

    def _read_cpu_model(self) -> str:
        # cpuinfo does not change while the system is up; read it once
        if self._cpu_model is None:
            try:
                self._cpu_model = parse_cpu_model(self._reader.read_cpu_info())
            except (SourceNotFound, SourceUnreadable) as exc:
                self._log.warning("CPU model unavailable: %s", exc)
                self._cpu_model = ""
        return self._cpu_model

    def _read_processes(self, pids: list[int]) -> dict[int, ProcessStat]:
        """
        Read the stat record of every pid that can still be read.

        Processes that exited since listing are skipped silently; unreadable
        or malformed records are skipped with a warning.
        """
        stats: dict[int, ProcessStat] = {}
        for pid in pids:
            try:
                stats[pid] = self._sampler.read_process_stat(pid)
            except SourceNotFound:
                continue
            except (SourceUnreadable, ParseError) as exc:
                self._log.warning("Skipping pid %d: %s", pid, exc)
        return stats

    def _to_usage(self, stat: ProcessStat, share: float) -> ProcessUsage:
        return ProcessUsage(
            pid=stat.pid,
            command=self._command_line(stat),
            username=self._username(stat.pid),
            state=stat.state,
            cpu_percent=share,
            threads=stat.num_threads,
            active_jiffies=process_active_jiffies(stat),
        )

    def _command_line(self, stat: ProcessStat) -> str:
        # Kernel threads have an empty cmdline; show the comm like ps does
        try:
            cmdline = self._reader.read_process_cmdline(stat.pid)
        except (SourceNotFound, SourceUnreadable):
            cmdline = ""
        return cmdline or f"[{stat.command}]"

    @staticmethod
    def _username(pid: int) -> str:
        try:
            return psutil.Process(pid).username()
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            return "?"
