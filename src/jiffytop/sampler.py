"""CPU utilization sampling over /proc/stat and /proc/<pid>/stat."""

import logging
import threading
import time

from jiffytop.config import DEFAULT_INTERVAL, DEFAULT_SAMPLE_COUNT
from jiffytop.errors import SamplingCancelled, SourceNotFound
from jiffytop.jiffies import active_jiffies, process_active_jiffies, total_jiffies
from jiffytop.models import CounterSeries, CounterSnapshot, ProcessStat, UsageReading
from jiffytop.parsers import parse_counter_series, parse_process_stat
from jiffytop.reader import CounterSource, ProcfsReader

logger = logging.getLogger(__name__)


def _delta(before: int, after: int) -> int:
    # A counter that went backwards (reset) contributes nothing
    return max(after - before, 0)


def _make_reading(active: int, total: int, samples: int, scale: int = 1) -> UsageReading:
    if total == 0:
        return UsageReading(0.0, active, total, samples, zero_window=True)
    percent = min(100.0 * active * scale / total, 100.0 * scale)
    return UsageReading(percent, active, total, samples)


def usage_reading(before: CounterSnapshot, after: CounterSnapshot) -> UsageReading:
    """Reading for the single window between two snapshots of the same source."""
    total = _delta(total_jiffies(before), total_jiffies(after))
    active = _delta(active_jiffies(before), active_jiffies(after))
    return _make_reading(active, total, 1)


def usage_percent(before: CounterSnapshot, after: CounterSnapshot) -> float:
    """Share of elapsed ticks spent active between two snapshots, 0.0 - 100.0."""
    return usage_reading(before, after).percent


def process_share_percent(
    proc_before: ProcessStat,
    proc_after: ProcessStat,
    system_before: CounterSnapshot,
    system_after: CounterSnapshot,
    cores: int = 1,
) -> float:
    """
    Share of all elapsed system ticks spent by one process.

    With ``cores`` > 1 the share is scaled to per-core load, so a process
    saturating one core of four reports 100.0 instead of 25.0.
    """
    total = _delta(total_jiffies(system_before), total_jiffies(system_after))
    if total == 0:
        return 0.0
    active = _delta(process_active_jiffies(proc_before), process_active_jiffies(proc_after))
    scale = max(cores, 1)
    return min(100.0 * active * scale / total, 100.0 * scale)


class UtilizationSampler:
    """
    Turns pairs of time-separated counter reads into usage percentages.

    Every call reads fresh snapshots; the sampler keeps no state between
    calls, so one instance can serve several threads.
    """

    def __init__(
        self,
        source: CounterSource | None = None,
        log: logging.Logger | None = None,
        sample_count: int = DEFAULT_SAMPLE_COUNT,
        interval: float = DEFAULT_INTERVAL,
    ) -> None:
        """
        Initialize the sampler.

        Args:
            source: Where counter text comes from. Default a ProcfsReader on /proc.
            log: Logger for diagnostics. Defaults to this module's logger.
            sample_count: Samples averaged by sample_system_usage_percent. Default 5.
            interval: Seconds between the two reads of one sample. Default 0.5s.
        """
        self._log = log or logger
        self._source = source if source is not None else ProcfsReader(log=self._log)
        self._sample_count = self._check_sample_count(sample_count)
        self._interval = self._check_interval(interval)

    @property
    def source(self) -> CounterSource:
        return self._source

    @property
    def sample_count(self) -> int:
        return self._sample_count

    @property
    def interval(self) -> float:
        return self._interval

    def read_counter_series(self) -> CounterSeries:
        """Read and parse /proc/stat."""
        return parse_counter_series(self._source.read_system_stat())

    def read_process_stat(self, pid: int) -> ProcessStat:
        """Read and parse /proc/<pid>/stat."""
        return parse_process_stat(self._source.read_process_stat(pid), pid)

    def sample_system_usage_percent(
        self,
        sample_count: int | None = None,
        interval: float | None = None,
        cancel: threading.Event | None = None,
    ) -> UsageReading:
        """
        Average system-wide CPU usage over several sampling windows.

        Deltas are summed across samples before dividing, so the result is
        weighted by elapsed ticks rather than a mean of per-sample percentages.
        A run with no tick progress at all returns 0.0 with ``zero_window`` set.

        Raises:
            SamplingCancelled: ``cancel`` was set before the run completed.
            JiffytopError: A read or parse failed; the whole run is abandoned.
        """
        if sample_count is None:
            sample_count = self._sample_count
        if interval is None:
            interval = self._interval
        count = self._check_sample_count(sample_count)
        wait = self._check_interval(interval)

        active_sum = 0
        total_sum = 0
        for index in range(count):
            if cancel is not None and cancel.is_set():
                raise SamplingCancelled(self._partial(active_sum, total_sum, index))

            before = self.read_counter_series().aggregate
            if self._wait(wait, cancel):
                raise SamplingCancelled(self._partial(active_sum, total_sum, index))
            after = self.read_counter_series().aggregate

            total = _delta(total_jiffies(before), total_jiffies(after))
            active = _delta(active_jiffies(before), active_jiffies(after))
            if total == 0:
                self._log.debug("Sample %d/%d: no tick progress", index + 1, count)
            total_sum += total
            active_sum += active

        return self._reading(active_sum, total_sum, count)

    def sample_process_usage_percent(
        self,
        pid: int,
        interval: float | None = None,
        cancel: threading.Event | None = None,
        per_core: bool = False,
    ) -> UsageReading:
        """
        CPU share of one process over a single sampling window.

        The process's active ticks are divided by the ticks the whole system
        accumulated over the same window.

        Args:
            pid: Process to sample.
            interval: Window length in seconds. Defaults to the sampler interval.
            cancel: Optional cancellation token.
            per_core: Scale by core count so one saturated core reads 100.

        Raises:
            SamplingCancelled: ``cancel`` was set before the window closed.
            SourceNotFound: The process exited, including when its pid was
                reused by a new process during the window.
            JiffytopError: Any other read or parse failure.
        """
        wait = self._check_interval(interval if interval is not None else self._interval)
        if cancel is not None and cancel.is_set():
            raise SamplingCancelled()

        system_before = self.read_counter_series().aggregate
        proc_before = self.read_process_stat(pid)
        if self._wait(wait, cancel):
            raise SamplingCancelled()
        series_after = self.read_counter_series()
        proc_after = self.read_process_stat(pid)
        if proc_after.starttime != proc_before.starttime:
            # The sampled process exited and its pid went to a new one
            raise SourceNotFound(f"process {pid} started at {proc_before.starttime}")

        total = _delta(total_jiffies(system_before), total_jiffies(series_after.aggregate))
        active = _delta(process_active_jiffies(proc_before), process_active_jiffies(proc_after))
        scale = max(series_after.core_count, 1) if per_core else 1
        return self._reading(active, total, 1, scale=scale)

    def _reading(self, active: int, total: int, samples: int, scale: int = 1) -> UsageReading:
        if total == 0:
            self._log.warning(
                "No tick progress across %d sample(s); reporting 0%%", samples
            )
        return _make_reading(active, total, samples, scale)

    @staticmethod
    def _partial(active: int, total: int, samples: int) -> UsageReading | None:
        if samples == 0:
            return None
        return _make_reading(active, total, samples)

    @staticmethod
    def _wait(seconds: float, cancel: threading.Event | None) -> bool:
        """Block for ``seconds``; True if cancel was set meanwhile."""
        if cancel is None:
            time.sleep(seconds)
            return False
        return cancel.wait(timeout=seconds)

    @staticmethod
    def _check_sample_count(value: int) -> int:
        if value < 1:
            raise ValueError(f"sample_count must be at least 1, got {value}")
        return value

    @staticmethod
    def _check_interval(value: float) -> float:
        if value < 0:
            raise ValueError(f"interval must be non-negative, got {value}")
        return value
