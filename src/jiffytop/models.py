"""Data models for jiffytop."""

from collections.abc import Iterator
from dataclasses import dataclass, fields
from enum import Enum

from jiffytop.errors import ZeroWindow


@dataclass(slots=True, frozen=True)
class CounterSnapshot:
    """Immutable reading of one /proc/stat counter line (aggregate or a core)."""

    label: str  # 'cpu', 'cpu0', 'cpu1', ...
    user: int
    nice: int
    system: int
    idle: int
    iowait: int
    irq: int
    softirq: int
    steal: int
    guest: int
    guest_nice: int

    @property
    def ticks(self) -> tuple[int, ...]:
        """The ten tick counters in file order."""
        return (
            self.user,
            self.nice,
            self.system,
            self.idle,
            self.iowait,
            self.irq,
            self.softirq,
            self.steal,
            self.guest,
            self.guest_nice,
        )


@dataclass(slots=True, frozen=True)
class CounterSeries:
    """
    Counter snapshots in file order.

    Element 0 is the system-wide aggregate, the rest are per-core.
    """

    snapshots: tuple[CounterSnapshot, ...]

    def __post_init__(self) -> None:
        if not self.snapshots:
            raise ValueError("CounterSeries requires at least the aggregate snapshot")

    @property
    def aggregate(self) -> CounterSnapshot:
        return self.snapshots[0]

    @property
    def cores(self) -> tuple[CounterSnapshot, ...]:
        return self.snapshots[1:]

    @property
    def core_count(self) -> int:
        return len(self.snapshots) - 1

    def __len__(self) -> int:
        return len(self.snapshots)

    def __getitem__(self, index: int) -> CounterSnapshot:
        return self.snapshots[index]

    def __iter__(self) -> Iterator[CounterSnapshot]:
        return iter(self.snapshots)


class ProcessState(Enum):
    """Scheduler state of a process, from field 3 of /proc/<pid>/stat."""

    RUNNING = "running"
    SLEEPING = "sleeping"
    DISK_SLEEP = "disk-sleep"
    ZOMBIE = "zombie"
    TRACED_OR_STOPPED = "traced-or-stopped"
    IDLE = "idle"
    DEAD = "dead"
    PARKED = "parked"
    WAKING = "waking"
    UNKNOWN = "unknown"

    @classmethod
    def from_code(cls, code: str) -> "ProcessState":
        """Map a kernel state character; unrecognized characters become UNKNOWN."""
        return _STATE_CODES.get(code, cls.UNKNOWN)


_STATE_CODES = {
    "R": ProcessState.RUNNING,
    "S": ProcessState.SLEEPING,
    "D": ProcessState.DISK_SLEEP,
    "Z": ProcessState.ZOMBIE,
    "T": ProcessState.TRACED_OR_STOPPED,
    "t": ProcessState.TRACED_OR_STOPPED,
    "I": ProcessState.IDLE,
    "X": ProcessState.DEAD,
    "x": ProcessState.DEAD,
    "P": ProcessState.PARKED,
    "W": ProcessState.WAKING,
    "K": ProcessState.WAKING,
}


@dataclass(slots=True, frozen=True)
class ProcessStat:
    """
    Immutable record of one /proc/<pid>/stat line.

    Field names and order follow proc(5). The fields from ``start_brk`` on
    only exist on newer kernels and are None when the line stops earlier.
    """

    pid: int
    command: str
    state: ProcessState
    state_code: str
    ppid: int
    pgrp: int
    session: int
    tty_nr: int
    tpgid: int
    flags: int
    minflt: int
    cminflt: int
    majflt: int
    cmajflt: int
    utime: int
    stime: int
    cutime: int
    cstime: int
    priority: int
    nice: int
    num_threads: int
    itrealvalue: int
    starttime: int
    vsize: int
    rss: int
    rsslim: int
    startcode: int
    endcode: int
    startstack: int
    kstkesp: int
    kstkeip: int
    signal: int
    blocked: int
    sigignore: int
    sigcatch: int
    wchan: int
    nswap: int
    cnswap: int
    exit_signal: int
    processor: int
    rt_priority: int
    policy: int
    delayacct_blkio_ticks: int
    guest_time: int
    cguest_time: int
    start_data: int
    end_data: int
    start_brk: int | None = None
    arg_start: int | None = None
    arg_end: int | None = None
    env_start: int | None = None
    env_end: int | None = None
    exit_code: int | None = None

    @property
    def numeric_fields(self) -> tuple[int | None, ...]:
        """Every numeric field after the state, in kernel order."""
        names = PROCESS_NUMERIC_FIELDS + PROCESS_OPTIONAL_FIELDS
        return tuple(getattr(self, name) for name in names)


# Positional layout after the state token
PROCESS_NUMERIC_FIELDS: tuple[str, ...] = tuple(
    f.name for f in fields(ProcessStat)[4:] if f.default is not None
)
PROCESS_OPTIONAL_FIELDS: tuple[str, ...] = tuple(
    f.name for f in fields(ProcessStat)[4:] if f.default is None
)


@dataclass(slots=True, frozen=True)
class UsageReading:
    """Result of a sampling call."""

    percent: float  # 0.0 - 100.0, or up to 100.0 * cores when per-core scaled
    active_delta: int
    total_delta: int
    samples: int
    zero_window: bool = False

    def raise_for_zero_window(self) -> None:
        """Raise ZeroWindow if no ticks elapsed across the sampling window."""
        if self.zero_window:
            raise ZeroWindow(f"No tick progress across {self.samples} sample(s)")


@dataclass(slots=True, frozen=True)
class ProcessUsage:
    """Immutable per-process row for the display."""

    pid: int
    command: str
    username: str
    state: ProcessState
    cpu_percent: float
    threads: int
    active_jiffies: int
