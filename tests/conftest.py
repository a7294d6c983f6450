"""Shared fixtures: synthetic /proc text and a fake proc tree."""

import pytest

from jiffytop.errors import SourceNotFound

# Positions in the 43 numeric fields that follow the state token
UTIME, STIME, CUTIME, CSTIME = 10, 11, 12, 13
NUM_THREADS, STARTTIME = 16, 18


def counter_text(*lines: tuple[int, ...], tail: str = "intr 12345 0 0\nctxt 999\n") -> str:
    """Build /proc/stat text: first tuple is the aggregate, the rest are cores."""
    out = []
    for index, ticks in enumerate(lines):
        label = "cpu" if index == 0 else f"cpu{index - 1}"
        out.append(f"{label}  " + " ".join(str(t) for t in ticks))
    return "\n".join(out) + "\n" + tail


def process_line(
    pid: int,
    command: str = "bash",
    state: str = "S",
    utime: int = 0,
    stime: int = 0,
    cutime: int = 0,
    cstime: int = 0,
    num_threads: int = 1,
    starttime: int = 100,
    extra_fields: int = 6,
) -> str:
    """Build a /proc/<pid>/stat line with 43 numeric fields plus optional extras."""
    numbers = list(range(1000, 1043))
    numbers[UTIME] = utime
    numbers[STIME] = stime
    numbers[CUTIME] = cutime
    numbers[CSTIME] = cstime
    numbers[NUM_THREADS] = num_threads
    numbers[STARTTIME] = starttime
    numbers += list(range(2000, 2000 + extra_fields))
    return f"{pid} ({command}) {state} " + " ".join(str(n) for n in numbers) + "\n"


class FakeSource:
    """
    CounterSource that replays canned text.

    Each read pops the next entry; the last entry repeats once the list runs out.
    """

    def __init__(self, system: list[str], processes: dict[int, list[str]] | None = None):
        self._system = list(system)
        self._processes = {pid: list(lines) for pid, lines in (processes or {}).items()}
        self.system_reads = 0

    @staticmethod
    def _next(entries: list[str]) -> str:
        return entries.pop(0) if len(entries) > 1 else entries[0]

    def read_system_stat(self) -> str:
        self.system_reads += 1
        return self._next(self._system)

    def read_process_stat(self, pid: int) -> str:
        if pid not in self._processes:
            raise SourceNotFound(f"/proc/{pid}/stat")
        return self._next(self._processes[pid])


@pytest.fixture
def proc_root(tmp_path):
    """A fake /proc with stat, uptime and cpuinfo."""
    (tmp_path / "stat").write_text(
        counter_text((100, 0, 50, 800, 10, 0, 0, 0, 0, 0), (50, 0, 25, 400, 5, 0, 0, 0, 0, 0))
    )
    (tmp_path / "uptime").write_text("3725.50 7000.12\n")
    (tmp_path / "cpuinfo").write_text("processor\t: 0\nmodel name\t: Fake CPU\n")
    return tmp_path


@pytest.fixture
def add_process(proc_root):
    """Create /proc/<pid>/stat (and cmdline) entries in the fake proc root."""

    def _add(pid: int, cmdline: str | None = None, **fields) -> None:
        pid_dir = proc_root / str(pid)
        pid_dir.mkdir(exist_ok=True)
        (pid_dir / "stat").write_text(process_line(pid, **fields))
        if cmdline is not None:
            (pid_dir / "cmdline").write_bytes(cmdline.replace(" ", "\0").encode() + b"\0")

    return _add
