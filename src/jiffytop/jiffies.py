"""Tick-count derivations over counter snapshots and process records.

Sums saturate at the unsigned 64-bit maximum instead of growing past the
width of the kernel counters.
"""

from jiffytop.config import UINT64_MAX
from jiffytop.models import CounterSnapshot, ProcessStat


def saturating_sum(*values: int) -> int:
    """Sum non-negative tick counts, capped at UINT64_MAX."""
    total = 0
    for value in values:
        if value < 0:
            raise ValueError(f"Tick counts must be non-negative, got {value}")
        total += value
        if total >= UINT64_MAX:
            return UINT64_MAX
    return total


def active_jiffies(snapshot: CounterSnapshot) -> int:
    """user + nice + system + irq + softirq + steal."""
    return saturating_sum(
        snapshot.user,
        snapshot.nice,
        snapshot.system,
        snapshot.irq,
        snapshot.softirq,
        snapshot.steal,
    )


def idle_jiffies(snapshot: CounterSnapshot) -> int:
    """idle + iowait."""
    return saturating_sum(snapshot.idle, snapshot.iowait)


def total_jiffies(snapshot: CounterSnapshot) -> int:
    """Active plus idle ticks; guest time is already counted in user/nice."""
    return saturating_sum(active_jiffies(snapshot), idle_jiffies(snapshot))


def process_active_jiffies(stat: ProcessStat) -> int:
    """utime + stime + cutime + cstime."""
    # cutime/cstime are signed in the kernel ABI; a negative value means none
    return saturating_sum(
        max(stat.utime, 0),
        max(stat.stime, 0),
        max(stat.cutime, 0),
        max(stat.cstime, 0),
    )
