"""Parsers for /proc/stat counter lines, /proc/<pid>/stat records and /proc/cpuinfo."""

from jiffytop.config import (
    COUNTER_FIELDS,
    COUNTER_PREFIX,
    INT64_MIN,
    MIN_PROCESS_FIELDS,
    UINT64_MAX,
)
from jiffytop.errors import ParseError
from jiffytop.models import (
    PROCESS_NUMERIC_FIELDS,
    PROCESS_OPTIONAL_FIELDS,
    CounterSeries,
    CounterSnapshot,
    ProcessStat,
    ProcessState,
)


def _parse_tick(token: str, line: str) -> int:
    """Parse a non-negative counter that fits in 64 bits."""
    if not (token.isascii() and token.isdigit()):
        raise ParseError(f"Counter field {token!r} is not a non-negative integer", line)
    value = int(token)
    if value > UINT64_MAX:
        raise ParseError(f"Counter field {token!r} overflows 64 bits", line)
    return value


def _parse_field(token: str, name: str, line: str) -> int:
    """Parse a signed or unsigned 64-bit process field."""
    digits = token[1:] if token.startswith("-") else token
    # int() alone would also take "1_000", "+1" and non-ASCII digits
    if not (digits.isascii() and digits.isdigit()):
        raise ParseError(f"Field {name} is not an integer: {token!r}", line)
    value = int(token)
    if not INT64_MIN <= value <= UINT64_MAX:
        raise ParseError(f"Field {name} overflows 64 bits: {token!r}", line)
    return value


def parse_counter_line(line: str) -> CounterSnapshot:
    """Parse one ``cpu``/``cpuN`` line into a CounterSnapshot."""
    tokens = line.split()
    if not tokens or not tokens[0].startswith(COUNTER_PREFIX):
        raise ParseError("Not a counter line", line)

    label, values = tokens[0], tokens[1:]
    if len(values) < COUNTER_FIELDS:
        raise ParseError(
            f"Counter line has {len(values)} fields, expected {COUNTER_FIELDS}", line
        )

    # Older kernels may add nothing; newer ones may append fields we ignore
    ticks = [_parse_tick(token, line) for token in values[:COUNTER_FIELDS]]
    return CounterSnapshot(label, *ticks)


def parse_counter_series(text: str) -> CounterSeries:
    """
    Parse the text of /proc/stat into a CounterSeries.

    Counter lines are contiguous at the top of the file, so scanning stops at
    the first line whose label does not start with ``cpu``.

    Raises:
        ParseError: No counter line at the top, or a counter line with fewer
            than ten numeric fields.
    """
    snapshots: list[CounterSnapshot] = []
    for line in text.splitlines():
        tokens = line.split()
        if not tokens or not tokens[0].startswith(COUNTER_PREFIX):
            break
        snapshots.append(parse_counter_line(line))

    if not snapshots:
        first = text.splitlines()[0] if text.strip() else text
        raise ParseError("No counter lines found", first)
    return CounterSeries(tuple(snapshots))


def parse_process_stat(line: str, expected_pid: int) -> ProcessStat:
    """
    Parse the line of /proc/<pid>/stat into a ProcessStat.

    The command is everything between the first ``(`` and the last ``)``, so
    names containing spaces or parentheses survive intact.

    Args:
        line: Contents of the stat file (a single line).
        expected_pid: Pid the file was read for; must match field 1.

    Raises:
        ParseError: Missing parentheses, pid mismatch, fewer than 44 fields
            after the command, or a non-integer numeric field.
    """
    line = line.strip()
    open_paren = line.find("(")
    close_paren = line.rfind(")")
    if open_paren == -1 or close_paren == -1 or close_paren < open_paren:
        raise ParseError("Unmatched parentheses around command", line)

    pid_token = line[:open_paren].strip()
    if not (pid_token.isascii() and pid_token.isdigit()):
        raise ParseError(f"Pid {pid_token!r} is not an integer", line)
    pid = int(pid_token)
    if pid != expected_pid:
        raise ParseError(f"Pid {pid} does not match expected pid {expected_pid}", line)

    command = line[open_paren + 1 : close_paren]
    rest = line[close_paren + 1 :].split()
    if len(rest) < MIN_PROCESS_FIELDS:
        raise ParseError(
            f"Status line has {len(rest)} fields after the command, "
            f"expected at least {MIN_PROCESS_FIELDS}",
            line,
        )

    state_code = rest[0]
    names = PROCESS_NUMERIC_FIELDS + PROCESS_OPTIONAL_FIELDS
    values = {
        name: _parse_field(token, name, line)
        for name, token in zip(names, rest[1:])
    }
    return ProcessStat(
        pid=pid,
        command=command,
        state=ProcessState.from_code(state_code),
        state_code=state_code,
        **values,
    )


def parse_cpu_model(text: str) -> str:
    """
    Processor model name from the text of /proc/cpuinfo.

    x86 kernels report ``model name`` per processor; some ARM kernels only
    give ``Hardware`` or ``Processor``. Returns an empty string when none of
    them is present.
    """
    found: dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if sep:
            found.setdefault(key.strip().lower(), value.strip())
    for key in ("model name", "hardware", "processor"):
        value = found.get(key, "")
        # "processor" on x86 is just the cpu index
        if value and not value.isdigit():
            return value
    return ""
