"""jiffytop - Main Textual application."""

import argparse
from enum import Enum
from queue import Empty, Queue

from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.widgets import DataTable, Footer, Static

from jiffytop.config import DEFAULT_POLL_INTERVAL, PROC_ROOT
from jiffytop.logging_setup import configure_logging, shutdown_logging
from jiffytop.models import ProcessState, ProcessUsage
from jiffytop.monitor import MonitorSnapshot, SystemMonitor
from jiffytop.reader import ProcfsReader


class SortKey(Enum):
    """Sort keys for the process table."""

    CPU = "cpu"
    PID = "pid"
    USER = "user"


STATE_LETTERS = {
    ProcessState.RUNNING: "R",
    ProcessState.SLEEPING: "S",
    ProcessState.DISK_SLEEP: "D",
    ProcessState.ZOMBIE: "Z",
    ProcessState.TRACED_OR_STOPPED: "T",
    ProcessState.IDLE: "I",
    ProcessState.DEAD: "X",
    ProcessState.PARKED: "P",
    ProcessState.WAKING: "W",
    ProcessState.UNKNOWN: "?",
}


def format_uptime(uptime: float) -> str:
    """Format seconds since boot like top does."""
    days = int(uptime // 86400)
    hours = int((uptime % 86400) // 3600)
    minutes = int((uptime % 3600) // 60)
    seconds = int(uptime % 60)
    if days > 0:
        return f"{days} days, {hours:02d}:{minutes:02d}:{seconds:02d}"
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def usage_bar(percent: float, width: int = 20) -> str:
    """Render a percentage as a fixed-width bar of Rich markup."""
    bar_len = min(max(int(percent / (100 / width)), 0), width)
    return "[green]█[/green]" * bar_len + "[dim]░[/dim]" * (width - bar_len)


class HeaderStats(Static):
    """Header widget showing aggregate CPU usage and uptime."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 4;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize HeaderStats."""
        super().__init__(*args, **kwargs)
        self._snapshot: MonitorSnapshot | None = None

    def compose(self) -> ComposeResult:
        """Compose the header stats layout."""
        yield Horizontal(
            Static(self._get_cpu_info(), id="cpu-info"),
            Static(self._get_system_info(), id="system-info"),
        )

    def update_stats(self, snapshot: MonitorSnapshot) -> None:
        """Update the statistics from a monitor snapshot."""
        self._snapshot = snapshot
        self.query_one("#cpu-info", Static).update(self._get_cpu_info())
        self.query_one("#system-info", Static).update(self._get_system_info())

    def _get_cpu_info(self) -> str:
        """Get CPU info display."""
        if self._snapshot is None:
            return "Sampling CPU..."
        reading = self._snapshot.system
        line = f"CPU \\[{usage_bar(reading.percent)}] {reading.percent:5.1f}%"
        if reading.zero_window:
            line += " [yellow](no ticks)[/yellow]"
        return line

    def _get_system_info(self) -> str:
        """Get CPU model, core count and uptime display."""
        if self._snapshot is None:
            return ""
        lines = [
            f"Cores: {self._snapshot.core_count}",
            f"Uptime: {format_uptime(self._snapshot.uptime_seconds)}",
        ]
        if self._snapshot.cpu_model:
            model = self._snapshot.cpu_model.replace("[", "\\[")
            lines.insert(0, f"Model: {model}")
        return "\n".join(lines)


class ProcessTable(Container):
    """Container for the process data table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._sort_key: SortKey = SortKey.CPU
        self._sort_reverse: bool = True  # Default: descending for CPU

    @property
    def sort_key(self) -> SortKey:
        """Get current sort key."""
        return self._sort_key

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key and return it."""
        keys = list(SortKey)
        next_index = (keys.index(self._sort_key) + 1) % len(keys)
        self._sort_key = keys[next_index]
        self._sort_reverse = self._sort_key is SortKey.CPU
        return self._sort_key

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"

        table.add_column("PID", key="pid", width=8)
        table.add_column("USER", key="user", width=10)
        table.add_column("S", key="state", width=3)
        table.add_column("CPU%", key="cpu", width=8)
        table.add_column("THR", key="threads", width=5)
        table.add_column("Command", key="command")

    def update_processes(self, processes: list[ProcessUsage]) -> None:
        """Replace the table rows with the given processes in sort order."""
        table = self.query_one("#process-table", DataTable)
        table.clear()
        for proc in self.sort_processes(processes):
            table.add_row(
                str(proc.pid),
                proc.username[:10],
                STATE_LETTERS[proc.state],
                f"{proc.cpu_percent:5.1f}",
                str(proc.threads),
                proc.command[:50],
                key=str(proc.pid),
            )

    def sort_processes(self, processes: list[ProcessUsage]) -> list[ProcessUsage]:
        """Sort processes based on the current sort key."""
        key_func = {
            SortKey.CPU: lambda p: p.cpu_percent,
            SortKey.PID: lambda p: p.pid,
            SortKey.USER: lambda p: p.username.lower(),
        }
        return sorted(processes, key=key_func[self._sort_key], reverse=self._sort_reverse)


class JiffytopApp(App):
    """Main jiffytop application."""

    TITLE = "jiffytop"
    SUB_TITLE = "CPU usage from /proc counters"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        dock: top;
        height: auto;
        min-height: 4;
    }

    Horizontal {
        height: auto;
    }

    #cpu-info {
        width: 2fr;
        padding-right: 2;
    }

    #system-info {
        width: 1fr;
        padding-left: 2;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("f6", "sort", "Sort"),
    ]

    def __init__(
        self,
        poll_rate: float = DEFAULT_POLL_INTERVAL,
        reader: ProcfsReader | None = None,
        per_core: bool = False,
    ) -> None:
        """
        Initialize the JiffytopApp.

        Args:
            poll_rate: Sampling window of the monitor thread (seconds).
            reader: Source of procfs text. Default a ProcfsReader on /proc.
            per_core: Scale process shares to one core.
        """
        super().__init__()
        self._update_queue: Queue[MonitorSnapshot] = Queue()
        self._monitor = SystemMonitor(
            self._update_queue,
            poll_rate=poll_rate,
            reader=reader,
            per_core=per_core,
        )

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HeaderStats(id="header-stats")
        yield ProcessTable()
        yield Footer()

    def on_mount(self) -> None:
        """Start the system monitor when the app is mounted."""
        self._monitor.start()
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Drain the queue and render the most recent snapshot."""
        snapshot = None
        while True:
            try:
                snapshot = self._update_queue.get_nowait()
            except Empty:
                break

        if snapshot is not None:
            self._update_ui(snapshot)

    def _update_ui(self, snapshot: MonitorSnapshot) -> None:
        """Update the UI with the new monitor snapshot."""
        self.query_one("#header-stats", HeaderStats).update_stats(snapshot)
        self.query_one(ProcessTable).update_processes(snapshot.processes)

    def action_sort(self) -> None:
        """Handle sort action - cycle through sort keys."""
        new_sort_key = self.query_one(ProcessTable).cycle_sort()
        self.notify(f"Sort: {new_sort_key.value.upper()}")

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jiffytop", description=JiffytopApp.SUB_TITLE)
    parser.add_argument(
        "--interval",
        type=float,
        default=DEFAULT_POLL_INTERVAL,
        help="sampling window in seconds (default: %(default)s)",
    )
    parser.add_argument("--proc-root", default=PROC_ROOT, help="procfs mount point")
    parser.add_argument("--per-core", action="store_true", help="scale process shares to one core")
    parser.add_argument("--log-file", default=None, help="append log records to this file")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Entry point for jiffytop application."""
    args = build_parser().parse_args(argv)
    # The terminal belongs to the UI, so records only go to the log file
    log = configure_logging(args.log_level, args.log_file, console=False)
    try:
        log.info("Starting jiffytop")
        app = JiffytopApp(
            poll_rate=args.interval,
            reader=ProcfsReader(args.proc_root),
            per_core=args.per_core,
        )
        app.run()
    finally:
        shutdown_logging()


if __name__ == "__main__":
    main()
