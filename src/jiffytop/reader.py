"""Raw-text access to the kernel pseudo-files jiffytop reads."""

import logging
from pathlib import Path
from typing import Protocol

from jiffytop.config import PROC_ROOT
from jiffytop.errors import ParseError, SourceNotFound, SourceUnreadable

logger = logging.getLogger(__name__)


class CounterSource(Protocol):
    """Anything that can hand back the raw text of the counter sources."""

    def read_system_stat(self) -> str: ...

    def read_process_stat(self, pid: int) -> str: ...


class ProcfsReader:
    """
    Reads procfs files into text.

    Every call opens the file again; nothing is cached between calls.
    Missing files raise SourceNotFound, every other failure SourceUnreadable.
    Bytes that are not valid UTF-8 (a ``comm`` may hold any bytes) decode
    to U+FFFD instead of failing the read.
    """

    def __init__(
        self,
        proc_root: str | Path = PROC_ROOT,
        log: logging.Logger | None = None,
    ) -> None:
        """
        Initialize the reader.

        Args:
            proc_root: Directory holding the pseudo-files. Default /proc.
            log: Logger to report reads to. Defaults to this module's logger.
        """
        self._root = Path(proc_root)
        self._log = log or logger

    @property
    def proc_root(self) -> Path:
        return self._root

    def read_system_stat(self) -> str:
        return self._read("stat")

    def read_process_stat(self, pid: int) -> str:
        return self._read(f"{pid}/stat")

    def read_process_cmdline(self, pid: int) -> str:
        """Command line of a process with NUL separators turned into spaces."""
        return self._read(f"{pid}/cmdline").rstrip("\0").replace("\0", " ")

    def read_cpu_info(self) -> str:
        return self._read("cpuinfo")

    def read_uptime(self) -> float:
        """Seconds since boot, from the first field of /proc/uptime."""
        text = self._read("uptime")
        parts = text.split()
        try:
            return float(parts[0])
        except (IndexError, ValueError) as exc:
            raise ParseError("Malformed uptime", text.strip()) from exc

    def _read(self, relative: str) -> str:
        path = self._root / relative
        try:
            with open(path, encoding="utf-8", errors="replace") as f:
                text = f.read()
        except (FileNotFoundError, ProcessLookupError) as exc:
            # ESRCH shows up when the process exits between open() and read()
            raise SourceNotFound(str(path)) from exc
        except OSError as exc:
            self._log.debug("Failed to read %s: %s", path, exc)
            raise SourceUnreadable(str(path), str(exc)) from exc

        self._log.debug("Read %d bytes from %s", len(text), path)
        return text
