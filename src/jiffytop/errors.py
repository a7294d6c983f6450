"""Exceptions raised by jiffytop."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from jiffytop.models import UsageReading


class JiffytopError(Exception):
    """Base class for every error raised while reading or sampling counters."""


class SourceNotFound(JiffytopError):
    """The pseudo-file does not exist (e.g. the process has exited)."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Source not found: {path}")
        self.path = path


class SourceUnreadable(JiffytopError):
    """The pseudo-file exists but could not be opened or read."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Source unreadable: {path} ({reason})")
        self.path = path
        self.reason = reason


class ParseError(JiffytopError):
    """Structurally malformed counter or status text."""

    def __init__(self, message: str, line: str | None = None) -> None:
        super().__init__(message if line is None else f"{message}: {line!r}")
        self.line = line


class ZeroWindow(JiffytopError):
    """No tick progress across a sampling window.

    Never raised by the sampler itself; see ``UsageReading.raise_for_zero_window``.
    """


class SamplingCancelled(JiffytopError):
    """The caller set the cancellation token before sampling finished.

    ``partial`` holds the reading over the samples completed so far, or None
    when no sample completed.
    """

    def __init__(self, partial: UsageReading | None = None) -> None:
        completed = partial.samples if partial is not None else 0
        super().__init__(f"Sampling cancelled after {completed} sample(s)")
        self.partial = partial
