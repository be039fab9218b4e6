import sys

from .base import (
    Reporter,
    TaskStatus,
    format_completion,
    get_reporter,
    set_reporter,
    section,
    task,
)
from .base import (
    set_verbosity,
    get_verbosity,
)
from .plain import PlainReporter
from .jsonl import JsonLinesReporter, parse_summary_fields
from .silent import SilentReporter
from .rich_reporter import RichReporter

REPORTER_CHOICES = ("plain", "rich", "json", "silent")


def make_reporter(name: str) -> Reporter:
    """Build the reporter selected on the command line.

    ``rich`` needs a terminal; on a pipe it degrades to ``plain``.
    """
    if name == "json":
        return JsonLinesReporter()
    if name == "silent":
        return SilentReporter()
    if name == "rich" and sys.stderr.isatty():
        return RichReporter()
    return PlainReporter()


__all__ = [
    "Reporter",
    "TaskStatus",
    "REPORTER_CHOICES",
    "format_completion",
    "get_reporter",
    "set_reporter",
    "make_reporter",
    "section",
    "task",
    "set_verbosity",
    "get_verbosity",
    "parse_summary_fields",
    "PlainReporter",
    "JsonLinesReporter",
    "SilentReporter",
    "RichReporter",
]
