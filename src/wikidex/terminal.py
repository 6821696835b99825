"""
Colored console output for the export CLI.

Colors are only emitted when stdout is a TTY, so piped exports stay plain.
"""

import sys
from collections.abc import Callable
from enum import Enum


class Color(Enum):
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"

    BRIGHT_BLACK = "\033[90m"
    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_BLUE = "\033[94m"
    BRIGHT_CYAN = "\033[96m"


def _supports_color(stream=None) -> bool:
    stream = stream or sys.stdout
    return hasattr(stream, "isatty") and stream.isatty()


def colorize(text: str, *colors: Color) -> str:
    if not _supports_color():
        return text
    return f"{''.join(c.value for c in colors)}{text}{Color.RESET.value}"


def info(message: str) -> None:
    print(message)


def debug(message: str) -> None:
    print(colorize(message, Color.DIM, Color.BRIGHT_BLACK))


def success(message: str) -> None:
    print(colorize(f"✓ {message}", Color.BRIGHT_GREEN))


def warning(message: str) -> None:
    print(colorize(f"⚠ {message}", Color.BRIGHT_YELLOW))


def error(message: str) -> None:
    print(colorize(f"✗ {message}", Color.BRIGHT_RED), file=sys.stderr)


def section_header(title: str) -> None:
    rule = "-" * 60
    print(f"\n{colorize(rule, Color.BRIGHT_BLUE)}")
    print(colorize(title, Color.BOLD, Color.BRIGHT_CYAN))
    print(colorize(rule, Color.BRIGHT_BLUE))


def link(url: str, label: str | None = None) -> str:
    display = label or url
    if _supports_color():
        return f"\033]8;;{url}\033\\{colorize(display, Color.BRIGHT_CYAN)}\033]8;;\033\\"
    return f"{display} ({url})"


def progress(done: int, total: int, message: str = "") -> None:
    """One line per finished detail fetch on stderr: ``[3/12]  25% dungeons``."""
    pct = int(done * 100 / total) if total else 100
    prefix = colorize(f"[{done}/{total}]", Color.BRIGHT_CYAN)
    line = f"{prefix} {pct:3d}%"
    print(f"{line} {message}" if message else line, file=sys.stderr)


def progress_reporter(label: str) -> Callable[[int, int], None]:
    """Progress callback for batch fetches, tagged with the content family."""

    def report(done: int, total: int) -> None:
        progress(done, total, label)

    return report


def summary(family: str, count: int, destination: str | None = None) -> None:
    where = f" -> {destination}" if destination else ""
    if count:
        success(f"{family}: {count} record(s){where}")
    else:
        warning(f"{family}: no records extracted{where}")


def error_with_context(message: str, context: dict[str, str] | None = None) -> None:
    error(message)
    for key, value in (context or {}).items():
        print(f"  {colorize(f'{key}:', Color.BOLD)} {value}", file=sys.stderr)
