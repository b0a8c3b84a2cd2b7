"""
reporter.py

Responsibility: Terminal output for the CLI (Rich).

Pipelines report progress through a `Reporter` so they never touch the
terminal directly: tests pass a recording console, CI gets plain prefixed
lines instead of colours and tips.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from rich.console import Console
from rich.logging import RichHandler
from rich.prompt import Confirm
from rich.status import Status
from rich.text import Text

_COLOR_PREFIXES = {
    "success": ("success", "green"),
    "warn": ("warning", "bold yellow"),
    "error": (" ERROR ", "on red"),
    "tip": ("+ TIP:", "bold cyan"),
}

_PLAIN_PREFIXES = {
    "success": "[ SUCCESS ]",
    "warn": "[ WARN ]",
    "error": "[ ERROR ]",
}


def configure_logging(verbose: bool, console: Console | None = None) -> None:
    """Route `logging` through Rich; DEBUG with --verbose, WARNING otherwise."""
    handler = RichHandler(console=console or Console(stderr=True), show_path=False, markup=False)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
    )


class Reporter:
    def __init__(
        self,
        *,
        ci: bool = False,
        interactive: bool = False,
        console: Console | None = None,
        err_console: Console | None = None,
    ) -> None:
        self.ci = ci
        self.interactive = interactive
        self.console = console or Console(no_color=ci, highlight=False)
        self.err_console = err_console or (console if console is not None else Console(stderr=True, no_color=ci, highlight=False))

    def _emit(self, kind: str, msg: object, *, stderr: bool) -> None:
        target = self.err_console if stderr else self.console
        if self.ci:
            target.print(f"{_PLAIN_PREFIXES[kind]} {msg}", markup=False, highlight=False)
            return
        label, style = _COLOR_PREFIXES[kind]
        target.print(Text.assemble((label, style), " ", str(msg)), highlight=False)

    def log(self, msg: object = "") -> None:
        self.console.print(str(msg), markup=False, highlight=False)

    def success(self, msg: object) -> None:
        self._emit("success", msg, stderr=self.ci)

    def warn(self, msg: object) -> None:
        self._emit("warn", msg, stderr=True)

    def error(self, msg: object) -> None:
        self._emit("error", msg, stderr=True)

    def tip(self, msg: object) -> None:
        # Tips are noise in CI logs.
        if not self.ci:
            self._emit("tip", msg, stderr=False)

    def confirm(self, question: str) -> bool:
        """Ask a yes/no question in interactive mode; always yes otherwise."""
        if not self.interactive:
            return True
        return Confirm.ask(question, console=self.console, default=True)

    @contextmanager
    def spinner(self, text: str) -> Iterator[Status]:
        """Spinner shown while the block runs; it is stopped however the block exits."""
        with self.console.status(text) as status:
            yield status
