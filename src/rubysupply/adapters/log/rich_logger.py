"""Rich-based build logger for staging output."""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape


INDENT = " " * 7


class RichBuildLogger:
    """BuildLogger printing buildpack-style output with Rich.

    Steps are announced with ``----->``; details are indented beneath them.
    Errors go to stderr. Debug lines only appear when ``debug`` is set.

    Example:
        log = RichBuildLogger(debug=bool(os.environ.get("BP_DEBUG")))
        log.begin_step("Supplying Ruby")
    """

    def __init__(
        self,
        console: Console | None = None,
        err_console: Console | None = None,
        debug: bool = False,
    ) -> None:
        """Initialize the logger.

        Args:
            console: Console for regular output.
            err_console: Console for errors; stderr by default.
            debug: Whether debug lines are shown.
        """
        self._console = console or Console(soft_wrap=True, emoji=False, highlight=False)
        self._err_console = err_console or Console(
            stderr=True, soft_wrap=True, emoji=False, highlight=False
        )
        self._debug = debug

    @staticmethod
    def _print(console: Console, text: str = "") -> None:
        # Long command lines and streamed output must not be re-wrapped.
        console.print(text, soft_wrap=True, emoji=False)

    def _indented(self, message: str) -> str:
        return "\n".join(f"{INDENT}{line}" for line in escape(message).splitlines())

    def begin_step(self, message: str) -> None:
        """Print a step header."""
        self._print(self._console, f"[bold]-----> {escape(message)}[/bold]")

    def info(self, message: str) -> None:
        """Print an indented detail line."""
        self._print(self._console, self._indented(message))

    def warning(self, message: str) -> None:
        """Print a yellow warning block."""
        self._print(self._console)
        self._print(self._console, f"[yellow]{self._indented('**WARNING** ' + message)}[/yellow]")
        self._print(self._console)

    def error(self, message: str) -> None:
        """Print a red error block to stderr."""
        self._print(self._err_console)
        self._print(self._err_console, f"[red]{self._indented('**ERROR** ' + message)}[/red]")
        self._print(self._err_console)

    def debug(self, message: str) -> None:
        """Print a dim debug line when debugging is enabled."""
        if self._debug:
            self._print(self._console, f"[dim]{self._indented('DEBUG: ' + message)}[/dim]")
