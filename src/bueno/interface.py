"""User I/O -- the prompts and messages of the interactive CLI.

Everything the CLI shows or asks goes through a ``UserIO`` so tests can
inject scripted answers instead of a terminal.
"""

import logging
from typing import Optional, Protocol, Sequence

logger = logging.getLogger(__name__)


# ── I/O Protocol ──


class UserIO(Protocol):
    """Protocol for user input/output — injectable for testing."""

    def display(self, message: str) -> None:
        """Show a message to the user."""
        ...

    def prompt(self, message: str) -> str:
        """Prompt the user for input and return their response."""
        ...

    def confirm(self, message: str, default: bool = False) -> bool:
        """Ask a yes/no question."""
        ...

    def choose(self, message: str, options: Sequence[str]) -> Optional[int]:
        """Let the user pick one of ``options``; index of the pick, or None."""
        ...


class TerminalIO:
    """Default terminal-based I/O using print/input."""

    def display(self, message: str) -> None:
        print(message)

    def prompt(self, message: str) -> str:
        print(message)
        return input("> ").strip()

    def confirm(self, message: str, default: bool = False) -> bool:
        hint = "Y/n" if default else "y/N"
        answer = self.prompt(f"{message} [{hint}]").lower()
        if not answer:
            return default
        return answer in ("y", "yes")

    def choose(self, message: str, options: Sequence[str]) -> Optional[int]:
        if not options:
            return None
        print(message)
        for i, option in enumerate(options, start=1):
            print(f"  {i}. {option}")
        answer = self.prompt("Enter a number (blank to cancel):")
        return parse_choice(answer, len(options))


def parse_choice(answer: str, count: int) -> Optional[int]:
    """0-based index for a 1-based numeric answer; None if blank or out of range."""
    answer = answer.strip()
    if not answer.isdigit():
        if answer:
            logger.debug("Ignoring non-numeric choice %r", answer)
        return None
    index = int(answer) - 1
    return index if 0 <= index < count else None
