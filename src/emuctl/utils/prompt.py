from __future__ import annotations

from collections.abc import Callable

import typer

Confirm = Callable[[str], bool]


def ask(question: str) -> bool:
    """Read one line from stdin; only 'y' (any case) means yes."""
    try:
        answer = typer.prompt(f"{question} (y/n)", default="", show_default=False)
    except typer.Abort:
        # EOF or Ctrl+D on stdin
        return False
    return str(answer).strip().lower() == "y"


def assume_yes(question: str) -> bool:
    return True


def make_confirm(assume: bool) -> Confirm:
    return assume_yes if assume else ask
