"""Interactive prompts built on click.

The wizard talks to the user only through a :class:`Prompter`, so tests can
substitute one that replays scripted answers.
"""

from __future__ import annotations

from typing import Sequence

import click

Choice = tuple[str, str]


def parse_selection(raw: str, count: int) -> list[int] | None:
    """Parse ``"1, 3,4"`` into zero-based indexes.

    Returns:
        Sorted unique indexes, ``[]`` for blank input, or None if any entry
        is not a number in ``1..count``.
    """
    indexes: set[int] = set()
    for part in raw.replace(" ", ",").split(","):
        if not part:
            continue
        if not part.isdigit():
            return None
        number = int(part)
        if not 1 <= number <= count:
            return None
        indexes.add(number - 1)
    return sorted(indexes)


class Prompter:
    """Console prompts for the interactive workflow."""

    def echo(self, message: str = "") -> None:
        click.echo(message)

    def select(self, message: str, choices: Sequence[Choice], default: str | None = None) -> str:
        """Show numbered choices and return the value of the picked one.

        Args:
            message: Question shown above the choices
            choices: ``(value, label)`` pairs
            default: Value preselected when the user just presses enter
        """
        click.echo(message)
        for number, (_, label) in enumerate(choices, start=1):
            click.echo(f"  {number}. {label}")
        values = [value for value, _ in choices]
        default_number = values.index(default) + 1 if default in values else None
        number = click.prompt(
            "Select",
            type=click.IntRange(1, len(choices)),
            default=default_number,
        )
        return values[number - 1]

    def multiselect(
        self,
        message: str,
        choices: Sequence[Choice],
        defaults: Sequence[str] = (),
    ) -> list[str]:
        """Let the user pick several choices by number; blank keeps the defaults."""
        click.echo(message)
        for number, (value, label) in enumerate(choices, start=1):
            marker = "*" if value in defaults else " "
            click.echo(f" {marker}{number}. {label}")
        while True:
            raw = click.prompt(
                "Numbers separated by commas (blank for marked)",
                default="",
                show_default=False,
            )
            if not raw.strip():
                return [value for value, _ in choices if value in defaults]
            indexes = parse_selection(raw, len(choices))
            if indexes is not None:
                return [choices[i][0] for i in indexes]
            click.echo(f"Enter numbers between 1 and {len(choices)}.")

    def confirm(self, message: str, default: bool = False) -> bool:
        return click.confirm(message, default=default)

    def text(self, message: str, default: str = "") -> str:
        return click.prompt(message, default=default, show_default=bool(default)).strip()

    def password(self, message: str) -> str:
        return click.prompt(message, default="", hide_input=True, show_default=False).strip()

    def integer(self, message: str, default: int, minimum: int = 0) -> int:
        return click.prompt(message, type=click.IntRange(min=minimum), default=default)
