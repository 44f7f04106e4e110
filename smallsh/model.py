"""Parsed command data and the queries the executor runs over it."""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field
from typing import Iterable, Sequence


class RedirectType(enum.Enum):
    """Kinds of redirection attached to a command."""

    INPUT = "<"
    OUTPUT = ">"
    APPEND = ">>"
    HEREDOC = "<<"


@dataclass
class Redirect:
    """One redirection: its kind and its file name or heredoc delimiter."""

    kind: RedirectType
    target: str


@dataclass
class Command:
    """One pipeline stage: its argument vector and its redirections."""

    args: list[str] = field(default_factory=list)
    redirects: list[Redirect] = field(default_factory=list)


@dataclass
class ShellState:
    """Mutable state of a running shell."""

    env: list[str] = field(default_factory=list)
    exit_status: int = 0
    pwd: str | None = field(default_factory=os.getcwd)
    current_heredoc: int = 0
    input_heredocs: int = 0


def _is_output(kind: RedirectType) -> bool:
    return kind in (RedirectType.OUTPUT, RedirectType.APPEND)


def count_redirects(redirects: Iterable[Redirect], kind: RedirectType) -> int:
    """Count input redirects, or output redirects (including appends).

    Any other ``kind`` yields zero.
    """
    if kind is RedirectType.INPUT:
        return sum(1 for r in redirects if r.kind is RedirectType.INPUT)
    if kind is RedirectType.OUTPUT:
        return sum(1 for r in redirects if _is_output(r.kind))
    return 0


def last_redirect(redirects: Iterable[Redirect], kind: RedirectType) -> Redirect | None:
    """Return the last input, or the last output/append, redirect."""
    last_in: Redirect | None = None
    last_out: Redirect | None = None
    for redirect in redirects:
        if redirect.kind is RedirectType.INPUT:
            last_in = redirect
        elif _is_output(redirect.kind):
            last_out = redirect
    if kind is RedirectType.INPUT:
        return last_in
    if kind is RedirectType.OUTPUT:
        return last_out
    return None


def heredoc_or_input(redirects: Iterable[Redirect]) -> int:
    """Number of heredocs if the command's final input source is a heredoc, else 0."""
    last_kind: RedirectType | None = None
    heredocs = 0
    for redirect in redirects:
        if redirect.kind is RedirectType.HEREDOC:
            heredocs += 1
            last_kind = redirect.kind
        elif redirect.kind is RedirectType.INPUT:
            last_kind = redirect.kind
    return heredocs if last_kind is RedirectType.HEREDOC else 0


def count_heredocs(commands: Iterable[Command]) -> int:
    """Total number of heredoc redirections across all commands."""
    return sum(
        1 for command in commands for r in command.redirects if r.kind is RedirectType.HEREDOC
    )


def count_input_heredocs(commands: Iterable[Command]) -> int:
    """Number of commands whose standard input comes from a heredoc."""
    return sum(1 for command in commands if heredoc_or_input(command.redirects))


def heredoc_delimiters(commands: Iterable[Command]) -> list[str]:
    """Every heredoc delimiter, in the order the heredocs are read."""
    return [
        r.target
        for command in commands
        for r in command.redirects
        if r.kind is RedirectType.HEREDOC
    ]


def heredoc_positions(commands: Sequence[Command]) -> list[int]:
    """Running heredoc totals, one per command whose input is a heredoc.

    Each value is the 1-based index of the delimiter whose body feeds that
    command's standard input.
    """
    positions: list[int] = []
    total = 0
    for command in commands:
        count = heredoc_or_input(command.redirects)
        if count:
            total += count
            positions.append(total)
    return positions