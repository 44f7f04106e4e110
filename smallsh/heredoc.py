"""Reading heredoc bodies into temporary files and cleaning them up."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Callable, Iterable, Optional

from smallsh.model import Command, heredoc_delimiters, heredoc_positions

ReadLine = Callable[[str], Optional[str]]

_PROMPT = "> "
_FILE_PREFIX = ".heredoc_"


class HeredocInterrupted(Exception):
    """Raised when reading a heredoc body is interrupted by the user."""


def _read_terminal_line(prompt: str) -> str | None:
    try:
        return input(prompt)
    except EOFError:
        return None


def _resolve_directory(directory: str | Path | None) -> Path:
    return Path(directory) if directory is not None else Path(tempfile.gettempdir())


def heredoc_file(directory: str | Path | None, index: int) -> Path:
    """Path of the temporary file holding heredoc number ``index``."""
    return _resolve_directory(directory) / f"{_FILE_PREFIX}{index}"


def collect_heredocs(
    commands: Iterable[Command],
    read_line: ReadLine | None = None,
    directory: str | Path | None = None,
) -> list[Path]:
    """Read every heredoc body and store those that feed a command's input.

    Every delimiter is read in order. A body is kept only when it is the
    last input source of its command; it goes to the file numbered by that
    command's position among the heredoc-fed commands. End of input ends the
    current body and every later one. Returns the files written.
    """
    commands = list(commands)
    reader = read_line if read_line is not None else _read_terminal_line
    targets = {pos - 1: index for index, pos in enumerate(heredoc_positions(commands))}
    written: list[Path] = []
    exhausted = False
    for number, delimiter in enumerate(heredoc_delimiters(commands)):
        body: list[str] = []
        while not exhausted:
            try:
                line = reader(_PROMPT)
            except KeyboardInterrupt as exc:
                raise HeredocInterrupted("heredoc input interrupted") from exc
            if line is None:
                exhausted = True
                break
            if line == delimiter:
                break
            body.append(line)
        if number in targets:
            path = heredoc_file(directory, targets[number])
            path.write_text("".join(f"{line}\n" for line in body))
            written.append(path)
    return written


def delete_heredoc_files(directory: str | Path | None, count: int) -> None:
    """Remove heredoc files ``0`` to ``count - 1``; missing ones are ignored."""
    for index in range(count):
        heredoc_file(directory, index).unlink(missing_ok=True)