"""Commands the shell runs itself: echo, cd, pwd, env, export, unset and exit."""

from __future__ import annotations

import enum
import os
import sys
from typing import Sequence, TextIO

from smallsh.model import Command, ShellState
from smallsh.textutils import atoi, is_identifier_char

_BUILTIN_NAMES = frozenset({"pwd", "cd", "env", "echo", "unset", "export", "exit"})
_LLONG_MAX = "9223372036854775807"
_LLONG_MIN = "-9223372036854775808"
_ASCII_LETTERS = frozenset("ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz")


class ShellExit(Exception):
    """Raised by the ``exit`` builtin; ``code`` is the process exit status."""

    def __init__(self, code: int) -> None:
        super().__init__(code)
        self.code = code


class ExportCheck(enum.IntEnum):
    """Outcome of validating one ``export`` argument."""

    INVALID = 0
    ASSIGN = 1
    NAME_ONLY = 2


def _stream(stream: TextIO | None, default: TextIO) -> TextIO:
    return default if stream is None else stream


def is_builtin(args: Sequence[str]) -> bool:
    """Tell whether the first argument names a builtin."""
    return bool(args) and args[0] in _BUILTIN_NAMES


def run_builtin(
    shell: ShellState,
    command: Command,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> bool:
    """Run ``command`` if it is a builtin; return whether it was one.

    ``exit`` raises :class:`ShellExit`.
    """
    out = _stream(out, sys.stdout)
    err = _stream(err, sys.stderr)
    args = command.args
    if not args:
        return False
    name = args[0]
    if name == "pwd":
        _pwd(shell, out)
    elif name == "cd":
        cd(shell, args, err)
    elif name == "env":
        print_env(shell, args, out, err)
    elif name == "echo":
        echo(args, out)
        shell.exit_status = 0
    elif name == "unset":
        _unset(shell, args)
    elif name == "export":
        export(shell, args, out, err)
    elif name == "exit":
        builtin_exit(shell, args, out, err)
    else:
        return False
    return True


def _pwd(shell: ShellState, out: TextIO) -> None:
    out.write(os.getcwd() + "\n")
    shell.exit_status = 0


def _unset(shell: ShellState, args: Sequence[str]) -> None:
    names = set(args[1:])
    shell.env = [entry for entry in shell.env if entry.partition("=")[0] not in names]
    shell.exit_status = 0


def _is_n_flag(arg: str) -> bool:
    return len(arg) > 1 and arg[0] == "-" and all(ch == "n" for ch in arg[1:])


def echo(args: Sequence[str], out: TextIO | None = None) -> None:
    """Print the arguments; leading ``-n``/``-nnn`` flags suppress the newline."""
    out = _stream(out, sys.stdout)
    first = 1
    while first < len(args) and _is_n_flag(args[first]):
        first += 1
    if first > 1:
        out.write(" ".join(args[first:]))
    else:
        out.write("".join(f"{arg} " for arg in args[1:]) + "\n")


def print_env(
    shell: ShellState,
    args: Sequence[str],
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> None:
    """Print every environment entry, one per line; arguments are refused."""
    out = _stream(out, sys.stdout)
    err = _stream(err, sys.stderr)
    if len(args) > 1:
        shell.exit_status = 127
        err.write("env: Takes no arguments\n")
        return
    for entry in shell.env:
        out.write(entry + "\n")
    shell.exit_status = 0


def cd(shell: ShellState, args: Sequence[str], err: TextIO | None = None) -> None:
    """Change directory to ``args[1]``, or try ``~`` literally when absent."""
    err = _stream(err, sys.stderr)
    if len(args) > 1:
        try:
            os.chdir(args[1])
        except OSError as exc:
            shell.exit_status = 1
            err.write(f"cd: {exc.strerror}\n")
            return
    else:
        try:
            os.chdir("~")
        except OSError:
            pass
    shell.exit_status = 0
    shell.pwd = os.getcwd()


def is_numeric(text: str) -> bool:
    """Tell whether every character of ``text`` is an ASCII digit."""
    return all("0" <= ch <= "9" for ch in text)


def fits_long_long(text: str) -> bool:
    """Length check of a numeral against the 64-bit limits.

    A numeral of the limit's own length is accepted only when it equals it.
    """
    limit = _LLONG_MIN if text.startswith("-") else _LLONG_MAX
    if len(text) != len(limit):
        return len(text) < len(limit)
    return text == limit


def exit_code_for(
    args: Sequence[str],
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> int:
    """Work out the status ``exit`` uses; -1 when given too many arguments."""
    out = _stream(out, sys.stdout)
    err = _stream(err, sys.stderr)
    if len(args) == 2:
        arg = args[1]
        if is_numeric(arg) and fits_long_long(arg):
            return atoi(arg)
        out.write(f"exit: {arg}: numeric argument required\n")
        return 255
    if len(args) > 2:
        err.write("exit: too many arguments\n")
        return -1
    return 0


def builtin_exit(
    shell: ShellState,
    args: Sequence[str],
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> None:
    """Announce the exit and raise :class:`ShellExit` with the final status."""
    out = _stream(out, sys.stdout)
    err = _stream(err, sys.stderr)
    err.write("\nexit\n")
    shell.exit_status = exit_code_for(args, out, err)
    raise ShellExit(shell.exit_status & 0xFF)


def find_var(env: Sequence[str], assignment: str) -> int | None:
    """Index of the entry defining the name in ``assignment``, or ``None``."""
    name = assignment.partition("=")[0]
    for index, entry in enumerate(env):
        if entry.startswith(name) and entry[len(name):len(name) + 1] == "=":
            return index
    return None


def export_var(env: Sequence[str], assignment: str) -> list[str]:
    """Return a copy of ``env`` with ``assignment`` replacing or appended."""
    updated = list(env)
    index = find_var(env, assignment)
    if index is None:
        updated.append(assignment)
    else:
        updated[index] = assignment
    return updated


def check_export(data: str) -> ExportCheck:
    """Validate an ``export`` argument's name and tell whether it assigns."""
    name = data.partition("=")[0]
    if not all(is_identifier_char(ch) for ch in name):
        return ExportCheck.INVALID
    if not data or not (data[0] in _ASCII_LETTERS or data[0] == "_"):
        return ExportCheck.INVALID
    return ExportCheck.ASSIGN if "=" in data else ExportCheck.NAME_ONLY


def sorted_env(env: Sequence[str]) -> list[str]:
    """Order entries by their first character with a selection sort.

    The sort is not stable: entries sharing a first character may be reordered.
    """
    entries = list(env)
    for i in range(len(entries) - 1):
        smallest = min(range(i, len(entries)), key=lambda j: (entries[j][:1], j))
        entries[i], entries[smallest] = entries[smallest], entries[i]
    return entries


def export(
    shell: ShellState,
    args: Sequence[str],
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> None:
    """Set environment entries, or list them sorted when given no arguments."""
    out = _stream(out, sys.stdout)
    err = _stream(err, sys.stderr)
    if len(args) < 2:
        shell.env = sorted_env(shell.env)
        for entry in shell.env:
            out.write(f"declare -x {entry}\n")
        return
    for arg in args[1:]:
        result = check_export(arg)
        if result is ExportCheck.INVALID:
            shell.exit_status = 1
            err.write("export: not a valid identifier\n")
            continue
        shell.exit_status = 0
        if result is ExportCheck.ASSIGN:
            shell.env = export_var(shell.env, arg)