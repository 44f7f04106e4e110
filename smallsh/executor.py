"""Running parsed commands: redirections, pipelines, builtins and children."""

from __future__ import annotations

import dataclasses
import io
import os
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import IO, Any, Sequence, TextIO

from smallsh.builtins import ShellExit, is_builtin, run_builtin
from smallsh.heredoc import (
    HeredocInterrupted,
    ReadLine,
    collect_heredocs,
    delete_heredoc_files,
    heredoc_file,
)
from smallsh.model import (
    Command,
    RedirectType,
    ShellState,
    count_heredocs,
    count_input_heredocs,
    heredoc_or_input,
    last_redirect,
)
from smallsh.textutils import split, strnstr

_NOT_FOUND = "Execve: command not found\n"
_REDIRECT_ERROR = "Error: Could not create file\n"
_OUTPUT_KINDS = (RedirectType.OUTPUT, RedirectType.APPEND)


def is_path(arg: str | None) -> bool:
    """Tell whether ``arg`` is an absolute or ``./`` path to an executable."""
    if not arg:
        return False
    if arg.startswith("/") or arg.startswith("./"):
        return os.access(arg, os.F_OK | os.X_OK)
    return False


def _path_dirs(shell: ShellState) -> list[str]:
    for entry in shell.env:
        name, sep, value = entry.partition("=")
        if sep and name == "PATH":
            return split(value, ":")
    return []


def find_command_path(shell: ShellState, name: str | None) -> str | None:
    """Search the shell's PATH for an executable called ``name``."""
    if not name:
        return None
    for directory in _path_dirs(shell):
        if strnstr(directory, "munki", len(directory)) is not None:
            return None
        candidate = f"{directory}/{name}"
        if os.access(candidate, os.F_OK | os.X_OK):
            return candidate
    return None


def _touch(path: str) -> bool:
    try:
        os.close(os.open(path, os.O_CREAT | os.O_RDONLY, 0o644))
    except OSError:
        return False
    return True


def check_redirect_access(commands: Sequence[Command], err: TextIO | None = None) -> bool:
    """Check input files are readable and create output files, in order.

    Reports the first failure on ``err`` and returns ``False``.
    """
    err = err if err is not None else sys.stderr
    for command in commands:
        for redirect in command.redirects:
            if redirect.kind is RedirectType.INPUT and not os.access(redirect.target, os.R_OK):
                err.write(_REDIRECT_ERROR)
                return False
            if redirect.kind in _OUTPUT_KINDS and not _touch(redirect.target):
                err.write(_REDIRECT_ERROR)
                return False
    return True


def prepare_output_files(commands: Sequence[Command]) -> bool:
    """Silent form of :func:`check_redirect_access`."""
    for command in commands:
        for redirect in command.redirects:
            if redirect.kind is RedirectType.INPUT and not os.access(redirect.target, os.R_OK):
                return False
            if redirect.kind in _OUTPUT_KINDS and not _touch(redirect.target):
                return False
    return True


def open_redirects(command: Command) -> tuple[int | None, int | None]:
    """Open the command's last input and last output redirect.

    Returns raw descriptors (or ``None``); the caller closes them. Output
    files must already exist; ``>>`` appends and ``>`` truncates.
    """
    in_fd: int | None = None
    out_fd: int | None = None
    source = last_redirect(command.redirects, RedirectType.INPUT)
    if source is not None:
        try:
            in_fd = os.open(source.target, os.O_RDONLY)
        except OSError:
            in_fd = None
    target = last_redirect(command.redirects, RedirectType.OUTPUT)
    if target is not None:
        mode = os.O_APPEND if target.kind is RedirectType.APPEND else os.O_TRUNC
        try:
            out_fd = os.open(target.target, os.O_WRONLY | mode)
        except OSError:
            out_fd = None
    return in_fd, out_fd


def exit_status_from_returncode(returncode: int) -> int:
    """Shell status for a child's return code; signals map to 128 + number."""
    return 128 - returncode if returncode < 0 else returncode


def _fd_target(stream: Any) -> Any:
    if stream is None:
        return None
    try:
        stream.fileno()
    except (AttributeError, OSError, ValueError):
        return None
    return stream


def _flush(*streams: Any) -> None:
    for stream in streams:
        flush = getattr(stream, "flush", None)
        if flush is not None:
            flush()


def _environment(env: Sequence[str]) -> dict[str, str]:
    result: dict[str, str] = {}
    for entry in env:
        name, sep, value = entry.partition("=")
        if sep:
            result[name] = value
    return result


def _start_external(
    shell: ShellState,
    command: Command,
    stdin_src: Any,
    stdout_target: Any,
    out: TextIO,
    err: TextIO,
) -> subprocess.Popen | None:
    name = command.args[0]
    path = name if is_path(name) else find_command_path(shell, name)
    if path is None:
        err.write(_NOT_FOUND)
        return None
    _flush(out, err)
    try:
        return subprocess.Popen(
            command.args,
            executable=path,
            stdin=stdin_src,
            stdout=stdout_target,
            stderr=_fd_target(err),
            env=_environment(shell.env),
        )
    except OSError:
        err.write(_NOT_FOUND)
        return None


def _run_stages(
    shell: ShellState,
    commands: Sequence[Command],
    heredocs: dict[int, Path],
    out: TextIO,
    err: TextIO,
) -> tuple[int | subprocess.Popen | None, list[subprocess.Popen]]:
    """Start every stage; return the last stage's outcome and all children."""
    single = len(commands) == 1
    upstream: Any = None
    children: list[subprocess.Popen] = []
    outcome: int | subprocess.Popen | None = None
    for index, command in enumerate(commands):
        shell.current_heredoc = index
        last = index == len(commands) - 1
        in_fd, out_fd = open_redirects(command)
        in_file: IO[bytes] | None = os.fdopen(in_fd, "rb") if in_fd is not None else None
        out_file: IO[bytes] | None = os.fdopen(out_fd, "wb") if out_fd is not None else None
        heredoc = heredocs.get(index)
        stdin_src: Any = upstream
        if heredoc is not None and heredoc.exists():
            if in_file is not None:
                in_file.close()
            in_file = heredoc.open("rb")
            stdin_src = in_file
        elif in_file is not None:
            stdin_src = in_file
        next_upstream: Any = subprocess.DEVNULL
        try:
            if not command.args:
                outcome = 0
            elif is_builtin(command.args) and single:
                if out_file is not None:
                    with io.TextIOWrapper(out_file) as text_out:
                        out_file = None
                        run_builtin(shell, command, text_out, err)
                else:
                    run_builtin(shell, command, out, err)
                outcome = None
            elif is_builtin(command.args):
                isolated = dataclasses.replace(shell, env=list(shell.env))
                buffer = io.StringIO()
                try:
                    run_builtin(isolated, command, buffer, err)
                    outcome = 0
                except ShellExit as exc:
                    outcome = exc.code
                data = buffer.getvalue()
                if out_file is not None:
                    out_file.write(data.encode())
                elif last:
                    out.write(data)
                else:
                    spool = tempfile.TemporaryFile()
                    spool.write(data.encode())
                    spool.seek(0)
                    next_upstream = spool
            else:
                if out_file is not None:
                    stdout_target: Any = out_file
                elif last:
                    stdout_target = _fd_target(out)
                else:
                    stdout_target = subprocess.PIPE
                process = _start_external(shell, command, stdin_src, stdout_target, out, err)
                if process is None:
                    outcome = 127
                else:
                    children.append(process)
                    outcome = process
                    if process.stdout is not None:
                        next_upstream = process.stdout
        finally:
            for handle in (in_file, out_file, upstream):
                if handle is not None and hasattr(handle, "close"):
                    handle.close()
        upstream = next_upstream
    if upstream is not None and hasattr(upstream, "close"):
        upstream.close()
    return outcome, children


def execute(
    shell: ShellState,
    commands: Sequence[Command],
    read_line: ReadLine | None = None,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
    heredoc_dir: str | Path | None = None,
) -> None:
    """Run a pipeline of commands and record its exit status on ``shell``.

    A lone builtin runs in the shell itself; builtins inside a pipeline run
    on a copy of the state, so they cannot change it. ``exit`` run alone
    raises :class:`ShellExit`.
    """
    out = stdout if stdout is not None else sys.stdout
    err = stderr if stderr is not None else sys.stderr
    commands = list(commands)
    shell.input_heredocs = count_input_heredocs(commands)
    try:
        interrupted = False
        if count_heredocs(commands):
            try:
                collect_heredocs(commands, read_line, heredoc_dir)
            except HeredocInterrupted:
                interrupted = True
                shell.exit_status = 1
        if not commands or interrupted:
            return
        shell.current_heredoc = 0
        if not check_redirect_access(commands, err):
            shell.exit_status = 1
            return
        fed = [i for i, command in enumerate(commands) if heredoc_or_input(command.redirects)]
        heredocs = {i: heredoc_file(heredoc_dir, n) for n, i in enumerate(fed)}
        outcome, children = _run_stages(shell, commands, heredocs, out, err)
        for child in children:
            child.wait()
        if outcome is None:
            return
        if prepare_output_files(commands) and commands[0].args:
            if isinstance(outcome, subprocess.Popen):
                shell.exit_status = exit_status_from_returncode(outcome.returncode)
            else:
                shell.exit_status = outcome
    finally:
        delete_heredoc_files(heredoc_dir, shell.input_heredocs)