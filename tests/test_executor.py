import io
import os
import sys

import pytest

from smallsh.builtins import ShellExit
from smallsh.executor import (
    check_redirect_access,
    execute,
    exit_status_from_returncode,
    find_command_path,
    is_path,
    open_redirects,
    prepare_output_files,
)
from smallsh.model import Command, Redirect, RedirectType, ShellState

PY = sys.executable


def _shell():
    return ShellState(env=[f"PATH={os.environ.get('PATH', '')}"])


def _executable(path, mode=0o755):
    path.write_text("#!/bin/sh\n")
    path.chmod(mode)
    return path


def test_exit_status_from_returncode():
    assert exit_status_from_returncode(0) == 0
    assert exit_status_from_returncode(3) == 3
    assert exit_status_from_returncode(-9) == 137


def test_is_path(tmp_path):
    tool = _executable(tmp_path / "tool")
    plain = _executable(tmp_path / "plain", 0o644)
    assert is_path(str(tool)) is True
    assert is_path(str(plain)) is False
    assert is_path("tool") is False
    assert is_path(None) is False


def test_find_command_path(tmp_path):
    _executable(tmp_path / "tool")
    shell = ShellState(env=[f"PATH=/nonexistent:{tmp_path}"])
    assert find_command_path(shell, "tool") == f"{tmp_path}/tool"
    assert find_command_path(shell, "absent") is None
    assert find_command_path(ShellState(env=[]), "tool") is None


def test_find_command_path_stops_at_munki(tmp_path):
    _executable(tmp_path / "tool")
    shell = ShellState(env=[f"PATH=/opt/munki:{tmp_path}"])
    assert find_command_path(shell, "tool") is None


def test_check_redirect_access_missing_input(tmp_path):
    err = io.StringIO()
    commands = [Command(["cat"], [Redirect(RedirectType.INPUT, str(tmp_path / "no"))])]
    assert check_redirect_access(commands, err) is False
    assert err.getvalue() == "Error: Could not create file\n"


def test_check_redirect_access_creates_output(tmp_path):
    target = tmp_path / "out.txt"
    commands = [Command(["ls"], [Redirect(RedirectType.APPEND, str(target))])]
    assert check_redirect_access(commands, io.StringIO()) is True
    assert target.exists()


def test_prepare_output_files(tmp_path):
    target = tmp_path / "o"
    assert prepare_output_files([Command(["x"], [Redirect(RedirectType.OUTPUT, str(target))])])
    assert target.exists()
    missing = [Command(["x"], [Redirect(RedirectType.INPUT, str(tmp_path / "none"))])]
    assert prepare_output_files(missing) is False


@pytest.mark.parametrize(
    "kind, expected",
    [(RedirectType.APPEND, b"oldnew"), (RedirectType.OUTPUT, b"new")],
)
def test_open_redirects_output_mode(tmp_path, kind, expected):
    target = tmp_path / "f"
    target.write_bytes(b"old")
    in_fd, out_fd = open_redirects(Command(["x"], [Redirect(kind, str(target))]))
    assert in_fd is None
    os.write(out_fd, b"new")
    os.close(out_fd)
    assert target.read_bytes() == expected


def test_single_builtin_writes_to_stdout():
    out = io.StringIO()
    shell = _shell()
    execute(shell, [Command(["echo", "hi"])], stdout=out, stderr=io.StringIO())
    assert out.getvalue() == "hi \n"
    assert shell.exit_status == 0


def test_single_builtin_output_redirect(tmp_path):
    target = tmp_path / "o"
    cmd = Command(["echo", "-n", "hi"], [Redirect(RedirectType.OUTPUT, str(target))])
    execute(_shell(), [cmd], stdout=io.StringIO(), stderr=io.StringIO(), heredoc_dir=tmp_path)
    assert target.read_text() == "hi"


def test_external_exit_status(tmp_path):
    shell = _shell()
    execute(shell, [Command([PY, "-c", "import sys; sys.exit(3)"])], heredoc_dir=tmp_path)
    assert shell.exit_status == 3


def test_external_output_redirect(tmp_path):
    target = tmp_path / "o"
    cmd = Command([PY, "-c", "print('out')"], [Redirect(RedirectType.OUTPUT, str(target))])
    execute(_shell(), [cmd], heredoc_dir=tmp_path)
    assert target.read_text() == "out\n"


def test_pipeline_builtin_into_external(tmp_path):
    target = tmp_path / "o"
    upper = Command(
        [PY, "-c", "import sys; sys.stdout.write(sys.stdin.read().upper())"],
        [Redirect(RedirectType.OUTPUT, str(target))],
    )
    execute(_shell(), [Command(["echo", "abc"]), upper], heredoc_dir=tmp_path)
    assert target.read_text() == "ABC \n"


def test_pipeline_status_is_last_stage(tmp_path):
    shell = _shell()
    first = Command([PY, "-c", "import sys; sys.exit(0)"])
    second = Command([PY, "-c", "import sys; sys.exit(5)"])
    execute(shell, [first, second], heredoc_dir=tmp_path)
    assert shell.exit_status == 5
    execute(shell, [second, first], heredoc_dir=tmp_path)
    assert shell.exit_status == 0


def test_builtin_in_pipeline_does_not_change_shell(tmp_path):
    shell = _shell()
    execute(shell, [Command(["export", "X=1"]), Command([PY, "-c", "pass"])], heredoc_dir=tmp_path)
    assert "X=1" not in shell.env


def test_heredoc_feeds_command_and_is_removed(tmp_path):
    target = tmp_path / "o"
    cmd = Command(
        [PY, "-c", "import sys; sys.stdout.write(sys.stdin.read())"],
        [Redirect(RedirectType.HEREDOC, "END"), Redirect(RedirectType.OUTPUT, str(target))],
    )
    lines = ["l1", "END"]
    execute(_shell(), [cmd], read_line=lambda prompt: lines.pop(0), heredoc_dir=tmp_path)
    assert target.read_text() == "l1\n"
    assert not (tmp_path / ".heredoc_0").exists()


def test_command_not_found(tmp_path):
    shell = ShellState(env=[f"PATH={tmp_path}"])
    err = io.StringIO()
    execute(shell, [Command(["missing-command"])], stderr=err, heredoc_dir=tmp_path)
    assert shell.exit_status == 127
    assert err.getvalue() == "Execve: command not found\n"


def test_missing_input_sets_status(tmp_path):
    shell = _shell()
    cmd = Command(["cat"], [Redirect(RedirectType.INPUT, str(tmp_path / "none"))])
    execute(shell, [cmd], stderr=io.StringIO(), heredoc_dir=tmp_path)
    assert shell.exit_status == 1


def test_lone_exit_raises(tmp_path):
    with pytest.raises(ShellExit) as info:
        execute(_shell(), [Command(["exit", "4"])], stdout=io.StringIO(),
                stderr=io.StringIO(), heredoc_dir=tmp_path)
    assert info.value.code == 4