# smallsh

The execution core of a small POSIX-style shell, written as a library.
It takes commands that have already been parsed into `Command` objects
and runs them.

## Modules

- `smallsh.model`: the data the executor works on. `RedirectType`
  (`INPUT`, `OUTPUT`, `APPEND`, `HEREDOC`), `Redirect`, `Command` and
  `ShellState` (environment as a list of `NAME=value` strings, the last
  exit status, the working directory). It also has queries over the
  redirections: `count_redirects`, `last_redirect`, `heredoc_or_input`,
  `count_heredocs`, `count_input_heredocs`, `heredoc_delimiters` and
  `heredoc_positions`.
- `smallsh.builtins`: `echo` (with `-n`, `-nnn`, ...), `cd`, `pwd`,
  `env`, `export`, `unset` and `exit`. `is_builtin` tells whether an
  argument vector names a builtin. `run_builtin` runs the command and
  returns `False` when the command is not a builtin. `exit` raises
  `ShellExit`, which carries the status in `code`.
- `smallsh.heredoc`: `collect_heredocs` reads here-document bodies line
  by line. By default it reads with `input()`; you can supply a
  `read_line(prompt)` callable instead. A body is written to a file
  (`heredoc_file(directory, index)`, named `.heredoc_<index>`, placed in
  the system temporary directory by default) only when that
  here-document is the command's last input source.
  `delete_heredoc_files` removes those files. If the reader raises
  `KeyboardInterrupt`, `collect_heredocs` raises `HeredocInterrupted`.
- `smallsh.executor`: `execute` runs a list of commands joined by pipes
  and records the exit status on the `ShellState`. The helpers are also
  available: `is_path`, `find_command_path` (searches the shell's own
  `PATH` entry), `check_redirect_access`, `prepare_output_files`,
  `open_redirects` and `exit_status_from_returncode`.
- `smallsh.textutils`: small string helpers used by the other modules:
  `atoi`, `atoll`, `split`, `strtrim`, `substr`, `strnstr`, `is_space`
  and `is_identifier_char`.

## Example

```python
import io

from smallsh.builtins import echo, check_export, ExportCheck, sorted_env
from smallsh.executor import execute
from smallsh.model import Command, Redirect, RedirectType, ShellState

out = io.StringIO()
echo(["echo", "-n", "hello", "world"], out)
assert out.getvalue() == "hello world"

assert check_export("NAME=value") is ExportCheck.ASSIGN
assert sorted_env(["b=2", "a=1"]) == ["a=1", "b=2"]

shell = ShellState(env=["PATH=/usr/bin:/bin"])
lines = iter(["first", "second", "EOF"])
execute(
    shell,
    [Command(["cat"], [Redirect(RedirectType.HEREDOC, "EOF")])],
    read_line=lambda prompt: next(lines, None),
)
print(shell.exit_status)
```

## Running commands

`execute(shell, commands, read_line, stdout, stderr, heredoc_dir)` works
in this order:

1. It reads every here-document.
2. It checks that input files are readable and creates any missing
   output files. On the first failure it writes
   `Error: Could not create file` and sets the status to 1.
3. It starts each stage.

Within each stage:

- The last `<` and the last `>`/`>>` redirection win. `>>` appends and
  `>` truncates.
- A lone builtin runs in the shell itself and can change its state. A
  lone `exit` lets `ShellExit` propagate.
- A builtin inside a pipeline runs on a copy of the state, so its
  changes are lost.
- Other programs are started as child processes. The environment comes
  from `shell.env`.

The here-document files are deleted afterwards.

Exit status:

- The status recorded is that of the last stage.
- A program that cannot be found writes
  `Execve: command not found` and gives 127.
- A child killed by a signal gives 128 plus the signal number.

## Builtin behaviour

- `echo`: leading arguments made only of `-` followed by `n`s suppress
  the newline. Without such a flag, every argument is followed by a
  space and the line ends with a newline.
- `cd`: with no argument it tries to change to a directory literally
  named `~`. A failure prints `cd: <reason>` and sets the status to 1.
- `env`: refuses arguments with status 127.
- `export`:
  - With no arguments it sorts `shell.env` by each entry's first
    character and prints it as `declare -x NAME=value` lines.
  - Identifiers must start with a letter or an underscore, and may
    contain only letters, digits and underscores. An invalid one
    reports `export: not a valid identifier` and sets the status to 1.
  - A name given without `=` is accepted but not stored.
- `unset`: removes the named entries.
- `exit`:
  - It writes `exit` to standard error.
  - One argument must be unsigned digits that fit in a signed 64-bit
    integer; otherwise it reports "numeric argument required" and uses
    255.
  - More than one argument reports "too many arguments". It still
    raises `ShellExit`, with code 255.
  - The code is always reduced to 0–255.

## What this package does not do

There is no interactive prompt loop and no command to run. There is no
tokenizer or parser for command lines, so commands must be built as
`Command` objects. Quotes, `$VAR` expansion and the `$?` status are not
handled. The package installs no handlers for interrupt or quit signals.