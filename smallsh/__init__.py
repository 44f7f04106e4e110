"""Execution core of a small shell: builtins, redirections, here-documents and pipelines."""

__version__ = "0.1.0"
__all__ = ["builtins", "executor", "heredoc", "model", "textutils"]