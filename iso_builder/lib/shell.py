from __future__ import annotations

import os
from typing import Iterable, Optional, Union

PathLike = Union[str, "os.PathLike[str]"]


class ShellQuoteError(ValueError):
    pass


class BufferTooSmall(ShellQuoteError):
    """Quoted token would be longer than the caller allows."""


class InvalidInput(ShellQuoteError):
    """Value is missing, empty (for paths) or contains a NUL byte."""


def quote(value: Optional[str], *, max_length: Optional[int] = None) -> str:
    """Quote ``value`` as exactly one POSIX shell word.

    The value is always wrapped in single quotes and every embedded ``'``
    becomes ``'\\''``, so ``sh`` sees exactly the input bytes.
    Unlike ``shlex.quote`` there is no "safe characters" shortcut.
    """

    if value is None:
        raise InvalidInput("cannot quote None")
    if "\0" in value:
        raise InvalidInput("cannot quote a value containing NUL")

    quoted = "'" + value.replace("'", "'\\''") + "'"
    if max_length is not None and len(quoted) > max_length:
        raise BufferTooSmall(f"quoted value needs {len(quoted)} characters, limit is {max_length}")
    return quoted


def require_path(path: Optional[PathLike]) -> str:
    """Return ``path`` as a string, rejecting a missing or empty one."""

    if path is None:
        raise InvalidInput("path is missing")
    s = os.fspath(path)
    if not s:
        raise InvalidInput("path is empty")
    return s


def quote_path(path: Optional[PathLike], *, max_length: Optional[int] = None) -> str:
    return quote(require_path(path), max_length=max_length)


def join(argv: Iterable[str]) -> str:
    return " ".join(quote(str(a)) for a in argv)
