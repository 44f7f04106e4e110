"""Small string helpers shared by the shell: C-style number parsing and splitting."""

from __future__ import annotations

_C_WHITESPACE = " \t\n\v\f\r"
_ASCII_LETTERS = frozenset("ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz")
_ASCII_DIGITS = frozenset("0123456789")


def _wrap_signed(value: int, bits: int) -> int:
    """Reduce ``value`` to a two's-complement integer of ``bits`` width."""
    modulus = 1 << bits
    value %= modulus
    if value >= modulus >> 1:
        value -= modulus
    return value


def _parse_leading_integer(text: str) -> int:
    """Parse optional whitespace, one sign and a run of ASCII digits."""
    rest = text.lstrip(_C_WHITESPACE)
    sign = 1
    if rest[:1] in ("-", "+"):
        if rest[0] == "-":
            sign = -1
        rest = rest[1:]
    digits = []
    for ch in rest:
        if ch not in _ASCII_DIGITS:
            break
        digits.append(ch)
    if not digits:
        return 0
    return sign * int("".join(digits))


def atoi(text: str) -> int:
    """Convert the leading integer of ``text`` the way a 32-bit ``atoi`` does."""
    return _wrap_signed(_parse_leading_integer(text), 32)


def atoll(text: str) -> int:
    """Convert the leading integer of ``text`` into a 64-bit signed value."""
    return _wrap_signed(_parse_leading_integer(text), 64)


def split(text: str, sep: str) -> list[str]:
    """Split ``text`` on ``sep``, dropping empty pieces."""
    if len(sep) != 1:
        raise ValueError("separator must be a single character")
    return [part for part in text.split(sep) if part]


def strtrim(text: str, charset: str) -> str:
    """Remove characters found in ``charset`` from both ends of ``text``."""
    return text.strip(charset) if charset else text


def substr(text: str, start: int, length: int) -> str:
    """Return at most ``length`` characters of ``text`` beginning at ``start``."""
    if start < 0 or length < 0:
        raise ValueError("start and length must not be negative")
    start = min(start, len(text))
    return text[start:start + length]


def strnstr(haystack: str, needle: str, length: int) -> int | None:
    """Find ``needle`` within the first ``length`` characters of ``haystack``.

    Returns the index of the match, or ``None`` when there is none.
    """
    if not needle:
        return 0
    if length <= 0:
        return None
    index = haystack[:length].find(needle)
    return index if index >= 0 else None


def is_space(ch: str) -> bool:
    """Tell whether ``ch`` is one of the C locale whitespace characters."""
    return len(ch) == 1 and ch in _C_WHITESPACE


def is_identifier_char(ch: str) -> bool:
    """Tell whether ``ch`` may appear in a variable name (ASCII alnum or '_')."""
    return len(ch) == 1 and (ch in _ASCII_LETTERS or ch in _ASCII_DIGITS or ch == "_")