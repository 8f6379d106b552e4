"""String helpers: case, trimming, splitting, integers, URLs and timestamps."""

from __future__ import annotations

import re
import string
import time
from dataclasses import dataclass

_C_SPACE = " \t\n\v\f\r"
_LOWER_TABLE = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)
_UPPER_TABLE = str.maketrans(string.ascii_lowercase, string.ascii_uppercase)
_DIGITS = string.digits + string.ascii_lowercase
_SIGN_RE = re.compile(r"[ \t\n\v\f\r]*([+-]?)(.*)", re.DOTALL)
_HEX_PREFIX_RE = re.compile(r"0[xX][0-9a-fA-F]")
_URL_SAFE = frozenset((string.ascii_letters + string.digits + "-_.~").encode("ascii"))
_PERCENT_RE = re.compile(rb"%([^\x00][^\x00])|%|\+", re.DOTALL)
_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1

DEFAULT_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass
class ParsedUrl:
    """Parts of a URL; ``port`` is None when the URL gives none."""

    protocol: str = ""
    host: str = ""
    target: str = ""
    port: int | None = None


def lowercase(text: str) -> str:
    """Lower-case ASCII letters only."""
    return text.translate(_LOWER_TABLE)


def uppercase(text: str) -> str:
    """Upper-case ASCII letters only."""
    return text.translate(_UPPER_TABLE)


def trim_whitespace(text: str) -> str:
    return text.strip(_C_SPACE)


def split(text: str, delim: str, max_splits: int = 0) -> list[str]:
    """Split on ``delim``, dropping empty pieces.

    With ``max_splits`` set, once that many pieces are collected the rest of
    the text is returned as the last piece. An empty text gives ``[""]``.
    """
    if not delim:
        raise ValueError("delimiter must not be empty")
    elements: list[str] = []
    last = 0
    pos = text.find(delim, last)
    while pos != -1:
        if pos != last:
            if max_splits and len(elements) >= max_splits:
                elements.append(text[last:])
                return elements
            elements.append(text[last:pos])
        last = pos + len(delim)
        pos = text.find(delim, last)
    if last < len(text) or not text:
        elements.append(text[last:])
    return elements


def replace(text: str, old: str, new: str, max_replacements: int = 0) -> str:
    """Replace occurrences of ``old``; a non-zero limit stops after limit + 1."""
    if not old:
        raise ValueError("string to replace must not be empty")
    counter = 0
    result = text
    pos = result.find(old)
    while pos != -1:
        result = result[:pos] + new + result[pos + len(old):]
        counter += 1
        if not max_replacements or counter <= max_replacements:
            pos = result.find(old, pos + len(new))
        else:
            pos = -1
    return result


def _parse_prefix(text: str, base: int) -> int | None:
    """Parse the leading integer of ``text`` the way strtol does, or None."""
    if base != 0 and not 2 <= base <= 36:
        raise ValueError(f"unsupported base: {base}")
    match = _SIGN_RE.match(text)
    sign, rest = match.groups()
    if base in (0, 16) and _HEX_PREFIX_RE.match(rest):
        rest = rest[2:]
        base = 16
    elif base == 0:
        base = 8 if rest.startswith("0") else 10
    body = re.match(f"[{_DIGITS[:base]}]*", rest.lower()).group()
    if not body:
        return None
    value = int(body, base)
    return -value if sign == "-" else value


def to_int(text: str, base: int = 10) -> int:
    """Parse a leading 32-bit integer, ignoring trailing characters."""
    value = _parse_prefix(text, base)
    if value is None:
        raise ValueError(f"no integer in {text!r}")
    if not _INT32_MIN <= value <= _INT32_MAX:
        raise ValueError(f"integer out of range: {text!r}")
    return value


def parse_url(url: str) -> ParsedUrl:
    """Split a URL into protocol, host, port and target path."""
    result = ParsedUrl()
    parts = split(url, "://", 1)
    if len(parts) == 2:
        result.protocol, host_target = parts
    else:
        host_target = url

    parts = split(host_target, "/", 1)
    result.host = parts[0]

    port_parts = split(result.host, ":", 1)
    if len(port_parts) == 2:
        result.host = port_parts[0]
        result.port = to_int(port_parts[1])

    if len(parts) == 2:
        result.target = parts[1]
    return result


def url_encode(url: str) -> str:
    """Percent-encode every UTF-8 byte outside the unreserved set."""
    return "".join(
        chr(byte) if byte in _URL_SAFE else f"%{byte:02X}"
        for byte in url.encode("utf-8")
    )


def _decode_match(match: re.Match[bytes]) -> bytes:
    token = match.group(0)
    if token == b"+":
        return b" "
    pair = match.group(1)
    if pair is None:
        return b""
    value = _parse_prefix(pair.decode("latin-1"), 16) or 0
    return bytes([value & 0xFF])


def url_decode(url: str) -> str:
    """Decode percent escapes and ``+``; an incomplete escape drops the ``%``."""
    decoded = _PERCENT_RE.sub(_decode_match, url.encode("utf-8"))
    return decoded.decode("utf-8", errors="replace")


def timestamp_to_string(epoch_time: float, fmt: str = DEFAULT_TIME_FORMAT) -> str:
    """Format seconds since the epoch in local time."""
    return time.strftime(fmt, time.localtime(epoch_time))