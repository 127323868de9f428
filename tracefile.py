import logging
import re

from cache import ADDRESS_MASK

LOGGER = logging.getLogger("tracefile")

_HEX_TOKEN = re.compile(r"(?:0[xX])?[0-9a-fA-F]+")


class TraceError(OSError):
    """Raised when a trace file cannot be opened or read."""


def parse_tokens(lines):
    """
    Yield 32-bit addresses from whitespace-separated hex tokens.
    A malformed token ends the stream; nothing after it is read.
    """
    for lineno, line in enumerate(lines, 1):
        for token in line.split():
            if not _HEX_TOKEN.fullmatch(token):
                LOGGER.warning("line %d: %r is not a hex address, stopping", lineno, token)
                return
            yield int(token, 16) & ADDRESS_MASK


def read_trace(path):
    """Lazily read addresses from the trace file at `path`."""
    try:
        f = open(path, "r")
    except OSError as e:
        raise TraceError(f"cannot open trace {path}: {e.strerror}") from e
    return _read(f, path)


def _read(f, path):
    with f:
        try:
            yield from parse_tokens(f)
        except (OSError, UnicodeDecodeError) as e:
            raise TraceError(f"error reading trace {path}: {e}") from e
