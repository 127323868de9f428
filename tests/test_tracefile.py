import logging

import pytest

from tracefile import TraceError, parse_tokens, read_trace


def test_parse_hex_tokens():
    lines = ["0 4 8\n", "1c  ff\tDEADBEEF\n", "\n", "0x10 0X20\n"]
    assert list(parse_tokens(lines)) == [0x0, 0x4, 0x8, 0x1C, 0xFF, 0xDEADBEEF, 0x10, 0x20]


def test_addresses_truncated_to_32_bits():
    assert list(parse_tokens(["123456789"])) == [0x23456789]


def test_malformed_token_ends_stream(caplog):
    with caplog.at_level(logging.WARNING, logger="tracefile"):
        addresses = list(parse_tokens(["4 8 zz 10\n", "20\n"]))
    assert addresses == [0x4, 0x8]
    assert "zz" in caplog.text


def test_stream_is_lazy():
    def lines():
        yield "1 2\n"
        raise AssertionError("read past first line")

    it = parse_tokens(lines())
    assert next(it) == 1
    assert next(it) == 2


def test_read_trace(tmp_path):
    path = tmp_path / "traces.txt"
    path.write_text("0 10 20\n30 40\n")
    assert list(read_trace(str(path))) == [0x0, 0x10, 0x20, 0x30, 0x40]


def test_missing_trace_fails_at_open(tmp_path):
    with pytest.raises(TraceError):
        read_trace(str(tmp_path / "nope.txt"))
