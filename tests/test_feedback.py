"""Tests for traceback parsing."""

from pytutor.engine.feedback import parse_stderr

TRACEBACK = """Traceback (most recent call last):
  File "<string>", line 6, in <module>
  File "/tmp/pytutor_abc123.py", line 3, in solve
    return totl + 1
NameError: name 'totl' is not defined"""


def test_empty_stderr():
    assert parse_stderr("") == []


def test_name_error_with_line():
    items = parse_stderr(TRACEBACK)
    assert len(items) == 1
    assert items[0].line == 3
    assert "'totl' is not defined" in items[0].message


def test_specific_type_error_wins():
    items = parse_stderr("TypeError: add() missing 1 required positional argument: 'b'")
    assert items[0].message.startswith("add() was called with too few arguments")


def test_syntax_error_from_dry_run():
    items = parse_stderr("SyntaxError: invalid syntax (line 4)")
    assert items[0].line == 4


def test_timeout():
    items = parse_stderr("TimeoutError: execution timed out after 10s")
    assert "took too long" in items[0].message


def test_unknown_exception_falls_back_to_last_line():
    items = parse_stderr("Traceback (most recent call last):\n  File \"x\", line 1\nValueError: bad value")
    assert items[0].message == "ValueError: bad value"
    assert items[0].line is None
