import io

import pytest

from linemode import config
from linemode.utils import logging
from linemode.utils.logging import (
	LogLevel,
	debug,
	error,
	formatData,
	info,
	level,
	logged,
	setLevel,
	warning,
)


@pytest.fixture
def stream(monkeypatch) -> io.StringIO:
	output = io.StringIO()
	monkeypatch.setattr(logging, "ERR", output)
	monkeypatch.setattr(logging, "LOG_LEVEL", LogLevel.Info)
	return output


def test_level():
	assert level("debug") is LogLevel.Debug
	assert level(" WARNING ") is LogLevel.Warning
	assert level("unknown") is LogLevel.Info
	assert level(None) is LogLevel.Info


def test_set_level(stream):
	assert logged(info)
	assert not logged(debug)
	setLevel("error")
	assert not logged(warning)
	assert logged(error)
	warning("Hidden")
	assert stream.getvalue() == ""
	setLevel(LogLevel.Debug)
	assert logged(debug)


def test_level_has_a_single_owner(stream):
	setLevel("warning")
	assert logging.LOG_LEVEL is LogLevel.Warning
	# Copies of the level would not follow `setLevel`
	assert not hasattr(config, "LOG_LEVEL")


def test_entries(stream):
	entry = info("Connection secured", Client="7f00")
	assert entry.level is LogLevel.Info
	assert entry.context == {"Client": "7f00"}
	assert "Connection secured" in stream.getvalue()
	assert "7f00" in stream.getvalue()
	assert error("Unable to bind", "HOSTPORTERR").value == "HOSTPORTERR"


def test_format_data():
	assert formatData(None) == "◌"
	assert formatData(b"NOOP\r\n") == "'NOOP\\r\\n'"
	assert formatData("two words") == "'two words'"
	assert formatData(True) == "✓"
	assert formatData(0.5) == "0.50"
	assert formatData([1, 2]) == "1,2"


# EOF
