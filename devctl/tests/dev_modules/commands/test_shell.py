"""Tests for the interactive shell."""
from __future__ import annotations

import io
import threading

import pytest
from returns.io import IOFailure, IOSuccess
from returns.unsafe import unsafe_perform_io

from devctl.dev_modules.commands.shell import (
    PROMPT,
    SHELL_HELP,
    handle_line,
    run_shell,
)
from devctl.dev_modules.relay import ConsoleRelay
from devctl.dev_modules.types import CommandContext, GlobalFlags
from devctl.tests.conftest import FakeConnection


def _ctx() -> CommandContext:
    return CommandContext(
        command_name="shell",
        flags=GlobalFlags(),
        relay=ConsoleRelay(),
    )


class TestHandleLine:
    """Tests for single shell lines."""

    @pytest.mark.parametrize("line", ["quit", "exit", "  quit  "])
    def test_quit_words(self, line: str) -> None:
        assert unsafe_perform_io(handle_line(line, None).unwrap()) is False

    def test_blank_line_continues(self, capsys) -> None:  # type: ignore[no-untyped-def]
        assert unsafe_perform_io(handle_line("   ", None).unwrap()) is True
        assert capsys.readouterr().out == ""

    def test_help(self, capsys) -> None:  # type: ignore[no-untyped-def]
        handle_line("help", None)
        assert capsys.readouterr().out == SHELL_HELP

    def test_status(self, capsys) -> None:  # type: ignore[no-untyped-def]
        handle_line("status", None)
        handle_line("status", FakeConnection("/dev/ttyUSB0"))
        assert capsys.readouterr().out == (
            "No device connected\nConnected to /dev/ttyUSB0\n"
        )

    def test_send_writes_to_device(self) -> None:
        conn = FakeConnection()
        result = handle_line("send AT+GMR", conn)
        assert unsafe_perform_io(result.unwrap()) is True
        assert conn.written == [b"AT+GMR\n"]

    def test_send_without_device_continues(self, capsys) -> None:  # type: ignore[no-untyped-def]
        result = handle_line("send hi", None)
        assert unsafe_perform_io(result.unwrap()) is True
        assert "cannot send" in capsys.readouterr().out

    def test_send_write_error(self) -> None:
        conn = FakeConnection()
        conn.write_error = OSError("EIO")
        result = handle_line("send hi", conn)
        assert isinstance(result, IOFailure)
        assert unsafe_perform_io(result.failure()).error_type == "WriteError"

    def test_unknown(self, capsys) -> None:  # type: ignore[no-untyped-def]
        assert unsafe_perform_io(handle_line("flash", None).unwrap()) is True
        assert "Unknown shell command: flash" in capsys.readouterr().out


class TestRunShell:
    """Tests for the shell loop."""

    def test_runs_without_device_until_eof(
        self, monkeypatch, capsys,  # type: ignore[no-untyped-def]
    ) -> None:
        monkeypatch.setattr("sys.stdin", io.StringIO("status\n"))
        result = run_shell(_ctx(), None)
        assert isinstance(result, IOSuccess)
        out = capsys.readouterr().out
        assert out.startswith("devctl shell: No device connected\n")
        assert out.count(PROMPT) == 2

    def test_quit_stops_loop(self, monkeypatch) -> None:  # type: ignore[no-untyped-def]
        monkeypatch.setattr("sys.stdin", io.StringIO("quit\nsend never\n"))
        conn = FakeConnection()
        assert isinstance(run_shell(_ctx(), conn), IOSuccess)
        assert conn.written == []

    def test_sends_and_shows_device_output(
        self, monkeypatch, capsys,  # type: ignore[no-untyped-def]
    ) -> None:
        monkeypatch.setattr("sys.stdin", io.StringIO("send ping\n"))
        conn = FakeConnection()
        ctx = _ctx()
        ctx.relay.offer(b"pong\n")
        result = run_shell(ctx, conn)
        assert isinstance(result, IOSuccess)
        assert conn.written == [b"ping\n"]
        assert "pong\n" in capsys.readouterr().out

    def test_cancelled_before_first_line(self, mocker) -> None:  # type: ignore[no-untyped-def]
        mock_read = mocker.patch("devctl.dev_modules.io_ops.read_input_line")
        ctx = _ctx()
        ctx.cancel()
        assert isinstance(run_shell(ctx, None), IOSuccess)
        mock_read.assert_not_called()

    def test_write_error_ends_shell(self, monkeypatch) -> None:  # type: ignore[no-untyped-def]
        monkeypatch.setattr("sys.stdin", io.StringIO("send a\nsend b\n"))
        conn = FakeConnection()
        conn.write_error = OSError("EIO")
        result = run_shell(_ctx(), conn)
        assert isinstance(result, IOFailure)

    def test_reader_stopped_on_exit(self, monkeypatch) -> None:  # type: ignore[no-untyped-def]
        monkeypatch.setattr("sys.stdin", io.StringIO(""))
        before = {t.name for t in threading.enumerate()}
        run_shell(_ctx(), FakeConnection("/dev/ttyS9"))
        after = {t.name for t in threading.enumerate()}
        assert "console-reader:/dev/ttyS9" not in after - before
