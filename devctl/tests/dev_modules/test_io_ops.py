"""Tests for I/O boundary module."""
from __future__ import annotations

import fcntl
import io
import os
import signal
import socket
import termios
from typing import TYPE_CHECKING

from returns.io import IOFailure, IOSuccess
from returns.unsafe import unsafe_perform_io

from devctl.dev_modules import io_ops
from devctl.dev_modules.connection import SerialConnection, TcpConnection
from devctl.dev_modules.errors import DevctlError

if TYPE_CHECKING:
    from pathlib import Path

    import pytest


class TestOpenSerialPort:
    """Tests for open_serial_port."""

    def test_missing_port(self, tmp_path: Path) -> None:
        result = io_ops.open_serial_port(str(tmp_path / "ttyNONE"), 115200)
        assert isinstance(result, IOFailure)
        err = unsafe_perform_io(result.failure())
        assert isinstance(err, DevctlError)
        assert err.error_type == "FileNotFoundError"
        assert "ttyNONE" in err.message

    def test_non_tty_fails_configuration(self, tmp_path: Path) -> None:
        """A regular file opens but cannot be put in raw mode."""
        plain = tmp_path / "not-a-tty"
        plain.write_text("")
        result = io_ops.open_serial_port(str(plain), 115200)
        assert isinstance(result, IOFailure)
        err = unsafe_perform_io(result.failure())
        assert err.error_type == "SerialConfigError"
        assert err.context["baud"] == 115200

    def test_opens_pty(self) -> None:
        master, slave = os.openpty()
        path = os.ttyname(slave)
        try:
            result = io_ops.open_serial_port(path, 9600)
            assert isinstance(result, IOSuccess)
            conn = unsafe_perform_io(result.unwrap())
            assert isinstance(conn, SerialConnection)
            assert conn.address == path
            conn.disconnect()
        finally:
            os.close(slave)
            os.close(master)

    def test_pty_configured_raw_and_blocking(self) -> None:
        """Opened port ignores modem lines and uses blocking reads."""
        master, slave = os.openpty()
        try:
            result = io_ops.open_serial_port(os.ttyname(slave), 115200)
            conn = unsafe_perform_io(result.unwrap())
            try:
                attrs = termios.tcgetattr(conn.fd)
                assert attrs[2] & termios.CLOCAL
                assert attrs[3] & termios.ICANON == 0
                assert fcntl.fcntl(conn.fd, fcntl.F_GETFL) & os.O_NONBLOCK == 0
            finally:
                conn.disconnect()
        finally:
            os.close(slave)
            os.close(master)

    def test_open_does_not_wait_for_carrier(self, mocker) -> None:  # type: ignore[no-untyped-def]
        mock_open = mocker.patch(
            "devctl.dev_modules.io_ops.os.open",
            side_effect=OSError("EBUSY"),
        )
        io_ops.open_serial_port("/dev/ttyS0", 115200)
        flags = mock_open.call_args.args[1]
        assert flags & os.O_NONBLOCK
        assert flags & os.O_NOCTTY

    def test_unexpected_config_error_closes_fd(self, mocker) -> None:  # type: ignore[no-untyped-def]
        """Any configuration failure becomes IOFailure without leaking fd."""
        mocker.patch("devctl.dev_modules.io_ops.os.open", return_value=42)
        mock_close = mocker.patch("devctl.dev_modules.io_ops.os.close")
        mocker.patch(
            "devctl.dev_modules.io_ops._configure_raw",
            side_effect=AttributeError("no such termios call"),
        )
        result = io_ops.open_serial_port("/dev/ttyUSB0", 115200)
        assert isinstance(result, IOFailure)
        err = unsafe_perform_io(result.failure())
        assert err.error_type == "SerialConfigError"
        mock_close.assert_called_once_with(42)


class TestOpenTcpConnection:
    """Tests for open_tcp_connection."""

    def test_connects_to_listener(self) -> None:
        server = socket.socket()
        server.bind(("127.0.0.1", 0))
        server.listen(1)
        port = server.getsockname()[1]
        try:
            result = io_ops.open_tcp_connection("127.0.0.1", port, 2.0)
            assert isinstance(result, IOSuccess)
            conn = unsafe_perform_io(result.unwrap())
            assert isinstance(conn, TcpConnection)
            assert conn.address == f"tcp://127.0.0.1:{port}"
            conn.disconnect()
        finally:
            server.close()

    def test_refused(self, mocker) -> None:  # type: ignore[no-untyped-def]
        mocker.patch(
            "devctl.dev_modules.io_ops.socket.create_connection",
            side_effect=ConnectionRefusedError("refused"),
        )
        result = io_ops.open_tcp_connection("10.0.0.7", 23, 1.0)
        assert isinstance(result, IOFailure)
        err = unsafe_perform_io(result.failure())
        assert err.error_type == "ConnectionRefusedError"
        assert "tcp://10.0.0.7:23" in err.message

    def test_timeout(self, mocker) -> None:  # type: ignore[no-untyped-def]
        mocker.patch(
            "devctl.dev_modules.io_ops.socket.create_connection",
            side_effect=TimeoutError("timed out"),
        )
        result = io_ops.open_tcp_connection("10.0.0.7", 23, 1.5)
        assert isinstance(result, IOFailure)
        err = unsafe_perform_io(result.failure())
        assert err.error_type == "TimeoutError"
        assert "1.5s" in err.message


def test_list_serial_ports_sorted_unique(mocker) -> None:  # type: ignore[no-untyped-def]
    """Ports from every pattern are merged and sorted."""
    matches = {
        "/dev/ttyUSB*": ["/dev/ttyUSB1", "/dev/ttyUSB0"],
        "/dev/ttyACM*": ["/dev/ttyACM0"],
    }
    mocker.patch(
        "devctl.dev_modules.io_ops.glob.glob",
        side_effect=lambda pattern: matches.get(pattern, []),
    )
    result = io_ops.list_serial_ports()
    assert unsafe_perform_io(result.unwrap()) == [
        "/dev/ttyACM0", "/dev/ttyUSB0", "/dev/ttyUSB1",
    ]


class TestDirectories:
    """Tests for change_directory and ensure_directory."""

    def test_change_directory(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.chdir(os.getcwd())
        result = io_ops.change_directory(str(tmp_path))
        assert isinstance(result, IOSuccess)
        assert os.getcwd() == str(tmp_path.resolve())

    def test_change_directory_missing(self, tmp_path: Path) -> None:
        result = io_ops.change_directory(str(tmp_path / "nope"))
        assert isinstance(result, IOFailure)
        err = unsafe_perform_io(result.failure())
        assert err.error_type == "FileNotFoundError"

    def test_ensure_directory_creates_parents(self, tmp_path: Path) -> None:
        target = tmp_path / "a" / "b"
        result = io_ops.ensure_directory(str(target))
        assert unsafe_perform_io(result.unwrap()) == target
        assert target.is_dir()

    def test_ensure_directory_expands_user(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setenv("HOME", str(tmp_path))
        result = io_ops.ensure_directory("~/.devctl")
        assert unsafe_perform_io(result.unwrap()) == tmp_path / ".devctl"

    def test_ensure_directory_over_file(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("x")
        result = io_ops.ensure_directory(str(blocker / "sub"))
        assert isinstance(result, IOFailure)


class TestStdio:
    """Tests for stdout, stderr and stdin helpers."""

    def test_write_stdout(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert isinstance(io_ops.write_stdout("hi\n"), IOSuccess)
        assert capsys.readouterr().out == "hi\n"

    def test_write_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert isinstance(io_ops.write_stderr("oops\n"), IOSuccess)
        assert capsys.readouterr().err == "oops\n"

    def test_write_stderr_failure(self, mocker) -> None:  # type: ignore[no-untyped-def]
        broken = mocker.MagicMock()
        broken.write.side_effect = OSError("closed")
        mocker.patch("devctl.dev_modules.io_ops.sys.stderr", broken)
        result = io_ops.write_stderr("x")
        err = unsafe_perform_io(result.failure())
        assert err.error_type == "StderrWriteError"

    def test_read_input_line_strips_newline(
        self, monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.setattr("sys.stdin", io.StringIO("status\r\n"))
        result = io_ops.read_input_line("> ")
        assert unsafe_perform_io(result.unwrap()) == "status"
        assert capsys.readouterr().out == "> "

    def test_read_input_line_eof(
        self, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr("sys.stdin", io.StringIO(""))
        result = io_ops.read_input_line()
        assert unsafe_perform_io(result.unwrap()) is None


def test_sleep_seconds(mocker) -> None:  # type: ignore[no-untyped-def]
    mock_sleep = mocker.patch("devctl.dev_modules.io_ops.time.sleep")
    result = io_ops.sleep_seconds(0.5)
    assert isinstance(result, IOSuccess)
    mock_sleep.assert_called_once_with(0.5)


class TestInterruptHandler:
    """Tests for SIGINT routing."""

    def test_install_and_restore(self) -> None:
        original = signal.getsignal(signal.SIGINT)
        calls: list[bool] = []
        installed = io_ops.install_interrupt_handler(
            lambda: calls.append(True),
        )
        try:
            assert isinstance(installed, IOSuccess)
            assert unsafe_perform_io(installed.unwrap()) is original
            handler = signal.getsignal(signal.SIGINT)
            handler(signal.SIGINT, None)  # type: ignore[operator, misc]
            assert calls == [True]
        finally:
            io_ops.restore_interrupt_handler(
                unsafe_perform_io(installed.unwrap()),
            )
        assert signal.getsignal(signal.SIGINT) is original

    def test_install_outside_main_thread(self, mocker) -> None:  # type: ignore[no-untyped-def]
        mocker.patch(
            "devctl.dev_modules.io_ops.signal.signal",
            side_effect=ValueError("main thread only"),
        )
        result = io_ops.install_interrupt_handler(lambda: None)
        err = unsafe_perform_io(result.failure())
        assert err.error_type == "SignalError"
