"""
Tests for the line channel

Tests cover:
- CRLF framing on send and receive
- End of stream, long lines, timeouts
- Single release of the socket
"""
import socket
import threading
import time
from unittest.mock import MagicMock

import pytest

from popline.core.pop3 import LineChannel
from popline.core.pop3.constants import MAX_LINE_LENGTH
from popline.utils.errors import NetworkTimeoutError, POP3ConnectionError, ProtocolError

from .test_helpers import FakeSocket


class TestReadLine:
    """Tests for reading lines"""

    def test_strips_crlf(self):
        """Test CRLF is removed from each line"""
        channel = LineChannel(FakeSocket(b"+OK ready\r\nsecond\r\n"))

        assert channel.read_line() == "+OK ready"
        assert channel.read_line() == "second"

    def test_strips_bare_lf(self):
        """Test a bare LF terminator is accepted"""
        channel = LineChannel(FakeSocket(b"+OK\n"))

        assert channel.read_line() == "+OK"

    def test_empty_line_is_not_eof(self):
        """Test an empty line is returned as an empty string"""
        channel = LineChannel(FakeSocket(b"\r\n"))

        assert channel.read_line() == ""
        assert channel.read_line() is None

    def test_eof(self):
        """Test end of stream is signalled with None"""
        channel = LineChannel(FakeSocket(b""))

        assert channel.read_line() is None

    def test_line_too_long(self):
        """Test an oversized line is a framing violation"""
        channel = LineChannel(FakeSocket(b"x" * (MAX_LINE_LENGTH + 10) + b"\r\n"))

        with pytest.raises(ProtocolError):
            channel.read_line()

    def test_eight_bit_data_round_trips(self):
        """Test undecodable bytes survive via surrogateescape"""
        channel = LineChannel(FakeSocket(b"caf\xe9\r\n"))

        line = channel.read_line()

        assert line.encode("utf-8", "surrogateescape") == b"caf\xe9"

    def test_timeout(self):
        """Test a read timeout surfaces as NetworkTimeoutError"""
        sock = MagicMock()
        sock.makefile.return_value.readline.side_effect = socket.timeout("timed out")
        channel = LineChannel(sock)

        with pytest.raises(NetworkTimeoutError):
            channel.read_line()

    def test_socket_error(self):
        """Test a reset connection surfaces as POP3ConnectionError"""
        sock = MagicMock()
        sock.makefile.return_value.readline.side_effect = ConnectionResetError()
        channel = LineChannel(sock)

        with pytest.raises(POP3ConnectionError):
            channel.read_line()


class TestSendLine:
    """Tests for sending lines"""

    def test_appends_crlf(self):
        """Test each command goes out with CRLF"""
        sock = FakeSocket()
        channel = LineChannel(sock)

        channel.send_line("USER alice")
        channel.send_line("QUIT")

        assert bytes(sock.sent) == b"USER alice\r\nQUIT\r\n"

    def test_send_failure(self):
        """Test a broken pipe surfaces as POP3ConnectionError"""
        sock = MagicMock()
        sock.sendall.side_effect = BrokenPipeError()
        channel = LineChannel(sock)

        with pytest.raises(POP3ConnectionError):
            channel.send_line("NOOP")


class TestClose:
    """Tests for releasing the socket"""

    def test_close_once(self):
        """Test the socket is closed exactly once"""
        sock = FakeSocket()
        channel = LineChannel(sock)

        channel.close()
        channel.close()

        assert channel.closed
        assert sock.close_count == 1

    def test_use_after_close(self):
        """Test reads and writes fail fast on a closed channel"""
        channel = LineChannel(FakeSocket(b"+OK\r\n"))
        channel.close()

        with pytest.raises(POP3ConnectionError):
            channel.read_line()
        with pytest.raises(POP3ConnectionError):
            channel.send_line("NOOP")

    def test_close_shuts_down_socket(self):
        """Test close shuts the socket down before releasing it"""
        sock = FakeSocket()
        channel = LineChannel(sock)

        channel.close()

        assert sock.shutdown_count == 1
        assert sock.close_count == 1

    def test_close_from_another_thread_interrupts_read(self):
        """Test closing wakes a blocked reader with POP3ConnectionError"""
        local, remote = socket.socketpair()
        local.settimeout(5)
        channel = LineChannel(local)
        errors = []

        def reader():
            try:
                channel.read_line()
            except POP3ConnectionError as e:
                errors.append(e)

        thread = threading.Thread(target=reader)
        thread.start()
        time.sleep(0.2)

        start = time.monotonic()
        channel.close()
        elapsed = time.monotonic() - start
        thread.join(timeout=5)
        remote.close()

        assert elapsed < 1
        assert not thread.is_alive()
        assert len(errors) == 1
        assert not isinstance(errors[0], NetworkTimeoutError)
