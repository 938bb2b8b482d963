"""
Tests for POP3 response parsing

Tests cover:
- Single-line status parsing
- Dot-terminated, dot-stuffed bodies
- STAT and LIST/UIDL post-processing
"""
import pytest

from popline.core.pop3 import LineChannel, Response, StatResult
from popline.core.pop3.protocol import parse_long, parse_short, parse_stat, scan_listing
from popline.utils.errors import (
    FormatError,
    POP3ConnectionError,
    ProtocolError,
    ServerError,
)

from .test_helpers import FakeSocket, POP3TestHelper


def channel_for(*lines, raw=None):
    """LineChannel reading the given reply lines"""
    data = raw if raw is not None else POP3TestHelper.wire(*lines)
    return LineChannel(FakeSocket(data))


class TestParseShort:
    """Tests for single-line replies"""

    @pytest.mark.parametrize("line, status", [
        ("+OK", ""),
        ("+OK POP3 ready", "POP3 ready"),
        ("+OK   2 320  ", "2 320"),
        ("+OK\tmaildrop has 2 messages", "maildrop has 2 messages"),
    ])
    def test_success_marker(self, line, status):
        """Test status is the trimmed remainder and body is empty"""
        response = parse_short(line)

        assert response.status == status
        assert response.body == ()

    @pytest.mark.parametrize("line, message", [
        ("-ERR invalid password", "invalid password"),
        ("-ERR   no such message  ", "no such message"),
        ("-ERR", ""),
    ])
    def test_failure_marker(self, line, message):
        """Test -ERR raises ServerError carrying the trimmed remainder"""
        with pytest.raises(ServerError) as exc_info:
            parse_short(line)

        assert exc_info.value.message == message

    def test_empty_line(self):
        """Test an empty status line is a framing violation"""
        with pytest.raises(ProtocolError):
            parse_short("")

    def test_unknown_marker(self):
        """Test a line without +OK/-ERR is a framing violation"""
        with pytest.raises(ProtocolError):
            parse_short("* OK IMAP4rev1 ready")

    def test_response_is_immutable(self):
        """Test Response cannot be modified once built"""
        response = parse_short("+OK hello")

        with pytest.raises(AttributeError):
            response.status = "changed"


class TestParseLong:
    """Tests for dot-terminated replies"""

    def test_listing_body(self):
        """Test LIST-style body is returned line by line"""
        channel = channel_for("+OK 2 messages", "1 500", "2 300", ".")

        response = parse_long(channel)

        assert response == Response("2 messages", ("1 500", "2 300"))

    def test_empty_body(self):
        """Test terminator right after the status line gives an empty body"""
        response = parse_long(channel_for("+OK", "."))

        assert response.body == ()

    def test_stuffed_terminator_is_unstuffed(self):
        """Test a stuffed '..' line comes back as a single dot"""
        response = parse_long(channel_for("+OK", "first", "..", "last", "."))

        assert response.body == ("first", ".", "last")

    def test_stuffed_leading_dot(self):
        """Test only the first of several leading dots is removed"""
        response = parse_long(channel_for("+OK", "...hidden", "..signature", "."))

        assert response.body == ("..hidden", ".signature")

    def test_single_dot_prefix_kept_verbatim(self):
        """Test a line starting with one dot and more text is not the terminator"""
        response = parse_long(channel_for("+OK", ".not the end", "."))

        assert response.body == (".not the end",)

    def test_terminator_with_trailing_space_is_data(self):
        """Test the terminator must be exactly one dot"""
        response = parse_long(channel_for("+OK", ". ", "."))

        assert response.body == (". ",)

    def test_empty_lines_preserved(self):
        """Test blank body lines (header/body separator) survive"""
        response = parse_long(channel_for("+OK", "Subject: hi", "", "body", "."))

        assert response.body == ("Subject: hi", "", "body")

    def test_stuff_then_unstuff_round_trip(self):
        """Test stuffing body lines then parsing reproduces the originals"""
        original = [".", "..", ".x", "plain", ""]
        stuffed = ["." + line if line.startswith(".") else line for line in original]

        response = parse_long(channel_for("+OK", *stuffed, "."))

        assert list(response.body) == original

    def test_missing_terminator(self):
        """Test end of stream before the terminator never yields a truncated body"""
        channel = channel_for("+OK 2 messages", "1 500", "2 300")

        with pytest.raises(ProtocolError) as exc_info:
            parse_long(channel)

        assert exc_info.value.message == "unexpected end of stream"

    def test_error_status_reads_no_body(self):
        """Test -ERR on the status line raises before any body is read"""
        channel = channel_for("-ERR no such message", "+OK next")

        with pytest.raises(ServerError, match="no such message"):
            parse_long(channel)

        assert channel.read_line() == "+OK next"

    def test_eof_before_status(self):
        """Test a closed stream where a status line is expected"""
        with pytest.raises(POP3ConnectionError):
            parse_long(channel_for(raw=b""))

    def test_bare_lf_terminators(self):
        """Test replies using bare LF line endings"""
        response = parse_long(channel_for(raw=b"+OK\n1 500\n.\n"))

        assert response.body == ("1 500",)


class TestParseStat:
    """Tests for STAT status parsing"""

    def test_valid(self):
        """Test two integers are returned as a StatResult"""
        assert parse_stat("3 1234") == StatResult(3, 1234)

    def test_named_fields(self):
        """Test StatResult exposes named fields"""
        result = parse_stat("0 0")

        assert result.message_count == 0
        assert result.mailbox_size == 0

    @pytest.mark.parametrize("status", ["abc 1", "1", "1 2 3", "", "-1 5", "1 2.5"])
    def test_malformed(self, status):
        """Test anything but two non-negative integers is a FormatError"""
        with pytest.raises(FormatError):
            parse_stat(status)


class TestScanListing:
    """Tests for LIST/UIDL line splitting"""

    def test_multi_line_listing(self):
        """Test body lines become (number, value) pairs"""
        entries = scan_listing(("1 500", "2 QhdPYR:00WBw1Ph7x7"))

        assert entries == [(1, "500"), (2, "QhdPYR:00WBw1Ph7x7")]
        assert entries[1].message_number == 2

    def test_single_message_status(self):
        """Test the status text of a single-message reply"""
        assert scan_listing(["2 200"]) == [(2, "200")]

    def test_empty_mailbox(self):
        """Test an empty body gives no entries"""
        assert scan_listing(()) == []

    def test_malformed(self):
        """Test a line without a message number"""
        with pytest.raises(FormatError):
            scan_listing(["no number here"])
