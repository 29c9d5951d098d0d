"""
Unit tests for Gemini request framing.
"""

import pytest

from geminiserver.protocol.request import (
    INVALID_LENGTH_META,
    MAX_URL_LENGTH,
    GeminiParseError,
    GeminiRequest,
    MalformedRequestError,
    RequestFramer,
    RequestTooLongError,
    parse_request,
)


URL = "gemini://example.org/docs/page.gmi"
LINE = URL.encode() + b"\r\n"


class TestRequestFramer:
    """Tests for RequestFramer class."""

    def test_single_chunk(self):
        """Test a complete request in one chunk."""
        framer = RequestFramer()
        request = framer.feed(LINE)

        assert request is not None
        assert request.url == URL
        assert framer.done

    @pytest.mark.parametrize("split", range(1, len(LINE)))
    def test_every_split_point(self, split):
        """Test that any two-chunk split yields the same request."""
        framer = RequestFramer()

        assert framer.feed(LINE[:split]) is None
        request = framer.feed(LINE[split:])

        assert request is not None
        assert request.url == URL

    def test_crlf_split_across_chunks(self):
        """Test CR at the end of one chunk, LF at the start of the next."""
        framer = RequestFramer()

        assert framer.feed(URL.encode() + b"\r") is None
        assert framer.buffered == len(URL) + 1
        request = framer.feed(b"\n")

        assert request.url == URL

    def test_byte_at_a_time(self):
        """Test feeding one byte per chunk."""
        framer = RequestFramer()
        results = [framer.feed(LINE[i:i + 1]) for i in range(len(LINE))]

        assert all(r is None for r in results[:-1])
        assert results[-1].url == URL

    def test_lone_cr_is_not_a_delimiter(self):
        """Test that CR without LF keeps buffering."""
        framer = RequestFramer()

        assert framer.feed(b"gemini://a/\rb") is None
        assert not framer.done

    def test_connection_is_attached(self):
        """Test that the request carries the framer's connection."""
        conn = object()
        request = RequestFramer(conn).feed(LINE)

        assert request.connection is conn

    def test_exactly_max_length_accepted(self):
        """Test a 1024-byte URL is accepted."""
        url = "gemini://a/" + "x" * (MAX_URL_LENGTH - len("gemini://a/"))
        assert len(url) == MAX_URL_LENGTH

        request = RequestFramer().feed(url.encode() + b"\r\n")

        assert request.url == url

    def test_url_too_long(self):
        """Test a 1025-byte URL is rejected."""
        url = b"gemini://a/" + b"x" * (MAX_URL_LENGTH + 1 - len(b"gemini://a/"))
        framer = RequestFramer()

        with pytest.raises(RequestTooLongError) as exc_info:
            framer.feed(url[:1000])
            framer.feed(url[1000:] + b"\r\n")

        assert exc_info.value.status == 59
        assert exc_info.value.meta == INVALID_LENGTH_META
        assert framer.done

    def test_chunk_too_large(self):
        """Test a single chunk over 1026 bytes is rejected immediately."""
        chunk = b"gemini://a/" + b"x" * 1100 + b"\r\n"

        with pytest.raises(RequestTooLongError):
            RequestFramer().feed(chunk)

    def test_chunk_of_1026_bytes_is_not_rejected_for_size(self):
        """Test the per-chunk cap is inclusive."""
        url = "gemini://a/" + "x" * (MAX_URL_LENGTH - len("gemini://a/"))
        chunk = url.encode() + b"\r\n"
        assert len(chunk) == 1026

        assert RequestFramer().feed(chunk).url == url

    def test_cumulative_limit_without_crlf(self):
        """Test many small chunks without a delimiter are rejected."""
        framer = RequestFramer()
        framer.feed(b"x" * 1000)

        with pytest.raises(RequestTooLongError):
            framer.feed(b"x" * 26)

        assert framer.done
        assert framer.buffered == 0

    def test_cumulative_limit_allows_pending_cr(self):
        """Test 1024 bytes plus a CR still wait for the LF."""
        framer = RequestFramer()
        url = b"gemini://a/" + b"x" * (MAX_URL_LENGTH - len(b"gemini://a/"))

        assert framer.feed(url + b"\r") is None
        assert framer.feed(b"\n").url == url.decode()

    def test_invalid_utf8(self):
        """Test a request line that is not UTF-8."""
        with pytest.raises(MalformedRequestError) as exc_info:
            RequestFramer().feed(b"gemini://a/\xff\xfe\r\n")

        assert exc_info.value.status == 59
        assert exc_info.value.status_line == b"59 Malformed request\r\n"

    def test_utf8_url(self):
        """Test non-ASCII UTF-8 is decoded."""
        request = RequestFramer().feed("gemini://a/café\r\n".encode("utf-8"))

        assert request.url == "gemini://a/café"

    def test_one_request_per_connection(self):
        """Test that trailing data never yields a second request."""
        framer = RequestFramer()
        first = framer.feed(LINE + b"gemini://other/\r\n")

        assert first.url == URL
        assert framer.feed(LINE) is None
        assert framer.buffered == 0

    def test_feed_after_error_returns_none(self):
        """Test the framer stays done after a rejection."""
        framer = RequestFramer()
        with pytest.raises(RequestTooLongError):
            framer.feed(b"x" * 2000)

        assert framer.feed(LINE) is None

    def test_feed_eof(self):
        """Test EOF before a complete line."""
        framer = RequestFramer()
        framer.feed(b"gemini://a/")
        framer.feed_eof()

        assert framer.done
        assert framer.feed(b"\r\n") is None


class TestGeminiRequest:
    """Tests for GeminiRequest class."""

    def test_url_parts(self):
        """Test URL accessors."""
        request = GeminiRequest(None, "gemini://example.org:1966/a%20b/c.gmi?hello%20world")

        assert request.scheme == "gemini"
        assert request.hostname == "example.org"
        assert request.port == 1966
        assert request.path == "/a b/c.gmi"
        assert request.query == "hello world"

    def test_empty_path(self):
        """Test that an empty path reads as '/'."""
        request = GeminiRequest(None, "gemini://example.org")

        assert request.path == "/"
        assert request.port is None

    def test_bad_port(self):
        """Test a non-numeric port."""
        assert GeminiRequest(None, "gemini://example.org:abc/").port is None

    def test_client_address(self, fake_connection):
        """Test client_address with and without a connection."""
        assert GeminiRequest(None, URL).client_address == ("", 0)
        assert GeminiRequest(fake_connection, URL).client_address == ("127.0.0.1", 50000)

    def test_immutable(self):
        """Test that requests are frozen."""
        request = GeminiRequest(None, URL)

        with pytest.raises(AttributeError):
            request.url = "gemini://other/"


class TestParseRequest:
    """Tests for the parse_request convenience function."""

    def test_parse(self):
        """Test parsing a full buffer."""
        assert parse_request(LINE).url == URL

    def test_incomplete(self):
        """Test a buffer without CRLF."""
        with pytest.raises(GeminiParseError):
            parse_request(URL.encode())

    def test_too_long(self):
        """Test that limits apply."""
        with pytest.raises(RequestTooLongError):
            parse_request(b"x" * 1500 + b"\r\n")
